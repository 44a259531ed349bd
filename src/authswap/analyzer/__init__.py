"""Differential authorization analysis."""

from .comparison import Classification, compare_responses, normalize_body, similarity
from .events import EventBus, EventName
from .extractor import ParameterExtractor
from .http_client import HttpxTransport, Transport
from .models import CapturedExchange, RequestData, ResponseData
from .orchestrator import AuthAnalyzer, BulkReport, SkipReason
from .replayer import RequestReplayer
from .results import ComparisonResult, ResultsLog, SwappedRequestSummary, write_results_file
from .session import (
    ExtractionType,
    ExtractSources,
    FromToMarkers,
    Parameter,
    ReplaceTargets,
    Session,
    SessionManager,
)

__all__ = [
    "Classification",
    "compare_responses",
    "normalize_body",
    "similarity",
    "EventBus",
    "EventName",
    "ParameterExtractor",
    "HttpxTransport",
    "Transport",
    "CapturedExchange",
    "RequestData",
    "ResponseData",
    "AuthAnalyzer",
    "BulkReport",
    "SkipReason",
    "RequestReplayer",
    "ComparisonResult",
    "ResultsLog",
    "SwappedRequestSummary",
    "write_results_file",
    "ExtractionType",
    "ExtractSources",
    "FromToMarkers",
    "Parameter",
    "ReplaceTargets",
    "Session",
    "SessionManager",
]
