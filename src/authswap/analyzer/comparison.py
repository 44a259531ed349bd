"""Response comparison: normalization, similarity and classification."""

from __future__ import annotations

import logging
import re
from enum import Enum
from typing import Optional

from .models import ResponseData

logger = logging.getLogger(__name__)

SIMILARITY_THRESHOLD = 0.90
SAME_THRESHOLD = 0.98

# Dynamic or non-semantic content removed before comparing bodies
_SCRIPT_RE = re.compile(r"<script\b[^>]*>[\s\S]*?</script>", re.IGNORECASE)
_STYLE_RE = re.compile(r"<style\b[^>]*>[\s\S]*?</style>", re.IGNORECASE)
_HIDDEN_INPUT_RE = re.compile(r"""<input[^>]*type=["']hidden["'][^>]*>""", re.IGNORECASE)
_ISO_TIMESTAMP_RE = re.compile(r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}")
_UNIX_TIMESTAMP_RE = re.compile(r"\b\d{10,13}\b")
_WHITESPACE_RE = re.compile(r"\s+")


class Classification(str, Enum):
    """Relationship between the original and the swapped response."""

    SAME = "SAME"
    SIMILAR = "SIMILAR"
    DIFFERENT = "DIFFERENT"
    ERROR = "ERROR"


def compare_responses(
    original: Optional[ResponseData],
    swapped: Optional[ResponseData],
) -> Classification:
    """Classify the swapped response against the original.

    A status mismatch is the only way to reach DIFFERENT. Equal status with
    a differing body is SIMILAR at worst, so it is always flagged for review.
    """
    if original is None or swapped is None:
        logger.warning("Invalid responses to compare")
        return Classification.ERROR

    original_status = original.status or 0
    swapped_status = swapped.status or 0

    if original_status != swapped_status:
        return Classification.DIFFERENT

    norm_original = normalize_body(original.body)
    norm_swapped = normalize_body(swapped.body)

    if norm_original == norm_swapped:
        return Classification.SAME

    score = similarity(norm_original, norm_swapped)
    logger.debug("Similarity: %.2f (%s)", score, original_status)

    if score > SAME_THRESHOLD:
        return Classification.SAME
    return Classification.SIMILAR


def normalize_body(body: Optional[str]) -> str:
    """Remove dynamic content (scripts, styles, hidden inputs, timestamps).

    Stripping can splice text into a new match (``<scr<script></script>ipt>``),
    so it is repeated until the output is stable; this makes the function
    idempotent.
    """
    if not body:
        return ""
    if not isinstance(body, str):
        body = str(body)

    previous = None
    normalized = body
    while normalized != previous:
        previous = normalized
        normalized = _SCRIPT_RE.sub("", normalized)
        normalized = _STYLE_RE.sub("", normalized)
        normalized = _HIDDEN_INPUT_RE.sub("", normalized)
        normalized = _ISO_TIMESTAMP_RE.sub("", normalized)
        normalized = _UNIX_TIMESTAMP_RE.sub("", normalized)
        normalized = _WHITESPACE_RE.sub(" ", normalized).strip()

    return normalized


def similarity(s1: str, s2: str) -> float:
    """Jaccard index of the space-separated token sets of two normalized bodies.

    Edit distance is too expensive for large bodies, so token overlap is used.
    """
    if s1 == s2:
        return 1.0 if s1 else 0.0
    if not s1 or not s2:
        return 0.0

    tokens1 = set(s1.split(" "))
    tokens2 = set(s2.split(" "))
    union = tokens1 | tokens2
    if not union:
        return 0.0
    return len(tokens1 & tokens2) / len(union)
