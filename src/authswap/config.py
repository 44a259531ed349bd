"""Analyzer configuration and the authswap.yaml config file."""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from functools import lru_cache
from pathlib import Path
from typing import Any, Iterable, Optional

from ruamel.yaml import YAML, YAMLError

from .errors import ConfigurationError

DEFAULT_EXCLUDE_FILE_TYPES = (
    ".css", ".js", ".jpg", ".png", ".gif", ".svg", ".woff", ".woff2",
)


@dataclass(frozen=True)
class SwapEntry:
    """A name/value pair to swap in (custom header or URL parameter)."""

    name: str
    value: str

    @property
    def is_valid(self) -> bool:
        return bool(self.name and self.name.strip() and self.value and self.value.strip())


@dataclass(frozen=True)
class Filters:
    """Exclusion filters applied before an exchange is replayed."""

    exclude_file_types: tuple[str, ...] = DEFAULT_EXCLUDE_FILE_TYPES
    exclude_methods: tuple[str, ...] = ()
    exclude_status_codes: tuple[int, ...] = ()
    exclude_paths: tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> Filters:
        if not data:
            return cls()
        if not isinstance(data, dict):
            raise ConfigurationError(f"filters must be a mapping, got {type(data).__name__}")
        return cls(
            exclude_file_types=tuple(
                str(e) for e in _to_list(data, "excludeFileTypes", DEFAULT_EXCLUDE_FILE_TYPES)
            ),
            exclude_methods=tuple(str(m).upper() for m in _to_list(data, "excludeMethods")),
            exclude_status_codes=_to_status_codes(_to_list(data, "excludeStatusCodes")),
            exclude_paths=tuple(str(p) for p in _to_list(data, "excludePaths")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "excludeFileTypes": list(self.exclude_file_types),
            "excludeMethods": list(self.exclude_methods),
            "excludeStatusCodes": list(self.exclude_status_codes),
            "excludePaths": list(self.exclude_paths),
        }


@dataclass(frozen=True)
class AnalyzerConfig:
    """Immutable analyzer configuration snapshot.

    ``start()``, ``stop()`` and ``with_changes()`` return new snapshots.
    """

    enabled: bool = False
    use_cookie: bool = False
    cookie_value: str = ""
    use_custom_header: bool = False
    custom_headers: tuple[SwapEntry, ...] = ()
    use_url_param: bool = False
    url_params: tuple[SwapEntry, ...] = ()
    enabled_realtime: bool = True
    realtime_scope: str = ""
    filter_static: bool = True
    filters: Filters = field(default_factory=Filters)
    replay_timeout: float = 30.0
    bulk_delay: float = 0.05

    def start(self) -> AnalyzerConfig:
        return replace(self, enabled=True)

    def stop(self) -> AnalyzerConfig:
        return replace(self, enabled=False)

    def with_changes(self, **changes: Any) -> AnalyzerConfig:
        return replace(self, **changes)

    @property
    def has_cookie(self) -> bool:
        value = self.cookie_value.strip()
        return self.use_cookie and bool(value) and value != "null"

    @property
    def valid_custom_headers(self) -> list[SwapEntry]:
        return [h for h in self.custom_headers if h.is_valid] if self.use_custom_header else []

    @property
    def valid_url_params(self) -> list[SwapEntry]:
        return [p for p in self.url_params if p.is_valid] if self.use_url_param else []

    def has_swap_method(self) -> bool:
        """True when at least one swap method is configured with a value."""
        return self.has_cookie or bool(self.valid_custom_headers) or bool(self.valid_url_params)

    def validate(self) -> list[str]:
        """Return the reasons this config cannot be saved (empty = valid)."""
        errors: list[str] = []
        if self.use_cookie and not self.cookie_value.strip():
            errors.append("Cookie swapping is enabled but no cookie value is set")
        if self.use_custom_header and not any(h.is_valid for h in self.custom_headers):
            errors.append("Custom header swapping is enabled but no header has both name and value")
        if self.use_url_param and not any(p.is_valid for p in self.url_params):
            errors.append("URL parameter swapping is enabled but no parameter has both name and value")
        if not (self.use_cookie or self.use_custom_header or self.use_url_param):
            errors.append("Enable at least one swap method (cookie, custom header, or URL parameter)")
        return errors

    def scope_matcher(self) -> ScopeMatcher:
        return build_scope_matcher(self.realtime_scope.strip())

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> AnalyzerConfig:
        """Build a config from the persisted (camelCase) shape.

        Legacy single-swap keys are folded into the lists when the list keys
        are absent.
        """
        if not data:
            return cls()

        custom_headers = _to_entries(data.get("customHeaders"))
        if "customHeaders" not in data and data.get("customHeaderName"):
            custom_headers = (SwapEntry(
                str(data.get("customHeaderName") or ""),
                str(data.get("customHeaderValue") or ""),
            ),)

        url_params = _to_entries(data.get("urlParams"))
        if "urlParams" not in data and data.get("urlParamName"):
            url_params = (SwapEntry(
                str(data.get("urlParamName") or ""),
                str(data.get("urlParamValue") or ""),
            ),)

        cookie_value = data.get("cookieValue")
        if cookie_value is None:
            cookie_value = ""

        try:
            replay_timeout = float(data.get("replayTimeout", 30.0))
            bulk_delay = float(data.get("bulkDelay", 0.05))
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"replayTimeout and bulkDelay must be numbers: {e}") from e

        return cls(
            enabled=bool(data.get("enabled", False)),
            use_cookie=bool(data.get("useCookie", False)),
            cookie_value=str(cookie_value),
            use_custom_header=bool(data.get("useCustomHeader", False)),
            custom_headers=custom_headers,
            use_url_param=bool(data.get("useUrlParam", False)),
            url_params=url_params,
            enabled_realtime=data.get("enabledRealtime") is not False,
            realtime_scope=str(data.get("realtimeScope") or ""),
            filter_static=data.get("filterStatic") is not False,
            filters=Filters.from_dict(data.get("filters")),
            replay_timeout=replay_timeout,
            bulk_delay=bulk_delay,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "enabled": self.enabled,
            "useCookie": self.use_cookie,
            "cookieValue": self.cookie_value,
            "useCustomHeader": self.use_custom_header,
            "customHeaders": [{"name": h.name, "value": h.value} for h in self.custom_headers],
            "useUrlParam": self.use_url_param,
            "urlParams": [{"name": p.name, "value": p.value} for p in self.url_params],
            "enabledRealtime": self.enabled_realtime,
            "realtimeScope": self.realtime_scope,
            "filterStatic": self.filter_static,
            "filters": self.filters.to_dict(),
            "replayTimeout": self.replay_timeout,
            "bulkDelay": self.bulk_delay,
        }


class ScopeMatcher:
    """Realtime scope check.

    The pattern is tried as a case-insensitive regular expression; when it
    does not compile, matching degrades to a case-insensitive substring test.
    An empty pattern matches everything.
    """

    def __init__(self, pattern: str) -> None:
        self.pattern = pattern
        self._regex: Optional[re.Pattern[str]] = None
        self.is_regex = False
        if pattern:
            try:
                self._regex = re.compile(pattern, re.IGNORECASE)
                self.is_regex = True
            except re.error:
                self._regex = None

    def matches(self, url: str) -> bool:
        if not self.pattern:
            return True
        if self._regex is not None:
            return self._regex.search(url) is not None
        return self.pattern.lower() in url.lower()


@lru_cache(maxsize=32)
def build_scope_matcher(pattern: str) -> ScopeMatcher:
    return ScopeMatcher(pattern)


def _to_entries(raw: Optional[Iterable[Any]]) -> tuple[SwapEntry, ...]:
    entries = []
    for item in raw or []:
        if isinstance(item, dict):
            entries.append(SwapEntry(str(item.get("name") or ""), str(item.get("value") or "")))
    return tuple(entries)


def _to_list(data: dict[str, Any], key: str, default: Iterable[Any] = ()) -> list[Any]:
    """A list-valued filter; a missing key gives ``default``, an empty one nothing."""
    if key not in data:
        return list(default)
    value = data[key]
    if value is None:
        return []
    if not isinstance(value, (list, tuple)):
        raise ConfigurationError(f"filters.{key} must be a list, got {type(value).__name__}")
    return list(value)


def _to_status_codes(raw: Iterable[Any]) -> tuple[int, ...]:
    codes = []
    for code in raw:
        try:
            codes.append(int(code))
        except (TypeError, ValueError):
            raise ConfigurationError(f"excludeStatusCodes must be integers, got: {code!r}")
    return tuple(codes)


# --- Config file ---

CONFIG_SEARCH_PATHS = [
    "authswap.yaml",
    "authswap.yml",
    ".authswap.yaml",
    ".authswap.yml",
]

DEFAULT_FILENAME = "authswap.yaml"

SECTION = "authswap"

KNOWN_KEYS = {
    "enabled", "useCookie", "cookieValue", "useCustomHeader", "customHeaders",
    "useUrlParam", "urlParams", "enabledRealtime", "realtimeScope",
    "filterStatic", "filters", "replayTimeout", "bulkDelay",
    # legacy single-swap keys
    "customHeaderName", "customHeaderValue", "urlParamName", "urlParamValue",
}

FILTER_KEYS = {"excludeFileTypes", "excludeMethods", "excludeStatusCodes", "excludePaths"}

BOOL_KEYS = {"enabled", "useCookie", "useCustomHeader", "useUrlParam", "enabledRealtime", "filterStatic"}

LIST_FIELDS = FILTER_KEYS

ENTRY_FIELDS = {"customHeaders", "urlParams"}


def find_config_path() -> Path | None:
    """Find the active config file path, or None if no config file exists."""
    for name in CONFIG_SEARCH_PATHS:
        path = Path.cwd() / name
        if path.exists():
            return path
    return None


def _read_yaml(config_path: Path) -> Any:
    yaml = YAML()
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            return yaml.load(f)
    except YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e
    except OSError as e:
        raise ConfigurationError(f"Cannot read config file {config_path}: {e}") from e


def _section(data: Any) -> Any:
    if isinstance(data, dict) and SECTION in data:
        return data[SECTION]
    return data


def load_config(config_path: str | Path | None = None) -> AnalyzerConfig:
    """Load the analyzer configuration.

    Without an explicit path the working directory is searched; when no
    file exists the defaults are returned.

    Raises:
        ConfigurationError: If an explicit path is missing or the file is invalid
    """
    explicit = config_path is not None

    if config_path is None:
        config_path = find_config_path()

    if config_path is None:
        return AnalyzerConfig()

    config_path = Path(config_path)
    if not config_path.exists():
        if explicit:
            raise ConfigurationError(f"Config file not found: {config_path}")
        return AnalyzerConfig()

    data = _section(_read_yaml(config_path))

    if data is None:
        return AnalyzerConfig()

    if not isinstance(data, dict):
        raise ConfigurationError(f"Config must be a YAML mapping, got {type(data).__name__}")

    return AnalyzerConfig.from_dict(_plain(data))


def save_config(config: AnalyzerConfig, config_path: str | Path) -> None:
    """Write a full config snapshot, keeping other content of an existing file."""
    config_path = Path(config_path)
    yaml = YAML()
    yaml.preserve_quotes = True

    data: Any = None
    if config_path.exists():
        data = _read_yaml(config_path)
    if not isinstance(data, dict):
        data = {}

    section = data.get(SECTION) if SECTION in data else None
    if not isinstance(section, dict):
        data[SECTION] = {}
        section = data[SECTION]

    for key, value in config.to_dict().items():
        section[key] = value

    with open(config_path, "w", encoding="utf-8") as f:
        yaml.dump(data, f)


def save_config_value(config_path: Path, key: str, value: str) -> None:
    """Set a single key in the YAML config file (round-trip, preserving comments).

    Supports dotted keys like 'filters.excludeMethods'.
    For list values, the value string is split on commas. For customHeaders
    and urlParams each comma-separated item is a ``name=value`` pair.
    """
    yaml = YAML()
    yaml.preserve_quotes = True

    data = _read_yaml(config_path)

    if data is None:
        data = {}

    target = data
    if SECTION in data:
        target = data[SECTION]

    parts = key.split(".")
    for part in parts[:-1]:
        if part not in target or not isinstance(target[part], dict):
            target[part] = {}
        target = target[part]

    final_key = parts[-1]

    if final_key in ENTRY_FIELDS:
        entries = []
        for item in value.split(","):
            name, _, entry_value = item.partition("=")
            if name.strip():
                entries.append({"name": name.strip(), "value": entry_value.strip()})
        target[final_key] = entries
    elif final_key in LIST_FIELDS:
        items = [v.strip() for v in value.split(",") if v.strip()]
        if final_key == "excludeStatusCodes":
            target[final_key] = [int(v) for v in items]
        else:
            target[final_key] = items
    else:
        try:
            target[final_key] = int(value)
        except ValueError:
            try:
                target[final_key] = float(value)
            except ValueError:
                if value.lower() in ("true", "false"):
                    target[final_key] = value.lower() == "true"
                else:
                    target[final_key] = value

    with open(config_path, "w", encoding="utf-8") as f:
        yaml.dump(data, f)


def validate_config(config_path: Path) -> list[str]:
    """Validate a config file and return a list of error messages (empty = valid)."""
    errors: list[str] = []

    try:
        data = _section(_read_yaml(config_path))
    except ConfigurationError as e:
        return [str(e)]

    if data is None:
        return []

    if not isinstance(data, dict):
        return [f"Config must be a YAML mapping, got {type(data).__name__}"]

    for key in data:
        if key not in KNOWN_KEYS:
            errors.append(f"Unknown key: '{key}'")

    for key in BOOL_KEYS:
        if key in data and not isinstance(data[key], bool):
            errors.append(f"'{key}' must be true or false, got: {data[key]}")

    for key in ("replayTimeout", "bulkDelay"):
        if key in data:
            try:
                if float(data[key]) < 0:
                    errors.append(f"'{key}' must not be negative")
            except (ValueError, TypeError):
                errors.append(f"'{key}' must be a number, got: {data[key]}")

    for key in ENTRY_FIELDS:
        if key in data:
            if not isinstance(data[key], list):
                errors.append(f"'{key}' must be a list of {{name, value}} mappings")
                continue
            for i, item in enumerate(data[key]):
                if not isinstance(item, dict) or "name" not in item or "value" not in item:
                    errors.append(f"{key}[{i}] must have 'name' and 'value'")

    if "filters" in data:
        filters = data["filters"]
        if not isinstance(filters, dict):
            errors.append("'filters' must be a mapping")
        else:
            for key in filters:
                if key not in FILTER_KEYS:
                    errors.append(f"Unknown key: 'filters.{key}'")
                elif filters[key] is not None and not isinstance(filters[key], list):
                    errors.append(f"'filters.{key}' must be a list")
            for code in filters.get("excludeStatusCodes") or []:
                try:
                    int(code)
                except (ValueError, TypeError):
                    errors.append(f"'filters.excludeStatusCodes' must be integers, got: {code}")

    if not errors:
        try:
            config = AnalyzerConfig.from_dict(_plain(data))
        except ConfigurationError as e:
            errors.append(str(e))
        else:
            if config.enabled:
                errors.extend(config.validate())

    return errors


def _plain(data: Any) -> Any:
    """Convert ruamel round-trip containers to plain dicts and lists."""
    if isinstance(data, dict):
        return {str(k): _plain(v) for k, v in data.items()}
    if isinstance(data, list):
        return [_plain(v) for v in data]
    return data


def get_default_config_yaml() -> str:
    """Return default YAML config template."""
    return r'''# authswap configuration
# Place this file as authswap.yaml in your working directory

authswap:
  # Replay captured requests automatically
  enabled: false

  # Swap the Cookie header for the lower-privileged session
  useCookie: false
  cookieValue: ""

  # Add or overwrite headers (a bare JWT in Authorization gets "Bearer ")
  useCustomHeader: false
  customHeaders: []
    # - name: Authorization
    #   value: eyJhbGciOi...

  # Swap URL parameters (only replaced when already present in the URL)
  useUrlParam: false
  urlParams: []
    # - name: api_key
    #   value: low-priv-key

  # Realtime (proxy) analysis
  enabledRealtime: true
  # Regex, or plain substring if the regex does not compile
  realtimeScope: ""

  # Skip static files (scripts, styles, images, fonts, media, archives)
  filterStatic: true

  filters:
    excludeFileTypes: [".css", ".js", ".jpg", ".png", ".gif", ".svg", ".woff", ".woff2"]
    excludeMethods: []
    excludeStatusCodes: []
    excludePaths: []

  # Seconds before a replay is recorded as an error
  replayTimeout: 30
  # Seconds between requests during bulk replay
  bulkDelay: 0.05
'''
