"""Exception types for authswap."""


class AuthSwapError(Exception):
    """Base class for authswap errors."""

    pass


class ConfigurationError(AuthSwapError):
    """Raised when analyzer configuration is invalid or cannot be loaded."""

    pass


class NetworkError(AuthSwapError):
    """Raised by a transport when a request cannot be completed."""

    pass


class MalformedURLError(AuthSwapError, ValueError):
    """Raised when a URL cannot be parsed for mutation or filtering."""

    pass


class SessionImportError(AuthSwapError):
    """Raised when a sessions file cannot be read or parsed."""

    pass


class CaptureLoadError(AuthSwapError):
    """Raised when a capture file (HAR) cannot be loaded."""

    pass
