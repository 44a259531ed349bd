"""Text formatting utility functions."""


def truncate_text(text: str, max_length: int = 60, suffix: str = "...") -> str:
    """Truncate text to specified length with suffix.

    Args:
        text: Text to truncate
        max_length: Maximum length including suffix
        suffix: Suffix to append if truncated

    Returns:
        Truncated text with suffix, or original if short enough
    """
    if len(text) <= max_length:
        return text
    return text[: max_length - len(suffix)] + suffix


def mask_secret(value: str, visible: int = 6) -> str:
    """Mask a credential for display, keeping only a short prefix.

    Examples:
        mask_secret("session=abcdef123456") -> "sessio..."
    """
    if len(value) <= visible:
        return value
    return value[:visible] + "..."
