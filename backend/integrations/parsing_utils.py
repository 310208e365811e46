"""Shared parsing utilities for provider responses.

Aggregation payloads send numbers as JSON numbers, numeric strings, or
null depending on the endpoint; these helpers normalise them.
"""

_HTML_PREFIXES = ("<!doctype", "<html")


def to_float(value, default: float = 0.0) -> float:
    """Convert a JSON number, numeric string, or None to a float.

    Args:
        value: The raw value from a provider payload.
        default: Returned when the value is missing or not numeric.

    Returns:
        The parsed float, or ``default``.
    """
    if value is None or value == "":
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def looks_like_html(text: str) -> bool:
    """Check whether a response body is an HTML document rather than JSON."""
    return text.lstrip().lower().startswith(_HTML_PREFIXES)


def preview(text: str, length: int = 100) -> str:
    """Return the first ``length`` characters of a body for error messages."""
    return text.strip()[:length]
