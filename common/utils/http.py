"""HTTP Utilities - Endpoint naming and content-type gating."""

from collections.abc import Iterable

from common.constants import NO_SNIFF_CONTENT_TYPES


def build_endpoint(tls: bool, host: str, path: str) -> str:
    """Build the endpoint key used by the parameter stores."""
    return ("https://" if tls else "http://") + host + path


def first_header_value(values: str | list[str] | None) -> str | None:
    """Return the first non-empty header value."""
    if values is None:
        return None
    if isinstance(values, str):
        return values or None
    for value in values:
        if value:
            return value
    return None


def normalize_content_type(values: str | list[str] | None) -> str | None:
    """Strip parameters and lower-case a Content-Type value."""
    value = first_header_value(values)
    if value is None:
        return None
    return value.split(";", 1)[0].strip().lower() or None


def has_nosniff(values: str | list[str] | None) -> bool:
    """Check an X-Content-Type-Options reading for ``nosniff``."""
    if not values:
        return False
    joined = values if isinstance(values, str) else ",".join(values)
    return "nosniff" in joined.lower()


def passes_content_type_gating(
    content_type: str | list[str] | None,
    content_type_options: str | list[str] | None,
    sniff_sensitive_types: Iterable[str] = NO_SNIFF_CONTENT_TYPES,
) -> bool:
    """
    Decide whether a response body is worth scanning.

    Args:
        content_type: Content-Type header value(s)
        content_type_options: X-Content-Type-Options header value(s)
        sniff_sensitive_types: MIME types rendered as markup

    Returns:
        True if the type is sniff-sensitive, or absent without ``nosniff``
    """
    normalized = normalize_content_type(content_type)
    if normalized is not None:
        return normalized in set(sniff_sensitive_types)
    return not has_nosniff(content_type_options)


def is_json_content_type(content_type: str | list[str] | None) -> bool:
    normalized = normalize_content_type(content_type)
    return normalized is not None and normalized.startswith("application/json")
