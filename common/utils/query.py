"""Query Utilities - Query/form/cookie parsing and parameter mutation."""

import logging

from common.constants import ParamSource
from common.models import Parameter, RequestSpec
from common.utils.text import strict_unquote

logger = logging.getLogger(__name__)


def parse_query_string(query: str) -> list[tuple[str, str]]:
    """
    Split a query or form string into raw key/value pairs.

    Values are kept exactly as sent; keys are percent-decoded when possible.
    """
    pairs: list[tuple[str, str]] = []
    for chunk in query.split("&"):
        if not chunk:
            continue
        key, _, value = chunk.partition("=")
        decoded_key = strict_unquote(key.replace("+", " "))
        pairs.append((decoded_key if decoded_key is not None else key, value))
    return pairs


def parse_cookie_header(header: str) -> list[tuple[str, str]]:
    """Split a Cookie header into name/value pairs."""
    pairs: list[tuple[str, str]] = []
    for chunk in header.split(";"):
        chunk = chunk.strip()
        if not chunk or "=" not in chunk:
            continue
        key, _, value = chunk.partition("=")
        pairs.append((key.strip(), value))
    return pairs


def _replace_pair(raw: str, key: str, value: str) -> str | None:
    """Rewrite the value of ``key`` in an ``&``-joined string, keeping the rest verbatim."""
    chunks = raw.split("&")
    replaced = False
    for index, chunk in enumerate(chunks):
        if not chunk:
            continue
        raw_key = chunk.partition("=")[0]
        decoded_key = strict_unquote(raw_key.replace("+", " "))
        if raw_key == key or decoded_key == key:
            chunks[index] = f"{raw_key}={value}"
            replaced = True
    return "&".join(chunks) if replaced else None


def mutate_param_value(request: RequestSpec, param: Parameter, value: str) -> bool:
    """
    Replace a parameter's value in place on a request.

    Args:
        request: Request to mutate (callers pass a clone)
        param: Parameter to rewrite
        value: New raw value, already encoded as it should go on the wire

    Returns:
        True if the parameter was found and rewritten
    """
    if param.source == ParamSource.COOKIE:
        cookies = request.get_header("Cookie")
        if not cookies:
            return False
        pairs = parse_cookie_header("; ".join(cookies))
        if not any(k == param.key for k, _ in pairs):
            return False
        rebuilt = "; ".join(
            f"{k}={value if k == param.key else v}" for k, v in pairs
        )
        request.set_header("Cookie", rebuilt)
        return True

    if param.source == ParamSource.URL:
        updated = _replace_pair(request.get_query(), param.key, value)
        if updated is None:
            return False
        request.set_query(updated)
        return True

    if param.source == ParamSource.BODY:
        updated = _replace_pair(request.get_body(), param.key, value)
        if updated is None:
            return False
        request.set_body(updated)
        return True

    logger.debug(f"Unsupported parameter source: {param.source}")
    return False
