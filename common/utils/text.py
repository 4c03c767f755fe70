"""Text Utilities - Reflection matching and the encoding cascade."""

import re
import secrets
import string
from urllib.parse import quote, unquote

from common.constants import DEFAULT_RANDOM_LENGTH
from common.models import Match

_RANDOM_ALPHABET = string.ascii_lowercase + string.digits
_PERCENT_ENCODED = re.compile(r"%[0-9a-f]{2}", re.IGNORECASE)
_MALFORMED_PERCENT = re.compile(r"%(?![0-9a-f]{2})", re.IGNORECASE)

_NAMED_ENTITIES = {"lt": "<", "gt": ">", "amp": "&", "quot": '"', "apos": "'"}
_ENTITY_PATTERN = re.compile(r"&(#x[0-9a-f]+|#[0-9]+|[a-z]+);", re.IGNORECASE)
_JS_ESCAPE_PATTERN = re.compile(
    r"\\x([0-9a-fA-F]{2})"
    r"|\\u\{([0-9a-fA-F]+)\}"
    r"|\\u([0-9a-fA-F]{4})"
    r"|\\([0-3]?[0-7]{1,2})"
)


def random_value(length: int = DEFAULT_RANDOM_LENGTH) -> str:
    """Generate a random lowercase alphanumeric token."""
    return "".join(secrets.choice(_RANDOM_ALPHABET) for _ in range(length))


def encode_uri_component(value: str) -> str:
    """Percent-encode everything except the unreserved URI characters."""
    return quote(value, safe="-_.!~*'()")


def strict_unquote(value: str) -> str | None:
    """
    Percent-decode a string, refusing malformed input.

    Args:
        value: Percent-encoded text

    Returns:
        Decoded text, or None on a dangling ``%`` or invalid UTF-8
    """
    if _MALFORMED_PERCENT.search(value):
        return None
    try:
        return unquote(value, errors="strict")
    except UnicodeDecodeError:
        return None


def _literal_matches(text: str, needle: str) -> list[Match]:
    matches: list[Match] = []
    start = text.find(needle)
    while start != -1:
        end = start + len(needle)
        matches.append((start, end))
        start = text.find(needle, end)
    return matches


def find_matches(text: str | None, needle: str | None) -> list[Match]:
    """
    Find non-overlapping occurrences of a value in a body.

    When nothing matches literally and the value looks percent-encoded, the
    search is retried after one and then two rounds of decoding.

    Args:
        text: Haystack (response body or header text)
        needle: Reflected value

    Returns:
        Half-open (start, end) offsets in scan order
    """
    if not text or not needle:
        return []

    matches = _literal_matches(text, needle)
    if matches or not _PERCENT_ENCODED.search(needle):
        return matches

    candidate = needle
    for _ in range(2):
        decoded = strict_unquote(candidate)
        if decoded is None:
            return []
        if not decoded:
            break
        matches = _literal_matches(text, decoded)
        if matches:
            return matches
        candidate = decoded
    return []


def compute_keyword_counts(text: str | None, keywords: list[str]) -> list[int]:
    """Count matches of each keyword, in keyword order."""
    return [len(find_matches(text, keyword)) for keyword in keywords]


def safe_decode_twice(value: str) -> str:
    """Percent-decode up to twice, stopping at the first malformed round."""
    result = value
    for _ in range(2):
        decoded = strict_unquote(result)
        if decoded is None:
            break
        result = decoded
    return result


def html_decode(value: str) -> str:
    """Decode the entities a server typically emits when escaping markup."""

    def replace(match: re.Match[str]) -> str:
        entity = match.group(1)
        try:
            if entity[:2].lower() == "#x":
                return chr(int(entity[2:], 16))
            if entity.startswith("#"):
                return chr(int(entity[1:]))
        except (ValueError, OverflowError):
            return match.group(0)
        return _NAMED_ENTITIES.get(entity.lower(), match.group(0))

    return _ENTITY_PATTERN.sub(replace, value)


def js_decode(value: str) -> str:
    """Decode JavaScript string escapes (hex, unicode, code point, octal)."""

    def replace(match: re.Match[str]) -> str:
        hex_byte, code_point, unicode_unit, octal = match.groups()
        try:
            if hex_byte:
                return chr(int(hex_byte, 16))
            if code_point:
                return chr(int(code_point, 16))
            if unicode_unit:
                return chr(int(unicode_unit, 16))
            return chr(int(octal, 8))
        except (ValueError, OverflowError):
            return match.group(0)

    return _JS_ESCAPE_PATTERN.sub(replace, value)


def variants_of(value: str) -> list[str]:
    """
    Produce the decoded forms under which a value may be reflected.

    Returns:
        Ordered, de-duplicated list of raw, url-decoded, entity-decoded,
        js-decoded and entity-of-js decoded forms
    """
    url_decoded = strict_unquote(value)
    if url_decoded is None:
        url_decoded = value
    html_decoded = html_decode(url_decoded)
    candidates = [
        value,
        url_decoded,
        html_decoded,
        js_decode(url_decoded),
        js_decode(html_decoded),
    ]
    return list(dict.fromkeys(c for c in candidates if c))


def encoded_variants(value: str) -> dict[str, str]:
    """Build the url, html and ``\\uXXXX`` encodings of a value."""
    html = (
        value.replace("&", "&amp;")
        .replace('"', "&quot;")
        .replace("'", "&#39;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
    )
    js_unicode = "".join(f"\\u{ord(ch):04X}" for ch in value)
    return {"url": encode_uri_component(value), "html": html, "js_unicode": js_unicode}
