"""Encoded Signals - Values that reflect only in encoded or escaped form."""

import logging
import re
from collections.abc import Iterable

from common.models import EncodedSignal, Parameter
from common.utils.text import encoded_variants, find_matches, safe_decode_twice

logger = logging.getLogger(__name__)

_JSON_SCRIPT_BLOCK = re.compile(
    r"<script[^>]*type=[\"']application/(?:ld\+)?json[\"'][^>]*>(.*?)</script>",
    re.IGNORECASE | re.DOTALL,
)

URL_EVIDENCE = "%xx"
HTML_EVIDENCE = "&quot/&lt/&gt/&amp"
JSON_UNICODE_EVIDENCE = "\\uXXXX"


def detect_encoded_only(body: str, param: Parameter) -> EncodedSignal | None:
    """
    Look for url, entity or ``\\uXXXX`` encoded echoes of a parameter value.

    Args:
        body: Response body in which the literal value was not found
        param: Parameter whose value is checked

    Returns:
        Encoded signal, or None when no encoded form is present
    """
    value = safe_decode_twice(param.value)
    if not body or not value:
        return None

    variants = encoded_variants(value)
    url_hits = len(find_matches(body, variants["url"])) if variants["url"] != value else 0
    html_hits = len(find_matches(body, variants["html"])) if variants["html"] != value else 0
    unicode_sequence = variants["js_unicode"].lower()
    json_hits = sum(
        block.group(1).lower().count(unicode_sequence)
        for block in _JSON_SCRIPT_BLOCK.finditer(body)
    )

    if not (url_hits or html_hits or json_hits):
        return None

    signal = EncodedSignal(name=param.key, source=param.source)
    if url_hits:
        signal.contexts.add("attributeEscaped")
        signal.evidence.add(URL_EVIDENCE)
    if html_hits:
        signal.contexts.add("attributeEscaped")
        signal.evidence.add(HTML_EVIDENCE)
    if json_hits:
        signal.contexts.add("jsonEscaped")
        signal.evidence.add(JSON_UNICODE_EVIDENCE)
    signal.count = url_hits + html_hits + json_hits
    logger.debug(f"Encoded-only echo for {param.key!r}: {sorted(signal.contexts)}")
    return signal


def merge_encoded_signals(signals: Iterable[EncodedSignal]) -> dict[str, EncodedSignal]:
    """Merge signals by parameter name, summing counts."""
    merged: dict[str, EncodedSignal] = {}
    for signal in signals:
        existing = merged.get(signal.name)
        if existing is None:
            merged[signal.name] = EncodedSignal(
                name=signal.name,
                source=signal.source,
                contexts=set(signal.contexts),
                evidence=set(signal.evidence),
                count=signal.count,
            )
        else:
            existing.merge(signal)
    return merged
