"""JSON Payload Generator - Reflection contexts for JSON bodies."""

import logging
from collections.abc import Iterable

from common.models import ContextInfo, Detection
from common.utils.text import html_decode, js_decode, safe_decode_twice, strict_unquote
from scanner.analysis.context_map import CanonicalContext, canonical_or_raw

logger = logging.getLogger(__name__)

JSON_BASE_PAYLOAD = ['"', ",", "}", "]", ":"]


def is_inside_json_string(text: str, index: int) -> bool:
    """
    Check whether an offset lies inside a JSON string literal.

    A quote preceded by an odd number of backslashes is escaped.
    """
    inside = False
    backslashes = 0
    for ch in text[: max(index, 0)]:
        if ch == "\\":
            backslashes += 1
            continue
        if ch == '"' and backslashes % 2 == 0:
            inside = not inside
        backslashes = 0
    return inside


def json_variants(value: str) -> list[str]:
    """Decoded forms of a value as it may appear inside a JSON document."""
    once = strict_unquote(value) or value
    twice = strict_unquote(once) or once
    js_escaped = js_decode(twice)
    html_js = js_escaped.replace("&lt;", "<").replace("&gt;", ">").replace("&amp;", "&")
    candidates = [value, once, twice, html_decode(twice), js_escaped, html_js]
    return list(dict.fromkeys(c for c in candidates if c))


class JsonPayloadGenerator:
    """Classifies reflections in a JSON body as string or structure positions."""

    def __init__(self, body: str) -> None:
        self._body = body or ""

    def _contexts_of(self, marker: str) -> list[str]:
        contexts: list[str] = []
        for variant in json_variants(marker):
            start = self._body.find(variant)
            while start != -1:
                context = (
                    CanonicalContext.JSON_STRING.value
                    if is_inside_json_string(self._body, start)
                    else CanonicalContext.JSON_STRUCTURE.value
                )
                if context not in contexts:
                    contexts.append(context)
                start = self._body.find(variant, start + len(variant))
        return contexts

    def generate(self, value: str) -> ContextInfo:
        """
        Build the probe alphabet and contexts for a value reflected in JSON.

        Args:
            value: Reflected parameter value

        Returns:
            ``jsonString``/``jsonStructure`` contexts; structure when not found
        """
        info = ContextInfo()
        info.add_payload(*JSON_BASE_PAYLOAD)
        for context in self._contexts_of(safe_decode_twice(value)):
            info.add_context(context)
        if CanonicalContext.JSON_STRING.value in info.context:
            info.add_payload("\\")
        if not info.context:
            info.add_context(CanonicalContext.JSON_STRUCTURE.value)
        return info

    def detect(
        self,
        contexts: Iterable[str],
        prefix: str,
        payload: str,
        suffix: str,
    ) -> list[Detection]:
        """Contexts a probe marker landed in, filtered to the requested ones."""
        requested = {canonical_or_raw(label) for label in contexts}
        return [
            Detection(payload, context)
            for context in self._contexts_of(prefix + payload + suffix)
            if not requested or context in requested
        ]
