"""Context Map - Canonical reflection contexts and label normalization."""

import re
from enum import Enum


class CanonicalContext(str, Enum):
    """Closed set of contexts used by scoring and gating."""

    JS = "js"
    JS_IN_QUOTE = "jsInQuote"
    CSS = "css"
    CSS_IN_QUOTE = "cssInQuote"
    EVENT_HANDLER = "eventHandler"
    EVENT_HANDLER_ESCAPED = "eventHandlerEscaped"
    ATTRIBUTE = "attribute"
    ATTRIBUTE_IN_QUOTE = "attributeInQuote"
    ATTRIBUTE_ESCAPED = "attributeEscaped"
    HTML = "html"
    HTML_COMMENT = "htmlComment"
    JSON_STRING = "jsonString"
    JSON_STRUCTURE = "jsonStructure"
    JSON_ESCAPED = "jsonEscaped"
    RESPONSE_HEADER = "responseHeader"


ESCAPED_CONTEXTS = frozenset(
    {
        CanonicalContext.ATTRIBUTE_ESCAPED,
        CanonicalContext.EVENT_HANDLER_ESCAPED,
        CanonicalContext.JSON_ESCAPED,
    }
)

_BY_LOWER = {ctx.value.lower(): ctx for ctx in CanonicalContext}

# Report labels and generator-specific labels, keyed lower-case
_ALIASES: dict[str, CanonicalContext] = {
    "script": CanonicalContext.JS,
    "script string": CanonicalContext.JS_IN_QUOTE,
    'script string (")': CanonicalContext.JS_IN_QUOTE,
    "script string (')": CanonicalContext.JS_IN_QUOTE,
    "style": CanonicalContext.CSS,
    "style string": CanonicalContext.CSS_IN_QUOTE,
    'style string (")': CanonicalContext.CSS_IN_QUOTE,
    "style string (')": CanonicalContext.CSS_IN_QUOTE,
    "response header": CanonicalContext.RESPONSE_HEADER,
    'tag attribute (") value': CanonicalContext.ATTRIBUTE_IN_QUOTE,
    "tag attribute (') value": CanonicalContext.ATTRIBUTE_IN_QUOTE,
    "tag attribute (quoted) value": CanonicalContext.ATTRIBUTE_IN_QUOTE,
    "tag attribute (unquoted) value": CanonicalContext.ATTRIBUTE,
    "tag attribute (encoded)": CanonicalContext.ATTRIBUTE_ESCAPED,
    "event handler attribute": CanonicalContext.EVENT_HANDLER,
    "event handler attribute (encoded)": CanonicalContext.EVENT_HANDLER_ESCAPED,
    "script (json block, \\uxxxx)": CanonicalContext.JSON_ESCAPED,
    "html": CanonicalContext.HTML,
    "html comment": CanonicalContext.HTML_COMMENT,
    "body": CanonicalContext.HTML,
    # Body generator sub-labels
    "eventhandlerattr": CanonicalContext.EVENT_HANDLER,
    "eventhandlerattrinquote": CanonicalContext.EVENT_HANDLER,
    "urlattr": CanonicalContext.ATTRIBUTE,
    "urlattrinquote": CanonicalContext.ATTRIBUTE_IN_QUOTE,
    "srcseturl": CanonicalContext.ATTRIBUTE,
    "srcseturlinquote": CanonicalContext.ATTRIBUTE_IN_QUOTE,
    "styleattr": CanonicalContext.ATTRIBUTE,
    "styleattrinquote": CanonicalContext.ATTRIBUTE_IN_QUOTE,
    # url() inside a style attribute is still attribute text
    "cssurl": CanonicalContext.ATTRIBUTE,
    "cssurlinquote": CanonicalContext.ATTRIBUTE_IN_QUOTE,
    "metarefresh": CanonicalContext.ATTRIBUTE_IN_QUOTE,
    "srcdochtml": CanonicalContext.ATTRIBUTE,
    "srcdochtmlinquote": CanonicalContext.ATTRIBUTE_IN_QUOTE,
    "templatehtml": CanonicalContext.HTML,
    "json": CanonicalContext.JSON_STRUCTURE,
    "jsoninquote": CanonicalContext.JSON_STRING,
}

_PRETTY: dict[CanonicalContext, str] = {
    CanonicalContext.JS: "Script",
    CanonicalContext.JS_IN_QUOTE: "Script String",
    CanonicalContext.CSS: "Style",
    CanonicalContext.CSS_IN_QUOTE: "Style String",
    CanonicalContext.EVENT_HANDLER: "Event Handler Attribute",
    CanonicalContext.EVENT_HANDLER_ESCAPED: "Event Handler Attribute (encoded)",
    CanonicalContext.ATTRIBUTE: "Tag Attribute (unquoted) Value",
    CanonicalContext.ATTRIBUTE_IN_QUOTE: "Tag Attribute (quoted) Value",
    CanonicalContext.ATTRIBUTE_ESCAPED: "Tag Attribute (encoded)",
    CanonicalContext.JSON_ESCAPED: "Script (JSON block, \\uXXXX)",
    CanonicalContext.HTML: "HTML",
    CanonicalContext.HTML_COMMENT: "HTML Comment",
    CanonicalContext.JSON_STRING: "JSON String",
    CanonicalContext.JSON_STRUCTURE: "JSON Structure",
    CanonicalContext.RESPONSE_HEADER: "Response Header",
}

_VALUE_SUFFIX = re.compile(r"\s+value$")
_QUOTED_SUFFIX = re.compile(r"\s*\(quoted\)")


def to_canonical(label: str | None) -> CanonicalContext | None:
    """
    Map any context label onto the canonical vocabulary.

    Args:
        label: Canonical name, report label or generator sub-label

    Returns:
        Canonical context, or None when the label is unknown
    """
    if not label:
        return None
    if isinstance(label, CanonicalContext):
        return label

    lowered = label.strip().lower()
    if lowered in _ALIASES:
        return _ALIASES[lowered]
    if lowered in _BY_LOWER:
        return _BY_LOWER[lowered]

    stripped = _QUOTED_SUFFIX.sub("", _VALUE_SUFFIX.sub("", lowered)).strip()
    if stripped in _ALIASES:
        return _ALIASES[stripped]
    return _BY_LOWER.get(stripped.replace(" ", ""))


def canonical_or_raw(label: str) -> str:
    """Canonical name of a label, or the label itself when unknown."""
    canonical = to_canonical(label)
    return canonical.value if canonical else label


def is_escaped_canonical(label: str | None) -> bool:
    return to_canonical(label) in ESCAPED_CONTEXTS


def is_literal_context(label: str | None) -> bool:
    """Check whether a context is breakout evidence rather than escaped text."""
    if not label:
        return False
    lowered = canonical_or_raw(label).lower()
    if lowered.endswith("escaped") or "comment" in lowered:
        return False
    return lowered != "jsonscript"


def pretty_print(label: str) -> str:
    """Human-readable label for reports; unknown labels pass through."""
    if label.strip().lower() == "htmlcomment":
        return _PRETTY[CanonicalContext.HTML_COMMENT]
    canonical = to_canonical(label)
    if canonical is None:
        return label
    return _PRETTY[canonical]


def allowed_detection_contexts_for(best_context: str | None) -> set[CanonicalContext]:
    """
    Contexts in which a probe detection counts for a parameter.

    Args:
        best_context: Best-context label resolved for the parameter

    Returns:
        Accepted canonical contexts; empty means any literal context
    """
    lowered = (best_context or "").strip().lower()
    if "script" in lowered or lowered in ("js", "jsinquote"):
        return {CanonicalContext.JS_IN_QUOTE, CanonicalContext.JS}
    if "style" in lowered or lowered in ("css", "cssinquote"):
        return {CanonicalContext.CSS_IN_QUOTE, CanonicalContext.CSS}
    if "event handler" in lowered or lowered == "eventhandler":
        return {CanonicalContext.EVENT_HANDLER}
    if "attribute" in lowered:
        return {CanonicalContext.ATTRIBUTE_IN_QUOTE, CanonicalContext.ATTRIBUTE}
    if lowered.startswith("json"):
        return {CanonicalContext.JSON_STRING, CanonicalContext.JSON_STRUCTURE}
    if lowered == "html" or "body" in lowered:
        return {CanonicalContext.HTML}
    return set()
