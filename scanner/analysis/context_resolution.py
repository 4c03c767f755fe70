"""Context Resolution - Best report context for a reflected parameter."""

import re
from dataclasses import dataclass

from common.models import ContextInfo, Match
from scanner.analysis.context_map import CanonicalContext, to_canonical


class ReflectionContext:
    OUT_OF_TAG = "HTML"
    TAG_UNQUOTED = "Tag"
    TAG_DQUOTE = 'Tag Attribute (") Value'
    TAG_SQUOTE = "Tag Attribute (') Value"
    SCRIPT_UNQUOTED = "Script"
    SCRIPT_DQUOTE = 'Script String (")'
    SCRIPT_SQUOTE = "Script String (')"
    FALLBACK = "BODY"


# First canonical context present wins
CONTEXT_PRIORITY: list[tuple[CanonicalContext, str]] = [
    (CanonicalContext.JS_IN_QUOTE, ReflectionContext.SCRIPT_DQUOTE),
    (CanonicalContext.JS, ReflectionContext.SCRIPT_UNQUOTED),
    (CanonicalContext.JSON_STRING, "JSON String"),
    (CanonicalContext.CSS_IN_QUOTE, 'Style String (")'),
    (CanonicalContext.CSS, "Style"),
    (CanonicalContext.JSON_STRUCTURE, "JSON Structure"),
    (CanonicalContext.EVENT_HANDLER, "Event Handler Attribute"),
    (CanonicalContext.ATTRIBUTE_IN_QUOTE, "Tag Attribute (quoted) Value"),
    (CanonicalContext.ATTRIBUTE, "Tag Attribute (unquoted) Value"),
    (CanonicalContext.ATTRIBUTE_ESCAPED, "Tag Attribute (encoded)"),
    (CanonicalContext.HTML, ReflectionContext.OUT_OF_TAG),
]

_SCRIPT_CLOSE = re.compile(r"</script\s*>", re.IGNORECASE)


@dataclass(frozen=True)
class TagSpan:
    start: int
    end: int
    name: str


def get_tags(body: str) -> list[TagSpan]:
    """Spans of start tags, plus whole script bodies, in source order."""
    tags: list[TagSpan] = []
    start = body.find("<")
    while start != -1:
        end = body.find(">", start)
        if end == -1:
            break
        inner = body[start + 1 : end].split()
        name = inner[0].lower() if inner else ""
        if name == "script":
            close = _SCRIPT_CLOSE.search(body, end + 1)
            end = (close.end() if close else len(body)) - 1
        tags.append(TagSpan(start, end + 1, name))
        start = body.find("<", end + 1)
    return tags


def in_quotes(body: str, start: int, end: int, tag: TagSpan, quote: str) -> bool:
    """Check whether a match is enclosed by ``quote`` within its tag."""
    inside = body.count(quote, tag.start, start) % 2 == 1
    if not inside:
        return False
    return body.count(quote, start, end) % 2 == 0


def get_reflection_context(matches: list[Match], body: str, tags: list[TagSpan] | None = None) -> str:
    """
    Classify the first reflection with a tag/quote heuristic.

    Args:
        matches: Baseline matches of the value
        body: Response body
        tags: Precomputed tag spans

    Returns:
        Report label such as ``HTML`` or ``Script String (")``
    """
    if not matches:
        return ReflectionContext.FALLBACK
    spans = tags if tags is not None else get_tags(body)
    start, end = matches[0]
    containing = next((t for t in spans if t.start < start and t.end > end), None)
    if containing is None:
        return ReflectionContext.OUT_OF_TAG

    is_script = containing.name == "script"
    if in_quotes(body, start, end, containing, '"'):
        return ReflectionContext.SCRIPT_DQUOTE if is_script else ReflectionContext.TAG_DQUOTE
    if in_quotes(body, start, end, containing, "'"):
        return ReflectionContext.SCRIPT_SQUOTE if is_script else ReflectionContext.TAG_SQUOTE
    return ReflectionContext.SCRIPT_UNQUOTED if is_script else ReflectionContext.TAG_UNQUOTED


def resolve_best_context(
    matches: list[Match],
    body: str,
    context_info: ContextInfo | None = None,
    tags: list[TagSpan] | None = None,
) -> str:
    """Pick the report context, preferring generator contexts over the heuristic."""
    best = get_reflection_context(matches, body, tags)
    if context_info is None or not context_info.context:
        return best
    present = {to_canonical(label) for label in context_info.context}
    for canonical, label in CONTEXT_PRIORITY:
        if canonical in present:
            return label
    return best
