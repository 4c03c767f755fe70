"""Body Payload Generator - Reflection contexts and probe alphabets for markup bodies."""

import logging
import re
from collections.abc import Callable, Iterable

from common.constants import EXECUTABLE_SCRIPT_TYPES, URL_ATTRIBUTES
from common.models import ContextInfo, Detection
from common.utils.text import safe_decode_twice, variants_of
from scanner.analysis.context_map import CanonicalContext, canonical_or_raw
from scanner.payload.document import Document, Node, NodeKind
from scanner.payload.json_generator import is_inside_json_string

logger = logging.getLogger(__name__)

_JSON_SCRIPT_TYPE = re.compile(r"^(application|text)/(json|ld\+json)$")
_CSS_URL = re.compile(r"\burl\s*\(", re.IGNORECASE)
_META_REFRESH_URL = re.compile(r"url\s*=", re.IGNORECASE)
_STRUCTURAL = {"script", "style", "template"}
_QUOTES = ('"', "'", "`")
_MAX_POSITION_TRIES = 20

C = CanonicalContext


def is_executable_script(node: Node) -> bool:
    return node.attrs.get("type", "").strip().lower() in EXECUTABLE_SCRIPT_TYPES


def is_json_script(node: Node) -> bool:
    return bool(_JSON_SCRIPT_TYPE.match(node.attrs.get("type", "").strip().lower()))


def enclosing_quotes(source: str, value: str) -> list[str]:
    """
    Quote characters enclosing each occurrence of a value in script/style source.

    Backslash escapes are honoured inside strings only.
    """
    quotes: list[str] = []
    start = source.find(value)
    while start != -1:
        quote: str | None = None
        escaping = False
        for ch in source[:start]:
            if escaping:
                escaping = False
            elif quote:
                if ch == "\\":
                    escaping = True
                elif ch == quote:
                    quote = None
            elif ch in _QUOTES:
                quote = ch
        if quote and quote not in quotes:
            quotes.append(quote)
        start = source.find(value, start + len(value))
    return quotes


def is_inside_quoted_string(source: str, index: int) -> bool:
    """Check whether ``index`` falls inside a quoted JS/CSS string literal."""
    quote: str | None = None
    escaped = False
    for ch in source[:index]:
        if escaped:
            escaped = False
        elif quote:
            if ch == "\\":
                escaped = True
            elif ch == quote:
                quote = None
        elif ch in _QUOTES:
            quote = ch
    return quote is not None


def escaped_candidates(marker: str) -> list[str]:
    """Forms a marker takes once a server escapes quotes or backslashes in code."""
    seeds = [marker]
    for quote in _QUOTES:
        if quote in marker:
            seeds.append(marker.replace(quote, "\\" + quote))
    seeds.append(marker.replace("\\", "\\\\"))

    candidates: list[str] = []
    for seed in seeds:
        current = seed
        for _ in range(4):
            if current not in candidates:
                candidates.append(current)
            current = current.replace("\\", "\\\\")
    return candidates


class BodyPayloadGenerator:
    """Classifies where a value reflects in a markup body and what to probe next."""

    def __init__(self, body: str) -> None:
        self._body = body or ""
        self._document = Document(self._body)

    @property
    def document(self) -> Document:
        return self._document

    # ---------- generation ----------

    def generate(self, value: str) -> ContextInfo:
        """
        Build the probe alphabet and context set for a reflected value.

        Args:
            value: Reflected parameter value (decoded twice before searching)

        Returns:
            Ordered, de-duplicated payload characters and context labels
        """
        info = ContextInfo()
        needle = safe_decode_twice(value)
        if not needle:
            return info

        for node in self._document.walk():
            if node.kind == NodeKind.ELEMENT:
                if not self._classify_structural(node, needle, info):
                    self._classify_attributes(node, needle, info)
            elif node.kind == NodeKind.TEXT:
                self._classify_text(node, needle, info)
            elif node.kind == NodeKind.COMMENT and needle in node.text:
                info.add_context("htmlComment")
                info.add_payload("<")

        if not info.context and any(
            self._document.contains_text_outside(v) for v in variants_of(needle)
        ):
            info.add_context("html")
            info.add_payload("<")

        logger.debug(f"Body contexts for {needle!r}: {info.context} payload={info.payload}")
        return info

    def _classify_structural(self, node: Node, needle: str, info: ContextInfo) -> bool:
        if node.name not in _STRUCTURAL:
            return False
        text = self._document.text_content(node)
        if needle not in text:
            return False
        if node.name == "template":
            info.add_context("templateHtml")
            info.add_payload("<")
            return True
        return self._classify_code(node, text, needle, info)

    def _classify_code(self, element: Node, text: str, needle: str, info: ContextInfo) -> bool:
        """Script or style source containing the value."""
        if element.name == "script":
            if is_json_script(element):
                index = text.find(needle)
                if is_inside_json_string(text, index):
                    info.add_context("jsonInQuote")
                else:
                    info.add_context("json")
                info.add_payload('"', "\\")
                return True
            if not is_executable_script(element):
                return False

        quotes = enclosing_quotes(text, needle)
        in_quote, bare = ("jsInQuote", "js") if element.name == "script" else ("cssInQuote", "css")
        if quotes:
            info.add_context(in_quote)
            info.add_payload(quotes[0], "\\")
        else:
            info.add_context(bare)
            info.add_payload("")
        return True

    def _classify_text(self, node: Node, needle: str, info: ContextInfo) -> None:
        if needle not in node.text:
            return
        container = self._document.nearest_ancestor(node, _STRUCTURAL)
        if container is None:
            info.add_context("html")
            info.add_payload("<")
        elif container.name == "template":
            info.add_context("templateHtml")
            info.add_payload("<")
        else:
            self._classify_code(container, node.text, needle, info)

    def _classify_attributes(self, node: Node, needle: str, info: ContextInfo) -> None:
        """First attribute carrying the value decides the element's classification."""
        for name, decoded in node.attrs.items():
            if needle not in decoded:
                continue
            raw = self._document.raw_attribute(node, name)
            quote = raw.quote if raw else ""

            if name.startswith("on"):
                if quote:
                    info.add_context("eventHandlerAttrInQuote")
                    info.add_payload(quote, "\\", ";")
                else:
                    info.add_context("eventHandlerAttr")
                    info.add_payload("\\", ";", "")
            elif name == "style":
                info.add_context("styleAttrInQuote" if quote else "styleAttr")
                info.add_payload(quote or "", "\\", "(", ")")
                if _CSS_URL.search(decoded):
                    info.add_context("cssUrlInQuote" if quote else "cssUrl")
                    info.add_payload(")", "//", "http:")
            elif name in URL_ATTRIBUTES:
                info.add_context("urlAttrInQuote" if quote else "urlAttr")
                info.add_payload(":", "//", quote or "")
            elif name == "srcset":
                info.add_context("srcsetUrlInQuote" if quote else "srcsetUrl")
                info.add_payload(quote or "", "//example 1x")
            elif (
                node.name == "meta"
                and name == "content"
                and node.attrs.get("http-equiv", "").lower() == "refresh"
                and _META_REFRESH_URL.search(decoded)
            ):
                info.add_context("metaRefresh")
                info.add_payload("//", "http:")
            elif node.name == "iframe" and name == "srcdoc":
                info.add_context("srcdocHtmlInQuote" if quote else "srcdocHtml")
                info.add_payload(quote or "", "<")
            elif raw is None or needle not in raw.value:
                # Only the entity-decoded value carries it
                info.add_context("attributeEscaped")
            elif quote:
                info.add_context("attributeInQuote")
                info.add_payload(quote)
            else:
                info.add_context("attribute")
                info.add_payload("")
            return

    # ---------- detection ----------

    def detect(
        self,
        contexts: Iterable[str],
        prefix: str,
        payload: str,
        suffix: str,
    ) -> list[Detection]:
        """
        Find the contexts where one probe marker survived literally.

        Args:
            contexts: Context labels the value was observed in
            prefix: Random marker prefix
            payload: Probe character
            suffix: Random marker suffix

        Returns:
            One detection per canonical context the marker was found in
        """
        requested = {canonical_or_raw(label) for label in contexts}
        marker = prefix + payload + suffix
        found: list[str] = []

        def add(context: CanonicalContext) -> None:
            if context.value not in found:
                found.append(context.value)

        if requested & {C.ATTRIBUTE_IN_QUOTE.value, C.ATTRIBUTE.value}:
            self._detect_in_attributes(marker, payload, event_handlers=False, add=add)
        if C.EVENT_HANDLER.value in requested:
            self._detect_in_attributes(marker, payload, event_handlers=True, add=add)

        if payload == "<":
            self._detect_tag_open(marker, add)
        else:
            self._detect_in_code("script", marker, requested, add)
            self._detect_in_code("style", marker, requested, add)

        if requested & {C.JSON_STRING.value, C.JSON_STRUCTURE.value}:
            self._detect_in_json_blocks(marker, requested, add)

        return [Detection(payload, context) for context in found]

    def _detect_in_attributes(
        self,
        marker: str,
        payload: str,
        event_handlers: bool,
        add: Callable[[CanonicalContext], None],
    ) -> None:
        literal_quoted, literal_bare, escaped = (
            (C.EVENT_HANDLER, C.EVENT_HANDLER, C.EVENT_HANDLER_ESCAPED)
            if event_handlers
            else (C.ATTRIBUTE_IN_QUOTE, C.ATTRIBUTE, C.ATTRIBUTE_ESCAPED)
        )
        for node in self._document.elements():
            for name, decoded in node.attrs.items():
                if name.startswith("on") != event_handlers:
                    continue
                raw = self._document.raw_attribute(node, name)
                if raw is not None and marker in raw.value:
                    add(literal_quoted if raw.quote else literal_bare)
                    return
                if marker in decoded:
                    add(escaped)
            # A quote that closed the attribute early leaves the marker in the tag source
            if payload in ('"', "'") and marker in node.raw_tag:
                attr_names = [n for n in node.attrs if n.startswith("on") == event_handlers]
                if attr_names:
                    add(literal_quoted)
                    return

    def _detect_in_code(
        self,
        tag: str,
        marker: str,
        requested: set[str],
        add: Callable[[CanonicalContext], None],
    ) -> None:
        quoted, bare = (C.JS_IN_QUOTE, C.JS) if tag == "script" else (C.CSS_IN_QUOTE, C.CSS)
        if quoted.value in requested and self._marker_in_code(tag, marker, inquote=True):
            add(quoted)
        elif bare.value in requested and self._marker_in_code(tag, marker, inquote=False):
            add(bare)

    def _marker_in_code(self, tag: str, marker: str, inquote: bool) -> bool:
        """Search script/style sources case-insensitively for a marker or its escaped forms."""
        nodes = self._document.elements(tag)
        if tag == "script":
            nodes = [n for n in nodes if is_executable_script(n)]
        candidates = [c.lower() for c in escaped_candidates(marker)]

        for node in nodes:
            source = self._document.text_content(node)
            if not source:
                continue
            lowered = source.lower()
            for candidate in candidates:
                if not inquote:
                    if candidate in lowered:
                        return True
                    continue
                pos = lowered.find(candidate)
                tries = 0
                while pos != -1 and tries <= _MAX_POSITION_TRIES:
                    if is_inside_quoted_string(source, pos):
                        return True
                    tries += 1
                    pos = lowered.find(candidate, pos + 1)
        return False

    def _detect_tag_open(self, marker: str, add: Callable[[CanonicalContext], None]) -> None:
        variants = variants_of(marker)
        in_code = False
        if any(self._marker_in_code("script", v, inquote=False) for v in variants):
            add(C.JS)
            in_code = True
        if any(self._marker_in_code("style", v, inquote=False) for v in variants):
            add(C.CSS)
            in_code = True
        if not in_code and self._document.contains_markup_text(marker):
            add(C.HTML)

    def _detect_in_json_blocks(
        self,
        marker: str,
        requested: set[str],
        add: Callable[[CanonicalContext], None],
    ) -> None:
        for node in self._document.elements("script"):
            if not is_json_script(node):
                continue
            source = self._document.text_content(node)
            index = source.find(marker)
            while index != -1:
                context = C.JSON_STRING if is_inside_json_string(source, index) else C.JSON_STRUCTURE
                if context.value in requested:
                    add(context)
                index = source.find(marker, index + len(marker))
