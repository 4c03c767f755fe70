"""Document - Flattened markup tree for reflection classification."""

import re
from collections.abc import Iterator
from dataclasses import dataclass, field

from bs4 import BeautifulSoup
from bs4.element import Comment, NavigableString, PreformattedString, Tag


class NodeKind:
    DOCUMENT = "document"
    ELEMENT = "element"
    TEXT = "text"
    COMMENT = "comment"


@dataclass(slots=True)
class RawAttribute:
    """Attribute value as written in the source, with its quote character."""

    value: str
    quote: str


@dataclass(slots=True)
class Node:
    """One node of the flattened tree; parents are referenced by index."""

    id: int
    kind: str
    parent: int | None
    name: str = ""
    text: str = ""
    attrs: dict[str, str] = field(default_factory=dict)
    raw_tag: str = ""
    children: list[int] = field(default_factory=list)


_TAG_NAME_PREFIX = re.compile(r"^<[^\s/>]*")
_TAG_OPEN = re.compile(r"<(/?)([a-zA-Z][^\s/>]*)")


def _find_tag_end(markup: str, start: int) -> int:
    """Index just past the ``>`` closing the tag opened at ``start``."""
    quote: str | None = None
    last = ""
    for index in range(start + 1, len(markup)):
        ch = markup[index]
        if quote:
            if ch == quote:
                quote = None
                last = ch
            continue
        if ch in "\"'" and last == "=":
            quote = ch
        elif ch == ">":
            return index + 1
        if not ch.isspace():
            last = ch
    return len(markup)


def markup_text_ranges(markup: str) -> list[tuple[int, int]]:
    """
    Offsets of character data in raw markup.

    Tags, comments and the content of script/style elements are excluded.
    Works on the source text, so entity-encoded text never looks literal.
    """
    ranges: list[tuple[int, int]] = []
    length = len(markup)
    pos = 0
    text_start = 0
    while pos < length:
        lt = markup.find("<", pos)
        if lt == -1:
            break
        if markup.startswith("<!--", lt):
            ranges.append((text_start, lt))
            close = markup.find("-->", lt + 4)
            pos = length if close == -1 else close + 3
            text_start = pos
            continue
        match = _TAG_OPEN.match(markup, lt)
        if not match:
            pos = lt + 1
            continue
        ranges.append((text_start, lt))
        pos = _find_tag_end(markup, lt)
        name = match.group(2).lower()
        if not match.group(1) and name in ("script", "style"):
            close_tag = re.compile(rf"</{name}\s*>", re.IGNORECASE).search(markup, pos)
            pos = length if close_tag is None else close_tag.end()
        text_start = pos
    ranges.append((text_start, length))
    return [(start, end) for start, end in ranges if end > start]


class Document:
    """
    Markup parsed with BeautifulSoup and flattened into an arena.

    Every node knows its parent index, elements keep their raw start tag so
    the original attribute quoting can be recovered after entity decoding.
    """

    def __init__(self, markup: str) -> None:
        self.markup = markup or ""
        self.nodes: list[Node] = []
        self._line_starts = [0] + [m.end() for m in re.finditer("\n", self.markup)]
        self._text_ranges: list[tuple[int, int]] | None = None
        soup = BeautifulSoup(self.markup, "html.parser", multi_valued_attributes=None)
        self._build(soup)

    def _build(self, soup: BeautifulSoup) -> None:
        stack: list[tuple[object, int | None]] = [(soup, None)]
        while stack:
            element, parent = stack.pop()
            node = self._make_node(element, parent)
            if node is None:
                continue
            self.nodes.append(node)
            if parent is not None:
                self.nodes[parent].children.append(node.id)
            if isinstance(element, Tag):
                for child in reversed(element.contents):
                    stack.append((child, node.id))

    def _make_node(self, element: object, parent: int | None) -> Node | None:
        node_id = len(self.nodes)
        if isinstance(element, BeautifulSoup):
            return Node(id=node_id, kind=NodeKind.DOCUMENT, parent=None)
        if isinstance(element, Tag):
            return Node(
                id=node_id,
                kind=NodeKind.ELEMENT,
                parent=parent,
                name=element.name.lower(),
                attrs={k.lower(): str(v) for k, v in element.attrs.items()},
                raw_tag=self._raw_start_tag(element),
            )
        if isinstance(element, Comment):
            return Node(id=node_id, kind=NodeKind.COMMENT, parent=parent, text=str(element))
        if isinstance(element, PreformattedString):
            # Doctype, CDATA, declarations and processing instructions
            return None
        if isinstance(element, NavigableString):
            return Node(id=node_id, kind=NodeKind.TEXT, parent=parent, text=str(element))
        return None

    def _raw_start_tag(self, element: Tag) -> str:
        line, column = element.sourceline, element.sourcepos
        if line is None or column is None or line > len(self._line_starts):
            return ""
        offset = self._line_starts[line - 1] + column
        if not self.markup.startswith("<", offset):
            return ""
        return self.markup[offset : _find_tag_end(self.markup, offset)]

    def walk(self) -> Iterator[Node]:
        """Depth-first, document-order traversal with an explicit stack."""
        if not self.nodes:
            return
        stack = [0]
        while stack:
            node = self.nodes[stack.pop()]
            yield node
            stack.extend(reversed(node.children))

    def parent_of(self, node: Node) -> Node | None:
        return None if node.parent is None else self.nodes[node.parent]

    def nearest_ancestor(self, node: Node, names: set[str]) -> Node | None:
        """Closest enclosing element whose tag name is in ``names``."""
        current = self.parent_of(node)
        while current is not None:
            if current.kind == NodeKind.ELEMENT and current.name in names:
                return current
            current = self.parent_of(current)
        return None

    def elements(self, name: str | None = None) -> list[Node]:
        return [
            node
            for node in self.nodes
            if node.kind == NodeKind.ELEMENT and (name is None or node.name == name)
        ]

    def text_content(self, node: Node) -> str:
        """Concatenated text of all descendant text nodes."""
        parts: list[str] = []
        stack = list(reversed(node.children))
        while stack:
            child = self.nodes[stack.pop()]
            if child.kind == NodeKind.TEXT:
                parts.append(child.text)
            stack.extend(reversed(child.children))
        return "".join(parts)

    def raw_attribute(self, node: Node, name: str) -> RawAttribute | None:
        """Recover an attribute's source value and quote from the raw start tag."""
        if not node.raw_tag:
            return None
        raw_attrs = _TAG_NAME_PREFIX.sub("", node.raw_tag, count=1)
        pattern = re.compile(
            rf"(?:^|\s){re.escape(name)}\s*=\s*(?:\"([^\"]*)\"|'([^']*)'|([^\s>]+))",
            re.IGNORECASE,
        )
        match = pattern.search(raw_attrs)
        if not match:
            return None
        double, single, bare = match.groups()
        if double is not None:
            return RawAttribute(double, '"')
        if single is not None:
            return RawAttribute(single, "'")
        return RawAttribute(bare, "")

    def contains_text_outside(self, marker: str, exclude: frozenset[str] = frozenset({"script", "style"})) -> bool:
        """Check decoded text nodes outside the excluded elements for a marker."""
        for node in self.nodes:
            if node.kind != NodeKind.TEXT or marker not in node.text:
                continue
            parent = self.parent_of(node)
            if parent is None or parent.name not in exclude:
                return True
        return False

    def contains_markup_text(self, marker: str) -> bool:
        """Check whether a marker starts inside literal character data of the source."""
        if self._text_ranges is None:
            self._text_ranges = markup_text_ranges(self.markup)
        start = self.markup.find(marker)
        while start != -1:
            if any(begin <= start < end for begin, end in self._text_ranges):
                return True
            start = self.markup.find(marker, start + 1)
        return False
