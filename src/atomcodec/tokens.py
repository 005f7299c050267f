"""Pull-based XML events over lxml, plus the matching escaped writer.

lxml parses and validates the whole document up front. :class:`XmlReader`
then replays it as a flat stream of start/end/empty/text events, similar to
a streaming tokenizer, so the Atom readers can walk it with an explicit
depth counter.
"""

from __future__ import annotations

import html as _html_mod
import re
from collections import deque
from contextlib import contextmanager
from enum import Enum
from typing import IO, TYPE_CHECKING, Iterable, Iterator, NamedTuple, Optional

from lxml import etree

from .errors import UnexpectedEofError, XmlDecodeError

if TYPE_CHECKING:
    from lxml.etree import _Element, _ElementTree

_XML_NAMESPACE = "http://www.w3.org/XML/1998/namespace"

_XML_PARSER = etree.XMLParser(
    recover=False,
    collect_ids=False,
    resolve_entities=False,
    remove_blank_text=False,
    no_network=True,
)
_HUGE_XML_PARSER = etree.XMLParser(
    recover=False,
    collect_ids=False,
    resolve_entities=False,
    remove_blank_text=False,
    no_network=True,
    huge_tree=True,
)

# libxml2 reports these when the input stops before the document is complete
_EOF_ERROR_CODES = frozenset(
    {
        etree.ErrorTypes.ERR_DOCUMENT_EMPTY,
        etree.ErrorTypes.ERR_TAG_NOT_FINISHED,
    }
)

_PREDEFINED_ENTITIES = frozenset({b"lt", b"gt", b"amp", b"apos", b"quot"})
_RE_ENTITY_REF = re.compile(rb"&([A-Za-z_][\w.-]*);")
_RE_XML_DECL = re.compile(rb"(?:\xef\xbb\xbf)?(?:<\?xml[^>]*\?>)?")
_RE_ROOT_NAME = re.compile(rb"<([A-Za-z_][\w.:-]*)")


def _declare_entities(data: bytes) -> bytes:
    """Declare the named entities a DTD-less document uses but never defines.

    Each one is declared with its own reference as replacement text, so lxml
    keeps ``&nbsp;`` as an entity node instead of rejecting the document.
    """
    if b"<!DOCTYPE" in data:
        return data
    names = dict.fromkeys(
        name for name in _RE_ENTITY_REF.findall(data) if name not in _PREDEFINED_ENTITIES
    )
    if not names:
        return data

    head = _RE_XML_DECL.match(data).end()
    root = _RE_ROOT_NAME.search(data, head)
    root_name = root.group(1) if root else b"feed"
    subset = b"".join(b'<!ENTITY %s "&#38;#38;%s;">' % (name, name) for name in names)
    return b"%s<!DOCTYPE %s [%s]>%s" % (data[:head], root_name, subset, data[head:])


class EventKind(Enum):
    START = "start"
    END = "end"
    EMPTY = "empty"
    TEXT = "text"
    CDATA = "cdata"
    COMMENT = "comment"
    PI = "pi"
    DOCTYPE = "doctype"
    GENERAL_REF = "general_ref"
    EOF = "eof"


class Event(NamedTuple):
    """One token of the document.

    ``name`` is the qualified tag name for START/END/EMPTY, the target for PI
    and the entity name for GENERAL_REF. ``text`` carries character data,
    comment bodies, PI data and the doctype declaration.
    """

    kind: EventKind
    name: str = ""
    text: str = ""
    element: Optional[_Element] = None
    raw_attributes: tuple[tuple[str, str], ...] = ()

    @property
    def local_name(self) -> str:
        return self.name.rsplit(":", 1)[-1]

    def attributes(
        self, scope: Optional[dict[Optional[str], str]] = None
    ) -> list[tuple[str, str]]:
        """Decode the attributes of a START/EMPTY event on demand.

        Pass ``scope`` when the element starts a subtree that is kept apart
        from the document (see :func:`decode_attributes`).
        """
        if self.element is not None:
            return decode_attributes(self.element, scope)
        return list(self.raw_attributes)


_EOF = Event(EventKind.EOF)


def qualified_name(element: _Element) -> str:
    tag = element.tag
    local = tag.split("}", 1)[1] if tag[0] == "{" else tag
    prefix = element.prefix
    return f"{prefix}:{local}" if prefix else local


def _prefix_for(uri: str, nsmap: dict[Optional[str], str]) -> Optional[str]:
    if uri == _XML_NAMESPACE:
        return "xml"
    for prefix, ns in nsmap.items():
        if prefix and ns == uri:
            return prefix
    return None


def _used_prefixes(element: _Element) -> set[Optional[str]]:
    used: set[Optional[str]] = set()
    for node in element.iter(etree.Element):
        used.add(node.prefix)
        for key in node.attrib:
            if key[0] == "{":
                used.add(_prefix_for(key[1:].split("}", 1)[0], node.nsmap))
    return used


def decode_attributes(
    element: _Element, scope: Optional[dict[Optional[str], str]] = None
) -> list[tuple[str, str]]:
    """Return ``(qualified-key, value)`` pairs for an element.

    Namespace declarations made on this element come first as ``xmlns`` /
    ``xmlns:prefix`` keys, followed by the attributes in document order with
    their namespace URI mapped back to the prefix in scope (``xml:lang``).
    Values are already unescaped by lxml.

    ``scope`` is the set of bindings the element will be written under when
    it is copied out of its document. Bindings its subtree uses that
    ``scope`` lacks are declared on the element as well.
    """
    nsmap = element.nsmap
    parent = element.getparent()
    inherited = parent.nsmap if parent is not None else {}
    used = _used_prefixes(element) if scope is not None else set()

    attributes: list[tuple[str, str]] = []
    for prefix, uri in nsmap.items():
        declared_here = inherited.get(prefix) != uri
        unbound = prefix in used and scope is not None and scope.get(prefix) != uri
        if declared_here or unbound:
            attributes.append((f"xmlns:{prefix}" if prefix else "xmlns", uri))

    for key, value in element.attrib.items():
        if key[0] == "{":
            uri, local = key[1:].split("}", 1)
            prefix = _prefix_for(uri, nsmap)
            key = f"{prefix}:{local}" if prefix else local
        attributes.append((key, value))
    return attributes


def _node_events(top: _Element) -> Iterator[Event]:
    # (parent element, iterator over its remaining children)
    stack: list[tuple[Optional[_Element], Iterator[_Element]]] = [(None, iter((top,)))]
    while stack:
        parent, children = stack[-1]
        node = next(children, None)
        if node is None:
            stack.pop()
            if parent is not None:
                yield Event(EventKind.END, qualified_name(parent))
                if parent.tail:
                    yield Event(EventKind.TEXT, text=parent.tail)
            continue

        tag = node.tag
        if tag is etree.Comment:
            yield Event(EventKind.COMMENT, text=node.text or "")
        elif tag is etree.ProcessingInstruction:
            yield Event(EventKind.PI, node.target, node.text or "")
        elif tag is etree.Entity:
            yield Event(EventKind.GENERAL_REF, node.name)
        else:
            name = qualified_name(node)
            if len(node) == 0 and not node.text:
                yield Event(EventKind.EMPTY, name, element=node)
            else:
                yield Event(EventKind.START, name, element=node)
                if node.text:
                    yield Event(EventKind.TEXT, text=node.text)
                stack.append((node, iter(node)))
                continue

        if node.tail:
            yield Event(EventKind.TEXT, text=node.tail)


def _document_events(tree: _ElementTree) -> Iterator[Event]:
    doctype = tree.docinfo.doctype
    if doctype:
        yield Event(EventKind.DOCTYPE, text=doctype)

    root = tree.getroot()
    for node in reversed(list(root.itersiblings(preceding=True))):
        yield from _node_events(node)
    yield from _node_events(root)
    for node in root.itersiblings():
        yield from _node_events(node)


class XmlReader:
    """Pull reader handing out one :class:`Event` at a time.

    With ``expand_empty_elements`` on (the default) an empty element is
    reported as a START immediately followed by its END, so callers never
    have to special-case ``<link/>``. Text readers switch it off to tell
    ``<br/>`` apart from ``<br></br>``.
    """

    def __init__(self, events: Iterable[Event], *, lenient_types: bool = False):
        self._events = iter(events)
        self._pending: deque[Event] = deque()
        self.expand_empty_elements = True
        self.lenient_types = lenient_types
        # bindings the output document declares on its root element
        self.namespaces: dict[Optional[str], str] = {}

    @classmethod
    def from_bytes(
        cls,
        data: bytes,
        *,
        lenient_types: bool = False,
        huge_tree: bool = False,
    ) -> XmlReader:
        data = data.lstrip()
        if not data:
            return cls((), lenient_types=lenient_types)

        data = _declare_entities(data)
        parser = _HUGE_XML_PARSER if huge_tree else _XML_PARSER
        try:
            root = etree.fromstring(data, parser=parser)
        except etree.XMLSyntaxError as e:
            if e.code in _EOF_ERROR_CODES:
                raise UnexpectedEofError() from e
            raise XmlDecodeError(f"Failed to parse XML content: {e}") from e

        return cls(_document_events(root.getroottree()), lenient_types=lenient_types)

    def read_event(self) -> Event:
        if self._pending:
            return self._pending.popleft()

        event = next(self._events, _EOF)
        if event.kind is EventKind.EMPTY and self.expand_empty_elements:
            self._pending.append(Event(EventKind.END, event.name))
            return event._replace(kind=EventKind.START)
        return event

    def read_to_end(self) -> None:
        """Skip past the end tag matching the most recent start tag."""
        depth = 0
        while True:
            kind = self.read_event().kind
            if kind is EventKind.START:
                depth += 1
            elif kind is EventKind.END:
                if depth == 0:
                    return
                depth -= 1
            elif kind is EventKind.EOF:
                raise UnexpectedEofError()

    @contextmanager
    def literal_empty_elements(self) -> Iterator[XmlReader]:
        previous = self.expand_empty_elements
        self.expand_empty_elements = False
        try:
            yield self
        finally:
            self.expand_empty_elements = previous


def escape_text(text: str) -> str:
    return _html_mod.escape(text, quote=False)


def escape_attribute(value: str) -> str:
    return _html_mod.escape(value, quote=True)


def format_attributes(attributes: Iterable[tuple[str, str]], *, escape: bool = True) -> str:
    if escape:
        return "".join(f' {key}="{escape_attribute(value)}"' for key, value in attributes)
    return "".join(f' {key}="{value}"' for key, value in attributes)


class XmlWriter:
    """Writes UTF-8 markup to a binary sink.

    Text passed to :meth:`write_text` and attribute values are always
    escaped; :meth:`write_raw` is the only way to emit pre-built markup.
    """

    def __init__(self, sink: IO[bytes]):
        self.sink = sink

    def _write(self, data: str) -> None:
        self.sink.write(data.encode("utf-8"))

    def write_declaration(self) -> None:
        self._write('<?xml version="1.0"?>\n')

    def write_start(self, name: str, attributes: Iterable[tuple[str, str]] = ()) -> None:
        self._write(f"<{name}{format_attributes(attributes)}>")

    def write_empty(self, name: str, attributes: Iterable[tuple[str, str]] = ()) -> None:
        self._write(f"<{name}{format_attributes(attributes)}/>")

    def write_end(self, name: str) -> None:
        self._write(f"</{name}>")

    def write_text(self, text: str) -> None:
        if text:
            self._write(escape_text(text))

    def write_raw(self, markup: str) -> None:
        self._write(markup)

    def write_text_element(self, name: str, text: str) -> None:
        self.write_start(name)
        self.write_text(text)
        self.write_end(name)
