"""Namespaced extension elements kept as a generic tree.

Any element written with a namespace prefix that is not part of the Atom
vocabulary at its position (``<itunes:author>``, ``<media:group>``) is
stored as an :class:`Extension` and written back unchanged.
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from typing import Iterable, Iterator, Optional

from .errors import UnexpectedEofError
from .tokens import EventKind, XmlReader, XmlWriter


@dataclass
class Extension:
    """A namespaced extension element.

    ``children`` maps the local name of each child (prefix stripped) to the
    child elements with that name, in document order.
    """

    name: str = ""
    value: Optional[str] = None
    attrs: dict[str, str] = field(default_factory=dict)
    children: dict[str, list[Extension]] = field(default_factory=dict)


# prefix -> local name -> elements
ExtensionMap = dict[str, dict[str, list[Extension]]]


def extension_name(element_name: str) -> Optional[tuple[str, str]]:
    """Split ``prefix:local`` into its parts; None for unprefixed names."""
    prefix, sep, local = element_name.partition(":")
    if not sep or not prefix or not local:
        return None
    return prefix, local


def _attribute_map(attributes: Iterable[tuple[str, str]]) -> dict[str, str]:
    attrs: dict[str, str] = {}
    for key, value in attributes:
        if key != "xmlns" and not key.startswith("xmlns:"):
            key = key.rsplit(":", 1)[-1]
        attrs[key] = value
    return attrs


def parse_extension_element(
    reader: XmlReader, attributes: Iterable[tuple[str, str]]
) -> Extension:
    """Read the element whose start tag was just consumed into an Extension.

    Nested elements are handled with an explicit stack of open frames, so
    deeply nested input cannot exhaust the interpreter's recursion limit.
    """
    root = Extension(attrs=_attribute_map(attributes))
    # (node, text buffer, local name the node is filed under in its parent)
    stack: list[tuple[Extension, list[str], str]] = [(root, [], "")]

    while True:
        event = reader.read_event()
        kind = event.kind
        node, text, _ = stack[-1]

        if kind is EventKind.START:
            child = Extension(attrs=_attribute_map(event.attributes()))
            stack.append((child, [], event.local_name))
        elif kind is EventKind.TEXT or kind is EventKind.CDATA:
            text.append(event.text)
        elif kind is EventKind.END:
            node.name = event.name
            node.value = "".join(text).strip() or None
            _, _, local = stack.pop()
            if not stack:
                return node
            stack[-1][0].children.setdefault(local, []).append(node)
        elif kind is EventKind.EOF:
            raise UnexpectedEofError()


def parse_extension(
    reader: XmlReader,
    attributes: Iterable[tuple[str, str]],
    prefix: str,
    local: str,
    extensions: ExtensionMap,
) -> None:
    extension = parse_extension_element(reader, attributes)
    extensions.setdefault(prefix, {}).setdefault(local, []).append(extension)


def _children(extension: Extension) -> Iterator[Extension]:
    return itertools.chain.from_iterable(extension.children.values())


def _write_open(writer: XmlWriter, extension: Extension) -> None:
    writer.write_start(extension.name, extension.attrs.items())
    if extension.value is not None:
        writer.write_text(extension.value)


def write_extension(writer: XmlWriter, extension: Extension) -> None:
    _write_open(writer, extension)
    stack: list[tuple[Extension, Iterator[Extension]]] = [
        (extension, _children(extension))
    ]
    while stack:
        node, children = stack[-1]
        child = next(children, None)
        if child is None:
            writer.write_end(node.name)
            stack.pop()
            continue
        _write_open(writer, child)
        stack.append((child, _children(child)))


def iter_extensions(extensions: ExtensionMap) -> Iterator[Extension]:
    """Yield every extension element in the map, nested children included."""
    stack = [
        extension
        for by_name in extensions.values()
        for items in by_name.values()
        for extension in items
    ]
    while stack:
        extension = stack.pop()
        yield extension
        stack.extend(_children(extension))


def write_extensions(writer: XmlWriter, extensions: ExtensionMap) -> None:
    for by_name in extensions.values():
        for items in by_name.values():
            for extension in items:
                write_extension(writer, extension)
