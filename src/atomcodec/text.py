"""Atom text constructs and the readers that rebuild element content as text."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .dates import FixedDateTime, parse_datetime
from .errors import UnexpectedEofError, WrongAttributeError, WrongDatetimeError
from .tokens import (
    Event,
    EventKind,
    XmlReader,
    XmlWriter,
    escape_text,
    format_attributes,
)

logger = logging.getLogger(__name__)


def _start_tag(
    reader: XmlReader, event: Event, depth: int, *, xhtml: bool
) -> str:
    # markup copied out of the document declares the prefixes it relies on
    scope = reader.namespaces if xhtml and depth == 0 else None
    attributes = format_attributes(event.attributes(scope), escape=xhtml)
    return f"<{event.name}{attributes}"


def _read_content(reader: XmlReader, *, xhtml: bool) -> Optional[str]:
    parts: list[str] = []
    depth = 0
    with reader.literal_empty_elements():
        while True:
            event = reader.read_event()
            kind = event.kind
            if kind is EventKind.START:
                parts.append(_start_tag(reader, event, depth, xhtml=xhtml) + ">")
                depth += 1
            elif kind is EventKind.END:
                if depth == 0:
                    break
                depth -= 1
                parts.append(f"</{event.name}>")
            elif kind is EventKind.EMPTY:
                parts.append(_start_tag(reader, event, depth, xhtml=xhtml) + "/>")
            elif kind is EventKind.TEXT or kind is EventKind.CDATA:
                parts.append(escape_text(event.text) if xhtml else event.text)
            elif kind is EventKind.GENERAL_REF:
                parts.append(f"&{event.name};")
            elif kind is EventKind.COMMENT:
                parts.append(f"<!--{event.text}-->")
            elif kind is EventKind.EOF:
                raise UnexpectedEofError()

    result = "".join(parts)
    return result if result.strip() else None


def read_text(reader: XmlReader) -> Optional[str]:
    """Read up to the current element's end tag as plain character data.

    Character references are resolved; named entities other than the five
    XML built-ins come back as ``&name;``. Nested tags are kept as
    literal ``<tag>`` text, comments as ``<!--...-->``. Surrounding
    whitespace is kept, but an element holding nothing else reads as None.
    """
    return _read_content(reader, xhtml=False)


def read_xhtml(reader: XmlReader) -> Optional[str]:
    """Read up to the current element's end tag as markup.

    Unlike :func:`read_text`, character data is re-escaped, so the result is
    the element's inner XML rather than its text.
    """
    return _read_content(reader, xhtml=True)


def read_datetime(reader: XmlReader) -> Optional[FixedDateTime]:
    text = read_text(reader)
    if text is None:
        return None
    value = parse_datetime(text)
    if value is None:
        raise WrongDatetimeError(text)
    return value


class ContentType(Enum):
    TEXT = "text"
    HTML = "html"
    XHTML = "xhtml"

    @classmethod
    def parse(cls, value: str, *, lenient: bool = False) -> ContentType:
        try:
            return cls(value)
        except ValueError:
            if not lenient:
                raise WrongAttributeError("type", value) from None
            logger.debug("Treating unsupported text type %r as text", value)
            return cls.TEXT


@dataclass
class Text:
    """An Atom text construct: ``title``, ``subtitle``, ``rights``, ``summary``.

    For ``XHTML`` the value is the element's inner markup and is written back
    verbatim; for ``TEXT`` and ``HTML`` it is unescaped character data.
    """

    value: str = ""
    base: Optional[str] = None
    lang: Optional[str] = None
    type: ContentType = ContentType.TEXT

    def __str__(self) -> str:
        return self.value

    def __eq__(self, other: object) -> bool:
        if isinstance(other, str):
            return self.value == other
        if isinstance(other, Text):
            return (self.value, self.base, self.lang, self.type) == (
                other.value,
                other.base,
                other.lang,
                other.type,
            )
        return NotImplemented

    @classmethod
    def from_xml(cls, reader: XmlReader, attributes: list[tuple[str, str]]) -> Text:
        text = cls()
        for key, value in attributes:
            if key == "xml:base":
                text.base = value
            elif key == "xml:lang":
                text.lang = value
            elif key == "type":
                text.type = ContentType.parse(value, lenient=reader.lenient_types)

        if text.type is ContentType.XHTML:
            content = read_xhtml(reader)
        else:
            content = read_text(reader)
        text.value = content or ""
        return text

    def to_xml_named(self, writer: XmlWriter, name: str) -> None:
        attributes: list[tuple[str, str]] = []
        if self.base is not None:
            attributes.append(("xml:base", self.base))
        if self.lang is not None:
            attributes.append(("xml:lang", self.lang))
        if self.type is not ContentType.TEXT:
            attributes.append(("type", self.type.value))

        writer.write_start(name, attributes)
        if self.type is ContentType.XHTML:
            writer.write_raw(self.value)
        else:
            writer.write_text(self.value)
        writer.write_end(name)
