from __future__ import annotations

import io
import logging
import re
from dataclasses import dataclass, field
from typing import IO, Any, Iterator, Optional, Protocol, Union, runtime_checkable

from .dates import FixedDateTime, default_fixed_datetime, format_datetime
from .errors import InvalidStartTagError, UnexpectedEofError
from .extension import (
    ExtensionMap,
    extension_name,
    iter_extensions,
    parse_extension,
    write_extensions,
)
from .text import Text, read_datetime, read_text, read_xhtml
from .tokens import Event, EventKind, XmlReader, XmlWriter

logger = logging.getLogger(__name__)

ATOM_NAMESPACE = "http://www.w3.org/2005/Atom"
DC_NAMESPACE = "http://purl.org/dc/elements/1.1/"

_RE_XML_DECL_ENCODING = re.compile(
    r'(<\?xml[^>]*encoding=["\'])([^"\']+)(["\'][^>]*\?>)', re.IGNORECASE
)

_Source = Union[str, bytes, bytearray, IO[bytes]]


@runtime_checkable
class FromXml(Protocol):
    """A record read from the element whose start tag was just consumed."""

    @classmethod
    def from_xml(cls, reader: XmlReader, attributes: list[tuple[str, str]]) -> Any: ...


@runtime_checkable
class ToXml(Protocol):
    def to_xml(self, writer: XmlWriter) -> None: ...


def _handle_unknown(
    reader: XmlReader, event: Event, extensions: Optional[ExtensionMap]
) -> None:
    """Store a prefixed element as an extension, or skip it whole."""
    parts = extension_name(event.name)
    if parts is not None and extensions is not None:
        prefix, local = parts
        # dc is declared again on write whenever an extension uses it
        scope = {**reader.namespaces, "dc": DC_NAMESPACE}
        parse_extension(reader, event.attributes(scope), prefix, local, extensions)
        return
    logger.debug("Skipping unsupported element <%s>", event.name)
    reader.read_to_end()


def _element_events(reader: XmlReader) -> Iterator[Event]:
    """Yield the START events of the current element's children until its END."""
    while True:
        event = reader.read_event()
        if event.kind is EventKind.START:
            yield event
        elif event.kind is EventKind.END:
            return
        elif event.kind is EventKind.EOF:
            raise UnexpectedEofError()


@dataclass
class Category:
    term: str = ""
    scheme: Optional[str] = None
    label: Optional[str] = None

    @classmethod
    def from_xml(cls, reader: XmlReader, attributes: list[tuple[str, str]]) -> Category:
        category = cls()
        for key, value in attributes:
            if key == "term":
                category.term = value
            elif key == "scheme":
                category.scheme = value
            elif key == "label":
                category.label = value
        reader.read_to_end()
        return category

    def to_xml(self, writer: XmlWriter) -> None:
        attributes = [("term", self.term)]
        if self.scheme is not None:
            attributes.append(("scheme", self.scheme))
        if self.label is not None:
            attributes.append(("label", self.label))
        writer.write_empty("category", attributes)


@dataclass
class Person:
    """An ``author`` or ``contributor``."""

    name: str = ""
    email: Optional[str] = None
    uri: Optional[str] = None

    @classmethod
    def from_xml(cls, reader: XmlReader, attributes: list[tuple[str, str]]) -> Person:
        person = cls()
        for event in _element_events(reader):
            if event.name == "name":
                person.name = read_text(reader) or ""
            elif event.name == "email":
                person.email = read_text(reader)
            elif event.name == "uri":
                person.uri = read_text(reader)
            else:
                _handle_unknown(reader, event, None)
        return person

    def to_xml_named(self, writer: XmlWriter, name: str) -> None:
        writer.write_start(name)
        writer.write_text_element("name", self.name)
        if self.email is not None:
            writer.write_text_element("email", self.email)
        if self.uri is not None:
            writer.write_text_element("uri", self.uri)
        writer.write_end(name)


@dataclass
class Link:
    href: str = ""
    rel: str = "alternate"
    hreflang: Optional[str] = None
    mime_type: Optional[str] = None
    title: Optional[str] = None
    length: Optional[str] = None

    @classmethod
    def from_xml(cls, reader: XmlReader, attributes: list[tuple[str, str]]) -> Link:
        link = cls()
        for key, value in attributes:
            if key == "href":
                link.href = value
            elif key == "rel":
                link.rel = value
            elif key == "hreflang":
                link.hreflang = value
            elif key == "type":
                link.mime_type = value
            elif key == "title":
                link.title = value
            elif key == "length":
                link.length = value
        reader.read_to_end()
        return link

    def to_xml(self, writer: XmlWriter) -> None:
        attributes = [("href", self.href), ("rel", self.rel)]
        if self.hreflang is not None:
            attributes.append(("hreflang", self.hreflang))
        if self.mime_type is not None:
            attributes.append(("type", self.mime_type))
        if self.title is not None:
            attributes.append(("title", self.title))
        if self.length is not None:
            attributes.append(("length", self.length))
        writer.write_empty("link", attributes)


@dataclass
class Generator:
    value: str = ""
    uri: Optional[str] = None
    version: Optional[str] = None

    @classmethod
    def from_xml(cls, reader: XmlReader, attributes: list[tuple[str, str]]) -> Generator:
        generator = cls()
        for key, value in attributes:
            if key == "uri":
                generator.uri = value
            elif key == "version":
                generator.version = value
        generator.value = read_text(reader) or ""
        return generator

    def to_xml(self, writer: XmlWriter) -> None:
        attributes = []
        if self.uri is not None:
            attributes.append(("uri", self.uri))
        if self.version is not None:
            attributes.append(("version", self.version))
        writer.write_start("generator", attributes)
        writer.write_text(self.value)
        writer.write_end("generator")


@dataclass
class Content:
    """Entry ``content``; either inline (``value``) or out-of-line (``src``).

    ``content_type`` is kept as written, so media types such as
    ``application/octet-stream`` survive alongside ``text``/``html``/``xhtml``.
    """

    value: Optional[str] = None
    base: Optional[str] = None
    lang: Optional[str] = None
    src: Optional[str] = None
    content_type: Optional[str] = None

    @classmethod
    def from_xml(cls, reader: XmlReader, attributes: list[tuple[str, str]]) -> Content:
        content = cls()
        for key, value in attributes:
            if key == "xml:base":
                content.base = value
            elif key == "xml:lang":
                content.lang = value
            elif key == "type":
                content.content_type = value
            elif key == "src":
                content.src = value

        if content.content_type == "xhtml":
            content.value = read_xhtml(reader)
        else:
            content.value = read_text(reader)
        return content

    def to_xml(self, writer: XmlWriter) -> None:
        attributes = []
        if self.base is not None:
            attributes.append(("xml:base", self.base))
        if self.lang is not None:
            attributes.append(("xml:lang", self.lang))
        if self.content_type is not None:
            attributes.append(("type", self.content_type))
        if self.src is not None:
            attributes.append(("src", self.src))

        writer.write_start("content", attributes)
        if self.value is not None:
            if self.content_type == "xhtml":
                writer.write_raw(self.value)
            else:
                writer.write_text(self.value)
        writer.write_end("content")


@dataclass
class Source:
    """Metadata of the feed an entry was copied from."""

    title: Text = field(default_factory=Text)
    id: str = ""
    updated: FixedDateTime = field(default_factory=default_fixed_datetime)
    authors: list[Person] = field(default_factory=list)
    categories: list[Category] = field(default_factory=list)
    contributors: list[Person] = field(default_factory=list)
    generator: Optional[Generator] = None
    icon: Optional[str] = None
    links: list[Link] = field(default_factory=list)
    logo: Optional[str] = None
    rights: Optional[Text] = None
    subtitle: Optional[Text] = None

    @classmethod
    def from_xml(cls, reader: XmlReader, attributes: list[tuple[str, str]]) -> Source:
        source = cls()
        for event in _element_events(reader):
            name = event.name
            if name == "title":
                source.title = Text.from_xml(reader, event.attributes())
            elif name == "id":
                source.id = read_text(reader) or ""
            elif name == "updated":
                source.updated = read_datetime(reader) or default_fixed_datetime()
            elif name == "author":
                source.authors.append(Person.from_xml(reader, event.attributes()))
            elif name == "category":
                source.categories.append(Category.from_xml(reader, event.attributes()))
            elif name == "contributor":
                source.contributors.append(Person.from_xml(reader, event.attributes()))
            elif name == "generator":
                source.generator = Generator.from_xml(reader, event.attributes())
            elif name == "icon":
                source.icon = read_text(reader)
            elif name == "link":
                source.links.append(Link.from_xml(reader, event.attributes()))
            elif name == "logo":
                source.logo = read_text(reader)
            elif name == "rights":
                source.rights = Text.from_xml(reader, event.attributes())
            elif name == "subtitle":
                source.subtitle = Text.from_xml(reader, event.attributes())
            else:
                _handle_unknown(reader, event, None)
        return source

    def to_xml(self, writer: XmlWriter) -> None:
        writer.write_start("source")
        self.title.to_xml_named(writer, "title")
        writer.write_text_element("id", self.id)
        writer.write_text_element("updated", format_datetime(self.updated))
        for author in self.authors:
            author.to_xml_named(writer, "author")
        for category in self.categories:
            category.to_xml(writer)
        for contributor in self.contributors:
            contributor.to_xml_named(writer, "contributor")
        if self.generator is not None:
            self.generator.to_xml(writer)
        if self.icon is not None:
            writer.write_text_element("icon", self.icon)
        for link in self.links:
            link.to_xml(writer)
        if self.logo is not None:
            writer.write_text_element("logo", self.logo)
        if self.rights is not None:
            self.rights.to_xml_named(writer, "rights")
        if self.subtitle is not None:
            self.subtitle.to_xml_named(writer, "subtitle")
        writer.write_end("source")


@dataclass
class Entry:
    title: Text = field(default_factory=Text)
    id: str = ""
    updated: FixedDateTime = field(default_factory=default_fixed_datetime)
    authors: list[Person] = field(default_factory=list)
    categories: list[Category] = field(default_factory=list)
    contributors: list[Person] = field(default_factory=list)
    links: list[Link] = field(default_factory=list)
    published: Optional[FixedDateTime] = None
    rights: Optional[Text] = None
    source: Optional[Source] = None
    summary: Optional[Text] = None
    content: Optional[Content] = None
    extensions: ExtensionMap = field(default_factory=dict)

    @classmethod
    def from_xml(cls, reader: XmlReader, attributes: list[tuple[str, str]]) -> Entry:
        entry = cls()
        for event in _element_events(reader):
            name = event.name
            if name == "title":
                entry.title = Text.from_xml(reader, event.attributes())
            elif name == "id":
                entry.id = read_text(reader) or ""
            elif name == "updated":
                entry.updated = read_datetime(reader) or default_fixed_datetime()
            elif name == "author":
                entry.authors.append(Person.from_xml(reader, event.attributes()))
            elif name == "category":
                entry.categories.append(Category.from_xml(reader, event.attributes()))
            elif name == "contributor":
                entry.contributors.append(Person.from_xml(reader, event.attributes()))
            elif name == "link":
                entry.links.append(Link.from_xml(reader, event.attributes()))
            elif name == "published":
                entry.published = read_datetime(reader)
            elif name == "rights":
                entry.rights = Text.from_xml(reader, event.attributes())
            elif name == "source":
                entry.source = Source.from_xml(reader, event.attributes())
            elif name == "summary":
                entry.summary = Text.from_xml(reader, event.attributes())
            elif name == "content":
                entry.content = Content.from_xml(reader, event.attributes())
            else:
                _handle_unknown(reader, event, entry.extensions)
        return entry

    def to_xml(self, writer: XmlWriter) -> None:
        writer.write_start("entry")
        self.title.to_xml_named(writer, "title")
        writer.write_text_element("id", self.id)
        writer.write_text_element("updated", format_datetime(self.updated))
        for author in self.authors:
            author.to_xml_named(writer, "author")
        for category in self.categories:
            category.to_xml(writer)
        for contributor in self.contributors:
            contributor.to_xml_named(writer, "contributor")
        for link in self.links:
            link.to_xml(writer)
        if self.published is not None:
            writer.write_text_element("published", format_datetime(self.published))
        if self.rights is not None:
            self.rights.to_xml_named(writer, "rights")
        if self.source is not None:
            self.source.to_xml(writer)
        if self.summary is not None:
            self.summary.to_xml_named(writer, "summary")
        if self.content is not None:
            self.content.to_xml(writer)
        write_extensions(writer, self.extensions)
        writer.write_end("entry")


def _ensure_utf8_xml_declaration(content: str) -> str:
    """Ensure the XML declaration's encoding matches the UTF-8 bytes we emit."""
    if not content.lstrip().startswith("<?xml"):
        return content
    return _RE_XML_DECL_ENCODING.sub(r"\1utf-8\3", content, count=1)


def _prepare_xml_bytes(source: _Source) -> bytes:
    if isinstance(source, str):
        return _ensure_utf8_xml_declaration(source).encode("utf-8")
    if isinstance(source, (bytes, bytearray)):
        return bytes(source)
    return _prepare_xml_bytes(source.read())


@dataclass
class Feed:
    title: Text = field(default_factory=Text)
    id: str = ""
    updated: FixedDateTime = field(default_factory=default_fixed_datetime)
    authors: list[Person] = field(default_factory=list)
    categories: list[Category] = field(default_factory=list)
    contributors: list[Person] = field(default_factory=list)
    generator: Optional[Generator] = None
    icon: Optional[str] = None
    links: list[Link] = field(default_factory=list)
    logo: Optional[str] = None
    rights: Optional[Text] = None
    subtitle: Optional[Text] = None
    entries: list[Entry] = field(default_factory=list)
    extensions: ExtensionMap = field(default_factory=dict)
    namespaces: dict[str, str] = field(default_factory=dict)
    base: Optional[str] = None
    lang: Optional[str] = None

    @classmethod
    def read_from(
        cls,
        source: _Source,
        *,
        lenient_types: bool = False,
        huge_tree: bool = False,
    ) -> Feed:
        """Parse an Atom document.

        Args:
            source: XML as bytes, str, or a binary file object
            lenient_types: Read unsupported text construct ``type`` values as
                text instead of failing
            huge_tree: Lift lxml's limits on nesting depth and text size

        Raises:
            XmlDecodeError: If the document is not well-formed XML
            InvalidStartTagError: If the root element is not ``feed``
            UnexpectedEofError: If the input holds no element at all
            WrongDatetimeError: If a timestamp cannot be parsed
            WrongAttributeError: If a text construct has an unsupported ``type``
        """
        reader = XmlReader.from_bytes(
            _prepare_xml_bytes(source),
            lenient_types=lenient_types,
            huge_tree=huge_tree,
        )
        while True:
            event = reader.read_event()
            if event.kind is EventKind.START:
                if event.name != "feed":
                    raise InvalidStartTagError(event.name)
                return cls.from_xml(reader, event.attributes())
            if event.kind is EventKind.EOF:
                raise UnexpectedEofError()

    @classmethod
    def from_string(cls, content: str, **kwargs: bool) -> Feed:
        return cls.read_from(content, **kwargs)

    @classmethod
    def from_xml(cls, reader: XmlReader, attributes: list[tuple[str, str]]) -> Feed:
        feed = cls()
        for key, value in attributes:
            if key == "xml:base":
                feed.base = value
            elif key == "xml:lang":
                feed.lang = value
            elif key == "xmlns:dc":
                continue
            elif key.startswith("xmlns:"):
                feed.namespaces[key[6:]] = value
        reader.namespaces = {None: ATOM_NAMESPACE, **feed.namespaces}

        for event in _element_events(reader):
            name = event.name
            if name == "title":
                feed.title = Text.from_xml(reader, event.attributes())
            elif name == "id":
                feed.id = read_text(reader) or ""
            elif name == "updated":
                feed.updated = read_datetime(reader) or default_fixed_datetime()
            elif name == "author":
                feed.authors.append(Person.from_xml(reader, event.attributes()))
            elif name == "category":
                feed.categories.append(Category.from_xml(reader, event.attributes()))
            elif name == "contributor":
                feed.contributors.append(Person.from_xml(reader, event.attributes()))
            elif name == "generator":
                feed.generator = Generator.from_xml(reader, event.attributes())
            elif name == "icon":
                feed.icon = read_text(reader)
            elif name == "link":
                feed.links.append(Link.from_xml(reader, event.attributes()))
            elif name == "logo":
                feed.logo = read_text(reader)
            elif name == "rights":
                feed.rights = Text.from_xml(reader, event.attributes())
            elif name == "subtitle":
                feed.subtitle = Text.from_xml(reader, event.attributes())
            elif name == "entry":
                feed.entries.append(Entry.from_xml(reader, event.attributes()))
            else:
                _handle_unknown(reader, event, feed.extensions)
        return feed

    def _uses_prefix(self, prefix: str) -> bool:
        for extensions in (self.extensions, *(entry.extensions for entry in self.entries)):
            if prefix in extensions:
                return True
            for extension in iter_extensions(extensions):
                if extension.name.partition(":")[0] == prefix:
                    return True
        return False

    def to_xml(self, writer: XmlWriter) -> None:
        attributes = [("xmlns", ATOM_NAMESPACE)]
        for prefix, uri in self.namespaces.items():
            attributes.append((f"xmlns:{prefix}", uri))
        # xmlns:dc is never harvested on read, so declare it again when used
        if "dc" not in self.namespaces and self._uses_prefix("dc"):
            attributes.append(("xmlns:dc", DC_NAMESPACE))
        if self.base is not None:
            attributes.append(("xml:base", self.base))
        if self.lang is not None:
            attributes.append(("xml:lang", self.lang))

        writer.write_start("feed", attributes)
        self.title.to_xml_named(writer, "title")
        writer.write_text_element("id", self.id)
        writer.write_text_element("updated", format_datetime(self.updated))
        for author in self.authors:
            author.to_xml_named(writer, "author")
        for category in self.categories:
            category.to_xml(writer)
        for contributor in self.contributors:
            contributor.to_xml_named(writer, "contributor")
        if self.generator is not None:
            self.generator.to_xml(writer)
        if self.icon is not None:
            writer.write_text_element("icon", self.icon)
        for link in self.links:
            link.to_xml(writer)
        if self.logo is not None:
            writer.write_text_element("logo", self.logo)
        if self.rights is not None:
            self.rights.to_xml_named(writer, "rights")
        if self.subtitle is not None:
            self.subtitle.to_xml_named(writer, "subtitle")
        for entry in self.entries:
            entry.to_xml(writer)
        write_extensions(writer, self.extensions)
        writer.write_end("feed")

    def write_to(self, sink: IO[bytes]) -> IO[bytes]:
        """Write the feed as a UTF-8 XML document and return ``sink``."""
        writer = XmlWriter(sink)
        writer.write_declaration()
        self.to_xml(writer)
        return sink

    def to_string(self) -> str:
        buffer = io.BytesIO()
        self.write_to(buffer)
        return buffer.getvalue().decode("utf-8")

    def __str__(self) -> str:
        return self.to_string()


def parse(
    source: _Source,
    *,
    lenient_types: bool = False,
    huge_tree: bool = False,
) -> Feed:
    """Parse an Atom feed from XML content.

    Args:
        source: XML content as str or bytes, or a binary file object
        lenient_types: Read unsupported text construct ``type`` values as text
        huge_tree: Lift lxml's limits on nesting depth and text size

    Returns:
        Feed holding the parsed document

    Raises:
        AtomError: If the document cannot be read as an Atom feed
    """
    return Feed.read_from(source, lenient_types=lenient_types, huge_tree=huge_tree)
