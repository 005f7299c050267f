import logging

from .dates import DEFAULT_DATETIME, FixedDateTime, format_datetime, parse_datetime
from .errors import (
    AtomError,
    InvalidStartTagError,
    UnexpectedEofError,
    WrongAttributeError,
    WrongDatetimeError,
    XmlDecodeError,
)
from .extension import Extension, ExtensionMap
from .main import (
    ATOM_NAMESPACE,
    Category,
    Content,
    Entry,
    Feed,
    FromXml,
    Generator,
    Link,
    Person,
    Source,
    ToXml,
    parse,
)
from .text import ContentType, Text

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "ATOM_NAMESPACE",
    "AtomError",
    "Category",
    "Content",
    "ContentType",
    "DEFAULT_DATETIME",
    "Entry",
    "Extension",
    "ExtensionMap",
    "Feed",
    "FixedDateTime",
    "FromXml",
    "Generator",
    "InvalidStartTagError",
    "Link",
    "Person",
    "Source",
    "Text",
    "ToXml",
    "UnexpectedEofError",
    "WrongAttributeError",
    "WrongDatetimeError",
    "XmlDecodeError",
    "format_datetime",
    "parse",
    "parse_datetime",
]
