from __future__ import annotations


class AtomError(ValueError):
    """Base class for every error raised while reading an Atom document."""


class XmlDecodeError(AtomError):
    """The document is not well-formed XML or could not be decoded."""


class InvalidStartTagError(AtomError):
    def __init__(self, tag: str = "") -> None:
        self.tag = tag
        super().__init__("input did not begin with an opening feed tag")


class UnexpectedEofError(AtomError):
    def __init__(self) -> None:
        super().__init__("unexpected end of input")


class WrongDatetimeError(AtomError):
    def __init__(self, value: str) -> None:
        self.value = value
        super().__init__(
            f"timestamps must be formatted by RFC3339, rather than {value}"
        )


class WrongAttributeError(AtomError):
    def __init__(self, attribute: str, value: str) -> None:
        self.attribute = attribute
        self.value = value
        super().__init__(f"Unsupported value of attribute {attribute}: '{value}'.")
