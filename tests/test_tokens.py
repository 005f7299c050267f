import io

import pytest
from lxml import etree

from atomcodec.errors import AtomError, UnexpectedEofError, XmlDecodeError
from atomcodec.tokens import Event, EventKind, XmlReader, XmlWriter, decode_attributes


def _events(reader):
    events = []
    while True:
        event = reader.read_event()
        events.append((event.kind, event.name, event.text))
        if event.kind is EventKind.EOF:
            return events


def test_decode_attributes_declarations_first():
    root = etree.fromstring(
        '<root xmlns="urn:a" xmlns:x="urn:x" x:attr="1" plain="2" xml:lang="en">'
        '<child xmlns:y="urn:y" x:k="v"/>'
        "</root>"
    )
    attributes = decode_attributes(root)
    assert set(attributes[:2]) == {("xmlns", "urn:a"), ("xmlns:x", "urn:x")}
    assert attributes[2:] == [("x:attr", "1"), ("plain", "2"), ("xml:lang", "en")]

    assert decode_attributes(root[0]) == [("xmlns:y", "urn:y"), ("x:k", "v")]


def test_empty_elements_are_expanded():
    reader = XmlReader.from_bytes(b"<a>x<b/>y</a>")
    assert _events(reader) == [
        (EventKind.START, "a", ""),
        (EventKind.TEXT, "", "x"),
        (EventKind.START, "b", ""),
        (EventKind.END, "b", ""),
        (EventKind.TEXT, "", "y"),
        (EventKind.END, "a", ""),
        (EventKind.EOF, "", ""),
    ]


def test_literal_empty_elements():
    reader = XmlReader.from_bytes(b"<a><b/></a>")
    assert reader.read_event().kind is EventKind.START
    with reader.literal_empty_elements():
        assert not reader.expand_empty_elements
        assert reader.read_event().kind is EventKind.EMPTY
    assert reader.expand_empty_elements
    assert reader.read_event().kind is EventKind.END


def test_literal_empty_elements_restores_on_error():
    reader = XmlReader([])
    with pytest.raises(RuntimeError):
        with reader.literal_empty_elements():
            raise RuntimeError("boom")
    assert reader.expand_empty_elements


def test_comments_processing_instructions_and_doctype():
    reader = XmlReader.from_bytes(b"<!DOCTYPE a><a><!--c--><?pi data?></a>")
    assert _events(reader) == [
        (EventKind.DOCTYPE, "", "<!DOCTYPE a>"),
        (EventKind.START, "a", ""),
        (EventKind.COMMENT, "", "c"),
        (EventKind.PI, "pi", "data"),
        (EventKind.END, "a", ""),
        (EventKind.EOF, "", ""),
    ]


def test_prefixed_names():
    reader = XmlReader.from_bytes(b'<a xmlns:ext="urn:e"><ext:b ext:c="1"/></a>')
    reader.read_event()
    event = reader.read_event()
    assert event.name == "ext:b"
    assert event.local_name == "b"
    assert event.attributes() == [("ext:c", "1")]


def test_read_to_end_skips_nested_elements():
    reader = XmlReader.from_bytes(b"<a><b><c/><c>text</c></b><d/></a>")
    reader.read_event()
    assert reader.read_event().name == "b"
    reader.read_to_end()
    event = reader.read_event()
    assert (event.kind, event.name) == (EventKind.START, "d")


def test_read_to_end_eof():
    reader = XmlReader([Event(EventKind.START, "a"), Event(EventKind.START, "b")])
    reader.read_event()
    with pytest.raises(UnexpectedEofError):
        reader.read_to_end()


def test_eof_is_repeated():
    reader = XmlReader.from_bytes(b"   ")
    assert reader.read_event().kind is EventKind.EOF
    assert reader.read_event().kind is EventKind.EOF


def test_malformed_input():
    with pytest.raises(XmlDecodeError):
        XmlReader.from_bytes(b"<a></b>")
    with pytest.raises(AtomError):
        XmlReader.from_bytes(b"<a>")


def test_synthetic_events_keep_raw_attributes():
    event = Event(EventKind.START, "a", raw_attributes=(("k", "v"),))
    assert event.attributes() == [("k", "v")]


def test_writer():
    buffer = io.BytesIO()
    writer = XmlWriter(buffer)
    writer.write_start("a", [("k", '1 < "2"')])
    writer.write_text("")
    writer.write_text_element("b", "x & <y>")
    writer.write_empty("c", [("d", "e")])
    writer.write_raw("<raw/>")
    writer.write_end("a")
    assert buffer.getvalue() == (
        b'<a k="1 &lt; &quot;2&quot;"><b>x &amp; &lt;y&gt;</b><c d="e"/><raw/></a>'
    )


def test_undeclared_entities_become_references():
    reader = XmlReader.from_bytes(b'<?xml version="1.0"?><a>x&nbsp;y&amp;</a>')
    events = _events(reader)
    assert events[0][0] is EventKind.DOCTYPE
    assert events[1:] == [
        (EventKind.START, "a", ""),
        (EventKind.TEXT, "", "x"),
        (EventKind.GENERAL_REF, "nbsp", ""),
        (EventKind.TEXT, "", "y&"),
        (EventKind.END, "a", ""),
        (EventKind.EOF, "", ""),
    ]


def test_decode_attributes_declares_bindings_missing_from_scope():
    root = etree.fromstring(
        '<root xmlns="urn:a"><mid xmlns:x="urn:x"><x:leaf x:k="v"/></mid></root>'
    )
    leaf = root[0][0]
    assert decode_attributes(leaf) == [("x:k", "v")]
    assert decode_attributes(leaf, {None: "urn:a"}) == [
        ("xmlns:x", "urn:x"),
        ("x:k", "v"),
    ]
    assert decode_attributes(leaf, {None: "urn:a", "x": "urn:x"}) == [("x:k", "v")]
