from atomcodec import Content, Entry, Feed, parse


def _entry_content(content_element: str) -> Content:
    xml = (
        '<feed xmlns="http://www.w3.org/2005/Atom">'
        f"<entry>{content_element}</entry>"
        "</feed>"
    )
    return parse(xml).entries[0].content


def _written_content(content: Content) -> str:
    written = Feed(entries=[Entry(content=content)]).to_string()
    start = written.index("<content")
    end = written.index("</content>") + len("</content>")
    return written[start:end]


def test_content_src():
    content = _entry_content(
        '<content src="http://example.com/movie.mp4" type="video/mp4"/>'
    )
    assert content.src == "http://example.com/movie.mp4"
    assert content.content_type == "video/mp4"
    assert content.value is None
    assert _written_content(content) == (
        '<content type="video/mp4" src="http://example.com/movie.mp4"></content>'
    )


def test_content_text():
    content = _entry_content('<content type="text">Entry content</content>')
    assert content.value == "Entry content"
    assert content.content_type == "text"


def test_content_without_type():
    content = _entry_content("<content>Entry content</content>")
    assert content.value == "Entry content"
    assert content.content_type is None
    assert _written_content(content) == "<content>Entry content</content>"


def test_content_html_escaped():
    content = _entry_content(
        '<content type="html">&lt;p&gt;Entry content&lt;/p&gt;</content>'
    )
    assert content.value == "<p>Entry content</p>"
    assert _written_content(content) == (
        '<content type="html">&lt;p&gt;Entry content&lt;/p&gt;</content>'
    )


def test_content_cdata_escaped():
    content = _entry_content(
        '<content type="html"><![CDATA[&lt;p&gt;Entry content&lt;/p&gt;]]></content>'
    )
    assert content.value == "&lt;p&gt;Entry content&lt;/p&gt;"


def test_content_xhtml():
    content = _entry_content(
        '<content type="xhtml">'
        '<div xmlns="http://www.w3.org/1999/xhtml"><p>a &amp; b</p></div>'
        "</content>"
    )
    assert content.value == (
        '<div xmlns="http://www.w3.org/1999/xhtml"><p>a &amp; b</p></div>'
    )
    assert _written_content(content) == (
        '<content type="xhtml">'
        '<div xmlns="http://www.w3.org/1999/xhtml"><p>a &amp; b</p></div>'
        "</content>"
    )


def test_content_other_media_type():
    content = _entry_content(
        '<content type="application/octet-stream">AAEC</content>'
    )
    assert content.value == "AAEC"
    assert content.content_type == "application/octet-stream"


def test_content_base_and_lang():
    content = _entry_content(
        '<content xml:base="http://example.com/" xml:lang="en">hello</content>'
    )
    assert content.base == "http://example.com/"
    assert content.lang == "en"
    assert _written_content(content) == (
        '<content xml:base="http://example.com/" xml:lang="en">hello</content>'
    )


def test_content_round_trip():
    feed = Feed(
        entries=[
            Entry(
                content=Content(
                    value="<b>bold</b> & plain",
                    lang="en",
                    content_type="html",
                )
            )
        ]
    )
    assert Feed.from_string(feed.to_string()) == feed


def test_content_xhtml_declares_prefixes_it_uses():
    feed = parse(
        '<feed xmlns="http://www.w3.org/2005/Atom"'
        ' xmlns:dc="http://purl.org/dc/elements/1.1/">'
        '<entry><content type="xhtml">'
        '<div xmlns="http://www.w3.org/1999/xhtml"><dc:subject>x</dc:subject></div>'
        "</content></entry>"
        "</feed>"
    )
    value = feed.entries[0].content.value
    assert 'xmlns:dc="http://purl.org/dc/elements/1.1/"' in value
    assert value.endswith("<dc:subject>x</dc:subject></div>")
    assert Feed.from_string(feed.to_string()) == feed
