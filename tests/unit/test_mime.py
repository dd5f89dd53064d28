"""Tests for MIME parsing and snippet extraction."""

from fakes import make_message

from mailquery.utils.mime import (
    SNIPPET_LENGTH,
    collapse_whitespace,
    extract_plain_text,
    make_snippet,
    parse_message,
)


def test_plain_text_is_extracted_and_collapsed():
    message = parse_message(make_message(body="Hi there,\n\n  see   you soon."))

    assert make_snippet(extract_plain_text(message)) == "Hi there, see you soon."


def test_plain_alternative_is_preferred_over_html():
    source = make_message(body="plain version", html="<p>html version</p>")

    assert extract_plain_text(parse_message(source)).strip() == "plain version"


def test_html_only_message_yields_empty_text():
    source = make_message(body=None, html="<p>only html</p>")

    assert extract_plain_text(parse_message(source)) == ""


def test_unknown_charset_is_decoded_leniently():
    source = (
        b"From: a@x.com\r\n"
        b'Content-Type: text/plain; charset="x-unknown-charset"\r\n'
        b"\r\n"
        b"caf\xc3\xa9 ok\r\n"
    )

    text = extract_plain_text(parse_message(source))

    assert "ok" in text


def test_snippet_is_truncated():
    text = "word " * 100

    snippet = make_snippet(text)

    assert len(snippet) == SNIPPET_LENGTH
    assert make_snippet(text, length=4) == "word"


def test_collapse_whitespace():
    assert collapse_whitespace("  a\t\tb \n c  ") == "a b c"
