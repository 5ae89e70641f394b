import pytest

from toolkit.sniff import detect_content_type


@pytest.mark.parametrize(
    ("data", "expected"),
    [
        (b"\x89PNG\r\n\x1a\n" + bytes(64), "image/png"),
        (b"\xff\xd8\xff\xe0" + bytes(64), "image/jpeg"),
        (b"GIF89a" + bytes(16), "image/gif"),
        (b"BM" + bytes(16), "image/bmp"),
        (b"RIFF\x10\x3e\x00\x00WEBPVP8 " + bytes(64), "image/webp"),
        (b"RIFF$\x08\x00\x00WAVEfmt " + bytes(64), "audio/wave"),
        (b"RIFF\xf4\x1c\x02\x00AVI LIST" + bytes(64), "video/avi"),
        (b"FORM\x00\x01\x3a\x1eAIFFCOMM" + bytes(64), "audio/aiff"),
        (b"\xfe\xff\x00h\x00i", "text/plain; charset=utf-16be"),
        (b"\xff\xfeh\x00i\x00", "text/plain; charset=utf-16le"),
        (b"\xff\xfe", "text/plain; charset=utf-8"),
        (bytes(34) + b"LP" + bytes(16), "application/vnd.ms-fontobject"),
        (b"wOF2" + bytes(16), "font/woff2"),
        (b"%PDF-1.7\n", "application/pdf"),
        (b"PK\x03\x04" + bytes(16), "application/zip"),
        (b"\x1f\x8b\x08" + bytes(16), "application/x-gzip"),
        (b"ID3\x04" + bytes(16), "audio/mpeg"),
        (b"\x00\x00\x00\x18ftypmp42\x00\x00\x00\x00mp42isom", "video/mp4"),
        (b"  \n<!DOCTYPE html><html></html>", "text/html; charset=utf-8"),
        (b"<p>hello</p>", "text/html; charset=utf-8"),
        (b"<?xml version='1.0'?><a/>", "text/xml; charset=utf-8"),
        (b"\xef\xbb\xbfhello", "text/plain; charset=utf-8"),
        (b"just some text\n", "text/plain; charset=utf-8"),
        (b"\x00\x01\x02\x03binary", "application/octet-stream"),
        (b"", "text/plain; charset=utf-8"),
    ],
)
def test_detect_content_type(data: bytes, expected: str) -> None:
    assert detect_content_type(data) == expected


def test_only_first_512_bytes_are_inspected() -> None:
    data = b"a" * 512 + b"\x00"
    assert detect_content_type(data) == "text/plain; charset=utf-8"


def test_html_marker_needs_terminator() -> None:
    assert detect_content_type(b"<pre-formatted text") == "text/plain; charset=utf-8"
