"""Magic-byte content sniffing for uploaded files.

Implements the signature tables of the WHATWG MIME sniffing algorithm in the
same order browsers and most HTTP stacks apply them. Only the first
``SNIFF_LENGTH`` bytes are ever inspected.
"""

SNIFF_LENGTH = 512
DEFAULT_CONTENT_TYPE = "application/octet-stream"
TEXT_CONTENT_TYPE = "text/plain; charset=utf-8"

_WHITESPACE = b"\t\n\x0c\r "

# Markers matched case-insensitively after leading whitespace; each must be
# followed by a tag-terminating byte (space or '>').
_HTML_MARKERS = (
    b"<!DOCTYPE HTML",
    b"<HTML",
    b"<HEAD",
    b"<SCRIPT",
    b"<IFRAME",
    b"<H1",
    b"<DIV",
    b"<FONT",
    b"<TABLE",
    b"<A",
    b"<STYLE",
    b"<TITLE",
    b"<B",
    b"<BODY",
    b"<BR",
    b"<P",
    b"<!--",
)

# RIFF/FORM containers: the 4-byte chunk size after the tag is ignored.
_CHUNK_MASK = b"\xff\xff\xff\xff\x00\x00\x00\x00\xff\xff\xff\xff"

# (pattern, mask or None for an exact prefix, skip leading whitespace, content type)
_SIGNATURES = (
    (b"<?xml", b"\xff\xff\xff\xff\xff", True, "text/xml; charset=utf-8"),
    (b"%PDF-", None, False, "application/pdf"),
    (b"%!PS-Adobe-", None, False, "application/postscript"),
    (b"\xfe\xff\x00\x00", b"\xff\xff\x00\x00", False, "text/plain; charset=utf-16be"),
    (b"\xff\xfe\x00\x00", b"\xff\xff\x00\x00", False, "text/plain; charset=utf-16le"),
    (b"\xef\xbb\xbf\x00", b"\xff\xff\xff\x00", False, "text/plain; charset=utf-8"),
    (b"\x00\x00\x01\x00", None, False, "image/x-icon"),
    (b"\x00\x00\x02\x00", None, False, "image/x-icon"),
    (b"BM", None, False, "image/bmp"),
    (b"GIF87a", None, False, "image/gif"),
    (b"GIF89a", None, False, "image/gif"),
    (
        b"RIFF\x00\x00\x00\x00WEBPVP",
        b"\xff\xff\xff\xff\x00\x00\x00\x00\xff\xff\xff\xff\xff\xff",
        False,
        "image/webp",
    ),
    (b"\x89PNG\r\n\x1a\n", None, False, "image/png"),
    (b"\xff\xd8\xff", None, False, "image/jpeg"),
    (b"FORM\x00\x00\x00\x00AIFF", _CHUNK_MASK, False, "audio/aiff"),
    (b"ID3", None, False, "audio/mpeg"),
    (b"OggS\x00", None, False, "application/ogg"),
    (b"MThd\x00\x00\x00\x06", None, False, "audio/midi"),
    (b"RIFF\x00\x00\x00\x00AVI ", _CHUNK_MASK, False, "video/avi"),
    (b"RIFF\x00\x00\x00\x00WAVE", _CHUNK_MASK, False, "audio/wave"),
)

# Checked after the MP4 box scan.
_LATE_SIGNATURES = (
    (b"\x1a\x45\xdf\xa3", None, False, "video/webm"),
    (bytes(34) + b"LP", bytes(34) + b"\xff\xff", False, "application/vnd.ms-fontobject"),
    (b"OTTO", None, False, "font/otf"),
    (b"\x00\x01\x00\x00", None, False, "font/ttf"),
    (b"ttcf", None, False, "font/collection"),
    (b"wOFF", None, False, "font/woff"),
    (b"wOF2", None, False, "font/woff2"),
    (b"\x1f\x8b\x08", None, False, "application/x-gzip"),
    (b"PK\x03\x04", None, False, "application/zip"),
    (b"Rar!\x1a\x07\x00", None, False, "application/x-rar-compressed"),
    (b"Rar!\x1a\x07\x01\x00", None, False, "application/x-rar-compressed"),
    (b"\x00asm", None, False, "application/wasm"),
)

_BINARY_BYTES = frozenset(list(range(0x00, 0x09)) + [0x0B] + list(range(0x0E, 0x1B)) + list(range(0x1C, 0x20)))


def _skip_whitespace(data: bytes) -> bytes:
    return data.lstrip(_WHITESPACE)


def _matches_html(data: bytes) -> bool:
    data = _skip_whitespace(data)
    for marker in _HTML_MARKERS:
        if len(data) < len(marker) + 1:
            continue
        if data[: len(marker)].upper() != marker:
            continue
        if data[len(marker)] in b" >":
            return True
    return False


def _matches(data: bytes, pattern: bytes, mask: bytes | None, skip_whitespace: bool) -> bool:
    if skip_whitespace:
        data = _skip_whitespace(data)
    if mask is None:
        return data.startswith(pattern)
    if len(data) < len(pattern):
        return False
    return all(data[i] & mask[i] == pattern[i] for i in range(len(pattern)))


def _first_match(data: bytes, table) -> str | None:
    for pattern, mask, skip_whitespace, content_type in table:
        if _matches(data, pattern, mask, skip_whitespace):
            return content_type
    return None


def _matches_mp4(data: bytes) -> bool:
    if len(data) < 12:
        return False
    box_size = int.from_bytes(data[:4], "big")
    if box_size % 4 != 0 or len(data) < box_size:
        return False
    if data[4:8] != b"ftyp":
        return False
    for start in range(8, box_size, 4):
        if start == 12:
            # minor version, not a brand
            continue
        if data[start : start + 3] == b"mp4":
            return True
    return False


def detect_content_type(data: bytes) -> str:
    """Return the sniffed MIME type of ``data``; never raises."""
    data = data[:SNIFF_LENGTH]

    if _matches_html(data):
        return "text/html; charset=utf-8"
    content_type = _first_match(data, _SIGNATURES)
    if content_type:
        return content_type
    if _matches_mp4(data):
        return "video/mp4"
    content_type = _first_match(data, _LATE_SIGNATURES)
    if content_type:
        return content_type

    if any(byte in _BINARY_BYTES for byte in data):
        return DEFAULT_CONTENT_TYPE
    return TEXT_CONTENT_TYPE
