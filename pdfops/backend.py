"""Locating the header and cross-reference offset inside raw PDF bytes."""

from __future__ import annotations

from .errors import ContentReadPastBoundaryError, PdfEOFError, PdfError

MAX_ID = 1_000_000

_HEADER = b"%PDF-"
_HEADER_SEARCH_LIMIT = 1024
_WHITESPACE = b"\x00\t\n\x0c\r "
_DELIMITERS = b"()<>[]{}/%"


def to_range(start: int | None, end: int | None, length: int) -> tuple[int, int]:
    """Resolve optional bounds against a container length.

    Returns ``(start, end)`` with ``end`` exclusive, or raises
    ContentReadPastBoundaryError when the bounds do not fit.
    """
    lo = 0 if start is None else start
    hi = length if end is None else end
    if 0 <= lo <= hi <= length:
        return lo, hi
    raise ContentReadPastBoundaryError()


def locate_start_offset(data: bytes) -> int:
    """Return the offset of the ``%PDF-`` header within the first kilobyte."""
    lo, hi = to_range(None, min(_HEADER_SEARCH_LIMIT, len(data)), len(data))
    pos = bytes(data[lo:hi]).find(_HEADER)
    if pos < 0:
        raise PdfError("file header is missing")
    return pos


def _next_token(data: bytes, pos: int) -> bytes:
    while pos < len(data) and data[pos] in _WHITESPACE:
        pos += 1
    if pos >= len(data):
        raise PdfEOFError()
    end = pos
    while end < len(data) and data[end] not in _WHITESPACE and data[end] not in _DELIMITERS:
        end += 1
    if end == pos:
        end = pos + 1
    return bytes(data[pos:end])


def locate_xref_offset(data: bytes) -> int:
    """Return the value following the last ``startxref`` keyword."""
    marker = b"startxref"
    pos = bytes(data).rfind(marker)
    if pos < 0:
        raise PdfError("'startxref' not found.")
    token = _next_token(data, pos + len(marker))
    if not token.isdigit():
        raise PdfError(
            f"Error parsing from string, caused by\n  invalid digit in {token!r}"
        )
    return int(token)