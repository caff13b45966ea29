import pytest

from pdfops.backend import locate_start_offset, locate_xref_offset, to_range
from pdfops.errors import ContentReadPastBoundaryError, PdfEOFError, PdfError


def test_to_range_full():
    assert to_range(None, None, 10) == (0, 10)


def test_to_range_partial():
    assert to_range(3, None, 10) == (3, 10)
    assert to_range(None, 4, 10) == (0, 4)
    assert to_range(2, 5, 10) == (2, 5)
    assert to_range(10, None, 10) == (10, 10)


@pytest.mark.parametrize("start,end", [(None, 11), (11, None), (5, 3), (2, 11)])
def test_to_range_out_of_bounds(start, end):
    with pytest.raises(ContentReadPastBoundaryError):
        to_range(start, end, 10)


def test_start_offset_at_beginning():
    assert locate_start_offset(b"%PDF-1.7\n") == 0


def test_start_offset_after_garbage():
    data = b"junk" + b"%PDF-1.4\n"
    assert locate_start_offset(data) == len(b"junk")


def test_start_offset_missing():
    with pytest.raises(PdfError):
        locate_start_offset(b"not a pdf at all")


def test_start_offset_beyond_first_kilobyte():
    with pytest.raises(PdfError):
        locate_start_offset(b" " * 2000 + b"%PDF-1.7")


def test_xref_offset():
    data = b"%PDF-1.7\n...\nstartxref\n1234\n%%EOF"
    assert locate_xref_offset(data) == 1234


def test_xref_offset_uses_last():
    data = b"startxref\n5\n%%EOF\nmore\nstartxref\n99\n%%EOF\n"
    assert locate_xref_offset(data) == 99


def test_xref_offset_missing():
    with pytest.raises(PdfError):
        locate_xref_offset(b"%PDF-1.7\n%%EOF")


def test_xref_offset_not_a_number():
    with pytest.raises(PdfError):
        locate_xref_offset(b"startxref\nabc\n%%EOF")


def test_xref_offset_at_end_is_eof():
    with pytest.raises(PdfEOFError) as info:
        locate_xref_offset(b"%PDF-1.7 startxref  \n")
    assert info.value.is_eof()