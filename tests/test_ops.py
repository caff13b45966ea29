import struct

import pytest

from pdfops.errors import PdfError
from pdfops.filters import FilterKind, StreamFilter, encode_85, encode_hex
from pdfops.ops import (
    BeginMarkedContent,
    CharSpacing,
    Close,
    Cmyk,
    CurveTo,
    Dash,
    FillAndStroke,
    FillColor,
    InlineImage,
    InlineImageObject,
    Leading,
    LineCap,
    LineJoin,
    LineTo,
    Matrix,
    MoveTextPosition,
    MoveTo,
    Name,
    OtherColor,
    PdfString,
    Point,
    RenderingIntent,
    Rgb,
    SetLineCap,
    SetLineJoin,
    Stroke,
    StrokeColor,
    TextDraw,
    TextDrawAdjusted,
    TextMode,
    TextNewline,
    TextRenderMode,
    Winding,
    WordSpacing,
    format_number,
    serialize_ops,
    serialize_primitive,
)


def _single(value):
    return struct.unpack("<f", struct.pack("<f", value))[0]


def test_format_number_whole_values_have_no_fraction():
    assert format_number(100.0) == "100"
    assert format_number(200) == "200"


@pytest.mark.parametrize("value", [0.1, 1 / 3, 123.456, 1e-10, 2.5e7, -0.75])
def test_format_number_keeps_single_precision_value(value):
    text = format_number(value)
    assert "e" not in text.lower()
    assert _single(float(text)) == _single(value)


def test_square_path_from_example():
    ops = [
        MoveTo(Point(100.0, 100.0)),
        LineTo(Point(100.0, 200.0)),
        LineTo(Point(200.0, 200.0)),
        LineTo(Point(200.0, 100.0)),
        Close(),
        Stroke(),
    ]
    assert serialize_ops(ops) == b"100 100 m\n100 200 l\n200 200 l\n200 100 l\ns\n"


def test_close_combinations():
    assert serialize_ops([Close(), FillAndStroke(Winding.NON_ZERO)]) == b"b\n"
    assert serialize_ops([Close(), FillAndStroke(Winding.EVEN_ODD)]) == b"b*\n"
    assert serialize_ops([Close()]) == b"h\n"


def test_curve_from_current_point_uses_v():
    ops = [MoveTo(Point(0, 0)), CurveTo(Point(0, 0), Point(1, 1), Point(2, 0))]
    last = serialize_ops(ops).splitlines()[-1]
    assert last.split() == [b"1", b"1", b"2", b"0", b"v"]


def test_curve_ending_at_second_control_uses_y():
    ops = [CurveTo(Point(5, 5), Point(2, 0), Point(2, 0))]
    assert serialize_ops(ops).split() == [b"5", b"5", b"2", b"0", b"y"]


def test_general_curve_uses_c():
    ops = [CurveTo(Point(1, 2), Point(3, 4), Point(5, 6))]
    assert serialize_ops(ops).split()[-1] == b"c"
    assert len(serialize_ops(ops).split()) == 7


def test_word_spacing_with_text_uses_quote_operator():
    ops = [WordSpacing(1), CharSpacing(2), TextNewline(), TextDraw(PdfString(b"hi"))]
    assert serialize_ops(ops) == b'1 2 (hi) "\n'
    assert serialize_ops([WordSpacing(1.5)]) == b"1.5 Tw\n"


def test_newline_with_text_uses_apostrophe():
    assert serialize_ops([TextNewline(), TextDraw(PdfString(b"x"))]) == b"(x) '\n"
    assert serialize_ops([TextNewline()]) == b"T*\n"


def test_leading_pairs_with_move_only_when_matching_x():
    combined = serialize_ops([Leading(-3), MoveTextPosition(Point(3, 7))])
    assert combined == b"3 7 TD\n"
    separate = serialize_ops([Leading(-7), MoveTextPosition(Point(3, 7))]).splitlines()
    assert [line.split()[-1] for line in separate] == [b"TL", b"Td"]


def test_colors():
    assert serialize_ops([FillColor(Rgb(1, 0, 0))]) == b"1 0 0 rg\n"
    assert serialize_ops([StrokeColor(0.5)]) == b"0.5 G\n"
    assert serialize_ops([FillColor(OtherColor([Name("P1")]))]) == b"/P1 scn\n"
    assert serialize_ops([StrokeColor(Cmyk(0, 0, 0, 1))]).split()[-1] == b"K"


def test_enum_operators_write_their_numbers():
    assert serialize_ops([SetLineJoin(LineJoin.ROUND)]) == b"1 j\n"
    assert serialize_ops([SetLineCap(LineCap.SQUARE)]) == b"2 J\n"
    assert serialize_ops([TextRenderMode(TextMode.INVISIBLE)]) == b"3 Tr\n"


def test_dash_and_marked_content():
    assert serialize_ops([Dash([3, 2], 0)]) == b"[3 2] 0 d\n"
    ops = [BeginMarkedContent(Name("Span"), {"MCID": 0})]
    assert serialize_ops(ops) == b"/Span << /MCID 0 >> BDC\n"


def test_text_draw_adjusted():
    op = TextDrawAdjusted([PdfString(b"A"), -120, PdfString(b"B")])
    assert serialize_ops([op]) == b"[(A) -120 (B)] TJ\n"


def test_inline_image_cannot_be_serialized():
    image = InlineImageObject(width=1, height=1, data=b"\x00")
    with pytest.raises(PdfError):
        serialize_ops([InlineImage(image)])


def test_serialize_primitive_escapes():
    assert serialize_primitive(Name("A B")) == b"/A#20B"
    assert serialize_primitive(PdfString(b"a(b)\\")) == b"(a\\(b\\)\\\\)"
    assert serialize_primitive([1, True, None, 0.5]) == b"[1 true null 0.5]"


def test_serialize_primitive_rejects_unknown():
    with pytest.raises(PdfError):
        serialize_primitive(object())


def test_rendering_intent_from_str():
    assert RenderingIntent.from_str("Perceptual") is RenderingIntent.PERCEPTUAL
    assert RenderingIntent.from_str("Bogus") is None


def test_matrix_default_is_identity():
    assert Matrix() == Matrix(1, 0, 0, 1, 0, 0)
    assert str(Matrix()).split() == ["1", "0", "0", "1", "0", "0"]


def test_inline_image_decoded_data_applies_filters_in_order():
    raw = b"raw image bytes"
    image = InlineImageObject(
        width=3,
        height=5,
        data=encode_85(encode_hex(raw)),
        filters=(StreamFilter(FilterKind.ASCII_85), StreamFilter(FilterKind.ASCII_HEX)),
    )
    assert image.decoded_data() == raw


def test_pdf_string_lossy_decoding():
    assert PdfString("héllo").to_string_lossy() == "héllo"
    utf16 = b"\xfe\xff" + "ok".encode("utf-16-be")
    assert PdfString(utf16).to_string_lossy() == "ok"