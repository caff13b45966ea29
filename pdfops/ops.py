"""Graphics operators of PDF content streams and their serialization."""

from __future__ import annotations

import math
import struct
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum, IntEnum
from functools import reduce
from typing import Any, Union

from .errors import PdfError
from .filters import StreamFilter, decode


class Name(str):
    """A PDF name object such as ``/Type``, held without the slash."""

    def __repr__(self) -> str:
        return f"Name({str.__repr__(self)})"


@dataclass(frozen=True)
class PdfString:
    """A PDF string object: a sequence of bytes."""

    data: bytes = b""

    def __post_init__(self) -> None:
        if isinstance(self.data, str):
            object.__setattr__(self, "data", self.data.encode("utf-8"))
        else:
            object.__setattr__(self, "data", bytes(self.data))

    def to_string_lossy(self) -> str:
        """Decode as UTF-16BE if a byte order mark is present, else UTF-8."""
        if self.data.startswith(b"\xfe\xff"):
            return self.data[2:].decode("utf-16-be", errors="replace")
        return self.data.decode("utf-8", errors="replace")


class Winding(Enum):
    """Rule used to decide what is inside a path."""

    EVEN_ODD = "EvenOdd"
    NON_ZERO = "NonZero"


class LineCap(IntEnum):
    BUTT = 0
    ROUND = 1
    SQUARE = 2


class LineJoin(IntEnum):
    MITER = 0
    ROUND = 1
    BEVEL = 2


class TextMode(IntEnum):
    FILL = 0
    STROKE = 1
    FILL_THEN_STROKE = 2
    INVISIBLE = 3
    FILL_AND_CLIP = 4
    STROKE_AND_CLIP = 5


class RenderingIntent(Enum):
    ABSOLUTE_COLORIMETRIC = "AbsoluteColorimetric"
    RELATIVE_COLORIMETRIC = "RelativeColorimetric"
    SATURATION = "Saturation"
    PERCEPTUAL = "Perceptual"

    @classmethod
    def from_str(cls, name: str) -> RenderingIntent | None:
        """Return the intent with this name, or None if it is unknown."""
        try:
            return cls(str(name))
        except ValueError:
            return None


# --- number and primitive formatting --------------------------------------

def _to_single(value: float) -> float:
    return struct.unpack("<f", struct.pack("<f", value))[0]


def format_number(value: float) -> str:
    """Format a number the shortest way that keeps its single-precision value.

    Whole numbers have no fractional part and no exponent is ever used.
    """
    if isinstance(value, bool):
        raise TypeError("booleans are not numbers")
    if isinstance(value, int):
        return str(value)
    number = float(value)
    if math.isnan(number):
        return "NaN"
    if math.isinf(number):
        return "inf" if number > 0 else "-inf"
    try:
        single = _to_single(number)
    except OverflowError:
        return format(Decimal(repr(number)), "f")
    text = repr(single)
    for digits in range(1, 10):
        candidate = f"{single:.{digits}g}"
        if _to_single(float(candidate)) == single:
            text = candidate
            break
    formatted = format(Decimal(text), "f")
    if "." in formatted:
        formatted = formatted.rstrip("0").rstrip(".")
    return formatted


_NAME_REGULAR = frozenset(range(0x21, 0x7F)) - frozenset(b"()<>[]{}/%#")


def _serialize_name(name: str) -> bytes:
    raw = str(name).encode("utf-8")
    return b"/" + b"".join(
        bytes([c]) if c in _NAME_REGULAR else b"#%02X" % c for c in raw
    )


def _serialize_string(data: bytes) -> bytes:
    out = bytearray(b"(")
    for c in data:
        if c in b"\\()":
            out += b"\\" + bytes([c])
        elif 0x20 <= c < 0x7F:
            out.append(c)
        else:
            out += b"\\%03o" % c
    out += b")"
    return bytes(out)


def serialize_primitive(value: Any) -> bytes:
    """Write a primitive value in PDF syntax."""
    if value is None:
        return b"null"
    if isinstance(value, bool):
        return b"true" if value else b"false"
    if isinstance(value, (int, float)):
        return format_number(value).encode("ascii")
    if isinstance(value, str):
        return _serialize_name(value)
    if isinstance(value, PdfString):
        return _serialize_string(value.data)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return _serialize_string(bytes(value))
    if isinstance(value, (list, tuple)):
        return b"[" + b" ".join(serialize_primitive(v) for v in value) + b"]"
    if isinstance(value, dict):
        body = b"".join(
            b" " + _serialize_name(key) + b" " + serialize_primitive(val)
            for key, val in value.items()
        )
        return b"<<" + body + b" >>"
    raise PdfError(f"cannot serialize {value!r}")


# --- geometry and colours -------------------------------------------------

@dataclass(frozen=True)
class Point:
    x: float = 0.0
    y: float = 0.0

    def __str__(self) -> str:
        return f"{format_number(self.x)} {format_number(self.y)}"


@dataclass(frozen=True)
class ViewRect:
    """A rectangle given by its lower-left corner and its size."""

    x: float
    y: float
    width: float
    height: float

    def __str__(self) -> str:
        return " ".join(format_number(v) for v in (self.x, self.y, self.width, self.height))


@dataclass(frozen=True)
class Matrix:
    a: float = 1.0
    b: float = 0.0
    c: float = 0.0
    d: float = 1.0
    e: float = 0.0
    f: float = 0.0

    def __str__(self) -> str:
        return " ".join(
            format_number(v) for v in (self.a, self.b, self.c, self.d, self.e, self.f)
        )


@dataclass(frozen=True)
class Rgb:
    red: float
    green: float
    blue: float

    def __str__(self) -> str:
        return " ".join(format_number(v) for v in (self.red, self.green, self.blue))


@dataclass(frozen=True)
class Cmyk:
    cyan: float
    magenta: float
    yellow: float
    key: float

    def __str__(self) -> str:
        return " ".join(
            format_number(v) for v in (self.cyan, self.magenta, self.yellow, self.key)
        )


@dataclass(frozen=True)
class OtherColor:
    """Colour operands for a colour space other than gray, RGB or CMYK."""

    args: tuple = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "args", tuple(self.args))


Color = Union[float, Rgb, Cmyk, OtherColor]


@dataclass
class InlineImageObject:
    """An image embedded directly in a content stream."""

    width: int
    height: int
    data: bytes
    filters: tuple = ()
    color_space: Any = None
    bits_per_component: int | None = None
    intent: RenderingIntent | None = None
    image_mask: bool = False
    decode: Any = None
    interpolate: bool = False
    other: dict = field(default_factory=dict)

    def decoded_data(self) -> bytes:
        """Return the image data with all its filters undone, in order."""
        return reduce(
            lambda data, stream_filter: decode(data, stream_filter),
            self.filters,
            bytes(self.data),
        )


# --- operators ------------------------------------------------------------

class Op:
    """Base class of all content stream operations."""

    __slots__ = ()


@dataclass(frozen=True)
class BeginMarkedContent(Op):
    tag: Name
    properties: Any = None


@dataclass(frozen=True)
class EndMarkedContent(Op):
    pass


@dataclass(frozen=True)
class MarkedContentPoint(Op):
    tag: Name
    properties: Any = None


@dataclass(frozen=True)
class Close(Op):
    pass


@dataclass(frozen=True)
class MoveTo(Op):
    p: Point


@dataclass(frozen=True)
class LineTo(Op):
    p: Point


@dataclass(frozen=True)
class CurveTo(Op):
    c1: Point
    c2: Point
    p: Point


@dataclass(frozen=True)
class Rect(Op):
    rect: ViewRect


@dataclass(frozen=True)
class EndPath(Op):
    pass


@dataclass(frozen=True)
class Stroke(Op):
    pass


@dataclass(frozen=True)
class FillAndStroke(Op):
    winding: Winding


@dataclass(frozen=True)
class Fill(Op):
    winding: Winding


@dataclass(frozen=True)
class Shade(Op):
    name: Name


@dataclass(frozen=True)
class Clip(Op):
    winding: Winding


@dataclass(frozen=True)
class Save(Op):
    pass


@dataclass(frozen=True)
class Restore(Op):
    pass


@dataclass(frozen=True)
class Transform(Op):
    matrix: Matrix


@dataclass(frozen=True)
class LineWidth(Op):
    width: float


@dataclass(frozen=True)
class Dash(Op):
    pattern: tuple
    phase: float

    def __post_init__(self) -> None:
        object.__setattr__(self, "pattern", tuple(self.pattern))


@dataclass(frozen=True)
class SetLineJoin(Op):
    join: LineJoin


@dataclass(frozen=True)
class SetLineCap(Op):
    cap: LineCap


@dataclass(frozen=True)
class MiterLimit(Op):
    limit: float


@dataclass(frozen=True)
class Flatness(Op):
    tolerance: float


@dataclass(frozen=True)
class GraphicsState(Op):
    name: Name


@dataclass(frozen=True)
class StrokeColor(Op):
    color: Color


@dataclass(frozen=True)
class FillColor(Op):
    color: Color


@dataclass(frozen=True)
class FillColorSpace(Op):
    name: Name


@dataclass(frozen=True)
class StrokeColorSpace(Op):
    name: Name


@dataclass(frozen=True)
class SetRenderingIntent(Op):
    intent: RenderingIntent


@dataclass(frozen=True)
class BeginText(Op):
    pass


@dataclass(frozen=True)
class EndText(Op):
    pass


@dataclass(frozen=True)
class CharSpacing(Op):
    char_space: float


@dataclass(frozen=True)
class WordSpacing(Op):
    word_space: float


@dataclass(frozen=True)
class TextScaling(Op):
    horiz_scale: float


@dataclass(frozen=True)
class Leading(Op):
    leading: float


@dataclass(frozen=True)
class TextFont(Op):
    name: Name
    size: float


@dataclass(frozen=True)
class TextRenderMode(Op):
    mode: TextMode


@dataclass(frozen=True)
class TextRise(Op):
    rise: float


@dataclass(frozen=True)
class MoveTextPosition(Op):
    translation: Point


@dataclass(frozen=True)
class SetTextMatrix(Op):
    matrix: Matrix


@dataclass(frozen=True)
class TextNewline(Op):
    pass


@dataclass(frozen=True)
class TextDraw(Op):
    text: PdfString


@dataclass(frozen=True)
class TextDrawAdjusted(Op):
    """Text with spacing adjustments: items are PdfString or numbers."""

    array: tuple

    def __post_init__(self) -> None:
        object.__setattr__(self, "array", tuple(self.array))


@dataclass(frozen=True)
class XObject(Op):
    name: Name


@dataclass(frozen=True)
class InlineImage(Op):
    image: InlineImageObject


# --- serialization --------------------------------------------------------

def _n(value: float) -> bytes:
    return format_number(value).encode("ascii")


def _s(value: object) -> bytes:
    return str(value).encode("ascii")


def _color_line(color: Color, gray: bytes, rgb: bytes, cmyk: bytes, other: bytes) -> bytes:
    match color:
        case Rgb():
            return _s(color) + b" " + rgb
        case Cmyk():
            return _s(color) + b" " + cmyk
        case OtherColor(args):
            return b"".join(serialize_primitive(arg) + b" " for arg in args) + other
        case _:
            return _n(color) + b" " + gray


def serialize_ops(ops) -> bytes:
    """Write a sequence of operations as content stream bytes.

    Pairs that have a combined operator (``s``, ``b``, ``b*``, ``'``, ``"``,
    ``TD``) are written with it, and curves use ``v`` or ``y`` where they can.
    """
    ops = list(ops)
    lines: list[bytes] = []
    current_point: Point | None = None
    index = 0
    while index < len(ops):
        op = ops[index]
        rest = ops[index + 1:]
        advance = 1
        match op:
            case BeginMarkedContent(tag, None):
                lines.append(_serialize_name(tag) + b" BMC")
            case BeginMarkedContent(tag, properties):
                lines.append(_serialize_name(tag) + b" " + serialize_primitive(properties) + b" BDC")
            case MarkedContentPoint(tag, None):
                lines.append(_serialize_name(tag) + b" MP")
            case MarkedContentPoint(tag, properties):
                lines.append(_serialize_name(tag) + b" " + serialize_primitive(properties) + b" DP")
            case EndMarkedContent():
                lines.append(b"EMC")
            case Close():
                match rest[:1]:
                    case [Stroke()]:
                        lines.append(b"s")
                        advance += 1
                    case [FillAndStroke(Winding.NON_ZERO)]:
                        lines.append(b"b")
                        advance += 1
                    case [FillAndStroke(Winding.EVEN_ODD)]:
                        lines.append(b"b*")
                        advance += 1
                    case _:
                        lines.append(b"h")
            case MoveTo(p):
                lines.append(_s(p) + b" m")
                current_point = p
            case LineTo(p):
                lines.append(_s(p) + b" l")
                current_point = p
            case CurveTo(c1, c2, p):
                if c1 == current_point:
                    lines.append(_s(c2) + b" " + _s(p) + b" v")
                elif c2 == p:
                    lines.append(_s(c1) + b" " + _s(p) + b" y")
                else:
                    lines.append(_s(c1) + b" " + _s(c2) + b" " + _s(p) + b" c")
                current_point = p
            case Rect(rect):
                lines.append(_s(rect) + b" re")
            case EndPath():
                lines.append(b"n")
            case Stroke():
                lines.append(b"S")
            case FillAndStroke(winding):
                lines.append(b"B" if winding == Winding.NON_ZERO else b"B*")
            case Fill(winding):
                lines.append(b"f" if winding == Winding.NON_ZERO else b"f*")
            case Shade(name):
                lines.append(_serialize_name(name) + b" sh")
            case Clip(winding):
                lines.append(b"W" if winding == Winding.NON_ZERO else b"W*")
            case Save():
                lines.append(b"q")
            case Restore():
                lines.append(b"Q")
            case Transform(matrix):
                lines.append(_s(matrix) + b" cm")
            case LineWidth(width):
                lines.append(_n(width) + b" w")
            case Dash(pattern, phase):
                lines.append(b"[" + b" ".join(_n(v) for v in pattern) + b"] " + _n(phase) + b" d")
            case SetLineJoin(join):
                lines.append(_s(int(join)) + b" j")
            case SetLineCap(cap):
                lines.append(_s(int(cap)) + b" J")
            case MiterLimit(limit):
                lines.append(_n(limit) + b" M")
            case Flatness(tolerance):
                lines.append(_n(tolerance) + b" i")
            case GraphicsState(name):
                lines.append(_serialize_name(name) + b" gs")
            case StrokeColor(color):
                lines.append(_color_line(color, b"G", b"RG", b"K", b"SCN"))
            case FillColor(color):
                lines.append(_color_line(color, b"g", b"rg", b"k", b"scn"))
            case FillColorSpace(name):
                lines.append(_serialize_name(name) + b" cs")
            case StrokeColorSpace(name):
                lines.append(_serialize_name(name) + b" CS")
            case SetRenderingIntent(intent):
                lines.append(intent.value.encode("ascii") + b" ri")
            case BeginText():
                lines.append(b"BT")
            case EndText():
                lines.append(b"ET")
            case CharSpacing(char_space):
                lines.append(_n(char_space) + b" Tc")
            case WordSpacing(word_space):
                match rest[:3]:
                    case [CharSpacing(char_space), TextNewline(), TextDraw(text)]:
                        lines.append(
                            _n(word_space) + b" " + _n(char_space) + b" "
                            + serialize_primitive(text) + b' "'
                        )
                        advance += 3
                    case _:
                        lines.append(_n(word_space) + b" Tw")
            case TextScaling(horiz_scale):
                lines.append(_n(horiz_scale) + b" Tz")
            case Leading(leading):
                match rest[:1]:
                    case [MoveTextPosition(translation)] if leading == -translation.x:
                        lines.append(_n(translation.x) + b" " + _n(translation.y) + b" TD")
                        advance += 1
                    case _:
                        lines.append(_n(leading) + b" TL")
            case TextFont(name, size):
                lines.append(_serialize_name(name) + b" " + _n(size) + b" Tf")
            case TextRenderMode(mode):
                lines.append(_s(int(mode)) + b" Tr")
            case TextRise(rise):
                lines.append(_n(rise) + b" Ts")
            case MoveTextPosition(translation):
                lines.append(_n(translation.x) + b" " + _n(translation.y) + b" Td")
            case SetTextMatrix(matrix):
                lines.append(_s(matrix) + b" Tm")
            case TextNewline():
                match rest[:1]:
                    case [TextDraw(text)]:
                        lines.append(serialize_primitive(text) + b" '")
                        advance += 1
                    case _:
                        lines.append(b"T*")
            case TextDraw(text):
                lines.append(serialize_primitive(text) + b" Tj")
            case TextDrawAdjusted(array):
                lines.append(
                    b"[" + b" ".join(serialize_primitive(item) for item in array) + b"] TJ"
                )
            case InlineImage():
                raise PdfError("Unimplemented: serializing inline images")
            case XObject(name):
                lines.append(_serialize_name(name) + b" Do")
            case _:
                raise PdfError(f"not an operation: {op!r}")
        index += advance
    return b"".join(line + b"\n" for line in lines)