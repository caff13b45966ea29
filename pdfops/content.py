"""Parsing and building PDF content streams."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from typing import Any

from .errors import (
    ContentReadPastBoundaryError,
    MissingEntryError,
    NoOpArgError,
    PdfEOFError,
    PdfError,
    UnexpectedLexemeError,
    UnexpectedPrimitiveError,
)
from .filters import StreamFilter, decode_hex
from .ops import (
    BeginMarkedContent,
    BeginText,
    CharSpacing,
    Clip,
    Close,
    Cmyk,
    CurveTo,
    Dash,
    EndMarkedContent,
    EndPath,
    EndText,
    Fill,
    FillAndStroke,
    FillColor,
    FillColorSpace,
    Flatness,
    GraphicsState,
    InlineImage,
    InlineImageObject,
    Leading,
    LineCap,
    LineJoin,
    LineTo,
    LineWidth,
    MarkedContentPoint,
    Matrix,
    MiterLimit,
    MoveTextPosition,
    MoveTo,
    Name,
    Op,
    OtherColor,
    PdfString,
    Point,
    Rect,
    RenderingIntent,
    Restore,
    Rgb,
    Save,
    SetLineCap,
    SetLineJoin,
    SetRenderingIntent,
    SetTextMatrix,
    Stroke,
    StrokeColor,
    StrokeColorSpace,
    TextDraw,
    TextDrawAdjusted,
    TextFont,
    TextMode,
    TextNewline,
    TextRenderMode,
    TextRise,
    TextScaling,
    Transform,
    ViewRect,
    Winding,
    WordSpacing,
    XObject,
    serialize_ops,
)

_log = logging.getLogger(__name__)

_WHITESPACE = frozenset(b"\x00\t\n\x0c\r ")
_DELIMITERS = frozenset(b"()<>[]{}/%")
_NUMBER = re.compile(rb"[+-]?(?:\d+\.?\d*|\.\d+)\Z")
_ESCAPES = {
    ord("n"): 0x0A,
    ord("r"): 0x0D,
    ord("t"): 0x09,
    ord("b"): 0x08,
    ord("f"): 0x0C,
    ord("("): 0x28,
    ord(")"): 0x29,
    ord("\\"): 0x5C,
}
_OCTAL = frozenset(b"01234567")
_HEX_DIGITS = frozenset(b"0123456789abcdefABCDEF")

_IMAGE_KEYS = {
    "BPC": "BitsPerComponent",
    "CS": "ColorSpace",
    "D": "Decode",
    "DP": "DecodeParms",
    "F": "Filter",
    "H": "Height",
    "IM": "ImageMask",
    "I": "Interpolate",
    "W": "Width",
}
_COLOR_SPACES = {
    "G": "DeviceGray",
    "RGB": "DeviceRGB",
    "CMYK": "DeviceCMYK",
    "I": "Indexed",
}
_FILTERS = {
    "AHx": "ASCIIHexDecode",
    "A85": "ASCII85Decode",
    "LZW": "LZWDecode",
    "Fl": "FlateDecode",
    "RL": "RunLengthDecode",
    "CCF": "CCITTFaxDecode",
    "DCT": "DCTDecode",
}


def _kind(value: Any) -> str:
    if value is None:
        return "Null"
    if isinstance(value, bool):
        return "Boolean"
    if isinstance(value, int):
        return "Integer"
    if isinstance(value, float):
        return "Number"
    if isinstance(value, Name):
        return "Name"
    if isinstance(value, PdfString):
        return "String"
    if isinstance(value, list):
        return "Array"
    if isinstance(value, dict):
        return "Dictionary"
    return type(value).__name__


class _Lexer:
    """Splits content stream bytes into tokens."""

    def __init__(self, data: bytes) -> None:
        self.data = bytes(data)
        self.pos = 0

    def _skip_space(self) -> None:
        data = self.data
        size = len(data)
        while self.pos < size:
            c = data[self.pos]
            if c in _WHITESPACE:
                self.pos += 1
            elif c == 0x25:  # '%' starts a comment running to the end of the line
                while self.pos < size and data[self.pos] not in b"\r\n":
                    self.pos += 1
            else:
                break

    def next(self) -> bytes:
        self._skip_space()
        data = self.data
        if self.pos >= len(data):
            raise PdfEOFError()
        start = self.pos
        if data[start] in _DELIMITERS:
            self.pos += 2 if data[start:start + 2] in (b"<<", b">>") else 1
        else:
            end = start
            while end < len(data) and data[end] not in _WHITESPACE and data[end] not in _DELIMITERS:
                end += 1
            self.pos = end
        return data[start:self.pos]

    def peek(self) -> bytes:
        pos = self.pos
        try:
            return self.next()
        finally:
            self.pos = pos

    def next_expect(self, word: bytes) -> None:
        start = self.pos
        token = self.next()
        if token != word:
            raise UnexpectedLexemeError(start, token.decode("latin-1"), word.decode("latin-1"))

    def seek_substr(self, sub: bytes) -> bool:
        found = self.data.find(sub, self.pos)
        if found < 0:
            return False
        self.pos = found + len(sub)
        return True

    def read_name_body(self) -> str:
        data = self.data
        out = bytearray()
        while self.pos < len(data):
            c = data[self.pos]
            if c in _WHITESPACE or c in _DELIMITERS:
                break
            pair = data[self.pos + 1:self.pos + 3]
            if c == 0x23 and len(pair) == 2 and all(d in _HEX_DIGITS for d in pair):
                out.append(int(pair, 16))
                self.pos += 3
            else:
                out.append(c)
                self.pos += 1
        return out.decode("utf-8", errors="replace")

    def read_literal_string(self) -> bytes:
        data = self.data
        out = bytearray()
        depth = 1
        while True:
            if self.pos >= len(data):
                raise PdfEOFError()
            c = data[self.pos]
            self.pos += 1
            if c == 0x5C:
                if self.pos >= len(data):
                    raise PdfEOFError()
                e = data[self.pos]
                self.pos += 1
                if e in _ESCAPES:
                    out.append(_ESCAPES[e])
                elif e in _OCTAL:
                    digits = bytes([e])
                    while len(digits) < 3 and self.pos < len(data) and data[self.pos] in _OCTAL:
                        digits += data[self.pos:self.pos + 1]
                        self.pos += 1
                    out.append(int(digits, 8) & 0xFF)
                elif e == 0x0D:
                    if data[self.pos:self.pos + 1] == b"\n":
                        self.pos += 1
                elif e != 0x0A:
                    out.append(e)
            elif c == 0x28:
                depth += 1
                out.append(c)
            elif c == 0x29:
                depth -= 1
                if depth == 0:
                    return bytes(out)
                out.append(c)
            else:
                out.append(c)

    def read_hex_string(self) -> bytes:
        end = self.data.find(b">", self.pos)
        if end < 0:
            raise PdfEOFError()
        body = self.data[self.pos:end]
        self.pos = end + 1
        return decode_hex(body)


def _parse_object(lexer: _Lexer) -> Any:
    start = lexer.pos
    token = lexer.next()
    if token == b"/":
        return Name(lexer.read_name_body())
    if token == b"(":
        return PdfString(lexer.read_literal_string())
    if token == b"<":
        return PdfString(lexer.read_hex_string())
    if token == b"[":
        items = []
        while lexer.peek() != b"]":
            items.append(_parse_object(lexer))
        lexer.next()
        return items
    if token == b"<<":
        entries: dict[str, Any] = {}
        while lexer.peek() != b">>":
            key = _parse_object(lexer)
            if not isinstance(key, Name):
                raise UnexpectedPrimitiveError("Name", _kind(key))
            entries[key] = _parse_object(lexer)
        lexer.next()
        return entries
    if token == b"true":
        return True
    if token == b"false":
        return False
    if token == b"null":
        return None
    if _NUMBER.match(token):
        return float(token) if b"." in token else int(token)
    raise PdfError(
        f"Expecting an object, encountered {token.decode('latin-1')} at pos {start}."
    )


# --- operand helpers ------------------------------------------------------

def _take(args: Iterator[Any]) -> Any:
    try:
        return next(args)
    except StopIteration:
        raise NoOpArgError() from None


def _as_number(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise UnexpectedPrimitiveError("Number", _kind(value))
    return float(value)


def _as_integer(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise UnexpectedPrimitiveError("Integer", _kind(value))
    return value


def _as_name(value: Any) -> Name:
    if not isinstance(value, Name):
        raise UnexpectedPrimitiveError("Name", _kind(value))
    return value


def _as_bool(value: Any) -> bool:
    if not isinstance(value, bool):
        raise UnexpectedPrimitiveError("Boolean", _kind(value))
    return value


def _as_u32(value: Any) -> int:
    number = _as_integer(value)
    if not 0 <= number <= 0xFFFFFFFF:
        raise PdfError(f"{number} does not fit in an unsigned 32-bit integer")
    return number


def _name(args: Iterator[Any]) -> Name:
    return _as_name(_take(args))


def _number(args: Iterator[Any]) -> float:
    return _as_number(_take(args))


def _integer(args: Iterator[Any]) -> int:
    return _as_integer(_take(args))


def _string(args: Iterator[Any]) -> PdfString:
    value = _take(args)
    if not isinstance(value, PdfString):
        raise UnexpectedPrimitiveError("String", _kind(value))
    return value


def _point(args: Iterator[Any]) -> Point:
    x = _number(args)
    y = _number(args)
    return Point(x, y)


def _array(args: Iterator[Any]) -> list:
    value = next(args, _MISSING)
    if value is _MISSING:
        return []
    if isinstance(value, list):
        return value
    raise NoOpArgError()


_MISSING = object()


def _expand_name(name: str, table: dict[str, str]) -> Name:
    return Name(table.get(name, name))


def _expand(value: Any, table: dict[str, str]) -> Any:
    if isinstance(value, Name):
        return _expand_name(value, table)
    if isinstance(value, list):
        return [_expand(item, table) for item in value]
    return value


# --- inline images --------------------------------------------------------

def _inline_image(lexer: _Lexer) -> InlineImageObject:
    entries: dict[str, Any] = {}
    while True:
        backup = lexer.pos
        try:
            key = _parse_object(lexer)
        except PdfError as exc:
            if exc.is_eof():
                raise
            lexer.pos = backup
            break
        if not isinstance(key, Name):
            raise PdfError("invalid key type")
        entries[_expand_name(key, _IMAGE_KEYS)] = _parse_object(lexer)

    lexer.next_expect(b"ID")
    data_start = lexer.pos + 1
    if not lexer.seek_substr(b"\nEI"):
        raise PdfError("inline image exceeds expected data range")
    data_end = lexer.pos - 3

    bits = entries.get("BitsPerComponent")
    bits_per_component = None if bits is None else _as_integer(bits)
    space = entries.get("ColorSpace")
    color_space = None if space is None else _expand(space, _COLOR_SPACES)
    decode_array = entries.get("Decode")
    if decode_array is not None:
        if not isinstance(decode_array, list):
            raise UnexpectedPrimitiveError("Array", _kind(decode_array))
        decode_array = [_as_number(v) for v in decode_array]

    parms = entries.get("DecodeParms")
    if parms is None:
        parms = {}
    elif not isinstance(parms, dict):
        raise UnexpectedPrimitiveError("Dictionary", _kind(parms))

    filter_value = entries.pop("Filter", None)
    filter_value = None if filter_value is None else _expand(filter_value, _FILTERS)
    if filter_value is None:
        filters: tuple = ()
    elif isinstance(filter_value, list):
        filters = tuple(
            StreamFilter.from_kind_and_params(_as_name(kind), parms) for kind in filter_value
        )
    elif isinstance(filter_value, Name):
        filters = (StreamFilter.from_kind_and_params(filter_value, parms),)
    else:
        raise PdfError("invalid filter")

    height_value = entries.get("Height")
    if height_value is None:
        raise MissingEntryError("InlineImage", "Height")
    height = _as_u32(height_value)

    mask = entries.get("ImageMask")
    image_mask = False if mask is None else _as_bool(mask)

    intent_value = entries.pop("Intent", None)
    intent = None
    if intent_value is not None:
        intent = RenderingIntent.from_str(_as_name(intent_value))
        if intent is None:
            raise PdfError(f"Unknown variant '{intent_value}' for enum RenderingIntent")

    interp = entries.get("Interpolate")
    interpolate = False if interp is None else _as_bool(interp)

    width_value = entries.get("Width")
    if width_value is None:
        raise MissingEntryError("InlineImage", "Width")
    width = _as_u32(width_value)

    return InlineImageObject(
        width=width,
        height=height,
        data=lexer.data[data_start:data_end],
        filters=filters,
        color_space=color_space,
        bits_per_component=bits_per_component,
        intent=intent,
        image_mask=image_mask,
        decode=decode_array,
        interpolate=interpolate,
        other=entries,
    )


def parse_inline_image(data: bytes) -> InlineImageObject:
    """Parse an inline image that starts right after its ``BI`` operator."""
    return _inline_image(_Lexer(data))


# --- operator parsing -----------------------------------------------------

_TEXT_MODES = {mode.value: mode for mode in TextMode}


class _OpBuilder:
    def __init__(self) -> None:
        self.last = Point(0.0, 0.0)
        self.compatibility = False
        self.ops: list[Op] = []

    def parse(self, data: bytes, allow_invalid_ops: bool) -> None:
        lexer = _Lexer(data)
        operands: list[Any] = []
        size = len(lexer.data)
        while True:
            backup = lexer.pos
            try:
                operands.append(_parse_object(lexer))
            except PdfError as exc:
                if exc.is_eof():
                    break
                lexer.pos = backup
                token = lexer.next()
                try:
                    operator = token.decode("utf-8")
                except UnicodeDecodeError as err:
                    raise PdfError(f"Invalid encoding, caused by\n  {err}") from err
                args = iter(operands)
                operands = []
                try:
                    self._add(operator, args, lexer)
                except PdfError as err:
                    if not allow_invalid_ops:
                        raise
                    _log.warning("OP Err: %s", err)
            if lexer.pos > size:
                raise ContentReadPastBoundaryError()
            if lexer.pos == size:
                break

    def _add(self, op: str, args: Iterator[Any], lexer: _Lexer) -> None:
        push = self.ops.append
        match op:
            case "b":
                push(Close())
                push(FillAndStroke(Winding.NON_ZERO))
            case "B":
                push(FillAndStroke(Winding.NON_ZERO))
            case "b*":
                push(Close())
                push(FillAndStroke(Winding.EVEN_ODD))
            case "B*":
                push(FillAndStroke(Winding.EVEN_ODD))
            case "BDC":
                tag = _name(args)
                push(BeginMarkedContent(tag, _take(args)))
            case "BI":
                push(InlineImage(_inline_image(lexer)))
            case "BMC":
                push(BeginMarkedContent(_name(args), None))
            case "BT":
                push(BeginText())
            case "BX":
                self.compatibility = True
            case "c":
                c1, c2, p = _point(args), _point(args), _point(args)
                push(CurveTo(c1, c2, p))
                self.last = p
            case "cm":
                push(Transform(Matrix(*[_number(args) for _ in range(6)])))
            case "CS":
                push(StrokeColorSpace(_name(args)))
            case "cs":
                push(FillColorSpace(_name(args)))
            case "d":
                pattern = _take(args)
                if not isinstance(pattern, list):
                    raise UnexpectedPrimitiveError("Array", _kind(pattern))
                values = [_as_number(v) for v in pattern]
                push(Dash(values, _number(args)))
            case "d0" | "d1" | "sh":
                pass
            case "Do" | "Do0":
                push(XObject(_name(args)))
            case "DP":
                tag = _name(args)
                push(MarkedContentPoint(tag, _take(args)))
            case "EI":
                raise PdfError("Parse Error. Unexpected 'EI'")
            case "EMC":
                push(EndMarkedContent())
            case "ET":
                push(EndText())
            case "EX":
                self.compatibility = False
            case "f" | "F":
                push(Fill(Winding.NON_ZERO))
            case "f*":
                push(Fill(Winding.EVEN_ODD))
            case "G":
                push(StrokeColor(_number(args)))
            case "g":
                push(FillColor(_number(args)))
            case "gs":
                push(GraphicsState(_name(args)))
            case "h":
                push(Close())
            case "i":
                push(Flatness(_number(args)))
            case "ID":
                raise PdfError("Parse Error. Unexpected 'ID'")
            case "j":
                n = _integer(args)
                if n not in (0, 1, 2):
                    raise PdfError(f"invalid line join {n}")
                push(SetLineJoin(LineJoin(n)))
            case "J":
                n = _integer(args)
                if n not in (0, 1, 2):
                    raise PdfError(f"invalid line cap {n}")
                push(SetLineCap(LineCap(n)))
            case "K":
                push(StrokeColor(Cmyk(*[_number(args) for _ in range(4)])))
            case "k":
                push(FillColor(Cmyk(*[_number(args) for _ in range(4)])))
            case "l":
                p = _point(args)
                push(LineTo(p))
                self.last = p
            case "m":
                p = _point(args)
                push(MoveTo(p))
                self.last = p
            case "M":
                push(MiterLimit(_number(args)))
            case "MP":
                push(MarkedContentPoint(_name(args), None))
            case "n":
                push(EndPath())
            case "q":
                push(Save())
            case "Q":
                push(Restore())
            case "re":
                push(Rect(ViewRect(*[_number(args) for _ in range(4)])))
            case "RG":
                push(StrokeColor(Rgb(*[_number(args) for _ in range(3)])))
            case "rg":
                push(FillColor(Rgb(*[_number(args) for _ in range(3)])))
            case "ri":
                name = _name(args)
                intent = RenderingIntent.from_str(name)
                if intent is None:
                    raise PdfError(f"invalid rendering intent {name}")
                push(SetRenderingIntent(intent))
            case "s":
                push(Close())
                push(Stroke())
            case "S":
                push(Stroke())
            case "SC" | "SCN":
                push(StrokeColor(OtherColor(tuple(args))))
            case "sc" | "scn":
                push(FillColor(OtherColor(tuple(args))))
            case "T*":
                push(TextNewline())
            case "Tc":
                push(CharSpacing(_number(args)))
            case "Td":
                push(MoveTextPosition(_point(args)))
            case "TD":
                translation = _point(args)
                push(Leading(-translation.y))
                push(MoveTextPosition(translation))
            case "Tf":
                name = _name(args)
                push(TextFont(name, _number(args)))
            case "Tj":
                push(TextDraw(_string(args)))
            case "TJ":
                items = []
                for item in _array(args):
                    if isinstance(item, PdfString):
                        items.append(item)
                    elif isinstance(item, (int, float)) and not isinstance(item, bool):
                        items.append(float(item))
                    else:
                        raise PdfError(f"invalid primitive in TJ operator: {item!r}")
                push(TextDrawAdjusted(items))
            case "TL":
                push(Leading(_number(args)))
            case "Tm":
                push(SetTextMatrix(Matrix(*[_number(args) for _ in range(6)])))
            case "Tr":
                n = _integer(args)
                if n not in _TEXT_MODES:
                    raise PdfError(f"Invalid text render mode: {n}")
                push(TextRenderMode(_TEXT_MODES[n]))
            case "Ts":
                push(TextRise(_number(args)))
            case "Tw":
                push(WordSpacing(_number(args)))
            case "Tz":
                push(TextScaling(_number(args)))
            case "v":
                c2, p = _point(args), _point(args)
                push(CurveTo(self.last, c2, p))
                self.last = p
            case "w":
                push(LineWidth(_number(args)))
            case "W":
                push(Clip(Winding.NON_ZERO))
            case "W*":
                push(Clip(Winding.EVEN_ODD))
            case "y":
                c1, p = _point(args), _point(args)
                push(CurveTo(c1, p, p))
                self.last = p
            case "'":
                push(TextNewline())
                push(TextDraw(_string(args)))
            case '"':
                push(WordSpacing(_number(args)))
                push(CharSpacing(_number(args)))
                push(TextNewline())
                push(TextDraw(_string(args)))
            case _ if not self.compatibility:
                raise PdfError(f"invalid operator {op}")
            case _:
                pass


def parse_ops(data: bytes, allow_invalid_ops: bool = False) -> list[Op]:
    """Parse content stream bytes into a list of operations.

    With ``allow_invalid_ops`` an operator that fails to parse is logged and
    skipped instead of raising.
    """
    builder = _OpBuilder()
    builder.parse(data, allow_invalid_ops)
    return builder.ops


@dataclass
class Content:
    """A content stream made of one or more parts of decoded data."""

    parts: list[bytes] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.parts = [bytes(part) for part in self.parts]

    def operations(self, allow_invalid_ops: bool = False) -> list[Op]:
        """Parse all parts, joined in order, into operations."""
        return parse_ops(b"".join(self.parts), allow_invalid_ops)

    @classmethod
    def from_ops(cls, ops: Iterable[Op]) -> Content:
        """Build a single-part content stream from operations."""
        return cls([serialize_ops(ops)])