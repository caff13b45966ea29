"""Stream filters: decoding and encoding of PDF stream data."""

from __future__ import annotations

import io
import zlib
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import Enum, IntEnum
from itertools import islice
from typing import Any

from PIL import Image

from .errors import (
    Ascii85TailError,
    HexDecodeError,
    IncorrectPredictorTypeError,
    PdfError,
    UnexpectedPrimitiveError,
)

DecodeFunc = Callable[[bytes], bytes]


def _type_name(value: object) -> str:
    return type(value).__name__


def _int_entry(params: Mapping[str, Any], key: str, default: int | None) -> int | None:
    value = params.get(key)
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, int):
        raise UnexpectedPrimitiveError("Integer", _type_name(value))
    return value


def _bool_entry(params: Mapping[str, Any], key: str, default: bool) -> bool:
    value = params.get(key)
    if value is None:
        return default
    if not isinstance(value, bool):
        raise UnexpectedPrimitiveError("Boolean", _type_name(value))
    return value


def _uint_entry(params: Mapping[str, Any], key: str, default: int) -> int:
    value = _int_entry(params, key, default)
    if value < 0:
        raise PdfError(f"negative value {value} for /{key}")
    return value


@dataclass(frozen=True)
class LZWFlateParams:
    """Decode parameters shared by LZWDecode and FlateDecode."""

    predictor: int = 1
    n_components: int = 1
    bits_per_component: int = 8
    columns: int = 1
    early_change: int = 1

    @classmethod
    def from_dict(cls, params: Mapping[str, Any]) -> LZWFlateParams:
        """Build from a /DecodeParms dictionary."""
        return cls(
            predictor=_int_entry(params, "Predictor", 1),
            n_components=_int_entry(params, "Colors", 1),
            bits_per_component=_int_entry(params, "BitsPerComponent", 8),
            columns=_int_entry(params, "Columns", 1),
            early_change=_int_entry(params, "EarlyChange", 1),
        )


@dataclass(frozen=True)
class DCTDecodeParams:
    """Decode parameters of DCTDecode."""

    color_transform: int | None = None

    @classmethod
    def from_dict(cls, params: Mapping[str, Any]) -> DCTDecodeParams:
        """Build from a /DecodeParms dictionary."""
        return cls(color_transform=_int_entry(params, "ColorTransform", None))


@dataclass(frozen=True)
class CCITTFaxDecodeParams:
    """Decode parameters of CCITTFaxDecode."""

    k: int = 0
    end_of_line: bool = False
    encoded_byte_align: bool = False
    columns: int = 1728
    rows: int = 0
    end_of_block: bool = True
    black_is_1: bool = False
    damaged_rows_before_error: int = 0

    @classmethod
    def from_dict(cls, params: Mapping[str, Any]) -> CCITTFaxDecodeParams:
        """Build from a /DecodeParms dictionary."""
        return cls(
            k=_int_entry(params, "K", 0),
            end_of_line=_bool_entry(params, "EndOfLine", False),
            encoded_byte_align=_bool_entry(params, "EncodedByteAlign", False),
            columns=_uint_entry(params, "Columns", 1728),
            rows=_uint_entry(params, "Rows", 0),
            end_of_block=_bool_entry(params, "EndOfBlock", True),
            black_is_1=_bool_entry(params, "BlackIs1", False),
            damaged_rows_before_error=_uint_entry(params, "DamagedRowsBeforeError", 0),
        )


@dataclass(frozen=True)
class JBIG2DecodeParams:
    """Decode parameters of JBIG2Decode: the optional global segment data."""

    globals: bytes | None = None

    @classmethod
    def from_dict(cls, params: Mapping[str, Any]) -> JBIG2DecodeParams:
        """Build from a /DecodeParms dictionary."""
        value = params.get("JBIG2Globals")
        if value is None:
            return cls()
        if not isinstance(value, (bytes, bytearray, memoryview)):
            raise UnexpectedPrimitiveError("Stream", _type_name(value))
        return cls(globals=bytes(value))


class FilterKind(Enum):
    """Names of the standard stream filters."""

    ASCII_HEX = "ASCIIHexDecode"
    ASCII_85 = "ASCII85Decode"
    LZW = "LZWDecode"
    FLATE = "FlateDecode"
    JPX = "JPXDecode"
    DCT = "DCTDecode"
    CCITT_FAX = "CCITTFaxDecode"
    JBIG2 = "JBIG2Decode"
    CRYPT = "Crypt"
    RUN_LENGTH = "RunLengthDecode"


_PARAM_TYPES: dict[FilterKind, Any] = {
    FilterKind.LZW: LZWFlateParams,
    FilterKind.FLATE: LZWFlateParams,
    FilterKind.DCT: DCTDecodeParams,
    FilterKind.CCITT_FAX: CCITTFaxDecodeParams,
    FilterKind.JBIG2: JBIG2DecodeParams,
}


@dataclass(frozen=True)
class StreamFilter:
    """A filter applied to stream data, with its decode parameters if any."""

    kind: FilterKind
    params: Any = None

    @classmethod
    def from_kind_and_params(cls, kind: str, params: Mapping[str, Any]) -> StreamFilter:
        """Build a filter from its name and its /DecodeParms dictionary."""
        try:
            filter_kind = FilterKind(kind)
        except ValueError:
            raise PdfError(f"Unrecognized filter type {kind!r}") from None
        param_type = _PARAM_TYPES.get(filter_kind)
        if param_type is None:
            return cls(filter_kind)
        return cls(filter_kind, param_type.from_dict(params))


class PredictorType(IntEnum):
    """PNG row filter types."""

    NO_FILTER = 0
    SUB = 1
    UP = 2
    AVG = 3
    PAETH = 4


def predictor_type(n: int) -> PredictorType:
    """Convert a row filter byte into a PredictorType."""
    try:
        return PredictorType(n)
    except ValueError:
        raise IncorrectPredictorTypeError(n) from None


# --- ASCIIHex -------------------------------------------------------------

_HEX_SKIP = frozenset(b"\x00\t\n\x0c\r ")


def decode_nibble(c: int) -> int | None:
    """Return the value of a hex digit character, or None."""
    if 0x30 <= c <= 0x39:
        return c - 0x30
    if 0x61 <= c <= 0x66:
        return c - 0x61 + 10
    if 0x41 <= c <= 0x46:
        return c - 0x41 + 10
    return None


def decode_hex(data: bytes) -> bytes:
    """Decode ASCIIHex data up to the '>' marker; an odd last digit is dropped."""
    end = data.find(b">")
    body = data if end < 0 else data[:end]
    digits = bytes(b for b in body if b not in _HEX_SKIP)
    out = bytearray()
    pairs = zip(digits[0::2], digits[1::2])
    for index, (high, low) in enumerate(pairs):
        hi, lo = decode_nibble(high), decode_nibble(low)
        if hi is None or lo is None:
            raise HexDecodeError(index * 2, bytes([high, low]))
        out.append(hi << 4 | lo)
    return bytes(out)


def encode_hex(data: bytes) -> bytes:
    """Encode bytes as lower-case hex digits."""
    return bytes(data).hex().encode("ascii")


# --- ASCII85 --------------------------------------------------------------

_A85_SKIP = frozenset(b" \n\r\t")


def _word_85(group: bytes) -> bytes:
    value = 0
    for symbol in group:
        if not 0x21 <= symbol <= 0x75:
            raise Ascii85TailError()
        value = value * 85 + symbol - 0x21
    if value > 0xFFFFFFFF:
        raise Ascii85TailError()
    return value.to_bytes(4, "big")


def decode_85(data: bytes) -> bytes:
    """Decode ASCII85 data terminated by '~>'."""
    filtered = bytes(b for b in data if b not in _A85_SKIP)
    tilde = filtered.find(b"~")
    if tilde < 0:
        raise Ascii85TailError()
    symbols, rest = filtered[:tilde], filtered[tilde + 1:]

    out = bytearray()
    it = iter(symbols)
    for first in it:
        if first == ord("z"):
            out += b"\x00\x00\x00\x00"
            continue
        group = bytes([first, *islice(it, 4)])
        if len(group) == 5:
            out += _word_85(group)
        else:
            word = _word_85(group + b"u" * (5 - len(group)))
            out += word[: len(group) - 1]
            break

    if rest != b">":
        raise Ascii85TailError()
    return bytes(out)


def _base85_chunk(chunk: bytes) -> bytes:
    n = int.from_bytes(chunk, "big")
    digits = []
    for _ in range(5):
        n, digit = divmod(n, 85)
        digits.append(digit + 0x21)
    return bytes(reversed(digits))


def encode_85(data: bytes) -> bytes:
    """Encode bytes as ASCII85, followed by the '~>' terminator."""
    data = bytes(data)
    out = bytearray()
    full = len(data) - len(data) % 4
    for offset in range(0, full, 4):
        chunk = data[offset:offset + 4]
        out += b"z" if chunk == b"\x00\x00\x00\x00" else _base85_chunk(chunk)
    remainder = data[full:]
    if remainder:
        padded = remainder + b"\x00" * (4 - len(remainder))
        out += _base85_chunk(padded)[: len(remainder) + 1]
    out += b"~>"
    return bytes(out)


# --- PNG predictors -------------------------------------------------------

def paeth(a: int, b: int, c: int) -> int:
    """The PNG Paeth predictor."""
    p = a + b - c
    pa, pb, pc = abs(p - a), abs(p - b), abs(p - c)
    if pa <= pb and pa <= pc:
        return a
    if pb <= pc:
        return b
    return c


def unfilter(predictor: PredictorType, bpp: int, prev: bytes, inp: bytes) -> bytes:
    """Undo a PNG row filter, given the previous decoded row."""
    length = len(inp)
    if len(prev) != length:
        raise ValueError("previous row and input row differ in length")
    out = bytearray(length)
    if bpp > length:
        return bytes(out)

    if predictor == PredictorType.NO_FILTER:
        out[:] = inp
    elif predictor == PredictorType.SUB:
        out[:bpp] = inp[:bpp]
        for i in range(bpp, length):
            out[i] = (inp[i] + out[i - bpp]) & 0xFF
    elif predictor == PredictorType.UP:
        out[:] = bytes((x + y) & 0xFF for x, y in zip(inp, prev))
    elif predictor == PredictorType.AVG:
        for i in range(bpp):
            out[i] = (inp[i] + prev[i] // 2) & 0xFF
        for i in range(bpp, length):
            out[i] = (inp[i] + (out[i - bpp] + prev[i]) // 2) & 0xFF
    elif predictor == PredictorType.PAETH:
        for i in range(bpp):
            out[i] = (inp[i] + paeth(0, prev[i], 0)) & 0xFF
        for i in range(bpp, length):
            out[i] = (inp[i] + paeth(out[i - bpp], prev[i], prev[i - bpp])) & 0xFF
    return bytes(out)


def filter_row(predictor: PredictorType, bpp: int, previous: bytes, current: bytes) -> bytes:
    """Apply a PNG row filter to a row, given the previous unfiltered row."""
    orig = bytes(current)
    length = len(orig)
    out = bytearray(orig)
    head = range(min(bpp, length))
    tail = range(bpp, length)

    if predictor == PredictorType.SUB:
        for i in tail:
            out[i] = (orig[i] - orig[i - bpp]) & 0xFF
    elif predictor == PredictorType.UP:
        out[:] = bytes((x - y) & 0xFF for x, y in zip(orig, previous))
    elif predictor == PredictorType.AVG:
        for i in tail:
            out[i] = (orig[i] - ((orig[i - bpp] + previous[i]) & 0xFF) // 2) & 0xFF
        for i in head:
            out[i] = (orig[i] - previous[i] // 2) & 0xFF
    elif predictor == PredictorType.PAETH:
        for i in tail:
            out[i] = (orig[i] - paeth(orig[i - bpp], previous[i], previous[i - bpp])) & 0xFF
        for i in head:
            out[i] = (orig[i] - paeth(0, previous[i], 0)) & 0xFF
    return bytes(out)


# --- Flate ----------------------------------------------------------------

def _inflate(data: bytes) -> bytes:
    for wbits in (zlib.MAX_WBITS, -zlib.MAX_WBITS):
        try:
            return zlib.decompress(data, wbits)
        except zlib.error:
            continue
    raise PdfError("can't inflate")


def flate_decode(data: bytes, params: LZWFlateParams) -> bytes:
    """Inflate zlib or raw deflate data, then undo any PNG predictor."""
    decoded = _inflate(bytes(data))
    if params.predictor <= 10:
        return decoded

    n_components = params.n_components
    stride = params.columns * n_components
    rows = len(decoded) // (stride + 1)
    out = bytearray()
    prev = bytes(stride)
    for row in range(rows):
        start = row * (stride + 1)
        kind = predictor_type(decoded[start])
        current = unfilter(kind, n_components, prev, decoded[start + 1:start + 1 + stride])
        out += current
        prev = current
    return bytes(out)


def flate_encode(data: bytes) -> bytes:
    """Compress as a raw deflate stream."""
    compressor = zlib.compressobj(wbits=-zlib.MAX_WBITS)
    return compressor.compress(bytes(data)) + compressor.flush()


# --- LZW ------------------------------------------------------------------

_LZW_CLEAR = 256
_LZW_EOI = 257
_LZW_FIRST = 258
_LZW_MAX_WIDTH = 12
_LZW_TABLE_LIMIT = 1 << _LZW_MAX_WIDTH


class _BitReader:
    def __init__(self, data: bytes) -> None:
        self._data = data
        self._bit = 0

    def read(self, width: int) -> int | None:
        total = len(self._data) * 8
        if self._bit + width > total:
            return None
        value = 0
        for _ in range(width):
            byte = self._data[self._bit >> 3]
            value = value << 1 | (byte >> (7 - (self._bit & 7))) & 1
            self._bit += 1
        return value


class _BitWriter:
    def __init__(self) -> None:
        self._out = bytearray()
        self._acc = 0
        self._bits = 0

    def write(self, value: int, width: int) -> None:
        self._acc = self._acc << width | value
        self._bits += width
        while self._bits >= 8:
            self._bits -= 8
            self._out.append(self._acc >> self._bits & 0xFF)
        self._acc &= (1 << self._bits) - 1

    def finish(self) -> bytes:
        if self._bits:
            self._out.append(self._acc << (8 - self._bits) & 0xFF)
            self._acc = self._bits = 0
        return bytes(self._out)


def _initial_table() -> list[bytes]:
    return [bytes([i]) for i in range(256)] + [b"", b""]


def lzw_decode(data: bytes, params: LZWFlateParams) -> bytes:
    """Decode LZW data with MSB-first codes starting at nine bits."""
    early = 1 if params.early_change != 0 else 0
    reader = _BitReader(bytes(data))
    table = _initial_table()
    width = 9
    prev: bytes | None = None
    out = bytearray()

    while (code := reader.read(width)) is not None:
        if code == _LZW_CLEAR:
            table = _initial_table()
            width = 9
            prev = None
            continue
        if code == _LZW_EOI:
            break
        if prev is None:
            if code >= len(table) or code >= 256:
                raise PdfError(f"invalid LZW code {code}")
            entry = table[code]
        elif code < len(table) and code not in (_LZW_CLEAR, _LZW_EOI):
            entry = table[code]
            if len(table) < _LZW_TABLE_LIMIT:
                table.append(prev + entry[:1])
        elif code == len(table) and len(table) < _LZW_TABLE_LIMIT:
            entry = prev + prev[:1]
            table.append(entry)
        else:
            raise PdfError(f"invalid LZW code {code}")
        out += entry
        prev = entry
        if len(table) + early >= 1 << width and width < _LZW_MAX_WIDTH:
            width += 1
    return bytes(out)


def lzw_encode(data: bytes, params: LZWFlateParams) -> bytes:
    """Encode as LZW with MSB-first codes; only EarlyChange 0 is supported."""
    if params.early_change != 0:
        raise PdfError("encoding early_change != 0 is not supported")

    writer = _BitWriter()
    width = 9
    decoder_len = _LZW_FIRST
    fresh = True

    def emit(code: int) -> None:
        nonlocal width, decoder_len, fresh
        writer.write(code, width)
        if code == _LZW_CLEAR:
            width, decoder_len, fresh = 9, _LZW_FIRST, True
            return
        if fresh:
            fresh = False
        elif decoder_len < _LZW_TABLE_LIMIT:
            decoder_len += 1
        if decoder_len >= 1 << width and width < _LZW_MAX_WIDTH:
            width += 1

    def new_table() -> dict[bytes, int]:
        return {bytes([i]): i for i in range(256)}

    table = new_table()
    next_code = _LZW_FIRST
    emit(_LZW_CLEAR)
    word = b""
    for byte in bytes(data):
        extended = word + bytes([byte])
        if extended in table:
            word = extended
            continue
        emit(table[word])
        table[extended] = next_code
        next_code += 1
        word = bytes([byte])
        if next_code == _LZW_TABLE_LIMIT:
            emit(_LZW_CLEAR)
            table = new_table()
            next_code = _LZW_FIRST
    if word:
        emit(table[word])
    emit(_LZW_EOI)
    return writer.finish()


# --- DCT, run length, external decoders -----------------------------------

def dct_decode(data: bytes, params: DCTDecodeParams) -> bytes:
    """Decode JPEG data into raw interleaved pixel samples."""
    try:
        with Image.open(io.BytesIO(bytes(data))) as image:
            image.load()
            return image.tobytes()
    except (OSError, ValueError, SyntaxError) as exc:
        raise PdfError(f"JPEG Error, caused by\n  {exc}") from exc


def run_length_decode(data: bytes) -> bytes:
    """Decode RunLengthDecode data, stopping at the 128 end marker."""
    data = bytes(data)
    out = bytearray()
    pos = 0
    while pos < len(data):
        length = data[pos]
        if length < 128:
            start = pos + 1
            end = start + length + 1
            if end > len(data):
                raise PdfError("run length data ends inside a literal run")
            out += data[start:end]
            pos = end
        elif length > 128:
            if pos + 1 >= len(data):
                raise PdfError("run length data ends inside a repeated run")
            out += bytes([data[pos + 1]]) * (257 - length)
            pos += 2
        else:
            break
    return bytes(out)


class _DecoderSlot:
    """Holds a decoder function that can be set only once."""

    def __init__(self, what: str) -> None:
        self._what = what
        self._func: DecodeFunc | None = None

    def set(self, func: DecodeFunc) -> None:
        if self._func is None:
            self._func = func

    def __call__(self, data: bytes) -> bytes:
        if self._func is None:
            raise PdfError(f"{self._what} decoder not set")
        return self._func(data)


_JPX_DECODER = _DecoderSlot("jp2k")
_JBIG2_DECODER = _DecoderSlot("jbig2")

_JBIG2_END_OF_PAGE = bytes([0x00, 0x00, 0x00, 0x03, 0x31, 0x00, 0x01, 0x00, 0x00, 0x00, 0x00])
_JBIG2_END_OF_FILE = bytes([0x00, 0x00, 0x00, 0x04, 0x33, 0x01, 0x00, 0x00, 0x00, 0x00])


def set_jpx_decoder(func: DecodeFunc) -> None:
    """Install the JPEG 2000 decoder; later calls are ignored."""
    _JPX_DECODER.set(func)


def set_jbig2_decoder(func: DecodeFunc) -> None:
    """Install the JBIG2 decoder; later calls are ignored."""
    _JBIG2_DECODER.set(func)


def jpx_decode(data: bytes) -> bytes:
    """Decode JPEG 2000 data with the installed decoder."""
    return _JPX_DECODER(bytes(data))


def jbig2_decode(data: bytes, globals_data: bytes) -> bytes:
    """Decode embedded JBIG2 data, framed with globals and end segments."""
    framed = bytes(globals_data) + bytes(data) + _JBIG2_END_OF_PAGE + _JBIG2_END_OF_FILE
    return _JBIG2_DECODER(framed)


# --- dispatch -------------------------------------------------------------

def decode(data: bytes, stream_filter: StreamFilter) -> bytes:
    """Apply the decoding side of a filter."""
    kind = stream_filter.kind
    if kind == FilterKind.ASCII_HEX:
        return decode_hex(data)
    if kind == FilterKind.ASCII_85:
        return decode_85(data)
    if kind == FilterKind.LZW:
        return lzw_decode(data, stream_filter.params or LZWFlateParams())
    if kind == FilterKind.FLATE:
        return flate_decode(data, stream_filter.params or LZWFlateParams())
    if kind == FilterKind.RUN_LENGTH:
        return run_length_decode(data)
    if kind == FilterKind.DCT:
        return dct_decode(data, stream_filter.params or DCTDecodeParams())
    raise PdfError(f"unimplemented {stream_filter!r}")


def encode(data: bytes, stream_filter: StreamFilter) -> bytes:
    """Apply the encoding side of a filter."""
    kind = stream_filter.kind
    if kind == FilterKind.ASCII_HEX:
        return encode_hex(data)
    if kind == FilterKind.ASCII_85:
        return encode_85(data)
    if kind == FilterKind.LZW:
        return lzw_encode(data, stream_filter.params or LZWFlateParams())
    if kind == FilterKind.FLATE:
        return flate_encode(data)
    raise PdfError(f"Unimplemented encoding for {stream_filter!r}")