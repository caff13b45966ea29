import io
import random
import zlib

import pytest
from PIL import Image

from pdfops.errors import (
    Ascii85TailError,
    HexDecodeError,
    IncorrectPredictorTypeError,
    PdfError,
    UnexpectedPrimitiveError,
)
from pdfops.filters import (
    CCITTFaxDecodeParams,
    DCTDecodeParams,
    FilterKind,
    JBIG2DecodeParams,
    LZWFlateParams,
    PredictorType,
    StreamFilter,
    dct_decode,
    decode,
    decode_85,
    decode_hex,
    decode_nibble,
    encode,
    encode_85,
    encode_hex,
    filter_row,
    flate_decode,
    flate_encode,
    jbig2_decode,
    jpx_decode,
    lzw_decode,
    lzw_encode,
    paeth,
    predictor_type,
    run_length_decode,
    set_jbig2_decoder,
    unfilter,
)

SPEC_LZW = bytes([0x80, 0x0B, 0x60, 0x50, 0x22, 0x0C, 0x0C, 0x85, 0x01])


def test_base_85():
    case = b"hello world!"
    encoded = encode_85(case)
    assert encoded == b"BOu!rD]j7BEbo80~>"
    assert decode_85(encoded) == case


def test_run_length_decode():
    data = bytes([254, ord("a"), 255, ord("b"), 2, ord("c"), ord("b"), ord("c"), 254, ord("a"), 128])
    assert run_length_decode(data) == b"aaabbcbcaaa"


def test_run_length_truncated_raises():
    with pytest.raises(PdfError):
        run_length_decode(bytes([5, 1, 2]))


@pytest.mark.parametrize("data", [b"", b"a", b"ab", b"abc", b"abcd", b"\x00\x00\x00\x00xyz", bytes(range(256))])
def test_base_85_round_trip(data):
    assert decode_85(encode_85(data)) == data


def test_base_85_zero_group():
    assert encode_85(b"\x00\x00\x00\x00") == b"z~>"
    assert decode_85(b"z~>") == b"\x00\x00\x00\x00"


def test_base_85_whitespace_ignored():
    assert decode_85(b"BOu!r D]j7\nBEbo80 ~ >") == b"hello world!"


@pytest.mark.parametrize("data", [b"BOu!r", b"BOu!r~", b"BOu!r~>x", b"vvvvv~>"])
def test_base_85_errors(data):
    with pytest.raises(Ascii85TailError):
        decode_85(data)


def test_decode_nibble():
    assert decode_nibble(ord("7")) == 7
    assert decode_nibble(ord("a")) == 10
    assert decode_nibble(ord("F")) == 15
    assert decode_nibble(ord("x")) is None


def test_decode_hex():
    assert decode_hex(b"48 65 6c6C\n6f>garbage") == b"Hello"
    assert decode_hex(b"414") == b"A"


def test_decode_hex_error():
    with pytest.raises(HexDecodeError) as info:
        decode_hex(b"414x")
    assert info.value.pos == 2
    assert info.value.pair == b"4x"


def test_hex_round_trip():
    data = bytes(range(256))
    assert encode_hex(b"\x01\xab") == b"01ab"
    assert decode_hex(encode_hex(data)) == data


def test_predictor_type():
    assert predictor_type(4) is PredictorType.PAETH
    with pytest.raises(IncorrectPredictorTypeError):
        predictor_type(5)


def test_paeth():
    assert paeth(1, 2, 3) == 1
    assert paeth(10, 20, 5) == 20
    assert paeth(0, 0, 0) == 0


def test_unfilter_sub_and_up():
    assert unfilter(PredictorType.SUB, 1, bytes(3), bytes([1, 1, 1])) == bytes([1, 2, 3])
    assert unfilter(PredictorType.UP, 1, bytes([1, 2, 3]), bytes([3, 3, 3])) == bytes([4, 5, 6])


def test_unfilter_bpp_too_large_gives_zeros():
    assert unfilter(PredictorType.NO_FILTER, 4, bytes(2), b"\x05\x06") == bytes(2)


@pytest.mark.parametrize(
    "kind", [PredictorType.NO_FILTER, PredictorType.SUB, PredictorType.UP, PredictorType.PAETH]
)
def test_filter_unfilter_round_trip(kind):
    rng = random.Random(7)
    previous = bytes(rng.randrange(256) for _ in range(12))
    current = bytes(rng.randrange(256) for _ in range(12))
    filtered = filter_row(kind, 3, previous, current)
    assert unfilter(kind, 3, previous, filtered) == current


def test_flate_round_trip():
    data = b"stream data " * 100
    assert flate_decode(flate_encode(data), LZWFlateParams()) == data


def test_flate_decode_zlib():
    assert flate_decode(zlib.compress(b"abc"), LZWFlateParams()) == b"abc"


def test_flate_decode_with_png_up_predictor():
    raw = bytes([2, 1, 2, 3, 2, 3, 3, 3])
    params = LZWFlateParams(predictor=12, columns=3)
    assert flate_decode(zlib.compress(raw), params) == bytes([1, 2, 3, 4, 5, 6])


def test_flate_decode_invalid():
    with pytest.raises(PdfError):
        flate_decode(b"not deflate at all", LZWFlateParams())


def test_lzw_spec_example_decode():
    assert lzw_decode(SPEC_LZW, LZWFlateParams()) == b"-----A---B"
    assert lzw_decode(SPEC_LZW, LZWFlateParams(early_change=0)) == b"-----A---B"


def test_lzw_spec_example_encode():
    assert lzw_encode(b"-----A---B", LZWFlateParams(early_change=0)) == SPEC_LZW


@pytest.mark.parametrize("size", [0, 1, 1000, 20000])
def test_lzw_round_trip_random(size):
    rng = random.Random(size)
    data = bytes(rng.randrange(256) for _ in range(size))
    params = LZWFlateParams(early_change=0)
    assert lzw_decode(lzw_encode(data, params), params) == data


def test_lzw_round_trip_repetitive():
    data = b"the quick brown fox jumps over the lazy dog " * 500
    params = LZWFlateParams(early_change=0)
    encoded = lzw_encode(data, params)
    assert len(encoded) < len(data)
    assert lzw_decode(encoded, params) == data


def test_lzw_encode_early_change_unsupported():
    with pytest.raises(PdfError):
        lzw_encode(b"abc", LZWFlateParams())


def test_lzw_invalid_code():
    with pytest.raises(PdfError):
        lzw_decode(b"\xff\xff", LZWFlateParams())


def test_dct_decode():
    image = Image.new("L", (4, 3), color=128)
    buf = io.BytesIO()
    image.save(buf, format="JPEG")
    pixels = dct_decode(buf.getvalue(), DCTDecodeParams())
    assert len(pixels) == 12
    assert all(abs(p - 128) <= 2 for p in pixels)


def test_dct_decode_invalid():
    with pytest.raises(PdfError):
        dct_decode(b"not a jpeg", DCTDecodeParams())


def test_filter_from_kind_and_params():
    f = StreamFilter.from_kind_and_params("FlateDecode", {"Predictor": 12, "Columns": 3})
    assert f.kind is FilterKind.FLATE
    assert f.params == LZWFlateParams(predictor=12, n_components=1, bits_per_component=8, columns=3, early_change=1)


def test_filter_without_params():
    f = StreamFilter.from_kind_and_params("ASCII85Decode", {})
    assert f == StreamFilter(FilterKind.ASCII_85)


def test_ccitt_defaults():
    f = StreamFilter.from_kind_and_params("CCITTFaxDecode", {"K": -1})
    assert f.params == CCITTFaxDecodeParams(k=-1)
    assert f.params.columns == 1728
    assert f.params.end_of_block is True


def test_jbig2_params():
    assert JBIG2DecodeParams.from_dict({"JBIG2Globals": b"\x01"}).globals == b"\x01"
    assert JBIG2DecodeParams.from_dict({}).globals is None


def test_unknown_filter():
    with pytest.raises(PdfError):
        StreamFilter.from_kind_and_params("Foo", {})


def test_bad_param_type():
    with pytest.raises(UnexpectedPrimitiveError):
        LZWFlateParams.from_dict({"Predictor": "x"})


def test_decode_encode_dispatch():
    data = b"dispatch me"
    for kind in (FilterKind.ASCII_HEX, FilterKind.ASCII_85, FilterKind.FLATE):
        f = StreamFilter.from_kind_and_params(kind.value, {})
        assert decode(encode(data, f), f) == data
    lzw = StreamFilter.from_kind_and_params("LZWDecode", {"EarlyChange": 0})
    assert decode(encode(data, lzw), lzw) == data


def test_decode_unimplemented():
    with pytest.raises(PdfError):
        decode(b"", StreamFilter(FilterKind.JPX))


def test_encode_unimplemented():
    with pytest.raises(PdfError):
        encode(b"", StreamFilter(FilterKind.RUN_LENGTH))


def test_jpx_decoder_not_set():
    with pytest.raises(PdfError, match="jp2k decoder not set"):
        jpx_decode(b"data")


def test_jbig2_decoder_set_once():
    set_jbig2_decoder(lambda data: data)
    set_jbig2_decoder(lambda data: b"ignored")
    result = jbig2_decode(b"D", b"G")
    assert result.startswith(b"GD")
    assert result.endswith(bytes([0x00, 0x00, 0x00, 0x04, 0x33, 0x01, 0x00, 0x00, 0x00, 0x00]))
    assert len(result) == 2 + 11 + 10