# pdfops

A library for the low-level pieces of PDF files: content streams, stream
filters and simple-font encodings.

## Installation

```
pip install .
```

For running the tests:

```
pip install ".[test]"
pytest
```

## Modules

- `pdfops.content` – `parse_ops(data, allow_invalid_ops=False)` turns
  decoded content stream bytes into a list of operations. `Content` holds
  one or more parts of decoded data; `Content.operations()` parses them
  joined in order, and `Content.from_ops(ops)` builds a single-part
  content stream from operations. With `allow_invalid_ops=True` an
  operator that fails to parse is logged and skipped instead of raising.
  `parse_inline_image(data)` parses an inline image starting right after
  its `BI` operator, expanding the abbreviated keys, colour spaces and
  filter names.
- `pdfops.ops` – the operation classes (`MoveTo`, `LineTo`, `CurveTo`,
  `Rect`, `Stroke`, `Fill`, `TextDraw`, `TextDrawAdjusted`, `FillColor`,
  `XObject`, `InlineImage`, …, all subclasses of `Op`), the values they
  carry (`Point`, `ViewRect`, `Matrix`, `Rgb`, `Cmyk`, `OtherColor`,
  `Name`, `PdfString`, `InlineImageObject`) and the enums `Winding`,
  `LineCap`, `LineJoin`, `TextMode` and `RenderingIntent`.
  `serialize_ops(ops)` writes operations as content stream bytes, one per
  line, using the combined forms `s`, `b`, `b*`, `'`, `"` and `TD` where
  consecutive operations allow it, and `v` or `y` for curves where they
  fit. `format_number` writes a number in the shortest form that keeps its
  single-precision value; `serialize_primitive` writes names, strings,
  numbers, booleans, `None`, lists and dicts in PDF syntax.
- `pdfops.filters` – stream filters. `decode(data, stream_filter)`
  handles ASCIIHex, ASCII85, LZW, Flate (with PNG predictors above 10),
  RunLength and DCT (JPEG, decoded to raw samples with Pillow).
  `encode(data, stream_filter)` handles ASCIIHex, ASCII85, LZW (only with
  `EarlyChange` 0) and Flate (written as raw deflate).
  `StreamFilter.from_kind_and_params(kind, params)` builds a filter from
  its `/Filter` name and a `/DecodeParms` dictionary. The single codecs
  (`decode_hex`, `encode_hex`, `decode_85`, `encode_85`, `flate_decode`,
  `flate_encode`, `lzw_decode`, `lzw_encode`, `dct_decode`,
  `run_length_decode`) and the PNG row helpers (`unfilter`, `filter_row`,
  `paeth`, `predictor_type`) can also be called directly.
- `pdfops.encoding` – `Encoding` and `BaseEncoding` for a font's
  `/Encoding` entry. `Encoding.from_primitive` takes a name or a
  dictionary with `/BaseEncoding` and `/Differences`;
  `Encoding.to_primitive` gives back a name, or a dictionary when there
  are differences. Unknown base encoding names are kept as strings.
- `pdfops.backend` – `locate_start_offset(data)` finds the `%PDF-` header
  within the first kilobyte, `locate_xref_offset(data)` reads the number
  after the last `startxref`, and `to_range` checks bounds against a
  length.
- `pdfops.errors` – `PdfError` and its subclasses, raised throughout.

## Example

```python
from pdfops.content import Content, parse_ops
from pdfops.ops import Close, LineTo, MoveTo, Point, Stroke

content = Content.from_ops([
    MoveTo(Point(100, 100)),
    LineTo(Point(100, 200)),
    LineTo(Point(200, 200)),
    Close(),
    Stroke(),
])
print(content.parts[0].decode())
ops = content.operations()

print(parse_ops(b"0 0 m 10 10 l S"))
```

```python
from pdfops.filters import decode_85, encode_85

encoded = encode_85(b"hello world!")   # b"BOu!rD]j7BEbo80~>"
assert decode_85(encoded) == b"hello world!"
```

## What it does not do

- It does not open or write whole PDF documents: there is no object or
  cross-reference table parser, no page tree, no encryption support and
  no document builder. `pdfops.backend` only locates the header and the
  `startxref` offset in raw bytes.
- `Content` works on stream data that is already decoded; it does not
  resolve indirect objects.
- JPEG 2000 and JBIG2 data are decoded only through a function installed
  with `set_jpx_decoder` or `set_jbig2_decoder` and called via
  `jpx_decode` or `jbig2_decode`; none is included. `decode` raises
  `PdfError` for JPX, JBIG2, CCITTFax and Crypt filters.
- `serialize_ops` cannot write inline images and raises `PdfError` for
  them.