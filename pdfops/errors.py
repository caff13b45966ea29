"""Exception hierarchy for PDF parsing, decoding and content handling."""

from __future__ import annotations

from collections.abc import Mapping


class PdfError(Exception):
    """Base class for every error raised by this package."""

    def __init__(self, message: str = "Invalid") -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message

    def is_eof(self) -> bool:
        """Return True if this error means the input ended too early."""
        return False


class PdfEOFError(PdfError):
    """The input ended before a complete token or object was read."""

    def __init__(self) -> None:
        super().__init__("Unexpected end of file")

    def is_eof(self) -> bool:
        return True


class NoOpArgError(PdfError):
    """A content stream operator was given too few operands."""

    def __init__(self) -> None:
        super().__init__("Not enough Operator arguments")


class HexDecodeError(PdfError):
    """A pair of characters in a hex string is not a valid hex digit pair."""

    def __init__(self, pos: int, pair: bytes) -> None:
        self.pos = pos
        self.pair = bytes(pair)
        super().__init__(
            f"Hex decode error. Position {pos}, bytes {list(self.pair)}"
        )


class Ascii85TailError(PdfError):
    """ASCII85 data is malformed or lacks the '~>' terminator."""

    def __init__(self) -> None:
        super().__init__("Ascii85 tail error")


class IncorrectPredictorTypeError(PdfError):
    """A PNG predictor byte is outside the known range."""

    def __init__(self, n: int) -> None:
        self.n = n
        super().__init__(f"Failed to convert '{n}' into PredictorType")


class MissingEntryError(PdfError):
    """A required key is absent from a dictionary."""

    def __init__(self, typ: str, field: str) -> None:
        self.typ = typ
        self.field = field
        super().__init__(
            f"Field /{field} is missing in dictionary for type {typ}."
        )


class UnexpectedLexemeError(PdfError):
    """The lexer found a token other than the one required."""

    def __init__(self, pos: int, lexeme: str, expected: str) -> None:
        self.pos = pos
        self.lexeme = lexeme
        self.expected = expected
        super().__init__(
            f"Unexpected token '{lexeme}' at {pos} - expected '{expected}'"
        )


class UnexpectedPrimitiveError(PdfError):
    """A primitive of one kind was found where another was required."""

    def __init__(self, expected: str, found: str) -> None:
        self.expected = expected
        self.found = found
        super().__init__(
            f"Expected primitive {expected}, found primitive {found} instead."
        )


class ContentReadPastBoundaryError(PdfError):
    """A read went past the end of the available data."""

    def __init__(self) -> None:
        super().__init__("Parsing read past boundary of Contents.")


class ChainedError(PdfError):
    """Wraps another error, adding context about where it happened."""

    def __init__(
        self, source: BaseException, context: Mapping[str, object] | None = None
    ) -> None:
        self.source = source
        self.context = dict(context or {})
        lines = "".join(f"\n    {key} = {value!r}" for key, value in self.context.items())
        super().__init__(f"Error{lines}\n, caused by\n  {source}")
        self.__cause__ = source

    def is_eof(self) -> bool:
        return isinstance(self.source, PdfError) and self.source.is_eof()