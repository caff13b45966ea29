"""Font encodings: a base encoding plus a table of differences."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .errors import PdfError, UnexpectedPrimitiveError
from .ops import Name


class BaseEncoding(Enum):
    """The predefined encodings a font can be based on."""

    STANDARD = "StandardEncoding"
    SYMBOL = "SymbolEncoding"
    MAC_ROMAN = "MacRomanEncoding"
    WIN_ANSI = "WinAnsiEncoding"
    MAC_EXPERT = "MacExpertEncoding"
    IDENTITY_H = "Identity-H"
    NONE = "None"


def _parse_base(value: Any) -> BaseEncoding | str:
    if not isinstance(value, str):
        raise UnexpectedPrimitiveError("Name", type(value).__name__)
    try:
        return BaseEncoding(str(value))
    except ValueError:
        return str(value)


@dataclass
class Encoding:
    """A base encoding; unknown base names are kept as plain strings."""

    base: BaseEncoding | str = BaseEncoding.NONE
    differences: dict[int, str] = field(default_factory=dict)

    @classmethod
    def standard(cls) -> Encoding:
        """The standard encoding with no differences."""
        return cls(BaseEncoding.STANDARD)

    @classmethod
    def from_primitive(cls, value: Any) -> Encoding:
        """Build from a name or an /Encoding dictionary."""
        if isinstance(value, str):
            return cls(_parse_base(value))
        if not isinstance(value, dict):
            raise PdfError(f"Unknown element: {value!r}")

        base_value = value.get("BaseEncoding")
        base = BaseEncoding.NONE if base_value is None else _parse_base(base_value)

        differences: dict[int, str] = {}
        parts = value.get("Differences")
        if parts is not None:
            if not isinstance(parts, (list, tuple)):
                raise UnexpectedPrimitiveError("Array", type(parts).__name__)
            gid = 0
            for part in parts:
                if isinstance(part, int) and not isinstance(part, bool):
                    gid = part & 0xFFFFFFFF
                elif isinstance(part, str):
                    differences[gid] = str(part)
                    gid += 1
                else:
                    raise PdfError(f"Unknown part primitive in dictionary: {part!r}")
        return cls(base, differences)

    def to_primitive(self) -> Any:
        """Return a name, or a dictionary when there are differences."""
        base = Name(self.base.value if isinstance(self.base, BaseEncoding) else self.base)
        if not self.differences:
            return base
        items: list[Any] = []
        last: int | None = None
        for gid, glyph in sorted(self.differences.items()):
            if last is None or last + 1 != gid:
                items.append(gid)
            items.append(Name(glyph))
            last = gid
        return {"BaseEncoding": base, "Differences": items}