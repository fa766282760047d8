"""Data definition directives: dc, dcb, ds, .init and string deposits."""

from __future__ import annotations

import math
import struct
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable

from .layout import DirectiveError, Section
from .m6502 import atascii

__all__ = ["Size", "DataFixup", "DataWriter", "extended_bytes", "IN_6502_MODE"]

IN_6502_MODE = "directive illegal in .6502 section"
RANGE_ERROR = "value out of range"
FLOAT_LABEL_ERROR = "labels not allowed in floating point expressions"

_MASK32 = 0xFFFFFFFF
_MASK64 = 0xFFFFFFFFFFFFFFFF


class Size(Enum):
    """Size suffixes of data directives."""

    B = "B"
    W = "W"
    N = "N"
    L = "L"
    I = "I"  # long with its two words swapped (MOVEI layout)
    Q = "Q"
    S = "S"
    D = "D"
    X = "X"

    @property
    def width(self) -> int:
        """Bytes occupied by one item of this size."""
        return _WIDTHS[self]


_WIDTHS = {
    Size.B: 1, Size.W: 2, Size.N: 2, Size.L: 4, Size.I: 4,
    Size.Q: 8, Size.S: 4, Size.D: 8, Size.X: 12,
}

# Sizes a repeated block (dcb, .init, ds in a data section) can deposit.
_BLOCK_SIZES = frozenset({Size.B, Size.W, Size.N, Size.L})


@dataclass(frozen=True)
class DataFixup:
    """A value left undefined at assembly time, to be patched later."""

    location: int
    size: Size
    movei: bool = False


def extended_bytes(value: float) -> bytes:
    """Encode value as a 96-bit 68881 extended-precision number."""
    value = float(value)
    sign = 0x8000 if math.copysign(1.0, value) < 0 else 0
    if math.isnan(value):
        return (0x7FFF | sign).to_bytes(2, "big") + bytes(2) + (0xC000000000000000).to_bytes(8, "big")
    if math.isinf(value):
        return (0x7FFF | sign).to_bytes(2, "big") + bytes(10)
    if value == 0.0:
        return sign.to_bytes(2, "big") + bytes(10)
    mantissa, exponent = math.frexp(abs(value))
    bits = int(mantissa * (1 << 64))
    biased = exponent - 1 + 16383
    return (sign | biased).to_bytes(2, "big") + bytes(2) + bits.to_bytes(8, "big")


def _single_bytes(value: float) -> bytes:
    try:
        return struct.pack(">f", value)
    except OverflowError:
        return struct.pack(">f", math.copysign(math.inf, value))


def _as_int32(value: int | None) -> int | None:
    if value is None:
        return None
    value &= _MASK32
    return value - (1 << 32) if value & 0x80000000 else value


@dataclass
class DataWriter:
    """Deposits data items into a section.

    reversed_words selects the 6502 layout: words are stored low byte first and
    longer integers are refused.
    """

    section: Section
    reversed_words: bool = False
    fixups: list[DataFixup] = field(default_factory=list)

    def __init__(self, section: Section, reversed_words: bool = False) -> None:
        self.section = section
        self.reversed_words = reversed_words
        self.fixups = []

    def _require_data_section(self) -> None:
        if self.section.bss:
            raise DirectiveError("illegal initialization of section")

    def _auto_even(self, size: Size) -> None:
        if not self.reversed_words and size is not Size.B and self.section.location & 1:
            self.section.skip(1)

    def _fixup(self, size: Size, movei: bool = False) -> None:
        self.fixups.append(DataFixup(self.section.location, size, movei))

    def _integer(self, value: object) -> int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise DirectiveError("integer value required")
        return value

    def _deposit(self, size: Size, value: object) -> None:
        write = self.section.write
        if size is Size.B:
            if value is None:
                self._fixup(size)
                write(bytes(1))
                return
            number = self._integer(value)
            if not -0x100 <= number <= 0xFF:
                raise DirectiveError(RANGE_ERROR)
            write(bytes([number & 0xFF]))
        elif size in (Size.W, Size.N):
            if value is None:
                self._fixup(size)
                write(bytes(2))
                return
            number = self._integer(value)
            if not -0x10000 <= number <= 0xFFFF:
                raise DirectiveError(RANGE_ERROR)
            order = "little" if self.reversed_words else "big"
            write((number & 0xFFFF).to_bytes(2, order))
        else:
            if self.reversed_words:
                raise DirectiveError(IN_6502_MODE)
            if size in (Size.L, Size.I):
                if value is None:
                    self._fixup(size, movei=size is Size.I)
                    write(bytes(4))
                    return
                number = self._integer(value) & _MASK32
                if size is Size.I:
                    number = ((number << 16) | (number >> 16)) & _MASK32
                write(number.to_bytes(4, "big"))
            elif size is Size.Q:
                if value is None:
                    self._fixup(size)
                    write(bytes(8))
                    return
                write((self._integer(value) & _MASK64).to_bytes(8, "big"))
            else:
                if value is None:
                    raise DirectiveError(FLOAT_LABEL_ERROR)
                number = float(value)
                if size is Size.S:
                    write(_single_bytes(number))
                elif size is Size.D:
                    write(struct.pack(">d", number))
                else:
                    write(extended_bytes(number))

    def _block(self, count: int, size: Size, value: int | None) -> None:
        if count < 0:
            raise DirectiveError("negative count not allowed")
        if size not in _BLOCK_SIZES:
            return
        value = _as_int32(value)
        for _ in range(count):
            self._deposit(size, value)

    def dc(self, size: Size, values: Iterable[object]) -> None:
        """dc.<size>: deposit each value; None stands for an undefined value."""
        size = Size(size)
        self._require_data_section()
        self._auto_even(size)
        for value in values:
            if isinstance(value, str):
                if size is not Size.B:
                    raise DirectiveError("strings are only allowed in dc.b")
                self.string(value)
            else:
                self._deposit(size, value)

    def dcb(self, size: Size, count: int, value: int | None) -> None:
        """dcb.<size> count,value: deposit count copies of value."""
        size = Size(size)
        self._require_data_section()
        if count < 0:
            raise DirectiveError("negative count not allowed")
        self._auto_even(size)
        self._block(count, size, value)

    def ds(self, size: Size, count: int) -> None:
        """ds.<size> count: reserve count zeroed items (skipped in BSS)."""
        size = Size(size)
        if count < 0:
            raise DirectiveError("negative sizes not allowed in DS")
        self._auto_even(size)
        self.section.skip(count * size.width)

    def init(self, default_size: Size,
             items: Iterable[tuple[int, int | None] | tuple[int, int | None, Size | None]]) -> None:
        """.init: items are (count, value[, size]); size None means default_size."""
        default_size = Size(default_size)
        if self.section.bss:
            raise DirectiveError(".init not permitted in BSS or ABS")
        if self.section.risc:
            raise DirectiveError("directive forbidden in gpu/dsp mode")
        for item in items:
            count, value, *rest = item
            override = Size(rest[0]) if rest and rest[0] is not None else None
            if override is None:
                size = default_size
            elif override is Size.L:
                size = Size.L
            else:
                # Both the .b and the .w suffix deposit bytes.
                size = Size.B
            self._block(count, size, value)

    def string(self, text: str, atari: bool = False) -> None:
        """Deposit the characters of text, in ATASCII internal codes if atari."""
        self._require_data_section()
        data = bytes(atascii(text)) if atari else text.encode("latin-1")
        self.section.write(data)