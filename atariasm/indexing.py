"""Index register and scale-factor parsing for 68020 indexed addressing modes."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping

from .amode import (
    EXT_A,
    EXT_D,
    EXT_L,
    TIMES1,
    TIMES2,
    TIMES4,
    TIMES8,
    AddressingModeError,
    Reg,
    TokenStream,
)

__all__ = ["IndexRegister", "parse_scale", "parse_index", "SCALE_BITS", "LONG_INDEX"]

# Scale factor -> bits in the index size field (also the extension word scale bits).
SCALE_BITS = {1: TIMES1, 2: TIMES2, 4: TIMES4, 8: TIMES8}
LONG_INDEX = 0x0800


def _bad_mode() -> AddressingModeError:
    return AddressingModeError("addressing mode syntax")


@dataclass(frozen=True)
class IndexRegister:
    """An index register with its size and scale, as in d3.l*4."""

    reg: Reg
    long: bool = False
    scale: int = 1

    def __post_init__(self) -> None:
        if not self.reg.is_general:
            raise AddressingModeError("index register must be a data or address register")
        if self.scale not in SCALE_BITS:
            raise _bad_mode()

    @property
    def number(self) -> int:
        """Register position among D0-A7 (0-15)."""
        return self.reg.index

    @property
    def size_bits(self) -> int:
        """Index size field: long flag plus scale bits."""
        return (LONG_INDEX if self.long else 0) | SCALE_BITS[self.scale]

    @property
    def extension(self) -> int:
        """The index part of an extension word."""
        bits = (self.reg.number << 12) | (EXT_A if self.reg.is_address else EXT_D)
        if self.long:
            bits |= EXT_L
        return bits | SCALE_BITS[self.scale]


def parse_scale(stream: TokenStream, symbols: Mapping[str, int] | None = None) -> int:
    """Parse an optional '*scale' suffix and return the scale (1 when absent)."""
    if not stream.accept("*"):
        return 1
    token = stream.peek()
    if token is None:
        raise _bad_mode()
    if token.kind == "symbol":
        value, _ = stream.expression(symbols)
        if value is None:
            raise AddressingModeError("scale factor expression must evaluate")
    elif token.kind == "const":
        stream.next()
        value = token.value
    else:
        raise _bad_mode()
    if value not in SCALE_BITS:
        raise _bad_mode()
    return value


def parse_index(stream: TokenStream, symbols: Mapping[str, int] | None = None) -> IndexRegister:
    """Parse 'Xn[.w|.l][*scale]'."""
    token = stream.peek()
    if token is None or token.kind != "reg" or not token.value.is_general:
        raise _bad_mode()
    stream.next()
    long = False
    if stream.accept(".L"):
        long = True
    elif stream.accept(".W"):
        pass
    elif stream.peek() is not None and stream.peek().matches(".B"):
        raise _bad_mode()
    scale = parse_scale(stream, symbols)
    return IndexRegister(token.value, long, scale)