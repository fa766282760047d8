"""Parsing of 68000-family effective addresses and operand pairs."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Mapping

from .amode import (
    EXT_BDSIZE0,
    EXT_BDSIZEL,
    EXT_BS,
    EXT_FULLWORD,
    EXT_IISPOSN,
    EXT_IISPRE0,
    EXT_L,
    AddressingModeError,
    Bitfield,
    EffectiveAddress,
    Mode,
    Reg,
    TokenStream,
    parse_bitfield,
)
from .indexing import SCALE_BITS, parse_index, parse_scale
from .memindirect import parse_memory_indirect, parse_outer_displacement

__all__ = ["OperandSet", "parse_ea", "parse_operands"]

_MASK32 = 0xFFFFFFFF
_MASK64 = 0xFFFFFFFFFFFFFFFF
_MEMORY_REG = 6 << 3
_PAIR_CPUS = frozenset({68020, 68030, 68040})

Symbols = Mapping[str, int] | None


def _bad_mode() -> AddressingModeError:
    return AddressingModeError("addressing mode syntax")


def _reg(stream: TokenStream, test: Callable[[Reg], bool], offset: int = 0) -> Reg | None:
    token = stream.peek(offset)
    if token is not None and token.kind == "reg" and test(token.value):
        return token.value
    return None


def _is(stream: TokenStream, kind: object, offset: int = 0) -> bool:
    token = stream.peek(offset)
    return token is not None and token.matches(kind)


def _fits_short(value: int | None) -> bool:
    return value is not None and ((value + 0x8000) & _MASK32) < 0x10000


def _indexed(stream: TokenStream, ea: EffectiveAddress, symbols: Symbols,
             optimize: bool) -> EffectiveAddress:
    """Handle ',Xn[.siz][*scale])' or ',Xn...,od)' with the stream on the comma."""
    if not stream.accept(","):
        raise _bad_mode()
    index = parse_index(stream, symbols)
    ea.index_reg = index.number
    ea.index_size = index.size_bits
    if stream.accept(","):
        ea.extension |= EXT_BDSIZE0
        return parse_outer_displacement(stream, ea, symbols, optimize)
    if not stream.accept(")"):
        raise _bad_mode()
    return ea


def _full_displacement(stream: TokenStream, ea: EffectiveAddress,
                       symbols: Symbols) -> EffectiveAddress:
    """(d16,An,Dn[.size][*scale]) with a displacement too large for 8 bits."""
    stream.next()  # the comma
    ea.extension |= EXT_FULLWORD | EXT_IISPRE0 | EXT_BDSIZEL
    ea.base_value = ea.value
    ea.base_expression = ea.expression
    if _reg(stream, lambda r: r.is_data) is None:
        raise _bad_mode()
    index = parse_index(stream, symbols)
    ea.extension |= index.reg.number << 12
    if index.long:
        ea.extension |= EXT_L
    ea.index_size |= SCALE_BITS[index.scale]
    if not stream.accept(")"):
        raise AddressingModeError("Closing parenthesis missing on addressing mode")
    ea.mode = Mode.MEMPOST
    return ea


def _data_indirect(stream: TokenStream, ea: EffectiveAddress, symbols: Symbols,
                   optimize: bool) -> EffectiveAddress:
    """(Dn), (Dn.w|.l[*scale]) and (Dn...,od) forms."""
    ea.index_reg = stream.next().value.number
    if stream.accept(")"):
        ea.extension |= EXT_FULLWORD | EXT_BS | EXT_BDSIZE0 | EXT_IISPOSN
        ea.mode = Mode.MEMPOST
        ea.reg = _MEMORY_REG
        return ea
    if stream.accept(".L"):
        ea.mode = Mode.DINDL
        ea.extension = 1 << 11
    elif stream.accept(".W"):
        ea.mode = Mode.DINDW
        ea.extension = 0
    elif stream.accept(","):
        ea.extension |= EXT_FULLWORD | EXT_BS | EXT_BDSIZE0
        ea.reg = _MEMORY_REG
        return parse_outer_displacement(stream, ea, symbols, optimize)
    else:
        raise AddressingModeError("(Dn) error")

    scale = parse_scale(stream, symbols)
    ea.index_size |= SCALE_BITS[scale]
    ea.extension |= SCALE_BITS[scale]

    if stream.accept(")"):
        ea.extension |= EXT_FULLWORD | EXT_BS | EXT_BDSIZE0 | EXT_IISPOSN
        ea.reg = _MEMORY_REG
        ea.mode = Mode.MEMPOST
        return ea
    if stream.accept(","):
        ea.extension |= EXT_FULLWORD | EXT_BS | (ea.index_reg << 12)
        return parse_outer_displacement(stream, ea, symbols, optimize)
    raise AddressingModeError("unhandled (Dn) addressing mode")


def _displacement(stream: TokenStream, ea: EffectiveAddress, symbols: Symbols,
                  optimize: bool) -> EffectiveAddress:
    """After an expression: expr.w, expr[.l], expr(An...), expr(PC...)."""
    if stream.accept(".W"):
        ea.mode = Mode.ABSW
        if ea.defined and 0 <= ea.value < 0x10000 and ea.value >= 0x8000:
            ea.value -= 0x10000
        return ea

    if not stream.accept("("):
        ea.mode = Mode.ABSL
        if not stream.accept(".L") and optimize and _fits_short(ea.value):
            ea.mode = Mode.ABSW
        return ea

    address = _reg(stream, lambda r: r.is_address)
    if address is not None:
        stream.next()
        ea.reg = address.number
        if stream.accept(")"):
            ea.mode = Mode.ADISP
            return ea
        ea.mode = Mode.AINDEXED
        return _indexed(stream, ea, symbols, optimize)
    if stream.accept(Reg.PC):
        if stream.accept(")"):
            ea.mode = Mode.PCDISP
            return ea
        ea.mode = Mode.PCINDEXED
        return _indexed(stream, ea, symbols, optimize)
    raise _bad_mode()


def _parenthesised(stream: TokenStream, ea: EffectiveAddress, symbols: Symbols,
                   optimize: bool) -> EffectiveAddress:
    """Everything that starts with '(' (already consumed)."""
    if _is(stream, "["):
        return parse_memory_indirect(stream, ea, symbols, optimize)

    address = _reg(stream, lambda r: r.is_address)
    if address is not None:
        stream.next()
        ea.reg = address.number
        if stream.accept(")"):
            ea.mode = Mode.APOSTINC if stream.accept("+") else Mode.AIND
            return ea
        ea.mode = Mode.AINDEXED
        ea.value, ea.expression = 0, ""
        return _indexed(stream, ea, symbols, optimize)

    if _reg(stream, lambda r: r.is_data) is not None:
        return _data_indirect(stream, ea, symbols, optimize)

    if stream.accept(Reg.PC):
        ea.mode = Mode.PCINDEXED
        ea.value, ea.expression = 0, ""
        return _indexed(stream, ea, symbols, optimize)

    ea.value, ea.expression = stream.expression(symbols)
    if stream.accept(")"):
        return _displacement(stream, ea, symbols, optimize)
    if not stream.accept(","):
        raise _bad_mode()

    address = _reg(stream, lambda r: r.is_address)
    if address is not None:
        stream.next()
        ea.reg = address.number
        if _is(stream, ","):
            if ea.defined and ((ea.value + 0x80) & _MASK64) > 0x100:
                return _full_displacement(stream, ea, symbols)
            ea.mode = Mode.AINDEXED
            return _indexed(stream, ea, symbols, optimize)
        if stream.accept(")"):
            ea.mode = Mode.ADISP
            return ea
        raise _bad_mode()

    if stream.accept(Reg.PC):
        if _is(stream, ","):
            ea.mode = Mode.PCINDEXED
            return _indexed(stream, ea, symbols, optimize)
        if stream.accept(")"):
            ea.mode = Mode.PCDISP
            return ea
    raise _bad_mode()


def _register_mode(stream: TokenStream, ea: EffectiveAddress, reg: Reg) -> EffectiveAddress | None:
    if reg.is_data:
        ea.mode, ea.reg = Mode.DREG, reg.number
    elif reg.is_address:
        ea.mode, ea.reg = Mode.AREG, reg.number
    elif reg is Reg.CCR:
        ea.mode = Mode.AM_CCR
    elif reg is Reg.SR:
        ea.mode = Mode.AM_SR
    elif reg is Reg.USP:
        ea.mode, ea.reg = Mode.AM_USP, 2
    elif reg.is_cache:
        stream.next()
        ea.mode, ea.reg = Mode.CACHES, reg - Reg.IC40
        if not (stream.at_end() or _is(stream, ",")):
            raise _bad_mode()
        return ea
    elif reg.is_control:
        ea.mode, ea.reg = Mode.CREG, reg - Reg.SFC
    elif reg.is_fp:
        ea.mode, ea.reg = Mode.FREG, reg.number
    elif reg.is_fp_control:
        ea.mode, ea.reg = Mode.FPSCR, 1 << (reg - Reg.FPIAR + 10)
    else:
        return None
    stream.next()
    return ea


def parse_ea(stream: TokenStream, symbols: Symbols = None,
             optimize: bool = False) -> EffectiveAddress:
    """Parse one addressing mode from the stream.

    optimize enables the absolute-short and 68020 displacement optimisations.
    """
    ea = EffectiveAddress()
    token = stream.peek()
    if token is None:
        raise _bad_mode()

    if token.kind == "reg":
        result = _register_mode(stream, ea, token.value)
        if result is not None:
            return result

    if stream.accept("#"):
        ea.value, ea.expression = stream.expression(symbols)
        ea.mode = Mode.IMMED
        return ea

    if stream.accept("("):
        return _parenthesised(stream, ea, symbols, optimize)

    if (_is(stream, "-") and _is(stream, "(", 1)
            and _reg(stream, lambda r: r.is_address, 2) is not None
            and _is(stream, ")", 3)):
        ea.mode = Mode.APREDEC
        ea.reg = stream.peek(2).value.number
        stream.position += 4
        return ea

    ea.value, ea.expression = stream.expression(symbols)
    return _displacement(stream, ea, symbols, optimize)


@dataclass
class OperandSet:
    """The operands of one instruction.

    pair_register is the third register of forms such as divu.l d0,d2:d3
    (the second operand's register when no ':' is given).
    """

    operands: tuple[EffectiveAddress, ...] = ()
    pair_register: int | None = None
    bitfield: Bitfield | None = None

    @property
    def count(self) -> int:
        return len(self.operands)

    @property
    def first(self) -> EffectiveAddress:
        return self.operands[0] if self.operands else EffectiveAddress()

    @property
    def second(self) -> EffectiveAddress:
        return self.operands[1] if len(self.operands) > 1 else EffectiveAddress()


def parse_operands(text: str | TokenStream, acount: int = 2, symbols: Symbols = None,
                   cpu: int = 68000, optimize: bool = False) -> OperandSet:
    """Parse up to two operands; acount 0 asks for only the first."""
    stream = text if isinstance(text, TokenStream) else TokenStream(text)
    result = OperandSet()
    if stream.at_end():
        return result

    first = parse_ea(stream, symbols, optimize)
    result.operands = (first,)
    if _is(stream, "{"):
        result.bitfield = parse_bitfield(stream, symbols)

    if acount == 0 or not stream.accept(","):
        return result

    second = parse_ea(stream, symbols, optimize)
    result.operands = (first, second)
    if _is(stream, "{"):
        result.bitfield = parse_bitfield(stream, symbols)

    if stream.accept(":"):
        if cpu not in _PAIR_CPUS:
            raise AddressingModeError("unsupported for the selected CPU")
        reg = _reg(stream, lambda r: r.is_data or r.is_fp)
        if reg is None:
            raise AddressingModeError("a data or FPU register must follow a :")
        stream.next()
        result.pair_register = reg.number
    else:
        result.pair_register = second.reg
    return result