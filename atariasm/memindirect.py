"""68020 memory-indirect addressing modes: ([bd,An,Xn],od) and ([bd,An],Xn,od)."""

from __future__ import annotations

from typing import Mapping

from .amode import (
    EXT_A,
    EXT_BDSIZE0,
    EXT_BDSIZEL,
    EXT_BDSIZEW,
    EXT_BS,
    EXT_D,
    EXT_FULLWORD,
    EXT_IISNOIL,
    EXT_IISNOIN,
    EXT_IISNOIW,
    EXT_IISPOSL,
    EXT_IISPOSN,
    EXT_IISPOSW,
    EXT_IISPRE0,
    EXT_IISPREL,
    EXT_IISPREN,
    EXT_IISPREW,
    EXT_IS,
    EXT_L,
    AddressingModeError,
    EffectiveAddress,
    Mode,
    Reg,
    TokenStream,
)
from .indexing import SCALE_BITS, parse_scale

__all__ = ["parse_memory_indirect", "parse_outer_displacement"]

_MASK32 = 0xFFFFFFFF
_MASK64 = 0xFFFFFFFFFFFFFFFF
_PC_REG = (7 << 3) | 3
_MEMORY_REG = 6 << 3


def _bad_mode() -> AddressingModeError:
    return AddressingModeError("addressing mode syntax")


def _pc_offset(ea: EffectiveAddress) -> int:
    # PC-relative forms sit three modes above their An counterparts.
    return 3 if ea.reg == _PC_REG else 0


def _fits_short(value: int | None) -> bool:
    return value is not None and ((value + 0x8000) & _MASK32) < 0x10000


def _is_reg(stream: TokenStream, test) -> Reg | None:
    token = stream.peek()
    if token is not None and token.kind == "reg" and test(token.value):
        return token.value
    return None


def _index_size(stream: TokenStream, ea: EffectiveAddress) -> None:
    if stream.accept(".W"):
        return
    if stream.accept(".L"):
        ea.extension |= EXT_L
        return
    token = stream.peek()
    if token is not None and token.matches(".B"):
        raise _bad_mode()


def _scale(stream: TokenStream, ea: EffectiveAddress, symbols,
           constant_sets_extension: bool = False) -> None:
    after = stream.peek(1)
    constant = (stream.peek() is not None and stream.peek().matches("*")
                and after is not None and after.kind == "const")
    scale = parse_scale(stream, symbols)
    ea.index_size |= SCALE_BITS[scale]
    if constant and constant_sets_extension:
        ea.extension |= SCALE_BITS[scale]


def _skip(stream: TokenStream) -> None:
    if not stream.at_end():
        stream.next()


def _closing(stream: TokenStream) -> EffectiveAddress | None:
    if not stream.accept(")"):
        raise AddressingModeError("Closing parenthesis missing on addressing mode")
    return None


def parse_outer_displacement(stream: TokenStream, ea: EffectiveAddress,
                             symbols: Mapping[str, int] | None = None,
                             optimize: bool = False) -> EffectiveAddress:
    """Parse 'od[.w|.l])' after the index of a postindexed mode."""
    pc = _pc_offset(ea)
    try:
        ea.value, ea.expression = stream.expression(symbols)
    except AddressingModeError as exc:
        raise _bad_mode() from exc

    if optimize and ea.defined and ea.value == 0:
        ea.mode = Mode(Mode.MEMPOST + pc)
        ea.extension |= EXT_IISPOSN
        _skip(stream)
        return ea

    if stream.accept(".W"):
        ea.extension |= EXT_IISPOSW
        ea.mode = Mode(Mode.MEMPOST + pc)
    else:
        stream.accept(".L")
        if not ea.extension & EXT_BS:
            od_ea = EXT_IISPOSL
        else:
            # Base displacement suppressed: the outer displacement goes in its place.
            od_ea = EXT_BDSIZEL
            ea.base_value = ea.value
            ea.base_expression = ea.expression
        ea.mode = Mode(Mode.MEMPOST + pc)
        if optimize and ea.defined and _fits_short(ea.value):
            od_ea = EXT_IISPOSW
        ea.extension |= od_ea

    _closing(stream)
    return ea


def _suppressed_index(stream: TokenStream, ea: EffectiveAddress, symbols,
                      optimize: bool) -> EffectiveAddress:
    pc = _pc_offset(ea)
    if stream.accept(")"):
        ea.mode = Mode(Mode.MEMPOST + pc)
        ea.extension |= EXT_IISNOIN
        return ea
    if not stream.accept(","):
        raise AddressingModeError("comma expected")
    token = stream.peek()
    if token is None or token.kind not in ("const", "symbol"):
        raise _bad_mode()
    ea.value, ea.expression = stream.expression(symbols)

    if optimize and ea.value == 0:
        ea.mode = Mode(Mode.MEMPOST + pc)
        ea.extension |= EXT_IISNOIN
        _skip(stream)
        return ea

    if stream.accept(".L"):
        ea.mode = Mode(Mode.MEMPOST + pc)
        ea.extension |= EXT_IISNOIL
    else:
        ea.extension |= EXT_IISNOIW
        ea.mode = Mode(Mode.MEMPRE + pc)
        if stream.accept(".W"):
            ea.mode = Mode(Mode.MEMPOST + pc)

    _closing(stream)
    return ea


def _base_displacement(stream: TokenStream, ea: EffectiveAddress, symbols,
                       optimize: bool) -> None:
    token = stream.peek()
    if token is None or token.kind not in ("const", "symbol"):
        ea.extension |= EXT_BDSIZE0
        return
    ea.base_value, ea.base_expression = stream.expression(symbols)
    if optimize and ea.base_value == 0 and ea.defined:
        ea.extension |= EXT_BDSIZE0
    elif stream.accept(".L"):
        ea.extension |= EXT_BDSIZEL
    elif stream.accept(".W"):
        ea.extension |= EXT_BDSIZEW
    elif optimize and _fits_short(ea.base_value):
        ea.extension |= EXT_BDSIZEW
    else:
        ea.extension |= EXT_BDSIZEL
    stream.accept(",")


def _postindexed(stream: TokenStream, ea: EffectiveAddress, symbols,
                 optimize: bool) -> EffectiveAddress:
    pc = _pc_offset(ea)
    if stream.accept(")"):
        ea.mode = Mode(Mode.MEMPRE + pc)
        ea.extension |= EXT_IS | EXT_IISPREN
        return ea
    if not stream.accept(","):
        raise AddressingModeError("comma expected after ]")

    address = _is_reg(stream, lambda r: r.is_address)
    data = _is_reg(stream, lambda r: r.is_data)
    if address is not None:
        ea.index_reg = address.number << 12
        ea.extension |= EXT_A
        stream.next()
    elif data is not None:
        ea.extension |= (data.number << 12) | EXT_D
        stream.next()
    else:
        ea.extension |= EXT_IS
        stream.position -= 1  # back onto the comma
        return _suppressed_index(stream, ea, symbols, optimize)

    _index_size(stream, ea)
    _scale(stream, ea, symbols)

    if stream.accept(")"):
        ea.mode = Mode(Mode.MEMPOST + pc)
        ea.extension |= EXT_IISPOSN
        return ea
    if not stream.accept(","):
        raise AddressingModeError("comma expected")
    return parse_outer_displacement(stream, ea, symbols, optimize)


def _preindexed(stream: TokenStream, ea: EffectiveAddress, symbols,
                optimize: bool) -> EffectiveAddress:
    pc = _pc_offset(ea)
    reg = _is_reg(stream, lambda r: r.is_general)
    if reg is not None:
        ea.extension |= (reg.number << 12) | (EXT_A if reg.is_address else EXT_D)
        stream.next()
    _index_size(stream, ea)
    _scale(stream, ea, symbols, constant_sets_extension=True)

    if not stream.accept("]"):
        raise AddressingModeError("Expected closing bracket ]")
    if stream.accept(")"):
        ea.mode = Mode(Mode.MEMPRE + pc)
        ea.extension |= EXT_IISPREN
        return ea
    if not stream.accept(","):
        raise AddressingModeError("comma expected after ]")

    token = stream.peek()
    if token is not None and token.kind in ("const", "symbol"):
        try:
            ea.value, ea.expression = stream.expression(symbols)
        except AddressingModeError as exc:
            raise _bad_mode() from exc
        if optimize and ea.value == 0:
            ea.mode = Mode(Mode.MEMPRE + pc)
            ea.extension |= EXT_IISPRE0
            _skip(stream)
            return ea

    ea.mode = Mode(Mode.MEMPRE + pc)
    if stream.accept(".L"):
        ea.extension |= EXT_IISPREL
    else:
        value = ea.value or 0
        expr_size = EXT_IISPREW
        if ((value + 0x8000) & _MASK64) > 0x10000:
            expr_size = EXT_IISPREL
            if optimize and ea.defined and _fits_short(ea.value):
                expr_size = EXT_IISPREW
        ea.extension |= expr_size
        if stream.accept(".W") and expr_size == EXT_IISPREL:
            raise AddressingModeError("outer displacement value does not fit in .w size")

    _closing(stream)
    return ea


def parse_memory_indirect(stream: TokenStream, ea: EffectiveAddress | None = None,
                          symbols: Mapping[str, int] | None = None,
                          optimize: bool = False) -> EffectiveAddress:
    """Parse '[bd,An|PC|Dn ...]...)' after the opening parenthesis.

    optimize enables the 68020 displacement size optimisations.
    """
    if ea is None:
        ea = EffectiveAddress()
    if not stream.accept("["):
        raise _bad_mode()
    ea.extension |= EXT_FULLWORD
    _base_displacement(stream, ea, symbols, optimize)

    if stream.accept(Reg.PC):
        ea.reg = _PC_REG
    elif (address := _is_reg(stream, lambda r: r.is_address)) is not None:
        ea.reg = _MEMORY_REG | address.number
        stream.next()
    elif (data := _is_reg(stream, lambda r: r.is_data)) is not None:
        ea.reg = _MEMORY_REG
        ea.extension |= (data.number << 12) | EXT_D | EXT_BS
        stream.next()
        _index_size(stream, ea)
        _scale(stream, ea, symbols)
        if stream.accept("]"):
            return _suppressed_index(stream, ea, symbols, optimize)
    elif stream.peek() is not None and stream.peek().matches("]"):
        ea.reg = _MEMORY_REG
        ea.extension |= EXT_BS
    else:
        raise _bad_mode()

    if stream.accept("]"):
        return _postindexed(stream, ea, symbols, optimize)
    if stream.accept(","):
        return _preindexed(stream, ea, symbols, optimize)
    raise _bad_mode()