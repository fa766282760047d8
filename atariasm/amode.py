"""68000-family operand tokens, addressing-mode constants and register-list parsing."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import IntEnum
from typing import Iterable, Mapping

__all__ = [
    "AddressingModeError",
    "Mode",
    "Reg",
    "Token",
    "TokenStream",
    "EffectiveAddress",
    "Bitfield",
    "tokenize",
    "reglist",
    "fpu_reglist_left",
    "fpu_reglist_right",
    "parse_bitfield",
]


class AddressingModeError(Exception):
    """Raised when an operand cannot be parsed."""


# Addressing-mode masks
M_DREG = 0x00000001
M_AREG = 0x00000002
M_AIND = 0x00000004
M_APOSTINC = 0x00000008
M_APREDEC = 0x00000010
M_ADISP = 0x00000020
M_AINDEXED = 0x00000040
M_ABSW = 0x00000080
M_ABSL = 0x00000100
M_PCDISP = 0x00000200
M_PCINDEXED = 0x00000400
M_IMMED = 0x00000800
M_ABASE = 0x00001000
M_MEMPOST = 0x00002000
M_MEMPRE = 0x00004000
M_PCBASE = 0x00008000
M_PCMPOST = 0x00010000
M_PCMPRE = 0x00020000
M_AM_USP = 0x00040000
M_AM_SR = 0x00080000
M_AM_CCR = 0x00100000
M_AM_NONE = 0x00200000
M_BITFLD = 0x00400000
M_CREG = 0x00800000
M_FREG = 0x01000000
M_FPSCR = 0x02000000
M_CACHE40 = 0x04000000

# Addressing-mode categories
C_ALL = 0x00000FFF
C_DATA = 0x00000FFD
C_MEM = 0x00000FFC
C_CTRL = 0x000007E4
C_ALT = 0x000001FF
C_ALL030 = 0x0003FFFF
C_ALT030 = 0x000071FD
C_FPU030 = 0x0003FFEC
C_CTRL030 = 0x0003F7E4
C_DATA030 = 0x0003FFFD
C_MOVES = (M_AIND | M_APOSTINC | M_APREDEC | M_ADISP | M_AINDEXED | M_ABSW
           | M_ABSL | M_ABASE | M_MEMPRE | M_MEMPOST)
C_BF1 = (M_DREG | M_AIND | M_AINDEXED | M_ADISP | M_ABSW | M_ABSL | M_ABASE
         | M_MEMPOST | M_MEMPRE)
C_BF2 = C_BF1 | M_PCDISP | M_PCINDEXED | M_PCBASE | M_PCMPOST | M_PCMPRE
C_PMOVE = (M_AIND | M_ADISP | M_AINDEXED | M_ABSW | M_ABSL | M_ABASE
           | M_MEMPRE | M_MEMPOST)
C_ALTDATA = C_DATA & C_ALT
C_ALTMEM = C_MEM & C_ALT
C_ALTCTRL = C_CTRL & C_ALT
C_LABEL = M_ABSW | M_ABSL
C_NONE = M_AM_NONE
C_CREG = M_AM_USP | M_CREG
M_FC = M_IMMED | M_DREG | M_CREG
M_MRN = M_DREG | M_AREG | M_CREG

# Index scales
TIMES1 = 0o0000
TIMES2 = 0o1000
TIMES4 = 0o2000
TIMES8 = 0o3000

# Extension word bits
EXT_D = 0x0000
EXT_A = 0x8000
EXT_W = 0x0000
EXT_L = 0x0800
EXT_TIMES1 = 0x0000
EXT_TIMES2 = 0x0200
EXT_TIMES4 = 0x0400
EXT_TIMES8 = 0x0600
EXT_FULLWORD = 0x0100
EXT_BS = 0x0080
EXT_IS = 0x0040
EXT_BDSIZE0 = 0x0010
EXT_BDSIZEW = 0x0020
EXT_BDSIZEL = 0x0030
EXT_IISPRE0 = 0x0000
EXT_IISPREN = 0x0001
EXT_IISPREW = 0x0002
EXT_IISPREL = 0x0003
EXT_IISPOSN = 0x0005
EXT_IISPOSW = 0x0006
EXT_IISPOSL = 0x0007
EXT_IISNOI0 = 0x0000
EXT_IISNOIN = 0x0001
EXT_IISNOIW = 0x0002
EXT_IISNOIL = 0x0003


class Mode(IntEnum):
    """68000/68020 addressing modes (mode field values)."""

    DREG = 0o000
    AREG = 0o010
    AIND = 0o020
    APOSTINC = 0o030
    APREDEC = 0o040
    ADISP = 0o050
    AINDEXED = 0o060
    ABSW = 0o070
    ABSL = 0o071
    PCDISP = 0o072
    PCINDEXED = 0o073
    IMMED = 0o074
    ABASE = 0o100
    MEMPOST = 0o101
    MEMPRE = 0o102
    PCBASE = 0o103
    PCMPOST = 0o104
    PCMPRE = 0o105
    AM_USP = 0o106
    AM_SR = 0o107
    AM_CCR = 0o110
    NONE = 0o111
    DINDW = 0o112
    DINDL = 0o113
    CACHES = 0o120
    CREG = 0o121
    FREG = 0o122
    FPSCR = 0o123

    @property
    def mask(self) -> int:
        """The mode's bit in an allowed-modes mask (0 if it has none)."""
        return _MODE_MASKS.get(self, 0)


_MODE_MASKS = {
    Mode.DREG: M_DREG,
    Mode.AREG: M_AREG,
    Mode.AIND: M_AIND,
    Mode.APOSTINC: M_APOSTINC,
    Mode.APREDEC: M_APREDEC,
    Mode.ADISP: M_ADISP,
    Mode.AINDEXED: M_AINDEXED,
    Mode.ABSW: M_ABSW,
    Mode.ABSL: M_ABSL,
    Mode.PCDISP: M_PCDISP,
    Mode.PCINDEXED: M_PCINDEXED,
    Mode.IMMED: M_IMMED,
    Mode.ABASE: M_ABASE,
    Mode.MEMPOST: M_MEMPOST,
    Mode.MEMPRE: M_MEMPRE,
    Mode.PCBASE: M_PCBASE,
    Mode.PCMPOST: M_PCMPOST,
    Mode.PCMPRE: M_PCMPRE,
    Mode.AM_USP: M_AM_USP,
    Mode.AM_SR: M_AM_SR,
    Mode.AM_CCR: M_AM_CCR,
    Mode.NONE: M_AM_NONE,
    Mode.CACHES: M_CACHE40,
    Mode.CREG: M_CREG,
    Mode.FREG: M_FREG,
    Mode.FPSCR: M_FPSCR,
}


class Reg(IntEnum):
    """68000-family register tokens."""

    D0 = 0x80
    D1 = 0x81
    D2 = 0x82
    D3 = 0x83
    D4 = 0x84
    D5 = 0x85
    D6 = 0x86
    D7 = 0x87
    A0 = 0x88
    A1 = 0x89
    A2 = 0x8A
    A3 = 0x8B
    A4 = 0x8C
    A5 = 0x8D
    A6 = 0x8E
    A7 = 0x8F
    FP0 = 0x90
    FP1 = 0x91
    FP2 = 0x92
    FP3 = 0x93
    FP4 = 0x94
    FP5 = 0x95
    FP6 = 0x96
    FP7 = 0x97
    PC = 0x98
    SR = 0x99
    CCR = 0x9A
    USP = 0x9B
    SSP = 0x9C
    IC40 = 0x9D
    DC40 = 0x9E
    BC40 = 0x9F
    FPIAR = 0xA0
    FPSR = 0xA1
    FPCR = 0xA2
    SFC = 0xB0
    DFC = 0xB1
    CACR = 0xB2
    TC = 0xB3
    ITT0 = 0xB4
    ITT1 = 0xB5
    DTT0 = 0xB6
    DTT1 = 0xB7
    BUSCR = 0xB8
    VBR = 0xB9
    CAAR = 0xBA
    MSP = 0xBB
    ISP = 0xBC
    MMUSR = 0xBD
    URP = 0xBE
    SRP = 0xBF
    PCR = 0xC0
    TT0 = 0xC1
    TT1 = 0xC2
    CRP = 0xC3

    @property
    def number(self) -> int:
        """Register number within its bank (0-7)."""
        return self.value & 7

    @property
    def index(self) -> int:
        """Position among D0-A7 (0-15)."""
        return self.value & 0x0F

    @property
    def is_data(self) -> bool:
        return Reg.D0 <= self <= Reg.D7

    @property
    def is_address(self) -> bool:
        return Reg.A0 <= self <= Reg.A7

    @property
    def is_general(self) -> bool:
        return Reg.D0 <= self <= Reg.A7

    @property
    def is_fp(self) -> bool:
        return Reg.FP0 <= self <= Reg.FP7

    @property
    def is_cache(self) -> bool:
        return Reg.IC40 <= self <= Reg.BC40

    @property
    def is_fp_control(self) -> bool:
        return Reg.FPIAR <= self <= Reg.FPCR

    @property
    def is_control(self) -> bool:
        return Reg.SFC <= self <= Reg.CRP


_REGISTER_NAMES: dict[str, Reg] = {reg.name.lower(): reg for reg in Reg}
for _cache in (Reg.IC40, Reg.DC40, Reg.BC40):
    del _REGISTER_NAMES[_cache.name.lower()]
    _REGISTER_NAMES[_cache.name[:2].lower()] = _cache
_REGISTER_NAMES["sp"] = Reg.A7

_KINDS = frozenset({"const", "symbol", "string", "reg", "size", "punct"})


@dataclass(frozen=True)
class Token:
    """One operand token: kind is const, symbol, string, reg, size or punct."""

    kind: str
    value: object
    text: str = ""

    def matches(self, kind: object) -> bool:
        """True for a register, a token kind, a size such as '.w' or a punctuation mark."""
        if isinstance(kind, Reg):
            return self.kind == "reg" and self.value is kind
        if kind in _KINDS:
            return self.kind == kind
        if self.kind == "size":
            return isinstance(kind, str) and kind.upper() == "." + str(self.value)
        return self.kind == "punct" and self.value == kind


_TOKEN_RE = re.compile(
    r"""(?P<ws>\s*)
    (?:
        "(?P<dq>[^"]*)" | '(?P<sq>[^']*)'
      | \$(?P<hex>[0-9A-Fa-f]+)
      | %(?P<bin>[01]+)
      | (?P<dec>[0-9]+)
      | (?P<size>\.[BbWwLlSsDdXxQqIi])(?![A-Za-z0-9_$?])
      | (?P<name>[A-Za-z_.][A-Za-z0-9_$?]*)
      | (?P<punct><<|>>|<=|>=|<>|!=|==|\S)
    )""",
    re.VERBOSE,
)


def tokenize(text: str) -> list[Token]:
    """Split an operand field into tokens."""
    tokens: list[Token] = []
    pos = 0
    while text[pos:].strip():
        match = _TOKEN_RE.match(text, pos)
        group = match.lastgroup
        raw = match.group(0)[len(match.group("ws")):]
        pos = match.end()
        if group in ("dq", "sq"):
            tokens.append(Token("string", match.group(group), raw))
        elif group == "hex":
            tokens.append(Token("const", int(match.group(group), 16), raw))
        elif group == "bin":
            tokens.append(Token("const", int(match.group(group), 2), raw))
        elif group == "dec":
            tokens.append(Token("const", int(raw, 10), raw))
        elif group == "size" and tokens and not match.group("ws"):
            tokens.append(Token("size", raw[1].upper(), raw))
        elif group in ("size", "name"):
            reg = _REGISTER_NAMES.get(raw.lower())
            if reg is not None:
                tokens.append(Token("reg", reg, raw))
            else:
                tokens.append(Token("symbol", raw, raw))
        else:
            tokens.append(Token("punct", raw, raw))
    return tokens


_BINARY_PRECEDENCE = {
    "|": 1, "^": 2, "&": 3,
    "==": 4, "<>": 4, "!=": 4, "<": 4, ">": 4, "<=": 4, ">=": 4,
    "<<": 5, ">>": 5,
    "+": 6, "-": 6,
    "*": 7, "/": 7,
}


def _apply(op: str, left: int | None, right: int | None) -> int | None:
    if left is None or right is None:
        return None
    if op == "+":
        return left + right
    if op == "-":
        return left - right
    if op == "*":
        return left * right
    if op == "/":
        if right == 0:
            raise AddressingModeError("divide by zero")
        return int(left / right)
    if op == "&":
        return left & right
    if op == "|":
        return left | right
    if op == "^":
        return left ^ right
    if op == "<<":
        return left << right
    if op == ">>":
        return left >> right
    comparisons = {
        "==": left == right, "<>": left != right, "!=": left != right,
        "<": left < right, ">": left > right,
        "<=": left <= right, ">=": left >= right,
    }
    return int(comparisons[op])


class TokenStream:
    """A cursor over a token list; position may be saved and restored."""

    def __init__(self, tokens: Iterable[Token] | str) -> None:
        if isinstance(tokens, str):
            tokens = tokenize(tokens)
        self.tokens: list[Token] = list(tokens)
        self.position = 0

    def peek(self, offset: int = 0) -> Token | None:
        """Return the token offset places ahead, or None past the end."""
        index = self.position + offset
        if 0 <= index < len(self.tokens):
            return self.tokens[index]
        return None

    def next(self) -> Token:
        """Consume and return the current token."""
        token = self.peek()
        if token is None:
            raise AddressingModeError("unexpected end of line")
        self.position += 1
        return token

    def accept(self, kind: object) -> Token | None:
        """Consume the current token if it matches kind; return it or None."""
        token = self.peek()
        if token is not None and token.matches(kind):
            self.position += 1
            return token
        return None

    def at_end(self) -> bool:
        return self.position >= len(self.tokens)

    def expression(self, symbols: Mapping[str, int] | None = None) -> tuple[int | None, str]:
        """Parse an expression; return its value (None if undefined) and its text."""
        first = self.position
        value = self._binary(1, symbols or {})
        text = "".join(token.text for token in self.tokens[first:self.position])
        return value, text

    def _binary(self, min_prec: int, symbols: Mapping[str, int]) -> int | None:
        left = self._unary(symbols)
        while True:
            token = self.peek()
            if token is None or token.kind != "punct":
                return left
            prec = _BINARY_PRECEDENCE.get(token.value)
            if prec is None or prec < min_prec:
                return left
            self.position += 1
            right = self._binary(prec + 1, symbols)
            left = _apply(token.value, left, right)

    def _unary(self, symbols: Mapping[str, int]) -> int | None:
        for op in ("-", "~", "!", "+"):
            if self.accept(op):
                value = self._unary(symbols)
                if value is None:
                    return None
                if op == "-":
                    return -value
                if op == "~":
                    return ~value
                if op == "!":
                    return int(not value)
                return value
        return self._primary(symbols)

    def _primary(self, symbols: Mapping[str, int]) -> int | None:
        token = self.peek()
        if token is None:
            raise AddressingModeError("missing expression")
        if token.kind == "const":
            self.position += 1
            return token.value
        if token.kind == "symbol":
            self.position += 1
            return symbols.get(token.value)
        if token.kind == "punct" and token.value in ("(", "["):
            closer = ")" if token.value == "(" else "]"
            self.position += 1
            value = self._binary(1, symbols)
            if not self.accept(closer):
                raise AddressingModeError(f"missing '{closer}' in expression")
            return value
        raise AddressingModeError("bad expression")


@dataclass
class EffectiveAddress:
    """Result of parsing one addressing mode."""

    mode: Mode = Mode.NONE
    reg: int = 0
    value: int | None = None
    expression: str = ""
    index_reg: int = 0
    index_size: int = 0
    base_value: int | None = None
    base_expression: str = ""
    base_size: int = 0
    extension: int = 0

    @property
    def defined(self) -> bool:
        return self.value is not None

    @property
    def base_defined(self) -> bool:
        return self.base_value is not None

    @property
    def mask(self) -> int:
        return self.mode.mask


@dataclass(frozen=True)
class Bitfield:
    """The {offset:width} part of a bitfield operand.

    A parameter holds 1<<11 (offset) or 1<<5 (width) when the field names a data
    register, in which case the value is the register number.
    """

    offset: int
    offset_param: int = 0
    width: int | None = None
    width_param: int = 0


def _general_reglist(stream: TokenStream, accepts, position, masks) -> int:
    mask = 0
    while True:
        token = stream.peek()
        if token is None or token.kind != "reg" or not accepts(token.value):
            break
        stream.next()
        first = position(token.value)
        last = first
        if stream.accept("-"):
            end = stream.peek()
            if end is None or end.kind != "reg" or not accepts(end.value):
                raise AddressingModeError("register list syntax")
            stream.next()
            last = position(end.value)
            if last < first:
                raise AddressingModeError("register list order")
        for bit in masks(first, last):
            mask |= bit
        if not stream.accept("/"):
            break
    return mask


def reglist(stream: TokenStream) -> int:
    """Parse a D0-A7 register list such as d0-d3/a5; D0 is bit 0, A7 bit 15."""
    return _general_reglist(
        stream,
        lambda reg: reg.is_general,
        lambda reg: reg.index,
        lambda first, last: (1 << r for r in range(first, last + 1)),
    )


_FP_MASKS = (0x0080, 0x0040, 0x0020, 0x0010, 0x0008, 0x0004, 0x0002, 0x0001)


def fpu_reglist_left(stream: TokenStream) -> int:
    """Parse an FP register list for the predecrement form.

    Each range sets as many bits as it spans, counted from the FP0 position.
    """
    return _general_reglist(
        stream,
        lambda reg: reg.is_fp,
        lambda reg: reg.number,
        lambda first, last: _FP_MASKS[:last - first + 1],
    )


def fpu_reglist_right(stream: TokenStream) -> int:
    """Parse an FP register list; FP0 is bit 7, FP7 bit 0."""
    return _general_reglist(
        stream,
        lambda reg: reg.is_fp,
        lambda reg: reg.number,
        lambda first, last: _FP_MASKS[first:last + 1],
    )


def _bitfield_field(stream: TokenStream, symbols, register_param: int,
                    what: str) -> tuple[int, int]:
    token = stream.peek()
    if token is None:
        raise AddressingModeError("bitfield syntax")
    if token.kind == "reg" and token.value.is_data:
        stream.next()
        return token.value.number, register_param
    if token.kind in ("const", "symbol"):
        value, _ = stream.expression(symbols)
        if value is None:
            raise AddressingModeError(f"bfxxx {what}: immediate value must evaluate")
        return value, 0
    raise AddressingModeError("bitfield syntax")


def parse_bitfield(stream: TokenStream, symbols: Mapping[str, int] | None = None) -> Bitfield:
    """Parse '{offset:width}' (or '{dn}' at the end of an fmove operand)."""
    if not stream.accept("{"):
        raise AddressingModeError("bitfield syntax")
    offset, offset_param = _bitfield_field(stream, symbols, 1 << 11, "offset")
    stream.accept(":")
    after = stream.peek(1)
    if stream.peek() is not None and stream.peek().matches("}") and after is None:
        stream.next()
        return Bitfield(offset, offset_param)
    width, width_param = _bitfield_field(stream, symbols, 1 << 5, "width")
    if not stream.accept("}"):
        raise AddressingModeError("bitfield syntax")
    return Bitfield(offset, offset_param, width, width_param)