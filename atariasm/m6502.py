"""6502 code generation: addressing-mode parsing, opcode selection and XEX output."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import IntEnum
from typing import BinaryIO, Mapping

__all__ = [
    "M6502Error",
    "AddrMode",
    "Operand",
    "Fixup",
    "M6502Assembler",
    "atascii",
    "parse_operand",
]

_CODE_SIZE = 0x10010  # 64K plus a little slack
_CODE_LIMIT = 0x10000
_ATASCII_FALLBACK = 31  # internal code for "?"


class M6502Error(Exception):
    """Raised for any error while assembling 6502 code."""


class AddrMode(IntEnum):
    """6502 addressing modes."""

    ABS = 0
    ABSX = 1
    ABSY = 2
    IMPL = 3
    IMMED = 4
    INDX = 5
    INDY = 6
    IND = 7
    REL = 8
    ZP = 9
    ZPX = 10
    ZPY = 11
    IMMEDH = 12
    IMMEDL = 13


_ABS_TO_ZP = {
    AddrMode.ABS: AddrMode.ZP,
    AddrMode.ABSX: AddrMode.ZPX,
    AddrMode.ABSY: AddrMode.ZPY,
}

_M = AddrMode
_ALU_MODES = (_M.IMMED, _M.ABS, _M.ZP, _M.INDX, _M.INDY, _M.ZPX, _M.ABSX, _M.ABSY)
_SHIFT_MODES = (_M.ABS, _M.ZP, _M.IMPL, _M.ZPX, _M.ABSX)


def _alu(*codes: int) -> tuple:
    return tuple(zip(_ALU_MODES, codes))


def _shift(*codes: int) -> tuple:
    return tuple(zip(_SHIFT_MODES, codes))


def _one(mode: AddrMode, code: int) -> tuple:
    return ((mode, code),)


_INSTRUCTIONS: tuple[tuple[str, tuple], ...] = (
    ("adc", _alu(0x69, 0x6D, 0x65, 0x61, 0x71, 0x75, 0x7D, 0x79)),
    ("and", _alu(0x29, 0x2D, 0x25, 0x21, 0x31, 0x35, 0x3D, 0x39)),
    ("asl", _shift(0x0E, 0x06, 0x0A, 0x16, 0x1E)),
    ("bcc", _one(_M.REL, 0x90)),
    ("bcs", _one(_M.REL, 0xB0)),
    ("beq", _one(_M.REL, 0xF0)),
    ("bne", _one(_M.REL, 0xD0)),
    ("bmi", _one(_M.REL, 0x30)),
    ("bpl", _one(_M.REL, 0x10)),
    ("bvc", _one(_M.REL, 0x50)),
    ("bvs", _one(_M.REL, 0x70)),
    ("bit", ((_M.ABS, 0x2C), (_M.ZP, 0x24))),
    ("brk", _one(_M.IMPL, 0x00)),
    ("clc", _one(_M.IMPL, 0x18)),
    ("cld", _one(_M.IMPL, 0xD8)),
    ("cli", _one(_M.IMPL, 0x58)),
    ("clv", _one(_M.IMPL, 0xB8)),
    ("cmp", _alu(0xC9, 0xCD, 0xC5, 0xC1, 0xD1, 0xD5, 0xDD, 0xD9)),
    ("cpx", ((_M.IMMED, 0xE0), (_M.ABS, 0xEC), (_M.ZP, 0xE4))),
    ("cpy", ((_M.IMMED, 0xC0), (_M.ABS, 0xCC), (_M.ZP, 0xC4))),
    ("dec", ((_M.ABS, 0xCE), (_M.ZP, 0xC6), (_M.ZPX, 0xD6), (_M.ABSX, 0xDE))),
    ("dex", _one(_M.IMPL, 0xCA)),
    ("dey", _one(_M.IMPL, 0x88)),
    ("eor", _alu(0x49, 0x4D, 0x45, 0x41, 0x51, 0x55, 0x5D, 0x59)),
    ("inc", ((_M.ABS, 0xEE), (_M.ZP, 0xE6), (_M.ZPX, 0xF6), (_M.ABSX, 0xFE))),
    ("inx", _one(_M.IMPL, 0xE8)),
    ("iny", _one(_M.IMPL, 0xC8)),
    ("jmp", ((_M.ABS, 0x4C), (_M.IND, 0x6C))),
    ("jsr", _one(_M.ABS, 0x20)),
    ("lda", _alu(0xA9, 0xAD, 0xA5, 0xA1, 0xB1, 0xB5, 0xBD, 0xB9)
        + ((_M.IMMEDH, 0xA9), (_M.IMMEDL, 0xA9))),
    ("ldx", ((_M.IMMED, 0xA2), (_M.ABS, 0xAE), (_M.ZP, 0xA6), (_M.ABSY, 0xBE),
             (_M.ZPY, 0xB6), (_M.IMMEDH, 0xA2), (_M.IMMEDL, 0xA2))),
    ("ldy", ((_M.IMMED, 0xA0), (_M.ABS, 0xAC), (_M.ZP, 0xA4), (_M.ZPX, 0xB4),
             (_M.ABSX, 0xBC), (_M.IMMEDH, 0xA0), (_M.IMMEDL, 0xA0))),
    ("lsr", _shift(0x4E, 0x46, 0x4A, 0x56, 0x5E)),
    ("nop", _one(_M.IMPL, 0xEA)),
    ("ora", _alu(0x09, 0x0D, 0x05, 0x01, 0x11, 0x15, 0x1D, 0x19)),
    ("pha", _one(_M.IMPL, 0x48)),
    ("php", _one(_M.IMPL, 0x08)),
    ("pla", _one(_M.IMPL, 0x68)),
    ("plp", _one(_M.IMPL, 0x28)),
    ("rol", _shift(0x2E, 0x26, 0x2A, 0x36, 0x3E)),
    ("ror", _shift(0x6E, 0x66, 0x6A, 0x76, 0x7E)),
    ("rti", _one(_M.IMPL, 0x40)),
    ("rts", _one(_M.IMPL, 0x60)),
    ("sbc", _alu(0xE9, 0xED, 0xE5, 0xE1, 0xF1, 0xF5, 0xFD, 0xF9)),
    ("sec", _one(_M.IMPL, 0x38)),
    ("sed", _one(_M.IMPL, 0xF8)),
    ("sei", _one(_M.IMPL, 0x78)),
    ("sta", ((_M.ABS, 0x8D), (_M.ZP, 0x85), (_M.INDX, 0x81), (_M.INDY, 0x91),
             (_M.ZPX, 0x95), (_M.ABSX, 0x9D), (_M.ABSY, 0x99))),
    ("stx", ((_M.ABS, 0x8E), (_M.ZP, 0x86), (_M.ZPY, 0x96))),
    ("sty", ((_M.ABS, 0x8C), (_M.ZP, 0x84), (_M.ZPX, 0x94))),
    ("tax", _one(_M.IMPL, 0xAA)),
    ("tay", _one(_M.IMPL, 0xA8)),
    ("tsx", _one(_M.IMPL, 0xBA)),
    ("txa", _one(_M.IMPL, 0x8A)),
    ("txs", _one(_M.IMPL, 0x9A)),
    ("tya", _one(_M.IMPL, 0x98)),
)


def _build_opcode_table() -> dict[str, dict[AddrMode, tuple[AddrMode, int]]]:
    """Map mnemonic -> addressing mode -> (encoding kind, opcode)."""
    table: dict[str, dict[AddrMode, tuple[AddrMode, int]]] = {}
    for name, entries in _INSTRUCTIONS:
        modes: dict[AddrMode, tuple[AddrMode, int]] = {}
        for mode, code in entries:
            modes[mode] = (mode, code)
            if mode is AddrMode.REL:
                # Branch targets are written as plain addresses.
                modes[AddrMode.ABS] = (AddrMode.REL, code)
                modes[AddrMode.ZP] = (AddrMode.REL, code)
        table[name] = modes
    return table


_OPCODES = _build_opcode_table()


def _build_atascii() -> dict[str, int]:
    table = {chr(code): code - 0x20 for code in range(0x20, 0x60)}
    table.update({chr(code): code for code in range(ord("a"), ord("z") + 1)})
    return table


_ATASCII = _build_atascii()


def atascii(text: str) -> bytes:
    """Convert text to Atari 800 internal screen codes; unknown characters become '?'."""
    return bytes(_ATASCII.get(ch, _ATASCII_FALLBACK) for ch in text)


@dataclass(frozen=True)
class Operand:
    """A parsed 6502 operand."""

    mode: AddrMode
    value: int | None = None
    expression: str = ""
    zero_page_request: bool = False

    @property
    def defined(self) -> bool:
        return self.value is not None


@dataclass(frozen=True)
class Fixup:
    """A forward reference to patch once the expression can be evaluated.

    kind is one of "byte", "byte_high", "byte_low", "branch" or "word".
    """

    kind: str
    location: int
    expression: str


@dataclass(frozen=True)
class _Token:
    kind: str  # "num", "name", "reg", "punct"
    value: object
    start: int
    end: int


_TOKEN_RE = re.compile(
    r"\s*(?:\$(?P<hex>[0-9A-Fa-f]+)|%(?P<bin>[01]+)|(?P<dec>\d+)"
    r"|(?P<name>[A-Za-z_.][A-Za-z0-9_.]*)|(?P<punct>\S))"
)

_BINARY_PRECEDENCE = {"|": 1, "^": 2, "&": 3, "+": 4, "-": 4, "*": 5, "/": 5}
_REGISTERS = {"a": "A", "x": "X", "y": "Y"}


def _tokenize(text: str) -> list[_Token]:
    tokens: list[_Token] = []
    pos = 0
    while text[pos:].strip():
        match = _TOKEN_RE.match(text, pos)
        group = match.lastgroup
        raw = match.group(group)
        start, end = match.start(), match.end()
        start = end - len(raw) - (1 if group in ("hex", "bin") else 0)
        if group == "hex":
            tokens.append(_Token("num", int(raw, 16), start, end))
        elif group == "bin":
            tokens.append(_Token("num", int(raw, 2), start, end))
        elif group == "dec":
            tokens.append(_Token("num", int(raw, 10), start, end))
        elif group == "name":
            reg = _REGISTERS.get(raw.lower())
            if reg is not None:
                tokens.append(_Token("reg", reg, start, end))
            else:
                tokens.append(_Token("name", raw, start, end))
        else:
            tokens.append(_Token("punct", raw, start, end))
        pos = end
    return tokens


class _Parser:
    def __init__(self, text: str, symbols: Mapping[str, int] | None):
        self.text = text
        self.tokens = _tokenize(text)
        self.pos = 0
        self.symbols = symbols or {}

    def peek(self, offset: int = 0) -> _Token | None:
        index = self.pos + offset
        return self.tokens[index] if index < len(self.tokens) else None

    def at_end(self, offset: int = 0) -> bool:
        return self.peek(offset) is None

    def punct(self, char: str, offset: int = 0) -> bool:
        token = self.peek(offset)
        return token is not None and token.kind == "punct" and token.value == char

    def reg(self, name: str, offset: int = 0) -> bool:
        token = self.peek(offset)
        return token is not None and token.kind == "reg" and token.value == name

    def advance(self, count: int = 1) -> None:
        self.pos += count

    def expression(self) -> tuple[int | None, str]:
        first = self.pos
        value = self._binary(1)
        text = self.text[self.tokens[first].start:self.tokens[self.pos - 1].end]
        return value, text

    def _binary(self, min_prec: int) -> int | None:
        left = self._unary()
        while True:
            token = self.peek()
            if token is None or token.kind != "punct":
                return left
            prec = _BINARY_PRECEDENCE.get(token.value)
            if prec is None or prec < min_prec:
                return left
            self.advance()
            right = self._binary(prec + 1)
            left = _apply(token.value, left, right)

    def _unary(self) -> int | None:
        if self.punct("-"):
            self.advance()
            value = self._unary()
            return None if value is None else -value
        if self.punct("~"):
            self.advance()
            value = self._unary()
            return None if value is None else ~value
        return self._primary()

    def _primary(self) -> int | None:
        token = self.peek()
        if token is None:
            raise M6502Error("missing expression")
        if token.kind == "num":
            self.advance()
            return token.value
        if token.kind == "name":
            self.advance()
            return self.symbols.get(token.value)
        if token.kind == "punct" and token.value in "([":
            closer = ")" if token.value == "(" else "]"
            self.advance()
            value = self._binary(1)
            if not self.punct(closer):
                raise M6502Error(f"missing '{closer}' in expression")
            self.advance()
            return value
        raise M6502Error("bad expression")


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
            raise M6502Error("divide by zero")
        return int(left / right)
    if op == "&":
        return left & right
    if op == "|":
        return left | right
    return left ^ right


def _bad_mode() -> M6502Error:
    return M6502Error("bad 6502 addressing mode")


def parse_operand(text: str, symbols: Mapping[str, int] | None = None) -> Operand:
    """Parse the operand field of a 6502 instruction."""
    p = _Parser(text, symbols)
    zpreq = False
    value: int | None = None
    expression = ""

    if p.at_end():
        return Operand(AddrMode.IMPL)

    if p.reg("A"):
        if not p.at_end(1):
            raise _bad_mode()
        return Operand(AddrMode.IMPL)

    if p.punct("#"):
        p.advance()
        if p.punct(">"):
            p.advance()
            mode = AddrMode.IMMEDH
        elif p.punct("<"):
            p.advance()
            mode = AddrMode.IMMEDL
        else:
            mode = AddrMode.IMMED
        value, expression = p.expression()
    elif p.punct("("):
        p.advance()
        value, expression = p.expression()
        if p.punct(")"):
            p.advance()
            if p.punct(","):
                p.advance()
                if not p.reg("Y"):
                    raise _bad_mode()
                p.advance()
                mode = AddrMode.INDY
            else:
                mode = AddrMode.IND
        elif p.punct(",") and p.reg("X", 1) and p.punct(")", 2):
            p.advance(3)
            mode = AddrMode.INDX
        else:
            raise _bad_mode()
    elif p.punct("@"):
        p.advance()
        value, expression = p.expression()
        if p.punct("("):
            p.advance()
            if not (p.punct(")", 1) and p.at_end(2)):
                raise _bad_mode()
            if p.reg("X"):
                mode = AddrMode.INDX
            elif p.reg("Y"):
                mode = AddrMode.INDY
            else:
                raise _bad_mode()
            p.advance(2)
            zpreq = True
        elif p.at_end():
            mode = AddrMode.IND
        else:
            raise _bad_mode()
    else:
        value, expression = p.expression()
        zpreq = True
        if p.at_end():
            mode = AddrMode.ABS
        elif p.punct(","):
            p.advance()
            if p.reg("X"):
                mode = AddrMode.ABSX
            elif p.reg("Y"):
                mode = AddrMode.ABSY
            else:
                raise _bad_mode()
            p.advance()
        else:
            raise _bad_mode()

    if not p.at_end():
        raise M6502Error("extra (unexpected) text found after addressing mode")
    return Operand(mode, value, expression, zpreq)


class M6502Assembler:
    """Generates 6502 code into a 64K image and writes it as an Atari XEX file."""

    def __init__(self) -> None:
        self._memory = bytearray(_CODE_SIZE)
        self.location = 0
        self.fixups: list[Fixup] = []
        self._closed: list[tuple[int, int]] = []
        self._org_start = 0

    def org(self, address: int) -> None:
        """Start a new segment at the given address."""
        if not 0 <= address <= 0xFFFF:
            raise M6502Error("value out of range")
        if self.location != self._org_start:
            self._closed.append((self._org_start, self.location))
        self._org_start = address
        self.location = address

    def assemble(self, mnemonic: str, operand: str = "",
                 symbols: Mapping[str, int] | None = None) -> bytes:
        """Assemble one instruction at the current location and return its bytes."""
        modes = _OPCODES.get(mnemonic.lower())
        if modes is None:
            raise M6502Error(f"unknown 6502 mnemonic '{mnemonic}'")

        op = parse_operand(operand, symbols)
        mode = op.mode
        entry = modes.get(mode)

        if entry is None or (op.zero_page_request and op.defined
                             and 0 <= op.value < 0x100):
            zp_mode = _ABS_TO_ZP.get(mode)
            if zp_mode is not None and zp_mode in modes:
                mode = zp_mode
                entry = modes[zp_mode]

        if entry is None:
            raise M6502Error("illegal 6502 addressing mode")

        kind, opcode = entry
        start = self.location
        operand_location = start + 1
        value = op.value
        fixup: Fixup | None = None

        if kind is AddrMode.IMPL:
            body = b""
        elif kind in (AddrMode.IMMEDH, AddrMode.IMMEDL):
            if value is None:
                fixup_kind = "byte_high" if kind is AddrMode.IMMEDH else "byte_low"
                fixup = Fixup(fixup_kind, operand_location, op.expression)
                value = 0
            if kind is AddrMode.IMMEDH:
                value >>= 8
            body = bytes([value & 0xFF])
        elif kind in (AddrMode.IMMED, AddrMode.INDX, AddrMode.INDY,
                      AddrMode.ZP, AddrMode.ZPX, AddrMode.ZPY):
            if value is None:
                fixup = Fixup("byte", operand_location, op.expression)
                value = 0
            elif not -0x100 <= value < 0x100:
                raise M6502Error("value out of range")
            body = bytes([value & 0xFF])
        elif kind is AddrMode.REL:
            if value is None:
                fixup = Fixup("branch", operand_location, op.expression)
                offset = 0
            else:
                offset = value - (operand_location + 1)
                if not -0x80 <= offset < 0x80:
                    raise M6502Error("value out of range")
            body = bytes([offset & 0xFF])
        else:
            if value is None:
                fixup = Fixup("word", operand_location, op.expression)
                value = 0
            body = (value & 0xFFFF).to_bytes(2, "little")

        code = bytes([opcode]) + body
        end = start + len(code)
        if end > _CODE_LIMIT:
            raise M6502Error("6502 code pointer > 64K")

        self._memory[start:end] = code
        self.location = end
        if fixup is not None:
            self.fixups.append(fixup)
        return code

    def _segments(self) -> list[tuple[int, int]]:
        segments = list(self._closed)
        if self.location != self._org_start:
            segments.append((self._org_start, self.location))
        return segments

    def object_bytes(self) -> bytes:
        """Return the XEX image: $FFFF header, then start/end/data for each segment."""
        segments = self._segments()
        if not segments:
            return b""
        out = bytearray(b"\xff\xff")
        for start, end in segments:
            out += start.to_bytes(2, "little")
            out += (end - 1).to_bytes(2, "little")
            out += self._memory[start:end]
        return bytes(out)

    def write_object(self, stream: BinaryIO) -> None:
        """Write the XEX image to a binary stream."""
        stream.write(self.object_bytes())