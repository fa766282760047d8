"""Symbol directives (.globl, .comm, .equrundef, .ccundef, .undefmac) and file lookups."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntFlag
from pathlib import Path
from typing import Iterable

from .layout import DirectiveError

__all__ = ["SymbolAttr", "Symbol", "SymbolTable", "find_include", "read_binary"]


class SymbolAttr(IntFlag):
    """Symbol attribute bits."""

    DEFINED = 0x0001
    GLOBAL = 0x0002
    COMMON = 0x0004
    BSS = 0x0008
    EQUATED = 0x0010
    ABS = 0x0020
    REFERENCED = 0x0040
    EQUATEDREG = 0x0100
    EQUATEDCC = 0x0200
    UNDEF_EQUR = 0x0400
    UNDEF_CC = 0x0800


# Attributes that survive when an equated register is undefined.
_EXTENDED = (SymbolAttr.EQUATEDREG | SymbolAttr.EQUATEDCC
             | SymbolAttr.UNDEF_EQUR | SymbolAttr.UNDEF_CC)


@dataclass
class Symbol:
    """A label with its value and attributes."""

    name: str
    value: int = 0
    attr: SymbolAttr = SymbolAttr(0)


class SymbolTable:
    """Labels and macro names."""

    def __init__(self) -> None:
        self.labels: dict[str, Symbol] = {}
        self.macros: dict[str, str] = {}

    def lookup(self, name: str) -> Symbol | None:
        return self.labels.get(name)

    def define(self, name: str, value: int = 0,
               attr: SymbolAttr = SymbolAttr.DEFINED) -> Symbol:
        """Add or replace a label."""
        symbol = Symbol(name, value, SymbolAttr(attr))
        self.labels[name] = symbol
        return symbol

    def define_macro(self, name: str, body: str = "") -> None:
        self.macros[name] = body

    def globl(self, names: Iterable[str]) -> None:
        """Make each named label global, creating it if needed."""
        for name in names:
            if name.startswith("."):
                raise DirectiveError("cannot .globl local symbol")
            symbol = self.lookup(name)
            if symbol is None:
                self.labels[name] = Symbol(name, 0, SymbolAttr.GLOBAL)
            else:
                symbol.attr |= SymbolAttr.GLOBAL

    def comm(self, name: str, size: int) -> Symbol:
        """Declare a common symbol of the given size."""
        if name.startswith("."):
            raise DirectiveError("cannot define a local symbol as global")
        symbol = self.lookup(name)
        if symbol is None:
            symbol = Symbol(name)
            self.labels[name] = symbol
        elif symbol.attr & SymbolAttr.DEFINED:
            raise DirectiveError(".comm symbol already defined")
        if size is None:
            raise DirectiveError("undefined expression")
        symbol.attr = SymbolAttr.GLOBAL | SymbolAttr.COMMON | SymbolAttr.BSS
        symbol.value = size
        return symbol

    def equrundef(self, names: Iterable[str]) -> None:
        """Undefine equated registers; other names are ignored."""
        for name in names:
            symbol = self.lookup(name)
            if symbol is not None and symbol.attr & SymbolAttr.EQUATEDREG:
                extended = (symbol.attr & _EXTENDED) & ~SymbolAttr.EQUATEDREG
                symbol.attr = SymbolAttr(extended | SymbolAttr.UNDEF_EQUR)

    def ccundef(self, name: str) -> None:
        """Undefine an equated condition code."""
        symbol = self.lookup(name)
        if symbol is None or not symbol.attr & SymbolAttr.EQUATEDCC:
            raise DirectiveError("invalid equated condition name specified")
        symbol.attr |= SymbolAttr.UNDEF_CC

    def undefine_macros(self, names: Iterable[str]) -> None:
        """Make the named macros disappear; unknown names are ignored."""
        for name in names:
            self.macros.pop(name, None)


def find_include(name: str, search_paths: Iterable[str | Path] = ()) -> Path:
    """Find name as given, then in each search path in order."""
    candidate = Path(name)
    if candidate.is_file():
        return candidate
    for directory in search_paths:
        candidate = Path(directory) / name
        if candidate.is_file():
            return candidate
    raise DirectiveError(f'cannot open: "{name}"')


def read_binary(path: str | Path, size: int | None = None, offset: int | None = None,
                search_paths: Iterable[str | Path] = ()) -> bytes:
    """Read size bytes from offset of a binary file (.incbin).

    size None means the whole file length; offset None means the start.
    """
    found = find_include(str(path), search_paths)
    if size is not None and size <= 0:
        raise DirectiveError("invalid incbin size requested")
    length = found.stat().st_size
    if size is None:
        size = length
    if offset is not None:
        if offset < 0 or size - offset < 0:
            raise DirectiveError("requested incbin size out of range")
    else:
        offset = 0
    with found.open("rb") as stream:
        stream.seek(offset)
        data = stream.read(size)
    if len(data) != size:
        raise DirectiveError(
            f"was only able to read {len(data)} bytes from binary file "
            f"({path}, {size} bytes)")
    return data