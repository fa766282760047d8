"""Stack-frame and structure layouts (.cargs, .cstruct) and .print formatting."""

from __future__ import annotations

from typing import Callable, Iterable

from .amode import Reg, TokenStream, reglist
from .layout import DirectiveError

__all__ = ["cargs_offsets", "cstruct_offsets", "format_print"]

_SPECIAL_REGISTERS = {Reg.USP: 4, Reg.SSP: 4, Reg.PC: 4, Reg.SR: 2, Reg.CCR: 2}

_Step = Callable[[int, "str | None"], "tuple[int, int]"]


def _layout(items: Iterable[str], start: int, what: str, step: _Step) -> dict[str, int]:
    offsets: dict[str, int] = {}
    offset = start
    for item in items:
        stream = TokenStream(item)
        token = stream.peek()
        if token is None:
            raise DirectiveError(f"{what} syntax")
        if token.kind == "symbol":
            stream.next()
            size = stream.accept("size")
            name = token.value
            if name in offsets:
                raise DirectiveError(f"multiply-defined label '{name}'")
            value, offset = step(offset, size.value if size else None)
            offsets[name] = value
        elif token.kind == "reg" and token.value.is_general:
            mask = reglist(stream)
            offset += 4 * bin(mask).count("1")
        elif token.kind == "reg" and token.value in _SPECIAL_REGISTERS:
            stream.next()
            offset += _SPECIAL_REGISTERS[token.value]
        else:
            raise DirectiveError(f"{what} syntax")
        if not stream.at_end():
            raise DirectiveError(f"{what} syntax")
    return offsets


def _cargs_step(offset: int, size: str | None) -> tuple[int, int]:
    if size not in (None, "B", "W", "L"):
        raise DirectiveError(".cargs syntax")
    return offset, offset + (4 if size == "L" else 2)


def _cstruct_step(offset: int, size: str | None) -> tuple[int, int]:
    if size in ("W", "L"):
        offset += offset & 1
    widths = {"B": 1, "W": 2, "L": 4}
    if size not in widths:
        raise DirectiveError("Symbol missing dot suffix in .cstruct construct")
    return offset, offset + widths[size]


def cargs_offsets(items: Iterable[str], start: int = 4) -> dict[str, int]:
    """Offsets of C-style arguments: symbols (name[.b|.w|.l]), register lists
    and special registers, which only take up space."""
    return _layout(items, start, ".cargs", _cargs_step)


def cstruct_offsets(items: Iterable[str], start: int = 0) -> dict[str, int]:
    """Offsets of structure members; every symbol needs a size suffix and
    words and longs are placed on even offsets."""
    return _layout(items, start, ".cstruct", _cstruct_step)


_FLAGS = {"l": ("long", True), "w": ("long", False),
          "x": ("kind", "x"), "d": ("kind", "d"), "u": ("kind", "u")}


def format_print(items: Iterable[object]) -> str:
    """Render .print items: text, integer values and format flags.

    A flag is a string of the form '/l', '/w', '/x', '/d' or '/u'; it applies to
    the next value only. Values print as words unless '/l' is given.
    """
    parts: list[str] = []
    long_value = False
    kind = "x"
    for item in items:
        if isinstance(item, str):
            if len(item) == 2 and item[0] == "/":
                flag = _FLAGS.get(item[1].lower())
                if flag is None:
                    raise DirectiveError("unknown print format flag")
                if flag[0] == "long":
                    long_value = flag[1]
                else:
                    kind = flag[1]
            else:
                parts.append(item)
        elif isinstance(item, int) and not isinstance(item, bool):
            value = item & (0xFFFFFFFF if long_value else 0xFFFF)
            if kind == "x":
                parts.append(f"{value:X}")
            elif kind == "d":
                parts.append(str(value - (1 << 32) if value & 0x80000000 else value))
            else:
                parts.append(str(value))
            long_value = False
            kind = "x"
        else:
            raise DirectiveError(f"illegal print token [@ '{item!r}']")
    return "".join(parts)