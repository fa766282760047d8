"""Section location bookkeeping: padding, alignment and modulo storage bases."""

from __future__ import annotations

__all__ = ["DirectiveError", "Section", "align_padding", "dsm_base"]

_MASK64 = 0xFFFFFFFFFFFFFFFF


class DirectiveError(Exception):
    """Raised when a directive cannot be carried out."""


def align_padding(location: int, boundary: int) -> int:
    """Number of bytes needed to move location up to a multiple of boundary."""
    if boundary < 2:
        raise DirectiveError("Invalid .align value specified")
    return (boundary - location % boundary) % boundary


def dsm_base(size: int) -> int:
    """Round size up to a power of two (modulo-buffer base for .dsm)."""
    value = (size - 1) & _MASK64
    for shift in (1, 2, 4, 8, 16):
        value |= value >> shift
    return (value + 1) & _MASK64


class Section:
    """Output section with a location counter and an optional org address.

    RISC sections align on the org address rather than the location counter.
    """

    def __init__(self, bss: bool = False, risc: bool = False) -> None:
        self.bss = bss
        self.risc = risc
        self._data = bytearray()
        self.location = 0
        self.org_address = 0
        self.org_active = False
        self.largest_alignment = 2

    @property
    def data(self) -> bytes:
        return bytes(self._data)

    @property
    def _alignment_base(self) -> int:
        return self.org_address if self.risc else self.location

    def _advance(self, count: int) -> None:
        self.location += count
        if self.org_active:
            self.org_address += count

    def skip(self, count: int) -> None:
        """Reserve count bytes: zero-filled, or just skipped in BSS."""
        if count < 0:
            raise DirectiveError("negative sizes not allowed")
        if count == 0:
            return
        if not self.bss:
            self._data.extend(bytes(count))
        self._advance(count)

    def align(self, boundary: int) -> int:
        """Pad to a multiple of boundary and return the padding used."""
        padding = align_padding(self._alignment_base, boundary)
        self.skip(padding)
        self.largest_alignment = max(self.largest_alignment, boundary)
        return padding

    def even(self) -> int:
        """Pad to an even location; return the padding used."""
        padding = self._alignment_base & 1
        self.skip(padding)
        return padding

    def write(self, data: bytes) -> None:
        """Deposit bytes at the current location."""
        if self.bss:
            raise DirectiveError("illegal initialization of section")
        self._data.extend(data)
        self._advance(len(data))