"""Bookkeeping of DSP56001 org segments (memory space, start position, address)."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum

__all__ = ["DSP_MAX_RAM", "MAX_ORGS", "MemType", "DspOrg", "DspOrgMap"]

DSP_MAX_RAM = 32 * 3 * 1024  # 32K 24-bit words
MAX_ORGS = 1024


class MemType(IntEnum):
    """DSP56001 memory spaces."""

    P = 0
    X = 1
    Y = 2
    L = 3


@dataclass
class DspOrg:
    """One org segment: output positions [start, end) placed at address in memtype."""

    memtype: MemType
    start: int
    address: int
    end: int | None = None

    @property
    def length(self) -> int:
        return 0 if self.end is None else self.end - self.start


class DspOrgMap:
    """Tracks every org change; only segments that received data are kept."""

    def __init__(self) -> None:
        self._segments: list[DspOrg] = []
        self.current: DspOrg | None = None

    def _finish(self, position: int) -> None:
        current = self.current
        if current is None or position == current.start:
            return
        if position < current.start:
            raise ValueError("output position moved backwards")
        if len(self._segments) >= MAX_ORGS:
            raise ValueError("too many org segments")
        current.end = position
        self._segments.append(current)

    def org(self, memtype: MemType | int, address: int, position: int) -> DspOrg:
        """Begin a new segment at output position, placed at address."""
        memtype = MemType(memtype)
        if not 0 <= address <= DSP_MAX_RAM:
            raise ValueError("org address out of range")
        self._finish(position)
        self.current = DspOrg(memtype, position, address)
        return self.current

    def close(self, position: int) -> tuple[DspOrg, ...]:
        """End the open segment at position and return all segments."""
        self._finish(position)
        self.current = None
        return self.segments()

    def segments(self) -> tuple[DspOrg, ...]:
        """Return the finished segments in order."""
        return tuple(self._segments)