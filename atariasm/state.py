"""Processor selection, org handling and conditional assembly state."""

from __future__ import annotations

from enum import IntEnum

from .dsporg import DSP_MAX_RAM
from .layout import DirectiveError

__all__ = ["Cpu", "Fpu", "ProcessorState", "ConditionalStack"]

IN_6502_MODE = "directive illegal in .6502 section"
RANGE_ERROR = "value out of range"
UNDEF_ERROR = "undefined expression"

TEXT = "text"
DATA = "data"
BSS = "bss"
M6502 = "6502"
M56001P = "56001p"


class Cpu(IntEnum):
    """Selectable 680x0 processors."""

    M68000 = 68000
    M68020 = 68020
    M68030 = 68030
    M68040 = 68040
    M68060 = 68060


class Fpu(IntEnum):
    """Selectable floating point units."""

    NONE = 0
    M68881 = 68881
    M68882 = 68882
    M68040 = 68040
    M68060 = 68060


_CPU_DIRECTIVES = {
    ".68000": (Cpu.M68000, None),
    ".68020": (Cpu.M68020, None),
    ".68030": (Cpu.M68030, None),
    ".68040": (Cpu.M68040, Fpu.M68040),
    ".68060": (Cpu.M68060, Fpu.M68060),
}

_FPU_DIRECTIVES = {
    ".68881": Fpu.M68881,
    ".68882": Fpu.M68882,
    "nofpu": Fpu.NONE,
}

_RISC_DIRECTIVES = {
    ".gpu": "gpu",
    ".dsp": "dsp",
    ".objproc": "objproc",
}


class ProcessorState:
    """Which processor is being assembled for, the current section and org state.

    raw_output enables .org in 68000 code; dsp_output (LOD/P56 object formats)
    makes .56001 switch to the DSP program section.
    """

    def __init__(self) -> None:
        self.cpu = Cpu.M68000
        self.fpu = Fpu.NONE
        self.section = TEXT
        self.saved_section: str | None = None
        self.gpu = False
        self.dsp = False
        self.objproc = False
        self.dsp56001 = False
        self.raw_output = False
        self.dsp_output = False
        self.org_address = 0
        self.org_active = False
        self.org_warning = False
        self.org68k_address = 0
        self.org68k_active = False

    @property
    def m6502(self) -> bool:
        return self.section == M6502

    @property
    def risc(self) -> bool:
        return self.gpu or self.dsp

    def _switch(self, section: str) -> None:
        self.saved_section = self.section
        self.section = section

    def _reset_org(self) -> None:
        self.org_active = False
        self.org_warning = False

    def _select_68k(self, cpu: Cpu, fpu: Fpu | None) -> None:
        self.gpu = self.dsp = self.objproc = self.dsp56001 = False
        self._reset_org()
        self._switch(TEXT)
        self.cpu = cpu
        if fpu is not None:
            self.fpu = fpu

    def _select_risc(self, which: str, directive: str) -> None:
        if self.section not in (TEXT, DATA):
            raise DirectiveError(f"{directive} can only be used in the TEXT or DATA segments")
        if not getattr(self, which):
            self._reset_org()
        self.gpu = which == "gpu"
        self.dsp = which == "dsp"
        self.objproc = which == "objproc"
        self.dsp56001 = False

    def _select_section(self, section: str) -> None:
        if self.risc:
            raise DirectiveError("directive forbidden in gpu/dsp mode")
        if self.m6502:
            raise DirectiveError(IN_6502_MODE)
        if self.section != section:
            self._switch(section)

    def select(self, directive: str) -> None:
        """Carry out a processor or section directive such as '.68020' or '.gpu'."""
        name = directive.lower()
        if name in _CPU_DIRECTIVES:
            self._select_68k(*_CPU_DIRECTIVES[name])
        elif name in _FPU_DIRECTIVES:
            self.fpu = _FPU_DIRECTIVES[name]
        elif name in _RISC_DIRECTIVES:
            self._select_risc(_RISC_DIRECTIVES[name], name)
        elif name == ".56001":
            self.dsp56001 = True
            self.gpu = self.dsp = self.objproc = False
            self.saved_section = self.section
            if self.dsp_output:
                self.section = M56001P
        elif name == ".6502":
            self._switch(M6502)
        elif name in (".text", "text"):
            self._select_section(TEXT)
        elif name in (".data", "data"):
            self._select_section(DATA)
        elif name in (".bss", "bss"):
            self._select_section(BSS)
        else:
            raise DirectiveError(f"unknown directive '{directive}'")

    def org(self, address: int) -> None:
        """Set the origin, where the current processor permits it."""
        if not (self.gpu or self.dsp or self.objproc or self.m6502
                or self.dsp56001 or self.raw_output):
            raise DirectiveError(
                ".org permitted only in GPU/DSP/OP, 56001, 6502 and 68k "
                "(with -fr switch) sections")
        if address is None:
            raise DirectiveError("cannot determine org'd address")
        if self.gpu or self.dsp or self.objproc:
            self.org_address = address
            self.org_active = True
        elif self.m6502:
            if not 0 <= address <= 0xFFFF:
                raise DirectiveError(RANGE_ERROR)
            self.org_address = address
            self.org_active = True
        elif self.dsp56001:
            if not 0 <= address <= DSP_MAX_RAM:
                raise DirectiveError(RANGE_ERROR)
            self.org_address = address
        else:
            if self.org68k_active:
                raise DirectiveError("In 68k mode only one .org statement is allowed")
            self.org68k_address = address
            self.org68k_active = True


class ConditionalStack:
    """Nesting of .if/.else/.endif blocks."""

    def __init__(self) -> None:
        self._states: list[bool] = [False]
        self.disabled = False

    @property
    def depth(self) -> int:
        """Number of open .if blocks."""
        return len(self._states) - 1

    def begin(self, condition: int | None) -> None:
        """.if: condition None means an undefined expression."""
        if not self.disabled:
            if condition is None:
                raise DirectiveError(UNDEF_ERROR)
            self.disabled = not condition
        self._states.append(self.disabled)

    def otherwise(self) -> None:
        """.else: switch to the alternative branch."""
        if len(self._states) < 2:
            raise DirectiveError("mismatched .else")
        if self.disabled:
            self.disabled = self._states[-2]
        else:
            self.disabled = True
        self._states[-1] = self.disabled

    def end(self) -> None:
        """.endif: close the innermost block."""
        if len(self._states) < 2:
            raise DirectiveError("mismatched .endif")
        self._states.pop()
        self.disabled = self._states[-1]