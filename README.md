# atariasm

Pieces of a macro assembler for Atari computers, usable as a library. Every
error is raised as an exception: `M6502Error` (6502 code generation),
`AddressingModeError` (680x0 operands) and `DirectiveError` (directives and
sections).

## Modules

- `atariasm.m6502`: 6502 code generation.
  - `M6502Assembler.assemble(mnemonic, operand, symbols)` assembles one
    instruction at the current `location` into a 64K image and returns its
    bytes. An absolute operand whose value is defined and below `$100` is turned
    into the zero-page form when the instruction has one. Undefined symbols
    produce zero bytes and a `Fixup` entry in `fixups` (kinds `"byte"`,
    `"byte_high"`, `"byte_low"`, `"branch"`, `"word"`).
  - `org(address)` starts a new segment; `object_bytes()` returns the Atari
    COM/XEX image (a `$FFFF` header, then start, end and data of each
    segment) and `write_object(stream)` writes it to a binary stream.
  - `parse_operand(text, symbols)` returns an `Operand` with its `AddrMode`.
    Operands accept `$hex`, `%binary` and decimal numbers, symbols and the
    operators `+ - * / & | ^ ~`.
  - `atascii(text)` converts text to Atari internal screen codes; unknown
    characters become the code for `?`.
- `atariasm.dsporg`: `DspOrgMap` records DSP56001 org segments (`DspOrg`)
  in P:, X:, Y: or L: memory (`MemType`). `org(memtype, address, position)`
  opens a segment, `close(position)` ends the open one, and `segments()`
  returns only segments that received data.
- `atariasm.amode`: the 680x0 operand tokenizer (`tokenize`, `Token`),
  `TokenStream` with `peek`, `next`, `accept`, `at_end` and `expression`,
  the `Mode` and `Reg` enumerations, `EffectiveAddress`, register lists
  (`reglist`, `fpu_reglist_left`, `fpu_reglist_right`, each returning a bit
  mask) and bitfield parameters (`parse_bitfield`, returning a `Bitfield`).
- `atariasm.indexing`: `parse_index` and `parse_scale` for `Xn[.w|.l][*scale]`
  index registers (`IndexRegister`).
- `atariasm.memindirect`: `parse_memory_indirect` and
  `parse_outer_displacement` for the 68020 `([bd,An,Xn],od)` and
  `([bd,An],Xn,od)` forms.
- `atariasm.eaparse`: `parse_ea(stream, symbols, optimize)` parses one
  effective address; `parse_operands(text, acount, symbols, cpu, optimize)`
  parses up to two operands with an optional bitfield and `:` register pair
  into an `OperandSet`. `optimize` turns on absolute-short and 68020
  displacement size optimisations.
- `atariasm.layout`: `Section` keeps a location counter, optional org address
  and deposited bytes, with `skip`, `align`, `even` and `write`; also
  `align_padding(location, boundary)` and `dsm_base(size)` (round up to a power
  of two).
- `atariasm.datadef`: `DataWriter(section, reversed_words)` holds the data
  directives `dc`, `dcb`, `ds`, `init` and `string` for the sizes in `Size`;
  undefined values (`None`) are recorded as `DataFixup` entries.
  `extended_bytes(value)` encodes a 96-bit extended-precision number.
- `atariasm.frames`: `cargs_offsets` and `cstruct_offsets` compute the
  offsets of `.cargs`/`.cstruct` members; `format_print` renders `.print`
  items with the `/l`, `/w`, `/x`, `/d` and `/u` flags.
- `atariasm.state`: `ProcessorState.select(directive)` handles `.68000` to
  `.68060`, `.68881`, `.68882`, `nofpu`, `.gpu`, `.dsp`, `.objproc`,
  `.56001`, `.6502` and the `text`/`data`/`bss` section switches;
  `ProcessorState.org(address)` applies the per-processor `.org` rules.
  `ConditionalStack` handles `.if`/`.else`/`.endif` through `begin`,
  `otherwise` and `end`.
- `atariasm.symdirect`: `SymbolTable` with `globl`, `comm`, `equrundef`,
  `ccundef` and `undefine_macros`; `find_include(name, search_paths)` and
  `read_binary(path, size, offset, search_paths)` for include and binary
  include lookups.

## Example

```python
from atariasm.m6502 import M6502Assembler

asm = M6502Assembler()
asm.org(0x600)
asm.assemble("lda", "#$01", {})
asm.assemble("sta", "$d01a", {})
asm.assemble("rts", "", {})

with open("demo.xex", "wb") as out:
    asm.write_object(out)
```

## What it does not do

atariasm is a set of library pieces, not a complete assembler. It has no
command-line program, does not read assembly source files, and has no macro
expansion. It parses 680x0 operands but does not encode 680x0, RISC or
DSP56001 instructions, does not resolve the fixups it records, and writes no
object files other than the 6502 COM/XEX image.

## Tests

The tests use pytest, installed with the `test` extra.