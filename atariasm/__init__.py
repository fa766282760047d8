"""Building blocks of a macro assembler for Atari machines: 6502 code generation,
680x0 operand parsing, DSP56001 org maps, and data, section and symbol directives."""

__version__ = "2.2.7"