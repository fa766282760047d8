[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "atariasm"
version = "2.2.7"
description = "Building blocks of a macro assembler for Atari machines: 6502 code generation, 680x0 operand parsing, DSP56001 org maps, data and symbol directives"
requires-python = ">=3.10"
dependencies = []
keywords = ["assembler", "6502", "68000", "68020", "dsp56001", "atari", "xex"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Software Development :: Assemblers",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["atariasm"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
