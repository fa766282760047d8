import io

import pytest

from atariasm.m6502 import (
    AddrMode,
    Fixup,
    M6502Assembler,
    M6502Error,
    Operand,
    atascii,
    parse_operand,
)


@pytest.fixture
def asm():
    return M6502Assembler()


@pytest.mark.parametrize(
    "mnemonic, operand, expected",
    [
        ("lda", "#$10", bytes([0xA9, 0x10])),
        ("lda", "$1234", bytes([0xAD, 0x34, 0x12])),
        ("lda", "$12", bytes([0xA5, 0x12])),
        ("lda", "$12,x", bytes([0xB5, 0x12])),
        ("lda", "($20),y", bytes([0xB1, 0x20])),
        ("lda", "($20,x)", bytes([0xA1, 0x20])),
        ("jmp", "($1234)", bytes([0x6C, 0x34, 0x12])),
        ("ldx", "$1234,y", bytes([0xBE, 0x34, 0x12])),
        ("stx", "$12,y", bytes([0x96, 0x12])),
        ("nop", "", bytes([0xEA])),
        ("asl", "a", bytes([0x0A])),
        ("ASL", "", bytes([0x0A])),
    ],
)
def test_encodings(asm, mnemonic, operand, expected):
    assert asm.assemble(mnemonic, operand) == expected


def test_no_zero_page_form_keeps_absolute(asm):
    assert asm.assemble("sta", "$12,y") == bytes([0x99, 0x12, 0x00])


def test_illegal_mode_falls_back_to_zero_page_then_range_checks(asm):
    with pytest.raises(M6502Error):
        asm.assemble("stx", "$1234,y")


def test_immediate_high_and_low(asm):
    symbols = {"v": 0x1234}
    assert asm.assemble("lda", "#>v", symbols) == bytes([0xA9, 0x12])
    assert asm.assemble("lda", "#<v", symbols) == bytes([0xA9, 0x34])


def test_undefined_absolute_makes_word_fixup(asm):
    assert asm.assemble("lda", "target") == bytes([0xAD, 0x00, 0x00])
    assert asm.fixups == [Fixup("word", 1, "target")]


def test_undefined_immediate_low_fixup(asm):
    asm.assemble("nop")
    code = asm.assemble("ldx", "#<later")
    assert code[1] == 0
    assert asm.fixups == [Fixup("byte_low", 2, "later")]


def test_branch_offset_reaches_target(asm):
    asm.org(0x1000)
    code = asm.assemble("bne", "loop", {"loop": 0x1000})
    assert code[0] == 0xD0
    offset = code[1] - 256 if code[1] >= 128 else code[1]
    assert 0x1000 + 2 + offset == 0x1000


def test_branch_forward_reaches_target(asm):
    asm.org(0x1000)
    code = asm.assemble("beq", "done", {"done": 0x1050})
    assert 0x1000 + 2 + code[1] == 0x1050


def test_branch_out_of_range(asm):
    asm.org(0x1000)
    with pytest.raises(M6502Error):
        asm.assemble("bne", "far", {"far": 0x1000 + 200})


def test_branch_undefined_fixup(asm):
    asm.assemble("bcc", "later")
    assert asm.fixups[0].kind == "branch"
    assert asm.fixups[0].location == 1


@pytest.mark.parametrize(
    "mnemonic, operand",
    [
        ("sta", "#5"),
        ("lda", "#300"),
        ("lda", "($20),x"),
        ("lda", "$10 $20"),
        ("adc", "#>$1234"),
        ("xyz", ""),
        ("lda", "a,x"),
    ],
)
def test_errors(asm, mnemonic, operand):
    with pytest.raises(M6502Error):
        asm.assemble(mnemonic, operand)


def test_error_leaves_location_unchanged(asm):
    with pytest.raises(M6502Error):
        asm.assemble("sta", "#5")
    assert asm.location == 0


def test_location_advances(asm):
    asm.org(0x600)
    asm.assemble("lda", "$1234")
    asm.assemble("nop")
    assert asm.location == 0x600 + 4


def test_org_out_of_range(asm):
    with pytest.raises(M6502Error):
        asm.org(0x10000)


def test_code_overflow(asm):
    asm.org(0xFFFF)
    with pytest.raises(M6502Error):
        asm.assemble("lda", "$1234")


def test_object_bytes_single_segment(asm):
    asm.org(0x2000)
    asm.assemble("lda", "#1")
    assert asm.object_bytes() == b"\xff\xff\x00\x20\x01\x20\xa9\x01"


def _parse_xex(data):
    assert data[:2] == b"\xff\xff"
    pos = 2
    segments = []
    while pos < len(data):
        start = int.from_bytes(data[pos:pos + 2], "little")
        end = int.from_bytes(data[pos + 2:pos + 4], "little")
        body = data[pos + 4:pos + 4 + end - start + 1]
        segments.append((start, body))
        pos += 4 + len(body)
    return segments


def test_object_bytes_multiple_segments(asm):
    asm.org(0x0600)
    first = asm.assemble("lda", "#$10")
    asm.org(0x3000)
    second = asm.assemble("jmp", "$0600")
    assert _parse_xex(asm.object_bytes()) == [(0x0600, first), (0x3000, second)]


def test_empty_object(asm):
    assert asm.object_bytes() == b""


def test_write_object_matches_object_bytes(asm):
    asm.org(0x4000)
    asm.assemble("rts")
    stream = io.BytesIO()
    asm.write_object(stream)
    assert stream.getvalue() == asm.object_bytes()


def test_atascii():
    assert atascii("A") == bytes([33])
    assert atascii("a") == bytes([97])
    assert atascii(" ") == bytes([0])
    assert atascii("~") == bytes([31])


def test_parse_operand_indirect_y():
    op = parse_operand("($20),y")
    assert op == Operand(AddrMode.INDY, 0x20, "$20", False)


def test_parse_operand_at_form():
    op = parse_operand("@ptr(y)", {"ptr": 0x80})
    assert op.mode is AddrMode.INDY
    assert op.zero_page_request
    assert op.value == 0x80


def test_parse_operand_empty_is_implied():
    assert parse_operand("").mode is AddrMode.IMPL


def test_parse_operand_undefined_symbol():
    op = parse_operand("foo+1,x")
    assert op.mode is AddrMode.ABSX
    assert not op.defined
    assert op.expression == "foo+1"


def test_parse_operand_expression_arithmetic():
    op = parse_operand("#[base+2]*2", {"base": 3})
    assert op.mode is AddrMode.IMMED
    assert op.value == (3 + 2) * 2