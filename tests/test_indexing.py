import pytest

from atariasm.amode import (
    EXT_A,
    EXT_D,
    EXT_L,
    EXT_TIMES4,
    TIMES2,
    TIMES4,
    TIMES8,
    AddressingModeError,
    Reg,
    TokenStream,
)
from atariasm.indexing import IndexRegister, parse_index, parse_scale


def test_parse_index_long_scaled():
    stream = TokenStream("d3.l*4")
    index = parse_index(stream)
    assert index == IndexRegister(Reg.D3, True, 4)
    assert stream.at_end()


def test_index_size_bits_long_scaled():
    index = parse_index(TokenStream("d3.l*4"))
    assert index.size_bits == 0x0800 | TIMES4


def test_index_extension_word():
    index = parse_index(TokenStream("d3.l*4"))
    assert index.extension == (Reg.D3.number << 12) | EXT_D | EXT_L | EXT_TIMES4


def test_address_index_defaults():
    index = parse_index(TokenStream("a2"))
    assert index.long is False
    assert index.scale == 1
    assert index.number == Reg.A2.index
    assert index.extension & EXT_A == EXT_A
    assert index.size_bits == 0


def test_word_size_is_consumed():
    stream = TokenStream("d1.w*2")
    index = parse_index(stream)
    assert index.long is False
    assert index.size_bits == TIMES2
    assert stream.at_end()


def test_byte_index_size_rejected():
    with pytest.raises(AddressingModeError, match="addressing mode syntax"):
        parse_index(TokenStream("d0.b"))


def test_non_register_index_rejected():
    with pytest.raises(AddressingModeError):
        parse_index(TokenStream("$10"))


def test_fp_register_index_rejected():
    with pytest.raises(AddressingModeError):
        parse_index(TokenStream("fp0"))


def test_parse_scale_absent_is_one():
    stream = TokenStream(")")
    assert parse_scale(stream) == 1
    assert stream.position == 0


def test_parse_scale_constant():
    stream = TokenStream("*8")
    assert parse_scale(stream) == 8
    assert stream.at_end()


def test_parse_scale_symbol():
    assert parse_scale(TokenStream("*n"), {"n": 2}) == 2


def test_parse_scale_undefined_symbol():
    with pytest.raises(AddressingModeError, match="scale factor expression must evaluate"):
        parse_scale(TokenStream("*n"))


@pytest.mark.parametrize("text", ["*3", "*0", "*16", "*)"])
def test_parse_scale_invalid(text):
    with pytest.raises(AddressingModeError):
        parse_scale(TokenStream(text))


@pytest.mark.parametrize("scale,bits", [(2, TIMES2), (4, TIMES4), (8, TIMES8)])
def test_scale_bits_in_size(scale, bits):
    index = parse_index(TokenStream(f"a0*{scale}"))
    assert index.size_bits == bits


def test_invalid_scale_in_constructor():
    with pytest.raises(AddressingModeError):
        IndexRegister(Reg.D0, False, 3)