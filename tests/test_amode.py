import pytest

from atariasm.amode import (
    AddressingModeError,
    Bitfield,
    EffectiveAddress,
    Mode,
    Reg,
    TokenStream,
    fpu_reglist_left,
    fpu_reglist_right,
    parse_bitfield,
    reglist,
    tokenize,
)


def test_tokenize_size_suffix():
    tokens = tokenize("foo.w")
    assert [t.kind for t in tokens] == ["symbol", "size"]
    assert tokens[1].value == "W"


def test_tokenize_local_symbol_and_detached_dot():
    assert [t.kind for t in tokenize(".loop")] == ["symbol"]
    tokens = tokenize("foo .w")
    assert [t.kind for t in tokens] == ["symbol", "symbol"]


def test_tokenize_registers_and_alias():
    tokens = tokenize("D3,sp,fp2,pc")
    regs = [t.value for t in tokens if t.kind == "reg"]
    assert regs == [Reg.D3, Reg.A7, Reg.FP2, Reg.PC]


def test_tokenize_numbers():
    tokens = tokenize("$10 %101 42")
    assert [t.value for t in tokens] == [0x10, 0b101, 42]


def test_expression_precedence():
    stream = TokenStream("2+3*4")
    value, text = stream.expression()
    assert value == 14
    assert text == "2+3*4"
    assert stream.at_end()


def test_expression_undefined_symbol():
    value, text = TokenStream("foo+1").expression({})
    assert value is None
    assert text == "foo+1"


def test_expression_with_symbols_stops_at_paren():
    stream = TokenStream("base(a0)")
    value, _ = stream.expression({"base": 0x20})
    assert value == 0x20
    assert stream.peek().matches("(")


def test_expression_errors():
    with pytest.raises(AddressingModeError):
        TokenStream("").expression()
    with pytest.raises(AddressingModeError):
        TokenStream("4/0").expression()


def test_accept_and_next():
    stream = TokenStream("x.l,d0")
    assert stream.accept("symbol").value == "x"
    assert stream.accept(".w") is None
    assert stream.accept(".l").value == "L"
    assert stream.accept(",") is not None and stream.accept(Reg.D0).value is Reg.D0
    assert stream.peek() is None
    with pytest.raises(AddressingModeError):
        stream.next()


def test_mode_values_and_masks():
    assert Mode.IMMED == 0o74
    assert Mode.IMMED.mask == 0x800
    assert Mode.DINDW.mask == 0
    ea = EffectiveAddress(mode=Mode.ABSL, value=5)
    assert ea.defined and ea.mask == Mode.ABSL.mask


def test_reglist_single_registers():
    assert reglist(TokenStream("d0")) == 0x0001
    assert reglist(TokenStream("a7")) == 0x8000


def test_reglist_range_is_union_of_members():
    ranged = reglist(TokenStream("d0-d2/a7"))
    single = reglist(TokenStream("d0/d1/d2")) | reglist(TokenStream("a7"))
    assert ranged == single


def test_reglist_stops_at_comma():
    stream = TokenStream("d0,d1")
    assert reglist(stream) == 0x0001
    assert stream.peek().matches(",")


def test_reglist_errors():
    with pytest.raises(AddressingModeError, match="order"):
        reglist(TokenStream("d3-d1"))
    with pytest.raises(AddressingModeError, match="syntax"):
        reglist(TokenStream("d0-fp1"))


def test_fpu_reglist_right():
    assert fpu_reglist_right(TokenStream("fp0")) == 0x0080
    assert fpu_reglist_right(TokenStream("fp7")) == 0x0001
    whole = fpu_reglist_right(TokenStream("fp0-fp7"))
    parts = 0
    for n in range(8):
        parts |= fpu_reglist_right(TokenStream(f"fp{n}"))
    assert whole == parts


def test_fpu_reglist_left_counts_from_fp0():
    assert fpu_reglist_left(TokenStream("fp3")) == 0x0080
    assert fpu_reglist_left(TokenStream("fp0-fp1")) == fpu_reglist_right(TokenStream("fp0-fp1"))


def test_fpu_reglist_order_error():
    with pytest.raises(AddressingModeError):
        fpu_reglist_right(TokenStream("fp4-fp2"))


def test_bitfield_immediates():
    stream = TokenStream("{4:8}")
    assert parse_bitfield(stream) == Bitfield(4, 0, 8, 0)
    assert stream.at_end()


def test_bitfield_registers():
    field = parse_bitfield(TokenStream("{d1:d2}"))
    assert field.offset == 1 and field.offset_param == 1 << 11
    assert field.width == 2 and field.width_param == 1 << 5


def test_bitfield_single_register_form():
    field = parse_bitfield(TokenStream("{d3}"))
    assert field.width is None
    assert field.offset == 3


def test_bitfield_symbol_offset():
    assert parse_bitfield(TokenStream("{foo:8}"), {"foo": 3}).offset == 3


def test_bitfield_undefined_symbol():
    with pytest.raises(AddressingModeError, match="offset"):
        parse_bitfield(TokenStream("{foo:8}"))
    with pytest.raises(AddressingModeError, match="width"):
        parse_bitfield(TokenStream("{2:bar}"))


def test_bitfield_syntax_error():
    with pytest.raises(AddressingModeError):
        parse_bitfield(TokenStream("{a0:4}"))