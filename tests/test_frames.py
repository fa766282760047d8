import pytest

from atariasm.frames import cargs_offsets, cstruct_offsets, format_print
from atariasm.layout import DirectiveError


def test_cargs_first_symbol_at_start():
    offsets = cargs_offsets([".a", ".b"], 10)
    assert offsets[".a"] == 10
    assert list(offsets) == [".a", ".b"]


def test_cargs_default_start_skips_return_address():
    assert cargs_offsets([".a"])[".a"] == 4


def test_cargs_long_takes_more_than_word():
    words = cargs_offsets([".a.w", ".b"], 0)
    longs = cargs_offsets([".a.l", ".b"], 0)
    plain = cargs_offsets([".a", ".b"], 0)
    assert longs[".b"] > words[".b"]
    assert plain[".b"] == words[".b"]


def test_cargs_register_list_matches_single_registers():
    listed = cargs_offsets(["d0-d2/a5", ".x"], 0)
    single = cargs_offsets(["d0", "d1", "d2", "a5", ".x"], 0)
    assert listed[".x"] == single[".x"]
    assert listed[".x"] > 0


def test_cargs_usp_counts_as_two_sr():
    assert cargs_offsets(["usp", ".x"], 0) == cargs_offsets(["sr", "ccr", ".x"], 0)


def test_cargs_duplicate_refused():
    with pytest.raises(DirectiveError):
        cargs_offsets([".a", ".a"], 0)


def test_cargs_bad_item_refused():
    with pytest.raises(DirectiveError):
        cargs_offsets(["#"], 0)


def test_cstruct_word_after_byte_is_even():
    offsets = cstruct_offsets([".a.b", ".b.w", ".c.l"])
    assert offsets[".a"] == 0
    assert offsets[".b"] % 2 == 0
    assert offsets[".a"] < offsets[".b"] < offsets[".c"]


def test_cstruct_bytes_are_packed():
    offsets = cstruct_offsets([".a.b", ".b.b"], 3)
    assert offsets[".b"] == offsets[".a"] + 1


def test_cstruct_needs_suffix():
    with pytest.raises(DirectiveError):
        cstruct_offsets([".a"])


def test_print_text_and_hex():
    assert format_print(["Value: ", 255]) == "Value: FF"


def test_print_word_masks_value():
    assert format_print([0x12345678]) == format_print([0x5678])


def test_print_long_signed_decimal():
    assert format_print(["/l", "/d", -1]) == "-1"


def test_print_flags_reset_after_value():
    assert format_print(["/d", 10, 10]) == "10A"


def test_print_unknown_flag_refused():
    with pytest.raises(DirectiveError):
        format_print(["/q", 1])


def test_print_bad_token_refused():
    with pytest.raises(DirectiveError):
        format_print([1.5])