import pytest

from atariasm.layout import DirectiveError, Section, align_padding, dsm_base


@pytest.mark.parametrize("location", [0, 1, 3, 7, 8, 13, 100])
@pytest.mark.parametrize("boundary", [2, 4, 8, 16, 32, 3, 6])
def test_align_padding_invariant(location, boundary):
    pad = align_padding(location, boundary)
    assert 0 <= pad < boundary
    assert (location + pad) % boundary == 0


@pytest.mark.parametrize("boundary", [0, 1])
def test_align_padding_invalid(boundary):
    with pytest.raises(DirectiveError, match="Invalid .align"):
        align_padding(10, boundary)


@pytest.mark.parametrize("size", [1, 2, 3, 5, 100, 1000, 4096, 40000])
def test_dsm_base_power_of_two(size):
    base = dsm_base(size)
    assert base & (base - 1) == 0
    assert size <= base < 2 * size


def test_dsm_base_exact_power():
    assert dsm_base(8) == 8


def test_write_advances_location():
    section = Section()
    section.write(b"\x01\x02\x03")
    assert section.location == 3
    assert section.data == b"\x01\x02\x03"


def test_even_pads_only_odd_locations():
    section = Section()
    section.write(b"\x07")
    assert section.even() == 1
    assert section.data == b"\x07\x00"
    assert section.even() == 0
    assert section.location == len(section.data)


def test_align_records_largest():
    section = Section()
    assert section.largest_alignment == 2
    section.write(b"\xaa")
    padding = section.align(8)
    assert section.location % 8 == 0
    assert section.data == b"\xaa" + bytes(padding)
    assert section.largest_alignment == 8


def test_bss_skip_stores_nothing():
    section = Section(bss=True)
    section.skip(5)
    assert section.location == 5
    assert section.data == b""
    with pytest.raises(DirectiveError, match="illegal initialization"):
        section.write(b"\x00")


def test_negative_skip_rejected():
    with pytest.raises(DirectiveError):
        Section().skip(-1)


def test_risc_section_aligns_on_org_address():
    section = Section(risc=True)
    section.org_active = True
    start = 0xF03002
    section.org_address = start
    section.align(4)
    assert section.org_address % 4 == 0
    assert section.location == section.org_address - start
    assert len(section.data) == section.location