import pytest

from atariasm.dsporg import DSP_MAX_RAM, DspOrg, DspOrgMap, MemType


def test_single_segment():
    orgs = DspOrgMap()
    orgs.org(MemType.P, 0x40, 0)
    segments = orgs.close(9)
    assert segments == (DspOrg(MemType.P, 0, 0x40, 9),)
    assert segments[0].length == 9


def test_empty_org_is_replaced():
    orgs = DspOrgMap()
    orgs.org(MemType.X, 0x10, 0)
    orgs.org(MemType.Y, 0x20, 0)
    segments = orgs.close(6)
    assert len(segments) == 1
    assert segments[0].memtype is MemType.Y
    assert segments[0].address == 0x20


def test_consecutive_segments_are_contiguous():
    orgs = DspOrgMap()
    orgs.org(MemType.P, 0, 0)
    orgs.org(MemType.X, 0x100, 12)
    orgs.org(MemType.L, 0x200, 30)
    segments = orgs.close(36)
    assert [s.memtype for s in segments] == [MemType.P, MemType.X, MemType.L]
    for previous, following in zip(segments, segments[1:]):
        assert previous.end == following.start


def test_memtype_accepts_int():
    orgs = DspOrgMap()
    assert orgs.org(2, 0, 0).memtype is MemType.Y


def test_address_limit():
    orgs = DspOrgMap()
    assert orgs.org(MemType.P, DSP_MAX_RAM, 0).address == DSP_MAX_RAM
    with pytest.raises(ValueError):
        orgs.org(MemType.P, DSP_MAX_RAM + 1, 0)


def test_negative_address_rejected():
    with pytest.raises(ValueError):
        DspOrgMap().org(MemType.X, -1, 0)


def test_position_backwards_rejected():
    orgs = DspOrgMap()
    orgs.org(MemType.P, 0, 10)
    with pytest.raises(ValueError):
        orgs.close(5)


def test_close_without_org():
    assert DspOrgMap().close(0) == ()


def test_close_clears_current():
    orgs = DspOrgMap()
    orgs.org(MemType.P, 0, 0)
    orgs.close(3)
    assert orgs.current is None
    assert len(orgs.segments()) == 1


def test_unknown_memtype_rejected():
    with pytest.raises(ValueError):
        DspOrgMap().org(7, 0, 0)