import pytest

from atariasm.layout import DirectiveError
from atariasm.symdirect import SymbolAttr, SymbolTable, find_include, read_binary


def test_globl_creates_symbol():
    table = SymbolTable()
    table.globl(["start"])
    symbol = table.lookup("start")
    assert symbol.attr == SymbolAttr.GLOBAL
    assert symbol.value == 0


def test_globl_existing_keeps_value():
    table = SymbolTable()
    table.define("loop", 42)
    table.globl(["loop"])
    symbol = table.lookup("loop")
    assert symbol.value == 42
    assert symbol.attr & SymbolAttr.GLOBAL
    assert symbol.attr & SymbolAttr.DEFINED


def test_globl_local_rejected():
    with pytest.raises(DirectiveError):
        SymbolTable().globl([".local"])


def test_comm():
    table = SymbolTable()
    symbol = table.comm("buffer", 256)
    assert symbol.attr == SymbolAttr.GLOBAL | SymbolAttr.COMMON | SymbolAttr.BSS
    assert table.lookup("buffer").value == 256


def test_comm_errors():
    table = SymbolTable()
    table.define("here", 4)
    with pytest.raises(DirectiveError):
        table.comm("here", 8)
    with pytest.raises(DirectiveError):
        table.comm(".loc", 8)


def test_equrundef():
    table = SymbolTable()
    table.define("ptr", 5, SymbolAttr.DEFINED | SymbolAttr.EQUATEDREG)
    table.define("plain", 1)
    table.equrundef(["ptr", "plain", "missing"])
    attr = table.lookup("ptr").attr
    assert not attr & SymbolAttr.EQUATEDREG
    assert not attr & SymbolAttr.DEFINED
    assert attr & SymbolAttr.UNDEF_EQUR
    assert table.lookup("plain").attr == SymbolAttr.DEFINED


def test_ccundef():
    table = SymbolTable()
    table.define("ne", 2, SymbolAttr.DEFINED | SymbolAttr.EQUATEDCC)
    table.ccundef("ne")
    assert table.lookup("ne").attr & SymbolAttr.UNDEF_CC
    table.define("x", 1)
    with pytest.raises(DirectiveError):
        table.ccundef("x")
    with pytest.raises(DirectiveError):
        table.ccundef("nothing")


def test_undefine_macros():
    table = SymbolTable()
    table.define_macro("push", "move.l \\1,-(sp)")
    table.define_macro("pop")
    table.undefine_macros(["push", "unknown"])
    assert "push" not in table.macros
    assert "pop" in table.macros


def test_find_include(tmp_path):
    target = tmp_path / "equates_for_test.s"
    target.write_text("x equ 1\n")
    assert find_include("equates_for_test.s", [tmp_path / "none", tmp_path]) == target
    with pytest.raises(DirectiveError):
        find_include("missing_for_test.s", [tmp_path])


def test_read_binary(tmp_path):
    content = bytes(range(16))
    (tmp_path / "blob_for_test.bin").write_bytes(content)
    paths = [tmp_path]
    assert read_binary("blob_for_test.bin", search_paths=paths) == content
    assert read_binary("blob_for_test.bin", 4, 2, paths) == content[2:6]
    assert read_binary("blob_for_test.bin", 4, search_paths=paths) == content[:4]


def test_read_binary_errors(tmp_path):
    (tmp_path / "blob_for_test.bin").write_bytes(bytes(8))
    paths = [tmp_path]
    with pytest.raises(DirectiveError):
        read_binary("blob_for_test.bin", 0, search_paths=paths)
    with pytest.raises(DirectiveError):
        read_binary("blob_for_test.bin", 2, 4, paths)
    with pytest.raises(DirectiveError):
        read_binary("blob_for_test.bin", 6, 4, paths)