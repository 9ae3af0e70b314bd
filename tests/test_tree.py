# tests/test_tree.py
"""
Tests for the libclang binding helpers and the Tree Provider, with
libclang itself replaced by fakes.
"""

import io
import subprocess

import pytest
from clang.cindex import CursorKind, LibclangError, TranslationUnitLoadError, TypeKind

from voidcaster import tree
from voidcaster.config import VoidcasterConfig
from voidcaster.errors import FileOpenError, ParseError, TreeProviderError
from voidcaster.model import ExitCode, Extent, Location
from voidcaster.tree import (
    ResultKind,
    TreeProvider,
    cast_extent,
    cursor_file,
    format_diagnostic,
    gcc_system_include_dir,
    is_void_cast,
    result_kind,
)
from tests.fakes import (
    FakeCursor,
    FakeDiagnostic,
    FakeSourceLocation,
    FakeType,
    call,
    function_decl,
    int_cast,
    src_loc,
    translation_unit,
    void_cast,
)


class TestCursorHelpers:

    def test_cursor_file(self):
        assert cursor_file(call(None, file="a.c")) == "a.c"

    def test_cursor_file_without_file(self):
        cur = FakeCursor(kind=CursorKind.CALL_EXPR, location=FakeSourceLocation(None, 0, 0))
        assert cursor_file(cur) == ""

    def test_is_void_cast(self):
        assert is_void_cast(void_cast(call(None), Location(1, 1)))
        assert not is_void_cast(int_cast(call(None)))

    @pytest.mark.parametrize("kind,canonical,expected", [
        (TypeKind.VOID, None, ResultKind.NO_VALUE),
        (TypeKind.INT, None, ResultKind.CONCRETE),
        (TypeKind.POINTER, None, ResultKind.CONCRETE),
        (TypeKind.INVALID, None, ResultKind.OPAQUE),
        (TypeKind.UNEXPOSED, None, ResultKind.OPAQUE),
        (TypeKind.TYPEDEF, TypeKind.VOID, ResultKind.NO_VALUE),
        (TypeKind.ELABORATED, TypeKind.RECORD, ResultKind.CONCRETE),
    ])
    def test_result_kind(self, kind, canonical, expected):
        decl = function_decl("f", kind, canonical_result=canonical)
        assert result_kind(decl) is expected


class TestCastExtent:

    def test_single_line(self):
        cast = void_cast(call(None, 1, 7), Location(1, 1))
        assert cast_extent(cast) == Extent(Location(1, 1), Location(1, 7))

    def test_indented(self):
        cast = void_cast(call(None, 5, 11), Location(5, 5))
        assert cast_extent(cast) == Extent(Location(5, 5), Location(5, 11))

    def test_stops_at_first_foreign_token(self):
        cast = void_cast(call(None, 1, 7), Location(1, 1))
        # a later token that happens to be annotated with the cast again
        cast.tokens.append(cast.tokens[0])
        assert cast_extent(cast).end == Location(1, 7)

    def test_cast_from_macro_has_no_extent(self):
        cast = FakeCursor(
            kind=CursorKind.CSTYLE_CAST_EXPR,
            type=FakeType(TypeKind.VOID),
            location=src_loc(3, 4),
        )
        assert cast_extent(cast) is None


class TestDiagnostics:

    def test_format(self):
        diag = FakeDiagnostic(2, "unused variable 'x'", src_loc(4, 9, "a.c"))
        assert format_diagnostic(diag) == "a.c:4:9: warning: unused variable 'x'"

    def test_format_without_file(self):
        diag = FakeDiagnostic(4, "boom", FakeSourceLocation(None, 0, 0))
        assert format_diagnostic(diag) == "<unknown>:0:0: fatal error: boom"


class TestGccInclude:

    def test_found(self, monkeypatch, tmp_path):
        def fake_run(cmd, **kwargs):
            return subprocess.CompletedProcess(cmd, 0, stdout=f"{tmp_path}\n", stderr="")
        monkeypatch.setattr(tree.subprocess, "run", fake_run)
        assert gcc_system_include_dir() == str(tmp_path)

    def test_gcc_missing(self, monkeypatch):
        def fake_run(cmd, **kwargs):
            raise FileNotFoundError(cmd[0])
        monkeypatch.setattr(tree.subprocess, "run", fake_run)
        assert gcc_system_include_dir() is None

    def test_gcc_echoes_name(self, monkeypatch):
        # gcc prints the bare name back when it has no such file
        def fake_run(cmd, **kwargs):
            return subprocess.CompletedProcess(cmd, 0, stdout="include\n", stderr="")
        monkeypatch.setattr(tree.subprocess, "run", fake_run)
        assert gcc_system_include_dir() is None


class _FakeIndex:

    def __init__(self, tu=None, error=None):
        self.tu = tu
        self.error = error
        self.calls = []

    def parse(self, filename, args=None):
        self.calls.append((filename, args))
        if self.error is not None:
            raise self.error
        return self.tu


@pytest.fixture
def source(tmp_path):
    path = tmp_path / "a.c"
    path.write_text("int main(void) { return 0; }\n")
    return str(path)


def _provider(monkeypatch, index, **config):
    monkeypatch.setattr(tree.Index, "create", staticmethod(lambda: index))
    stream = io.StringIO()
    cfg = VoidcasterConfig(add_gcc_include=False, **config)
    return TreeProvider(cfg, diagnostics_stream=stream), stream


class TestTreeProvider:

    def test_parse_clean(self, monkeypatch, source):
        tu = translation_unit(source)
        index = _FakeIndex(tu)
        provider, stream = _provider(monkeypatch, index, clang_args=["-DX=1"])
        assert provider.parse(source) is tu
        assert index.calls == [(source, ["-DX=1"])]
        assert stream.getvalue() == ""

    def test_warnings_are_printed_not_fatal(self, monkeypatch, source):
        tu = translation_unit(source)
        tu.diagnostics.append(FakeDiagnostic(2, "meh", src_loc(1, 1, source)))
        provider, stream = _provider(monkeypatch, _FakeIndex(tu))
        assert provider.parse(source) is tu
        assert stream.getvalue() == f"{source}:1:1: warning: meh\n"

    def test_error_aborts(self, monkeypatch, source):
        tu = translation_unit(source)
        tu.diagnostics.append(FakeDiagnostic(3, "expected ';'", src_loc(2, 7, source)))
        tu.diagnostics.append(FakeDiagnostic(2, "never printed", src_loc(3, 1, source)))
        provider, stream = _provider(monkeypatch, _FakeIndex(tu))
        with pytest.raises(ParseError) as info:
            provider.parse(source)
        assert info.value.exit_code == ExitCode.FILE_PARSE
        assert info.value.diagnostics == [f"{source}:2:7: error: expected ';'"]
        assert stream.getvalue().endswith("Aborting parse.\n")
        assert "never printed" not in stream.getvalue()

    def test_missing_file(self, monkeypatch, tmp_path):
        provider, _ = _provider(monkeypatch, _FakeIndex())
        with pytest.raises(FileOpenError) as info:
            provider.parse(str(tmp_path / "nope.c"))
        assert info.value.exit_code == ExitCode.FILE_OPEN

    def test_load_error(self, monkeypatch, source):
        index = _FakeIndex(error=TranslationUnitLoadError("Error parsing translation unit."))
        provider, _ = _provider(monkeypatch, index)
        with pytest.raises(TreeProviderError) as info:
            provider.parse(source)
        assert info.value.exit_code == ExitCode.CLANG_FAIL

    def test_library_missing(self, monkeypatch):
        def broken():
            raise LibclangError("libclang.so: cannot open shared object file")
        monkeypatch.setattr(tree.Index, "create", staticmethod(broken))
        with pytest.raises(TreeProviderError):
            TreeProvider(VoidcasterConfig())

    def test_gcc_include_appended(self, monkeypatch):
        monkeypatch.setattr(tree, "gcc_system_include_dir", lambda: "/opt/gcc/include")
        monkeypatch.setattr(tree.Index, "create", staticmethod(lambda: _FakeIndex()))
        provider = TreeProvider(VoidcasterConfig(clang_args=["-Iinc"]))
        assert provider.compiler_args() == ["-Iinc", "-I/opt/gcc/include"]

    def test_gcc_include_disabled(self, monkeypatch):
        monkeypatch.setattr(tree, "gcc_system_include_dir", lambda: "/opt/gcc/include")
        provider, _ = _provider(monkeypatch, _FakeIndex())
        assert provider.compiler_args() == []
