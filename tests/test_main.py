# tests/test_main.py
"""
Tests for the command-line front end: option parsing, configuration and
the mapping of outcomes to exit codes.
"""

import io
import json

import pytest
from clang.cindex import TypeKind

from voidcaster import __version__
from voidcaster import main as main_module
from voidcaster import session as session_module
from voidcaster.errors import InputExhausted, TreeProviderError
from voidcaster.main import main
from voidcaster.model import ExitCode, Location
from tests.fakes import (
    call,
    compound,
    function_decl,
    function_def,
    translation_unit,
    void_cast,
)


@pytest.fixture
def source(tmp_path):
    path = tmp_path / "main.c"
    path.write_bytes(b"void f(void)\n{\n    foo();\n    (void)bar();\n}\n")
    return str(path)


@pytest.fixture
def fake_clang(monkeypatch, source):
    """Make the session parse ``source`` into a prebuilt tree."""
    body = compound(
        call(function_decl("foo", TypeKind.INT), 3, 5, file=source),
        void_cast(
            call(function_decl("bar", TypeKind.VOID), 4, 11, file=source),
            Location(4, 5),
            file=source,
        ),
    )
    tu = translation_unit(source, function_def("f", body, file=source))

    class Provider:
        def __init__(self, config, diagnostics_stream=None):
            self.config = config

        def parse(self, filename):
            return tu

    monkeypatch.setattr(session_module, "TreeProvider", Provider)
    return tu


class _RecordingSession:
    """Stands in for ``Session``; remembers its config and runs ``action``."""

    instances = []
    action = staticmethod(lambda: ExitCode.OK)

    def __init__(self, config, stdin=None, stdout=None):
        self.config = config
        _RecordingSession.instances.append(self)

    def run(self):
        return type(self).action()


@pytest.fixture
def recording(monkeypatch):
    _RecordingSession.instances = []
    _RecordingSession.action = staticmethod(lambda: ExitCode.OK)
    monkeypatch.setattr(main_module, "Session", _RecordingSession)
    return _RecordingSession


def _raise(exc):
    def action():
        raise exc
    return staticmethod(action)


class TestUsage:

    def test_no_files(self, capsys):
        assert main([]) == ExitCode.USAGE
        err = capsys.readouterr().err
        assert "no file specified" in err
        assert "usage:" in err

    def test_unknown_option(self, capsys):
        assert main(["-q", "a.c"]) == ExitCode.USAGE

    def test_bad_output_format(self, capsys):
        assert main(["--output", "xml", "a.c"]) == ExitCode.USAGE

    def test_empty_backup_suffix(self, capsys):
        assert main(["--backup-suffix", "", "a.c"]) == ExitCode.USAGE
        assert "backup suffix" in capsys.readouterr().err

    def test_version(self, capsys):
        assert main(["--version"]) == ExitCode.OK
        assert __version__ in capsys.readouterr().out

    def test_help(self, capsys):
        assert main(["--help"]) == ExitCode.OK
        out = capsys.readouterr().out
        assert "Exit status:" in out
        assert "-s" in out


class TestConfiguration:

    def test_defines_and_include_paths_in_order(self, recording):
        assert main(["-DX=1", "-Iinc", "-D", "Y", "a.c", "b.c"]) == ExitCode.OK
        config = recording.instances[0].config
        assert config.clang_args == ["-DX=1", "-DY", "-Iinc"]
        assert config.files == ["a.c", "b.c"]

    def test_flags(self, recording):
        main(["-g", "-i", "-s", "--include-headers", "--backup-suffix", ".bak", "a.c"])
        config = recording.instances[0].config
        assert not config.add_gcc_include
        assert config.interactive
        assert config.extended_status
        assert config.include_headers
        assert config.backup_suffix == ".bak"

    def test_defaults(self, recording):
        main(["a.c"])
        config = recording.instances[0].config
        assert config.add_gcc_include
        assert not config.interactive
        assert not config.extended_status
        assert config.output_format == "text"
        assert config.backup_suffix == "~"

    @pytest.mark.parametrize("flag", ["-g", "-i", "-s"])
    def test_repeated_flag_warns(self, recording, capsys, flag):
        assert main([flag, flag, "a.c"]) == ExitCode.OK
        err = capsys.readouterr().err
        assert f"Warning: it is pointless to specify {flag} multiple times." in err

    def test_libclang_from_environment(self, recording, monkeypatch):
        monkeypatch.setenv("VOIDCASTER_LIBCLANG_FILE", "/opt/llvm/lib/libclang.so")
        main(["a.c"])
        assert recording.instances[0].config.libclang_file == "/opt/llvm/lib/libclang.so"

    def test_libclang_option_beats_environment(self, recording, monkeypatch):
        monkeypatch.setenv("VOIDCASTER_LIBCLANG_FILE", "/from/env.so")
        main(["--libclang", "/from/cli.so", "a.c"])
        assert recording.instances[0].config.libclang_file == "/from/cli.so"


class TestExitCodes:

    def test_session_result_is_returned(self, recording):
        recording.action = staticmethod(lambda: ExitCode.EXT_SUGGEST)
        assert main(["-s", "a.c"]) == ExitCode.EXT_SUGGEST

    def test_end_of_input(self, recording):
        recording.action = _raise(InputExhausted())
        assert main(["-i", "a.c"]) == ExitCode.OK

    def test_memory_error(self, recording, capsys):
        recording.action = _raise(MemoryError())
        assert main(["a.c"]) == ExitCode.MM
        assert "out of memory" in capsys.readouterr().err

    def test_voidcaster_error(self, recording):
        recording.action = _raise(TreeProviderError("libclang.so not found"))
        assert main(["a.c"]) == ExitCode.CLANG_FAIL

    def test_unexpected_exception(self, recording):
        recording.action = _raise(RuntimeError("boom"))
        assert main(["a.c"]) == ExitCode.CLANG_FAIL

    def test_keyboard_interrupt(self, recording):
        recording.action = _raise(KeyboardInterrupt())
        assert main(["a.c"]) == 130


class TestEndToEnd:

    def test_text_report_on_stderr(self, fake_clang, source, capsys):
        assert main(["-g", source]) == ExitCode.OK
        captured = capsys.readouterr()
        assert f"{source}:3:5: Missing cast to void when calling function foo." in captured.err
        assert f"{source}:4:5: Pointless cast to void when calling function bar." in captured.err
        assert captured.out == ""

    def test_extended_status(self, fake_clang, source):
        assert main(["-g", "-s", source]) == ExitCode.EXT_SUGGEST

    def test_json_report_on_stdout(self, fake_clang, source, capsys):
        main(["-g", "--output", "json", source])
        lines = capsys.readouterr().out.splitlines()
        records = [json.loads(line) for line in lines]
        assert [(r["linenr"], r["column"]) for r in records] == [(3, 5), (4, 5)]

    def test_interactive_rewrites_file(self, fake_clang, source):
        stdout = io.StringIO()
        code = main(["-g", "-i", source], stdin=io.StringIO("y\ny\n"), stdout=stdout)
        assert code == ExitCode.OK
        with open(source, "rb") as fh:
            assert fh.read() == b"void f(void)\n{\n    (void)foo();\n    bar();\n}\n"
        assert "Apply fix? (y/n) " in stdout.getvalue()

    def test_interactive_end_of_input(self, fake_clang, source):
        stdout = io.StringIO()
        code = main(["-g", "-i", source], stdin=io.StringIO(""), stdout=stdout)
        assert code == ExitCode.OK
        assert stdout.getvalue().endswith("Okay, exiting.\n")
        with open(source, "rb") as fh:
            assert fh.read() == b"void f(void)\n{\n    foo();\n    (void)bar();\n}\n"
