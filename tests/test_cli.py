"""
Tests for the command line runner and the REPL.
"""

import io
import json
import textwrap

from letterbox import run_cli, run_repl


class TestSourceMode:
    """Running literal source with -source."""

    def test_prints_output(self, capsys):
        assert run_cli(["-source", "Sa3 Pa"]) == 0
        assert capsys.readouterr().out == "3\n"

    def test_no_output_no_newline(self, capsys):
        assert run_cli(["-source", "Sa3"]) == 0
        assert capsys.readouterr().out == ""

    def test_inputs(self, capsys):
        assert run_cli(["-source", "GNa0 GSb1 MAaaa Pa Pb", "21", "hi"]) == 0
        assert capsys.readouterr().out == "42hi\n"

    def test_finish_is_success(self, capsys):
        assert run_cli(["-source", "P'a' F P'b'"]) == 0
        assert capsys.readouterr().out == "a\n"

    def test_parse_error(self, capsys):
        assert run_cli(["-source", "Q"]) == 1
        captured = capsys.readouterr()
        assert captured.err.startswith("LBParseError: Unknown command 'Q'")

    def test_runtime_error(self, capsys):
        assert run_cli(["-source", "P'x' Sa1 MDcab"]) == 1
        captured = capsys.readouterr()
        assert captured.out == "x\n"
        assert "Traceback (most recent call last):" in captured.err
        assert "LBArithmeticError: Division by zero" in captured.err

    def test_traceback_json(self, capsys):
        assert run_cli(["--traceback-json", "-source", "Sa1 MDcab"]) == 1
        err = capsys.readouterr().err
        payload = json.loads(err[err.index("{"):])
        assert payload["error"]["type"] == "LBArithmeticError"

    def test_dump_vars(self, capsys):
        assert run_cli(["--dump-vars", "-source", "Sa3 Sc'x' Sd1.5"]) == 0
        assert capsys.readouterr().out == "a = INT:3\nc = STR:x\nd = FLT:1.5\n"

    def test_source_without_program(self, capsys):
        assert run_cli(["-source"]) == 1
        assert "-source requires" in capsys.readouterr().err

    def test_max_depth(self, capsys):
        assert run_cli(["--max-depth", "3", "-source", "Sa'Xa' Xa"]) == 1
        assert "Execute nesting exceeded 3 levels" in capsys.readouterr().err

    def test_trace(self, capsys):
        assert run_cli(["--trace", "-source", "Sa'Pb' Xa"]) == 0
        err = capsys.readouterr().err.splitlines()
        assert err == [
            "[trace] <top-level> <string>:1:1 S",
            "[trace] <top-level> <string>:1:8 X",
            "[trace] X@a <X@a>:1:1 P",
        ]

    def test_trace_commands(self, capsys):
        assert run_cli(["--trace-commands", "P", "-source", "Sa1 Pa Sb2 Pb"]) == 0
        err = capsys.readouterr().err.splitlines()
        assert err == ["[trace] <top-level> <string>:1:5 P", "[trace] <top-level> <string>:1:12 P"]

    def test_trace_commands_rejects_unknown_letters(self, capsys):
        assert run_cli(["--trace-commands", "Q", "-source", "Pa"]) == 1
        assert "ExtensionError" in capsys.readouterr().err


class TestFileMode:
    """Running a program file."""

    def test_file(self, tmp_path, capsys):
        program = tmp_path / "hello.lb"
        program.write_text("! greet\nP'Hello, ' GSa0 Pa\n", encoding="utf-8")
        assert run_cli([str(program), "world"]) == 0
        assert capsys.readouterr().out == "Hello, world\n"

    def test_missing_file(self, tmp_path, capsys):
        assert run_cli([str(tmp_path / "nope.lb")]) == 1
        assert "Failed to read" in capsys.readouterr().err

    def test_traceback_names_file(self, tmp_path, capsys):
        program = tmp_path / "bad.lb"
        program.write_text("Sa1\nMDcab\n", encoding="utf-8")
        assert run_cli([str(program)]) == 1
        err = capsys.readouterr().err
        assert "bad.lb\", line 2, column 1, in <top-level>" in err

    def test_extension(self, tmp_path, capsys):
        ext = tmp_path / "power.py"
        ext.write_text(
            textwrap.dedent(
                """
                def letterbox_register(ext):
                    ext.register_math_op("P", lambda ctx, a, b: a.value ** b.value)
                """
            ),
            encoding="utf-8",
        )
        assert run_cli(["--ext", str(ext), "-source", "Sa2 Sb5 MPcab Pc"]) == 0
        assert capsys.readouterr().out == "32\n"

    def test_bad_extension(self, tmp_path, capsys):
        ext = tmp_path / "empty.py"
        ext.write_text("\n", encoding="utf-8")
        assert run_cli(["--ext", str(ext), "-source", "Pa"]) == 1
        assert "ExtensionError" in capsys.readouterr().err


class TestRepl:
    """The interactive loop."""

    def _run(self, text):
        stdout = io.StringIO()
        stderr = io.StringIO()
        status = run_repl(verbose=False, stdin=io.StringIO(text), stdout=stdout, stderr=stderr)
        return status, stdout.getvalue(), stderr.getvalue()

    def test_variables_survive_between_lines(self):
        status, out, err = self._run("Sa3\nMAaaa\nPa\nquit\n")
        assert status == 0
        assert "6\n" in out
        assert err == ""

    def test_errors_do_not_end_session(self):
        status, out, err = self._run("Q\nSb0 MDcab\nP'still here'\n")
        assert status == 0
        assert "LBParseError" in err
        assert "LBArithmeticError: Division by zero" in err
        assert "still here\n" in out

    def test_finish_only_ends_the_line(self):
        _, out, _ = self._run("P'a' F P'zzz'\nP'c'\nquit\n")
        assert "a\n" in out
        assert "zzz" not in out
        assert "c\n" in out

    def test_blank_lines_and_eof(self):
        status, out, _ = self._run("\n\n")
        assert status == 0
        assert out.count("> ") == 3
