"""
Tests for the X command: running stored text as a program.
"""

import json

import pytest

from interpreter import (
    Interpreter,
    LBArithmeticError,
    LBRecursionError,
    LBTypeError,
    Termination,
    TracebackFormatter,
    run_program,
)
from lexer import LBLexError, LBParseError


class TestSharedState:
    """Sub-programs see and change the caller's variables."""

    def test_runs_stored_text(self):
        assert run_program("Sa'P\"inner\"' Xa").text == "inner"

    def test_writes_are_visible_to_caller(self):
        assert run_program("Sa'Sb7' Xa Pb").text == "7"

    def test_reads_caller_values(self):
        assert run_program("Sb4 Sa'Pb' Xa").text == "4"

    def test_shares_inputs(self):
        assert run_program("Sa'GSb0 Pb' Xa", ["hey"]).text == "hey"

    def test_runs_each_time(self):
        assert run_program("Sn3 Sa'P\"x\"' LnXa").text == "xxx"


class TestRenaming:
    """Rename pairs bind sub-program names to caller variables."""

    def test_rename_in_both_directions(self):
        result = run_program("Sd5 Sa'MAbbb' Xabd Pd")
        assert result.text == "10"

    def test_swap(self):
        assert run_program("Sp1 Sq2 Sx'Pa Pb' Xxapbq").text == "12"

    def test_simultaneous_swap_of_same_names(self):
        assert run_program("Sa1 Sb2 Sx'Pa Pb' Xxabba").text == "21"

    def test_renamed_name_left_untouched(self):
        assert run_program("Sc1 Sa'Sb7' Xabc Pc Pb").text == "70"

    def test_nested_execute_renames_binding_side(self):
        assert run_program("Sy'Pk' Sx'Xykm' Sz5 Xxmz").text == "5"

    def test_documented_example(self):
        result = run_program("Sa2 Sb3 Sf'MAcab' Xfaebgcz Pz")
        assert result.text == "0"
        result = run_program("Se2 Sg3 Sf'MAcab' Xfaebgcz Pz")
        assert result.text == "5"


class TestFaults:
    """Faults inside X stop the whole run."""

    def test_source_must_be_text(self):
        result = run_program("Sa5 Xa")
        assert isinstance(result.error, LBTypeError)
        assert result.error.rewrite_rule == "X"

    def test_parse_error_in_sub_program(self):
        result = run_program("P'x' Sa'Q' Xa P'y'")
        assert isinstance(result.error, LBParseError)
        assert "<X@a>" in str(result.error)
        assert result.text == "x"

    def test_lex_error_in_sub_program(self):
        result = run_program("Sa'P#' Xa")
        assert isinstance(result.error, LBLexError)

    def test_runtime_error_in_sub_program(self):
        result = run_program("P'x' Sa'Sb0 MDcab P\"y\"' Xa P'z'")
        assert isinstance(result.error, LBArithmeticError)
        assert result.text == "x"

    def test_self_execution_hits_depth_limit(self):
        result = run_program("Sa'Xa' Xa")
        assert isinstance(result.error, LBRecursionError)

    def test_custom_depth_limit(self):
        result = run_program("Sa'P\"x\" Xa' Xa", max_depth=5)
        assert isinstance(result.error, LBRecursionError)
        assert "5" in result.error.message
        assert result.text == "x" * 5


class TestFinish:
    """F inside a sub-program ends the whole run."""

    def test_finish_propagates(self):
        result = run_program("Sa'P\"in\" F' Xa P'after'")
        assert result.text == "in"
        assert result.termination is Termination.FINISH

    def test_finish_two_levels_down(self):
        result = run_program("Sb'F' Sa'Xb P\"no\"' Xa P'no'")
        assert result.text == ""
        assert result.termination is Termination.FINISH


class TestTracebacks:
    """Execute frames show up in tracebacks."""

    def _failing(self, source, verbose=False):
        interpreter = Interpreter(source=source, verbose=verbose)
        with pytest.raises(LBArithmeticError) as excinfo:
            interpreter.run()
        return interpreter, excinfo.value

    def test_text_lists_frames(self):
        interpreter, error = self._failing("Sa'Sb0 MDcab' Xa")
        text = TracebackFormatter(interpreter).format_text(error, verbose=False)
        assert text.startswith("Traceback (most recent call last):")
        assert "in <top-level>" in text
        assert "in X@a" in text
        assert text.endswith("LBArithmeticError: Division by zero (rewrite: MD)")

    def test_verbose_snapshot(self):
        interpreter, error = self._failing("Sa3 Sb0 MDcab", verbose=True)
        text = TracebackFormatter(interpreter).format_text(error, verbose=True)
        assert "Env snapshot: a=INT:3" in text

    def test_json(self):
        interpreter, error = self._failing("Sa'Sb0 MDcab' Xa")
        data = json.loads(TracebackFormatter(interpreter).to_json(error))
        assert data["error"]["type"] == "LBArithmeticError"
        assert data["error"]["failing_step_index"] == error.step_index
        assert [frame["name"] for frame in data["traceback"]] == ["<top-level>", "X@a"]
        assert data["traceback"][1]["source_location"]["file"] == "<X@a>"
