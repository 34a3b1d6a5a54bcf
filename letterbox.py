"""Letterbox entry point and REPL wiring."""

from __future__ import annotations
import argparse
import sys
from typing import Callable, List, Optional, TextIO

from extensions import ExtensionAPI, LBExtensionError, RuntimeServices, build_default_services, load_runtime_services
from interpreter import (
    DEFAULT_MAX_DEPTH,
    FinishSignal,
    Interpreter,
    LBRuntimeError,
    TracebackFormatter,
    VariableStore,
)
from lexer import LBLexError, LBParseError
from parser import load_program
from values import coerce_input, to_text


def _output_sink(stream: TextIO) -> Callable[[str], None]:
    def sink(text: str) -> None:
        stream.write(text)
        stream.flush()

    return sink


def _dump_vars(store: VariableStore, stream: TextIO) -> None:
    for name, value in store.non_default().items():
        print(f"{name} = {value.type}:{to_text(value)}", file=stream)


def _install_trace(services: RuntimeServices, stream: TextIO, commands: str) -> None:
    ext = ExtensionAPI(services=services, ext_name="trace")

    def trace(interpreter: Interpreter, statement, store) -> None:
        location = statement.location
        frame = interpreter.call_stack[-1].name if interpreter.call_stack else "?"
        print(f"[trace] {frame} {location.file}:{location.line}:{location.column} {statement.command}", file=stream)

    ext.on_event("before_statement", trace, commands=commands)


def run_repl(
    *,
    verbose: bool,
    services: Optional[RuntimeServices] = None,
    max_depth: int = DEFAULT_MAX_DEPTH,
    stdin: Optional[TextIO] = None,
    stdout: Optional[TextIO] = None,
    stderr: Optional[TextIO] = None,
) -> int:
    stdin = stdin or sys.stdin
    stdout = stdout or sys.stdout
    stderr = stderr or sys.stderr
    print("//// LETTERBOX ////  Enter statements; 'quit' to exit.", file=stdout)

    # One store for the whole session, so variables survive between lines.
    interpreter = Interpreter(
        source="",
        filename="<repl>",
        verbose=verbose,
        services=services,
        output_sink=_output_sink(stdout),
        max_depth=max_depth,
    )
    global_frame = interpreter._new_frame("<repl>", None)
    interpreter.call_stack.append(global_frame)

    while True:
        stdout.write("> ")
        stdout.flush()
        line = stdin.readline()
        if line == "":
            print(file=stdout)
            break
        stripped = line.strip()
        if stripped.lower() == "quit":
            break
        if stripped == "":
            continue

        emitted = len(interpreter.output)
        try:
            program = load_program(stripped, filename="<repl>", services=interpreter.services)
            interpreter.execute_program(program)
        except FinishSignal:
            pass
        except (LBLexError, LBParseError) as error:
            print(f"{error.__class__.__name__}: {error}", file=stderr)
        except LBRuntimeError as error:
            if interpreter.logger.entries:
                error.step_index = interpreter.logger.entries[-1].step_index
            formatter = TracebackFormatter(interpreter)
            print(formatter.format_text(error, verbose=interpreter.verbose), file=stderr)
        except RecursionError:
            print("LBRecursionError: Maximum nesting depth exceeded", file=stderr)
        # Reset the call stack to the single top-level frame to keep the REPL usable.
        for frame in interpreter.call_stack[1:]:
            interpreter.logger.forget_frame(frame.frame_id)
        interpreter.call_stack = [global_frame]
        if len(interpreter.output) > emitted:
            print(file=stdout)

    return 0


def run_cli(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Letterbox reference interpreter")
    parser.add_argument("program", nargs="?", help="Source file path or literal source with -source")
    parser.add_argument("inputs", nargs="*", help="Input values read by GN/GS commands")
    parser.add_argument("-source", "--source", dest="source_mode", action="store_true", help="Treat program argument as literal source text")
    parser.add_argument("-verbose", "--verbose", dest="verbose", action="store_true", help="Emit variable snapshots in tracebacks")
    parser.add_argument("--traceback-json", action="store_true", help="Also emit JSON traceback")
    parser.add_argument("--dump-vars", action="store_true", help="Print non-zero variables after the run")
    parser.add_argument("--ext", dest="extensions", action="append", default=[], metavar="PATH", help="Load an extension module (repeatable)")
    parser.add_argument("--max-depth", type=int, default=DEFAULT_MAX_DEPTH, help="Maximum nesting of X commands")
    parser.add_argument("--trace", action="store_true", help="Print each statement to stderr before it runs")
    parser.add_argument("--trace-commands", default="", metavar="LETTERS", help="Only trace these command letters (implies --trace)")
    args = parser.parse_args(argv)

    try:
        services = load_runtime_services(args.extensions) if args.extensions else build_default_services()
        if args.trace or args.trace_commands:
            _install_trace(services, sys.stderr, args.trace_commands)
    except LBExtensionError as error:
        print(f"ExtensionError: {error}", file=sys.stderr)
        return 1

    if args.program is None:
        if args.source_mode:
            print("-source requires a program string", file=sys.stderr)
            return 1
        return run_repl(verbose=args.verbose, services=services, max_depth=args.max_depth)

    if args.source_mode:
        source_text = args.program
        filename = "<string>"
    else:
        filename = args.program
        try:
            with open(filename, "r", encoding="utf-8") as handle:
                source_text = handle.read()
        except OSError as exc:
            print(f"Failed to read {filename}: {exc}", file=sys.stderr)
            return 1

    interpreter = Interpreter(
        source=source_text,
        filename=filename,
        inputs=[coerce_input(text) for text in args.inputs],
        verbose=args.verbose,
        services=services,
        output_sink=_output_sink(sys.stdout),
        max_depth=args.max_depth,
    )
    status = 0
    try:
        interpreter.run()
    except FinishSignal:
        pass
    except (LBLexError, LBParseError) as error:
        print(f"{error.__class__.__name__}: {error}", file=sys.stderr)
        status = 1
    except LBRuntimeError as error:
        formatter = TracebackFormatter(interpreter)
        print(formatter.format_text(error, verbose=args.verbose), file=sys.stderr)
        if args.traceback_json:
            print(formatter.to_json(error), file=sys.stderr)
        status = 1
    if interpreter.output:
        print()
    if args.dump_vars:
        _dump_vars(interpreter.store, sys.stdout)
    return status


if __name__ == "__main__":
    raise SystemExit(run_cli())
