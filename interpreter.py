from __future__ import annotations
import json
import math
import os
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Deque, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from extensions import OpContext, OpRegistry, OpSpec, RuntimeServices, StepContext, build_default_services
from lexer import LBError, LBLexError, LBParseError
from parser import (
    Append,
    BoolStatement,
    Copy,
    ExecuteStatement,
    FinishStatement,
    GetInputStatement,
    IfStatement,
    LoopStatement,
    MathStatement,
    NegateStatement,
    PrintText,
    PrintVar,
    Program,
    ResetAllStatement,
    ResetStatement,
    SourceLocation,
    Statement,
    Store,
    UnlessStatement,
    WhileStatement,
    load_program,
)
from values import (
    TYPE_FLT,
    TYPE_INT,
    TYPE_STR,
    ONE,
    ZERO,
    Value,
    bool_value,
    flt_value,
    from_python,
    in_int_range,
    int_value,
    is_numeric,
    is_truthy,
    parse_number,
    str_value,
    to_text,
)


VARIABLE_NAMES = "abcdefghijklmnopqrstuvwxyz"

# Execute frames allowed on top of the top-level frame.
DEFAULT_MAX_DEPTH = 100

# Recent step-log entries kept in memory; older ones are dropped.
LOG_HISTORY = 256


class LBRuntimeError(LBError):
    """Raised for runtime faults."""

    def __init__(
        self,
        message: str,
        *,
        location: Optional[SourceLocation] = None,
        rewrite_rule: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.location = location
        self.rewrite_rule = rewrite_rule
        self.step_index: Optional[int] = None


class LBTypeError(LBRuntimeError):
    """An operation was applied to a value of the wrong kind."""


class LBArithmeticError(LBRuntimeError):
    """Division by zero, or a result outside the representable range."""


class LBIndexError(LBRuntimeError):
    """An input index outside the input list."""


class LBRecursionError(LBRuntimeError):
    """Execute nesting or statement nesting exhausted the allowed depth."""


class FinishSignal(Exception):
    def __init__(self, location: Optional[SourceLocation] = None) -> None:
        super().__init__("F")
        self.location = location


def checked_number(value: Value, location: Optional[SourceLocation], rule: str) -> Value:
    """Reject INT results outside 64 bits and FLT results that are not finite."""
    if value.type == TYPE_INT and not in_int_range(value.value):
        raise LBArithmeticError("Integer overflow", location=location, rewrite_rule=rule)
    if value.type == TYPE_FLT and not math.isfinite(value.value):
        raise LBArithmeticError("Float result is not finite", location=location, rewrite_rule=rule)
    return value


@dataclass
class VariableStore:
    values: Dict[str, Value] = field(default_factory=lambda: {name: ZERO for name in VARIABLE_NAMES})

    def _key(self, name: str) -> str:
        key = name.lower()
        if key not in self.values:
            raise LBRuntimeError(f"Unknown variable '{name}'", rewrite_rule="VAR")
        return key

    def get(self, name: str) -> Value:
        return self.values[self._key(name)]

    def set(self, name: str, value: Union[Value, int, float, str]) -> None:
        self.values[self._key(name)] = from_python(value)

    def copy(self, source: str, target: str) -> None:
        # Values are immutable, so sharing the object is a value copy.
        self.values[self._key(target)] = self.get(source)

    def reset(self, name: str) -> None:
        self.values[self._key(name)] = ZERO

    def reset_all(self) -> None:
        for name in VARIABLE_NAMES:
            self.values[name] = ZERO

    def items(self) -> List[Tuple[str, Value]]:
        return [(name, self.values[name]) for name in VARIABLE_NAMES]

    def non_default(self) -> Dict[str, Value]:
        return {name: value for name, value in self.items() if value != ZERO}

    def snapshot(self) -> Dict[str, str]:
        def _render(val: Value) -> str:
            rendered = to_text(val)
            if len(rendered) > 80:
                rendered = rendered[:77] + "..."
            return f"{val.type}:{rendered}"

        return {name: _render(value) for name, value in self.non_default().items()}


@dataclass
class Frame:
    name: str
    frame_id: str
    call_location: Optional[SourceLocation]


@dataclass
class StateEntry:
    step_index: int
    state_id: str
    frame_id: Optional[str]
    source_location: Optional[SourceLocation]
    statement: Optional[str]
    env_snapshot: Optional[Dict[str, str]]
    rewrite_record: Optional[Dict[str, Any]]


class StateLogger:
    def __init__(self, verbose: bool, history: int = LOG_HISTORY) -> None:
        self.verbose = verbose
        self.entries: Deque[StateEntry] = deque(maxlen=history)
        self.next_state_index = 0
        self.last_state_id = "seed"
        self.frame_last_entry: Dict[str, StateEntry] = {}

    def record(
        self,
        *,
        frame: Optional[Frame],
        location: Optional[SourceLocation],
        statement: Optional[str],
        rewrite_record: Optional[Dict[str, Any]] = None,
        env_snapshot: Optional[Dict[str, str]] = None,
    ) -> StateEntry:
        rewrite = {} if rewrite_record is None else rewrite_record
        if "from_state_id" not in rewrite:
            rewrite["from_state_id"] = self.last_state_id
        step_index = self.next_state_index
        state_id = f"s_{step_index:06d}"
        rewrite["to_state_id"] = state_id
        entry = StateEntry(
            step_index=step_index,
            state_id=state_id,
            frame_id=frame.frame_id if frame else None,
            source_location=location,
            statement=statement,
            env_snapshot=env_snapshot,
            rewrite_record=rewrite,
        )
        self.entries.append(entry)
        if frame:
            self.frame_last_entry[frame.frame_id] = entry
        self.last_state_id = state_id
        self.next_state_index += 1
        return entry

    def last_entry_for_frame(self, frame_id: str) -> Optional[StateEntry]:
        return self.frame_last_entry.get(frame_id)

    def last_entry(self) -> Optional[StateEntry]:
        return self.entries[-1] if self.entries else None

    def forget_frame(self, frame_id: str) -> None:
        self.frame_last_entry.pop(frame_id, None)


class Operators:
    """Concrete semantics of the built-in Math and Bool op letters."""

    def install(self, services: RuntimeServices) -> None:
        math_ops = services.math_ops
        self._register(math_ops, "A", "add", self._add)
        self._register(math_ops, "S", "subtract", self._sub)
        self._register(math_ops, "M", "multiply", self._mul)
        self._register(math_ops, "D", "divide", self._div)
        self._register(math_ops, "R", "remainder", self._rem)
        self._register(math_ops, "E", "equal", self._eq)
        self._register(math_ops, "G", "greater", self._gt)
        self._register(math_ops, "L", "less", self._lt)

        bool_ops = services.bool_ops
        self._register(bool_ops, "E", "equal", lambda ctx, a, b: bool_value(is_truthy(a) == is_truthy(b)))
        self._register(bool_ops, "A", "and", lambda ctx, a, b: bool_value(is_truthy(a) and is_truthy(b)))
        self._register(bool_ops, "O", "or", lambda ctx, a, b: bool_value(is_truthy(a) or is_truthy(b)))
        self._register(bool_ops, "X", "xor", lambda ctx, a, b: bool_value(is_truthy(a) != is_truthy(b)))

    def _register(self, registry: OpRegistry, letter: str, name: str, impl: Callable[[OpContext, Value, Value], Value]) -> None:
        if not registry.has(letter):
            registry.register(OpSpec(letter=letter, name=name, impl=impl), seal=True)

    # Helpers
    def _rule(self, ctx: OpContext) -> str:
        return f"M{ctx.letter}"

    def _expect_num_pair(self, ctx: OpContext, left: Value, right: Value) -> Tuple[str, Any, Any]:
        if not (is_numeric(left) and is_numeric(right)):
            raise LBTypeError(
                f"M{ctx.letter} expects numbers but got {left.type} and {right.type}",
                location=ctx.location,
                rewrite_rule=self._rule(ctx),
            )
        if left.type == TYPE_INT and right.type == TYPE_INT:
            return TYPE_INT, int(left.value), int(right.value)
        return TYPE_FLT, float(left.value), float(right.value)

    def _number(self, ctx: OpContext, t: str, result: Any) -> Value:
        value = int_value(result) if t == TYPE_INT else flt_value(result)
        return checked_number(value, ctx.location, self._rule(ctx))

    def _expect_nonzero(self, ctx: OpContext, divisor: Any) -> None:
        if divisor == 0:
            raise LBArithmeticError("Division by zero", location=ctx.location, rewrite_rule=self._rule(ctx))

    def _add(self, ctx: OpContext, left: Value, right: Value) -> Value:
        t, a, b = self._expect_num_pair(ctx, left, right)
        return self._number(ctx, t, a + b)

    def _sub(self, ctx: OpContext, left: Value, right: Value) -> Value:
        t, a, b = self._expect_num_pair(ctx, left, right)
        return self._number(ctx, t, a - b)

    def _mul(self, ctx: OpContext, left: Value, right: Value) -> Value:
        t, a, b = self._expect_num_pair(ctx, left, right)
        return self._number(ctx, t, a * b)

    def _div(self, ctx: OpContext, left: Value, right: Value) -> Value:
        t, a, b = self._expect_num_pair(ctx, left, right)
        self._expect_nonzero(ctx, b)
        if t == TYPE_INT:
            if a % b == 0:
                return self._number(ctx, TYPE_INT, a // b)
            return self._number(ctx, TYPE_FLT, a / b)
        return self._number(ctx, TYPE_FLT, a / b)

    def _rem(self, ctx: OpContext, left: Value, right: Value) -> Value:
        t, a, b = self._expect_num_pair(ctx, left, right)
        self._expect_nonzero(ctx, b)
        if t == TYPE_INT:
            # Truncated remainder: the sign follows the dividend.
            r = abs(a) % abs(b)
            return int_value(-r if a < 0 else r)
        return self._number(ctx, TYPE_FLT, math.fmod(a, b))

    def _eq(self, ctx: OpContext, left: Value, right: Value) -> Value:
        if is_numeric(left) and is_numeric(right):
            return bool_value(left.value == right.value)
        if left.type == TYPE_STR and right.type == TYPE_STR:
            return bool_value(left.value == right.value)
        return ZERO

    def _expect_ordered(self, ctx: OpContext, left: Value, right: Value) -> None:
        if is_numeric(left) and is_numeric(right):
            return
        if left.type == TYPE_STR and right.type == TYPE_STR:
            return
        raise LBTypeError(
            f"M{ctx.letter} cannot compare {left.type} with {right.type}",
            location=ctx.location,
            rewrite_rule=self._rule(ctx),
        )

    def _gt(self, ctx: OpContext, left: Value, right: Value) -> Value:
        self._expect_ordered(ctx, left, right)
        return bool_value(left.value > right.value)

    def _lt(self, ctx: OpContext, left: Value, right: Value) -> Value:
        self._expect_ordered(ctx, left, right)
        return bool_value(left.value < right.value)


class Interpreter:
    def __init__(
        self,
        *,
        source: str,
        filename: str = "<string>",
        inputs: Sequence[Union[Value, int, float, str]] = (),
        store: Optional[VariableStore] = None,
        verbose: bool = False,
        services: Optional[RuntimeServices] = None,
        output_sink: Optional[Callable[[str], None]] = None,
        max_depth: int = DEFAULT_MAX_DEPTH,
    ) -> None:
        self.source = source
        normalized_filename = filename if filename.startswith("<") else os.path.abspath(filename)
        self.filename = normalized_filename
        self.inputs: Tuple[Value, ...] = tuple(from_python(item) for item in inputs)
        self.store = store if store is not None else VariableStore()
        self.verbose = verbose
        self.services = services or build_default_services()
        self.hook_registry = self.services.hook_registry
        self.output_sink = output_sink
        self.output: List[str] = []
        self.max_depth = max_depth

        # Built-in op letters are reserved by default services; install their
        # concrete behavior unless a caller already did.
        Operators().install(self.services)

        self.logger = StateLogger(verbose=verbose)
        self.logger.record(frame=None, location=None, statement="<seed>", rewrite_record={"rule": "SEED"})
        self.call_stack: List[Frame] = []
        self.frame_counter = 0

    def parse(self) -> Program:
        return load_program(self.source, filename=self.filename, services=self.services)

    def run(self) -> None:
        program = self.parse()
        global_frame = self._new_frame("<top-level>", None)
        self.call_stack.append(global_frame)
        self._emit_event("program_start", self, program, self.store)
        try:
            self._execute_block(program.statements)
        except FinishSignal:
            self._emit_event("program_end", self, "finish")
            self._pop_frame()
            raise
        except LBRuntimeError as error:
            self._emit_event("on_error", self, error)
            if error.step_index is None and self.logger.entries:
                error.step_index = self.logger.entries[-1].step_index
            raise
        except (LBLexError, LBParseError) as error:
            # Raised by an Execute command loading its sub-program.
            self._emit_event("on_error", self, error)
            raise
        except RecursionError:
            wrapped = LBRecursionError(
                "Maximum nesting depth exceeded", location=self._last_location(), rewrite_rule="depth"
            )
            self._emit_event("on_error", self, wrapped)
            wrapped.step_index = self.logger.entries[-1].step_index
            raise wrapped from None
        except Exception as exc:
            self._emit_event("on_error", self, exc)
            # Convert unexpected Python-level exceptions into LBRuntimeError
            # so callers (REPL/CLI) can format them as Letterbox tracebacks.
            wrapped = LBRuntimeError(
                f"Internal interpreter error: {exc}", location=self._last_location(), rewrite_rule="internal"
            )
            wrapped.step_index = self.logger.entries[-1].step_index
            raise wrapped
        else:
            self._emit_event("program_end", self, "end")
            self._pop_frame()

    def execute_program(self, program: Program) -> None:
        """Run an already parsed program in the current frame against this store."""
        if not self.call_stack:
            self.call_stack.append(self._new_frame("<top-level>", None))
        self._execute_block(program.statements)

    def _execute_block(self, statements: Iterable[Statement]) -> None:
        emit_statement = self._emit_statement_event
        execute_stmt = self._execute_statement
        for statement in statements:
            emit_statement("before_statement", statement)
            execute_stmt(statement)
            emit_statement("after_statement", statement)

    def _execute_statement(self, statement: Statement) -> None:
        self._log_step(statement)
        store = self.store
        if isinstance(statement, PrintVar):
            self._emit_output(to_text(store.get(statement.source.name)))
            return
        if isinstance(statement, PrintText):
            self._emit_output(to_text(statement.text.value))
            return
        if isinstance(statement, Store):
            store.set(statement.target.name, statement.value.value)
            return
        if isinstance(statement, Copy):
            store.copy(statement.source.name, statement.target.name)
            return
        if isinstance(statement, Append):
            joined = to_text(store.get(statement.target.name)) + to_text(store.get(statement.source.name))
            store.set(statement.target.name, str_value(joined))
            return
        if isinstance(statement, MathStatement):
            self._execute_op(statement, self.services.math_ops, normalize=False)
            return
        if isinstance(statement, BoolStatement):
            self._execute_op(statement, self.services.bool_ops, normalize=True)
            return
        if isinstance(statement, LoopStatement):
            self._execute_loop(statement)
            return
        if isinstance(statement, IfStatement):
            if is_truthy(store.get(statement.condition.name)):
                self._execute_statement(statement.body)
            return
        if isinstance(statement, UnlessStatement):
            if not is_truthy(store.get(statement.condition.name)):
                self._execute_statement(statement.body)
            return
        if isinstance(statement, WhileStatement):
            self._execute_while(statement)
            return
        if isinstance(statement, ResetStatement):
            store.reset(statement.target.name)
            return
        if isinstance(statement, ResetAllStatement):
            store.reset_all()
            return
        if isinstance(statement, GetInputStatement):
            store.set(statement.target.name, self._read_input(statement))
            return
        if isinstance(statement, NegateStatement):
            current = store.get(statement.target.name)
            store.set(statement.target.name, ZERO if is_truthy(current) else ONE)
            return
        if isinstance(statement, FinishStatement):
            raise FinishSignal(statement.location)
        if isinstance(statement, ExecuteStatement):
            self._execute_execute(statement)
            return
        raise LBRuntimeError("Unsupported statement", location=statement.location)

    def _execute_op(self, statement: Union[MathStatement, BoolStatement], registry: OpRegistry, *, normalize: bool) -> None:
        letter = statement.op.letter
        rule = f"{statement.command}{letter}"
        spec = registry.get_optional(letter)
        if spec is None:
            raise LBRuntimeError(f"Unknown {registry.kind} op '{letter}'", location=statement.location, rewrite_rule=rule)
        left = self.store.get(statement.left.name)
        right = self.store.get(statement.right.name)
        ctx = OpContext(interpreter=self, location=statement.location, letter=letter)
        try:
            result = spec.impl(ctx, left, right)
        except LBRuntimeError:
            raise
        except Exception as exc:
            raise LBRuntimeError(
                f"{registry.kind} op '{letter}' ({spec.name}) failed: {exc}",
                location=statement.location,
                rewrite_rule="EXT",
            )
        if not isinstance(result, Value):
            try:
                result = from_python(result)
            except TypeError as exc:
                raise LBRuntimeError(str(exc), location=statement.location, rewrite_rule="EXT")
        if normalize:
            result = bool_value(is_truthy(result))
        else:
            result = checked_number(result, statement.location, rule)
        self.store.set(statement.target.name, result)

    def _execute_loop(self, statement: LoopStatement) -> None:
        # The count is read once; the body may change the variable freely.
        count = self._loop_count(self.store.get(statement.count.name), statement.location)
        execute_stmt = self._execute_statement
        for _ in range(count):
            execute_stmt(statement.body)

    def _execute_while(self, statement: WhileStatement) -> None:
        name = statement.condition.name
        execute_stmt = self._execute_statement
        while is_truthy(self.store.get(name)):
            execute_stmt(statement.body)

    def _loop_count(self, value: Value, location: Optional[SourceLocation]) -> int:
        if value.type == TYPE_INT:
            return int(value.value)
        if value.type == TYPE_FLT:
            return int(value.value)
        raise LBTypeError("L expects a numeric count", location=location, rewrite_rule="L")

    def _read_input(self, statement: GetInputStatement) -> Value:
        index = int(statement.index.value.value)
        rule = f"G{statement.mode.letter}"
        if index < 0 or index >= len(self.inputs):
            raise LBIndexError(
                f"Input index {index} out of range for {len(self.inputs)} input(s)",
                location=statement.location,
                rewrite_rule=rule,
            )
        value = self.inputs[index]
        if statement.mode.letter == "S":
            return str_value(to_text(value))
        if is_numeric(value):
            return value
        try:
            return parse_number(str(value.value))
        except ValueError:
            raise LBTypeError(
                f"Input {index} ('{value.value}') is not a number",
                location=statement.location,
                rewrite_rule=rule,
            ) from None

    def _execute_execute(self, statement: ExecuteStatement) -> None:
        source_name = statement.source.name
        value = self.store.get(source_name)
        if value.type != TYPE_STR:
            raise LBTypeError(
                f"X expects program text in '{source_name}' but found {value.type}",
                location=statement.location,
                rewrite_rule="X",
            )
        if len(self.call_stack) > self.max_depth:
            raise LBRecursionError(
                f"Execute nesting exceeded {self.max_depth} levels",
                location=statement.location,
                rewrite_rule="X",
            )
        pairs = [(pair.inner, pair.outer.name) for pair in statement.renames]
        program = load_program(value.value, pairs, filename=f"<X@{source_name}>", services=self.services)

        # The sub-program shares this interpreter's store, inputs and output.
        frame = self._new_frame(f"X@{source_name}", statement.location)
        self.call_stack.append(frame)
        self._emit_event("execute_enter", self, frame.name, tuple(pairs))
        try:
            self._execute_block(program.statements)
        except FinishSignal:
            self._pop_frame()
            raise
        self._pop_frame()
        self._emit_event("execute_exit", self, frame.name)

    def _emit_output(self, text: str) -> None:
        self.output.append(text)
        if self.output_sink is not None:
            self.output_sink(text)
        if self.hook_registry.listening("output"):
            self._emit_event("output", self, text)

    def _last_location(self) -> Optional[SourceLocation]:
        if self.logger.entries:
            return self.logger.entries[-1].source_location
        return None

    def _pop_frame(self) -> None:
        frame = self.call_stack.pop()
        self.logger.forget_frame(frame.frame_id)

    def _new_frame(self, name: str, call_location: Optional[SourceLocation]) -> Frame:
        frame_id = f"f_{self.frame_counter:04d}"
        self.frame_counter += 1
        return Frame(name=name, frame_id=frame_id, call_location=call_location)

    def _emit_event(self, event: str, *args: Any) -> None:
        try:
            self.hook_registry.emit(event, *args)
        except (LBRuntimeError, FinishSignal):
            raise
        except Exception as exc:
            raise LBRuntimeError(
                f"Extension hook '{event}' failed: {exc}",
                location=self._last_location(),
                rewrite_rule="EXT",
            )

    def _emit_statement_event(self, event: str, statement: Statement) -> None:
        if not self.hook_registry.listening(event):
            return
        try:
            self.hook_registry.emit_statement(event, self, statement, self.store)
        except (LBRuntimeError, FinishSignal):
            raise
        except Exception as exc:
            raise LBRuntimeError(
                f"Extension hook '{event}' failed: {exc}",
                location=statement.location,
                rewrite_rule="EXT",
            )

    def _log_step(self, statement: Statement) -> None:
        frame = self.call_stack[-1] if self.call_stack else None
        location = statement.location
        entry = self.logger.record(
            frame=frame,
            location=location,
            statement=location.statement,
            env_snapshot=self.store.snapshot() if self.verbose else None,
            rewrite_record={"rule": statement.__class__.__name__, "command": statement.command},
        )
        if not self.hook_registry.step_rules:
            return
        ctx = StepContext(
            step_index=entry.step_index,
            command=statement.command,
            frame=frame.name if frame else "",
            location=location,
        )
        try:
            self.hook_registry.after_step(self, ctx)
        except (LBRuntimeError, FinishSignal):
            raise
        except Exception as exc:
            raise LBRuntimeError(
                f"Extension step rule failed: {exc}",
                location=location,
                rewrite_rule="EXT",
            )


@dataclass
class TracebackFrame:
    name: str
    location: Optional[SourceLocation]
    statement: Optional[str]
    state_entry: Optional[StateEntry]


class TracebackFormatter:
    def __init__(self, interpreter: Interpreter) -> None:
        self.interpreter = interpreter

    def build_frames(self) -> List[TracebackFrame]:
        frames: List[TracebackFrame] = []
        for frame in self.interpreter.call_stack:
            entry = self.interpreter.logger.last_entry_for_frame(frame.frame_id)
            location = entry.source_location if entry else frame.call_location
            frames.append(
                TracebackFrame(
                    name=frame.name,
                    location=location,
                    statement=entry.statement if entry else None,
                    state_entry=entry,
                )
            )
        return frames

    def format_text(self, error: LBRuntimeError, verbose: bool) -> str:
        lines = ["Traceback (most recent call last):"]
        for frame in self.build_frames():
            if frame.location:
                lines.append(
                    f"  File \"{frame.location.file}\", line {frame.location.line}, column {frame.location.column}, in {frame.name}"
                )
                if frame.statement:
                    lines.append(f"    {frame.statement}")
            else:
                lines.append(f"  <unknown location> in {frame.name}")
            if frame.state_entry:
                lines.append(
                    f"    State log index: {frame.state_entry.step_index}  State id: {frame.state_entry.state_id}"
                )
                if verbose and frame.state_entry.env_snapshot is not None:
                    snapshot = ", ".join(f"{k}={v}" for k, v in frame.state_entry.env_snapshot.items())
                    lines.append(f"    Env snapshot: {snapshot}")
        rule = error.rewrite_rule or "runtime"
        lines.append(f"{error.__class__.__name__}: {error.message} (rewrite: {rule})")
        return "\n".join(lines)

    def to_json(self, error: LBRuntimeError) -> str:
        frames_json: List[Dict[str, Any]] = []
        for index, frame in enumerate(self.build_frames()):
            entry: Dict[str, Any] = {"frame_index": index, "name": frame.name}
            if frame.location:
                entry["source_location"] = {
                    "file": frame.location.file,
                    "line": frame.location.line,
                    "column": frame.location.column,
                    "statement": frame.location.statement,
                }
            if frame.state_entry:
                entry["state_id"] = frame.state_entry.state_id
                entry["step_index"] = frame.state_entry.step_index
                if frame.state_entry.env_snapshot is not None:
                    entry["env_snapshot"] = frame.state_entry.env_snapshot
                if frame.state_entry.rewrite_record is not None:
                    entry["rewrite_record"] = frame.state_entry.rewrite_record
            frames_json.append(entry)
        data = {
            "error": {
                "type": error.__class__.__name__,
                "message": error.message,
                "failing_step_index": error.step_index,
            },
            "traceback": frames_json,
        }
        return json.dumps(data, indent=2)


class Termination(Enum):
    NORMAL_END = "normal_end"
    FINISH = "finish"
    FAULT = "fault"


@dataclass
class RunResult:
    output: List[str]
    termination: Termination
    store: VariableStore
    error: Optional[LBError] = None

    @property
    def text(self) -> str:
        return "".join(self.output)

    @property
    def fault_kind(self) -> Optional[str]:
        return self.error.__class__.__name__ if self.error is not None else None

    @property
    def ok(self) -> bool:
        return self.termination is not Termination.FAULT


def run_program(
    source: str,
    inputs: Sequence[Union[Value, int, float, str]] = (),
    *,
    filename: str = "<string>",
    store: Optional[VariableStore] = None,
    services: Optional[RuntimeServices] = None,
    verbose: bool = False,
    max_depth: int = DEFAULT_MAX_DEPTH,
    output_sink: Optional[Callable[[str], None]] = None,
) -> RunResult:
    """Run `source` to completion and report output plus how it terminated.

    Faults never escape; they are returned in `RunResult.error`. Output
    printed before a fault is kept.
    """
    interpreter = Interpreter(
        source=source,
        filename=filename,
        inputs=inputs,
        store=store,
        verbose=verbose,
        services=services,
        output_sink=output_sink,
        max_depth=max_depth,
    )
    try:
        interpreter.run()
    except FinishSignal:
        return RunResult(output=interpreter.output, termination=Termination.FINISH, store=interpreter.store)
    except LBError as error:
        return RunResult(output=interpreter.output, termination=Termination.FAULT, store=interpreter.store, error=error)
    return RunResult(output=interpreter.output, termination=Termination.NORMAL_END, store=interpreter.store)
