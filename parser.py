from __future__ import annotations
from dataclasses import dataclass, fields, replace
from typing import Any, ClassVar, Dict, Iterable, List, Optional, Tuple

from extensions import RuntimeServices, build_default_services
from lexer import LBParseError, Lexer, Token
from values import Value, flt_value, in_int_range, int_value, str_value


@dataclass(frozen=True)
class SourceLocation:
    file: str
    line: int
    column: int
    statement: str


@dataclass(frozen=True)
class Node:
    location: SourceLocation


# ---- Operands ----

@dataclass(frozen=True)
class VarRef:
    name: str


@dataclass(frozen=True)
class Literal:
    value: Value


@dataclass(frozen=True)
class OpCode:
    letter: str


@dataclass(frozen=True)
class RenamePair:
    # `inner` names a variable of the executed sub-program, `outer` the
    # caller's variable it is bound to.
    inner: str
    outer: VarRef


# ---- Statements ----

@dataclass(frozen=True)
class Statement(Node):
    command: ClassVar[str] = ""

    def operands(self) -> Tuple[Any, ...]:
        return tuple(getattr(self, f.name) for f in fields(self) if f.name != "location")


@dataclass(frozen=True)
class PrintVar(Statement):
    command: ClassVar[str] = "P"
    source: VarRef


@dataclass(frozen=True)
class PrintText(Statement):
    command: ClassVar[str] = "P"
    text: Literal


@dataclass(frozen=True)
class Store(Statement):
    command: ClassVar[str] = "S"
    target: VarRef
    value: Literal


@dataclass(frozen=True)
class Copy(Statement):
    command: ClassVar[str] = "C"
    source: VarRef
    target: VarRef


@dataclass(frozen=True)
class Append(Statement):
    command: ClassVar[str] = "A"
    target: VarRef
    source: VarRef


@dataclass(frozen=True)
class MathStatement(Statement):
    command: ClassVar[str] = "M"
    op: OpCode
    target: VarRef
    left: VarRef
    right: VarRef


@dataclass(frozen=True)
class BoolStatement(Statement):
    command: ClassVar[str] = "B"
    op: OpCode
    target: VarRef
    left: VarRef
    right: VarRef


@dataclass(frozen=True)
class LoopStatement(Statement):
    command: ClassVar[str] = "L"
    count: VarRef
    body: Statement


@dataclass(frozen=True)
class IfStatement(Statement):
    command: ClassVar[str] = "I"
    condition: VarRef
    body: Statement


@dataclass(frozen=True)
class UnlessStatement(Statement):
    command: ClassVar[str] = "U"
    condition: VarRef
    body: Statement


@dataclass(frozen=True)
class WhileStatement(Statement):
    command: ClassVar[str] = "W"
    condition: VarRef
    body: Statement


@dataclass(frozen=True)
class ResetStatement(Statement):
    command: ClassVar[str] = "R"
    target: VarRef


@dataclass(frozen=True)
class ResetAllStatement(Statement):
    command: ClassVar[str] = "R"


@dataclass(frozen=True)
class GetInputStatement(Statement):
    command: ClassVar[str] = "G"
    mode: OpCode
    target: VarRef
    index: Literal


@dataclass(frozen=True)
class NegateStatement(Statement):
    command: ClassVar[str] = "N"
    target: VarRef


@dataclass(frozen=True)
class FinishStatement(Statement):
    command: ClassVar[str] = "F"


@dataclass(frozen=True)
class ExecuteStatement(Statement):
    command: ClassVar[str] = "X"
    source: VarRef
    renames: Tuple[RenamePair, ...]


@dataclass(frozen=True)
class Program(Node):
    statements: Tuple[Statement, ...]


INPUT_MODES = {"N", "S"}


class Parser:
    def __init__(
        self,
        tokens: Iterable[Token],
        filename: str,
        source_lines: List[str],
        *,
        math_ops: Optional[Iterable[str]] = None,
        bool_ops: Optional[Iterable[str]] = None,
    ):
        self.tokens = list(tokens)
        if not self.tokens or self.tokens[-1].type != "EOF":
            line = self.tokens[-1].line if self.tokens else 1
            self.tokens.append(Token("EOF", "", line, 1))
        self.filename = filename
        self.source_lines = source_lines
        defaults = build_default_services()
        self.math_ops = set(math_ops) if math_ops is not None else defaults.math_ops.names()
        self.bool_ops = set(bool_ops) if bool_ops is not None else defaults.bool_ops.names()
        self.index = 0

    def parse(self) -> Program:
        start = self._peek()
        statements: List[Statement] = []
        try:
            while self._peek().type != "EOF":
                statements.append(self._parse_statement())
        except RecursionError:
            token = self._peek()
            raise LBParseError(f"Statements nested too deeply at {self._where(token)}") from None
        return Program(location=self._location_from_token(start), statements=tuple(statements))

    def _parse_statement(self) -> Statement:
        token = self._peek()
        if token.type != "UPPER":
            raise LBParseError(f"Expected a command letter but found {self._describe(token)} at {self._where(token)}")
        self.index += 1
        letter = token.value
        location = self._location_from_token(token)
        if letter == "P":
            return self._parse_print(location)
        if letter == "S":
            return self._parse_store(location)
        if letter == "C":
            return Copy(location=location, source=self._parse_var(), target=self._parse_var())
        if letter == "A":
            return Append(location=location, target=self._parse_var(), source=self._parse_var())
        if letter == "M":
            op = self._parse_op(self.math_ops, "math op")
            return MathStatement(location=location, op=op, target=self._parse_var(), left=self._parse_var(), right=self._parse_var())
        if letter == "B":
            op = self._parse_op(self.bool_ops, "bool op")
            return BoolStatement(location=location, op=op, target=self._parse_var(), left=self._parse_var(), right=self._parse_var())
        if letter == "L":
            return LoopStatement(location=location, count=self._parse_var(), body=self._parse_nested(letter))
        if letter == "I":
            return IfStatement(location=location, condition=self._parse_var(), body=self._parse_nested(letter))
        if letter == "U":
            return UnlessStatement(location=location, condition=self._parse_var(), body=self._parse_nested(letter))
        if letter == "W":
            return WhileStatement(location=location, condition=self._parse_var(), body=self._parse_nested(letter))
        if letter == "R":
            return self._parse_reset(location)
        if letter == "G":
            return self._parse_get_input(location)
        if letter == "N":
            return NegateStatement(location=location, target=self._parse_var())
        if letter == "F":
            return FinishStatement(location=location)
        if letter == "X":
            return self._parse_execute(location)
        raise LBParseError(f"Unknown command '{letter}' at {self._where(token)}")

    def _parse_print(self, location: SourceLocation) -> Statement:
        token = self._peek()
        if token.type == "LOWER":
            return PrintVar(location=location, source=self._parse_var())
        if token.type == "STRING":
            self.index += 1
            return PrintText(location=location, text=Literal(str_value(token.value)))
        raise LBParseError(f"P expects a variable or a string but found {self._describe(token)} at {self._where(token)}")

    def _parse_store(self, location: SourceLocation) -> Store:
        target = self._parse_var()
        token = self._peek()
        if token.type == "INT":
            self.index += 1
            return Store(location=location, target=target, value=Literal(self._int_literal(token)))
        if token.type == "FLOAT":
            self.index += 1
            return Store(location=location, target=target, value=Literal(flt_value(float(token.value))))
        if token.type == "STRING":
            self.index += 1
            return Store(location=location, target=target, value=Literal(str_value(token.value)))
        raise LBParseError(f"S expects a literal but found {self._describe(token)} at {self._where(token)}")

    def _parse_reset(self, location: SourceLocation) -> Statement:
        token = self._peek()
        if token.type == "UPPER" and token.value == "A":
            self.index += 1
            return ResetAllStatement(location=location)
        if token.type == "LOWER":
            return ResetStatement(location=location, target=self._parse_var())
        raise LBParseError(f"R expects a variable or 'A' but found {self._describe(token)} at {self._where(token)}")

    def _parse_get_input(self, location: SourceLocation) -> GetInputStatement:
        mode = self._parse_op(INPUT_MODES, "input mode")
        target = self._parse_var()
        token = self._consume("INT", "an input index")
        return GetInputStatement(location=location, mode=mode, target=target, index=Literal(self._int_literal(token)))

    def _parse_execute(self, location: SourceLocation) -> ExecuteStatement:
        source = self._parse_var()
        renames: List[RenamePair] = []
        while self._peek().type == "LOWER":
            inner = self._consume("LOWER", "a variable")
            if self._peek().type != "LOWER":
                raise LBParseError(
                    f"X rename for '{inner.value}' is missing its target variable at {self._where(self._peek())}"
                )
            renames.append(RenamePair(inner=inner.value, outer=self._parse_var()))
        return ExecuteStatement(location=location, source=source, renames=tuple(renames))

    def _parse_nested(self, letter: str) -> Statement:
        token = self._peek()
        if token.type == "EOF":
            raise LBParseError(f"{letter} expects a statement but found end of input at {self._where(token)}")
        return self._parse_statement()

    def _parse_var(self) -> VarRef:
        token = self._consume("LOWER", "a variable")
        return VarRef(token.value)

    def _parse_op(self, allowed: Iterable[str], kind: str) -> OpCode:
        token = self._consume("UPPER", f"{kind} letter")
        if token.value not in allowed:
            raise LBParseError(f"Unknown {kind} '{token.value}' at {self._where(token)}")
        return OpCode(token.value)

    def _int_literal(self, token: Token) -> Value:
        number = int(token.value)
        if not in_int_range(number):
            raise LBParseError(f"Integer literal {token.value} out of 64-bit range at {self._where(token)}")
        return int_value(number)

    def _consume(self, token_type: str, expected: str) -> Token:
        token = self._peek()
        if token.type != token_type:
            raise LBParseError(f"Expected {expected} but found {self._describe(token)} at {self._where(token)}")
        self.index += 1
        return token

    def _peek(self) -> Token:
        return self.tokens[self.index]

    def _describe(self, token: Token) -> str:
        if token.type == "EOF":
            return "end of input"
        if token.type == "STRING":
            return f"string '{token.value}'"
        return f"{token.type} '{token.value}'"

    def _where(self, token: Token) -> str:
        return f"{self.filename}:{token.line}:{token.column}"

    def _location_from_token(self, token: Token) -> SourceLocation:
        line_index = token.line - 1
        statement = ""
        if 0 <= line_index < len(self.source_lines):
            statement = self.source_lines[line_index].strip()
        return SourceLocation(file=self.filename, line=token.line, column=token.column, statement=statement)


def _rename(node: Any, mapping: Dict[str, str]) -> Any:
    if isinstance(node, VarRef):
        return VarRef(mapping.get(node.name, node.name))
    if isinstance(node, RenamePair):
        # The inner name belongs to a further sub-program; only the binding side moves.
        return RenamePair(inner=node.inner, outer=_rename(node.outer, mapping))
    if isinstance(node, tuple):
        return tuple(_rename(item, mapping) for item in node)
    if isinstance(node, Statement):
        changes = {f.name: _rename(getattr(node, f.name), mapping) for f in fields(node) if f.name != "location"}
        return replace(node, **changes)
    return node


def rename_variables(program: Program, pairs: Iterable[Tuple[str, str]]) -> Program:
    """Return a copy of `program` with variable references substituted.

    All pairs apply at once, so `(a, b), (b, a)` swaps the two names.
    """
    mapping = {inner.lower(): outer.lower() for inner, outer in pairs}
    if not mapping:
        return program
    return replace(program, statements=_rename(program.statements, mapping))


def load_program(
    source: str,
    pairs: Iterable[Tuple[str, str]] = (),
    *,
    filename: str = "<string>",
    services: Optional[RuntimeServices] = None,
) -> Program:
    services = services or build_default_services()
    lexer = Lexer(source, filename)
    parser = Parser(
        lexer.tokens(),
        filename,
        source.splitlines(),
        math_ops=services.math_ops.names(),
        bool_ops=services.bool_ops.names(),
    )
    return rename_variables(parser.parse(), pairs)
