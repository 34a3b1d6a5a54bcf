from __future__ import annotations

import importlib.util
import itertools
import os
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Optional, Sequence, Set


EXTENSION_API_VERSION = 1

BUILTIN_MATH_OPS = "ASMDREGL"
BUILTIN_BOOL_OPS = "EAOX"

COMMAND_LETTERS = "PSCAMBLIUWRGNFX"

# Events the interpreter emits, and the arguments each handler receives.
HOOK_EVENTS: Dict[str, str] = {
    "program_start": "interpreter, program, store",
    "before_statement": "interpreter, statement, store",
    "after_statement": "interpreter, statement, store",
    "output": "interpreter, text",
    "execute_enter": "interpreter, frame_name, renames",
    "execute_exit": "interpreter, frame_name",
    "program_end": "interpreter, reason",
    "on_error": "interpreter, error",
}
STATEMENT_EVENTS = frozenset({"before_statement", "after_statement"})


class LBExtensionError(Exception):
    pass


@dataclass(frozen=True)
class ExtensionMetadata:
    name: str
    version: str = "0.0.0"
    requires_api: int = EXTENSION_API_VERSION


# ---- Operators ----

# impl(ctx, left, right) -> Value
OpImpl = Callable[["OpContext", Any, Any], Any]


@dataclass(frozen=True)
class OpContext:
    interpreter: Any
    location: Any  # SourceLocation | None
    letter: str


@dataclass(frozen=True)
class OpSpec:
    letter: str
    name: str
    impl: OpImpl


@dataclass
class OpRegistry:
    kind: str
    _ops: Dict[str, OpSpec] = field(default_factory=dict)
    _sealed: Set[str] = field(default_factory=set)

    def seal(self, letter: str) -> None:
        self._sealed.add(letter)

    def register(self, spec: OpSpec, *, seal: bool = False) -> None:
        letter = spec.letter
        if not isinstance(letter, str) or len(letter) != 1 or not ("A" <= letter <= "Z"):
            raise LBExtensionError(f"{self.kind} op letter must be a single uppercase letter, got {letter!r}")
        if letter in self._ops:
            raise LBExtensionError(f"{self.kind} op '{letter}' is already defined")
        self._ops[letter] = spec
        if seal:
            self._sealed.add(letter)

    def ensure_new(self, letter: str) -> None:
        if letter in self._sealed:
            raise LBExtensionError(f"{self.kind} op '{letter}' is sealed and cannot be redefined")
        if letter in self._ops:
            raise LBExtensionError(f"{self.kind} op '{letter}' already exists")

    def has(self, letter: str) -> bool:
        return letter in self._ops

    def get(self, letter: str) -> OpSpec:
        try:
            return self._ops[letter]
        except KeyError:
            raise LBExtensionError(f"Unknown {self.kind} op '{letter}'")

    def get_optional(self, letter: str) -> Optional[OpSpec]:
        return self._ops.get(letter)

    def names(self) -> Set[str]:
        # Sealed letters are reserved for built-ins the interpreter installs,
        # so the parser accepts them before any interpreter exists.
        return set(self._ops.keys()) | self._sealed


# ---- Hooks ----

@dataclass(frozen=True)
class Hook:
    event: str
    handler: Callable[..., None]
    ext_name: str
    priority: int = 0
    # Command letters a statement event is limited to; empty means every command.
    commands: FrozenSet[str] = frozenset()

    def wants(self, command: str) -> bool:
        return not self.commands or command in self.commands


@dataclass(frozen=True)
class StepContext:
    step_index: int
    command: str
    frame: str
    location: Any  # SourceLocation | None


@dataclass(frozen=True)
class StepRule:
    name: str
    every_n: int
    handler: Callable[[Any, StepContext], None]
    ext_name: str


def _command_set(commands: Iterable[str]) -> FrozenSet[str]:
    letters = frozenset(commands)
    unknown = sorted(letters - set(COMMAND_LETTERS))
    if unknown:
        raise LBExtensionError(f"Unknown command letter(s) {', '.join(unknown)} in hook filter")
    return letters


@dataclass
class HookRegistry:
    _hooks: Dict[str, List[Hook]] = field(default_factory=dict)
    step_rules: List[StepRule] = field(default_factory=list)

    def add(self, hook: Hook) -> None:
        if hook.event not in HOOK_EVENTS:
            raise LBExtensionError(f"Unknown hook event '{hook.event}'")
        if hook.commands and hook.event not in STATEMENT_EVENTS:
            raise LBExtensionError(f"Hook event '{hook.event}' does not take a command filter")
        hooks = self._hooks.setdefault(hook.event, [])
        hooks.append(hook)
        # Higher priority first; equal priorities keep registration order.
        hooks.sort(key=lambda h: -h.priority)

    def listening(self, event: str) -> bool:
        return bool(self._hooks.get(event))

    def emit(self, event: str, *args: Any) -> None:
        for hook in self._hooks.get(event, ()):
            hook.handler(*args)

    def emit_statement(self, event: str, interpreter: Any, statement: Any, store: Any) -> None:
        for hook in self._hooks.get(event, ()):
            if hook.wants(statement.command):
                hook.handler(interpreter, statement, store)

    def add_step_rule(self, rule: StepRule) -> None:
        if rule.every_n <= 0:
            raise LBExtensionError("every_n_steps must be >= 1")
        self.step_rules.append(rule)

    def after_step(self, interpreter: Any, ctx: StepContext) -> None:
        for rule in self.step_rules:
            if ctx.step_index % rule.every_n == 0:
                rule.handler(interpreter, ctx)


@dataclass
class RuntimeServices:
    metadata: List[ExtensionMetadata] = field(default_factory=list)
    math_ops: OpRegistry = field(default_factory=lambda: OpRegistry("Math"))
    bool_ops: OpRegistry = field(default_factory=lambda: OpRegistry("Bool"))
    hook_registry: HookRegistry = field(default_factory=HookRegistry)


class ExtensionAPI:
    """What `letterbox_register(ext)` receives.

    An extension can add Math and Bool op letters that are not built in,
    listen to interpreter events (optionally only for some command letters)
    and run a rule every N executed statements.
    """

    def __init__(self, *, services: RuntimeServices, ext_name: str) -> None:
        self._services = services
        self._ext_name = ext_name

    def metadata(self, *, name: str, version: str = "0.0.0", requires_api: int = EXTENSION_API_VERSION) -> None:
        self._services.metadata.append(ExtensionMetadata(name=name, version=version, requires_api=requires_api))

    # ---- operators ----
    def register_math_op(self, letter: str, impl: OpImpl, *, name: str = "") -> None:
        self._register(self._services.math_ops, letter, impl, name)

    def register_bool_op(self, letter: str, impl: OpImpl, *, name: str = "") -> None:
        self._register(self._services.bool_ops, letter, impl, name)

    def math_op(self, letter: str, *, name: str = ""):
        def deco(fn: OpImpl) -> OpImpl:
            self.register_math_op(letter, fn, name=name or fn.__name__)
            return fn

        return deco

    def bool_op(self, letter: str, *, name: str = ""):
        def deco(fn: OpImpl) -> OpImpl:
            self.register_bool_op(letter, fn, name=name or fn.__name__)
            return fn

        return deco

    def _register(self, registry: OpRegistry, letter: str, impl: OpImpl, name: str) -> None:
        registry.ensure_new(letter)
        registry.register(OpSpec(letter=letter, name=name or f"{self._ext_name}.{letter}", impl=impl))

    # ---- hooks ----
    def on_event(
        self,
        event: str,
        handler: Optional[Callable[..., None]] = None,
        *,
        priority: int = 0,
        commands: Iterable[str] = "",
    ):
        """Listen to `event`; with `commands`, statement events fire only for those letters."""
        letters = _command_set(commands)

        def add(fn: Callable[..., None]) -> Callable[..., None]:
            hook = Hook(event=event, handler=fn, ext_name=self._ext_name, priority=priority, commands=letters)
            self._services.hook_registry.add(hook)
            return fn

        if handler is None:
            return add
        return add(handler)

    def every_n_steps(self, every_n: int, handler: Optional[Callable[[Any, StepContext], None]] = None, *, name: str = ""):
        def add(fn: Callable[[Any, StepContext], None]) -> Callable[[Any, StepContext], None]:
            rule = StepRule(name=name or fn.__name__, every_n=every_n, handler=fn, ext_name=self._ext_name)
            self._services.hook_registry.add_step_rule(rule)
            return fn

        if handler is None:
            return add
        return add(handler)


# ---- Loading ----

_module_ids = itertools.count()


def load_extension_module(path: str) -> Any:
    if not os.path.isfile(path):
        raise LBExtensionError(f"Extension not found: {path}")
    stem = os.path.splitext(os.path.basename(path))[0]
    mod_name = f"letterbox_ext_{next(_module_ids)}_{''.join(ch if ch.isalnum() else '_' for ch in stem)}"
    spec = importlib.util.spec_from_file_location(mod_name, path)
    if spec is None or spec.loader is None:
        raise LBExtensionError(f"Failed to load extension module: {path}")
    module = importlib.util.module_from_spec(spec)
    try:
        spec.loader.exec_module(module)
    except Exception as exc:
        raise LBExtensionError(f"Extension {path} failed to load: {exc}") from exc
    return module


def build_default_services() -> RuntimeServices:
    services = RuntimeServices()
    # Built-in letters are reserved here; the interpreter installs their behavior.
    for letter in BUILTIN_MATH_OPS:
        services.math_ops.seal(letter)
    for letter in BUILTIN_BOOL_OPS:
        services.bool_ops.seal(letter)
    return services


def register_extension(services: RuntimeServices, module: Any, *, path: str) -> None:
    api_version = getattr(module, "LETTERBOX_EXTENSION_API_VERSION", EXTENSION_API_VERSION)
    if api_version != EXTENSION_API_VERSION:
        raise LBExtensionError(f"Extension {path} requires API {api_version}, host supports {EXTENSION_API_VERSION}")
    register = getattr(module, "letterbox_register", None)
    if not callable(register):
        raise LBExtensionError(f"Extension {path} must define callable letterbox_register(ext)")
    ext_name = getattr(module, "LETTERBOX_EXTENSION_NAME", os.path.splitext(os.path.basename(path))[0])
    try:
        register(ExtensionAPI(services=services, ext_name=str(ext_name)))
    except LBExtensionError:
        raise
    except Exception as exc:
        raise LBExtensionError(f"Extension {path} failed to register: {exc}") from exc


def load_runtime_services(paths: Sequence[str]) -> RuntimeServices:
    services = build_default_services()
    for path in (os.path.abspath(p) for p in paths):
        register_extension(services, load_extension_module(path), path=path)
    return services
