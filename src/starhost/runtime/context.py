"""
Execution context for the interpreter.

One ExecutionContext is the single thread of control of one session run.
It owns the scope chain, the live call stack, the print sink, step and
time limits and the cancellation flag. Builtins receive it as their first
argument and can use it to print or to call back into script.
"""

import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, FrozenSet, Iterator, List, Optional, Sequence, Tuple

from ..errors import (
    BUILTIN_LOCATION, ConversionError, EvalError, Frame, HostError,
    ScriptError, SourceLocation,
)
from ..unpack import Kwargs, keyword_pairs
from ..values import Builtin, Function, Kind, Value, to_value


@dataclass
class Scope:
    """
    A single scope containing variable bindings.

    Scopes form a chain via the `parent` field for lexical scoping.
    `local_names` holds every name the scope's code assigns anywhere; such
    a name is never resolved in an outer scope, even before assignment.
    """
    variables: Dict[str, Value] = field(default_factory=dict)
    parent: Optional["Scope"] = None
    name: str = "anonymous"  # For debugging
    local_names: FrozenSet[str] = frozenset()

    def lookup(self, name: str) -> Optional[Value]:
        """Look up a variable in this scope or parent scopes."""
        scope = self
        while scope is not None:
            if name in scope.variables:
                return scope.variables[name]
            if name in scope.local_names:
                where = "global" if scope.parent is None else "local"
                raise EvalError(f"{where} variable {name} referenced before assignment")
            scope = scope.parent
        return None

    def set(self, name: str, value: Value) -> None:
        """Bind a variable in this scope."""
        self.variables[name] = value


@dataclass
class CallFrame:
    """A live call-stack entry; `line`/`column` track the current position."""
    description: str
    filename: str
    line: int = 0
    column: int = 0

    def snapshot(self) -> Frame:
        if self.line == 0:
            return Frame(BUILTIN_LOCATION, self.description)
        return Frame(SourceLocation(self.filename, self.line, self.column), self.description)


class ExecutionContext:
    """
    The full execution state of one program run.

    Tracks:
    - the scope chain (module globals at the root)
    - the predeclared environment and the universe of standard builtins
    - the call stack, for backtraces and the call depth limit
    - printed output
    - step/time limits and cancellation
    """

    def __init__(
        self,
        name: str,
        print_sink: Callable[[str], None],
        predeclared: Any,
        universe: Any,
        *,
        interpreter: Any = None,
        max_steps: Optional[int] = None,
        max_call_depth: int = 64,
        max_time_s: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
    ):
        self.name = name
        self.print_sink = print_sink
        self.predeclared = predeclared
        self.universe = universe
        self.interpreter = interpreter
        self.max_steps = max_steps
        self.max_call_depth = max_call_depth
        self.max_time_s = max_time_s
        self.cancel_event = cancel_event or threading.Event()

        self.current_scope = Scope(name="<toplevel>")
        self.call_stack: List[CallFrame] = []
        self.output: List[str] = []
        self.steps = 0
        self._deadline: Optional[float] = None
        self._return_value: Optional[Value] = None

    # --- Return handling ---

    def signal_return(self, value: Value) -> None:
        """Record the value of a `return` statement."""
        self._return_value = value

    def take_return_value(self) -> Optional[Value]:
        """Return and clear the pending return value."""
        value, self._return_value = self._return_value, None
        return value

    # --- Names ---

    def lookup(self, name: str) -> Value:
        """Resolve a name: scope chain, then predeclared, then universe."""
        value = self.current_scope.lookup(name)
        if value is None:
            value = self.predeclared.get(name)
        if value is None:
            value = self.universe.get(name)
        if value is None:
            raise EvalError(f"undefined: {name}")
        return value

    def set_variable(self, name: str, value: Value) -> None:
        self.current_scope.set(name, value)

    @contextmanager
    def enter_scope(self, scope: Scope) -> Iterator[Scope]:
        """
        Make `scope` current for the duration of the block.

        Usage:
            with ctx.enter_scope(Scope(parent=fn.closure, name=fn.name)):
                ...
        """
        old_scope = self.current_scope
        self.current_scope = scope
        try:
            yield scope
        finally:
            self.current_scope = old_scope

    # --- Output ---

    def print(self, message: str) -> None:
        """Deliver one line of script output to the session's print sink."""
        self.output.append(message)
        self.print_sink(message)

    # --- Limits ---

    def start_clock(self) -> None:
        if self.max_time_s is not None:
            self._deadline = time.monotonic() + self.max_time_s

    def tick(self) -> None:
        """Account for one evaluation step; enforce limits and cancellation."""
        self.steps += 1
        if self.cancel_event.is_set():
            raise EvalError("execution cancelled")
        if self.max_steps is not None and self.steps > self.max_steps:
            raise EvalError(f"too many steps: exceeded limit of {self.max_steps}")
        if self._deadline is not None and time.monotonic() > self._deadline:
            raise EvalError(f"time limit of {self.max_time_s}s exceeded")

    def charge(self, count: int) -> None:
        """Account for `count` steps of bulk work before it is done."""
        self.steps += max(0, count - 1)
        self.tick()

    # --- Call stack ---

    def locate(self, line: int, column: int) -> None:
        """Record the position currently being evaluated in the innermost frame."""
        frame = self.call_stack[-1]
        frame.line = line
        frame.column = column

    def snapshot(self) -> Tuple[Frame, ...]:
        """Immutable copy of the call stack, innermost frame last."""
        return tuple(frame.snapshot() for frame in self.call_stack)

    @contextmanager
    def frame(self, description: str, location: Optional[SourceLocation] = None) -> Iterator[CallFrame]:
        """
        Push a call-stack frame for the duration of the block.

        A ScriptError leaving the block without frames gets a snapshot of
        the stack taken here, while the failing frame is still on it.
        """
        if len(self.call_stack) >= self.max_call_depth:
            raise EvalError(f"maximum call depth of {self.max_call_depth} exceeded")
        if location is None:
            current = CallFrame(description, BUILTIN_LOCATION.filename)
        else:
            current = CallFrame(description, location.filename, location.line, location.column)
        self.call_stack.append(current)
        try:
            yield current
        except ScriptError as e:
            if not e.frames:
                e.frames = self.snapshot()
            raise
        except RecursionError:
            raise EvalError("maximum recursion depth exceeded",
                            frames=self.snapshot()) from None
        finally:
            self.call_stack.pop()

    # --- Calls ---

    def call(self, fn: Value, args: Sequence[Value] = (), kwargs: Kwargs = ()) -> Value:
        """
        Call a script or host function.

        This is the single dispatch point for both callable variants, and
        the way a builtin calls back into script.
        """
        if fn.kind is not Kind.CALLABLE:
            raise EvalError(f"invalid call of non-function ({fn.type_name})")
        self.tick()
        target = fn.data
        if isinstance(target, Builtin):
            return self._call_builtin(target, tuple(args), keyword_pairs(kwargs))
        if isinstance(target, Function):
            if self.interpreter is None:
                raise RuntimeError("no interpreter attached to this context")
            return self.interpreter.call_function(self, target, tuple(args), keyword_pairs(kwargs))
        raise EvalError(f"invalid call of {fn.type_name}")

    def _call_builtin(self, builtin: Builtin, args: Tuple[Value, ...],
                      kwargs: List[Tuple[str, Value]]) -> Value:
        with self.frame(builtin.name):
            try:
                result = builtin.function(self, args, kwargs)
            except ScriptError as e:
                if not e.frames and e.function is None:
                    e.function = builtin.name
                raise
            except RecursionError:
                raise
            except Exception as e:
                raise HostError(str(e) or type(e).__name__, function=builtin.name) from e
            try:
                return to_value(result)
            except ConversionError as e:
                raise HostError(f"{builtin.name}: {e}", function=builtin.name) from e
