"""
Execution sessions.

A Session executes one program against a predeclared environment and
reports the outcome as an ExecutionResult: the program's global bindings
on success, the ScriptError on failure. Bindings created before a failure
are never exposed.

Usage:
    env = build_environment({"greeting": "hello"})
    result = Session("prog.star").run(env, "msg = greeting + ', world'")
    if result.success:
        print(result.globals["msg"].display_string())
    else:
        print(result.error.backtrace())
"""

import logging
import threading
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterator, List, Optional, Union

from .environment import PredeclaredEnvironment, build_environment
from .errors import Diagnostic, ScriptError, ScriptSyntaxError, SourceLocation
from .runtime.builtins import UNIVERSE
from .runtime.context import ExecutionContext
from .runtime.interpreter import Interpreter, TreeWalkingInterpreter
from .values import Value, to_python

logger = logging.getLogger(__name__)

PrintSink = Callable[[str], None]


class SessionState(Enum):
    """Lifecycle of a session: CREATED -> RUNNING -> COMPLETED | FAILED."""
    CREATED = "created"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class SessionOptions:
    """
    Resource limits for one run.

    Attributes:
        max_steps: Evaluation steps (statements, loop iterations, calls)
            before the run fails; None for no limit
        max_call_depth: Deepest call stack allowed, the top level included
        max_time_s: Wall-clock seconds before the run fails; None for no limit
    """
    max_steps: Optional[int] = None
    max_call_depth: int = 64
    max_time_s: Optional[float] = None

    def __post_init__(self):
        if self.max_steps is not None and self.max_steps < 1:
            raise ValueError("max_steps must be positive")
        if self.max_call_depth < 1:
            raise ValueError("max_call_depth must be positive")
        if self.max_time_s is not None and self.max_time_s <= 0:
            raise ValueError("max_time_s must be positive")


class GlobalBindings(Mapping):
    """
    The module-level bindings of a completed program.

    Keys iterate in lexicographic order, whatever order the program
    assigned them in. Values are frozen, so the bindings can serve as
    another session's predeclared environment.
    """

    def __init__(self, bindings: Dict[str, Value]):
        self._bindings = {name: bindings[name].freeze() for name in sorted(bindings)}

    def __getitem__(self, name: str) -> Value:
        return self._bindings[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._bindings)

    def __len__(self) -> int:
        return len(self._bindings)

    def names(self) -> List[str]:
        return list(self._bindings)

    def to_python(self) -> Dict[str, Any]:
        """Unwrap every binding into plain Python objects."""
        return {name: to_python(value) for name, value in self._bindings.items()}

    def __repr__(self) -> str:
        return f"GlobalBindings({', '.join(self._bindings)})"


@dataclass
class ExecutionResult:
    """Result of running a program."""
    success: bool
    globals: Optional[GlobalBindings] = None
    error: Optional[ScriptError] = None
    output: List[str] = field(default_factory=list)
    steps: int = 0

    def raise_for_error(self) -> GlobalBindings:
        """Return the global bindings, or raise the error the run failed with."""
        if self.error is not None:
            raise self.error
        return self.globals


class Session:
    """
    One execution of one program.

    A session runs at most once. `cancel()` may be called from any thread;
    the interpreter checks for it between evaluation steps.
    """

    def __init__(self, name: str, print_sink: Optional[PrintSink] = None, *,
                 options: Optional[SessionOptions] = None,
                 interpreter: Optional[Interpreter] = None):
        self.name = name
        self.print_sink = print_sink if print_sink is not None else print
        self.options = options or SessionOptions()
        self.interpreter = interpreter or TreeWalkingInterpreter()
        self.result: Optional[ExecutionResult] = None

        self._state = SessionState.CREATED
        self._lock = threading.Lock()
        self._cancel = threading.Event()

    @property
    def state(self) -> SessionState:
        return self._state

    def cancel(self) -> None:
        """Request that the running program stop at its next step."""
        logger.warning("session %s: cancellation requested", self.name)
        self._cancel.set()

    def run(self, environment: Union[PredeclaredEnvironment, Mapping, None],
            program: Union[str, bytes]) -> ExecutionResult:
        """
        Execute `program` against `environment`.

        `environment` may also be a plain mapping of names to host values,
        which is built into a PredeclaredEnvironment first. Failures of the
        program are reported in the result, never raised.
        """
        with self._lock:
            if self._state is not SessionState.CREATED:
                raise RuntimeError(f"session {self.name!r} has already run")
            self._state = SessionState.RUNNING

        try:
            if not isinstance(environment, PredeclaredEnvironment):
                environment = build_environment(environment)
        except BaseException:
            self._state = SessionState.FAILED
            raise

        ctx = ExecutionContext(
            self.name,
            self.print_sink,
            environment,
            UNIVERSE,
            interpreter=self.interpreter,
            max_steps=self.options.max_steps,
            max_call_depth=self.options.max_call_depth,
            max_time_s=self.options.max_time_s,
            cancel_event=self._cancel,
        )

        logger.debug("session %s: running with %d predeclared names", self.name, len(environment))
        try:
            bindings = self.interpreter.execute(ctx, self._decode(program))
        except ScriptError as e:
            self._state = SessionState.FAILED
            logger.debug("session %s: failed after %d steps: %s", self.name, ctx.steps, e)
            self.result = ExecutionResult(False, error=e, output=ctx.output, steps=ctx.steps)
        except BaseException:
            self._state = SessionState.FAILED
            raise
        else:
            self._state = SessionState.COMPLETED
            logger.debug("session %s: completed after %d steps", self.name, ctx.steps)
            self.result = ExecutionResult(True, globals=GlobalBindings(bindings),
                                          output=ctx.output, steps=ctx.steps)
        return self.result

    def _decode(self, program: Union[str, bytes]) -> str:
        if not isinstance(program, bytes):
            return program
        try:
            return program.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ScriptSyntaxError([Diagnostic(
                code="E101",
                message=f"program is not valid UTF-8: {e.reason}",
                location=SourceLocation(self.name, 1, 1),
            )]) from None


def exec_program(name: str, program: Union[str, bytes],
                 environment: Union[PredeclaredEnvironment, Mapping, None] = None,
                 print_sink: Optional[PrintSink] = None,
                 options: Optional[SessionOptions] = None) -> GlobalBindings:
    """
    Run a program in a fresh session.

    Returns the global bindings; raises the ScriptError if the run fails.
    """
    session = Session(name, print_sink, options=options)
    return session.run(environment, program).raise_for_error()
