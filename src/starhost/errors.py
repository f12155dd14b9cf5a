"""
Script errors, diagnostics and call-stack frames.

Error kinds:
- SYNTAX: the program does not parse or uses an unsupported construct.
  Reported before any evaluation.
- EVAL: raised while evaluating the program (undefined names, operator
  type mismatches, division by zero, argument binding failures, ...)
- HOST: raised by a host builtin and wrapped at the call boundary

Diagnostic codes:
- E101: the source does not parse
- E301: unsupported construct
- E302: return outside a function
- E303: break or continue outside a loop
- E304: invalid assignment target
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional, Tuple


class ErrorKind(Enum):
    """The three kinds of failure a session can end with."""
    SYNTAX = "syntax"
    EVAL = "eval"
    HOST = "host"


@dataclass(frozen=True)
class SourceLocation:
    """A position in a program, or the pseudo-location of host code."""
    filename: str
    line: int = 0       # 1-indexed; 0 for builtin (host) frames
    column: int = 0     # 1-indexed

    @property
    def is_builtin(self) -> bool:
        return self.line == 0

    def __str__(self) -> str:
        if self.is_builtin:
            return self.filename
        return f"{self.filename}:{self.line}:{self.column}"


BUILTIN_LOCATION = SourceLocation("<builtin>")


@dataclass(frozen=True)
class Frame:
    """One immutable entry of a captured call stack."""
    location: SourceLocation
    description: str

    def __str__(self) -> str:
        return f"{self.location}: in {self.description}"


@dataclass(frozen=True)
class Diagnostic:
    """A single problem found while parsing or validating a program."""
    code: str                       # E101, E301, etc.
    message: str
    location: SourceLocation
    source_line: Optional[str] = None

    def format(self, show_source: bool = True) -> str:
        """Format as position and message, then the source line with a caret."""
        parts = [f"{self.location}: {self.message}"]
        if show_source and self.source_line is not None:
            parts.append(f"    {self.source_line}")
            parts.append("    " + " " * (max(1, self.location.column) - 1) + "^")
        return "\n".join(parts)

    def to_json(self) -> dict:
        """Convert to JSON-serializable dict for tooling integration."""
        return {
            "code": self.code,
            "message": self.message,
            "file": self.location.filename,
            "line": self.location.line,
            "column": self.location.column,
        }


class DiagnosticCollector:
    """Collects diagnostics while a program is validated."""

    def __init__(self, max_errors: int = 20):
        self.diagnostics: List[Diagnostic] = []
        self.max_errors = max_errors

    def add(self, diagnostic: Diagnostic) -> None:
        if not self.should_stop:
            self.diagnostics.append(diagnostic)

    @property
    def should_stop(self) -> bool:
        """Check if we've hit the max error limit."""
        return len(self.diagnostics) >= self.max_errors


class ScriptError(Exception):
    """
    Base class for every failure a script execution can end with.

    `frames` is a snapshot of the call stack taken when the error first
    crossed a call boundary, innermost frame last. `function` names the
    builtin the error originated in, if any.
    """
    kind = ErrorKind.EVAL

    def __init__(self, message: str, *, frames: Iterable[Frame] = (),
                 function: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.frames: Tuple[Frame, ...] = tuple(frames)
        self.function = function

    @property
    def location(self) -> Optional[SourceLocation]:
        """Location of the innermost frame with a source position."""
        for frame in reversed(self.frames):
            if not frame.location.is_builtin:
                return frame.location
        return None

    def backtrace(self) -> str:
        """Render the error with its call stack, innermost frame last."""
        from .backtrace import format_backtrace
        return format_backtrace(self)

    def __str__(self) -> str:
        return self.message


class ScriptSyntaxError(ScriptError):
    """The program text does not parse or uses an unsupported construct."""
    kind = ErrorKind.SYNTAX

    def __init__(self, diagnostics: List[Diagnostic]):
        first = diagnostics[0]
        super().__init__(first.message,
                         frames=(Frame(first.location, "<toplevel>"),))
        self.diagnostics: Tuple[Diagnostic, ...] = tuple(diagnostics)

    def __str__(self) -> str:
        return str(self.diagnostics[0].location) + ": " + self.message


class EvalError(ScriptError):
    """Raised during evaluation."""
    kind = ErrorKind.EVAL


class ArgumentBindingError(EvalError):
    """A call's arguments do not match the callee's declared parameters."""


class HostError(ScriptError):
    """A builtin failed; wraps the host's failure reason as a message."""
    kind = ErrorKind.HOST


class DuplicateNameError(ValueError):
    """A name was declared twice in a predeclared environment."""

    def __init__(self, name: str):
        super().__init__(f"duplicate predeclared name '{name}'")
        self.name = name


class ConversionError(TypeError):
    """A host object has no script value counterpart."""


# --- Argument binding errors ---

def error_too_many_arguments(fn: str, got: int, want: int) -> ArgumentBindingError:
    return ArgumentBindingError(f"{fn}: got {got} arguments, want at most {want}")


def error_too_few_arguments(fn: str, got: int, want: int) -> ArgumentBindingError:
    return ArgumentBindingError(f"{fn}: got {got} arguments, want at least {want}")


def error_unexpected_keyword(fn: str, name: str) -> ArgumentBindingError:
    return ArgumentBindingError(f'{fn}: unexpected keyword argument "{name}"')


def error_multiple_values(fn: str, name: str) -> ArgumentBindingError:
    return ArgumentBindingError(f'{fn}: got multiple values for parameter "{name}"')


def error_missing_argument(fn: str, name: str) -> ArgumentBindingError:
    return ArgumentBindingError(f"{fn}: missing required argument {name}")


def error_parameter_type(fn: Optional[str], param: Optional[str],
                         got: str, want: str) -> ArgumentBindingError:
    """A bound argument's kind does not match the declared host type."""
    message = f"got {got}, want {want}"
    if param is not None:
        message = f"for parameter {param}: {message}"
    if fn is not None:
        message = f"{fn}: {message}"
    return ArgumentBindingError(message)
