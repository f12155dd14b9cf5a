"""
Backtrace reporting.

Renders a ScriptError and its captured call stack for humans
(`format_backtrace`) or tools (`error_to_json`). Both are pure functions
of the error, so identical failures render identically.
"""

from .errors import ScriptError, ScriptSyntaxError


def format_backtrace(error: ScriptError) -> str:
    """
    Render an error with its call stack, innermost frame last.

    Example:
        Traceback (most recent call last):
          prog.star:3:1: in <toplevel>
          prog.star:2:12: in helper
          <builtin>: in repeat
        Error in repeat: missing required argument s

    Syntax errors render as their diagnostics instead: position and
    message, then the offending line with a caret under the column.
    """
    if isinstance(error, ScriptSyntaxError):
        return "\n".join(d.format() for d in error.diagnostics)

    lines = ["Traceback (most recent call last):"]
    lines.extend(f"  {frame}" for frame in error.frames)
    if error.function is not None:
        message = error.message
        prefix = f"{error.function}: "
        if message.startswith(prefix):
            message = message[len(prefix):]
        lines.append(f"Error in {error.function}: {message}")
    else:
        lines.append(f"Error: {error.message}")
    return "\n".join(lines)


def error_to_json(error: ScriptError) -> dict:
    """Convert an error to a JSON-serializable dict for tooling integration."""
    data = {
        "kind": error.kind.value,
        "message": error.message,
        "function": error.function,
        "frames": [
            {
                "file": frame.location.filename,
                "line": frame.location.line,
                "column": frame.location.column,
                "function": frame.description,
            }
            for frame in error.frames
        ],
    }
    if isinstance(error, ScriptSyntaxError):
        data["diagnostics"] = [d.to_json() for d in error.diagnostics]
    return data
