"""
Runtime - tree-walking interpreter for program execution.

This module provides:
- Interpreter: Abstract interface a session executes programs through
- TreeWalkingInterpreter: The default interpreter
- ExecutionContext: Scope chain, call stack, output and limits of one run
- UNIVERSE: Builtins every program can see
"""

from .context import (
    Scope,
    CallFrame,
    ExecutionContext,
)

from .builtins import (
    UNIVERSE,
    create_universe,
    get_attribute,
    iterate,
)

from .interpreter import (
    Flow,
    Interpreter,
    TreeWalkingInterpreter,
    binary_op,
)

__all__ = [
    # Context
    "Scope",
    "CallFrame",
    "ExecutionContext",
    # Builtins
    "UNIVERSE",
    "create_universe",
    "get_attribute",
    "iterate",
    # Interpreter
    "Flow",
    "Interpreter",
    "TreeWalkingInterpreter",
    "binary_op",
]
