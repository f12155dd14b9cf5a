"""
starhost - embed a Starlark-like scripting language in Python applications.

This package provides:
- Value model: script values and conversions to and from host objects
- Argument unpacker: binds script call arguments to declared parameters
- Builtin registry: declares the predeclared environment a program sees
- Session: executes one program and reports its globals or its error
- Backtrace reporter: renders errors with their call stacks

Usage:
    from starhost import BuiltinRegistry, Param, Session

    registry = BuiltinRegistry()
    registry.register("greeting", "hello")

    @registry.builtin("repeat", Param("s", str), Param("n?", int, 1))
    def repeat(ctx, s, n):
        return s * n

    result = Session("hello.star").run(registry.build(), '''
    msg = greeting + ", world"
    print(repeat("ab", n=2))
    ''')
    if result.success:
        for name, value in result.globals.items():
            print(name, "=", value.display_string())
    else:
        print(result.error.backtrace())
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("starhost")
except PackageNotFoundError:  # pragma: no cover
    __version__ = "unknown"

from .errors import (
    ErrorKind,
    SourceLocation,
    Frame,
    Diagnostic,
    ScriptError,
    ScriptSyntaxError,
    EvalError,
    ArgumentBindingError,
    HostError,
    DuplicateNameError,
    ConversionError,
)

from .values import (
    Kind,
    Value,
    Builtin,
    Function,
    NONE,
    int_val,
    float_val,
    bool_val,
    string_val,
    list_val,
    dict_val,
    to_value,
    to_python,
    from_value,
)

from .unpack import (
    Param,
    param,
    Signature,
    BoundArguments,
    unpack_args,
    unpack_positional,
)

from .environment import (
    PredeclaredEnvironment,
    BuiltinRegistry,
    make_builtin,
    build_environment,
)

from .checker import parse_program

from .runtime import (
    ExecutionContext,
    Interpreter,
    TreeWalkingInterpreter,
)

from .session import (
    SessionState,
    SessionOptions,
    GlobalBindings,
    ExecutionResult,
    Session,
    exec_program,
)

from .backtrace import format_backtrace, error_to_json

__all__ = [
    '__version__',

    # Errors
    'ErrorKind',
    'SourceLocation',
    'Frame',
    'Diagnostic',
    'ScriptError',
    'ScriptSyntaxError',
    'EvalError',
    'ArgumentBindingError',
    'HostError',
    'DuplicateNameError',
    'ConversionError',

    # Values
    'Kind',
    'Value',
    'Builtin',
    'Function',
    'NONE',
    'int_val',
    'float_val',
    'bool_val',
    'string_val',
    'list_val',
    'dict_val',
    'to_value',
    'to_python',
    'from_value',

    # Argument unpacking
    'Param',
    'param',
    'Signature',
    'BoundArguments',
    'unpack_args',
    'unpack_positional',

    # Environment
    'PredeclaredEnvironment',
    'BuiltinRegistry',
    'make_builtin',
    'build_environment',

    # Parsing
    'parse_program',

    # Runtime
    'ExecutionContext',
    'Interpreter',
    'TreeWalkingInterpreter',

    # Sessions
    'SessionState',
    'SessionOptions',
    'GlobalBindings',
    'ExecutionResult',
    'Session',
    'exec_program',

    # Reporting
    'format_backtrace',
    'error_to_json',
]
