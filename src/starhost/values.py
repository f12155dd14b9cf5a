"""
Script values.

Every value that crosses the host/script boundary is a `Value`: the raw
Python object in `data` plus its `Kind`. The set of kinds is closed; host
objects enter through `to_value` and leave through `from_value`.

Integers are Python ints, so arithmetic is exact at any width and there is
no overflow policy to apply.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, FrozenSet, Iterable, Optional, Set, Tuple, Union

from .errors import (
    ConversionError, EvalError, SourceLocation, error_parameter_type,
)


class Kind(Enum):
    """The closed set of value kinds. The value is the script-level type name."""
    INTEGER = "int"
    FLOAT = "float"
    STRING = "string"
    BOOLEAN = "bool"
    SEQUENCE = "list"
    MAPPING = "dict"
    CALLABLE = "callable"
    NONE = "NoneType"


NUMERIC_KINDS = frozenset({Kind.INTEGER, Kind.FLOAT})


@dataclass(eq=False)
class Builtin:
    """
    A host function callable from script.

    `function(ctx, args, kwargs)` receives the execution context, a tuple of
    positional Values and a list of (name, Value) keyword pairs. It returns
    a Value or any host object `to_value` accepts. Bound methods carry the
    value they were looked up on in `receiver`.
    """
    name: str
    function: Callable[..., Any]
    receiver: Optional["Value"] = None
    doc: str = ""

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Builtin):
            return NotImplemented
        return (self.name == other.name
                and self.function is other.function
                and self.receiver is other.receiver)

    def __hash__(self) -> int:
        return hash((self.name, id(self.function)))

    def __str__(self) -> str:
        if self.receiver is not None:
            return f"<built-in method {self.name} of {self.receiver.type_name} value>"
        return f"<built-in function {self.name}>"


@dataclass(eq=False)
class Function:
    """A function defined in script by `def` or `lambda`."""
    name: str
    params: Tuple[str, ...]
    defaults: Tuple["Value", ...]   # aligned with the last len(defaults) params
    vararg: Optional[str]
    kwarg: Optional[str]
    body: Any                       # statement list, or an expression for lambdas
    closure: Any                    # Scope the function was defined in
    local_names: FrozenSet[str]
    location: SourceLocation

    def __str__(self) -> str:
        return f"<function {self.name}>"


@dataclass(eq=False)
class Value:
    """
    A script value.

    Scalars are immutable Python objects. SEQUENCE data is an owned list of
    Values and MAPPING data an owned, insertion-ordered dict of Value to
    Value; once `freeze()` has been called neither may be mutated.
    """
    data: Any
    kind: Kind
    frozen: bool = False

    def __repr__(self) -> str:
        return f"Value({self.data!r}, {self.kind.name})"

    @property
    def type_name(self) -> str:
        """The script-level type name, as returned by `type(x)`."""
        if self.kind is Kind.CALLABLE:
            if isinstance(self.data, Builtin):
                return "builtin_function_or_method"
            return "function"
        return self.kind.value

    def is_truthy(self) -> bool:
        """Check if this value is truthy in boolean context."""
        if self.kind is Kind.NONE:
            return False
        if self.kind is Kind.CALLABLE:
            return True
        # 0, 0.0, "", [], {} and False are falsy
        return bool(self.data)

    def freeze(self) -> "Value":
        """Make this value and everything reachable from it immutable."""
        if self.frozen:
            return self
        self.frozen = True
        if self.kind is Kind.SEQUENCE:
            for item in self.data:
                item.freeze()
        elif self.kind is Kind.MAPPING:
            for key, item in self.data.items():
                key.freeze()
                item.freeze()
        return self

    def check_mutable(self, verb: str) -> None:
        if self.frozen:
            raise EvalError(f"cannot {verb} frozen {self.type_name}")

    def display_string(self) -> str:
        """The language-level string conversion used by `str()` and `print`."""
        return _format(self, False, set())

    def repr_string(self) -> str:
        """Like display_string, but strings are quoted."""
        return _format(self, True, set())

    def __str__(self) -> str:
        return self.display_string()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Value):
            return NotImplemented
        if self.kind in NUMERIC_KINDS and other.kind in NUMERIC_KINDS:
            return self.data == other.data
        if self.kind is not other.kind:
            return False
        if self is other:
            return True
        return self.data == other.data

    def __hash__(self) -> int:
        if self.kind in (Kind.SEQUENCE, Kind.MAPPING):
            raise EvalError(f"unhashable type: {self.type_name}")
        if self.kind is Kind.BOOLEAN:
            return hash((Kind.BOOLEAN, self.data))
        # hash(1) == hash(1.0), matching numeric equality
        return hash(self.data)


NONE = Value(None, Kind.NONE, frozen=True)


# Convenience constructors

def int_val(n: int) -> Value:
    """Create an integer value."""
    return Value(int(n), Kind.INTEGER)


def float_val(x: float) -> Value:
    """Create a float value."""
    return Value(float(x), Kind.FLOAT)


def bool_val(b: bool) -> Value:
    """Create a boolean value."""
    return Value(bool(b), Kind.BOOLEAN)


def string_val(s: str) -> Value:
    """Create a string value."""
    return Value(str(s), Kind.STRING)


def list_val(items: Iterable[Value] = ()) -> Value:
    """Create a sequence value owning a new list of the given Values."""
    return Value(list(items), Kind.SEQUENCE)


def dict_val(items: Any = ()) -> Value:
    """Create a mapping value from a dict or (key, value) pairs of Values."""
    return Value(dict(items), Kind.MAPPING)


def callable_val(fn: Union[Builtin, Function]) -> Value:
    """Wrap a builtin or script function."""
    return Value(fn, Kind.CALLABLE)


# Conversion between host objects and Values

def to_value(obj: Any) -> Value:
    """
    Convert a host object to a Value.

    Raises ConversionError for objects with no script counterpart; host
    types never leak into script.
    """
    if isinstance(obj, Value):
        return obj
    if obj is None:
        return NONE
    if isinstance(obj, bool):
        return bool_val(obj)
    if isinstance(obj, int):
        return int_val(obj)
    if isinstance(obj, float):
        return float_val(obj)
    if isinstance(obj, str):
        return string_val(obj)
    if isinstance(obj, (list, tuple)):
        return list_val(to_value(item) for item in obj)
    if isinstance(obj, dict):
        return dict_val((to_value(k), to_value(v)) for k, v in obj.items())
    if isinstance(obj, (Builtin, Function)):
        return callable_val(obj)
    raise ConversionError(f"cannot convert {type(obj).__name__} to a script value")


def to_python(value: Value) -> Any:
    """Recursively unwrap a Value into plain Python objects."""
    if value.kind is Kind.SEQUENCE:
        return [to_python(item) for item in value.data]
    if value.kind is Kind.MAPPING:
        return {to_python(k): to_python(v) for k, v in value.data.items()}
    return value.data


_HOST_KINDS = {
    int: Kind.INTEGER,
    float: Kind.FLOAT,
    str: Kind.STRING,
    bool: Kind.BOOLEAN,
    list: Kind.SEQUENCE,
    dict: Kind.MAPPING,
}


def from_value(value: Value, expected: Any = Value, *,
               param: Optional[str] = None, fn: Optional[str] = None) -> Any:
    """
    Project a Value into a host type.

    Args:
        value: The value to project
        expected: `int`, `float`, `str`, `bool`, `list`, `dict`, a `Kind`
            (the Value is returned unchanged after the kind check) or
            `Value` (no check)
        param: Parameter name, for error messages
        fn: Function name, for error messages

    Raises ArgumentBindingError naming the parameter, the expected kind and
    the actual kind when they do not match. An int is accepted where a
    float is expected.
    """
    if expected is Value:
        return value
    if isinstance(expected, Kind):
        if value.kind is not expected:
            raise error_parameter_type(fn, param, value.type_name, expected.value)
        return value

    want = _HOST_KINDS.get(expected)
    if want is None:
        raise ConversionError(f"unsupported parameter type {expected!r}")
    if want is Kind.FLOAT and value.kind is Kind.INTEGER:
        return float(value.data)
    if value.kind is not want:
        raise error_parameter_type(fn, param, value.type_name, want.value)
    if want in (Kind.SEQUENCE, Kind.MAPPING):
        return to_python(value)
    return value.data


# Ordering

def compare(op: str, x: Value, y: Value) -> int:
    """
    Three-way comparison of two values of ordered kinds.

    Numbers compare with each other, strings and booleans with their own
    kind, lists lexicographically. Anything else is an EvalError.
    """
    if ((x.kind in NUMERIC_KINDS and y.kind in NUMERIC_KINDS)
            or (x.kind is y.kind and x.kind in (Kind.STRING, Kind.BOOLEAN))):
        a, b = x.data, y.data
        return (a > b) - (a < b)
    if x.kind is Kind.SEQUENCE and y.kind is Kind.SEQUENCE:
        for a, b in zip(x.data, y.data):
            if a != b:
                return compare(op, a, b)
        return (len(x.data) > len(y.data)) - (len(x.data) < len(y.data))
    raise EvalError(f"unsupported comparison: {x.type_name} {op} {y.type_name}")


# Display

_ESCAPES = {'"': '\\"', "\\": "\\\\", "\n": "\\n", "\r": "\\r", "\t": "\\t"}


def quote(s: str) -> str:
    """Quote a string the way the language displays it inside containers."""
    out = []
    for ch in s:
        if ch in _ESCAPES:
            out.append(_ESCAPES[ch])
        elif ch.isprintable():
            out.append(ch)
        elif ord(ch) < 0x100:
            out.append(f"\\x{ord(ch):02x}")
        elif ord(ch) < 0x10000:
            out.append(f"\\u{ord(ch):04x}")
        else:
            out.append(f"\\U{ord(ch):08x}")
    return '"' + "".join(out) + '"'


def _format_float(x: float) -> str:
    if math.isnan(x):
        return "nan"
    if math.isinf(x):
        return "+inf" if x > 0 else "-inf"
    return repr(x)


def _format(value: Value, quoted: bool, seen: Set[int]) -> str:
    kind = value.kind
    if kind is Kind.STRING:
        return quote(value.data) if quoted else value.data
    if kind is Kind.INTEGER:
        return str(value.data)
    if kind is Kind.FLOAT:
        return _format_float(value.data)
    if kind is Kind.BOOLEAN:
        return "True" if value.data else "False"
    if kind is Kind.NONE:
        return "None"
    if kind is Kind.CALLABLE:
        return str(value.data)

    # Containers may reach themselves
    if id(value) in seen:
        return "[...]" if kind is Kind.SEQUENCE else "{...}"
    seen.add(id(value))
    try:
        if kind is Kind.SEQUENCE:
            return "[" + ", ".join(_format(v, True, seen) for v in value.data) + "]"
        entries = (f"{_format(k, True, seen)}: {_format(v, True, seen)}"
                   for k, v in value.data.items())
        return "{" + ", ".join(entries) + "}"
    finally:
        seen.discard(id(value))
