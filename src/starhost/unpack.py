"""
Argument unpacking for builtins.

A builtin declares a fixed list of parameters; a call supplies positional
Values and (name, Value) keyword pairs. Binding follows Python's rules:

1. positional arguments fill parameters left to right
2. keyword arguments fill parameters by name
3. every required parameter must end up with a value
4. no parameter may be given both positionally and by keyword
5. optional parameters left unset keep their declared default

Bound values are projected into the declared host types (see
`values.from_value`). Binding is a pure function of its inputs and keeps
no state between calls, so builtins may re-enter the interpreter while an
outer call is still being unpacked.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Iterable, Iterator, List, Sequence, Tuple, Union

from .errors import (
    ArgumentBindingError,
    error_missing_argument,
    error_multiple_values,
    error_too_few_arguments,
    error_too_many_arguments,
    error_unexpected_keyword,
)
from .values import Value, from_value


Kwargs = Union[Iterable[Tuple[str, Value]], Mapping]


@dataclass(frozen=True)
class Param:
    """
    A declared builtin parameter.

    A trailing `?` on the name marks the parameter optional, so
    `Param("n?", int, 1)` is the same as `Param("n", int, 1, optional=True)`.
    `type` is the host type the argument is projected into; the default
    (`Value`) passes the Value through unchanged.
    """
    name: str
    type: Any = Value
    default: Any = None
    optional: bool = False

    def __post_init__(self):
        if self.name.endswith("?"):
            object.__setattr__(self, "name", self.name[:-1])
            object.__setattr__(self, "optional", True)
        if not self.name.isidentifier():
            raise ValueError(f"invalid parameter name {self.name!r}")


def param(spec: str, type: Any = Value, default: Any = None) -> Param:
    """Shorthand for `Param(spec, type, default)`."""
    return Param(spec, type, default)


class BoundArguments(Mapping):
    """The result of binding a call: parameter name to host value."""

    def __init__(self, values: Dict[str, Any], supplied: FrozenSet[str]):
        self._values = values
        self.supplied = supplied

    def __getitem__(self, name: str) -> Any:
        return self._values[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def is_supplied(self, name: str) -> bool:
        """True if the caller passed a value for `name` rather than relying on the default."""
        return name in self.supplied

    def as_kwargs(self) -> Dict[str, Any]:
        return dict(self._values)

    def __repr__(self) -> str:
        return f"BoundArguments({self._values!r})"


def keyword_pairs(kwargs: Kwargs) -> List[Tuple[str, Value]]:
    """Normalize keyword arguments to a list of (name, Value) pairs."""
    if isinstance(kwargs, Mapping):
        return list(kwargs.items())
    return list(kwargs)


class Signature:
    """
    The parameter list of one builtin.

    Usage:
        sig = Signature("repeat", [Param("s", str), Param("n?", int, 1)])
        bound = sig.bind(args, kwargs)
        bound["s"] * bound["n"]
    """

    def __init__(self, fn_name: str, params: Sequence[Union[Param, str]]):
        self.fn_name = fn_name
        self.params: Tuple[Param, ...] = tuple(
            p if isinstance(p, Param) else Param(p) for p in params
        )
        self._index: Dict[str, int] = {}
        for i, p in enumerate(self.params):
            if p.name in self._index:
                raise ValueError(f"{fn_name}: duplicate parameter {p.name!r}")
            self._index[p.name] = i

    def bind(self, args: Sequence[Value], kwargs: Kwargs = ()) -> BoundArguments:
        """
        Bind a call's arguments to this signature.

        Returns a fresh BoundArguments; raises ArgumentBindingError if the
        call does not match.
        """
        fn = self.fn_name
        slots: List[Any] = [None] * len(self.params)
        kwargs = keyword_pairs(kwargs)

        # An undeclared keyword is reported ahead of any other mismatch.
        for name, _ in kwargs:
            if name not in self._index:
                raise error_unexpected_keyword(fn, name)

        if len(args) > len(self.params):
            raise error_too_many_arguments(fn, len(args), len(self.params))
        for i, arg in enumerate(args):
            slots[i] = arg

        for name, arg in kwargs:
            i = self._index[name]
            if slots[i] is not None:
                raise error_multiple_values(fn, name)
            slots[i] = arg

        for p, arg in zip(self.params, slots):
            if arg is None and not p.optional:
                raise error_missing_argument(fn, p.name)

        values: Dict[str, Any] = {}
        supplied = set()
        for p, arg in zip(self.params, slots):
            if arg is None:
                values[p.name] = p.default
            else:
                values[p.name] = from_value(arg, p.type, param=p.name, fn=fn)
                supplied.add(p.name)
        return BoundArguments(values, frozenset(supplied))

    def __repr__(self) -> str:
        names = ", ".join(p.name + ("?" if p.optional else "") for p in self.params)
        return f"Signature({self.fn_name}({names}))"


def unpack_args(fn_name: str, args: Sequence[Value], kwargs: Kwargs,
                *params: Union[Param, str]) -> BoundArguments:
    """
    Bind a call against parameters declared inline.

    Equivalent to `Signature(fn_name, params).bind(args, kwargs)`.
    """
    return Signature(fn_name, params).bind(args, kwargs)


def unpack_positional(fn_name: str, args: Sequence[Value], kwargs: Kwargs,
                      min_count: int, *types: Any) -> List[Any]:
    """
    Unpack a purely positional call.

    The call must supply between `min_count` and `len(types)` arguments
    and no keywords. Each supplied argument is projected into the host
    type at the same position; the result has one entry per supplied
    argument.
    """
    if keyword_pairs(kwargs):
        raise ArgumentBindingError(f"{fn_name}: unexpected keyword arguments")
    if len(args) < min_count:
        raise error_too_few_arguments(fn_name, len(args), min_count)
    if len(args) > len(types):
        raise error_too_many_arguments(fn_name, len(args), len(types))
    return [
        from_value(arg, t, param=f"#{i + 1}", fn=fn_name)
        for i, (arg, t) in enumerate(zip(args, types))
    ]
