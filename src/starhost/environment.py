"""
Builtin registry and predeclared environment.

The host declares constants and builtins on a `BuiltinRegistry`, then
calls `build()` to obtain the read-only `PredeclaredEnvironment` a session
runs against. There is no process-wide registry: each host builds its own.

Usage:
    registry = BuiltinRegistry()
    registry.register("greeting", "hello")

    @registry.builtin("repeat", Param("s", str), Param("n?", int, 1))
    def repeat(ctx, s, n):
        return s * n

    env = registry.build()
"""

import logging
from collections.abc import Mapping
from typing import Any, Callable, Dict, Iterable, Iterator, List, Tuple, Union

from .errors import DuplicateNameError
from .unpack import Param, Signature
from .values import Builtin, Value, to_value

logger = logging.getLogger(__name__)


class PredeclaredEnvironment(Mapping):
    """
    Read-only mapping from identifier to Value, in declaration order.

    Every value is frozen on construction, so one environment can be
    shared by any number of sessions, including concurrently running ones.
    """

    def __init__(self, bindings: Dict[str, Value]):
        self._bindings = {name: value.freeze() for name, value in bindings.items()}

    def __getitem__(self, name: str) -> Value:
        return self._bindings[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._bindings)

    def __len__(self) -> int:
        return len(self._bindings)

    def names(self) -> List[str]:
        return list(self._bindings)

    def __repr__(self) -> str:
        return f"PredeclaredEnvironment({', '.join(self._bindings)})"


def make_builtin(name: str, impl: Callable[..., Any],
                 *params: Union[Param, str]) -> Builtin:
    """
    Wrap a Python function as a builtin with a declared parameter list.

    `impl(ctx, **bound)` receives the execution context and each bound
    parameter as a keyword argument.
    """
    signature = Signature(name, params)

    def call(ctx, args, kwargs):
        bound = signature.bind(args, kwargs)
        return impl(ctx, **bound.as_kwargs())

    return Builtin(name, call, doc=impl.__doc__ or "")


class BuiltinRegistry:
    """
    Collects predeclared names before a session starts.

    Names are unique; registering one twice raises DuplicateNameError. The
    registry is sealed by `build()`.
    """

    def __init__(self):
        self._bindings: Dict[str, Value] = {}
        self._sealed = False

    def register(self, name: str, value: Any) -> Value:
        """
        Register a constant, a Value or a Builtin under `name`.

        Host objects are converted with `to_value`.
        """
        if self._sealed:
            raise RuntimeError("registry has already been built")
        if not name.isidentifier():
            raise ValueError(f"invalid predeclared name {name!r}")
        if name in self._bindings:
            raise DuplicateNameError(name)
        value = to_value(value)
        self._bindings[name] = value
        return value

    def builtin(self, name: str, *params: Union[Param, str]):
        """
        Decorator registering a Python function as a builtin.

        The decorated function is returned unchanged.
        """
        def decorator(impl):
            self.register(name, make_builtin(name, impl, *params))
            return impl
        return decorator

    def __contains__(self, name: object) -> bool:
        return name in self._bindings

    def build(self) -> PredeclaredEnvironment:
        """Seal the registry and produce the predeclared environment."""
        self._sealed = True
        logger.debug("built predeclared environment with %d names", len(self._bindings))
        return PredeclaredEnvironment(self._bindings)


def build_environment(
    bindings: Union[Iterable[Tuple[str, Any]], Mapping, None] = None,
) -> PredeclaredEnvironment:
    """
    Build a predeclared environment from (name, value) pairs or a mapping.

    Raises DuplicateNameError if a name repeats.
    """
    registry = BuiltinRegistry()
    if bindings is None:
        bindings = ()
    elif isinstance(bindings, Mapping):
        bindings = bindings.items()
    for name, value in bindings:
        registry.register(name, value)
    return registry.build()
