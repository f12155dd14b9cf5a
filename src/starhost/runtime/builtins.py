"""
The universe: builtins available to every program, and value methods.

Universe functions are declared on a BuiltinRegistry exactly the way a
host declares its own, so every call goes through the argument unpacker.
Methods (`"a,b".split(",")`, `lst.append(x)`) are looked up per kind and
returned as builtins bound to their receiver.
"""

import functools
from typing import Any, Callable, Dict, List, Tuple, Union

from ..environment import BuiltinRegistry, PredeclaredEnvironment
from ..errors import EvalError
from ..unpack import Param, Signature, unpack_args, unpack_positional
from ..values import (
    NONE, Builtin, Kind, Value,
    bool_val, compare, dict_val, float_val, int_val, list_val, string_val,
)

# Largest list `range` will materialize.
MAX_RANGE_LENGTH = 1_000_000


def iterate(value: Value) -> List[Value]:
    """
    The elements a `for` loop visits.

    Lists yield their elements and dicts their keys. The result is a copy,
    so the loop body may mutate the container.
    """
    if value.kind is Kind.SEQUENCE:
        return list(value.data)
    if value.kind is Kind.MAPPING:
        return list(value.data.keys())
    raise EvalError(f"{value.type_name} value is not iterable")


_ordered = functools.cmp_to_key(lambda a, b: compare("<", a, b))


def _sort_key(ctx, key: Value) -> Callable[[Value], Any]:
    if key is NONE:
        return _ordered
    return lambda v: _ordered(ctx.call(key, (v,)))


# =============================================================================
# Universe functions
# =============================================================================

def _register_output_functions(registry: BuiltinRegistry) -> None:
    """print and fail take any number of positional arguments."""

    def _print(ctx, args, kwargs):
        sep = unpack_args("print", (), kwargs, Param("sep?", str, " "))["sep"]
        ctx.print(sep.join(a.display_string() for a in args))
        return NONE

    def _fail(ctx, args, kwargs):
        sep = unpack_args("fail", (), kwargs, Param("sep?", str, " "))["sep"]
        raise EvalError("fail: " + sep.join(a.display_string() for a in args))

    registry.register("print", Builtin("print", _print))
    registry.register("fail", Builtin("fail", _fail))


def _register_conversion_functions(registry: BuiltinRegistry) -> None:
    """Register str, repr, int, float, bool, type, list and dict."""

    @registry.builtin("str", Param("x"))
    def _str(ctx, x):
        return string_val(x.display_string())

    @registry.builtin("repr", Param("x"))
    def _repr(ctx, x):
        return string_val(x.repr_string())

    @registry.builtin("int", Param("x?", Value, NONE), Param("base?", int, None))
    def _int(ctx, x, base):
        if x.kind is Kind.STRING:
            try:
                return int_val(int(x.data.strip(), 10 if base is None else base))
            except ValueError:
                base_text = 10 if base is None else base
                raise EvalError(f"int: invalid literal with base {base_text}: {x.repr_string()}") from None
        if base is not None:
            raise EvalError("int: can't convert non-string with explicit base")
        if x is NONE:
            return int_val(0)
        if x.kind is Kind.BOOLEAN:
            return int_val(1 if x.data else 0)
        if x.kind is Kind.INTEGER:
            return x
        if x.kind is Kind.FLOAT:
            try:
                return int_val(int(x.data))
            except (OverflowError, ValueError):
                raise EvalError(f"int: cannot convert {x.repr_string()} to int") from None
        raise EvalError(f"int: cannot convert {x.type_name} to int")

    @registry.builtin("float", Param("x?", Value, NONE))
    def _float(ctx, x):
        if x is NONE:
            return float_val(0.0)
        if x.kind is Kind.STRING:
            try:
                return float_val(float(x.data))
            except ValueError:
                raise EvalError(f"float: invalid literal: {x.repr_string()}") from None
        if x.kind in (Kind.INTEGER, Kind.FLOAT, Kind.BOOLEAN):
            try:
                return float_val(float(x.data))
            except OverflowError:
                raise EvalError("float: int too large to convert to float") from None
        raise EvalError(f"float: cannot convert {x.type_name} to float")

    @registry.builtin("bool", Param("x?", Value, NONE))
    def _bool(ctx, x):
        return bool_val(x.is_truthy())

    @registry.builtin("type", Param("x"))
    def _type(ctx, x):
        return string_val(x.type_name)

    @registry.builtin("list", Param("iterable?", Value, None))
    def _list(ctx, iterable):
        return list_val(iterate(iterable) if iterable is not None else ())

    def _dict(ctx, args, kwargs):
        positional = unpack_positional("dict", args, (), 0, Value)
        result = {}
        if positional:
            pairs = positional[0]
            if pairs.kind is Kind.MAPPING:
                result.update(pairs.data)
            else:
                for item in iterate(pairs):
                    if item.kind is not Kind.SEQUENCE or len(item.data) != 2:
                        raise EvalError(f"dict: element is not a pair: {item.repr_string()}")
                    result[item.data[0]] = item.data[1]
        for name, value in kwargs:
            result[string_val(name)] = value
        return dict_val(result)

    registry.register("dict", Builtin("dict", _dict))


def _register_sequence_functions(registry: BuiltinRegistry) -> None:
    """Register len, range, sorted, reversed, enumerate, zip, any and all."""

    @registry.builtin("len", Param("x"))
    def _len(ctx, x):
        if x.kind in (Kind.STRING, Kind.SEQUENCE, Kind.MAPPING):
            return int_val(len(x.data))
        raise EvalError(f"len: value of type {x.type_name} has no len")

    def _range(ctx, args, kwargs):
        values = unpack_positional("range", args, kwargs, 1, int, int, int)
        if len(values) == 1:
            start, stop, step = 0, values[0], 1
        else:
            start, stop = values[0], values[1]
            step = values[2] if len(values) == 3 else 1
        if step == 0:
            raise EvalError("range: step argument must not be zero")
        r = range(start, stop, step)
        if len(r) > MAX_RANGE_LENGTH:
            raise EvalError(f"range: result has {len(r)} elements, limit is {MAX_RANGE_LENGTH}")
        ctx.charge(len(r))
        return list_val(int_val(i) for i in r)

    registry.register("range", Builtin("range", _range))

    @registry.builtin("sorted", Param("iterable"), Param("key?", Value, NONE),
                      Param("reverse?", bool, False))
    def _sorted(ctx, iterable, key, reverse):
        return list_val(sorted(iterate(iterable), key=_sort_key(ctx, key), reverse=reverse))

    @registry.builtin("reversed", Param("sequence"))
    def _reversed(ctx, sequence):
        return list_val(reversed(iterate(sequence)))

    @registry.builtin("enumerate", Param("iterable"), Param("start?", int, 0))
    def _enumerate(ctx, iterable, start):
        return list_val(list_val([int_val(i), v])
                        for i, v in enumerate(iterate(iterable), start))

    def _zip(ctx, args, kwargs):
        unpack_args("zip", (), kwargs)
        columns = [iterate(a) for a in args]
        return list_val(list_val(row) for row in zip(*columns))

    registry.register("zip", Builtin("zip", _zip))

    @registry.builtin("any", Param("iterable"))
    def _any(ctx, iterable):
        return bool_val(any(v.is_truthy() for v in iterate(iterable)))

    @registry.builtin("all", Param("iterable"))
    def _all(ctx, iterable):
        return bool_val(all(v.is_truthy() for v in iterate(iterable)))


def _register_math_functions(registry: BuiltinRegistry) -> None:
    """Register abs, min and max."""

    @registry.builtin("abs", Param("x"))
    def _abs(ctx, x):
        if x.kind is Kind.INTEGER:
            return int_val(abs(x.data))
        if x.kind is Kind.FLOAT:
            return float_val(abs(x.data))
        raise EvalError(f"abs: got {x.type_name}, want int or float")

    def _extremum(name: str, pick: Callable[[int], bool]):
        def call(ctx, args, kwargs):
            key = unpack_args(name, (), kwargs, Param("key?", Value, NONE))["key"]
            if not args:
                raise EvalError(f"{name}: got 0 arguments, want at least 1")
            items = iterate(args[0]) if len(args) == 1 else list(args)
            if not items:
                raise EvalError(f"{name}: argument is an empty sequence")
            keyfn = _sort_key(ctx, key)
            best, best_key = items[0], keyfn(items[0])
            for item in items[1:]:
                item_key = keyfn(item)
                if pick((item_key > best_key) - (item_key < best_key)):
                    best, best_key = item, item_key
            return best
        return Builtin(name, call)

    registry.register("min", _extremum("min", lambda c: c < 0))
    registry.register("max", _extremum("max", lambda c: c > 0))


def _register_attribute_functions(registry: BuiltinRegistry) -> None:
    """Register hasattr, getattr and dir."""

    @registry.builtin("hasattr", Param("x"), Param("name", str))
    def _hasattr(ctx, x, name):
        return bool_val(name in _METHODS.get(x.kind, {}))

    @registry.builtin("getattr", Param("x"), Param("name", str), Param("default?", Value, None))
    def _getattr(ctx, x, name, default):
        if default is not None and name not in _METHODS.get(x.kind, {}):
            return default
        return get_attribute(x, name)

    @registry.builtin("dir", Param("x"))
    def _dir(ctx, x):
        return list_val(string_val(n) for n in sorted(_METHODS.get(x.kind, {})))


def create_universe() -> PredeclaredEnvironment:
    """Build the environment of standard builtins every program can see."""
    registry = BuiltinRegistry()
    _register_output_functions(registry)
    _register_conversion_functions(registry)
    _register_sequence_functions(registry)
    _register_math_functions(registry)
    _register_attribute_functions(registry)
    return registry.build()


# =============================================================================
# Methods
# =============================================================================

MethodImpl = Callable[..., Any]
_METHODS: Dict[Kind, Dict[str, Tuple[Signature, MethodImpl]]] = {}


def _method(kind: Kind, name: str, *params: Union[Param, str]):
    """Declare `impl(ctx, receiver, **bound)` as a method of values of `kind`."""
    def decorator(impl: MethodImpl) -> MethodImpl:
        _METHODS.setdefault(kind, {})[name] = (Signature(name, params), impl)
        return impl
    return decorator


def get_attribute(value: Value, name: str) -> Value:
    """Look up `value.name`, returning the method bound to `value`."""
    entry = _METHODS.get(value.kind, {}).get(name)
    if entry is None:
        raise EvalError(f"{value.type_name} has no .{name} field or method")
    signature, impl = entry

    def call(ctx, args, kwargs):
        bound = signature.bind(args, kwargs)
        return impl(ctx, value, **bound.as_kwargs())

    return Value(Builtin(name, call, receiver=value), Kind.CALLABLE)


def _strings(fn: str, value: Value) -> List[str]:
    out = []
    for item in iterate(value):
        if item.kind is not Kind.STRING:
            raise EvalError(f"{fn}: in list, want string, got {item.type_name}")
        out.append(item.data)
    return out


# --- string methods ---

@_method(Kind.STRING, "upper")
def _str_upper(ctx, s):
    return s.data.upper()


@_method(Kind.STRING, "lower")
def _str_lower(ctx, s):
    return s.data.lower()


@_method(Kind.STRING, "strip", Param("chars?", str, None))
def _str_strip(ctx, s, chars):
    return s.data.strip(chars)


@_method(Kind.STRING, "lstrip", Param("chars?", str, None))
def _str_lstrip(ctx, s, chars):
    return s.data.lstrip(chars)


@_method(Kind.STRING, "rstrip", Param("chars?", str, None))
def _str_rstrip(ctx, s, chars):
    return s.data.rstrip(chars)


@_method(Kind.STRING, "split", Param("sep?", str, None), Param("maxsplit?", int, -1))
def _str_split(ctx, s, sep, maxsplit):
    if sep == "":
        raise EvalError("split: empty separator")
    return s.data.split(sep, maxsplit)


@_method(Kind.STRING, "join", Param("iterable"))
def _str_join(ctx, s, iterable):
    return s.data.join(_strings("join", iterable))


@_method(Kind.STRING, "startswith", Param("prefix", str))
def _str_startswith(ctx, s, prefix):
    return s.data.startswith(prefix)


@_method(Kind.STRING, "endswith", Param("suffix", str))
def _str_endswith(ctx, s, suffix):
    return s.data.endswith(suffix)


@_method(Kind.STRING, "replace", Param("old", str), Param("new", str), Param("count?", int, -1))
def _str_replace(ctx, s, old, new, count):
    return s.data.replace(old, new, count)


@_method(Kind.STRING, "find", Param("sub", str))
def _str_find(ctx, s, sub):
    return s.data.find(sub)


@_method(Kind.STRING, "count", Param("sub", str))
def _str_count(ctx, s, sub):
    return s.data.count(sub)


# --- list methods ---

@_method(Kind.SEQUENCE, "append", Param("x"))
def _list_append(ctx, lst, x):
    lst.check_mutable("append to")
    lst.data.append(x)
    return NONE


@_method(Kind.SEQUENCE, "extend", Param("iterable"))
def _list_extend(ctx, lst, iterable):
    lst.check_mutable("extend")
    lst.data.extend(iterate(iterable))
    return NONE


@_method(Kind.SEQUENCE, "insert", Param("index", int), Param("x"))
def _list_insert(ctx, lst, index, x):
    lst.check_mutable("insert into")
    lst.data.insert(index, x)
    return NONE


@_method(Kind.SEQUENCE, "pop", Param("index?", int, -1))
def _list_pop(ctx, lst, index):
    lst.check_mutable("pop from")
    n = len(lst.data)
    i = index + n if index < 0 else index
    if not 0 <= i < n:
        raise EvalError(f"pop: index {index} out of range: list has {n} elements")
    return lst.data.pop(i)


@_method(Kind.SEQUENCE, "index", Param("x"))
def _list_index(ctx, lst, x):
    for i, item in enumerate(lst.data):
        if item == x:
            return i
    raise EvalError(f"index: value {x.repr_string()} not in list")


@_method(Kind.SEQUENCE, "remove", Param("x"))
def _list_remove(ctx, lst, x):
    lst.check_mutable("remove from")
    for i, item in enumerate(lst.data):
        if item == x:
            del lst.data[i]
            return NONE
    raise EvalError(f"remove: element {x.repr_string()} not found")


@_method(Kind.SEQUENCE, "clear")
def _list_clear(ctx, lst):
    lst.check_mutable("clear")
    lst.data.clear()
    return NONE


# --- dict methods ---

@_method(Kind.MAPPING, "get", Param("key"), Param("default?", Value, NONE))
def _dict_get(ctx, d, key, default):
    return d.data.get(key, default)


@_method(Kind.MAPPING, "keys")
def _dict_keys(ctx, d):
    return list_val(d.data.keys())


@_method(Kind.MAPPING, "values")
def _dict_values(ctx, d):
    return list_val(d.data.values())


@_method(Kind.MAPPING, "items")
def _dict_items(ctx, d):
    return list_val(list_val([k, v]) for k, v in d.data.items())


@_method(Kind.MAPPING, "pop", Param("key"), Param("default?", Value, None))
def _dict_pop(ctx, d, key, default):
    d.check_mutable("pop from")
    if key in d.data:
        return d.data.pop(key)
    if default is not None:
        return default
    raise EvalError(f"pop: missing key {key.repr_string()}")


@_method(Kind.MAPPING, "setdefault", Param("key"), Param("default?", Value, NONE))
def _dict_setdefault(ctx, d, key, default):
    if key in d.data:
        return d.data[key]
    d.check_mutable("insert into")
    d.data[key] = default
    return default


@_method(Kind.MAPPING, "update", Param("other"))
def _dict_update(ctx, d, other):
    d.check_mutable("update")
    if other.kind is not Kind.MAPPING:
        raise EvalError(f"update: got {other.type_name}, want dict")
    d.data.update(other.data)
    return NONE


@_method(Kind.MAPPING, "clear")
def _dict_clear(ctx, d):
    d.check_mutable("clear")
    d.data.clear()
    return NONE


UNIVERSE = create_universe()
