"""
Tree-walking interpreter for program execution.

Evaluates the validated `ast` tree of a program against an
ExecutionContext. Every call, from script or from a builtin calling back
into script, goes through `ExecutionContext.call`, which dispatches
script functions back to `call_function` here.
"""

import ast
from abc import ABC, abstractmethod
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from ..checker import bound_names, parse_program, target_names
from ..errors import (
    EvalError, SourceLocation,
    error_missing_argument, error_multiple_values,
    error_too_many_arguments, error_unexpected_keyword,
)
from ..values import (
    NONE, NUMERIC_KINDS, Function, Kind, Value,
    bool_val, callable_val, compare, dict_val, float_val, int_val, list_val, string_val,
)
from .builtins import get_attribute, iterate
from .context import ExecutionContext, Scope


# Largest left shift; bounds the size of integers a single operation creates.
MAX_SHIFT = 512


class Flow(Enum):
    """How control leaves a statement."""
    NORMAL = "normal"
    BREAK = "break"
    CONTINUE = "continue"
    RETURN = "return"


class Interpreter(ABC):
    """
    Executes program text within an ExecutionContext.

    A session accepts any implementation. The context calls back into
    `call_function` whenever a script-defined function is invoked.
    """

    @abstractmethod
    def execute(self, ctx: ExecutionContext, program: str) -> Dict[str, Value]:
        """
        Run `program` to completion.

        Returns the module-level bindings the program created. Raises a
        ScriptError if the program does not parse or fails.
        """

    @abstractmethod
    def call_function(self, ctx: ExecutionContext, fn: Function,
                      args: Sequence[Value], kwargs: List[Tuple[str, Value]]) -> Value:
        """Invoke a script-defined function."""


_BINARY_SYMBOLS = {
    ast.Add: "+", ast.Sub: "-", ast.Mult: "*", ast.Div: "/",
    ast.FloorDiv: "//", ast.Mod: "%",
    ast.BitAnd: "&", ast.BitOr: "|", ast.BitXor: "^",
    ast.LShift: "<<", ast.RShift: ">>",
}

_COMPARE_SYMBOLS = {
    ast.Eq: "==", ast.NotEq: "!=", ast.Lt: "<", ast.LtE: "<=",
    ast.Gt: ">", ast.GtE: ">=", ast.In: "in", ast.NotIn: "not in",
}


def _number(x: Value, y: Value, result) -> Value:
    """Wrap an arithmetic result: int if both operands are ints, else float."""
    if x.kind is Kind.INTEGER and y.kind is Kind.INTEGER:
        return int_val(result)
    return float_val(result)


def binary_op(op: type, x: Value, y: Value) -> Value:
    """Apply a binary operator to two evaluated operands."""
    numeric = x.kind in NUMERIC_KINDS and y.kind in NUMERIC_KINDS
    both_int = x.kind is Kind.INTEGER and y.kind is Kind.INTEGER
    try:
        if op is ast.Add:
            if numeric:
                return _number(x, y, x.data + y.data)
            if x.kind is y.kind and x.kind is Kind.STRING:
                return string_val(x.data + y.data)
            if x.kind is y.kind and x.kind is Kind.SEQUENCE:
                return list_val(x.data + y.data)
        elif op is ast.Sub:
            if numeric:
                return _number(x, y, x.data - y.data)
        elif op is ast.Mult:
            if numeric:
                return _number(x, y, x.data * y.data)
            if x.kind is Kind.INTEGER and y.kind in (Kind.STRING, Kind.SEQUENCE):
                x, y = y, x
            if y.kind is Kind.INTEGER and x.kind is Kind.STRING:
                return string_val(x.data * y.data)
            if y.kind is Kind.INTEGER and x.kind is Kind.SEQUENCE:
                return list_val(x.data * y.data)
        elif op is ast.Div:
            if numeric:
                if y.data == 0:
                    raise EvalError("floating-point division by zero")
                return float_val(x.data / y.data)
        elif op is ast.FloorDiv:
            if numeric:
                if y.data == 0:
                    if both_int:
                        raise EvalError("integer division by zero")
                    raise EvalError("floating-point division by zero")
                return _number(x, y, x.data // y.data)
        elif op is ast.Mod:
            if numeric:
                if y.data == 0:
                    if both_int:
                        raise EvalError("integer modulo by zero")
                    raise EvalError("floating-point modulo by zero")
                return _number(x, y, x.data % y.data)
        elif op in (ast.BitAnd, ast.BitXor):
            if both_int:
                return int_val(x.data & y.data if op is ast.BitAnd else x.data ^ y.data)
        elif op is ast.BitOr:
            if both_int:
                return int_val(x.data | y.data)
            if x.kind is y.kind and x.kind is Kind.MAPPING:
                merged = dict(x.data)
                merged.update(y.data)
                return dict_val(merged)
        elif op in (ast.LShift, ast.RShift):
            if both_int:
                if y.data < 0:
                    raise EvalError("negative shift count")
                if op is ast.LShift:
                    if y.data >= MAX_SHIFT:
                        raise EvalError(f"shift count too large: {y.data}")
                    return int_val(x.data << y.data)
                return int_val(x.data >> y.data)
    except OverflowError as e:
        raise EvalError(str(e)) from None
    raise EvalError(f"unknown binary op: {x.type_name} {_BINARY_SYMBOLS[op]} {y.type_name}")


def contains(container: Value, item: Value) -> bool:
    """The `in` operator."""
    if container.kind is Kind.STRING:
        if item.kind is not Kind.STRING:
            raise EvalError(f"'in <string>' requires string as left operand, not {item.type_name}")
        return item.data in container.data
    if container.kind is Kind.SEQUENCE:
        return any(element == item for element in container.data)
    if container.kind is Kind.MAPPING:
        return item in container.data
    raise EvalError(f"unknown binary op: {item.type_name} in {container.type_name}")


def compare_op(op: type, x: Value, y: Value) -> bool:
    if op is ast.Eq:
        return x == y
    if op is ast.NotEq:
        return x != y
    if op is ast.In:
        return contains(y, x)
    if op is ast.NotIn:
        return not contains(y, x)
    c = compare(_COMPARE_SYMBOLS[op], x, y)
    if op is ast.Lt:
        return c < 0
    if op is ast.LtE:
        return c <= 0
    if op is ast.Gt:
        return c > 0
    return c >= 0


def _check_index(container: Value, index: Value) -> int:
    """Normalize an integer index into a list or string, checking bounds."""
    if index.kind is not Kind.INTEGER:
        raise EvalError(f"{container.type_name} index: got {index.type_name}, want int")
    n = len(container.data)
    i = index.data + n if index.data < 0 else index.data
    if not 0 <= i < n:
        raise EvalError(f"index {index.data} out of range: {container.type_name} has {n} elements")
    return i


def get_index(container: Value, index: Value) -> Value:
    """Evaluate `container[index]`."""
    if container.kind is Kind.SEQUENCE:
        return container.data[_check_index(container, index)]
    if container.kind is Kind.STRING:
        return string_val(container.data[_check_index(container, index)])
    if container.kind is Kind.MAPPING:
        if index not in container.data:
            raise EvalError(f"key {index.repr_string()} not in dict")
        return container.data[index]
    raise EvalError(f"unhandled index operation {container.type_name}[{index.type_name}]")


def set_index(container: Value, index: Value, value: Value) -> None:
    """Perform `container[index] = value`."""
    if container.kind is Kind.SEQUENCE:
        container.check_mutable("assign to element of")
        container.data[_check_index(container, index)] = value
    elif container.kind is Kind.MAPPING:
        container.check_mutable("insert into")
        container.data[index] = value
    else:
        raise EvalError(f"{container.type_name} value does not support item assignment")


def get_slice(container: Value, start: Value, stop: Value, step: Value) -> Value:
    """Evaluate `container[start:stop:step]`; None bounds are open."""
    bounds = []
    for bound in (start, stop, step):
        if bound is NONE:
            bounds.append(None)
        elif bound.kind is Kind.INTEGER:
            bounds.append(bound.data)
        else:
            raise EvalError(f"invalid slice index: got {bound.type_name}, want int")
    if bounds[2] == 0:
        raise EvalError("zero is not a valid slice step")
    selected = slice(*bounds)
    if container.kind is Kind.SEQUENCE:
        return list_val(container.data[selected])
    if container.kind is Kind.STRING:
        return string_val(container.data[selected])
    raise EvalError(f"invalid slice operand {container.type_name}")


class TreeWalkingInterpreter(Interpreter):
    """
    Tree-walking interpreter for the Starlark-like Python subset.

    Evaluates AST nodes by dispatching to type-specific methods. The
    interpreter itself holds no per-run state, so one instance can serve
    any number of sessions.
    """

    def execute(self, ctx: ExecutionContext, program: str) -> Dict[str, Value]:
        module = parse_program(ctx.name, program)
        ctx.interpreter = self

        top = Scope(name="<toplevel>", local_names=bound_names(module.body))
        with ctx.enter_scope(top):
            with ctx.frame("<toplevel>", SourceLocation(ctx.name, 1, 1)):
                ctx.start_clock()
                self._execute_block(module.body, ctx)
        return dict(top.variables)

    # =========================================================================
    # Functions
    # =========================================================================

    def call_function(self, ctx: ExecutionContext, fn: Function,
                      args: Sequence[Value], kwargs: List[Tuple[str, Value]]) -> Value:
        scope = Scope(parent=fn.closure, name=fn.name, local_names=fn.local_names)
        self._bind_arguments(fn, args, kwargs, scope)

        with ctx.frame(fn.name, fn.location):
            with ctx.enter_scope(scope):
                if isinstance(fn.body, ast.expr):
                    return self._evaluate(fn.body, ctx)
                flow = self._execute_block(fn.body, ctx)
        result = ctx.take_return_value() if flow is Flow.RETURN else None
        return result if result is not None else NONE

    def _bind_arguments(self, fn: Function, args: Sequence[Value],
                        kwargs: List[Tuple[str, Value]], scope: Scope) -> None:
        """Bind a call's arguments to the function's parameters in `scope`."""
        params = fn.params
        slots: List[Optional[Value]] = [None] * len(params)

        if len(args) > len(params) and fn.vararg is None:
            raise error_too_many_arguments(fn.name, len(args), len(params))
        for i, arg in enumerate(args[:len(params)]):
            slots[i] = arg

        extra_kwargs: Dict[Value, Value] = {}
        for name, arg in kwargs:
            if name in params:
                i = params.index(name)
                if slots[i] is not None:
                    raise error_multiple_values(fn.name, name)
                slots[i] = arg
            elif fn.kwarg is not None:
                key = string_val(name)
                if key in extra_kwargs:
                    raise error_multiple_values(fn.name, name)
                extra_kwargs[key] = arg
            else:
                raise error_unexpected_keyword(fn.name, name)

        first_default = len(params) - len(fn.defaults)
        for i, name in enumerate(params):
            value = slots[i]
            if value is None:
                if i < first_default:
                    raise error_missing_argument(fn.name, name)
                value = fn.defaults[i - first_default]
            scope.set(name, value)

        if fn.vararg is not None:
            scope.set(fn.vararg, list_val(args[len(params):]))
        if fn.kwarg is not None:
            scope.set(fn.kwarg, dict_val(extra_kwargs))

    def _make_function(self, name: str, args: ast.arguments, body,
                       node: ast.AST, ctx: ExecutionContext) -> Value:
        """Create a Function for a `def` or `lambda`; defaults are evaluated now."""
        defaults = tuple(self._evaluate(d, ctx) for d in args.defaults)
        params = tuple(a.arg for a in args.args)
        vararg = args.vararg.arg if args.vararg is not None else None
        kwarg = args.kwarg.arg if args.kwarg is not None else None

        local_names = set(params)
        local_names.update(n for n in (vararg, kwarg) if n is not None)
        if not isinstance(body, ast.expr):
            local_names |= bound_names(body)

        return callable_val(Function(
            name=name,
            params=params,
            defaults=defaults,
            vararg=vararg,
            kwarg=kwarg,
            body=body,
            closure=ctx.current_scope,
            local_names=frozenset(local_names),
            location=SourceLocation(ctx.name, node.lineno, node.col_offset + 1),
        ))

    # =========================================================================
    # Statements
    # =========================================================================

    def _execute_block(self, statements: List[ast.stmt], ctx: ExecutionContext) -> Flow:
        """Execute statements in order until one transfers control."""
        for stmt in statements:
            flow = self._execute_statement(stmt, ctx)
            if flow is not Flow.NORMAL:
                return flow
        return Flow.NORMAL

    def _execute_statement(self, stmt: ast.stmt, ctx: ExecutionContext) -> Flow:
        """Execute a statement."""
        ctx.locate(stmt.lineno, stmt.col_offset + 1)
        ctx.tick()

        if isinstance(stmt, ast.Expr):
            self._evaluate(stmt.value, ctx)
        elif isinstance(stmt, ast.Assign):
            value = self._evaluate(stmt.value, ctx)
            for target in stmt.targets:
                self._assign(target, value, ctx)
        elif isinstance(stmt, ast.AugAssign):
            self._execute_aug_assign(stmt, ctx)
        elif isinstance(stmt, ast.If):
            if self._evaluate(stmt.test, ctx).is_truthy():
                return self._execute_block(stmt.body, ctx)
            return self._execute_block(stmt.orelse, ctx)
        elif isinstance(stmt, ast.For):
            return self._execute_for(stmt, ctx)
        elif isinstance(stmt, ast.FunctionDef):
            ctx.set_variable(stmt.name, self._make_function(stmt.name, stmt.args, stmt.body, stmt, ctx))
        elif isinstance(stmt, ast.Return):
            value = self._evaluate(stmt.value, ctx) if stmt.value is not None else NONE
            ctx.signal_return(value)
            return Flow.RETURN
        elif isinstance(stmt, ast.Break):
            return Flow.BREAK
        elif isinstance(stmt, ast.Continue):
            return Flow.CONTINUE
        elif isinstance(stmt, ast.Pass):
            pass
        else:
            raise RuntimeError(f"Unknown statement type: {type(stmt).__name__}")
        return Flow.NORMAL

    def _execute_for(self, stmt: ast.For, ctx: ExecutionContext) -> Flow:
        """Execute a for loop over a copy of the iterable's elements."""
        items = iterate(self._evaluate(stmt.iter, ctx))
        for item in items:
            ctx.tick()
            self._assign(stmt.target, item, ctx)
            flow = self._execute_block(stmt.body, ctx)
            if flow is Flow.BREAK:
                break
            if flow is Flow.RETURN:
                return flow
        return Flow.NORMAL

    def _execute_aug_assign(self, stmt: ast.AugAssign, ctx: ExecutionContext) -> None:
        """Execute `target op= value`; the target is evaluated once."""
        op = type(stmt.op)
        target = stmt.target
        if isinstance(target, ast.Name):
            old = ctx.lookup(target.id)
            rhs = self._evaluate(stmt.value, ctx)
            ctx.set_variable(target.id, self._augment(op, old, rhs, ctx, stmt))
        else:
            container = self._evaluate(target.value, ctx)
            index = self._evaluate(target.slice, ctx)
            old = get_index(container, index)
            rhs = self._evaluate(stmt.value, ctx)
            set_index(container, index, self._augment(op, old, rhs, ctx, stmt))

    def _augment(self, op: type, old: Value, rhs: Value,
                 ctx: ExecutionContext, node: ast.AST) -> Value:
        # list += iterable extends in place
        if op is ast.Add and old.kind is Kind.SEQUENCE and rhs.kind is Kind.SEQUENCE:
            old.check_mutable("apply += to")
            old.data.extend(rhs.data)
            return old
        ctx.locate(node.lineno, node.col_offset + 1)
        return binary_op(op, old, rhs)

    def _assign(self, target: ast.expr, value: Value, ctx: ExecutionContext) -> None:
        """Bind `value` to an assignment target."""
        if isinstance(target, ast.Name):
            ctx.set_variable(target.id, value)
        elif isinstance(target, ast.Subscript):
            container = self._evaluate(target.value, ctx)
            if isinstance(target.slice, ast.Slice):
                raise EvalError("cannot assign to a slice")
            index = self._evaluate(target.slice, ctx)
            ctx.locate(target.lineno, target.col_offset + 1)
            set_index(container, index, value)
        elif isinstance(target, (ast.Tuple, ast.List)):
            if value.kind is not Kind.SEQUENCE:
                raise EvalError(f"got {value.type_name} in sequence assignment")
            want, got = len(target.elts), len(value.data)
            if got > want:
                raise EvalError(f"too many values to unpack (got {got}, want {want})")
            if got < want:
                raise EvalError(f"too few values to unpack (got {got}, want {want})")
            for elt, item in zip(target.elts, list(value.data)):
                self._assign(elt, item, ctx)
        else:
            raise RuntimeError(f"Unknown assignment target: {type(target).__name__}")

    # =========================================================================
    # Expressions
    # =========================================================================

    def _evaluate(self, expr: ast.expr, ctx: ExecutionContext) -> Value:
        """Evaluate an expression to produce a Value."""
        if isinstance(expr, ast.Constant):
            return self._eval_constant(expr)
        elif isinstance(expr, ast.Name):
            ctx.locate(expr.lineno, expr.col_offset + 1)
            return ctx.lookup(expr.id)
        elif isinstance(expr, ast.BinOp):
            left = self._evaluate(expr.left, ctx)
            right = self._evaluate(expr.right, ctx)
            ctx.locate(expr.lineno, expr.col_offset + 1)
            return binary_op(type(expr.op), left, right)
        elif isinstance(expr, ast.UnaryOp):
            return self._eval_unary_op(expr, ctx)
        elif isinstance(expr, ast.BoolOp):
            return self._eval_bool_op(expr, ctx)
        elif isinstance(expr, ast.Compare):
            return self._eval_compare(expr, ctx)
        elif isinstance(expr, ast.Call):
            return self._eval_call(expr, ctx)
        elif isinstance(expr, ast.Attribute):
            obj = self._evaluate(expr.value, ctx)
            ctx.locate(expr.lineno, expr.col_offset + 1)
            return get_attribute(obj, expr.attr)
        elif isinstance(expr, ast.Subscript):
            return self._eval_subscript(expr, ctx)
        elif isinstance(expr, ast.List):
            return list_val(self._evaluate(e, ctx) for e in expr.elts)
        elif isinstance(expr, ast.Dict):
            return self._eval_dict_literal(expr, ctx)
        elif isinstance(expr, ast.ListComp):
            return self._eval_list_comprehension(expr, ctx)
        elif isinstance(expr, ast.DictComp):
            return self._eval_dict_comprehension(expr, ctx)
        elif isinstance(expr, ast.IfExp):
            if self._evaluate(expr.test, ctx).is_truthy():
                return self._evaluate(expr.body, ctx)
            return self._evaluate(expr.orelse, ctx)
        elif isinstance(expr, ast.Lambda):
            return self._make_function("lambda", expr.args, expr.body, expr, ctx)
        else:
            raise RuntimeError(f"Unknown expression type: {type(expr).__name__}")

    def _eval_constant(self, node: ast.Constant) -> Value:
        """Evaluate a literal value."""
        value = node.value
        if value is None:
            return NONE
        if isinstance(value, bool):
            return bool_val(value)
        if isinstance(value, int):
            return int_val(value)
        if isinstance(value, float):
            return float_val(value)
        return string_val(value)

    def _eval_unary_op(self, node: ast.UnaryOp, ctx: ExecutionContext) -> Value:
        """Evaluate a unary operation."""
        operand = self._evaluate(node.operand, ctx)
        op = type(node.op)
        if op is ast.Not:
            return bool_val(not operand.is_truthy())
        if op is ast.USub and operand.kind in NUMERIC_KINDS:
            return int_val(-operand.data) if operand.kind is Kind.INTEGER else float_val(-operand.data)
        if op is ast.UAdd and operand.kind in NUMERIC_KINDS:
            return operand
        if op is ast.Invert and operand.kind is Kind.INTEGER:
            return int_val(~operand.data)
        symbol = {ast.USub: "-", ast.UAdd: "+", ast.Invert: "~"}[op]
        ctx.locate(node.lineno, node.col_offset + 1)
        raise EvalError(f"unknown unary op: {symbol}{operand.type_name}")

    def _eval_bool_op(self, node: ast.BoolOp, ctx: ExecutionContext) -> Value:
        """Evaluate `and`/`or`; the result is the deciding operand."""
        stop_when = not isinstance(node.op, ast.And)
        result = self._evaluate(node.values[0], ctx)
        for operand in node.values[1:]:
            if result.is_truthy() is stop_when:
                return result
            result = self._evaluate(operand, ctx)
        return result

    def _eval_compare(self, node: ast.Compare, ctx: ExecutionContext) -> Value:
        """Evaluate a possibly chained comparison."""
        left = self._evaluate(node.left, ctx)
        for op, comparator in zip(node.ops, node.comparators):
            right = self._evaluate(comparator, ctx)
            ctx.locate(node.lineno, node.col_offset + 1)
            if not compare_op(type(op), left, right):
                return bool_val(False)
            left = right
        return bool_val(True)

    def _eval_call(self, node: ast.Call, ctx: ExecutionContext) -> Value:
        """Evaluate a function call, expanding *args and **kwargs."""
        fn = self._evaluate(node.func, ctx)

        args: List[Value] = []
        for arg in node.args:
            if isinstance(arg, ast.Starred):
                spread = self._evaluate(arg.value, ctx)
                if spread.kind is not Kind.SEQUENCE:
                    raise EvalError(f"argument after * must be a list, not {spread.type_name}")
                args.extend(spread.data)
            else:
                args.append(self._evaluate(arg, ctx))

        kwargs: List[Tuple[str, Value]] = []
        for kw in node.keywords:
            value = self._evaluate(kw.value, ctx)
            if kw.arg is not None:
                kwargs.append((kw.arg, value))
                continue
            if value.kind is not Kind.MAPPING:
                raise EvalError(f"argument after ** must be a dict, not {value.type_name}")
            for key, item in value.data.items():
                if key.kind is not Kind.STRING:
                    raise EvalError(f"keywords must be strings, not {key.type_name}")
                kwargs.append((key.data, item))

        ctx.locate(node.lineno, node.col_offset + 1)
        return ctx.call(fn, args, kwargs)

    def _eval_subscript(self, node: ast.Subscript, ctx: ExecutionContext) -> Value:
        """Evaluate indexing or slicing."""
        container = self._evaluate(node.value, ctx)
        if isinstance(node.slice, ast.Slice):
            bounds = [self._evaluate(b, ctx) if b is not None else NONE
                      for b in (node.slice.lower, node.slice.upper, node.slice.step)]
            ctx.locate(node.lineno, node.col_offset + 1)
            return get_slice(container, *bounds)
        index = self._evaluate(node.slice, ctx)
        ctx.locate(node.lineno, node.col_offset + 1)
        return get_index(container, index)

    def _eval_dict_literal(self, node: ast.Dict, ctx: ExecutionContext) -> Value:
        """Evaluate a dict literal; repeated keys are an error."""
        result: Dict[Value, Value] = {}
        for key_expr, value_expr in zip(node.keys, node.values):
            key = self._evaluate(key_expr, ctx)
            if key in result:
                ctx.locate(key_expr.lineno, key_expr.col_offset + 1)
                raise EvalError(f"duplicate key: {key.repr_string()}")
            result[key] = self._evaluate(value_expr, ctx)
        return dict_val(result)

    def _eval_list_comprehension(self, node: ast.ListComp, ctx: ExecutionContext) -> Value:
        """Evaluate a list comprehension."""
        results: List[Value] = []
        self._comprehend(node, lambda: results.append(self._evaluate(node.elt, ctx)), ctx)
        return list_val(results)

    def _eval_dict_comprehension(self, node: ast.DictComp, ctx: ExecutionContext) -> Value:
        """Evaluate a dict comprehension."""
        results: Dict[Value, Value] = {}

        def emit():
            key = self._evaluate(node.key, ctx)
            results[key] = self._evaluate(node.value, ctx)

        self._comprehend(node, emit, ctx)
        return dict_val(results)

    def _comprehend(self, node, emit: Callable[[], None], ctx: ExecutionContext) -> None:
        """
        Run a comprehension's for/if clauses, calling `emit` per result.

        The first iterable is evaluated in the enclosing scope; loop
        variables live in a scope of the comprehension's own.
        """
        generators = node.generators
        first = self._evaluate(generators[0].iter, ctx)
        scope = Scope(parent=ctx.current_scope, name="<comprehension>",
                      local_names=target_names(gen.target for gen in generators))

        def clause(index: int, iterable: Value) -> None:
            gen = generators[index]
            for item in iterate(iterable):
                ctx.tick()
                self._assign(gen.target, item, ctx)
                if not all(self._evaluate(cond, ctx).is_truthy() for cond in gen.ifs):
                    continue
                if index + 1 == len(generators):
                    emit()
                else:
                    clause(index + 1, self._evaluate(generators[index + 1].iter, ctx))

        with ctx.enter_scope(scope):
            clause(0, first)
