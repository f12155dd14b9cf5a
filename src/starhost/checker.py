"""
Parsing and validation of program text.

Programs use a Starlark-like subset of Python syntax, so they are parsed
with the standard `ast` module. The checker then walks the tree and
rejects every construct outside the subset, collecting diagnostics
instead of stopping at the first one. A program that passes has no
statement the interpreter cannot execute.
"""

import ast
from typing import FrozenSet, Iterable, List, Optional, Set

from .errors import Diagnostic, DiagnosticCollector, ScriptSyntaxError, SourceLocation


# Nodes the interpreter understands. Anything else is reported.
_ALLOWED_NODES = frozenset({
    # statements
    ast.Module, ast.Expr, ast.Assign, ast.AugAssign, ast.If, ast.For,
    ast.FunctionDef, ast.Return, ast.Pass, ast.Break, ast.Continue,
    ast.arguments, ast.arg,
    # expressions
    ast.Constant, ast.Name, ast.BinOp, ast.UnaryOp, ast.BoolOp, ast.Compare,
    ast.Call, ast.keyword, ast.Starred, ast.Attribute, ast.Subscript, ast.Slice,
    ast.List, ast.Dict, ast.ListComp, ast.DictComp, ast.comprehension,
    ast.IfExp, ast.Lambda, ast.Tuple,
    # contexts and operators
    ast.Load, ast.Store,
    ast.Add, ast.Sub, ast.Mult, ast.Div, ast.FloorDiv, ast.Mod,
    ast.BitAnd, ast.BitOr, ast.BitXor, ast.LShift, ast.RShift,
    ast.UAdd, ast.USub, ast.Not, ast.Invert, ast.And, ast.Or,
    ast.Eq, ast.NotEq, ast.Lt, ast.LtE, ast.Gt, ast.GtE, ast.In, ast.NotIn,
})

# Friendlier messages for common constructs outside the subset.
_UNSUPPORTED_MESSAGES = {
    ast.While: "while loops are not supported; use a for loop over range()",
    ast.ClassDef: "class definitions are not supported",
    ast.Import: "import is not supported",
    ast.ImportFrom: "import is not supported",
    ast.Try: "try statements are not supported",
    ast.With: "with statements are not supported",
    ast.Global: "global declarations are not supported",
    ast.Nonlocal: "nonlocal declarations are not supported",
    ast.Delete: "del is not supported",
    ast.Raise: "raise is not supported; use fail()",
    ast.Assert: "assert is not supported; use fail()",
    ast.AnnAssign: "type annotations are not supported",
    ast.AsyncFunctionDef: "async functions are not supported",
    ast.Yield: "yield is not supported",
    ast.YieldFrom: "yield is not supported",
    ast.Await: "await is not supported",
    ast.JoinedStr: "f-strings are not supported",
    ast.Set: "set literals are not supported",
    ast.SetComp: "set comprehensions are not supported",
    ast.GeneratorExp: "generator expressions are not supported; use a list comprehension",
    ast.NamedExpr: "assignment expressions are not supported",
    ast.Pow: "operator ** is not supported",
    ast.MatMult: "operator @ is not supported",
    ast.Is: "operator 'is' is not supported; use ==",
    ast.IsNot: "operator 'is not' is not supported; use !=",
}


def bound_names(statements: Iterable[ast.stmt]) -> FrozenSet[str]:
    """
    Every name a block of statements binds, excluding nested functions'
    bodies and comprehensions, which have scopes of their own.
    """
    names: Set[str] = set()
    pending = list(statements)
    while pending:
        stmt = pending.pop()
        if isinstance(stmt, ast.Assign):
            for target in stmt.targets:
                _target_names(target, names)
        elif isinstance(stmt, ast.AugAssign):
            _target_names(stmt.target, names)
        elif isinstance(stmt, ast.For):
            _target_names(stmt.target, names)
            pending.extend(stmt.body)
        elif isinstance(stmt, ast.If):
            pending.extend(stmt.body)
            pending.extend(stmt.orelse)
        elif isinstance(stmt, ast.FunctionDef):
            names.add(stmt.name)
    return frozenset(names)


def target_names(targets: Iterable[ast.expr]) -> FrozenSet[str]:
    """Names bound by assignment targets (`x`, `[a, b]`, `a, (b, c)`)."""
    names: Set[str] = set()
    for target in targets:
        _target_names(target, names)
    return frozenset(names)


def _target_names(target: ast.expr, names: Set[str]) -> None:
    if isinstance(target, ast.Name):
        names.add(target.id)
    elif isinstance(target, (ast.Tuple, ast.List)):
        for elt in target.elts:
            _target_names(elt, names)


class ProgramChecker(ast.NodeVisitor):
    """
    Validates a parsed program against the supported language subset.

    Checks:
    - only supported statements, expressions and operators appear
    - assignment targets are names, index expressions or unpacking lists
    - return only inside functions, break/continue only inside loops
    - literals are int, float, string, bool or None
    """

    def __init__(self, filename: str, source: str, max_errors: int = 20):
        self.filename = filename
        self.source_lines = source.splitlines()
        self.diagnostics = DiagnosticCollector(max_errors)
        self._function_depth = 0
        self._loop_depth = 0

    def check(self, tree: ast.Module) -> List[Diagnostic]:
        self.visit(tree)
        return self.diagnostics.diagnostics

    # =========================================================================
    # Reporting
    # =========================================================================

    def _location(self, node: ast.AST) -> SourceLocation:
        return SourceLocation(self.filename, getattr(node, "lineno", 1),
                              getattr(node, "col_offset", 0) + 1)

    def _source_line(self, line: int) -> Optional[str]:
        if 1 <= line <= len(self.source_lines):
            return self.source_lines[line - 1]
        return None

    def report(self, code: str, message: str, node: ast.AST) -> None:
        location = self._location(node)
        self.diagnostics.add(Diagnostic(
            code=code,
            message=message,
            location=location,
            source_line=self._source_line(location.line),
        ))

    def unsupported(self, node: ast.AST, anchor: Optional[ast.AST] = None) -> None:
        """E301: construct outside the supported subset."""
        message = _UNSUPPORTED_MESSAGES.get(
            type(node), f"{type(node).__name__} is not supported")
        self.report("E301", message, anchor or node)

    # =========================================================================
    # Traversal
    # =========================================================================

    def visit(self, node: ast.AST) -> None:
        if self.diagnostics.should_stop:
            return
        method = getattr(self, "visit_" + type(node).__name__, None)
        if method is not None:
            method(node)
        elif type(node) not in _ALLOWED_NODES:
            self.unsupported(node)
        else:
            self.generic_visit(node)

    def visit_FunctionDef(self, node: ast.FunctionDef) -> None:
        if node.decorator_list:
            self.report("E301", "decorators are not supported", node)
        if node.returns is not None:
            self.report("E301", "type annotations are not supported", node)
        self._check_arguments(node.args, node)
        for default in node.args.defaults:
            self.visit(default)
        self._function_depth += 1
        saved_loops, self._loop_depth = self._loop_depth, 0
        for stmt in node.body:
            self.visit(stmt)
        self._loop_depth = saved_loops
        self._function_depth -= 1

    def visit_Lambda(self, node: ast.Lambda) -> None:
        self._check_arguments(node.args, node)
        for default in node.args.defaults:
            self.visit(default)
        self.visit(node.body)

    def _check_arguments(self, args: ast.arguments, node: ast.AST) -> None:
        if args.posonlyargs or args.kwonlyargs:
            self.report("E301", "positional-only and keyword-only parameters are not supported", node)
        all_args = list(args.args)
        all_args.extend(a for a in (args.vararg, args.kwarg) if a is not None)
        for arg in all_args:
            if arg.annotation is not None:
                self.report("E301", "type annotations are not supported", arg)

    def visit_For(self, node: ast.For) -> None:
        if node.orelse:
            self.report("E301", "for/else is not supported", node)
        self._check_target(node.target)
        self.visit(node.iter)
        self._loop_depth += 1
        for stmt in node.body:
            self.visit(stmt)
        self._loop_depth -= 1

    def visit_Return(self, node: ast.Return) -> None:
        if self._function_depth == 0:
            self.report("E302", "return statement not within a function", node)
        if node.value is not None:
            self.visit(node.value)

    def visit_Break(self, node: ast.Break) -> None:
        if self._loop_depth == 0:
            self.report("E303", "break not in a loop", node)

    def visit_Continue(self, node: ast.Continue) -> None:
        if self._loop_depth == 0:
            self.report("E303", "continue not in a loop", node)

    def visit_Assign(self, node: ast.Assign) -> None:
        for target in node.targets:
            self._check_target(target)
        self.visit(node.value)

    def visit_AugAssign(self, node: ast.AugAssign) -> None:
        if not isinstance(node.target, (ast.Name, ast.Subscript)):
            self.report("E304", "invalid augmented assignment target", node.target)
        else:
            self._check_target(node.target)
        if type(node.op) not in _ALLOWED_NODES:
            self.unsupported(node.op, node)
        self.visit(node.value)

    def _check_target(self, target: ast.expr) -> None:
        if isinstance(target, ast.Name):
            return
        if isinstance(target, ast.Subscript):
            self.visit(target.value)
            self.visit(target.slice)
        elif isinstance(target, (ast.Tuple, ast.List)):
            for elt in target.elts:
                self._check_target(elt)
        elif isinstance(target, ast.Attribute):
            self.report("E304", "cannot assign to a field", target)
        else:
            self.report("E304", f"cannot assign to {type(target).__name__}", target)

    def visit_comprehension(self, node: ast.comprehension) -> None:
        if node.is_async:
            self.report("E301", "async comprehensions are not supported", node.target)
        self._check_target(node.target)
        self.visit(node.iter)
        for cond in node.ifs:
            self.visit(cond)

    def visit_Tuple(self, node: ast.Tuple) -> None:
        # Only reached for tuples in expression position; targets are
        # handled by _check_target.
        self.report("E301", "tuple literals are not supported; use a list", node)

    def visit_Constant(self, node: ast.Constant) -> None:
        if not isinstance(node.value, (int, float, str, bool, type(None))):
            self.report("E301", f"{type(node.value).__name__} literals are not supported", node)

    def visit_BinOp(self, node: ast.BinOp) -> None:
        if type(node.op) not in _ALLOWED_NODES:
            self.unsupported(node.op, node)
        self.visit(node.left)
        self.visit(node.right)

    def visit_Compare(self, node: ast.Compare) -> None:
        for op in node.ops:
            if type(op) not in _ALLOWED_NODES:
                self.unsupported(op, node)
        self.visit(node.left)
        for comparator in node.comparators:
            self.visit(comparator)

    def visit_Dict(self, node: ast.Dict) -> None:
        for key in node.keys:
            if key is None:
                self.report("E301", "dict unpacking is not supported", node)
        self.generic_visit(node)

    def visit_Starred(self, node: ast.Starred) -> None:
        # Call arguments are checked in visit_Call; anywhere else is an error.
        self.report("E301", "unpacking with * is only supported in call arguments", node)

    def visit_Call(self, node: ast.Call) -> None:
        self.visit(node.func)
        for arg in node.args:
            self.visit(arg.value if isinstance(arg, ast.Starred) else arg)
        for kw in node.keywords:
            self.visit(kw.value)


def _parse_failure(filename: str, message: str) -> ScriptSyntaxError:
    return ScriptSyntaxError([Diagnostic(
        code="E101",
        message=message,
        location=SourceLocation(filename, 1, 1),
    )])


def parse_program(filename: str, source: str) -> ast.Module:
    """
    Parse and validate a program.

    Raises ScriptSyntaxError carrying every diagnostic found (up to the
    collector's limit). No part of the program has run at that point.
    """
    try:
        tree = ast.parse(source, filename=filename, mode="exec")
    except SyntaxError as e:
        line = e.lineno or 1
        lines = source.splitlines()
        raise ScriptSyntaxError([Diagnostic(
            code="E101",
            message=e.msg,
            location=SourceLocation(filename, line, e.offset or 1),
            source_line=lines[line - 1] if 1 <= line <= len(lines) else None,
        )]) from None
    except ValueError as e:
        # e.g. source containing null bytes
        raise _parse_failure(filename, str(e)) from None
    except (RecursionError, MemoryError):
        raise _parse_failure(filename, "program too deeply nested") from None

    try:
        diagnostics = ProgramChecker(filename, source).check(tree)
    except RecursionError:
        raise _parse_failure(filename, "program too deeply nested") from None
    if diagnostics:
        raise ScriptSyntaxError(diagnostics)
    return tree
