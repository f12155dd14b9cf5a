"""
Tests for the tree-walking interpreter and the universe builtins.
"""

import textwrap

import pytest

from starhost import (
    EvalError, ArgumentBindingError, Interpreter, TreeWalkingInterpreter, Session,
    exec_program, int_val,
)


def run(source, environment=None):
    """Run a program and return its globals as plain Python objects."""
    lines = []
    globals_ = exec_program("test.star", textwrap.dedent(source), environment, lines.append)
    return globals_.to_python(), lines


def result(source, environment=None):
    """Run a program and return its `r` global."""
    return run(source, environment)[0]["r"]


def error(source, environment=None):
    """Run a failing program and return the EvalError."""
    with pytest.raises(EvalError) as info:
        run(source, environment)
    return info.value


class TestArithmetic:
    """Test operators."""

    @pytest.mark.parametrize("expr, expected", [
        ("1 + 2", 3),
        ("7 - 10", -3),
        ("6 * 7", 42),
        ("7 / 2", 3.5),
        ("7 // 2", 3),
        ("-7 // 2", -4),
        ("7 % 3", 1),
        ("-7 % 3", 2),
        ("7.0 // 2", 3.0),
        ("1 + 2.5", 3.5),
        ("6 & 3", 2),
        ("6 | 3", 7),
        ("6 ^ 3", 5),
        ("1 << 4", 16),
        ("256 >> 4", 16),
        ("~5", -6),
        ("-(3)", -3),
        ("'ab' + 'cd'", "abcd"),
        ("'ab' * 3", "ababab"),
        ("2 * 'ab'", "abab"),
        ("[1] + [2]", [1, 2]),
        ("[0] * 3", [0, 0, 0]),
    ])
    def test_binary_ops(self, expr, expected):
        """Test arithmetic, bitwise and sequence operators."""
        assert result(f"r = {expr}") == expected

    def test_int_division_result_is_int(self):
        """Test floor division of ints stays an int and / always gives a float."""
        out, _ = run("a = 8 // 2\nb = 8 / 2\n")
        assert isinstance(out["a"], int)
        assert isinstance(out["b"], float)

    @pytest.mark.parametrize("expr, message", [
        ("1 / 0", "floating-point division by zero"),
        ("1.0 // 0", "floating-point division by zero"),
        ("1 // 0", "integer division by zero"),
        ("1 % 0", "integer modulo by zero"),
        ("'a' + 1", "unknown binary op: string + int"),
        ("True + 1", "unknown binary op: bool + int"),
        ("1 << -1", "negative shift count"),
        ("1 << 1000", "shift count too large"),
        ("-'a'", "unknown unary op: -string"),
    ])
    def test_operator_errors(self, expr, message):
        """Test operator failures."""
        assert message in error(f"r = {expr}").message

    def test_dict_union(self):
        """Test | merges dicts, right side winning."""
        assert result("r = {'a': 1, 'b': 2} | {'b': 3}") == {"a": 1, "b": 3}


class TestComparisons:
    """Test comparison and boolean operators."""

    @pytest.mark.parametrize("expr, expected", [
        ("1 == 1.0", True),
        ("1 != 2", True),
        ("1 < 2 < 3", True),
        ("1 < 3 < 2", False),
        ("'a' < 'b'", True),
        ("[1, 2] < [1, 3]", True),
        ("2 in [1, 2]", True),
        ("3 not in [1, 2]", True),
        ("'ell' in 'hello'", True),
        ("'k' in {'k': 1}", True),
        ("True == 1", False),
        ("None == None", True),
    ])
    def test_compare(self, expr, expected):
        """Test comparison results."""
        assert result(f"r = {expr}") is expected

    def test_and_or_return_operands(self):
        """Test and/or yield the deciding operand."""
        out, _ = run("a = 0 or 'x'\nb = 1 and []\nc = None or 0 or 5\n")
        assert out == {"a": "x", "b": [], "c": 5}

    def test_short_circuit(self):
        """Test the right operand is not evaluated when the left decides."""
        assert result("r = False and undefined_name") is False

    def test_mixed_comparison_error(self):
        """Test ordering unrelated kinds."""
        assert error("r = 1 < 'a'").message == "unsupported comparison: int < string"

    def test_in_string_requires_string(self):
        """Test membership in a string needs a string operand."""
        assert "requires string" in error("r = 1 in 'abc'").message


class TestStatements:
    """Test control flow and assignment."""

    def test_if_elif_else(self):
        """Test conditional branches."""
        source = """
        def classify(n):
            if n < 0:
                return "neg"
            elif n == 0:
                return "zero"
            else:
                return "pos"
        r = [classify(-1), classify(0), classify(5)]
        """
        assert result(source) == ["neg", "zero", "pos"]

    def test_for_break_continue(self):
        """Test loop control."""
        source = """
        r = []
        for i in range(10):
            if i % 2:
                continue
            if i > 6:
                break
            r.append(i)
        """
        assert result(source) == [0, 2, 4, 6]

    def test_for_over_dict_iterates_keys(self):
        """Test iterating a dict visits keys in insertion order."""
        assert result("r = []\nfor k in {'b': 1, 'a': 2}:\n    r.append(k)\n") == ["b", "a"]

    def test_loop_body_may_mutate_iterable(self):
        """Test the loop visits the elements present when it started."""
        assert result("r = [1, 2]\nfor x in r:\n    r.append(x)\n") == [1, 2, 1, 2]

    def test_unpacking(self):
        """Test list and tuple targets."""
        out, _ = run("a, b = [1, 2]\n[c, [d, e]] = [3, [4, 5]]\nfor k, v in {'x': 1}.items():\n    f = k + str(v)\n")
        assert out == {"a": 1, "b": 2, "c": 3, "d": 4, "e": 5, "f": "x1", "k": "x", "v": 1}

    def test_unpacking_count_mismatch(self):
        """Test unpacking errors name both counts."""
        assert error("a, b = [1, 2, 3]").message == "too many values to unpack (got 3, want 2)"
        assert error("a, b = [1]").message == "too few values to unpack (got 1, want 2)"

    def test_augmented_assignment(self):
        """Test augmented assignment on names and elements."""
        out, _ = run("n = 5\nn -= 2\nd = {'k': 1}\nd['k'] += 10\nl = [1]\nalias = l\nl += [2]\n")
        assert out["n"] == 3
        assert out["d"] == {"k": 11}
        assert out["alias"] == [1, 2]

    def test_subscript_assignment(self):
        """Test element assignment in lists and dicts."""
        out, _ = run("l = [1, 2, 3]\nl[-1] = 9\nd = {}\nd['a'] = l[0]\n")
        assert out == {"l": [1, 2, 9], "d": {"a": 1}}

    def test_string_item_assignment(self):
        """Test strings are immutable."""
        assert "does not support item assignment" in error("s = 'abc'\ns[0] = 'x'\n").message

    def test_undefined_name(self):
        """Test reading an unknown name."""
        err = error("r = missing + 1")
        assert err.message == "undefined: missing"
        assert err.location.line == 1

    def test_local_before_assignment(self):
        """Test a function reading a local before assigning it."""
        source = """
        x = 1
        def f():
            y = x
            x = 2
            return y
        r = f()
        """
        assert error(source).message == "local variable x referenced before assignment"


class TestFunctions:
    """Test def, lambda and calls."""

    def test_defaults_and_keywords(self):
        """Test default values and keyword arguments."""
        source = """
        def greet(name, greeting="hello", punct="!"):
            return greeting + ", " + name + punct
        r = [greet("a"), greet("b", punct="?"), greet(greeting="hi", name="c")]
        """
        assert result(source) == ["hello, a!", "hello, b?", "hi, c!"]

    def test_varargs_and_kwargs(self):
        """Test *args and **kwargs collection and expansion."""
        source = """
        def collect(first, *rest, **options):
            return [first, rest, options]
        args = [2, 3]
        opts = {"flag": True}
        r = collect(1, *args, **opts)
        """
        assert result(source) == [1, [2, 3], {"flag": True}]

    def test_argument_errors(self):
        """Test script functions bind arguments like builtins."""
        source = "def f(a, b=1):\n    return a\n"
        assert isinstance(error(source + "f()"), ArgumentBindingError)
        assert error(source + "f()").message == "f: missing required argument a"
        assert error(source + "f(1, 2, 3)").message == "f: got 3 arguments, want at most 2"
        assert error(source + "f(1, c=2)").message == 'f: unexpected keyword argument "c"'
        assert error(source + "f(1, a=2)").message == 'f: got multiple values for parameter "a"'

    def test_closures(self):
        """Test nested functions see their defining scope."""
        source = """
        def make_adder(n):
            def add(x):
                return x + n
            return add
        add5 = make_adder(5)
        r = [add5(1), make_adder(10)(1)]
        """
        assert result(source)[:2] == [6, 11]

    def test_lambda(self):
        """Test lambda expressions and key functions."""
        source = """
        words = ["ccc", "a", "bb"]
        r = sorted(words, key=lambda w: len(w))
        """
        assert result(source) == ["a", "bb", "ccc"]

    def test_implicit_none(self):
        """Test a function without return yields None."""
        assert result("def f():\n    pass\nr = f()\n") is None

    def test_function_display(self):
        """Test str() of functions and builtins."""
        out, _ = run("def f():\n    pass\na = str(f)\nb = str(len)\nc = type(f)\nd = type(len)\n")
        assert out == {
            "a": "<function f>", "b": "<built-in function len>",
            "c": "function", "d": "builtin_function_or_method",
            "f": out["f"],
        }

    def test_call_non_function(self):
        """Test calling a value that is not callable."""
        assert error("x = 1\nx()\n").message == "invalid call of non-function (int)"

    def test_function_modifies_global_container(self):
        """Test functions may mutate globals they do not rebind."""
        source = """
        seen = []
        def record(x):
            seen.append(x)
        record(1)
        record(2)
        """
        assert run(source)[0]["seen"] == [1, 2]


class TestCollections:
    """Test indexing, slicing, literals and comprehensions."""

    def test_indexing(self):
        """Test positive and negative indexes."""
        out, _ = run("l = [1, 2, 3]\na = l[0]\nb = l[-1]\nc = 'xyz'[1]\nd = {'k': 'v'}['k']\n")
        assert [out[k] for k in "abcd"] == [1, 3, "y", "v"]

    def test_index_out_of_range(self):
        """Test the out-of-range message."""
        assert error("l = [1, 2, 3]\nr = l[5]\n").message == "index 5 out of range: list has 3 elements"

    def test_missing_key(self):
        """Test a missing dict key."""
        assert error("r = {'a': 1}['b']").message == 'key "b" not in dict'

    def test_slicing(self):
        """Test slices of lists and strings."""
        out, _ = run("l = [0, 1, 2, 3, 4]\na = l[1:3]\nb = l[::-1]\nc = 'hello'[1:-1]\nd = l[::2]\n")
        assert out["a"] == [1, 2]
        assert out["b"] == [4, 3, 2, 1, 0]
        assert out["c"] == "ell"
        assert out["d"] == [0, 2, 4]

    def test_zero_slice_step(self):
        """Test a zero step is rejected."""
        assert error("r = [1][::0]").message == "zero is not a valid slice step"

    def test_duplicate_dict_key(self):
        """Test dict literals reject repeated keys."""
        assert error("r = {'a': 1, 'a': 2}").message == 'duplicate key: "a"'

    def test_unhashable_key(self):
        """Test lists cannot be dict keys."""
        assert error("r = {[1]: 2}").message == "unhashable type: list"

    def test_comprehensions(self):
        """Test list and dict comprehensions, including nested clauses."""
        out, _ = run("""
        a = [x * x for x in range(5) if x % 2 == 0]
        b = {k: v for k, v in [["x", 1], ["y", 2]]}
        c = [[i, j] for i in range(2) for j in range(i + 1)]
        """.replace("\n        ", "\n"))
        assert out == {"a": [0, 4, 16], "b": {"x": 1, "y": 2}, "c": [[0, 0], [1, 0], [1, 1]]}

    def test_comprehension_scope(self):
        """Test loop variables do not leak out of comprehensions."""
        out, _ = run("x = 'outer'\nl = [x for x in range(3)]\n")
        assert out["x"] == "outer"


class TestBuiltins:
    """Test universe builtins."""

    def test_print_order_and_format(self):
        """Test print output goes to the sink in order with display formatting."""
        _, lines = run("print('a', 1, [1, 'b'])\nprint('x', 'y', sep='-')\nprint()\n")
        assert lines == ['a 1 [1, "b"]', "x-y", ""]

    def test_conversions(self):
        """Test str, repr, int, float and bool."""
        out, _ = run("""
a = str(1.5)
b = repr("q")
c = int("42")
d = int("ff", 16)
e = int(3.9)
f = float("2.5")
g = bool([])
h = int(True)
""")
        assert out == {"a": "1.5", "b": '"q"', "c": 42, "d": 255, "e": 3,
                       "f": 2.5, "g": False, "h": 1}

    def test_conversion_errors(self):
        """Test invalid conversions."""
        assert "invalid literal" in error("r = int('x')").message
        assert "invalid literal" in error("r = float('x')").message

    def test_sequence_builtins(self):
        """Test len, range, sorted, reversed, enumerate, zip, any and all."""
        out, _ = run("""
a = len("abc") + len([1]) + len({})
b = range(1, 10, 3)
c = sorted([3, 1, 2], reverse=True)
d = reversed([1, 2, 3])
e = enumerate(["x", "y"], 1)
f = zip([1, 2], ["a", "b", "c"])
g = [any([0, 1]), all([1, 0]), all([])]
h = list({"k": 1})
i = dict([["a", 1]], b=2)
""")
        assert out == {
            "a": 4, "b": [1, 4, 7], "c": [3, 2, 1], "d": [3, 2, 1],
            "e": [[1, "x"], [2, "y"]], "f": [[1, "a"], [2, "b"]],
            "g": [True, False, True], "h": ["k"], "i": {"a": 1, "b": 2},
        }

    def test_min_max_abs(self):
        """Test min, max and abs."""
        out, _ = run("a = min(3, 1, 2)\nb = max([1, 5, 2])\nc = max(['aa', 'b'], key=len)\nd = abs(-2.5)\n")
        assert out == {"a": 1, "b": 5, "c": "aa", "d": 2.5}

    def test_min_empty(self):
        """Test min of an empty sequence."""
        assert "empty sequence" in error("r = min([])").message

    def test_range_zero_step(self):
        """Test range rejects a zero step."""
        assert "step argument must not be zero" in error("r = range(1, 2, 0)").message

    def test_fail(self):
        """Test fail() aborts the program with its message."""
        err = error("fail('bad', 42)")
        assert err.message == "fail: bad 42"
        assert err.function == "fail"

    def test_len_of_int(self):
        """Test len of a value without a length."""
        assert "has no len" in error("r = len(1)").message

    def test_attribute_builtins(self):
        """Test hasattr, getattr and dir."""
        out, _ = run("a = hasattr('', 'upper')\nb = hasattr(1, 'x')\nc = getattr('ab', 'upper')()\nd = getattr(1, 'x', 0)\ne = 'split' in dir('')\n")
        assert out == {"a": True, "b": False, "c": "AB", "d": 0, "e": True}


class TestMethods:
    """Test string, list and dict methods."""

    def test_string_methods(self):
        """Test string methods."""
        out, _ = run("""
a = "Hello".upper() + "Hello".lower()
b = "  x  ".strip() + "xxaxx".lstrip("x") + "axx".rstrip("x")
c = "a,b,,c".split(",")
d = "a b  c".split()
e = "-".join(["x", "y"])
f = ["ab".startswith("a"), "ab".endswith("a")]
g = "aaa".replace("a", "b", 2)
h = ["abc".find("c"), "abc".find("z"), "banana".count("an")]
""")
        assert out == {
            "a": "HELLOhello", "b": "xaxxa", "c": ["a", "b", "", "c"],
            "d": ["a", "b", "c"], "e": "x-y", "f": [True, False],
            "g": "bba", "h": [2, -1, 2],
        }

    def test_list_methods(self):
        """Test list methods."""
        out, _ = run("""
l = [1, 2]
l.append(3)
l.extend([4, 5])
l.insert(0, 0)
a = l.pop()
b = l.pop(0)
c = l.index(3)
l.remove(2)
m = [1]
m.clear()
""")
        assert out == {"l": [1, 3, 4], "a": 5, "b": 0, "c": 2, "m": []}

    def test_dict_methods(self):
        """Test dict methods."""
        out, _ = run("""
d = {"a": 1}
a = [d.get("a"), d.get("z"), d.get("z", 9)]
b = d.setdefault("b", 2)
d.update({"c": 3})
c = [d.keys(), d.values(), d.items()]
e = d.pop("a")
f = d.pop("missing", "dflt")
g = {"x": 1}
g.clear()
""")
        assert out["a"] == [1, None, 9]
        assert out["b"] == 2
        assert out["c"] == [["a", "b", "c"], [1, 2, 3], [["a", 1], ["b", 2], ["c", 3]]]
        assert out["e"] == 1
        assert out["f"] == "dflt"
        assert out["d"] == {"b": 2, "c": 3}
        assert out["g"] == {}

    def test_unknown_method(self):
        """Test looking up a method a kind does not have."""
        assert error("r = [].upper()").message == "list has no .upper field or method"

    def test_method_argument_error(self):
        """Test methods bind arguments through the unpacker."""
        err = error("r = 'a'.startswith()")
        assert isinstance(err, ArgumentBindingError)
        assert err.message == "startswith: missing required argument prefix"

    def test_remove_missing(self):
        """Test list.remove of an absent element."""
        assert "not found" in error("l = [1]\nl.remove(2)\n").message

    def test_frozen_predeclared_list(self):
        """Test predeclared containers reject mutation."""
        assert error("items.append(1)", {"items": [1]}).message == "cannot append to frozen list"


class TestInterpreterInterface:
    """Test plugging interpreters into sessions."""

    def test_custom_interpreter(self):
        """Test a session runs whatever Interpreter it is given."""

        class Constant(Interpreter):
            def execute(self, ctx, program):
                ctx.print("custom")
                return {"answer": int_val(42)}

            def call_function(self, ctx, fn, args, kwargs):
                raise NotImplementedError

        lines = []
        outcome = Session("x", lines.append, interpreter=Constant()).run(None, "ignored")
        assert outcome.globals["answer"].data == 42
        assert lines == ["custom"]

    def test_interpreter_is_reusable(self):
        """Test one interpreter instance serves several sessions."""
        interpreter = TreeWalkingInterpreter()
        first = Session("a", interpreter=interpreter).run(None, "x = 1")
        second = Session("b", interpreter=interpreter).run(None, "x = 2")
        assert first.globals["x"].data == 1
        assert second.globals["x"].data == 2
