"""
Tests for the value model (construction, conversion, projection, display).
"""

import pytest

from starhost import (
    Kind, Value, NONE, Builtin,
    int_val, float_val, bool_val, string_val, list_val, dict_val,
    to_value, to_python, from_value,
    ArgumentBindingError, ConversionError, EvalError,
)
from starhost.values import compare, quote


class TestConstruction:
    """Test value constructors and host conversion."""

    def test_scalars(self):
        """Test scalar constructors record the right kind."""
        assert int_val(42).kind is Kind.INTEGER
        assert float_val(1.5).kind is Kind.FLOAT
        assert bool_val(True).kind is Kind.BOOLEAN
        assert string_val("hi").kind is Kind.STRING
        assert NONE.kind is Kind.NONE

    def test_to_value_scalars(self):
        """Test host scalars convert to the matching kinds."""
        assert to_value(None) is NONE
        assert to_value(True).kind is Kind.BOOLEAN
        assert to_value(3).kind is Kind.INTEGER
        assert to_value(3.0).kind is Kind.FLOAT
        assert to_value("s").kind is Kind.STRING

    def test_to_value_containers(self):
        """Test lists, tuples and dicts convert recursively."""
        v = to_value({"a": [1, (2, 3)]})
        assert v.kind is Kind.MAPPING
        inner = v.data[string_val("a")]
        assert inner.kind is Kind.SEQUENCE
        assert inner.data[1].kind is Kind.SEQUENCE
        assert to_python(v) == {"a": [1, [2, 3]]}

    def test_to_value_passes_values_through(self):
        """Test an existing Value is returned unchanged."""
        v = int_val(7)
        assert to_value(v) is v

    def test_to_value_builtin(self):
        """Test a Builtin becomes a callable value."""
        b = Builtin("f", lambda ctx, args, kwargs: None)
        v = to_value(b)
        assert v.kind is Kind.CALLABLE
        assert v.type_name == "builtin_function_or_method"

    def test_to_value_unsupported(self):
        """Test host objects without a script counterpart are rejected."""
        with pytest.raises(ConversionError):
            to_value(object())
        with pytest.raises(TypeError):
            to_value({1, 2})

    def test_arbitrary_width_integers(self):
        """Test integers beyond 64 bits stay exact."""
        big = 2 ** 100 + 1
        assert to_value(big).data == big
        assert to_python(to_value(big)) == big


class TestProjection:
    """Test from_value projection into host types."""

    def test_matching_kinds(self):
        """Test projecting into each host type."""
        assert from_value(int_val(3), int) == 3
        assert from_value(string_val("x"), str) == "x"
        assert from_value(bool_val(False), bool) is False
        assert from_value(to_value([1, 2]), list) == [1, 2]
        assert from_value(to_value({"k": 1}), dict) == {"k": 1}

    def test_int_promotes_to_float(self):
        """Test an int is accepted where a float is expected."""
        result = from_value(int_val(2), float)
        assert result == 2.0
        assert isinstance(result, float)

    def test_value_passes_through(self):
        """Test projecting into Value performs no check."""
        v = string_val("x")
        assert from_value(v) is v

    def test_kind_check(self):
        """Test projecting into a Kind returns the Value after checking it."""
        v = to_value([1])
        assert from_value(v, Kind.SEQUENCE) is v
        with pytest.raises(ArgumentBindingError, match="got list, want dict"):
            from_value(v, Kind.MAPPING)

    def test_mismatch_names_parameter_and_kinds(self):
        """Test the error message names the call, parameter and kinds."""
        with pytest.raises(ArgumentBindingError) as info:
            from_value(string_val("3"), int, param="n", fn="repeat")
        assert str(info.value) == "repeat: for parameter n: got string, want int"

    def test_bool_is_not_int(self):
        """Test booleans are not projected as integers."""
        with pytest.raises(ArgumentBindingError):
            from_value(bool_val(True), int)


class TestEquality:
    """Test equality, hashing and ordering."""

    def test_numeric_equality(self):
        """Test 1 == 1.0 and equal hashes."""
        assert int_val(1) == float_val(1.0)
        assert hash(int_val(1)) == hash(float_val(1.0))

    def test_bool_never_equals_int(self):
        """Test True != 1."""
        assert bool_val(True) != int_val(1)

    def test_container_equality(self):
        """Test lists compare element-wise."""
        assert to_value([1, "a"]) == to_value([1, "a"])
        assert to_value([1]) != to_value([2])

    def test_unhashable(self):
        """Test lists and dicts cannot be hashed."""
        with pytest.raises(EvalError, match="unhashable type: list"):
            hash(list_val())
        with pytest.raises(EvalError, match="unhashable type: dict"):
            hash(dict_val())

    def test_compare(self):
        """Test three-way comparison across numbers and strings."""
        assert compare("<", int_val(1), float_val(1.5)) < 0
        assert compare("<", string_val("b"), string_val("a")) > 0
        assert compare("<", to_value([1, 2]), to_value([1, 2, 0])) < 0

    def test_compare_mixed_kinds(self):
        """Test comparing unrelated kinds is an error."""
        with pytest.raises(EvalError, match="unsupported comparison: int < string"):
            compare("<", int_val(1), string_val("a"))


class TestTruthinessAndFreezing:
    """Test truthiness and frozen containers."""

    @pytest.mark.parametrize("value", [
        int_val(0), float_val(0.0), string_val(""), list_val(), dict_val(), NONE, bool_val(False),
    ])
    def test_falsy(self, value):
        """Test the falsy values."""
        assert not value.is_truthy()

    def test_truthy(self):
        """Test non-empty and non-zero values are truthy."""
        assert int_val(-1).is_truthy()
        assert to_value([0]).is_truthy()
        assert string_val(" ").is_truthy()

    def test_freeze_is_recursive(self):
        """Test freezing reaches nested containers."""
        v = to_value({"a": [1, 2]})
        v.freeze()
        inner = v.data[string_val("a")]
        assert inner.frozen
        with pytest.raises(EvalError, match="cannot append to frozen list"):
            inner.check_mutable("append to")


class TestDisplay:
    """Test display_string and repr_string."""

    def test_squares_display(self):
        """Test a list of ints displays like the language's str()."""
        squares = to_value([i * i for i in range(10)])
        assert squares.display_string() == "[0, 1, 4, 9, 16, 25, 36, 49, 64, 81]"

    def test_strings_quoted_inside_containers(self):
        """Test strings are bare at top level and quoted inside containers."""
        assert string_val("hi").display_string() == "hi"
        assert string_val("hi").repr_string() == '"hi"'
        assert to_value({"k": ["v"]}).display_string() == '{"k": ["v"]}'

    def test_scalars(self):
        """Test scalar display."""
        assert bool_val(True).display_string() == "True"
        assert NONE.display_string() == "None"
        assert float_val(2.5).display_string() == "2.5"
        assert float_val(float("inf")).display_string() == "+inf"

    def test_quote_escapes(self):
        """Test quoting escapes quotes and control characters."""
        assert quote('a"b\n') == '"a\\"b\\n"'

    def test_self_reference(self):
        """Test a list containing itself displays without recursing forever."""
        v = list_val()
        v.data.append(v)
        assert v.display_string() == "[[...]]"

    def test_type_names(self):
        """Test script-level type names."""
        assert int_val(1).type_name == "int"
        assert string_val("").type_name == "string"
        assert list_val().type_name == "list"
        assert dict_val().type_name == "dict"
        assert NONE.type_name == "NoneType"
