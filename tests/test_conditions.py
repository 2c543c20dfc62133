"""Unit tests for rule condition expressions.

Tests cover:
- References to form values and to the field's own value
- Strict and loose comparisons, relational operators
- Boolean connectives and precedence
- Syntax errors raised at compile time
- Value coercion helpers
"""

import math

import pytest

from barakatna_forms.conditions import (
    compile_condition,
    is_truthy,
    loose_equals,
    strict_equals,
    to_number,
)
from barakatna_forms.errors import ConditionSyntaxError


class TestReferences:
    """Test how expressions read values."""

    def test_form_values_dot_reference(self):
        """Should read formValues.NAME from the value map."""
        cond = compile_condition("formValues.A === true")
        assert cond({"A": True}) is True
        assert cond({"A": False}) is False

    def test_form_values_bracket_reference(self):
        """Should read formValues['NAME'] from the value map."""
        cond = compile_condition("formValues['room type'] === 'bathroom'")
        assert cond({"room type": "bathroom"}) is True
        assert cond.references == frozenset({"room type"})

    def test_bare_name_is_form_value(self):
        """Should treat a bare name as a form value reference."""
        cond = compile_condition("clientType == 'ADHA'")
        assert cond({"clientType": "ADHA"}) is True
        assert cond.references == frozenset({"clientType"})

    def test_value_refers_to_own_field(self):
        """Should bind 'value' to the validated field's value."""
        cond = compile_condition("!!value")
        assert cond({}, "something") is True
        assert cond({}, "") is False
        assert cond.references == frozenset()

    def test_missing_value_is_undefined(self):
        """Should treat missing values as null/undefined."""
        cond = compile_condition("formValues.missing === undefined")
        assert cond({}) is True

    def test_nested_member_access(self):
        """Should follow member access into mappings."""
        cond = compile_condition("formValues.address.city === 'Abu Dhabi'")
        assert cond({"address": {"city": "Abu Dhabi"}}) is True
        assert cond({"address": "flat"}) is False

    def test_length_member(self):
        """Should expose length on strings and lists."""
        cond = compile_condition("formValues.rooms.length > 0")
        assert cond({"rooms": ["kitchen"]}) is True
        assert cond({"rooms": []}) is False
        assert cond({}) is False

    def test_references_collects_all_names(self):
        """Should list every form value the expression reads."""
        cond = compile_condition("formValues.a === 1 && (b > 2 || formValues['c'])")
        assert cond.references == frozenset({"a", "b", "c"})


class TestComparisons:
    """Test comparison operators."""

    def test_strict_equality_does_not_coerce(self):
        """Should not treat 1 as equal to true or '1'."""
        assert compile_condition("formValues.x === 1")({"x": True}) is False
        assert compile_condition("formValues.x === 1")({"x": "1"}) is False
        assert compile_condition("formValues.x === 1")({"x": 1}) is True

    def test_strict_inequality(self):
        """Should negate strict equality."""
        assert compile_condition("formValues.x !== 'yes'")({"x": "no"}) is True
        assert compile_condition("formValues.x !== 'yes'")({"x": "yes"}) is False

    def test_loose_equality_coerces_numbers_and_strings(self):
        """Should treat '5' == 5 as equal."""
        assert compile_condition("formValues.x == 5")({"x": "5"}) is True
        assert compile_condition("formValues.x != 5")({"x": "5"}) is False

    def test_relational_operators(self):
        """Should compare numbers and numeric strings."""
        assert compile_condition("formValues.age >= 60")({"age": 60}) is True
        assert compile_condition("formValues.age >= 60")({"age": "59"}) is False
        assert compile_condition("formValues.cost > 50000")({"cost": 75000.5}) is True
        assert compile_condition("formValues.cost < 10")({"cost": 10}) is False
        assert compile_condition("formValues.cost <= 10")({"cost": 10}) is True

    def test_relational_on_strings_is_lexicographic(self):
        """Should compare two strings lexicographically."""
        assert compile_condition("formValues.d < '2024-06-01'")({"d": "2024-01-15"}) is True

    def test_relational_with_missing_value_is_false(self):
        """Should never satisfy a relational comparison with a missing value."""
        assert compile_condition("formValues.age > 5")({}) is False
        assert compile_condition("formValues.age <= 5")({}) is False

    def test_float_literals(self):
        """Should parse decimal and exponent literals."""
        assert compile_condition("formValues.ratio > 0.5")({"ratio": 0.75}) is True
        assert compile_condition("formValues.big >= 1e3")({"big": 1000}) is True


class TestConnectives:
    """Test boolean connectives."""

    def test_and_operator(self):
        """Should require both sides with &&."""
        cond = compile_condition("formValues.a === true && formValues.b === true")
        assert cond({"a": True, "b": True}) is True
        assert cond({"a": True, "b": False}) is False

    def test_or_operator(self):
        """Should accept either side with ||."""
        cond = compile_condition("formValues.a === 'x' || formValues.a === 'y'")
        assert cond({"a": "y"}) is True
        assert cond({"a": "z"}) is False

    def test_word_operators(self):
        """Should accept AND / OR / NOT as words."""
        cond = compile_condition("formValues.a AND NOT formValues.b OR formValues.c")
        assert cond({"a": True, "b": False}) is True
        assert cond({"a": True, "b": True}) is False
        assert cond({"c": 1}) is True

    def test_and_binds_tighter_than_or(self):
        """Should evaluate a || b && c as a || (b && c)."""
        cond = compile_condition("formValues.a || formValues.b && formValues.c")
        assert cond({"a": True, "b": False, "c": False}) is True
        assert cond({"a": False, "b": True, "c": False}) is False

    def test_parentheses(self):
        """Should honour parentheses."""
        cond = compile_condition("(formValues.a || formValues.b) && formValues.c")
        assert cond({"a": True, "b": False, "c": False}) is False
        assert cond({"a": True, "c": True}) is True

    def test_double_negation(self):
        """Should treat !! as truthiness."""
        cond = compile_condition("!!formValues.notes")
        assert cond({"notes": "see attached"}) is True
        assert cond({"notes": ""}) is False


class TestSyntaxErrors:
    """Test that malformed expressions fail at compile time."""

    @pytest.mark.parametrize(
        "source",
        [
            "",
            "formValues.",
            "formValues.a ===",
            "formValues.a = 1",
            "(formValues.a === 1",
            "formValues.a === 1)",
            "formValues",
            "formValues.a ; drop()",
        ],
    )
    def test_malformed_expressions_raise(self, source):
        """Should raise ConditionSyntaxError for malformed input."""
        with pytest.raises(ConditionSyntaxError):
            compile_condition(source)

    def test_error_carries_position(self):
        """Should report the position of the failure."""
        with pytest.raises(ConditionSyntaxError) as exc_info:
            compile_condition("formValues.a = 1")
        assert exc_info.value.position == 13
        assert exc_info.value.expression == "formValues.a = 1"

    def test_host_code_is_not_evaluated(self):
        """Should reject host-language code instead of running it."""
        with pytest.raises(ConditionSyntaxError):
            compile_condition("__import__('os').system('true')")


class TestCoercionHelpers:
    """Test coercion and equality helpers."""

    def test_to_number(self):
        """Should coerce the way form inputs are compared."""
        assert to_number(True) == 1.0
        assert to_number(False) == 0.0
        assert to_number(" 42 ") == 42.0
        assert to_number("") == 0.0
        assert to_number([]) == 0.0
        assert to_number(["7"]) == 7.0
        assert to_number("-Infinity") == -math.inf
        assert math.isnan(to_number("12abc"))
        assert math.isnan(to_number(None))
        assert math.isnan(to_number({"a": 1}))
        assert math.isnan(to_number("inf"))

    def test_is_truthy(self):
        """Should treat empty containers as truthy and empty strings as falsy."""
        assert is_truthy([]) is True
        assert is_truthy({}) is True
        assert is_truthy("") is False
        assert is_truthy(0) is False
        assert is_truthy(math.nan) is False
        assert is_truthy(None) is False

    def test_strict_and_loose_equals(self):
        """Should distinguish strict from loose equality."""
        assert strict_equals(0, False) is False
        assert loose_equals(0, False) is True
        assert loose_equals(None, 0) is False
        assert strict_equals(None, None) is True
