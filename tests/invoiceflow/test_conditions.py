"""Unit tests for the condition evaluator.

Tests cover:
- Field path resolution (normalized keys, nesting, missing segments)
- exists and the absent-value short-circuit
- Numeric-aware ordering
- Loose vs strict equality
- Membership and text operators
- Totality on malformed input
"""

import pytest

from invoiceflow.engine.conditions import (
    MISSING,
    Condition,
    as_text,
    evaluate_condition,
    is_numeric,
    loose_equals,
    operand_text,
    resolve_path,
    strict_equals,
)


def cond(field, operator, value=None):
    return {"field": field, "operator": operator, "value": value}


class TestResolvePath:

    def test_flat_key(self):
        assert resolve_path({"amount": 10}, "amount") == 10

    def test_normalizes_whitespace_and_case(self):
        row = {"Customer": {"addressCity": "Lyon"}}
        assert resolve_path(row, "customer.Address City") == "Lyon"

    def test_first_matching_key_wins(self):
        row = {"Total": 1, "total": 2}
        assert resolve_path(row, "total") == 1

    def test_missing_intermediate(self):
        assert resolve_path({"vendor": None}, "vendor.country") is MISSING
        assert resolve_path({}, "vendor.country") is MISSING

    def test_non_mapping_row(self):
        assert resolve_path(["amount"], "amount") is MISSING


# ---------------------------------------------------------------------------
# exists / absent values
# ---------------------------------------------------------------------------


class TestExists:

    @pytest.mark.parametrize("value", [0, "", False, [], {}, "x"])
    def test_present_values_exist(self, value):
        assert evaluate_condition(cond("field", "exists"), {"field": value}) is True

    def test_none_does_not_exist(self):
        assert evaluate_condition(cond("field", "exists"), {"field": None}) is False

    def test_absent_does_not_exist(self):
        assert evaluate_condition(cond("field", "exists"), {}) is False


class TestAbsentShortCircuit:

    @pytest.mark.parametrize(
        "operator,value",
        [("==", None), ("!=", 5), ("!==", 5), (">", 0), ("<", 0), ("not in", [1]), ("contains", "")],
    )
    def test_absent_field_is_false(self, operator, value):
        assert evaluate_condition(cond("missing", operator, value), {"other": 1}) is False

    def test_null_field_is_false(self):
        assert evaluate_condition(cond("amount", "!=", 5), {"amount": None}) is False


# ---------------------------------------------------------------------------
# Ordering
# ---------------------------------------------------------------------------


class TestOrdering:

    def test_numeric_string_compares_numerically(self):
        assert evaluate_condition(cond("amount", ">", 100), {"amount": "150"}) is True

    def test_numeric_string_on_both_sides(self):
        assert evaluate_condition(cond("amount", "<", "1000"), {"amount": "999.5"}) is True

    def test_non_numeric_falls_back_to_text(self):
        # "abc" > "100" lexicographically
        assert evaluate_condition(cond("amount", ">", 100), {"amount": "abc"}) is True
        assert evaluate_condition(cond("amount", "<", 100), {"amount": "abc"}) is False

    def test_text_comparison_of_numbers_vs_words(self):
        assert evaluate_condition(cond("code", ">=", "B"), {"code": "C"}) is True

    def test_booleans_are_not_numbers(self):
        # "true" > "1" as text
        assert evaluate_condition(cond("flag", ">", 1), {"flag": True}) is True

    def test_boundaries(self):
        row = {"amount": 1000}
        assert evaluate_condition(cond("amount", ">", 1000), row) is False
        assert evaluate_condition(cond("amount", ">=", 1000), row) is True
        assert evaluate_condition(cond("amount", "<=", 1000.0), row) is True


# ---------------------------------------------------------------------------
# Equality
# ---------------------------------------------------------------------------


class TestEquality:

    def test_loose_number_and_string(self):
        assert evaluate_condition(cond("amount", "==", "500"), {"amount": 500}) is True
        assert evaluate_condition(cond("amount", "!=", "500"), {"amount": 500}) is False

    def test_strict_number_and_string(self):
        assert evaluate_condition(cond("amount", "===", "500"), {"amount": 500}) is False
        assert evaluate_condition(cond("amount", "!==", "500"), {"amount": 500}) is True

    def test_strict_int_and_float_are_one_kind(self):
        assert evaluate_condition(cond("amount", "===", 500.0), {"amount": 500}) is True

    def test_loose_boolean_coercion(self):
        assert loose_equals(True, 1) is True
        assert loose_equals(False, "0") is True
        assert strict_equals(True, 1) is False

    def test_loose_blank_string_equals_zero(self):
        assert loose_equals("  ", 0) is True

    def test_loose_none_only_equals_none(self):
        assert loose_equals(None, None) is True
        assert loose_equals(None, 0) is False
        assert loose_equals("", None) is False

    def test_loose_non_numeric_string_never_equals_number(self):
        assert loose_equals("abc", 0) is False


# ---------------------------------------------------------------------------
# Membership and text
# ---------------------------------------------------------------------------


class TestMembership:

    def test_in_list(self):
        assert evaluate_condition(cond("currency", "in", ["EUR", "USD"]), {"currency": "EUR"}) is True
        assert evaluate_condition(cond("currency", "in", ["EUR", "USD"]), {"currency": "GBP"}) is False

    def test_in_list_is_strict(self):
        assert evaluate_condition(cond("code", "in", ["1", "2"]), {"code": 1}) is False

    def test_in_string_is_substring(self):
        assert evaluate_condition(cond("code", "in", "A12B"), {"code": 12}) is True

    def test_in_other_operand(self):
        assert evaluate_condition(cond("code", "in", 12), {"code": 12}) is False
        assert evaluate_condition(cond("code", "not in", 12), {"code": 12}) is False

    def test_not_in(self):
        assert evaluate_condition(cond("currency", "not in", ["EUR"]), {"currency": "USD"}) is True
        assert evaluate_condition(cond("currency", "not in", "EURUSD"), {"currency": "USD"}) is False

    def test_contains_string(self):
        assert evaluate_condition(cond("vendor", "contains", "Corp"), {"vendor": "Acme Corp"}) is True

    def test_contains_list(self):
        row = {"tags": ["urgent", "q1"]}
        assert evaluate_condition(cond("tags", "contains", "urgent"), row) is True
        assert evaluate_condition(cond("tags", "contains", "q2"), row) is False

    def test_contains_other(self):
        assert evaluate_condition(cond("amount", "contains", 1), {"amount": 100}) is False


class TestTextOperators:

    def test_starts_and_ends_with(self):
        row = {"number": "INV-2024-001"}
        assert evaluate_condition(cond("number", "startsWith", "INV-"), row) is True
        assert evaluate_condition(cond("number", "endsWith", "001"), row) is True
        assert evaluate_condition(cond("number", "endsWith", "002"), row) is False

    def test_non_string_actual(self):
        assert evaluate_condition(cond("number", "startsWith", "1"), {"number": 123}) is False


class TestOmittedValue:

    @pytest.mark.parametrize("operator", ["contains", "startsWith", "endsWith"])
    def test_text_operators_do_not_match_everything(self, operator):
        condition = {"field": "vendor", "operator": operator}
        assert evaluate_condition(condition, {"vendor": "ACME"}) is False

    @pytest.mark.parametrize("operator,expected", [(">", False), (">=", False), ("<", True), ("<=", True)])
    def test_ordering_compares_against_undefined(self, operator, expected):
        condition = {"field": "amount", "operator": operator}
        assert evaluate_condition(condition, {"amount": 1500}) is expected

    def test_in_without_operand(self):
        assert evaluate_condition({"field": "code", "operator": "in"}, {"code": "A"}) is False
        assert evaluate_condition({"field": "code", "operator": "not in"}, {"code": "A"}) is False

    def test_operand_text(self):
        assert operand_text(None) == "undefined"
        assert operand_text(1.0) == "1"
        assert as_text(None) == ""


# ---------------------------------------------------------------------------
# Totality
# ---------------------------------------------------------------------------


class TestTotality:

    def test_unknown_operator(self):
        assert evaluate_condition(cond("amount", "between", [1, 2]), {"amount": 1}) is False

    def test_condition_instance(self):
        assert evaluate_condition(Condition("amount", ">", 1), {"amount": 2}) is True

    def test_malformed_condition(self):
        assert evaluate_condition({}, {"amount": 1}) is False

    def test_non_mapping_condition_does_not_raise(self):
        assert evaluate_condition(None, {"amount": 1}) is False

    def test_row_not_modified(self):
        row = {"amount": "150", "vendor": {"name": "Acme"}}
        snapshot = {"amount": "150", "vendor": {"name": "Acme"}}
        evaluate_condition(cond("vendor.name", "==", "Acme"), row)
        assert row == snapshot


class TestHelpers:

    @pytest.mark.parametrize(
        "value,expected",
        [(None, ""), (True, "true"), (1.0, "1"), (1.5, "1.5"), (["a", 2], "a,2"), ("x", "x")],
    )
    def test_as_text(self, value, expected):
        assert as_text(value) == expected

    @pytest.mark.parametrize(
        "value,expected",
        [(1, True), ("1e3", True), (" 42 ", True), ("", False), ("abc", False),
         (True, False), (float("inf"), False), (None, False)],
    )
    def test_is_numeric(self, value, expected):
        assert is_numeric(value) is expected
