"""Tests for objectstore.core.conditions — evaluation, parsing, sorting, paging.

Covers the shared edge rules every backend follows: empty groups, missing
fields, malformed ``BETWEEN``, scalar ``IN`` and case-insensitive ``LIKE``.
"""

from __future__ import annotations

import pytest

from objectstore.core.conditions import (
    Condition,
    ConditionGroup,
    Logic,
    Operator,
    Pagination,
    SortDirection,
    all_of,
    any_of,
    between_bounds,
    evaluate,
    paginate,
    parse_condition,
    pinned_value,
    set_values,
    sort_resources,
    where,
)
from objectstore.core.errors import ValidationError
from objectstore.core.resource import Resource

RECORD = {
    "tenant": "t1",
    "type": "doc",
    "id": "d1",
    "version": 1,
    "title": "User Guide",
    "pages": 12,
    "meta": {"author": "ann"},
}


class TestGroups:
    def test_empty_and_is_true(self):
        assert evaluate(ConditionGroup(Logic.AND), RECORD) is True

    def test_empty_or_is_false(self):
        assert evaluate(ConditionGroup(Logic.OR), RECORD) is False

    def test_nested(self):
        condition = all_of(
            where("type", "=", "doc"),
            any_of(where("title", "LIKE", "missing"), where("pages", ">", 10)),
        )
        assert evaluate(condition, RECORD)

    def test_nested_false(self):
        condition = all_of(where("type", "=", "doc"), any_of(where("pages", "<", 5)))
        assert not evaluate(condition, RECORD)


class TestLeaves:
    @pytest.mark.parametrize(
        "op, value, expected",
        [
            ("=", 12, True),
            ("!=", 12, False),
            (">", 11, True),
            (">=", 12, True),
            ("<", 12, False),
            ("<=", 12, True),
            ("IN", [1, 12], True),
            ("NOT IN", [1, 12], False),
            ("BETWEEN", [12, 20], True),
            ("BETWEEN", [13, 20], False),
        ],
    )
    def test_numeric_operators(self, op, value, expected):
        assert evaluate(where("pages", op, value), RECORD) is expected

    def test_like_is_case_insensitive_substring(self):
        assert evaluate(where("title", "LIKE", "guide"), RECORD)
        assert not evaluate(where("title", "LIKE", "manual"), RECORD)

    def test_not_like(self):
        assert evaluate(where("title", "NOT LIKE", "manual"), RECORD)
        assert not evaluate(where("title", "NOT LIKE", "USER"), RECORD)

    def test_like_on_non_string_never_matches(self):
        assert not evaluate(where("pages", "LIKE", "1"), RECORD)
        assert not evaluate(where("pages", "NOT LIKE", "1"), RECORD)

    def test_scalar_in_is_one_element_set(self):
        assert evaluate(where("type", "IN", "doc"), RECORD)
        assert not evaluate(where("type", "NOT IN", "doc"), RECORD)

    def test_dotted_path(self):
        assert evaluate(where("meta.author", "=", "ann"), RECORD)

    def test_incomparable_types_do_not_match(self):
        assert not evaluate(where("title", ">", 3), RECORD)


class TestMissingFields:
    @pytest.mark.parametrize("op", ["=", ">", ">=", "<", "<=", "LIKE", "NOT LIKE", "IN"])
    def test_missing_field_fails(self, op):
        assert not evaluate(where("absent", op, "x"), RECORD)

    @pytest.mark.parametrize("op", ["!=", "NOT IN"])
    def test_missing_field_matches_negatives(self, op):
        assert evaluate(where("absent", op, "x"), RECORD)


class TestMalformedBetween:
    @pytest.mark.parametrize("value", [None, 5, "ab", [1], [1, 2, 3]])
    def test_match_all(self, value):
        assert evaluate(where("pages", "BETWEEN", value), RECORD)
        assert evaluate(where("absent", "BETWEEN", value), RECORD)

    def test_bounds_helper(self):
        assert between_bounds((1, 2)) == (1, 2)
        assert between_bounds("ab") is None


class TestOperatorParsing:
    def test_symbols_and_names(self):
        assert Operator.parse(">=") is Operator.GREATER_THAN_OR_EQUAL
        assert Operator.parse("not like") is Operator.NOT_LIKE
        assert Operator.parse("not_in") is Operator.NOT_IN
        assert Operator.parse("between") is Operator.BETWEEN

    def test_unknown(self):
        with pytest.raises(ValidationError):
            Operator.parse("~=")

    def test_condition_coerces_operator(self):
        assert Condition("a", "LIKE", "x").operator is Operator.LIKE


class TestParseCondition:
    def test_group(self):
        condition = parse_condition(
            {
                "logic": "OR",
                "conditions": [
                    {"field": "type", "operator": "=", "value": "doc"},
                    {"key": "pages", "operator": "BETWEEN", "value": [1, 5]},
                ],
            }
        )
        assert condition == any_of(where("type", "=", "doc"), where("pages", "BETWEEN", [1, 5]))

    def test_logic_defaults_to_and(self):
        assert parse_condition({"conditions": []}) == ConditionGroup(Logic.AND, ())

    def test_roundtrip_to_dict(self):
        condition = all_of(where("type", "=", "doc"), where("pages", "IN", [1, 2]))
        assert parse_condition(condition.to_dict()) == condition

    @pytest.mark.parametrize(
        "data",
        [
            "type = doc",
            {"operator": "="},
            {"field": "a"},
            {"field": "a", "operator": "??"},
            {"logic": "XOR", "conditions": []},
            {"conditions": "nope"},
        ],
    )
    def test_malformed(self, data):
        with pytest.raises(ValidationError):
            parse_condition(data)


class TestHelpers:
    def test_set_values(self):
        assert set_values("a") == ["a"]
        assert set_values(("a", "b")) == ["a", "b"]

    def test_pinned_value_through_and(self):
        condition = all_of(where("tenant", "=", "t1"), where("pages", ">", 1))
        assert pinned_value(condition, "tenant") == (True, "t1")

    def test_pinned_value_not_under_or(self):
        condition = any_of(where("tenant", "=", "t1"), where("tenant", "=", "t2"))
        assert pinned_value(condition, "tenant") == (False, None)

    def test_pinned_value_single_child_or(self):
        assert pinned_value(any_of(where("type", "=", "doc")), "type") == (True, "doc")


class TestPagination:
    def test_defaults_only_when_omitted(self):
        assert Pagination().with_defaults().page == 1
        assert Pagination().with_defaults().limit == 20
        explicit = Pagination(page=0, limit=-1).with_defaults()
        assert (explicit.page, explicit.limit) == (0, -1)

    def test_direction_coercion(self):
        assert Pagination(sort_direction="desc").sort_direction is SortDirection.DESC
        with pytest.raises(ValidationError):
            Pagination(sort_direction="sideways")

    def test_paginate_slices(self):
        items = list(range(5))
        assert paginate(items, Pagination(page=1, limit=2)) == [0, 1]
        assert paginate(items, Pagination(page=3, limit=2)) == [4]
        assert paginate(items, Pagination(page=4, limit=2)) == []


class TestSorting:
    def _resources(self, *ranks):
        return [
            Resource("t1", "doc", f"d{i}", 1, {} if rank is None else {"rank": rank})
            for i, rank in enumerate(ranks)
        ]

    def test_nulls_first_ascending(self):
        ordered = sort_resources(self._resources(2, None, 1), "rank")
        assert [r.fields.get("rank") for r in ordered] == [None, 1, 2]

    def test_nulls_last_descending(self):
        ordered = sort_resources(self._resources(2, None, 1), "rank", descending=True)
        assert [r.fields.get("rank") for r in ordered] == [2, 1, None]

    def test_stable(self):
        ordered = sort_resources(self._resources(1, 1, 1), "rank")
        assert [r.id for r in ordered] == ["d0", "d1", "d2"]

    def test_mixed_types_numbers_before_strings(self):
        ordered = sort_resources(self._resources("b", 3, "a"), "rank")
        assert [r.fields["rank"] for r in ordered] == [3, "a", "b"]

    def test_no_sort_field_keeps_order(self):
        resources = self._resources(3, 1)
        assert sort_resources(resources, None) == resources
