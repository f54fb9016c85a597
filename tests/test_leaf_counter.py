"""
Tests for leaf_counter.py.
Leaf totals, filled-leaf rules and the percentage ratio.
"""
import pytest

from diagnosis.services.leaf_counter import (
    compute_percentage,
    filled_leaves,
    round_half_up,
    total_leaves,
)


class TestTotalLeaves:
    def test_primitives_count_once(self):
        assert total_leaves({"a": "", "b": 0, "c": False}) == 3

    def test_nested_dicts_are_summed(self):
        assert total_leaves({"a": {"b": "", "c": {"d": ""}}}) == 2

    def test_list_of_primitives_is_one_leaf(self):
        assert total_leaves({"tags": []}) == 1
        assert total_leaves({"tags": ["a", "b"]}) == 1

    def test_list_of_records_counts_each_field(self):
        reference = {"items": [{"title": "", "body": ""}, {"title": "", "body": ""}]}
        assert total_leaves(reference) == 4

    def test_null_is_absent(self):
        assert total_leaves({"a": None, "b": ""}) == 1

    def test_bookkeeping_keys_are_ignored(self):
        assert total_leaves({"a": "", "_completed": False, "_currentStep": 0}) == 1


class TestFilledLeaves:
    @pytest.mark.parametrize("value,reference,expected", [
        ("texto", "", 1),
        ("   ", "", 0),
        ("", "", 0),
        ("default", "default", 0),
        (True, False, 1),
        (False, False, 0),
        (False, "", 0),
        (7, 0, 1),
        (0, 0, 0),
        (0, "", 1),
        (None, "", 0),
    ])
    def test_primitive_rules(self, value, reference, expected):
        assert filled_leaves({"a": value}, {"a": reference}) == expected

    def test_non_empty_list_fills_primitive_list(self):
        assert filled_leaves({"tags": ["x"]}, {"tags": []}) == 1
        assert filled_leaves({"tags": []}, {"tags": []}) == 0

    def test_list_records_compared_by_position(self):
        reference = {"items": [{"title": ""}, {"title": ""}]}
        assert filled_leaves({"items": [{"title": "A"}]}, reference) == 1
        assert filled_leaves({"items": [{"title": "A"}, {"title": "B"}]}, reference) == 2

    def test_type_mismatch_counts_nothing(self):
        assert filled_leaves({"a": "text"}, {"a": {"b": ""}}) == 0
        assert filled_leaves("text", {"a": ""}) == 0

    def test_unknown_keys_are_ignored(self):
        assert filled_leaves({"a": "x", "extra": "y"}, {"a": ""}) == 1


class TestComputePercentage:
    def test_empty_answers_are_zero(self):
        assert compute_percentage({}, {"a": "", "b": ""}) == 0

    def test_ratio_rounds_half_up(self):
        reference = {k: "" for k in "abcdefgh"}
        data = {"a": "1"}
        assert compute_percentage(data, reference) == 13  # 12.5

    def test_capped_at_100(self):
        assert compute_percentage({"a": "x", "b": "y"}, {"a": None, "b": ""}) == 100

    def test_empty_reference(self):
        assert compute_percentage({}, {}) == 0
        assert compute_percentage({"x": 1}, {}) == 100

    @pytest.mark.parametrize("data", [None, "garbage", 42, [], {"a": {"deep": [1, {"x": None}]}}])
    def test_total_for_any_input(self, data):
        result = compute_percentage(data, {"a": "", "b": [{"c": ""}]})
        assert 0 <= result <= 100

    def test_pure(self):
        data, reference = {"a": "x"}, {"a": "", "b": ""}
        assert compute_percentage(data, reference) == compute_percentage(data, reference) == 50


def test_round_half_up():
    assert round_half_up(12.5) == 13
    assert round_half_up(0.5) == 1
    assert round_half_up(0.49) == 0
    assert round_half_up(88.5) == 89
