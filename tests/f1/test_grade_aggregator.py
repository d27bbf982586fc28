"""Tests for the period score formula."""

from decimal import Decimal

import pytest

from progression.core.errors import ValidationError
from progression.core.grade_aggregator import (
    COMPONENT_WEIGHTS,
    ComponentScores,
    compute_final_score,
    compute_raw_score,
    final_score_for,
    round_half_up,
    validate_component_score,
)


class TestComputeFinalScore:
    """Tests for compute_final_score()."""

    def test_all_maximum(self):
        assert compute_final_score(20, 20, 20, 20) == 20

    def test_all_zero(self):
        assert compute_final_score(0, 0, 0, 0) == 0

    def test_all_ten(self):
        assert compute_final_score(10, 10, 10, 10) == 10

    def test_weighted_tests_only(self):
        """17.5*0.2 + 18*0.2 = 7.1 rounds to 7."""
        assert compute_final_score(17.5, 18, 0, 0) == 7

    def test_exams_weigh_more_than_tests(self):
        """An exam point is worth 0.3, a test point 0.2."""
        assert compute_final_score(0, 0, 20, 0) == 6
        assert compute_final_score(20, 0, 0, 0) == 4

    def test_9_6_rounds_up_to_pass(self):
        assert compute_final_score(9.6, 9.6, 9.6, 9.6) == 10

    def test_9_4_rounds_down(self):
        assert compute_final_score(9.4, 9.4, 9.4, 9.4) == 9

    def test_half_rounds_up_not_to_even(self):
        """10.5 becomes 11; bankers' rounding would give 10."""
        assert compute_final_score(10.5, 10.5, 10.5, 10.5) == 11
        assert compute_final_score(12.5, 12.5, 12.5, 12.5) == 13

    def test_accepts_numeric_strings(self):
        assert compute_final_score("15", "15", "15", "15") == 15

    def test_final_score_for_bundle(self):
        scores = ComponentScores(test1=14, test2=12, practical_exam=16, theory_exam=11)
        # 2.8 + 2.4 + 4.8 + 3.3 = 13.3
        assert final_score_for(scores) == 13


class TestRawScore:
    """Tests for compute_raw_score() and the weights."""

    def test_weights_sum_to_one(self):
        assert sum(COMPONENT_WEIGHTS.values()) == Decimal("1")

    def test_raw_score_is_exact(self):
        """No binary float drift in the weighted sum."""
        assert compute_raw_score(17.5, 18, 0, 0) == Decimal("7.1")
        assert compute_raw_score(0.1, 0.1, 0.1, 0.1) == Decimal("0.1")

    def test_raw_score_keeps_third_decimal(self):
        """A raw of 9.495 is below 9.5 and must not round to 10."""
        raw = compute_raw_score(9.495, 9.495, 9.495, 9.495)

        assert raw == Decimal("9.495")
        assert compute_final_score(9.495, 9.495, 9.495, 9.495) == 9


class TestValidation:
    """Out-of-range and malformed components are rejected, not clamped."""

    @pytest.mark.parametrize("value", [-0.5, 20.01, 21, 100])
    def test_out_of_range_rejected(self, value):
        with pytest.raises(ValidationError) as exc_info:
            compute_final_score(value, 10, 10, 10)
        assert "test1" in str(exc_info.value)

    @pytest.mark.parametrize("value", [None, "abc", True, float("nan"), float("inf")])
    def test_malformed_rejected(self, value):
        with pytest.raises(ValidationError):
            validate_component_score("theory_exam", value)

    def test_bounds_are_inclusive(self):
        assert validate_component_score("test1", 0) == Decimal("0")
        assert validate_component_score("test1", 20) == Decimal("20")

    def test_error_names_failing_component(self):
        with pytest.raises(ValidationError) as exc_info:
            compute_final_score(10, 10, 25, 10)
        assert "practical_exam" in str(exc_info.value)


class TestRoundHalfUp:
    """Tests for round_half_up()."""

    @pytest.mark.parametrize(
        "value,expected",
        [(0.5, 1), (1.5, 2), (2.5, 3), (2.4999, 2), (9.5, 10), (40.0, 40), (Decimal("66.5"), 67)],
    )
    def test_rounding(self, value, expected):
        assert round_half_up(value) == expected
