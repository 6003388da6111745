"""Tests for the shared numeric normalizers."""

import math

import numpy as np
import pytest

from normalizers import (
    clamp_round,
    linear_scale,
    log_scale,
    nan_to_zero,
    round_half_away,
    sigmoid_scale,
)


class TestRounding:
    def test_two_decimals(self):
        assert round_half_away(12.3456) == 12.35
        assert round_half_away(12.3449) == 12.34

    def test_halves_away_from_zero(self):
        """Exact binary halves round away from zero in both directions."""
        assert round_half_away(0.125) == 0.13
        assert round_half_away(-0.125) == -0.13

    def test_just_below_half_rounds_down(self):
        """The largest double below 0.5 must not be pushed up to a half."""
        assert round_half_away(0.49999999999999994, precision=0) == 0
        assert round_half_away(-0.49999999999999994, precision=0) == 0
        assert round_half_away(1.49999999999999978, precision=0) == 1.0

    def test_other_precision_is_reexpressed_at_two(self):
        assert round_half_away(2.5, precision=0) == 3.0
        assert round_half_away(-2.5, precision=0) == -3.0
        assert round_half_away(1.23456, precision=4) == 1.23

    def test_non_finite_passes_through(self):
        assert math.isnan(round_half_away(float("nan")))
        assert round_half_away(float("inf")) == float("inf")

    def test_clamp_round(self):
        assert clamp_round(150, 0, 100) == 100
        assert clamp_round(-3.456, 0, 100) == 0
        assert clamp_round(42.004, 0, 100) == 42.0


class TestNanToZero:
    @pytest.mark.parametrize("x", [None, float("nan"), np.nan])
    def test_missing(self, x):
        assert nan_to_zero(x) == 0.0

    def test_finite_unchanged(self):
        assert nan_to_zero(3.5) == 3.5
        assert nan_to_zero(np.float64(-1.25)) == -1.25


class TestSigmoid:
    def test_midpoint_is_fifty(self):
        assert sigmoid_scale(8, 8, 0.175) == pytest.approx(50.0)

    def test_monotonic(self):
        vals = [sigmoid_scale(v, 12, 0.15) for v in (-5, 0, 6, 12, 18, 30)]
        assert vals == sorted(vals)

    def test_outliers_saturate_at_cap(self):
        """Inputs beyond midpoint ± 2|midpoint| score as the cap itself."""
        assert sigmoid_scale(1000, 8, 0.175) == sigmoid_scale(24, 8, 0.175)
        assert sigmoid_scale(-1000, 8, 0.175) == sigmoid_scale(-8, 8, 0.175)
        assert sigmoid_scale(1000, 8, 0.175) == pytest.approx(94.27, abs=0.01)

    def test_zero_midpoint_uses_unit_spread(self):
        assert sigmoid_scale(5, 0, 1) == sigmoid_scale(1, 0, 1)

    def test_infinite_input_is_capped(self):
        assert sigmoid_scale(float("inf"), 10, 0.5) == sigmoid_scale(30, 10, 0.5)


class TestLogScale:
    def test_bounds(self):
        assert log_scale(20, 20, 100) == pytest.approx(0.0)
        assert log_scale(100, 20, 100) == pytest.approx(100.0)

    def test_clamped_outside_range(self):
        assert log_scale(5, 20, 100) == pytest.approx(0.0)
        assert log_scale(1000, 20, 100) == pytest.approx(100.0)

    def test_nan_propagates(self):
        assert math.isnan(log_scale(float("nan"), 15, 65))

    def test_midrange(self):
        assert log_scale(30, 15, 65) == pytest.approx(47.27, abs=0.01)


class TestLinearScale:
    def test_mapping(self):
        assert linear_scale(-20, -20, 50) == 0
        assert linear_scale(15, -20, 50) == pytest.approx(50.0)
        assert linear_scale(50, -20, 50) == 100

    def test_clamped(self):
        assert linear_scale(-80, -20, 50) == 0
        assert linear_scale(200, -20, 50) == 100
