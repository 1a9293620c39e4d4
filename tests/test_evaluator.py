# -*- coding: utf-8 -*-
"""Threshold evaluator unit tests."""

import pytest

from driftwatch.errors import ValidationError
from driftwatch.monitoring.evaluator import (
    BreachDirection,
    Outcome,
    compute_variance,
    evaluate_threshold,
)
from driftwatch.monitoring.types import AlertMetric, MonitorThreshold, ThresholdMode


def _threshold(mode, lower=None, upper=None, metric=AlertMetric.ACCURACY):
    return MonitorThreshold(metric=metric, mode=mode, variance_lower=lower, variance_upper=upper)


# ──────────────────────────────────────────────
# Percentage mode
# ──────────────────────────────────────────────
class TestPercentageMode:
    """Relative variance from baseline."""

    def test_low_breach(self):
        """85 against 100 with a -10% floor breaches low at -15%."""
        result = evaluate_threshold(85, 100, _threshold(ThresholdMode.PERCENTAGE, -0.10, 0.10))
        assert result.outcome is Outcome.BREACH
        assert result.direction is BreachDirection.LOW
        assert result.variance == pytest.approx(-0.15)

    def test_within_bounds(self):
        """105 against 100 stays inside +/-10%."""
        result = evaluate_threshold(105, 100, _threshold(ThresholdMode.PERCENTAGE, -0.10, 0.10))
        assert result.outcome is Outcome.NO_BREACH
        assert result.direction is None
        assert result.variance == pytest.approx(0.05)
        assert not result.breached

    def test_high_breach(self):
        """111 against 100 breaches high at +11%."""
        result = evaluate_threshold(111, 100, _threshold(ThresholdMode.PERCENTAGE, -0.10, 0.10))
        assert result.outcome is Outcome.BREACH
        assert result.direction is BreachDirection.HIGH
        assert result.variance == pytest.approx(0.11)

    @pytest.mark.parametrize("current", [0.0, 0.5, -3.0, 1e9])
    def test_zero_baseline_is_indeterminate(self, current):
        """A zero baseline never yields a variance."""
        result = evaluate_threshold(current, 0.0, _threshold(ThresholdMode.PERCENTAGE, -0.10, 0.10))
        assert result.outcome is Outcome.INDETERMINATE
        assert result.variance is None
        assert not result.breached

    def test_compute_variance_zero_baseline(self):
        assert compute_variance(1.0, 0.0, ThresholdMode.PERCENTAGE) is None


# ──────────────────────────────────────────────
# Absolute mode
# ──────────────────────────────────────────────
class TestAbsoluteMode:
    """Raw difference from baseline."""

    def test_low_breach_lower_only(self):
        """Accuracy 0.70 against 0.80 breaches a -0.05 floor."""
        result = evaluate_threshold(0.70, 0.80, _threshold(ThresholdMode.ABSOLUTE, lower=-0.05))
        assert result.outcome is Outcome.BREACH
        assert result.direction is BreachDirection.LOW
        assert result.variance == pytest.approx(-0.10)

    def test_no_breach_lower_only(self):
        """Accuracy 0.77 against 0.80 stays above a -0.05 floor."""
        result = evaluate_threshold(0.77, 0.80, _threshold(ThresholdMode.ABSOLUTE, lower=-0.05))
        assert result.outcome is Outcome.NO_BREACH
        assert result.variance == pytest.approx(-0.03)

    def test_upper_only_ignores_drops(self):
        """Without a floor, any drop is accepted."""
        result = evaluate_threshold(0.1, 0.80, _threshold(ThresholdMode.ABSOLUTE, upper=0.05))
        assert result.outcome is Outcome.NO_BREACH

    def test_zero_baseline_is_fine_in_absolute_mode(self):
        result = evaluate_threshold(0.2, 0.0, _threshold(ThresholdMode.ABSOLUTE, upper=0.1))
        assert result.outcome is Outcome.BREACH
        assert result.direction is BreachDirection.HIGH

    def test_rmse_increase_breaches_high(self):
        """Error metrics drift upward."""
        t = _threshold(ThresholdMode.ABSOLUTE, upper=2.0, metric=AlertMetric.RMSE)
        result = evaluate_threshold(13.0, 10.0, t)
        assert result.direction is BreachDirection.HIGH
        assert result.variance == pytest.approx(3.0)

    def test_bound_is_exclusive(self):
        """A variance exactly on the bound is not a breach."""
        result = evaluate_threshold(1.5, 1.0, _threshold(ThresholdMode.ABSOLUTE, upper=0.5))
        assert result.outcome is Outcome.NO_BREACH


class TestThresholdInvariant:
    def test_missing_both_bounds_rejected(self):
        """A threshold with neither bound cannot be constructed."""
        with pytest.raises(ValidationError, match="at least one threshold bound"):
            _threshold(ThresholdMode.ABSOLUTE)
