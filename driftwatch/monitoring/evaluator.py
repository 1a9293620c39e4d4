# -*- coding: utf-8 -*-
"""Threshold evaluator.

Turns a current metric value, the training-time baseline and a monitor
threshold into one of three outcomes: no breach, breach (low or high), or
indeterminate when a percentage variance has no defined baseline.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from driftwatch.monitoring.types import MonitorThreshold, ThresholdMode

logger = logging.getLogger("driftwatch.monitoring.evaluator")


class Outcome(str, Enum):
    NO_BREACH = "no_breach"
    BREACH = "breach"
    INDETERMINATE = "indeterminate"


class EvaluationStatus(str, Enum):
    """How a window was closed."""
    EVALUATED = "evaluated"
    INDETERMINATE = "indeterminate"
    EXPIRED = "expired"


class BreachDirection(str, Enum):
    LOW = "low"
    HIGH = "high"


@dataclass(frozen=True)
class ThresholdResult:
    """Result of a threshold check.

    Attributes:
        outcome: NO_BREACH / BREACH / INDETERMINATE.
        variance: deviation from baseline (None when indeterminate).
        direction: LOW or HIGH for a breach, otherwise None.
    """
    outcome: Outcome
    variance: Optional[float] = None
    direction: Optional[BreachDirection] = None

    @property
    def breached(self) -> bool:
        return self.outcome is Outcome.BREACH


def compute_variance(
    current_value: float,
    baseline_value: float,
    mode: ThresholdMode,
) -> Optional[float]:
    """Absolute difference, or relative difference in Percentage mode.

    Returns None for a percentage variance against a zero baseline.
    """
    if mode is ThresholdMode.PERCENTAGE:
        if baseline_value == 0:
            return None
        return (current_value - baseline_value) / baseline_value
    return current_value - baseline_value


def evaluate_threshold(
    current_value: float,
    baseline_value: float,
    threshold: MonitorThreshold,
) -> ThresholdResult:
    """Decides whether `current_value` breaches `threshold`."""
    variance = compute_variance(current_value, baseline_value, threshold.mode)
    if variance is None:
        logger.info(
            "Indeterminate %s check: baseline is 0 in percentage mode (current=%.6f)",
            threshold.metric.value, current_value,
        )
        return ThresholdResult(outcome=Outcome.INDETERMINATE)

    lower, upper = threshold.variance_lower, threshold.variance_upper
    if lower is not None and variance < lower:
        return ThresholdResult(Outcome.BREACH, variance, BreachDirection.LOW)
    if upper is not None and variance > upper:
        return ThresholdResult(Outcome.BREACH, variance, BreachDirection.HIGH)
    return ThresholdResult(Outcome.NO_BREACH, variance)
