# -*- coding: utf-8 -*-
"""DriftWatch production drift monitoring package.

Metric computation, threshold evaluation, cadence scheduling and alert
dispatch.
"""

from driftwatch.monitoring.alerter import Alert, Alerter, AlertLevel, DeliveryResult
from driftwatch.monitoring.evaluator import (
    BreachDirection,
    EvaluationStatus,
    Outcome,
    ThresholdResult,
    evaluate_threshold,
)
from driftwatch.monitoring.metrics import MetricValue, PredictionRecord, compute_metric
from driftwatch.monitoring.scheduler import MonitoringScheduler, RunState, TickReport

__all__ = [
    "Alert",
    "Alerter",
    "AlertLevel",
    "DeliveryResult",
    "BreachDirection",
    "EvaluationStatus",
    "Outcome",
    "ThresholdResult",
    "evaluate_threshold",
    "MetricValue",
    "PredictionRecord",
    "compute_metric",
    "MonitoringScheduler",
    "RunState",
    "TickReport",
]
