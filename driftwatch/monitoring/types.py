# -*- coding: utf-8 -*-
"""Monitor configuration types.

Cadence, metric and threshold-mode enumerations, the task type → metric
mapping, and the Monitor record itself. Every call site that needs to know
which metrics a model supports goes through `VALID_METRICS`.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Type, TypeVar

from driftwatch.errors import MISSING_BOUND_MESSAGE, ValidationError

E = TypeVar("E", bound=Enum)


class TaskType(str, Enum):
    """Model task type."""
    REGRESSION = "regression"
    BINARY_CLASSIFICATION = "binary_classification"
    MULTICLASS_CLASSIFICATION = "multiclass_classification"


class AlertCadence(str, Enum):
    """Evaluation window size."""
    HOURLY = "hourly"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"

    @property
    def label(self) -> str:
        return self.value.capitalize()


class AlertMetric(str, Enum):
    """Metric a monitor tracks."""
    RMSE = "rmse"
    MSE = "mse"
    ACCURACY = "accuracy"
    AUC_ROC = "auc_roc"
    PRECISION = "precision"
    RECALL = "recall"
    F1 = "f1"

    @property
    def label(self) -> str:
        return _METRIC_LABELS[self]


_METRIC_LABELS = {
    AlertMetric.RMSE: "RMSE",
    AlertMetric.MSE: "MSE",
    AlertMetric.ACCURACY: "Accuracy",
    AlertMetric.AUC_ROC: "AUC-ROC",
    AlertMetric.PRECISION: "Precision",
    AlertMetric.RECALL: "Recall",
    AlertMetric.F1: "F1 Score",
}


class ThresholdMode(str, Enum):
    """How variance from baseline is measured."""
    ABSOLUTE = "absolute"
    PERCENTAGE = "percentage"


class MethodKind(str, Enum):
    STDOUT = "stdout"
    EMAIL = "email"
    WEBHOOK = "webhook"


VALID_METRICS: Dict[TaskType, Tuple[AlertMetric, ...]] = {
    TaskType.REGRESSION: (AlertMetric.RMSE, AlertMetric.MSE),
    TaskType.BINARY_CLASSIFICATION: (
        AlertMetric.ACCURACY,
        AlertMetric.AUC_ROC,
        AlertMetric.PRECISION,
        AlertMetric.RECALL,
        AlertMetric.F1,
    ),
    TaskType.MULTICLASS_CLASSIFICATION: (AlertMetric.ACCURACY,),
}


def parse_enum(enum_cls: Type[E], raw: Optional[str], field_name: str) -> E:
    """Parses a form value by enum value or name, case-insensitively.

    Raises:
        ValidationError: the value matches no member.
    """
    text = (raw or "").strip()
    lowered = text.lower().replace("-", "_").replace(" ", "_")
    for member in enum_cls:
        if lowered in (member.value, member.name.lower()):
            return member
    raise ValidationError(f"Invalid {field_name}: {text!r}.")


def validate_metric(task_type: TaskType, metric: AlertMetric) -> AlertMetric:
    """Checks that a metric is available for the model's task type."""
    allowed = VALID_METRICS[task_type]
    if metric not in allowed:
        names = ", ".join(m.label for m in allowed)
        raise ValidationError(
            f"Metric {metric.label} is not valid for a {task_type.value} model "
            f"(expected one of: {names})."
        )
    return metric


def _parse_bound(raw: Optional[str], field_name: str) -> Optional[float]:
    text = (raw or "").strip()
    if not text:
        return None
    try:
        value = float(text)
    except ValueError:
        raise ValidationError(f"Invalid {field_name}: {text!r}.") from None
    if not math.isfinite(value):
        raise ValidationError(f"Invalid {field_name}: {text!r}.")
    # -0.0 and 0.0 must compare identical for duplicate detection
    return value + 0.0


def validate_threshold_bounds(
    threshold_lower: Optional[str],
    threshold_upper: Optional[str],
) -> Tuple[Optional[float], Optional[float]]:
    """Parses the two optional bounds and requires at least one of them."""
    lower = _parse_bound(threshold_lower, "lower threshold")
    upper = _parse_bound(threshold_upper, "upper threshold")
    if lower is None and upper is None:
        raise ValidationError(MISSING_BOUND_MESSAGE)
    return lower, upper


@dataclass(frozen=True)
class AlertMethod:
    """A notification channel. `target` is the address or URL."""
    kind: MethodKind
    target: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"kind": self.kind.value}
        if self.target is not None:
            data["target"] = self.target
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AlertMethod":
        return cls(kind=MethodKind(data["kind"]), target=data.get("target"))

    def describe(self) -> str:
        return self.kind.value if self.target is None else f"{self.kind.value}:{self.target}"


STDOUT = AlertMethod(MethodKind.STDOUT)


def build_methods(email: Optional[str] = None, webhook: Optional[str] = None) -> List[AlertMethod]:
    """Stdout always, then email and webhook when non-empty."""
    methods = [STDOUT]
    if email and email.strip():
        methods.append(AlertMethod(MethodKind.EMAIL, email.strip()))
    if webhook and webhook.strip():
        methods.append(AlertMethod(MethodKind.WEBHOOK, webhook.strip()))
    return methods


@dataclass(frozen=True)
class MonitorThreshold:
    """Metric, mode and the optional variance bounds."""
    metric: AlertMetric
    mode: ThresholdMode
    variance_lower: Optional[float] = None
    variance_upper: Optional[float] = None

    def __post_init__(self):
        if self.variance_lower is None and self.variance_upper is None:
            raise ValidationError(MISSING_BOUND_MESSAGE)


def dedupe_key(cadence: AlertCadence, threshold: MonitorThreshold) -> str:
    """Encodes the equivalence tuple (minus model_id) as a single column value.

    Absent bounds are spelled out so the unique constraint treats two missing
    bounds as equal.
    """
    def _bound(value: Optional[float]) -> str:
        return "none" if value is None else repr(float(value) + 0.0)

    return "|".join([
        threshold.metric.value,
        cadence.value,
        threshold.mode.value,
        _bound(threshold.variance_lower),
        _bound(threshold.variance_upper),
    ])


@dataclass
class MonitorDraft:
    """A validated configuration that has not been assigned an id yet."""
    model_id: str
    cadence: AlertCadence
    threshold: MonitorThreshold
    title: str = ""
    methods: List[AlertMethod] = field(default_factory=lambda: [STDOUT])

    def __post_init__(self):
        if not self.methods:
            self.methods = [STDOUT]
        elif self.methods[0] != STDOUT:
            self.methods = [STDOUT] + [m for m in self.methods if m != STDOUT]
        if not self.title.strip():
            self.title = default_title(self.cadence, self.threshold.metric)

    @property
    def dedupe_key(self) -> str:
        return dedupe_key(self.cadence, self.threshold)


def default_title(cadence: AlertCadence, metric: AlertMetric) -> str:
    """e.g. "Daily Accuracy Monitor"."""
    return f"{cadence.label} {metric.label} Monitor"


@dataclass
class Monitor:
    """A persisted drift-detection rule.

    Attributes:
        id: generated on creation, immutable.
        model_id: the watched model.
        title: human label.
        cadence: evaluation window size.
        threshold: metric, mode and bounds.
        methods: notification channels, stdout first.
        created_at: creation time (UTC, naive).
        last_evaluated_window_end: end of the last evaluated window.
    """
    id: str
    model_id: str
    title: str
    cadence: AlertCadence
    threshold: MonitorThreshold
    methods: List[AlertMethod]
    created_at: datetime
    last_evaluated_window_end: datetime

    @property
    def dedupe_key(self) -> str:
        return dedupe_key(self.cadence, self.threshold)
