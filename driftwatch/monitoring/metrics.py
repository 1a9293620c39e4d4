# -*- coding: utf-8 -*-
"""Production metric computation.

Aggregates a window of logged predictions, joined with their ground truth,
into the same metric family used at training time:

- regression: MSE, RMSE
- binary classification: accuracy, AUC-ROC, precision, recall, F1
- multiclass classification: accuracy

Predictions without usable ground truth are dropped before aggregation. A
window that leaves nothing to aggregate raises DataUnavailable instead of
returning 0 or NaN.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

import numpy as np
import pandas as pd

from driftwatch.errors import DataUnavailable
from driftwatch.monitoring.types import AlertMetric, TaskType, validate_metric

logger = logging.getLogger("driftwatch.monitoring.metrics")


@dataclass
class PredictionRecord:
    """One logged prediction, with its ground truth when known.

    Attributes:
        model_id: model that produced the prediction.
        timestamp: prediction time (UTC).
        identifier: caller-supplied id used to join ground truth.
        input: feature values sent to the model.
        output: regression {"value"}, binary {"class_name", "probability"},
            multiclass {"class_name"}. A binary "probability" is the
            probability of the predicted class_name.
        true_value: logged ground truth, or None.
    """
    model_id: str
    timestamp: datetime
    identifier: str
    input: Dict[str, Any] = field(default_factory=dict)
    output: Dict[str, Any] = field(default_factory=dict)
    true_value: Optional[str] = None


@dataclass(frozen=True)
class MetricValue:
    value: float
    sample_count: int


def _to_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    return result if math.isfinite(result) else None


def _to_label(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _regression_frame(predictions: Sequence[PredictionRecord]) -> pd.DataFrame:
    rows = []
    for p in predictions:
        predicted = _to_float(p.output.get("value"))
        actual = _to_float(p.true_value)
        if predicted is None or actual is None:
            continue
        rows.append((predicted, actual))
    return pd.DataFrame(rows, columns=["predicted", "actual"], dtype=float)


def _classification_frame(predictions: Sequence[PredictionRecord]) -> pd.DataFrame:
    rows = []
    for p in predictions:
        predicted = _to_label(p.output.get("class_name"))
        actual = _to_label(p.true_value)
        if predicted is None or actual is None:
            continue
        rows.append((predicted, actual, _to_float(p.output.get("probability"))))
    return pd.DataFrame(rows, columns=["predicted", "actual", "probability"])


def auc_roc(scores: np.ndarray, positives: np.ndarray) -> float:
    """Area under the ROC curve via the Mann-Whitney rank statistic.

    Tied scores receive their average rank.

    Raises:
        DataUnavailable: only one class is present.
    """
    n_pos = int(positives.sum())
    n_neg = int(len(positives) - n_pos)
    if n_pos == 0 or n_neg == 0:
        raise DataUnavailable("AUC-ROC needs both classes", sample_count=len(positives))
    ranks = pd.Series(scores).rank(method="average").to_numpy()
    rank_sum = float(ranks[positives].sum())
    return (rank_sum - n_pos * (n_pos + 1) / 2.0) / (n_pos * n_neg)


def _ratio(numerator: int, denominator: int, name: str, sample_count: int) -> float:
    if denominator == 0:
        raise DataUnavailable(f"{name} is undefined for this window", sample_count=sample_count)
    return numerator / denominator


def _binary_metric(
    metric: AlertMetric,
    frame: pd.DataFrame,
    positive_class: Optional[str],
) -> MetricValue:
    n = len(frame)
    if metric is AlertMetric.ACCURACY:
        return MetricValue(float((frame["predicted"] == frame["actual"]).mean()), n)

    if positive_class is None:
        raise ValueError(f"{metric.value} requires the model's positive class")
    actual_pos = (frame["actual"] == positive_class).to_numpy()
    predicted_pos = (frame["predicted"] == positive_class).to_numpy()

    if metric is AlertMetric.AUC_ROC:
        scored = frame["probability"].notna().to_numpy()
        if not scored.any():
            raise DataUnavailable("no scored predictions", sample_count=0)
        probability = frame["probability"].to_numpy(dtype=float)
        # logged probability belongs to the predicted class
        scores = np.where(predicted_pos, probability, 1.0 - probability)[scored]
        return MetricValue(auc_roc(scores, actual_pos[scored]), int(scored.sum()))

    tp = int(np.sum(predicted_pos & actual_pos))
    fp = int(np.sum(predicted_pos & ~actual_pos))
    fn = int(np.sum(~predicted_pos & actual_pos))
    if metric is AlertMetric.PRECISION:
        return MetricValue(_ratio(tp, tp + fp, "precision", n), n)
    if metric is AlertMetric.RECALL:
        return MetricValue(_ratio(tp, tp + fn, "recall", n), n)
    return MetricValue(_ratio(2 * tp, 2 * tp + fp + fn, "f1", n), n)


def compute_metric(
    task_type: TaskType,
    metric: AlertMetric,
    predictions: Sequence[PredictionRecord],
    positive_class: Optional[str] = None,
) -> MetricValue:
    """Computes one metric over a window of predictions.

    Args:
        task_type: the model's task type.
        metric: metric to compute; must be valid for `task_type`.
        predictions: the window's prediction log entries.
        positive_class: positive label for binary precision/recall/F1/AUC.

    Returns:
        MetricValue: the value and the number of predictions it covers.

    Raises:
        DataUnavailable: no usable prediction in the window.
    """
    validate_metric(task_type, metric)

    if task_type is TaskType.REGRESSION:
        frame = _regression_frame(predictions)
    else:
        frame = _classification_frame(predictions)

    if frame.empty:
        raise DataUnavailable(
            f"no predictions with ground truth among {len(predictions)}",
            sample_count=0,
        )

    if task_type is TaskType.REGRESSION:
        errors = frame["predicted"].to_numpy() - frame["actual"].to_numpy()
        mse = float(np.mean(errors ** 2))
        value = math.sqrt(mse) if metric is AlertMetric.RMSE else mse
        result = MetricValue(value, len(frame))
    elif task_type is TaskType.BINARY_CLASSIFICATION:
        result = _binary_metric(metric, frame, positive_class)
    else:
        result = MetricValue(float((frame["predicted"] == frame["actual"]).mean()), len(frame))

    logger.debug(
        "%s %s over %d/%d predictions = %.6f",
        task_type.value, metric.value, result.sample_count, len(predictions), result.value,
    )
    return result


def summarize_window(predictions: List[PredictionRecord]) -> Dict[str, int]:
    """Counts of logged vs labelled predictions, for log lines."""
    labelled = sum(1 for p in predictions if _to_label(p.true_value) is not None)
    return {"predictions": len(predictions), "labelled": labelled}
