# -*- coding: utf-8 -*-
"""Shared fixtures: a throwaway SQLite store and an in-memory model registry."""

from datetime import datetime

import pytest

from driftwatch.config import DatabaseConfig
from driftwatch.connectors import InMemoryModelRegistry, ModelMetadata
from driftwatch.monitoring.types import (
    AlertCadence,
    AlertMetric,
    MonitorDraft,
    MonitorThreshold,
    TaskType,
    ThresholdMode,
    build_methods,
)
from driftwatch.store import MonitorStore

# Monday 2026-01-05 10:00 UTC
T0 = datetime(2026, 1, 5, 10, 0)


@pytest.fixture
def store(tmp_path):
    s = MonitorStore.from_config(DatabaseConfig(url=f"sqlite:///{tmp_path / 'driftwatch.db'}"))
    s.init_db()
    yield s
    s.dispose()


@pytest.fixture
def registry():
    return InMemoryModelRegistry([
        ModelMetadata(
            model_id="churn",
            task_type=TaskType.BINARY_CLASSIFICATION,
            baseline_metrics={
                AlertMetric.ACCURACY: 0.80,
                AlertMetric.AUC_ROC: 0.90,
                AlertMetric.PRECISION: 0.70,
                AlertMetric.RECALL: 0.60,
                AlertMetric.F1: 0.65,
            },
            positive_class="yes",
            classes=["no", "yes"],
        ),
        ModelMetadata(
            model_id="price",
            task_type=TaskType.REGRESSION,
            baseline_metrics={AlertMetric.RMSE: 10.0, AlertMetric.MSE: 100.0},
        ),
        ModelMetadata(
            model_id="species",
            task_type=TaskType.MULTICLASS_CLASSIFICATION,
            baseline_metrics={AlertMetric.ACCURACY: 0.90},
            classes=["setosa", "versicolor", "virginica"],
        ),
        ModelMetadata(
            model_id="unlabelled",
            task_type=TaskType.BINARY_CLASSIFICATION,
            baseline_metrics={AlertMetric.ACCURACY: 0.80, AlertMetric.F1: 0.60},
            classes=["no", "yes"],
        ),
        ModelMetadata(
            model_id="cold-start",
            task_type=TaskType.BINARY_CLASSIFICATION,
            baseline_metrics={AlertMetric.ACCURACY: 0.0},
            positive_class="yes",
            classes=["no", "yes"],
        ),
    ])


@pytest.fixture
def make_draft():
    """Factory for monitor drafts with sensible defaults."""
    def _make(
        model_id="churn",
        cadence=AlertCadence.HOURLY,
        metric=AlertMetric.ACCURACY,
        mode=ThresholdMode.ABSOLUTE,
        lower=-0.05,
        upper=None,
        title="",
        email="",
        webhook="",
    ):
        return MonitorDraft(
            model_id=model_id,
            cadence=cadence,
            threshold=MonitorThreshold(
                metric=metric, mode=mode, variance_lower=lower, variance_upper=upper,
            ),
            title=title,
            methods=build_methods(email, webhook),
        )
    return _make
