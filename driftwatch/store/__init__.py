# -*- coding: utf-8 -*-
"""DriftWatch monitor store (SQLAlchemy)."""

from driftwatch.store.repository import (
    AlertRecord,
    EvaluationRecord,
    MonitorStore,
)

__all__ = [
    "AlertRecord",
    "EvaluationRecord",
    "MonitorStore",
]
