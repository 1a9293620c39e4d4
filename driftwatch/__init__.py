# -*- coding: utf-8 -*-
"""DriftWatch: production model drift monitoring.

Monitors re-compute a model metric over each cadence window of live
predictions, compare it with the training baseline, and alert on breach.

Usage:
    from driftwatch import MonitorStore, MonitoringScheduler, InMemoryModelRegistry
    store = MonitorStore.from_config(DEFAULT_CONFIG.database)
    scheduler = MonitoringScheduler(store, InMemoryModelRegistry([...]))
    scheduler.run_once()
"""

from driftwatch.config import DEFAULT_CONFIG, DriftWatchConfig
from driftwatch.connectors import InMemoryModelRegistry, JsonModelRegistry, ModelMetadata
from driftwatch.monitoring import Alerter, MonitoringScheduler, evaluate_threshold
from driftwatch.store import MonitorStore

__version__ = "1.0.0"
__all__ = [
    "DEFAULT_CONFIG", "DriftWatchConfig",
    "InMemoryModelRegistry", "JsonModelRegistry", "ModelMetadata",
    "Alerter", "MonitoringScheduler", "evaluate_threshold",
    "MonitorStore",
    "__version__",
]
