# -*- coding: utf-8 -*-
"""Model metadata accessor interface.

The monitor never deserializes model artifacts itself. It reads the task
type, the training-time baseline metrics and the class labels through a
provider implementing `get_model_metadata()`.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from driftwatch.monitoring.types import VALID_METRICS, AlertMetric, TaskType


class ModelNotFound(LookupError):
    """No metadata is registered for the requested model id."""


@dataclass
class ModelMetadata:
    """Read-only view of a trained model.

    Attributes:
        model_id: model identifier.
        task_type: regression / binary / multiclass.
        baseline_metrics: metric value recorded at training time, keyed by metric.
        positive_class: positive label (binary classifiers only).
        classes: known class labels (classifiers only).
    """

    model_id: str
    task_type: TaskType
    baseline_metrics: Dict[AlertMetric, float] = field(default_factory=dict)
    positive_class: Optional[str] = None
    classes: List[str] = field(default_factory=list)

    @property
    def valid_metrics(self) -> Tuple[AlertMetric, ...]:
        return VALID_METRICS[self.task_type]

    def baseline_for(self, metric: AlertMetric) -> float:
        try:
            return self.baseline_metrics[metric]
        except KeyError:
            raise KeyError(
                f"model {self.model_id} has no training baseline for {metric.value}"
            ) from None

    @classmethod
    def from_dict(cls, data: Dict) -> "ModelMetadata":
        """Builds metadata from a plain document (JSON-decoded)."""
        return cls(
            model_id=str(data["model_id"]),
            task_type=TaskType(data["task_type"]),
            baseline_metrics={
                AlertMetric(name): float(value)
                for name, value in (data.get("baseline_metrics") or {}).items()
            },
            positive_class=data.get("positive_class"),
            classes=list(data.get("classes") or []),
        )


class ModelMetadataProvider(ABC):
    """Read-only access to model metadata.

    Usage:
        provider = JsonModelRegistry("./models")
        meta = provider.get_model_metadata("churn-v3")
        meta.baseline_for(AlertMetric.ACCURACY)
    """

    def __init__(self):
        self.logger = logging.getLogger(f"driftwatch.connector.{type(self).__name__}")

    @abstractmethod
    def get_model_metadata(self, model_id: str) -> ModelMetadata:
        """Returns the model's metadata.

        Raises:
            ModelNotFound: unknown model id.
        """
        ...
