# -*- coding: utf-8 -*-
"""Model metadata registries (JSON directory / in-memory)."""

import json
from pathlib import Path
from typing import Dict, Iterable, Optional, Union

from driftwatch.connectors.base import ModelMetadata, ModelMetadataProvider, ModelNotFound


class JsonModelRegistry(ModelMetadataProvider):
    """Reads `<model_dir>/<model_id>.json` metadata documents.

    Document layout:
        {
          "model_id": "churn-v3",
          "task_type": "binary_classification",
          "positive_class": "yes",
          "classes": ["no", "yes"],
          "baseline_metrics": {"accuracy": 0.81, "auc_roc": 0.88}
        }
    """

    def __init__(self, model_dir: Union[str, Path]):
        super().__init__()
        self.model_dir = Path(model_dir)

    def get_model_metadata(self, model_id: str) -> ModelMetadata:
        path = self.model_dir / f"{model_id}.json"
        # model ids never contain path separators
        if path.parent != self.model_dir or not path.is_file():
            raise ModelNotFound(model_id)
        data = json.loads(path.read_text(encoding="utf-8"))
        data.setdefault("model_id", model_id)
        meta = ModelMetadata.from_dict(data)
        self.logger.debug("Loaded metadata for %s (%s)", model_id, meta.task_type.value)
        return meta


class InMemoryModelRegistry(ModelMetadataProvider):
    """Holds metadata in a dict. Used by tests and embedded deployments."""

    def __init__(self, models: Optional[Iterable[ModelMetadata]] = None):
        super().__init__()
        self._models: Dict[str, ModelMetadata] = {}
        for meta in models or []:
            self.register(meta)

    def register(self, meta: ModelMetadata) -> None:
        self._models[meta.model_id] = meta

    def get_model_metadata(self, model_id: str) -> ModelMetadata:
        try:
            return self._models[model_id]
        except KeyError:
            raise ModelNotFound(model_id) from None
