# -*- coding: utf-8 -*-
"""DriftWatch model metadata connectors."""

from driftwatch.connectors.base import ModelMetadata, ModelMetadataProvider, ModelNotFound
from driftwatch.connectors.registry import InMemoryModelRegistry, JsonModelRegistry

__all__ = [
    "ModelMetadata",
    "ModelMetadataProvider",
    "ModelNotFound",
    "InMemoryModelRegistry",
    "JsonModelRegistry",
]
