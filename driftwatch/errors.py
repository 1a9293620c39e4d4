# -*- coding: utf-8 -*-
"""DriftWatch exception hierarchy.

Configuration errors (ValidationError, DuplicateError, StoreError) surface at
the edit boundary. DataUnavailable and DeliveryFailure are scheduler-side
signals that are always handled locally.
"""

# User-visible messages rendered by the edit boundary.
MISSING_BOUND_MESSAGE = "Must provide at least one threshold bound."
DUPLICATE_MESSAGE = "Identical monitor already exists."
STORE_FAILURE_MESSAGE = "There was an error editing your monitor."


class DriftWatchError(Exception):
    """Base class for all DriftWatch errors."""


class ValidationError(DriftWatchError):
    """Malformed or incomplete monitor configuration. Never retried."""


class DuplicateError(DriftWatchError):
    """An equivalent monitor already exists for the same model."""

    def __init__(self, message: str = DUPLICATE_MESSAGE, existing_id: str = ""):
        super().__init__(message)
        self.existing_id = existing_id


class StoreError(DriftWatchError):
    """Persistence unavailable or a non-duplicate constraint violation."""


class DataUnavailable(DriftWatchError):
    """The evaluation window holds no usable predictions."""

    def __init__(self, message: str = "no usable predictions", sample_count: int = 0):
        super().__init__(message)
        self.sample_count = sample_count


class DeliveryFailure(DriftWatchError):
    """A single notification channel could not deliver an alert."""

    def __init__(self, message: str, retryable: bool = True):
        super().__init__(message)
        self.retryable = retryable
