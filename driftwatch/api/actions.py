# -*- coding: utf-8 -*-
"""Form submission → monitor action mapping.

Turns raw form fields into a validated MonitorDraft and runs the create,
update or delete against the store. Every configuration error is caught here
and returned as an ActionResult carrying the user-visible message, so the
web layer only has to pick between a redirect and a re-rendered form.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from driftwatch.api.schemas import MonitorForm, MonitorOut, MethodOut
from driftwatch.connectors.base import ModelMetadata
from driftwatch.errors import (
    DUPLICATE_MESSAGE,
    STORE_FAILURE_MESSAGE,
    DuplicateError,
    StoreError,
    ValidationError,
)
from driftwatch.monitoring.types import (
    AlertCadence,
    AlertMetric,
    Monitor,
    MonitorDraft,
    MonitorThreshold,
    TaskType,
    ThresholdMode,
    build_methods,
    parse_enum,
    validate_metric,
    validate_threshold_bounds,
)
from driftwatch.store.repository import MonitorStore

logger = logging.getLogger("driftwatch.api.actions")


@dataclass
class ActionResult:
    """Outcome of a form action."""
    ok: bool
    monitor: Optional[Monitor] = None
    error: Optional[str] = None


def build_draft(form: MonitorForm, meta: ModelMetadata) -> MonitorDraft:
    """Validates the form against the model and builds a draft.

    Raises:
        ValidationError: unknown enum value, metric not valid for the task
            type or not measurable on this model, unparseable bound, or both
            bounds missing.
    """
    metric = validate_metric(meta.task_type, parse_enum(AlertMetric, form.metric, "metric"))
    if metric not in meta.baseline_metrics:
        raise ValidationError(f"Model has no training baseline for {metric.label}.")
    if (
        meta.task_type is TaskType.BINARY_CLASSIFICATION
        and metric is not AlertMetric.ACCURACY
        and meta.positive_class is None
    ):
        raise ValidationError(f"{metric.label} requires the model's positive class.")
    cadence = parse_enum(AlertCadence, form.cadence, "cadence")
    mode = parse_enum(ThresholdMode, form.mode, "mode")
    lower, upper = validate_threshold_bounds(form.threshold_lower, form.threshold_upper)
    return MonitorDraft(
        model_id=meta.model_id,
        cadence=cadence,
        threshold=MonitorThreshold(
            metric=metric, mode=mode, variance_lower=lower, variance_upper=upper,
        ),
        title=form.title.strip(),
        methods=build_methods(form.email, form.webhook),
    )


def _run(store_call, action: str) -> ActionResult:
    try:
        return ActionResult(ok=True, monitor=store_call())
    except ValidationError as e:
        return ActionResult(ok=False, error=str(e))
    except DuplicateError as e:
        logger.info("%s rejected: duplicate of %s", action, e.existing_id)
        return ActionResult(ok=False, error=DUPLICATE_MESSAGE)
    except StoreError as e:
        logger.error("%s failed: %s", action, e)
        return ActionResult(ok=False, error=STORE_FAILURE_MESSAGE)


def create_monitor(store: MonitorStore, meta: ModelMetadata, form: MonitorForm) -> ActionResult:
    try:
        draft = build_draft(form, meta)
    except ValidationError as e:
        return ActionResult(ok=False, error=str(e))
    return _run(lambda: store.create(draft), "create")


def update_monitor(
    store: MonitorStore,
    meta: ModelMetadata,
    monitor_id: str,
    form: MonitorForm,
) -> ActionResult:
    try:
        draft = build_draft(form, meta)
    except ValidationError as e:
        return ActionResult(ok=False, error=str(e))
    return _run(lambda: store.update(monitor_id, draft), "update")


def delete_monitor(store: MonitorStore, monitor_id: str) -> ActionResult:
    try:
        store.delete(monitor_id)
    except StoreError as e:
        logger.error("delete of %s failed: %s", monitor_id, e)
        return ActionResult(ok=False, error=STORE_FAILURE_MESSAGE)
    return ActionResult(ok=True)


def monitor_to_schema(monitor: Monitor) -> MonitorOut:
    t = monitor.threshold
    return MonitorOut(
        id=monitor.id,
        model_id=monitor.model_id,
        title=monitor.title,
        cadence=monitor.cadence.value,
        metric=t.metric.value,
        mode=t.mode.value,
        variance_lower=t.variance_lower,
        variance_upper=t.variance_upper,
        methods=[MethodOut(kind=m.kind.value, target=m.target) for m in monitor.methods],
        created_at=monitor.created_at,
        last_evaluated_window_end=monitor.last_evaluated_window_end,
    )
