# -*- coding: utf-8 -*-
"""Row-level queries against the monitor store.

Functions here take an open Session and never commit; transaction scope is
owned by MonitorStore.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from driftwatch.monitoring.metrics import PredictionRecord
from driftwatch.monitoring.types import (
    AlertCadence,
    AlertMethod,
    AlertMetric,
    Monitor,
    MonitorThreshold,
    ThresholdMode,
)
from driftwatch.store import models


# ──────────────────────────────────────────────
# Monitors
# ──────────────────────────────────────────────

def to_monitor(row: models.MonitorRow) -> Monitor:
    return Monitor(
        id=row.id,
        model_id=row.model_id,
        title=row.title,
        cadence=AlertCadence(row.cadence),
        threshold=MonitorThreshold(
            metric=AlertMetric(row.metric),
            mode=ThresholdMode(row.mode),
            variance_lower=row.variance_lower,
            variance_upper=row.variance_upper,
        ),
        methods=[AlertMethod.from_dict(m) for m in row.methods or []],
        created_at=row.created_at,
        last_evaluated_window_end=row.last_evaluated_window_end,
    )


def get_monitor_row(db: Session, monitor_id: str) -> Optional[models.MonitorRow]:
    return db.get(models.MonitorRow, monitor_id)


def find_duplicate(
    db: Session,
    model_id: str,
    dedupe_key: str,
    exclude_id: Optional[str] = None,
) -> Optional[models.MonitorRow]:
    query = select(models.MonitorRow).where(
        models.MonitorRow.model_id == model_id,
        models.MonitorRow.dedupe_key == dedupe_key,
    )
    if exclude_id is not None:
        query = query.where(models.MonitorRow.id != exclude_id)
    return db.execute(query).scalars().first()


def list_monitor_rows(db: Session, model_id: Optional[str] = None) -> List[models.MonitorRow]:
    query = select(models.MonitorRow).order_by(models.MonitorRow.created_at, models.MonitorRow.id)
    if model_id is not None:
        query = query.where(models.MonitorRow.model_id == model_id)
    return list(db.execute(query).scalars())


def delete_monitor_rows(db: Session, monitor_id: str) -> int:
    """Deletes a monitor with its evaluations, alerts and lease."""
    db.execute(delete(models.AlertRow).where(models.AlertRow.monitor_id == monitor_id))
    db.execute(delete(models.EvaluationRow).where(models.EvaluationRow.monitor_id == monitor_id))
    db.execute(delete(models.LeaseRow).where(models.LeaseRow.monitor_id == monitor_id))
    result = db.execute(delete(models.MonitorRow).where(models.MonitorRow.id == monitor_id))
    return result.rowcount


# ──────────────────────────────────────────────
# Evaluations / alerts
# ──────────────────────────────────────────────

def create_evaluation(db: Session, monitor_id: str, **fields: Any) -> models.EvaluationRow:
    row = models.EvaluationRow(monitor_id=monitor_id, **fields)
    db.add(row)
    db.flush()
    return row


def create_alert(db: Session, evaluation: models.EvaluationRow) -> models.AlertRow:
    row = models.AlertRow(evaluation_id=evaluation.id, monitor_id=evaluation.monitor_id)
    db.add(row)
    db.flush()
    return row


def list_evaluation_rows(db: Session, monitor_id: str) -> List[models.EvaluationRow]:
    query = (
        select(models.EvaluationRow)
        .where(models.EvaluationRow.monitor_id == monitor_id)
        .order_by(models.EvaluationRow.window_end)
    )
    return list(db.execute(query).scalars())


def list_alert_rows(db: Session, monitor_id: str) -> List[models.AlertRow]:
    query = (
        select(models.AlertRow)
        .where(models.AlertRow.monitor_id == monitor_id)
        .order_by(models.AlertRow.id)
    )
    return list(db.execute(query).scalars())


# ──────────────────────────────────────────────
# Leases
# ──────────────────────────────────────────────

def get_lease(db: Session, monitor_id: str) -> Optional[models.LeaseRow]:
    return db.get(models.LeaseRow, monitor_id)


def delete_lease(db: Session, monitor_id: str, owner: str) -> int:
    result = db.execute(
        delete(models.LeaseRow).where(
            models.LeaseRow.monitor_id == monitor_id,
            models.LeaseRow.owner == owner,
        )
    )
    return result.rowcount


# ──────────────────────────────────────────────
# Prediction log
# ──────────────────────────────────────────────

def create_prediction(
    db: Session,
    model_id: str,
    date: datetime,
    identifier: str,
    output: Dict[str, Any],
    input: Optional[Dict[str, Any]] = None,
) -> models.PredictionRow:
    row = models.PredictionRow(
        model_id=model_id, date=date, identifier=identifier, input=input or {}, output=output,
    )
    db.add(row)
    return row


def create_true_value(
    db: Session,
    model_id: str,
    identifier: str,
    true_value: Any,
    date: Optional[datetime] = None,
) -> models.TrueValueRow:
    row = models.TrueValueRow(model_id=model_id, identifier=identifier, true_value=str(true_value))
    if date is not None:
        row.date = date
    db.add(row)
    return row


def query_predictions(
    db: Session,
    model_id: str,
    window_start: datetime,
    window_end: datetime,
) -> List[PredictionRecord]:
    """Predictions with window_start <= date < window_end, ground truth attached."""
    predictions = list(
        db.execute(
            select(models.PredictionRow)
            .where(
                models.PredictionRow.model_id == model_id,
                models.PredictionRow.date >= window_start,
                models.PredictionRow.date < window_end,
            )
            .order_by(models.PredictionRow.date, models.PredictionRow.id)
        ).scalars()
    )
    if not predictions:
        return []

    identifiers = {p.identifier for p in predictions}
    truths: Dict[str, str] = {}
    rows = db.execute(
        select(models.TrueValueRow)
        .where(
            models.TrueValueRow.model_id == model_id,
            models.TrueValueRow.identifier.in_(identifiers),
        )
        .order_by(models.TrueValueRow.date, models.TrueValueRow.id)
    ).scalars()
    for row in rows:
        # latest true value wins
        truths[row.identifier] = row.true_value

    return [
        PredictionRecord(
            model_id=p.model_id,
            timestamp=p.date,
            identifier=p.identifier,
            input=p.input or {},
            output=p.output or {},
            true_value=truths.get(p.identifier),
        )
        for p in predictions
    ]
