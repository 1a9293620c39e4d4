# -*- coding: utf-8 -*-
"""Monitor Record Store.

The store is the single synchronization point between scheduler workers and
the edit API. Every public method runs in its own transaction: either fully
applied or rolled back.

Guarantees:
- Duplicate monitors are rejected by a query and, for racing writers, by the
  (model_id, dedupe_key) unique constraint.
- The evaluation pointer only moves through `record_evaluation`, a
  compare-and-set that also refuses to write for deleted monitors.
- Evaluation leases are rows keyed by monitor id with an expiry.

Usage:
    store = MonitorStore.from_config(DEFAULT_CONFIG.database)
    store.init_db()
    monitor = store.create(draft)
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, Iterator, List, Optional

from sqlalchemy import or_, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from driftwatch.config import DatabaseConfig
from driftwatch.errors import DuplicateError, StoreError
from driftwatch.monitoring.cadence import floor_to_boundary, to_naive_utc, utc_now
from driftwatch.monitoring.evaluator import EvaluationStatus, ThresholdResult
from driftwatch.monitoring.metrics import PredictionRecord
from driftwatch.monitoring.types import Monitor, MonitorDraft
from driftwatch.store import crud, models
from driftwatch.store.database import init_db, make_engine, make_session_factory

logger = logging.getLogger("driftwatch.store")


@dataclass
class EvaluationRecord:
    """A persisted evaluation of one monitor window."""
    id: int
    monitor_id: str
    window_start: datetime
    window_end: datetime
    status: str
    metric_value: Optional[float] = None
    baseline_value: Optional[float] = None
    variance: Optional[float] = None
    outcome: Optional[str] = None
    direction: Optional[str] = None
    sample_count: int = 0
    evaluated_at: Optional[datetime] = None
    alert_id: Optional[int] = None


@dataclass
class AlertRecord:
    """A breach notification and its per-channel delivery results."""
    id: int
    evaluation_id: int
    monitor_id: str
    created_at: datetime
    deliveries: List[Dict[str, Any]] = field(default_factory=list)


def _to_evaluation(row: models.EvaluationRow, alert_id: Optional[int] = None) -> EvaluationRecord:
    return EvaluationRecord(
        id=row.id,
        monitor_id=row.monitor_id,
        window_start=row.window_start,
        window_end=row.window_end,
        status=row.status,
        metric_value=row.metric_value,
        baseline_value=row.baseline_value,
        variance=row.variance,
        outcome=row.outcome,
        direction=row.direction,
        sample_count=row.sample_count,
        evaluated_at=row.evaluated_at,
        alert_id=alert_id,
    )


def _is_integrity_error(exc: BaseException) -> bool:
    return isinstance(exc.__cause__, IntegrityError)


class MonitorStore:
    """Transactional monitor store backed by SQLAlchemy."""

    def __init__(self, session_factory: sessionmaker, engine: Optional[Engine] = None):
        self._session_factory = session_factory
        self._engine = engine

    @classmethod
    def from_config(cls, config: DatabaseConfig) -> "MonitorStore":
        engine = make_engine(config)
        return cls(make_session_factory(engine), engine=engine)

    def init_db(self) -> None:
        if self._engine is None:
            raise StoreError("store was built without an engine")
        init_db(self._engine)

    def dispose(self) -> None:
        if self._engine is not None:
            self._engine.dispose()

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        """Commits on success, rolls back on any error.

        SQLAlchemy errors are re-raised as StoreError with the original as cause.
        """
        db = self._session_factory()
        try:
            yield db
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise StoreError(str(e)) from e
        except BaseException:
            db.rollback()
            raise
        finally:
            db.close()

    # ──────────────────────────────────────────────
    # Monitor CRUD
    # ──────────────────────────────────────────────

    def create(self, draft: MonitorDraft, now: Optional[datetime] = None) -> Monitor:
        """Persists a new monitor and assigns its id.

        Raises:
            DuplicateError: an equivalent monitor exists for the model.
            StoreError: persistence failed.
        """
        now = to_naive_utc(now) if now else utc_now()
        try:
            with self.session_scope() as db:
                existing = crud.find_duplicate(db, draft.model_id, draft.dedupe_key)
                if existing is not None:
                    raise DuplicateError(existing_id=existing.id)
                row = models.MonitorRow(
                    id=models.new_id(),
                    model_id=draft.model_id,
                    title=draft.title,
                    cadence=draft.cadence.value,
                    metric=draft.threshold.metric.value,
                    mode=draft.threshold.mode.value,
                    variance_lower=draft.threshold.variance_lower,
                    variance_upper=draft.threshold.variance_upper,
                    methods=[m.to_dict() for m in draft.methods],
                    dedupe_key=draft.dedupe_key,
                    created_at=now,
                    last_evaluated_window_end=floor_to_boundary(now, draft.cadence),
                )
                db.add(row)
                db.flush()
                monitor = crud.to_monitor(row)
        except StoreError as e:
            raise self._conflict_or(e, draft)

        logger.info("Created monitor %s (%s) for model %s", monitor.id, monitor.title, monitor.model_id)
        return monitor

    def update(self, monitor_id: str, draft: MonitorDraft) -> Monitor:
        """Replaces a monitor's configuration, keeping its id and history.

        Raises:
            DuplicateError: another monitor of the model has the same identity.
            StoreError: unknown monitor or persistence failure.
        """
        try:
            with self.session_scope() as db:
                row = crud.get_monitor_row(db, monitor_id)
                if row is None:
                    raise StoreError(f"monitor {monitor_id} not found")
                if row.model_id != draft.model_id:
                    raise StoreError(f"monitor {monitor_id} does not belong to model {draft.model_id}")
                existing = crud.find_duplicate(db, draft.model_id, draft.dedupe_key, exclude_id=monitor_id)
                if existing is not None:
                    raise DuplicateError(existing_id=existing.id)

                if row.cadence != draft.cadence.value:
                    row.last_evaluated_window_end = floor_to_boundary(
                        row.last_evaluated_window_end, draft.cadence
                    )
                row.title = draft.title
                row.cadence = draft.cadence.value
                row.metric = draft.threshold.metric.value
                row.mode = draft.threshold.mode.value
                row.variance_lower = draft.threshold.variance_lower
                row.variance_upper = draft.threshold.variance_upper
                row.methods = [m.to_dict() for m in draft.methods]
                row.dedupe_key = draft.dedupe_key
                db.flush()
                monitor = crud.to_monitor(row)
        except StoreError as e:
            raise self._conflict_or(e, draft, exclude_id=monitor_id)

        logger.info("Updated monitor %s (%s)", monitor.id, monitor.title)
        return monitor

    def delete(self, monitor_id: str) -> bool:
        """Deletes a monitor and its evaluation history. Returns False if absent."""
        with self.session_scope() as db:
            deleted = crud.delete_monitor_rows(db, monitor_id)
        if deleted:
            logger.info("Deleted monitor %s", monitor_id)
        return bool(deleted)

    def get(self, monitor_id: str) -> Optional[Monitor]:
        with self.session_scope() as db:
            row = crud.get_monitor_row(db, monitor_id)
            return crud.to_monitor(row) if row is not None else None

    def list_active(self, model_id: Optional[str] = None) -> List[Monitor]:
        """All monitors, or those of one model."""
        with self.session_scope() as db:
            return [crud.to_monitor(r) for r in crud.list_monitor_rows(db, model_id)]

    def _conflict_or(
        self,
        error: StoreError,
        draft: MonitorDraft,
        exclude_id: Optional[str] = None,
    ) -> StoreError:
        """Maps a unique-constraint failure to DuplicateError when it is one."""
        if not _is_integrity_error(error):
            return error
        try:
            with self.session_scope() as db:
                existing = crud.find_duplicate(db, draft.model_id, draft.dedupe_key, exclude_id)
        except StoreError:
            return error
        if existing is not None:
            logger.info("Concurrent duplicate of monitor %s rejected", existing.id)
            return DuplicateError(existing_id=existing.id)
        return error

    # ──────────────────────────────────────────────
    # Evaluations
    # ──────────────────────────────────────────────

    def record_evaluation(
        self,
        monitor_id: str,
        expected_pointer: datetime,
        window_start: datetime,
        window_end: datetime,
        status: EvaluationStatus,
        result: Optional[ThresholdResult] = None,
        metric_value: Optional[float] = None,
        baseline_value: Optional[float] = None,
        sample_count: int = 0,
        now: Optional[datetime] = None,
    ) -> Optional[EvaluationRecord]:
        """Stores an evaluation and advances the pointer to `window_end`.

        The evaluation row, the alert row (on breach) and the pointer move are
        one transaction. Returns None, writing nothing, when the monitor was
        deleted or its pointer no longer equals `expected_pointer`.
        """
        try:
            with self.session_scope() as db:
                moved = db.execute(
                    update(models.MonitorRow)
                    .where(
                        models.MonitorRow.id == monitor_id,
                        models.MonitorRow.last_evaluated_window_end == expected_pointer,
                    )
                    .values(last_evaluated_window_end=window_end)
                    .execution_options(synchronize_session=False)
                )
                if moved.rowcount != 1:
                    row = crud.get_monitor_row(db, monitor_id)
                    if row is None:
                        logger.info("Monitor %s deleted during evaluation; result discarded", monitor_id)
                    else:
                        logger.info(
                            "Monitor %s pointer moved (%s != %s); result discarded",
                            monitor_id, row.last_evaluated_window_end, expected_pointer,
                        )
                    return None

                evaluation = crud.create_evaluation(
                    db,
                    monitor_id,
                    window_start=window_start,
                    window_end=window_end,
                    status=EvaluationStatus(status).value,
                    metric_value=metric_value,
                    baseline_value=baseline_value,
                    variance=result.variance if result else None,
                    outcome=result.outcome.value if result else None,
                    direction=result.direction.value if result and result.direction else None,
                    sample_count=sample_count,
                    evaluated_at=to_naive_utc(now) if now else utc_now(),
                )
                alert = crud.create_alert(db, evaluation) if result and result.breached else None
                record = _to_evaluation(evaluation, alert.id if alert else None)
        except StoreError as e:
            if _is_integrity_error(e):
                logger.info("Window %s of monitor %s already recorded", window_end, monitor_id)
                return None
            raise
        return record

    def record_deliveries(self, alert_id: int, deliveries: List[Dict[str, Any]]) -> bool:
        """Attaches per-channel delivery results to an alert."""
        with self.session_scope() as db:
            row = db.get(models.AlertRow, alert_id)
            if row is None:
                return False
            row.deliveries = deliveries
        return True

    def list_evaluations(self, monitor_id: str) -> List[EvaluationRecord]:
        with self.session_scope() as db:
            return [
                _to_evaluation(r, r.alert.id if r.alert else None)
                for r in crud.list_evaluation_rows(db, monitor_id)
            ]

    def list_alerts(self, monitor_id: str) -> List[AlertRecord]:
        with self.session_scope() as db:
            return [
                AlertRecord(
                    id=r.id,
                    evaluation_id=r.evaluation_id,
                    monitor_id=r.monitor_id,
                    created_at=r.created_at,
                    deliveries=list(r.deliveries or []),
                )
                for r in crud.list_alert_rows(db, monitor_id)
            ]

    # ──────────────────────────────────────────────
    # Leases
    # ──────────────────────────────────────────────

    def acquire_lease(
        self,
        monitor_id: str,
        owner: str,
        ttl_seconds: float,
        now: Optional[datetime] = None,
    ) -> bool:
        """Takes the evaluation lease on a monitor.

        Succeeds when no lease exists, the lease has expired, or `owner`
        already holds it. Concurrent inserts are settled by the primary key.
        """
        now = to_naive_utc(now) if now else utc_now()
        expires_at = now + timedelta(seconds=ttl_seconds)
        try:
            with self.session_scope() as db:
                taken = db.execute(
                    update(models.LeaseRow)
                    .where(
                        models.LeaseRow.monitor_id == monitor_id,
                        or_(models.LeaseRow.owner == owner, models.LeaseRow.expires_at <= now),
                    )
                    .values(owner=owner, expires_at=expires_at)
                    .execution_options(synchronize_session=False)
                )
                if taken.rowcount == 1:
                    return True
                if crud.get_lease(db, monitor_id) is not None:
                    return False
                db.add(models.LeaseRow(monitor_id=monitor_id, owner=owner, expires_at=expires_at))
                db.flush()
        except StoreError as e:
            if _is_integrity_error(e):
                return False
            raise
        return True

    def release_lease(self, monitor_id: str, owner: str) -> None:
        with self.session_scope() as db:
            crud.delete_lease(db, monitor_id, owner)

    # ──────────────────────────────────────────────
    # Prediction log
    # ──────────────────────────────────────────────

    def query_predictions(
        self,
        model_id: str,
        window_start: datetime,
        window_end: datetime,
    ) -> List[PredictionRecord]:
        with self.session_scope() as db:
            return crud.query_predictions(db, model_id, window_start, window_end)

    def log_prediction(
        self,
        model_id: str,
        identifier: str,
        output: Dict[str, Any],
        date: Optional[datetime] = None,
        input: Optional[Dict[str, Any]] = None,
    ) -> None:
        with self.session_scope() as db:
            crud.create_prediction(
                db, model_id, to_naive_utc(date) if date else utc_now(), identifier, output, input,
            )

    def log_true_value(
        self,
        model_id: str,
        identifier: str,
        true_value: Any,
        date: Optional[datetime] = None,
    ) -> None:
        with self.session_scope() as db:
            crud.create_true_value(
                db, model_id, identifier, true_value, to_naive_utc(date) if date else None,
            )
