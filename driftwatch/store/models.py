# -*- coding: utf-8 -*-
"""ORM tables: monitors, evaluations, alerts, leases and the prediction log."""

import uuid
from datetime import datetime

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from driftwatch.monitoring.cadence import utc_now
from driftwatch.store.database import Base


def new_id() -> str:
    return uuid.uuid4().hex


class MonitorRow(Base):
    __tablename__ = "monitors"
    # dedupe_key encodes (metric, cadence, mode, lower, upper), NULL bounds included
    __table_args__ = (
        UniqueConstraint("model_id", "dedupe_key", name="uq_monitor_identity"),
    )

    id = Column(String(32), primary_key=True, default=new_id)
    model_id = Column(String, nullable=False, index=True)
    title = Column(String, nullable=False)
    cadence = Column(String(16), nullable=False)
    metric = Column(String(16), nullable=False)
    mode = Column(String(16), nullable=False)
    variance_lower = Column(Float, nullable=True)
    variance_upper = Column(Float, nullable=True)
    methods = Column(JSON, nullable=False)  # [{"kind": "email", "target": "..."}]
    dedupe_key = Column(String, nullable=False)
    created_at = Column(DateTime, default=utc_now, nullable=False)
    last_evaluated_window_end = Column(DateTime, nullable=False)

    evaluations = relationship(
        "EvaluationRow", back_populates="monitor",
        cascade="all, delete-orphan", passive_deletes=True,
    )
    alerts = relationship(
        "AlertRow", back_populates="monitor",
        cascade="all, delete-orphan", passive_deletes=True,
    )


class EvaluationRow(Base):
    __tablename__ = "monitor_evaluations"
    __table_args__ = (
        UniqueConstraint("monitor_id", "window_end", name="uq_evaluation_window"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    monitor_id = Column(String(32), ForeignKey("monitors.id", ondelete="CASCADE"), nullable=False)
    window_start = Column(DateTime, nullable=False)
    window_end = Column(DateTime, nullable=False)
    status = Column(String(16), nullable=False)  # evaluated | indeterminate | expired
    metric_value = Column(Float, nullable=True)
    baseline_value = Column(Float, nullable=True)
    variance = Column(Float, nullable=True)
    outcome = Column(String(16), nullable=True)  # no_breach | breach | indeterminate
    direction = Column(String(8), nullable=True)  # low | high
    sample_count = Column(Integer, default=0, nullable=False)
    evaluated_at = Column(DateTime, default=utc_now, nullable=False)

    monitor = relationship("MonitorRow", back_populates="evaluations")
    alert = relationship("AlertRow", back_populates="evaluation", uselist=False)


class AlertRow(Base):
    __tablename__ = "monitor_alerts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    evaluation_id = Column(
        Integer, ForeignKey("monitor_evaluations.id", ondelete="CASCADE"), nullable=False
    )
    monitor_id = Column(String(32), ForeignKey("monitors.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(DateTime, default=utc_now, nullable=False)
    deliveries = Column(JSON, nullable=True)  # filled in after dispatch

    monitor = relationship("MonitorRow", back_populates="alerts")
    evaluation = relationship("EvaluationRow", back_populates="alert")


class LeaseRow(Base):
    """Per-monitor evaluation lease. The primary key makes acquisition exclusive."""
    __tablename__ = "monitor_leases"

    monitor_id = Column(String(32), primary_key=True)
    owner = Column(String, nullable=False)
    expires_at = Column(DateTime, nullable=False)


class PredictionRow(Base):
    __tablename__ = "predictions"
    __table_args__ = (Index("ix_predictions_model_date", "model_id", "date"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    model_id = Column(String, nullable=False)
    date = Column(DateTime, nullable=False)
    identifier = Column(String, nullable=False, index=True)
    input = Column(JSON, nullable=True)
    output = Column(JSON, nullable=False)


class TrueValueRow(Base):
    __tablename__ = "true_values"
    __table_args__ = (Index("ix_true_values_model_identifier", "model_id", "identifier"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    model_id = Column(String, nullable=False)
    date = Column(DateTime, default=utc_now, nullable=False)
    identifier = Column(String, nullable=False)
    true_value = Column(String, nullable=False)
