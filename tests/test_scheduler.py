# -*- coding: utf-8 -*-
"""Cadence scheduler tests against a real SQLite store."""

import time
from datetime import datetime, timedelta

import pytest
import requests

from driftwatch.config import AlertConfig, SchedulerConfig
from driftwatch.errors import StoreError
from driftwatch.monitoring.alerter import Alerter
from driftwatch.monitoring.evaluator import Outcome
from driftwatch.monitoring.scheduler import MonitoringScheduler, RunState
from driftwatch.monitoring.types import AlertMetric, ThresholdMode

T0 = datetime(2026, 1, 5, 10, 0)


class FailingSession:
    def __init__(self):
        self.calls = 0

    def post(self, url, json=None, timeout=None):
        self.calls += 1
        raise requests.ConnectionError("webhook down")


@pytest.fixture
def alerter():
    return Alerter(AlertConfig(max_attempts=2), sleep=lambda _: None)


@pytest.fixture
def scheduler(store, registry, alerter):
    s = MonitoringScheduler(
        store, registry, alerter=alerter,
        config=SchedulerConfig(max_workers=2, query_timeout_seconds=5.0),
        worker_id="test",
    )
    yield s
    s.close()


def log_window(store, start, outcomes, model_id="churn"):
    """Logs (predicted, actual) pairs inside the hour starting at `start`."""
    for i, (predicted, actual) in enumerate(outcomes):
        identifier = f"{start:%H%M}-{i}"
        store.log_prediction(
            model_id, identifier, {"class_name": predicted, "probability": 0.5},
            date=start + timedelta(minutes=5 + i),
        )
        if actual is not None:
            store.log_true_value(model_id, identifier, actual)


GOOD = [("yes", "yes"), ("no", "no"), ("yes", "yes"), ("no", "no")]
BAD = [("yes", "no"), ("no", "yes"), ("yes", "yes"), ("no", "no")]


# ──────────────────────────────────────────────
# Window progression
# ──────────────────────────────────────────────
class TestWindowProgression:
    """Which window a run evaluates and where the pointer lands."""

    def test_not_due_before_window_closes(self, scheduler, store, make_draft):
        """An open window is not evaluated."""
        monitor = store.create(make_draft(), now=T0)
        report = scheduler.run_once(now=T0 + timedelta(minutes=5))
        assert report.for_monitor(monitor.id).state is RunState.NOT_DUE
        assert store.get(monitor.id).last_evaluated_window_end == T0

    def test_closed_window_evaluated_once(self, scheduler, store, make_draft):
        """A closed window is evaluated exactly once."""
        monitor = store.create(make_draft(), now=T0)
        log_window(store, T0, GOOD)

        run = scheduler.run_once(now=T0 + timedelta(minutes=70)).for_monitor(monitor.id)
        assert run.state is RunState.EVALUATED
        assert run.window == (T0, T0 + timedelta(hours=1))
        assert run.metric_value == pytest.approx(1.0)
        assert run.result.outcome is Outcome.NO_BREACH
        assert store.get(monitor.id).last_evaluated_window_end == T0 + timedelta(hours=1)

        again = scheduler.run_once(now=T0 + timedelta(minutes=80)).for_monitor(monitor.id)
        assert again.state is RunState.NOT_DUE
        assert len(store.list_evaluations(monitor.id)) == 1

    def test_no_data_keeps_pointer(self, scheduler, store, make_draft):
        """A window without data is retried on the next run."""
        monitor = store.create(make_draft(), now=T0)
        run = scheduler.run_once(now=T0 + timedelta(minutes=70)).for_monitor(monitor.id)
        assert run.state is RunState.NO_DATA
        assert store.get(monitor.id).last_evaluated_window_end == T0
        assert store.list_evaluations(monitor.id) == []

        # ground truth shows up later; the same window is retried
        log_window(store, T0, GOOD)
        run = scheduler.run_once(now=T0 + timedelta(minutes=100)).for_monitor(monitor.id)
        assert run.state is RunState.EVALUATED
        assert run.window == (T0, T0 + timedelta(hours=1))

    def test_predictions_without_truth_are_no_data(self, scheduler, store, make_draft):
        """Unlabelled predictions count as no data."""
        monitor = store.create(make_draft(), now=T0)
        log_window(store, T0, [("yes", None), ("no", None)])
        run = scheduler.run_once(now=T0 + timedelta(minutes=70)).for_monitor(monitor.id)
        assert run.state is RunState.NO_DATA

    def test_downtime_evaluates_latest_window_only(self, scheduler, store, make_draft):
        """After downtime only the latest closed window is evaluated."""
        monitor = store.create(make_draft(), now=T0)
        log_window(store, T0 + timedelta(hours=3), GOOD)
        run = scheduler.run_once(now=T0 + timedelta(hours=4, minutes=5)).for_monitor(monitor.id)
        assert run.state is RunState.EVALUATED
        assert run.window == (T0 + timedelta(hours=3), T0 + timedelta(hours=4))
        assert len(store.list_evaluations(monitor.id)) == 1

    def test_pending_horizon_expires_window(self, scheduler, store, make_draft):
        """Windows older than the pending horizon are expired."""
        monitor = store.create(make_draft(), now=T0)
        run = scheduler.run_once(now=T0 + timedelta(hours=3, minutes=5)).for_monitor(monitor.id)
        assert run.state is RunState.EXPIRED
        assert store.get(monitor.id).last_evaluated_window_end == T0 + timedelta(hours=3)
        assert [e.status for e in store.list_evaluations(monitor.id)] == ["expired"]

    def test_pending_horizon_disabled(self, store, registry, alerter, make_draft):
        """Without a horizon the pointer waits for data indefinitely."""
        scheduler = MonitoringScheduler(
            store, registry, alerter=alerter, config=SchedulerConfig(max_pending_windows=None),
        )
        monitor = store.create(make_draft(), now=T0)
        try:
            run = scheduler.run_once(now=T0 + timedelta(hours=30)).for_monitor(monitor.id)
        finally:
            scheduler.close()
        assert run.state is RunState.NO_DATA
        assert store.get(monitor.id).last_evaluated_window_end == T0


# ──────────────────────────────────────────────
# Breach handling
# ──────────────────────────────────────────────
class TestBreach:
    """Alerting on threshold breaches."""

    def test_breach_alerts_and_records_deliveries(self, scheduler, store, alerter, make_draft):
        """A breach sends an alert and stores its deliveries."""
        monitor = store.create(make_draft(lower=-0.05), now=T0)
        log_window(store, T0, BAD)
        run = scheduler.run_once(now=T0 + timedelta(minutes=70)).for_monitor(monitor.id)

        assert run.breached
        assert run.result.variance == pytest.approx(-0.30)
        assert len(alerter.history) == 1
        assert alerter.history[0].metadata["direction"] == "low"
        alerts = store.list_alerts(monitor.id)
        assert alerts[0].deliveries[0]["method"] == "stdout"
        assert alerts[0].deliveries[0]["delivered"] is True

    def test_failing_webhook_does_not_block(self, store, registry, make_draft):
        """A dead webhook is retried and still advances the pointer."""
        session = FailingSession()
        alerter = Alerter(AlertConfig(max_attempts=3), sleep=lambda _: None, session=session)
        scheduler = MonitoringScheduler(store, registry, alerter=alerter)
        monitor = store.create(make_draft(webhook="https://hooks.example.com/x"), now=T0)
        log_window(store, T0, BAD)
        try:
            run = scheduler.run_once(now=T0 + timedelta(minutes=70)).for_monitor(monitor.id)
        finally:
            scheduler.close()

        assert run.state is RunState.EVALUATED
        assert [d.delivered for d in run.deliveries] == [True, False]
        assert session.calls == 3
        assert store.get(monitor.id).last_evaluated_window_end == T0 + timedelta(hours=1)

    def test_zero_baseline_is_indeterminate(self, scheduler, store, alerter, make_draft):
        """A zero baseline in percentage mode never alerts."""
        monitor = store.create(
            make_draft(model_id="cold-start", mode=ThresholdMode.PERCENTAGE, lower=-0.1),
            now=T0,
        )
        log_window(store, T0, BAD, model_id="cold-start")
        run = scheduler.run_once(now=T0 + timedelta(minutes=70)).for_monitor(monitor.id)
        assert run.state is RunState.INDETERMINATE
        assert alerter.history == []
        assert store.get(monitor.id).last_evaluated_window_end == T0 + timedelta(hours=1)
        assert store.list_evaluations(monitor.id)[0].status == "indeterminate"

    def test_regression_rmse_breach(self, scheduler, store, make_draft):
        """RMSE above the upper bound breaches high."""
        monitor = store.create(
            make_draft(model_id="price", metric=AlertMetric.RMSE, lower=None, upper=5.0), now=T0,
        )
        for i, (predicted, actual) in enumerate([(100.0, 80.0), (50.0, 30.0)]):
            store.log_prediction("price", f"r{i}", {"value": predicted}, date=T0 + timedelta(minutes=i))
            store.log_true_value("price", f"r{i}", actual)
        run = scheduler.run_once(now=T0 + timedelta(minutes=70)).for_monitor(monitor.id)
        assert run.metric_value == pytest.approx(20.0)
        assert run.result.direction.value == "high"


# ──────────────────────────────────────────────
# Concurrency and failure isolation
# ──────────────────────────────────────────────
class TestIsolation:
    """Leases, deletes, timeouts and failures stay per monitor."""

    def test_leased_monitor_skipped(self, scheduler, store, make_draft):
        """A monitor leased by another worker is skipped."""
        monitor = store.create(make_draft(), now=T0)
        log_window(store, T0, GOOD)
        now = T0 + timedelta(minutes=70)
        store.acquire_lease(monitor.id, "other-worker", 600, now=now)
        run = scheduler.run_once(now=now).for_monitor(monitor.id)
        assert run.state is RunState.LEASED
        assert store.list_evaluations(monitor.id) == []

    def test_delete_during_evaluation_discards_result(self, scheduler, store, make_draft, monkeypatch):
        """A monitor deleted mid-run records and alerts nothing."""
        monitor = store.create(make_draft(), now=T0)
        log_window(store, T0, BAD)
        real_query = store.query_predictions

        def query_then_delete(*args):
            records = real_query(*args)
            store.delete(monitor.id)
            return records

        monkeypatch.setattr(store, "query_predictions", query_then_delete)
        run = scheduler.run_once(now=T0 + timedelta(minutes=70)).for_monitor(monitor.id)
        assert run.state is RunState.DISCARDED
        assert store.get(monitor.id) is None
        assert store.list_evaluations(monitor.id) == []
        assert scheduler.alerter.history == []

    def test_query_timeout_keeps_pointer(self, store, registry, alerter, make_draft, monkeypatch):
        """A slow prediction query times out and keeps the pointer."""
        monitor = store.create(make_draft(), now=T0)
        real_query = store.query_predictions

        def slow_query(*args):
            time.sleep(0.5)
            return real_query(*args)

        monkeypatch.setattr(store, "query_predictions", slow_query)
        scheduler = MonitoringScheduler(
            store, registry, alerter=alerter, config=SchedulerConfig(query_timeout_seconds=0.05),
        )
        try:
            run = scheduler.run_once(now=T0 + timedelta(minutes=70)).for_monitor(monitor.id)
        finally:
            scheduler.close()
        assert run.state is RunState.TIMEOUT
        assert store.get(monitor.id).last_evaluated_window_end == T0

    def test_failing_monitor_does_not_stop_others(self, scheduler, store, make_draft):
        """One failing monitor does not stop the rest."""
        orphan = store.create(make_draft(model_id="ghost"), now=T0)
        healthy = store.create(make_draft(), now=T0)
        log_window(store, T0, GOOD)
        report = scheduler.run_once(now=T0 + timedelta(minutes=70))
        assert report.for_monitor(orphan.id).state is RunState.ERROR
        assert report.for_monitor(healthy.id).state is RunState.EVALUATED
        assert report.counts == {"evaluated": 1, "error": 1}

    def test_store_unavailable(self, registry, alerter):
        """An unreachable store yields an empty report."""
        class DownStore:
            def list_active(self, model_id=None):
                raise StoreError("database is locked")

        scheduler = MonitoringScheduler(DownStore(), registry, alerter=alerter)
        try:
            report = scheduler.run_once(now=T0)
        finally:
            scheduler.close()
        assert not report.store_available
        assert report.results == []
        assert scheduler.status["run_count"] == 1
