# -*- coding: utf-8 -*-
"""Cadence scheduler.

On every tick:
1. lists the active monitors from the store,
2. for each monitor whose cadence window has closed, takes the monitor's
   evaluation lease and computes the metric over the latest closed window,
3. compares it against the training baseline,
4. records the evaluation (moving the window pointer) and, on breach, fans
   the alert out to the monitor's channels.

Monitors are evaluated in parallel on a bounded thread pool. A failure on
one monitor is logged and never stops the others.
"""

from __future__ import annotations

import logging
import os
import socket
import time
import uuid
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout, as_completed
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Callable, Dict, List, Optional

from driftwatch.config import SchedulerConfig
from driftwatch.errors import DataUnavailable, StoreError
from driftwatch.monitoring.alerter import Alert, Alerter, AlertLevel, DeliveryResult
from driftwatch.monitoring.cadence import (
    Window,
    completed_windows,
    latest_completed_window,
    to_naive_utc,
    utc_now,
)
from driftwatch.monitoring.evaluator import (
    EvaluationStatus,
    Outcome,
    ThresholdResult,
    evaluate_threshold,
)
from driftwatch.monitoring.metrics import compute_metric, summarize_window
from driftwatch.monitoring.types import Monitor, ThresholdMode

if TYPE_CHECKING:
    from driftwatch.connectors.base import ModelMetadataProvider
    from driftwatch.store.repository import MonitorStore

logger = logging.getLogger("driftwatch.monitoring.scheduler")


class RunState(str, Enum):
    """What happened to one monitor during a tick."""
    NOT_DUE = "not_due"
    LEASED = "leased"            # another worker holds the lease
    NO_DATA = "no_data"          # skipped, pointer unchanged
    TIMEOUT = "timeout"          # prediction query timed out, pointer unchanged
    EXPIRED = "expired"          # no data past the pending horizon, pointer advanced
    EVALUATED = "evaluated"
    INDETERMINATE = "indeterminate"
    DISCARDED = "discarded"      # monitor deleted or pointer moved meanwhile
    ERROR = "error"


@dataclass
class MonitorRunResult:
    """Result of evaluating one monitor in one tick."""
    monitor_id: str
    state: RunState
    window: Optional[Window] = None
    metric_value: Optional[float] = None
    result: Optional[ThresholdResult] = None
    evaluation_id: Optional[int] = None
    deliveries: List[DeliveryResult] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def breached(self) -> bool:
        return self.result is not None and self.result.breached


@dataclass
class TickReport:
    """Summary of a scheduler tick."""
    now: datetime
    results: List[MonitorRunResult] = field(default_factory=list)
    store_available: bool = True

    def count(self, state: RunState) -> int:
        return sum(1 for r in self.results if r.state is state)

    @property
    def counts(self) -> Dict[str, int]:
        return {state.value: self.count(state) for state in RunState if self.count(state)}

    def for_monitor(self, monitor_id: str) -> Optional[MonitorRunResult]:
        return next((r for r in self.results if r.monitor_id == monitor_id), None)


def format_variance(variance: float, mode: ThresholdMode) -> str:
    if mode is ThresholdMode.PERCENTAGE:
        return f"{variance:+.2%}"
    return f"{variance:+.4f}"


class MonitoringScheduler:
    """Drift monitor scheduler.

    Usage:
        scheduler = MonitoringScheduler(
            store=MonitorStore.from_config(cfg.database),
            metadata=JsonModelRegistry(cfg.registry.model_dir),
            alerter=Alerter(cfg.alerts),
            config=cfg.scheduler,
        )
        scheduler.start()      # blocking loop
        # or
        scheduler.run_once()   # single tick
    """

    def __init__(
        self,
        store: "MonitorStore",
        metadata: "ModelMetadataProvider",
        alerter: Optional[Alerter] = None,
        config: Optional[SchedulerConfig] = None,
        worker_id: Optional[str] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        """
        Args:
            store: monitor store (the only shared state between workers).
            metadata: read-only model metadata accessor.
            alerter: alert dispatcher (stdout-only Alerter if None).
            config: scheduler settings.
            worker_id: lease owner prefix (host:pid if None).
            clock: returns the current naive UTC time.
        """
        self.store = store
        self.metadata = metadata
        self.alerter = alerter or Alerter()
        self.config = config or SchedulerConfig()
        self.worker_id = worker_id or f"{socket.gethostname()}:{os.getpid()}"
        self._clock = clock

        self._query_pool = ThreadPoolExecutor(
            max_workers=max(1, self.config.max_workers),
            thread_name_prefix="driftwatch-query",
        )
        self._running = False
        self._run_count = 0
        self._last_report: Optional[TickReport] = None

    # ──────────────────────────────────────────────
    # Tick
    # ──────────────────────────────────────────────

    def run_once(self, now: Optional[datetime] = None) -> TickReport:
        """Runs one tick over every active monitor."""
        now = to_naive_utc(now) if now else self._clock()
        self._run_count += 1
        report = TickReport(now=now)

        try:
            monitors = self.store.list_active()
        except StoreError as e:
            logger.error("Tick #%d skipped: monitor store unavailable: %s", self._run_count, e)
            report.store_available = False
            self._last_report = report
            return report

        logger.info("Tick #%d at %s: %d monitor(s)", self._run_count, now.isoformat(), len(monitors))
        if monitors:
            with ThreadPoolExecutor(
                max_workers=max(1, self.config.max_workers),
                thread_name_prefix="driftwatch-eval",
            ) as pool:
                futures = {pool.submit(self.evaluate_monitor, m.id, now): m.id for m in monitors}
                for future in as_completed(futures):
                    monitor_id = futures[future]
                    try:
                        report.results.append(future.result())
                    except Exception as e:
                        logger.exception("Monitor %s evaluation crashed", monitor_id)
                        report.results.append(MonitorRunResult(monitor_id, RunState.ERROR, error=str(e)))

        logger.info("Tick #%d done: %s", self._run_count, report.counts or "nothing to do")
        self._last_report = report
        return report

    def evaluate_monitor(self, monitor_id: str, now: datetime) -> MonitorRunResult:
        """Evaluates one monitor under its lease. Never raises."""
        owner = f"{self.worker_id}/{uuid.uuid4().hex[:8]}"
        try:
            acquired = self.store.acquire_lease(
                monitor_id, owner, self.config.lease_ttl_seconds, now=now,
            )
        except StoreError as e:
            logger.error("Lease for monitor %s unavailable: %s", monitor_id, e)
            return MonitorRunResult(monitor_id, RunState.ERROR, error=str(e))
        if not acquired:
            logger.debug("Monitor %s is leased by another worker", monitor_id)
            return MonitorRunResult(monitor_id, RunState.LEASED)

        try:
            return self._evaluate_leased(monitor_id, now)
        except Exception as e:
            logger.exception("Evaluation of monitor %s failed", monitor_id)
            return MonitorRunResult(monitor_id, RunState.ERROR, error=str(e))
        finally:
            try:
                self.store.release_lease(monitor_id, owner)
            except StoreError as e:
                # the lease expires on its own
                logger.warning("Could not release lease on monitor %s: %s", monitor_id, e)

    def _evaluate_leased(self, monitor_id: str, now: datetime) -> MonitorRunResult:
        # re-read under the lease: the pointer may have moved since listing
        monitor = self.store.get(monitor_id)
        if monitor is None:
            return MonitorRunResult(monitor_id, RunState.DISCARDED)

        pointer = monitor.last_evaluated_window_end
        window = latest_completed_window(pointer, now, monitor.cadence)
        if window is None:
            return MonitorRunResult(monitor_id, RunState.NOT_DUE)

        meta = self.metadata.get_model_metadata(monitor.model_id)
        metric = monitor.threshold.metric
        baseline = meta.baseline_for(metric)

        try:
            predictions = self._fetch_predictions(monitor, window)
        except FutureTimeout:
            logger.warning(
                "Monitor %s: prediction query for %s..%s timed out after %.1fs",
                monitor_id, window[0], window[1], self.config.query_timeout_seconds,
            )
            return MonitorRunResult(monitor_id, RunState.TIMEOUT, window=window)

        try:
            value = compute_metric(meta.task_type, metric, predictions, meta.positive_class)
        except DataUnavailable as e:
            return self._handle_no_data(monitor, window, now, str(e), predictions)

        result = evaluate_threshold(value.value, baseline, monitor.threshold)
        status = (
            EvaluationStatus.INDETERMINATE
            if result.outcome is Outcome.INDETERMINATE
            else EvaluationStatus.EVALUATED
        )
        record = self.store.record_evaluation(
            monitor_id,
            expected_pointer=pointer,
            window_start=window[0],
            window_end=window[1],
            status=status,
            result=result,
            metric_value=value.value,
            baseline_value=baseline,
            sample_count=value.sample_count,
            now=now,
        )
        if record is None:
            return MonitorRunResult(
                monitor_id, RunState.DISCARDED, window=window, metric_value=value.value, result=result,
            )

        run = MonitorRunResult(
            monitor_id,
            RunState.INDETERMINATE if status is EvaluationStatus.INDETERMINATE else RunState.EVALUATED,
            window=window,
            metric_value=value.value,
            result=result,
            evaluation_id=record.id,
        )
        if status is EvaluationStatus.INDETERMINATE:
            logger.info(
                "Monitor %s window %s..%s inconclusive: %s baseline is 0",
                monitor_id, window[0], window[1], metric.value,
            )
        elif result.breached:
            run.deliveries = self._dispatch(monitor, window, value.value, baseline, result, record.alert_id)
        else:
            logger.info(
                "Monitor %s window %s..%s ok: %s=%.6f (baseline %.6f, variance %s)",
                monitor_id, window[0], window[1], metric.value, value.value, baseline,
                format_variance(result.variance, monitor.threshold.mode),
            )
        return run

    def _fetch_predictions(self, monitor: Monitor, window: Window):
        future = self._query_pool.submit(
            self.store.query_predictions, monitor.model_id, window[0], window[1],
        )
        return future.result(timeout=self.config.query_timeout_seconds)

    def _handle_no_data(
        self,
        monitor: Monitor,
        window: Window,
        now: datetime,
        reason: str,
        predictions,
    ) -> MonitorRunResult:
        """Skips the window, or expires it once the pending horizon is reached."""
        pending = completed_windows(monitor.last_evaluated_window_end, now, monitor.cadence)
        horizon = self.config.max_pending_windows
        if horizon is None or pending < horizon:
            logger.info(
                "Monitor %s window %s..%s skipped (%s; %s)",
                monitor.id, window[0], window[1], reason, summarize_window(predictions),
            )
            return MonitorRunResult(monitor.id, RunState.NO_DATA, window=window)

        record = self.store.record_evaluation(
            monitor.id,
            expected_pointer=monitor.last_evaluated_window_end,
            window_start=window[0],
            window_end=window[1],
            status=EvaluationStatus.EXPIRED,
            now=now,
        )
        if record is None:
            return MonitorRunResult(monitor.id, RunState.DISCARDED, window=window)
        logger.warning(
            "Monitor %s: no usable data for %d window(s); pointer moved to %s",
            monitor.id, pending, window[1],
        )
        return MonitorRunResult(monitor.id, RunState.EXPIRED, window=window, evaluation_id=record.id)

    def _dispatch(
        self,
        monitor: Monitor,
        window: Window,
        value: float,
        baseline: float,
        result: ThresholdResult,
        alert_id: Optional[int],
    ) -> List[DeliveryResult]:
        """Fans out a breach alert. Runs after the pointer is committed."""
        metric = monitor.threshold.metric
        variance = format_variance(result.variance, monitor.threshold.mode)
        alert = Alert(
            level=AlertLevel.WARNING,
            title=f"{monitor.title}: {metric.label} drift ({result.direction.value})",
            message=(
                f"{metric.label} was {value:.4f} for {window[0].isoformat()} to "
                f"{window[1].isoformat()}, baseline {baseline:.4f}, variance {variance}."
            ),
            metadata={
                "monitor_id": monitor.id,
                "model_id": monitor.model_id,
                "metric": metric.value,
                "mode": monitor.threshold.mode.value,
                "window_start": window[0].isoformat(),
                "window_end": window[1].isoformat(),
                "current_value": value,
                "baseline_value": baseline,
                "variance": result.variance,
                "direction": result.direction.value,
            },
        )
        try:
            deliveries = self.alerter.send(alert, monitor.methods)
        except Exception:
            logger.exception("Alert dispatch for monitor %s failed", monitor.id)
            return []

        if alert_id is not None:
            try:
                self.store.record_deliveries(alert_id, [d.to_dict() for d in deliveries])
            except StoreError as e:
                logger.warning("Could not record deliveries for alert %s: %s", alert_id, e)
        return deliveries

    # ──────────────────────────────────────────────
    # Loop
    # ──────────────────────────────────────────────

    def start(self, max_runs: Optional[int] = None) -> None:
        """Runs ticks until stopped (blocking).

        Args:
            max_runs: maximum number of ticks (None = unlimited).
        """
        self._running = True
        logger.info(
            "Scheduler %s started (tick every %ds, %d worker(s))",
            self.worker_id, self.config.tick_interval_seconds, self.config.max_workers,
        )
        runs = 0
        try:
            while self._running:
                self.run_once()
                runs += 1
                if max_runs and runs >= max_runs:
                    logger.info("Reached max runs (%d); stopping.", max_runs)
                    break
                time.sleep(self.config.tick_interval_seconds)
        except KeyboardInterrupt:
            logger.info("Scheduler interrupted.")
        finally:
            self._running = False

    def stop(self) -> None:
        """Requests the loop to stop after the current tick."""
        self._running = False
        logger.info("Scheduler stop requested.")

    def close(self) -> None:
        self._query_pool.shutdown(wait=False)

    @property
    def status(self) -> dict:
        """Current scheduler state."""
        last = self._last_report
        return {
            "running": self._running,
            "run_count": self._run_count,
            "worker_id": self.worker_id,
            "max_workers": self.config.max_workers,
            "tick_interval_seconds": self.config.tick_interval_seconds,
            "last_tick": last.now.isoformat() if last else None,
            "last_counts": last.counts if last else {},
            "alert_history_count": len(self.alerter.history),
        }
