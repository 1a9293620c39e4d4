# -*- coding: utf-8 -*-
"""DriftWatch central configuration.

All scheduler intervals, retry budgets and connection settings live here, so
no magic numbers are scattered across the monitoring modules.

Usage:
    from driftwatch.config import DEFAULT_CONFIG
    cfg = DEFAULT_CONFIG
    print(cfg.scheduler.max_workers)  # 4

    # Environment overrides (DRIFTWATCH_*)
    cfg = DriftWatchConfig.from_env()
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional


# ──────────────────────────────────────────────
# Database
# ──────────────────────────────────────────────

@dataclass
class DatabaseConfig:
    """Monitor store connection settings."""

    url: str = "sqlite:///./driftwatch.db"
    echo: bool = False
    busy_timeout_ms: int = 3000          # SQLite write contention wait


# ──────────────────────────────────────────────
# Scheduler
# ──────────────────────────────────────────────

@dataclass
class SchedulerConfig:
    """Cadence scheduler settings."""

    tick_interval_seconds: int = 300     # periodic driver interval
    max_workers: int = 4                 # concurrent monitor evaluations
    lease_ttl_seconds: int = 600         # per-monitor evaluation lease
    query_timeout_seconds: float = 30.0  # prediction log read timeout
    # Windows without data before the pointer is forced forward (None = never)
    max_pending_windows: Optional[int] = 3


# ──────────────────────────────────────────────
# Alert delivery
# ──────────────────────────────────────────────

@dataclass
class AlertConfig:
    """Notification channel settings."""

    max_attempts: int = 3
    backoff_base_seconds: float = 1.0
    backoff_max_seconds: float = 30.0
    webhook_timeout_seconds: float = 5.0
    smtp_host: Optional[str] = None
    smtp_port: int = 587
    smtp_sender: str = "driftwatch@localhost"
    smtp_username: Optional[str] = None
    smtp_password: Optional[str] = None
    smtp_use_tls: bool = True
    smtp_timeout_seconds: float = 10.0
    history_limit: int = 1000            # alerts kept in memory


# ──────────────────────────────────────────────
# Model registry
# ──────────────────────────────────────────────

@dataclass
class RegistryConfig:
    """Where model metadata documents are read from."""

    model_dir: Path = field(default_factory=lambda: Path("./models"))


# ──────────────────────────────────────────────
# Global configuration
# ──────────────────────────────────────────────

@dataclass
class DriftWatchConfig:
    """DriftWatch global configuration."""

    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    alerts: AlertConfig = field(default_factory=AlertConfig)
    registry: RegistryConfig = field(default_factory=RegistryConfig)
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "DriftWatchConfig":
        """Builds a configuration, overriding defaults from DRIFTWATCH_* variables."""
        env = os.environ if environ is None else environ
        cfg = cls()

        cfg.database.url = env.get("DRIFTWATCH_DATABASE_URL", cfg.database.url)
        cfg.log_level = env.get("DRIFTWATCH_LOG_LEVEL", cfg.log_level).upper()

        sched = cfg.scheduler
        sched.tick_interval_seconds = int(
            env.get("DRIFTWATCH_TICK_INTERVAL", sched.tick_interval_seconds)
        )
        sched.max_workers = int(env.get("DRIFTWATCH_MAX_WORKERS", sched.max_workers))
        sched.lease_ttl_seconds = int(
            env.get("DRIFTWATCH_LEASE_TTL", sched.lease_ttl_seconds)
        )
        sched.query_timeout_seconds = float(
            env.get("DRIFTWATCH_QUERY_TIMEOUT", sched.query_timeout_seconds)
        )
        pending = env.get("DRIFTWATCH_MAX_PENDING_WINDOWS")
        if pending is not None:
            sched.max_pending_windows = int(pending) if pending.strip() else None

        alerts = cfg.alerts
        alerts.max_attempts = int(env.get("DRIFTWATCH_ALERT_MAX_ATTEMPTS", alerts.max_attempts))
        alerts.history_limit = int(
            env.get("DRIFTWATCH_ALERT_HISTORY_LIMIT", alerts.history_limit)
        )
        alerts.smtp_host = env.get("DRIFTWATCH_SMTP_HOST", alerts.smtp_host)
        alerts.smtp_port = int(env.get("DRIFTWATCH_SMTP_PORT", alerts.smtp_port))
        alerts.smtp_sender = env.get("DRIFTWATCH_SMTP_SENDER", alerts.smtp_sender)
        alerts.smtp_username = env.get("DRIFTWATCH_SMTP_USERNAME", alerts.smtp_username)
        alerts.smtp_password = env.get("DRIFTWATCH_SMTP_PASSWORD", alerts.smtp_password)

        model_dir = env.get("DRIFTWATCH_MODEL_DIR")
        if model_dir:
            cfg.registry.model_dir = Path(model_dir)

        return cfg


# Default instance, usable straight after import
DEFAULT_CONFIG = DriftWatchConfig()
