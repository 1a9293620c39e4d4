# -*- coding: utf-8 -*-
"""Alert dispatcher (Alerter).

Delivers a breach notification to every channel configured on a monitor:
stdout (log line), email (SMTP) and webhook (HTTP POST). Channels are
independent: one failing never stops the others, and failures are returned
as DeliveryResult values instead of being raised.
"""

import logging
import random
import smtplib
import time
from collections import deque
from dataclasses import dataclass, field
from email.message import EmailMessage
from enum import Enum
from typing import Any, Callable, Deque, Dict, List, Optional, Sequence

import requests

from driftwatch.config import AlertConfig
from driftwatch.errors import DeliveryFailure
from driftwatch.monitoring.cadence import utc_now
from driftwatch.monitoring.types import AlertMethod, MethodKind

logger = logging.getLogger("driftwatch.monitoring.alerter")


class AlertLevel(Enum):
    """Alert severity."""
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


@dataclass
class Alert:
    """Alert message.

    Attributes:
        level: INFO / WARNING / CRITICAL.
        title: short headline.
        message: detail text.
        timestamp: creation time (naive UTC, ISO 8601).
        metadata: structured context (monitor id, window, variance, ...).
    """
    level: AlertLevel
    title: str
    message: str
    timestamp: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if not self.timestamp:
            self.timestamp = utc_now().isoformat()

    def to_payload(self) -> Dict[str, Any]:
        return {
            "level": self.level.value,
            "title": self.title,
            "message": self.message,
            "timestamp": self.timestamp,
            "metadata": self.metadata,
        }


@dataclass
class DeliveryResult:
    """Outcome of one channel delivery."""
    method: AlertMethod
    delivered: bool
    attempts: int = 0
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "method": self.method.kind.value,
            "target": self.method.target,
            "delivered": self.delivered,
            "attempts": self.attempts,
            "error": self.error,
        }


class Alerter:
    """Multi-channel alert dispatcher.

    Usage:
        alerter = Alerter(AlertConfig(smtp_host="smtp.example.com"))
        results = alerter.send(
            Alert(level=AlertLevel.WARNING, title="Accuracy drift", message="..."),
            monitor.methods,
        )
    """

    def __init__(
        self,
        config: Optional[AlertConfig] = None,
        sleep: Callable[[float], None] = time.sleep,
        session: Optional[requests.Session] = None,
    ):
        """
        Args:
            config: retry budget, timeouts and SMTP settings.
            sleep: backoff sleep function (replaced in tests).
            session: HTTP session for webhooks (module-level requests if None).
        """
        self.config = config or AlertConfig()
        self._sleep = sleep
        self._http = session or requests
        self._history: Deque[Alert] = deque(maxlen=max(1, self.config.history_limit))

    def send(self, alert: Alert, methods: Sequence[AlertMethod]) -> List[DeliveryResult]:
        """Delivers the alert to each method, in order, independently."""
        self._history.append(alert)
        results = []
        for method in methods:
            if method.kind is MethodKind.STDOUT:
                results.append(self._send_log(alert, method))
            elif method.kind is MethodKind.EMAIL:
                results.append(self._with_retry(method, lambda m=method: self._send_email(alert, m)))
            elif method.kind is MethodKind.WEBHOOK:
                results.append(self._with_retry(method, lambda m=method: self._send_webhook(alert, m)))

        for result in results:
            if not result.delivered:
                logger.warning(
                    "Alert delivery via %s failed after %d attempt(s): %s",
                    result.method.describe(), result.attempts, result.error,
                )
        return results

    def get_backoff_seconds(self, attempt: int) -> float:
        """Exponential backoff with jitter."""
        delay = min(
            self.config.backoff_base_seconds * (2 ** (attempt - 1)),
            self.config.backoff_max_seconds,
        )
        return delay + random.uniform(0, delay * 0.1)

    def _with_retry(self, method: AlertMethod, deliver: Callable[[], None]) -> DeliveryResult:
        max_attempts = max(1, self.config.max_attempts)
        error: Optional[str] = None
        for attempt in range(1, max_attempts + 1):
            try:
                deliver()
                return DeliveryResult(method, delivered=True, attempts=attempt)
            except DeliveryFailure as e:
                error = str(e)
                if not e.retryable:
                    return DeliveryResult(method, delivered=False, attempts=attempt, error=error)
                if attempt < max_attempts:
                    logger.info(
                        "Retry %d/%d for %s: %s", attempt, max_attempts, method.describe(), e,
                    )
                    self._sleep(self.get_backoff_seconds(attempt))
        return DeliveryResult(method, delivered=False, attempts=max_attempts, error=error)

    def _send_log(self, alert: Alert, method: AlertMethod) -> DeliveryResult:
        """Writes the alert as a log line. Never raises."""
        level_map = {
            AlertLevel.INFO: logging.INFO,
            AlertLevel.WARNING: logging.WARNING,
            AlertLevel.CRITICAL: logging.CRITICAL,
        }
        try:
            logger.log(
                level_map.get(alert.level, logging.INFO),
                "[%s] %s: %s",
                alert.level.value.upper(),
                alert.title,
                alert.message,
            )
        except Exception as e:
            return DeliveryResult(method, delivered=False, attempts=1, error=str(e))
        return DeliveryResult(method, delivered=True, attempts=1)

    def _send_webhook(self, alert: Alert, method: AlertMethod) -> None:
        """POSTs the alert as JSON."""
        try:
            response = self._http.post(
                method.target,
                json=alert.to_payload(),
                timeout=self.config.webhook_timeout_seconds,
            )
            response.raise_for_status()
        except requests.RequestException as e:
            raise DeliveryFailure(f"webhook {method.target}: {e}") from e
        logger.info("Webhook alert delivered to %s", method.target)

    def _send_email(self, alert: Alert, method: AlertMethod) -> None:
        """Sends the alert through the configured SMTP server."""
        cfg = self.config
        if not cfg.smtp_host:
            raise DeliveryFailure("SMTP host is not configured", retryable=False)

        msg = EmailMessage()
        msg["Subject"] = f"[{alert.level.value.upper()}] {alert.title}"
        msg["From"] = cfg.smtp_sender
        msg["To"] = method.target
        body = [alert.message, ""]
        body.extend(f"{k}: {v}" for k, v in alert.metadata.items())
        msg.set_content("\n".join(body))

        try:
            with smtplib.SMTP(cfg.smtp_host, cfg.smtp_port, timeout=cfg.smtp_timeout_seconds) as smtp:
                if cfg.smtp_use_tls:
                    smtp.starttls()
                if cfg.smtp_username:
                    smtp.login(cfg.smtp_username, cfg.smtp_password or "")
                smtp.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            raise DeliveryFailure(f"email {method.target}: {e}") from e
        logger.info("Email alert delivered to %s", method.target)

    @property
    def history(self) -> List[Alert]:
        """Most recent alerts, oldest first (at most `history_limit`)."""
        return list(self._history)
