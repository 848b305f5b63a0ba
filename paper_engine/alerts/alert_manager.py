"""Alert sink - keeps recent alerts and dispatches notifications."""
from collections import deque
from typing import Callable, Deque, List, Optional, Union

import structlog

from paper_engine.core.models import Alert, AlertCategory, AlertSeverity

logger = structlog.get_logger(__name__)

AlertDispatcher = Callable[[Alert], None]


class AlertManager:
    """
    In-memory alert store with pluggable notification dispatch.

    Alerts are kept in a bounded buffer (oldest dropped first). Each alert is
    routed to the structured log according to severity, then handed to any
    registered dispatchers (email/SMS/webhook transports). Sending is
    fire-and-forget: dispatcher failures are logged and swallowed.
    """

    DEFAULT_HISTORY_SIZE = 100

    def __init__(
        self,
        history_size: int = DEFAULT_HISTORY_SIZE,
        dispatchers: Optional[List[AlertDispatcher]] = None,
    ):
        self._alerts: Deque[Alert] = deque(maxlen=history_size)
        self._dispatchers: List[AlertDispatcher] = list(dispatchers or [])

    def add_dispatcher(self, dispatcher: AlertDispatcher):
        """Register an additional notification transport."""
        self._dispatchers.append(dispatcher)

    def send_alert(
        self,
        category: Union[AlertCategory, str],
        message: str,
        severity: Union[AlertSeverity, str] = AlertSeverity.INFO,
    ) -> Alert:
        """Record an alert and dispatch it."""
        alert = Alert(
            category=AlertCategory(category),
            message=message,
            severity=AlertSeverity(severity),
        )
        self._alerts.append(alert)
        self._dispatch(alert)
        return alert

    def get_recent_alerts(self, limit: Optional[int] = None) -> List[Alert]:
        """
        Most recent alerts in chronological order (oldest first).

        Args:
            limit: Maximum number of alerts to return (None = all stored)
        """
        alerts = list(self._alerts)
        if limit is None:
            return alerts
        if limit <= 0:
            return []
        return alerts[-limit:]

    def clear(self):
        self._alerts.clear()

    def __len__(self) -> int:
        return len(self._alerts)

    def _dispatch(self, alert: Alert):
        if alert.severity == AlertSeverity.CRITICAL:
            logger.critical(
                "alert.sms_email", category=alert.category.value, message=alert.message
            )
        elif alert.severity == AlertSeverity.WARNING:
            logger.warning(
                "alert.email", category=alert.category.value, message=alert.message
            )
        else:
            logger.info("alert.log", category=alert.category.value, message=alert.message)

        for dispatcher in self._dispatchers:
            try:
                dispatcher(alert)
            except Exception as e:
                logger.error(
                    "alert.dispatch_failed",
                    alert_id=alert.id,
                    dispatcher=getattr(dispatcher, "__name__", repr(dispatcher)),
                    error=str(e),
                )
