"""Alerting for the paper trading engine."""

from paper_engine.alerts.alert_manager import AlertDispatcher, AlertManager

__all__ = [
    "AlertManager",
    "AlertDispatcher",
]
