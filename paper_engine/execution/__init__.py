"""Simulated trade execution."""

from paper_engine.execution.executor import SlippageModel, TradeExecutor, TradeLog

__all__ = [
    "SlippageModel",
    "TradeExecutor",
    "TradeLog",
]
