"""Exchange integration module for the paper trading engine."""

from paper_engine.exchange.market_data import (
    ExchangeConnector,
    RetryConfig,
    with_retry,
)

__all__ = [
    "ExchangeConnector",
    "RetryConfig",
    "with_retry",
]
