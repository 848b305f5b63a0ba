"""
Signal sources for the paper trading engine.

- BaseSignalSource: interface the engine consumes each tick
- SentimentAnalyzer: per-pair sentiment cache refreshed periodically
- SentimentSignalGenerator: technical factor blended with sentiment
"""

from paper_engine.strategies.base import BaseSignalSource
from paper_engine.strategies.sentiment import SentimentAnalyzer, SentimentSignalGenerator

__all__ = [
    "BaseSignalSource",
    "SentimentAnalyzer",
    "SentimentSignalGenerator",
]
