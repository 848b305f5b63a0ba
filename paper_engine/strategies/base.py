"""Base class for all signal sources."""
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Any, Dict, List, Mapping

import structlog

from paper_engine.core.models import Signal, SignalAction, Ticker

logger = structlog.get_logger(__name__)


class BaseSignalSource(ABC):
    """Abstract base class for signal sources consumed by the engine."""

    def __init__(self, name: str, **kwargs):
        self.name = name
        self.params = kwargs
        self.is_active = True
        self.logger = logger.bind(signal_source=name)

        # Track signal statistics
        self.signals_generated = 0
        self.actionable_signals = 0

    @abstractmethod
    def generate_signals(self, snapshot: Mapping[str, Ticker]) -> List[Signal]:
        """
        Analyze a market snapshot and generate trading signals.

        Args:
            snapshot: Mapping of pair -> latest ticker

        Returns:
            List of Signal objects
        """
        pass

    async def update_sentiment(self):
        """Refresh any cached sentiment. No-op unless overridden."""
        return None

    def get_stats(self) -> Dict[str, Any]:
        """Get signal source statistics."""
        return {
            'name': self.name,
            'is_active': self.is_active,
            'signals_generated': self.signals_generated,
            'actionable_signals': self.actionable_signals,
        }

    def pause(self):
        """Pause the signal source."""
        self.is_active = False
        self.logger.info("signal_source.paused")

    def resume(self):
        """Resume the signal source."""
        self.is_active = True
        self.logger.info("signal_source.resumed")

    def _create_signal(
        self,
        pair: str,
        action: SignalAction,
        price: Decimal,
        confidence: float = 0.5,
        sentiment_score: float = 0.0,
    ) -> Signal:
        """Helper to create a signal and update counters."""
        signal = Signal(
            pair=pair,
            action=action,
            price=price,
            confidence=confidence,
            sentiment_score=sentiment_score,
        )
        self.signals_generated += 1
        if signal.is_actionable:
            self.actionable_signals += 1
        return signal
