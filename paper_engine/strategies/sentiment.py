"""Sentiment analyzer and sentiment-weighted signal generator.

The analyzer stands in for news/social scraping plus NLP scoring: each
refresh moves every pair's score by a bounded random step, clamped to
[-1, 1]. The generator blends a technical factor with that score.
"""
import random
from typing import Dict, List, Mapping, Optional

import structlog

from paper_engine.core.models import Signal, SignalAction, Ticker
from paper_engine.strategies.base import BaseSignalSource

logger = structlog.get_logger(__name__)


class SentimentAnalyzer:
    """Per-pair sentiment cache in [-1, 1], neutral (0) initially."""

    def __init__(
        self,
        pairs: List[str],
        step: float = 0.2,
        rng: Optional[random.Random] = None,
    ):
        self.pairs = list(pairs)
        self.step = step
        self.rng = rng or random.Random()
        self._sentiments: Dict[str, float] = {pair: 0.0 for pair in self.pairs}

    async def fetch_sentiment(self) -> Dict[str, float]:
        """Refresh and return all sentiment scores."""
        for pair in self.pairs:
            change = (self.rng.random() - 0.5) * self.step
            new_sentiment = self._sentiments.get(pair, 0.0) + change
            self._sentiments[pair] = max(-1.0, min(1.0, new_sentiment))
        logger.debug("sentiment.refreshed", sentiments=self._sentiments)
        return dict(self._sentiments)

    def get_sentiment(self, pair: str) -> float:
        return self._sentiments.get(pair, 0.0)


class SentimentSignalGenerator(BaseSignalSource):
    """
    Signal source combining a technical factor with sentiment.

    score = technical + sentiment * sentiment_weight
    - score > 0.85: BUY, confidence 0.80 + (score - 0.85), capped at 1
    - score < 0.15: SELL, confidence 0.80 + (0.15 - score), capped at 1
    - otherwise: HOLD with low confidence
    """

    BUY_THRESHOLD = 0.85
    SELL_THRESHOLD = 0.15
    BASE_CONFIDENCE = 0.80
    HOLD_CONFIDENCE_CAP = 0.8

    def __init__(
        self,
        analyzer: SentimentAnalyzer,
        sentiment_weight: float = 0.3,
        rng: Optional[random.Random] = None,
        name: str = "sentiment",
    ):
        super().__init__(name=name, sentiment_weight=sentiment_weight)
        self.analyzer = analyzer
        self.sentiment_weight = sentiment_weight
        self.rng = rng or random.Random()

    async def update_sentiment(self):
        await self.analyzer.fetch_sentiment()

    def technical_factor(self, pair: str, ticker: Ticker) -> float:
        """Technical score in [0, 1). Override to plug in a real model."""
        return self.rng.random()

    def generate_signals(self, snapshot: Mapping[str, Ticker]) -> List[Signal]:
        if not self.is_active:
            return []

        signals: List[Signal] = []
        for pair, ticker in snapshot.items():
            if ticker is None or not ticker.last:
                continue

            sentiment = self.analyzer.get_sentiment(pair)
            combined_score = self.technical_factor(pair, ticker) + sentiment * self.sentiment_weight

            if combined_score > self.BUY_THRESHOLD:
                action = SignalAction.BUY
                confidence = min(1.0, self.BASE_CONFIDENCE + (combined_score - self.BUY_THRESHOLD))
            elif combined_score < self.SELL_THRESHOLD:
                action = SignalAction.SELL
                confidence = min(1.0, self.BASE_CONFIDENCE + (self.SELL_THRESHOLD - combined_score))
            else:
                action = SignalAction.HOLD
                confidence = self.rng.random() * self.HOLD_CONFIDENCE_CAP

            signals.append(
                self._create_signal(
                    pair=pair,
                    action=action,
                    price=ticker.last,
                    confidence=confidence,
                    sentiment_score=sentiment,
                )
            )

        return signals
