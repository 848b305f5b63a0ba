"""Exception types for the paper trading engine."""

from decimal import Decimal
from typing import Optional


class PaperEngineError(Exception):
    """Base class for engine errors."""


class InsufficientFunds(PaperEngineError):
    """Raised when a BUY costs more than the available balance."""

    def __init__(self, pair: str, required: Decimal, available: Decimal):
        super().__init__(
            f"Insufficient funds for {pair}: required {required}, available {available}"
        )
        self.pair = pair
        self.required = required
        self.available = available


class InsufficientPosition(PaperEngineError):
    """Raised when a SELL exceeds the held amount."""

    def __init__(self, pair: str, requested: Decimal, held: Decimal):
        super().__init__(
            f"Insufficient position in {pair}: requested {requested}, held {held}"
        )
        self.pair = pair
        self.requested = requested
        self.held = held


class MarketDataUnavailable(PaperEngineError):
    """Raised when market data cannot be refreshed from the exchange."""

    def __init__(self, source: str, original: Optional[BaseException] = None):
        super().__init__(f"Market data unavailable from {source}: {original}")
        self.source = source
        self.original = original


class DrawdownBreach(PaperEngineError):
    """Raised when drawdown reaches the circuit breaker limit."""

    def __init__(self, drawdown: Decimal, limit: Decimal):
        super().__init__(
            f"Max drawdown limit reached: {drawdown * 100:.2f}% >= {limit * 100:.2f}%"
        )
        self.drawdown = drawdown
        self.limit = limit


class TickFailure(PaperEngineError):
    """Unexpected error raised while running a tick."""

    def __init__(self, tick: int, original: BaseException):
        super().__init__(f"Tick {tick} failed: {original}")
        self.tick = tick
        self.original = original
