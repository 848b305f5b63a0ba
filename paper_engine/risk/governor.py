"""Risk governor - position sizing, diversification and the circuit breaker.

CRITICAL: The governor is the single authority the engine consults before any
signal-driven trade. Changes here directly change how much capital is put at
risk per tick.
"""
from decimal import Decimal

import structlog

from paper_engine.core.exceptions import DrawdownBreach
from paper_engine.core.ledger import PortfolioLedger

logger = structlog.get_logger(__name__)


class RiskGovernor:
    """
    Policy functions over ledger state.

    The governor holds no state of its own: every decision is derived from
    the ledger's current portfolio and the configured limits, so identical
    inputs always produce identical outputs.

    HARD LIMITS:
    - Risk per trade: 1% of balance against a 2% stop distance
    - Max position value: 15% of balance
    - New pairs beyond min_pairs held are sized at half
    - Drawdown at or above 10% halts trading
    """

    DIVERSIFICATION_FACTOR = Decimal("0.5")

    def __init__(
        self,
        ledger: PortfolioLedger,
        risk_per_trade: Decimal = Decimal("0.01"),
        stop_loss_limit: Decimal = Decimal("0.02"),
        max_position_fraction: Decimal = Decimal("0.15"),
        min_pairs: int = 5,
    ):
        self.ledger = ledger
        self.risk_per_trade = risk_per_trade
        self.stop_loss_limit = stop_loss_limit
        self.max_position_fraction = max_position_fraction
        self.min_pairs = min_pairs

    def size_position(self, pair: str, price: Decimal) -> Decimal:
        """
        Calculate trade size from fixed fractional risk.

        size = (balance * risk_per_trade) / (price * stop_loss_limit), capped
        so that size * price <= balance * max_position_fraction. If at least
        min_pairs pairs are already held and this pair is not one of them,
        the size is halved.

        Args:
            pair: Pair to size
            price: Reference price

        Returns:
            Quantity in base units (0 if nothing can be traded)
        """
        portfolio = self.ledger.portfolio
        balance = portfolio.balance
        if price <= 0 or balance <= 0:
            return Decimal("0")

        risk_amount = balance * self.risk_per_trade
        stop_loss_distance = price * self.stop_loss_limit
        size = risk_amount / stop_loss_distance

        max_allowed_value = balance * self.max_position_fraction
        if size * price > max_allowed_value:
            size = max_allowed_value / price

        throttled = portfolio.active_pairs >= self.min_pairs and not portfolio.holds(pair)
        if throttled:
            size = size * self.DIVERSIFICATION_FACTOR

        logger.debug(
            "risk_governor.position_sized",
            pair=pair,
            price=str(price),
            size=str(size),
            active_pairs=portfolio.active_pairs,
            diversification_throttle=throttled,
        )
        return size

    def should_shutdown(self) -> bool:
        """True if the circuit breaker has tripped."""
        return self.ledger.should_shutdown()

    def ensure_trading_allowed(self):
        """
        Raise if trading must stop.

        Raises:
            DrawdownBreach: If drawdown has reached the limit
        """
        if self.should_shutdown():
            raise DrawdownBreach(self.ledger.portfolio.drawdown, self.ledger.drawdown_limit)
