"""Portfolio ledger - balance, positions, PnL and drawdown accounting.

The ledger owns the single mutable Portfolio of a running engine. Every
mutation goes through this class, called from the tick that currently owns
the pipeline; readers get deep copies via snapshot().
"""
from decimal import Decimal
from typing import Dict, Mapping, Optional

import structlog

from paper_engine.core.exceptions import InsufficientFunds, InsufficientPosition
from paper_engine.core.models import (
    POSITION_EPSILON,
    AlertCategory,
    AlertSeverity,
    Portfolio,
    PositionState,
    Ticker,
    utc_now,
)

logger = structlog.get_logger(__name__)

HUNDRED = Decimal("100")
BASE_SHARPE = Decimal("1.5")
SHARPE_SLOPE = Decimal("0.05")


def mark_to_market(portfolio: Portfolio, snapshot: Mapping[str, Ticker]) -> Decimal:
    """Calculate equity as cash plus the market value of all positions.

    Positions without a price in the snapshot are valued at their average
    entry price.

    Args:
        portfolio: Portfolio to value
        snapshot: Mapping of pair -> latest ticker

    Returns:
        Total equity
    """
    equity = portfolio.balance
    for pair, position in portfolio.positions.items():
        ticker = snapshot.get(pair)
        price = ticker.last if ticker is not None else position.avg_entry_price
        equity += position.amount * price
    return equity


class PortfolioLedger:
    """
    Accounting for the paper portfolio.

    Responsibilities:
    - Mark-to-market valuation and drawdown tracking
    - The drawdown shutdown predicate
    - Applying buy and sell fills to cash and positions
    - Win rate and heuristic Sharpe statistics
    """

    def __init__(
        self,
        initial_balance: Decimal,
        target_allocations: Optional[Dict[str, Decimal]] = None,
        drawdown_limit: Decimal = Decimal("0.10"),
        drawdown_warning_ratio: Decimal = Decimal("0.8"),
        alert_manager=None,
    ):
        self.portfolio = Portfolio(
            balance=initial_balance,
            initial_balance=initial_balance,
            equity=initial_balance,
            target_allocations=dict(target_allocations or {}),
        )
        self.drawdown_limit = drawdown_limit
        self.drawdown_warning_ratio = drawdown_warning_ratio
        self.alert_manager = alert_manager

    # === Valuation ===

    def equity(self, snapshot: Mapping[str, Ticker]) -> Decimal:
        """Current equity at snapshot prices."""
        return mark_to_market(self.portfolio, snapshot)

    def valuate(self, snapshot: Mapping[str, Ticker]) -> Decimal:
        """
        Revalue the portfolio and update drawdown statistics.

        Drawdown is measured against max(initial balance, current equity), so
        it only reflects shortfall below the starting balance.

        Args:
            snapshot: Mapping of pair -> latest ticker

        Returns:
            Current equity
        """
        portfolio = self.portfolio
        current_equity = mark_to_market(portfolio, snapshot)

        peak_equity = max(portfolio.initial_balance, current_equity)
        drawdown = (peak_equity - current_equity) / peak_equity
        # Equity can only go negative through a bad snapshot; keep the fraction bounded
        drawdown = min(max(drawdown, Decimal("0")), Decimal("1"))

        portfolio.drawdown = drawdown
        if drawdown > portfolio.max_drawdown:
            portfolio.max_drawdown = drawdown

        portfolio.pnl = current_equity - portfolio.initial_balance
        portfolio.equity = current_equity
        portfolio.updated_at = utc_now()

        if drawdown >= self.drawdown_limit * self.drawdown_warning_ratio:
            logger.warning(
                "ledger.drawdown_warning",
                drawdown=str(drawdown),
                limit=str(self.drawdown_limit),
            )
            self._alert(
                AlertCategory.RISK,
                f"Drawdown nearing threshold: {drawdown * HUNDRED:.2f}%",
                AlertSeverity.WARNING,
            )

        return current_equity

    def should_shutdown(self) -> bool:
        """True if the drawdown has reached the circuit breaker limit."""
        drawdown = self.portfolio.drawdown
        if drawdown >= self.drawdown_limit:
            logger.critical(
                "ledger.drawdown_limit_reached",
                drawdown=str(drawdown),
                limit=str(self.drawdown_limit),
            )
            self._alert(
                AlertCategory.RISK,
                f"Max drawdown limit reached: {drawdown * HUNDRED:.2f}%. Shutting down.",
                AlertSeverity.CRITICAL,
            )
            return True
        return False

    # === Fills ===

    def apply_buy(self, pair: str, price: Decimal, amount: Decimal) -> PositionState:
        """
        Debit cash and add to a position.

        Raises:
            InsufficientFunds: If the fill costs more than the balance
        """
        portfolio = self.portfolio
        cost = price * amount
        if portfolio.balance < cost:
            raise InsufficientFunds(pair, cost, portfolio.balance)

        portfolio.balance = portfolio.balance - cost

        position = portfolio.positions.get(pair)
        if position is None:
            position = PositionState()
            portfolio.positions[pair] = position

        total_value = position.amount * position.avg_entry_price + cost
        position.amount = position.amount + amount
        position.avg_entry_price = total_value / position.amount
        return position

    def apply_sell(self, pair: str, price: Decimal, amount: Decimal) -> Decimal:
        """
        Credit cash, reduce a position and record the realized PnL.

        Returns:
            Realized PnL of the fill

        Raises:
            InsufficientPosition: If the pair is not held or amount exceeds it
        """
        portfolio = self.portfolio
        position = portfolio.positions.get(pair)
        if position is None or position.amount < amount:
            held = position.amount if position is not None else Decimal("0")
            raise InsufficientPosition(pair, amount, held)

        portfolio.balance = portfolio.balance + price * amount

        realized = (price - position.avg_entry_price) * amount
        portfolio.pnl = portfolio.pnl + realized
        portfolio.realized_pnl = portfolio.realized_pnl + realized

        portfolio.total_trades += 1
        if realized > 0:
            portfolio.winning_trades += 1
        self._update_trade_stats()

        position.amount = position.amount - amount
        if position.amount <= POSITION_EPSILON:
            del portfolio.positions[pair]

        return realized

    def _update_trade_stats(self):
        portfolio = self.portfolio
        portfolio.win_rate = (
            Decimal(portfolio.winning_trades) / Decimal(portfolio.total_trades) * HUNDRED
        )
        portfolio.sharpe_ratio = BASE_SHARPE + (portfolio.win_rate - 50) * SHARPE_SLOPE

    # === Reads ===

    def snapshot(self) -> Portfolio:
        """Deep copy of the portfolio for readers outside the tick."""
        return self.portfolio.model_copy(deep=True)

    def _alert(self, category: AlertCategory, message: str, severity: AlertSeverity):
        if self.alert_manager is not None:
            self.alert_manager.send_alert(category, message, severity)
