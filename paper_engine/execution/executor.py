"""Trade executor - simulated fills, ledger updates and the trade log."""
import random
from collections import deque
from decimal import Decimal
from typing import Deque, List, Optional, Union

import structlog

from paper_engine.core.exceptions import InsufficientFunds, InsufficientPosition
from paper_engine.core.ledger import PortfolioLedger
from paper_engine.core.models import (
    AlertCategory,
    AlertSeverity,
    OrderSide,
    TradeLogEntry,
    TradeReason,
    TradeStatus,
)

logger = structlog.get_logger(__name__)


class SlippageModel:
    """
    Uniform slippage in [0, max_slippage).

    The random source is injectable so tests can seed it, or use
    max_slippage=0 for exact fills.
    """

    def __init__(
        self,
        max_slippage: Decimal = Decimal("0.001"),
        rng: Optional[random.Random] = None,
        seed: Optional[int] = None,
    ):
        self.max_slippage = max_slippage
        self.rng = rng or random.Random(seed)

    def sample(self) -> Decimal:
        """Draw a slippage fraction."""
        if self.max_slippage == 0:
            return Decimal("0")
        return Decimal(str(self.rng.random())) * self.max_slippage

    def executed_price(self, side: OrderSide, price: Decimal) -> Decimal:
        """Quoted price moved against the trader by one slippage draw."""
        slippage = price * self.sample()
        return price + slippage if side == OrderSide.BUY else price - slippage


class TradeLog:
    """Bounded, append-only trade log (oldest entries dropped first)."""

    DEFAULT_CAPACITY = 1000

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        self._entries: Deque[TradeLogEntry] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._entries.maxlen

    def append(self, entry: TradeLogEntry):
        self._entries.append(entry)

    def recent(self, limit: Optional[int] = None) -> List[TradeLogEntry]:
        """Most recent entries in insertion order."""
        entries = list(self._entries)
        if limit is None:
            return entries
        if limit <= 0:
            return []
        return entries[-limit:]

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self):
        return iter(list(self._entries))


class TradeExecutor:
    """
    Apply simulated fills to the ledger.

    Every attempt, successful or not, produces exactly one TradeLogEntry.
    Rejected fills (InsufficientFunds / InsufficientPosition) are recorded as
    FAILED and leave the ledger untouched.
    """

    def __init__(
        self,
        ledger: PortfolioLedger,
        trade_log: Optional[TradeLog] = None,
        slippage: Optional[SlippageModel] = None,
        alert_manager=None,
        notify_on_trade: bool = True,
    ):
        self.ledger = ledger
        self.trade_log = trade_log or TradeLog()
        self.slippage = slippage or SlippageModel()
        self.alert_manager = alert_manager
        self.notify_on_trade = notify_on_trade

    def execute(
        self,
        pair: str,
        side: Union[OrderSide, str],
        price: Decimal,
        amount: Decimal,
        reason: TradeReason = TradeReason.SIGNAL,
    ) -> TradeLogEntry:
        """
        Simulate a market fill and apply it to the ledger.

        Args:
            pair: Trading pair
            side: BUY or SELL
            price: Quoted price before slippage
            amount: Quantity in base units
            reason: What triggered the trade

        Returns:
            The appended trade log entry
        """
        side = OrderSide(side)
        if price <= 0:
            raise ValueError(f"Price must be positive, got {price}")
        if amount <= 0:
            raise ValueError(f"Amount must be positive, got {amount}")

        executed_price = self.slippage.executed_price(side, price)

        realized_pnl: Optional[Decimal] = None
        try:
            if side == OrderSide.BUY:
                self.ledger.apply_buy(pair, executed_price, amount)
            else:
                realized_pnl = self.ledger.apply_sell(pair, executed_price, amount)
        except (InsufficientFunds, InsufficientPosition) as e:
            entry = TradeLogEntry(
                pair=pair,
                side=side,
                price=executed_price,
                amount=amount,
                status=TradeStatus.FAILED,
                reason=reason,
                error=str(e),
            )
            self.trade_log.append(entry)
            logger.info(
                "executor.trade_failed",
                pair=pair,
                side=side.value,
                price=str(executed_price),
                amount=str(amount),
                reason=reason.value,
                error=type(e).__name__,
            )
            return entry

        entry = TradeLogEntry(
            pair=pair,
            side=side,
            price=executed_price,
            amount=amount,
            status=TradeStatus.EXECUTED,
            pnl=realized_pnl,
            reason=reason,
        )
        self.trade_log.append(entry)

        logger.info(
            "executor.trade_executed",
            pair=pair,
            side=side.value,
            price=str(executed_price),
            amount=str(amount),
            pnl=str(realized_pnl) if realized_pnl is not None else None,
            reason=reason.value,
            balance=str(self.ledger.portfolio.balance),
        )
        self._notify(entry)
        return entry

    def _notify(self, entry: TradeLogEntry):
        if self.alert_manager is None or not self.notify_on_trade:
            return
        prefix = "[REBALANCE] " if entry.reason == TradeReason.REBALANCE else ""
        pnl_msg = f" (PnL: ${entry.pnl:.2f})" if entry.pnl is not None else ""
        self.alert_manager.send_alert(
            AlertCategory.TRADE,
            f"{prefix}Executed {entry.side.value} {entry.amount:.4f} {entry.pair} "
            f"@ ${entry.price:.2f}{pnl_msg}",
            AlertSeverity.INFO,
        )
