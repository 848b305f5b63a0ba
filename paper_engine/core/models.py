"""Data models for the paper trading engine.

This module defines the data structures that flow through the tick pipeline:
- Market snapshots (Ticker) produced by the market data source
- Signals produced by the signal source
- The mutable Portfolio ledger and its positions
- Immutable trade log entries and alerts
- Engine snapshots pushed to state consumers

All monetary values use Decimal for precision.
All timestamps are timezone-aware UTC datetime objects.
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Positions at or below this amount are considered closed
POSITION_EPSILON = Decimal("0.000001")


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def _short_id() -> str:
    return uuid4().hex[:8]


# =============================================================================
# Enums
# =============================================================================

class OrderSide(str, Enum):
    """Order side - buy or sell."""
    BUY = "BUY"
    SELL = "SELL"


class SignalAction(str, Enum):
    """Action suggested by a trading signal."""
    BUY = "BUY"
    SELL = "SELL"
    HOLD = "HOLD"


class TradeStatus(str, Enum):
    """Outcome of a trade attempt."""
    EXECUTED = "EXECUTED"
    FAILED = "FAILED"


class TradeReason(str, Enum):
    """What triggered a trade attempt."""
    SIGNAL = "SIGNAL"
    REBALANCE = "REBALANCE"


class AlertCategory(str, Enum):
    """Alert categories."""
    TRADE = "TRADE"
    RISK = "RISK"
    SYSTEM = "SYSTEM"
    PRICE = "PRICE"


class AlertSeverity(str, Enum):
    """Alert severity levels."""
    INFO = "INFO"
    WARNING = "WARNING"
    CRITICAL = "CRITICAL"


class EngineStatus(str, Enum):
    """Scheduler/orchestrator run state."""
    HALTED = "HALTED"
    RUNNING = "RUNNING"


# =============================================================================
# Market Data Models
# =============================================================================

class Ticker(BaseModel):
    """Latest quote for a single pair.

    Attributes:
        last: Last traded price
        bid: Best bid
        ask: Best ask
        volume: Base volume
        timestamp: Quote time (UTC)
    """
    model_config = ConfigDict(json_encoders={Decimal: str})

    last: Decimal = Field(..., gt=0, description="Last traded price")
    bid: Optional[Decimal] = Field(default=None, description="Best bid")
    ask: Optional[Decimal] = Field(default=None, description="Best ask")
    volume: Optional[Decimal] = Field(default=None, description="Base volume")
    timestamp: datetime = Field(default_factory=utc_now, description="Quote time")


# A market snapshot maps pair -> latest ticker
MarketSnapshot = Dict[str, Ticker]


class Signal(BaseModel):
    """Trading signal produced by a signal source.

    Attributes:
        pair: Trading pair
        action: BUY, SELL or HOLD
        price: Reference price the signal was generated at
        confidence: Signal confidence 0.0-1.0
        sentiment_score: Sentiment that fed the signal, -1.0 to 1.0
    """
    model_config = ConfigDict(json_encoders={Decimal: str})

    pair: str = Field(..., description="Trading pair")
    action: SignalAction = Field(..., description="Suggested action")
    price: Decimal = Field(..., gt=0, description="Reference price")
    confidence: float = Field(default=0.5, ge=0.0, le=1.0, description="Confidence 0-1")
    sentiment_score: float = Field(default=0.0, ge=-1.0, le=1.0, description="Sentiment -1..1")

    @property
    def is_actionable(self) -> bool:
        """True if the signal asks for a trade."""
        return self.action != SignalAction.HOLD


# =============================================================================
# Portfolio Models
# =============================================================================

class PositionState(BaseModel):
    """Held quantity of a pair plus its weighted average entry price."""
    model_config = ConfigDict(json_encoders={Decimal: str})

    amount: Decimal = Field(default=Decimal("0"), ge=0, description="Held quantity")
    avg_entry_price: Decimal = Field(default=Decimal("0"), ge=0, description="Average entry")

    @property
    def cost_basis(self) -> Decimal:
        """Value of the position at its average entry price."""
        return self.amount * self.avg_entry_price


class Portfolio(BaseModel):
    """The single mutable ledger aggregate of a running engine.

    Attributes:
        balance: Available cash, never negative
        initial_balance: Baseline for drawdown and PnL
        positions: Open positions by pair
        pnl: Cumulative PnL (overwritten by valuation, incremented by sells)
        realized_pnl: Sum of realized PnL over all sells
        equity: Last mark-to-market equity
        drawdown: Current drawdown fraction
        max_drawdown: Largest drawdown observed
        total_trades: Number of executed sells
        winning_trades: Sells with positive realized PnL
        win_rate: winning_trades / total_trades * 100
        sharpe_ratio: Heuristic derived from win rate
        target_allocations: Target fraction of equity per pair
        updated_at: Last valuation time
    """
    model_config = ConfigDict(json_encoders={Decimal: str}, validate_assignment=True)

    balance: Decimal = Field(..., ge=0, description="Available cash")
    initial_balance: Decimal = Field(..., gt=0, description="Starting balance")
    positions: Dict[str, PositionState] = Field(default_factory=dict, description="Positions")

    pnl: Decimal = Field(default=Decimal("0"), description="Cumulative PnL")
    realized_pnl: Decimal = Field(default=Decimal("0"), description="Realized PnL")
    equity: Decimal = Field(default=Decimal("0"), description="Last equity")

    drawdown: Decimal = Field(default=Decimal("0"), ge=0, le=1, description="Drawdown")
    max_drawdown: Decimal = Field(default=Decimal("0"), ge=0, le=1, description="Max drawdown")

    total_trades: int = Field(default=0, ge=0, description="Closed trades")
    winning_trades: int = Field(default=0, ge=0, description="Winners")
    win_rate: Decimal = Field(default=Decimal("0"), description="Win rate %")
    # Simulated initial Sharpe
    sharpe_ratio: Decimal = Field(default=Decimal("1.5"), description="Heuristic Sharpe")

    target_allocations: Dict[str, Decimal] = Field(
        default_factory=dict, description="Target fraction of equity per pair"
    )
    updated_at: Optional[datetime] = Field(default=None, description="Last valuation")

    @property
    def active_pairs(self) -> int:
        """Number of pairs currently held."""
        return len(self.positions)

    def holds(self, pair: str) -> bool:
        """True if a position exists for the pair."""
        return pair in self.positions


# =============================================================================
# Trade Log & Alerts
# =============================================================================

class TradeLogEntry(BaseModel):
    """Immutable record of one trade attempt."""
    model_config = ConfigDict(frozen=True, json_encoders={Decimal: str})

    id: str = Field(default_factory=_short_id, description="Entry ID")
    timestamp: datetime = Field(default_factory=utc_now, description="Attempt time")
    pair: str = Field(..., description="Trading pair")
    side: OrderSide = Field(..., description="Trade side")
    price: Decimal = Field(..., description="Executed price")
    amount: Decimal = Field(..., description="Quantity")
    status: TradeStatus = Field(..., description="EXECUTED or FAILED")
    pnl: Optional[Decimal] = Field(default=None, description="Realized PnL (SELL only)")
    reason: TradeReason = Field(default=TradeReason.SIGNAL, description="Trigger")
    error: Optional[str] = Field(default=None, description="Failure reason")

    @property
    def value(self) -> Decimal:
        """Notional value of the attempt."""
        return self.price * self.amount


class Alert(BaseModel):
    """Immutable alert record."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_short_id, description="Alert ID")
    timestamp: datetime = Field(default_factory=utc_now, description="Alert time")
    category: AlertCategory = Field(..., description="Alert category")
    message: str = Field(..., description="Alert text")
    severity: AlertSeverity = Field(default=AlertSeverity.INFO, description="Severity")


# =============================================================================
# Orders & Snapshots
# =============================================================================

class RebalanceOrder(BaseModel):
    """Corrective order emitted by the rebalance planner."""
    model_config = ConfigDict(frozen=True, json_encoders={Decimal: str})

    pair: str
    side: OrderSide
    amount: Decimal = Field(..., gt=0)
    price: Decimal = Field(..., gt=0)

    @field_validator("pair")
    @classmethod
    def pair_not_empty(cls, v: str) -> str:
        if not v:
            raise ValueError("Pair must not be empty")
        return v


class EngineSnapshot(BaseModel):
    """Consistent view of engine state handed to observers."""
    model_config = ConfigDict(json_encoders={Decimal: str})

    running: bool
    portfolio: Portfolio
    market_snapshot: Dict[str, Ticker] = Field(default_factory=dict)
    recent_logs: List[TradeLogEntry] = Field(default_factory=list)
    recent_alerts: List[Alert] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=utc_now)

    def to_message(self) -> dict:
        """Wrap the snapshot in the STATE_UPDATE envelope."""
        return {"type": "STATE_UPDATE", "data": self.model_dump(mode="json")}
