"""Pytest fixtures and utilities for the paper engine test suite."""
import random
from decimal import Decimal
from typing import Dict, List, Mapping, Optional
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from paper_engine.alerts.alert_manager import AlertManager
from paper_engine.core.broadcast import StateBroadcaster
from paper_engine.core.engine import TradingEngine
from paper_engine.core.ledger import PortfolioLedger
from paper_engine.core.models import EngineStatus, Signal, SignalAction, Ticker
from paper_engine.exchange.market_data import ExchangeConnector
from paper_engine.execution.executor import SlippageModel, TradeExecutor, TradeLog
from paper_engine.risk.governor import RiskGovernor
from paper_engine.risk.rebalance import RebalancePlanner
from paper_engine.strategies.base import BaseSignalSource

PAIRS = ["ADA/USDT", "BTC/USDT", "ETH/USDT", "SOL/USDT", "XRP/USDT"]

DEFAULT_PRICES = {
    "BTC/USDT": "50000",
    "ETH/USDT": "3000",
    "SOL/USDT": "100",
    "ADA/USDT": "0.5",
    "XRP/USDT": "0.6",
}

DEFAULT_TARGETS = {
    "BTC/USDT": Decimal("0.30"),
    "ETH/USDT": Decimal("0.25"),
    "SOL/USDT": Decimal("0.15"),
    "ADA/USDT": Decimal("0.15"),
    "XRP/USDT": Decimal("0.15"),
}


def make_ticker(price) -> Ticker:
    """Build a ticker with a 0.05% spread around price."""
    last = Decimal(str(price))
    return Ticker(
        last=last,
        bid=last * Decimal("0.9995"),
        ask=last * Decimal("1.0005"),
        volume=Decimal("100"),
    )


def make_snapshot(prices: Optional[Mapping[str, object]] = None) -> Dict[str, Ticker]:
    """Build a market snapshot from a pair -> price mapping."""
    prices = prices if prices is not None else DEFAULT_PRICES
    return {pair: make_ticker(price) for pair, price in prices.items()}


def exchange_tickers(prices: Mapping[str, object]) -> Dict[str, dict]:
    """Raw ccxt fetch_tickers payload for the given prices."""
    return {
        pair: {
            "symbol": pair,
            "last": float(price),
            "bid": float(price) * 0.9995,
            "ask": float(price) * 1.0005,
            "baseVolume": 1234.5,
        }
        for pair, price in prices.items()
    }


class ScriptedSignalSource(BaseSignalSource):
    """Signal source that returns whatever the test queued up."""

    def __init__(self):
        super().__init__(name="scripted")
        self.signals: List[Signal] = []
        self.sentiment_updates = 0

    def queue(self, pair: str, action: SignalAction, price, confidence: float):
        self.signals.append(
            Signal(pair=pair, action=action, price=Decimal(str(price)), confidence=confidence)
        )

    async def update_sentiment(self):
        self.sentiment_updates += 1

    def generate_signals(self, snapshot: Mapping[str, Ticker]) -> List[Signal]:
        signals, self.signals = self.signals, []
        return signals


# =============================================================================
# Component Fixtures
# =============================================================================

@pytest.fixture
def alert_manager():
    """Create a fresh alert manager."""
    return AlertManager(history_size=100)


@pytest.fixture
def ledger(alert_manager):
    """Create a ledger with a $100k balance and the default targets."""
    return PortfolioLedger(
        initial_balance=Decimal("100000"),
        target_allocations=DEFAULT_TARGETS,
        alert_manager=alert_manager,
    )


@pytest.fixture
def governor(ledger):
    """Create a risk governor with default limits."""
    return RiskGovernor(ledger)


@pytest.fixture
def planner():
    """Create a rebalance planner with the default threshold."""
    return RebalancePlanner()


@pytest.fixture
def executor(ledger, alert_manager):
    """Create an executor with exact (zero slippage) fills."""
    return TradeExecutor(
        ledger,
        trade_log=TradeLog(capacity=1000),
        slippage=SlippageModel(max_slippage=Decimal("0")),
        alert_manager=alert_manager,
    )


@pytest.fixture
def snapshot():
    """Create a market snapshot at the default prices."""
    return make_snapshot()


@pytest.fixture
def mock_exchange():
    """Create a mock ccxt exchange quoting the default prices."""
    exchange = AsyncMock()
    exchange.fetch_tickers = AsyncMock(return_value=exchange_tickers(DEFAULT_PRICES))
    exchange.close = AsyncMock()
    return exchange


@pytest.fixture
def market_data(mock_exchange, alert_manager):
    """Create a connector that refreshes from the mock exchange every fetch."""
    return ExchangeConnector(
        PAIRS,
        alert_manager=alert_manager,
        refresh_probability=1.0,
        tick_volatility=0.0,
        fetch_timeout=1.0,
        exchange=mock_exchange,
        rng=random.Random(7),
    )


@pytest.fixture
def signal_source():
    """Create a scripted signal source."""
    return ScriptedSignalSource()


@pytest.fixture
def engine(ledger, governor, planner, executor, market_data, signal_source, alert_manager):
    """Create a fully wired engine with rebalancing disabled."""
    return TradingEngine(
        ledger=ledger,
        governor=governor,
        planner=planner,
        executor=executor,
        market_data=market_data,
        signal_source=signal_source,
        alert_manager=alert_manager,
        broadcaster=StateBroadcaster(queue_size=100),
        tick_interval=3600.0,
        rebalance_enabled=False,
    )


@pytest_asyncio.fixture
async def running_engine(engine):
    """Engine marked RUNNING with market data connected, but no scheduler.

    Tests drive the pipeline with explicit engine.tick() calls.
    """
    await engine.market_data.connect()
    engine.status = EngineStatus.RUNNING
    yield engine
    await engine.stop(reason="test_teardown")


# =============================================================================
# Helper Fixtures
# =============================================================================

@pytest.fixture
def snapshot_at():
    """Factory building a snapshot from a pair -> price mapping."""
    return make_snapshot


@pytest.fixture
def tickers_at():
    """Factory building a raw exchange fetch_tickers payload."""
    return exchange_tickers
