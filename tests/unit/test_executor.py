"""Unit tests for the trade executor, slippage model and trade log."""
import random
from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from paper_engine.core.models import (
    AlertCategory,
    AlertSeverity,
    OrderSide,
    TradeLogEntry,
    TradeReason,
    TradeStatus,
)
from paper_engine.execution.executor import SlippageModel, TradeExecutor, TradeLog


# =============================================================================
# Slippage Tests
# =============================================================================

class TestSlippageModel:
    """Test simulated slippage."""

    def test_zero_slippage_is_exact(self):
        model = SlippageModel(max_slippage=Decimal("0"))

        assert model.executed_price(OrderSide.BUY, Decimal("50000")) == Decimal("50000")
        assert model.executed_price(OrderSide.SELL, Decimal("50000")) == Decimal("50000")

    def test_slippage_moves_against_trader(self):
        rng = MagicMock()
        rng.random.return_value = 0.5
        model = SlippageModel(max_slippage=Decimal("0.001"), rng=rng)

        assert model.executed_price(OrderSide.BUY, Decimal("50000")) == Decimal("50025")
        assert model.executed_price(OrderSide.SELL, Decimal("50000")) == Decimal("49975")

    def test_slippage_bounded(self):
        model = SlippageModel(max_slippage=Decimal("0.001"), seed=42)

        for _ in range(200):
            fraction = model.sample()
            assert Decimal("0") <= fraction < Decimal("0.001")

    def test_seeded_models_agree(self):
        first = SlippageModel(seed=7)
        second = SlippageModel(rng=random.Random(7))

        assert [first.sample() for _ in range(5)] == [second.sample() for _ in range(5)]


# =============================================================================
# Trade Log Tests
# =============================================================================

class TestTradeLog:
    """Test the bounded trade log."""

    @staticmethod
    def _entry(i: int) -> TradeLogEntry:
        return TradeLogEntry(
            pair="BTC/USDT",
            side=OrderSide.BUY,
            price=Decimal(i + 1),
            amount=Decimal("1"),
            status=TradeStatus.EXECUTED,
        )

    def test_recent_in_insertion_order(self):
        log = TradeLog(capacity=10)
        for i in range(5):
            log.append(self._entry(i))

        prices = [entry.price for entry in log.recent(3)]

        assert prices == [Decimal("3"), Decimal("4"), Decimal("5")]

    def test_recent_without_limit_returns_all(self):
        log = TradeLog(capacity=10)
        for i in range(4):
            log.append(self._entry(i))

        assert len(log.recent()) == 4
        assert log.recent(0) == []

    def test_capacity_drops_oldest(self):
        log = TradeLog(capacity=3)
        for i in range(5):
            log.append(self._entry(i))

        assert len(log) == 3
        assert [entry.price for entry in log] == [Decimal("3"), Decimal("4"), Decimal("5")]

    def test_default_capacity(self):
        assert TradeLog().capacity == 1000


# =============================================================================
# Executor Tests
# =============================================================================

class TestTradeExecutor:
    """Test fills, failures and the trade log."""

    def test_buy_then_unaffordable_buy(self, executor, ledger):
        first = executor.execute("BTC/USDT", OrderSide.BUY, Decimal("50000"), Decimal("1"))

        assert first.status == TradeStatus.EXECUTED
        assert ledger.portfolio.balance == Decimal("50000")
        position = ledger.portfolio.positions["BTC/USDT"]
        assert position.amount == Decimal("1")
        assert position.avg_entry_price == Decimal("50000")

        second = executor.execute("BTC/USDT", OrderSide.BUY, Decimal("60000"), Decimal("1"))

        assert second.status == TradeStatus.FAILED
        assert "Insufficient funds" in second.error
        assert ledger.portfolio.balance == Decimal("50000")
        assert ledger.portfolio.positions["BTC/USDT"].amount == Decimal("1")
        assert len(executor.trade_log) == 2

    def test_oversized_sell_fails_without_side_effects(self, executor, ledger):
        executor.execute("ETH/USDT", OrderSide.BUY, Decimal("3000"), Decimal("2"))

        entry = executor.execute("ETH/USDT", OrderSide.SELL, Decimal("3100"), Decimal("3"))

        assert entry.status == TradeStatus.FAILED
        assert "Insufficient position" in entry.error
        assert entry.pnl is None
        assert ledger.portfolio.balance == Decimal("94000")
        assert ledger.portfolio.positions["ETH/USDT"].amount == Decimal("2")

    def test_sell_records_realized_pnl(self, executor, ledger):
        executor.execute("BTC/USDT", OrderSide.BUY, Decimal("50000"), Decimal("1"))

        entry = executor.execute("BTC/USDT", OrderSide.SELL, Decimal("55000"), Decimal("1"))

        assert entry.status == TradeStatus.EXECUTED
        assert entry.pnl == Decimal("5000")
        assert ledger.portfolio.balance == Decimal("105000")
        assert ledger.portfolio.winning_trades == 1

    def test_buy_entry_has_no_pnl(self, executor):
        entry = executor.execute("BTC/USDT", OrderSide.BUY, Decimal("50000"), Decimal("0.1"))

        assert entry.pnl is None
        assert entry.reason == TradeReason.SIGNAL
        assert entry.value == Decimal("5000")

    def test_side_accepts_string(self, executor, ledger):
        entry = executor.execute("SOL/USDT", "BUY", Decimal("100"), Decimal("10"))

        assert entry.side == OrderSide.BUY
        assert ledger.portfolio.holds("SOL/USDT")

    def test_trade_alert_sent(self, executor, alert_manager):
        executor.execute("BTC/USDT", OrderSide.BUY, Decimal("50000"), Decimal("1"))
        executor.execute("BTC/USDT", OrderSide.SELL, Decimal("55000"), Decimal("1"))

        buy_alert, sell_alert = alert_manager.get_recent_alerts()
        assert buy_alert.category == AlertCategory.TRADE
        assert buy_alert.severity == AlertSeverity.INFO
        assert buy_alert.message == "Executed BUY 1.0000 BTC/USDT @ $50000.00"
        assert sell_alert.message == "Executed SELL 1.0000 BTC/USDT @ $55000.00 (PnL: $5000.00)"

    def test_rebalance_alert_prefixed(self, executor, alert_manager):
        executor.execute(
            "ETH/USDT",
            OrderSide.BUY,
            Decimal("3000"),
            Decimal("2.5"),
            reason=TradeReason.REBALANCE,
        )

        alert = alert_manager.get_recent_alerts()[-1]
        assert alert.message == "[REBALANCE] Executed BUY 2.5000 ETH/USDT @ $3000.00"

    def test_failed_trade_sends_no_alert(self, executor, alert_manager):
        executor.execute("BTC/USDT", OrderSide.SELL, Decimal("50000"), Decimal("1"))

        assert len(alert_manager) == 0

    def test_notifications_can_be_disabled(self, ledger, alert_manager):
        executor = TradeExecutor(
            ledger,
            slippage=SlippageModel(max_slippage=Decimal("0")),
            alert_manager=alert_manager,
            notify_on_trade=False,
        )

        executor.execute("BTC/USDT", OrderSide.BUY, Decimal("50000"), Decimal("1"))

        assert len(alert_manager) == 0

    def test_slipped_buy_charges_executed_price(self, ledger):
        rng = MagicMock()
        rng.random.return_value = 0.5
        executor = TradeExecutor(
            ledger, slippage=SlippageModel(max_slippage=Decimal("0.001"), rng=rng)
        )

        entry = executor.execute("BTC/USDT", OrderSide.BUY, Decimal("50000"), Decimal("1"))

        assert entry.price == Decimal("50025")
        assert ledger.portfolio.balance == Decimal("49975")
        assert ledger.portfolio.positions["BTC/USDT"].avg_entry_price == Decimal("50025")

    @pytest.mark.parametrize("price,amount", [
        (Decimal("0"), Decimal("1")),
        (Decimal("-5"), Decimal("1")),
        (Decimal("50000"), Decimal("0")),
        (Decimal("50000"), Decimal("-1")),
    ])
    def test_non_positive_inputs_rejected(self, executor, price, amount):
        with pytest.raises(ValueError):
            executor.execute("BTC/USDT", OrderSide.BUY, price, amount)

        assert len(executor.trade_log) == 0

    def test_trade_log_capped_at_1000(self, executor):
        for _ in range(1005):
            executor.execute("BTC/USDT", OrderSide.SELL, Decimal("50000"), Decimal("1"))

        assert len(executor.trade_log) == 1000
        assert all(entry.status == TradeStatus.FAILED for entry in executor.trade_log)

    def test_balance_never_negative(self, executor, ledger):
        rng = random.Random(3)
        pairs = ["BTC/USDT", "ETH/USDT", "SOL/USDT"]
        prices = {"BTC/USDT": 50000, "ETH/USDT": 3000, "SOL/USDT": 100}

        for _ in range(300):
            pair = rng.choice(pairs)
            side = rng.choice([OrderSide.BUY, OrderSide.SELL])
            price = Decimal(prices[pair]) * Decimal(str(rng.uniform(0.8, 1.2)))
            amount = Decimal(str(round(rng.uniform(0.01, 5), 4)))
            executor.execute(pair, side, price, amount)

            assert ledger.portfolio.balance >= 0
            for position in ledger.portfolio.positions.values():
                assert position.amount > 0
