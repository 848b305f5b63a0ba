"""Main trading engine - orchestrates all components."""
import asyncio
import random
from decimal import Decimal
from typing import Any, Dict, List, Optional

import structlog

from paper_engine.alerts.alert_manager import AlertManager
from paper_engine.core.broadcast import StateBroadcaster, Subscription
from paper_engine.core.config import PaperEngineConfig, engine_config
from paper_engine.core.exceptions import DrawdownBreach, TickFailure
from paper_engine.core.ledger import PortfolioLedger
from paper_engine.core.models import (
    AlertCategory,
    AlertSeverity,
    EngineSnapshot,
    EngineStatus,
    Portfolio,
    Ticker,
    TradeLogEntry,
    TradeReason,
)
from paper_engine.core.scheduler import Scheduler
from paper_engine.exchange.market_data import ExchangeConnector
from paper_engine.execution.executor import SlippageModel, TradeExecutor, TradeLog
from paper_engine.risk.governor import RiskGovernor
from paper_engine.risk.rebalance import RebalancePlanner
from paper_engine.strategies.base import BaseSignalSource
from paper_engine.strategies.sentiment import SentimentAnalyzer, SentimentSignalGenerator

logger = structlog.get_logger(__name__)


class TradingEngine:
    """
    Paper trading orchestrator.

    Responsibilities:
    - Owns the HALTED/RUNNING state and the tick scheduler
    - Runs the tick pipeline: snapshot -> valuation -> circuit breaker ->
      rebalance -> signals -> sizing -> execution -> broadcast
    - Converts every tick failure into logs and alerts
    - Serves consistent read-only views of portfolio, logs and alerts
    """

    # Trade log windows
    API_LOG_LIMIT = 100
    BROADCAST_LOG_LIMIT = 10
    INITIAL_LOG_LIMIT = 50

    # Alert windows
    BROADCAST_ALERT_LIMIT = 5
    INITIAL_ALERT_LIMIT = 20

    def __init__(
        self,
        ledger: PortfolioLedger,
        governor: RiskGovernor,
        planner: RebalancePlanner,
        executor: TradeExecutor,
        market_data: ExchangeConnector,
        signal_source: BaseSignalSource,
        alert_manager: AlertManager,
        broadcaster: Optional[StateBroadcaster] = None,
        tick_interval: float = 1.0,
        min_confidence: float = 0.85,
        sentiment_refresh_ticks: int = 10,
        rebalance_enabled: bool = True,
    ):
        self.ledger = ledger
        self.governor = governor
        self.planner = planner
        self.executor = executor
        self.market_data = market_data
        self.signal_source = signal_source
        self.alert_manager = alert_manager
        self.broadcaster = broadcaster or StateBroadcaster()

        self.min_confidence = min_confidence
        self.sentiment_refresh_ticks = sentiment_refresh_ticks
        self.rebalance_enabled = rebalance_enabled

        # State
        self.status = EngineStatus.HALTED
        self.tick_count = 0
        self.last_tick_failure: Optional[TickFailure] = None
        self._tick_lock = asyncio.Lock()
        self.scheduler = Scheduler(self.tick, interval=tick_interval, name="engine")

    @property
    def is_running(self) -> bool:
        return self.status == EngineStatus.RUNNING

    @property
    def trade_log(self) -> TradeLog:
        return self.executor.trade_log

    # === Lifecycle ===

    async def start(self):
        """Start the engine. No-op if already running."""
        if self.is_running:
            logger.debug("engine.already_running")
            return
        logger.info("engine.starting")

        await self.market_data.connect()
        self.status = EngineStatus.RUNNING
        self.scheduler.start()

        logger.info(
            "engine.started",
            balance=str(self.ledger.portfolio.balance),
            interval=self.scheduler.interval,
        )

    async def stop(self, reason: str = "requested"):
        """Stop the engine. No-op if already halted."""
        if not self.is_running:
            logger.debug("engine.already_halted")
            return
        logger.info("engine.stopping", reason=reason)

        self.status = EngineStatus.HALTED
        await self.scheduler.stop()
        await self.market_data.disconnect()

        logger.info("engine.stopped", reason=reason, ticks=self.tick_count)

    async def run_ticks(self, count: int) -> int:
        """
        Run a fixed number of ticks by hand, without the scheduler.

        Stops early if the circuit breaker halts the engine. The engine is
        HALTED again on return.

        Returns:
            Total ticks run by this engine
        """
        if self.is_running:
            raise RuntimeError("Engine is already running")

        await self.market_data.connect()
        self.status = EngineStatus.RUNNING
        logger.info("engine.manual_run", ticks=count)
        try:
            for _ in range(count):
                if not self.is_running:
                    break
                await self.scheduler.step()
        finally:
            await self.stop(reason="manual_run_complete")
        return self.tick_count

    async def toggle_status(self) -> bool:
        """Flip between RUNNING and HALTED. Returns the new running state."""
        if self.is_running:
            await self.stop(reason="toggle")
        else:
            await self.start()
        return self.is_running

    # === Tick pipeline ===

    async def tick(self):
        """Run one pipeline pass. Never raises for pipeline failures."""
        async with self._tick_lock:
            if not self.is_running:
                return

            self.tick_count += 1
            try:
                await self._run_pipeline()
            except DrawdownBreach as e:
                logger.critical(
                    "engine.drawdown_breach",
                    drawdown=str(e.drawdown),
                    limit=str(e.limit),
                    tick=self.tick_count,
                )
                await self._halt_after_breach()
                self.broadcast_state()
                return
            except Exception as e:
                failure = TickFailure(self.tick_count, e)
                self.last_tick_failure = failure
                logger.error("engine.tick_error", tick=self.tick_count, error=str(e), exc_info=True)
                self.alert_manager.send_alert(
                    AlertCategory.SYSTEM, f"Tick error: {e}", AlertSeverity.WARNING
                )
                return

            self.broadcast_state()

    async def _run_pipeline(self):
        snapshot = await self.market_data.fetch_snapshot()

        if self.tick_count % self.sentiment_refresh_ticks == 0:
            await self.signal_source.update_sentiment()

        # Everything below mutates the ledger synchronously
        self.ledger.valuate(snapshot)
        self.governor.ensure_trading_allowed()

        if self.rebalance_enabled:
            self._rebalance(snapshot)

        self._trade_signals(snapshot)

    def _rebalance(self, snapshot: Dict[str, Ticker]):
        orders = self.planner.plan(snapshot, self.ledger.portfolio)
        if not orders:
            return

        self.alert_manager.send_alert(
            AlertCategory.SYSTEM,
            f"Initiating portfolio rebalance for {len(orders)} pairs",
            AlertSeverity.INFO,
        )
        for order in orders:
            self.executor.execute(
                order.pair, order.side, order.price, order.amount, reason=TradeReason.REBALANCE
            )

    def _trade_signals(self, snapshot: Dict[str, Ticker]):
        signals = self.signal_source.generate_signals(snapshot)

        for signal in signals:
            if not signal.is_actionable or signal.confidence <= self.min_confidence:
                continue

            amount = self.governor.size_position(signal.pair, signal.price)
            if amount <= 0:
                logger.debug("engine.zero_quantity", pair=signal.pair)
                continue

            logger.info(
                "engine.signal_accepted",
                pair=signal.pair,
                action=signal.action.value,
                confidence=signal.confidence,
                sentiment=signal.sentiment_score,
                amount=str(amount),
            )
            self.executor.execute(
                signal.pair, signal.action.value, signal.price, amount, reason=TradeReason.SIGNAL
            )

    async def _halt_after_breach(self):
        try:
            await self.stop(reason="drawdown_breach")
        except Exception as e:
            # Market data disconnect failed; the engine is halted regardless
            self.status = EngineStatus.HALTED
            logger.error("engine.stop_error", error=str(e), exc_info=True)

    # === Broadcast ===

    def broadcast_state(self) -> int:
        """Push the current state to every subscriber."""
        snapshot = self.get_state(self.BROADCAST_LOG_LIMIT, self.BROADCAST_ALERT_LIMIT)
        return self.broadcaster.publish(snapshot.to_message())

    def attach_consumer(self) -> Subscription:
        """Subscribe a new consumer and hand it the larger initial state."""
        initial = self.get_state(self.INITIAL_LOG_LIMIT, self.INITIAL_ALERT_LIMIT)
        return self.broadcaster.subscribe(initial.to_message())

    # === Queries ===

    def get_status(self) -> bool:
        """True if the engine is running."""
        return self.is_running

    def get_portfolio(self) -> Portfolio:
        """Copy of the current portfolio."""
        return self.ledger.snapshot()

    def get_logs(self, limit: int = API_LOG_LIMIT) -> List[TradeLogEntry]:
        """Up to the last 100 trade log entries, oldest first."""
        return self.trade_log.recent(min(limit, self.API_LOG_LIMIT))

    def get_state(
        self,
        log_limit: int = BROADCAST_LOG_LIMIT,
        alert_limit: int = BROADCAST_ALERT_LIMIT,
    ) -> EngineSnapshot:
        """Consistent snapshot of engine state."""
        return EngineSnapshot(
            running=self.is_running,
            portfolio=self.ledger.snapshot(),
            market_snapshot=self.market_data.get_latest_data(),
            recent_logs=self.trade_log.recent(log_limit),
            recent_alerts=self.alert_manager.get_recent_alerts(alert_limit),
        )

    def get_stats(self) -> Dict[str, Any]:
        """Operational counters for status displays."""
        return {
            'status': self.status.value,
            'ticks': self.tick_count,
            'ticks_skipped': self.scheduler.ticks_skipped,
            'trade_log_size': len(self.trade_log),
            'subscribers': self.broadcaster.subscriber_count,
            'last_tick_failure': str(self.last_tick_failure) if self.last_tick_failure else None,
            'signal_source': self.signal_source.get_stats(),
        }


# === Composition root ===

def create_trading_engine(
    config: Optional[PaperEngineConfig] = None,
    market_data: Optional[ExchangeConnector] = None,
    signal_source: Optional[BaseSignalSource] = None,
    alert_manager: Optional[AlertManager] = None,
    slippage: Optional[SlippageModel] = None,
) -> TradingEngine:
    """
    Build a fully wired TradingEngine from configuration.

    Any collaborator may be passed in to replace the configured default,
    which is how tests inject fakes and seeded random sources.
    """
    config = config or engine_config

    alert_manager = alert_manager or AlertManager(history_size=config.alerts.history_size)

    ledger = PortfolioLedger(
        initial_balance=Decimal(str(config.portfolio.initial_balance)),
        target_allocations={
            pair: Decimal(str(fraction))
            for pair, fraction in config.portfolio.target_allocations.items()
        },
        drawdown_limit=Decimal(str(config.risk.drawdown_limit)),
        drawdown_warning_ratio=Decimal(str(config.risk.drawdown_warning_ratio)),
        alert_manager=alert_manager,
    )

    governor = RiskGovernor(
        ledger,
        risk_per_trade=Decimal(str(config.risk.risk_per_trade)),
        stop_loss_limit=Decimal(str(config.risk.stop_loss_limit)),
        max_position_fraction=Decimal(str(config.risk.max_position_fraction)),
        min_pairs=config.risk.min_pairs,
    )

    planner = RebalancePlanner(
        rebalance_threshold=Decimal(str(config.rebalance.rebalance_threshold))
    )

    executor = TradeExecutor(
        ledger,
        trade_log=TradeLog(capacity=config.execution.trade_log_capacity),
        slippage=slippage or SlippageModel(
            max_slippage=Decimal(str(config.execution.max_slippage)),
            seed=config.execution.slippage_seed,
        ),
        alert_manager=alert_manager,
        notify_on_trade=config.alerts.notify_on_trade,
    )

    pairs = config.market_data.pairs
    seed = config.signals.seed
    # Independent streams for the price walk and the signal model
    market_seed, signal_seed = (None, None) if seed is None else (seed, seed + 1)

    if market_data is None:
        market_data = ExchangeConnector(
            pairs,
            exchange_id=config.market_data.exchange_id,
            alert_manager=alert_manager,
            refresh_probability=config.market_data.refresh_probability,
            tick_volatility=config.market_data.tick_volatility,
            fetch_timeout=config.market_data.fetch_timeout,
            fallback_price=Decimal(str(config.market_data.fallback_price)),
            alert_on_unavailable=config.market_data.alert_on_unavailable,
            offline=config.market_data.offline,
            rng=random.Random(market_seed),
        )

    if signal_source is None:
        rng = random.Random(signal_seed)
        signal_source = SentimentSignalGenerator(
            SentimentAnalyzer(pairs, step=config.signals.sentiment_step, rng=rng),
            sentiment_weight=config.signals.sentiment_weight,
            rng=rng,
        )

    return TradingEngine(
        ledger=ledger,
        governor=governor,
        planner=planner,
        executor=executor,
        market_data=market_data,
        signal_source=signal_source,
        alert_manager=alert_manager,
        broadcaster=StateBroadcaster(queue_size=config.broadcast.subscriber_queue_size),
        tick_interval=config.scheduler.tick_interval_seconds,
        min_confidence=config.signals.min_confidence,
        sentiment_refresh_ticks=config.signals.sentiment_refresh_ticks,
        rebalance_enabled=config.rebalance.enabled,
    )
