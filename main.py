"""
Paper Engine - Main Entry Point

Simulated risk-managed trading loop over live (or simulated) market data.

Usage:
    # Check configuration
    python main.py --check

    # Run until Ctrl+C
    python main.py

    # Run 100 ticks against simulated prices only, reproducibly
    python main.py --offline --ticks 100 --seed 42

    # Start with a different balance and a faster tick
    python main.py --balance 25000 --interval 0.5
"""

import argparse
import asyncio
import signal
from typing import Dict, Optional

import structlog

from paper_engine import __version__
from paper_engine.core.config import PaperEngineConfig, engine_config
from paper_engine.core.engine import TradingEngine, create_trading_engine
from paper_engine.utils.logging_config import setup_logging

logger = structlog.get_logger(__name__)


class PaperTradingApp:
    """
    Command line host for the trading engine.

    Builds the engine from configuration, runs it until a shutdown signal,
    a tick limit or a drawdown halt, then prints a summary.
    """

    POLL_INTERVAL = 0.1  # seconds

    def __init__(self, config: PaperEngineConfig, max_ticks: Optional[int] = None):
        self.config = config
        self.max_ticks = max_ticks
        self.engine: Optional[TradingEngine] = None
        self._shutdown_event = asyncio.Event()

    def initialize(self):
        """Build the engine and its components."""
        logger.info(
            "app.initializing",
            pairs=self.config.market_data.pairs,
            exchange=self.config.market_data.exchange_id,
            offline=self.config.market_data.offline,
        )
        self.engine = create_trading_engine(self.config)
        logger.info("app.initialized")

    async def run(self):
        """Run the engine until shutdown."""
        if self.engine is None:
            raise RuntimeError("App not initialized. Call initialize() first.")

        if self.max_ticks is not None:
            ticks = await self.engine.run_ticks(self.max_ticks)
            logger.info("app.manual_run_complete", ticks=ticks)
            return

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, self._signal_handler)

        try:
            await self.engine.start()
            while not self._shutdown_event.is_set():
                if not self.engine.is_running:
                    logger.warning("app.engine_halted")
                    break
                try:
                    await asyncio.wait_for(self._shutdown_event.wait(), timeout=self.POLL_INTERVAL)
                except asyncio.TimeoutError:
                    pass

        except Exception as e:
            logger.error("app.error", error=str(e), exc_info=True)
            raise
        finally:
            await self.shutdown()

    async def shutdown(self):
        """Perform graceful shutdown."""
        logger.info("app.shutting_down")
        if self.engine:
            await self.engine.stop(reason="shutdown")
        logger.info("app.shutdown_complete")

    def _signal_handler(self):
        logger.info("app.shutdown_signal_received")
        self._shutdown_event.set()


def check_configuration(config: PaperEngineConfig) -> Dict:
    """
    Check if configuration is valid.

    Returns:
        Dictionary with validation results
    """
    validation = config.validate_configuration()
    warnings = []

    if config.market_data.offline:
        warnings.append("Offline mode: prices are simulated from fallback seeds")
    if config.execution.slippage_seed is None or config.signals.seed is None:
        warnings.append("No seed set: runs are not reproducible")
    if not config.rebalance.enabled:
        warnings.append("Rebalancing is disabled")

    return {
        "valid": validation["valid"],
        "issues": validation["issues"],
        "warnings": warnings,
        "pairs": config.market_data.pairs,
        "allocations": config.portfolio.target_allocations,
    }


def print_summary(engine: TradingEngine):
    """Print the final portfolio state."""
    portfolio = engine.get_portfolio()
    logs = engine.get_logs()

    print("\n" + "=" * 60)
    print("           PAPER ENGINE - SESSION SUMMARY")
    print("=" * 60)
    print(f"\nTicks: {engine.tick_count}")
    print(f"Balance: ${portfolio.balance:,.2f}")
    print(f"Equity: ${portfolio.equity:,.2f}")
    print(f"PnL: ${portfolio.pnl:,.2f} (realized ${portfolio.realized_pnl:,.2f})")
    print(f"Drawdown: {portfolio.drawdown:.2%} (max {portfolio.max_drawdown:.2%})")
    print(f"Win rate: {portfolio.win_rate:.1f}% over {portfolio.total_trades} closed trades")

    print(f"\nPositions ({portfolio.active_pairs}):")
    if portfolio.positions:
        for pair, position in sorted(portfolio.positions.items()):
            print(f"   {pair}: {position.amount:.6f} @ {position.avg_entry_price:.2f}")
    else:
        print("   No open positions")

    if logs:
        print("\nRecent trades:")
        for entry in logs[-5:]:
            print(
                f"   {entry.status.value:<8} {entry.side.value:<4} {entry.amount:.4f} "
                f"{entry.pair} @ {entry.price:.2f}"
            )
    print("\n" + "=" * 60)


def apply_overrides(config: PaperEngineConfig, args: argparse.Namespace):
    """Apply command line overrides on top of environment configuration."""
    if args.balance is not None:
        config.portfolio.initial_balance = args.balance
    if args.interval is not None:
        config.scheduler.tick_interval_seconds = args.interval
    if args.seed is not None:
        config.signals.seed = args.seed
        config.execution.slippage_seed = args.seed
    if args.offline:
        config.market_data.offline = True
    if args.no_rebalance:
        config.rebalance.enabled = False


async def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description=f"Paper Engine v{__version__} - simulated risk-managed trading loop"
    )
    parser.add_argument("--check", action="store_true", help="Check configuration and exit")
    parser.add_argument("--ticks", type=int, help="Stop after this many ticks")
    parser.add_argument("--interval", type=float, help="Seconds between ticks")
    parser.add_argument("--seed", type=int, help="Seed all random sources")
    parser.add_argument("--balance", type=float, help="Initial paper balance")
    parser.add_argument(
        "--offline", action="store_true", help="Never contact the exchange; simulate prices"
    )
    parser.add_argument(
        "--no-rebalance", action="store_true", help="Disable allocation rebalancing"
    )

    args = parser.parse_args()

    setup_logging()

    config = engine_config
    apply_overrides(config, args)
    config_check = check_configuration(config)

    for warning in config_check["warnings"]:
        print(f"! {warning}")

    if args.check:
        print("\n" + "=" * 60)
        print("           CONFIGURATION CHECK")
        print("=" * 60)

        if config_check["valid"]:
            print("\n✓ Configuration is valid")
        else:
            print("\n✗ Configuration errors:")
            for issue in config_check["issues"]:
                print(f"   - {issue}")

        print(f"\nPairs: {', '.join(config_check['pairs'])}")
        print("Target allocations:")
        for pair, fraction in config_check["allocations"].items():
            print(f"   {pair}: {fraction:.0%}")
        print("\n" + "=" * 60)
        return

    if not config_check["valid"]:
        print("\n✗ Configuration errors:")
        for issue in config_check["issues"]:
            print(f"   - {issue}")
        print("\nPlease check your .env file and try again.")
        return

    app = PaperTradingApp(config, max_ticks=args.ticks)
    app.initialize()
    await app.run()
    print_summary(app.engine)


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\n\nShutdown requested by user")
