"""Exchange market data connector for the paper trading engine.

Real tickers are pulled from a ccxt exchange only occasionally to stay well
inside rate limits; between refreshes each pair moves by a small random walk
so the engine sees sub-second price action. Any exchange failure degrades to
the last known cache instead of propagating to the tick.
"""
import asyncio
import random
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, List, Optional

import ccxt.async_support as ccxt
import structlog
from pydantic import ValidationError

from paper_engine.core.exceptions import MarketDataUnavailable
from paper_engine.core.models import AlertCategory, AlertSeverity, Ticker, utc_now

logger = structlog.get_logger(__name__)

BID_FACTOR = Decimal("0.9995")
ASK_FACTOR = Decimal("1.0005")
FALLBACK_SPREAD = Decimal("0.001")
FALLBACK_VOLUME = Decimal("100")


class RetryConfig:
    """Configuration for retry logic."""
    DEFAULT_MAX_RETRIES = 2
    DEFAULT_BASE_DELAY = 0.2  # seconds
    DEFAULT_MAX_DELAY = 2.0  # seconds
    DEFAULT_EXPONENTIAL_BASE = 2.0


def with_retry(
    max_retries: int = RetryConfig.DEFAULT_MAX_RETRIES,
    base_delay: float = RetryConfig.DEFAULT_BASE_DELAY,
    max_delay: float = RetryConfig.DEFAULT_MAX_DELAY,
    exponential_base: float = RetryConfig.DEFAULT_EXPONENTIAL_BASE,
    retryable_exceptions: tuple = (ccxt.NetworkError, ccxt.ExchangeNotAvailable, ccxt.RequestTimeout)
):
    """Decorator for adding retry logic with exponential backoff.

    Args:
        max_retries: Maximum number of retry attempts
        base_delay: Initial delay between retries in seconds
        max_delay: Maximum delay between retries in seconds
        exponential_base: Base for exponential backoff calculation
        retryable_exceptions: Tuple of exceptions that should trigger a retry
    """
    def decorator(func):
        async def wrapper(*args, **kwargs):
            last_exception = None

            for attempt in range(max_retries + 1):
                try:
                    return await func(*args, **kwargs)
                except retryable_exceptions as e:
                    last_exception = e
                    if attempt < max_retries:
                        delay = min(base_delay * (exponential_base ** attempt), max_delay)
                        logger.warning(
                            f"{func.__name__}.retry_attempt",
                            attempt=attempt + 1,
                            max_retries=max_retries,
                            delay=delay,
                            error=str(e)
                        )
                        await asyncio.sleep(delay)

            logger.error(
                f"{func.__name__}.max_retries_exceeded",
                max_retries=max_retries,
                last_error=str(last_exception)
            )
            raise last_exception

        return wrapper
    return decorator


def _to_decimal(value: Any) -> Optional[Decimal]:
    if value is None:
        return None
    return Decimal(str(value))


class ExchangeConnector:
    """
    Best-effort market data source backed by a ccxt exchange.

    Attributes:
        pairs: Pairs tracked in every snapshot
        exchange_id: ccxt exchange identifier
        refresh_probability: Chance per fetch of pulling real tickers
        tick_volatility: Max relative move per simulated tick
        fetch_timeout: Upper bound on one exchange refresh, in seconds
        fallback_price: Seed price for pairs that never received a quote
    """

    def __init__(
        self,
        pairs: List[str],
        exchange_id: str = "binance",
        alert_manager=None,
        refresh_probability: float = 0.1,
        tick_volatility: float = 0.001,
        fetch_timeout: float = 5.0,
        fallback_price: Decimal = Decimal("50000"),
        alert_on_unavailable: bool = False,
        offline: bool = False,
        exchange: Any = None,
        exchange_factory: Optional[Callable[[], Any]] = None,
        rng: Optional[random.Random] = None,
    ):
        self.pairs = list(pairs)
        self.exchange_id = exchange_id
        self.alert_manager = alert_manager
        self.refresh_probability = refresh_probability
        self.tick_volatility = tick_volatility
        self.fetch_timeout = fetch_timeout
        self.fallback_price = fallback_price
        self.alert_on_unavailable = alert_on_unavailable
        self.offline = offline
        self.rng = rng or random.Random()

        self._exchange = exchange
        self._exchange_factory = exchange_factory or self._default_factory
        self._latest: Dict[str, Ticker] = {}
        self._connected = False

    @property
    def is_connected(self) -> bool:
        return self._connected

    def _default_factory(self):
        exchange_class = getattr(ccxt, self.exchange_id)
        return exchange_class({"enableRateLimit": True})

    async def connect(self):
        """Connect to the exchange and take an initial snapshot."""
        if self._connected:
            return
        if self._exchange is None and not self.offline:
            self._exchange = self._exchange_factory()
        self._connected = True
        logger.info("market_data.connected", exchange=self.exchange_id, pairs=self.pairs)
        self._alert("Connected to Exchange APIs", AlertSeverity.INFO)

        await self.fetch_snapshot(force_refresh=True)

    async def disconnect(self):
        """Close the exchange session."""
        if not self._connected:
            return
        self._connected = False
        if self._exchange is not None:
            try:
                await self._exchange.close()
            except Exception as e:
                logger.warning("market_data.close_error", exchange=self.exchange_id, error=str(e))
            self._exchange = None
        logger.info("market_data.disconnected", exchange=self.exchange_id)
        self._alert("Disconnected from Exchange APIs", AlertSeverity.WARNING)

    async def fetch_snapshot(self, force_refresh: bool = False) -> Dict[str, Ticker]:
        """
        Latest snapshot for all tracked pairs.

        Never raises for exchange problems: on failure the cached (possibly
        stale) data is returned.

        Args:
            force_refresh: Pull real tickers regardless of refresh_probability

        Returns:
            Mapping of pair -> ticker
        """
        if not self._connected:
            return self.get_latest_data()

        missing = [pair for pair in self.pairs if pair not in self._latest]
        wants_refresh = force_refresh or bool(missing) or self.rng.random() < self.refresh_probability

        if wants_refresh and self._exchange is not None:
            try:
                await self._refresh()
            except MarketDataUnavailable as e:
                logger.warning(
                    "market_data.unavailable",
                    exchange=self.exchange_id,
                    error=str(e.original),
                    cached_pairs=len(self._latest),
                )
                if self.alert_on_unavailable:
                    self._alert(f"Market data unavailable: {e.original}", AlertSeverity.WARNING)
                self._simulate_ticks()
        else:
            self._simulate_ticks()

        self._seed_missing()
        return self.get_latest_data()

    def get_latest_data(self) -> Dict[str, Ticker]:
        """Copy of the cached snapshot."""
        return dict(self._latest)

    async def _refresh(self):
        try:
            tickers = await asyncio.wait_for(self._fetch_tickers(), timeout=self.fetch_timeout)
            if not isinstance(tickers, dict):
                raise TypeError(f"Expected ticker mapping, got {type(tickers).__name__}")
        except Exception as e:
            # Timeouts, ccxt errors and malformed responses all degrade to the cache
            raise MarketDataUnavailable(self.exchange_id, e) from e

        now = utc_now()
        refreshed = 0
        for pair in self.pairs:
            raw = tickers.get(pair)
            if not raw:
                continue
            try:
                if not raw.get("last"):
                    continue
                ticker = Ticker(
                    last=_to_decimal(raw["last"]),
                    bid=_to_decimal(raw.get("bid")),
                    ask=_to_decimal(raw.get("ask")),
                    volume=_to_decimal(raw.get("baseVolume")),
                    timestamp=now,
                )
            except (InvalidOperation, ValidationError, TypeError, AttributeError) as e:
                # Keep the cached ticker for this pair
                logger.warning("market_data.bad_ticker", pair=pair, error=str(e))
                continue
            self._latest[pair] = ticker
            refreshed += 1
        logger.debug("market_data.refreshed", pairs=refreshed)

    @with_retry()
    async def _fetch_tickers(self) -> Dict[str, Any]:
        return await self._exchange.fetch_tickers(self.pairs)

    def _simulate_ticks(self):
        volatility = self.tick_volatility
        now = utc_now()
        for pair, ticker in list(self._latest.items()):
            change = 1 + (self.rng.random() * volatility * 2 - volatility)
            last = ticker.last * Decimal(str(change))
            self._latest[pair] = Ticker(
                last=last,
                bid=last * BID_FACTOR,
                ask=last * ASK_FACTOR,
                volume=ticker.volume,
                timestamp=now,
            )

    def _seed_missing(self):
        now = utc_now()
        for pair in self.pairs:
            if pair not in self._latest:
                price = self.fallback_price
                self._latest[pair] = Ticker(
                    last=price,
                    bid=price * (1 - FALLBACK_SPREAD),
                    ask=price * (1 + FALLBACK_SPREAD),
                    volume=FALLBACK_VOLUME,
                    timestamp=now,
                )

    def _alert(self, message: str, severity: AlertSeverity):
        if self.alert_manager is not None:
            self.alert_manager.send_alert(AlertCategory.SYSTEM, message, severity)
