"""Configuration management for the paper trading engine."""

from typing import Dict, List, Literal, Optional

from pydantic import Field, computed_field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# =============================================================================
# System Configuration
# =============================================================================


class SystemConfig(BaseSettings):
    """System-level configuration settings."""

    model_config = SettingsConfigDict(
        env_file=".env", case_sensitive=False, extra="ignore", populate_by_name=True
    )

    environment: Literal["development", "staging", "production"] = Field(
        default="development", validation_alias="ENVIRONMENT"
    )
    app_name: str = Field(default="Paper Engine", validation_alias="APP_NAME")
    app_version: str = Field(default="1.0.0", validation_alias="APP_VERSION")


# =============================================================================
# Portfolio Configuration
# =============================================================================


class PortfolioConfig(BaseSettings):
    """Starting capital and target allocations."""

    model_config = SettingsConfigDict(
        env_file=".env", case_sensitive=False, extra="ignore", populate_by_name=True
    )

    # $100k paper trading balance
    initial_balance: float = Field(default=100000.0, validation_alias="INITIAL_BALANCE")

    # Target allocations as PAIR:FRACTION pairs
    target_allocations_str: str = Field(
        default="BTC/USDT:0.30,ETH/USDT:0.25,SOL/USDT:0.15,ADA/USDT:0.15,XRP/USDT:0.15",
        validation_alias="TARGET_ALLOCATIONS",
    )

    @field_validator("initial_balance")
    @classmethod
    def validate_balance(cls, v):
        """Validate the starting balance is positive."""
        if v <= 0:
            raise ValueError("Initial balance must be positive")
        return v

    @field_validator("target_allocations_str")
    @classmethod
    def validate_allocations(cls, v):
        """Validate every allocation entry parses and lies within [0, 1]."""
        for item in v.split(","):
            item = item.strip()
            if not item:
                continue
            pair, sep, fraction = item.rpartition(":")
            if not sep or not pair:
                raise ValueError(f"Invalid allocation entry: {item!r}")
            value = float(fraction)
            if value < 0 or value > 1:
                raise ValueError("Allocation must be between 0 and 1")
        return v

    @property
    def target_allocations(self) -> Dict[str, float]:
        """Parse target_allocations_str into a pair -> fraction mapping."""
        allocations: Dict[str, float] = {}
        for item in self.target_allocations_str.split(","):
            item = item.strip()
            if not item:
                continue
            pair, _, fraction = item.rpartition(":")
            allocations[pair.strip()] = float(fraction)
        return allocations

    @computed_field
    @property
    def total_allocation(self) -> float:
        """Sum of all target fractions (expected to be ~1.0)."""
        return sum(self.target_allocations.values())


# =============================================================================
# Risk Configuration
# =============================================================================


class RiskConfig(BaseSettings):
    """Position sizing, diversification and circuit breaker limits."""

    model_config = SettingsConfigDict(
        env_file=".env", case_sensitive=False, extra="ignore", populate_by_name=True
    )

    # Circuit breaker: 10% total loss
    drawdown_limit: float = Field(default=0.10, validation_alias="DRAWDOWN_LIMIT")
    # Warn once drawdown reaches 80% of the limit
    drawdown_warning_ratio: float = Field(
        default=0.8, validation_alias="DRAWDOWN_WARNING_RATIO"
    )

    # Fraction of balance risked per trade
    risk_per_trade: float = Field(default=0.01, validation_alias="RISK_PER_TRADE")
    # Stop distance as a fraction of entry price
    stop_loss_limit: float = Field(default=0.02, validation_alias="STOP_LOSS_LIMIT")
    # Max 15% of balance per trade
    max_position_fraction: float = Field(
        default=0.15, validation_alias="MAX_POSITION_FRACTION"
    )

    # Diversification across minimum 5 pairs
    min_pairs: int = Field(default=5, validation_alias="MIN_PAIRS")

    @field_validator(
        "drawdown_limit",
        "drawdown_warning_ratio",
        "risk_per_trade",
        "stop_loss_limit",
        "max_position_fraction",
    )
    @classmethod
    def validate_fraction(cls, v):
        """Validate that the value is a fraction in (0, 1]."""
        if v <= 0 or v > 1:
            raise ValueError("Value must be between 0 and 1")
        return v

    @field_validator("min_pairs")
    @classmethod
    def validate_min_pairs(cls, v):
        if v < 1:
            raise ValueError("min_pairs must be at least 1")
        return v


# =============================================================================
# Rebalance Configuration
# =============================================================================


class RebalanceConfig(BaseSettings):
    """Rebalance planner configuration."""

    model_config = SettingsConfigDict(
        env_file=".env", case_sensitive=False, extra="ignore", populate_by_name=True
    )

    enabled: bool = Field(default=True, validation_alias="REBALANCE_ENABLED")
    # Rebalance if deviation is > 5% of equity
    rebalance_threshold: float = Field(
        default=0.05, validation_alias="REBALANCE_THRESHOLD"
    )

    @field_validator("rebalance_threshold")
    @classmethod
    def validate_threshold(cls, v):
        if v < 0 or v > 1:
            raise ValueError("Threshold must be between 0 and 1")
        return v


# =============================================================================
# Execution Configuration
# =============================================================================


class ExecutionConfig(BaseSettings):
    """Fill simulation and trade log configuration."""

    model_config = SettingsConfigDict(
        env_file=".env", case_sensitive=False, extra="ignore", populate_by_name=True
    )

    # Max 0.1% slippage
    max_slippage: float = Field(default=0.001, validation_alias="MAX_SLIPPAGE")
    slippage_seed: Optional[int] = Field(default=None, validation_alias="SLIPPAGE_SEED")
    trade_log_capacity: int = Field(default=1000, validation_alias="TRADE_LOG_CAPACITY")

    @field_validator("max_slippage")
    @classmethod
    def validate_slippage(cls, v):
        if v < 0 or v >= 1:
            raise ValueError("Slippage must be in [0, 1)")
        return v

    @field_validator("trade_log_capacity")
    @classmethod
    def validate_capacity(cls, v):
        if v < 1:
            raise ValueError("Trade log capacity must be positive")
        return v


# =============================================================================
# Scheduler Configuration
# =============================================================================


class SchedulerConfig(BaseSettings):
    """Tick loop configuration."""

    model_config = SettingsConfigDict(
        env_file=".env", case_sensitive=False, extra="ignore", populate_by_name=True
    )

    # 1-second ticks
    tick_interval_seconds: float = Field(default=1.0, validation_alias="TICK_INTERVAL")

    @field_validator("tick_interval_seconds")
    @classmethod
    def validate_interval(cls, v):
        if v <= 0:
            raise ValueError("Tick interval must be positive")
        return v


# =============================================================================
# Market Data Configuration
# =============================================================================


class MarketDataConfig(BaseSettings):
    """Exchange connector configuration."""

    model_config = SettingsConfigDict(
        env_file=".env", case_sensitive=False, extra="ignore", populate_by_name=True
    )

    exchange_id: str = Field(default="binance", validation_alias="EXCHANGE_ID")
    pairs_str: str = Field(
        default="BTC/USDT,ETH/USDT,SOL/USDT,ADA/USDT,XRP/USDT",
        validation_alias="MARKET_PAIRS",
    )

    # Chance per tick of refreshing from the exchange instead of simulating
    refresh_probability: float = Field(
        default=0.1, validation_alias="MARKET_REFRESH_PROBABILITY"
    )
    # 0.1% volatility per simulated tick
    tick_volatility: float = Field(default=0.001, validation_alias="MARKET_TICK_VOLATILITY")
    fetch_timeout: float = Field(default=5.0, validation_alias="MARKET_FETCH_TIMEOUT")
    fallback_price: float = Field(default=50000.0, validation_alias="MARKET_FALLBACK_PRICE")
    alert_on_unavailable: bool = Field(
        default=False, validation_alias="MARKET_ALERT_ON_UNAVAILABLE"
    )
    # Skip the exchange entirely and only simulate prices
    offline: bool = Field(default=False, validation_alias="MARKET_OFFLINE")

    @property
    def pairs(self) -> List[str]:
        """Parse pairs_str into list."""
        return [s.strip() for s in self.pairs_str.split(",") if s.strip()]

    @field_validator("refresh_probability")
    @classmethod
    def validate_probability(cls, v):
        if v < 0 or v > 1:
            raise ValueError("Probability must be between 0 and 1")
        return v


# =============================================================================
# Signal Configuration
# =============================================================================


class SignalConfig(BaseSettings):
    """Signal generation and filtering configuration."""

    model_config = SettingsConfigDict(
        env_file=".env", case_sensitive=False, extra="ignore", populate_by_name=True
    )

    # Only act on non-HOLD signals above this confidence
    min_confidence: float = Field(default=0.85, validation_alias="SIGNAL_MIN_CONFIDENCE")
    sentiment_refresh_ticks: int = Field(
        default=10, validation_alias="SENTIMENT_REFRESH_TICKS"
    )
    sentiment_step: float = Field(default=0.2, validation_alias="SENTIMENT_STEP")
    sentiment_weight: float = Field(default=0.3, validation_alias="SENTIMENT_WEIGHT")
    seed: Optional[int] = Field(default=None, validation_alias="SIGNAL_SEED")

    @field_validator("min_confidence")
    @classmethod
    def validate_confidence(cls, v):
        if v < 0 or v > 1:
            raise ValueError("Confidence must be between 0 and 1")
        return v

    @field_validator("sentiment_refresh_ticks")
    @classmethod
    def validate_refresh_ticks(cls, v):
        if v < 1:
            raise ValueError("sentiment_refresh_ticks must be at least 1")
        return v


# =============================================================================
# Alert & Broadcast Configuration
# =============================================================================


class AlertConfig(BaseSettings):
    """Alert sink configuration."""

    model_config = SettingsConfigDict(
        env_file=".env", case_sensitive=False, extra="ignore", populate_by_name=True
    )

    history_size: int = Field(default=100, validation_alias="ALERT_HISTORY_SIZE")
    notify_on_trade: bool = Field(default=True, validation_alias="NOTIFY_ON_TRADE")


class BroadcastConfig(BaseSettings):
    """State broadcast configuration."""

    model_config = SettingsConfigDict(
        env_file=".env", case_sensitive=False, extra="ignore", populate_by_name=True
    )

    subscriber_queue_size: int = Field(
        default=100, validation_alias="BROADCAST_QUEUE_SIZE"
    )

    @field_validator("subscriber_queue_size")
    @classmethod
    def validate_queue_size(cls, v):
        if v < 1:
            raise ValueError("Queue size must be positive")
        return v


# =============================================================================
# Logging Configuration
# =============================================================================


class LoggingConfig(BaseSettings):
    """Logging configuration."""

    model_config = SettingsConfigDict(
        env_file=".env", case_sensitive=False, extra="ignore", populate_by_name=True
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", validation_alias="LOG_LEVEL"
    )
    log_file: str = Field(default="logs/paper_engine.log", validation_alias="LOG_FILE")
    log_json: bool = Field(default=True, validation_alias="LOG_JSON")


# =============================================================================
# Global Configuration Container
# =============================================================================


class PaperEngineConfig:
    """
    Container for all paper engine configurations.

    Usage:
        from paper_engine.core.config import engine_config

        limit = engine_config.risk.drawdown_limit
        pairs = engine_config.market_data.pairs
    """

    def __init__(self):
        self.system = SystemConfig()
        self.portfolio = PortfolioConfig()
        self.risk = RiskConfig()
        self.rebalance = RebalanceConfig()
        self.execution = ExecutionConfig()
        self.scheduler = SchedulerConfig()
        self.market_data = MarketDataConfig()
        self.signals = SignalConfig()
        self.alerts = AlertConfig()
        self.broadcast = BroadcastConfig()
        self.logging = LoggingConfig()

    def validate_configuration(self) -> dict:
        """
        Validate the complete configuration and return any issues.

        Returns:
            Dictionary with 'valid' boolean and 'issues' list
        """
        issues = []

        total = self.portfolio.total_allocation
        if not 0.99 <= total <= 1.01:
            issues.append(f"Total allocation ({total:.2f}) should sum to 1.0")

        if self.risk.drawdown_warning_ratio >= 1:
            issues.append("Drawdown warning ratio must be below 1.0")

        unknown = sorted(
            set(self.portfolio.target_allocations) - set(self.market_data.pairs)
        )
        if unknown:
            issues.append(f"Target pairs not tracked by market data: {', '.join(unknown)}")

        return {"valid": len(issues) == 0, "issues": issues}


# =============================================================================
# Global Configuration Instances
# =============================================================================

logging_config = LoggingConfig()
engine_config = PaperEngineConfig()


__all__ = [
    "PaperEngineConfig",
    "engine_config",
    "logging_config",
    "SystemConfig",
    "PortfolioConfig",
    "RiskConfig",
    "RebalanceConfig",
    "ExecutionConfig",
    "SchedulerConfig",
    "MarketDataConfig",
    "SignalConfig",
    "AlertConfig",
    "BroadcastConfig",
    "LoggingConfig",
]
