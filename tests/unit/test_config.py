"""Unit tests for configuration classes."""
import pytest
from pydantic import ValidationError

from paper_engine.core.config import (
    ExecutionConfig,
    LoggingConfig,
    MarketDataConfig,
    PaperEngineConfig,
    PortfolioConfig,
    RebalanceConfig,
    RiskConfig,
    SchedulerConfig,
    SignalConfig,
    SystemConfig,
)


# =============================================================================
# Section Default Tests
# =============================================================================

class TestDefaults:
    """Test section default values."""

    def test_system_defaults(self):
        config = SystemConfig()

        assert config.environment == "development"
        assert config.app_version == "1.0.0"

    def test_portfolio_defaults(self):
        config = PortfolioConfig()

        assert config.initial_balance == 100000.0
        assert config.target_allocations == {
            "BTC/USDT": 0.30,
            "ETH/USDT": 0.25,
            "SOL/USDT": 0.15,
            "ADA/USDT": 0.15,
            "XRP/USDT": 0.15,
        }
        assert config.total_allocation == pytest.approx(1.0)

    def test_risk_defaults(self):
        config = RiskConfig()

        assert config.drawdown_limit == 0.10
        assert config.drawdown_warning_ratio == 0.8
        assert config.risk_per_trade == 0.01
        assert config.stop_loss_limit == 0.02
        assert config.max_position_fraction == 0.15
        assert config.min_pairs == 5

    def test_runtime_defaults(self):
        assert RebalanceConfig().rebalance_threshold == 0.05
        assert RebalanceConfig().enabled is True
        assert ExecutionConfig().max_slippage == 0.001
        assert ExecutionConfig().trade_log_capacity == 1000
        assert SchedulerConfig().tick_interval_seconds == 1.0
        assert SignalConfig().min_confidence == 0.85
        assert SignalConfig().sentiment_refresh_ticks == 10

    def test_market_data_defaults(self):
        config = MarketDataConfig()

        assert config.exchange_id == "binance"
        assert config.pairs == ["BTC/USDT", "ETH/USDT", "SOL/USDT", "ADA/USDT", "XRP/USDT"]
        assert config.refresh_probability == 0.1
        assert config.offline is False

    def test_logging_defaults(self):
        config = LoggingConfig()

        assert config.log_level == "INFO"
        assert config.log_json is True


# =============================================================================
# Validation Tests
# =============================================================================

class TestValidation:
    """Test field validators."""

    def test_negative_balance_rejected(self):
        with pytest.raises(ValidationError):
            PortfolioConfig(initial_balance=-1)

    def test_malformed_allocation_rejected(self):
        with pytest.raises(ValidationError):
            PortfolioConfig(target_allocations_str="BTC/USDT")

    def test_allocation_out_of_range_rejected(self):
        with pytest.raises(ValidationError):
            PortfolioConfig(target_allocations_str="BTC/USDT:1.5")

    @pytest.mark.parametrize("value", [0, -0.1, 1.5])
    def test_drawdown_limit_must_be_fraction(self, value):
        with pytest.raises(ValidationError):
            RiskConfig(drawdown_limit=value)

    def test_min_pairs_positive(self):
        with pytest.raises(ValidationError):
            RiskConfig(min_pairs=0)

    def test_tick_interval_positive(self):
        with pytest.raises(ValidationError):
            SchedulerConfig(tick_interval_seconds=0)

    def test_refresh_probability_bounded(self):
        with pytest.raises(ValidationError):
            MarketDataConfig(refresh_probability=1.1)

    def test_invalid_log_level_rejected(self):
        with pytest.raises(ValidationError):
            LoggingConfig(log_level="VERBOSE")


# =============================================================================
# Environment Tests
# =============================================================================

class TestEnvironment:
    """Test environment variable overrides."""

    def test_env_overrides_risk_limits(self, monkeypatch):
        monkeypatch.setenv("DRAWDOWN_LIMIT", "0.2")
        monkeypatch.setenv("MIN_PAIRS", "3")

        config = RiskConfig()

        assert config.drawdown_limit == 0.2
        assert config.min_pairs == 3

    def test_env_overrides_pairs(self, monkeypatch):
        monkeypatch.setenv("MARKET_PAIRS", "BTC/USDT, DOGE/USDT")

        assert MarketDataConfig().pairs == ["BTC/USDT", "DOGE/USDT"]

    def test_env_sets_seed(self, monkeypatch):
        monkeypatch.setenv("SIGNAL_SEED", "42")

        assert SignalConfig().seed == 42


# =============================================================================
# Container Tests
# =============================================================================

class TestPaperEngineConfig:
    """Test the configuration container."""

    def test_default_configuration_valid(self):
        result = PaperEngineConfig().validate_configuration()

        assert result == {"valid": True, "issues": []}

    def test_allocation_sum_checked(self):
        config = PaperEngineConfig()
        config.portfolio = PortfolioConfig(target_allocations_str="BTC/USDT:0.5,ETH/USDT:0.2")

        result = config.validate_configuration()

        assert not result["valid"]
        assert any("Total allocation" in issue for issue in result["issues"])

    def test_untracked_target_pair_flagged(self):
        config = PaperEngineConfig()
        config.market_data = MarketDataConfig(pairs_str="BTC/USDT,ETH/USDT")

        result = config.validate_configuration()

        assert not result["valid"]
        assert any("SOL/USDT" in issue for issue in result["issues"])
