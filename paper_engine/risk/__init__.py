"""Risk management module for the paper trading engine.

This module provides:
- Fixed fractional position sizing with a diversification throttle
- The drawdown circuit breaker
- Deviation-triggered rebalancing toward target allocations
"""

from paper_engine.risk.governor import RiskGovernor
from paper_engine.risk.rebalance import RebalancePlanner

__all__ = [
    "RiskGovernor",
    "RebalancePlanner",
]
