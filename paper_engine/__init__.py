"""
Paper Engine - simulated risk-managed trading loop.

Ticks over live or simulated market data, values a paper portfolio, enforces
a drawdown circuit breaker, sizes and executes signal-driven trades, keeps
allocations near target and broadcasts state to subscribers.
"""

__version__ = "1.0.0"
