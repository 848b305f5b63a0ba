"""Rebalance planner - corrective orders toward target allocations."""
from decimal import Decimal
from typing import List, Mapping

import structlog

from paper_engine.core.ledger import mark_to_market
from paper_engine.core.models import OrderSide, Portfolio, RebalanceOrder, Ticker

logger = structlog.get_logger(__name__)


class RebalancePlanner:
    """
    Compare current allocation against targets and emit orders.

    Pairs are visited in lexicographic order so the same portfolio and
    snapshot always yield the same order list. BUY orders are only planned
    when the balance covers the deficit at planning time; the executor
    re-checks funds when each order is applied.
    """

    def __init__(self, rebalance_threshold: Decimal = Decimal("0.05")):
        self.rebalance_threshold = rebalance_threshold

    def plan(
        self, snapshot: Mapping[str, Ticker], portfolio: Portfolio
    ) -> List[RebalanceOrder]:
        """
        Plan rebalance orders.

        Args:
            snapshot: Mapping of pair -> latest ticker
            portfolio: Current portfolio

        Returns:
            Orders sorted by pair
        """
        current_equity = mark_to_market(portfolio, snapshot)
        if current_equity <= 0:
            return []

        orders: List[RebalanceOrder] = []
        for pair in sorted(portfolio.target_allocations):
            ticker = snapshot.get(pair)
            if ticker is None:
                continue
            price = ticker.last

            target_value = current_equity * portfolio.target_allocations[pair]
            position = portfolio.positions.get(pair)
            current_value = position.amount * price if position is not None else Decimal("0")

            deviation = abs(current_value - target_value) / current_equity
            if deviation <= self.rebalance_threshold:
                continue

            if current_value > target_value:
                excess_value = current_value - target_value
                orders.append(
                    RebalanceOrder(
                        pair=pair, side=OrderSide.SELL, amount=excess_value / price, price=price
                    )
                )
            else:
                deficit_value = target_value - current_value
                if portfolio.balance >= deficit_value:
                    orders.append(
                        RebalanceOrder(
                            pair=pair,
                            side=OrderSide.BUY,
                            amount=deficit_value / price,
                            price=price,
                        )
                    )
                else:
                    logger.info(
                        "rebalance.buy_skipped_insufficient_balance",
                        pair=pair,
                        deficit=str(deficit_value),
                        balance=str(portfolio.balance),
                    )

        if orders:
            logger.info(
                "rebalance.planned",
                equity=str(current_equity),
                orders=[f"{o.side.value} {o.pair}" for o in orders],
            )
        return orders
