"""
Incremental portfolio summary with FIFO cost basis.

The aggregator folds fulfilled orders, one at a time and in arrival order,
into running totals and a settlement queue. Realized cost basis is always
taken from the oldest unsold buy, never from the sell price.

Sell volume that arrives before there are enough bought shares to match it
waits in an unmatched pool and is settled against the next buys. At any
point the result equals walking every buy oldest-first against a single
pool of total sell quantity.

Callers that repeatedly hand over "all fulfilled orders so far" use
catch_up(), which feeds only the suffix past the orders_processed cursor.
"""

import logging
import threading
from decimal import Decimal
from typing import Sequence, Set

from tradewatch.engine.settlement import SettlementQueue
from tradewatch.errors import ContractViolation
from tradewatch.events.models import Order, OrderSide, OrderStatus, PortfolioSummary

logger = logging.getLogger(__name__)


class SummaryAggregator:
    """Running FIFO settlement of fulfilled orders."""

    def __init__(self, symbol: str = ""):
        self.symbol = symbol
        self.buy_quantity = 0
        self.sell_quantity = 0
        self.buy_amount = Decimal("0")
        self.sell_amount = Decimal("0")
        self.settled_amount = Decimal("0")
        self.unmatched_sell_quantity = 0
        self.queue = SettlementQueue()
        self._orders_processed = 0
        self._seen_order_ids: Set[str] = set()
        self._lock = threading.RLock()

    @property
    def orders_processed(self) -> int:
        """Cursor: number of orders folded in so far."""
        return self._orders_processed

    def feed(self, order: Order) -> None:
        """
        Fold one fulfilled order into the summary.

        Args:
            order: A DONE order not fed before

        Raises:
            ContractViolation: If the order is not DONE, has a non-positive
                quantity or no actual price, or was already fed
        """
        self._validate(order)
        price = order.actual_price

        with self._lock:
            if order.order_id in self._seen_order_ids:
                raise ContractViolation(f"Order {order.order_id} was already summarized")

            if order.side == OrderSide.BUY:
                self.buy_quantity += order.quantity
                self.buy_amount += order.quantity * price
                self.queue.append(order.quantity, price)
            else:
                self.sell_quantity += order.quantity
                self.sell_amount += order.quantity * price
                self.unmatched_sell_quantity += order.quantity

            # Match any pending sell volume against the oldest buys
            if self.unmatched_sell_quantity:
                consumed, settled = self.queue.consume(self.unmatched_sell_quantity)
                self.unmatched_sell_quantity -= consumed
                self.settled_amount += settled

            self._seen_order_ids.add(order.order_id)
            self._orders_processed += 1

        logger.debug(
            "Summarized %s order %s: %d @ %s",
            order.side.value, order.order_id, order.quantity, price,
        )

    def catch_up(self, done_orders: Sequence[Order]) -> int:
        """
        Feed the orders past the cursor.

        Args:
            done_orders: Every fulfilled order so far, in arrival order

        Returns:
            Number of orders fed by this call

        Raises:
            ContractViolation: If done_orders is shorter than the cursor
        """
        with self._lock:
            if len(done_orders) < self._orders_processed:
                raise ContractViolation(
                    f"Got {len(done_orders)} fulfilled orders but "
                    f"{self._orders_processed} were already summarized"
                )
            remaining = done_orders[self._orders_processed:]
            for order in remaining:
                self.feed(order)
            return len(remaining)

    def snapshot(self) -> PortfolioSummary:
        """Current summary; derived values are recomputed on every call."""
        with self._lock:
            stocks_in_hand = self.buy_quantity - self.sell_quantity
            stock_amount = self.buy_amount - self.settled_amount
            if stocks_in_hand == 0:
                average_price = Decimal("0")
            else:
                average_price = stock_amount / stocks_in_hand

            return PortfolioSummary(
                orders_processed=self._orders_processed,
                buy_quantity=self.buy_quantity,
                sell_quantity=self.sell_quantity,
                buy_amount=self.buy_amount,
                sell_amount=self.sell_amount,
                settled_amount=self.settled_amount,
                stocks_in_hand=stocks_in_hand,
                stock_amount=stock_amount,
                profit_loss=self.sell_amount - self.settled_amount,
                average_price=average_price,
                unmatched_sell_quantity=self.unmatched_sell_quantity,
            )

    def _validate(self, order: Order) -> None:
        if order.status != OrderStatus.DONE:
            raise ContractViolation(f"Order {order.order_id} is {order.status.value}, expected DONE")
        if isinstance(order.quantity, bool) or not isinstance(order.quantity, int):
            raise ContractViolation(f"Order {order.order_id} quantity must be an integer")
        if order.quantity <= 0:
            raise ContractViolation(f"Order {order.order_id} quantity must be positive")
        if order.actual_price is None:
            raise ContractViolation(f"Order {order.order_id} has no actual price")
        if self.symbol and order.symbol != self.symbol:
            raise ContractViolation(f"Order {order.order_id} is for {order.symbol}, not {self.symbol}")
