"""
Order store boundary.

The store is the source of truth for orders. It receives completions from
the watchers, applies the one-time DONE transition, and exposes fulfilled
orders in the order they were completed, which is the sequence the summary
aggregator consumes.
"""

import threading
from typing import Dict, List, Optional, Protocol

from tradewatch.events.models import Order, OrderCompletion


class OrderStore(Protocol):
    """Protocol for order stores."""

    def add(self, order: Order) -> None:
        ...

    def get(self, order_id: str) -> Optional[Order]:
        ...

    def mark_done(self, completion: OrderCompletion) -> Order:
        """Persist the DONE transition for a completed order."""
        ...

    def done_orders(self, symbol: Optional[str] = None) -> List[Order]:
        """Fulfilled orders in completion order."""
        ...


class InMemoryOrderStore:
    """Orders held in process memory."""

    def __init__(self):
        self._lock = threading.Lock()
        self._orders: Dict[str, Order] = {}
        self._done: List[Order] = []

    def add(self, order: Order) -> None:
        """
        Add a new order.

        Raises:
            ValueError: If an order with the same ID exists
        """
        with self._lock:
            if order.order_id in self._orders:
                raise ValueError(f"Order {order.order_id} already exists")
            self._orders[order.order_id] = order

    def get(self, order_id: str) -> Optional[Order]:
        with self._lock:
            return self._orders.get(order_id)

    def mark_done(self, completion: OrderCompletion) -> Order:
        """
        Apply a completion to its order.

        Raises:
            KeyError: If the order is unknown
            ContractViolation: If the order was already fulfilled
        """
        with self._lock:
            order = self._orders[completion.order_id]
            order.fulfill(completion.actual_price, completion.time)
            self._done.append(order)
            return order

    def orders(self, symbol: Optional[str] = None) -> List[Order]:
        """All orders in submission order, optionally for one symbol."""
        with self._lock:
            return [o for o in self._orders.values() if symbol is None or o.symbol == symbol]

    def done_orders(self, symbol: Optional[str] = None) -> List[Order]:
        with self._lock:
            return [o for o in self._done if symbol is None or o.symbol == symbol]

    def pending_orders(self, symbol: Optional[str] = None) -> List[Order]:
        with self._lock:
            return [
                o for o in self._orders.values()
                if not o.is_complete() and (symbol is None or o.symbol == symbol)
            ]
