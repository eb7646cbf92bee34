"""
Core domain models for order tracking.

This module defines the orders, price observations and completion events
shared by the trigger watchers and the summary aggregator, plus the
summary snapshot they produce.
"""

from enum import Enum
from dataclasses import dataclass
from decimal import Decimal
from datetime import datetime
from typing import Optional

from tradewatch.errors import ContractViolation


class OrderSide(Enum):
    """Side of the order: buy or sell."""
    BUY = "BUY"
    SELL = "SELL"


class OrderTrigger(Enum):
    """Condition that turns a live price into a fulfillment decision."""
    MORE_THAN_OR_EQUAL = "MORE_THAN_OR_EQUAL"
    LESS_THAN_OR_EQUAL = "LESS_THAN_OR_EQUAL"

    def matches(self, price: Decimal, target: Decimal) -> bool:
        """Check whether an observed price satisfies this trigger."""
        if self is OrderTrigger.MORE_THAN_OR_EQUAL:
            return price >= target
        return price <= target


class OrderStatus(Enum):
    """Current status of an order in its lifecycle."""
    PENDING = "PENDING"
    DONE = "DONE"


@dataclass
class Order:
    """
    Represents a trading order waiting on a price trigger.

    Attributes:
        order_id: Unique identifier for the order
        symbol: Stock symbol (e.g., 'AAPL', 'MSFT')
        side: BUY or SELL
        trigger: Price predicate evaluated against live ticks
        price: Target price for the trigger
        quantity: Number of shares
        timestamp: When the order was created
        status: Current order status
        actual_price: Price the order was fulfilled at (set once)
        fulfilled_at: When the order was fulfilled (set once)
    """
    order_id: str
    symbol: str
    side: OrderSide
    trigger: OrderTrigger
    price: Decimal
    quantity: int
    timestamp: datetime
    status: OrderStatus = OrderStatus.PENDING
    actual_price: Optional[Decimal] = None
    fulfilled_at: Optional[datetime] = None

    def is_complete(self) -> bool:
        """Check if order is in a terminal state."""
        return self.status == OrderStatus.DONE

    def fulfill(self, actual_price: Decimal, time: datetime) -> None:
        """
        Mark the order DONE at the given price and time.

        Raises:
            ContractViolation: If the order was already fulfilled
        """
        if self.status != OrderStatus.PENDING:
            raise ContractViolation(f"Order {self.order_id} is already {self.status.value}")
        self.actual_price = actual_price
        self.fulfilled_at = time
        self.status = OrderStatus.DONE

    def amount(self) -> Decimal:
        """Fulfilled value of the order (quantity times actual price)."""
        if self.actual_price is None:
            raise ContractViolation(f"Order {self.order_id} has no actual price")
        return self.actual_price * self.quantity


@dataclass(frozen=True)
class PriceTick:
    """A single price observation for a symbol."""
    symbol: str
    price: Decimal
    timestamp: datetime


@dataclass(frozen=True)
class OrderCompletion:
    """Emitted once when a watcher sees its order's trigger satisfied."""
    order_id: str
    actual_price: Decimal
    time: datetime


@dataclass(frozen=True)
class FeedFailure:
    """
    Record of a failure that stopped an order's watcher.

    Either the price feed failed (completion is None and the order stays
    pending), or the order fired but the completion could not be delivered
    (completion holds the fill so the caller can deliver it again).
    """
    order_id: str
    symbol: str
    error: Exception
    time: datetime
    completion: Optional[OrderCompletion] = None


@dataclass(frozen=True)
class PortfolioSummary:
    """
    Point-in-time summary of fulfilled orders for one symbol.

    Attributes:
        orders_processed: How many fulfilled orders have been folded in
        buy_quantity: Total shares bought
        sell_quantity: Total shares sold
        buy_amount: Total paid for bought shares
        sell_amount: Total received for sold shares
        settled_amount: Cost basis of shares that have been sold (FIFO)
        stocks_in_hand: Shares still held
        stock_amount: Cost basis of shares still held
        profit_loss: Realized profit or loss
        average_price: Cost basis per held share (0 when nothing is held)
        unmatched_sell_quantity: Sold shares not yet matched by any buy
    """
    orders_processed: int
    buy_quantity: int
    sell_quantity: int
    buy_amount: Decimal
    sell_amount: Decimal
    settled_amount: Decimal
    stocks_in_hand: int
    stock_amount: Decimal
    profit_loss: Decimal
    average_price: Decimal
    unmatched_sell_quantity: int
