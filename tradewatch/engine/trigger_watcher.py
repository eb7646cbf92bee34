"""
Per-order trigger watcher.

A watcher subscribes to the price feed for its order's symbol and compares
every tick with the order's trigger. The first satisfying tick fires a
single completion; after that, or after a cancel or a feed failure, the
watcher is unsubscribed and ignores anything still in flight.

State machine:
- PENDING -> DONE      (trigger satisfied, completion emitted)
- PENDING -> CANCELED  (canceled before firing)
- PENDING -> FAILED    (feed failed, no completion)

All terminal states are final. Transitions are taken under the watcher's
lock, so of a concurrent fire and cancel exactly one wins.
"""

import logging
import threading
from datetime import datetime
from enum import Enum
from typing import Callable, Optional

from tradewatch.engine.price_feed import PriceFeed, Subscription
from tradewatch.events.models import Order, OrderCompletion, PriceTick

logger = logging.getLogger(__name__)


class WatcherState(Enum):
    """Lifecycle state of a trigger watcher."""
    PENDING = "PENDING"
    DONE = "DONE"
    CANCELED = "CANCELED"
    FAILED = "FAILED"


class TriggerWatcher:
    """Watches the price feed for a single pending order."""

    def __init__(
        self,
        order: Order,
        on_fire: Callable[["TriggerWatcher", OrderCompletion], None],
        on_failure: Callable[["TriggerWatcher", Exception], None],
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.order = order
        self.state = WatcherState.PENDING
        self.completion: Optional[OrderCompletion] = None
        self._on_fire = on_fire
        self._on_failure = on_failure
        self._clock = clock
        self._lock = threading.Lock()
        self._subscription: Optional[Subscription] = None

    @property
    def order_id(self) -> str:
        return self.order.order_id

    def is_active(self) -> bool:
        return self.state == WatcherState.PENDING

    def start(self, feed: PriceFeed) -> None:
        """Subscribe to the feed for the order's symbol."""
        subscription = feed.subscribe(self.order.symbol, self.on_tick, self.on_error)

        with self._lock:
            if self.state == WatcherState.PENDING:
                self._subscription = subscription
                return

        # Fired or stopped during subscribe (feed replayed a tick)
        subscription.cancel()

    def on_tick(self, tick: PriceTick) -> None:
        """Evaluate a tick; fire on the first one that satisfies the trigger."""
        with self._lock:
            if self.state != WatcherState.PENDING:
                return
            if not self.order.trigger.matches(tick.price, self.order.price):
                return
            self.state = WatcherState.DONE
            self.completion = OrderCompletion(
                order_id=self.order.order_id,
                actual_price=tick.price,
                time=self._clock(),
            )
            subscription = self._subscription
            self._subscription = None

        if subscription is not None:
            subscription.cancel()

        logger.info(
            "Order %s triggered at %s (%s %s)",
            self.order.order_id, tick.price, self.order.trigger.value, self.order.price,
        )
        self._on_fire(self, self.completion)

    def on_error(self, error: Exception) -> None:
        """Stop watching after a feed failure without firing."""
        if not self._stop(WatcherState.FAILED):
            return
        self._on_failure(self, error)

    def cancel(self) -> bool:
        """
        Cancel the watcher.

        Returns:
            True if this call canceled a pending watcher, False if it had
            already fired, failed or been canceled
        """
        return self._stop(WatcherState.CANCELED)

    def _stop(self, state: WatcherState) -> bool:
        with self._lock:
            if self.state != WatcherState.PENDING:
                return False
            self.state = state
            subscription = self._subscription
            self._subscription = None

        if subscription is not None:
            subscription.cancel()
        return True
