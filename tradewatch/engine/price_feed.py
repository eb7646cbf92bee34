"""
Price feed boundary used by the trigger watchers.

A feed pushes ticks for one symbol to a subscriber until the subscription
is canceled or the feed fails. Transport and connection management belong
to the feed implementation; watchers only see ticks and errors.

InMemoryPriceFeed is a synchronous, thread-safe feed for local use and
tests: publishing a tick delivers it to every current subscriber of the
tick's symbol on the publishing thread.
"""

import logging
import threading
from collections import defaultdict
from typing import Callable, Dict, List, Optional, Protocol

from tradewatch.errors import PriceFeedError
from tradewatch.events.models import PriceTick

logger = logging.getLogger(__name__)

TickHandler = Callable[[PriceTick], None]
ErrorHandler = Callable[[Exception], None]


class Subscription(Protocol):
    """Handle returned by PriceFeed.subscribe."""

    def cancel(self) -> None:
        """Stop delivery. Calling more than once has no effect."""
        ...


class PriceFeed(Protocol):
    """Protocol for price feeds. Implement per data provider."""

    def subscribe(
        self,
        symbol: str,
        on_tick: TickHandler,
        on_error: ErrorHandler,
    ) -> Subscription:
        """Deliver ticks for symbol to on_tick until canceled; report failures to on_error."""
        ...


class _FeedSubscription:
    """Subscription to an InMemoryPriceFeed."""

    def __init__(self, feed: "InMemoryPriceFeed", symbol: str,
                 on_tick: TickHandler, on_error: ErrorHandler):
        self.symbol = symbol
        self.on_tick = on_tick
        self.on_error = on_error
        self._feed = feed
        self.active = True

    def cancel(self) -> None:
        self._feed._remove(self)


class InMemoryPriceFeed:
    """Push-style price feed held in process memory."""

    def __init__(self):
        self._lock = threading.Lock()
        self._subscribers: Dict[str, List[_FeedSubscription]] = defaultdict(list)
        self._last_prices: Dict[str, PriceTick] = {}

    def subscribe(
        self,
        symbol: str,
        on_tick: TickHandler,
        on_error: ErrorHandler,
    ) -> _FeedSubscription:
        subscription = _FeedSubscription(self, symbol, on_tick, on_error)
        with self._lock:
            self._subscribers[symbol].append(subscription)
        logger.debug("Subscribed to %s", symbol)
        return subscription

    def publish(self, tick: PriceTick) -> int:
        """
        Deliver a tick to the symbol's subscribers.

        Args:
            tick: Price observation to deliver

        Returns:
            Number of subscribers the tick was delivered to
        """
        with self._lock:
            self._last_prices[tick.symbol] = tick
            # Snapshot so handlers can cancel while we iterate
            targets = list(self._subscribers.get(tick.symbol, ()))

        delivered = 0
        for subscription in targets:
            if not subscription.active:
                continue
            # One failing handler must not starve the other subscribers
            try:
                subscription.on_tick(tick)
            except Exception:
                logger.exception("Tick handler for %s raised", tick.symbol)
            delivered += 1
        return delivered

    def fail(self, symbol: str, error: Optional[Exception] = None) -> int:
        """
        Simulate a transport failure: report it to every subscriber of the
        symbol and drop them.

        Returns:
            Number of subscribers notified
        """
        if error is None:
            error = PriceFeedError(symbol, "connection lost")

        with self._lock:
            targets = self._subscribers.pop(symbol, [])
            for subscription in targets:
                subscription.active = False

        logger.warning("Price feed for %s failed, dropping %d subscribers", symbol, len(targets))
        for subscription in targets:
            try:
                subscription.on_error(error)
            except Exception:
                logger.exception("Error handler for %s raised", symbol)
        return len(targets)

    def last_price(self, symbol: str) -> Optional[PriceTick]:
        """Most recent tick published for symbol, or None."""
        with self._lock:
            return self._last_prices.get(symbol)

    def subscriber_count(self, symbol: str) -> int:
        with self._lock:
            return len(self._subscribers.get(symbol, ()))

    def _remove(self, subscription: _FeedSubscription) -> None:
        with self._lock:
            if not subscription.active:
                return
            subscription.active = False
            queue = self._subscribers.get(subscription.symbol)
            if queue is not None:
                queue.remove(subscription)
                # Clean up empty symbol entry
                if not queue:
                    del self._subscribers[subscription.symbol]
