"""
Trigger watcher manager.

Owns the registry of active watchers keyed by order ID. The registry only
exists to support cancellation: a watcher is inserted on submit and removed
by whichever of fire, cancel or feed failure wins the watcher's terminal
transition.

Key features:
- One independent watcher per pending order
- Idempotent cancellation by order ID
- Completions pushed synchronously to an injected notifier
- Feed failures and undelivered completions recorded and surfaced
"""

import logging
import threading
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional, Set

from tradewatch.engine.price_feed import PriceFeed
from tradewatch.engine.trigger_watcher import TriggerWatcher
from tradewatch.errors import ContractViolation
from tradewatch.events.journal import EventJournal
from tradewatch.events.models import FeedFailure, Order, OrderCompletion, OrderStatus

logger = logging.getLogger(__name__)

CompletionNotifier = Callable[[OrderCompletion], None]
FailureHandler = Callable[[FeedFailure], None]


class WatcherManager:
    """Manages the trigger watchers of all pending orders."""

    def __init__(
        self,
        feed: PriceFeed,
        notifier: CompletionNotifier,
        supported_symbols: Optional[Iterable[str]] = None,
        clock: Callable[[], datetime] = datetime.now,
        on_failure: Optional[FailureHandler] = None,
        journal: Optional[EventJournal] = None,
    ):
        """
        Initialize manager.

        Args:
            feed: Price feed the watchers subscribe to
            notifier: Called once per fired order with its completion
            supported_symbols: Symbols orders may be placed on (None for any)
            clock: Source of fulfillment times
            on_failure: Called when a feed fails or a completion cannot be delivered
            journal: Optional structured event journal
        """
        self.feed = feed
        self.notifier = notifier
        self.supported_symbols: Optional[Set[str]] = (
            set(supported_symbols) if supported_symbols is not None else None
        )
        self.failures: List[FeedFailure] = []
        self._clock = clock
        self._on_failure = on_failure
        self._journal = journal
        self._lock = threading.Lock()
        self._watchers: Dict[str, TriggerWatcher] = {}

    def submit(self, order: Order) -> TriggerWatcher:
        """
        Start watching a pending order.

        Args:
            order: Order to watch

        Returns:
            The watcher created for the order

        Raises:
            ValueError: If symbol is not supported
            ContractViolation: If the order is not pending or is already watched
        """
        if self.supported_symbols is not None and order.symbol not in self.supported_symbols:
            raise ValueError(f"Symbol {order.symbol} not supported")
        if order.status != OrderStatus.PENDING:
            raise ContractViolation(f"Order {order.order_id} is {order.status.value}, expected PENDING")

        watcher = TriggerWatcher(order, self._handle_fire, self._handle_failure, self._clock)
        with self._lock:
            if order.order_id in self._watchers:
                raise ContractViolation(f"Order {order.order_id} is already being watched")
            self._watchers[order.order_id] = watcher

        logger.info(
            "Watching order %s: %s %d %s when price %s %s",
            order.order_id, order.side.value, order.quantity, order.symbol,
            order.trigger.value, order.price,
        )
        if self._journal is not None:
            self._journal.order_submitted(order)

        # Registered before subscribing so a replayed tick can fire and clean up
        try:
            watcher.start(self.feed)
        except Exception as exc:
            watcher.cancel()
            self._remove(watcher)
            if self._journal is not None:
                self._journal.subscribe_failed(order, exc)
            raise
        return watcher

    def cancel(self, order_id: str) -> bool:
        """
        Cancel watching an order.

        Args:
            order_id: Order ID to cancel

        Returns:
            True if this call canceled the watcher, False if the order was
            unknown, already fired, already failed or already canceled
        """
        with self._lock:
            watcher = self._watchers.get(order_id)

        if watcher is None or not watcher.cancel():
            return False

        self._remove(watcher)
        logger.info("Canceled order %s", order_id)
        if self._journal is not None:
            self._journal.order_canceled(order_id)
        return True

    def is_watching(self, order_id: str) -> bool:
        with self._lock:
            return order_id in self._watchers

    def get_watcher(self, order_id: str) -> Optional[TriggerWatcher]:
        with self._lock:
            return self._watchers.get(order_id)

    def active_order_ids(self) -> List[str]:
        """
        Get IDs of orders still being watched.

        Returns:
            Sorted list of order IDs
        """
        with self._lock:
            return sorted(self._watchers)

    def get_supported_symbols(self) -> Optional[List[str]]:
        if self.supported_symbols is None:
            return None
        return sorted(self.supported_symbols)

    def _remove(self, watcher: TriggerWatcher) -> None:
        with self._lock:
            # Only drop the entry if it still belongs to this watcher
            if self._watchers.get(watcher.order_id) is watcher:
                del self._watchers[watcher.order_id]

    def _handle_fire(self, watcher: TriggerWatcher, completion: OrderCompletion) -> None:
        self._remove(watcher)
        if self._journal is not None:
            self._journal.order_filled(watcher.order, completion)
        try:
            self.notifier(completion)
        except Exception as exc:
            logger.exception(
                "Order %s fired at %s but the completion was not delivered",
                watcher.order_id, completion.actual_price,
            )
            self._record_failure(watcher, exc, completion)

    def _handle_failure(self, watcher: TriggerWatcher, error: Exception) -> None:
        self._remove(watcher)
        logger.warning(
            "Order %s left pending: price feed for %s failed: %s",
            watcher.order_id, watcher.order.symbol, error,
        )
        self._record_failure(watcher, error)

    def _record_failure(
        self,
        watcher: TriggerWatcher,
        error: Exception,
        completion: Optional[OrderCompletion] = None,
    ) -> None:
        failure = FeedFailure(
            order_id=watcher.order_id,
            symbol=watcher.order.symbol,
            error=error,
            time=self._clock(),
            completion=completion,
        )
        with self._lock:
            self.failures.append(failure)

        if self._journal is not None:
            self._journal.feed_failed(failure)
        if self._on_failure is not None:
            self._on_failure(failure)
