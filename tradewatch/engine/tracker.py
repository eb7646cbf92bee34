"""
High-level order tracking interface.

Provides a clean API for submitting and canceling trigger orders and for
reading per-symbol portfolio summaries. Completions from the watchers are
written to the order store, and every summary request folds in only the
fulfilled orders the symbol's aggregator has not seen yet.

This is the main entry point for the tracking system.
"""

import logging
import threading
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional

from tradewatch.config.loader import AppConfig, build_journal
from tradewatch.engine.order_store import InMemoryOrderStore, OrderStore
from tradewatch.engine.price_feed import PriceFeed
from tradewatch.engine.summary import SummaryAggregator
from tradewatch.engine.watcher_manager import FailureHandler, WatcherManager
from tradewatch.errors import ContractViolation
from tradewatch.events.journal import EventJournal
from tradewatch.events.models import FeedFailure, Order, OrderCompletion, OrderStatus, PortfolioSummary

logger = logging.getLogger(__name__)


class OrderTracker:
    """High-level order tracking interface."""

    def __init__(
        self,
        feed: PriceFeed,
        symbols: Optional[Iterable[str]] = None,
        store: Optional[OrderStore] = None,
        clock: Callable[[], datetime] = datetime.now,
        on_failure: Optional[FailureHandler] = None,
        journal: Optional[EventJournal] = None,
    ):
        """
        Initialize tracker.

        Args:
            feed: Price feed used by the trigger watchers
            symbols: Symbols orders may be placed on (None for any)
            store: Order store (in-memory by default)
            clock: Source of fulfillment times
            on_failure: Called when a feed fails or a fill cannot be recorded
            journal: Optional structured event journal
        """
        self.store = store if store is not None else InMemoryOrderStore()
        self.watchers = WatcherManager(
            feed,
            self._on_completion,
            supported_symbols=symbols,
            clock=clock,
            on_failure=on_failure,
            journal=journal,
        )
        self.journal = journal
        self._aggregators: Dict[str, SummaryAggregator] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, config: AppConfig, feed: PriceFeed, **kwargs) -> "OrderTracker":
        """Build a tracker from loaded configuration."""
        return cls(
            feed,
            symbols=config.symbols or None,
            journal=build_journal(config.journal),
            **kwargs,
        )

    def submit(self, order: Order) -> None:
        """
        Submit a pending order and start watching it.

        The symbol and status are checked here as well as by the watcher
        manager so that an order that will be rejected never reaches the
        store.

        Args:
            order: Order to submit

        Raises:
            ValueError: If symbol is not supported or the ID already exists
            ContractViolation: If the order is not pending
        """
        self._check_symbol(order.symbol)
        if order.status != OrderStatus.PENDING:
            raise ContractViolation(f"Order {order.order_id} is {order.status.value}, expected PENDING")
        # Stored before watching so an immediate fill finds its order
        self.store.add(order)
        self.watchers.submit(order)

    def cancel(self, order_id: str) -> bool:
        """
        Cancel a pending order.

        Returns:
            True if the order was being watched and is now canceled
        """
        return self.watchers.cancel(order_id)

    def resubmit(self, order_id: str) -> None:
        """
        Watch a stored pending order again, e.g. after its feed failed.

        Raises:
            KeyError: If the order is unknown
            ContractViolation: If the order is not pending or still watched
        """
        order = self.store.get(order_id)
        if order is None:
            raise KeyError(order_id)
        self.watchers.submit(order)

    def summary(self, symbol: str) -> PortfolioSummary:
        """
        Get the portfolio summary for a symbol.

        Args:
            symbol: Stock symbol

        Returns:
            Snapshot covering every order fulfilled so far

        Raises:
            ValueError: If symbol is not supported
        """
        self._check_symbol(symbol)
        with self._lock:
            aggregator = self._aggregators.get(symbol)
            if aggregator is None:
                aggregator = self._aggregators[symbol] = SummaryAggregator(symbol)

            # Read and fold under one lock so the cursor never runs ahead of the read
            fed = aggregator.catch_up(self.store.done_orders(symbol))
            if fed:
                logger.debug("Folded %d new orders into %s summary", fed, symbol)
            return aggregator.snapshot()

    def close(self) -> None:
        """Cancel every pending watcher and close the journal."""
        for order_id in self.watchers.active_order_ids():
            self.watchers.cancel(order_id)
        if self.journal is not None:
            self.journal.close()

    def pending_orders(self) -> List[str]:
        """IDs of orders still being watched."""
        return self.watchers.active_order_ids()

    @property
    def failures(self) -> List[FeedFailure]:
        return list(self.watchers.failures)

    def get_supported_symbols(self) -> Optional[List[str]]:
        return self.watchers.get_supported_symbols()

    def _check_symbol(self, symbol: str) -> None:
        supported = self.watchers.supported_symbols
        if supported is not None and symbol not in supported:
            raise ValueError(f"Symbol {symbol} not supported")

    def _on_completion(self, completion: OrderCompletion) -> None:
        order = self.store.mark_done(completion)
        logger.info(
            "Order %s done: %s %d %s @ %s",
            order.order_id, order.side.value, order.quantity, order.symbol,
            completion.actual_price,
        )
