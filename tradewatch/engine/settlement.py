"""
FIFO settlement queue.

Holds the not-yet-sold part of each fulfilled buy in arrival order. Sell
volume consumes entries from the front, valuing every consumed share at
the price of the buy it came from. Entries are never reordered; an entry
is removed once its remaining quantity reaches zero.
"""

import logging
from collections import deque
from dataclasses import dataclass
from decimal import Decimal
from typing import Deque, Iterator, Tuple

logger = logging.getLogger(__name__)


@dataclass
class SettlementEntry:
    """Unsold remainder of one buy order."""
    remaining: int
    price: Decimal

    def cost(self) -> Decimal:
        return self.price * self.remaining


class SettlementQueue:
    """Buy entries awaiting consumption by sell volume, oldest first."""

    def __init__(self):
        self._entries: Deque[SettlementEntry] = deque()

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[SettlementEntry]:
        return iter(self._entries)

    def append(self, quantity: int, price: Decimal) -> SettlementEntry:
        """Park a new buy at the back of the queue."""
        assert quantity > 0
        entry = SettlementEntry(remaining=quantity, price=price)
        self._entries.append(entry)
        return entry

    def consume(self, volume: int) -> Tuple[int, Decimal]:
        """
        Consume up to volume shares from the front of the queue.

        Args:
            volume: Sell volume available for matching

        Returns:
            (shares consumed, cost basis of the consumed shares)
        """
        consumed = 0
        settled = Decimal("0")

        while volume > 0 and self._entries:
            entry = self._entries[0]
            qty = min(entry.remaining, volume)

            entry.remaining -= qty
            volume -= qty
            consumed += qty
            settled += qty * entry.price

            if entry.remaining == 0:
                self._entries.popleft()

        if consumed:
            logger.debug("Settled %d shares for %s", consumed, settled)
        return consumed, settled

    def quantity(self) -> int:
        """Total unsold shares parked on the queue."""
        return sum(entry.remaining for entry in self._entries)

    def cost(self) -> Decimal:
        """Cost basis of all unsold shares parked on the queue."""
        return sum((entry.cost() for entry in self._entries), Decimal("0"))
