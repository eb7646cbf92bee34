"""
Tests for the FIFO settlement queue.
"""

from decimal import Decimal
from tradewatch.engine.settlement import SettlementQueue


def test_consume_from_front_first():
    """Test sell volume consumes the oldest entry before newer ones."""
    queue = SettlementQueue()
    queue.append(10, Decimal("100"))
    queue.append(5, Decimal("110"))

    consumed, settled = queue.consume(12)

    assert consumed == 12
    assert settled == Decimal("1220")
    assert len(queue) == 1
    entry = next(iter(queue))
    assert entry.remaining == 3
    assert entry.price == Decimal("110")


def test_consume_more_than_available():
    """Test consumption stops when the queue is empty."""
    queue = SettlementQueue()
    queue.append(4, Decimal("25"))

    consumed, settled = queue.consume(10)

    assert consumed == 4
    assert settled == Decimal("100")
    assert len(queue) == 0


def test_consume_zero_is_noop():
    """Test consuming nothing leaves the queue untouched."""
    queue = SettlementQueue()
    queue.append(4, Decimal("25"))

    assert queue.consume(0) == (0, Decimal("0"))
    assert queue.quantity() == 4


def test_partial_consumption_keeps_order():
    """Test repeated partial sells keep walking the queue in order."""
    queue = SettlementQueue()
    queue.append(3, Decimal("10"))
    queue.append(3, Decimal("20"))
    queue.append(3, Decimal("30"))

    assert queue.consume(2) == (2, Decimal("20"))
    assert queue.consume(2) == (2, Decimal("30"))
    assert queue.consume(3) == (3, Decimal("70"))

    assert [(e.remaining, e.price) for e in queue] == [(2, Decimal("30"))]
    assert queue.cost() == Decimal("60")
