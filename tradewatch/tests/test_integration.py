"""
Integration tests for the OrderTracker.

Tests complete end-to-end scenarios: orders submitted, filled by live
prices, written to the store and summarized per symbol.
"""

import io
import json
from decimal import Decimal
from datetime import datetime
import pytest
from tradewatch.engine.price_feed import InMemoryPriceFeed
from tradewatch.engine.tracker import OrderTracker
from tradewatch.errors import ContractViolation
from tradewatch.events.journal import EventJournal
from tradewatch.events.models import Order, OrderSide, OrderTrigger, OrderStatus, PriceTick


def make_order(order_id, side, quantity, price, trigger, symbol="AAPL"):
    return Order(
        order_id=order_id,
        symbol=symbol,
        side=side,
        trigger=trigger,
        price=Decimal(price),
        quantity=quantity,
        timestamp=datetime.now()
    )


def publish(feed, symbol, price):
    feed.publish(PriceTick(symbol=symbol, price=Decimal(price), timestamp=datetime.now()))


def test_full_tracking_scenario():
    """Integration: buys and a sell filled by ticks produce the FIFO summary."""
    feed = InMemoryPriceFeed()
    tracker = OrderTracker(feed, ["AAPL", "MSFT"])

    tracker.submit(make_order("B1", OrderSide.BUY, 10, "100", OrderTrigger.LESS_THAN_OR_EQUAL))
    publish(feed, "AAPL", "100")

    tracker.submit(make_order("B2", OrderSide.BUY, 5, "110", OrderTrigger.MORE_THAN_OR_EQUAL))
    publish(feed, "AAPL", "110")

    tracker.submit(make_order("S1", OrderSide.SELL, 12, "120", OrderTrigger.MORE_THAN_OR_EQUAL))
    publish(feed, "AAPL", "115")
    assert tracker.pending_orders() == ["S1"]
    publish(feed, "AAPL", "120")

    assert tracker.pending_orders() == []
    for order_id in ("B1", "B2", "S1"):
        assert tracker.store.get(order_id).status == OrderStatus.DONE

    summary = tracker.summary("AAPL")
    assert summary.orders_processed == 3
    assert summary.buy_amount == Decimal("1550")
    assert summary.sell_amount == Decimal("1440")
    assert summary.settled_amount == Decimal("1220")
    assert summary.stocks_in_hand == 3
    assert summary.stock_amount == Decimal("330")
    assert summary.profit_loss == Decimal("220")


def test_repeated_summary_does_not_double_count():
    """Integration: asking for the summary again only folds new fills."""
    feed = InMemoryPriceFeed()
    tracker = OrderTracker(feed)

    tracker.submit(make_order("B1", OrderSide.BUY, 10, "50", OrderTrigger.LESS_THAN_OR_EQUAL))
    publish(feed, "AAPL", "50")

    first = tracker.summary("AAPL")
    assert tracker.summary("AAPL") == first
    assert first.stocks_in_hand == 10
    assert first.stock_amount == Decimal("500")
    assert first.settled_amount == 0
    assert first.profit_loss == 0

    tracker.submit(make_order("S1", OrderSide.SELL, 4, "60", OrderTrigger.MORE_THAN_OR_EQUAL))
    publish(feed, "AAPL", "61")

    second = tracker.summary("AAPL")
    assert second.orders_processed == 2
    assert second.stocks_in_hand == 6
    assert second.settled_amount == Decimal("200")
    assert second.profit_loss == Decimal("44")


def test_cross_symbol_independence():
    """Integration: fills on one symbol don't affect another's summary."""
    feed = InMemoryPriceFeed()
    tracker = OrderTracker(feed, ["AAPL", "MSFT"])

    tracker.submit(make_order("A1", OrderSide.BUY, 10, "150", OrderTrigger.LESS_THAN_OR_EQUAL, "AAPL"))
    tracker.submit(make_order("M1", OrderSide.BUY, 3, "300", OrderTrigger.LESS_THAN_OR_EQUAL, "MSFT"))
    publish(feed, "AAPL", "149")

    assert tracker.summary("AAPL").stocks_in_hand == 10
    assert tracker.summary("MSFT").orders_processed == 0
    assert tracker.pending_orders() == ["M1"]


def test_cancel_pending_order():
    """Integration: a canceled order is never filled or summarized."""
    feed = InMemoryPriceFeed()
    tracker = OrderTracker(feed)

    tracker.submit(make_order("B1", OrderSide.BUY, 10, "100", OrderTrigger.LESS_THAN_OR_EQUAL))
    assert tracker.cancel("B1") is True
    assert tracker.cancel("B1") is False
    publish(feed, "AAPL", "90")

    assert tracker.store.get("B1").status == OrderStatus.PENDING
    assert tracker.summary("AAPL").orders_processed == 0


def test_feed_failure_then_resubmit():
    """Integration: a failed feed leaves the order pending until resubmitted."""
    feed = InMemoryPriceFeed()
    failures = []
    tracker = OrderTracker(feed, on_failure=failures.append)

    tracker.submit(make_order("B1", OrderSide.BUY, 10, "100", OrderTrigger.LESS_THAN_OR_EQUAL))
    feed.fail("AAPL")

    assert [f.order_id for f in failures] == ["B1"]
    assert [f.order_id for f in tracker.failures] == ["B1"]
    assert tracker.pending_orders() == []
    assert tracker.store.get("B1").status == OrderStatus.PENDING

    tracker.resubmit("B1")
    publish(feed, "AAPL", "95")

    assert tracker.store.get("B1").actual_price == Decimal("95")
    assert tracker.summary("AAPL").stocks_in_hand == 10


def test_unsupported_symbol():
    """Integration: orders and summaries for unknown symbols are refused."""
    tracker = OrderTracker(InMemoryPriceFeed(), ["AAPL"])

    with pytest.raises(ValueError, match="not supported"):
        tracker.submit(make_order("X", OrderSide.BUY, 1, "1", OrderTrigger.LESS_THAN_OR_EQUAL, "INVALID"))
    with pytest.raises(ValueError, match="not supported"):
        tracker.summary("INVALID")

    assert tracker.store.get("X") is None
    assert tracker.get_supported_symbols() == ["AAPL"]


def test_duplicate_order_id_rejected():
    """Integration: an order ID can only be submitted once."""
    tracker = OrderTracker(InMemoryPriceFeed())
    tracker.submit(make_order("B1", OrderSide.BUY, 1, "1", OrderTrigger.LESS_THAN_OR_EQUAL))

    with pytest.raises(ValueError, match="already exists"):
        tracker.submit(make_order("B1", OrderSide.BUY, 1, "1", OrderTrigger.LESS_THAN_OR_EQUAL))


def test_journal_records_lifecycle():
    """Integration: the journal emits one JSON line per lifecycle event."""
    feed = InMemoryPriceFeed()
    stream = io.StringIO()
    tracker = OrderTracker(feed, journal=EventJournal(stream=stream))

    tracker.submit(make_order("B1", OrderSide.BUY, 10, "100", OrderTrigger.LESS_THAN_OR_EQUAL))
    tracker.submit(make_order("B2", OrderSide.BUY, 10, "50", OrderTrigger.LESS_THAN_OR_EQUAL))
    publish(feed, "AAPL", "99.5")
    tracker.cancel("B2")

    events = [json.loads(line) for line in stream.getvalue().splitlines()]
    assert [e["event"] for e in events] == [
        "order_submitted", "order_submitted", "order_filled", "order_canceled",
    ]
    assert events[0]["price"] == "100"
    assert events[2]["order_id"] == "B1"
    assert events[2]["actual_price"] == "99.5"
    assert events[3]["order_id"] == "B2"


def test_store_failure_keeps_fill_for_redelivery():
    """Integration: a fill the store could not record is surfaced with its completion."""
    feed = InMemoryPriceFeed()
    failures = []
    tracker = OrderTracker(feed, on_failure=failures.append)
    tracker.submit(make_order("B1", OrderSide.BUY, 10, "100", OrderTrigger.LESS_THAN_OR_EQUAL))
    tracker.submit(make_order("B2", OrderSide.BUY, 5, "100", OrderTrigger.LESS_THAN_OR_EQUAL))

    original = tracker.store.mark_done

    def flaky_mark_done(completion):
        if completion.order_id == "B1":
            raise ConnectionError("store down")
        return original(completion)

    tracker.store.mark_done = flaky_mark_done
    publish(feed, "AAPL", "99")

    assert tracker.store.get("B2").status == OrderStatus.DONE
    assert tracker.store.get("B1").status == OrderStatus.PENDING
    assert [f.order_id for f in failures] == ["B1"]

    # Caller redelivers the kept completion once the store recovers
    tracker.store.mark_done = original
    original(failures[0].completion)
    summary = tracker.summary("AAPL")
    assert summary.buy_quantity == 15
    assert summary.buy_amount == Decimal("1485")


def test_rejected_order_never_stored():
    """Integration: an order refused at submit does not reach the store."""
    tracker = OrderTracker(InMemoryPriceFeed(), ["AAPL"])
    done = make_order("B1", OrderSide.BUY, 1, "1", OrderTrigger.LESS_THAN_OR_EQUAL)
    done.fulfill(Decimal("1"), datetime.now())

    with pytest.raises(ContractViolation, match="expected PENDING"):
        tracker.submit(done)
    assert tracker.store.get("B1") is None


def test_close_cancels_watchers_and_closes_journal(tmp_path):
    """Integration: closing the tracker stops watching and releases the journal file."""
    feed = InMemoryPriceFeed()
    path = tmp_path / "events.jsonl"
    journal = EventJournal(stream=open(path, "a", encoding="utf-8"), owns_stream=True)
    tracker = OrderTracker(feed, journal=journal)
    tracker.submit(make_order("B1", OrderSide.BUY, 1, "1", OrderTrigger.LESS_THAN_OR_EQUAL))

    tracker.close()

    assert tracker.pending_orders() == []
    assert feed.subscriber_count("AAPL") == 0
    assert journal._stream.closed
    events = [json.loads(line)["event"] for line in path.read_text().splitlines()]
    assert events == ["order_submitted", "order_canceled"]
