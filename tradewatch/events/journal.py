"""
Structured JSON event journal for order lifecycle events.

Emits one JSON object per line to a stream (stderr by default) so that
order submissions, fills, cancellations and feed failures can be picked
up by a log aggregator.
"""

from __future__ import annotations

import json
import sys
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from tradewatch.events.models import FeedFailure, Order, OrderCompletion


def _default(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


class EventJournal:
    """Emit structured JSON order events to a stream."""

    def __init__(self, *, enabled: bool = True, stream: Any = None, owns_stream: bool = False) -> None:
        self._enabled = enabled
        self._stream = stream or sys.stderr
        self._owns_stream = owns_stream

    def close(self) -> None:
        """Close the stream if the journal opened it."""
        if self._owns_stream and not self._stream.closed:
            self._stream.close()

    def __enter__(self) -> "EventJournal":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _emit(self, event_type: str, **fields: Any) -> dict:
        record = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "event": event_type,
            **fields,
        }
        if self._enabled:
            self._stream.write(json.dumps(record, default=_default) + "\n")
            self._stream.flush()
        return record

    def order_submitted(self, order: Order) -> dict:
        return self._emit(
            "order_submitted",
            order_id=order.order_id,
            symbol=order.symbol,
            side=order.side.value,
            trigger=order.trigger.value,
            price=order.price,
            quantity=order.quantity,
        )

    def order_filled(self, order: Order, completion: OrderCompletion) -> dict:
        return self._emit(
            "order_filled",
            order_id=completion.order_id,
            symbol=order.symbol,
            side=order.side.value,
            actual_price=completion.actual_price,
            time=completion.time,
        )

    def order_canceled(self, order_id: str) -> dict:
        return self._emit("order_canceled", order_id=order_id)

    def feed_failed(self, failure: FeedFailure) -> dict:
        # A failure carrying a completion fired but was never delivered
        return self._emit(
            "delivery_failed" if failure.completion else "feed_failed",
            order_id=failure.order_id,
            symbol=failure.symbol,
            error=str(failure.error),
            actual_price=failure.completion.actual_price if failure.completion else None,
        )

    def subscribe_failed(self, order: Order, error: Exception) -> dict:
        return self._emit(
            "subscribe_failed",
            order_id=order.order_id,
            symbol=order.symbol,
            error=str(error),
        )
