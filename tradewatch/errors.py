"""
Exception types raised by the order tracking core.

Contract violations indicate a caller bug and are fatal to the call.
Price feed errors are transport failures surfaced to the caller, who
decides whether to retry or alert.
"""


class TradeWatchError(Exception):
    """Base class for all tradewatch errors."""


class ContractViolation(TradeWatchError, ValueError):
    """A caller broke an input contract (bad status, quantity, or replay)."""


class PriceFeedError(TradeWatchError, RuntimeError):
    """The price feed failed mid-subscription."""

    def __init__(self, symbol: str, message: str):
        super().__init__(f"Price feed for {symbol} failed: {message}")
        self.symbol = symbol
