"""Recoverable domain errors.

Every error here is raised *before* any state is touched, so callers can
report it and carry on with the session.
"""

from __future__ import annotations


class MarketSimError(RuntimeError):
    """Base class for errors a user can trigger through normal play."""


class InvalidQuantity(MarketSimError):
    pass


class InsufficientFunds(MarketSimError):
    pass


class InsufficientShares(MarketSimError):
    pass


class MarketPaused(MarketSimError):
    pass


class InvalidIndex(MarketSimError):
    pass


class HorizonExceeded(MarketSimError):
    pass


class UnknownInstrument(MarketSimError):
    pass
