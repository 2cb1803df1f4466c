# tests/conftest.py
from __future__ import annotations

from datetime import datetime
from typing import Iterable

import pytest
from loguru import logger

from mkt_sim.clock import ManualScheduler
from mkt_sim.config import SessionConfig
from mkt_sim.session import MarketSession
from mkt_sim.types import Instrument

FIXED_TS = datetime(2015, 11, 24, 9, 30)

INSTRUMENTS = (
    Instrument("AAPL", "Apple Inc.", 175.50, 0.02),
    Instrument("TSLA", "Tesla Inc.", 238.45, 0.05),
    Instrument("NFLX", "Netflix Inc.", 445.60, 0.035),
)


@pytest.fixture(autouse=True)
def disable_logger():
    logger.remove()
    logger.add(lambda msg: None)
    yield


class StubRng:
    """Replays fixed draws; mirrors the subset of numpy.random.Generator we use."""

    def __init__(self, randoms: Iterable[float] = (0.5,), ints: Iterable[int] = (0,)):
        self.randoms = list(randoms)
        self.ints = list(ints)
        self.calls = 0

    def random(self, size=None):
        self.calls += 1
        value = self.randoms[0] if len(self.randoms) == 1 else self.randoms.pop(0)
        return value

    def integers(self, low, high=None, size=None):
        self.calls += 1
        value = self.ints[0] if len(self.ints) == 1 else self.ints.pop(0)
        return value


class ExplodingRng:
    def random(self, size=None):
        raise AssertionError("random draw while paused")

    def integers(self, low, high=None, size=None):
        raise AssertionError("random draw while paused")


@pytest.fixture
def stub_rng():
    return StubRng


@pytest.fixture
def exploding_rng():
    return ExplodingRng()


@pytest.fixture
def instruments():
    return INSTRUMENTS


@pytest.fixture
def cfg() -> SessionConfig:
    return SessionConfig(horizon_days=120)


@pytest.fixture
def session(cfg) -> MarketSession:
    return MarketSession.create(INSTRUMENTS, config=cfg, seed=42, now=lambda: FIXED_TS)


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def set_prices():
    """Force every live price (and its day range) to a known value."""

    def _set(session: MarketSession, price: float | dict[str, float]) -> None:
        for sym, stock in session.state.stocks.items():
            p = price[sym] if isinstance(price, dict) else price
            stock.current_price = float(p)
            stock.daily_high = float(p)
            stock.daily_low = float(p)

    return _set
