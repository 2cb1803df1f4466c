"""Catalog entries, fills, events and the read-only views handed to listeners."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Optional


@dataclass(frozen=True)
class Instrument:
    """Catalog entry for a simulated stock."""

    symbol: str
    name: str
    base_price: float
    volatility: float
    icon: str = ""

    def __post_init__(self) -> None:
        if not self.symbol:
            raise ValueError("symbol must be non-empty")
        if not self.base_price > 0:
            raise ValueError(f"base_price must be positive, got {self.base_price}")
        if not 0.0 < self.volatility < 1.0:
            raise ValueError(f"volatility must be in (0, 1), got {self.volatility}")


@dataclass(frozen=True)
class DayWindow:
    """OHLCV view of a single simulated trading day.

    `history` is most-recent-last and ends with `close`.
    """

    day_index: int
    date: date
    open: float
    high: float
    low: float
    close: float
    history: tuple[float, ...]
    volume: int


class EventKind(str, Enum):
    CRASH = "crash"
    RECESSION = "recession"
    EARNINGS_GOOD = "earnings-good"
    EARNINGS_BAD = "earnings-bad"
    WHALE = "whale"


@dataclass(frozen=True)
class MarketEvent:
    """A fired shock event, as shown in the event log."""

    kind: EventKind
    title: str
    message: str
    timestamp: datetime
    symbol: Optional[str] = None  # set for single-instrument events (whale)


@dataclass(frozen=True)
class Fill:
    """A single executed order."""

    timestamp: datetime
    symbol: str
    side: str  # 'BUY'/'SELL'
    quantity: int
    price: float
    notional: float
    realized_pl: float = 0.0  # only non-zero for sells
    cash_after: float = 0.0


@dataclass(frozen=True)
class Quote:
    """Read-only copy of one instrument's live state."""

    symbol: str
    price: float
    open: float
    high: float
    low: float
    volume: int
    history: tuple[float, ...]

    @property
    def change(self) -> float:
        return self.price - self.open

    @property
    def change_pct(self) -> float:
        return (self.change / self.open) * 100.0 if self.open > 0 else 0.0


@dataclass(frozen=True)
class PositionView:
    """Mark-to-market view of a held position."""

    symbol: str
    quantity: int
    average_cost: float
    price: float

    @property
    def market_value(self) -> float:
        return self.quantity * self.price

    @property
    def cost_basis(self) -> float:
        return self.quantity * self.average_cost

    @property
    def unrealized_pl(self) -> float:
        return self.market_value - self.cost_basis

    @property
    def unrealized_pl_pct(self) -> float:
        basis = self.cost_basis
        return (self.unrealized_pl / basis) * 100.0 if basis > 0 else 0.0


@dataclass(frozen=True)
class MarketSnapshot:
    """Everything a renderer or signal producer may read about a session."""

    day_index: int
    date: date
    cash: float
    realized_pl: float
    unrealized_pl: float
    portfolio_value: float
    paused: bool
    has_won: bool
    selected: Optional[str]
    years_elapsed: float
    progress_pct: float
    quotes: dict[str, Quote] = field(default_factory=dict)
    positions: dict[str, PositionView] = field(default_factory=dict)

    @property
    def total_pl(self) -> float:
        return self.unrealized_pl + self.realized_pl
