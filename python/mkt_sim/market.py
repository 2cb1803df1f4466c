"""Live prices: per-instrument state, the price tick and shock events.

Every mutation goes through `LiveStockState.record`, which keeps
daily_low <= current_price <= daily_high and bounds the history window.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Callable, Deque, List, Optional

import numpy as np
from loguru import logger

from .config import MarketConfig
from .errors import UnknownInstrument
from .types import DayWindow, EventKind, MarketEvent, Quote

if TYPE_CHECKING:
    from .session import SessionState


@dataclass
class LiveStockState:
    current_price: float
    daily_open: float
    daily_high: float
    daily_low: float
    volume: int
    price_history: Deque[float] = field(default_factory=deque)

    @classmethod
    def from_window(cls, window: DayWindow, history_cap: int) -> "LiveStockState":
        return cls(
            current_price=window.close,
            daily_open=window.open,
            daily_high=max(window.high, window.close),
            daily_low=min(window.low, window.close),
            volume=int(window.volume),
            price_history=deque(window.history, maxlen=history_cap),
        )

    def record(self, price: float) -> None:
        """Set a new live price, widen the day range and append to history."""
        self.current_price = float(price)
        self.daily_high = max(self.daily_high, self.current_price)
        self.daily_low = min(self.daily_low, self.current_price)
        self.price_history.append(self.current_price)

    @property
    def change(self) -> float:
        return self.current_price - self.daily_open

    @property
    def change_pct(self) -> float:
        return (self.change / self.daily_open) * 100.0 if self.daily_open > 0 else 0.0

    def quote(self, symbol: str) -> Quote:
        return Quote(
            symbol=symbol,
            price=self.current_price,
            open=self.daily_open,
            high=self.daily_high,
            low=self.daily_low,
            volume=self.volume,
            history=tuple(self.price_history),
        )


class MarketClock:
    """Applies ticks and shock events to a session's live prices.

    All `check_*` methods return immediately for a paused session, before
    drawing any random number. `trigger_*` methods apply an event
    unconditionally.
    """

    def __init__(
        self,
        rng: np.random.Generator,
        cfg: MarketConfig = MarketConfig(),
        now: Callable[[], datetime] = datetime.now,
    ):
        self.rng = rng
        self.cfg = cfg
        self.now = now

    # ---------- tick ----------

    def tick(self, state: "SessionState") -> bool:
        """Move every price by +-tick_step. Returns False when paused."""
        if state.paused:
            return False
        cfg = self.cfg
        for stock in state.stocks.values():
            direction = -1.0 if self.rng.random() < cfg.tick_down_prob else 1.0
            stock.record(max(cfg.tick_floor, stock.current_price + direction * cfg.tick_step))
            stock.volume += int(self.rng.integers(0, cfg.tick_volume_max))
        logger.debug("tick: {}", {s: round(st.current_price, 2) for s, st in state.stocks.items()})
        return True

    # ---------- event checks ----------

    def check_events(self, state: "SessionState") -> List[MarketEvent]:
        """Run all four checks in order; any number of them may fire."""
        fired = [
            self.check_crash(state),
            self.check_recession(state),
            self.check_earnings(state),
            self.check_whale(state),
        ]
        return [e for e in fired if e is not None]

    def check_crash(self, state: "SessionState") -> Optional[MarketEvent]:
        if state.paused or self.rng.random() >= self.cfg.crash_prob:
            return None
        return self.trigger_crash(state)

    def check_recession(self, state: "SessionState") -> Optional[MarketEvent]:
        if state.paused or self.rng.random() >= self.cfg.recession_prob:
            return None
        return self.trigger_recession(state)

    def check_earnings(self, state: "SessionState") -> Optional[MarketEvent]:
        if state.paused or self.rng.random() >= self.cfg.earnings_prob:
            return None
        return self.trigger_earnings(state)

    def check_whale(self, state: "SessionState") -> Optional[MarketEvent]:
        if state.paused or self.rng.random() >= self.cfg.whale_prob:
            return None
        return self.trigger_whale(state)

    # ---------- event effects ----------

    def trigger_crash(self, state: "SessionState") -> MarketEvent:
        cfg = self.cfg
        for stock in state.stocks.values():
            drop = cfg.crash_drop_min + self.rng.random() * (cfg.crash_drop_max - cfg.crash_drop_min)
            price = stock.current_price - stock.current_price * drop
            stock.record(max(cfg.event_floor, price))
        return self._log(
            state,
            EventKind.CRASH,
            "Market Crash",
            f"All stocks plummeted {cfg.crash_drop_min:.0%}-{cfg.crash_drop_max:.0%}!",
        )

    def trigger_recession(self, state: "SessionState") -> MarketEvent:
        price = self.cfg.recession_price
        for stock in state.stocks.values():
            stock.record(price)
        return self._log(state, EventKind.RECESSION, "Market Recession", f"All stocks dropped to ${price:.2f}!")

    def trigger_earnings(self, state: "SessionState", good: Optional[bool] = None) -> MarketEvent:
        cfg = self.cfg
        if good is None:
            good = bool(self.rng.random() < 0.5)
        sign = 1.0 if good else -1.0
        for stock in state.stocks.values():
            price = stock.current_price + sign * stock.current_price * cfg.earnings_move
            stock.record(max(cfg.event_floor, price))
        if good:
            return self._log(
                state, EventKind.EARNINGS_GOOD, "Positive Earnings", f"Market up {cfg.earnings_move:.0%} on good news!"
            )
        return self._log(
            state, EventKind.EARNINGS_BAD, "Negative Earnings", f"Market down {cfg.earnings_move:.0%} on bad news!"
        )

    def trigger_whale(self, state: "SessionState", symbol: Optional[str] = None) -> MarketEvent:
        if symbol is None:
            symbols = list(state.stocks)
            symbol = symbols[int(self.rng.integers(len(symbols)))]
        elif symbol not in state.stocks:
            raise UnknownInstrument(f"unknown symbol {symbol!r}")

        stock = state.stocks[symbol]
        # up 1000%: add whale_multiple x the current price, uncapped
        stock.record(stock.current_price + stock.current_price * self.cfg.whale_multiple)

        name = state.instruments[symbol].name
        pct = self.cfg.whale_multiple * 100.0
        return self._log(
            state, EventKind.WHALE, "Whale Buy", f"A whale bought {name}! Stock up {pct:.0f}%!", symbol=symbol
        )

    def _log(
        self,
        state: "SessionState",
        kind: EventKind,
        title: str,
        message: str,
        symbol: Optional[str] = None,
    ) -> MarketEvent:
        event = MarketEvent(kind=kind, title=title, message=message, timestamp=self.now(), symbol=symbol)
        state.events.append(event)
        logger.warning("[EVENT] {}: {}", title, message)
        return event
