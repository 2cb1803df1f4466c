"""Session state and the MarketSession facade.

`SessionState` is the explicit, owned context of one simulated session.
`MarketSession` is the only thing allowed to mutate it: trades, time
advancement, pause control and the periodic tick/event callbacks all go
through it, and every mutation ends with a win check and a notification.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta
from typing import Callable, Deque, Dict, Iterable, List, Optional

import numpy as np
from loguru import logger

from .clock import PeriodicTask, Scheduler
from .config import DEFAULT_INSTRUMENTS, SessionConfig
from .day_window import DayWindowProjector
from .errors import HorizonExceeded, InvalidIndex, MarketPaused, MarketSimError, UnknownInstrument
from .ledger import PortfolioLedger
from .market import LiveStockState, MarketClock
from .price_series import PriceSeries, PriceSeriesGenerator
from .types import Fill, Instrument, MarketEvent, MarketSnapshot, PositionView

Listener = Callable[[MarketSnapshot], None]

SKIP_DAYS = {"day": 1, "week": 7, "month": 30, "year": 365}


@dataclass
class SessionState:
    config: SessionConfig
    instruments: Dict[str, Instrument]
    series: Dict[str, PriceSeries]
    stocks: Dict[str, LiveStockState]
    ledger: PortfolioLedger
    current_date: date
    day_index: int = 0
    paused: bool = False
    has_won: bool = False
    endless: bool = False  # resumed after winning
    selected: Optional[str] = None
    events: Deque[MarketEvent] = field(default_factory=deque)

    @property
    def horizon_days(self) -> int:
        return self.config.horizon_days

    def prices(self) -> Dict[str, float]:
        return {s: st.current_price for s, st in self.stocks.items()}


def init_session(
    instruments: Iterable[Instrument] = DEFAULT_INSTRUMENTS,
    horizon_days: Optional[int] = None,
    starting_cash: Optional[float] = None,
    config: Optional[SessionConfig] = None,
    rng: Optional[np.random.Generator] = None,
) -> SessionState:
    """Generate every price series and project day 0. No timers are started."""
    cfg = config or SessionConfig()
    overrides = {}
    if horizon_days is not None:
        overrides["horizon_days"] = int(horizon_days)
    if starting_cash is not None:
        overrides["starting_cash"] = float(starting_cash)
    if overrides:
        cfg = replace(cfg, **overrides)

    catalog: Dict[str, Instrument] = {}
    for inst in instruments:
        if inst.symbol in catalog:
            raise ValueError(f"duplicate symbol in catalog: {inst.symbol}")
        catalog[inst.symbol] = inst
    if not catalog:
        raise ValueError("at least one instrument is required")

    rng = rng if rng is not None else np.random.default_rng()
    generator = PriceSeriesGenerator(rng, cfg.price_gen, start_date=cfg.start_date)
    series = generator.generate_all(catalog.values(), cfg.horizon_days)

    projector = DayWindowProjector(rng, cfg.window)
    stocks = {
        sym: LiveStockState.from_window(projector.project(series[sym], 0), cfg.window.history_cap)
        for sym in catalog
    }

    logger.info(
        "session initialized: {} instruments, {} days, cash={:,.2f}",
        len(catalog),
        cfg.horizon_days,
        cfg.starting_cash,
    )
    return SessionState(
        config=cfg,
        instruments=catalog,
        series=series,
        stocks=stocks,
        ledger=PortfolioLedger(cash=float(cfg.starting_cash)),
        current_date=cfg.start_date,
        events=deque(maxlen=cfg.market.event_log_cap),
    )


class MarketSession:
    """Owns a SessionState and exposes every operation on it."""

    def __init__(
        self,
        state: SessionState,
        rng: Optional[np.random.Generator] = None,
        now: Callable[[], datetime] = datetime.now,
    ):
        self.state = state
        self.rng = rng if rng is not None else np.random.default_rng()
        self.now = now
        self.projector = DayWindowProjector(self.rng, state.config.window)
        self.clock = MarketClock(self.rng, state.config.market, now=now)

        self._listeners: List[Listener] = []
        self._win_listeners: List[Listener] = []
        self._tasks: List[PeriodicTask] = []
        self.scheduler: Optional[Scheduler] = None

    @classmethod
    def create(
        cls,
        instruments: Iterable[Instrument] = DEFAULT_INSTRUMENTS,
        config: Optional[SessionConfig] = None,
        seed: Optional[int] = None,
        now: Callable[[], datetime] = datetime.now,
    ) -> "MarketSession":
        """Bootstrap state and session from a single seeded generator."""
        rng = np.random.default_rng(seed)
        state = init_session(instruments, config=config, rng=rng)
        return cls(state, rng=rng, now=now)

    # ---------- listeners ----------

    def subscribe(self, listener: Listener) -> Listener:
        self._listeners.append(listener)
        return listener

    def unsubscribe(self, listener: Listener) -> None:
        self._listeners.remove(listener)

    def subscribe_win(self, listener: Listener) -> Listener:
        self._win_listeners.append(listener)
        return listener

    def _changed(self) -> None:
        self._check_win()
        if self._listeners:
            snap = self.snapshot()
            for listener in list(self._listeners):
                listener(snap)

    def _check_win(self) -> None:
        st = self.state
        if st.has_won:
            return
        value = st.ledger.portfolio_value(st.prices())
        if value < st.config.win_threshold:
            return
        st.has_won = True
        st.paused = True
        logger.success("net worth {:,.2f} reached {:,.2f}; market paused", value, st.config.win_threshold)
        snap = self.snapshot()
        for listener in list(self._win_listeners):
            listener(snap)

    # ---------- queries ----------

    def _stock(self, symbol: str) -> LiveStockState:
        try:
            return self.state.stocks[symbol]
        except KeyError:
            raise UnknownInstrument(f"unknown symbol {symbol!r}") from None

    def price(self, symbol: str) -> float:
        return self._stock(symbol).current_price

    def portfolio_value(self) -> float:
        return self.state.ledger.portfolio_value(self.state.prices())

    def unrealized_pl(self) -> float:
        return self.state.ledger.unrealized_pl(self.state.prices())

    def total_pl(self) -> float:
        return self.state.ledger.total_pl(self.state.prices())

    def filter_instruments(self, query: str) -> List[Instrument]:
        """Case-insensitive substring match on symbol or name."""
        q = (query or "").strip().lower()
        return [i for i in self.state.instruments.values() if q in i.symbol.lower() or q in i.name.lower()]

    def recent_events(self) -> List[MarketEvent]:
        """Event log, newest first."""
        return list(reversed(self.state.events))

    def snapshot(self) -> MarketSnapshot:
        st = self.state
        prices = st.prices()
        positions = {
            s: PositionView(symbol=s, quantity=p.quantity, average_cost=p.average_cost, price=prices[s])
            for s, p in st.ledger.positions.items()
        }
        return MarketSnapshot(
            day_index=st.day_index,
            date=st.current_date,
            cash=st.ledger.cash,
            realized_pl=st.ledger.realized_pl,
            unrealized_pl=st.ledger.unrealized_pl(prices),
            portfolio_value=st.ledger.portfolio_value(prices),
            paused=st.paused,
            has_won=st.has_won,
            selected=st.selected,
            years_elapsed=st.day_index / 365.25,
            progress_pct=st.day_index / st.horizon_days * 100.0,
            quotes={s: stock.quote(s) for s, stock in st.stocks.items()},
            positions=positions,
        )

    # ---------- trading ----------

    def buy(self, symbol: str, quantity: int) -> Fill:
        try:
            self._require_open()
            price = self.price(symbol)
            fill = self.state.ledger.buy(symbol, quantity, price, ts=self.now())
        except MarketSimError as exc:
            logger.warning("[ORDER REJECTED] BUY {} x{}: {}", symbol, quantity, exc)
            raise
        logger.info("[FILL] BUY {} x{} @ {:.2f} (cash {:,.2f})", symbol, fill.quantity, fill.price, fill.cash_after)
        self._changed()
        return fill

    def sell(self, symbol: str, quantity: int) -> Fill:
        try:
            self._require_open()
            price = self.price(symbol)
            fill = self.state.ledger.sell(symbol, quantity, price, ts=self.now())
        except MarketSimError as exc:
            logger.warning("[ORDER REJECTED] SELL {} x{}: {}", symbol, quantity, exc)
            raise
        logger.info(
            "[FILL] SELL {} x{} @ {:.2f} (realized {:+,.2f})", symbol, fill.quantity, fill.price, fill.realized_pl
        )
        self._changed()
        return fill

    def _require_open(self) -> None:
        if self.state.paused:
            raise MarketPaused("trading is disabled while the market is paused")

    def select(self, symbol: Optional[str]) -> None:
        if symbol is not None:
            self._stock(symbol)
        self.state.selected = symbol
        self._changed()

    # ---------- time ----------

    def advance_day(self, days: int = 1) -> None:
        """Jump forward and hard-reset every instrument to the new day's window."""
        st = self.state
        if isinstance(days, bool) or not isinstance(days, (int, np.integer)) or days < 1:
            raise InvalidIndex(f"days must be a positive integer, got {days!r}")
        new_index = st.day_index + int(days)
        if new_index >= st.horizon_days:
            logger.warning("cannot advance {} days: horizon of {} days reached", days, st.horizon_days)
            raise HorizonExceeded(f"day {new_index} is beyond the {st.horizon_days}-day horizon")

        cap = st.config.window.history_cap
        stocks = {
            sym: LiveStockState.from_window(self.projector.project(st.series[sym], new_index), cap)
            for sym in st.stocks
        }
        st.stocks = stocks
        st.day_index = new_index
        st.current_date = st.config.start_date + timedelta(days=new_index)
        logger.info("advanced {} day(s) to {} (day {})", days, st.current_date, new_index)
        self._changed()

    def skip(self, period: str) -> None:
        """Advance by a named step: day, week, month or year."""
        try:
            days = SKIP_DAYS[period]
        except KeyError:
            raise ValueError(f"unknown period {period!r}; expected one of {sorted(SKIP_DAYS)}") from None
        self.advance_day(days)

    # ---------- pause / win ----------

    def pause(self) -> None:
        self.state.paused = True
        logger.info("market paused")
        self._changed()

    def resume(self) -> None:
        """Reopen the market. Resuming after a win switches to endless mode."""
        self.state.paused = False
        if self.state.has_won:
            self.state.endless = True
        logger.info("market resumed")
        self._changed()

    def toggle_pause(self) -> bool:
        if self.state.paused:
            self.resume()
        else:
            self.pause()
        return self.state.paused

    def keep_playing(self) -> None:
        """Resume after a win; the win signal does not fire again."""
        self.resume()

    def clear_events(self) -> None:
        self.state.events.clear()
        self._changed()

    # ---------- forced events ----------

    def trigger_crash(self) -> MarketEvent:
        return self._forced(self.clock.trigger_crash(self.state))

    def trigger_recession(self) -> MarketEvent:
        return self._forced(self.clock.trigger_recession(self.state))

    def trigger_earnings(self, good: Optional[bool] = None) -> MarketEvent:
        return self._forced(self.clock.trigger_earnings(self.state, good=good))

    def trigger_whale(self, symbol: Optional[str] = None) -> MarketEvent:
        return self._forced(self.clock.trigger_whale(self.state, symbol=symbol))

    def _forced(self, event: MarketEvent) -> MarketEvent:
        # applied regardless of pause, then notified like a timed event
        self._changed()
        return event

    # ---------- periodic callbacks ----------

    def tick(self) -> None:
        if self.state.paused:
            return
        if self.clock.tick(self.state):
            self._changed()

    def refresh(self) -> None:
        """P&L recompute + win check."""
        if self.state.paused:
            return
        self._changed()

    def _event_callback(self, check: Callable[[SessionState], Optional[MarketEvent]]) -> Callable[[], None]:
        def run() -> None:
            if self.state.paused:
                return
            if check(self.state) is not None:
                self._changed()

        run.__name__ = check.__name__
        return run

    def start(self, scheduler: Scheduler) -> None:
        """Register tick, refresh and the four shock checks on `scheduler`."""
        if self._tasks:
            raise RuntimeError("session already started")
        sched = self.state.config.schedule
        self.scheduler = scheduler
        self._tasks = [
            scheduler.every(sched.tick_period, self.tick, name="tick"),
            scheduler.every(sched.refresh_period, self.refresh, name="refresh"),
        ]
        for check in (
            self.clock.check_crash,
            self.clock.check_recession,
            self.clock.check_earnings,
            self.clock.check_whale,
        ):
            self._tasks.append(scheduler.every(sched.event_period, self._event_callback(check), name=check.__name__))
        logger.info("market timers started (tick every {}s)", sched.tick_period)

    def stop(self) -> None:
        if self.scheduler is not None:
            for task in self._tasks:
                self.scheduler.cancel(task)
        self._tasks = []
        self.scheduler = None
        logger.info("market timers stopped")
