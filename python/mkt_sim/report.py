"""Headless session runner and CSV report.

Runs a session on virtual time (ManualScheduler), so a 10-minute session
finishes instantly and is reproducible for a given seed.
"""

from __future__ import annotations

from dataclasses import asdict
from datetime import datetime, timedelta
from pathlib import Path
from typing import Iterable, Mapping, Optional

import pandas as pd
from loguru import logger

from .clock import ManualScheduler
from .config import DEFAULT_INSTRUMENTS, SessionConfig
from .errors import MarketSimError
from .metrics import summarize
from .session import MarketSession
from .types import Instrument, MarketSnapshot


def run_headless(
    seconds: float,
    output_dir: str | Path = "outputs",
    config: SessionConfig = SessionConfig(),
    seed: Optional[int] = None,
    instruments: Iterable[Instrument] = DEFAULT_INSTRUMENTS,
    initial_orders: Optional[Mapping[str, int]] = None,
    advance_days: int = 0,
    keep_playing: bool = True,
) -> dict:
    """Simulate `seconds` of market time and write equity/fills/events CSVs.

    `initial_orders` are bought before the timers start; `advance_days`
    jumps the calendar first. When the win threshold is crossed and
    `keep_playing` is set, the session resumes in endless mode.
    """
    out_dir = Path(output_dir)
    out_dir.mkdir(parents=True, exist_ok=True)

    scheduler = ManualScheduler()
    t0 = datetime.combine(config.start_date, datetime.min.time())
    session = MarketSession.create(
        instruments,
        config=config,
        seed=seed,
        now=lambda: t0 + timedelta(seconds=scheduler.now()),
    )

    curve: list[tuple[float, float]] = []

    def _record(snap: MarketSnapshot) -> None:
        curve.append((scheduler.now(), snap.portfolio_value))

    won: list[bool] = []
    session.subscribe(_record)
    if keep_playing:
        session.subscribe_win(lambda _snap: won.append(True))

    if advance_days:
        session.advance_day(int(advance_days))
    for symbol, qty in (initial_orders or {}).items():
        try:
            session.buy(symbol, int(qty))
        except MarketSimError as exc:
            logger.warning("initial order {} x{} skipped: {}", symbol, qty, exc)

    session.start(scheduler)
    step = config.schedule.refresh_period
    elapsed = 0.0
    while elapsed < seconds:
        dt = min(step, seconds - elapsed)
        scheduler.advance(dt)
        elapsed += dt
        if won:
            won.clear()
            session.keep_playing()
    session.stop()

    eq = pd.DataFrame(curve, columns=["Time", "Equity"]).groupby("Time").last()
    if eq.empty:
        eq = pd.DataFrame({"Equity": [session.portfolio_value()]}, index=pd.Index([0.0], name="Time"))
    fills = pd.DataFrame([asdict(f) for f in session.state.ledger.fills])
    events = pd.DataFrame(
        [
            {"timestamp": e.timestamp, "kind": e.kind.value, "title": e.title, "message": e.message, "symbol": e.symbol}
            for e in session.state.events
        ]
    )

    eq_path = out_dir / "equity.csv"
    fills_path = out_dir / "fills.csv"
    events_path = out_dir / "events.csv"
    eq.to_csv(eq_path, encoding="utf-8")
    fills.to_csv(fills_path, index=False, encoding="utf-8")
    events.to_csv(events_path, index=False, encoding="utf-8")

    stats = summarize(eq["Equity"])
    stats.update(
        {
            "realized_pl": session.state.ledger.realized_pl,
            "total_pl": session.total_pl(),
            "events": len(session.state.events),
            "has_won": session.state.has_won,
        }
    )
    logger.info(
        "headless run done: value={:,.2f} return={:+.2%} maxDD={:.2%}",
        stats["final_value"],
        stats["total_return"],
        stats["max_drawdown"],
    )
    return {"equity": eq_path, "fills": fills_path, "events": events_path, "stats": stats}
