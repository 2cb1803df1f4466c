"""Run a headless market session and write equity/fills/events CSVs.

Example:
    python -m scripts.run_session --seconds 600 --seed 7 \
      --buy AAPL=100 --buy TSLA=50 --output_dir outputs_session
"""

from __future__ import annotations

import argparse
import json
from pathlib import Path

from mkt_sim.config import SessionConfig
from mkt_sim.log import setup_logging
from mkt_sim.report import run_headless


def _parse_orders(items: list[str]) -> dict[str, int]:
    orders: dict[str, int] = {}
    for item in items or []:
        sym, sep, qty = item.partition("=")
        if not sep:
            raise SystemExit(f"--buy expects SYMBOL=QTY, got {item!r}")
        orders[sym.strip().upper()] = int(qty)
    return orders


def main() -> None:
    p = argparse.ArgumentParser()
    p.add_argument("--seconds", type=float, default=600.0, help="Simulated market time to run.")
    p.add_argument("--seed", type=int, default=None)
    p.add_argument("--output_dir", type=str, default="outputs_session")
    p.add_argument("--config", type=str, default=None, help="SessionConfig JSON (flat or nested keys).")
    p.add_argument("--buy", action="append", default=[], help="Initial order SYMBOL=QTY (repeatable).")
    p.add_argument("--advance_days", type=int, default=0, help="Jump the calendar before starting.")
    p.add_argument("--starting_cash", type=float, default=None)
    p.add_argument("--no_keep_playing", action="store_true", help="Stay paused after reaching the win threshold.")
    p.add_argument("--log_level", type=str, default="INFO")
    p.add_argument("--log_dir", type=str, default=None)
    args = p.parse_args()

    setup_logging(level=args.log_level.upper(), log_dir=args.log_dir)

    raw = json.loads(Path(args.config).read_text(encoding="utf-8")) if args.config else {}
    if args.starting_cash is not None:
        raw["starting_cash"] = float(args.starting_cash)
    cfg = SessionConfig.from_dict(raw)

    out = run_headless(
        seconds=args.seconds,
        output_dir=args.output_dir,
        config=cfg,
        seed=args.seed,
        initial_orders=_parse_orders(args.buy),
        advance_days=args.advance_days,
        keep_playing=not args.no_keep_playing,
    )
    print(out["equity"])
    print(out["fills"])
    print(out["events"])
    print(json.dumps(out["stats"], indent=2, default=str))


if __name__ == "__main__":
    main()
