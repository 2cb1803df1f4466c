"""Synthetic daily price paths and the PriceSeries wrapper."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Iterable

import numpy as np
import pandas as pd

from .config import PriceGenConfig
from .types import Instrument


@dataclass(frozen=True)
class PriceSeries:
    """One close price per simulated calendar day.

    `closes` is indexed by date (start_date + i days). Treat it as read-only.
    """

    symbol: str
    closes: pd.Series

    def __len__(self) -> int:
        return int(len(self.closes))

    def __getitem__(self, i: int) -> float:
        return float(self.closes.iloc[i])

    @property
    def values(self) -> np.ndarray:
        return self.closes.to_numpy()

    def date_at(self, i: int) -> date:
        return self.closes.index[i].date()


class PriceSeriesGenerator:
    """Builds a long synthetic history per instrument.

    Each day: price += trend + random walk + occasional jump, floored at
    `floor_frac * base_price`. No upper clamp.
    """

    def __init__(
        self,
        rng: np.random.Generator,
        cfg: PriceGenConfig = PriceGenConfig(),
        start_date: date = date(2015, 11, 24),
    ):
        self.rng = rng
        self.cfg = cfg
        self.start_date = start_date

    def generate(self, instrument: Instrument, num_days: int) -> PriceSeries:
        n = int(num_days)
        if n < 1:
            raise ValueError(f"num_days must be >= 1, got {num_days}")
        cfg = self.cfg

        # draw everything up front; the floor makes the path itself sequential
        walk_u = self.rng.random(n)
        jump_hit = self.rng.random(n) < cfg.jump_prob
        jump_u = self.rng.random(n)

        floor = instrument.base_price * cfg.floor_frac
        vol = instrument.volatility
        out = np.empty(n, dtype=float)
        price = float(instrument.base_price)
        for i in range(n):
            out[i] = price
            trend = cfg.trend_rate * price
            walk = (walk_u[i] - cfg.walk_center) * vol * price
            jump = (jump_u[i] - 0.5) * cfg.jump_scale * price if jump_hit[i] else 0.0
            price += trend + walk + jump
            if price < floor:
                price = floor

        index = pd.date_range(start=pd.Timestamp(self.start_date), periods=n, freq="D")
        return PriceSeries(symbol=instrument.symbol, closes=pd.Series(out, index=index, name=instrument.symbol))

    def generate_all(self, instruments: Iterable[Instrument], num_days: int) -> dict[str, PriceSeries]:
        return {inst.symbol: self.generate(inst, num_days) for inst in instruments}
