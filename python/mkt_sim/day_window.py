"""Day-window projector: derives the "current trading day" from a series.

This is the live-market counterpart of reading one bar out of a full
history: OHLC, a trailing history window and a synthetic volume.
"""

from __future__ import annotations

import numpy as np

from .config import WindowConfig
from .errors import InvalidIndex
from .price_series import PriceSeries
from .types import DayWindow


class DayWindowProjector:
    """Projects a PriceSeries onto a single day index."""

    def __init__(self, rng: np.random.Generator, cfg: WindowConfig = WindowConfig()):
        self.rng = rng
        self.cfg = cfg

    def project(self, series: PriceSeries, day_index: int) -> DayWindow:
        n = len(series)
        i = int(day_index)
        if i < 0 or i >= n:
            raise InvalidIndex(f"day_index {day_index} outside [0, {n}) for {series.symbol}")

        values = series.values
        close = float(values[i])
        open_ = float(values[i - 1]) if i > 0 else close

        # intraday extremes: +-intraday_range around close, then widened to
        # cover both open and close
        span = self.cfg.intraday_range
        high = close * (1.0 + self.rng.random() * span)
        low = close * (1.0 - self.rng.random() * span)
        high = max(high, close, open_)
        low = min(low, close, open_)

        start = max(0, i - self.cfg.history_cap + 1)
        history = tuple(float(x) for x in values[start : i + 1])

        volume = int(self.rng.integers(self.cfg.volume_min, self.cfg.volume_max))

        return DayWindow(
            day_index=i,
            date=series.date_at(i),
            open=open_,
            high=float(high),
            low=float(low),
            close=close,
            history=history,
            volume=volume,
        )
