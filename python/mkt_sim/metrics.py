"""Performance metrics on a recorded equity curve."""

from __future__ import annotations

import numpy as np
import pandas as pd


def max_drawdown(equity: pd.Series) -> float:
    """Maximum drawdown (as positive fraction)."""
    x = equity.astype(float).to_numpy()
    if len(x) == 0:
        return float("nan")
    peak = np.maximum.accumulate(x)
    dd = 1.0 - (x / np.maximum(peak, np.finfo(float).tiny))
    return float(np.nanmax(dd))


def total_return(equity: pd.Series) -> float:
    """Last value over first value, minus one."""
    if len(equity) < 2 or float(equity.iloc[0]) <= 0:
        return float("nan")
    return float(equity.iloc[-1] / equity.iloc[0]) - 1.0


def summarize(equity: pd.Series) -> dict[str, float]:
    return {
        "final_value": float(equity.iloc[-1]) if len(equity) else float("nan"),
        "peak_value": float(equity.max()) if len(equity) else float("nan"),
        "total_return": total_return(equity),
        "max_drawdown": max_drawdown(equity),
    }
