import pandas as pd
import pytest

from mkt_sim.config import MarketConfig, SessionConfig
from mkt_sim.metrics import max_drawdown, summarize, total_return
from mkt_sim.report import run_headless

from conftest import INSTRUMENTS


def test_run_headless_writes_reports(tmp_path):
    cfg = SessionConfig(horizon_days=60)
    out = run_headless(
        seconds=30,
        output_dir=tmp_path,
        config=cfg,
        seed=3,
        instruments=INSTRUMENTS,
        initial_orders={"AAPL": 10, "NOPE": 1},
        advance_days=5,
    )

    for key in ("equity", "fills", "events"):
        assert out[key].exists()

    eq = pd.read_csv(out["equity"], index_col="Time")
    assert len(eq) >= 30
    assert eq.index.max() == pytest.approx(30.0)

    fills = pd.read_csv(out["fills"])
    assert fills["symbol"].tolist() == ["AAPL"]
    assert fills["quantity"].tolist() == [10]

    stats = out["stats"]
    assert stats["final_value"] == pytest.approx(eq["Equity"].iloc[-1])
    assert 0.0 <= stats["max_drawdown"] < 1.0
    assert stats["has_won"] is False


def test_run_headless_is_reproducible(tmp_path):
    cfg = SessionConfig(horizon_days=30)
    a = run_headless(10, tmp_path / "a", cfg, seed=11, instruments=INSTRUMENTS, initial_orders={"TSLA": 5})
    b = run_headless(10, tmp_path / "b", cfg, seed=11, instruments=INSTRUMENTS, initial_orders={"TSLA": 5})

    assert a["stats"] == b["stats"]
    assert a["equity"].read_text() == b["equity"].read_text()


def test_run_headless_keeps_playing_after_win(tmp_path):
    # a whale on every check guarantees a quick win on any held instrument
    cfg = SessionConfig(horizon_days=30, win_threshold=150_000.0, market=MarketConfig(whale_prob=1.0))
    out = run_headless(
        5, tmp_path, cfg, seed=2, instruments=INSTRUMENTS[:1], initial_orders={"AAPL": 500}
    )

    assert out["stats"]["has_won"] is True
    events = pd.read_csv(out["events"])
    # keeps firing after the win, so more than one whale is logged
    assert (events["kind"] == "whale").sum() > 1


def test_metrics_on_a_known_curve():
    eq = pd.Series([100.0, 120.0, 90.0, 110.0])

    assert total_return(eq) == pytest.approx(0.10)
    assert max_drawdown(eq) == pytest.approx(0.25)
    s = summarize(eq)
    assert s["peak_value"] == 120.0
    assert s["final_value"] == 110.0


def test_metrics_on_short_curves():
    assert pd.isna(total_return(pd.Series([100.0])))
    assert pd.isna(max_drawdown(pd.Series([], dtype=float)))
