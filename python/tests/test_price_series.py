from datetime import date

import numpy as np
import pytest

from mkt_sim.config import DEFAULT_INSTRUMENTS, PriceGenConfig
from mkt_sim.price_series import PriceSeriesGenerator
from mkt_sim.types import Instrument


def test_length_and_floor_for_every_instrument():
    """
    Contract:
    len(series) == num_days and no value below 20% of base price
    """
    gen = PriceSeriesGenerator(np.random.default_rng(7))
    for inst in DEFAULT_INSTRUMENTS:
        series = gen.generate(inst, 3652)
        assert len(series) == 3652
        assert series.values.min() >= 0.2 * inst.base_price - 1e-9


def test_series_starts_at_base_price_with_daily_dates():
    inst = Instrument("AAPL", "Apple Inc.", 175.50, 0.02)
    series = PriceSeriesGenerator(np.random.default_rng(1), start_date=date(2015, 11, 24)).generate(inst, 10)

    assert series[0] == pytest.approx(175.50)
    assert series.date_at(0) == date(2015, 11, 24)
    assert series.date_at(9) == date(2015, 12, 3)


def test_same_seed_same_path_different_seed_different_path():
    inst = Instrument("TSLA", "Tesla Inc.", 238.45, 0.05)
    a = PriceSeriesGenerator(np.random.default_rng(3)).generate(inst, 500)
    b = PriceSeriesGenerator(np.random.default_rng(3)).generate(inst, 500)
    c = PriceSeriesGenerator(np.random.default_rng(4)).generate(inst, 500)

    np.testing.assert_array_equal(a.values, b.values)
    assert not np.array_equal(a.values, c.values)


def test_floor_holds_under_heavy_downside():
    # walk centered high => strong downward drift, the floor must catch it
    cfg = PriceGenConfig(trend_rate=0.0, walk_center=0.9)
    inst = Instrument("X", "Crashy", 100.0, 0.5)
    series = PriceSeriesGenerator(np.random.default_rng(0), cfg).generate(inst, 300)

    assert series.values.min() == pytest.approx(20.0)
    assert (series.values >= 20.0).all()


def test_single_day_series_is_just_the_base_price():
    inst = Instrument("X", "One", 50.0, 0.1)
    series = PriceSeriesGenerator(np.random.default_rng(0)).generate(inst, 1)
    assert len(series) == 1
    assert series[0] == 50.0


@pytest.mark.parametrize("n", [0, -5])
def test_non_positive_length_rejected(n):
    inst = Instrument("X", "One", 50.0, 0.1)
    with pytest.raises(ValueError):
        PriceSeriesGenerator(np.random.default_rng(0)).generate(inst, n)


def test_generate_all_keys_by_symbol():
    out = PriceSeriesGenerator(np.random.default_rng(0)).generate_all(DEFAULT_INSTRUMENTS[:3], 20)
    assert list(out) == ["AAPL", "GOOGL", "MSFT"]
    assert all(len(s) == 20 for s in out.values())


@pytest.mark.parametrize(
    "kwargs",
    [
        dict(base_price=0.0, volatility=0.1),
        dict(base_price=-1.0, volatility=0.1),
        dict(base_price=10.0, volatility=0.0),
        dict(base_price=10.0, volatility=1.0),
    ],
)
def test_instrument_validation(kwargs):
    with pytest.raises(ValueError):
        Instrument("X", "Bad", **kwargs)
