import numpy as np
import pytest

from mkt_sim.config import MarketConfig
from mkt_sim.errors import UnknownInstrument
from mkt_sim.market import MarketClock
from mkt_sim.types import EventKind


def _assert_ranges(state):
    cap = state.config.window.history_cap
    for stock in state.stocks.values():
        assert stock.daily_high >= stock.current_price >= stock.daily_low
        assert stock.current_price > 0
        assert len(stock.price_history) <= cap


def test_tick_keeps_range_and_history_invariants(session):
    """
    Contract:
    after every tick: high >= price >= low, len(history) <= cap
    """
    clock = MarketClock(np.random.default_rng(0))
    for _ in range(300):
        assert clock.tick(session.state)
        _assert_ranges(session.state)
    assert all(len(s.price_history) == 50 for s in session.state.stocks.values())


def test_tick_moves_by_fixed_step(session, set_prices, stub_rng):
    set_prices(session, 1000.0)
    # first instrument draws down, the rest up
    rng = stub_rng(randoms=[0.1, 0.9, 0.9], ints=[5])
    MarketClock(rng).tick(session.state)

    prices = [s.current_price for s in session.state.stocks.values()]
    assert prices == [977.0, 1023.0, 1023.0]


def test_tick_floor_and_volume_growth(session, set_prices, stub_rng):
    set_prices(session, 12.0)
    before = {s: st.volume for s, st in session.state.stocks.items()}
    MarketClock(stub_rng(randoms=[0.0], ints=[1234])).tick(session.state)

    for sym, st in session.state.stocks.items():
        assert st.current_price == 10.0
        assert st.daily_low == 10.0
        assert st.volume == before[sym] + 1234


def test_tick_direction_is_biased_up(session, set_prices):
    set_prices(session, 10_000.0)
    clock = MarketClock(np.random.default_rng(1))
    for _ in range(1000):
        clock.tick(session.state)
    # 1000 ticks with p(up)=0.7 => expected drift +0.4*23*1000 = +9200
    for st in session.state.stocks.values():
        assert 10_000.0 + 5_000 < st.current_price < 10_000.0 + 13_000


def test_paused_tick_and_checks_draw_nothing(session, exploding_rng):
    session.state.paused = True
    before = session.state.prices()
    clock = MarketClock(exploding_rng)

    assert clock.tick(session.state) is False
    assert clock.check_events(session.state) == []
    assert session.state.prices() == before


def test_recession_sets_every_price_to_one(session):
    event = MarketClock(np.random.default_rng(0)).trigger_recession(session.state)

    assert event.kind is EventKind.RECESSION
    assert all(st.current_price == 1.00 for st in session.state.stocks.values())
    _assert_ranges(session.state)


def test_whale_multiplies_exactly_one_instrument(session):
    before = session.state.prices()
    event = MarketClock(np.random.default_rng(9)).trigger_whale(session.state)

    after = session.state.prices()
    changed = [s for s in after if after[s] != before[s]]
    assert changed == [event.symbol]
    assert after[event.symbol] == pytest.approx(11 * before[event.symbol])
    assert session.state.stocks[event.symbol].daily_high == after[event.symbol]


def test_whale_on_named_symbol_and_unknown_symbol(session):
    clock = MarketClock(np.random.default_rng(0))
    price = session.price("NFLX")
    clock.trigger_whale(session.state, symbol="NFLX")
    assert session.price("NFLX") == pytest.approx(11 * price)

    with pytest.raises(UnknownInstrument):
        clock.trigger_whale(session.state, symbol="NOPE")


def test_crash_drops_between_half_and_three_quarters(session):
    before = session.state.prices()
    MarketClock(np.random.default_rng(2)).trigger_crash(session.state)

    for sym, p in session.state.prices().items():
        assert before[sym] * 0.25 - 1e-9 <= p <= before[sym] * 0.50 + 1e-9
    _assert_ranges(session.state)


def test_crash_is_floored(session, set_prices, stub_rng):
    set_prices(session, 0.015)
    MarketClock(stub_rng(randoms=[1.0])).trigger_crash(session.state)
    assert all(p == 0.01 for p in session.state.prices().values())


@pytest.mark.parametrize("good, factor, kind", [(True, 1.5, EventKind.EARNINGS_GOOD), (False, 0.5, EventKind.EARNINGS_BAD)])
def test_earnings_moves_everything_fifty_percent(session, good, factor, kind):
    before = session.state.prices()
    event = MarketClock(np.random.default_rng(0)).trigger_earnings(session.state, good=good)

    assert event.kind is kind
    for sym, p in session.state.prices().items():
        assert p == pytest.approx(before[sym] * factor)


def test_all_checks_fire_in_order_when_draws_are_low(session, set_prices, stub_rng):
    """
    Contract:
    checks are independent and applied in order crash, recession, earnings, whale
    """
    set_prices(session, 100.0)
    events = MarketClock(stub_rng(randoms=[0.0], ints=[0])).check_events(session.state)

    assert [e.kind for e in events] == [
        EventKind.CRASH,
        EventKind.RECESSION,
        EventKind.EARNINGS_GOOD,
        EventKind.WHALE,
    ]
    # recession overrides the crash; earnings +50%; whale x11 on the first symbol
    prices = list(session.state.prices().values())
    assert prices[0] == pytest.approx(16.5)
    assert prices[1:] == [pytest.approx(1.5), pytest.approx(1.5)]
    assert len(session.state.events) == 4


def test_no_event_fires_on_high_draws(session, stub_rng):
    before = session.state.prices()
    assert MarketClock(stub_rng(randoms=[0.99])).check_events(session.state) == []
    assert session.state.prices() == before
    assert len(session.state.events) == 0


def test_event_log_is_capped(session):
    clock = MarketClock(np.random.default_rng(0), MarketConfig())
    for _ in range(60):
        clock.trigger_recession(session.state)
    assert len(session.state.events) == 50


def test_change_against_open(session, set_prices):
    stock = session.state.stocks["AAPL"]
    stock.daily_open = 100.0
    stock.record(110.0)
    assert stock.change == pytest.approx(10.0)
    assert stock.change_pct == pytest.approx(10.0)
