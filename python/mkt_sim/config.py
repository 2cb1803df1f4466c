"""Session configuration and the default instrument catalog.

One frozen dataclass per concern (price paths, day windows, ticks and
shocks, timer periods, signal gating), aggregated by `SessionConfig`.
Invalid values raise ValueError at construction.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import date

from .types import Instrument


DEFAULT_INSTRUMENTS: tuple[Instrument, ...] = (
    Instrument("AAPL", "Apple Inc.", 175.50, 0.02, "🍎"),
    Instrument("GOOGL", "Alphabet Inc.", 142.30, 0.025, "🔍"),
    Instrument("MSFT", "Microsoft Corp.", 378.85, 0.018, "💻"),
    Instrument("AMZN", "Amazon.com Inc.", 151.25, 0.03, "📦"),
    Instrument("TSLA", "Tesla Inc.", 238.45, 0.05, "⚡"),
    Instrument("NVDA", "NVIDIA Corp.", 495.20, 0.04, "🎮"),
    Instrument("META", "Meta Platforms", 325.75, 0.028, "📱"),
    Instrument("NFLX", "Netflix Inc.", 445.60, 0.035, "🎬"),
)


@dataclass(frozen=True)
class PriceGenConfig:
    """Daily price-path knobs."""

    trend_rate: float = 0.0002
    # center of the uniform draw; below 0.5 gives a slight negative skew
    walk_center: float = 0.48
    jump_prob: float = 0.05
    jump_scale: float = 0.10
    floor_frac: float = 0.20


@dataclass(frozen=True)
class WindowConfig:
    """Current-day projection knobs."""

    history_cap: int = 50
    intraday_range: float = 0.02
    volume_min: int = 10_000_000
    volume_max: int = 60_000_000  # exclusive

    def __post_init__(self) -> None:
        if self.history_cap < 1:
            raise ValueError("history_cap must be >= 1")
        if self.volume_max <= self.volume_min:
            raise ValueError("volume_max must exceed volume_min")


@dataclass(frozen=True)
class MarketConfig:
    """Live tick and shock-event parameters."""

    # tick: constant magnitude, biased sign
    tick_step: float = 23.0
    tick_down_prob: float = 0.30
    tick_floor: float = 10.0
    tick_volume_max: int = 1_000_000

    # shock events (probability per check)
    crash_prob: float = 1.0 / 80.0
    recession_prob: float = 1.0 / 500.0
    earnings_prob: float = 1.0 / 80.0
    whale_prob: float = 1.0 / 300.0

    crash_drop_min: float = 0.50
    crash_drop_max: float = 0.75
    recession_price: float = 1.00
    earnings_move: float = 0.50
    whale_multiple: float = 10.0  # amount added, as a multiple of the price
    event_floor: float = 0.01

    event_log_cap: int = 50

    def __post_init__(self) -> None:
        for name in ("tick_down_prob", "crash_prob", "recession_prob", "earnings_prob", "whale_prob"):
            p = getattr(self, name)
            if not 0.0 <= p <= 1.0:
                raise ValueError(f"{name} must be a probability, got {p}")
        if self.tick_floor <= 0 or self.event_floor <= 0 or self.recession_price <= 0:
            raise ValueError("price floors must be positive")
        if not 0.0 <= self.crash_drop_min <= self.crash_drop_max < 1.0:
            raise ValueError("crash drop range must satisfy 0 <= min <= max < 1")


@dataclass(frozen=True)
class ScheduleConfig:
    """Periods (seconds) of the cooperative timers."""

    tick_period: float = 1.0
    refresh_period: float = 0.5
    event_period: float = 1.0

    def __post_init__(self) -> None:
        for f in fields(self):
            if getattr(self, f.name) <= 0:
                raise ValueError(f"{f.name} must be positive")


@dataclass(frozen=True)
class SignalConfig:
    """Gating used by the external trade-trigger producer."""

    enabled: bool = True
    cooldown_seconds: float = 2.0
    confidence_threshold: float = 0.65
    shares_per_trade: int = 1


@dataclass(frozen=True)
class SessionConfig:
    """Session bootstrap parameters."""

    starting_cash: float = 100_000.0
    horizon_days: int = 3652  # ~10 years
    start_date: date = date(2015, 11, 24)
    win_threshold: float = 1_000_000.0

    price_gen: PriceGenConfig = field(default_factory=PriceGenConfig)
    window: WindowConfig = field(default_factory=WindowConfig)
    market: MarketConfig = field(default_factory=MarketConfig)
    schedule: ScheduleConfig = field(default_factory=ScheduleConfig)
    signal: SignalConfig = field(default_factory=SignalConfig)

    def __post_init__(self) -> None:
        if self.starting_cash < 0:
            raise ValueError("starting_cash must be >= 0")
        if self.horizon_days < 1:
            raise ValueError("horizon_days must be >= 1")

    @classmethod
    def from_dict(cls, d: dict) -> "SessionConfig":
        """Create SessionConfig from a (JSON) dict.

        Sub-configs may be given as nested dicts under `price_gen`, `window`,
        `market`, `schedule` and `signal`. Unknown keys are ignored.
        """
        d = dict(d or {})
        nested = {
            "price_gen": PriceGenConfig,
            "window": WindowConfig,
            "market": MarketConfig,
            "schedule": ScheduleConfig,
            "signal": SignalConfig,
        }
        kwargs = {}
        for k, sub_cls in nested.items():
            if isinstance(d.get(k), dict):
                kwargs[k] = _build(sub_cls, d[k])

        top = {f.name for f in fields(cls)} - set(nested)
        for k in top:
            if k in d:
                kwargs[k] = d[k]
        if isinstance(kwargs.get("start_date"), str):
            kwargs["start_date"] = date.fromisoformat(kwargs["start_date"])

        return cls(**kwargs)


def _build(cls, d: dict):
    names = {f.name for f in fields(cls)}
    return cls(**{k: v for k, v in d.items() if k in names})
