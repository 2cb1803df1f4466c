"""Trade-trigger gate for external signal producers.

An external producer (e.g. a facial-expression classifier) reports
`buy-signal` / `sell-signal` with a confidence. The gate owns cooldown and
confidence filtering, then places orders through the session, so every
order is validated exactly like a manual one.
"""

from __future__ import annotations

import time
from typing import Callable, Mapping, Optional

from loguru import logger

from .config import SignalConfig
from .errors import MarketSimError
from .session import MarketSession
from .types import Fill

BUY_SIGNAL = "buy-signal"
SELL_SIGNAL = "sell-signal"

EXPRESSION_SIGNALS = {"happy": BUY_SIGNAL, "sad": SELL_SIGNAL}


def dominant_expression(expressions: Mapping[str, float]) -> tuple[Optional[str], float]:
    """Label with the highest confidence, or (None, 0.0) for an empty mapping."""
    best, best_conf = None, 0.0
    for label, conf in expressions.items():
        if conf > best_conf:
            best, best_conf = label, float(conf)
    return best, best_conf


def signal_for_expression(label: Optional[str]) -> Optional[str]:
    return EXPRESSION_SIGNALS.get(label) if label else None


class SignalTrader:
    """Turns gated signals into orders on the session's selected instrument."""

    def __init__(
        self,
        session: MarketSession,
        cfg: Optional[SignalConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.session = session
        self.cfg = cfg or session.state.config.signal
        self.clock = clock
        self.enabled = self.cfg.enabled
        self._last_trade: Optional[float] = None

    def _cooling_down(self, now: float) -> bool:
        return self._last_trade is not None and (now - self._last_trade) < self.cfg.cooldown_seconds

    def on_signal(self, kind: str, confidence: float) -> Optional[Fill]:
        """Place at most one order. Returns the fill, or None if gated/rejected."""
        if kind not in (BUY_SIGNAL, SELL_SIGNAL):
            raise ValueError(f"unknown signal kind {kind!r}")
        symbol = self.session.state.selected
        if not self.enabled or symbol is None:
            return None

        now = self.clock()
        if self._cooling_down(now):
            return None
        if confidence < self.cfg.confidence_threshold:
            return None

        self._last_trade = now
        try:
            if kind == BUY_SIGNAL:
                return self.session.buy(symbol, self.cfg.shares_per_trade)
            held = self.session.state.ledger.quantity(symbol)
            if held == 0:
                logger.warning("sell signal ignored: no {} shares held", symbol)
                return None
            return self.session.sell(symbol, min(self.cfg.shares_per_trade, held))
        except MarketSimError as exc:
            logger.warning("{} on {} not executed: {}", kind, symbol, exc)
            return None

    def on_expressions(self, expressions: Mapping[str, float]) -> Optional[Fill]:
        """Convenience path for classifiers that report every label's score."""
        label, conf = dominant_expression(expressions)
        kind = signal_for_expression(label)
        if kind is None:
            return None
        return self.on_signal(kind, conf)
