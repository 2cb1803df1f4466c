"""Cash + positions accounting.

- weighted-average cost basis, updated on buys only
- realized P&L captured on (partial) sells
- validate first, then mutate: a rejected order leaves the ledger untouched
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Mapping, Optional

import numpy as np

from .errors import InsufficientFunds, InsufficientShares, InvalidQuantity
from .types import Fill


def _is_finite(x: float) -> bool:
    return bool(np.isfinite(x))


def _check_quantity(quantity) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, (int, np.integer)):
        raise InvalidQuantity(f"quantity must be a whole number of shares, got {quantity!r}")
    if quantity <= 0:
        raise InvalidQuantity(f"quantity must be positive, got {quantity}")
    return int(quantity)


def _check_price(price: float) -> float:
    price = float(price)
    if not _is_finite(price) or price <= 0:
        raise ValueError(f"fill price must be positive and finite, got {price}")
    return price


@dataclass
class Position:
    quantity: int
    average_cost: float

    @property
    def cost_basis(self) -> float:
        return self.quantity * self.average_cost


@dataclass
class PortfolioLedger:
    """Single-user ledger. Prices are supplied by the caller at fill time."""

    cash: float
    positions: Dict[str, Position] = field(default_factory=dict)
    realized_pl: float = 0.0
    fills: List[Fill] = field(default_factory=list)

    # ---------- orders ----------

    def buy(self, symbol: str, quantity: int, price: float, ts: Optional[datetime] = None) -> Fill:
        qty = _check_quantity(quantity)
        px = _check_price(price)
        cost = qty * px
        if cost > self.cash:
            raise InsufficientFunds(
                f"buying {qty} {symbol} costs {cost:,.2f} but only {self.cash:,.2f} cash is available"
            )

        self.cash -= cost
        pos = self.positions.get(symbol)
        if pos is None:
            self.positions[symbol] = Position(quantity=qty, average_cost=px)
        else:
            total_qty = pos.quantity + qty
            pos.average_cost = (pos.quantity * pos.average_cost + cost) / total_qty
            pos.quantity = total_qty

        fill = Fill(
            timestamp=ts or datetime.now(),
            symbol=symbol,
            side="BUY",
            quantity=qty,
            price=px,
            notional=cost,
            cash_after=float(self.cash),
        )
        self.fills.append(fill)
        return fill

    def sell(self, symbol: str, quantity: int, price: float, ts: Optional[datetime] = None) -> Fill:
        qty = _check_quantity(quantity)
        px = _check_price(price)
        pos = self.positions.get(symbol)
        held = pos.quantity if pos is not None else 0
        if qty > held:
            raise InsufficientShares(f"cannot sell {qty} {symbol}: holding {held}")

        proceeds = qty * px
        realized = proceeds - qty * pos.average_cost

        self.realized_pl += realized
        self.cash += proceeds
        pos.quantity -= qty
        if pos.quantity == 0:
            del self.positions[symbol]

        fill = Fill(
            timestamp=ts or datetime.now(),
            symbol=symbol,
            side="SELL",
            quantity=qty,
            price=px,
            notional=proceeds,
            realized_pl=realized,
            cash_after=float(self.cash),
        )
        self.fills.append(fill)
        return fill

    # ---------- valuation ----------

    def quantity(self, symbol: str) -> int:
        pos = self.positions.get(symbol)
        return pos.quantity if pos is not None else 0

    def market_value(self, prices: Mapping[str, float]) -> float:
        return float(sum(p.quantity * float(prices[s]) for s, p in self.positions.items()))

    def portfolio_value(self, prices: Mapping[str, float]) -> float:
        """Cash + sum(quantity * current price)."""
        return float(self.cash + self.market_value(prices))

    def unrealized_pl(self, prices: Mapping[str, float]) -> float:
        return float(sum(p.quantity * float(prices[s]) - p.cost_basis for s, p in self.positions.items()))

    def total_pl(self, prices: Mapping[str, float]) -> float:
        return self.unrealized_pl(prices) + self.realized_pl
