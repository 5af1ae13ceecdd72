"""Portfolio tracker.

Holdings live in a key-value store under one key as a JSON list. Adding
a coin that is already held merges the two lots at their weighted average
purchase price. Current prices come from the ranked universe.

Usage:
    tracker = PortfolioTracker(InMemoryKeyValueStore())
    tracker.add_holding("bitcoin", Decimal("0.5"), Decimal("40000"))
    tracker.revalue(service.get_ranked_universe())
    tracker.summary()
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, replace
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Optional, Union

from core.market_data.interfaces import KeyValueStore
from core.types import RankedSnapshot

logger = logging.getLogger(__name__)

Number = Union[Decimal, int, float, str]


def _dec(value: Number) -> Decimal:
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise ValueError(f"Not a number: {value!r}") from exc


@dataclass(frozen=True)
class PortfolioConfig:
    """Portfolio tracker configuration."""

    storage_key: str = "cryptoPortfolio"
    quote_currency: str = "USD"


@dataclass(frozen=True)
class Holding:
    coin_id: str
    symbol: str
    name: str
    amount: Decimal
    purchase_price: Decimal
    current_price: Decimal

    @property
    def cost_basis(self) -> Decimal:
        return self.amount * self.purchase_price

    @property
    def value(self) -> Decimal:
        return self.amount * self.current_price

    @property
    def pnl(self) -> Decimal:
        return self.value - self.cost_basis

    @property
    def pnl_percentage(self) -> Decimal:
        if self.purchase_price == 0:
            return Decimal("0")
        return (self.current_price - self.purchase_price) / self.purchase_price * 100

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.coin_id,
            "symbol": self.symbol,
            "name": self.name,
            "amount": str(self.amount),
            "purchasePrice": str(self.purchase_price),
            "currentPrice": str(self.current_price),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Holding":
        return cls(
            coin_id=str(data["id"]),
            symbol=str(data.get("symbol") or data["id"]).upper(),
            name=str(data.get("name") or data["id"]),
            amount=_dec(data["amount"]),
            purchase_price=_dec(data["purchasePrice"]),
            current_price=_dec(data.get("currentPrice", data["purchasePrice"])),
        )


class PortfolioTracker:
    """Holdings with P&L against the latest known prices.

    Thread-safety: Not thread-safe. Use external locking if needed.
    """

    def __init__(self, store: KeyValueStore, config: Optional[PortfolioConfig] = None) -> None:
        self._store = store
        self._config = config or PortfolioConfig()

    # ========== Persistence ==========

    def holdings(self) -> list[Holding]:
        raw = self._store.get(self._config.storage_key)
        if not raw:
            return []
        try:
            return [Holding.from_dict(item) for item in json.loads(raw)]
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as exc:
            logger.error(f"Error loading portfolio: {exc}")
            return []

    def _save(self, holdings: list[Holding]) -> None:
        if not holdings:
            self._store.delete(self._config.storage_key)
            return
        self._store.set(self._config.storage_key, json.dumps([h.to_dict() for h in holdings]))

    # ========== Operations ==========

    def add_holding(
        self,
        coin_id: str,
        amount: Number,
        purchase_price: Number,
        *,
        symbol: Optional[str] = None,
        name: Optional[str] = None,
        current_price: Optional[Number] = None,
    ) -> Holding:
        """Add a lot, merging with an existing position at the weighted average price.

        Raises:
            ValueError: If coin_id is empty or amount / price is not positive
        """
        if not coin_id:
            raise ValueError("coin_id is required")
        amount = _dec(amount)
        purchase_price = _dec(purchase_price)
        if amount <= 0:
            raise ValueError(f"amount must be > 0, got {amount}")
        if purchase_price <= 0:
            raise ValueError(f"purchase_price must be > 0, got {purchase_price}")

        holdings = self.holdings()
        existing = next((h for h in holdings if h.coin_id == coin_id), None)
        price_now = _dec(current_price) if current_price is not None else (
            existing.current_price if existing else purchase_price
        )

        if existing is None:
            holding = Holding(
                coin_id=coin_id,
                symbol=(symbol or coin_id).upper(),
                name=name or coin_id,
                amount=amount,
                purchase_price=purchase_price,
                current_price=price_now,
            )
            holdings.append(holding)
        else:
            total = existing.amount + amount
            avg_price = (existing.amount * existing.purchase_price + amount * purchase_price) / total
            holding = replace(existing, amount=total, purchase_price=avg_price, current_price=price_now)
            holdings = [holding if h.coin_id == coin_id else h for h in holdings]

        self._save(holdings)
        logger.info(f"Portfolio: {holding.symbol} now {holding.amount} @ {holding.purchase_price}")
        return holding

    def remove_holding(self, coin_id: str) -> bool:
        holdings = self.holdings()
        remaining = [h for h in holdings if h.coin_id != coin_id]
        if len(remaining) == len(holdings):
            return False
        self._save(remaining)
        return True

    def clear(self) -> None:
        self._store.delete(self._config.storage_key)

    def revalue(self, prices: Iterable[RankedSnapshot]) -> list[Holding]:
        """Update current prices from ranked snapshots; unknown coins keep their last price."""
        latest = {p.symbol: p for p in prices}
        holdings = []
        for h in self.holdings():
            snap = latest.get(h.coin_id)
            if snap is None:
                holdings.append(h)
                continue
            holdings.append(
                replace(
                    h,
                    current_price=_dec(snap.price),
                    symbol=(snap.ticker or h.symbol).upper(),
                    name=snap.name or h.name,
                )
            )
        self._save(holdings)
        return holdings

    def summary(self) -> dict[str, Any]:
        holdings = self.holdings()
        total_value = sum((h.value for h in holdings), Decimal("0"))
        total_pnl = sum((h.pnl for h in holdings), Decimal("0"))
        invested = sum((h.cost_basis for h in holdings), Decimal("0"))
        pnl_pct = total_pnl / invested * 100 if invested > 0 else Decimal("0")

        return {
            "quote_currency": self._config.quote_currency,
            "total_value": str(total_value),
            "total_pnl": str(total_pnl),
            "total_pnl_percentage": str(pnl_pct),
            "holdings": [
                {
                    **h.to_dict(),
                    "value": str(h.value),
                    "pnl": str(h.pnl),
                    "pnlPercentage": str(h.pnl_percentage),
                    "allocation": str(h.value / total_value * 100) if total_value > 0 else "0",
                }
                for h in holdings
            ],
        }
