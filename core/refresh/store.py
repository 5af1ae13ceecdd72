"""In-memory state store for the latest value of every feed.

Each slot has exactly one writer (a scheduler job or the fan-out). Writes
swap the whole mapping, so readers never observe a half-applied update.

Every write carries the context epoch that was current when its job fired.
Switching symbols or stopping bumps the epoch, which turns any late result
from the previous context into a no-op.

Usage:
    store = StateStore()
    epoch = store.begin_context("bitcoin")
    store.publish(SNAPSHOTS, history, epoch=epoch)
    store.view()[SNAPSHOTS]
"""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Any, Callable, Mapping, Optional

from core.types import Symbol

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Slots
# ---------------------------------------------------------------------------

SNAPSHOTS = "snapshots"
CANDLES = "candles"
TECHNICAL = "technical"
FORECAST = "forecast"
NEWS = "news"
UNIVERSE = "universe"
RECOMMENDATION = "recommendation"
ERRORS = "errors"

# Dropped when the selected symbol changes. News and the ranked universe are
# market-wide and survive a switch.
SYMBOL_SCOPED_SLOTS = frozenset({SNAPSHOTS, CANDLES, TECHNICAL, FORECAST, RECOMMENDATION, ERRORS})

Listener = Callable[[str], None]


class StateStore:
    def __init__(self) -> None:
        self._data: Mapping[str, Any] = MappingProxyType({})
        self._epoch = 0
        self._symbol: Optional[Symbol] = None
        self._listeners: list[Listener] = []

    @property
    def epoch(self) -> int:
        return self._epoch

    @property
    def symbol(self) -> Optional[Symbol]:
        return self._symbol

    def is_current(self, epoch: int) -> bool:
        return epoch == self._epoch

    def begin_context(self, symbol: Symbol) -> int:
        """Select ``symbol`` and return the new epoch.

        Symbol-scoped slots of the previous symbol are dropped.
        """
        self._epoch += 1
        previous = self._symbol
        self._symbol = symbol
        if previous is not None and previous != symbol:
            self._data = MappingProxyType(
                {k: v for k, v in self._data.items() if k not in SYMBOL_SCOPED_SLOTS}
            )
            logger.info(f"Context switched {previous} -> {symbol}; symbol state dropped")
        return self._epoch

    def invalidate(self) -> int:
        """Retire the current epoch without touching stored values."""
        self._epoch += 1
        return self._epoch

    def publish(self, slot: str, value: Any, *, epoch: int) -> bool:
        """Atomically replace ``slot``.

        Returns False (and writes nothing) when ``epoch`` is no longer current.
        """
        if epoch != self._epoch:
            logger.debug(f"Dropped late write to '{slot}' (epoch {epoch}, current {self._epoch})")
            return False

        updated = dict(self._data)
        updated[slot] = value
        self._data = MappingProxyType(updated)
        self._notify(slot)
        return True

    def record_failure(self, feed: str, message: str, *, epoch: int) -> bool:
        errors = dict(self.get(ERRORS) or {})
        errors[feed] = message
        return self.publish(ERRORS, MappingProxyType(errors), epoch=epoch)

    def clear_failure(self, feed: str, *, epoch: int) -> bool:
        errors = self.get(ERRORS) or {}
        if feed not in errors:
            return False
        return self.publish(
            ERRORS, MappingProxyType({k: v for k, v in errors.items() if k != feed}), epoch=epoch
        )

    def get(self, slot: str, default: Any = None) -> Any:
        return self._data.get(slot, default)

    def view(self) -> Mapping[str, Any]:
        """Read-only snapshot of every slot."""
        return self._data

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener(slot)`` after every accepted write. Returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, slot: str) -> None:
        for listener in list(self._listeners):
            try:
                listener(slot)
            except Exception as exc:
                logger.error(f"State listener failed for '{slot}': {exc}", exc_info=True)
