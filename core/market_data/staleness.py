"""Calendar-day staleness policy for candle datasets.

A dataset is fresh only on the calendar date it was fetched. Elapsed hours do
not matter: a dataset stamped at 23:59 yesterday is stale at 00:00 today.
"""

from __future__ import annotations

from datetime import date
from typing import Optional

from core.types import CandleDataset


def is_stale(dataset: Optional[CandleDataset], today: date) -> bool:
    """Return True if ``dataset`` must be refetched on ``today``.

    Args:
        dataset: Cached dataset, or None when nothing is cached
        today: Current local calendar date

    Returns:
        True when the dataset is absent, unstamped, or stamped with another date
    """
    if dataset is None or dataset.fetched_on is None:
        return True
    return dataset.fetched_on != today
