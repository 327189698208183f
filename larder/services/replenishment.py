"""Replenishment estimates: when each item is expected to run out.

All arithmetic is in whole calendar days. A reference ``datetime`` is reduced
to its date first, so the time of day never changes a classification.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta

from larder.domain.item import Item


RUNNING_LOW_WINDOW_DAYS = 7
RECENT_PURCHASE_WINDOW_DAYS = 7


def _as_date(reference: date | datetime) -> date:
    return reference.date() if isinstance(reference, datetime) else reference


def has_known_duration(item: Item) -> bool:
    """True when the item can take part in duration calculations."""
    return item.estimated_duration_days is not None and item.estimated_duration_days > 0


def next_purchase_date(item: Item) -> date | None:
    """Date the item is expected to need resupplying, or None when unknown."""
    if item.last_purchased is None or not has_known_duration(item):
        return None
    return item.last_purchased + timedelta(days=item.estimated_duration_days)


def days_until_needed(item: Item, reference: date | datetime) -> int | None:
    """Signed whole days from ``reference`` to the next purchase date.

    Negative means overdue. None means the item has no purchase date or no
    positive duration and cannot be classified.
    """
    target = next_purchase_date(item)
    if target is None:
        return None
    return (target - _as_date(reference)).days


def days_since_purchase(item: Item, reference: date | datetime) -> int | None:
    if item.last_purchased is None:
        return None
    return (_as_date(reference) - item.last_purchased).days


def is_running_low(item: Item, reference: date | datetime, *, window_days: int = RUNNING_LOW_WINDOW_DAYS) -> bool:
    """Needed within the look-ahead window (inclusive) and not yet overdue."""
    remaining = days_until_needed(item, reference)
    return remaining is not None and 0 <= remaining <= window_days


def is_overdue(item: Item, reference: date | datetime) -> bool:
    remaining = days_until_needed(item, reference)
    return remaining is not None and remaining < 0


def is_recently_purchased(
    item: Item, reference: date | datetime, *, window_days: int = RECENT_PURCHASE_WINDOW_DAYS
) -> bool:
    """Bought within the last ``window_days`` days, today included."""
    elapsed = days_since_purchase(item, reference)
    return elapsed is not None and 0 <= elapsed <= window_days


def backdated_purchase_date(*, today: date, duration_days: int) -> date:
    """Purchase date that makes an item of this duration already one day overdue."""
    return today - timedelta(days=duration_days + 1)


def purchase_date_for_need(*, today: date, days_until_needed: int, duration_days: int) -> date:
    """Purchase date that puts the next need ``days_until_needed`` days from today."""
    return today + timedelta(days=days_until_needed - duration_days)


@dataclass
class ReplenishmentSummary:
    """Active items bucketed by replenishment state."""

    running_low: list[Item] = field(default_factory=list)
    overdue: list[Item] = field(default_factory=list)
    recently_purchased: list[Item] = field(default_factory=list)
    unknown: list[Item] = field(default_factory=list)
    total: int = 0


def classify_items(
    items: Iterable[Item],
    reference: date | datetime,
    *,
    window_days: int = RUNNING_LOW_WINDOW_DAYS,
) -> ReplenishmentSummary:
    """Bucket active items. Running-low and overdue are disjoint; recently purchased may overlap either."""
    summary = ReplenishmentSummary()
    for item in items:
        if not item.is_active:
            continue
        summary.total += 1

        remaining = days_until_needed(item, reference)
        if remaining is None:
            summary.unknown.append(item)
        elif remaining < 0:
            summary.overdue.append(item)
        elif remaining <= window_days:
            summary.running_low.append(item)

        if is_recently_purchased(item, reference):
            summary.recently_purchased.append(item)

    return summary
