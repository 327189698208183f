"""Apply an interpreted change-set to the inventory.

Phases run in a fixed order: updates, then insertions, then removals. A
removal can therefore match an item inserted earlier in the same batch. Every
entry is handled independently: a miss or invalid entry is recorded in
``skipped`` and processing moves on. Persistence errors are not caught and
propagate to the caller, leaving earlier entries committed.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from collections.abc import Callable
from typing import Protocol

from larder.core.config import Constants
from larder.core.errors import InvalidItemError, ItemNotFoundError
from larder.core.fuzzy_match import resolve_item
from larder.core.logging import span
from larder.domain.change_set import ChangeSet, ItemUpdateEntry, NewItemEntry, RemoveItemEntry, StockSignal
from larder.domain.item import Item, ItemCreate, ItemUpdate, validate_item_create, validate_item_update
from larder.services.replenishment import backdated_purchase_date, purchase_date_for_need


logger = logging.getLogger(__name__)


class ItemStore(Protocol):
    """Persistence operations the engine needs. ``create_item`` issues ids.

    ``update_item_with`` hands the stored item to the planner and writes its
    result atomically with respect to other edits of the same item.
    """

    async def create_item(self, data: ItemCreate) -> Item: ...

    async def update_item_with(self, item_id: int, planner: Callable[[Item], ItemUpdate | None]) -> Item | None: ...

    async def soft_delete_item(self, item_id: int) -> Item: ...


@dataclass
class ReconciliationResult:
    """Outcome of one change-set: the working item set and what happened to each entry."""

    items: list[Item] = field(default_factory=list)
    applied: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    created: list[Item] = field(default_factory=list)
    updated: list[Item] = field(default_factory=list)
    removed: list[Item] = field(default_factory=list)

    @property
    def active_items(self) -> list[Item]:
        return [item for item in self.items if item.is_active]


def _replace(items: list[Item], new_item: Item) -> None:
    for index, item in enumerate(items):
        if item.id == new_item.id:
            items[index] = new_item
            return
    items.append(new_item)


def _entry_label(entry: ItemUpdateEntry | RemoveItemEntry) -> str:
    if entry.item_name:
        return entry.item_name
    return f"#{entry.item_id}" if entry.item_id is not None else "(unnamed)"


def _plan_update(entry: ItemUpdateEntry, item: Item, today: date) -> tuple[dict[str, object], list[str]]:
    """Work out which fields an update entry overwrites and the log lines for it."""
    fields: dict[str, object] = {}
    notes: list[str] = []

    duration = entry.duration_days if entry.duration_days is not None else item.estimated_duration_days

    if entry.last_purchased is not None:
        fields["last_purchased"] = entry.last_purchased
        notes.append(f"{item.name}: last purchased set to {entry.last_purchased.isoformat()}")
    elif entry.status == StockSignal.ORDERED:
        fields["last_purchased"] = today
        notes.append(f"{item.name}: marked as ordered, reset cycle")
    elif entry.days_until_needed is not None:
        if duration is None or duration <= 0:
            msg = f"{item.name}: cannot set a timeline without a known duration"
            raise InvalidItemError(msg)
        fields["last_purchased"] = purchase_date_for_need(
            today=today, days_until_needed=entry.days_until_needed, duration_days=duration
        )
        notes.append(f"{item.name}: updated timeline")

    if entry.duration_days is not None:
        fields["estimated_duration_days"] = entry.duration_days
        notes.append(f"{item.name}: frequency changed to {entry.duration_days} days")

    return fields, notes


async def _apply_update(
    entry: ItemUpdateEntry, working: list[Item], today: date, store: ItemStore, result: ReconciliationResult
) -> None:
    match = resolve_item(working, item_id=entry.item_id, name=entry.item_name)
    if match is None:
        result.skipped.append(f"Not found: {_entry_label(entry)} (update)")
        return

    item = match.item
    notes: list[str] = []

    def planner(current: Item) -> ItemUpdate | None:
        fields, planned = _plan_update(entry, current, today)
        if not fields:
            return None
        notes.extend(planned)
        return validate_item_update(fields)

    updated = await store.update_item_with(item.id, planner)
    if updated is None:
        result.skipped.append(f"{item.name}: nothing to update")
        return

    _replace(working, updated)
    result.updated.append(updated)
    result.applied.extend(notes)
    logger.info("Applied update", extra={"item_id": item.id, "confidence": match.confidence.value})


async def _apply_insertion(
    entry: NewItemEntry, working: list[Item], today: date, store: ItemStore, result: ReconciliationResult
) -> None:
    duration = entry.duration_days if entry.duration_days is not None else Constants.DEFAULT_DURATION_DAYS
    if entry.is_exhausted and duration > 0:
        last_purchased = backdated_purchase_date(today=today, duration_days=duration)
    else:
        last_purchased = entry.last_purchased or today

    data = validate_item_create(
        {
            "name": entry.item_name,
            "category": entry.category or Constants.DEFAULT_CATEGORY,
            "last_purchased": last_purchased,
            "estimated_duration_days": duration,
        }
    )
    created = await store.create_item(data)
    working.append(created)
    result.created.append(created)
    result.applied.append(f"Added: {created.name}")
    logger.info("Added item", extra={"item_id": created.id, "item_name": created.name})


async def _apply_removal(
    entry: RemoveItemEntry, working: list[Item], store: ItemStore, result: ReconciliationResult
) -> None:
    match = resolve_item(working, item_id=entry.item_id, name=entry.item_name)
    if match is None:
        result.skipped.append(f"Not found: {_entry_label(entry)} (remove)")
        return

    removed = await store.soft_delete_item(match.item.id)
    _replace(working, removed)
    result.removed.append(removed)
    result.applied.append(f"Removed: {match.item.name}")
    logger.info(
        "Removed item",
        extra={"item_id": match.item.id, "confidence": match.confidence.value},
    )


async def apply_change_set(
    items: list[Item],
    change_set: ChangeSet,
    today: date,
    *,
    store: ItemStore,
) -> ReconciliationResult:
    """Apply a change-set to ``items`` and persist each entry through ``store``.

    Args:
        items: Current items; the list passed in is not mutated
        change_set: Updates, insertions and removals to apply
        today: Calendar date used for "ordered" and default purchase dates
        store: Persistence collaborator that issues ids for new items

    Returns:
        ReconciliationResult with the working item set, applied log lines and skipped entries

    Raises:
        RuntimeError: If the store fails; entries before the failure remain applied
    """
    with span("reconciliation_service.apply_change_set"):
        working = list(items)
        result = ReconciliationResult()

        for update in change_set.updates:
            try:
                await _apply_update(update, working, today, store, result)
            except (InvalidItemError, ItemNotFoundError) as e:
                result.skipped.append(f"Skipped update for {_entry_label(update)}: {e}")

        for new_item in change_set.new_items:
            try:
                await _apply_insertion(new_item, working, today, store, result)
            except InvalidItemError as e:
                result.skipped.append(f"Skipped new item {new_item.item_name or '(unnamed)'}: {e}")

        for removal in change_set.remove_items:
            try:
                await _apply_removal(removal, working, store, result)
            except ItemNotFoundError as e:
                result.skipped.append(f"Skipped removal of {_entry_label(removal)}: {e}")

        result.items = working
        logger.info(
            "Change-set reconciled",
            extra={"applied": len(result.applied), "skipped": len(result.skipped)},
        )
        return result
