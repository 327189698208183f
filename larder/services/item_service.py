"""Item service for inventory management."""

import logging
from collections.abc import Callable
from datetime import UTC, date, datetime
from typing import Any

from larder.core import db_client
from larder.core.config import Constants
from larder.core.errors import InvalidItemError, ItemNotFoundError
from larder.core.locks import item_locks
from larder.core.logging import span
from larder.domain.item import (
    Item,
    ItemCreate,
    ItemStatus,
    ItemUpdate,
    ItemView,
    validate_item_create,
    validate_item_update,
)
from larder.services import replenishment


logger = logging.getLogger(__name__)

COLLECTION = "items"


def _to_item(record: dict[str, Any]) -> Item:
    """Convert a database row into an Item.

    Stored durations of zero or below predate validation; they are read back
    as unknown rather than rejected.
    """
    duration = record.get("estimated_duration_days")
    if duration is not None and duration <= 0:
        duration = None
    return Item(
        id=record["id"],
        name=record["name"],
        category=record["category"],
        last_purchased=record.get("last_purchased") or None,
        estimated_duration_days=duration,
        status=record.get("status") or ItemStatus.ACTIVE,
        created_at=record.get("created_at"),
    )


async def _get_active_record(item_id: int) -> dict[str, Any]:
    try:
        record = await db_client.get_record(collection=COLLECTION, record_id=item_id)
    except KeyError as e:
        raise ItemNotFoundError(item_id) from e
    if record.get("status") != ItemStatus.ACTIVE:
        raise ItemNotFoundError(item_id)
    return record


async def list_active_items() -> list[Item]:
    """Get all active items, ordered by category then name."""
    with span("item_service.list_active_items"):
        records = await db_client.list_records(
            collection=COLLECTION,
            filters={"status": ItemStatus.ACTIVE.value},
            per_page=Constants.DEFAULT_PER_PAGE_LIMIT,
        )
        items = [_to_item(record) for record in records]
        items.sort(key=lambda item: (item.category.lower(), item.name.lower()))

        logger.debug(f"Retrieved {len(items)} active items")
        return items


async def get_item(item_id: int) -> Item:
    """Get a single active item.

    Raises:
        ItemNotFoundError: If the id is unknown or the item was deleted
    """
    with span("item_service.get_item"):
        return _to_item(await _get_active_record(item_id))


async def create_item(data: ItemCreate) -> Item:
    """Create an active item. ``last_purchased`` defaults to today.

    Args:
        data: Validated item payload

    Returns:
        The created item with its assigned id
    """
    with span("item_service.create_item"):
        record = await db_client.create_record(
            collection=COLLECTION,
            data={
                "name": data.name,
                "category": data.category,
                "last_purchased": data.last_purchased or date.today(),
                "estimated_duration_days": data.estimated_duration_days,
                "status": ItemStatus.ACTIVE.value,
                "created_at": datetime.now(UTC).replace(microsecond=0, tzinfo=None),
            },
        )
        item = _to_item(record)
        logger.info(f"Created item: {item.name}", extra={"item_id": item.id, "category": item.category})
        return item


def _update_fields(data: ItemUpdate) -> dict[str, Any]:
    fields = data.model_dump(exclude_unset=True, exclude_none=True)
    if not fields:
        msg = "update must set at least one field"
        raise InvalidItemError(msg)
    return fields


async def update_item(item_id: int, data: ItemUpdate) -> Item:
    """Overwrite only the fields set on ``data``.

    Raises:
        InvalidItemError: If the payload sets no fields
        ItemNotFoundError: If the item is unknown or deleted
    """
    with span("item_service.update_item"):
        fields = _update_fields(data)

        async with item_locks.hold(item_id):
            await _get_active_record(item_id)
            record = await db_client.update_record(collection=COLLECTION, record_id=item_id, data=fields)

        item = _to_item(record)
        logger.info(f"Updated item: {item.name}", extra={"item_id": item_id, "fields": sorted(fields)})
        return item


async def update_item_with(item_id: int, planner: Callable[[Item], ItemUpdate | None]) -> Item | None:
    """Read, plan and write an item while holding its lock.

    ``planner`` receives the item as currently stored and returns the update
    to write, or None to leave the item untouched.

    Returns:
        The updated item, or None when the planner declined

    Raises:
        InvalidItemError: If the planner rejects the item or plans an empty update
        ItemNotFoundError: If the item is unknown or deleted
    """
    with span("item_service.update_item_with"):
        async with item_locks.hold(item_id):
            current = _to_item(await _get_active_record(item_id))
            data = planner(current)
            if data is None:
                return None
            fields = _update_fields(data)
            record = await db_client.update_record(collection=COLLECTION, record_id=item_id, data=fields)

        item = _to_item(record)
        logger.info(f"Updated item: {item.name}", extra={"item_id": item_id, "fields": sorted(fields)})
        return item


async def create_item_from_payload(payload: dict[str, Any]) -> Item:
    """Validate a raw request payload at the write boundary, then create.

    Raises:
        InvalidItemError: If the payload fails validation
    """
    return await create_item(validate_item_create(payload))


async def update_item_from_payload(item_id: int, payload: dict[str, Any]) -> Item:
    """Validate a raw request payload at the write boundary, then update.

    Raises:
        InvalidItemError: If the payload fails validation or sets nothing
        ItemNotFoundError: If the item is unknown or deleted
    """
    return await update_item(item_id, validate_item_update(payload))


async def soft_delete_item(item_id: int) -> Item:
    """Mark an item deleted. The row is kept; the transition cannot be undone.

    Raises:
        ItemNotFoundError: If the item is unknown or already deleted
    """
    with span("item_service.soft_delete_item"):
        async with item_locks.hold(item_id):
            await _get_active_record(item_id)
            record = await db_client.update_record(
                collection=COLLECTION,
                record_id=item_id,
                data={"status": ItemStatus.DELETED.value},
            )

        item = _to_item(record)
        logger.info(f"Deleted item: {item.name}", extra={"item_id": item_id})
        return item


def to_view(item: Item, today: date, *, window_days: int = replenishment.RUNNING_LOW_WINDOW_DAYS) -> ItemView:
    """Attach replenishment classification to an item for API responses."""
    return ItemView(
        **item.model_dump(),
        days_until_needed=replenishment.days_until_needed(item, today),
        running_low=replenishment.is_running_low(item, today, window_days=window_days),
        overdue=replenishment.is_overdue(item, today),
        recently_purchased=replenishment.is_recently_purchased(item, today),
    )


class DatabaseItemStore:
    """ItemStore backed by the items table, used by the reconciliation engine."""

    async def create_item(self, data: ItemCreate) -> Item:
        return await create_item(data)

    async def update_item_with(self, item_id: int, planner: Callable[[Item], ItemUpdate | None]) -> Item | None:
        return await update_item_with(item_id, planner)

    async def soft_delete_item(self, item_id: int) -> Item:
        return await soft_delete_item(item_id)
