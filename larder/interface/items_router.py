"""Item management API."""

import logging
from datetime import date
from enum import StrEnum
from typing import Any

from fastapi import APIRouter, Body, Query, status

from larder.core.config import settings
from larder.domain.item import Item, ItemView
from larder.services import item_service, replenishment


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/items", tags=["items"])


class ItemListView(StrEnum):
    """Dashboard filters for the item list."""

    ALL = "all"
    LOW = "low"
    RECENT = "recent"
    OVERDUE = "overdue"


def _matches_view(view: ItemListView, item_view: ItemView) -> bool:
    if view == ItemListView.LOW:
        return item_view.running_low
    if view == ItemListView.RECENT:
        return item_view.recently_purchased
    if view == ItemListView.OVERDUE:
        return item_view.overdue
    return True


@router.get("")
async def list_items(view: ItemListView = Query(default=ItemListView.ALL)) -> list[ItemView]:
    """List active items ordered by category then name."""
    today = date.today()
    items = await item_service.list_active_items()
    views = [item_service.to_view(item, today, window_days=settings.running_low_window_days) for item in items]
    return [item_view for item_view in views if _matches_view(view, item_view)]


@router.get("/summary")
async def items_summary() -> dict[str, int]:
    """Counts for the dashboard header."""
    items = await item_service.list_active_items()
    summary = replenishment.classify_items(items, date.today(), window_days=settings.running_low_window_days)
    return {
        "running_low": len(summary.running_low),
        "recently_purchased": len(summary.recently_purchased),
        "overdue": len(summary.overdue),
        "total": summary.total,
    }


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_item(payload: dict[str, Any] = Body(...)) -> Item:
    return await item_service.create_item_from_payload(payload)


@router.put("/{item_id}")
async def update_item(item_id: int, payload: dict[str, Any] = Body(...)) -> Item:
    return await item_service.update_item_from_payload(item_id, payload)


@router.delete("/{item_id}")
async def delete_item(item_id: int) -> dict[str, str]:
    item = await item_service.soft_delete_item(item_id)
    return {"message": f"Deleted {item.name}"}
