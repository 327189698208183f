"""Pytest configuration and shared fixtures."""

from collections.abc import AsyncIterator, Callable
from datetime import date
from pathlib import Path

import pytest

from larder.core.config import settings
from larder.core.db_client import close_connection, init_db
from larder.core.dedup import NotificationGuard
from larder.core.errors import ItemNotFoundError
from larder.domain.item import Item, ItemCreate, ItemStatus, ItemUpdate
from larder.services import reminder_service


TODAY = date(2026, 3, 15)


class InMemoryItemStore:
    """ItemStore that keeps items in a dict, for reconciliation tests."""

    def __init__(self, items: list[Item] | None = None) -> None:
        self.items: dict[int, Item] = {item.id: item for item in items or []}
        self._next_id = max(self.items, default=0) + 1
        self.issued_ids: list[int] = []
        self.fail_on_create = False

    async def create_item(self, data: ItemCreate) -> Item:
        if self.fail_on_create:
            msg = "Failed to create record in items: disk I/O error"
            raise RuntimeError(msg)
        item = Item(
            id=self._next_id,
            name=data.name,
            category=data.category,
            last_purchased=data.last_purchased,
            estimated_duration_days=data.estimated_duration_days,
        )
        self.issued_ids.append(item.id)
        self._next_id += 1
        self.items[item.id] = item
        return item

    def _active(self, item_id: int) -> Item:
        item = self.items.get(item_id)
        if item is None or not item.is_active:
            raise ItemNotFoundError(item_id)
        return item

    async def update_item_with(self, item_id: int, planner: Callable[[Item], ItemUpdate | None]) -> Item | None:
        item = self._active(item_id)
        data = planner(item)
        if data is None:
            return None
        updated = item.model_copy(update=data.model_dump(exclude_unset=True, exclude_none=True))
        self.items[item_id] = updated
        return updated

    async def soft_delete_item(self, item_id: int) -> Item:
        item = self._active(item_id)
        deleted = item.model_copy(update={"status": ItemStatus.DELETED})
        self.items[item_id] = deleted
        return deleted


@pytest.fixture
def make_item() -> Callable[..., Item]:
    """Factory for Item instances with sensible defaults."""

    def _make(
        item_id: int,
        name: str,
        *,
        category: str = "House",
        last_purchased: date | None = TODAY,
        duration: int | None = 30,
        status: ItemStatus = ItemStatus.ACTIVE,
    ) -> Item:
        return Item(
            id=item_id,
            name=name,
            category=category,
            last_purchased=last_purchased,
            estimated_duration_days=duration,
            status=status,
        )

    return _make


@pytest.fixture
def memory_store() -> Callable[[list[Item]], InMemoryItemStore]:
    """Factory for an in-memory store seeded with items."""
    return InMemoryItemStore


@pytest.fixture
async def sqlite_db(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> AsyncIterator[Path]:
    """Point settings at a fresh SQLite file and create the schema."""
    db_path = tmp_path / "test_larder.db"
    monkeypatch.setattr(settings, "sqlite_db_path", str(db_path))
    monkeypatch.setattr(settings, "seed_sample_items", False)

    await init_db()
    yield db_path
    await close_connection()


@pytest.fixture(autouse=True)
def fresh_notification_guard(monkeypatch: pytest.MonkeyPatch) -> NotificationGuard:
    """Isolate reminder de-duplication state between tests."""
    guard = NotificationGuard()
    monkeypatch.setattr(reminder_service, "notification_guard", guard)
    return guard
