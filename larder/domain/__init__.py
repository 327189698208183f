"""Domain models and DTOs."""

from larder.domain.change_set import ChangeSet, ItemUpdateEntry, NewItemEntry, RemoveItemEntry, StockSignal
from larder.domain.item import Item, ItemCategory, ItemCreate, ItemStatus, ItemUpdate, ItemView
from larder.domain.notification_log import NotificationChannel, NotificationLog, NotificationType


__all__ = [
    "ChangeSet",
    "Item",
    "ItemCategory",
    "ItemCreate",
    "ItemStatus",
    "ItemUpdate",
    "ItemUpdateEntry",
    "ItemView",
    "NewItemEntry",
    "NotificationChannel",
    "NotificationLog",
    "NotificationType",
    "RemoveItemEntry",
    "StockSignal",
]
