"""Item domain models and enums."""

from datetime import date, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from larder.core.errors import InvalidItemError


class ItemStatus(StrEnum):
    """Item lifecycle status. Deletion is a one-way soft transition."""

    ACTIVE = "active"
    DELETED = "deleted"


class ItemCategory(StrEnum):
    """Known item categories, in display order.

    Categories are open-ended: items may carry any other label, which sorts
    after these in notifications.
    """

    HOUSE = "House"
    BABY = "Baby"
    PET = "Pet"
    FOOD = "Food"
    CAR = "Car"
    HEALTH = "Health"


class Item(BaseModel):
    """A tracked consumable."""

    model_config = ConfigDict(frozen=True)

    id: int = Field(..., description="Stable integer id assigned at creation, never reused")
    name: str = Field(..., description="Free-text label (not unique)")
    category: str = Field(..., description="Category label, usually an ItemCategory value")
    last_purchased: date | None = Field(default=None, description="Date of the most recent resupply")
    estimated_duration_days: int | None = Field(
        default=None, description="Expected days an item lasts from a purchase; unknown when missing or non-positive"
    )
    status: ItemStatus = Field(default=ItemStatus.ACTIVE, description="active or deleted")
    created_at: datetime | None = Field(default=None, description="Immutable creation timestamp")

    @property
    def is_active(self) -> bool:
        return self.status == ItemStatus.ACTIVE


def _require_name(value: str) -> str:
    stripped = value.strip()
    if not stripped:
        msg = "name must not be blank"
        raise ValueError(msg)
    return stripped


class ItemCreate(BaseModel):
    """Payload for creating an item; the write boundary for new items."""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    name: str = Field(..., min_length=1)
    category: str = Field(default=ItemCategory.HOUSE.value, min_length=1)
    last_purchased: date | None = Field(default=None, alias="lastPurchased")
    estimated_duration_days: int = Field(..., gt=0, alias="estimatedDurationDays", strict=True)

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, value: str) -> str:
        return _require_name(value)


class ItemUpdate(BaseModel):
    """Partial update payload; only fields that are set are written."""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    name: str | None = Field(default=None, min_length=1)
    category: str | None = Field(default=None, min_length=1)
    last_purchased: date | None = Field(default=None, alias="lastPurchased")
    estimated_duration_days: int | None = Field(default=None, gt=0, alias="estimatedDurationDays", strict=True)

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, value: str | None) -> str | None:
        return None if value is None else _require_name(value)


def _describe_validation_error(error: ValidationError) -> str:
    parts = []
    for detail in error.errors():
        location = ".".join(str(part) for part in detail["loc"]) or "item"
        parts.append(f"{location}: {detail['msg']}")
    return "; ".join(parts)


def validate_item_create(data: dict[str, Any]) -> ItemCreate:
    """Build an ItemCreate, raising InvalidItemError instead of ValidationError."""
    try:
        return ItemCreate.model_validate(data)
    except ValidationError as e:
        raise InvalidItemError(_describe_validation_error(e)) from e


def validate_item_update(data: dict[str, Any]) -> ItemUpdate:
    """Build an ItemUpdate, raising InvalidItemError instead of ValidationError."""
    try:
        return ItemUpdate.model_validate(data)
    except ValidationError as e:
        raise InvalidItemError(_describe_validation_error(e)) from e


class ItemView(BaseModel):
    """Item as returned by the API, with its replenishment classification."""

    id: int
    name: str
    category: str
    last_purchased: date | None
    estimated_duration_days: int | None
    status: ItemStatus
    created_at: datetime | None
    days_until_needed: int | None
    running_low: bool
    overdue: bool
    recently_purchased: bool
