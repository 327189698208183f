"""Change-set models exchanged between the interpreter and the reconciliation engine.

Field aliases follow the camelCase JSON shape the language model is asked to
return, so a model response can be validated directly.
"""

from datetime import date
from enum import StrEnum

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class StockSignal(StrEnum):
    """Coarse stock status a user can express about an item."""

    ORDERED = "ordered"
    PLENTY = "plenty"
    RUNNING_LOW = "running_low"
    NEARLY_OUT = "nearly_out"
    OUT_OF = "out_of"


class _Entry(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", str_strip_whitespace=True)

    reason: str = Field(default="", description="Human-readable explanation from the interpreter")


class ItemUpdateEntry(_Entry):
    """Overwrite fields of an existing item, referenced by id or name token."""

    item_id: int | None = Field(default=None, validation_alias=AliasChoices("itemId", "item_id", "id"))
    item_name: str = Field(default="", validation_alias=AliasChoices("itemName", "item_name", "name"))
    last_purchased: date | None = Field(
        default=None, validation_alias=AliasChoices("lastPurchased", "last_purchased")
    )
    duration_days: int | None = Field(
        default=None, validation_alias=AliasChoices("durationDays", "newDurationDays", "duration_days")
    )
    days_until_needed: int | None = Field(
        default=None, validation_alias=AliasChoices("daysUntilNeeded", "days_until_needed")
    )
    status: StockSignal | None = None


class NewItemEntry(_Entry):
    """An item mentioned in free text that is not yet tracked."""

    item_name: str = Field(default="", validation_alias=AliasChoices("itemName", "item_name", "name"))
    category: str | None = None
    last_purchased: date | None = Field(
        default=None, validation_alias=AliasChoices("lastPurchased", "last_purchased")
    )
    duration_days: int | None = Field(
        default=None, validation_alias=AliasChoices("durationDays", "duration_days", "estimatedDurationDays")
    )
    status: StockSignal | None = None

    @property
    def is_exhausted(self) -> bool:
        return self.status == StockSignal.OUT_OF


class RemoveItemEntry(_Entry):
    """An existing item the user no longer wants tracked."""

    item_id: int | None = Field(default=None, validation_alias=AliasChoices("itemId", "item_id", "id"))
    item_name: str = Field(default="", validation_alias=AliasChoices("itemName", "item_name", "name"))


class ChangeSet(BaseModel):
    """Structured result of interpreting one free-text utterance."""

    model_config = ConfigDict(populate_by_name=True)

    updates: list[ItemUpdateEntry] = Field(default_factory=list)
    new_items: list[NewItemEntry] = Field(
        default_factory=list, validation_alias=AliasChoices("newItems", "new_items")
    )
    remove_items: list[RemoveItemEntry] = Field(
        default_factory=list, validation_alias=AliasChoices("removeItems", "remove_items")
    )

    @property
    def is_empty(self) -> bool:
        return not (self.updates or self.new_items or self.remove_items)
