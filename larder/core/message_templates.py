"""Centralized message templates for reminder emails and SMS.

All user-facing reminder strings are defined here so wording can be changed
in one place. Composers return None for an empty item list, meaning "do not send".
"""

from collections.abc import Sequence

from larder.domain.item import Item, ItemCategory


CATEGORY_ICONS: dict[str, str] = {
    ItemCategory.HOUSE: "\U0001f3e0",
    ItemCategory.BABY: "\U0001f476",
    ItemCategory.PET: "\U0001f415",
    ItemCategory.FOOD: "\U0001f34e",
    ItemCategory.CAR: "\U0001f697",
    ItemCategory.HEALTH: "\U0001f48a",
}
DEFAULT_ICON = "\U0001f4e6"

REPLY_EXAMPLE = "Dog food good for 2 weeks, washing powder nearly out, toilet roll ordered for tomorrow"

_CATEGORY_ORDER = {category.value: index for index, category in enumerate(ItemCategory)}


def category_icon(category: str) -> str:
    return CATEGORY_ICONS.get(category, DEFAULT_ICON)


def _category_sort_key(category: str) -> tuple[int, str]:
    # Known categories in enum order, then everything else alphabetically
    return (_CATEGORY_ORDER.get(category, len(_CATEGORY_ORDER)), category.lower())


def group_by_category(items: Sequence[Item]) -> list[tuple[str, list[str]]]:
    """Group item names by category in a fixed order, independent of input order."""
    grouped: dict[str, list[str]] = {}
    for item in items:
        grouped.setdefault(item.category, []).append(item.name)

    return [
        (category, sorted(grouped[category], key=str.lower))
        for category in sorted(grouped, key=_category_sort_key)
    ]


def compose_email(low_items: Sequence[Item], *, household_name: str = "Larder") -> str | None:
    """Build the long-form reminder email body.

    Args:
        low_items: Items that are running low
        household_name: Name used in the heading and signature

    Returns:
        Email body, or None when there is nothing to report
    """
    if not low_items:
        return None

    lines = [f"{household_name} Check-in", "", "Think you might be running low on:", ""]
    lines.extend(
        f"{category_icon(category)} {category}: {', '.join(names)}" for category, names in group_by_category(low_items)
    )
    lines.extend(
        [
            "",
            "Just reply to this email with how things look!",
            f"Example: '{REPLY_EXAMPLE}'",
            "",
            f"—{household_name} {DEFAULT_ICON}",
        ]
    )
    return "\n".join(lines)


def compose_sms(low_items: Sequence[Item], *, household_name: str = "Larder") -> str | None:
    """Build the single-line SMS body.

    Length is not enforced here; callers truncate to their transport's limit.
    """
    if not low_items:
        return None

    names = ", ".join(name for _, group in group_by_category(low_items) for name in group)
    return f"{household_name}: running low on {names}. Reply with an update."


def reminder_subject(*, item_count: int, automatic: bool, household_name: str = "Larder") -> str:
    label = "Daily Check-in" if automatic else "Check-in"
    plural = "" if item_count == 1 else "s"
    return f"{household_name} {label} - {item_count} item{plural} running low"


def truncate(text: str, limit: int) -> str:
    """Cut ``text`` to ``limit`` characters, marking the cut with an ellipsis."""
    if len(text) <= limit:
        return text
    return text[: max(limit - 1, 0)] + "…"
