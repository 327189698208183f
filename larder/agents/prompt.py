"""Prompt construction for interpreting free-text inventory replies."""

from collections.abc import Sequence
from datetime import date

from larder.core.config import Constants
from larder.domain.item import Item, ItemCategory


# Pairs that look related but are different products and must never be merged
NON_SYNONYMS: list[tuple[str, str]] = [
    ("dog food", "cat food"),
    ("dog food", "baby food"),
    ("baby wipes", "cleaning wipes"),
    ("washing powder", "washing up liquid"),
    ("washing up liquid", "dishwasher tablets"),
    ("hand soap", "dish soap"),
    ("nappies", "toilet roll"),
    ("kitchen roll", "toilet roll"),
    ("shampoo", "dog shampoo"),
    ("vitamins", "dog vitamins"),
]

# Interchangeable names for the same product
KNOWN_SYNONYMS: list[tuple[str, str]] = [
    ("nappies", "diapers"),
    ("toilet roll", "toilet paper"),
    ("washing up liquid", "fairy liquid"),
    ("washing powder", "laundry detergent"),
    ("kitchen roll", "paper towels"),
]

SYSTEM_PROMPT = """You turn short household replies about consumables into structured inventory changes.
Return ONLY a JSON object. Do not wrap it in markdown or code fences and do not add commentary."""


def _format_inventory(items: Sequence[Item]) -> str:
    if not items:
        return "(no items tracked yet)"
    return "\n".join(f"- id={item.id} | name={item.name} | category={item.category}" for item in items)


def _format_pairs(pairs: Sequence[tuple[str, str]], joiner: str) -> str:
    return "\n".join(f"- {a} {joiner} {b}" for a, b in pairs)


def build_interpretation_prompt(utterance: str, items: Sequence[Item], today: date) -> str:
    """Build the user prompt embedding the current inventory and matching rules.

    Args:
        utterance: Raw reply text from the household
        items: Active items the reply may refer to
        today: Reference date for relative phrases

    Returns:
        Prompt string asking for a change-set JSON document
    """
    categories = ", ".join(category.value for category in ItemCategory)
    week = Constants.DAYS_PER_WEEK
    month = Constants.DAYS_PER_MONTH

    return f"""Today is {today.isoformat()}.

CURRENT INVENTORY:
{_format_inventory(items)}

USER REPLY:
\"\"\"{utterance}\"\"\"

Return a JSON object with exactly this shape:
{{
  "updates": [
    {{"itemId": <id from inventory>, "itemName": "<inventory name>",
      "status": "ordered|plenty|running_low|nearly_out|out_of",
      "lastPurchased": "YYYY-MM-DD or null", "daysUntilNeeded": <int or null>,
      "durationDays": <int or null>, "reason": "<short explanation>"}}
  ],
  "newItems": [
    {{"itemName": "<name>", "category": "<{categories} or another short label>",
      "status": "out_of|running_low|plenty", "lastPurchased": "YYYY-MM-DD or null",
      "durationDays": <int or null>, "reason": "<short explanation>"}}
  ],
  "removeItems": [
    {{"itemId": <id from inventory>, "itemName": "<inventory name>", "reason": "<short explanation>"}}
  ]
}}

ITEM MATCHING RULES:
1. Match a mention to an inventory item only if it is the exact name (ignoring case) or a known synonym.
2. Always copy itemId and itemName from the inventory for updates and removals.
3. Never match across categories: a Pet item is never the same as a Baby or House item.
4. These pairs are NOT synonyms and must never be merged:
{_format_pairs(NON_SYNONYMS, "is not")}
5. Known synonyms:
{_format_pairs(KNOWN_SYNONYMS, "=")}
6. A product that does not match any inventory item goes in newItems, never in updates.

DATE AND DURATION RULES:
- "today" = 0 days, "yesterday" = -1 day, "tomorrow" = 1 day.
- "N weeks" = N*{week} days, "N months" = N*{month} days, "a week" = {week}, "a month" = {month}, "plenty" = {month}.
- "ordered", "bought" or "got more" means status "ordered" (purchased today) unless a purchase date is given,
  in which case set lastPurchased to that date.
- "good for N weeks" or "need more in N days" sets daysUntilNeeded.
- A new frequency such as "every 4 weeks" or "lasts a month" sets durationDays.
- "we're out of X" for an untracked item is a newItems entry with status "out_of".
- "don't need X anymore", "stop tracking X" or "remove X" goes in removeItems.
- Guess a category for new items: cleaning and household supplies are House, baby items are Baby,
  pet supplies are Pet, groceries are Food, vehicle supplies are Car, medicine and toiletries are Health.

If nothing in the reply changes the inventory, return {{"updates": [], "newItems": [], "removeItems": []}}."""
