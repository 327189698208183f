"""Weak-identity lookup of items by id or by a free-text name token.

Matching policy lives here so the reconciliation engine never has to know
whether names are compared by substring, token set, or edit distance.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum

from larder.domain.item import Item


class MatchConfidence(Enum):
    """How a resolved item was found."""

    ID = "id"
    EXACT_NAME = "exact_name"
    SUBSTRING = "substring"


@dataclass(frozen=True)
class ItemMatch:
    """A resolved item plus how confident the lookup was."""

    item: Item
    confidence: MatchConfidence


def _normalize(name: str) -> str:
    return " ".join(name.lower().split())


def names_match(query: str, candidate: str) -> bool:
    """Case-insensitive substring match in either direction.

    Empty strings never match, so a blank token cannot resolve to every item.
    """
    query_norm = _normalize(query)
    candidate_norm = _normalize(candidate)
    if not query_norm or not candidate_norm:
        return False
    return query_norm in candidate_norm or candidate_norm in query_norm


def fuzzy_match_all(items: Sequence[Item], name_query: str) -> list[Item]:
    """Return every active item whose name matches the query, exact matches first."""
    query_norm = _normalize(name_query)
    if not query_norm:
        return []

    exact = [item for item in items if item.is_active and _normalize(item.name) == query_norm]
    partial = [item for item in items if item.is_active and item not in exact and names_match(query_norm, item.name)]
    return exact + partial


def resolve_item(
    items: Sequence[Item],
    *,
    item_id: int | None = None,
    name: str | None = None,
) -> ItemMatch | None:
    """Resolve an item by exact id, falling back to fuzzy name matching.

    An id that does not refer to an active item falls through to the name
    lookup rather than failing outright. First match wins.

    Args:
        items: Candidate items; deleted items are ignored
        item_id: Exact id, when the caller knows it
        name: Free-text name token

    Returns:
        The match and its confidence, or None when nothing resolves
    """
    if item_id is not None:
        for item in items:
            if item.id == item_id and item.is_active:
                return ItemMatch(item=item, confidence=MatchConfidence.ID)

    if name:
        matches = fuzzy_match_all(items, name)
        if matches:
            best = matches[0]
            exact = _normalize(best.name) == _normalize(name)
            return ItemMatch(
                item=best,
                confidence=MatchConfidence.EXACT_NAME if exact else MatchConfidence.SUBSTRING,
            )

    return None
