"""Tests for the free-text reply pipeline."""

import asyncio
from datetime import date, timedelta

import pytest

from larder.agents.interpreter import KeywordInterpreter
from larder.domain.change_set import ChangeSet, ItemUpdateEntry, NewItemEntry, RemoveItemEntry
from larder.domain.item import ItemCreate
from larder.services import item_service, response_service
from larder.services.reconciliation_service import ReconciliationResult


class StaticInterpreter:
    """Returns a fixed change-set and records what it was asked."""

    def __init__(self, change_set: ChangeSet) -> None:
        self.change_set = change_set
        self.calls: list[tuple[str, list[str]]] = []

    async def interpret(self, utterance, items, today):
        self.calls.append((utterance, [item.name for item in items]))
        await asyncio.sleep(0)
        return self.change_set


@pytest.mark.unit
class TestExtractReplyText:
    def test_strips_quoted_history(self):
        text = (
            "Dog food ordered, nappies good for a week\n"
            "\n"
            "On Mon, 16 Mar 2026 at 09:00, Larder <larder@example.com> wrote:\n"
            "> Think you might be running low on:\n"
            "> Pet: Dog food\n"
        )

        assert response_service.extract_reply_text(text) == "Dog food ordered, nappies good for a week"

    def test_drops_inline_quotes_and_signature(self):
        text = "> earlier message\nSalt is out\n-- \nSam\nSent from my phone"

        assert response_service.extract_reply_text(text) == "Salt is out"

    def test_falls_back_to_html(self):
        html = "<div>Toilet roll ordered<br>thanks</div><blockquote>&gt; quoted</blockquote>"

        assert response_service.extract_reply_text(None, html) == "Toilet roll ordered\nthanks"

    def test_prefers_plain_text(self):
        assert response_service.extract_reply_text("plain", "<p>html</p>") == "plain"

    def test_empty(self):
        assert response_service.extract_reply_text(None, None) == ""


@pytest.mark.unit
class TestProcessResponse:
    async def test_keyword_reply_marks_item_ordered(self, sqlite_db):
        item = await item_service.create_item(
            ItemCreate(
                name="Dog food",
                category="Pet",
                last_purchased=date.today() - timedelta(days=87),
                estimated_duration_days=90,
            )
        )

        result = await response_service.process_response("dog food ordered", interpreter=KeywordInterpreter())

        assert result.applied == ["Dog food: marked as ordered, reset cycle"]
        assert (await item_service.get_item(item.id)).last_purchased == date.today()
        assert response_service.summarize(result) == "Response processed - 1 update applied"

    async def test_empty_change_set_touches_nothing(self, sqlite_db):
        await item_service.create_item(ItemCreate(name="Salt", estimated_duration_days=60))

        result = await response_service.process_response("lovely weather", interpreter=StaticInterpreter(ChangeSet()))

        assert result.applied == []
        assert [item.name for item in result.items] == ["Salt"]
        assert response_service.summarize(result) == "Response processed - no updates applied"

    async def test_new_and_removed_items_persist(self, sqlite_db):
        await item_service.create_item(ItemCreate(name="Nappies", category="Baby", estimated_duration_days=14))
        interpreter = StaticInterpreter(
            ChangeSet(
                new_items=[NewItemEntry(item_name="Salt", category="Food", duration_days=60)],
                remove_items=[RemoveItemEntry(item_name="nappies")],
            )
        )

        result = await response_service.process_response("out of salt, no more nappies", interpreter=interpreter)

        assert result.applied == ["Added: Salt", "Removed: Nappies"]
        assert [item.name for item in await item_service.list_active_items()] == ["Salt"]

    async def test_batches_are_serialized(self, sqlite_db):
        interpreter = StaticInterpreter(ChangeSet(new_items=[NewItemEntry(item_name="Salt")]))

        await asyncio.gather(
            response_service.process_response("first", interpreter=interpreter),
            response_service.process_response("second", interpreter=interpreter),
        )

        # The second batch sees the item created by the first
        assert interpreter.calls[0][1] == []
        assert interpreter.calls[1][1] == ["Salt"]

    async def test_direct_edit_during_interpretation_is_respected(self, sqlite_db):
        today = date(2026, 3, 15)
        item = await item_service.create_item(
            ItemCreate(name="Salt", last_purchased=today - timedelta(days=10), estimated_duration_days=30)
        )

        class EditingInterpreter:
            async def interpret(self, utterance, items, today):
                # The item set was read before this edit lands
                await item_service.update_item_from_payload(item.id, {"estimatedDurationDays": 60})
                return ChangeSet(updates=[ItemUpdateEntry(item_id=item.id, days_until_needed=5)])

        result = await response_service.process_response(
            "salt good for five days", today=today, interpreter=EditingInterpreter()
        )

        stored = await item_service.get_item(item.id)
        assert result.applied == ["Salt: updated timeline"]
        assert stored.estimated_duration_days == 60
        assert stored.last_purchased == today + timedelta(days=5 - 60)
        assert item_service.to_view(stored, today).days_until_needed == 5

    def test_summarize_plural(self):
        result = ReconciliationResult(applied=["Added: Salt", "Added: Pepper"])

        assert response_service.summarize(result) == "Response processed - 2 updates applied"
