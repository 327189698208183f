"""Tests for reminder message composition."""

import random

import pytest

from larder.core import message_templates


@pytest.fixture
def low_items(make_item):
    return [
        make_item(1, "washing powder"),
        make_item(2, "Dog food", category="Pet"),
        make_item(3, "Nappies", category="Baby"),
        make_item(4, "Toilet roll"),
        make_item(5, "Wiper fluid", category="Garage"),
        make_item(6, "Antifreeze", category="Car"),
        make_item(7, "Bulbs", category="DIY"),
    ]


def _category_lines(body: str) -> list[str]:
    icons = (*message_templates.CATEGORY_ICONS.values(), message_templates.DEFAULT_ICON)
    return [line for line in body.splitlines() if line.startswith(icons) and ":" in line]


@pytest.mark.unit
class TestComposeEmail:
    def test_empty_returns_none(self):
        assert message_templates.compose_email([]) is None

    def test_groups_in_fixed_category_order(self, low_items):
        body = message_templates.compose_email(low_items, household_name="Hollies")

        assert body is not None
        assert _category_lines(body) == [
            "\U0001f3e0 House: Toilet roll, washing powder",
            "\U0001f476 Baby: Nappies",
            "\U0001f415 Pet: Dog food",
            "\U0001f697 Car: Antifreeze",
            "\U0001f4e6 DIY: Bulbs",
            "\U0001f4e6 Garage: Wiper fluid",
        ]

    def test_grouping_is_order_independent(self, low_items):
        shuffled = list(low_items)
        random.Random(7).shuffle(shuffled)

        assert message_templates.compose_email(shuffled) == message_templates.compose_email(low_items)

    def test_contains_boilerplate(self, low_items):
        body = message_templates.compose_email(low_items, household_name="Hollies")

        assert body is not None
        assert body.startswith("Hollies Check-in")
        assert "Think you might be running low on:" in body
        assert message_templates.REPLY_EXAMPLE in body
        assert body.endswith("Hollies \U0001f4e6")


@pytest.mark.unit
class TestComposeSms:
    def test_empty_returns_none(self):
        assert message_templates.compose_sms([]) is None

    def test_single_line_with_names(self, make_item):
        body = message_templates.compose_sms([make_item(1, "Nappies", category="Baby"), make_item(2, "Bin bags")])

        assert body == "Larder: running low on Bin bags, Nappies. Reply with an update."
        assert "\n" not in body

    def test_does_not_truncate(self, make_item):
        items = [make_item(i, f"Very long product name number {i}") for i in range(10)]

        body = message_templates.compose_sms(items)

        assert body is not None
        assert len(body) > 160


@pytest.mark.unit
class TestSubjectAndTruncate:
    def test_manual_subject(self):
        assert (
            message_templates.reminder_subject(item_count=3, automatic=False, household_name="Hollies")
            == "Hollies Check-in - 3 items running low"
        )

    def test_automatic_subject_singular(self):
        assert (
            message_templates.reminder_subject(item_count=1, automatic=True, household_name="Hollies")
            == "Hollies Daily Check-in - 1 item running low"
        )

    def test_truncate(self):
        assert message_templates.truncate("short", 160) == "short"
        truncated = message_templates.truncate("x" * 200, 160)
        assert len(truncated) == 160
        assert truncated.endswith("…")

    def test_unknown_category_uses_default_icon(self):
        assert message_templates.category_icon("Garden") == message_templates.DEFAULT_ICON
