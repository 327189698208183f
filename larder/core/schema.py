"""SQLite schema management (code-first approach)."""

import logging
from datetime import date, timedelta

from larder.core import db_client
from larder.core.config import settings


logger = logging.getLogger(__name__)


# Central list of all collections in the schema
COLLECTIONS = [
    "items",
    "notification_logs",
]

_TABLES: dict[str, str] = {
    # Items are never physically deleted; status moves to 'deleted' instead.
    "items": """
        CREATE TABLE IF NOT EXISTS items (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL,
            category TEXT NOT NULL,
            last_purchased TEXT,
            estimated_duration_days INTEGER,
            status TEXT NOT NULL DEFAULT 'active' CHECK (status IN ('active', 'deleted')),
            created_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%S', 'now'))
        )
    """,
    # Append-only audit trail of sent reminders.
    "notification_logs": """
        CREATE TABLE IF NOT EXISTS notification_logs (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            sent_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%S', 'now')),
            content TEXT NOT NULL,
            recipients TEXT NOT NULL,
            type TEXT NOT NULL CHECK (type IN ('manual', 'automatic')),
            channel TEXT NOT NULL DEFAULT 'email' CHECK (channel IN ('email', 'sms'))
        )
    """,
}

_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_items_status ON items (status)",
    "CREATE INDEX IF NOT EXISTS idx_notification_logs_sent_at ON notification_logs (sent_at)",
]

# (name, category, days since last purchase, estimated duration)
SAMPLE_ITEMS: list[tuple[str, str, int, int]] = [
    ("Dog food", "Pet", 87, 90),
    ("Toilet roll", "House", 20, 30),
    ("Nappies", "Baby", 10, 14),
    ("Washing powder", "House", 12, 45),
]


async def _seed_sample_items() -> int:
    """Insert the sample inventory when the items table is empty."""
    if await db_client.count_records(collection="items") > 0:
        return 0

    today = date.today()
    for name, category, days_ago, duration in SAMPLE_ITEMS:
        await db_client.create_record(
            collection="items",
            data={
                "name": name,
                "category": category,
                "last_purchased": today - timedelta(days=days_ago),
                "estimated_duration_days": duration,
            },
        )

    logger.info("Sample data inserted", extra={"count": len(SAMPLE_ITEMS)})
    return len(SAMPLE_ITEMS)


async def init_db() -> None:
    """Create tables and indexes if they do not exist, then optionally seed sample items."""
    conn = await db_client.get_connection()

    for collection in COLLECTIONS:
        await conn.execute(_TABLES[collection])
    for index_sql in _INDEXES:
        await conn.execute(index_sql)
    await conn.commit()

    logger.info("Database schema initialized", extra={"collections": COLLECTIONS})

    if settings.seed_sample_items:
        await _seed_sample_items()
