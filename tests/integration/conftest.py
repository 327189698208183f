"""Fixtures for API tests running the app lifespan against a temporary database."""

from collections.abc import Generator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from larder import main
from larder.agents.interpreter import KeywordInterpreter, set_interpreter
from larder.core.config import settings


@pytest.fixture
def client(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Generator[TestClient, None, None]:
    """TestClient with a fresh SQLite file, no scheduler and the keyword interpreter."""
    monkeypatch.setattr(settings, "sqlite_db_path", str(tmp_path / "api.db"))
    monkeypatch.setattr(settings, "seed_sample_items", False)
    monkeypatch.setattr(settings, "reminder_emails", ["home@example.com"])
    monkeypatch.setattr(settings, "reminder_phones", [])
    monkeypatch.setattr(main, "configure_logfire", lambda: None)
    monkeypatch.setattr(main, "instrument_pydantic_ai", lambda: None)
    monkeypatch.setattr(main, "start_scheduler", lambda: None)
    monkeypatch.setattr(main, "stop_scheduler", lambda: None)
    set_interpreter(KeywordInterpreter())

    with TestClient(main.app) as test_client:
        yield test_client

    set_interpreter(None)
