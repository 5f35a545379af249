"""Pytest configuration and fixtures."""

import os
from datetime import datetime, timezone
from uuid import uuid4

import pytest


def pytest_configure(config):
    """Set up test environment variables before tests run."""
    # Set every secret so Settings never falls back to Secret Manager
    os.environ.setdefault("GOOGLE_PROJECT_ID", "test-project")
    os.environ.setdefault("GOOGLE_LOCATION", "us-central1")
    os.environ.setdefault("DB_HOST", "localhost")
    os.environ.setdefault("DB_NAME", "test_db")
    os.environ.setdefault("DB_USER", "test_user")
    os.environ.setdefault("DB_PASSWORD", "test_password")
    os.environ.setdefault("GOOGLE_OAUTH_CLIENT_ID", "test-client-id")
    os.environ.setdefault("GOOGLE_OAUTH_CLIENT_SECRET", "test-client-secret")
    os.environ.setdefault("SESSION_SECRET_KEY", "test-session-secret")
    os.environ.setdefault("ADMIN_EMAILS", "admin@example.com")
    os.environ.setdefault("AI_RETRY_BASE_DELAY", "0")


@pytest.fixture
def mock_settings():
    """Provide mock settings for testing."""
    from ai_memo.config import Settings

    return Settings(
        google_project_id="test-project",
        google_location="us-central1",
        db_host="localhost",
        db_name="test_db",
        db_user="test_user",
        db_password="test_password",
    )


@pytest.fixture(autouse=True)
def fresh_error_monitor():
    """Start every test with empty error statistics."""
    from ai_memo.ai.monitoring import error_monitor

    error_monitor.reset_stats()
    yield
    error_monitor.reset_stats()


@pytest.fixture
def make_note():
    """Build a Note owned by ``user-1``."""
    from ai_memo.notes import Note

    def _make(title: str = "회의 메모", content: str = "다음 주 출시 일정을 논의했다.", **kwargs):
        now = datetime.now(timezone.utc)
        fields = {
            "id": uuid4(),
            "user_id": "user-1",
            "title": title,
            "content": content,
            "created_at": now,
            "updated_at": now,
        }
        fields.update(kwargs)
        return Note(**fields)

    return _make
