"""PostgreSQL connection helpers and schema bootstrap."""

import logging
from collections.abc import Iterator

import psycopg2

from ai_memo.config import settings

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS notes (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    user_id TEXT NOT NULL,
    title VARCHAR(255) NOT NULL,
    content TEXT NOT NULL,
    created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
);
CREATE INDEX IF NOT EXISTS notes_user_id_updated_at_idx ON notes (user_id, updated_at DESC);

CREATE TABLE IF NOT EXISTS note_tags (
    note_id UUID NOT NULL REFERENCES notes (id) ON DELETE CASCADE,
    tag VARCHAR(100) NOT NULL
);
CREATE INDEX IF NOT EXISTS note_tags_note_id_idx ON note_tags (note_id);

CREATE TABLE IF NOT EXISTS summaries (
    note_id UUID NOT NULL REFERENCES notes (id) ON DELETE CASCADE,
    model VARCHAR(100) NOT NULL,
    content TEXT NOT NULL,
    created_at TIMESTAMPTZ NOT NULL DEFAULT now()
);
CREATE INDEX IF NOT EXISTS summaries_note_id_idx ON summaries (note_id, created_at DESC);

CREATE TABLE IF NOT EXISTS draft_notes (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    user_id TEXT NOT NULL,
    title VARCHAR(255) NOT NULL,
    content TEXT NOT NULL,
    created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
    expires_at TIMESTAMPTZ NOT NULL
);

CREATE TABLE IF NOT EXISTS user_profiles (
    user_id TEXT PRIMARY KEY,
    onboarding_completed BOOLEAN NOT NULL DEFAULT FALSE,
    updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
);
"""


def get_connection(connection_string: str | None = None) -> "psycopg2.extensions.connection":
    """Open a new database connection.

    Args:
        connection_string: Optional DSN. Defaults to ``settings.db_connection_string``.
    """
    return psycopg2.connect(connection_string or settings.db_connection_string)


def init_schema(conn: "psycopg2.extensions.connection") -> None:
    """Create all tables and indexes that do not exist yet."""
    with conn.cursor() as cursor:
        cursor.execute(SCHEMA_SQL)
    conn.commit()
    logger.info("Database schema is up to date")


def connection_scope() -> Iterator["psycopg2.extensions.connection"]:
    """Yield a connection for one request and close it afterwards."""
    conn = get_connection()
    try:
        yield conn
    finally:
        conn.close()
