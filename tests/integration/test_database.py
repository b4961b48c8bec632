"""Integration tests for database schema and models"""
import pytest
from sqlalchemy import inspect, text
from sqlalchemy.exc import IntegrityError

from counselboard.database import normalize_database_url

pytestmark = pytest.mark.integration


async def test_all_tables_exist(db_engine):
    """Verify the counseling tables are created at startup"""
    async with db_engine.connect() as conn:
        tables = await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names())

    for table in (
        "counseling_sessions",
        "counseling_session_participants",
        "counseling_follow_ups",
        "students",
    ):
        assert table in tables, f"Table {table} not found in database"


async def test_all_indexes_exist(db_engine):
    """Verify lookup indexes"""
    def index_names(sync_conn):
        inspector = inspect(sync_conn)
        names = set()
        for table in inspector.get_table_names():
            names.update(index["name"] for index in inspector.get_indexes(table))
        return names

    async with db_engine.connect() as conn:
        indexes = await conn.run_sync(index_names)

    expected_indexes = {
        "idx_sessions_date_entry",
        "idx_sessions_completed",
        "idx_sessions_topic",
        "idx_participants_student",
        "idx_students_class",
        "idx_follow_ups_session",
        "idx_follow_ups_status",
        "idx_follow_ups_date",
    }

    for index in expected_indexes:
        assert index in indexes, f"Index {index} not found in database"


async def test_foreign_keys_enabled(db_engine):
    async with db_engine.connect() as conn:
        result = await conn.execute(text("PRAGMA foreign_keys"))
        assert result.scalar() == 1


async def test_completed_requires_exit_time(db_engine):
    """The schema rejects a completed session without an exit time"""
    with pytest.raises(IntegrityError):
        async with db_engine.begin() as conn:
            await conn.execute(
                text(
                    """
                    INSERT INTO counseling_sessions (
                        id, counselor_id, session_type, participant_type, topic,
                        session_date, entry_time, session_mode, session_location,
                        follow_up_needed, completed, auto_completed, extension_granted
                    ) VALUES (
                        'broken', 'counselor-1', 'individual', 'student', 'Exam anxiety',
                        '2024-01-01', '10:00', 'in_person', 'Guidance office',
                        0, 1, 0, 0
                    )
                    """
                )
            )


async def test_participant_links_cascade(db_engine, lifecycle, session_data):
    session = await lifecycle.start_session(session_data(), ["S1"])

    async with db_engine.begin() as conn:
        await conn.execute(text("DELETE FROM counseling_sessions WHERE id = :id"), {"id": session.id})

    async with db_engine.connect() as conn:
        result = await conn.execute(
            text("SELECT COUNT(*) FROM counseling_session_participants WHERE session_id = :id"),
            {"id": session.id},
        )
        assert result.scalar() == 0


def test_normalize_database_url():
    assert normalize_database_url("sqlite:///./x.db") == "sqlite+aiosqlite:///./x.db"
    assert normalize_database_url("postgresql://u:p@h/db") == "postgresql+asyncpg://u:p@h/db"
    assert normalize_database_url("sqlite+aiosqlite:///./x.db") == "sqlite+aiosqlite:///./x.db"
