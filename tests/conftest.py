"""Shared fixtures: a throwaway SQLite database per test and the services built on it"""
from datetime import date, datetime

import pytest
from httpx import ASGITransport, AsyncClient

from counselboard.database import build_engine, build_session_factory, init_db
from counselboard.models.student import Student
from counselboard.repository.follow_up_store import FollowUpStore
from counselboard.repository.session_store import SessionStore
from counselboard.services.analytics import AnalyticsAggregator
from counselboard.services.auto_complete import AutoCompleteSweeper
from counselboard.services.follow_ups import FollowUpTracker
from counselboard.services.lifecycle import LifecycleController
from counselboard.services.session_query import FilteredQueryEngine

TEST_STUDENTS = [
    {"id": "S1", "name": "Alice Moreno", "class_name": "10-A"},
    {"id": "S2", "name": "Ben Carter", "class_name": "10-A"},
    {"id": "S3", "name": "Chloe Park", "class_name": "11-B"},
    {"id": "S4", "name": "Dev Patel", "class_name": None},
]


@pytest.fixture
async def db_engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'counselboard_test.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return build_session_factory(db_engine)


@pytest.fixture
async def students(session_factory):
    """Directory of four students: two in 10-A, one in 11-B, one without a class"""
    async with session_factory() as db:
        async with db.begin():
            db.add_all([Student(**student) for student in TEST_STUDENTS])
    return TEST_STUDENTS


@pytest.fixture
def store(session_factory):
    return SessionStore(session_factory)


@pytest.fixture
def lifecycle(store):
    return LifecycleController(store)


@pytest.fixture
def sweeper(store):
    return AutoCompleteSweeper(store, clock=lambda: datetime(2024, 1, 1, 11, 5))


@pytest.fixture
def analytics(session_factory):
    return AnalyticsAggregator(session_factory)


@pytest.fixture
def query_engine(session_factory):
    return FilteredQueryEngine(session_factory)


@pytest.fixture
def follow_up_store(session_factory):
    return FollowUpStore(session_factory)


@pytest.fixture
def tracker(follow_up_store, store):
    """Follow-up tracker whose today is 2024-01-10"""
    return FollowUpTracker(follow_up_store, store, today=lambda: date(2024, 1, 10))


@pytest.fixture
def session_data():
    """Factory for valid start-session fields"""
    def _make(**overrides):
        data = {
            "counselor_id": "counselor-1",
            "session_type": "individual",
            "session_date": "2024-01-01",
            "entry_time": "10:00",
            "topic": "Exam anxiety",
            "participant_type": "student",
            "session_mode": "in_person",
            "session_location": "Guidance office",
        }
        data.update(overrides)
        return data

    return _make


@pytest.fixture
async def client(session_factory, students):
    """HTTP client against the app, wired to the test database (lifespan not run)"""
    from counselboard.api.dependencies import install_services
    from counselboard.database import get_db
    from main import app

    async def _get_test_db():
        async with session_factory() as db:
            yield db

    install_services(app, session_factory)
    app.dependency_overrides[get_db] = _get_test_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
