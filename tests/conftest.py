"""Shared test fixtures."""

import datetime as dt

import pytest
from httpx import ASGITransport, AsyncClient

from agenda.core.database import build_engine, build_session_factory, create_db_and_tables
from agenda.main import app
from agenda.models import Appointment, Location, Profile
from agenda.participation.identity import Identity
from agenda.participation.service import ParticipationService
from agenda.realtime.bridge import LiveSyncBridge
from agenda.routes.deps import get_bridge, get_store
from agenda.store.adapter import ParticipationStore
from agenda.store.base import Entity
from agenda.store.feed import ChangeFeed
from agenda.store.sql import SQLRecordStore

MEETING_DAY = dt.date(2025, 3, 10)


def identity(profile: Profile) -> Identity:
    """The acting identity of a seeded profile."""
    return Identity(id=profile.id, role=profile.role)


def headers(profile: Profile) -> dict[str, str]:
    return {"X-User-Id": str(profile.id)}


@pytest.fixture(name="engine")
async def engine_fixture(tmp_path):
    """Create a throwaway SQLite database for testing.

    A file rather than an in-memory database: live views read on their own
    connections while the service writes.
    """
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'agenda.db'}")
    await create_db_and_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture(name="feed")
def feed_fixture() -> ChangeFeed:
    return ChangeFeed(queue_size=64)


@pytest.fixture(name="records")
def records_fixture(engine, feed: ChangeFeed) -> SQLRecordStore:
    return SQLRecordStore(build_session_factory(engine), feed)


@pytest.fixture(name="store")
def store_fixture(records: SQLRecordStore) -> ParticipationStore:
    return ParticipationStore(records)


@pytest.fixture(name="service")
def service_fixture(store: ParticipationStore) -> ParticipationService:
    return ParticipationService(store)


@pytest.fixture(name="bridge")
async def bridge_fixture(store: ParticipationStore):
    bridge = LiveSyncBridge(store)
    yield bridge
    await bridge.close()


@pytest.fixture(name="client")
async def client_fixture(store: ParticipationStore, bridge: LiveSyncBridge):
    """Create a test client wired to the test store."""
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_bridge] = lambda: bridge
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


async def _profile(store: ParticipationStore, full_name: str, role: str = "Normal") -> Profile:
    return await store.records.insert(Entity.profile, Profile(full_name=full_name, role=role))


@pytest.fixture(name="organizer")
async def organizer_fixture(store: ParticipationStore) -> Profile:
    return await _profile(store, "Olivia Organizer")


@pytest.fixture(name="user")
async def user_fixture(store: ParticipationStore) -> Profile:
    return await _profile(store, "Ulisses User")


@pytest.fixture(name="other_user")
async def other_user_fixture(store: ParticipationStore) -> Profile:
    return await _profile(store, "Vera Viewer")


@pytest.fixture(name="admin")
async def admin_fixture(store: ParticipationStore) -> Profile:
    return await _profile(store, "Ana Admin", role="Administrador")


@pytest.fixture(name="appointment")
async def appointment_fixture(store: ParticipationStore, organizer: Profile) -> Appointment:
    """An open appointment organized by ``organizer``."""
    return await store.insert_appointment(
        Appointment(
            title="Sprint planning",
            date=MEETING_DAY,
            start_time="10:00",
            end_time="11:00",
            created_by=organizer.id,
        )
    )


@pytest.fixture(name="restricted_appointment")
async def restricted_appointment_fixture(
    store: ParticipationStore, organizer: Profile
) -> Appointment:
    """An organizer-only appointment."""
    return await store.insert_appointment(
        Appointment(
            title="Board meeting",
            date=MEETING_DAY,
            start_time="14:00",
            end_time="15:00",
            created_by=organizer.id,
            organizer_only=True,
        )
    )


@pytest.fixture(name="room")
async def room_fixture(store: ParticipationStore) -> Location:
    """A location with conflict control."""
    return await store.records.insert(
        Entity.location, Location(name="Sala 1", has_conflict_control=True)
    )
