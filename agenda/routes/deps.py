"""Shared dependencies for the HTTP routes."""
from uuid import UUID

from fastapi import Depends, Header, HTTPException, Request

from agenda.core.config import settings
from agenda.core.database import session_factory
from agenda.participation.identity import Identity
from agenda.participation.service import ParticipationService
from agenda.realtime.bridge import LiveSyncBridge
from agenda.store.adapter import ParticipationStore
from agenda.store.feed import ChangeFeed
from agenda.store.sql import SQLRecordStore

_store = ParticipationStore(SQLRecordStore(session_factory, ChangeFeed(settings.feed_queue_size)))


def get_store() -> ParticipationStore:
    """The process-wide participation store."""
    return _store


def get_service(store: ParticipationStore = Depends(get_store)) -> ParticipationService:
    return ParticipationService(store)


def get_bridge(request: Request) -> LiveSyncBridge:
    """The live sync bridge started by the application lifespan."""
    return request.app.state.bridge


async def get_identity(
    x_user_id: UUID | None = Header(default=None),
    store: ParticipationStore = Depends(get_store),
) -> Identity:
    """
    Resolve the acting user from the ``X-User-Id`` header.

    Authentication happens upstream; this only looks up the caller's role.
    Users without a profile act with the default role.
    """
    if x_user_id is None:
        raise HTTPException(status_code=401, detail="X-User-Id header is required")
    profile = await store.get_profile(x_user_id)
    if profile is None:
        return Identity(id=x_user_id)
    return Identity(id=x_user_id, role=profile.role)
