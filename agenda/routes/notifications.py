"""Notification center routes.

Each list is a projection of the current attendee records for the caller.
``/stream`` pushes the badge counts as server-sent events whenever the
live sync bridge recomputes them.
"""
import asyncio
from contextlib import aclosing
from typing import AsyncIterator

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse

from agenda.participation.identity import Identity
from agenda.realtime.bridge import LiveSyncBridge
from agenda.routes.deps import get_bridge, get_identity, get_store
from agenda.schemas import EntryRead, SentRead, SummaryRead
from agenda.store.adapter import ParticipationStore
from agenda.views.aggregators import (
    history,
    invitations_to_me,
    notification_summary,
    requests_to_approve,
    sent_by_me,
)
from agenda.views.snapshot import load_snapshot

router = APIRouter(prefix="/notifications", tags=["notifications"])

KEEPALIVE_SECONDS = 15.0


async def _project(store: ParticipationStore, identity: Identity, projection):
    snapshot = await load_snapshot(store)
    return projection(identity.id, snapshot.records, snapshot.appointments, snapshot.profiles)


@router.get("/invitations", response_model=list[EntryRead])
async def my_invitations(
    identity: Identity = Depends(get_identity),
    store: ParticipationStore = Depends(get_store),
):
    """Pending invitations addressed to the caller."""
    entries = await _project(store, identity, invitations_to_me)
    return [EntryRead.model_validate(entry) for entry in entries]


@router.get("/requests", response_model=list[EntryRead])
async def my_requests_to_approve(
    identity: Identity = Depends(get_identity),
    store: ParticipationStore = Depends(get_store),
):
    """Join requests waiting on the caller's approval."""
    entries = await _project(store, identity, requests_to_approve)
    return [EntryRead.model_validate(entry) for entry in entries]


@router.get("/sent", response_model=SentRead)
async def my_sent_items(
    identity: Identity = Depends(get_identity),
    store: ParticipationStore = Depends(get_store),
):
    """The caller's open requests and pending invitations they sent."""
    return SentRead.model_validate(await _project(store, identity, sent_by_me))


@router.get("/history", response_model=list[EntryRead])
async def my_history(
    identity: Identity = Depends(get_identity),
    store: ParticipationStore = Depends(get_store),
):
    """Accepted and declined items involving the caller, newest first."""
    entries = await _project(store, identity, history)
    return [EntryRead.model_validate(entry) for entry in entries]


@router.get("/summary", response_model=SummaryRead)
async def my_summary(
    identity: Identity = Depends(get_identity),
    store: ParticipationStore = Depends(get_store),
):
    return SummaryRead.model_validate(await _project(store, identity, notification_summary))


def _sse(event: str, data: str) -> str:
    return f"event: {event}\ndata: {data}\n\n"


async def summary_events(
    bridge: LiveSyncBridge, identity: Identity, keepalive: float = KEEPALIVE_SECONDS
) -> AsyncIterator[str]:
    """Yield the caller's badge counts now and after every change.

    The live view stays registered until the consumer stops iterating.
    """
    view = bridge.live_view("summary-stream", identity.id, notification_summary)
    async with bridge.watch(view):
        version = view.version
        yield _sse("summary", SummaryRead.model_validate(view.result).model_dump_json())
        while True:
            try:
                result = await view.wait_for_version(version + 1, timeout=keepalive)
            except asyncio.TimeoutError:
                yield ": keep-alive\n\n"
                continue
            version = view.version
            yield _sse("summary", SummaryRead.model_validate(result).model_dump_json())


@router.get("/stream")
async def stream_summary(
    request: Request,
    identity: Identity = Depends(get_identity),
    bridge: LiveSyncBridge = Depends(get_bridge),
):
    """Server-sent events carrying the notification summary."""

    async def events():
        async with aclosing(summary_events(bridge, identity)) as frames:
            async for frame in frames:
                if await request.is_disconnected():
                    break
                yield frame

    return StreamingResponse(
        events(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache"},
    )
