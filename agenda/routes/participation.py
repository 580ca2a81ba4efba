"""Participation routes: invitations, requests and responses."""
from uuid import UUID

from fastapi import APIRouter, Depends

from agenda.participation.identity import Identity
from agenda.participation.service import ParticipationService, TransitionResult
from agenda.routes.deps import get_identity, get_service
from agenda.schemas import AttendeeRead, InvitationCreate, TransitionRead

router = APIRouter(prefix="/appointments/{appointment_id}", tags=["participation"])


def to_read(result: TransitionResult) -> TransitionRead:
    """Serialize a transition outcome; ``changed`` is false for no-ops."""
    return TransitionRead(
        action=result.plan.action.value,
        source=result.plan.source,
        changed=result.changed,
        record=AttendeeRead.model_validate(result.record) if result.record else None,
    )


@router.post("/invitations", response_model=TransitionRead)
async def invite(
    appointment_id: UUID,
    invitation: InvitationCreate,
    identity: Identity = Depends(get_identity),
    service: ParticipationService = Depends(get_service),
):
    """Organizer invites a user (re-inviting a declined user reopens the invitation)."""
    return to_read(await service.invite(identity, appointment_id, invitation.user_id))


@router.post("/requests", response_model=TransitionRead)
async def request_to_join(
    appointment_id: UUID,
    identity: Identity = Depends(get_identity),
    service: ParticipationService = Depends(get_service),
):
    """Ask the organizer to join an appointment."""
    return to_read(await service.request(identity, appointment_id))


@router.post("/accept", response_model=TransitionRead)
async def accept(
    appointment_id: UUID,
    identity: Identity = Depends(get_identity),
    service: ParticipationService = Depends(get_service),
):
    return to_read(await service.accept(identity, appointment_id))


@router.post("/decline", response_model=TransitionRead)
async def decline(
    appointment_id: UUID,
    identity: Identity = Depends(get_identity),
    service: ParticipationService = Depends(get_service),
):
    return to_read(await service.decline(identity, appointment_id))


@router.post("/requests/{user_id}/approve", response_model=TransitionRead)
async def approve(
    appointment_id: UUID,
    user_id: UUID,
    identity: Identity = Depends(get_identity),
    service: ParticipationService = Depends(get_service),
):
    return to_read(await service.approve(identity, appointment_id, user_id))


@router.post("/requests/{user_id}/deny", response_model=TransitionRead)
async def deny(
    appointment_id: UUID,
    user_id: UUID,
    identity: Identity = Depends(get_identity),
    service: ParticipationService = Depends(get_service),
):
    return to_read(await service.deny(identity, appointment_id, user_id))


@router.delete("/attendees/{user_id}", response_model=TransitionRead)
async def cancel(
    appointment_id: UUID,
    user_id: UUID,
    identity: Identity = Depends(get_identity),
    service: ParticipationService = Depends(get_service),
):
    """
    Withdraw an open item.

    The organizer withdraws a pending invitation; a requester withdraws their
    own join request by passing their own id.
    """
    return to_read(await service.cancel(identity, appointment_id, user_id))
