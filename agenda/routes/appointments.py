"""Appointment routes: CRUD, roster and bulk attendee edit."""
import datetime as dt
from uuid import UUID

from fastapi import APIRouter, Depends

from agenda.participation.identity import Identity
from agenda.participation.service import ParticipationService
from agenda.routes.deps import get_identity, get_service, get_store
from agenda.schemas import (
    AppointmentCreate,
    AppointmentRead,
    AppointmentUpdate,
    AttendeeSelection,
    ResyncRead,
    RosterRead,
)
from agenda.store.adapter import ParticipationStore
from agenda.views.aggregators import appointment_roster

router = APIRouter(prefix="/appointments", tags=["appointments"])


@router.get("", response_model=list[AppointmentRead])
async def list_appointments(
    date: dt.date | None = None,
    location_id: UUID | None = None,
    identity: Identity = Depends(get_identity),
    store: ParticipationStore = Depends(get_store),
):
    """List appointments in schedule order, optionally for one day or location."""
    where = {}
    if date is not None:
        where["date"] = date
    if location_id is not None:
        where["location_id"] = location_id
    appointments = await store.list_appointments(**where)
    return sorted(appointments, key=lambda a: (a.date, a.start_time or "", str(a.id)))


@router.post("", response_model=AppointmentRead, status_code=201)
async def create_appointment(
    draft: AppointmentCreate,
    allow_conflict: bool = False,
    identity: Identity = Depends(get_identity),
    service: ParticipationService = Depends(get_service),
):
    """
    Create an appointment organized by the caller.

    ``attendee_ids`` are invited as pending. At a conflict-controlled location
    an overlapping booking is rejected unless ``allow_conflict`` is set.
    """
    return await service.create_appointment(identity, draft, allow_conflict=allow_conflict)


@router.get("/{appointment_id}", response_model=RosterRead)
async def get_appointment(
    appointment_id: UUID,
    identity: Identity = Depends(get_identity),
    store: ParticipationStore = Depends(get_store),
):
    """Appointment with its attendees as the caller sees it."""
    appointment = await store.get_appointment(appointment_id)
    records = await store.find_attendees(appointment_id=appointment_id)
    profiles = await store.list_profiles()
    roster = appointment_roster(identity.id, appointment, records, profiles)
    return RosterRead.model_validate(roster)


@router.patch("/{appointment_id}", response_model=AppointmentRead)
async def update_appointment(
    appointment_id: UUID,
    changes: AppointmentUpdate,
    allow_conflict: bool = False,
    identity: Identity = Depends(get_identity),
    service: ParticipationService = Depends(get_service),
):
    """Edit an appointment. Passing ``attendee_ids`` also resyncs its attendees."""
    return await service.update_appointment(
        identity, appointment_id, changes, allow_conflict=allow_conflict
    )


@router.delete("/{appointment_id}")
async def delete_appointment(
    appointment_id: UUID,
    identity: Identity = Depends(get_identity),
    service: ParticipationService = Depends(get_service),
):
    """Delete an appointment together with all of its attendee records."""
    removed = await service.delete_appointment(identity, appointment_id)
    return {"status": "deleted", "id": str(appointment_id), "attendees_removed": removed}


@router.put("/{appointment_id}/attendees", response_model=ResyncRead)
async def resync_attendees(
    appointment_id: UUID,
    selection: AttendeeSelection,
    identity: Identity = Depends(get_identity),
    service: ParticipationService = Depends(get_service),
):
    """Replace the attendee selection; unchanged attendees keep their status."""
    result = await service.resync_attendees(identity, appointment_id, selection.user_ids)
    return ResyncRead(added=result.added, removed=result.removed)
