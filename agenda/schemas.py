"""Request and response models for the HTTP surface and the service layer."""

import datetime as dt
from uuid import UUID

from sqlmodel import Field, SQLModel

from agenda.models import AttendeeStatus
from agenda.participation.machine import ParticipationState


class AppointmentFields(SQLModel):
    title: str = Field(min_length=1)
    date: dt.date
    start_time: str | None = None
    end_time: str | None = None
    type: str = "meeting"
    description: str | None = None
    location_id: UUID | None = None
    location_text: str | None = None
    organizer_only: bool = False


class AppointmentCreate(AppointmentFields):
    """A new appointment. ``duration_minutes`` stands in for a missing end time."""
    duration_minutes: int | None = None
    attendee_ids: list[UUID] = Field(default_factory=list)


class AppointmentUpdate(SQLModel):
    """Partial edit. Only fields that are set are applied.

    ``attendee_ids``, when present, replaces the attendee selection (bulk
    resync).
    """
    title: str | None = Field(default=None, min_length=1)
    date: dt.date | None = None
    start_time: str | None = None
    end_time: str | None = None
    duration_minutes: int | None = None
    type: str | None = None
    description: str | None = None
    location_id: UUID | None = None
    location_text: str | None = None
    organizer_only: bool | None = None
    attendee_ids: list[UUID] | None = None


class AppointmentRead(AppointmentFields):
    id: UUID
    created_by: UUID
    created_at: dt.datetime


class AttendeeRead(SQLModel):
    id: UUID
    appointment_id: UUID
    user_id: UUID
    status: AttendeeStatus
    created_at: dt.datetime
    updated_at: dt.datetime


class ProfileSummary(SQLModel):
    id: UUID
    full_name: str
    avatar: str | None = None
    role: str = "Normal"


class InvitationCreate(SQLModel):
    user_id: UUID


class AttendeeSelection(SQLModel):
    user_ids: list[UUID]


class ResyncRead(SQLModel):
    added: list[UUID]
    removed: list[UUID]


class TransitionRead(SQLModel):
    action: str
    source: ParticipationState
    changed: bool
    record: AttendeeRead | None = None


class EntryRead(SQLModel):
    """One participation record joined with its appointment and people."""
    record: AttendeeRead
    appointment: AppointmentRead
    participant: ProfileSummary | None = None
    organizer: ProfileSummary | None = None
    i_am_organizer: bool | None = None


class SentRead(SQLModel):
    requests: list[EntryRead]
    invitations: list[EntryRead]


class RosterRead(SQLModel):
    appointment: AppointmentRead
    organizer: ProfileSummary | None = None
    viewer_state: ParticipationState
    requests: list[EntryRead]
    attendees: list[EntryRead]


class SummaryRead(SQLModel):
    invitations: int
    requests_to_approve: int
    outgoing_requests: int
