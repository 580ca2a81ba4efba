"""User-facing projections of participation records.

Every function here is a pure, deterministic projection of (viewer id,
attendee records, appointments, profiles): no I/O, no mutation, and the same
inputs in any order always yield the same list in the same order.

Records are inner-joined with their appointment; a record whose appointment
is missing (e.g. a late write racing an appointment deletion) is skipped.
"""

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Iterable
from uuid import UUID

from agenda.models import RESOLVED_STATUSES, Appointment, Attendee, AttendeeStatus, Profile
from agenda.participation.machine import ParticipationState, derive_state, is_organizer


@dataclass(frozen=True)
class ParticipationEntry:
    """An attendee record joined with its appointment and the people involved."""
    record: Attendee
    appointment: Appointment
    participant: Profile | None
    organizer: Profile | None
    i_am_organizer: bool | None = None

    @property
    def counterpart(self) -> Profile | None:
        """The other party from the viewer's point of view (history phrasing)."""
        return self.participant if self.i_am_organizer else self.organizer


@dataclass(frozen=True)
class SentItems:
    requests: list[ParticipationEntry]
    invitations: list[ParticipationEntry]


@dataclass(frozen=True)
class Roster:
    appointment: Appointment
    organizer: Profile | None
    viewer_state: ParticipationState
    requests: list[ParticipationEntry]
    attendees: list[ParticipationEntry]


@dataclass(frozen=True)
class NotificationSummary:
    invitations: int
    requests_to_approve: int
    outgoing_requests: int


def _utc(value: datetime) -> datetime:
    # Rows read back from SQLite come without tzinfo
    return value if value.tzinfo else value.replace(tzinfo=UTC)


def _schedule_key(entry: ParticipationEntry):
    return (
        entry.appointment.date,
        entry.appointment.start_time or "",
        _utc(entry.record.created_at),
        str(entry.record.id),
    )


def _resolution_key(entry: ParticipationEntry):
    # Most recent resolution first
    return (-_utc(entry.record.updated_at).timestamp(), str(entry.record.id))


def _join(
    records: Iterable[Attendee],
    appointments: Iterable[Appointment],
    profiles: Iterable[Profile],
    keep,
    viewer_id: UUID | None = None,
) -> list[ParticipationEntry]:
    appointments_by_id = {appointment.id: appointment for appointment in appointments}
    profiles_by_id = {profile.id: profile for profile in profiles}
    entries = []
    for record in records:
        appointment = appointments_by_id.get(record.appointment_id)
        if appointment is None or not keep(record, appointment):
            continue
        entries.append(
            ParticipationEntry(
                record=record,
                appointment=appointment,
                participant=profiles_by_id.get(record.user_id),
                organizer=profiles_by_id.get(appointment.created_by),
                i_am_organizer=(
                    is_organizer(appointment, viewer_id) if viewer_id is not None else None
                ),
            )
        )
    return entries


def invitations_to_me(
    user_id: UUID,
    records: Iterable[Attendee],
    appointments: Iterable[Appointment],
    profiles: Iterable[Profile],
) -> list[ParticipationEntry]:
    """Pending invitations addressed to ``user_id``."""
    entries = _join(
        records,
        appointments,
        profiles,
        lambda record, _: record.user_id == user_id and record.status == AttendeeStatus.pending,
    )
    return sorted(entries, key=_schedule_key)


def requests_to_approve(
    user_id: UUID,
    records: Iterable[Attendee],
    appointments: Iterable[Appointment],
    profiles: Iterable[Profile],
) -> list[ParticipationEntry]:
    """Open join requests on appointments ``user_id`` organizes."""
    entries = _join(
        records,
        appointments,
        profiles,
        lambda record, appointment: (
            record.status == AttendeeStatus.requested and is_organizer(appointment, user_id)
        ),
    )
    return sorted(entries, key=_schedule_key)


def sent_by_me(
    user_id: UUID,
    records: Iterable[Attendee],
    appointments: Iterable[Appointment],
    profiles: Iterable[Profile],
) -> SentItems:
    """Outstanding items ``user_id`` is waiting on.

    ``requests`` are the user's own open join requests; ``invitations`` are
    pending invitations on appointments the user organizes.
    """
    records = list(records)
    appointments = list(appointments)
    profiles = list(profiles)
    requests = _join(
        records,
        appointments,
        profiles,
        lambda record, _: record.user_id == user_id and record.status == AttendeeStatus.requested,
    )
    invitations = _join(
        records,
        appointments,
        profiles,
        lambda record, appointment: (
            record.status == AttendeeStatus.pending and is_organizer(appointment, user_id)
        ),
    )
    return SentItems(
        requests=sorted(requests, key=_schedule_key),
        invitations=sorted(invitations, key=_schedule_key),
    )


def history(
    user_id: UUID,
    records: Iterable[Attendee],
    appointments: Iterable[Appointment],
    profiles: Iterable[Profile],
) -> list[ParticipationEntry]:
    """Resolved (accepted/declined) records involving ``user_id``.

    Each entry's ``i_am_organizer`` tells whether the viewer took part as the
    organizer or as the participant.
    """
    entries = _join(
        records,
        appointments,
        profiles,
        lambda record, appointment: (
            record.status in RESOLVED_STATUSES
            and (record.user_id == user_id or is_organizer(appointment, user_id))
        ),
        viewer_id=user_id,
    )
    return sorted(entries, key=_resolution_key)


def notification_summary(
    user_id: UUID,
    records: Iterable[Attendee],
    appointments: Iterable[Appointment],
    profiles: Iterable[Profile],
) -> NotificationSummary:
    """Badge counts for the notification center."""
    records = list(records)
    appointments = list(appointments)
    profiles = list(profiles)
    sent = sent_by_me(user_id, records, appointments, profiles)
    return NotificationSummary(
        invitations=len(invitations_to_me(user_id, records, appointments, profiles)),
        requests_to_approve=len(requests_to_approve(user_id, records, appointments, profiles)),
        outgoing_requests=len(sent.requests),
    )


def appointment_roster(
    viewer_id: UUID,
    appointment: Appointment,
    records: Iterable[Attendee],
    profiles: Iterable[Profile],
) -> Roster:
    """Attendee list of one appointment as ``viewer_id`` sees it.

    Open join requests are only listed for the organizer.
    """
    records = [record for record in records if record.appointment_id == appointment.id]
    profiles = list(profiles)
    entries = sorted(_join(records, [appointment], profiles, lambda *_: True), key=_schedule_key)
    viewer_record = next((record for record in records if record.user_id == viewer_id), None)
    organizer_viewing = is_organizer(appointment, viewer_id)
    return Roster(
        appointment=appointment,
        organizer=next((p for p in profiles if p.id == appointment.created_by), None),
        viewer_state=derive_state(appointment, viewer_id, viewer_record),
        requests=[
            entry for entry in entries
            if organizer_viewing and entry.record.status == AttendeeStatus.requested
        ],
        attendees=[entry for entry in entries if entry.record.status != AttendeeStatus.requested],
    )
