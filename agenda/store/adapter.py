"""Typed access to appointments and attendee records.

``ParticipationStore`` wraps a generic ``RecordStore`` with the handful of
typed reads and writes the participation core needs, and owns the one data
invariant the backend does not enforce: at most one attendee record per
(appointment, user) pair.
"""

import logging
from typing import Any, Iterable, Mapping
from uuid import UUID

from agenda.core.errors import DuplicateParticipationError, NotFoundError
from agenda.models import Appointment, Attendee, AttendeeStatus, Location, Profile
from agenda.store.base import Entity, RecordStore

logger = logging.getLogger(__name__)


class ParticipationStore:
    """Appointment/attendee adapter over a ``RecordStore``."""

    def __init__(self, records: RecordStore):
        self.records = records

    # Appointments

    async def get_appointment(self, appointment_id: UUID) -> Appointment:
        found = await self.records.find(Entity.appointment, {"id": appointment_id})
        if not found:
            raise NotFoundError(f"Appointment {appointment_id} not found")
        return found[0]

    async def list_appointments(self, **where: Any) -> list[Appointment]:
        return await self.records.find(Entity.appointment, where)

    async def insert_appointment(self, appointment: Appointment) -> Appointment:
        return await self.records.insert(Entity.appointment, appointment)

    async def update_appointment(
        self, appointment_id: UUID, patch: Mapping[str, Any]
    ) -> Appointment:
        return await self.records.update(Entity.appointment, appointment_id, patch)

    async def delete_appointment(self, appointment_id: UUID) -> int:
        """Delete an appointment and every attendee record that references it.

        Attendee records go first. If the second call fails the appointment
        survives without attendees, which is visible and retryable; the
        reverse order would leave orphaned records.
        """
        removed = await self.records.delete(Entity.attendee, {"appointment_id": appointment_id})
        await self.records.delete(Entity.appointment, {"id": appointment_id})
        return removed

    # Attendee records

    async def find_attendees(self, **where: Any) -> list[Attendee]:
        return await self.records.find(Entity.attendee, where)

    async def get_attendee(self, appointment_id: UUID, user_id: UUID) -> Attendee | None:
        found = await self.find_attendees(appointment_id=appointment_id, user_id=user_id)
        if len(found) > 1:
            # Written around the adapter (e.g. concurrent inserts); report the oldest
            logger.warning(
                f"{len(found)} attendee records for user {user_id} on appointment "
                f"{appointment_id}, using the oldest"
            )
            found.sort(key=lambda record: (record.created_at, str(record.id)))
        return found[0] if found else None

    async def insert_attendee(
        self, appointment_id: UUID, user_id: UUID, status: AttendeeStatus
    ) -> Attendee:
        existing = await self.get_attendee(appointment_id, user_id)
        if existing is not None:
            raise DuplicateParticipationError(
                f"User {user_id} already has a {existing.status.value} record "
                f"for appointment {appointment_id}"
            )
        record = Attendee(appointment_id=appointment_id, user_id=user_id, status=status)
        return await self.records.insert(Entity.attendee, record)

    async def insert_attendees(
        self, appointment_id: UUID, user_ids: Iterable[UUID], status: AttendeeStatus
    ) -> list[Attendee]:
        return [
            await self.insert_attendee(appointment_id, user_id, status)
            for user_id in user_ids
        ]

    async def set_attendee_status(self, attendee_id: UUID, status: AttendeeStatus) -> Attendee:
        return await self.records.update(Entity.attendee, attendee_id, {"status": status})

    async def delete_attendee(self, attendee_id: UUID) -> int:
        return await self.records.delete(Entity.attendee, {"id": attendee_id})

    async def delete_attendees(self, appointment_id: UUID, user_ids: Iterable[UUID]) -> int:
        user_ids = list(user_ids)
        if not user_ids:
            return 0
        return await self.records.delete(
            Entity.attendee, {"appointment_id": appointment_id, "user_id": user_ids}
        )

    # Read-only join sources

    async def list_profiles(self) -> list[Profile]:
        return await self.records.find(Entity.profile)

    async def get_profile(self, user_id: UUID) -> Profile | None:
        found = await self.records.find(Entity.profile, {"id": user_id})
        return found[0] if found else None

    async def get_location(self, location_id: UUID) -> Location:
        found = await self.records.find(Entity.location, {"id": location_id})
        if not found:
            raise NotFoundError(f"Location {location_id} not found")
        return found[0]

    def subscribe(self, entity: Entity, **where: Any):
        return self.records.subscribe(entity, where)
