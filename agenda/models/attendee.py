"""Attendee model for tracking appointment participation.

This module defines the Attendee model, one row per (appointment, user) pair
that is invited to, has asked to join, or has resolved its participation in
an appointment.
"""

from datetime import UTC, datetime
from enum import Enum
from uuid import UUID, uuid4

from sqlmodel import Field, SQLModel


class AttendeeStatus(str, Enum):
    """Participation status stored on an attendee record."""
    pending = "pending"  # invited by the organizer, awaiting the user
    accepted = "accepted"
    declined = "declined"
    requested = "requested"  # asked by the user, awaiting the organizer


RESOLVED_STATUSES = frozenset({AttendeeStatus.accepted, AttendeeStatus.declined})


class Attendee(SQLModel, table=True):
    """A user's participation in an appointment.

    At most one record exists per (appointment_id, user_id). The database
    does not enforce this; the store adapter checks before every insert.
    There is no ``ON DELETE`` action on ``appointment_id``: deleting an
    appointment requires deleting its attendee records first.

    Attributes:
        id: Unique identifier (UUID).
        appointment_id: Foreign key to the owning Appointment.
        user_id: The participant.
        status: One of "pending", "accepted", "declined" or "requested".
        created_at: When the invitation or request was made.
        updated_at: Last status change. Orders the resolution history.
    """
    __tablename__ = "appointment_attendees"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    appointment_id: UUID = Field(foreign_key="appointments.id", index=True)
    user_id: UUID = Field(index=True)
    status: AttendeeStatus = Field(default=AttendeeStatus.pending)
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
