"""Appointment model for scheduled team events.

This module defines the Appointment model, the central entity users create,
invite colleagues to and request to join. The organizer of an appointment is
the user in ``created_by``; organizers never hold an attendee record of their
own.
"""

import datetime as dt
from uuid import UUID, uuid4

from sqlmodel import Field, SQLModel


class Appointment(SQLModel, table=True):
    """A scheduled team appointment.

    Times are wall-clock ``"HH:MM"`` strings on ``date``; an appointment that
    ends after midnight simply has an ``end_time`` earlier than its
    ``start_time``.

    Attributes:
        id: Unique identifier (UUID).
        title: Display title.
        date: Calendar day the appointment takes place on.
        start_time: Start as ``"HH:MM"``, if known.
        end_time: End as ``"HH:MM"``. Derived on save when missing.
        type: Free-form appointment type key (e.g. "meeting", "planning").
        description: Optional longer description.
        created_by: User id of the organizer.
        location_id: Named location, if any. Cleared when the location is
            deleted.
        location_text: Free-text location. Mutually exclusive with
            ``location_id``.
        organizer_only: If True, only invited users may take part and
            unsolicited participation requests are rejected.
        created_at: When the appointment was created.
    """
    __tablename__ = "appointments"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    title: str
    date: dt.date = Field(index=True)
    start_time: str | None = None
    end_time: str | None = None
    type: str = Field(default="meeting")
    description: str | None = None
    created_by: UUID = Field(index=True)
    location_id: UUID | None = Field(
        default=None, foreign_key="locations.id", ondelete="SET NULL", index=True
    )
    location_text: str | None = None
    organizer_only: bool = Field(default=False)
    created_at: dt.datetime = Field(default_factory=lambda: dt.datetime.now(dt.UTC))
