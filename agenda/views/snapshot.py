"""Load the record sets the aggregators project from."""

from dataclasses import dataclass

from agenda.models import Appointment, Attendee, Profile
from agenda.store.adapter import ParticipationStore


@dataclass(frozen=True)
class Snapshot:
    records: list[Attendee]
    appointments: list[Appointment]
    profiles: list[Profile]


async def load_snapshot(store: ParticipationStore) -> Snapshot:
    """Fetch the full attendee, appointment and profile sets."""
    records = await store.find_attendees()
    appointments = await store.list_appointments()
    profiles = await store.list_profiles()
    return Snapshot(records=records, appointments=appointments, profiles=profiles)
