from agenda.models.appointment import Appointment
from agenda.models.attendee import RESOLVED_STATUSES, Attendee, AttendeeStatus
from agenda.models.location import Location
from agenda.models.profile import Profile

__all__ = [
    "Appointment",
    "Attendee",
    "AttendeeStatus",
    "Location",
    "Profile",
    "RESOLVED_STATUSES",
]
