"""Error taxonomy for participation and appointment operations.

Every error raised by the store adapter, the state machine and the view
aggregators derives from ``AgendaError`` so callers can surface them in one
place. The HTTP layer maps each family to a status code in ``agenda.main``.
"""


class AgendaError(Exception):
    """Base class for all domain errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(AgendaError):
    """Malformed input, e.g. a missing or unparsable time."""


class LocationConflictError(ValidationError):
    """The appointment overlaps another one booked at a conflict-controlled location."""

    def __init__(self, message: str, *, conflicting_title: str, start: str, end: str):
        super().__init__(message)
        self.conflicting_title = conflicting_title
        self.start = start
        self.end = end


class UnauthorizedTransitionError(AgendaError):
    """The acting user may not perform the requested transition."""


class IllegalTransitionError(UnauthorizedTransitionError):
    """The participation record is not in a state the action can start from."""


class RestrictedAppointmentError(UnauthorizedTransitionError):
    """Unsolicited participation requests are blocked on organizer-only appointments."""


class DuplicateParticipationError(AgendaError):
    """A second record for the same (appointment, user) pair was attempted."""


class NotFoundError(AgendaError):
    """The referenced appointment or participation record does not exist."""


class StoreError(AgendaError):
    """The underlying record store call failed or returned an error payload."""
