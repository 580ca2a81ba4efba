"""The acting user, as supplied by the identity provider."""

from dataclasses import dataclass
from uuid import UUID

from agenda.core.config import settings


@dataclass(frozen=True)
class Identity:
    """Who is performing an operation.

    Attributes:
        id: User id, matching ``Profile.id`` and ``Attendee.user_id``.
        role: Profile role name; administrators may edit and delete any
            appointment.
    """
    id: UUID
    role: str = "Normal"

    @property
    def is_admin(self) -> bool:
        return self.role == settings.admin_role
