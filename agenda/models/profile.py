"""Profile model for team members.

Profiles are owned by the identity provider and are read-only to the
participation core; they are only joined in to display who invited or asked
whom.
"""

from uuid import UUID, uuid4

from sqlmodel import Field, SQLModel


class Profile(SQLModel, table=True):
    """A team member's public profile.

    Attributes:
        id: User id, shared with the identity provider.
        full_name: Display name.
        avatar: Avatar image URL, if any.
        role: "Administrador" for administrators, "Normal" otherwise.
        sector_id: Team sector the member belongs to.
        observations: Free-text job description.
        phone: Contact phone number.
    """
    __tablename__ = "profiles"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    full_name: str
    avatar: str | None = None
    role: str = Field(default="Normal")
    sector_id: UUID | None = None
    observations: str | None = None
    phone: str | None = None
