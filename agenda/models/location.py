"""Location model for named meeting places."""

from uuid import UUID, uuid4

from sqlmodel import Field, SQLModel


class Location(SQLModel, table=True):
    """A named place appointments can be booked at.

    Attributes:
        id: Unique identifier (UUID).
        name: Display name.
        color: Hex color used when rendering the location.
        has_conflict_control: If True, appointments here need both times and
            may not overlap another appointment on the same day.
    """
    __tablename__ = "locations"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    name: str
    color: str = Field(default="#64748b")
    has_conflict_control: bool = Field(default=False)
