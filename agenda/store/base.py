"""Abstract record store consumed by the participation core.

The store is an external collaborator: a hosted table store with filtered
reads, single-entity writes and a change feed. ``RecordStore`` captures the
operations the core relies on so the state machine, aggregators and live
bridge never touch a concrete backend.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping
from uuid import UUID

from sqlmodel import SQLModel

from agenda.models import Appointment, Attendee, Location, Profile


class Entity(str, Enum):
    """Tables the core reads and writes."""
    appointment = "appointment"
    attendee = "attendee"
    profile = "profile"
    location = "location"

    @property
    def model(self) -> type[SQLModel]:
        return ENTITY_MODELS[self]


ENTITY_MODELS: dict[Entity, type[SQLModel]] = {
    Entity.appointment: Appointment,
    Entity.attendee: Attendee,
    Entity.profile: Profile,
    Entity.location: Location,
}

# Field -> value. Lists, tuples and sets mean "value in collection".
Filter = Mapping[str, Any]


class ChangeKind(str, Enum):
    insert = "insert"
    update = "update"
    delete = "delete"


@dataclass(frozen=True)
class ChangeEvent:
    """A committed write, as delivered by the store's change feed.

    ``new`` is the row after the write (absent for deletes), ``old`` the row
    before it (absent for inserts).
    """
    entity: Entity
    kind: ChangeKind
    new: dict[str, Any] | None = None
    old: dict[str, Any] | None = None

    @property
    def row(self) -> dict[str, Any]:
        return self.new if self.new is not None else (self.old or {})


@dataclass(frozen=True)
class ChangeFilter:
    """Selects change events for one entity, optionally by column equality."""
    entity: Entity
    where: dict[str, Any] = field(default_factory=dict)

    def matches(self, event: ChangeEvent) -> bool:
        if event.entity != self.entity:
            return False
        if not self.where:
            return True
        # An update that moves a row out of the filter still concerns the subscriber
        return any(
            row is not None and matches_filter(row, self.where)
            for row in (event.new, event.old)
        )


def matches_filter(row: Mapping[str, Any], where: Filter) -> bool:
    """Apply a store filter to a plain row mapping."""
    for key, expected in where.items():
        value = row.get(key)
        if isinstance(expected, (list, tuple, set, frozenset)):
            if value not in expected:
                return False
        elif value != expected:
            return False
    return True


class RecordStore(ABC):
    """Asynchronous table store with a change feed.

    All methods may raise ``StoreError`` when the backend call fails.
    """

    @abstractmethod
    async def find(self, entity: Entity, where: Filter | None = None) -> list[SQLModel]:
        """Return every record of ``entity`` matching ``where``."""

    @abstractmethod
    async def insert(self, entity: Entity, record: SQLModel) -> SQLModel:
        """Insert ``record`` and return it as stored."""

    @abstractmethod
    async def update(self, entity: Entity, record_id: UUID, patch: Mapping[str, Any]) -> SQLModel:
        """Apply ``patch`` to the record with ``record_id`` and return it."""

    @abstractmethod
    async def delete(self, entity: Entity, where: Filter) -> int:
        """Delete every record matching ``where``; return how many were removed."""

    @abstractmethod
    def subscribe(self, entity: Entity, where: Filter | None = None):
        """Open a change subscription for ``entity``.

        Returns a ``Subscription`` that must be closed by the caller.
        """
