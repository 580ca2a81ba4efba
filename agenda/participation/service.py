"""Participation and appointment lifecycle service.

Applies state-machine plans to the store. Each public method is one
user-initiated action: it reads what it needs, validates through
``agenda.participation.machine``, then issues the writes. Nothing is written
when validation fails. Store failures propagate as ``StoreError``; nothing
here retries.

There is no locking: two actors racing on the same record resolve by
last-write-wins in the store, and re-applying an outcome that already holds
is a no-op.
"""

import logging
from dataclasses import dataclass
from uuid import UUID

from agenda.core.config import settings
from agenda.core.errors import UnauthorizedTransitionError, ValidationError
from agenda.models import Appointment, Attendee, AttendeeStatus
from agenda.participation.identity import Identity
from agenda.participation.machine import (
    Action,
    Effect,
    ParticipationState,
    TransitionPlan,
    can_manage,
    derive_state,
    plan_resync,
    plan_transition,
)
from agenda.participation.timing import check_location_conflict, normalize_time, resolve_end_time
from agenda.schemas import AppointmentCreate, AppointmentUpdate
from agenda.store.adapter import ParticipationStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransitionResult:
    """Outcome of a participation action."""
    plan: TransitionPlan
    record: Attendee | None

    @property
    def changed(self) -> bool:
        return self.plan.writes


@dataclass(frozen=True)
class ResyncResult:
    added: list[UUID]
    removed: list[UUID]


class ParticipationService:
    """Invitations, requests, responses and appointment lifecycle."""

    def __init__(self, store: ParticipationStore):
        self.store = store

    # Participation transitions

    async def invite(self, actor: Identity, appointment_id: UUID, user_id: UUID) -> TransitionResult:
        """Organizer invites ``user_id``; re-invites a declined user in place."""
        return await self._transition(Action.INVITE, actor, appointment_id, user_id)

    async def request(self, actor: Identity, appointment_id: UUID) -> TransitionResult:
        """``actor`` asks to join an appointment they were not invited to."""
        return await self._transition(Action.REQUEST, actor, appointment_id, actor.id)

    async def accept(self, actor: Identity, appointment_id: UUID) -> TransitionResult:
        return await self._transition(Action.ACCEPT, actor, appointment_id, actor.id)

    async def decline(self, actor: Identity, appointment_id: UUID) -> TransitionResult:
        return await self._transition(Action.DECLINE, actor, appointment_id, actor.id)

    async def approve(self, actor: Identity, appointment_id: UUID, user_id: UUID) -> TransitionResult:
        return await self._transition(Action.APPROVE, actor, appointment_id, user_id)

    async def deny(self, actor: Identity, appointment_id: UUID, user_id: UUID) -> TransitionResult:
        return await self._transition(Action.DENY, actor, appointment_id, user_id)

    async def cancel(
        self, actor: Identity, appointment_id: UUID, user_id: UUID | None = None
    ) -> TransitionResult:
        """Withdraw an open invitation (organizer) or request (requester).

        ``user_id`` defaults to the actor, i.e. withdrawing one's own request.
        """
        target = user_id if user_id is not None else actor.id
        return await self._transition(Action.CANCEL, actor, appointment_id, target)

    async def participation_state(
        self, actor: Identity, appointment_id: UUID
    ) -> ParticipationState:
        appointment = await self.store.get_appointment(appointment_id)
        record = await self.store.get_attendee(appointment_id, actor.id)
        return derive_state(appointment, actor.id, record)

    async def _transition(
        self, action: Action, actor: Identity, appointment_id: UUID, target_user_id: UUID
    ) -> TransitionResult:
        appointment = await self.store.get_appointment(appointment_id)
        record = await self.store.get_attendee(appointment_id, target_user_id)
        plan = plan_transition(action, appointment, actor, target_user_id, record)

        if plan.effect is Effect.NOOP:
            logger.debug(
                f"{action.value} by {actor.id} on appointment {appointment_id} "
                f"for user {target_user_id} already applied"
            )
            return TransitionResult(plan, record)

        if plan.effect is Effect.INSERT:
            record = await self.store.insert_attendee(appointment_id, target_user_id, plan.status)
        elif plan.effect is Effect.UPDATE:
            record = await self.store.set_attendee_status(record.id, plan.status)
        elif plan.effect is Effect.DELETE:
            await self.store.delete_attendee(record.id)
            record = None

        logger.info(
            f"{action.value}: user {target_user_id} on appointment {appointment_id} "
            f"{plan.source.value} -> {plan.status.value if plan.status else 'none'} "
            f"(by {actor.id})"
        )
        return TransitionResult(plan, record)

    # Bulk attendee edit

    async def resync_attendees(
        self, actor: Identity, appointment_id: UUID, user_ids: list[UUID]
    ) -> ResyncResult:
        """Make the attendee list match ``user_ids``.

        New ids are invited as pending, missing ids are removed whatever
        their status, and ids already present keep their status.
        Submitting the same selection twice writes nothing the second time.
        """
        appointment = await self.store.get_appointment(appointment_id)
        if not can_manage(appointment, actor):
            raise UnauthorizedTransitionError("Only the organizer or an administrator can edit attendees")
        return await self._resync(appointment, user_ids)

    async def _resync(self, appointment: Appointment, user_ids: list[UUID]) -> ResyncResult:
        existing = await self.store.find_attendees(appointment_id=appointment.id)
        plan = plan_resync(appointment, user_ids, existing)
        if not plan.writes:
            return ResyncResult(added=[], removed=[])

        await self.store.insert_attendees(appointment.id, plan.to_add, AttendeeStatus.pending)
        await self.store.delete_attendees(appointment.id, plan.to_remove)
        logger.info(
            f"Resynced attendees of appointment {appointment.id}: "
            f"+{len(plan.to_add)} -{len(plan.to_remove)}"
        )
        return ResyncResult(added=plan.to_add, removed=plan.to_remove)

    # Appointment lifecycle

    async def create_appointment(
        self, actor: Identity, draft: AppointmentCreate, *, allow_conflict: bool = False
    ) -> Appointment:
        """Create an appointment organized by ``actor`` and invite ``draft.attendee_ids``."""
        appointment = Appointment(
            **draft.model_dump(exclude={"duration_minutes", "attendee_ids"}),
            created_by=actor.id,
        )
        await self._prepare_for_save(appointment, draft.duration_minutes, allow_conflict)

        appointment = await self.store.insert_appointment(appointment)
        logger.info(f"Appointment {appointment.id} '{appointment.title}' created by {actor.id}")

        if draft.attendee_ids:
            await self._resync(appointment, draft.attendee_ids)
        return appointment

    async def update_appointment(
        self,
        actor: Identity,
        appointment_id: UUID,
        changes: AppointmentUpdate,
        *,
        allow_conflict: bool = False,
    ) -> Appointment:
        """Edit an appointment; ``changes.attendee_ids`` also resyncs attendees."""
        current = await self.store.get_appointment(appointment_id)
        if not can_manage(current, actor):
            raise UnauthorizedTransitionError("Only the organizer or an administrator can edit this appointment")

        patch = changes.model_dump(exclude_unset=True, exclude={"duration_minutes", "attendee_ids"})
        if "title" in patch and patch["title"] is None:
            raise ValidationError("Title is required")
        if "date" in patch and patch["date"] is None:
            raise ValidationError("Date is required")
        # Choosing one kind of location clears the other
        if patch.get("location_id") is not None:
            patch.setdefault("location_text", None)
        if patch.get("location_text"):
            patch.setdefault("location_id", None)
        # A duration without an explicit end recomputes the end
        if changes.duration_minutes is not None and "end_time" not in patch:
            patch["end_time"] = None

        merged = Appointment(**{**current.model_dump(), **patch})
        await self._prepare_for_save(merged, changes.duration_minutes, allow_conflict)

        saved_fields = set(patch) | {"start_time", "end_time"}
        appointment = await self.store.update_appointment(
            appointment_id, {key: getattr(merged, key) for key in saved_fields}
        )
        logger.info(f"Appointment {appointment_id} updated by {actor.id}: {sorted(saved_fields)}")

        if changes.attendee_ids is not None:
            await self._resync(appointment, changes.attendee_ids)
        return appointment

    async def delete_appointment(self, actor: Identity, appointment_id: UUID) -> int:
        """Delete an appointment and its attendee records. Returns records removed."""
        appointment = await self.store.get_appointment(appointment_id)
        if not can_manage(appointment, actor):
            raise UnauthorizedTransitionError("Only the organizer or an administrator can delete this appointment")
        removed = await self.store.delete_appointment(appointment_id)
        logger.info(
            f"Appointment {appointment_id} deleted by {actor.id} "
            f"with {removed} attendee record(s)"
        )
        return removed

    async def _prepare_for_save(
        self, appointment: Appointment, duration_minutes: int | None, allow_conflict: bool
    ) -> None:
        """Normalize times, derive the end time and check the location."""
        if not appointment.title or not appointment.title.strip():
            raise ValidationError("Title is required")
        if appointment.location_id and appointment.location_text:
            raise ValidationError("Choose either a registered location or a free-text location")

        appointment.start_time = normalize_time(appointment.start_time)
        appointment.end_time = resolve_end_time(
            appointment.start_time,
            appointment.end_time,
            duration_minutes,
            default_minutes=settings.default_duration_minutes,
        )

        if appointment.location_id is None:
            return
        location = await self.store.get_location(appointment.location_id)
        if not location.has_conflict_control:
            return
        if not appointment.start_time:
            raise ValidationError("Start and end times are required for this location")
        if allow_conflict:
            logger.info(f"Saving '{appointment.title}' at {location.name} despite conflicts")
            return
        booked = await self.store.list_appointments(
            location_id=appointment.location_id, date=appointment.date
        )
        check_location_conflict(appointment, booked)
