"""Participation state machine.

Pure decision logic: given an appointment, the acting user, the target user
and that user's attendee record (if any), decide whether an action is legal
and what it does to the record. Nothing here touches the store; see
``agenda.participation.service`` for the code that applies a plan.

States per (appointment, user)::

    ORGANIZER   user is appointment.created_by (never has a record)
    NONE        no record
    INVITED     record status "pending"
    REQUESTED   record status "requested"
    MEMBER      record status "accepted"
    DECLINED    record status "declined"

Transitions::

    NONE      --invite  (organizer)---> INVITED
    DECLINED  --invite  (organizer)---> INVITED     (update in place)
    NONE      --request (target user)-> REQUESTED   (not on organizer-only)
    INVITED   --accept  (target user)-> MEMBER
    INVITED   --decline (target user)-> DECLINED
    REQUESTED --approve (organizer)---> MEMBER
    REQUESTED --deny    (organizer)---> DECLINED
    INVITED   --cancel  (organizer)---> NONE        (record deleted)
    REQUESTED --cancel  (target user)-> NONE        (record deleted)

Re-applying an action whose result already holds is a no-op.
"""

from dataclasses import dataclass
from enum import Enum
from uuid import UUID

from agenda.core.errors import (
    DuplicateParticipationError,
    IllegalTransitionError,
    RestrictedAppointmentError,
    UnauthorizedTransitionError,
    ValidationError,
)
from agenda.models import Appointment, Attendee, AttendeeStatus
from agenda.participation.identity import Identity


class ParticipationState(str, Enum):
    ORGANIZER = "organizer"
    NONE = "none"
    INVITED = "invited"
    REQUESTED = "requested"
    MEMBER = "member"
    DECLINED = "declined"


class Action(str, Enum):
    INVITE = "invite"
    REQUEST = "request"
    ACCEPT = "accept"
    DECLINE = "decline"
    APPROVE = "approve"
    DENY = "deny"
    CANCEL = "cancel"


class Effect(str, Enum):
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"
    NOOP = "noop"


_STATE_BY_STATUS = {
    AttendeeStatus.pending: ParticipationState.INVITED,
    AttendeeStatus.requested: ParticipationState.REQUESTED,
    AttendeeStatus.accepted: ParticipationState.MEMBER,
    AttendeeStatus.declined: ParticipationState.DECLINED,
}

# action -> (source state, resulting status); actor rules are in plan_transition
_RESPONSES = {
    Action.ACCEPT: (ParticipationState.INVITED, AttendeeStatus.accepted),
    Action.DECLINE: (ParticipationState.INVITED, AttendeeStatus.declined),
    Action.APPROVE: (ParticipationState.REQUESTED, AttendeeStatus.accepted),
    Action.DENY: (ParticipationState.REQUESTED, AttendeeStatus.declined),
}


def is_organizer(appointment: Appointment, user_id: UUID) -> bool:
    """The one place organizer status is derived."""
    return appointment.created_by == user_id


def can_manage(appointment: Appointment, actor: Identity) -> bool:
    """Whether ``actor`` may edit, resync or delete ``appointment``."""
    return is_organizer(appointment, actor.id) or actor.is_admin


def derive_state(
    appointment: Appointment, user_id: UUID, record: Attendee | None
) -> ParticipationState:
    if is_organizer(appointment, user_id):
        return ParticipationState.ORGANIZER
    if record is None:
        return ParticipationState.NONE
    return _STATE_BY_STATUS[record.status]


@dataclass(frozen=True)
class TransitionPlan:
    """What applying an action does to the target user's record."""
    action: Action
    source: ParticipationState
    effect: Effect
    status: AttendeeStatus | None = None

    @property
    def writes(self) -> bool:
        return self.effect is not Effect.NOOP


def plan_transition(
    action: Action,
    appointment: Appointment,
    actor: Identity,
    target_user_id: UUID,
    record: Attendee | None,
) -> TransitionPlan:
    """Validate ``action`` and describe its effect.

    Raises:
        UnauthorizedTransitionError: ``actor`` is not the user the action
            belongs to, or the appointment blocks the request.
        IllegalTransitionError: the record is not in a state the action
            can start from.
        DuplicateParticipationError: the action would create a second
            record for the target user.
        ValidationError: the target is the organizer.
    """
    state = derive_state(appointment, target_user_id, record)
    organizer_acting = is_organizer(appointment, actor.id)
    target_acting = actor.id == target_user_id

    if action is Action.INVITE:
        if not organizer_acting:
            raise UnauthorizedTransitionError("Only the organizer can invite participants")
        if state is ParticipationState.ORGANIZER:
            raise ValidationError("The organizer cannot be invited to their own appointment")
        if state is ParticipationState.NONE:
            return TransitionPlan(action, state, Effect.INSERT, AttendeeStatus.pending)
        if state is ParticipationState.DECLINED:
            return TransitionPlan(action, state, Effect.UPDATE, AttendeeStatus.pending)
        if state is ParticipationState.INVITED:
            return TransitionPlan(action, state, Effect.NOOP, AttendeeStatus.pending)
        raise DuplicateParticipationError(
            f"User {target_user_id} already participates ({state.value})"
        )

    if action is Action.REQUEST:
        if not target_acting:
            raise UnauthorizedTransitionError("Users can only request participation for themselves")
        if state is ParticipationState.ORGANIZER:
            raise UnauthorizedTransitionError("The organizer cannot request to join their own appointment")
        if state is not ParticipationState.NONE:
            raise DuplicateParticipationError(
                f"User {target_user_id} already participates ({state.value})"
            )
        if appointment.organizer_only:
            raise RestrictedAppointmentError("This appointment only admits invited participants")
        return TransitionPlan(action, state, Effect.INSERT, AttendeeStatus.requested)

    if action in _RESPONSES:
        source, result = _RESPONSES[action]
        allowed = organizer_acting if source is ParticipationState.REQUESTED else target_acting
        if not allowed:
            who = "organizer" if source is ParticipationState.REQUESTED else "invited user"
            raise UnauthorizedTransitionError(f"Only the {who} can {action.value}")
        if state is source:
            return TransitionPlan(action, state, Effect.UPDATE, result)
        if record is not None and record.status == result:
            return TransitionPlan(action, state, Effect.NOOP, result)
        raise IllegalTransitionError(f"Cannot {action.value} from {state.value}")

    if action is Action.CANCEL:
        if state is ParticipationState.INVITED:
            allowed = organizer_acting
        elif state is ParticipationState.REQUESTED:
            allowed = target_acting
        else:
            raise IllegalTransitionError(f"Cannot cancel from {state.value}")
        if not allowed:
            raise UnauthorizedTransitionError("Only the creator of an open invitation or request can cancel it")
        return TransitionPlan(action, state, Effect.DELETE)

    raise ValueError(f"Unknown action {action!r}")


@dataclass(frozen=True)
class ResyncPlan:
    """Attendee list reconciliation for a bulk edit."""
    to_add: list[UUID]
    to_remove: list[UUID]

    @property
    def writes(self) -> bool:
        return bool(self.to_add or self.to_remove)


def plan_resync(
    appointment: Appointment, selected: list[UUID], existing: list[Attendee]
) -> ResyncPlan:
    """Diff the selected user ids against the current records.

    Ids only in the selection are invited, ids only in the records are
    removed, and ids in both keep their status. Order follows the input so
    the resulting writes are deterministic.
    """
    wanted = list(dict.fromkeys(
        user_id for user_id in selected if not is_organizer(appointment, user_id)
    ))
    current = list(dict.fromkeys(record.user_id for record in existing))
    wanted_set, current_set = set(wanted), set(current)
    return ResyncPlan(
        to_add=[user_id for user_id in wanted if user_id not in current_set],
        to_remove=[user_id for user_id in current if user_id not in wanted_set],
    )
