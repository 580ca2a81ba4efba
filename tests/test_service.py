"""Tests for the participation service against a real store."""

from uuid import uuid4

import pytest

from agenda.core.errors import (
    DuplicateParticipationError,
    LocationConflictError,
    NotFoundError,
    RestrictedAppointmentError,
    UnauthorizedTransitionError,
    ValidationError,
)
from agenda.models import Appointment, AttendeeStatus, Location, Profile
from agenda.participation.machine import Effect, ParticipationState
from agenda.participation.service import ParticipationService
from agenda.schemas import AppointmentCreate, AppointmentUpdate
from agenda.store.adapter import ParticipationStore
from agenda.views.aggregators import history, requests_to_approve, sent_by_me
from agenda.views.snapshot import load_snapshot
from conftest import MEETING_DAY, identity


class CountingFeed:
    """Count change events published while the block runs."""

    def __init__(self, store: ParticipationStore):
        self.feed = store.records.feed
        self.count = 0

    def __enter__(self):
        self._publish = self.feed.publish

        def counting(event):
            self.count += 1
            self._publish(event)

        self.feed.publish = counting
        return self

    def __exit__(self, *exc):
        self.feed.publish = self._publish


class TestRequestFlow:
    """A user asks to join and the organizer decides."""

    async def test_request_then_approve(
        self,
        service: ParticipationService,
        store: ParticipationStore,
        appointment: Appointment,
        organizer: Profile,
        user: Profile,
    ):
        result = await service.request(identity(user), appointment.id)

        assert result.changed
        assert result.record.status == AttendeeStatus.requested
        assert result.record.user_id == user.id

        await service.approve(identity(organizer), appointment.id, user.id)

        record = await store.get_attendee(appointment.id, user.id)
        assert record.status == AttendeeStatus.accepted

        snapshot = await load_snapshot(store)
        user_history = history(user.id, snapshot.records, snapshot.appointments, snapshot.profiles)
        organizer_history = history(
            organizer.id, snapshot.records, snapshot.appointments, snapshot.profiles
        )
        assert [entry.i_am_organizer for entry in user_history] == [False]
        assert [entry.i_am_organizer for entry in organizer_history] == [True]
        assert user_history[0].counterpart.id == organizer.id
        assert organizer_history[0].counterpart.id == user.id

    async def test_request_then_deny(
        self,
        service: ParticipationService,
        appointment: Appointment,
        organizer: Profile,
        user: Profile,
    ):
        await service.request(identity(user), appointment.id)
        result = await service.deny(identity(organizer), appointment.id, user.id)

        assert result.record.status == AttendeeStatus.declined

    async def test_request_on_organizer_only_appointment(
        self,
        service: ParticipationService,
        store: ParticipationStore,
        restricted_appointment: Appointment,
        user: Profile,
    ):
        with pytest.raises(RestrictedAppointmentError):
            await service.request(identity(user), restricted_appointment.id)

        assert await store.find_attendees(appointment_id=restricted_appointment.id) == []

    async def test_requester_withdraws(
        self,
        service: ParticipationService,
        store: ParticipationStore,
        appointment: Appointment,
        user: Profile,
    ):
        await service.request(identity(user), appointment.id)
        result = await service.cancel(identity(user), appointment.id)

        assert result.plan.effect is Effect.DELETE
        assert result.record is None
        assert await store.get_attendee(appointment.id, user.id) is None

    async def test_request_unknown_appointment(self, service: ParticipationService, user: Profile):
        with pytest.raises(NotFoundError):
            await service.request(identity(user), uuid4())


class TestInvitationFlow:
    """The organizer invites and the invitees respond."""

    async def test_accept_and_decline(
        self,
        service: ParticipationService,
        store: ParticipationStore,
        appointment: Appointment,
        organizer: Profile,
        user: Profile,
        other_user: Profile,
    ):
        await service.invite(identity(organizer), appointment.id, user.id)
        await service.invite(identity(organizer), appointment.id, other_user.id)

        await service.accept(identity(user), appointment.id)
        await service.decline(identity(other_user), appointment.id)

        snapshot = await load_snapshot(store)
        args = (snapshot.records, snapshot.appointments, snapshot.profiles)
        sent = sent_by_me(organizer.id, *args)
        assert sent.invitations == []
        assert requests_to_approve(organizer.id, *args) == []

        statuses = {entry.record.user_id: entry.record.status for entry in history(organizer.id, *args)}
        assert statuses == {
            user.id: AttendeeStatus.accepted,
            other_user.id: AttendeeStatus.declined,
        }

    async def test_reinvite_declined_user_reuses_record(
        self,
        service: ParticipationService,
        store: ParticipationStore,
        appointment: Appointment,
        organizer: Profile,
        user: Profile,
    ):
        first = await service.invite(identity(organizer), appointment.id, user.id)
        await service.decline(identity(user), appointment.id)

        again = await service.invite(identity(organizer), appointment.id, user.id)

        records = await store.find_attendees(appointment_id=appointment.id, user_id=user.id)
        assert len(records) == 1
        assert records[0].id == first.record.id
        assert records[0].status == AttendeeStatus.pending
        assert again.plan.effect is Effect.UPDATE

    async def test_reinvite_pending_user_is_noop(
        self,
        service: ParticipationService,
        appointment: Appointment,
        organizer: Profile,
        user: Profile,
    ):
        await service.invite(identity(organizer), appointment.id, user.id)
        again = await service.invite(identity(organizer), appointment.id, user.id)

        assert not again.changed
        assert again.record.status == AttendeeStatus.pending

    async def test_invite_member_is_duplicate(
        self,
        service: ParticipationService,
        appointment: Appointment,
        organizer: Profile,
        user: Profile,
    ):
        await service.invite(identity(organizer), appointment.id, user.id)
        await service.accept(identity(user), appointment.id)

        with pytest.raises(DuplicateParticipationError):
            await service.invite(identity(organizer), appointment.id, user.id)

    async def test_accept_twice_is_noop(
        self,
        service: ParticipationService,
        appointment: Appointment,
        organizer: Profile,
        user: Profile,
    ):
        await service.invite(identity(organizer), appointment.id, user.id)
        await service.accept(identity(user), appointment.id)

        again = await service.accept(identity(user), appointment.id)

        assert not again.changed

    async def test_accept_on_behalf_of_someone_else(
        self,
        service: ParticipationService,
        appointment: Appointment,
        organizer: Profile,
        user: Profile,
        other_user: Profile,
    ):
        await service.invite(identity(organizer), appointment.id, user.id)

        with pytest.raises(UnauthorizedTransitionError):
            await service.accept(identity(other_user), appointment.id)

    async def test_decline_after_accept_fails(
        self,
        service: ParticipationService,
        appointment: Appointment,
        organizer: Profile,
        user: Profile,
    ):
        await service.invite(identity(organizer), appointment.id, user.id)
        await service.accept(identity(user), appointment.id)

        with pytest.raises(UnauthorizedTransitionError):
            await service.decline(identity(user), appointment.id)

    async def test_organizer_withdraws_invitation(
        self,
        service: ParticipationService,
        store: ParticipationStore,
        appointment: Appointment,
        organizer: Profile,
        user: Profile,
    ):
        await service.invite(identity(organizer), appointment.id, user.id)
        await service.cancel(identity(organizer), appointment.id, user.id)

        assert await service.participation_state(identity(user), appointment.id) is ParticipationState.NONE
        assert await store.find_attendees(appointment_id=appointment.id) == []


class TestResync:
    """Bulk attendee edits."""

    async def test_resync_is_idempotent(
        self,
        service: ParticipationService,
        store: ParticipationStore,
        appointment: Appointment,
        organizer: Profile,
        user: Profile,
        other_user: Profile,
    ):
        selection = [user.id, other_user.id]
        first = await service.resync_attendees(identity(organizer), appointment.id, selection)
        assert first.added == selection

        with CountingFeed(store) as writes:
            second = await service.resync_attendees(identity(organizer), appointment.id, selection)

        assert second.added == []
        assert second.removed == []
        assert writes.count == 0

    async def test_resync_keeps_status_and_removes_missing(
        self,
        service: ParticipationService,
        store: ParticipationStore,
        appointment: Appointment,
        organizer: Profile,
        user: Profile,
        other_user: Profile,
    ):
        await service.resync_attendees(identity(organizer), appointment.id, [user.id, other_user.id])
        await service.accept(identity(user), appointment.id)

        result = await service.resync_attendees(identity(organizer), appointment.id, [user.id])

        assert result.removed == [other_user.id]
        records = await store.find_attendees(appointment_id=appointment.id)
        assert [(r.user_id, r.status) for r in records] == [(user.id, AttendeeStatus.accepted)]

    async def test_admin_can_resync(
        self,
        service: ParticipationService,
        appointment: Appointment,
        admin: Profile,
        user: Profile,
    ):
        result = await service.resync_attendees(identity(admin), appointment.id, [user.id])

        assert result.added == [user.id]

    async def test_participant_cannot_resync(
        self,
        service: ParticipationService,
        appointment: Appointment,
        user: Profile,
    ):
        with pytest.raises(UnauthorizedTransitionError):
            await service.resync_attendees(identity(user), appointment.id, [user.id])


class TestAppointmentLifecycle:
    """Creating, editing and deleting appointments."""

    async def test_create_with_attendees(
        self,
        service: ParticipationService,
        store: ParticipationStore,
        organizer: Profile,
        user: Profile,
    ):
        draft = AppointmentCreate(
            title="Kickoff",
            date=MEETING_DAY,
            start_time="9:00",
            attendee_ids=[user.id, organizer.id],
        )

        appointment = await service.create_appointment(identity(organizer), draft)

        assert appointment.created_by == organizer.id
        assert appointment.start_time == "09:00"
        assert appointment.end_time == "10:00"
        records = await store.find_attendees(appointment_id=appointment.id)
        assert [(r.user_id, r.status) for r in records] == [(user.id, AttendeeStatus.pending)]

    async def test_create_late_appointment_wraps_end_time(
        self, service: ParticipationService, organizer: Profile
    ):
        draft = AppointmentCreate(title="Deploy", date=MEETING_DAY, start_time="23:30")

        appointment = await service.create_appointment(identity(organizer), draft)

        assert appointment.end_time == "00:30"

    async def test_create_without_times(self, service: ParticipationService, organizer: Profile):
        draft = AppointmentCreate(title="Someday", date=MEETING_DAY)

        with pytest.raises(ValidationError):
            await service.create_appointment(identity(organizer), draft)

    async def test_create_with_both_locations(
        self, service: ParticipationService, organizer: Profile, room: Location
    ):
        draft = AppointmentCreate(
            title="Sync",
            date=MEETING_DAY,
            start_time="10:00",
            location_id=room.id,
            location_text="Cafe",
        )

        with pytest.raises(ValidationError):
            await service.create_appointment(identity(organizer), draft)

    async def test_location_conflict(
        self, service: ParticipationService, organizer: Profile, room: Location
    ):
        booked = AppointmentCreate(
            title="Standup", date=MEETING_DAY, start_time="10:00", end_time="11:00", location_id=room.id
        )
        await service.create_appointment(identity(organizer), booked)

        clash = AppointmentCreate(
            title="Review", date=MEETING_DAY, start_time="10:30", location_id=room.id
        )
        with pytest.raises(LocationConflictError) as excinfo:
            await service.create_appointment(identity(organizer), clash)
        assert excinfo.value.conflicting_title == "Standup"

        forced = await service.create_appointment(identity(organizer), clash, allow_conflict=True)
        assert forced.end_time == "11:30"

    async def test_update_recomputes_end_from_duration(
        self,
        service: ParticipationService,
        appointment: Appointment,
        organizer: Profile,
    ):
        changes = AppointmentUpdate(start_time="15:00", duration_minutes=90)

        updated = await service.update_appointment(identity(organizer), appointment.id, changes)

        assert (updated.start_time, updated.end_time) == ("15:00", "16:30")
        assert updated.title == appointment.title

    async def test_update_switches_location_kind(
        self,
        service: ParticipationService,
        appointment: Appointment,
        organizer: Profile,
        room: Location,
    ):
        await service.update_appointment(
            identity(organizer), appointment.id, AppointmentUpdate(location_text="Cafe")
        )
        updated = await service.update_appointment(
            identity(organizer), appointment.id, AppointmentUpdate(location_id=room.id)
        )

        assert updated.location_id == room.id
        assert updated.location_text is None

    async def test_update_with_attendee_selection(
        self,
        service: ParticipationService,
        store: ParticipationStore,
        appointment: Appointment,
        organizer: Profile,
        user: Profile,
    ):
        await service.update_appointment(
            identity(organizer), appointment.id, AppointmentUpdate(attendee_ids=[user.id])
        )

        assert await store.get_attendee(appointment.id, user.id) is not None

    async def test_only_organizer_or_admin_updates(
        self,
        service: ParticipationService,
        appointment: Appointment,
        user: Profile,
        admin: Profile,
    ):
        with pytest.raises(UnauthorizedTransitionError):
            await service.update_appointment(
                identity(user), appointment.id, AppointmentUpdate(title="Mine now")
            )

        updated = await service.update_appointment(
            identity(admin), appointment.id, AppointmentUpdate(title="Renamed")
        )
        assert updated.title == "Renamed"
        assert updated.created_by == appointment.created_by

    async def test_delete_cascades_to_attendees(
        self,
        service: ParticipationService,
        store: ParticipationStore,
        appointment: Appointment,
        organizer: Profile,
        user: Profile,
    ):
        await service.invite(identity(organizer), appointment.id, user.id)

        removed = await service.delete_appointment(identity(organizer), appointment.id)

        assert removed == 1
        assert await store.find_attendees(appointment_id=appointment.id) == []
        with pytest.raises(NotFoundError):
            await store.get_appointment(appointment.id)

    async def test_participant_cannot_delete(
        self,
        service: ParticipationService,
        appointment: Appointment,
        user: Profile,
    ):
        with pytest.raises(UnauthorizedTransitionError):
            await service.delete_appointment(identity(user), appointment.id)
