"""Tests for the booking state store and session persistence."""

import asyncio
from datetime import datetime, timezone

import pytest

from src.booking.errors import DraftLockedError, StepOrderError, SubmissionInProgressError
from src.booking.session import SessionRegistry, SessionSnapshot
from src.config import settings
from src.wizard.engine import WizardEngine
from src.booking.store import BookingStore
from src.schemas.booking import BookingConfirmation, BookingDraft, SubmissionResult
from tests.factories import BOOKING_DATE, CLIENT_ID, TODAY


class TestBookingDraft:
    def test_initial_draft(self):
        draft = BookingDraft()
        assert draft.is_empty
        assert draft.current_step == 1
        assert draft.max_reachable_step() == 1
        assert len(draft.idempotency_key) == 32

    def test_drafts_are_immutable(self):
        draft = BookingDraft()
        with pytest.raises(Exception):
            draft.current_step = 2

    def test_max_reachable_step_counts_consecutive_steps(self, live_service, slot, client_info):
        draft = BookingDraft(selected_service=live_service, client_info=client_info)
        # Client info without a schedule does not unlock step 4
        assert draft.max_reachable_step() == 2

        draft = draft.model_copy(update={"selected_date": BOOKING_DATE, "selected_time_slot": slot})
        assert draft.max_reachable_step() == 4


class TestSetters:
    def test_each_setter_replaces_one_field(self, store, live_service):
        before = store.draft
        store.set_selected_service(live_service)

        assert store.draft is not before
        assert store.draft.selected_service == live_service
        assert store.draft.selected_date is None
        assert before.selected_service is None

    def test_last_writer_wins(self, store):
        store.set_selected_date(BOOKING_DATE)
        store.set_selected_date(None)
        assert store.draft.selected_date is None

    def test_observers_see_every_mutation(self, store, live_service):
        seen = []
        unsubscribe = store.subscribe(lambda draft, change: seen.append((change, draft.selected_service)))

        store.set_selected_service(live_service)
        unsubscribe()
        store.set_selected_service(None)

        assert seen == [("selected_service", live_service)]

    def test_new_client_info_forgets_created_client(self, filled_store, client_info):
        filled_store.remember_created_client(CLIENT_ID)
        filled_store.set_client_info(client_info.model_copy(update={"phone": "+447700900999"}))
        assert filled_store.draft.created_client_id is None


class TestStepInvariant:
    def test_forward_jump_rejected(self, store):
        with pytest.raises(StepOrderError):
            store.set_current_step(3)
        assert store.draft.current_step == 1

    def test_unknown_step_rejected(self, filled_store):
        with pytest.raises(StepOrderError):
            filled_store.set_current_step(5)

    def test_back_navigation_keeps_data(self, filled_store):
        filled_store.set_current_step(2)
        assert filled_store.draft.current_step == 2
        assert filled_store.draft.client_info is not None
        filled_store.set_current_step(4)
        assert filled_store.draft.current_step == 4

    def test_clearing_prerequisite_moves_back(self, filled_store):
        filled_store.set_selected_time_slot(None)
        assert filled_store.draft.current_step == 2

        filled_store.set_selected_service(None)
        assert filled_store.draft.current_step == 1

    def test_invariant_holds_after_any_setter(self, filled_store, slot):
        filled_store.set_selected_date(None)
        filled_store.set_selected_time_slot(slot)
        draft = filled_store.draft
        assert draft.current_step <= draft.max_reachable_step()


class TestReset:
    def test_reset_returns_initial_draft(self, filled_store):
        old_key = filled_store.draft.idempotency_key
        filled_store.reset_booking()

        draft = filled_store.draft
        assert draft.is_empty
        assert draft.available_services == []
        assert draft.idempotency_key != old_key

    def test_reset_is_idempotent(self, store):
        store.reset_booking()
        first = store.draft.model_dump(exclude={"idempotency_key"})
        store.reset_booking()
        assert store.draft.model_dump(exclude={"idempotency_key"}) == first

    def test_reset_bumps_generation(self, store):
        generation = store.generation
        store.reset_booking()
        assert store.generation == generation + 1

    def test_reset_notifies_observers(self, filled_store):
        changes = []
        filled_store.subscribe(lambda draft, change: changes.append(change))
        filled_store.reset_booking()
        assert changes == ["reset"]


class TestLock:
    def test_locked_draft_rejects_mutation(self, filled_store):
        filled_store.lock()
        with pytest.raises(DraftLockedError):
            filled_store.set_selected_date(None)
        assert filled_store.draft.selected_date == BOOKING_DATE

    def test_double_lock_rejected(self, store):
        store.lock()
        with pytest.raises(DraftLockedError):
            store.lock()

    def test_reset_always_allowed_and_unlocks(self, filled_store):
        generation = filled_store.lock()
        filled_store.reset_booking()

        assert not filled_store.is_locked
        # The old holder's unlock must not touch the new draft's lock
        filled_store.lock()
        filled_store.unlock(generation)
        assert filled_store.is_locked

    def test_unlock(self, store):
        generation = store.lock()
        store.unlock(generation)
        assert not store.is_locked


class TestComplete:
    def test_confirmation_survives_reset_of_draft(self, filled_store, slot):
        confirmation = BookingConfirmation(
            result=SubmissionResult(success=True, booking_reference="RO-1"),
            service_name="Investment Fraud Recovery",
            duration_minutes=90,
            booking_date=BOOKING_DATE,
            time_slot=slot,
            client_email="jane@example.com",
            confirmed_at=datetime.now(timezone.utc),
        )
        filled_store.complete(confirmation)

        assert filled_store.draft.is_empty
        assert filled_store.confirmation == confirmation

        filled_store.reset_booking()
        assert filled_store.confirmation is None


class TestSessionManager:
    @pytest.mark.asyncio
    async def test_save_writes_snapshot_with_ttl(self, session_manager, mock_redis, filled_store):
        await session_manager.save("abc", filled_store)

        key, ttl, payload = mock_redis.setex.call_args.args
        assert key == "booking:abc"
        assert ttl == 7200
        restored = SessionSnapshot.model_validate_json(payload)
        assert restored.draft == filled_store.draft

    @pytest.mark.asyncio
    async def test_get_missing(self, session_manager):
        assert await session_manager.get("missing") is None

    @pytest.mark.asyncio
    async def test_get_restores_snapshot(self, session_manager, mock_redis, filled_store):
        mock_redis.get.return_value = SessionSnapshot(draft=filled_store.draft).model_dump_json()
        snapshot = await session_manager.get("abc")
        assert snapshot.draft.current_step == 4
        assert snapshot.draft.client_info.first_name == "Jane"

    @pytest.mark.asyncio
    async def test_delete_and_exists(self, session_manager, mock_redis):
        await session_manager.delete("abc")
        mock_redis.delete.assert_awaited_once_with("booking:abc")
        assert await session_manager.exists("abc") is False


class TestSessionRegistry:
    @pytest.mark.asyncio
    async def test_consumers_share_one_store(self, registry):
        session = await registry.create()
        again = await registry.get(session.session_id)
        assert again.store is session.store

    @pytest.mark.asyncio
    async def test_restores_from_redis(self, registry, mock_redis, filled_store):
        mock_redis.get.return_value = SessionSnapshot(draft=filled_store.draft).model_dump_json()

        session = await registry.get("from-redis")

        assert isinstance(session.store, BookingStore)
        assert session.store.draft == filled_store.draft
        assert (await registry.get("from-redis")) is session

    @pytest.mark.asyncio
    async def test_unknown_session(self, registry):
        assert await registry.get("nope") is None

    @pytest.mark.asyncio
    async def test_submitting_session_is_not_evicted(
        self, monkeypatch, session_manager, mock_redis, api_client, live_service, slot, client_info
    ):
        monkeypatch.setattr(settings, "max_live_sessions", 1)
        registry = SessionRegistry(session_manager, api_client)
        engine = WizardEngine(registry)

        session = await registry.create()
        store = session.store
        store.set_selected_service(live_service)
        store.set_selected_date(BOOKING_DATE)
        store.set_selected_time_slot(slot)
        store.set_client_info(client_info)
        store.set_current_step(4)
        mock_redis.get.return_value = SessionSnapshot(draft=store.draft).model_dump_json()

        release = asyncio.Event()

        async def slow_create_client(payload, idempotency_key=None):
            await release.wait()
            return {"_id": CLIENT_ID}

        api_client.create_client.side_effect = slow_create_client
        task = asyncio.create_task(engine.submit(session, True, today=TODAY))
        await asyncio.sleep(0)

        await registry.create()
        again = await registry.get(session.session_id)

        assert again is session
        assert again.store.is_locked
        with pytest.raises(SubmissionInProgressError):
            await engine.submit(again, True, today=TODAY)

        release.set()
        result = await task

        assert result.success
        assert api_client.create_client.await_count == 1
        assert api_client.create_booking.await_count == 1
        assert (await registry.get(session.session_id)) is session
