"""Booking state store — the single shared draft of one wizard session.

Every consumer holds a reference to the same ``BookingStore`` and reads
``store.draft`` for the current snapshot. Mutation goes through the named
setters only; each replaces one field, swaps in a new immutable draft and
notifies observers. Last writer wins.
"""

from __future__ import annotations

from datetime import date
from typing import Callable, Optional

import structlog

from src.booking.errors import DraftLockedError, StepOrderError
from src.schemas.booking import (
    BookingConfirmation,
    BookingDraft,
    BookingStep,
    ClientInfo,
    ServiceCatalogEntry,
    TimeSlot,
)

logger = structlog.get_logger()

Observer = Callable[[BookingDraft, str], None]


class BookingStore:
    """Holds the draft, its generation counter and the submission lock."""

    def __init__(self, draft: Optional[BookingDraft] = None, session_id: Optional[str] = None):
        self.session_id = session_id
        self._draft = draft or BookingDraft()
        self._observers: list[Observer] = []
        self._locked = False
        self.generation = 0
        self.confirmation: Optional[BookingConfirmation] = None

    # ─── Reading ─────────────────────────────────────────────────────

    @property
    def draft(self) -> BookingDraft:
        return self._draft

    @property
    def is_locked(self) -> bool:
        return self._locked

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """Register ``observer(draft, change)``; returns an unsubscribe callable."""
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    # ─── Setters ─────────────────────────────────────────────────────

    def set_selected_service(self, service: Optional[ServiceCatalogEntry]) -> None:
        self._replace("selected_service", service)

    def set_selected_date(self, selected_date: Optional[date]) -> None:
        self._replace("selected_date", selected_date)

    def set_selected_time_slot(self, slot: Optional[TimeSlot]) -> None:
        self._replace("selected_time_slot", slot)

    def set_client_info(self, info: Optional[ClientInfo]) -> None:
        # New details invalidate a client record created by an earlier attempt
        self._replace("client_info", info, created_client_id=None)

    def set_available_services(self, services: list[ServiceCatalogEntry]) -> None:
        self._replace("available_services", list(services))

    def set_current_step(self, step: int) -> None:
        """Move to ``step``. Forward moves need every earlier step populated."""
        if not BookingStep.SERVICE.value <= step <= BookingStep.CONFIRMATION.value:
            raise StepOrderError(f"Unknown booking step {step}")
        allowed = self._draft.max_reachable_step()
        if step > allowed:
            raise StepOrderError(f"Step {step} is not reachable yet; complete step {allowed} first")
        self._replace("current_step", step)

    def remember_created_client(self, client_id: Optional[str]) -> None:
        """Keep the client created by a partially failed attempt for reuse on retry."""
        self._commit(self._draft.model_copy(update={"created_client_id": client_id}), "created_client_id")

    def reset_booking(self) -> None:
        """Back to an empty draft at step 1. Always allowed; also releases the lock."""
        self._locked = False
        self.generation += 1
        self.confirmation = None
        self._commit(BookingDraft(), "reset")

    def complete(self, confirmation: BookingConfirmation) -> None:
        """Record a successful submission, then start a fresh draft."""
        self._locked = False
        self.generation += 1
        self.confirmation = confirmation
        self._commit(BookingDraft(), "completed")

    # ─── Submission lock ─────────────────────────────────────────────

    def lock(self) -> int:
        """Make the draft read-only; returns the generation the lock belongs to."""
        if self._locked:
            raise DraftLockedError("A submission is already in progress for this booking")
        self._locked = True
        logger.debug("draft_locked", session_id=self.session_id, generation=self.generation)
        return self.generation

    def unlock(self, generation: int) -> None:
        # A reset in between already released the lock for a newer draft
        if generation == self.generation:
            self._locked = False

    # ─── Internals ───────────────────────────────────────────────────

    def _check_unlocked(self, field: str) -> None:
        if self._locked:
            logger.warning("draft_mutation_rejected", session_id=self.session_id, field=field)
            raise DraftLockedError("The booking is being submitted and cannot be changed right now")

    def _replace(self, field: str, value, **extra) -> None:
        self._check_unlocked(field)
        updated = self._draft.model_copy(update={field: value, **extra})
        if field != "current_step":
            # Clearing a prerequisite moves the wizard back, never forward
            updated = updated.model_copy(
                update={"current_step": min(updated.current_step, updated.max_reachable_step())}
            )
        self._commit(updated, field)

    def _commit(self, draft: BookingDraft, change: str) -> None:
        self._draft = draft
        logger.debug(
            "draft_mutated",
            session_id=self.session_id,
            change=change,
            step=draft.current_step,
            generation=self.generation,
        )
        for observer in list(self._observers):
            observer(draft, change)
