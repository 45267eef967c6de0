"""Wizard engine — routes step submissions to their handlers.

Checks that the requested step is reachable from the current draft, runs
the step handler against the session's shared store and persists the
resulting snapshot.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Optional

import structlog

from src.booking.errors import StepOrderError
from src.booking.session import BookingSession, SessionRegistry
from src.schemas.booking import BookingStep, SubmissionResult
from src.wizard.steps.base import BaseStep, StepResult
from src.wizard.steps.client_info import ClientInfoStep
from src.wizard.steps.confirmation import ConfirmationStep
from src.wizard.steps.schedule import ScheduleStep
from src.wizard.steps.service_selection import ServiceSelectionStep

logger = structlog.get_logger()

STEP_HANDLERS: dict[int, BaseStep] = {
    BookingStep.SERVICE.value: ServiceSelectionStep(),
    BookingStep.SCHEDULE.value: ScheduleStep(),
    BookingStep.CLIENT_INFO.value: ClientInfoStep(),
    BookingStep.CONFIRMATION.value: ConfirmationStep(),
}


class WizardEngine:
    """Main orchestrator for the booking wizard."""

    def __init__(self, registry: SessionRegistry):
        self.registry = registry

    # ─── Public entry points ─────────────────────────────────────────

    async def options(self, session: BookingSession, step: int, **params: Any) -> StepResult:
        handler = self._handler(step)
        result = await handler.get_options(session, **params)
        await self.registry.save(session)
        return result

    async def handle_step(
        self,
        session: BookingSession,
        step: int,
        payload: dict,
        today: Optional[date] = None,
    ) -> StepResult:
        """Validate and apply one step's input; errors leave the draft untouched."""
        handler = self._handler(step)
        self._check_reachable(session, step)

        result = await handler.process(payload, session, today=today)
        await self.registry.save(session)

        logger.info(
            "step_processed",
            session_id=session.session_id,
            step=step,
            ok=result.ok,
            next_step=result.next_step,
            current_step=session.store.draft.current_step,
        )
        return result

    async def go_to_step(self, session: BookingSession, step: int) -> int:
        """Jump back to an earlier step, or forward to a reachable one."""
        session.store.set_current_step(step)
        await self.registry.save(session)
        return session.store.draft.current_step

    async def submit(
        self,
        session: BookingSession,
        terms_accepted: bool,
        today: Optional[date] = None,
    ) -> SubmissionResult:
        async with self.registry.hold(session):
            result = await self.handle_step(
                session,
                BookingStep.CONFIRMATION.value,
                {"terms_accepted": terms_accepted},
                today=today,
            )
        return result.submission

    async def reset(self, session: BookingSession) -> None:
        session.store.reset_booking()
        await self.registry.save(session)
        logger.info("booking_reset", session_id=session.session_id)

    # ─── Helpers ─────────────────────────────────────────────────────

    @staticmethod
    def _handler(step: int) -> BaseStep:
        handler = STEP_HANDLERS.get(step)
        if handler is None:
            raise StepOrderError(f"Unknown booking step {step}")
        return handler

    @staticmethod
    def _check_reachable(session: BookingSession, step: int) -> None:
        allowed = session.store.draft.max_reachable_step()
        if step > allowed:
            raise StepOrderError(f"Step {step} is not reachable yet; complete step {allowed} first")
