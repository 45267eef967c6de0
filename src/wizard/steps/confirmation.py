"""Confirmation step — hands the completed draft to the submission orchestrator."""

from datetime import date
from typing import Optional

from src.booking.session import BookingSession
from src.schemas.booking import BookingStep
from src.wizard.steps.base import BaseStep, StepResult


class ConfirmationStep(BaseStep):
    step = BookingStep.CONFIRMATION

    async def process(
        self,
        payload: dict,
        session: BookingSession,
        today: Optional[date] = None,
    ) -> StepResult:
        result = await session.orchestrator.submit(payload.get("terms_accepted") is True, today=today)
        if result.success:
            return StepResult(submission=result, next_step=BookingStep.SERVICE.value)
        return StepResult(submission=result, errors=dict(result.field_errors))
