"""Base class for wizard steps."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Optional

from src.booking.session import BookingSession
from src.schemas.booking import BookingStep, SubmissionResult


@dataclass
class StepResult:
    """Result of processing a wizard step."""

    errors: dict[str, str] = field(default_factory=dict)  # blocking, per field
    warnings: dict[str, str] = field(default_factory=dict)
    next_step: Optional[int] = None  # None = stay on current step
    options: Optional[list[Any]] = None  # services / slots offered by the step
    submission: Optional[SubmissionResult] = None

    @property
    def ok(self) -> bool:
        return not self.errors


class BaseStep(ABC):
    """Abstract base class for all wizard steps."""

    step: BookingStep

    @abstractmethod
    async def process(
        self,
        payload: dict,
        session: BookingSession,
        today: Optional[date] = None,
    ) -> StepResult:
        """Validate user input and write it to the session's store.

        Args:
            payload: Raw form values submitted for this step
            session: The wizard session (shared store, catalog, orchestrator)
            today: Clock override for date rules

        Returns:
            StepResult with field errors, or the step to move to
        """
        ...

    async def get_options(self, session: BookingSession, **params: Any) -> StepResult:
        """Choices to present when entering this step (none by default)."""
        return StepResult()
