"""Service selection step — pick one entry from the session's catalog."""

from datetime import date
from typing import Any, Optional

import structlog

from src.booking.session import BookingSession
from src.schemas.booking import BookingStep
from src.validation.rules import error_messages, validate_form
from src.validation.schemas import SERVICE_SELECTION_SCHEMA
from src.wizard.steps.base import BaseStep, StepResult

logger = structlog.get_logger()

FALLBACK_NOTICE = (
    "Live service information is temporarily unavailable. "
    "You can review our services, but online booking is paused until we reconnect."
)


class ServiceSelectionStep(BaseStep):
    """Offer the catalog and record the chosen service."""

    step = BookingStep.SERVICE

    async def get_options(self, session: BookingSession, **params: Any) -> StepResult:
        """Load the catalog (once per session) and publish it on the draft."""
        services = await session.catalog.load_services()
        if not session.store.is_locked:
            session.store.set_available_services(services)

        warnings = {}
        if session.catalog.is_fallback:
            warnings["service"] = FALLBACK_NOTICE
        return StepResult(options=session.catalog.active_services(), warnings=warnings)

    async def process(
        self,
        payload: dict,
        session: BookingSession,
        today: Optional[date] = None,
    ) -> StepResult:
        """Select the service by identifier and advance to scheduling."""
        await session.catalog.load_services()
        service_id = payload.get("service_id")
        service = session.catalog.get(service_id) if service_id else None

        if service_id and service is None:
            return StepResult(errors={"service_id": "Please select a service from the list"})

        errors = error_messages(validate_form({"selected_service": service}, SERVICE_SELECTION_SCHEMA))
        if errors:
            return StepResult(errors=errors)

        store = session.store
        previous = store.draft.selected_service
        store.set_selected_service(service)
        if previous is not None and previous.identifier != service.identifier:
            # Slots depend on the service's duration and availability
            store.set_selected_time_slot(None)

        warnings = {}
        if not session.catalog.is_submittable(service):
            warnings["service_id"] = FALLBACK_NOTICE

        store.set_current_step(BookingStep.SCHEDULE.value)
        logger.info(
            "service_selected",
            session_id=session.session_id,
            service_id=service.identifier,
            catalog_mode=session.catalog.mode.value,
        )
        return StepResult(next_step=BookingStep.SCHEDULE.value, warnings=warnings)
