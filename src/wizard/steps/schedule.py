"""Date and time step.

Live services ask the API which slots are free on the chosen date. Fallback
services (and live ones whose availability lookup fails) are offered the
standard business-hours slots instead.
"""

from datetime import date, datetime, time
from typing import Any, Optional
from zoneinfo import ZoneInfo

import structlog
from pydantic import ValidationError as SchemaError

from src.booking.errors import RemoteError
from src.booking.session import BookingSession
from src.config import settings
from src.schemas.booking import BookingStep, ServiceCatalogEntry, TimeSlot
from src.validation.rules import error_messages, parse_date, validate_form
from src.validation.schemas import schedule_schema
from src.wizard.steps.base import BaseStep, StepResult

logger = structlog.get_logger()


def business_hours_slots() -> list[TimeSlot]:
    return [TimeSlot.from_label(label) for label in settings.business_hours]


def _parse_clock(value: str, tz: ZoneInfo) -> time:
    """``"09:00"`` or an ISO timestamp converted to business-local time."""
    if "T" not in value:
        return time.fromisoformat(value)
    moment = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if moment.tzinfo is not None:
        moment = moment.astimezone(tz)
    return moment.time().replace(second=0, microsecond=0)


def parse_slot(raw: dict, tz: ZoneInfo) -> Optional[TimeSlot]:
    """Map an availability record to a slot; None if it cannot be read."""
    try:
        if raw.get("startTime") and raw.get("endTime"):
            slot = TimeSlot(
                start=_parse_clock(str(raw["startTime"]), tz),
                end=_parse_clock(str(raw["endTime"]), tz),
                practitioner_id=raw.get("practitionerId"),
                is_available=raw.get("isAvailable", True) is not False,
            )
        elif raw.get("time"):
            slot = TimeSlot.from_label(str(raw["time"]))
            slot = slot.model_copy(update={"is_available": raw.get("isAvailable", True) is not False})
        else:
            return None
    except (SchemaError, TypeError, ValueError):
        logger.warning("time_slot_rejected", raw=raw)
        return None
    return slot


class ScheduleStep(BaseStep):
    """Choose a weekday date within the booking horizon and one of its free slots."""

    step = BookingStep.SCHEDULE

    async def available_slots(self, session: BookingSession, service: ServiceCatalogEntry, day: date) -> list[TimeSlot]:
        if not session.catalog.is_submittable(service):
            return business_hours_slots()

        tz = ZoneInfo(settings.business_timezone)
        try:
            raw_slots = await session.catalog.api_client.get_available_time_slots(service.identifier, day)
        except RemoteError as e:
            logger.warning(
                "availability_fallback",
                session_id=session.session_id,
                service_id=service.identifier,
                reason=e.message,
            )
            return business_hours_slots()

        slots = [s for s in (parse_slot(raw, tz) for raw in raw_slots) if s]
        return [s for s in slots if s.is_available]

    async def get_options(self, session: BookingSession, **params: Any) -> StepResult:
        """Free slots for ``date`` (ISO string or date) and the selected service."""
        service = session.store.draft.selected_service
        if service is None:
            return StepResult(errors={"selected_service": "Please select a service"})

        day = parse_date(params.get("date"))
        if day is None:
            return StepResult(errors={"selected_date": "Please enter a valid date"})

        return StepResult(options=await self.available_slots(session, service, day))

    async def process(
        self,
        payload: dict,
        session: BookingSession,
        today: Optional[date] = None,
    ) -> StepResult:
        """Record date and slot, then advance to client details."""
        slot = None
        if payload.get("start") and payload.get("end"):
            try:
                slot = TimeSlot(start=payload["start"], end=payload["end"])
            except SchemaError:
                return StepResult(errors={"selected_time_slot": "Please select a valid time slot"})

        context = {"today": today} if today else {}
        values = {"selected_date": payload.get("date"), "selected_time_slot": slot}
        errors = error_messages(validate_form(values, schedule_schema(settings.booking_horizon_days), context))
        if errors:
            return StepResult(errors=errors)

        store = session.store
        day = parse_date(payload["date"])
        offered = await self.available_slots(session, store.draft.selected_service, day)
        chosen = next((s for s in offered if s.start == slot.start and s.end == slot.end), None)
        if chosen is None:
            return StepResult(
                errors={"selected_time_slot": "This time slot is no longer available"},
                options=offered,
            )

        store.set_selected_date(day)
        store.set_selected_time_slot(chosen)
        store.set_current_step(BookingStep.CLIENT_INFO.value)
        logger.info(
            "schedule_selected",
            session_id=session.session_id,
            date=day.isoformat(),
            slot=chosen.label,
        )
        return StepResult(next_step=BookingStep.CLIENT_INFO.value)
