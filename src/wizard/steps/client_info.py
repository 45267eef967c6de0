"""Client details step — contact data, case details and consents."""

from datetime import date
from typing import Optional

import structlog

from src.booking.session import BookingSession
from src.schemas.booking import BookingStep, ClientInfo
from src.validation.rules import error_messages, parse_formatted_number, validate_form
from src.validation.schemas import CLIENT_INFO_SCHEMA
from src.wizard.steps.base import BaseStep, StepResult

logger = structlog.get_logger()

TEXT_FIELDS = ("first_name", "last_name", "email", "phone", "company", "notes")
CONSENT_FIELDS = (
    "consent_to_contact",
    "privacy_policy_accepted",
    "data_processing_agreed",
    "marketing_opt_in",
)


def normalize_client_form(payload: dict) -> dict:
    """Trim text inputs and fill contact defaults; a consent counts only when it is literally True."""
    values = dict(payload)
    for name in TEXT_FIELDS:
        value = values.get(name)
        if isinstance(value, str):
            values[name] = value.strip()
    for name in CONSENT_FIELDS:
        values[name] = values.get(name) is True
    values["urgency_level"] = values.get("urgency_level") or "standard"
    values["preferred_contact"] = values.get("preferred_contact") or "email"
    return values


class ClientInfoStep(BaseStep):
    step = BookingStep.CLIENT_INFO

    async def process(
        self,
        payload: dict,
        session: BookingSession,
        today: Optional[date] = None,
    ) -> StepResult:
        values = normalize_client_form(payload)
        errors = error_messages(validate_form(values, CLIENT_INFO_SCHEMA))
        if errors:
            return StepResult(errors=errors)

        loss = values.get("estimated_loss")
        info = ClientInfo(
            first_name=values["first_name"],
            last_name=values["last_name"],
            email=values["email"],
            phone=values["phone"],
            case_type=values["case_type"],
            estimated_loss=parse_formatted_number(loss) if loss not in (None, "") else None,
            urgency_level=values["urgency_level"],
            preferred_contact=values["preferred_contact"],
            company=values.get("company") or None,
            notes=values.get("notes") or None,
            consent_to_contact=values["consent_to_contact"],
            privacy_policy_accepted=values["privacy_policy_accepted"],
            data_processing_agreed=values["data_processing_agreed"],
            marketing_opt_in=values["marketing_opt_in"],
        )

        store = session.store
        store.set_client_info(info)
        store.set_current_step(BookingStep.CONFIRMATION.value)
        logger.info(
            "client_info_saved",
            session_id=session.session_id,
            case_type=info.case_type.value,
            urgency=info.urgency_level.value,
        )
        return StepResult(next_step=BookingStep.CONFIRMATION.value)
