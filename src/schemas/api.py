"""Request and response bodies of the booking HTTP surface."""

from typing import Any, Optional

from pydantic import BaseModel

from src.schemas.booking import (
    BookingConfirmation,
    BookingDraft,
    CatalogMode,
    SubmissionResult,
    SubmissionState,
)


class ServiceSelectionRequest(BaseModel):
    service_id: Optional[str] = None


class ScheduleRequest(BaseModel):
    date: Optional[str] = None
    start: Optional[str] = None  # "HH:MM"
    end: Optional[str] = None


class ClientInfoRequest(BaseModel):
    """Raw form values; checked by the step's validation schema, not here."""

    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    case_type: Optional[str] = None
    estimated_loss: Optional[Any] = None  # number or formatted string ("£25,000")
    urgency_level: Optional[str] = None
    preferred_contact: Optional[str] = None
    company: Optional[str] = None
    notes: Optional[str] = None
    consent_to_contact: bool = False
    privacy_policy_accepted: bool = False
    data_processing_agreed: bool = False
    marketing_opt_in: bool = False


class StepChangeRequest(BaseModel):
    step: int


class SubmitRequest(BaseModel):
    terms_accepted: bool = False


class SessionResponse(BaseModel):
    session_id: str
    draft: BookingDraft
    max_reachable_step: int
    is_locked: bool = False
    catalog_mode: CatalogMode = CatalogMode.UNLOADED
    submission_state: SubmissionState = SubmissionState.IDLE
    confirmation: Optional[BookingConfirmation] = None


class StepResponse(BaseModel):
    ok: bool
    current_step: int
    next_step: Optional[int] = None
    errors: dict[str, str] = {}
    warnings: dict[str, str] = {}
    options: Optional[list[Any]] = None
    submission: Optional[SubmissionResult] = None
