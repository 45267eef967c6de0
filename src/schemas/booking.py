"""Booking wizard data structures shared by the store, the orchestrator and the API."""

from datetime import date, datetime, time
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator


class BookingStep(int, Enum):
    """Wizard steps, in order: service → date/time → client details → confirmation."""

    SERVICE = 1
    SCHEDULE = 2
    CLIENT_INFO = 3
    CONFIRMATION = 4


class CatalogMode(str, Enum):
    UNLOADED = "unloaded"
    LIVE = "live"
    FALLBACK = "fallback"


class CaseType(str, Enum):
    INVESTMENT_FRAUD = "investment-fraud"
    CRYPTOCURRENCY_RECOVERY = "cryptocurrency-recovery"
    FINANCIAL_SCAM = "financial-scam"
    REGULATORY_COMPLAINT = "regulatory-complaint"


class UrgencyLevel(str, Enum):
    STANDARD = "standard"
    URGENT = "urgent"
    EMERGENCY = "emergency"


class ContactMethod(str, Enum):
    EMAIL = "email"
    PHONE = "phone"
    BOTH = "both"


class SubmissionState(str, Enum):
    """Orchestrator states over the confirmation step."""

    IDLE = "idle"
    SUBMITTING_CLIENT = "submitting_client"
    SUBMITTING_BOOKING = "submitting_booking"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class FailureKind(str, Enum):
    VALIDATION = "validation"
    INVALID_IDENTIFIER = "invalid-identifier"
    CLIENT_CREATION = "client-creation"
    BOOKING_CREATION = "booking-creation"
    NETWORK = "network"
    CANCELLED = "cancelled"  # draft was reset while a response was pending


class ServiceCatalogEntry(BaseModel):
    """A bookable service as listed by GET /services (or the fallback catalog)."""

    model_config = ConfigDict(frozen=True)

    identifier: str
    name: str
    description: str = ""
    duration_minutes: int = 60
    price: float = 0
    is_active: bool = True
    features: list[str] = []
    category: Optional[str] = None
    is_fallback: bool = False


class TimeSlot(BaseModel):
    """A bookable slot on the selected date, in business-local time."""

    model_config = ConfigDict(frozen=True)

    start: time
    end: time
    practitioner_id: Optional[str] = None
    is_available: bool = True

    @model_validator(mode="after")
    def _check_order(self) -> "TimeSlot":
        if self.end <= self.start:
            raise ValueError("time slot must end after it starts")
        return self

    @property
    def label(self) -> str:
        """Wire format used by POST /bookings, e.g. ``"09:00-10:00"``."""
        return f"{self.start.strftime('%H:%M')}-{self.end.strftime('%H:%M')}"

    @classmethod
    def from_label(cls, label: str) -> "TimeSlot":
        start, _, end = label.partition("-")
        return cls(start=time.fromisoformat(start.strip()), end=time.fromisoformat(end.strip()))


class ClientInfo(BaseModel):
    """Client details collected at step 3."""

    model_config = ConfigDict(frozen=True)

    first_name: str
    last_name: str
    email: str
    phone: str
    case_type: CaseType
    estimated_loss: Optional[float] = None
    urgency_level: UrgencyLevel = UrgencyLevel.STANDARD
    preferred_contact: ContactMethod = ContactMethod.EMAIL
    company: Optional[str] = None
    notes: Optional[str] = None

    # Consent flags
    consent_to_contact: bool = False
    privacy_policy_accepted: bool = False
    data_processing_agreed: bool = False
    marketing_opt_in: bool = False

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def has_required_consents(self) -> bool:
        return self.consent_to_contact and self.privacy_policy_accepted and self.data_processing_agreed


class BookingDraft(BaseModel):
    """The in-progress booking. Immutable snapshot; the store swaps whole drafts."""

    model_config = ConfigDict(frozen=True)

    selected_service: Optional[ServiceCatalogEntry] = None
    selected_date: Optional[date] = None
    selected_time_slot: Optional[TimeSlot] = None
    client_info: Optional[ClientInfo] = None
    available_services: list[ServiceCatalogEntry] = []
    current_step: int = BookingStep.SERVICE.value

    # Draft lifetime bookkeeping
    idempotency_key: str = Field(default_factory=lambda: uuid4().hex)
    created_client_id: Optional[str] = None  # client created by a failed attempt

    def max_reachable_step(self) -> int:
        """1 + number of consecutive prerequisite steps already populated."""
        step = BookingStep.SERVICE.value
        if self.selected_service is None:
            return step
        step += 1
        if self.selected_date is None or self.selected_time_slot is None:
            return step
        step += 1
        if self.client_info is None:
            return step
        return step + 1

    @property
    def is_empty(self) -> bool:
        return (
            self.selected_service is None
            and self.selected_date is None
            and self.selected_time_slot is None
            and self.client_info is None
            and self.current_step == BookingStep.SERVICE.value
        )


class SubmissionResult(BaseModel):
    """Outcome of one submission attempt. Never retried automatically."""

    success: bool
    booking_reference: Optional[str] = None
    client_identifier: Optional[str] = None
    booking_identifier: Optional[str] = None
    confirmation_email_sent: Optional[bool] = None
    internal_notification_sent: Optional[bool] = None
    error_kind: Optional[FailureKind] = None
    error_message: Optional[str] = None
    field_errors: dict[str, str] = {}
    reference_generated: bool = False  # reference is a local display label only
    requires_reconciliation: bool = False  # client exists without a booking


class BookingConfirmation(BaseModel):
    """What the confirmation view shows after the draft has been reset."""

    result: SubmissionResult
    service_name: str
    duration_minutes: int
    booking_date: date
    time_slot: TimeSlot
    client_email: str
    confirmed_at: datetime
