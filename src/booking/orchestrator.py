"""Submission orchestrator — the two ordered API calls behind the confirmation step.

States: IDLE → SUBMITTING_CLIENT → SUBMITTING_BOOKING → SUCCEEDED | FAILED(kind).

Nothing is retried automatically. A failed attempt leaves the draft intact so
the user can correct it and submit again; a client created by an attempt
whose booking call failed is remembered on the draft and reused by the retry.
The draft is locked while a request is pending, and a response that arrives
after the draft was reset is discarded.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Optional

import structlog

from src.api_client.client import RecoveryApiClient
from src.booking.errors import (
    ApiUnavailableError,
    IdentifierFormatError,
    PartialSubmissionError,
    RemoteError,
    SubmissionInProgressError,
)
from src.booking.identifiers import is_canonical_identifier, validate_identifiers_for_submission
from src.booking.reference import generate_booking_reference
from src.booking.store import BookingStore
from src.config import settings
from src.repositories.booking import BookingRepository, CreatedBooking
from src.schemas.booking import (
    BookingConfirmation,
    BookingDraft,
    FailureKind,
    SubmissionResult,
    SubmissionState,
)
from src.validation.rules import error_messages, validate_form
from src.validation.schemas import (
    CLIENT_INFO_SCHEMA,
    CONFIRMATION_SCHEMA,
    SERVICE_SELECTION_SCHEMA,
    schedule_schema,
)

logger = structlog.get_logger()

SUBMITTING_STATES = (SubmissionState.SUBMITTING_CLIENT, SubmissionState.SUBMITTING_BOOKING)

FAILURE_MESSAGES = {
    FailureKind.VALIDATION: "Please check your information and try again.",
    FailureKind.INVALID_IDENTIFIER: (
        "This service cannot be booked online right now. "
        "Please try again later or contact us directly."
    ),
    FailureKind.CANCELLED: "The booking was cancelled before it completed.",
}


def validate_draft_for_submission(
    draft: BookingDraft,
    terms_accepted: bool,
    today: Optional[date] = None,
) -> dict[str, str]:
    """Blocking field errors across all steps; empty dict means submittable."""
    context = {"today": today} if today else {}
    errors = {}
    errors.update(
        error_messages(
            validate_form({"selected_service": draft.selected_service}, SERVICE_SELECTION_SCHEMA, context)
        )
    )
    errors.update(
        error_messages(
            validate_form(
                {
                    "selected_date": draft.selected_date,
                    "selected_time_slot": draft.selected_time_slot,
                },
                schedule_schema(settings.booking_horizon_days),
                context,
            )
        )
    )
    if draft.client_info is None:
        errors["client_info"] = "Please provide your contact details"
    else:
        errors.update(error_messages(validate_form(draft.client_info.model_dump(), CLIENT_INFO_SCHEMA, context)))
    errors.update(error_messages(validate_form({"terms_accepted": terms_accepted}, CONFIRMATION_SCHEMA)))
    return errors


class SubmissionOrchestrator:
    """Runs one submission at a time for the store it is bound to."""

    def __init__(
        self,
        store: BookingStore,
        repository: BookingRepository,
        lookup_client: Optional[RecoveryApiClient] = None,
    ):
        self.store = store
        self.repository = repository
        # Only used for the best-effort "exists remotely" identifier check
        self.lookup_client = lookup_client
        self.state = SubmissionState.IDLE
        self.failure_kind: Optional[FailureKind] = None
        self.last_result: Optional[SubmissionResult] = None
        store.subscribe(self._on_draft_change)

    @property
    def is_submitting(self) -> bool:
        return self.state in SUBMITTING_STATES

    # ─── Public entry point ──────────────────────────────────────────

    async def submit(self, terms_accepted: bool, today: Optional[date] = None) -> SubmissionResult:
        """Validate the draft, create the client, then create the booking."""
        if self.is_submitting:
            raise SubmissionInProgressError("This booking is already being submitted")

        draft = self.store.draft
        field_errors = validate_draft_for_submission(draft, terms_accepted, today=today)
        if field_errors:
            return self._fail(FailureKind.VALIDATION, field_errors=field_errors)

        # Fallback catalog entries never reach the API, not even the client call
        service = draft.selected_service
        if service.is_fallback or not is_canonical_identifier(service.identifier):
            logger.warning(
                "submission_blocked_fallback_service",
                session_id=self.store.session_id,
                service_id=service.identifier,
            )
            return self._fail(FailureKind.INVALID_IDENTIFIER)

        generation = self.store.lock()
        try:
            return await self._run(draft, generation)
        finally:
            self.store.unlock(generation)

    # ─── Phases ──────────────────────────────────────────────────────

    async def _run(self, draft: BookingDraft, generation: int) -> SubmissionResult:
        self._transition(SubmissionState.SUBMITTING_CLIENT)

        client_id = draft.created_client_id
        if client_id:
            logger.info("client_reused", session_id=self.store.session_id, client_id=client_id)
        else:
            try:
                client_id = await self.repository.create_client(
                    draft.client_info,
                    idempotency_key=f"{draft.idempotency_key}-client",
                )
            except ApiUnavailableError as e:
                if self._is_stale(generation):
                    return self._discard(None)
                return self._fail(FailureKind.NETWORK, message=e.message)
            except RemoteError as e:
                if self._is_stale(generation):
                    return self._discard(None)
                return self._fail(FailureKind.CLIENT_CREATION, message=e.message)

        if self._is_stale(generation):
            return self._discard(client_id)

        self._transition(SubmissionState.SUBMITTING_BOOKING)
        report = await validate_identifiers_for_submission(
            draft.selected_service.identifier,
            client_id,
            api_client=self.lookup_client if settings.verify_identifiers_remotely else None,
        )
        if self._is_stale(generation):
            return self._discard(client_id)
        if not report.can_submit:
            return self._fail(
                FailureKind.INVALID_IDENTIFIER,
                client_id=client_id,
                requires_reconciliation=True,
            )

        try:
            created = await self.repository.create_booking(
                draft,
                client_id,
                idempotency_key=f"{draft.idempotency_key}-booking",
            )
        except IdentifierFormatError:
            if self._is_stale(generation):
                return self._discard(client_id)
            return self._fail(
                FailureKind.INVALID_IDENTIFIER,
                client_id=client_id,
                requires_reconciliation=True,
            )
        except RemoteError as e:
            if self._is_stale(generation):
                return self._discard(client_id)
            error = PartialSubmissionError(client_id, e)
            self.store.remember_created_client(client_id)
            logger.error(
                "partial_submission",
                session_id=self.store.session_id,
                client_id=client_id,
                status=e.status_code,
                message=e.message,
            )
            return self._fail(
                error.kind,
                message=error.message,
                client_id=client_id,
                requires_reconciliation=True,
            )

        if self._is_stale(generation):
            return self._discard(client_id, booking_id=created.booking_id)

        return self._succeed(draft, client_id, created)

    # ─── Terminal states ─────────────────────────────────────────────

    def _succeed(self, draft: BookingDraft, client_id: str, created: CreatedBooking) -> SubmissionResult:
        reference = created.reference or generate_booking_reference()
        result = SubmissionResult(
            success=True,
            booking_reference=reference,
            client_identifier=client_id,
            booking_identifier=created.booking_id,
            confirmation_email_sent=created.confirmation_email_sent,
            internal_notification_sent=created.internal_notification_sent,
            reference_generated=created.reference is None,
        )
        self._transition(SubmissionState.SUCCEEDED)
        self.last_result = result
        self.failure_kind = None
        self.store.complete(
            BookingConfirmation(
                result=result,
                service_name=draft.selected_service.name,
                duration_minutes=draft.selected_service.duration_minutes,
                booking_date=draft.selected_date,
                time_slot=draft.selected_time_slot,
                client_email=draft.client_info.email,
                confirmed_at=datetime.now(timezone.utc),
            )
        )
        logger.info(
            "submission_succeeded",
            session_id=self.store.session_id,
            booking_id=created.booking_id,
            reference=reference,
            reference_generated=result.reference_generated,
            confirmation_email_sent=created.confirmation_email_sent,
        )
        return result

    def _fail(
        self,
        kind: FailureKind,
        message: Optional[str] = None,
        client_id: Optional[str] = None,
        booking_id: Optional[str] = None,
        field_errors: Optional[dict[str, str]] = None,
        requires_reconciliation: bool = False,
    ) -> SubmissionResult:
        result = SubmissionResult(
            success=False,
            client_identifier=client_id,
            booking_identifier=booking_id,
            error_kind=kind,
            error_message=message or FAILURE_MESSAGES.get(kind),
            field_errors=field_errors or {},
            requires_reconciliation=requires_reconciliation,
        )
        self._transition(SubmissionState.FAILED)
        self.failure_kind = kind
        self.last_result = result
        logger.warning(
            "submission_failed",
            session_id=self.store.session_id,
            kind=kind.value,
            client_id=client_id,
            requires_reconciliation=requires_reconciliation,
        )
        return result

    def _discard(self, client_id: Optional[str], booking_id: Optional[str] = None) -> SubmissionResult:
        logger.warning(
            "late_response_discarded",
            session_id=self.store.session_id,
            client_id=client_id,
            booking_id=booking_id,
        )
        return self._fail(
            FailureKind.CANCELLED,
            client_id=client_id,
            booking_id=booking_id,
            requires_reconciliation=client_id is not None,
        )

    # ─── Helpers ─────────────────────────────────────────────────────

    def _is_stale(self, generation: int) -> bool:
        return self.store.generation != generation

    def _transition(self, new_state: SubmissionState) -> None:
        logger.info(
            "submission_transition",
            session_id=self.store.session_id,
            from_state=self.state.value,
            to_state=new_state.value,
        )
        self.state = new_state

    def _on_draft_change(self, draft: BookingDraft, change: str) -> None:
        # A cancelled flow starts over; a pending submission finishes on its own
        if change == "reset" and not self.is_submitting:
            self.state = SubmissionState.IDLE
            self.failure_kind = None
            self.last_result = None
