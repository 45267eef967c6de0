"""Booking repository — creates client and booking records through the API."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

import structlog

from src.api_client.client import RecoveryApiClient, unwrap
from src.booking.errors import IdentifierFormatError, RemoteError
from src.booking.identifiers import is_canonical_identifier
from src.schemas.booking import BookingDraft, ClientInfo

logger = structlog.get_logger()


@dataclass
class CreatedBooking:
    """Fields the orchestrator needs from a POST /bookings response."""

    booking_id: Optional[str]
    reference: Optional[str]
    confirmation_email_sent: Optional[bool] = None
    internal_notification_sent: Optional[bool] = None


def _record_id(record: Any) -> Optional[str]:
    if not isinstance(record, dict):
        return None
    value = record.get("_id") or record.get("id") or record.get("identifier")
    return str(value) if value else None


def _flag(body: dict, data: Any, name: str) -> Optional[bool]:
    for source in (data, body):
        if isinstance(source, dict) and name in source:
            return bool(source[name])
    return None


def build_client_payload(info: ClientInfo) -> dict:
    """POST /clients body derived from the step-3 details."""
    return {
        "firstName": info.first_name,
        "lastName": info.last_name,
        "email": info.email.lower(),
        "phone": info.phone,
        "preferredContactMethod": info.preferred_contact.value,
        "gdprConsent": info.has_required_consents,
        "marketingConsent": info.marketing_opt_in,
        "company": info.company or "",
        "notes": info.notes or "",
        "caseType": info.case_type.value,
        "estimatedLoss": int(info.estimated_loss or 0),
        "urgencyLevel": info.urgency_level.value,
    }


def build_booking_payload(draft: BookingDraft, client_id: str) -> dict:
    """POST /bookings body; the draft must be complete."""
    service = draft.selected_service
    info = draft.client_info
    return {
        "clientId": client_id,
        "serviceId": service.identifier,
        "serviceName": service.name,
        "date": draft.selected_date.isoformat(),
        "timeSlot": draft.selected_time_slot.label,
        "notes": info.notes or f"{service.name} consultation",
        "urgencyLevel": info.urgency_level.value,
        "estimatedValue": int(info.estimated_loss or 0),
        "status": "confirmed",
    }


class BookingRepository:
    """Two-call persistence: client record first, then the booking that references it."""

    def __init__(self, api_client: RecoveryApiClient):
        self.api_client = api_client

    async def create_client(self, info: ClientInfo, idempotency_key: Optional[str] = None) -> str:
        """Create the client record and return its server identifier."""
        record = await self.api_client.create_client(build_client_payload(info), idempotency_key=idempotency_key)
        client_id = _record_id(record)
        if not client_id:
            raise RemoteError("Failed to create client record - no ID returned")

        logger.info("client_created", client_id=client_id, case_type=info.case_type.value)
        return client_id

    async def create_booking(
        self,
        draft: BookingDraft,
        client_id: str,
        idempotency_key: Optional[str] = None,
    ) -> CreatedBooking:
        service_id = draft.selected_service.identifier
        if not (is_canonical_identifier(service_id) and is_canonical_identifier(client_id)):
            raise IdentifierFormatError(
                "Booking identifiers are not valid server identifiers",
                service_id=service_id,
                client_id=client_id,
            )

        body = await self.api_client.create_booking(
            build_booking_payload(draft, client_id),
            idempotency_key=idempotency_key,
        )
        data = unwrap(body)
        reference = None
        for source in (data, body):
            if isinstance(source, dict) and source.get("reference"):
                reference = str(source["reference"])
                break

        created = CreatedBooking(
            booking_id=_record_id(data) or _record_id(body),
            reference=reference,
            confirmation_email_sent=_flag(body, data, "confirmationEmailSent"),
            internal_notification_sent=_flag(body, data, "internalNotificationSent"),
        )

        logger.info(
            "booking_created",
            booking_id=created.booking_id,
            client_id=client_id,
            service_id=draft.selected_service.identifier,
            has_reference=reference is not None,
        )
        return created
