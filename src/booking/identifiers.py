"""Identifier integrity checks run before anything is sent to the API.

The backend only accepts 24-character hexadecimal identifiers. Fallback
catalog slugs such as ``"emergency-crypto"`` must never reach a request.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any, Optional

import structlog
from pydantic import BaseModel

from src.booking.errors import RemoteError

if TYPE_CHECKING:
    from src.api_client.client import RecoveryApiClient

logger = structlog.get_logger()

CANONICAL_IDENTIFIER = re.compile(r"^[0-9a-fA-F]{24}$")


class IdentifierCheck(BaseModel):
    value: Optional[str] = None
    is_valid_format: bool
    exists_remotely: Optional[bool] = None  # None = not checked / unknown


class SubmissionIdentifierReport(BaseModel):
    service_id: IdentifierCheck
    client_id: IdentifierCheck
    can_submit: bool


def is_canonical_identifier(value: Any) -> bool:
    return isinstance(value, str) and CANONICAL_IDENTIFIER.fullmatch(value) is not None


async def validate_identifiers_for_submission(
    service_id: Optional[str],
    client_id: Optional[str],
    api_client: Optional["RecoveryApiClient"] = None,
) -> SubmissionIdentifierReport:
    """Check both identifiers; ``can_submit`` depends on format only.

    When an API client is given, canonical identifiers are additionally
    looked up remotely. Lookup failures degrade to ``exists_remotely=None``
    and never block submission.
    """
    service_check = IdentifierCheck(value=service_id, is_valid_format=is_canonical_identifier(service_id))
    client_check = IdentifierCheck(value=client_id, is_valid_format=is_canonical_identifier(client_id))

    if api_client is not None:
        if service_check.is_valid_format:
            service_check.exists_remotely = await _exists(api_client.service_exists, service_id)
        if client_check.is_valid_format:
            client_check.exists_remotely = await _exists(api_client.client_exists, client_id)

    report = SubmissionIdentifierReport(
        service_id=service_check,
        client_id=client_check,
        can_submit=service_check.is_valid_format and client_check.is_valid_format,
    )

    if not report.can_submit:
        logger.warning(
            "identifier_check_failed",
            service_id=service_id,
            service_valid=service_check.is_valid_format,
            client_id=client_id,
            client_valid=client_check.is_valid_format,
        )
    elif service_check.exists_remotely is False or client_check.exists_remotely is False:
        logger.warning(
            "identifier_not_found_remotely",
            service_id=service_id,
            service_exists=service_check.exists_remotely,
            client_id=client_id,
            client_exists=client_check.exists_remotely,
        )

    return report


async def _exists(lookup, identifier: str) -> Optional[bool]:
    try:
        return await lookup(identifier)
    except RemoteError as e:
        logger.info("identifier_lookup_unavailable", identifier=identifier, error=e.message)
        return None
