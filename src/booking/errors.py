"""Booking flow errors.

Validation problems are values (``ValidationError``) and are never raised.
Everything here aborts an operation; the orchestrator turns these into a
terminal ``Failed(kind)`` result instead of letting them escape.
"""

from typing import Optional

from src.schemas.booking import FailureKind


class BookingError(Exception):
    """Base class for booking flow failures."""

    kind: Optional[FailureKind] = None

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message


class DraftLockedError(BookingError):
    """A mutator was called while the draft is locked for submission."""


class StepOrderError(BookingError):
    """A step was requested before its prerequisites were populated."""


class SubmissionInProgressError(BookingError):
    """Submit was triggered while another attempt for the same draft is pending."""


class IdentifierFormatError(BookingError):
    """An identifier is not canonical; the request is never sent."""

    kind = FailureKind.INVALID_IDENTIFIER

    def __init__(
        self,
        message: str,
        service_id: Optional[str] = None,
        client_id: Optional[str] = None,
    ):
        super().__init__(message)
        self.service_id = service_id
        self.client_id = client_id


class RemoteError(BookingError):
    """The API rejected a request. ``message`` is the server's text, verbatim."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ApiUnavailableError(RemoteError):
    """The API could not be reached (connection error, timeout)."""

    kind = FailureKind.NETWORK


class PartialSubmissionError(BookingError):
    """The client record exists but the booking does not; needs reconciliation."""

    kind = FailureKind.BOOKING_CREATION

    def __init__(self, client_id: str, cause: RemoteError):
        super().__init__(cause.message)
        self.client_id = client_id
        self.cause = cause
        if isinstance(cause, ApiUnavailableError):
            self.kind = FailureKind.NETWORK
