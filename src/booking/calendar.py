"""iCalendar export of a confirmed booking."""

from datetime import datetime, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from src.config import settings
from src.schemas.booking import BookingConfirmation

ICS_DATETIME = "%Y%m%dT%H%M%SZ"


def _utc(confirmation: BookingConfirmation, tz: ZoneInfo) -> tuple[datetime, datetime]:
    start = datetime.combine(confirmation.booking_date, confirmation.time_slot.start, tzinfo=tz)
    end = datetime.combine(confirmation.booking_date, confirmation.time_slot.end, tzinfo=tz)
    if end <= start:
        end = start + timedelta(minutes=confirmation.duration_minutes)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


def build_ics(confirmation: BookingConfirmation, tz_name: Optional[str] = None) -> str:
    """Render the booking as a single-event VCALENDAR with CRLF line endings."""
    tz = ZoneInfo(tz_name or settings.business_timezone)
    start, end = _utc(confirmation, tz)
    reference = confirmation.result.booking_reference or "booking"
    service = confirmation.service_name

    lines = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        "PRODID:-//Recovery Office//Booking System//EN",
        "BEGIN:VEVENT",
        f"UID:{reference}@recoveryoffice.com",
        f"DTSTAMP:{confirmation.confirmed_at.astimezone(timezone.utc).strftime(ICS_DATETIME)}",
        f"DTSTART:{start.strftime(ICS_DATETIME)}",
        f"DTEND:{end.strftime(ICS_DATETIME)}",
        f"SUMMARY:Recovery Office Consultation - {service}",
        f"DESCRIPTION:Professional consultation session for {service}",
        "LOCATION:Recovery Office (Details in confirmation email)",
        "STATUS:CONFIRMED",
        "END:VEVENT",
        "END:VCALENDAR",
    ]
    return "\r\n".join(lines) + "\r\n"


def ics_filename(confirmation: BookingConfirmation) -> str:
    return f"recovery-office-appointment-{confirmation.result.booking_reference or 'booking'}.ics"
