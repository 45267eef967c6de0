"""Shared identifiers, dates and raw API records for tests."""

from datetime import date

SERVICE_ID = "6830bb99da51afb0a6180bee"
CLIENT_ID = "6830bb99da51afb0a6180bef"
BOOKING_ID = "6830bb99da51afb0a6180bf0"

TODAY = date(2026, 10, 19)  # Monday
BOOKING_DATE = date(2026, 10, 21)  # Wednesday
SATURDAY = date(2026, 10, 24)


def raw_service(**overrides) -> dict:
    record = {
        "_id": SERVICE_ID,
        "name": "Investment Fraud Recovery",
        "description": "Recovery service for investment fraud",
        "durationMinutes": 90,
        "price": 0,
        "isActive": True,
        "features": ["Case assessment"],
        "category": "fraud-recovery",
    }
    record.update(overrides)
    return record
