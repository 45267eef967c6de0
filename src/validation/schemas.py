"""Validation schemas for each wizard step."""

from datetime import timedelta

from src.schemas.booking import CaseType, ContactMethod, UrgencyLevel
from src.validation import rules
from src.validation.rules import ValidationSchema, parse_date

NAME_PATTERN = r"^[a-zA-Z\s'-]+$"
MAX_ESTIMATED_LOSS = 100_000_000


def _is_active(service, context) -> bool:
    return bool(getattr(service, "is_active", True))


def _bookable_lead_time(value, context) -> bool:
    return parse_date(value) > rules.today_from(context)


def _within_horizon(horizon_days: int):
    def check(value, context) -> bool:
        return parse_date(value) <= rules.today_from(context) + timedelta(days=horizon_days)

    return check


def _is_weekday(value, context) -> bool:
    return parse_date(value).weekday() < 5


def _positive_amount(value, context) -> bool:
    amount = rules.parse_formatted_number(value)
    return amount is not None and amount > 0


def _under_loss_cap(value, context) -> bool:
    return rules.parse_formatted_number(value) <= MAX_ESTIMATED_LOSS


SERVICE_SELECTION_SCHEMA: ValidationSchema = {
    "selected_service": [
        rules.required("Please select a service"),
        rules.custom(_is_active, "This service is not currently available"),
    ],
}


def schedule_schema(horizon_days: int) -> ValidationSchema:
    return {
        "selected_date": [
            rules.required("Please select a date"),
            rules.valid_date(),
            rules.future_date("Please select a date in the future"),
            rules.custom(_bookable_lead_time, "Bookings must be made at least one day in advance"),
            rules.custom(
                _within_horizon(horizon_days),
                f"Bookings can be made up to {horizon_days} days in advance",
            ),
            rules.custom(_is_weekday, "Consultations are available Monday to Friday"),
        ],
        "selected_time_slot": [
            rules.required("Please select a time slot"),
        ],
    }


CLIENT_INFO_SCHEMA: ValidationSchema = {
    "first_name": [
        rules.required("First name is required"),
        rules.max_length(50, "First name must be less than 50 characters"),
        rules.pattern(NAME_PATTERN, "Please enter a valid first name"),
    ],
    "last_name": [
        rules.required("Last name is required"),
        rules.max_length(50, "Last name must be less than 50 characters"),
        rules.pattern(NAME_PATTERN, "Please enter a valid last name"),
    ],
    "email": [
        rules.required("Email is required"),
        rules.email(),
    ],
    "phone": [
        rules.required("Phone number is required"),
        rules.phone(),
    ],
    "case_type": [
        rules.required("Please select a case type"),
        rules.one_of(CaseType, "Please select a case type"),
    ],
    "estimated_loss": [
        rules.currency(),
        rules.custom(_positive_amount, "Loss amount must be greater than 0"),
        rules.custom(_under_loss_cap, "Please contact us directly for amounts over £100M"),
    ],
    "preferred_contact": [
        rules.one_of(ContactMethod, "Please select a preferred contact method"),
    ],
    "urgency_level": [
        rules.one_of(UrgencyLevel, "Please select urgency level"),
    ],
    "company": [
        rules.max_length(100, "Company name must be less than 100 characters"),
    ],
    "notes": [
        rules.max_length(1000, "Notes must be less than 1000 characters"),
    ],
    "consent_to_contact": [
        rules.accepted("Consent to contact is required to proceed"),
    ],
    "privacy_policy_accepted": [
        rules.accepted("Privacy policy acceptance is required"),
    ],
    "data_processing_agreed": [
        rules.accepted("Data processing agreement is required"),
    ],
}

CONFIRMATION_SCHEMA: ValidationSchema = {
    "terms_accepted": [
        rules.accepted("Please accept the terms and conditions"),
    ],
}
