"""Validation engine — rule factories and schema evaluation for wizard forms.

Rules are pure: ``validator(value, context)`` returns a ``ValidationError`` or
``None``. Every rule except ``required``/``accepted`` treats an empty value
(``None`` or ``""``) as not applicable, so a field can be optional and still
type-checked.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any, Callable, Iterable, Mapping, Optional

EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
PHONE_PATTERN = re.compile(r"^\+?[0-9]{10,15}$")
_FLOAT_PREFIX = re.compile(r"^\s*[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?")
_NON_NUMERIC = re.compile(r"[^0-9.-]")


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


@dataclass(frozen=True)
class ValidationError:
    """Field-level finding. Only ``Severity.ERROR`` blocks step advancement."""

    message: str
    severity: Severity = Severity.ERROR


Validator = Callable[[Any, Optional[Mapping[str, Any]]], Optional[ValidationError]]


@dataclass(frozen=True)
class ValidationRule:
    validator: Validator
    message: str
    severity: Severity = Severity.ERROR

    def __call__(self, value: Any, context: Optional[Mapping[str, Any]] = None) -> Optional[ValidationError]:
        return self.validator(value, context)


ValidationSchema = Mapping[str, list[ValidationRule]]


def is_empty(value: Any) -> bool:
    return value is None or value == ""


def parse_float(value: Any) -> Optional[float]:
    """Lenient, locale-agnostic float parsing: leading numeric prefix or None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    match = _FLOAT_PREFIX.match(str(value))
    if match is None:
        return None
    return float(match.group(0))


def parse_date(value: Any) -> Optional[date]:
    """Accept ``date``/``datetime`` objects and ISO strings; None if unparseable."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None
    text = value.strip().replace("Z", "+00:00")
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        return None


def today_from(context: Optional[Mapping[str, Any]]) -> date:
    if context and isinstance(context.get("today"), date):
        return context["today"]
    return date.today()


def _error(message: str, severity: Severity = Severity.ERROR) -> ValidationError:
    return ValidationError(message=message, severity=severity)


# ─── Rule factories ──────────────────────────────────────────────────


def required(message: str = "This field is required") -> ValidationRule:
    def check(value, context=None):
        return _error(message) if is_empty(value) else None

    return ValidationRule(check, message)


def min_value(minimum: float, message: Optional[str] = None) -> ValidationRule:
    message = message or f"Value must be at least {minimum:g}"

    def check(value, context=None):
        if is_empty(value):
            return None
        number = parse_float(value)
        if number is None or number < minimum:
            return _error(message)
        return None

    return ValidationRule(check, message)


def max_value(maximum: float, message: Optional[str] = None) -> ValidationRule:
    message = message or f"Value must be at most {maximum:g}"

    def check(value, context=None):
        if is_empty(value):
            return None
        number = parse_float(value)
        if number is None or number > maximum:
            return _error(message)
        return None

    return ValidationRule(check, message)


def value_range(minimum: float, maximum: float, message: Optional[str] = None) -> ValidationRule:
    message = message or f"Value must be between {minimum:g} and {maximum:g}"

    def check(value, context=None):
        if is_empty(value):
            return None
        number = parse_float(value)
        if number is None or number < minimum or number > maximum:
            return _error(message)
        return None

    return ValidationRule(check, message)


def email(message: str = "Please enter a valid email address") -> ValidationRule:
    def check(value, context=None):
        if is_empty(value):
            return None
        return None if EMAIL_PATTERN.match(str(value)) else _error(message)

    return ValidationRule(check, message)


def phone(message: str = "Please enter a valid phone number") -> ValidationRule:
    def check(value, context=None):
        if is_empty(value):
            return None
        digits = re.sub(r"\D", "", str(value))
        return None if PHONE_PATTERN.match(digits) else _error(message)

    return ValidationRule(check, message)


def parse_formatted_number(value: Any) -> Optional[float]:
    # "£1,250.00" / "12.5 %" → strip formatting before parsing
    cleaned = _NON_NUMERIC.sub("", value) if isinstance(value, str) else str(value)
    return parse_float(cleaned)


def currency(message: str = "Please enter a valid monetary amount") -> ValidationRule:
    def check(value, context=None):
        if is_empty(value):
            return None
        return None if parse_formatted_number(value) is not None else _error(message)

    return ValidationRule(check, message)


def percentage(message: str = "Please enter a valid percentage") -> ValidationRule:
    def check(value, context=None):
        if is_empty(value):
            return None
        return None if parse_formatted_number(value) is not None else _error(message)

    return ValidationRule(check, message)


def valid_date(message: str = "Please enter a valid date") -> ValidationRule:
    def check(value, context=None):
        if is_empty(value):
            return None
        return None if parse_date(value) is not None else _error(message)

    return ValidationRule(check, message)


def future_date(message: str = "Please enter a future date") -> ValidationRule:
    """Today counts as future; ``context["today"]`` overrides the clock."""

    def check(value, context=None):
        if is_empty(value):
            return None
        parsed = parse_date(value)
        if parsed is None:
            return _error("Please enter a valid date")
        return _error(message) if parsed < today_from(context) else None

    return ValidationRule(check, message)


def past_date(message: str = "Please enter a past date") -> ValidationRule:
    def check(value, context=None):
        if is_empty(value):
            return None
        parsed = parse_date(value)
        if parsed is None:
            return _error("Please enter a valid date")
        return _error(message) if parsed > today_from(context) else None

    return ValidationRule(check, message)


def credit_card(message: str = "Please enter a valid credit card number") -> ValidationRule:
    def check(value, context=None):
        if is_empty(value):
            return None
        number = re.sub(r"[\s-]", "", str(value))
        if not number.isdigit() or not 13 <= len(number) <= 19:
            return _error(message)
        return None if luhn_checksum_ok(number) else _error(message)

    return ValidationRule(check, message)


def luhn_checksum_ok(number: str) -> bool:
    total = 0
    for index, char in enumerate(reversed(number)):
        digit = int(char)
        if index % 2 == 1:
            digit *= 2
            if digit > 9:
                digit -= 9
        total += digit
    return total % 10 == 0


def min_length(length: int, message: Optional[str] = None) -> ValidationRule:
    message = message or f"Must be at least {length} characters"

    def check(value, context=None):
        if is_empty(value):
            return None
        return _error(message) if len(str(value)) < length else None

    return ValidationRule(check, message)


def max_length(length: int, message: Optional[str] = None) -> ValidationRule:
    message = message or f"Must be less than {length} characters"

    def check(value, context=None):
        if is_empty(value):
            return None
        return _error(message) if len(str(value)) > length else None

    return ValidationRule(check, message)


def pattern(regex: str, message: str = "Invalid format") -> ValidationRule:
    compiled = re.compile(regex)

    def check(value, context=None):
        if is_empty(value):
            return None
        return None if compiled.match(str(value)) else _error(message)

    return ValidationRule(check, message)


def one_of(choices: Iterable[Any], message: str = "Please select a valid option") -> ValidationRule:
    allowed = {getattr(choice, "value", choice) for choice in choices}

    def check(value, context=None):
        if is_empty(value):
            return None
        return None if getattr(value, "value", value) in allowed else _error(message)

    return ValidationRule(check, message)


def accepted(message: str = "This must be accepted to continue") -> ValidationRule:
    """Checkbox-style rule: only ``True`` passes, so empty is an error here."""

    def check(value, context=None):
        return None if value is True else _error(message)

    return ValidationRule(check, message)


def custom(
    predicate: Callable[[Any, Optional[Mapping[str, Any]]], bool],
    message: str,
    severity: Severity = Severity.ERROR,
) -> ValidationRule:
    """Wrap a boolean predicate; ``predicate`` returning False produces the error."""

    def check(value, context=None):
        if is_empty(value):
            return None
        return None if predicate(value, context) else _error(message, severity)

    return ValidationRule(check, message, severity)


# ─── Evaluation ──────────────────────────────────────────────────────


def validate_field(
    value: Any,
    rules: Iterable[ValidationRule],
    context: Optional[Mapping[str, Any]] = None,
) -> Optional[ValidationError]:
    """Run rules in order and return the first failure (short-circuit)."""
    for rule in rules:
        error = rule(value, context)
        if error is not None:
            return error
    return None


def validate_form(
    values: Mapping[str, Any],
    schema: ValidationSchema,
    context: Optional[Mapping[str, Any]] = None,
) -> dict[str, Optional[ValidationError]]:
    """Validate every schema field independently; fields outside the schema pass."""
    field_context = {**(context or {}), "values": values}
    return {
        field: validate_field(values.get(field), rules, field_context)
        for field, rules in schema.items()
    }


def has_errors(errors: Mapping[str, Optional[ValidationError]]) -> bool:
    return any(
        error is not None and error.severity == Severity.ERROR
        for error in errors.values()
    )


def error_messages(errors: Mapping[str, Optional[ValidationError]]) -> dict[str, str]:
    """Flatten to ``{field: message}`` for blocking errors only."""
    return {
        field: error.message
        for field, error in errors.items()
        if error is not None and error.severity == Severity.ERROR
    }
