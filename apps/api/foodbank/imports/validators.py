"""Field-level validation rules for client import rows.

Every rule is a pure function ``(record) -> list[ValidationError]``.
Rules run exhaustively, so a row that breaks three rules reports three
errors and staff can fix the sheet in one pass.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Optional, Sequence
from uuid import UUID

from foodbank.imports.coercers import (
    coerce_integer,
    coerce_time,
    coerce_weekday,
    is_blank,
)
from foodbank.imports.schemas import CandidateRecord

NAME_MAX_LENGTH = 255

# Largest household the registry accepts; also keeps counts inside a 32-bit column
MAX_HOUSEHOLD_SIZE = 50


@dataclass(frozen=True)
class ValidationError:
    """Validation error information. Blocks import of its row."""

    row_number: int
    field: str
    error_type: str  # "required", "format", "constraint", "lookup"
    message: str
    offending_value: Optional[str] = None


@dataclass(frozen=True)
class ValidationWarning:
    """Non-blocking concern about a row (potential duplicate)."""

    row_number: int
    field: str
    message: str
    existing_record_id: UUID


FieldRule = Callable[[CandidateRecord], list[ValidationError]]


def validate_required(value: Any, field_name: str) -> Optional[str]:
    """Validate that required field is not empty."""
    if is_blank(value):
        return f"Required field '{field_name}' is missing or empty"
    return None


def validate_string_length(value: Optional[str], max_length: int) -> Optional[str]:
    """Validate string length."""
    if value and len(value.strip()) > max_length:
        return f"String too long: {len(value.strip())} > {max_length}"
    return None


def _raw(value: Any) -> Optional[str]:
    return None if value is None else str(value)


def check_name(record: CandidateRecord) -> list[ValidationError]:
    message = validate_required(record.name, "name")
    if message:
        return [
            ValidationError(record.row_number, "name", "required", message, _raw(record.name))
        ]

    message = validate_string_length(record.name, NAME_MAX_LENGTH)
    if message:
        return [
            ValidationError(record.row_number, "name", "constraint", message, record.name)
        ]
    return []


def check_address(record: CandidateRecord) -> list[ValidationError]:
    message = validate_required(record.address, "address")
    if message:
        return [
            ValidationError(
                record.row_number, "address", "required", message, _raw(record.address)
            )
        ]
    return []


def check_household(record: CandidateRecord) -> list[ValidationError]:
    """Family size must be at least 1 and hold every child."""
    errors = []
    family_size = None

    if is_blank(record.family_size):
        errors.append(
            ValidationError(
                record.row_number,
                "family_size",
                "required",
                validate_required(record.family_size, "family_size"),
                _raw(record.family_size),
            )
        )
    else:
        result = coerce_integer(record.family_size)
        if not result.success:
            errors.append(
                ValidationError(
                    record.row_number,
                    "family_size",
                    "format",
                    f"Family size must be a whole number ({result.error})",
                    _raw(record.family_size),
                )
            )
        elif result.coerced_value < 1:
            errors.append(
                ValidationError(
                    record.row_number,
                    "family_size",
                    "constraint",
                    "Family size must be at least 1",
                    _raw(record.family_size),
                )
            )
        elif result.coerced_value > MAX_HOUSEHOLD_SIZE:
            errors.append(
                ValidationError(
                    record.row_number,
                    "family_size",
                    "constraint",
                    f"Family size cannot exceed {MAX_HOUSEHOLD_SIZE}",
                    _raw(record.family_size),
                )
            )
        else:
            family_size = result.coerced_value

    # A missing child count means no children
    if is_blank(record.num_children):
        return errors

    result = coerce_integer(record.num_children)
    if not result.success:
        errors.append(
            ValidationError(
                record.row_number,
                "num_children",
                "format",
                f"Number of children must be a whole number ({result.error})",
                _raw(record.num_children),
            )
        )
    elif result.coerced_value < 0:
        errors.append(
            ValidationError(
                record.row_number,
                "num_children",
                "constraint",
                "Number of children cannot be negative",
                _raw(record.num_children),
            )
        )
    elif result.coerced_value > MAX_HOUSEHOLD_SIZE:
        errors.append(
            ValidationError(
                record.row_number,
                "num_children",
                "constraint",
                f"Number of children cannot exceed {MAX_HOUSEHOLD_SIZE}",
                _raw(record.num_children),
            )
        )
    elif family_size is not None and result.coerced_value > family_size:
        errors.append(
            ValidationError(
                record.row_number,
                "num_children",
                "constraint",
                f"Number of children ({result.coerced_value}) exceeds family size "
                f"({family_size}): more children than total family size",
                _raw(record.num_children),
            )
        )

    return errors


def check_appointment(record: CandidateRecord) -> list[ValidationError]:
    """Appointment day and time come as a valid pair or not at all."""
    has_day = not is_blank(record.appointment_day)
    has_time = not is_blank(record.appointment_time)
    errors = []

    if has_day and not has_time:
        errors.append(
            ValidationError(
                record.row_number,
                "appointment_time",
                "required",
                "Appointment time is required when an appointment day is given",
                _raw(record.appointment_time),
            )
        )
    if has_time and not has_day:
        errors.append(
            ValidationError(
                record.row_number,
                "appointment_day",
                "required",
                "Appointment day is required when an appointment time is given",
                _raw(record.appointment_day),
            )
        )

    if has_day and not coerce_weekday(record.appointment_day).success:
        errors.append(
            ValidationError(
                record.row_number,
                "appointment_day",
                "format",
                "Invalid day. Must be Monday-Saturday",
                record.appointment_day,
            )
        )
    if has_time and not coerce_time(record.appointment_time).success:
        errors.append(
            ValidationError(
                record.row_number,
                "appointment_time",
                "format",
                "Invalid time format. Use HH:MM (e.g., 10:30)",
                record.appointment_time,
            )
        )

    return errors


# Rule table; callers may inject their own
FIELD_RULES: tuple[FieldRule, ...] = (
    check_name,
    check_address,
    check_household,
    check_appointment,
)


def validate_record(
    record: CandidateRecord, rules: Sequence[FieldRule] = FIELD_RULES
) -> list[ValidationError]:
    """Run every rule against one record and collect all violations."""
    errors: list[ValidationError] = []
    for rule in rules:
        errors.extend(rule(record))
    return errors
