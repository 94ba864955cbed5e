"""Data type coercion for raw import values."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, time
from typing import Any, Optional

from foodbank.common.models.base import APPOINTMENT_DAYS


@dataclass
class CoercionResult:
    """Result of coercion operation."""

    success: bool
    coerced_value: Any = None
    error: Optional[str] = None


# Boolean patterns
BOOLEAN_TRUE = ["true", "yes", "1", "y", "on"]
BOOLEAN_FALSE = ["false", "no", "0", "n", "off"]

# 24-hour clock, H:MM or HH:MM
TIME_PATTERN = re.compile(r"^([01]?[0-9]|2[0-3]):([0-5][0-9])$")

# Optional sign, up to nine digits, optional ".0" suffix
INTEGER_PATTERN = re.compile(r"^([+-]?\d{1,9})(?:\.0+)?$")

DAY_MAPPINGS = {day.lower(): day for day in APPOINTMENT_DAYS}
DAY_MAPPINGS.update({day[:3].lower(): day for day in APPOINTMENT_DAYS})


def is_blank(value: Any) -> bool:
    """True for None and whitespace-only strings."""
    return value is None or (isinstance(value, str) and value.strip() == "")


def coerce_integer(value: Any) -> CoercionResult:
    """Coerce value to a whole number of at most nine digits.

    Text must be plain digits (an optional sign and a trailing ``.0`` as
    spreadsheets export it). Exponents, separators and inner spaces are
    rejected rather than guessed at.
    """
    if is_blank(value):
        return CoercionResult(success=False, error="Empty value")

    if isinstance(value, bool):
        return CoercionResult(success=False, error=f"Could not parse integer: {value}")
    if isinstance(value, int):
        return CoercionResult(success=True, coerced_value=value)
    if isinstance(value, float):
        if not value.is_integer():
            return CoercionResult(success=False, error=f"Not a whole number: {value}")
        return CoercionResult(success=True, coerced_value=int(value))

    str_value = str(value).strip()
    match = INTEGER_PATTERN.match(str_value)
    if not match:
        return CoercionResult(
            success=False,
            error=f"Could not parse integer: {value}",
        )

    return CoercionResult(success=True, coerced_value=int(match.group(1)))


def coerce_boolean(value: Any) -> CoercionResult:
    """Coerce value to boolean. Blank means False."""
    if isinstance(value, bool):
        return CoercionResult(success=True, coerced_value=value)
    if is_blank(value):
        return CoercionResult(success=True, coerced_value=False)

    str_value = str(value).strip().lower()

    if str_value in BOOLEAN_TRUE:
        return CoercionResult(success=True, coerced_value=True)
    elif str_value in BOOLEAN_FALSE:
        return CoercionResult(success=True, coerced_value=False)

    return CoercionResult(
        success=False,
        error=f"Could not parse boolean: {value}",
    )


def coerce_time(value: Any) -> CoercionResult:
    """Coerce an HH:MM string to a time of day."""
    if is_blank(value):
        return CoercionResult(success=False, error="Empty value")

    str_value = str(value).strip()
    if not TIME_PATTERN.match(str_value):
        return CoercionResult(
            success=False,
            error=f"Could not parse time: {str_value}",
        )

    return CoercionResult(
        success=True, coerced_value=datetime.strptime(str_value, "%H:%M").time()
    )


def coerce_weekday(value: Any) -> CoercionResult:
    """Coerce value to a title-cased appointment day (Monday-Saturday)."""
    if is_blank(value):
        return CoercionResult(success=False, error="Empty value")

    str_value = str(value).strip().lower()
    if str_value in DAY_MAPPINGS:
        return CoercionResult(success=True, coerced_value=DAY_MAPPINGS[str_value])

    return CoercionResult(
        success=False,
        error=f"Invalid day: {value}. Valid values: {', '.join(APPOINTMENT_DAYS)}",
    )


def coerce_optional_text(value: Any) -> Optional[str]:
    """Trim free text, mapping blank values to None."""
    if is_blank(value):
        return None
    return str(value).strip()


def format_time(value: Optional[time]) -> Optional[str]:
    """Render a time of day as HH:MM."""
    return value.strftime("%H:%M") if value else None
