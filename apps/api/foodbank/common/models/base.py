"""Base classes and enums shared across all models."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Enum, MetaData
from sqlalchemy.orm import DeclarativeBase


NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

metadata = MetaData(naming_convention=NAMING_CONVENTION)


class Base(DeclarativeBase):
    metadata = metadata


def utcnow() -> datetime:
    """Timezone-aware now, used as a column default."""
    return datetime.now(timezone.utc)


# Enums
StaffRole = Enum("admin", "staff", name="staff_role")

# The foodbank does not open on Sundays
APPOINTMENT_DAYS = (
    "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday",
)
AppointmentDay = Enum(*APPOINTMENT_DAYS, name="appointment_day")
