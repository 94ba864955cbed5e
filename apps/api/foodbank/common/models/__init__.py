"""Models package - exports all models.

Models are organized into:
- base: Base class, metadata, and enums
- iam: staff and audit log
- registry: registered clients
"""

from __future__ import annotations

from foodbank.common.models.base import (
    Base,
    metadata,
    NAMING_CONVENTION,
    # Enums
    StaffRole,
    AppointmentDay,
    APPOINTMENT_DAYS,
)

from foodbank.common.models.iam import (
    Staff,
    AuditLog,
)

from foodbank.common.models.registry import (
    Client,
)

__all__ = [
    # Base
    "Base",
    "metadata",
    "NAMING_CONVENTION",
    # Enums
    "StaffRole",
    "AppointmentDay",
    "APPOINTMENT_DAYS",
    # IAM models
    "Staff",
    "AuditLog",
    # Registry models
    "Client",
]
