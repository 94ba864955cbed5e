"""Audit logging utility functions."""

from __future__ import annotations

from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from foodbank.common.models import AuditLog


def create_audit_log(
    db: Session,
    changed_by: UUID,
    action: str,
    table_name: str,
    record_id: UUID,
    old_values: Optional[dict] = None,
    new_values: Optional[dict] = None,
) -> AuditLog:
    """
    Create an audit log entry.

    Args:
        db: Database session
        changed_by: ID of the staff member performing the action
        action: Action being performed (e.g., "create", "update", "delete")
        table_name: Table of the affected record (e.g., "clients")
        record_id: ID of the record being acted upon
        old_values: JSON snapshot of the record before the action
        new_values: JSON snapshot of the record after the action

    Returns:
        Created AuditLog instance
    """
    audit_log = AuditLog(
        table_name=table_name,
        record_id=record_id,
        action=action,
        old_values=old_values,
        new_values=new_values,
        changed_by=changed_by,
    )

    db.add(audit_log)
    db.flush()
    return audit_log
