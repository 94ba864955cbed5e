"""Request dependencies resolving the authenticated staff member.

Tokens are issued by the identity provider integration; this module only
verifies them and loads the matching staff record.
"""

from __future__ import annotations

from typing import Optional
from uuid import UUID

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from foodbank.auth.utils import verify_token
from foodbank.common.db import get_db
from foodbank.common.models import Staff
from foodbank.core.errors import ForbiddenError, UnauthorizedError

security = HTTPBearer(auto_error=False)


async def get_current_staff_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> UUID:
    if not credentials:
        raise UnauthorizedError("Not authenticated")

    payload = verify_token(credentials.credentials)
    if not payload or payload.get("type") != "access":
        raise UnauthorizedError("Invalid token")

    staff_id = payload.get("staff_id") or payload.get("sub")
    try:
        return UUID(staff_id)
    except (TypeError, ValueError):
        raise UnauthorizedError("Invalid token payload")


def get_current_staff(
    staff_id: UUID = Depends(get_current_staff_id),
    db: Session = Depends(get_db),
) -> Staff:
    """Load the active staff record for the authenticated identity."""
    staff = db.get(Staff, staff_id)
    if staff is None or not staff.is_active:
        raise ForbiddenError("Staff record required")
    return staff
