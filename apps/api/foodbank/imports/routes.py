"""Client import API routes."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import Response
from sqlalchemy.orm import Session

from foodbank.auth.dependencies import get_current_staff
from foodbank.common.db import get_db
from foodbank.common.models import Staff
from foodbank.core.config import settings
from foodbank.core.errors import BadRequestError
from foodbank.imports import schemas
from foodbank.imports.service import ImportService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/imports", tags=["imports"])


def _check_row_count(clients: list[schemas.CandidateRecord]) -> None:
    if not clients:
        raise BadRequestError("No clients provided")
    if len(clients) > settings.import_max_rows:
        raise BadRequestError(
            f"Too many clients: maximum {settings.import_max_rows} per import",
            details={"submitted": len(clients), "maximum": settings.import_max_rows},
        )


@router.get("/template")
def download_template() -> Response:
    """Download the CSV template for bulk client imports."""
    return Response(
        content=ImportService.generate_csv_template(),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="client-import-template.csv"'},
    )


@router.post("/validate", response_model=schemas.ValidationReportResponse)
def validate_import(
    request: schemas.ValidateRequest,
    staff: Staff = Depends(get_current_staff),
    db: Session = Depends(get_db),
):
    """Validate clients without importing them (dry run)."""
    _check_row_count(request.clients)

    report = ImportService.for_session(db).validate(request.clients)
    return schemas.ValidationReportResponse.model_validate(report, from_attributes=True)


@router.post("/clients", response_model=schemas.ImportResultResponse)
def import_clients(
    request: schemas.ImportRequest,
    staff: Staff = Depends(get_current_staff),
    db: Session = Depends(get_db),
):
    """Import clients in batches, stamping each with the acting staff member."""
    _check_row_count(request.clients)

    logger.info(f"Client import requested by {staff.email} ({len(request.clients)} rows)")
    result = ImportService.for_session(db).run(
        request.clients,
        skip_duplicates=request.skip_duplicates,
        batch_size=request.batch_size,
        staff_id=staff.id,
    )
    return schemas.ImportResultResponse.model_validate(result, from_attributes=True)
