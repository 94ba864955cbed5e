"""Pydantic schemas for the client import API."""

from __future__ import annotations

from typing import Any, Optional, Union
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from foodbank.imports.coercers import coerce_boolean


class CandidateRecord(BaseModel):
    """One decoded row proposed for import.

    Counts are kept raw so that malformed values reach the field
    validator and can be reported with the offending input.
    """

    row_number: int = Field(..., ge=1, description="1-based source row number")
    name: Optional[str] = None
    address: Optional[str] = None
    family_size: Optional[Union[int, str]] = None
    num_children: Optional[Union[int, str]] = None
    children_ages: Optional[str] = None
    reason: Optional[str] = None
    appointment_day: Optional[str] = None
    appointment_time: Optional[str] = None
    pref_gluten_free: bool = False
    pref_halal: bool = False
    pref_vegetarian: bool = False
    pref_no_cooking: bool = False

    model_config = {"frozen": True}

    @field_validator(
        "pref_gluten_free",
        "pref_halal",
        "pref_vegetarian",
        "pref_no_cooking",
        mode="before",
    )
    @classmethod
    def _coerce_flag(cls, value: Any) -> bool:
        result = coerce_boolean(value)
        if not result.success:
            raise ValueError(result.error)
        return result.coerced_value


class ValidateRequest(BaseModel):
    """Request to validate rows without importing (dry run)."""

    clients: list[CandidateRecord]


class ImportRequest(BaseModel):
    """Request to import rows."""

    clients: list[CandidateRecord]
    skip_duplicates: bool = Field(
        default=False, description="Skip rows flagged as potential duplicates"
    )
    batch_size: int = Field(
        default=0,
        description="Rows per batch; 0 uses the server default, values above the maximum are clamped",
    )


class ValidationErrorResponse(BaseModel):
    """Validation error response."""

    row_number: int
    field: str
    error_type: str
    message: str
    offending_value: Optional[str] = None

    model_config = {"from_attributes": True}


class ValidationWarningResponse(BaseModel):
    """Validation warning response."""

    row_number: int
    field: str
    message: str
    existing_record_id: UUID

    model_config = {"from_attributes": True}


class ValidationReportResponse(BaseModel):
    """Response with validation results."""

    is_valid: bool
    total_rows: int
    valid_row_count: int
    errors_by_type: dict[str, int]
    errors: list[ValidationErrorResponse]
    warnings: list[ValidationWarningResponse]

    model_config = {"from_attributes": True}


class BatchOutcomeResponse(BaseModel):
    """Per-batch outcome."""

    batch_index: int
    start_row: int
    end_row: int
    success_count: int
    failed_count: int
    skipped_count: int
    fatal_error: Optional[str] = None

    model_config = {"from_attributes": True}


class ImportedClientResponse(BaseModel):
    """A successfully imported row."""

    row_number: int
    persisted_id: UUID
    barcode: str
    name: str

    model_config = {"from_attributes": True}


class ImportResultResponse(BaseModel):
    """Response with import results."""

    overall_success: bool
    total_rows: int
    imported_count: int
    skipped_count: int
    failed_count: int
    outcomes: list[BatchOutcomeResponse]
    imported_clients: list[ImportedClientResponse]
    validation: Optional[ValidationReportResponse] = Field(
        default=None, description="Present when blocking validation errors stopped the import"
    )

    model_config = {"from_attributes": True}
