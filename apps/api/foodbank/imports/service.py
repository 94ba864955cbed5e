"""Client import orchestration: dry-run validation and batched commit."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence
from uuid import UUID

from sqlalchemy.orm import Session

from foodbank.core.config import settings
from foodbank.imports.barcodes import BarcodeAllocator
from foodbank.imports.duplicates import (
    AddressMatcher,
    DuplicateDetector,
    get_address_matcher,
)
from foodbank.imports.processors import (
    BatchCommitter,
    BatchOutcome,
    ImportedClient,
)
from foodbank.imports.repository import (
    ClientRepository,
    SqlAlchemyClientRepository,
    StorageError,
)
from foodbank.imports.schemas import CandidateRecord
from foodbank.imports.validators import (
    FIELD_RULES,
    FieldRule,
    ValidationError,
    ValidationWarning,
    validate_record,
)

logger = logging.getLogger(__name__)

ERROR_TYPES = ("required", "format", "constraint", "lookup")

CSV_TEMPLATE_HEADER = (
    "name,address,family_size,num_children,children_ages,reason,"
    "appointment_day,appointment_time,"
    "pref_gluten_free,pref_halal,pref_vegetarian,pref_no_cooking"
)

CSV_TEMPLATE_ROWS = (
    '"John Smith","123 High Street, London N12 0AB",4,2,"5, 8","Referred by GP",Tuesday,10:30,false,false,false,false',
    '"Jane Doe","45 Park Road, Barnet EN5 1AA",2,0,"","Job loss",Thursday,14:00,false,true,false,false',
    '"Bob Wilson","78 Church Lane, Finchley N3 2PQ",3,1,"3","Financial hardship",Monday,09:00,true,false,false,false',
)


@dataclass
class RowValidation:
    """Errors and warnings found for one submitted row."""

    record: CandidateRecord
    errors: list[ValidationError] = field(default_factory=list)
    warnings: list[ValidationWarning] = field(default_factory=list)


@dataclass
class ValidationReport:
    is_valid: bool
    total_rows: int
    valid_row_count: int
    errors: list[ValidationError] = field(default_factory=list)
    warnings: list[ValidationWarning] = field(default_factory=list)

    @property
    def errors_by_type(self) -> dict[str, int]:
        counts = {error_type: 0 for error_type in ERROR_TYPES}
        for error in self.errors:
            counts[error.error_type] = counts.get(error.error_type, 0) + 1
        return counts

    @classmethod
    def from_rows(cls, rows: Sequence[RowValidation]) -> "ValidationReport":
        errors = [error for row in rows for error in row.errors]
        warnings = [warning for row in rows for warning in row.warnings]
        return cls(
            is_valid=not errors,
            total_rows=len(rows),
            valid_row_count=sum(1 for row in rows if not row.errors),
            errors=errors,
            warnings=warnings,
        )


@dataclass
class ImportResult:
    overall_success: bool
    total_rows: int
    imported_count: int = 0
    skipped_count: int = 0
    failed_count: int = 0
    outcomes: list[BatchOutcome] = field(default_factory=list)
    imported_clients: list[ImportedClient] = field(default_factory=list)
    validation: Optional[ValidationReport] = None


class ValidationOrchestrator:
    """
    Runs field rules and duplicate detection over a submitted set.

    Never mutates storage. Duplicate detection only runs for rows without
    field errors. With ``max_workers`` above one, rows are evaluated on a
    thread pool; the report keeps submission order either way.
    """

    def __init__(
        self,
        detector: DuplicateDetector,
        rules: Sequence[FieldRule] = FIELD_RULES,
        max_workers: int = 1,
    ):
        self.detector = detector
        self.rules = rules
        self.max_workers = max(1, max_workers)

    def evaluate_row(self, record: CandidateRecord) -> RowValidation:
        errors = validate_record(record, self.rules)
        if errors:
            return RowValidation(record=record, errors=errors)

        try:
            warnings = self.detector.find_duplicates(record)
        except StorageError as e:
            logger.warning(f"Row {record.row_number}: duplicate check failed: {str(e)}")
            return RowValidation(
                record=record,
                errors=[
                    ValidationError(
                        row_number=record.row_number,
                        field="name",
                        error_type="lookup",
                        message="Could not check for existing clients, try again later",
                        offending_value=record.name,
                    )
                ],
            )
        return RowValidation(record=record, warnings=warnings)

    def evaluate(self, records: Sequence[CandidateRecord]) -> list[RowValidation]:
        """Per-row results, in submission order."""
        if self.max_workers == 1 or len(records) < 2:
            return [self.evaluate_row(record) for record in records]

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            return list(executor.map(self.evaluate_row, records))

    def validate_all(self, records: Sequence[CandidateRecord]) -> ValidationReport:
        return ValidationReport.from_rows(self.evaluate(records))


def resolve_batch_size(requested: Optional[int]) -> int:
    """Apply the default to non-positive sizes and clamp to the maximum."""
    if not requested or requested <= 0:
        return settings.import_default_batch_size
    return min(requested, settings.import_max_batch_size)


class ImportService:
    """Entry point for client imports."""

    def __init__(
        self,
        repository: ClientRepository,
        matcher: Optional[AddressMatcher] = None,
        validation_workers: Optional[int] = None,
        batch_timeout_seconds: Optional[float] = None,
        allocator_factory: Optional[Callable[[ClientRepository], BarcodeAllocator]] = None,
    ):
        self.repository = repository
        if matcher is None:
            matcher = get_address_matcher(
                settings.duplicate_match_strategy,
                settings.duplicate_address_similarity,
            )
        self.detector = DuplicateDetector(repository.find_clients_by_name, matcher)
        self.orchestrator = ValidationOrchestrator(
            self.detector,
            max_workers=validation_workers or settings.import_validation_workers,
        )
        if batch_timeout_seconds is None:
            batch_timeout_seconds = settings.import_batch_timeout_seconds
        self.batch_timeout_seconds = batch_timeout_seconds
        self._allocator_factory = allocator_factory or (
            lambda repo: BarcodeAllocator(repo.barcode_exists)
        )

    @classmethod
    def for_session(cls, db: Session) -> "ImportService":
        repository = SqlAlchemyClientRepository(
            db, timeout_seconds=settings.storage_timeout_seconds
        )
        return cls(repository)

    def validate(self, records: Sequence[CandidateRecord]) -> ValidationReport:
        """Dry run: report problems without persisting anything."""
        report = self.orchestrator.validate_all(records)
        logger.info(
            f"Validated {report.total_rows} clients: {report.valid_row_count} valid, "
            f"{len(report.errors)} errors, {len(report.warnings)} warnings"
        )
        return report

    def run(
        self,
        records: Sequence[CandidateRecord],
        skip_duplicates: bool,
        batch_size: Optional[int],
        staff_id: UUID,
        on_batch_complete: Optional[Callable[[BatchOutcome], None]] = None,
    ) -> ImportResult:
        """
        Validate, filter and commit a set of candidate records.

        Args:
            records: Candidate rows in submission order
            skip_duplicates: Leave out rows flagged as potential duplicates
            batch_size: Requested batch size (defaulted and clamped)
            staff_id: Acting staff member, stamped on clients and audit entries
            on_batch_complete: Called with each batch outcome as it finishes

        Returns:
            ImportResult; carries the validation report when blocking
            errors stopped the import
        """
        total_rows = len(records)
        size = resolve_batch_size(batch_size)
        logger.info(
            f"Starting import of {total_rows} clients by staff {staff_id} "
            f"(batch size: {size}, skip duplicates: {skip_duplicates})"
        )

        rows = self.orchestrator.evaluate(records)
        report = ValidationReport.from_rows(rows)
        if not report.is_valid:
            logger.info(
                f"Import blocked: {len(report.errors)} validation errors "
                f"across {total_rows - report.valid_row_count} rows"
            )
            return ImportResult(
                overall_success=False,
                total_rows=total_rows,
                validation=report,
            )

        accepted = []
        skipped_count = 0
        for row in rows:
            if skip_duplicates and row.warnings:
                skipped_count += 1
                continue
            accepted.append(row.record)

        committer = BatchCommitter(
            self.repository,
            self._allocator_factory(self.repository),
            duplicate_detector=self.detector if skip_duplicates else None,
            batch_timeout_seconds=self.batch_timeout_seconds,
            on_batch_complete=on_batch_complete,
        )
        commit = committer.commit(accepted, size, staff_id)

        result = ImportResult(
            overall_success=commit.failed_count == 0 and not commit.halted,
            total_rows=total_rows,
            imported_count=commit.success_count,
            skipped_count=skipped_count + commit.skipped_count,
            failed_count=commit.failed_count,
            outcomes=commit.outcomes,
            imported_clients=commit.imported,
        )
        logger.info(
            f"Import finished: {result.imported_count} imported, "
            f"{result.skipped_count} skipped, {result.failed_count} failed"
            + (" (halted)" if commit.halted else "")
        )
        return result

    @staticmethod
    def generate_csv_template() -> str:
        """CSV template with the expected header and example rows."""
        return "\n".join((CSV_TEMPLATE_HEADER,) + CSV_TEMPLATE_ROWS) + "\n"
