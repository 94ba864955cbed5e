"""Batch committer for validated client records.

Records are committed one at a time, each together with its audit entry,
so a rejected record never takes its neighbours down with it. Batches
only group records for progress reporting and for deciding when to stop
after storage becomes unusable.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence
from uuid import UUID

from foodbank.imports.barcodes import BarcodeAllocator, BarcodeExhaustedError
from foodbank.imports.coercers import (
    coerce_integer,
    coerce_optional_text,
    coerce_time,
    coerce_weekday,
    is_blank,
)
from foodbank.imports.duplicates import DuplicateDetector
from foodbank.imports.repository import (
    ClientDraft,
    ClientRepository,
    RecordRejectedError,
    StorageUnavailableError,
)
from foodbank.imports.schemas import CandidateRecord

logger = logging.getLogger(__name__)


class BatchTimeoutError(Exception):
    """A batch ran past its deadline."""


@dataclass
class BatchOutcome:
    """Outcome of committing one batch."""

    batch_index: int
    start_row: int
    end_row: int
    success_count: int = 0
    failed_count: int = 0
    skipped_count: int = 0
    fatal_error: Optional[str] = None

    @property
    def record_count(self) -> int:
        return self.success_count + self.failed_count + self.skipped_count


@dataclass(frozen=True)
class ImportedClient:
    """A record that was persisted."""

    row_number: int
    persisted_id: UUID
    barcode: str
    name: str


@dataclass
class CommitResult:
    outcomes: list[BatchOutcome] = field(default_factory=list)
    imported: list[ImportedClient] = field(default_factory=list)

    @property
    def halted(self) -> bool:
        return any(outcome.fatal_error for outcome in self.outcomes)

    @property
    def success_count(self) -> int:
        return sum(outcome.success_count for outcome in self.outcomes)

    @property
    def failed_count(self) -> int:
        return sum(outcome.failed_count for outcome in self.outcomes)

    @property
    def skipped_count(self) -> int:
        return sum(outcome.skipped_count for outcome in self.outcomes)


def partition(
    records: Sequence[CandidateRecord], batch_size: int
) -> list[list[CandidateRecord]]:
    """Split records into consecutive chunks of at most ``batch_size``."""
    if batch_size < 1:
        raise ValueError(f"Batch size must be positive, got {batch_size}")
    return [
        list(records[i : i + batch_size]) for i in range(0, len(records), batch_size)
    ]


def build_client_draft(record: CandidateRecord, barcode_id: str) -> ClientDraft:
    """Normalize a validated record into storable values."""
    num_children = 0
    if not is_blank(record.num_children):
        num_children = coerce_integer(record.num_children).coerced_value

    appointment_day = None
    appointment_time = None
    if not is_blank(record.appointment_day):
        appointment_day = coerce_weekday(record.appointment_day).coerced_value
    if not is_blank(record.appointment_time):
        appointment_time = coerce_time(record.appointment_time).coerced_value

    return ClientDraft(
        barcode_id=barcode_id,
        name=record.name.strip(),
        address=record.address.strip(),
        family_size=coerce_integer(record.family_size).coerced_value,
        num_children=num_children,
        children_ages=coerce_optional_text(record.children_ages),
        reason=coerce_optional_text(record.reason),
        appointment_day=appointment_day,
        appointment_time=appointment_time,
        pref_gluten_free=record.pref_gluten_free,
        pref_halal=record.pref_halal,
        pref_vegetarian=record.pref_vegetarian,
        pref_no_cooking=record.pref_no_cooking,
    )


class BatchCommitter:
    """
    Persist records in fixed-size batches.

    A record that storage rejects is counted as failed and the batch moves
    on. Storage becoming unavailable, the batch deadline passing or any
    unexpected error is fatal: the rest of that batch counts as failed and
    no further batch is attempted.
    """

    def __init__(
        self,
        repository: ClientRepository,
        allocator: BarcodeAllocator,
        duplicate_detector: Optional[DuplicateDetector] = None,
        batch_timeout_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
        on_batch_complete: Optional[Callable[[BatchOutcome], None]] = None,
    ):
        self.repository = repository
        self.allocator = allocator
        self.duplicate_detector = duplicate_detector
        self.batch_timeout_seconds = batch_timeout_seconds
        self._clock = clock
        self._on_batch_complete = on_batch_complete

    def commit(
        self,
        records: Sequence[CandidateRecord],
        batch_size: int,
        staff_id: UUID,
    ) -> CommitResult:
        result = CommitResult()

        for index, batch in enumerate(partition(records, batch_size)):
            outcome = self._commit_batch(index, batch, staff_id, result.imported)
            result.outcomes.append(outcome)

            if outcome.fatal_error:
                logger.error(
                    f"Batch {index} (rows {outcome.start_row}-{outcome.end_row}) "
                    f"halted the import: {outcome.fatal_error}"
                )
            else:
                logger.info(
                    f"Batch {index} (rows {outcome.start_row}-{outcome.end_row}): "
                    f"{outcome.success_count} imported, {outcome.failed_count} failed, "
                    f"{outcome.skipped_count} skipped"
                )

            if self._on_batch_complete:
                try:
                    self._on_batch_complete(outcome)
                except Exception:
                    # A failing listener does not stop the import
                    logger.exception(f"Progress callback failed after batch {index}")

            if outcome.fatal_error:
                break

        return result

    def _commit_batch(
        self,
        index: int,
        batch: list[CandidateRecord],
        staff_id: UUID,
        imported: list[ImportedClient],
    ) -> BatchOutcome:
        outcome = BatchOutcome(
            batch_index=index,
            start_row=batch[0].row_number,
            end_row=batch[-1].row_number,
        )
        deadline = None
        if self.batch_timeout_seconds:
            deadline = self._clock() + self.batch_timeout_seconds

        for position, record in enumerate(batch):
            try:
                if deadline is not None and self._clock() > deadline:
                    raise BatchTimeoutError(
                        f"Batch exceeded {self.batch_timeout_seconds}s deadline"
                    )

                if self.duplicate_detector and self.duplicate_detector.find_duplicates(record):
                    logger.info(f"Row {record.row_number}: duplicate registered since validation, skipped")
                    outcome.skipped_count += 1
                    continue

                barcode = self.allocator.allocate_one()
                draft = build_client_draft(record, barcode)
                with self.repository.atomic():
                    client_id = self.repository.create_client(draft, staff_id)
                    self.repository.write_audit_entry(
                        table_name="clients",
                        record_id=client_id,
                        action="create",
                        old_values=None,
                        new_values=draft.audit_values(),
                        changed_by=staff_id,
                    )
            except (RecordRejectedError, BarcodeExhaustedError) as e:
                logger.warning(f"Row {record.row_number}: not imported: {str(e)}")
                outcome.failed_count += 1
                continue
            except (StorageUnavailableError, BatchTimeoutError) as e:
                outcome.fatal_error = str(e)
            except Exception as e:
                logger.exception(f"Row {record.row_number}: unexpected error during import")
                outcome.fatal_error = f"Unexpected error: {str(e)}"

            if outcome.fatal_error:
                outcome.failed_count += len(batch) - position
                break

            outcome.success_count += 1
            imported.append(
                ImportedClient(
                    row_number=record.row_number,
                    persisted_id=client_id,
                    barcode=barcode,
                    name=draft.name,
                )
            )

        return outcome
