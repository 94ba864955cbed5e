"""Tests for the client import service."""

from __future__ import annotations

from uuid import uuid4

import pytest

from foodbank.core.config import settings
from foodbank.imports.duplicates import FuzzyAddressMatcher
from foodbank.imports.repository import ExistingClient
from foodbank.imports.service import (
    ImportService,
    ValidationOrchestrator,
    resolve_batch_size,
)
from foodbank.imports.duplicates import DuplicateDetector


@pytest.fixture
def staff_id():
    return uuid4()


@pytest.fixture
def existing_client():
    return ExistingClient(id=uuid4(), name="Jane Doe", address="45 Park Road, Barnet EN5 1AA")


def _records(record_factory, n):
    return [record_factory(row_number=i) for i in range(1, n + 1)]


class TestValidate:
    """Tests for the dry-run path."""

    def test_clean_set_is_valid(self, record_factory, memory_repository):
        report = ImportService(memory_repository).validate(_records(record_factory, 4))

        assert report.is_valid
        assert report.total_rows == 4
        assert report.valid_row_count == 4
        assert report.errors == []
        assert report.errors_by_type == {"required": 0, "format": 0, "constraint": 0, "lookup": 0}

    def test_errors_counted_per_row(self, record_factory, memory_repository):
        records = [
            record_factory(row_number=1),
            record_factory(row_number=2, name="", family_size="x"),
            record_factory(row_number=3, family_size=2, num_children=3),
        ]
        report = ImportService(memory_repository).validate(records)

        assert not report.is_valid
        assert report.valid_row_count == 1
        assert [e.row_number for e in report.errors] == [2, 2, 3]
        assert report.errors_by_type["constraint"] == 1
        assert report.errors_by_type["format"] == 1
        assert report.errors_by_type["required"] == 1

    def test_oversized_household_blocks_row(self, record_factory, memory_repository):
        records = [
            record_factory(row_number=1, family_size=10**12, num_children=0),
            record_factory(row_number=2, family_size="1e12", num_children=0),
        ]
        report = ImportService(memory_repository).validate(records)

        assert not report.is_valid
        assert report.valid_row_count == 0
        assert [(e.row_number, e.error_type) for e in report.errors] == [
            (1, "constraint"),
            (2, "format"),
        ]

    def test_dry_run_never_mutates(self, record_factory, repository_factory, existing_client):
        repository = repository_factory(existing=[existing_client])
        records = _records(record_factory, 3) + [
            record_factory(row_number=4, name="Jane Doe", address=existing_client.address)
        ]

        ImportService(repository).validate(records)

        assert repository.mutation_calls == 0

    def test_validation_is_idempotent(self, record_factory, repository_factory, existing_client):
        repository = repository_factory(existing=[existing_client])
        records = [
            record_factory(row_number=1, name="Jane Doe", address=existing_client.address),
            record_factory(row_number=2, family_size=0),
        ]
        service = ImportService(repository)

        assert service.validate(records) == service.validate(records)

    def test_duplicate_warning_does_not_reduce_valid_count(
        self, record_factory, repository_factory, existing_client
    ):
        repository = repository_factory(existing=[existing_client])
        records = [record_factory(row_number=1, name="jane doe", address="45 park road, barnet en5 1aa")]

        report = ImportService(repository).validate(records)

        assert report.is_valid
        assert report.valid_row_count == 1
        assert len(report.warnings) == 1
        assert report.warnings[0].existing_record_id == existing_client.id

    def test_invalid_rows_not_duplicate_checked(self, record_factory, memory_repository):
        ImportService(memory_repository).validate([record_factory(family_size=None)])
        assert memory_repository.lookup_calls == 0

    def test_lookup_failure_blocks_row(self, record_factory, repository_factory):
        repository = repository_factory(fail_lookups=True)

        report = ImportService(repository).validate([record_factory()])

        assert not report.is_valid
        assert [(e.field, e.error_type) for e in report.errors] == [("name", "lookup")]

    def test_parallel_validation_keeps_row_order(self, record_factory, memory_repository):
        records = [
            record_factory(row_number=i, family_size=0 if i % 2 else 2, num_children=0)
            for i in range(1, 21)
        ]
        orchestrator = ValidationOrchestrator(
            DuplicateDetector(memory_repository.find_clients_by_name), max_workers=4
        )

        report = orchestrator.validate_all(records)

        assert [e.row_number for e in report.errors] == list(range(1, 21, 2))
        assert report.valid_row_count == 10


class TestRun:
    """Tests for ImportService.run."""

    def test_blocking_errors_stop_import(self, record_factory, memory_repository, staff_id):
        records = _records(record_factory, 3) + [record_factory(row_number=4, address="")]

        result = ImportService(memory_repository).run(records, False, 10, staff_id)

        assert not result.overall_success
        assert result.imported_count == 0
        assert result.outcomes == []
        assert result.validation is not None
        assert result.validation.errors[0].row_number == 4
        assert memory_repository.mutation_calls == 0

    def test_row_counts_add_up(self, record_factory, repository_factory, staff_id):
        repository = repository_factory(reject_names=("Client 4",))

        result = ImportService(repository).run(_records(record_factory, 12), False, 5, staff_id)

        assert result.total_rows == 12
        assert result.imported_count == 11
        assert result.failed_count == 1
        assert result.imported_count + result.skipped_count + result.failed_count == result.total_rows
        assert not result.overall_success
        assert result.validation is None

    def test_successful_import(self, record_factory, memory_repository, staff_id):
        result = ImportService(memory_repository).run(_records(record_factory, 25), False, 10, staff_id)

        assert result.overall_success
        assert result.imported_count == 25
        assert [o.success_count for o in result.outcomes] == [10, 10, 5]
        assert len(memory_repository.audit_entries) == 25

    def test_failing_progress_callback_keeps_result(
        self, record_factory, memory_repository, staff_id
    ):
        def listener(outcome):
            raise RuntimeError("ui gone")

        result = ImportService(memory_repository).run(
            _records(record_factory, 4), False, 2, staff_id, on_batch_complete=listener
        )

        assert result.overall_success
        assert result.imported_count == 4
        assert len(result.outcomes) == 2

    def test_duplicate_imported_when_not_skipping(
        self, record_factory, repository_factory, existing_client, staff_id
    ):
        repository = repository_factory(existing=[existing_client])
        records = [
            record_factory(row_number=1, name="Jane Doe", address=existing_client.address),
            record_factory(row_number=2),
        ]

        result = ImportService(repository).run(records, False, 10, staff_id)

        assert result.imported_count == 2
        assert result.skipped_count == 0

    def test_duplicate_skipped_when_requested(
        self, record_factory, repository_factory, existing_client, staff_id
    ):
        repository = repository_factory(existing=[existing_client])
        records = [
            record_factory(row_number=1, name="Jane Doe", address=existing_client.address),
            record_factory(row_number=2),
        ]

        result = ImportService(repository).run(records, True, 10, staff_id)

        assert result.overall_success
        assert result.imported_count == 1
        assert result.skipped_count == 1
        assert [c.row_number for c in result.imported_clients] == [2]
        assert len(repository.audit_entries) == 1
        assert all(draft.name != "Jane Doe" for draft, _ in repository.clients.values())

    def test_fatal_error_reported(self, record_factory, repository_factory, staff_id):
        repository = repository_factory(fail_after_creates=3)

        result = ImportService(repository).run(_records(record_factory, 10), False, 2, staff_id)

        assert not result.overall_success
        assert result.imported_count == 3
        assert result.outcomes[-1].fatal_error is not None
        assert len(result.outcomes) == 2

    def test_empty_set(self, memory_repository, staff_id):
        result = ImportService(memory_repository).run([], False, 10, staff_id)
        assert result.overall_success
        assert result.outcomes == []

    def test_fuzzy_matcher_injected(self, record_factory, repository_factory, staff_id):
        existing = ExistingClient(id=uuid4(), name="Bob Wilson", address="78 Church Lane Finchley N3 2PQ")
        repository = repository_factory(existing=[existing])
        service = ImportService(repository, matcher=FuzzyAddressMatcher(90))

        report = service.validate(
            [record_factory(name="Bob Wilson", address="78 Church Lane, Finchley N3 2PQ")]
        )
        assert len(report.warnings) == 1


class TestBatchSize:
    @pytest.mark.parametrize(
        "requested,expected",
        [(0, 50), (-5, 50), (None, 50), (1, 1), (75, 75), (100, 100), (500, 100)],
    )
    def test_resolve_batch_size(self, requested, expected, monkeypatch):
        monkeypatch.setattr(settings, "import_default_batch_size", 50)
        monkeypatch.setattr(settings, "import_max_batch_size", 100)
        assert resolve_batch_size(requested) == expected


class TestCsvTemplate:
    def test_template_header_and_examples(self):
        lines = ImportService.generate_csv_template().strip().split("\n")

        assert lines[0].startswith("name,address,family_size,num_children")
        assert lines[0].endswith("pref_no_cooking")
        assert len(lines) == 4
        assert lines[1].startswith('"John Smith"')
