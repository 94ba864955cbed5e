"""Duplicate detection against the registered client population.

Name matching is fixed (case-insensitive, whitespace-normalized
equality); address matching is a swappable strategy so the similarity
rule can be tuned and tested on its own.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable, Optional, Sequence

from fuzzywuzzy import fuzz

from foodbank.imports.repository import ExistingClient
from foodbank.imports.schemas import CandidateRecord
from foodbank.imports.validators import ValidationWarning


def normalize_text(value: Optional[str]) -> str:
    """Collapse whitespace and case-fold for comparisons."""
    if not value:
        return ""
    return " ".join(value.split()).casefold()


def truncate_address(address: str, limit: int = 30) -> str:
    """Shorten address for display."""
    if len(address) > limit:
        return address[:limit] + "..."
    return address


class AddressMatcher(ABC):
    """Strategy deciding whether two addresses describe the same household."""

    name: str = ""

    @abstractmethod
    def matches(self, candidate: str, existing: str) -> bool:
        pass


class ExactAddressMatcher(AddressMatcher):
    """Addresses equal after whitespace normalization and case folding."""

    name = "exact"

    def matches(self, candidate: str, existing: str) -> bool:
        return normalize_text(candidate) == normalize_text(existing)


class FuzzyAddressMatcher(AddressMatcher):
    """Addresses whose token-sorted similarity reaches a threshold (0-100)."""

    name = "fuzzy"

    def __init__(self, threshold: int = 90):
        if not 0 <= threshold <= 100:
            raise ValueError(f"Similarity threshold must be 0-100, got {threshold}")
        self.threshold = threshold

    def similarity(self, candidate: str, existing: str) -> int:
        return fuzz.token_sort_ratio(normalize_text(candidate), normalize_text(existing))

    def matches(self, candidate: str, existing: str) -> bool:
        if normalize_text(candidate) == normalize_text(existing):
            return True
        return self.similarity(candidate, existing) >= self.threshold


def get_address_matcher(strategy: str, threshold: int = 90) -> AddressMatcher:
    """Build the address matcher named in configuration."""
    if strategy == ExactAddressMatcher.name:
        return ExactAddressMatcher()
    if strategy == FuzzyAddressMatcher.name:
        return FuzzyAddressMatcher(threshold)
    raise ValueError(f"Unknown duplicate match strategy: {strategy}")


class DuplicateDetector:
    """Flags candidates that look like an already registered client."""

    def __init__(
        self,
        find_clients_by_name: Callable[[str], Sequence[ExistingClient]],
        matcher: Optional[AddressMatcher] = None,
    ):
        self._find_clients_by_name = find_clients_by_name
        self.matcher = matcher or ExactAddressMatcher()

    def find_duplicates(self, record: CandidateRecord) -> list[ValidationWarning]:
        """
        One warning per matching client, in lookup order.

        Storage errors from the lookup propagate to the caller.
        """
        name = normalize_text(record.name)
        if not name or not normalize_text(record.address):
            return []

        display_name = record.name.strip()
        display_address = truncate_address(record.address.strip())

        warnings = []
        for existing in self._find_clients_by_name(display_name):
            if normalize_text(existing.name) != name:
                continue
            if not self.matcher.matches(record.address, existing.address):
                continue
            warnings.append(
                ValidationWarning(
                    row_number=record.row_number,
                    field="name",
                    message=(
                        f"Potential duplicate: '{display_name}' at "
                        f"'{display_address}' already exists"
                    ),
                    existing_record_id=existing.id,
                )
            )
        return warnings
