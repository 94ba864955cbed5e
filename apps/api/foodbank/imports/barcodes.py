"""Barcode allocation for newly imported clients."""

from __future__ import annotations

import logging
import secrets
from datetime import datetime
from typing import Callable, Optional

from foodbank.common.models.base import utcnow
from foodbank.core.config import settings

logger = logging.getLogger(__name__)

# No I, O, 0 or 1, which are easy to confuse on printed cards
BARCODE_CHARSET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"


class BarcodeExhaustedError(Exception):
    """No free barcode was found within the retry bound."""


class BarcodeAllocator:
    """
    Hands out barcodes of the form ``FFB-202401-K7QZ3``.

    A barcode is never handed out twice by the same allocator, and every
    candidate is checked against storage before it is issued.
    """

    def __init__(
        self,
        barcode_exists: Callable[[str], bool],
        prefix: Optional[str] = None,
        code_length: Optional[int] = None,
        max_attempts: Optional[int] = None,
        clock: Optional[Callable[[], datetime]] = None,
        code_factory: Optional[Callable[[], str]] = None,
    ):
        self._barcode_exists = barcode_exists
        self.prefix = prefix or settings.barcode_prefix
        self.code_length = code_length or settings.barcode_code_length
        self.max_attempts = max_attempts or settings.barcode_max_attempts
        self._clock = clock or utcnow
        self._code_factory = code_factory or self._random_code
        self._issued: set[str] = set()

    @property
    def issued(self) -> frozenset[str]:
        return frozenset(self._issued)

    def _random_code(self) -> str:
        return "".join(secrets.choice(BARCODE_CHARSET) for _ in range(self.code_length))

    def generate_candidate(self) -> str:
        return f"{self.prefix}-{self._clock():%Y%m}-{self._code_factory()}"

    def allocate_one(self) -> str:
        """
        Allocate one unused barcode.

        Raises:
            BarcodeExhaustedError: every attempt collided
            StorageUnavailableError: the existence check could not run
        """
        for attempt in range(1, self.max_attempts + 1):
            candidate = self.generate_candidate()
            if candidate in self._issued or self._barcode_exists(candidate):
                logger.debug(f"Barcode collision on attempt {attempt}: {candidate}")
                continue
            self._issued.add(candidate)
            return candidate

        raise BarcodeExhaustedError(
            f"No free barcode found after {self.max_attempts} attempts"
        )

    def allocate(self, n: int) -> list[str]:
        """Allocate ``n`` pairwise distinct, unused barcodes."""
        return [self.allocate_one() for _ in range(n)]
