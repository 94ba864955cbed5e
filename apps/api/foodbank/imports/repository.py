"""Storage collaborator consumed by the client import pipeline.

The pipeline only needs four single-record operations plus a way to make
"client row + audit entry" one atomic unit. Storage failures are
translated into two exception types so callers can tell a rejected
record from storage that is gone.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import asdict, dataclass
from datetime import time
from typing import ContextManager, Iterator, Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import (
    DataError,
    DisconnectionError,
    IntegrityError,
    InterfaceError,
    OperationalError,
    SQLAlchemyError,
    TimeoutError as PoolTimeoutError,
)
from sqlalchemy.orm import Session

from foodbank.common.audit import create_audit_log
from foodbank.common.db import STATEMENT_TIMEOUT_KEY
from foodbank.common.models import Client
from foodbank.imports.coercers import format_time

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Base class for storage failures seen by the import pipeline."""


class RecordRejectedError(StorageError):
    """Storage refused a single record (constraint violation, bad data)."""


class StorageUnavailableError(StorageError):
    """Storage could not be reached or did not answer in time."""


@dataclass(frozen=True)
class ExistingClient:
    """Projection of a persisted client used for duplicate checks."""

    id: UUID
    name: str
    address: str


@dataclass(frozen=True)
class ClientDraft:
    """Normalized client values ready to be persisted."""

    barcode_id: str
    name: str
    address: str
    family_size: int
    num_children: int
    children_ages: Optional[str] = None
    reason: Optional[str] = None
    appointment_day: Optional[str] = None
    appointment_time: Optional[time] = None
    pref_gluten_free: bool = False
    pref_halal: bool = False
    pref_vegetarian: bool = False
    pref_no_cooking: bool = False

    def audit_values(self) -> dict:
        """JSON-safe snapshot for the audit trail."""
        values = asdict(self)
        values["appointment_time"] = format_time(self.appointment_time)
        return values


class ClientRepository(ABC):
    """Storage operations the import pipeline depends on."""

    @abstractmethod
    def find_clients_by_name(self, name: str) -> list[ExistingClient]:
        """Clients whose trimmed name matches case-insensitively."""

    @abstractmethod
    def barcode_exists(self, barcode_id: str) -> bool:
        pass

    @abstractmethod
    def create_client(self, draft: ClientDraft, created_by: UUID) -> UUID:
        """Persist a new client and return its id."""

    @abstractmethod
    def write_audit_entry(
        self,
        table_name: str,
        record_id: UUID,
        action: str,
        old_values: Optional[dict],
        new_values: Optional[dict],
        changed_by: UUID,
    ) -> None:
        pass

    @abstractmethod
    def atomic(self) -> ContextManager[None]:
        """
        Group the writes of one record.

        Everything written inside the block becomes durable together when
        the block exits cleanly, and is discarded if it raises.
        """


class SqlAlchemyClientRepository(ClientRepository):
    """ClientRepository backed by a SQLAlchemy session."""

    def __init__(self, db: Session, timeout_seconds: Optional[float] = None):
        self.db = db
        if timeout_seconds is not None:
            db.info[STATEMENT_TIMEOUT_KEY] = timeout_seconds

    @contextmanager
    def _translate_errors(self) -> Iterator[None]:
        try:
            yield
        except (IntegrityError, DataError) as e:
            raise RecordRejectedError(f"{type(e).__name__}: {e.orig}") from e
        except (
            OperationalError,
            InterfaceError,
            DisconnectionError,
            PoolTimeoutError,
        ) as e:
            raise StorageUnavailableError(f"{type(e).__name__}: {e}") from e
        except SQLAlchemyError as e:
            raise StorageUnavailableError(f"{type(e).__name__}: {e}") from e

    def find_clients_by_name(self, name: str) -> list[ExistingClient]:
        stmt = (
            select(Client.id, Client.name, Client.address)
            .where(func.lower(func.trim(Client.name)) == name.strip().lower())
            .order_by(Client.created_at, Client.id)
        )
        with self._translate_errors():
            rows = self.db.execute(stmt).all()
        return [ExistingClient(id=row.id, name=row.name, address=row.address) for row in rows]

    def barcode_exists(self, barcode_id: str) -> bool:
        stmt = select(Client.id).where(Client.barcode_id == barcode_id).limit(1)
        with self._translate_errors():
            return self.db.execute(stmt).first() is not None

    def create_client(self, draft: ClientDraft, created_by: UUID) -> UUID:
        client = Client(
            barcode_id=draft.barcode_id,
            name=draft.name,
            address=draft.address,
            family_size=draft.family_size,
            num_children=draft.num_children,
            children_ages=draft.children_ages,
            reason=draft.reason,
            photo_url=None,  # imports never carry photos
            appointment_day=draft.appointment_day,
            appointment_time=draft.appointment_time,
            pref_gluten_free=draft.pref_gluten_free,
            pref_halal=draft.pref_halal,
            pref_vegetarian=draft.pref_vegetarian,
            pref_no_cooking=draft.pref_no_cooking,
            created_by=created_by,
        )
        with self._translate_errors():
            self.db.add(client)
            self.db.flush()
        return client.id

    def write_audit_entry(
        self,
        table_name: str,
        record_id: UUID,
        action: str,
        old_values: Optional[dict],
        new_values: Optional[dict],
        changed_by: UUID,
    ) -> None:
        with self._translate_errors():
            create_audit_log(
                self.db,
                changed_by=changed_by,
                action=action,
                table_name=table_name,
                record_id=record_id,
                old_values=old_values,
                new_values=new_values,
            )

    @contextmanager
    def atomic(self) -> Iterator[None]:
        try:
            with self._translate_errors():
                yield
                self.db.commit()
        except Exception:
            self._rollback()
            raise

    def _rollback(self) -> None:
        try:
            self.db.rollback()
        except SQLAlchemyError:
            # Connection already gone; the original error is re-raised by the caller
            logger.warning("Rollback failed after storage error", exc_info=True)
