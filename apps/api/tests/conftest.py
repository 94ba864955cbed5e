from __future__ import annotations

from contextlib import contextmanager
from typing import Generator, Iterator, Optional
from uuid import UUID, uuid4

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from foodbank.main import app
from foodbank.auth.utils import create_access_token
from foodbank.common.models import Base, Staff
from foodbank.imports.repository import (
    ClientDraft,
    ClientRepository,
    ExistingClient,
    RecordRejectedError,
    StorageUnavailableError,
)
from foodbank.imports.schemas import CandidateRecord

# Use in-memory SQLite for tests (faster than Postgres for unit tests)
TEST_DB_URL = "sqlite:///:memory:"
engine = create_engine(
    TEST_DB_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """
    Create a fresh database for each test.

    Tables are dropped after each test (in-memory, so this is fast).
    """
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db: Session) -> Generator[TestClient, None, None]:
    """Create a test client with dependency overrides."""

    def get_test_db():
        yield db

    from foodbank.common.db import get_db

    app.dependency_overrides[get_db] = get_test_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def test_staff(db: Session) -> Staff:
    """Create an active staff member."""
    staff = Staff(
        id=uuid4(),
        email="volunteer@foodbank.test",
        name="Test Volunteer",
        role="staff",
        is_active=True,
    )
    db.add(staff)
    db.commit()
    db.refresh(staff)
    return staff


@pytest.fixture
def auth_headers(test_staff: Staff) -> dict[str, str]:
    token = create_access_token({"sub": str(test_staff.id)})
    return {"Authorization": f"Bearer {token}"}


def make_record(row_number: int = 1, **overrides) -> CandidateRecord:
    """Build a valid candidate record, overriding selected fields."""
    values = {
        "row_number": row_number,
        "name": f"Client {row_number}",
        "address": f"{row_number} High Street, London N12 0AB",
        "family_size": 3,
        "num_children": 1,
        "children_ages": "4",
        "reason": "Referred by GP",
        "appointment_day": "Tuesday",
        "appointment_time": "10:30",
    }
    values.update(overrides)
    return CandidateRecord(**values)


class InMemoryClientRepository(ClientRepository):
    """
    Repository double keeping clients in a list.

    Writes are staged inside ``atomic()`` and only become visible when the
    block exits cleanly.
    """

    def __init__(
        self,
        existing: Optional[list[ExistingClient]] = None,
        reject_names: tuple[str, ...] = (),
        fail_after_creates: Optional[int] = None,
        fail_lookups: bool = False,
    ):
        self.existing = list(existing or [])
        self.clients: dict[UUID, tuple[ClientDraft, UUID]] = {}
        self.audit_entries: list[dict] = []
        self.reject_names = reject_names
        self.fail_after_creates = fail_after_creates
        self.fail_lookups = fail_lookups
        self.mutation_calls = 0
        self.lookup_calls = 0
        self._staged: Optional[list] = None

    def find_clients_by_name(self, name: str) -> list[ExistingClient]:
        self.lookup_calls += 1
        if self.fail_lookups:
            raise StorageUnavailableError("connection refused")
        committed = [
            ExistingClient(id=client_id, name=draft.name, address=draft.address)
            for client_id, (draft, _) in self.clients.items()
        ]
        return [
            client
            for client in self.existing + committed
            if client.name.strip().lower() == name.strip().lower()
        ]

    def barcode_exists(self, barcode_id: str) -> bool:
        return any(draft.barcode_id == barcode_id for draft, _ in self.clients.values())

    def create_client(self, draft: ClientDraft, created_by: UUID) -> UUID:
        self.mutation_calls += 1
        if (
            self.fail_after_creates is not None
            and len(self.clients) >= self.fail_after_creates
        ):
            raise StorageUnavailableError("connection lost")
        if draft.name in self.reject_names:
            raise RecordRejectedError("uniqueness conflict")
        client_id = uuid4()
        self._staged.append(("client", client_id, (draft, created_by)))
        return client_id

    def write_audit_entry(
        self, table_name, record_id, action, old_values, new_values, changed_by
    ) -> None:
        self.mutation_calls += 1
        self._staged.append(
            (
                "audit",
                record_id,
                {
                    "table_name": table_name,
                    "record_id": record_id,
                    "action": action,
                    "old_values": old_values,
                    "new_values": new_values,
                    "changed_by": changed_by,
                },
            )
        )

    @contextmanager
    def atomic(self) -> Iterator[None]:
        self._staged = []
        try:
            yield
        except Exception:
            self._staged = None
            raise
        for kind, record_id, payload in self._staged:
            if kind == "client":
                self.clients[record_id] = payload
            else:
                self.audit_entries.append(payload)
        self._staged = None


@pytest.fixture
def memory_repository() -> InMemoryClientRepository:
    return InMemoryClientRepository()


@pytest.fixture
def record_factory():
    return make_record


@pytest.fixture
def repository_factory():
    return InMemoryClientRepository
