"""Tests for client import API routes."""

from __future__ import annotations

from uuid import uuid4

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import select

from foodbank.auth.utils import create_access_token
from foodbank.common.models import AuditLog, Client, Staff
from foodbank.core.config import settings


def _row(row_number, **overrides):
    row = {
        "row_number": row_number,
        "name": f"Client {row_number}",
        "address": f"{row_number} High Street, London N12 0AB",
        "family_size": "3",
        "num_children": 1,
        "children_ages": "6",
        "appointment_day": "wednesday",
        "appointment_time": "11:15",
        "pref_vegetarian": "yes",
    }
    row.update(overrides)
    return row


class TestTemplate:
    def test_download_template(self, client: TestClient):
        response = client.get("/api/v1/imports/template")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert "client-import-template.csv" in response.headers["content-disposition"]
        assert response.text.startswith("name,address,family_size")


class TestAuthentication:
    def test_requires_token(self, client: TestClient):
        response = client.post("/api/v1/imports/validate", json={"clients": [_row(1)]})
        assert response.status_code == 401
        assert response.json()["error"]["code"] == "unauthorized"

    def test_rejects_invalid_token(self, client: TestClient):
        response = client.post(
            "/api/v1/imports/validate",
            json={"clients": [_row(1)]},
            headers={"Authorization": "Bearer garbage"},
        )
        assert response.status_code == 401

    def test_requires_staff_record(self, client: TestClient):
        token = create_access_token({"sub": str(uuid4())})
        response = client.post(
            "/api/v1/imports/validate",
            json={"clients": [_row(1)]},
            headers={"Authorization": f"Bearer {token}"},
        )
        assert response.status_code == 403

    def test_inactive_staff_forbidden(self, client: TestClient, db, test_staff: Staff, auth_headers):
        test_staff.is_active = False
        db.commit()

        response = client.post(
            "/api/v1/imports/validate", json={"clients": [_row(1)]}, headers=auth_headers
        )
        assert response.status_code == 403


class TestValidateEndpoint:
    def test_validate_reports_errors_without_importing(self, client: TestClient, db, auth_headers):
        response = client.post(
            "/api/v1/imports/validate",
            json={"clients": [_row(1), _row(2, family_size=2, num_children=3)]},
            headers=auth_headers,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["is_valid"] is False
        assert data["total_rows"] == 2
        assert data["valid_row_count"] == 1
        assert data["errors"][0]["row_number"] == 2
        assert data["errors"][0]["field"] == "num_children"
        assert data["errors_by_type"]["constraint"] == 1
        assert db.execute(select(Client)).scalars().all() == []

    def test_validate_flags_existing_client(self, client: TestClient, db, auth_headers):
        client.post("/api/v1/imports/clients", json={"clients": [_row(1)]}, headers=auth_headers)

        response = client.post(
            "/api/v1/imports/validate",
            json={"clients": [_row(1, name="CLIENT 1 ")]},
            headers=auth_headers,
        )

        data = response.json()
        assert data["is_valid"] is True
        assert len(data["warnings"]) == 1
        existing = db.execute(select(Client)).scalar_one()
        assert data["warnings"][0]["existing_record_id"] == str(existing.id)

    def test_empty_list_rejected(self, client: TestClient, auth_headers):
        response = client.post("/api/v1/imports/validate", json={"clients": []}, headers=auth_headers)
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "bad_request"

    def test_too_many_rows_rejected(self, client: TestClient, auth_headers, monkeypatch):
        monkeypatch.setattr(settings, "import_max_rows", 2)
        response = client.post(
            "/api/v1/imports/validate",
            json={"clients": [_row(1), _row(2), _row(3)]},
            headers=auth_headers,
        )
        assert response.status_code == 400
        assert response.json()["error"]["details"]["maximum"] == 2

    def test_bad_preference_flag_is_422(self, client: TestClient, auth_headers):
        response = client.post(
            "/api/v1/imports/validate",
            json={"clients": [_row(1, pref_halal="perhaps")]},
            headers=auth_headers,
        )
        assert response.status_code == 422


class TestImportEndpoint:
    def test_import_clients(self, client: TestClient, db, test_staff: Staff, auth_headers):
        response = client.post(
            "/api/v1/imports/clients",
            json={"clients": [_row(i) for i in range(1, 8)], "batch_size": 3},
            headers=auth_headers,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["overall_success"] is True
        assert data["imported_count"] == 7
        assert [o["success_count"] for o in data["outcomes"]] == [3, 3, 1]
        assert data["imported_clients"][0]["barcode"].startswith("FFB-")
        assert data["validation"] is None

        clients = db.execute(select(Client).order_by(Client.name)).scalars().all()
        assert len(clients) == 7
        assert clients[0].appointment_day == "Wednesday"
        assert clients[0].pref_vegetarian is True
        assert clients[0].created_by == test_staff.id

        audit_entries = db.execute(select(AuditLog)).scalars().all()
        assert len(audit_entries) == 7
        assert {a.changed_by for a in audit_entries} == {test_staff.id}

    def test_import_blocked_by_errors(self, client: TestClient, db, auth_headers):
        response = client.post(
            "/api/v1/imports/clients",
            json={"clients": [_row(1), _row(2, address="  ")]},
            headers=auth_headers,
        )

        data = response.json()
        assert response.status_code == 200
        assert data["overall_success"] is False
        assert data["imported_count"] == 0
        assert data["validation"]["errors"][0]["field"] == "address"
        assert db.execute(select(Client)).scalars().all() == []

    @pytest.mark.parametrize("skip_duplicates,expected_imported", [(True, 1), (False, 2)])
    def test_skip_duplicates(self, client: TestClient, db, auth_headers, skip_duplicates, expected_imported):
        client.post("/api/v1/imports/clients", json={"clients": [_row(1)]}, headers=auth_headers)

        response = client.post(
            "/api/v1/imports/clients",
            json={"clients": [_row(1), _row(2)], "skip_duplicates": skip_duplicates},
            headers=auth_headers,
        )

        data = response.json()
        assert data["overall_success"] is True
        assert data["imported_count"] == expected_imported
        assert data["skipped_count"] == 2 - expected_imported
