"""
==============================================================================
API Integration Tests
==============================================================================

Tests for REST API endpoints.

==============================================================================
"""

import io

import pandas as pd
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from productscan.db.models import ScanHistory, ScanMethod, Scanner, User
from productscan.services.batch_service import BatchVerifier
from productscan.services.history_service import HistoryService


class TestHealthEndpoints:
    """Tests for health check endpoints."""

    def test_health_check(self, client: TestClient):
        response = client.get("/api/v1/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] in ["healthy", "degraded"]
        assert data["components"]["database"] == "healthy"

    def test_health_counts_products(self, client: TestClient, products):
        response = client.get("/api/v1/health")
        assert response.json()["details"]["products_loaded"] == 2

    def test_readiness_probe(self, client: TestClient):
        response = client.get("/api/v1/health/ready")
        assert response.status_code == 200
        assert response.json()["ready"] is True

    def test_liveness_probe(self, client: TestClient):
        response = client.get("/api/v1/health/live")
        assert response.status_code == 200
        assert response.json()["alive"] is True

    def test_root(self, client: TestClient):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["websocket"] == "/ws/scan"


class TestAuthEndpoints:
    """Tests for authentication endpoints."""

    def test_login_success(self, client: TestClient, operator_user: User):
        response = client.post(
            "/api/v1/auth/login",
            json={"username": "operator", "password": "operator123"}
        )
        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert "access_token" in data
        assert "refresh_token" in data
        assert data["user"]["username"] == "operator"

    def test_login_invalid_password(self, client: TestClient, operator_user: User):
        response = client.post(
            "/api/v1/auth/login",
            json={"username": "operator", "password": "wrongpassword"}
        )
        assert response.status_code == 401
        assert response.json()["error"]["code"] == "INVALID_CREDENTIALS"

    def test_login_user_not_found(self, client: TestClient):
        response = client.post(
            "/api/v1/auth/login",
            json={"username": "nonexistent", "password": "password123"}
        )
        assert response.status_code == 401

    def test_login_disabled_account(self, client: TestClient, db: Session, operator_user: User):
        operator_user.is_active = False
        db.commit()

        response = client.post(
            "/api/v1/auth/login",
            json={"username": "operator", "password": "operator123"}
        )
        assert response.status_code == 403
        assert response.json()["error"]["code"] == "ACCOUNT_DISABLED"

    def test_register(self, client: TestClient):
        response = client.post(
            "/api/v1/auth/register",
            json={"username": "NewOperator", "password": "secret123"}
        )
        assert response.status_code == 201
        data = response.json()
        assert data["user"]["username"] == "newoperator"
        assert data["access_token"]

    def test_register_duplicate(self, client: TestClient, operator_user: User):
        response = client.post(
            "/api/v1/auth/register",
            json={"username": "operator", "password": "secret123"}
        )
        assert response.status_code == 409
        assert response.json()["error"]["code"] == "USERNAME_EXISTS"

    def test_refresh(self, client: TestClient, operator_user: User):
        login = client.post(
            "/api/v1/auth/login",
            json={"username": "operator", "password": "operator123"}
        ).json()

        response = client.post(
            "/api/v1/auth/refresh",
            json={"refresh_token": login["refresh_token"]}
        )
        assert response.status_code == 200
        assert response.json()["user"]["id"] == operator_user.id

    def test_refresh_rejects_access_token(self, client: TestClient, operator_token: str):
        response = client.post(
            "/api/v1/auth/refresh",
            json={"refresh_token": operator_token}
        )
        assert response.status_code == 401

    def test_get_current_user(self, client: TestClient, operator_headers: dict, operator_user: User):
        response = client.get("/api/v1/auth/me", headers=operator_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["user"]["username"] == operator_user.username

    def test_get_current_user_no_token(self, client: TestClient):
        response = client.get("/api/v1/auth/me")
        assert response.status_code == 401


class TestProductEndpoints:
    """Lookup and manual verification."""

    def test_get_product(self, client: TestClient, operator_headers: dict, products):
        response = client.get("/api/v1/products/SN-001", headers=operator_headers)
        assert response.status_code == 200
        product = response.json()["product"]
        assert product["product_name"] == "Widget"
        assert product["production_date"] == "2025-01-15"
        assert product["location"] == "Gudang A"

    def test_get_product_does_not_record_history(
        self, client: TestClient, db: Session, operator_headers: dict, products
    ):
        client.get("/api/v1/products/SN-001", headers=operator_headers)
        assert db.query(ScanHistory).count() == 0

    def test_get_product_requires_auth(self, client: TestClient, products):
        response = client.get("/api/v1/products/SN-001")
        assert response.status_code == 401

    def test_verify_found_records_manual_history(
        self, client: TestClient, db: Session, operator_headers: dict,
        operator_user: User, products
    ):
        response = client.post(
            "/api/v1/products/verify",
            headers=operator_headers,
            json={"serial_number": "  SN-001  "}
        )
        assert response.status_code == 200
        assert response.json()["product"]["product_name"] == "Widget"

        history = db.query(ScanHistory).all()
        assert len(history) == 1
        assert history[0].serial_number == "SN-001"
        assert history[0].scan_method == ScanMethod.MANUAL
        assert history[0].user_id == operator_user.id

    def test_verify_not_found(
        self, client: TestClient, db: Session, operator_headers: dict, products
    ):
        response = client.post(
            "/api/v1/products/verify",
            headers=operator_headers,
            json={"serial_number": "SN-999"}
        )
        assert response.status_code == 404
        error = response.json()["error"]
        assert error["code"] == "PRODUCT_NOT_FOUND"
        assert error["message"] == "Produk tidak ditemukan di database"
        assert db.query(ScanHistory).count() == 0

    def test_verify_blank_serial_rejected(self, client: TestClient, operator_headers: dict):
        response = client.post(
            "/api/v1/products/verify",
            headers=operator_headers,
            json={"serial_number": "   "}
        )
        assert response.status_code == 422


class TestBatchVerification:
    """Spreadsheet upload."""

    @staticmethod
    def _xlsx(serials) -> bytes:
        buffer = io.BytesIO()
        pd.DataFrame({"serial_number": serials}).to_excel(buffer, index=False)
        return buffer.getvalue()

    def test_xlsx_upload(
        self, client: TestClient, db: Session, operator_headers: dict, products
    ):
        content = self._xlsx(["SN-001", "SN-404", "SN-002"])

        response = client.post(
            "/api/v1/products/verify-batch",
            headers=operator_headers,
            files={"file": ("serials.xlsx", content, "application/octet-stream")}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 3
        assert [p["serial_number"] for p in data["found"]] == ["SN-001", "SN-002"]
        assert data["missing"] == ["SN-404"]

        history = db.query(ScanHistory).order_by(ScanHistory.id).all()
        assert [h.serial_number for h in history] == ["SN-001", "SN-002"]
        assert all(h.scan_method == ScanMethod.EXCEL for h in history)

    def test_csv_first_column_fallback(
        self, client: TestClient, operator_headers: dict, products
    ):
        content = b"Serial,Note\nSN-002,ok\n,\nSN-777,x\n"

        response = client.post(
            "/api/v1/products/verify-batch",
            headers=operator_headers,
            files={"file": ("list.csv", content, "text/csv")}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 2
        assert data["missing"] == ["SN-777"]

    def test_unsupported_file_type(self, client: TestClient, operator_headers: dict):
        response = client.post(
            "/api/v1/products/verify-batch",
            headers=operator_headers,
            files={"file": ("serials.txt", b"SN-001", "text/plain")}
        )
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_UPLOAD"

    def test_history_failure_does_not_abort_batch(
        self, db: Session, operator_user: User, products, monkeypatch
    ):
        def failing_append(self, user_id, serial_number, method):
            raise OperationalError("INSERT INTO scan_history", {}, Exception("history down"))

        monkeypatch.setattr(HistoryService, "append", failing_append)

        found, missing = BatchVerifier(db).verify(operator_user.id, ["SN-001", "SN-404", "SN-002"])

        assert [p.serial_number for p in found] == ["SN-001", "SN-002"]
        assert missing == ["SN-404"]

    def test_history_failure_still_returns_upload_result(
        self, client: TestClient, operator_headers: dict, products, monkeypatch
    ):
        def failing_append(self, user_id, serial_number, method):
            raise OperationalError("INSERT INTO scan_history", {}, Exception("history down"))

        monkeypatch.setattr(HistoryService, "append", failing_append)

        response = client.post(
            "/api/v1/products/verify-batch",
            headers=operator_headers,
            files={"file": ("list.csv", b"serial_number\nSN-001\nSN-404\n", "text/csv")}
        )

        assert response.status_code == 200
        data = response.json()
        assert [p["serial_number"] for p in data["found"]] == ["SN-001"]
        assert data["missing"] == ["SN-404"]


class TestScannerEndpoints:
    """Scanner profile registry."""

    def _register(self, client, headers, name, **extra):
        return client.post(
            "/api/v1/scanners",
            headers=headers,
            json={"scanner_name": name, **extra}
        )

    def test_register_and_list(self, client: TestClient, operator_headers: dict):
        response = self._register(
            client, operator_headers, "Camera-2025-01-15",
            device_info={"platform": "Linux"}
        )
        assert response.status_code == 200
        scanner = response.json()["scanner"]
        assert scanner["scanner_type"] == "camera"
        assert scanner["is_active"] is True
        assert scanner["last_used_at"] is not None

        listed = client.get("/api/v1/scanners", headers=operator_headers).json()
        assert listed["total"] == 1
        assert listed["scanners"][0]["scanner_name"] == "Camera-2025-01-15"

    def test_register_same_name_updates(self, client: TestClient, db: Session, operator_headers: dict):
        first = self._register(client, operator_headers, "Front desk").json()["scanner"]
        second = self._register(
            client, operator_headers, "Front desk", scanner_type="manual"
        ).json()["scanner"]

        assert first["id"] == second["id"]
        assert second["scanner_type"] == "manual"
        assert db.query(Scanner).count() == 1

    def test_search_case_insensitive(self, client: TestClient, operator_headers: dict):
        self._register(client, operator_headers, "Camera-2025-01-15")
        self._register(client, operator_headers, "Handheld")

        data = client.get(
            "/api/v1/scanners/search", params={"q": "CAMERA"}, headers=operator_headers
        ).json()

        assert [s["scanner_name"] for s in data["scanners"]] == ["Camera-2025-01-15"]
        assert data["message"] is None

    def test_search_without_match(self, client: TestClient, operator_headers: dict):
        data = client.get(
            "/api/v1/scanners/search", params={"q": "zebra"}, headers=operator_headers
        ).json()

        assert data["scanners"] == []
        assert data["message"] == 'Scanner "zebra" not found'

    def test_delete_requires_confirmation(
        self, client: TestClient, db: Session, operator_headers: dict
    ):
        scanner_id = self._register(client, operator_headers, "abc").json()["scanner"]["id"]

        response = client.delete(f"/api/v1/scanners/{scanner_id}", headers=operator_headers)

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "CONFIRMATION_REQUIRED"
        assert db.query(Scanner).count() == 1

    def test_delete_confirmed(self, client: TestClient, db: Session, operator_headers: dict):
        scanner_id = self._register(client, operator_headers, "abc").json()["scanner"]["id"]

        response = client.delete(
            f"/api/v1/scanners/{scanner_id}",
            params={"confirm": "true"},
            headers=operator_headers
        )

        assert response.status_code == 200
        assert db.query(Scanner).count() == 0

    def test_cannot_delete_other_users_scanner(
        self, client: TestClient, db: Session, operator_headers: dict, other_user: User
    ):
        foreign = Scanner(user_id=other_user.id, scanner_name="Theirs")
        db.add(foreign)
        db.commit()

        response = client.delete(
            f"/api/v1/scanners/{foreign.id}",
            params={"confirm": "true"},
            headers=operator_headers
        )

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "SCANNER_NOT_FOUND"
        assert db.query(Scanner).count() == 1


class TestHistoryEndpoints:
    """Scan history listing."""

    def test_history_newest_first(
        self, client: TestClient, operator_headers: dict, products
    ):
        for serial in ["SN-001", "SN-002"]:
            client.post(
                "/api/v1/products/verify",
                headers=operator_headers,
                json={"serial_number": serial}
            )

        data = client.get("/api/v1/history", headers=operator_headers).json()

        assert data["total"] == 2
        assert [h["serial_number"] for h in data["items"]] == ["SN-002", "SN-001"]
        assert data["items"][0]["scan_method"] == "manual"

    def test_history_is_per_user(
        self, client: TestClient, db: Session, operator_headers: dict, other_user: User
    ):
        db.add(ScanHistory(
            user_id=other_user.id,
            serial_number="SN-001",
            scan_method=ScanMethod.CAMERA
        ))
        db.commit()

        data = client.get("/api/v1/history", headers=operator_headers).json()
        assert data["total"] == 0

    def test_history_filter_and_pagination(
        self, client: TestClient, db: Session, operator_headers: dict, operator_user: User
    ):
        for i in range(3):
            db.add(ScanHistory(
                user_id=operator_user.id,
                serial_number=f"SN-{i}",
                scan_method=ScanMethod.CAMERA if i else ScanMethod.EXCEL
            ))
        db.commit()

        data = client.get(
            "/api/v1/history",
            params={"method": "camera", "page_size": 1},
            headers=operator_headers
        ).json()

        assert data["total"] == 2
        assert data["pages"] == 2
        assert len(data["items"]) == 1
