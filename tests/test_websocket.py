"""
==============================================================================
Scan WebSocket Tests
==============================================================================
"""

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from productscan.core import messages
from productscan.db.models import ScanHistory, ScanMethod, Scanner


def receive_until(ws, predicate, limit: int = 20) -> dict:
    """Read messages until one satisfies predicate."""
    for _ in range(limit):
        message = ws.receive_json()
        if predicate(message):
            return message
    raise AssertionError("expected message never arrived")


def is_status(status):
    return lambda m: m["type"] == "state" and m["session"]["status"] == status


class TestAnonymousSession:

    def test_initial_state(self, client: TestClient):
        with client.websocket_connect("/ws/scan") as ws:
            message = ws.receive_json()

        assert message == {
            "type": "state",
            "session": {
                "camera_active": False,
                "status": "idle",
                "error": "",
                "product": None,
                "camera": None,
            }
        }

    def test_manual_lookup(self, client, db, products):
        with client.websocket_connect("/ws/scan") as ws:
            ws.receive_json()
            ws.send_json({"type": "manual", "serial": "SN-001"})

            detecting = receive_until(ws, is_status("detecting"))
            success = receive_until(ws, is_status("success"))

        assert detecting["session"]["product"] is None
        assert success["session"]["product"]["product_name"] == "Widget"
        assert success["session"]["product"]["location"] == "Gudang A"
        assert db.query(ScanHistory).count() == 0

    def test_manual_not_found(self, client, products):
        with client.websocket_connect("/ws/scan") as ws:
            ws.send_json({"type": "manual", "serial": "SN-404"})
            error = receive_until(ws, is_status("error"))

        assert error["session"]["error"] == "Produk tidak ditemukan di database"

    def test_unknown_message(self, client):
        with client.websocket_connect("/ws/scan") as ws:
            ws.send_json({"type": "reboot"})
            error = receive_until(ws, lambda m: m["type"] == "error")

        assert error["code"] == "UNKNOWN_MESSAGE"

    def test_invalid_json(self, client):
        with client.websocket_connect("/ws/scan") as ws:
            ws.send_text("{not json")
            error = receive_until(ws, lambda m: m["type"] == "error")

        assert error["code"] == "INVALID_MESSAGE"


class TestAuthenticatedSession:

    def connect(self, client, token):
        return client.websocket_connect(
            f"/ws/scan?token={token}",
            headers={"user-agent": "pytest-browser", "sec-ch-ua-platform": '"Android"'}
        )

    def test_invalid_token_is_rejected(self, client, db):
        with client.websocket_connect("/ws/scan?token=garbage") as ws:
            message = ws.receive_json()

            assert message["type"] == "error"
            assert message["code"] == "AUTH_REQUIRED"

            with pytest.raises(WebSocketDisconnect) as exc_info:
                ws.receive_json()

        assert exc_info.value.code == 1008

    def test_start_capture_registers_scanner(self, client, db, operator_user, operator_token):
        with self.connect(client, operator_token) as ws:
            ws.send_json({
                "type": "start",
                "cameras": [{"id": "front", "label": "Front"}, {"id": "back", "label": "Back"}]
            })
            capture = receive_until(ws, lambda m: m["type"] == "capture")
            scanners = receive_until(ws, lambda m: m["type"] == "scanners" and m["scanners"])

        assert capture["camera"] == {"id": "back", "label": "Back"}
        assert capture["config"] == {
            "fps": 10,
            "qrbox": {"width": 300, "height": 300},
            "aspectRatio": 1.0,
        }
        assert scanners["scanners"][0]["scanner_name"].startswith("Camera-")

        scanner = db.query(Scanner).one()
        assert scanner.user_id == operator_user.id
        assert "pytest-browser" in scanner.device_info
        assert "Android" in scanner.device_info

    def test_permission_denied(self, client, db, operator_token):
        with self.connect(client, operator_token) as ws:
            ws.send_json({"type": "start", "cameras": [], "error": "NotAllowedError: Permission denied"})
            error = receive_until(ws, lambda m: m["type"] == "error")

        assert error["code"] == "CAMERA_PERMISSION_DENIED"
        assert error["message"] == messages.CAMERA_PERMISSION_DENIED
        assert db.query(Scanner).count() == 0

    def test_no_camera(self, client, operator_token):
        with self.connect(client, operator_token) as ws:
            ws.send_json({"type": "start", "cameras": []})
            error = receive_until(ws, lambda m: m["type"] == "error")

        assert error["code"] == "NO_CAMERA"

    def test_decoded_value_records_camera_history(self, client, db, products, operator_user, operator_token):
        with self.connect(client, operator_token) as ws:
            ws.send_json({"type": "start", "cameras": [{"id": "back", "label": "Back"}]})
            receive_until(ws, lambda m: m["type"] == "capture")

            ws.send_json({"type": "decoded", "text": "SN-001"})
            success = receive_until(ws, is_status("success"))

        assert success["session"]["product"]["serial_number"] == "SN-001"

        entry = db.query(ScanHistory).one()
        assert entry.user_id == operator_user.id
        assert entry.scan_method == ScanMethod.CAMERA

    def test_stop_returns_to_idle(self, client, operator_token):
        with self.connect(client, operator_token) as ws:
            ws.send_json({"type": "start", "cameras": [{"id": "back"}]})
            receive_until(ws, lambda m: m["type"] == "capture")

            ws.send_json({"type": "stop"})
            stopped = receive_until(
                ws, lambda m: m["type"] == "state" and not m["session"]["camera_active"]
            )

        assert stopped["session"]["status"] == "idle"
        assert stopped["session"]["camera"] is None

    def test_scanner_search_not_found(self, client, operator_token):
        with self.connect(client, operator_token) as ws:
            ws.send_json({"type": "scanners.search", "query": "Gudang"})
            notice = receive_until(ws, lambda m: m["type"] == "scanners" and m["message"])

        assert notice["message"] == 'Scanner "Gudang" not found'
