# tests/test_visitor_routes.py
"""HTTP tests for the visitor endpoints (FastAPI TestClient, in-memory SQLite)."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from datetime import date
from io import BytesIO
from unittest.mock import MagicMock
from openpyxl import load_workbook
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session
from app.config import settings
from app.exceptions import NotificationError

API = "/api"
FORM = {
    "full_name": "Jane Doe",
    "contact_number": "5551234567",
    "department_visiting": "Engineering",
    "person_to_visit": "John Smith",
}


def register(client, **overrides):
    data = dict(FORM, **overrides)
    return client.post(f"{API}/visitors", data=data)


class TestRegistration:
    def test_register_returns_id(self, client):
        resp = register(client)
        assert resp.status_code == 200
        assert resp.json() == {"id": 1, "message": "Visitor registered successfully"}

    def test_missing_field_is_400_with_field_message(self, client):
        data = dict(FORM)
        del data["full_name"]
        resp = client.post(f"{API}/visitors", data=data)
        assert resp.status_code == 400
        assert "full_name" in resp.json()["fields"]
        assert client.get(f"{API}/visitors/stats").json()["total"] == 0

    def test_blank_field_is_400(self, client):
        resp = register(client, department_visiting="   ")
        assert resp.status_code == 400
        assert "department_visiting" in resp.json()["fields"]

    def test_non_digit_contact_is_400(self, client):
        resp = register(client, contact_number="555 123")
        assert resp.status_code == 400
        assert "contact_number" in resp.json()["fields"]

    def test_photo_upload_stored(self, client):
        files = {"photo": ("visitor-photo.png", b"\x89PNG\r\n\x1a\nfake", "image/png")}
        resp = client.post(f"{API}/visitors", data=FORM, files=files)
        assert resp.status_code == 200
        visitor = client.get(f"{API}/visitors/{resp.json()['id']}").json()
        assert visitor["photo_path"].endswith("-visitor-photo.png")

    def test_non_image_upload_is_400(self, client):
        files = {"photo": ("notes.txt", b"hello", "text/plain")}
        resp = client.post(f"{API}/visitors", data=FORM, files=files)
        assert resp.status_code == 400

    def test_background_work_recorded(self, client, notifier, badge_generator):
        visitor_id = register(client).json()["id"]
        badge_generator.generate.assert_called_once_with(visitor_id)
        notifier.send_approval_request.assert_called_once()
        visitor = client.get(f"{API}/visitors/{visitor_id}").json()
        assert visitor["email_sent"] is True
        assert visitor["qr_code_path"].endswith(f"qr-{visitor_id}.png")


class TestLifecycleEndpoints:
    def test_full_visit(self, client):
        visitor_id = register(client).json()["id"]

        active = client.get(f"{API}/visitors", params={"status": "active"}).json()
        assert [v["full_name"] for v in active] == ["Jane Doe"]
        assert active[0]["out_time"] is None
        assert active[0]["status"] == "active"

        page = client.get(f"{API}/visitors/{visitor_id}/approve")
        assert page.status_code == 200
        assert "text/html" in page.headers["content-type"]
        assert "Jane Doe" in page.text
        assert f"/api/visitors/{visitor_id}/release" in page.text

        assert client.post(f"{API}/visitors/{visitor_id}/release").status_code == 200
        pending = client.get(f"{API}/visitors", params={"status": "security-pending"}).json()
        assert [v["id"] for v in pending] == [visitor_id]

        assert client.post(f"{API}/visitors/{visitor_id}/security-checkout").status_code == 200
        assert client.get(f"{API}/visitors/stats").json() == {
            "total": 1, "active": 0, "secured": 1, "security_pending": 0,
        }
        released = client.get(f"{API}/visitors", params={"status": "released"}).json()
        assert released[0]["approved"] is True
        assert released[0]["security_out_time"] is not None

    def test_approval_page_escapes_name(self, client):
        visitor_id = register(client, full_name="<script>x</script>").json()["id"]
        page = client.get(f"{API}/visitors/{visitor_id}/approve")
        assert "<script>x</script>" not in page.text

    def test_unknown_id_is_404(self, client):
        assert client.get(f"{API}/visitors/999/approve").status_code == 404
        assert client.post(f"{API}/visitors/999/release").status_code == 404
        assert client.post(f"{API}/visitors/999/security-checkout").status_code == 404
        assert client.get(f"{API}/visitors/999").status_code == 404
        assert client.get(f"{API}/visitors/stats").json()["total"] == 0

    def test_security_before_release_is_409(self, client):
        visitor_id = register(client).json()["id"]
        resp = client.post(f"{API}/visitors/{visitor_id}/security-checkout")
        assert resp.status_code == 409
        assert client.get(f"{API}/visitors/{visitor_id}").json()["security_confirmed"] is False

    def test_bad_status_filter_is_400(self, client):
        assert client.get(f"{API}/visitors", params={"status": "gone"}).status_code == 400

    def test_release_publishes_to_dashboards(self, client):
        visitor_id = register(client).json()["id"]
        broadcaster = client.app.state.broadcaster
        broadcaster.publish = MagicMock(wraps=broadcaster.publish)
        client.post(f"{API}/visitors/{visitor_id}/release")
        client.post(f"{API}/visitors/{visitor_id}/security-checkout")
        assert broadcaster.publish.call_count == 2


class TestStorageFailure:
    @pytest.fixture
    def failing_commit(self, monkeypatch):
        error = OperationalError("INSERT INTO visitors", {}, Exception("database is locked"))
        monkeypatch.setattr(Session, "commit", MagicMock(side_effect=error))

    def test_commit_failure_is_generic_500(self, client, failing_commit):
        resp = register(client)
        assert resp.status_code == 500
        assert resp.json() == {"detail": "Storage failure"}
        assert "locked" not in resp.text

    def test_failed_registration_discards_photo(self, client, failing_commit):
        files = {"photo": ("visitor-photo.png", b"\x89PNG\r\n\x1a\nfake", "image/png")}
        resp = client.post(f"{API}/visitors", data=FORM, files=files)
        assert resp.status_code == 500
        assert os.listdir(settings.UPLOAD_DIR) == []


class TestExportEndpoint:
    def test_day_export(self, client):
        register(client)
        resp = client.get(f"{API}/visitors/export", params={"period": "day"})
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith(
            "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet")
        assert f'visitors_day_{date.today().isoformat()}.xlsx' in resp.headers["content-disposition"]

        ws = load_workbook(BytesIO(resp.content)).active
        assert ws.max_row == 2
        assert ws.cell(row=2, column=8).value == "Active"

    def test_unknown_period_is_400(self, client):
        assert client.get(f"{API}/visitors/export", params={"period": "decade"}).status_code == 400


class TestHealthAndEmail:
    def test_health(self, client):
        body = client.get(f"{API}/health").json()
        assert body["status"] == "ok"
        assert body["database"] == "ok"
        assert body["dashboard_subscribers"] == 0

    def test_test_email_success(self, client, notifier):
        resp = client.get("/test-email")
        assert resp.status_code == 200
        notifier.send_test.assert_called_once()

    def test_test_email_failure_is_generic_500(self, client, notifier):
        notifier.send_test.side_effect = NotificationError("535 bad credentials for desk@example.com")
        resp = client.get("/test-email")
        assert resp.status_code == 500
        assert "535" not in resp.text
