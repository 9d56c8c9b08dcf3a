"""
HTTP surface tests: FastAPI TestClient with the in-memory Supabase double
"""
import io
import json

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from app.main import app
from app.routers import admin
from app.routers.common import (
    get_deletion_coordinator,
    get_pipeline,
    get_reconciliation_sweep,
    get_record_store,
    limiter,
)
from app.services.reconciliation import ReconciliationSweep

USER = {"X-User-Id": "user-1"}

ADVISORY_REPLY = json.dumps({
    "diagnosis": "Rice, Gujarat, kharif",
    "advice": {"0_best_practices": {"title": "Transplanting", "details": "Keep **2 cm** of water"}},
})
DIAGNOSIS_REPLY = json.dumps({"diagnosis": "**Blast** on rice", "confidence": 91, "advice": "Use **tricyclazole**"})


def png_bytes():
    buf = io.BytesIO()
    Image.new("RGB", (8, 8), "green").save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def client(pipeline, record_store, coordinator, blob_store):
    app.dependency_overrides[get_pipeline] = lambda: pipeline
    app.dependency_overrides[get_record_store] = lambda: record_store
    app.dependency_overrides[get_deletion_coordinator] = lambda: coordinator
    app.dependency_overrides[get_reconciliation_sweep] = lambda: ReconciliationSweep(record_store, blob_store)
    limiter.enabled = False
    yield TestClient(app)
    limiter.enabled = True
    app.dependency_overrides.clear()


class TestIdentity:
    @pytest.mark.parametrize("method,path", [
        ("get", "/advisories"),
        ("get", "/diagnoses"),
        ("delete", "/advisories"),
        ("delete", "/diagnoses/abc"),
    ])
    def test_sign_in_required(self, client, method, path):
        response = getattr(client, method)(path)
        assert response.status_code == 401
        assert response.json()["detail"] == "Sign in required"

    def test_blank_user_id(self, client):
        assert client.get("/advisories", headers={"X-User-Id": "  "}).status_code == 401


class TestAdvisoryEndpoints:
    def test_request_list_delete(self, client, generator, fake_supabase):
        generator.generate.return_value = ADVISORY_REPLY

        response = client.post("/advisories", json={"crop": "rice", "location": "Gujarat", "language": "gu"}, headers=USER)
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "success"
        assert body["message"] == "Rice, Gujarat, kharif"
        record = body["record"]
        assert record["user_id"] == "user-1"
        assert record["advice_view"]["format"] == "tree"
        assert record["advice_view"]["tree"]["children"][0]["text"] == "Best practices"

        listed = client.get("/advisories", headers=USER).json()["records"]
        assert [r["id"] for r in listed] == [record["id"]]

        deleted = client.delete(f"/advisories/{record['id']}", headers=USER).json()
        assert deleted["message"] == "Advisory has been deleted."
        assert fake_supabase.rows("advisory_logs") == []

    def test_malformed_reply(self, client, generator):
        generator.generate.return_value = "no json here"

        response = client.post("/advisories", json={}, headers=USER)

        assert response.status_code == 502
        assert response.json() == {
            "status": "error",
            "code": "MalformedResponse",
            "message": "Received an invalid response from the AI service.",
            "state": "extracting",
        }

    def test_unconfigured_generation(self, client, generator):
        from app.errors import ConfigurationError
        generator.ensure_configured.side_effect = ConfigurationError("missing key")

        response = client.post("/advisories", json={"crop": "rice"}, headers=USER)

        assert response.status_code == 503
        assert response.json()["code"] == "ConfigurationError"

    def test_list_failure(self, client, fake_supabase):
        fake_supabase.fail_on.add(("select", "advisory_logs"))
        response = client.get("/advisories", headers=USER)
        assert response.status_code == 500
        assert response.json()["message"] == "Your history could not be loaded."

    def test_plain_text_advice_shown_verbatim(self, client, fake_supabase):
        fake_supabase.tables["advisory_logs"] = [{
            "id": "legacy-1",
            "user_id": "user-1",
            "diagnosis": "Old entry",
            "advice": "Water twice a week.",
            "created_at": "2023-06-01T00:00:00+00:00",
        }]
        (record,) = client.get("/advisories", headers=USER).json()["records"]
        assert record["advice_view"] == {"format": "text", "text": "Water twice a week."}

    def test_delete_all(self, client, record_store, fake_supabase):
        import asyncio
        for _ in range(2):
            asyncio.run(record_store.create_advisory("user-1", "x", {"tip": "y"}))

        body = client.delete("/advisories", headers=USER).json()

        assert body["rows_deleted"] == 2
        assert body["message"] == "All advisory history has been deleted."


class TestDiagnosisEndpoints:
    def test_request_diagnosis(self, client, generator, fake_supabase):
        generator.generate.return_value = DIAGNOSIS_REPLY

        response = client.post(
            "/diagnoses",
            files={"file": ("leaf.png", png_bytes(), "image/png")},
            data={"language": "hi"},
            headers=USER,
        )

        assert response.status_code == 200
        record = response.json()["record"]
        assert record["confidence"] == 91
        assert record["confidence_label"] == "91%"
        assert record["diagnosis_segments"] == [
            {"text": "Blast", "bold": True},
            {"text": " on rice", "bold": False},
        ]
        (key,) = fake_supabase.blobs()
        assert key.startswith("user-1/") and key.endswith(".png")
        assert record["image_url"].endswith(key)

    @pytest.mark.parametrize("payload", [b"", b"definitely not an image"])
    def test_rejects_non_images(self, client, generator, payload):
        response = client.post(
            "/diagnoses",
            files={"file": ("leaf.png", payload, "image/png")},
            headers=USER,
        )
        assert response.status_code == 400
        generator.generate.assert_not_called()

    def test_delete_with_blob_failure_warns(self, client, generator, fake_supabase):
        generator.generate.return_value = DIAGNOSIS_REPLY
        record = client.post(
            "/diagnoses",
            files={"file": ("leaf.png", png_bytes(), "image/png")},
            headers=USER,
        ).json()["record"]
        (key,) = fake_supabase.blobs()
        fake_supabase.storage.fail_remove = {key}

        body = client.delete(f"/diagnoses/{record['id']}", headers=USER).json()

        assert body["status"] == "partial"
        assert body["rows_deleted"] == 1
        assert body["failed_blob_keys"] == [key]
        assert body["warning"] == "1 image(s) could not be removed from storage."
        assert fake_supabase.rows("crop_diagnostics") == []

    def test_delete_all_with_blob_failure_is_success(self, client, record_store, blob_store, fake_supabase):
        import asyncio

        async def seed():
            for n in range(3):
                url = await blob_store.upload(f"user-1/{n}.png", b"x", "image/png")
                await record_store.create_diagnostic("user-1", url, "d", "a", 50)

        asyncio.run(seed())
        fake_supabase.storage.fail_remove = {"user-1/1.png"}

        body = client.delete("/diagnoses", headers=USER).json()

        assert body["status"] == "success"
        assert body["rows_deleted"] == 3
        assert body["failed_blob_keys"] == ["user-1/1.png"]
        assert body["warning"] == "1 image(s) could not be removed from storage."


class TestAdminEndpoints:
    def test_not_configured(self, client, monkeypatch):
        monkeypatch.setattr(admin, "ADMIN_TOKEN", None)
        response = client.post("/admin/reconcile", json={"owner_id": "user-1"})
        assert response.status_code == 503

    def test_wrong_token(self, client, monkeypatch):
        monkeypatch.setattr(admin, "ADMIN_TOKEN", "secret")
        response = client.post("/admin/reconcile", json={"owner_id": "user-1"}, headers={"X-Admin-Token": "nope"})
        assert response.status_code == 401

    def test_dry_run_by_default(self, client, monkeypatch, blob_store, fake_supabase):
        import asyncio
        monkeypatch.setattr(admin, "ADMIN_TOKEN", "secret")
        asyncio.run(blob_store.upload("user-1/1700000000000.jpg", b"x", "image/jpeg"))

        body = client.post(
            "/admin/reconcile",
            json={"owner_id": "user-1"},
            headers={"X-Admin-Token": "secret"},
        ).json()

        assert body["dry_run"] is True
        assert body["orphaned_keys"] == ["user-1/1700000000000.jpg"]
        assert body["removed_keys"] == []
        assert "user-1/1700000000000.jpg" in fake_supabase.blobs()


class TestHealth:
    def test_root(self, client):
        assert client.get("/").json()["status"] == "online"

    def test_health(self, client):
        body = client.get("/health").json()
        assert body["status"] in ("healthy", "degraded")
        assert set(body["services"]) == {"generation", "supabase"}
