from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from settlement.api.deps import get_service
from settlement.core.config import Settings
from settlement.main import app
from settlement.services.processing_service import ReceiptProcessingService


@pytest.fixture
def client(utf8_methods):
    svc = ReceiptProcessingService(settings=Settings(), extract_methods=utf8_methods)
    app.dependency_overrides[get_service] = lambda: svc
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def _upload(client: TestClient, *named: tuple):
    files = [("files", (filename, data, "application/pdf")) for filename, data in named]
    return client.post("/api/receipts", files=files)


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.text == "ok"


def test_register_and_list_payments(client):
    r = client.post("/api/payments", json={"id": "p1", "amount": "4500", "created_at": "2025-06-01T10:00:00Z"})
    assert r.status_code == 201
    assert r.json()["state"] == "awaiting-confirmation"

    dup = client.post("/api/payments", json={"id": "p1", "amount": "4500"})
    assert dup.status_code == 409

    bad = client.post("/api/payments", json={"id": "p2", "amount": "-1"})
    assert bad.status_code == 422

    listed = client.get("/api/payments").json()
    assert [p["id"] for p in listed] == ["p1"]


def test_upload_matches_and_stores(client, transcript_bytes):
    client.post("/api/payments", json={"id": "p1", "amount": "4500", "created_at": "2025-06-01T10:00:00Z"})

    r = _upload(client, ("a.pdf", transcript_bytes("phone_columnar")), ("r.pdf", transcript_bytes("rejected")))
    assert r.status_code == 200
    items = r.json()["items"]

    assert items[0]["outcome"] == "matched"
    assert items[0]["link"]["payment_id"] == "p1"
    assert items[0]["receipt"]["transfer_type"] == "by-phone"
    assert items[1]["outcome"] == "rejected"
    assert items[1]["error"]["code"] == "REJECTED_DOCUMENT"

    fp = items[0]["fingerprint"]
    stored = client.get(f"/api/receipts/{fp}")
    assert stored.status_code == 200
    assert stored.json()["meta"]["filename"] == "a.pdf"

    assert client.get("/api/receipts/unknown").status_code == 404


def test_empty_upload_rejected(client):
    r = _upload(client, ("empty.pdf", b""))
    assert r.status_code == 422


def test_inspect(client, transcript_bytes):
    r = client.post("/api/receipts/inspect", files=[("files", ("c.pdf", transcript_bytes("card_transfer"), "application/pdf"))])
    assert r.status_code == 200
    item = r.json()["items"][0]
    assert item["variant"] == "to-card"
    assert item["amount"] == "3000.00"
    assert item["error"] is None


def test_resolve_and_retry(client, transcript_bytes):
    for pid in ("p1", "p2"):
        client.post("/api/payments", json={"id": pid, "amount": "4500", "created_at": "2025-06-01T10:00:00Z"})

    item = _upload(client, ("a.pdf", transcript_bytes("phone_columnar"))).json()["items"][0]
    assert item["outcome"] == "ambiguous"
    fp = item["fingerprint"]

    r = client.post(f"/api/receipts/{fp}/resolve", json={"payment_id": "p2"})
    assert r.status_code == 200
    assert r.json()["payment_id"] == "p2"

    conflict = client.post(f"/api/receipts/{fp}/resolve", json={"payment_id": "p1"})
    assert conflict.status_code == 409
    assert conflict.json()["detail"]["code"] == "BINDING_REJECTED"

    missing = client.post("/api/receipts/nope/resolve", json={"payment_id": "p1"})
    assert missing.status_code == 404

    retried = client.post("/api/receipts/retry")
    assert retried.status_code == 200
    assert retried.json()["links"] == []
