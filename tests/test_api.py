import pytest
from fastapi.testclient import TestClient

import main
from catalog import InMemoryCatalog


@pytest.fixture
def client(monkeypatch, catalog):
    monkeypatch.setattr(main, "catalog", catalog)
    return TestClient(main.app)


@pytest.fixture
def broken_client(monkeypatch, failing_catalog):
    monkeypatch.setattr(main, "catalog", failing_catalog)
    return TestClient(main.app)


def test_normalize_endpoint(client):
    resp = client.post("/normalize", json={"text": "Panadol Extra Strength 500mg, take twice daily"})
    assert resp.status_code == 200
    assert resp.json() == {"canonical_name": "Panadol Extra Strength", "short_key": "Panadol Extra Strength"}


def test_verify_medicine_matched(client):
    resp = client.post("/verify-medicine", json={"medicineName": "Panadol 500mg"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["canonical_name"] == "Panadol"
    assert body["outcome"]["status"] == "matched"
    assert body["outcome"]["record"]["id"] == "P1"
    assert body["outcome"]["safety_score"] == 95


def test_verify_medicine_not_found_is_200(client):
    resp = client.post("/verify-medicine", json={"medicineName": "Dolorex for pain"})
    assert resp.status_code == 200
    outcome = resp.json()["outcome"]
    assert outcome["status"] == "not_found"
    assert outcome["inferred_category"] == "Analgesic"
    assert outcome["alternatives"]


@pytest.mark.parametrize("payload", [{}, {"medicineName": ""}, {"medicineName": "14"}])
def test_verify_medicine_rejects_unusable_input(client, payload):
    assert client.post("/verify-medicine", json=payload).status_code == 400


def test_verify_medicine_catalog_down_is_503(broken_client):
    resp = broken_client.post("/verify-medicine", json={"medicineName": "Panadol"})
    assert resp.status_code == 503


def test_verify_text(client):
    resp = client.post("/verify", json={"text": "1. Panadol 500mg\n2. x20\n3. Brufen 400mg x1x3"})
    assert resp.status_code == 200
    results = resp.json()["results"]
    assert [r["canonical_name"] for r in results] == ["Panadol", "", "Brufen"]
    assert results[1]["outcome"] is None
    assert results[0]["outcome"]["status"] == results[2]["outcome"]["status"] == "matched"


def test_verify_text_reports_unavailable_per_line(broken_client):
    resp = broken_client.post("/verify", json={"text": "Panadol"})
    assert resp.status_code == 200
    assert resp.json()["results"][0]["outcome"]["status"] == "catalog_unavailable"


def test_barcode_lookup(client):
    found = client.get("/medicines/barcode/8964000000011")
    assert found.status_code == 200
    assert found.json()["status"] == "matched"

    missing = client.get("/medicines/barcode/0000")
    assert missing.json()["status"] == "not_found"


def test_barcode_lookup_catalog_down_is_503(broken_client):
    assert broken_client.get("/medicines/barcode/0000").status_code == 503


def test_import_endpoint(monkeypatch):
    catalog = InMemoryCatalog()
    monkeypatch.setattr(main, "catalog", catalog)
    client = TestClient(main.app)

    resp = client.post("/import", json={"medicines": [
        {"id": "P1", "name": "Panadol", "genericName": "Paracetamol"},
        {"id": "P1", "name": "Panadol", "genericName": "Paracetamol"},
        {"name": "missing id"},
    ]})
    assert resp.status_code == 200
    assert resp.json() == {"total": 3, "inserted": 1, "errors": 1}
    assert len(catalog) == 1


def test_uninitialised_catalog_is_503(monkeypatch):
    monkeypatch.setattr(main, "catalog", None)
    client = TestClient(main.app)
    assert client.post("/verify", json={"text": "Panadol"}).status_code == 503
