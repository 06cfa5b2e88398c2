"""Tests for the HTTP endpoints."""
import json
from unittest.mock import patch
from urllib.parse import parse_qs, quote, urlparse

import qrcode
from sqlalchemy import select

import config
from models import Record


def _create(client, reading):
    r = client.post("/api/records", json=reading)
    assert r.status_code == 201, r.text
    return r.json()


class TestHealth:
    def test_root(self, client):
        r = client.get("/")
        assert r.status_code == 200
        assert "version" in r.json()

    def test_health(self, client):
        for path in ("/health", "/api/health"):
            r = client.get(path)
            assert r.status_code == 200
            assert r.json()["database"] == "connected"


class TestRecords:
    def test_create_returns_hash_and_canonical(self, client, wheat_reading):
        data = _create(client, wheat_reading)
        assert data["success"] is True
        assert len(data["hash"]) == 64
        assert data["hash"] == data["hash"].lower()
        assert json.loads(data["canonical"])["cid"] == "bafy123"
        assert data["status"] == "pending"

    def test_create_validation_error(self, client, wheat_reading):
        r = client.post("/api/records", json=dict(wheat_reading, soilMoisture=-1, humidity=101))
        assert r.status_code == 400
        detail = r.json()["detail"]
        assert detail["message"] == "invalid record payload"
        assert {d["field"] for d in detail["details"]} == {"soilMoisture", "humidity"}

    def test_create_duplicate(self, client, wheat_reading):
        _create(client, wheat_reading)
        r = client.post("/api/records", json=wheat_reading)
        assert r.status_code == 409

    def test_verify_round_trip(self, client, wheat_reading):
        created = _create(client, wheat_reading)
        r = client.get("/api/records/verify", params={"cid": "bafy123"})
        assert r.status_code == 200
        data = r.json()
        assert data["valid"] is True
        assert data["state"] == "verified"
        assert data["storedHash"] == data["recomputedHash"] == created["hash"]
        assert data["canonical"] == created["canonical"]

    def test_verify_detects_tampering(self, client, wheat_reading):
        created = _create(client, wheat_reading)
        session = client.app.state.database.session()
        try:
            row = session.scalar(select(Record).where(Record.cid == "bafy123"))
            payload = json.loads(row.payload)
            payload["soilMoisture"] = 43
            row.payload = json.dumps(payload)
            session.commit()
        finally:
            session.close()

        data = client.get("/api/records/verify", params={"cid": "bafy123"}).json()
        assert data["valid"] is False
        assert data["storedHash"] == created["hash"]
        assert data["recomputedHash"] != created["hash"]

    def test_verify_unknown_cid(self, client):
        r = client.get("/api/records/verify", params={"cid": "bafy-missing"})
        assert r.status_code == 404

    def test_verify_requires_cid(self, client):
        assert client.get("/api/records/verify").status_code == 422

    def test_list_and_get(self, client, wheat_reading):
        _create(client, wheat_reading)
        _create(client, dict(wheat_reading, cid="bafy456", landId="L2"))

        all_records = client.get("/api/records").json()["records"]
        assert [r["cid"] for r in all_records] == ["bafy456", "bafy123"]

        filtered = client.get("/api/records", params={"landId": "L2"}).json()["records"]
        assert [r["cid"] for r in filtered] == ["bafy456"]

        one = client.get("/api/records/bafy123").json()
        assert one["landId"] == "L1"
        assert one["producerId"] == "P1"
        assert one["fields"]["cropType"] == "Wheat"

        assert client.get("/api/records/bafy-missing").status_code == 404

    def test_set_status(self, client, wheat_reading):
        _create(client, wheat_reading)
        r = client.post("/api/records/bafy123/status", json={"status": "verified"})
        assert r.status_code == 200
        assert r.json()["status"] == "verified"
        assert client.get("/api/records/verify", params={"cid": "bafy123"}).json()["valid"] is True

        assert client.post("/api/records/bafy123/status", json={"status": "approved"}).status_code == 422

    def test_qrcode(self, client, wheat_reading):
        _create(client, wheat_reading)
        r = client.get("/api/records/bafy123/qrcode")
        assert r.status_code == 200
        assert r.headers["content-type"] == "image/png"
        assert r.content.startswith(b"\x89PNG")

        assert client.get("/api/records/bafy-missing/qrcode").status_code == 404


    def test_qrcode_encodes_cid_in_query(self, client, wheat_reading):
        cid = "bafy a&b#c+d"
        _create(client, dict(wheat_reading, cid=cid))
        with patch("app.qrcode.make", wraps=qrcode.make) as make:
            r = client.get(f"/api/records/{quote(cid, safe='')}/qrcode")
        assert r.status_code == 200
        url = make.call_args[0][0]
        assert url.startswith(f"{config.BASE_URL}/api/records/verify?")
        assert parse_qs(urlparse(url).query) == {"cid": [cid]}

        verify = client.get("/api/records/verify", params={"cid": cid}).json()
        assert verify["valid"] is True

    def test_create_rejects_boolean_and_string_numbers(self, client, wheat_reading):
        r = client.post("/api/records", json=dict(wheat_reading, soilMoisture=True, temperature="21"))
        assert r.status_code == 400
        fields = {d["field"] for d in r.json()["detail"]["details"]}
        assert fields == {"soilMoisture", "temperature"}

class TestLand:
    def test_register_and_list(self, client):
        r = client.post("/api/land", json={"id": "L1", "name": "North Field", "crop": "Wheat", "ownerId": "farmer-a"})
        assert r.status_code == 201
        assert client.post("/api/land", json={"id": "L1", "name": "X", "crop": "Y"}).status_code == 409

        land = client.get("/api/land").json()["land"]
        assert land == [{"id": "L1", "name": "North Field", "crop": "Wheat", "lastUpdated": None, "lastCid": None}]

        mine = client.get("/api/land", params={"role": "farmer", "ownerId": "farmer-a"}).json()["land"]
        assert [p["id"] for p in mine] == ["L1"]

    def test_farmer_without_owner(self, client):
        r = client.get("/api/land", params={"role": "farmer"})
        assert r.status_code == 400


def test_seed(client):
    data = client.get("/api/seed").json()
    assert data["status"] == "seeded"
    for cid in data["cids"]:
        assert client.get("/api/records/verify", params={"cid": cid}).json()["valid"] is True
    assert client.get("/api/seed").json()["status"] == "exists"


def test_seed_with_existing_seed_cid(client, wheat_reading):
    _create(client, dict(wheat_reading, cid="bafy-seed-soil-001"))
    r = client.get("/api/seed")
    assert r.status_code == 409
