import os

import pytest
from fastapi.testclient import TestClient

from imgconvert.exceptions import RecordStoreError
from imgconvert.main import app, get_blob_store, get_record_store
from imgconvert.models import ConversionStatus
from imgconvert.record_store import RecordStore


@pytest.fixture
def client(records, blobs, tmp_dir):
    app.dependency_overrides[get_record_store] = lambda: records
    app.dependency_overrides[get_blob_store] = lambda: blobs
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(client):
    resp = client.get("/health")

    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "OK"
    assert body["timestamp"]


def test_root(client):
    assert client.get("/").json()["ok"] is True


@pytest.mark.parametrize(
    "payload",
    [{"imageIds": []}, {"imageIds": "abc"}, {"imageIds": [1, 2]}, {"imageIds": [""]}, {}, {"ids": ["a"]}],
)
def test_convert_rejects_malformed_body(client, records, tool, add_image, payload):
    add_image("a")

    resp = client.post("/convert", json=payload)

    assert resp.status_code == 400
    assert "imageIds" in resp.json()["error"]
    assert records.get("a").conversion_status is ConversionStatus.PENDING
    assert tool.calls == []


def test_convert_rejects_non_json(client):
    resp = client.post("/convert", content=b"imageIds=a", headers={"Content-Type": "application/json"})

    assert resp.status_code == 400


def test_convert_not_found(client, records, tool, add_image):
    add_image("A", requires_conversion=False)

    resp = client.post("/convert", json={"imageIds": ["A", "unknown"]})

    assert resp.status_code == 404
    assert resp.json() == {"error": "No convertible images found"}
    assert records.get("A").conversion_status is ConversionStatus.PENDING


def test_convert_batch(client, records, tool, tmp_dir, add_image):
    add_image("ok", "cr2", "jpg", path="u/IMG_1.CR2")
    add_image("B", "arw", "jpg")
    tool.queue(("ok", b"JPEG"), ("timeout", None))

    resp = client.post("/convert", json={"imageIds": ["ok", "B"]})

    assert resp.status_code == 200
    body = resp.json()
    assert body["message"] == "Conversion process completed"
    assert body["summary"] == {"total": 2, "successful": 1, "failed": 1}
    ok, bad = body["results"]
    assert ok == {
        "imageId": "ok",
        "status": "success",
        "result": {
            "originalUrl": "u/IMG_1.CR2",
            "convertedUrl": "u/IMG_1_converted.jpg",
            "format": "cr2 → jpg",
        },
    }
    assert bad["imageId"] == "B"
    assert bad["status"] == "error"
    assert "timeout" in bad["error"]
    assert os.listdir(tmp_dir) == []


def test_convert_fetch_failure_is_500(client, blobs):
    class Broken:
        def fetch_convertible(self, ids):
            raise RecordStoreError("redis down")

    app.dependency_overrides[get_record_store] = lambda: Broken()

    resp = client.post("/convert", json={"imageIds": ["a"]})

    assert resp.status_code == 500
    assert resp.json() == {"error": "Failed to fetch images"}


def test_convert_without_redis_url_is_500(client, monkeypatch):
    monkeypatch.setattr("imgconvert.record_store.REDIS_URL", "")
    app.dependency_overrides[get_record_store] = lambda: RecordStore()

    resp = client.post("/convert", json={"imageIds": ["a"]})

    assert resp.status_code == 500
    assert resp.json() == {"error": "Failed to fetch images"}


def test_status_without_redis_url_is_500(client, monkeypatch):
    monkeypatch.setattr("imgconvert.record_store.REDIS_URL", "")
    app.dependency_overrides[get_record_store] = lambda: RecordStore()

    resp = client.get("/status/a")

    assert resp.status_code == 500


def test_convert_unexpected_error_is_500(client, monkeypatch):
    def explode(*args, **kwargs):
        raise RuntimeError("unexpected")

    monkeypatch.setattr("imgconvert.main.run_batch", explode)

    resp = client.post("/convert", json={"imageIds": ["a"]})

    assert resp.status_code == 500
    assert resp.json() == {"error": "Internal server error"}


def test_status(client, records, add_image):
    add_image("S", "heic", "jpg", path="u/S.heic")
    records.update("S", conversion_status=ConversionStatus.COMPLETED, file_url="u/S_converted.jpg")

    resp = client.get("/status/S")

    assert resp.status_code == 200
    assert resp.json() == {
        "imageId": "S",
        "status": "completed",
        "sourceUrl": "u/S.heic",
        "convertedUrl": "u/S_converted.jpg",
    }


def test_status_pending_has_null_converted_url(client, add_image):
    add_image("P")

    body = client.get("/status/P").json()

    assert body["status"] == "pending"
    assert body["convertedUrl"] is None


def test_status_unknown(client):
    resp = client.get("/status/ghost")

    assert resp.status_code == 404
    assert resp.json() == {"error": "Image not found"}
