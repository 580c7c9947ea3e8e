"""Tests for the media upload endpoint."""
import os

import pytest
from fastapi.testclient import TestClient

from app import create_app
from backend import JsonFileBackend

FIELDS = {"type": "image", "roomCode": "room1", "password": "pw", "name": "Alice"}
PNG = ("cat.png", b"\x89PNG fake image", "image/png")


@pytest.fixture
def upload_dir(tmp_path):
    return str(tmp_path / "uploads")


@pytest.fixture
def client(tmp_path, upload_dir):
    app = create_app(backend=JsonFileBackend(str(tmp_path / "data" / "rooms.json")), upload_dir=upload_dir)
    with TestClient(app) as client:
        client.app.state.store.create_if_absent("ROOM1", "pw")
        yield client


def test_upload_issues_url(client, upload_dir):
    response = client.post("/api/upload", data=FIELDS, files={"file": PNG})

    assert response.status_code == 200
    body = response.json()
    assert body["ok"] is True
    assert body["url"].startswith("/uploads/")
    assert body["url"].endswith(".png")

    filename = body["url"][len("/uploads/"):]
    with open(os.path.join(upload_dir, filename), "rb") as fh:
        assert fh.read() == PNG[1]

    service = client.app.state.media_service
    assert not service.claim("OTHER", body["url"])
    assert service.claim("ROOM1", body["url"])
    assert not service.claim("ROOM1", body["url"])
    assert service.pending_count("ROOM1") == 0


def test_unsafe_extension_is_dropped(client):
    response = client.post("/api/upload", data=FIELDS, files={"file": ("voice.we bm", b"abc", "audio/webm")})
    assert response.status_code == 200
    assert "." not in response.json()["url"][len("/uploads/"):]


@pytest.mark.parametrize("overrides,status,error", [
    ({"name": ""}, 400, "missing_fields"),
    ({"password": "   "}, 400, "missing_fields"),
    ({"type": "video"}, 400, "bad_type"),
    ({"roomCode": "nowhere"}, 404, "room_not_found"),
    ({"password": "wrong"}, 403, "bad_password"),
])
def test_upload_rejections(client, overrides, status, error):
    response = client.post("/api/upload", data={**FIELDS, **overrides}, files={"file": PNG})

    assert response.status_code == status
    assert response.json() == {"ok": False, "error": error}


def test_upload_without_file(client):
    response = client.post("/api/upload", data=FIELDS)
    assert response.status_code == 400
    assert response.json() == {"ok": False, "error": "no_file"}


def test_upload_too_large(client, upload_dir):
    client.app.state.media_service.max_bytes = 4

    response = client.post("/api/upload", data=FIELDS, files={"file": PNG})

    assert response.status_code == 413
    assert response.json() == {"ok": False, "error": "upload_failed"}
    assert os.listdir(upload_dir) == []


def test_unsent_uploads_are_capped_per_room(client):
    service = client.app.state.media_service
    service.max_pending = 2

    urls = [client.post("/api/upload", data=FIELDS, files={"file": PNG}).json()["url"] for _ in range(3)]

    assert service.pending_count("ROOM1") == 2
    assert not service.claim("ROOM1", urls[0])
    assert service.claim("ROOM1", urls[1])
    assert service.claim("ROOM1", urls[2])
