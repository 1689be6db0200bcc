from __future__ import annotations

import importlib
from pathlib import Path
from types import SimpleNamespace
from uuid import UUID, uuid4

import pytest
from fastapi.testclient import TestClient

from server.core.config import get_settings
from server.features.photos.errors import (
    AnnouncementNotFoundError,
    PayloadTooLargeError,
    PhotoTransactionError,
    PhotoValidationError,
)
from server.main import app

photos_api = importlib.import_module("server.features.photos.api")
photos_service = importlib.import_module("server.features.photos.service")

JPEG_BYTES = b"\xff\xd8\xff\xe0\x00\x10JFIF\x00\x01" + b"\x00" * 500 + b"\xff\xd9"


class _DummySession:
    async def commit(self):
        return None

    async def rollback(self):
        return None


@pytest.fixture
def client():
    async def _override_db():
        yield _DummySession()

    app.dependency_overrides[photos_api.get_db_session] = _override_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def _post_photo(client: TestClient, announcement_id: str, payload: bytes, filename: str = "test.jpg"):
    return client.post(
        f"/api/v1/announcements/{announcement_id}/photos",
        files={"photo": (filename, payload, "image/jpeg")},
    )


def test_post_photo_returns_canonical_url(client, monkeypatch):
    calls: list[tuple[str, bytes]] = []

    async def _fake_upload(_session, *, announcement_id, payload):
        calls.append((announcement_id, payload))
        return f"/images/{announcement_id}.jpeg"

    monkeypatch.setattr(photos_api, "upload_photo", _fake_upload)
    announcement_id = str(uuid4())

    response = _post_photo(client, announcement_id, JPEG_BYTES)

    assert response.status_code == 201
    assert response.json() == {"photo_url": f"/images/{announcement_id}.jpeg"}
    assert calls == [(announcement_id, JPEG_BYTES)]


def test_post_photo_without_photo_field_is_bad_request(client, monkeypatch):
    async def _fake_upload(_session, *, announcement_id, payload):
        raise AssertionError("service must not be called")

    monkeypatch.setattr(photos_api, "upload_photo", _fake_upload)

    response = client.post(
        f"/api/v1/announcements/{uuid4()}/photos",
        data={"name": "test"},
    )

    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "MISSING_PHOTO"


@pytest.mark.parametrize(
    ("error", "status_code", "code"),
    [
        (PhotoValidationError("bad"), 400, "INVALID_FILE_FORMAT"),
        (PayloadTooLargeError("big"), 413, "PAYLOAD_TOO_LARGE"),
        (AnnouncementNotFoundError("gone"), 404, "NOT_FOUND"),
        (PhotoTransactionError("db"), 500, "TRANSACTION_ERROR"),
    ],
)
def test_post_photo_maps_domain_errors(client, monkeypatch, error, status_code, code):
    async def _fake_upload(_session, *, announcement_id, payload):
        raise error

    monkeypatch.setattr(photos_api, "upload_photo", _fake_upload)

    response = _post_photo(client, str(uuid4()), JPEG_BYTES)

    assert response.status_code == status_code
    assert response.json()["detail"]["code"] == code


def _patch_repo(monkeypatch, rows: dict[UUID, SimpleNamespace]) -> None:
    async def _find_by_id(_session, announcement_id):
        try:
            return rows.get(UUID(str(announcement_id)))
        except ValueError:
            return None

    async def _update_photo_url(_tx, *, announcement_id, photo_url):
        rows[announcement_id].photo_url = photo_url

    monkeypatch.setattr(photos_service.repo, "find_by_id", _find_by_id)
    monkeypatch.setattr(photos_service.repo, "update_photo_url", _update_photo_url)


def test_upload_flow_stores_file_and_replaces_on_resubmission(client, monkeypatch, tmp_path: Path):
    monkeypatch.setattr(get_settings(), "photo_storage_dir", str(tmp_path))
    announcement_id = uuid4()
    rows = {announcement_id: SimpleNamespace(id=announcement_id, photo_url=None)}
    _patch_repo(monkeypatch, rows)

    first = _post_photo(client, str(announcement_id), JPEG_BYTES, filename="test1.jpg")
    second = _post_photo(client, str(announcement_id), JPEG_BYTES, filename="test2.png")

    assert first.status_code == 201
    assert second.status_code == 201
    assert rows[announcement_id].photo_url == f"/images/{announcement_id}.jpeg"
    assert first.json() == second.json()
    assert (tmp_path / f"{announcement_id}.jpeg").stat().st_size > 0


def test_upload_flow_rejects_declared_jpeg_with_text_content(client, monkeypatch, tmp_path: Path):
    monkeypatch.setattr(get_settings(), "photo_storage_dir", str(tmp_path))
    announcement_id = uuid4()
    rows = {announcement_id: SimpleNamespace(id=announcement_id, photo_url=None)}
    _patch_repo(monkeypatch, rows)

    response = _post_photo(client, str(announcement_id), b"\x00\x01\x02\x03", filename="test.txt")

    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "INVALID_FILE_FORMAT"
    assert rows[announcement_id].photo_url is None
    assert list(tmp_path.iterdir()) == []


def test_upload_flow_rejects_payload_over_limit(client, monkeypatch, tmp_path: Path):
    monkeypatch.setattr(get_settings(), "photo_storage_dir", str(tmp_path))
    announcement_id = uuid4()
    rows = {announcement_id: SimpleNamespace(id=announcement_id, photo_url=None)}
    _patch_repo(monkeypatch, rows)

    response = _post_photo(client, str(announcement_id), b"\xff" * (21 * 1024 * 1024), filename="large.jpg")

    assert response.status_code == 413
    assert response.json()["detail"]["code"] == "PAYLOAD_TOO_LARGE"
    assert rows[announcement_id].photo_url is None


def test_upload_flow_for_unknown_announcement_is_not_found(client, monkeypatch, tmp_path: Path):
    monkeypatch.setattr(get_settings(), "photo_storage_dir", str(tmp_path))
    _patch_repo(monkeypatch, {})

    response = _post_photo(client, str(uuid4()), JPEG_BYTES)

    assert response.status_code == 404
    assert list(tmp_path.iterdir()) == []


def test_upload_flow_with_malformed_id_is_not_found(client, monkeypatch, tmp_path: Path):
    monkeypatch.setattr(get_settings(), "photo_storage_dir", str(tmp_path))
    _patch_repo(monkeypatch, {})

    response = _post_photo(client, "not-a-uuid", JPEG_BYTES)

    assert response.status_code == 404
    assert response.json()["detail"]["code"] == "NOT_FOUND"
    assert list(tmp_path.iterdir()) == []


@pytest.mark.parametrize(
    ("payload", "status_code", "code"),
    [
        (b"\xff" * (21 * 1024 * 1024), 413, "PAYLOAD_TOO_LARGE"),
        (b"plain text, not an image", 400, "INVALID_FILE_FORMAT"),
    ],
)
def test_upload_flow_checks_payload_before_malformed_id(
    client, monkeypatch, tmp_path: Path, payload, status_code, code
):
    monkeypatch.setattr(get_settings(), "photo_storage_dir", str(tmp_path))
    _patch_repo(monkeypatch, {})

    response = _post_photo(client, "not-a-uuid", payload)

    assert response.status_code == status_code
    assert response.json()["detail"]["code"] == code


def test_delete_photo_endpoint_clears_link(client, monkeypatch, tmp_path: Path):
    monkeypatch.setattr(get_settings(), "photo_storage_dir", str(tmp_path))
    announcement_id = uuid4()
    rows = {announcement_id: SimpleNamespace(id=announcement_id, photo_url=None)}
    _patch_repo(monkeypatch, rows)
    _post_photo(client, str(announcement_id), JPEG_BYTES)

    response = client.delete(f"/api/v1/announcements/{announcement_id}/photos")

    assert response.status_code == 204
    assert rows[announcement_id].photo_url is None
    assert list(tmp_path.iterdir()) == []


def test_openapi_documents_photo_error_shape(client):
    schema = client.get("/openapi.json").json()

    post = schema["paths"]["/api/v1/announcements/{announcement_id}/photos"]["post"]
    assert set(post["responses"]) >= {"201", "400", "404", "413", "500"}
    assert "PhotoErrorResponse" in schema["components"]["schemas"]


def test_delete_photo_with_malformed_id_is_not_found(client, monkeypatch):
    _patch_repo(monkeypatch, {})

    response = client.delete("/api/v1/announcements/not-a-uuid/photos")

    assert response.status_code == 404
    assert response.json()["detail"]["code"] == "NOT_FOUND"
