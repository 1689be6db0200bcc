from __future__ import annotations

import base64

import httpx
import pytest

from client.attachments.transport import UploadTransportClient, UploadTransportError

JPEG_BYTES = b"\xff\xd8\xff\xe0" + b"\x00" * 100


def _client(handler) -> UploadTransportClient:
    return UploadTransportClient("http://petspot.test", transport=httpx.MockTransport(handler))


async def _upload(client: UploadTransportClient, **overrides) -> str:
    kwargs = {
        "announcement_id": "announcement-1",
        "data": JPEG_BYTES,
        "file_name": "dog.jpg",
        "content_type": "image/jpeg",
    }
    kwargs.update(overrides)
    return await client.upload_photo(**kwargs)


@pytest.mark.asyncio
async def test_upload_posts_multipart_photo_and_returns_url():
    seen: list[httpx.Request] = []

    def _handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(201, json={"photo_url": "/images/announcement-1.jpeg"})

    photo_url = await _upload(_client(_handler), management_password="secret")

    assert photo_url == "/images/announcement-1.jpeg"
    request = seen[0]
    assert request.method == "POST"
    assert request.url.path == "/api/v1/announcements/announcement-1/photos"
    body = request.content
    assert b'name="photo"' in body
    assert b'filename="dog.jpg"' in body
    assert JPEG_BYTES in body
    expected = base64.b64encode(b"announcement-1:secret").decode("ascii")
    assert request.headers["Authorization"] == f"Basic {expected}"


@pytest.mark.asyncio
async def test_upload_without_credential_sends_no_authorization():
    seen: list[httpx.Request] = []

    def _handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(201, json={"photo_url": "/images/x.png"})

    await _upload(_client(_handler))

    assert "Authorization" not in seen[0].headers


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("status_code", "code"),
    [
        (400, "INVALID_FILE_FORMAT"),
        (404, "NOT_FOUND"),
        (413, "PAYLOAD_TOO_LARGE"),
        (500, "STORAGE_ERROR"),
    ],
)
async def test_rejected_upload_raises_with_server_code(status_code: int, code: str):
    def _handler(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, json={"detail": {"code": code, "message": "nope"}})

    with pytest.raises(UploadTransportError) as exc_info:
        await _upload(_client(_handler))

    assert exc_info.value.status_code == status_code
    assert exc_info.value.code == code


@pytest.mark.asyncio
async def test_rejected_upload_with_plain_body_has_no_code():
    def _handler(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, text="bad gateway")

    with pytest.raises(UploadTransportError) as exc_info:
        await _upload(_client(_handler))

    assert exc_info.value.status_code == 502
    assert exc_info.value.code is None


@pytest.mark.asyncio
async def test_network_failure_raises_transport_error():
    def _handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(UploadTransportError) as exc_info:
        await _upload(_client(_handler))

    assert exc_info.value.status_code is None


@pytest.mark.asyncio
async def test_success_without_photo_url_is_an_error():
    def _handler(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(201, json={"url": "/images/x.jpeg"})

    with pytest.raises(UploadTransportError):
        await _upload(_client(_handler))
