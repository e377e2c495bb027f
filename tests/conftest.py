"""Shared pytest fixtures for the asset-ingestion pipeline tests.

Provides an in-process fake of the control plane and blob store (served
through ``httpx.MockTransport``), a recording sleep that replaces real
waits, and ready-made configs and clients wired to the fake.
"""

from __future__ import annotations

import asyncio
import json
from collections import Counter
from typing import Any

import httpx
import pytest

from assetlib.models import IngestConfig
from assetlib.upload.client import ControlPlaneClient
from assetlib.upload.executor import ResilientRequestExecutor

ENDPOINT = "https://cms.example.test/graphql"
BLOB_URL = "https://blob.example.test/assets-bucket"
ASSET_ID = "abc123"
FINAL_URL = "https://media.example.test/abc123/photo.jpg"


# ======================================================================
# Response builders
# ======================================================================


def post_data(**overrides: Any) -> dict[str, Any]:
    """A complete ``requestPostData`` object."""
    data = {
        "url": BLOB_URL,
        "date": "20240101T000000Z",
        "key": "uploads/abc123/photo.jpg",
        "signature": "sig-value",
        "algorithm": "AWS4-HMAC-SHA256",
        "policy": "cG9saWN5",
        "credential": "AKIA/20240101/us-east-1/s3/aws4_request",
        "securityToken": "session-token",
    }
    data.update(overrides)
    return data


def created_body(asset_id: str = ASSET_ID, **post_overrides: Any) -> dict[str, Any]:
    return {
        "data": {
            "createAsset": {
                "id": asset_id,
                "fileName": "photo.jpg",
                "url": f"https://media.example.test/provisional/{asset_id}",
                "mimeType": None,
                "size": None,
                "stage": "DRAFT",
                "upload": {
                    "status": "ASSET_CREATE_PENDING",
                    "expiresAt": "2024-01-01T01:00:00Z",
                    "requestPostData": post_data(**post_overrides),
                    "error": None,
                },
            }
        }
    }


def status_body(
    url: str | None = None,
    stage: str = "DRAFT",
    status: str | None = "ASSET_UPLOAD_PENDING",
    error: str | None = None,
    asset_id: str = ASSET_ID,
    size: int | None = None,
) -> dict[str, Any]:
    return {
        "data": {
            "asset": {
                "id": asset_id,
                "fileName": "photo.jpg",
                "url": url,
                "mimeType": "image/jpeg",
                "size": size,
                "stage": stage,
                "upload": {
                    "status": status,
                    "error": {"code": "PROCESSING", "message": error} if error else None,
                },
            }
        }
    }


def published_body(asset_id: str = ASSET_ID) -> dict[str, Any]:
    return {"data": {"publishAsset": {"id": asset_id, "stage": "PUBLISHED"}}}


def graphql_error(message: str) -> dict[str, Any]:
    return {"data": None, "errors": [{"message": message, "path": ["createAsset"]}]}


# ======================================================================
# Fake backend
# ======================================================================


class Hang:
    """Marker response: the fake never answers the request."""


HANG = Hang()


class FakeBackend:
    """Scripted control plane plus blob store behind one MockTransport.

    Each GraphQL operation has a response script.  Entries are consumed in
    order and the last one repeats forever.  An entry may be a JSON dict
    (answered with HTTP 200), an ``httpx.Response``, an exception instance
    (raised from the transport), or :data:`HANG`.
    """

    def __init__(self) -> None:
        self.scripts: dict[str, list[Any]] = {
            "CreateAssetEntry": [created_body()],
            "GetAsset": [status_body()],
            "PublishAsset": [published_body()],
            "DeleteAsset": [{"data": {"deleteAsset": {"id": ASSET_ID}}}],
            "ListAssets": [{"data": {"assetsConnection": {"aggregate": {"count": 0}, "edges": []}}}],
            "blob": [httpx.Response(204)],
        }
        self.calls: Counter[str] = Counter()
        self.requests: list[httpx.Request] = []
        self.log: list[str] = []
        self.variables: dict[str, list[dict[str, Any]]] = {}

    def script(self, operation: str, *responses: Any) -> None:
        self.scripts[operation] = list(responses)

    def blob_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if str(r.url) == BLOB_URL]

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    async def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if str(request.url) == ENDPOINT:
            body = json.loads(request.content)
            operation = next(
                name for name in self.scripts if name != "blob" and name in body["query"]
            )
            self.variables.setdefault(operation, []).append(body["variables"])
        else:
            operation = "blob"

        self.calls[operation] += 1
        self.log.append(operation)
        script = self.scripts[operation]
        entry = script.pop(0) if len(script) > 1 else script[0]

        if entry is HANG:
            await asyncio.Event().wait()
        if isinstance(entry, BaseException):
            raise entry
        if isinstance(entry, httpx.Response):
            # Scripted responses may repeat; hand out a fresh copy each time.
            return httpx.Response(
                entry.status_code, headers=entry.headers, content=entry.content
            )
        return httpx.Response(200, json=entry)


class RecordingSleep:
    """Awaitable stand-in for ``asyncio.sleep`` that only records delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


# ======================================================================
# Fixtures
# ======================================================================


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def ingest_config() -> IngestConfig:
    """Production budgets with a tiny retry base so real retry sleeps stay short."""
    return IngestConfig(
        endpoint=ENDPOINT,
        token="test-token",
        retry_base_delay=0.001,
    )


@pytest.fixture
async def http_client(backend: FakeBackend):
    client = httpx.AsyncClient(transport=backend.transport(), timeout=None)
    yield client
    await client.aclose()


@pytest.fixture
def control_plane(
    ingest_config: IngestConfig,
    http_client: httpx.AsyncClient,
    recording_sleep: RecordingSleep,
) -> ControlPlaneClient:
    """Client whose executor records its backoff sleeps instead of waiting."""
    executor = ResilientRequestExecutor(
        http_client,
        attempt_timeout=ingest_config.request_timeout,
        max_attempts=ingest_config.max_request_attempts,
        base_delay=0.1,
        sleep=recording_sleep,
    )
    return ControlPlaneClient(ingest_config, http_client=http_client, executor=executor)
