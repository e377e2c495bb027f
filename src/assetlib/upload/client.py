"""GraphQL control-plane client for asset records.

Implements the control-plane half of the provisioning protocol:
  1. ``createAsset`` -- registers a DRAFT asset and returns a one-time
     pre-signed POST credential for the blob store
  2. ``asset`` -- reads processing state and the final URL
  3. ``publishAsset`` -- moves the asset DRAFT -> PUBLISHED

Every call goes through :class:`ResilientRequestExecutor`.  The control
plane reports validation problems as an ``errors`` array inside an
HTTP 200 response, so the body is checked in addition to the status.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx
from pydantic import ValidationError

from assetlib.models import (
    AssetStage,
    IngestConfig,
    RemoteResourceHandle,
    UploadCredential,
    UploadRequest,
)
from assetlib.upload.exceptions import (
    ConfigurationError,
    ControlPlaneError,
    ControlPlaneUnavailableError,
    RequestTimeoutError,
)
from assetlib.upload.executor import RequestDescriptor, ResilientRequestExecutor
from assetlib.upload.schemas import AssetPayload, GraphQLEnvelope, PublishPayload

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# GraphQL documents
# ---------------------------------------------------------------------------

CREATE_ASSET_MUTATION = """
mutation CreateAssetEntry($fileName: String!) {
  createAsset(data: { fileName: $fileName }) {
    id
    fileName
    url
    mimeType
    size
    stage
    upload {
      status
      expiresAt
      requestPostData {
        url
        date
        key
        signature
        algorithm
        policy
        credential
        securityToken
      }
      error { code message }
    }
  }
}
"""

GET_ASSET_QUERY = """
query GetAsset($id: ID!) {
  asset(where: { id: $id }) {
    id
    fileName
    url
    mimeType
    size
    stage
    upload {
      status
      error { code message }
    }
  }
}
"""

PUBLISH_ASSET_MUTATION = """
mutation PublishAsset($id: ID!) {
  publishAsset(where: { id: $id }) {
    id
    stage
  }
}
"""

DELETE_ASSET_MUTATION = """
mutation DeleteAsset($id: ID!) {
  deleteAsset(where: { id: $id }) {
    id
  }
}
"""

LIST_ASSETS_QUERY = """
query ListAssets($first: Int!, $skip: Int!) {
  assetsConnection(first: $first, skip: $skip, orderBy: createdAt_DESC) {
    aggregate { count }
    edges {
      node {
        id
        fileName
        url
        mimeType
        size
        stage
      }
    }
  }
}
"""


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CreatedAsset:
    """Result of ``createAsset``: the DRAFT handle plus its upload credential."""

    handle: RemoteResourceHandle
    credential: UploadCredential

    def handle_for(self, request: UploadRequest) -> RemoteResourceHandle:
        """The created handle, with name, content type and size taken from
        *request* where the control plane left them blank."""
        return RemoteResourceHandle(
            id=self.handle.id,
            file_name=request.display_name,
            content_type=request.content_type,
            size=request.size,
        ).enrich(self.handle)


@dataclass(frozen=True)
class AssetStatus:
    """One status observation of an asset.

    Attributes:
        handle: Asset fields as currently reported.
        processing_state: ``upload.status`` reported by the control plane.
        error: ``upload.error.message`` when processing failed.
    """

    handle: RemoteResourceHandle
    processing_state: str | None = None
    error: str | None = None

    @property
    def url(self) -> str | None:
        return self.handle.url

    @property
    def stage(self) -> AssetStage:
        return self.handle.stage


@dataclass(frozen=True)
class PublishReceipt:
    id: str
    stage: AssetStage


@dataclass(frozen=True)
class AssetPage:
    assets: list[RemoteResourceHandle]
    total: int


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class ControlPlaneClient:
    """Async client for the content platform's GraphQL control plane.

    Usage::

        config = load_ingest_config()
        async with ControlPlaneClient(config) as client:
            created = await client.create_asset("photo.jpg")
            status = await client.get_status(created.handle.id)
            await client.publish_asset(created.handle.id)

    Args:
        config: Pipeline configuration; ``endpoint`` and ``token`` are required.
        http_client: Optional shared HTTP client.  When omitted the client
            creates (and owns) one.
        executor: Optional pre-built executor, mainly for tests.

    Raises:
        ConfigurationError: If ``config.endpoint`` or ``config.token`` is unset.
    """

    def __init__(
        self,
        config: IngestConfig,
        http_client: httpx.AsyncClient | None = None,
        executor: ResilientRequestExecutor | None = None,
    ) -> None:
        if not config.endpoint:
            raise ConfigurationError(
                "Control-plane endpoint not configured.\n"
                "Set ASSETLIB_ENDPOINT or add 'endpoint' to config/ingest_config.json"
            )
        if not config.token:
            raise ConfigurationError(
                "Control-plane token not configured.\n"
                "Set it with: assetlib config set-token YOUR_TOKEN\n"
                "Or: export ASSETLIB_TOKEN=your-token"
            )
        self._endpoint = config.endpoint
        self._token = config.token
        self._owns_http = http_client is None
        # Timeouts are enforced per stage with asyncio, not by httpx.
        self._http = http_client or httpx.AsyncClient(timeout=None)
        self._executor = executor or ResilientRequestExecutor(
            self._http,
            attempt_timeout=config.request_timeout,
            max_attempts=config.max_request_attempts,
            base_delay=config.retry_base_delay,
        )

    @property
    def http_client(self) -> httpx.AsyncClient:
        return self._http

    # ------------------------------------------------------------------
    # Provisioning protocol
    # ------------------------------------------------------------------

    async def create_asset(self, file_name: str) -> CreatedAsset:
        """Register a new DRAFT asset and obtain its upload credential.

        Raises:
            ControlPlaneError: On a GraphQL error, or when the response lacks
                an asset id or an upload URL.
            ControlPlaneUnavailableError: When every attempt failed.
        """
        data = await self._graphql(CREATE_ASSET_MUTATION, {"fileName": file_name})
        payload = self._parse_asset(data.get("createAsset"), "createAsset")
        if payload is None or not payload.id:
            raise ControlPlaneError("No asset ID received from control plane")

        if payload.upload and payload.upload.error and payload.upload.error.message:
            raise ControlPlaneError(
                f"Upload credential rejected: {payload.upload.error.message}"
            )
        credential = payload.to_credential()
        if credential is None:
            raise ControlPlaneError(
                f"No upload URL received from control plane for asset {payload.id}"
            )

        logger.info("Created asset %s (%s)", payload.id, file_name)
        return CreatedAsset(
            handle=payload.to_handle(fallback_name=file_name),
            credential=credential,
        )

    async def get_status(
        self, asset_id: str, max_attempts: int | None = None
    ) -> AssetStatus:
        """Fetch the current processing state of an asset.

        Args:
            asset_id: Asset id from :meth:`create_asset`.
            max_attempts: Executor budget override; ``1`` for a single
                best-effort request.

        Raises:
            ControlPlaneError: On a GraphQL error or an unknown asset.
            ControlPlaneUnavailableError: When every attempt failed.
        """
        data = await self._graphql(
            GET_ASSET_QUERY, {"id": asset_id}, max_attempts=max_attempts
        )
        payload = self._parse_asset(data.get("asset"), "asset")
        if payload is None:
            raise ControlPlaneError(f"Asset {asset_id} not found")

        upload = payload.upload
        error = upload.error.message if upload and upload.error else None
        return AssetStatus(
            handle=payload.to_handle(),
            processing_state=upload.status if upload else None,
            error=error,
        )

    async def publish_asset(self, asset_id: str) -> PublishReceipt:
        """Publish an asset (DRAFT -> PUBLISHED)."""
        data = await self._graphql(PUBLISH_ASSET_MUTATION, {"id": asset_id})
        raw = data.get("publishAsset")
        if not raw:
            raise ControlPlaneError(f"Publish returned no asset for {asset_id}")
        try:
            receipt = PublishPayload.model_validate(raw)
        except ValidationError as exc:
            raise ControlPlaneError(f"Malformed publishAsset response: {exc}") from exc
        logger.info("Published asset %s", receipt.id)
        return PublishReceipt(
            id=receipt.id, stage=receipt.stage or AssetStage.PUBLISHED
        )

    # ------------------------------------------------------------------
    # Asset management
    # ------------------------------------------------------------------

    async def get_asset(self, asset_id: str) -> RemoteResourceHandle | None:
        """Return the asset, or ``None`` if it does not exist or cannot be read."""
        try:
            status = await self.get_status(asset_id)
        except ControlPlaneError as exc:
            logger.error("Error fetching asset %s: %s", asset_id, exc)
            return None
        return status.handle

    async def delete_asset(self, asset_id: str) -> bool:
        """Delete an asset.

        Returns:
            ``True`` if the control plane confirmed the deletion, ``False``
            on any error.
        """
        try:
            data = await self._graphql(DELETE_ASSET_MUTATION, {"id": asset_id})
        except ControlPlaneError as exc:
            logger.error("Error deleting asset %s: %s", asset_id, exc)
            return False
        deleted = bool(data.get("deleteAsset"))
        if deleted:
            logger.info("Deleted asset %s", asset_id)
        return deleted

    async def list_assets(self, page: int = 1, limit: int = 20) -> AssetPage:
        """List assets newest first, *limit* per page (1-based *page*)."""
        if page < 1 or limit < 1:
            raise ValueError("page and limit must be positive")
        data = await self._graphql(
            LIST_ASSETS_QUERY, {"first": limit, "skip": (page - 1) * limit}
        )
        connection = data.get("assetsConnection") or {}
        assets: list[RemoteResourceHandle] = []
        for edge in connection.get("edges") or []:
            payload = self._parse_asset(edge.get("node"), "assetsConnection")
            if payload is not None and payload.id:
                assets.append(payload.to_handle())
        total = (connection.get("aggregate") or {}).get("count", len(assets))
        return AssetPage(assets=assets, total=int(total))

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def aclose(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_http:
            await self._http.aclose()

    async def __aenter__(self) -> ControlPlaneClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Internal: GraphQL transport
    # ------------------------------------------------------------------

    async def _graphql(
        self,
        document: str,
        variables: dict[str, Any],
        max_attempts: int | None = None,
    ) -> dict[str, Any]:
        """POST a GraphQL document and return its ``data`` object.

        Transport/status failures are retried by the executor; an
        ``errors`` array in the body is raised immediately.
        """
        request = RequestDescriptor(
            method="POST",
            url=self._endpoint,
            headers={
                "Content-Type": "application/json",
                "Authorization": f"Bearer {self._token}",
            },
            json={"query": document, "variables": variables},
        )
        try:
            response = await self._executor.execute(request, max_attempts=max_attempts)
        except (httpx.HTTPError, RequestTimeoutError) as exc:
            raise ControlPlaneUnavailableError(
                f"Control plane request failed: {exc}"
            ) from exc

        try:
            envelope = GraphQLEnvelope.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise ControlPlaneError(f"Malformed control-plane response: {exc}") from exc

        if envelope.errors:
            logger.error(
                "GraphQL errors: %s", [error.message for error in envelope.errors]
            )
            raise ControlPlaneError(
                envelope.errors[0].message,
                errors=[error.model_dump() for error in envelope.errors],
            )
        if envelope.data is None:
            raise ControlPlaneError("No data returned from GraphQL query")
        return envelope.data

    @staticmethod
    def _parse_asset(raw: Any, field_name: str) -> AssetPayload | None:
        if raw is None:
            return None
        try:
            return AssetPayload.model_validate(raw)
        except ValidationError as exc:
            raise ControlPlaneError(f"Malformed {field_name} response: {exc}") from exc
