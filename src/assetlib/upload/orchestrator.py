"""Upload orchestrator for the asset-ingestion pipeline.

Composes the pipeline stages into one run:

1. Create the asset record (control plane)
2. Upload the bytes (blob store, pre-signed POST)
3. Best-effort immediate status check (no retry)
4. Poll until processing completes
5. Publish (two call-site attempts, each retried by the executor)

Steps 4-5 fall back to :class:`FallbackResolver` when processing or
publication cannot be confirmed.  The whole run races the pipeline
deadline.  Every failure is returned as a
:class:`~assetlib.models.PipelineResult`; nothing is raised to the caller.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

import httpx

from assetlib.models import (
    AssetStage,
    FailureReason,
    IngestConfig,
    PipelineResult,
    RemoteResourceHandle,
    UploadRequest,
)
from assetlib.upload.blob import BlobUploader
from assetlib.upload.client import ControlPlaneClient, CreatedAsset
from assetlib.upload.exceptions import (
    BlobUploadError,
    BlobUploadTimeoutError,
    ControlPlaneError,
    PayloadValidationError,
    ProcessingFailedError,
)
from assetlib.upload.executor import SleepFunc
from assetlib.upload.fallback import FallbackResolver
from assetlib.upload.fsm import PipelineStateMachine
from assetlib.upload.poller import CompletionPoller

logger = logging.getLogger(__name__)


def build_upload_request(
    payload: bytes,
    display_name: str,
    content_type: str,
    max_bytes: int,
) -> UploadRequest:
    """Validate caller input and wrap it in an :class:`UploadRequest`.

    Raises:
        PayloadValidationError: Empty payload, payload over *max_bytes*, or
            a blank display name.
    """
    if not payload:
        raise PayloadValidationError("Invalid file buffer: payload is empty")
    if len(payload) > max_bytes:
        raise PayloadValidationError(
            f"File too large. Maximum size is {max_bytes / (1024 * 1024):g}MB"
        )
    if not display_name or not display_name.strip():
        raise PayloadValidationError("A display name is required")
    if content_type in ("application/octet-stream", "text/plain"):
        logger.warning("File has potentially problematic content type: %s", content_type)
    return UploadRequest(
        payload=payload,
        display_name=display_name,
        content_type=content_type or "application/octet-stream",
    )


@dataclass
class _RunProgress:
    """Per-run bookkeeping: the stage machine plus the step being awaited.

    ``fsm`` records completed stages; ``step`` names the call in flight so
    a deadline expiry can say where the run was stuck.
    """

    fsm: PipelineStateMachine = field(default_factory=PipelineStateMachine)
    step: str = "create"


class UploadOrchestrator:
    """Top-level coordinator of one or many concurrent ingestion runs.

    Runs share the orchestrator's HTTP client but no mutable state; each
    run owns its own state machine, credential and handle.

    Usage::

        async with UploadOrchestrator(load_ingest_config()) as orchestrator:
            result = await orchestrator.upload(data, "photo.jpg", "image/jpeg")
            print(result.to_dict())

    Args:
        config: Pipeline configuration.
        client: Control-plane client; built from *config* when omitted.
        uploader: Blob uploader; built on the client's HTTP client when omitted.
        poller: Completion poller; built from *config* when omitted.
        fallback: Fallback resolver; built on the client when omitted.
        http_client: HTTP client for the default client and uploader.
        sleep: Awaitable sleep for the default poller.

    Raises:
        ConfigurationError: If the endpoint or token is missing and no
            client was supplied.
    """

    def __init__(
        self,
        config: IngestConfig,
        client: ControlPlaneClient | None = None,
        uploader: BlobUploader | None = None,
        poller: CompletionPoller | None = None,
        fallback: FallbackResolver | None = None,
        http_client: httpx.AsyncClient | None = None,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        self._config = config
        self._client = client or ControlPlaneClient(config, http_client=http_client)
        self._uploader = uploader or BlobUploader(
            self._client.http_client, timeout=config.blob_upload_timeout
        )
        self._poller = poller or CompletionPoller(
            self._client,
            max_attempts=config.poll_attempts,
            initial_delay=config.poll_initial_delay,
            backoff_factor=config.poll_backoff_factor,
            sleep=sleep,
        )
        self._fallback = fallback or FallbackResolver(self._client)

    @property
    def client(self) -> ControlPlaneClient:
        return self._client

    # ------------------------------------------------------------------
    # Caller-facing entry points
    # ------------------------------------------------------------------

    async def upload(
        self, payload: bytes, display_name: str, content_type: str
    ) -> PipelineResult:
        """Validate the payload, then run the full pipeline.

        Empty payloads and payloads over ``config.max_payload_bytes`` are
        rejected before any network I/O.
        """
        try:
            request = build_upload_request(
                payload, display_name, content_type, self._config.max_payload_bytes
            )
        except PayloadValidationError as exc:
            logger.warning("Rejected upload %r: %s", display_name, exc)
            return PipelineResult.failed(str(exc), FailureReason.INVALID_PAYLOAD)
        return await self.run(request)

    async def run(self, request: UploadRequest) -> PipelineResult:
        """Drive *request* through every stage under the pipeline deadline.

        On expiry the failure message names the step that was in flight
        (``create``, ``blob_upload``, ``immediate_check``, ``poll``,
        ``publish`` or ``fallback``) and the last completed state.
        """
        progress = _RunProgress()
        deadline = self._config.pipeline_deadline
        logger.info(
            "Starting upload of %s (%d bytes, %s)",
            request.display_name,
            request.size,
            request.content_type,
        )
        try:
            return await asyncio.wait_for(
                self._run_stages(request, progress), timeout=deadline
            )
        except asyncio.TimeoutError:
            fsm = progress.fsm
            state = fsm.stage
            if not fsm.is_terminal:
                fsm.expire()
            logger.error(
                "Upload of %s timed out after %gs during %s (last completed stage: %s)",
                request.display_name,
                deadline,
                progress.step,
                state,
            )
            return PipelineResult.failed(
                f"Upload process timed out after {deadline:g}s "
                f"(stage: {progress.step}, state: {state})",
                FailureReason.DEADLINE_EXCEEDED,
            )
        except Exception as exc:
            logger.exception("Unexpected error uploading %s", request.display_name)
            return PipelineResult.failed(str(exc), FailureReason.UNEXPECTED)

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    async def _run_stages(
        self, request: UploadRequest, progress: _RunProgress
    ) -> PipelineResult:
        fsm = progress.fsm

        # Step 1: create the asset record
        progress.step = "create"
        try:
            created = await self._client.create_asset(request.display_name)
        except ControlPlaneError as exc:
            fsm.fail()
            logger.error("Create step failed for %s: %s", request.display_name, exc)
            return PipelineResult.failed(
                f"Failed to create asset: {exc}", FailureReason.CREATE_FAILED
            )
        fsm.create_record()
        asset_id = created.handle.id

        # Step 2: upload the bytes; never retried (single-use credential)
        progress.step = "blob_upload"
        try:
            await self._uploader.upload(created.credential, request)
        except BlobUploadTimeoutError as exc:
            fsm.fail()
            logger.error("Blob upload for %s timed out: %s", asset_id, exc)
            return PipelineResult.failed(str(exc), FailureReason.BLOB_UPLOAD_TIMEOUT)
        except BlobUploadError as exc:
            fsm.fail()
            logger.error("Blob upload for %s failed: %s", asset_id, exc)
            return PipelineResult.failed(str(exc), FailureReason.BLOB_UPLOAD_FAILED)
        fsm.upload_blob()
        handle = created.handle_for(request)

        # Step 3: fast path for assets processed instantly
        progress.step = "immediate_check"
        immediate = await self._poller.check_immediately(asset_id)
        if immediate is not None:
            fsm.publish()
            return PipelineResult.succeeded(handle.enrich(immediate), fsm.outcome)

        # Step 4: poll for processing completion
        progress.step = "poll"
        try:
            poll = await self._poller.poll(asset_id)
        except ProcessingFailedError as exc:
            fsm.fail()
            logger.error("%s", exc)
            return PipelineResult.failed(str(exc), FailureReason.PROCESSING_FAILED)

        if not poll.ready:
            return await self._resolve_fallback(created, request, poll.handle, progress)

        fsm.confirm()
        if poll.handle is not None:
            handle = handle.enrich(poll.handle)

        # Step 5: publish
        progress.step = "publish"
        if await self._publish(asset_id):
            fsm.publish()
            return PipelineResult.succeeded(
                handle.advance(AssetStage.PUBLISHED), fsm.outcome
            )
        return await self._resolve_fallback(created, request, handle, progress)

    async def _publish(self, asset_id: str) -> bool:
        """Publish with call-site retries on top of the executor's own."""
        attempts = self._config.publish_attempts
        for attempt in range(1, attempts + 1):
            try:
                await self._client.publish_asset(asset_id)
            except ControlPlaneError as exc:
                logger.warning(
                    "Publish attempt %d/%d for %s failed: %s",
                    attempt,
                    attempts,
                    asset_id,
                    exc,
                )
                continue
            return True
        return False

    async def _resolve_fallback(
        self,
        created: CreatedAsset,
        request: UploadRequest,
        known: RemoteResourceHandle | None,
        progress: _RunProgress,
    ) -> PipelineResult:
        progress.step = "fallback"
        result = await self._fallback.resolve(created, request, known=known)
        progress.fsm.fall_back()
        return result

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> UploadOrchestrator:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
