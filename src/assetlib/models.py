"""Data models and enums for the asset-ingestion pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Any

from assetlib import constants


class AssetStage(str, Enum):
    """Publication stage of a remote asset. Only ever moves DRAFT -> PUBLISHED."""

    DRAFT = "DRAFT"
    PUBLISHED = "PUBLISHED"


class PipelineOutcome(str, Enum):
    """How a pipeline run ended."""

    SUCCESS = "success"
    PARTIAL_SUCCESS = "partial_success"
    FAILURE = "failure"


class FailureReason(str, Enum):
    """Distinguishes the stage that made a run fail."""

    INVALID_PAYLOAD = "invalid_payload"
    CREATE_FAILED = "create_failed"
    BLOB_UPLOAD_FAILED = "blob_upload_failed"
    BLOB_UPLOAD_TIMEOUT = "blob_upload_timeout"
    PROCESSING_FAILED = "processing_failed"
    DEADLINE_EXCEEDED = "deadline_exceeded"
    UNEXPECTED = "unexpected"


@dataclass(frozen=True, slots=True)
class UploadRequest:
    """Binary content plus the descriptive fields sent to the control plane."""

    payload: bytes = field(repr=False)
    display_name: str
    content_type: str

    @property
    def size(self) -> int:
        return len(self.payload)


@dataclass(frozen=True, slots=True)
class UploadCredential:
    """Single-use pre-signed POST credential issued for one asset.

    Field names mirror the control plane's ``requestPostData`` object.
    ``security_token`` and ``expires_at`` are optional; the credential
    is otherwise opaque to the pipeline.
    """

    url: str
    date: str | None = None
    key: str | None = None
    signature: str | None = None
    algorithm: str | None = None
    policy: str | None = None
    credential: str | None = None
    security_token: str | None = field(default=None, repr=False)
    expires_at: str | None = None


@dataclass(frozen=True, slots=True)
class RemoteResourceHandle:
    """Control-plane view of an asset.

    ``id`` never changes once assigned. ``url`` stays ``None`` until
    server-side processing completes.
    """

    id: str
    file_name: str
    url: str | None = None
    content_type: str | None = None
    size: int | None = None
    stage: AssetStage = AssetStage.DRAFT

    @property
    def is_published(self) -> bool:
        return self.stage == AssetStage.PUBLISHED

    def advance(self, stage: AssetStage) -> RemoteResourceHandle:
        """Return a copy at *stage*, ignoring any PUBLISHED -> DRAFT regression."""
        if self.stage == AssetStage.PUBLISHED or stage == self.stage:
            return self
        return replace(self, stage=stage)

    def enrich(self, other: RemoteResourceHandle) -> RemoteResourceHandle:
        """Merge a fresher observation of the same asset into this handle.

        Known values are never overwritten with ``None``, and the stage
        only moves forward.
        """
        if other.id != self.id:
            raise ValueError(f"Cannot merge asset {other.id!r} into {self.id!r}")
        merged = replace(
            self,
            file_name=other.file_name or self.file_name,
            url=other.url or self.url,
            content_type=other.content_type or self.content_type,
            size=other.size or self.size,
        )
        return merged.advance(other.stage)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "fileName": self.file_name,
            "url": self.url,
            "mimeType": self.content_type,
            "size": self.size,
            "stage": self.stage.value,
        }


@dataclass(frozen=True, slots=True)
class PipelineResult:
    """The only value an upload run hands back to its caller.

    Use :meth:`succeeded` / :meth:`failed` rather than the constructor.
    """

    success: bool
    outcome: PipelineOutcome
    asset: RemoteResourceHandle | None = None
    error: str | None = None
    reason: FailureReason | None = None

    @classmethod
    def succeeded(
        cls,
        asset: RemoteResourceHandle,
        outcome: PipelineOutcome = PipelineOutcome.SUCCESS,
    ) -> PipelineResult:
        return cls(success=True, outcome=outcome, asset=asset)

    @classmethod
    def failed(cls, error: str, reason: FailureReason) -> PipelineResult:
        return cls(
            success=False,
            outcome=PipelineOutcome.FAILURE,
            error=error,
            reason=reason,
        )

    def to_dict(self) -> dict[str, Any]:
        """Caller-facing JSON shape: ``{success, asset}`` or ``{success, error}``."""
        if self.success and self.asset is not None:
            return {"success": True, "asset": self.asset.to_dict()}
        return {"success": False, "error": self.error}


@dataclass
class IngestConfig:
    """Configuration for the asset-ingestion pipeline.

    Holds the control-plane endpoint and bearer token plus every timeout,
    attempt budget and backoff parameter used by the pipeline stages.
    Injected into :class:`~assetlib.upload.orchestrator.UploadOrchestrator`;
    nothing reads configuration from process-global state.
    """

    endpoint: str | None = None
    token: str | None = field(default=None, repr=False)
    request_timeout: float = constants.REQUEST_TIMEOUT_SECONDS
    max_request_attempts: int = constants.MAX_REQUEST_ATTEMPTS
    retry_base_delay: float = constants.RETRY_BASE_DELAY_SECONDS
    blob_upload_timeout: float = constants.BLOB_UPLOAD_TIMEOUT_SECONDS
    pipeline_deadline: float = constants.PIPELINE_DEADLINE_SECONDS
    poll_attempts: int = constants.POLL_ATTEMPTS
    poll_initial_delay: float = constants.POLL_INITIAL_DELAY_SECONDS
    poll_backoff_factor: float = constants.POLL_BACKOFF_FACTOR
    publish_attempts: int = constants.PUBLISH_ATTEMPTS
    max_payload_bytes: int = constants.MAX_PAYLOAD_BYTES


@dataclass
class AppState:
    """Shared state across CLI commands. Initialized in the app callback."""

    config_path: Path | None = None  # Explicit --config path, else the default
