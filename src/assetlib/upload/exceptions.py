"""Exception types for the asset-ingestion pipeline.

Every stage raises a subclass of :class:`IngestError`; the orchestrator
converts them into :class:`~assetlib.models.PipelineResult` failures so
no exception crosses its public boundary.
"""

from __future__ import annotations


class IngestError(Exception):
    """Base class for all pipeline failures."""


class ConfigurationError(IngestError):
    """Raised at construction time when the endpoint or token is missing."""


class PayloadValidationError(IngestError):
    """Raised when a payload is empty or exceeds the size ceiling."""


class RequestTimeoutError(IngestError):
    """A single control-plane attempt exceeded its per-attempt timeout."""


class ControlPlaneError(IngestError):
    """The control plane rejected a request (GraphQL ``errors`` array or bad payload).

    Not retried: the same request would be rejected again.
    """

    def __init__(self, message: str, errors: list[dict] | None = None) -> None:
        super().__init__(message)
        self.errors = errors or []


class ControlPlaneUnavailableError(ControlPlaneError):
    """Every executor attempt failed at the transport or HTTP-status level."""


class BlobUploadError(IngestError):
    """The blob store rejected the upload (non-2xx or embedded error payload)."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class BlobUploadTimeoutError(BlobUploadError):
    """The blob store did not answer within the upload timeout."""


class ProcessingFailedError(IngestError):
    """The control plane reported a terminal processing failure for the asset."""

    def __init__(self, asset_id: str, message: str) -> None:
        super().__init__(f"Asset processing failed for {asset_id}: {message}")
        self.asset_id = asset_id
