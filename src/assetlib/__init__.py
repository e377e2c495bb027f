"""Resilient asset ingestion for managed content platforms."""

__version__ = "0.1.0"

from assetlib.models import (
    AssetStage,
    FailureReason,
    IngestConfig,
    PipelineOutcome,
    PipelineResult,
    RemoteResourceHandle,
    UploadCredential,
    UploadRequest,
)

__all__ = [
    "AssetStage",
    "FailureReason",
    "IngestConfig",
    "PipelineOutcome",
    "PipelineResult",
    "RemoteResourceHandle",
    "UploadCredential",
    "UploadRequest",
    "__version__",
]
