"""Upload pipeline: control plane -> blob store -> polling -> publish.

Public API
----------
.. autoclass:: UploadOrchestrator
.. autoclass:: ControlPlaneClient
.. autoclass:: ResilientRequestExecutor
.. autoclass:: BlobUploader
.. autoclass:: CompletionPoller
.. autoclass:: FallbackResolver
.. autoclass:: PipelineStateMachine
"""

from assetlib.upload.blob import BlobUploader, build_form_fields
from assetlib.upload.client import (
    AssetPage,
    AssetStatus,
    ControlPlaneClient,
    CreatedAsset,
    PublishReceipt,
)
from assetlib.upload.exceptions import (
    BlobUploadError,
    BlobUploadTimeoutError,
    ConfigurationError,
    ControlPlaneError,
    ControlPlaneUnavailableError,
    IngestError,
    PayloadValidationError,
    ProcessingFailedError,
    RequestTimeoutError,
)
from assetlib.upload.executor import RequestDescriptor, ResilientRequestExecutor
from assetlib.upload.fallback import FallbackResolver
from assetlib.upload.fsm import PipelineStateMachine
from assetlib.upload.orchestrator import UploadOrchestrator, build_upload_request
from assetlib.upload.poller import CompletionPoller, PollResult, PollStatus

__all__ = [
    "AssetPage",
    "AssetStatus",
    "BlobUploadError",
    "BlobUploadTimeoutError",
    "BlobUploader",
    "CompletionPoller",
    "ConfigurationError",
    "ControlPlaneClient",
    "ControlPlaneError",
    "ControlPlaneUnavailableError",
    "CreatedAsset",
    "FallbackResolver",
    "IngestError",
    "PayloadValidationError",
    "PipelineStateMachine",
    "PollResult",
    "PollStatus",
    "ProcessingFailedError",
    "PublishReceipt",
    "RequestDescriptor",
    "RequestTimeoutError",
    "ResilientRequestExecutor",
    "UploadOrchestrator",
    "build_form_fields",
    "build_upload_request",
]
