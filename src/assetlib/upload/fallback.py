"""Best-effort resolution when processing or publication was never confirmed.

Runs only after the blob upload succeeded, so the bytes are already in
the store and the caller must get a usable reference back:

1. one more status fetch;
2. if it reports a URL, one publish attempt (retried by the executor);
3. otherwise fall back to the handle returned by the create step.

The result is always a success with outcome ``PARTIAL_SUCCESS``.
"""

from __future__ import annotations

import logging

from assetlib.models import (
    AssetStage,
    PipelineOutcome,
    PipelineResult,
    RemoteResourceHandle,
    UploadRequest,
)
from assetlib.upload.client import ControlPlaneClient, CreatedAsset
from assetlib.upload.exceptions import ControlPlaneError

logger = logging.getLogger(__name__)


class FallbackResolver:
    """Produces the best-known asset when the primary path could not confirm it.

    Args:
        client: Control-plane client for the final status and publish calls.
    """

    def __init__(self, client: ControlPlaneClient) -> None:
        self._client = client

    async def resolve(
        self,
        created: CreatedAsset,
        request: UploadRequest,
        known: RemoteResourceHandle | None = None,
    ) -> PipelineResult:
        """Return a ``success: true`` result for an uploaded asset.

        Args:
            created: Result of the create step (id, provisional URL).
            request: The original upload request, used to fill in name,
                content type and size the control plane did not report.
            known: Latest handle observed while polling, if any.
        """
        asset_id = created.handle.id
        baseline = created.handle_for(request)
        if known is not None:
            baseline = baseline.enrich(known)
        logger.warning("Resolving asset %s through fallback chain", asset_id)

        try:
            status = await self._client.get_status(asset_id)
        except ControlPlaneError as exc:
            logger.warning("Fallback status fetch for %s failed: %s", asset_id, exc)
            return self._last_resort(baseline)

        latest = baseline.enrich(status.handle)
        if not status.url:
            return self._last_resort(latest)

        try:
            await self._client.publish_asset(asset_id)
        except ControlPlaneError as exc:
            logger.warning(
                "Fallback publish for %s failed, asset stays %s: %s",
                asset_id,
                latest.stage.value,
                exc,
            )
        else:
            latest = latest.advance(AssetStage.PUBLISHED)

        logger.info("Using latest asset data for %s (stage: %s)", asset_id, latest.stage.value)
        return PipelineResult.succeeded(latest, PipelineOutcome.PARTIAL_SUCCESS)

    @staticmethod
    def _last_resort(handle: RemoteResourceHandle) -> PipelineResult:
        logger.warning(
            "Using create-step data as final fallback for %s; asset remains %s",
            handle.id,
            handle.stage.value,
        )
        return PipelineResult.succeeded(handle, PipelineOutcome.PARTIAL_SUCCESS)
