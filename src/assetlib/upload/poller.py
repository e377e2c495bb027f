"""Increasing-interval polling for asynchronous asset processing.

After the blob upload the control plane processes the asset on its own
schedule.  :class:`CompletionPoller` waits for that to finish:

* before attempt *n* it sleeps ``initial_delay * factor**(n-1)`` (uncapped);
* a status carrying a URL ends polling with ``READY``;
* an explicit processing failure raises immediately;
* a status request that fails outright only consumes the attempt;
* after ``max_attempts`` the poller reports ``EXHAUSTED``, which is an
  outcome for the fallback chain rather than an error.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum

from assetlib import constants
from assetlib.models import RemoteResourceHandle
from assetlib.upload.client import AssetStatus, ControlPlaneClient
from assetlib.upload.exceptions import ControlPlaneError, ProcessingFailedError
from assetlib.upload.executor import SleepFunc

logger = logging.getLogger(__name__)


class PollStatus(str, Enum):
    READY = "ready"
    EXHAUSTED = "exhausted"


@dataclass(frozen=True)
class PollResult:
    """Outcome of a polling run.

    Attributes:
        status: ``READY`` when a URL was observed, ``EXHAUSTED`` otherwise.
        handle: Latest observed handle (``None`` if no status ever arrived).
        attempts: Number of status requests made by :meth:`CompletionPoller.poll`.
    """

    status: PollStatus
    handle: RemoteResourceHandle | None
    attempts: int

    @property
    def ready(self) -> bool:
        return self.status == PollStatus.READY


class CompletionPoller:
    """Polls asset status until processing completes, fails, or the budget runs out.

    Args:
        client: Control-plane client used for status requests.
        max_attempts: Number of status requests before giving up.
        initial_delay: Sleep before the first attempt, in seconds.
        backoff_factor: Multiplier applied to the delay after every attempt.
        terminal_states: ``upload.status`` values that mean processing failed.
        sleep: Awaitable sleep; tests inject a recording fake.
    """

    def __init__(
        self,
        client: ControlPlaneClient,
        max_attempts: int = constants.POLL_ATTEMPTS,
        initial_delay: float = constants.POLL_INITIAL_DELAY_SECONDS,
        backoff_factor: float = constants.POLL_BACKOFF_FACTOR,
        terminal_states: frozenset[str] = constants.TERMINAL_FAILURE_STATES,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        self._client = client
        self._max_attempts = max_attempts
        self._initial_delay = initial_delay
        self._backoff_factor = backoff_factor
        self._terminal_states = terminal_states
        self._sleep = sleep

    async def check_immediately(self, asset_id: str) -> RemoteResourceHandle | None:
        """Single non-retried status check for assets that finish instantly.

        Returns the handle only if the asset already has a URL *and* is
        published; any error is logged and treated as "not yet".
        """
        try:
            status = await self._client.get_status(asset_id, max_attempts=1)
        except ControlPlaneError as exc:
            logger.info("Immediate check for %s failed, proceeding with polling: %s", asset_id, exc)
            return None

        if status.url and status.handle.is_published:
            logger.info("Asset %s immediately available and published", asset_id)
            return status.handle
        return None

    async def poll(self, asset_id: str) -> PollResult:
        """Poll until the asset reports a URL.

        Raises:
            ProcessingFailedError: The control plane reported a terminal
                processing failure; no further attempts are made.
        """
        delay = self._initial_delay
        latest: RemoteResourceHandle | None = None

        for attempt in range(1, self._max_attempts + 1):
            await self._sleep(delay)
            delay *= self._backoff_factor

            try:
                status = await self._client.get_status(asset_id)
            except ControlPlaneError as exc:
                logger.warning(
                    "Polling attempt %d/%d for %s failed: %s",
                    attempt,
                    self._max_attempts,
                    asset_id,
                    exc,
                )
                continue

            self._raise_if_failed(asset_id, status)
            latest = status.handle if latest is None else latest.enrich(status.handle)

            if status.url:
                logger.info(
                    "Asset %s processed after %d attempts (stage: %s)",
                    asset_id,
                    attempt,
                    status.stage.value,
                )
                return PollResult(PollStatus.READY, latest, attempt)

            logger.debug(
                "Attempt %d/%d: asset %s still processing (upload status: %s)",
                attempt,
                self._max_attempts,
                asset_id,
                status.processing_state or "unknown",
            )

        logger.warning(
            "Asset %s not confirmed after %d polling attempts", asset_id, self._max_attempts
        )
        return PollResult(PollStatus.EXHAUSTED, latest, self._max_attempts)

    def _raise_if_failed(self, asset_id: str, status: AssetStatus) -> None:
        if status.error:
            raise ProcessingFailedError(asset_id, status.error)
        if status.processing_state and status.processing_state in self._terminal_states:
            raise ProcessingFailedError(
                asset_id, f"upload status {status.processing_state}"
            )
