"""Bounded-retry HTTP executor for control-plane calls.

Every control-plane request goes through :class:`ResilientRequestExecutor`:

* each attempt is cancelled after ``attempt_timeout`` seconds and counts
  as a failed attempt;
* any non-2xx status is a failed attempt;
* between attempt *i* and *i+1* (zero-based) the executor waits
  ``base_delay * 2**i`` -- no jitter, no cap;
* after ``max_attempts`` failures the last error is re-raised.

Cancellation from an outer deadline is never retried.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from assetlib import constants
from assetlib.upload.exceptions import RequestTimeoutError

logger = logging.getLogger(__name__)

SleepFunc = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RequestDescriptor:
    """Everything needed to rebuild one HTTP request for every attempt."""

    method: str
    url: str
    headers: dict[str, str] = field(default_factory=dict)
    json: Any = None


class ResilientRequestExecutor:
    """Executes one HTTP call with bounded retries and exponential backoff.

    Usage::

        executor = ResilientRequestExecutor(httpx.AsyncClient())
        response = await executor.execute(
            RequestDescriptor("POST", endpoint, json={"query": "..."}),
        )

    Args:
        http_client: Shared async HTTP client (not closed by the executor).
        attempt_timeout: Seconds before a single attempt is cancelled.
        max_attempts: Default attempt budget per call.
        base_delay: Backoff base in seconds.
        sleep: Awaitable sleep used between attempts; tests inject a
            recording fake here.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        attempt_timeout: float = constants.REQUEST_TIMEOUT_SECONDS,
        max_attempts: int = constants.MAX_REQUEST_ATTEMPTS,
        base_delay: float = constants.RETRY_BASE_DELAY_SECONDS,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        self._http = http_client
        self._attempt_timeout = attempt_timeout
        self._max_attempts = max_attempts
        self._base_delay = base_delay
        self._sleep = sleep

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    async def execute(
        self,
        request: RequestDescriptor,
        max_attempts: int | None = None,
    ) -> httpx.Response:
        """Send *request* until it succeeds or the attempt budget runs out.

        Args:
            request: Descriptor rebuilt into a fresh request per attempt.
            max_attempts: Overrides the default budget; ``1`` disables retry.

        Returns:
            The first 2xx response.

        Raises:
            httpx.HTTPStatusError: Last attempt got a non-2xx status.
            httpx.TransportError: Last attempt failed at the transport level.
            RequestTimeoutError: Last attempt exceeded ``attempt_timeout``.
        """
        attempts = max_attempts if max_attempts is not None else self._max_attempts
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(attempts),
            wait=wait_exponential(multiplier=self._base_delay, exp_base=2),
            retry=retry_if_exception_type(
                (httpx.HTTPError, RequestTimeoutError)
            ),
            before_sleep=self._log_retry,
            sleep=self._sleep,
            reraise=True,
        ):
            with attempt:
                return await self._attempt(request)
        raise AssertionError("unreachable: AsyncRetrying re-raises on exhaustion")

    async def _attempt(self, request: RequestDescriptor) -> httpx.Response:
        http_request = self._http.build_request(
            request.method,
            request.url,
            headers=request.headers,
            json=request.json,
        )
        try:
            response = await asyncio.wait_for(
                self._http.send(http_request), timeout=self._attempt_timeout
            )
        except asyncio.TimeoutError:
            raise RequestTimeoutError(
                f"{request.method} {request.url} timed out after "
                f"{self._attempt_timeout:g}s"
            ) from None
        response.raise_for_status()
        return response

    @staticmethod
    def _log_retry(retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            "Request attempt %d failed (%s), retrying in %.2fs",
            retry_state.attempt_number,
            exc,
            retry_state.next_action.sleep if retry_state.next_action else 0.0,
        )
