"""Retry policy and JSON request helper shared by the upstream API clients."""

import logging
from dataclasses import dataclass, field
from typing import Any

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_fixed,
)

from .errors import (
    UpstreamApplicationError,
    UpstreamError,
    UpstreamTransportError,
)


logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


@dataclass(frozen=True)
class RetryPolicy:
    """How an upstream call is retried.

    Attributes:
        retries: Extra attempts after the first one.
        delay: Fixed pause between attempts, in seconds.
        retryable_statuses: Upstream HTTP statuses that are retried like
            transport failures. Empty by default: application errors fail fast.
    """

    retries: int = 3
    delay: float = 1.0
    retryable_statuses: frozenset[int] = field(default_factory=frozenset)

    @property
    def max_attempts(self) -> int:
        return self.retries + 1

    def is_retryable(self, exc: BaseException) -> bool:
        return isinstance(exc, UpstreamError) and exc.retryable

    def retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_fixed(self.delay),
            retry=retry_if_exception(self.is_retryable),
            before_sleep=_log_retry,
            reraise=True,
        )


def _log_retry(retry_state) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        f'Upstream attempt {retry_state.attempt_number} failed ({exc}); retrying'
    )


def _error_message(response: httpx.Response) -> tuple[str, Any]:
    """Pull the message and code out of a structured upstream error body."""
    try:
        body = response.json()
    except ValueError:
        return response.text[:200] or f'HTTP {response.status_code}', None

    if isinstance(body, dict):
        error = body.get('error')
        if isinstance(error, dict):
            return error.get('message') or f'HTTP {response.status_code}', error.get('code')
        if isinstance(error, str):
            return error, None
        if body.get('message'):
            return str(body['message']), body.get('cod')
    return f'HTTP {response.status_code}', None


async def get_json(
    client: httpx.AsyncClient,
    url: str,
    params: dict[str, Any],
    policy: RetryPolicy,
) -> Any:
    """GET ``url`` and decode JSON, applying ``policy`` to failures.

    Raises:
        UpstreamTransportError: The request never got an answer after all
            retries (connection error or timeout).
        UpstreamApplicationError: The upstream answered with a non-2xx status
            or an undecodable body.
    """
    params = {k: v for k, v in params.items() if v is not None}

    async for attempt in policy.retrying():
        with attempt:
            try:
                response = await client.get(url, params=params, timeout=DEFAULT_TIMEOUT)
            except httpx.TimeoutException as e:
                raise UpstreamTransportError(f'Request to {url} timed out') from e
            except httpx.TransportError as e:
                raise UpstreamTransportError(f'Request to {url} failed: {e}') from e

            if response.is_error:
                message, upstream_code = _error_message(response)
                raise UpstreamApplicationError(
                    message,
                    upstream_status=response.status_code,
                    upstream_code=upstream_code,
                    retryable=response.status_code in policy.retryable_statuses,
                )

            try:
                return response.json()
            except ValueError as e:
                raise UpstreamApplicationError(
                    'Invalid JSON response from API.',
                    upstream_status=response.status_code,
                ) from e
