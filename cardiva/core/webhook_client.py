"""Multipart webhook delivery with exponential backoff.

Every trigger sent to the automation workflow (inventory ingest, RFP ingest,
export e-mail) goes through :func:`post_with_retry`.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Any

import httpx
from tenacity import (
    AsyncRetrying,
    RetryError,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
)

from cardiva.config import WebhookConfig

logger = logging.getLogger(__name__)

SECRET_HEADER = "X-Webhook-Secret"

# Patched in tests to avoid real waits
_sleep = asyncio.sleep


class WebhookError(Exception):
    """Base class for webhook delivery failures."""


class WebhookConfigurationError(WebhookError):
    """Webhook URL is not configured."""


class WebhookDeliveryError(WebhookError):
    """Endpoint answered with a non-2xx status."""

    def __init__(self, status_code: int, body: str = ""):
        self.status_code = status_code
        self.body = body
        super().__init__(f"Webhook returned HTTP {status_code}: {body[:200]}")


class WebhookRetryError(WebhookError):
    """All delivery attempts failed."""

    def __init__(self, attempts: int, last_error: Exception | None):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"Webhook failed after {attempts} attempts: {last_error}"
        )


@dataclass
class RetryPolicy:
    """Retry/backoff parameters for a single delivery."""

    max_retries: int = 3
    initial_delay: float = 1.0  # seconds
    timeout: float = 30.0  # seconds, per attempt
    jitter: float = 0.25  # fraction of the base delay

    @classmethod
    def from_config(cls, config: WebhookConfig) -> RetryPolicy:
        return cls(
            max_retries=config.max_retries,
            initial_delay=config.initial_delay,
            timeout=config.timeout,
        )

    def delay_for(self, attempt: int) -> float:
        """Wait before the retry that follows ``attempt`` (0-indexed)."""
        base = self.initial_delay * (2**attempt)
        return base + random.uniform(0, base * self.jitter)


def build_headers(secret: str | None, extra: dict[str, str] | None = None) -> dict[str, str]:
    headers = dict(extra or {})
    if secret:
        headers[SECRET_HEADER] = secret
    return headers


def is_retryable_status(status_code: int) -> bool:
    return status_code == 429 or status_code >= 500


async def post_with_retry(
    url: str | None,
    *,
    data: dict[str, Any] | None = None,
    files: dict[str, tuple[str, bytes, str]] | None = None,
    headers: dict[str, str] | None = None,
    policy: RetryPolicy | None = None,
    client: httpx.AsyncClient | None = None,
) -> httpx.Response:
    """POST a multipart payload, retrying transient failures.

    Args:
        url: Webhook endpoint; ``None`` or empty raises immediately
        data: Form fields
        files: Form files as ``{field: (filename, content, content_type)}``
        headers: Extra headers (secret header already included by caller)
        policy: Retry parameters (defaults: 3 retries, 1s initial delay, 30s timeout)
        client: Optional shared client (tests inject a mock transport)

    Returns:
        httpx.Response: The first 2xx response

    Raises:
        WebhookConfigurationError: URL missing
        WebhookDeliveryError: 4xx other than 429 (not retried)
        WebhookRetryError: Retries exhausted
    """
    if not url:
        raise WebhookConfigurationError("Webhook URL not configured")

    policy = policy or RetryPolicy()

    if client is None:
        async with httpx.AsyncClient() as own_client:
            return await _deliver(own_client, url, data, files, headers, policy)
    return await _deliver(client, url, data, files, headers, policy)


def _is_transient(error: BaseException) -> bool:
    if isinstance(error, WebhookDeliveryError):
        return is_retryable_status(error.status_code)
    return isinstance(error, httpx.TransportError)


async def _deliver(
    client: httpx.AsyncClient,
    url: str,
    data: dict[str, Any] | None,
    files: dict[str, tuple[str, bytes, str]] | None,
    headers: dict[str, str] | None,
    policy: RetryPolicy,
) -> httpx.Response:
    attempts = policy.max_retries + 1
    retrying = AsyncRetrying(
        stop=stop_after_attempt(attempts),
        wait=lambda retry_state: policy.delay_for(retry_state.attempt_number - 1),
        retry=retry_if_exception(_is_transient),
        sleep=_sleep,
        before_sleep=before_sleep_log(logger, logging.WARNING),
    )

    try:
        async for attempt in retrying:
            with attempt:
                response = await client.post(
                    url,
                    data=data,
                    files=files,
                    headers=headers,
                    timeout=policy.timeout,
                )
                if not response.is_success:
                    if not is_retryable_status(response.status_code):
                        logger.error(
                            f"Webhook rejected with HTTP {response.status_code}, not retrying"
                        )
                    raise WebhookDeliveryError(response.status_code, response.text)

                attempt_number = attempt.retry_state.attempt_number
                if attempt_number > 1:
                    logger.info(f"Webhook delivered on attempt {attempt_number}")
                return response
    except RetryError as e:
        logger.error(f"Webhook delivery failed after {attempts} attempts")
        raise WebhookRetryError(attempts, e.last_attempt.exception()) from e
