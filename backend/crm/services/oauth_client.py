"""
HTTP plumbing shared by the Google and LinkedIn OAuth integrations.

Transport failures (connection resets, timeouts) are retried with
exponential backoff. HTTP error statuses are raised on the first answer.
"""

import logging
from typing import Any, Dict, Optional

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential


logger = logging.getLogger(__name__)

HTTP_TIMEOUT_SECONDS = 30.0


class OAuthProviderError(Exception):
    """An OAuth provider answered with an error or could not be reached."""

    def __init__(self, provider: str, message: str, status_code: Optional[int] = None):
        super().__init__(f"{provider}: {message}")
        self.provider = provider
        self.status_code = status_code


_transport_retry = retry(
    retry=retry_if_exception_type(httpx.TransportError),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.5, max=4),
    reraise=True,
)


@_transport_retry
async def _send(method: str, url: str, **kwargs) -> httpx.Response:
    async with httpx.AsyncClient(timeout=HTTP_TIMEOUT_SECONDS) as client:
        return await client.request(method, url, **kwargs)


async def request_json(provider: str, method: str, url: str, **kwargs) -> Dict[str, Any]:
    """
    Send a request and return its JSON body.

    Raises:
        OAuthProviderError: on a non-2xx status, a non-JSON body, or a
        transport error that survived the retries
    """
    try:
        response = await _send(method, url, **kwargs)
    except httpx.TimeoutException as e:
        logger.error(f"{provider} request timed out: {method} {url}")
        raise OAuthProviderError(provider, "request timed out") from e
    except httpx.RequestError as e:
        logger.error(f"{provider} connection error: {e}")
        raise OAuthProviderError(provider, "connection failed") from e

    if response.status_code >= 400:
        logger.error(f"{provider} API error {response.status_code}: {response.text[:200]}")
        raise OAuthProviderError(provider, f"HTTP {response.status_code}", response.status_code)

    try:
        return response.json()
    except ValueError as e:
        raise OAuthProviderError(provider, "invalid JSON response", response.status_code) from e
