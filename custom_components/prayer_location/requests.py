"""
Low-level HTTP request library for the geocoding and prayer-time APIs.

This module performs exactly one bounded request per call; retry policy
belongs to the coordinator. Callers translate the exceptions raised here
into domain errors.
"""
from __future__ import annotations

import logging

import aiohttp


_LOGGER = logging.getLogger(__name__)

REQUEST_TIMEOUT = 10  # seconds


class ApiResponseError(Exception):
    """Exception raised when an API answers with a non-200 status."""

    def __init__(self, status: int, body: object = None):
        self.status = status
        self.body = body
        super().__init__(f"API Error: HTTP {status}: {body}")


async def make_request(
    url: str,
    headers: dict | None = None,
    params: dict | None = None,
    timeout: float = REQUEST_TIMEOUT,
):
    """
    Send a single GET request and return the parsed JSON body.

    Args:
        url: Target URL for the request
        headers: HTTP headers dictionary (optional)
        params: URL query parameters (optional)
        timeout: Total timeout in seconds for connect + read

    Returns:
        Parsed JSON response

    Raises:
        asyncio.TimeoutError: If the request does not complete in time
        aiohttp.ClientError: On connection-level failures
        ApiResponseError: If the server answers with a non-200 status
        ValueError: If a successful response is not JSON
    """
    timeout_config = aiohttp.ClientTimeout(total=timeout)
    async with aiohttp.ClientSession(timeout=timeout_config) as session:
        async with session.get(url, headers=headers, params=params) as response:
            return await _process_response(response, url)


async def _process_response(response, url: str):
    """
    Process HTTP response and extract JSON data.

    Args:
        response: aiohttp response object
        url: Request URL (for logging)

    Returns:
        Parsed JSON response

    Raises:
        ValueError: If response has unexpected content type
        ApiResponseError: For non-200 responses
    """
    content_type = response.headers.get('Content-Type', '')

    if response.status == 200:
        if 'json' in content_type:
            return await response.json()
        _LOGGER.warning(
            "Unexpected content type in successful response: %s (status %s) from %s",
            content_type, response.status, url
        )
        text = await response.text()
        raise ValueError(f"Expected JSON but got {content_type}: {text[:200]}")

    if 'json' in content_type:
        try:
            body = await response.json()
        except (aiohttp.ContentTypeError, ValueError) as e:
            _LOGGER.debug("Failed to parse error response from %s: %s", url, e)
            body = None
    else:
        text = await response.text()
        body = text[:200]
        _LOGGER.debug(
            "Received non-JSON error response from %s: status %s, content-type: %s",
            url, response.status, content_type
        )
    raise ApiResponseError(response.status, body)
