"""Shared httpx helpers for upstream clients.

Every provider client funnels its requests through ``send`` so transport
and status failures surface as the same ``CatalogError`` subclasses no
matter which provider raised them.
"""

from typing import Any

import httpx

from game_cache.errors import NetworkError, NotFound, ServiceUnavailable, ValidationError


def new_client(timeout: float) -> httpx.AsyncClient:
    """Create the async client used by a provider."""
    return httpx.AsyncClient(
        timeout=httpx.Timeout(timeout),
        limits=httpx.Limits(max_connections=100, max_keepalive_connections=20),
    )


def check_status(response: httpx.Response, source: str) -> None:
    """Raise the catalog error matching a non-2xx response."""
    code = response.status_code
    if response.is_success:
        return

    message = f"{source} returned HTTP {code}"
    if code == 404:
        raise NotFound(message, source=source)
    if code in (400, 422):
        raise ValidationError(message, source=source, details={"body": response.text[:200]})
    # 401/403 mean our credentials are unusable, 429 and 5xx mean the provider
    # is up but not serving us; the caller can do nothing but wait either way.
    raise ServiceUnavailable(message, source=source, details={"status": code})


async def send(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    source: str,
    **kwargs: Any,
) -> httpx.Response:
    """Send a request and translate failures into catalog errors.

    Raises:
        NetworkError: On timeouts and connection failures
        NotFound, ValidationError, ServiceUnavailable: On error statuses
    """
    try:
        response = await client.request(method, url, **kwargs)
    except httpx.TimeoutException as e:
        raise NetworkError(f"{source} request timed out", source=source) from e
    except httpx.TransportError as e:
        raise NetworkError(f"{source} is unreachable: {e}", source=source) from e

    check_status(response, source)
    return response


def decode_json(response: httpx.Response, source: str) -> Any:
    try:
        return response.json()
    except ValueError as e:
        raise ServiceUnavailable(f"{source} returned malformed JSON", source=source) from e
