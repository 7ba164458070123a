"""HTTP helpers shared by the provider clients.

Translate ``requests`` failures and HTTP status codes into the
:mod:`paperscout.errors` hierarchy so clients only deal with ProviderError.
"""

import logging
from typing import Any

import requests

from paperscout.errors import NotFoundError, ParseError, RateLimitError, TransportError

logger = logging.getLogger(__name__)

USER_AGENT = "paperscout/0.1 (+https://github.com/paperscout/paperscout)"


def send(
    session: Any,
    method: str,
    url: str,
    provider: str,
    timeout: float,
    **kwargs,
) -> requests.Response:
    """Issue a request and raise a ProviderError subclass on any failure.

    Args:
        session: ``requests`` module or a ``requests.Session``
        method: "get" or "post"
        url: Target URL
        provider: Provider name used in error messages
        timeout: Per-call timeout in seconds

    Raises:
        RateLimitError: on HTTP 429
        NotFoundError: on HTTP 404
        TransportError: on connection errors, timeouts and other HTTP errors
    """
    headers = {"User-Agent": USER_AGENT, **kwargs.pop("headers", {})}
    try:
        response = getattr(session, method)(url, headers=headers, timeout=timeout, **kwargs)
    except requests.RequestException as e:
        raise TransportError(f"{provider} request failed: {e}", provider=provider) from e

    status = response.status_code
    if status == 429:
        raise RateLimitError(f"{provider} rate limit exceeded", provider=provider, status_code=429)
    if status == 404:
        raise NotFoundError(
            f"{provider} has no record at {url}", provider=provider, status_code=404
        )

    try:
        response.raise_for_status()
    except requests.HTTPError as e:
        raise TransportError(
            f"{provider} returned HTTP {status}", provider=provider, status_code=status
        ) from e
    return response


def decode_json(response: requests.Response, provider: str) -> Any:
    """Decode a JSON body, mapping decode failures to ParseError."""
    try:
        return response.json()
    except ValueError as e:
        raise ParseError(f"{provider} returned malformed JSON: {e}", provider=provider) from e
