"""
Voosh - HTTP Helpers
======================
Thin JSON-over-HTTP helpers shared by the REST provider adapters
(Cohere embeddings, Qdrant search).  The ``httpx.AsyncClient`` is owned
by the application container and injected; nothing here opens or closes
connections.
"""

from __future__ import annotations

import httpx

# Upstream bodies are echoed into error messages, capped at this length
_ERROR_BODY_CHARS = 500


def _raise_for_status(response: httpx.Response) -> None:
    if response.is_error:
        message = f"HTTP {response.status_code} {response.reason_phrase} from {response.request.url} - body: {response.text[:_ERROR_BODY_CHARS]}"
        raise httpx.HTTPStatusError(message, request=response.request, response=response)


def _decode(response: httpx.Response) -> object:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


async def post_json(client: httpx.AsyncClient, url: str, payload: dict[str, object], headers: dict[str, str] | None = None, timeout_ms: int | None = None) -> object:
    """
    POST *payload* as JSON and return the decoded body.

    Non-JSON bodies come back as text; an empty body comes back as ``None``.

    Raises:
        httpx.HTTPStatusError: on a 4xx/5xx answer (message includes the body).
        httpx.HTTPError:       on transport failures and timeouts.
    """
    timeout = timeout_ms / 1000 if timeout_ms else httpx.USE_CLIENT_DEFAULT
    response = await client.post(url, json=payload, headers=headers or {}, timeout=timeout)
    _raise_for_status(response)
    return _decode(response)


async def get_json(client: httpx.AsyncClient, url: str, headers: dict[str, str] | None = None, timeout_ms: int | None = None) -> object:
    """GET counterpart of :func:`post_json`."""
    timeout = timeout_ms / 1000 if timeout_ms else httpx.USE_CLIENT_DEFAULT
    response = await client.get(url, headers=headers or {}, timeout=timeout)
    _raise_for_status(response)
    return _decode(response)
