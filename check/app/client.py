from __future__ import annotations

import logging
from typing import Any, TypeVar

import httpx
from pydantic import TypeAdapter, ValidationError

from check.app.errors import AgentTimeout, MalformedResponse, TransportError


logger = logging.getLogger(__name__)

T = TypeVar("T")


def _error_message(body: Any) -> str | None:
    if isinstance(body, dict) and set(body) == {"error"}:
        return str(body["error"])
    return None


def fetch(
    hostname: str,
    port: int,
    path: str,
    timeout: float,
    *,
    transport: httpx.BaseTransport | None = None,
) -> Any:
    """Issue a single GET against the agent and return the decoded JSON body."""
    host = f"[{hostname}]" if ":" in hostname and not hostname.startswith("[") else hostname
    url = f"http://{host}:{port}{path}"
    logger.debug("Querying %s with a %ss timeout", url, timeout)
    try:
        with httpx.Client(timeout=timeout, transport=transport) as client:
            response = client.get(url)
    except httpx.TimeoutException as exc:
        raise AgentTimeout(f"Request to {url} timed out after {timeout}s") from exc
    except httpx.RequestError as exc:
        raise TransportError(f"Could not reach agent: {exc}") from exc
    except httpx.InvalidURL as exc:
        raise TransportError(f"Invalid agent URL {url!r}: {exc}") from exc

    try:
        body = response.json()
    except ValueError:
        body = None
    logger.debug("Agent responded with %s: %s", response.status_code, response.text[:200])

    message = _error_message(body)
    if response.status_code != httpx.codes.OK:
        detail = message or response.text[:200]
        raise TransportError(
            f"Agent responded with {response.status_code}: {detail}",
            status_code=response.status_code,
        )
    if message is not None:
        raise TransportError(f"Agent reported an error: {message}", status_code=response.status_code)
    if body is None:
        raise MalformedResponse("Agent response is not valid JSON", status_code=response.status_code)
    return body


def query(
    hostname: str,
    port: int,
    path: str,
    timeout: float,
    schema: type[T] | Any,
    *,
    transport: httpx.BaseTransport | None = None,
) -> T:
    """Fetch `path` and validate the body against `schema` (a model or a list of models)."""
    body = fetch(hostname, port, path, timeout, transport=transport)
    try:
        return TypeAdapter(schema).validate_python(body)
    except ValidationError as exc:
        raise MalformedResponse(
            f"Unexpected response shape from {path}: {exc.error_count()} validation error(s)"
        ) from exc
