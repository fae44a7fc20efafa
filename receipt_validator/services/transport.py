"""
HTTP transport shared by the store backends.

A caller-supplied client is reused and left open; otherwise a client is
opened for the duration of a single validation.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from receipt_validator.config import settings
from receipt_validator.exceptions import TransportError

ModelT = TypeVar("ModelT", bound=BaseModel)


@asynccontextmanager
async def http_client_scope(
    http_client: httpx.AsyncClient | None = None,
) -> AsyncIterator[httpx.AsyncClient]:
    """Yield the given client, or a short-lived one closed on exit."""
    if http_client is not None:
        yield http_client
        return

    async with httpx.AsyncClient(timeout=settings.http_timeout_seconds) as client:
        yield client


async def send(client: httpx.AsyncClient, method: str, url: str, **kwargs: object) -> httpx.Response:
    """Send a request, mapping network failures to TransportError."""
    try:
        return await client.request(method, url, **kwargs)  # type: ignore[arg-type]
    except (httpx.HTTPError, httpx.InvalidURL) as exc:
        raise TransportError(f"{method} {url} failed: {exc}") from exc


def decode(response: httpx.Response, model: type[ModelT]) -> ModelT:
    """Decode a JSON response body into a wire model."""
    try:
        return model.model_validate_json(response.content)
    except ValidationError as exc:
        raise TransportError(
            f"Undecodable {model.__name__} body: {exc.errors()[0]['msg']}",
            status_code=response.status_code,
        ) from exc
