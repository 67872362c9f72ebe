"""FastAPI dependency injection wiring.

The shared ``httpx.AsyncClient`` lives on ``app.state`` for the lifetime
of the application; everything built from it is request scoped.
"""

from __future__ import annotations

import httpx
from fastapi import FastAPI, Header, Request

from repo_qa.infrastructure.config import Settings, get_settings
from repo_qa.infrastructure.github_rest_adapter import GitHubRestClient
from repo_qa.services.query_pipeline import QueryPipeline


async def startup(app: FastAPI) -> None:
    """Initialise shared resources — called from the lifespan context manager."""
    settings = get_settings()
    app.state.http_client = httpx.AsyncClient(
        timeout=httpx.Timeout(settings.http_timeout_seconds)
    )


async def shutdown(app: FastAPI) -> None:
    """Release shared resources."""
    client: httpx.AsyncClient | None = getattr(app.state, "http_client", None)
    if client is not None:
        await client.aclose()
        app.state.http_client = None


def get_http_client(request: Request) -> httpx.AsyncClient:
    client: httpx.AsyncClient | None = getattr(request.app.state, "http_client", None)
    assert client is not None, "startup() was not called"
    return client


def get_app_settings() -> Settings:
    return get_settings()


def get_github_token(authorization: str | None = Header(default=None)) -> str | None:
    """Bearer token from the ``Authorization`` header, if any."""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def get_pipeline(request: Request) -> QueryPipeline:
    """Build a request-scoped pipeline around the shared HTTP client."""
    return QueryPipeline(get_http_client(request), get_app_settings())


def get_github_client(
    request: Request,
    authorization: str | None = Header(default=None),
) -> GitHubRestClient:
    return GitHubRestClient(
        get_http_client(request),
        get_github_token(authorization),
        api_url=get_app_settings().github_api_url,
    )
