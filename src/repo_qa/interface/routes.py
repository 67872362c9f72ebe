"""API routes — thin controllers that delegate to the pipeline."""

from __future__ import annotations

import asyncio
import json
from typing import AsyncIterator

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse, StreamingResponse

from repo_qa.domain.entities import LLMInvocationConfig, QueryOutcome
from repo_qa.domain.value_objects import RepositoryIdentity
from repo_qa.infrastructure.config import Settings
from repo_qa.infrastructure.github_rest_adapter import GitHubRestClient
from repo_qa.infrastructure.llm_factory import create_llm_gateway, resolve_provider
from repo_qa.interface.dependencies import (
    get_app_settings,
    get_github_client,
    get_github_token,
    get_pipeline,
)
from repo_qa.interface.error_handlers import status_for_kind
from repo_qa.interface.schemas import (
    ErrorResponse,
    ModelsRequest,
    ModelsResponse,
    QueryRequest,
    QueryResponse,
    RepositoryResponse,
)
from repo_qa.services.query_pipeline import QueryPipeline

router = APIRouter()

_SSE_HEADERS = {"Cache-Control": "no-cache", "X-Accel-Buffering": "no"}


@router.post(
    "/query",
    response_model=QueryResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid repository URL"},
        401: {"model": QueryResponse, "description": "Missing or rejected GitHub / LLM credentials"},
        404: {"model": QueryResponse, "description": "Repository not found"},
        422: {"model": ErrorResponse, "description": "Malformed request body"},
        429: {"model": QueryResponse, "description": "GitHub API rate limit exceeded"},
        502: {"model": QueryResponse, "description": "LLM provider or GitHub API error"},
        503: {"model": QueryResponse, "description": "Network error"},
        504: {"model": QueryResponse, "description": "Request deadline exceeded"},
    },
)
async def query_repository(
    body: QueryRequest,
    pipeline: QueryPipeline = Depends(get_pipeline),
    github_token: str | None = Depends(get_github_token),
) -> JSONResponse:
    """Answer a question about a GitHub repository."""
    identity = RepositoryIdentity.from_string(body.repository_url)
    outcome = await pipeline.process_query(
        identity, body.query, github_token, body.llm.to_config()
    )
    return _outcome_response(outcome)


@router.post("/query/stream")
async def query_stream(
    body: QueryRequest,
    pipeline: QueryPipeline = Depends(get_pipeline),
    github_token: str | None = Depends(get_github_token),
) -> StreamingResponse:
    """Same as ``/query`` but streams answer tokens as Server-Sent Events.

    Emits ``token`` events while the model is answering, then exactly one
    ``result`` event carrying the full response body.
    """
    identity = RepositoryIdentity.from_string(body.repository_url)
    return StreamingResponse(
        _stream_answer(pipeline, identity, body.query, github_token, body.llm.to_config()),
        media_type="text/event-stream",
        headers=_SSE_HEADERS,
    )


@router.get(
    "/repositories",
    response_model=RepositoryResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid repository URL"},
        401: {"model": ErrorResponse, "description": "Missing or rejected GitHub token"},
        404: {"model": ErrorResponse, "description": "Repository not found"},
        429: {"model": ErrorResponse, "description": "GitHub API rate limit exceeded"},
    },
)
async def repository_info(
    url: str = Query(..., min_length=1),
    client: GitHubRestClient = Depends(get_github_client),
) -> RepositoryResponse:
    """Metadata of the repository behind *url*."""
    identity = RepositoryIdentity.from_string(url)
    info = await client.get_repository(identity.owner, identity.name)
    return RepositoryResponse(
        full_name=info.full_name,
        html_url=info.html_url,
        default_branch=info.default_branch,
        description=info.description,
        private=info.private,
        language=info.language,
        stargazers_count=info.stargazers_count,
        forks_count=info.forks_count,
        open_issues_count=info.open_issues_count,
        updated_at=info.updated_at,
        topics=info.topics,
    )


@router.post(
    "/llm/models",
    response_model=ModelsResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Unsupported provider"},
        401: {"model": ErrorResponse, "description": "API key rejected or malformed"},
        502: {"model": ErrorResponse, "description": "LLM provider error"},
        503: {"model": ErrorResponse, "description": "LLM provider unreachable"},
    },
)
async def list_models(
    body: ModelsRequest,
    settings: Settings = Depends(get_app_settings),
) -> ModelsResponse:
    """Models available to an API key."""
    provider = resolve_provider(body.provider)
    gateway = create_llm_gateway(
        LLMInvocationConfig(
            provider=provider,
            api_key=body.api_key.get_secret_value(),
            model="",
            base_url=body.base_url,
        ),
        timeout=settings.http_timeout_seconds,
        openrouter_base_url=settings.openrouter_base_url,
    )
    try:
        models = await gateway.list_models()
    finally:
        await gateway.close()
    return ModelsResponse(provider=provider.value, models=models)


# ── Helpers ─────────────────────────────────────────────────────────────────


def _outcome_response(outcome: QueryOutcome) -> JSONResponse:
    return JSONResponse(
        status_code=status_for_kind(outcome.error_kind),
        content=QueryResponse.from_outcome(outcome).model_dump(by_alias=True),
    )


def _sse(event: str, data: object) -> str:
    return f"event: {event}\ndata: {json.dumps(data)}\n\n"


async def _stream_answer(
    pipeline: QueryPipeline,
    identity: RepositoryIdentity,
    question: str,
    github_token: str | None,
    config: LLMInvocationConfig,
) -> AsyncIterator[str]:
    queue: asyncio.Queue[str | None] = asyncio.Queue()
    task = asyncio.create_task(
        pipeline.process_query(identity, question, github_token, config, on_token=queue.put_nowait)
    )
    task.add_done_callback(lambda _: queue.put_nowait(None))

    try:
        while True:
            text = await queue.get()
            if text is None:
                break
            yield _sse("token", {"text": text})

        outcome = task.result()
        yield _sse("result", QueryResponse.from_outcome(outcome).model_dump(by_alias=True))
    finally:
        if not task.done():
            task.cancel()
