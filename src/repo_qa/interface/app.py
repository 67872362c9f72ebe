"""FastAPI application factory."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from repo_qa.interface.dependencies import shutdown, startup
from repo_qa.interface.error_handlers import register_error_handlers
from repo_qa.interface.routes import router

API_DESCRIPTION = (
    "Answers natural-language questions about a GitHub repository, "
    "grounded in its files, code search results and history, using "
    "the caller's own LLM provider account."
)


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    await startup(app)
    try:
        yield
    finally:
        await shutdown(app)


def create_app() -> FastAPI:
    app = FastAPI(
        title="GitHub Repository Q&A",
        version="1.0.0",
        description=API_DESCRIPTION,
        lifespan=_lifespan,
    )
    register_error_handlers(app)
    app.include_router(router)

    @app.get("/health", include_in_schema=False)
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    return app
