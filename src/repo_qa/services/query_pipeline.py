"""Query pipeline — the single entry point for the business logic.

Depends only on the ports and the service modules.  The caller supplies the
repository identity, the GitHub token and the decrypted LLM configuration;
everything else is built per request.  Failures come back as a tagged
:class:`QueryOutcome`, never as an exception.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable

import httpx

from repo_qa.domain.entities import ErrorKind, LLMInvocationConfig, QueryOutcome
from repo_qa.domain.exceptions import (
    AuthRequiredError,
    GitHubError,
    GitHubNetworkError,
    LlmAuthError,
    LlmError,
    LlmNetworkError,
    NotFoundError,
    RateLimitedOrForbiddenError,
    RepoQaError,
    UnauthorizedError,
    UnsupportedProviderError,
)
from repo_qa.domain.ports.evidence_source import EvidenceSource
from repo_qa.domain.ports.llm_gateway import LlmGateway, TokenSink
from repo_qa.domain.ports.selection_strategy import SelectionStrategy
from repo_qa.domain.value_objects import RepositoryIdentity
from repo_qa.infrastructure.config import Settings, get_settings
from repo_qa.infrastructure.github_rest_adapter import GitHubRestClient
from repo_qa.infrastructure.llm_factory import create_llm_gateway
from repo_qa.services.answer_synthesizer import AnswerSynthesizer
from repo_qa.services.context_assembler import ContextAssembler
from repo_qa.services.relevance_selector import HeuristicSelectionStrategy
from repo_qa.services.tool_planner import PlannedSelectionStrategy

logger = logging.getLogger(__name__)

GatewayFactory = Callable[[LLMInvocationConfig], LlmGateway]
StrategyFactory = Callable[[EvidenceSource, LlmGateway], SelectionStrategy]

# ── User-facing messages ────────────────────────────────────────────────────

MSG_GITHUB_AUTH = "GitHub authentication required. Please sign in with GitHub."
MSG_GITHUB_REJECTED = "GitHub rejected your credentials. Please sign in with GitHub again."
MSG_LLM_KEY = "LLM configuration required. Please configure your AI provider first."
MSG_NOT_FOUND = (
    "Repository not found or not accessible. "
    "Please check the repository URL and your permissions."
)
MSG_RATE_LIMITED = (
    "GitHub API rate limit exceeded or access forbidden. "
    "Please wait a few minutes before trying again."
)
MSG_NETWORK = "Network error occurred. Please check your internet connection and try again."
MSG_LLM_AUTH = "AI provider authentication failed. Please check your API key configuration."
MSG_TIMEOUT = "The request took too long to complete. Please try again."
MSG_INTERNAL = "An unexpected error occurred. Please try again."


def outcome_for_error(exc: RepoQaError) -> QueryOutcome:
    """Map a domain exception onto its stable error kind and message."""
    if isinstance(exc, AuthRequiredError):
        return QueryOutcome.failure(ErrorKind.AUTH_REQUIRED, MSG_GITHUB_AUTH)
    if isinstance(exc, UnauthorizedError):
        return QueryOutcome.failure(ErrorKind.AUTH_REQUIRED, MSG_GITHUB_REJECTED)
    if isinstance(exc, NotFoundError):
        return QueryOutcome.failure(ErrorKind.REPOSITORY_NOT_FOUND, MSG_NOT_FOUND)
    if isinstance(exc, RateLimitedOrForbiddenError):
        return QueryOutcome.failure(ErrorKind.RATE_LIMITED, f"{MSG_RATE_LIMITED} ({exc.message})")
    if isinstance(exc, (GitHubNetworkError, LlmNetworkError)):
        return QueryOutcome.failure(ErrorKind.NETWORK_ERROR, MSG_NETWORK)
    if isinstance(exc, GitHubError):
        return QueryOutcome.failure(ErrorKind.GITHUB_ERROR, f"GitHub API error: {exc}")
    if isinstance(exc, LlmAuthError):
        return QueryOutcome.failure(ErrorKind.LLM_AUTH_ERROR, MSG_LLM_AUTH)
    if isinstance(exc, UnsupportedProviderError):
        return QueryOutcome.failure(ErrorKind.UNSUPPORTED_PROVIDER, str(exc))
    if isinstance(exc, LlmError):
        return QueryOutcome.failure(ErrorKind.LLM_ERROR, str(exc))
    return QueryOutcome.failure(ErrorKind.INTERNAL_ERROR, MSG_INTERNAL)


class QueryPipeline:
    """Orchestrates evidence retrieval and answer synthesis for one question.

    Parameters
    ----------
    http_client:
        Shared ``httpx.AsyncClient`` used for GitHub calls.
    settings:
        Limits and timeouts; defaults to the process settings.
    gateway_factory:
        Builds the LLM gateway for a request's configuration.
    strategy_factory:
        Builds the selection strategy; defaults to the one named in settings.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        settings: Settings | None = None,
        *,
        gateway_factory: GatewayFactory | None = None,
        strategy_factory: StrategyFactory | None = None,
    ) -> None:
        self._http = http_client
        self._settings = settings or get_settings()
        self._gateway_factory = gateway_factory or self._default_gateway
        self._strategy_factory = strategy_factory or self._default_strategy

    # ── Public entry point ──────────────────────────────────────────────

    async def process_query(
        self,
        repository: RepositoryIdentity,
        query: str,
        github_token: str | None,
        llm_config: LLMInvocationConfig | None,
        *,
        on_token: TokenSink | None = None,
    ) -> QueryOutcome:
        """Answer *query* about *repository*; never raises."""
        if not github_token:
            return QueryOutcome.failure(ErrorKind.AUTH_REQUIRED, MSG_GITHUB_AUTH)
        if llm_config is None or not llm_config.api_key:
            return QueryOutcome.failure(ErrorKind.AUTH_REQUIRED, MSG_LLM_KEY)

        try:
            llm = self._gateway_factory(llm_config)
        except LlmError as exc:
            logger.info("Rejected LLM configuration: %s", exc)
            return outcome_for_error(exc)

        logger.info("Answering question about %s", repository.full_name)
        try:
            return await asyncio.wait_for(
                self._run(repository, query, github_token, llm, on_token),
                self._settings.request_timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning("Query about %s timed out", repository.full_name)
            return QueryOutcome.failure(ErrorKind.TIMEOUT, MSG_TIMEOUT)
        except RepoQaError as exc:
            logger.warning("%s: %s", type(exc).__name__, exc)
            return outcome_for_error(exc)
        except Exception:
            logger.exception("Unhandled error while answering about %s", repository.full_name)
            return QueryOutcome.failure(ErrorKind.INTERNAL_ERROR, MSG_INTERNAL)
        finally:
            try:
                await llm.close()
            except Exception:
                logger.warning("Failed to close the LLM client", exc_info=True)

    # ── Pipeline ────────────────────────────────────────────────────────

    async def _run(
        self,
        repository: RepositoryIdentity,
        query: str,
        github_token: str,
        llm: LlmGateway,
        on_token: TokenSink | None,
    ) -> QueryOutcome:
        source = GitHubRestClient(self._http, github_token, api_url=self._settings.github_api_url)

        # 1. Primary repository call: errors here are fatal.
        info = await source.get_repository(repository.owner, repository.name)
        ref = info.default_branch

        # 2. Evidence, bounded so a slow sub-call cannot starve synthesis.
        assembler = ContextAssembler(source, self._strategy_factory(source, llm))
        context = await assembler.assemble(
            repository, query, ref, timeout=self._settings.evidence_timeout_seconds
        )

        # 3. Synthesis
        synthesizer = AnswerSynthesizer(
            llm,
            max_lines=self._settings.code_reference_max_lines,
            excerpt_chars=self._settings.file_excerpt_chars,
            max_tree_entries=self._settings.max_tree_entries,
        )
        return await synthesizer.synthesize(repository, query, context, ref, on_token=on_token)

    # ── Defaults ────────────────────────────────────────────────────────

    def _default_gateway(self, config: LLMInvocationConfig) -> LlmGateway:
        return create_llm_gateway(
            config,
            timeout=self._settings.request_timeout_seconds,
            openrouter_base_url=self._settings.openrouter_base_url,
        )

    def _default_strategy(self, source: EvidenceSource, llm: LlmGateway) -> SelectionStrategy:
        if self._settings.selection_strategy == "planner":
            return PlannedSelectionStrategy(source, llm)
        return HeuristicSelectionStrategy(source)


async def process_query(
    repository: RepositoryIdentity,
    query: str,
    github_token: str | None,
    llm_config: LLMInvocationConfig | None,
    *,
    on_token: TokenSink | None = None,
    settings: Settings | None = None,
) -> QueryOutcome:
    """One-shot convenience wrapper that owns its own HTTP client."""
    settings = settings or get_settings()
    async with httpx.AsyncClient(timeout=httpx.Timeout(settings.http_timeout_seconds)) as client:
        return await QueryPipeline(client, settings).process_query(
            repository, query, github_token, llm_config, on_token=on_token
        )
