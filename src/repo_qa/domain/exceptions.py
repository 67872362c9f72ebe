"""Domain exception hierarchy.

Inner layers raise these; the query pipeline translates them into a tagged
:class:`~repo_qa.domain.entities.QueryOutcome` and the interface layer
handles whatever escapes.
"""

from __future__ import annotations


class RepoQaError(Exception):
    """Base exception for the entire application."""


# ── Input validation ────────────────────────────────────────────────────────


class InvalidRepositoryError(RepoQaError):
    """The supplied string does not identify a GitHub repository."""


# ── GitHub API errors ───────────────────────────────────────────────────────


class GitHubError(RepoQaError):
    """Any error reported by the GitHub evidence client.

    ``code`` is the HTTP status where one exists, ``-1`` for local or
    transport-level failures.
    """

    def __init__(self, message: str, code: int = -1) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


class AuthRequiredError(GitHubError):
    """No credential was supplied; nothing was sent over the network."""


class NotFoundError(GitHubError):
    """GitHub answered 404."""


class RateLimitedOrForbiddenError(GitHubError):
    """GitHub answered 403 (rate limit or permissions) or 429."""


class UnauthorizedError(GitHubError):
    """GitHub rejected the token (401)."""


class GitHubApiError(GitHubError):
    """Any other non-2xx answer, or a payload of unexpected shape."""


class GitHubNetworkError(GitHubError):
    """DNS failure, connection reset, timeout and friends."""


# ── LLM errors ──────────────────────────────────────────────────────────────


class LlmError(RepoQaError):
    """Any error originating from the LLM provider."""


class LlmAuthError(LlmError):
    """The LLM provider rejected the API key."""


class LlmNetworkError(LlmError):
    """The LLM provider could not be reached."""


class UnsupportedProviderError(LlmError):
    """The configuration names a provider outside the supported set."""
