"""Domain entities — pure data structures with no external dependencies."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class LlmProvider(str, Enum):
    """Supported LLM back ends."""

    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    OPENROUTER = "openrouter"


class ErrorKind(str, Enum):
    """Stable error tags carried by a failed :class:`QueryOutcome`."""

    AUTH_REQUIRED = "AuthRequired"
    REPOSITORY_NOT_FOUND = "RepositoryNotFound"
    RATE_LIMITED = "RateLimited"
    NETWORK_ERROR = "NetworkError"
    LLM_AUTH_ERROR = "LLMAuthError"
    LLM_ERROR = "LLMError"
    UNSUPPORTED_PROVIDER = "UnsupportedProvider"
    TIMEOUT = "Timeout"
    GITHUB_ERROR = "GitHubError"
    INTERNAL_ERROR = "InternalError"


# ── GitHub payloads ─────────────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class TreeEntry:
    """A single node from the recursive tree listing."""

    path: str
    kind: str  # "file" or "dir"
    size: int | None = None


@dataclass(frozen=True, slots=True)
class FileContent:
    """Decoded text of one regular file."""

    path: str
    content: str
    sha: str = ""
    html_url: str | None = None


@dataclass(frozen=True, slots=True)
class CodeSearchHit:
    path: str
    score: float
    url: str


@dataclass(frozen=True, slots=True)
class RepositorySummary:
    full_name: str
    html_url: str
    description: str | None = None
    language: str | None = None
    stargazers_count: int = 0
    updated_at: str | None = None


@dataclass(frozen=True, slots=True)
class RepositoryInfo:
    """Metadata of the repository being queried."""

    full_name: str
    html_url: str
    default_branch: str = "main"
    description: str | None = None
    private: bool = False
    language: str | None = None
    stargazers_count: int = 0
    forks_count: int = 0
    open_issues_count: int = 0
    updated_at: str | None = None
    topics: list[str] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class CommitSummary:
    sha: str
    message: str
    author: str | None = None
    date: str | None = None
    html_url: str | None = None


@dataclass(frozen=True, slots=True)
class CommitFile:
    filename: str
    status: str
    additions: int = 0
    deletions: int = 0
    patch: str | None = None


@dataclass(frozen=True, slots=True)
class CommitDetail:
    sha: str
    message: str
    author: str | None = None
    date: str | None = None
    html_url: str | None = None
    files: list[CommitFile] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class PullRequestFile:
    filename: str
    status: str
    additions: int = 0
    deletions: int = 0
    changes: int = 0
    patch: str | None = None


# ── Pipeline data ───────────────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class EvidenceFile:
    """One file's content plus the reason it was selected."""

    path: str
    content: str
    relevance_tag: str


@dataclass(slots=True)
class RepositoryContext:
    """Everything the answer synthesizer gets to see about a repository."""

    readme: str | None = None
    readme_path: str | None = None
    files: list[EvidenceFile] = field(default_factory=list)
    tree: list[TreeEntry] | None = None
    commits: list[CommitSummary] = field(default_factory=list)
    commit_details: list[CommitDetail] = field(default_factory=list)
    related_repositories: list[RepositorySummary] = field(default_factory=list)
    pull_request_files: list[PullRequestFile] = field(default_factory=list)
    soft_errors: list[str] = field(default_factory=list)

    @property
    def has_evidence(self) -> bool:
        return bool(
            self.readme
            or self.files
            or self.tree
            or self.commits
            or self.commit_details
            or self.related_repositories
            or self.pull_request_files
        )


@dataclass(frozen=True, slots=True)
class LLMInvocationConfig:
    """Decrypted, previously validated LLM settings for one request."""

    provider: LlmProvider | str
    api_key: str = field(repr=False)
    model: str
    base_url: str | None = None


@dataclass(frozen=True, slots=True)
class CodeReference:
    file: str
    start_line: int
    end_line: int
    content: str
    url: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "file": self.file,
            "startLine": self.start_line,
            "endLine": self.end_line,
            "content": self.content,
            "url": self.url,
        }


@dataclass(frozen=True, slots=True)
class QueryOutcome:
    """The sole externally visible result of the pipeline."""

    success: bool
    answer_text: str | None = None
    sources: list[str] = field(default_factory=list)
    code_references: list[CodeReference] = field(default_factory=list)
    error_kind: ErrorKind | None = None
    error_message: str | None = None

    @classmethod
    def failure(cls, kind: ErrorKind, message: str) -> QueryOutcome:
        return cls(success=False, error_kind=kind, error_message=message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "answerText": self.answer_text,
            "sources": list(self.sources),
            "codeReferences": [ref.to_dict() for ref in self.code_references],
            "errorKind": self.error_kind.value if self.error_kind else None,
            "errorMessage": self.error_message,
        }
