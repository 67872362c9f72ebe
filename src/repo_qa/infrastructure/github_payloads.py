"""Typed shapes of the GitHub REST payloads the client consumes.

Only the fields the client reads are declared; anything else in the
response is ignored.  A payload missing a required field fails
validation, which the client reports as ``GitHubApiError``.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, TypeAdapter


class ContentsPayload(BaseModel):
    """``GET /repos/{o}/{r}/contents/{path}`` and ``/readme``."""

    type: str
    path: str
    sha: str = ""
    content: str | None = None
    encoding: str | None = None
    html_url: str | None = None


class TreeItemPayload(BaseModel):
    path: str
    type: str
    size: int | None = None


class TreePayload(BaseModel):
    """``GET /repos/{o}/{r}/git/trees/{ref}?recursive=1``."""

    tree: list[TreeItemPayload]
    truncated: bool = False


class CodeSearchItemPayload(BaseModel):
    path: str
    score: float = 0.0
    html_url: str


class CodeSearchPayload(BaseModel):
    """``GET /search/code``."""

    total_count: int = 0
    items: list[CodeSearchItemPayload]


class RepositoryPayload(BaseModel):
    """``GET /repos/{o}/{r}`` and the items of ``/search/repositories``."""

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
    topics: list[str] = Field(default_factory=list)


class RepositorySearchPayload(BaseModel):
    """``GET /search/repositories``."""

    total_count: int = 0
    items: list[RepositoryPayload]


class GitActorPayload(BaseModel):
    name: str | None = None
    date: str | None = None


class GitCommitPayload(BaseModel):
    message: str
    author: GitActorPayload | None = None


class UserPayload(BaseModel):
    login: str


class CommitFilePayload(BaseModel):
    filename: str
    status: str
    additions: int = 0
    deletions: int = 0
    changes: int = 0
    patch: str | None = None


class CommitPayload(BaseModel):
    """Items of ``/repos/{o}/{r}/commits`` and ``/commits/{ref}``."""

    sha: str
    html_url: str | None = None
    commit: GitCommitPayload
    author: UserPayload | None = None
    files: list[CommitFilePayload] = Field(default_factory=list)


COMMIT_LIST = TypeAdapter(list[CommitPayload])
PULL_REQUEST_FILES = TypeAdapter(list[CommitFilePayload])
