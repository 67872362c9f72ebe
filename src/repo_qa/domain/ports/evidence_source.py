"""Port: evidence source — defined by the domain, implemented by infrastructure."""

from __future__ import annotations

from typing import Protocol

from repo_qa.domain.entities import (
    CodeSearchHit,
    CommitDetail,
    CommitSummary,
    FileContent,
    PullRequestFile,
    RepositoryInfo,
    RepositorySummary,
    TreeEntry,
)


class EvidenceSource(Protocol):
    """Abstract contract for reading repository evidence from GitHub.

    Every method raises a :class:`~repo_qa.domain.exceptions.GitHubError`
    subclass on failure.
    """

    async def get_repository(self, owner: str, repo: str) -> RepositoryInfo:
        ...

    async def get_file_contents(
        self, owner: str, repo: str, path: str, ref: str | None = None
    ) -> FileContent:
        ...

    async def get_readme(self, owner: str, repo: str, ref: str | None = None) -> FileContent:
        ...

    async def get_tree(self, owner: str, repo: str, ref: str = "main") -> list[TreeEntry]:
        ...

    async def search_code(
        self, query: str, owner: str | None = None, repo: str | None = None
    ) -> list[CodeSearchHit]:
        ...

    async def search_repositories(self, query: str) -> list[RepositorySummary]:
        ...

    async def list_commits(
        self,
        owner: str,
        repo: str,
        *,
        sha: str | None = None,
        path: str | None = None,
        per_page: int | None = None,
    ) -> list[CommitSummary]:
        ...

    async def get_commit(self, owner: str, repo: str, ref: str) -> CommitDetail:
        ...

    async def get_pull_request_files(
        self, owner: str, repo: str, pull_number: int
    ) -> list[PullRequestFile]:
        ...
