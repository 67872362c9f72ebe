"""GitHub REST API adapter — implements the EvidenceSource port."""

from __future__ import annotations

import base64
import binascii
import logging
from datetime import datetime, timezone
from typing import Any, TypeVar
from urllib.parse import quote

import httpx
from pydantic import BaseModel, TypeAdapter, ValidationError

from repo_qa.domain.entities import (
    CodeSearchHit,
    CommitDetail,
    CommitFile,
    CommitSummary,
    FileContent,
    PullRequestFile,
    RepositoryInfo,
    RepositorySummary,
    TreeEntry,
)
from repo_qa.domain.exceptions import (
    AuthRequiredError,
    GitHubApiError,
    GitHubNetworkError,
    NotFoundError,
    RateLimitedOrForbiddenError,
    UnauthorizedError,
)
from repo_qa.infrastructure.github_payloads import (
    COMMIT_LIST,
    PULL_REQUEST_FILES,
    CodeSearchPayload,
    CommitPayload,
    ContentsPayload,
    RepositoryPayload,
    RepositorySearchPayload,
    TreePayload,
)

logger = logging.getLogger(__name__)

_GITHUB_API = "https://api.github.com"
_USER_AGENT = "repo-qa/1.0"

_M = TypeVar("_M", bound=BaseModel)

_KIND_BY_TYPE = {"blob": "file", "tree": "dir"}


class GitHubRestClient:
    """Concrete EvidenceSource backed by the GitHub v3 REST API.

    One instance per request; the shared ``httpx.AsyncClient`` only
    provides connection reuse.  No call is ever retried here.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        token: str | None,
        api_url: str = _GITHUB_API,
    ) -> None:
        self._client = client
        self._token = token
        self._api_url = api_url.rstrip("/")

    # ── Repository ──────────────────────────────────────────────────────

    async def get_repository(self, owner: str, repo: str) -> RepositoryInfo:
        """GET /repos/{owner}/{repo} → RepositoryInfo."""
        data = await self._api_get(f"/repos/{owner}/{repo}")
        payload = _decode(RepositoryPayload, data)
        return RepositoryInfo(
            full_name=payload.full_name,
            html_url=payload.html_url,
            default_branch=payload.default_branch,
            description=payload.description,
            private=payload.private,
            language=payload.language,
            stargazers_count=payload.stargazers_count,
            forks_count=payload.forks_count,
            open_issues_count=payload.open_issues_count,
            updated_at=payload.updated_at,
            topics=list(payload.topics),
        )

    # ── Contents ────────────────────────────────────────────────────────

    async def get_file_contents(
        self, owner: str, repo: str, path: str, ref: str | None = None
    ) -> FileContent:
        """GET /repos/{owner}/{repo}/contents/{path} → decoded text."""
        params = {"ref": ref} if ref else None
        data = await self._api_get(
            f"/repos/{owner}/{repo}/contents/{quote(path, safe='/')}", params=params
        )
        if isinstance(data, list):
            raise GitHubApiError(f"'{path}' is a directory, not a regular file.", code=200)
        return _decode_contents(path, data)

    async def get_readme(self, owner: str, repo: str, ref: str | None = None) -> FileContent:
        """GET /repos/{owner}/{repo}/readme → decoded text of the preferred README."""
        params = {"ref": ref} if ref else None
        data = await self._api_get(f"/repos/{owner}/{repo}/readme", params=params)
        return _decode_contents("README", data)

    async def get_tree(self, owner: str, repo: str, ref: str = "main") -> list[TreeEntry]:
        """GET /repos/{owner}/{repo}/git/trees/{ref}?recursive=1 → [TreeEntry]."""
        data = await self._api_get(
            f"/repos/{owner}/{repo}/git/trees/{quote(ref, safe='')}",
            params={"recursive": "1"},
        )
        payload = _decode(TreePayload, data)
        if payload.truncated:
            logger.debug("Tree listing for %s/%s was truncated by GitHub", owner, repo)

        # Submodules come back as type "commit"; they have no content to fetch.
        return [
            TreeEntry(path=item.path, kind=_KIND_BY_TYPE[item.type], size=item.size)
            for item in payload.tree
            if item.type in _KIND_BY_TYPE
        ]

    # ── Search ──────────────────────────────────────────────────────────

    async def search_code(
        self, query: str, owner: str | None = None, repo: str | None = None
    ) -> list[CodeSearchHit]:
        """GET /search/code → hits in GitHub's ranking order."""
        q = query
        if owner and repo:
            q += f" repo:{owner}/{repo}"
        elif owner:
            q += f" user:{owner}"

        data = await self._api_get("/search/code", params={"q": q})
        payload = _decode(CodeSearchPayload, data)
        return [
            CodeSearchHit(path=item.path, score=item.score, url=item.html_url)
            for item in payload.items
        ]

    async def search_repositories(self, query: str) -> list[RepositorySummary]:
        """GET /search/repositories → repository summaries."""
        data = await self._api_get("/search/repositories", params={"q": query})
        payload = _decode(RepositorySearchPayload, data)
        return [
            RepositorySummary(
                full_name=item.full_name,
                html_url=item.html_url,
                description=item.description,
                language=item.language,
                stargazers_count=item.stargazers_count,
                updated_at=item.updated_at,
            )
            for item in payload.items
        ]

    # ── History ─────────────────────────────────────────────────────────

    async def list_commits(
        self,
        owner: str,
        repo: str,
        *,
        sha: str | None = None,
        path: str | None = None,
        per_page: int | None = None,
    ) -> list[CommitSummary]:
        """GET /repos/{owner}/{repo}/commits → commit summaries."""
        params: dict[str, str] = {}
        if sha:
            params["sha"] = sha
        if path:
            params["path"] = path
        if per_page:
            params["per_page"] = str(per_page)

        data = await self._api_get(f"/repos/{owner}/{repo}/commits", params=params or None)
        return [_commit_summary(c) for c in _decode_list(COMMIT_LIST, data)]

    async def get_commit(self, owner: str, repo: str, ref: str) -> CommitDetail:
        """GET /repos/{owner}/{repo}/commits/{ref} → commit with changed files."""
        data = await self._api_get(f"/repos/{owner}/{repo}/commits/{quote(ref, safe='')}")
        payload = _decode(CommitPayload, data)
        summary = _commit_summary(payload)
        return CommitDetail(
            sha=summary.sha,
            message=summary.message,
            author=summary.author,
            date=summary.date,
            html_url=summary.html_url,
            files=[
                CommitFile(
                    filename=f.filename,
                    status=f.status,
                    additions=f.additions,
                    deletions=f.deletions,
                    patch=f.patch,
                )
                for f in payload.files
            ],
        )

    async def get_pull_request_files(
        self, owner: str, repo: str, pull_number: int
    ) -> list[PullRequestFile]:
        """GET /repos/{owner}/{repo}/pulls/{n}/files → changed-file diffs."""
        data = await self._api_get(f"/repos/{owner}/{repo}/pulls/{pull_number}/files")
        return [
            PullRequestFile(
                filename=f.filename,
                status=f.status,
                additions=f.additions,
                deletions=f.deletions,
                changes=f.changes,
                patch=f.patch,
            )
            for f in _decode_list(PULL_REQUEST_FILES, data)
        ]

    # ── Transport ───────────────────────────────────────────────────────

    async def _api_get(
        self,
        endpoint: str,
        params: dict[str, str] | None = None,
    ) -> Any:
        """Perform a GitHub API GET request with error translation."""
        if not self._token:
            raise AuthRequiredError("A GitHub token is required for all operations.")

        url = f"{self._api_url}{endpoint}"
        headers = {
            "Accept": "application/vnd.github.v3+json",
            "User-Agent": _USER_AGENT,
            "Authorization": f"Bearer {self._token}",
        }
        try:
            resp = await self._client.get(url, headers=headers, params=params)
        except httpx.HTTPError as exc:
            raise GitHubNetworkError(f"Network error fetching {url}: {exc}") from exc

        if resp.is_success:
            try:
                return resp.json()
            except ValueError as exc:
                raise GitHubApiError(
                    f"GitHub API returned a non-JSON body for {endpoint}", code=resp.status_code
                ) from exc

        message = _error_message(resp)

        if resp.status_code == 404:
            raise NotFoundError(f"Not found: {endpoint} ({message})", code=404)

        if resp.status_code == 401:
            raise UnauthorizedError(f"GitHub rejected the token: {message}", code=401)

        if resp.status_code == 403:
            if resp.headers.get("x-ratelimit-remaining", "") == "0":
                reset_raw = resp.headers.get("x-ratelimit-reset", "")
                try:
                    reset_str = datetime.fromtimestamp(int(reset_raw), tz=timezone.utc).strftime(
                        "%Y-%m-%d %H:%M:%S UTC"
                    )
                except (ValueError, OSError):
                    reset_str = reset_raw or "unknown"
                raise RateLimitedOrForbiddenError(
                    f"GitHub API rate limit exceeded. Resets at {reset_str}.", code=403
                )
            raise RateLimitedOrForbiddenError(f"GitHub API forbidden: {message}", code=403)

        if resp.status_code == 429:
            raise RateLimitedOrForbiddenError("GitHub API rate limit exceeded (HTTP 429).", code=429)

        raise GitHubApiError(
            f"GitHub API returned HTTP {resp.status_code} for {endpoint}: {message}",
            code=resp.status_code,
        )


# ── Decoding helpers ────────────────────────────────────────────────────────


def _decode(model: type[_M], data: Any) -> _M:
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise GitHubApiError(
            f"Unexpected GitHub payload for {model.__name__}: {exc.error_count()} error(s)"
        ) from exc


def _decode_list(adapter: TypeAdapter[list[_M]], data: Any) -> list[_M]:
    try:
        return adapter.validate_python(data)
    except ValidationError as exc:
        raise GitHubApiError(
            f"Unexpected GitHub list payload: {exc.error_count()} error(s)"
        ) from exc


def _decode_contents(path: str, data: Any) -> FileContent:
    payload = _decode(ContentsPayload, data)
    if payload.type != "file":
        raise GitHubApiError(f"'{path}' is a {payload.type}, not a regular file.", code=200)

    raw = payload.content or ""
    if payload.encoding == "base64":
        try:
            text = base64.b64decode(raw).decode("utf-8", errors="replace")
        except (binascii.Error, ValueError) as exc:
            raise GitHubApiError(f"Could not decode base64 content of '{path}'.") from exc
    else:
        text = raw

    return FileContent(path=payload.path, content=text, sha=payload.sha, html_url=payload.html_url)


def _commit_summary(payload: CommitPayload) -> CommitSummary:
    git_author = payload.commit.author
    author = payload.author.login if payload.author else (git_author.name if git_author else None)
    return CommitSummary(
        sha=payload.sha,
        message=payload.commit.message,
        author=author,
        date=git_author.date if git_author else None,
        html_url=payload.html_url,
    )


def _error_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.reason_phrase or f"HTTP {resp.status_code}"
    if isinstance(body, dict) and isinstance(body.get("message"), str):
        return body["message"]
    return resp.reason_phrase or f"HTTP {resp.status_code}"
