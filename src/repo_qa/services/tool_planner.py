"""LLM-driven evidence planning.

An alternative :class:`SelectionStrategy` that first asks the model which
GitHub tools would help with the question, then runs only those.  File
tools reuse the heuristic tiers; history, related-repository and
pull-request tools add their own evidence to the context.  Every failure
here is soft: the worst case is an empty plan answered from keywords.
"""

from __future__ import annotations

import json
import logging
import re

from repo_qa.domain.entities import RepositoryContext
from repo_qa.domain.exceptions import GitHubError, LlmError
from repo_qa.domain.ports.evidence_source import EvidenceSource
from repo_qa.domain.ports.llm_gateway import LlmGateway
from repo_qa.domain.value_objects import RepositoryIdentity
from repo_qa.services.relevance_selector import (
    ENRICHMENT_THRESHOLD,
    HeuristicSelectionStrategy,
)

logger = logging.getLogger(__name__)

GET_FILE_CONTENTS = "getFileContents"
SEARCH_CODE = "searchCode"
LIST_COMMITS = "listCommits"
SEARCH_REPOSITORIES = "searchRepositories"
GET_PULL_REQUEST_FILES = "getPullRequestFiles"

KNOWN_TOOLS = (
    GET_FILE_CONTENTS,
    SEARCH_CODE,
    LIST_COMMITS,
    SEARCH_REPOSITORIES,
    GET_PULL_REQUEST_FILES,
)
MAX_TOOLS = 3
COMMIT_PAGE_SIZE = 10

PLANNER_SYSTEM_PROMPT = """\
You analyze user questions about GitHub repositories and decide which tools \
are needed to answer them.

Available tools:
- getFileContents: contents of important files (README, manifests, entry points, config)
- searchCode: search for code patterns, functions, classes and imports in the repository
- searchRepositories: find related repositories by the same owner
- listCommits: recent commit history and changes
- getPullRequestFiles: files changed in a pull request (needs a PR number in the question)

Typical choices:
- Architecture or structure: ["getFileContents", "searchCode"]
- How something works: ["searchCode", "getFileContents"]
- Recent changes or history: ["listCommits"]
- Dependencies or setup: ["getFileContents"]
- Related projects: ["searchRepositories"]

Pick at most 3 tools.  Return only a JSON array of tool names, nothing else.
"""

_CODE_WORDS = ("how", "implement", "function", "class", "method", "code")
_HISTORY_WORDS = ("recent", "change", "history", "commit", "update")
_RELATED_WORDS = ("similar", "related", "other")

_PR_NUMBER_RE = re.compile(r"(?:#|\bpr\s*#?|\bpull\s+request\s*#?)(\d+)\b", re.IGNORECASE)
_SHA_RE = re.compile(r"\b(?=[0-9a-f]*\d)(?=[0-9a-f]*[a-f])[0-9a-f]{7,40}\b")


def keyword_tools(query: str) -> list[str]:
    """Fallback plan derived from plain keywords in the question."""
    lowered = query.lower()
    tools = [GET_FILE_CONTENTS]
    if any(word in lowered for word in _CODE_WORDS):
        tools.append(SEARCH_CODE)
    if any(word in lowered for word in _HISTORY_WORDS):
        tools.append(LIST_COMMITS)
    if any(word in lowered for word in _RELATED_WORDS):
        tools.append(SEARCH_REPOSITORIES)
    return tools


def parse_plan(raw: str) -> list[str]:
    """Extract known tool names from the model's JSON reply (max 3)."""
    text = raw.strip()
    if text.startswith("```"):
        first_nl = text.index("\n") if "\n" in text else 3
        text = text[first_nl + 1 :]
        if text.endswith("```"):
            text = text[:-3]
        text = text.strip()

    data = json.loads(text)
    if not isinstance(data, list):
        raise ValueError("plan is not a JSON array")

    tools: list[str] = []
    for item in data:
        if item in KNOWN_TOOLS and item not in tools:
            tools.append(item)
    return tools[:MAX_TOOLS]


def pull_request_number(query: str) -> int | None:
    match = _PR_NUMBER_RE.search(query)
    return int(match.group(1)) if match else None


def commit_refs(query: str) -> list[str]:
    return _SHA_RE.findall(query.lower())


class PlannedSelectionStrategy:
    """Selection strategy whose tool choice is delegated to an LLM."""

    def __init__(self, source: EvidenceSource, llm: LlmGateway) -> None:
        self._source = source
        self._llm = llm
        self._heuristic = HeuristicSelectionStrategy(source)

    async def plan(self, query: str) -> list[str]:
        try:
            raw = await self._llm.complete(PLANNER_SYSTEM_PROMPT, query)
            tools = parse_plan(raw)
        except (LlmError, ValueError) as exc:
            logger.info("Tool planning fell back to keywords: %s", exc)
            return keyword_tools(query)
        return tools or keyword_tools(query)

    async def select(
        self,
        identity: RepositoryIdentity,
        query: str,
        ref: str,
        context: RepositoryContext,
    ) -> None:
        tools = await self.plan(query)
        logger.info("Planned tools for %s: %s", identity.full_name, ", ".join(tools))

        start = len(context.files)
        if SEARCH_CODE in tools:
            await self._heuristic.search_tier(identity, query, ref, context)
        if GET_FILE_CONTENTS in tools:
            if len(context.files) == start:
                await self._heuristic.conventional_tier(identity, ref, context)
            if len(context.files) - start < ENRICHMENT_THRESHOLD:
                await self._heuristic.structure_tier(identity, query, ref, context)

        if LIST_COMMITS in tools:
            await self._gather_history(identity, query, context)
        if SEARCH_REPOSITORIES in tools:
            await self._gather_related(identity, context)

        pr_number = pull_request_number(query)
        if pr_number is not None:
            await self._gather_pull_request(identity, pr_number, context)

    async def _gather_history(
        self, identity: RepositoryIdentity, query: str, context: RepositoryContext
    ) -> None:
        try:
            context.commits.extend(
                await self._source.list_commits(
                    identity.owner, identity.name, per_page=COMMIT_PAGE_SIZE
                )
            )
        except GitHubError as exc:
            context.soft_errors.append(f"commits: {exc.message}")

        for ref in commit_refs(query):
            try:
                context.commit_details.append(
                    await self._source.get_commit(identity.owner, identity.name, ref)
                )
            except GitHubError as exc:
                context.soft_errors.append(f"commit {ref}: {exc.message}")

    async def _gather_related(
        self, identity: RepositoryIdentity, context: RepositoryContext
    ) -> None:
        try:
            related = await self._source.search_repositories(
                f"user:{identity.owner} sort:updated"
            )
        except GitHubError as exc:
            context.soft_errors.append(f"repository search: {exc.message}")
            return
        context.related_repositories.extend(
            r for r in related if r.full_name.lower() != identity.full_name.lower()
        )

    async def _gather_pull_request(
        self, identity: RepositoryIdentity, number: int, context: RepositoryContext
    ) -> None:
        try:
            context.pull_request_files.extend(
                await self._source.get_pull_request_files(identity.owner, identity.name, number)
            )
        except GitHubError as exc:
            context.soft_errors.append(f"pull request #{number}: {exc.message}")
