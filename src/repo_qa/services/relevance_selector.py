"""Relevance selection — decides which files to fetch for a question.

Three tiers run in order, each only when the previous ones came up short:

1. repository-scoped code search with the raw question,
2. conventional project files (READMEs, manifests, entry points),
3. structural scoring over the full tree.

The order in which files are appended and the tag each carries are part
of the observable contract.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Sequence

from repo_qa.domain.entities import EvidenceFile, FileContent, RepositoryContext, TreeEntry
from repo_qa.domain.exceptions import GitHubError, NotFoundError
from repo_qa.domain.ports.evidence_source import EvidenceSource
from repo_qa.domain.value_objects import RepositoryIdentity

logger = logging.getLogger(__name__)

# ── Budgets ─────────────────────────────────────────────────────────────────

SEARCH_LIMIT = 5
FALLBACK_LIMIT = 3
ENRICHMENT_THRESHOLD = 3
ENRICHMENT_LIMIT = 5

CONVENTIONAL_FILES: tuple[str, ...] = (
    "README.md",
    "README.rst",
    "README.txt",
    "package.json",
    "requirements.txt",
    "Cargo.toml",
    "go.mod",
    "pom.xml",
    "src/index.js",
    "src/index.ts",
    "src/main.js",
    "src/main.ts",
    "app.js",
    "app.ts",
    "main.py",
    "main.go",
    "main.rs",
    "index.html",
    "Dockerfile",
    "docker-compose.yml",
    ".env.example",
)

TAG_SEARCH = "search match, score {score:g}"
TAG_CONVENTIONAL = "common project file"
TAG_STRUCTURE = "structure analysis, score {score}"

# ── Structural scoring ──────────────────────────────────────────────────────

_SOURCE_EXTENSIONS = frozenset({".js", ".ts", ".py", ".go", ".rs"})
_LARGE_FILE_BYTES = 50_000
_MAX_DEPTH = 4


def query_terms(query: str) -> list[str]:
    """Lowercased whitespace-split terms of *query*."""
    return query.lower().split()


def score_path(entry: TreeEntry, terms: Sequence[str]) -> int:
    """Heuristic relevance of one tree entry for the given query terms."""
    path = entry.path.lower()
    score = 0

    if any(term in path for term in terms):
        score += 10
    if "src/" in path or "lib/" in path:
        score += 5

    name = path.rsplit("/", maxsplit=1)[-1]
    dot = name.rfind(".")
    if dot != -1 and name[dot:] in _SOURCE_EXTENSIONS:
        score += 3

    if "main" in path or "index" in path or "app" in path:
        score += 4
    if "config" in path or "setup" in path:
        score += 2
    if "test" in path or "spec" in path:
        score += 1
    if entry.size is not None and entry.size > _LARGE_FILE_BYTES:
        score -= 2
    if path.count("/") > _MAX_DEPTH:
        score -= 1

    return score


def rank_tree(
    tree: Iterable[TreeEntry], terms: Sequence[str], exclude: set[str]
) -> list[tuple[TreeEntry, int]]:
    """Score every file not in *exclude*; highest first, ties in tree order."""
    scored = [
        (entry, score_path(entry, terms))
        for entry in tree
        if entry.kind == "file" and entry.path not in exclude
    ]
    # sort() is stable, so equal scores keep their tree order.
    scored.sort(key=lambda item: item[1], reverse=True)
    return scored


# ── Fetching ────────────────────────────────────────────────────────────────


async def fetch_files(
    source: EvidenceSource,
    identity: RepositoryIdentity,
    paths: Sequence[str],
    ref: str | None,
    soft_errors: list[str],
    *,
    quiet_not_found: bool = False,
    slots: list[FileContent | None] | None = None,
) -> list[FileContent | None]:
    """Fetch *paths* concurrently; a failed fetch yields ``None`` in its slot.

    One failure never cancels the other fetches.  Failures are recorded in
    *soft_errors* except 404s when *quiet_not_found* is set.  Each result is
    written to *slots* (index-aligned with *paths*) as soon as it arrives,
    so a caller that is cancelled midway still sees the finished fetches.
    """
    results: list[FileContent | None] = [None] * len(paths) if slots is None else slots

    async def _fetch_one(index: int, path: str) -> None:
        try:
            results[index] = await source.get_file_contents(
                identity.owner, identity.name, path, ref
            )
        except NotFoundError:
            if not quiet_not_found:
                soft_errors.append(f"{path}: not found")
            logger.debug("%s not found in %s, skipping", path, identity.full_name)
        except GitHubError as exc:
            soft_errors.append(f"{path}: {exc.message}")
            logger.debug("Failed to fetch %s, skipping", path, exc_info=True)

    await asyncio.gather(*(_fetch_one(i, p) for i, p in enumerate(paths)))
    return results


class HeuristicSelectionStrategy:
    """Default deterministic selection strategy.

    Parameters
    ----------
    source:
        Evidence client used for search, tree and content calls.
    """

    def __init__(self, source: EvidenceSource) -> None:
        self._source = source

    async def select(
        self,
        identity: RepositoryIdentity,
        query: str,
        ref: str,
        context: RepositoryContext,
    ) -> None:
        """Append selected files (and the tree, if fetched) to *context*."""
        start = len(context.files)

        await self.search_tier(identity, query, ref, context)

        if len(context.files) == start:
            await self.conventional_tier(identity, ref, context)

        if len(context.files) - start < ENRICHMENT_THRESHOLD:
            await self.structure_tier(identity, query, ref, context)

        logger.info(
            "Selected %d file(s) for %s", len(context.files) - start, identity.full_name
        )

    async def search_tier(
        self,
        identity: RepositoryIdentity,
        query: str,
        ref: str,
        context: RepositoryContext,
    ) -> None:
        try:
            hits = await self._source.search_code(query, identity.owner, identity.name)
        except GitHubError as exc:
            logger.warning("Code search failed for %s: %s", identity.full_name, exc.message)
            context.soft_errors.append(f"code search: {exc.message}")
            return

        selected = {f.path for f in context.files}
        top = []
        for hit in hits:
            if hit.path in selected:
                continue
            selected.add(hit.path)
            top.append(hit)
            if len(top) == SEARCH_LIMIT:
                break

        await self._fetch_into(
            identity,
            ref,
            context,
            [(h.path, TAG_SEARCH.format(score=h.score)) for h in top],
        )

    async def conventional_tier(
        self,
        identity: RepositoryIdentity,
        ref: str,
        context: RepositoryContext,
    ) -> None:
        selected = {f.path for f in context.files}
        candidates = [p for p in CONVENTIONAL_FILES if p not in selected]
        found = 0

        # Windows of (limit - found) keep list order and never overshoot the cap.
        while candidates and found < FALLBACK_LIMIT:
            window, candidates = (
                candidates[: FALLBACK_LIMIT - found],
                candidates[FALLBACK_LIMIT - found :],
            )
            found += await self._fetch_into(
                identity,
                ref,
                context,
                [(path, TAG_CONVENTIONAL) for path in window],
                quiet_not_found=True,
            )

    async def structure_tier(
        self,
        identity: RepositoryIdentity,
        query: str,
        ref: str,
        context: RepositoryContext,
    ) -> None:
        try:
            tree = await self._source.get_tree(identity.owner, identity.name, ref)
        except GitHubError as exc:
            logger.warning("Tree fetch failed for %s: %s", identity.full_name, exc.message)
            context.soft_errors.append(f"tree: {exc.message}")
            return

        context.tree = tree
        ranked = rank_tree(tree, query_terms(query), {f.path for f in context.files})
        top = ranked[:ENRICHMENT_LIMIT]

        await self._fetch_into(
            identity,
            ref,
            context,
            [(entry.path, TAG_STRUCTURE.format(score=score)) for entry, score in top],
        )

    async def _fetch_into(
        self,
        identity: RepositoryIdentity,
        ref: str,
        context: RepositoryContext,
        candidates: Sequence[tuple[str, str]],
        *,
        quiet_not_found: bool = False,
    ) -> int:
        """Fetch ``(path, tag)`` candidates and append the successes in order.

        Finished fetches are appended even when this task is cancelled at
        the evidence deadline.  Returns the number of files appended.
        """
        slots: list[FileContent | None] = [None] * len(candidates)
        try:
            await fetch_files(
                self._source,
                identity,
                [path for path, _ in candidates],
                ref,
                context.soft_errors,
                quiet_not_found=quiet_not_found,
                slots=slots,
            )
        finally:
            for (path, tag), content in zip(candidates, slots):
                if content is not None:
                    context.files.append(
                        EvidenceFile(path=path, content=content.content, relevance_tag=tag)
                    )
        return sum(1 for content in slots if content is not None)
