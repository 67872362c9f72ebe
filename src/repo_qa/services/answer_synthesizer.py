"""Answer synthesis — prompt construction, LLM call and response shaping.

The prompt builders and the source / code-reference helpers are plain
functions so they can be tested without a model.
"""

from __future__ import annotations

import json
import logging

from repo_qa.domain.entities import (
    CodeReference,
    QueryOutcome,
    RepositoryContext,
    TreeEntry,
)
from repo_qa.domain.ports.llm_gateway import LlmGateway, TokenSink
from repo_qa.domain.value_objects import RepositoryIdentity

logger = logging.getLogger(__name__)

# ── Limits ──────────────────────────────────────────────────────────────────

CODE_REFERENCE_MAX_LINES = 100
FILE_EXCERPT_CHARS = 2_000
MAX_TREE_ENTRIES = 500
TRUNCATION_MARKER = "\n... [truncated]"

# ── Prompt templates ────────────────────────────────────────────────────────

BASE_PROMPT = """\
You are an expert software developer and code analyst. You help users \
understand GitHub repositories by analyzing their code, structure, and \
documentation.

You are analyzing the repository "{full_name}"."""

EVIDENCE_INSTRUCTIONS = """\
When referencing code or files:
1. Always mention the specific file path, and line numbers where you can
2. Include relevant code snippets when helpful
3. Explain the context and purpose of the code
4. Provide architectural insights when appropriate
5. If the data is incomplete, say what you can determine and what else would help

Format your response in a clear, structured way. Use markdown formatting \
for code blocks and file references."""

LIMITED_DATA_INSTRUCTIONS = """\
Note: no repository data could be retrieved for this question. You should:
1. Acknowledge the data limitations
2. Reason only from the repository name and common patterns for similar projects
3. Never invent specific file names, file contents or code
4. Suggest specific files or areas the user might want to explore next

Be honest about limitations while still being helpful."""


# ── Prompt construction ─────────────────────────────────────────────────────


def _excerpt(content: str, limit: int) -> str:
    if len(content) <= limit:
        return content
    return content[:limit] + TRUNCATION_MARKER


def _render_tree(tree: list[TreeEntry], max_entries: int) -> str:
    """Serialise tree entries as a JSON array, one entry per line."""
    rows = []
    for entry in tree[:max_entries]:
        row: dict[str, object] = {"path": entry.path, "type": entry.kind}
        if entry.size is not None:
            row["size"] = entry.size
        rows.append(json.dumps(row))
    text = "[\n" + ",\n".join(rows) + "\n]"
    if len(tree) > max_entries:
        text += f"\n... and {len(tree) - max_entries} more entries"
    return text


def _evidence_sections(
    context: RepositoryContext, excerpt_chars: int, max_tree_entries: int
) -> list[str]:
    sections: list[str] = []

    if context.readme:
        sections.append(f"## README\n\n{context.readme}")

    if context.files:
        parts = [
            f"### {f.path} ({f.relevance_tag})\n\n{_excerpt(f.content, excerpt_chars)}"
            for f in context.files
        ]
        sections.append("## Relevant Files\n\n" + "\n\n".join(parts))

    if context.tree:
        sections.append(
            "## Repository Structure\n\n" + _render_tree(context.tree, max_tree_entries)
        )

    if context.commits:
        lines = [
            f"- {c.sha[:7]} {c.message.splitlines()[0] if c.message else ''}"
            f" ({c.author or 'unknown'}, {c.date or 'unknown date'})"
            for c in context.commits
        ]
        sections.append("## Recent Commits\n\n" + "\n".join(lines))

    for detail in context.commit_details:
        changed = "\n".join(
            f"- {f.filename} ({f.status}, +{f.additions}/-{f.deletions})" for f in detail.files
        )
        sections.append(f"## Commit {detail.sha[:7]}\n\n{detail.message}\n\n{changed}")

    if context.pull_request_files:
        parts = []
        for f in context.pull_request_files:
            header = f"### {f.filename} ({f.status}, +{f.additions}/-{f.deletions})"
            parts.append(f"{header}\n\n{_excerpt(f.patch, excerpt_chars)}" if f.patch else header)
        sections.append("## Pull Request Changes\n\n" + "\n\n".join(parts))

    if context.related_repositories:
        lines = [
            f"- {r.full_name}: {r.description or 'no description'}"
            for r in context.related_repositories
        ]
        sections.append("## Related Repositories\n\n" + "\n".join(lines))

    return sections


def build_system_prompt(
    identity: RepositoryIdentity,
    context: RepositoryContext,
    *,
    excerpt_chars: int = FILE_EXCERPT_CHARS,
    max_tree_entries: int = MAX_TREE_ENTRIES,
) -> str:
    """Build the system prompt; falls back to limited-data instructions."""
    prompt = BASE_PROMPT.format(full_name=identity.full_name)

    if not context.has_evidence:
        return f"{prompt}\n\n{LIMITED_DATA_INSTRUCTIONS}"

    sections = _evidence_sections(context, excerpt_chars, max_tree_entries)
    return (
        f"{prompt}\n\nAvailable repository data:\n\n"
        + "\n\n---\n\n".join(sections)
        + f"\n\n---\n\n{EVIDENCE_INSTRUCTIONS}"
    )


def build_user_prompt(identity: RepositoryIdentity, query: str) -> str:
    return f"Question about {identity.full_name}: {query}"


# ── Post-processing ─────────────────────────────────────────────────────────


def build_sources(
    identity: RepositoryIdentity, context: RepositoryContext, ref: str = "main"
) -> list[str]:
    """Repository URL first, then README and file blob URLs, without duplicates."""
    candidates = [identity.html_url]
    if context.readme and context.readme_path:
        candidates.append(identity.blob_url(context.readme_path, ref))
    candidates.extend(identity.blob_url(f.path, ref) for f in context.files)
    # dict keeps first-occurrence order
    return list(dict.fromkeys(candidates))


def build_code_references(
    identity: RepositoryIdentity,
    context: RepositoryContext,
    ref: str = "main",
    max_lines: int = CODE_REFERENCE_MAX_LINES,
) -> list[CodeReference]:
    """One reference per selected file with content, capped at *max_lines*."""
    if max_lines < 1:
        raise ValueError("max_lines must be at least 1")

    references: list[CodeReference] = []
    for f in context.files:
        lines = f.content.splitlines()
        if not lines:
            continue
        end = min(max_lines, len(lines))
        references.append(
            CodeReference(
                file=f.path,
                start_line=1,
                end_line=end,
                content="\n".join(lines[:end]),
                url=identity.blob_url(f.path, ref),
            )
        )
    return references


class AnswerSynthesizer:
    """Turns an assembled context into a :class:`QueryOutcome`.

    Parameters
    ----------
    llm:
        Gateway for the user's configured provider.
    max_lines:
        Line cap of each code reference.
    excerpt_chars:
        Characters of each file shown to the model.
    max_tree_entries:
        Tree entries shown to the model.
    """

    def __init__(
        self,
        llm: LlmGateway,
        *,
        max_lines: int = CODE_REFERENCE_MAX_LINES,
        excerpt_chars: int = FILE_EXCERPT_CHARS,
        max_tree_entries: int = MAX_TREE_ENTRIES,
    ) -> None:
        self._llm = llm
        self._max_lines = max_lines
        self._excerpt_chars = excerpt_chars
        self._max_tree_entries = max_tree_entries

    async def synthesize(
        self,
        identity: RepositoryIdentity,
        query: str,
        context: RepositoryContext,
        ref: str = "main",
        *,
        on_token: TokenSink | None = None,
    ) -> QueryOutcome:
        system_prompt = build_system_prompt(
            identity,
            context,
            excerpt_chars=self._excerpt_chars,
            max_tree_entries=self._max_tree_entries,
        )
        logger.info(
            "Prompting LLM for %s (%d chars of context, %d file(s))",
            identity.full_name,
            len(system_prompt),
            len(context.files),
        )
        answer = await self._llm.complete(
            system_prompt, build_user_prompt(identity, query), on_token=on_token
        )

        return QueryOutcome(
            success=True,
            answer_text=answer,
            sources=build_sources(identity, context, ref),
            code_references=build_code_references(identity, context, ref, self._max_lines),
        )
