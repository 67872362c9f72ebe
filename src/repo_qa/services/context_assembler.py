"""Context assembler — gathers README and selected evidence into one context.

Performs no truncation; bounding the prompt is the synthesizer's job.
"""

from __future__ import annotations

import asyncio
import logging

from repo_qa.domain.entities import RepositoryContext
from repo_qa.domain.exceptions import GitHubError, NotFoundError
from repo_qa.domain.ports.evidence_source import EvidenceSource
from repo_qa.domain.ports.selection_strategy import SelectionStrategy
from repo_qa.domain.value_objects import RepositoryIdentity

logger = logging.getLogger(__name__)

TIMEOUT_NOTE = "evidence gathering timed out"


class ContextAssembler:
    """Runs the README fetch and the selection strategy side by side."""

    def __init__(self, source: EvidenceSource, strategy: SelectionStrategy) -> None:
        self._source = source
        self._strategy = strategy

    async def assemble(
        self,
        identity: RepositoryIdentity,
        query: str,
        ref: str,
        *,
        timeout: float | None = None,
    ) -> RepositoryContext:
        """Return whatever evidence could be gathered, within *timeout* seconds.

        On timeout the unfinished fetches are cancelled and the evidence
        collected so far is returned as is.
        """
        context = RepositoryContext()
        gathering = asyncio.gather(
            self._attach_readme(identity, ref, context),
            self._strategy.select(identity, query, ref, context),
        )

        try:
            await asyncio.wait_for(gathering, timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "Evidence gathering for %s exceeded %.1fs; continuing with %d file(s)",
                identity.full_name,
                timeout,
                len(context.files),
            )
            context.soft_errors.append(TIMEOUT_NOTE)

        if context.soft_errors:
            logger.debug("Soft evidence failures for %s: %s", identity.full_name, context.soft_errors)
        return context

    async def _attach_readme(
        self, identity: RepositoryIdentity, ref: str, context: RepositoryContext
    ) -> None:
        try:
            readme = await self._source.get_readme(identity.owner, identity.name, ref)
        except NotFoundError:
            logger.debug("%s has no README", identity.full_name)
            return
        except GitHubError as exc:
            context.soft_errors.append(f"README: {exc.message}")
            return
        context.readme = readme.content
        context.readme_path = readme.path
