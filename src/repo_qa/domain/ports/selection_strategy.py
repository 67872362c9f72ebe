"""Port: evidence selection strategy."""

from __future__ import annotations

from typing import Protocol

from repo_qa.domain.entities import RepositoryContext
from repo_qa.domain.value_objects import RepositoryIdentity


class SelectionStrategy(Protocol):
    """Decides which evidence to gather for a question.

    Implementations append to *context* as results arrive.  A caller that
    abandons the task at a deadline keeps whatever was appended.
    """

    async def select(
        self,
        identity: RepositoryIdentity,
        query: str,
        ref: str,
        context: RepositoryContext,
    ) -> None:
        ...
