"""Port: LLM gateway — defined by the domain, implemented by infrastructure."""

from __future__ import annotations

from typing import Callable, Protocol

TokenSink = Callable[[str], None]


class LlmGateway(Protocol):
    """Abstract contract for interacting with a large-language model."""

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        on_token: TokenSink | None = None,
    ) -> str:
        """Send a system + user prompt pair and return the full answer text.

        When *on_token* is given the answer is streamed and the sink is
        called with every text delta as it arrives.
        """
        ...

    async def close(self) -> None:
        ...
