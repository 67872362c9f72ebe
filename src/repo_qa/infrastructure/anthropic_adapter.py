"""Anthropic adapter — implements the LlmGateway port."""

from __future__ import annotations

import logging

from anthropic import (
    APIConnectionError,
    APIError,
    AsyncAnthropic,
    AuthenticationError,
    PermissionDeniedError,
)

from repo_qa.domain.exceptions import LlmAuthError, LlmError, LlmNetworkError
from repo_qa.domain.ports.llm_gateway import TokenSink

logger = logging.getLogger(__name__)

TEMPERATURE = 0.1
MAX_TOKENS = 4096


class AnthropicAdapter:
    """Concrete ``LlmGateway`` backed by the Anthropic messages API."""

    def __init__(self, api_key: str, model: str, *, timeout: float = 120.0) -> None:
        self._client = AsyncAnthropic(api_key=api_key, max_retries=0, timeout=timeout)
        self._model = model

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        on_token: TokenSink | None = None,
    ) -> str:
        messages = [{"role": "user", "content": user_prompt}]
        try:
            if on_token is None:
                response = await self._client.messages.create(
                    model=self._model,
                    system=system_prompt,
                    messages=messages,  # type: ignore[arg-type]
                    temperature=TEMPERATURE,
                    max_tokens=MAX_TOKENS,
                )
                content = "".join(
                    block.text for block in response.content if getattr(block, "type", None) == "text"
                )
            else:
                parts: list[str] = []
                async with self._client.messages.stream(
                    model=self._model,
                    system=system_prompt,
                    messages=messages,  # type: ignore[arg-type]
                    temperature=TEMPERATURE,
                    max_tokens=MAX_TOKENS,
                ) as stream:
                    async for text in stream.text_stream:
                        parts.append(text)
                        on_token(text)
                content = "".join(parts)

        except (AuthenticationError, PermissionDeniedError) as exc:
            raise LlmAuthError(
                "Anthropic rejected the API key. Please check your AI provider configuration."
            ) from exc

        except APIConnectionError as exc:
            raise LlmNetworkError(f"Could not reach Anthropic: {exc}") from exc

        except APIError as exc:
            logger.error("Anthropic API error: %s", exc)
            raise LlmError(f"LLM provider error: {exc}") from exc

        if not content:
            raise LlmError("LLM returned an empty response.")
        return content

    async def list_models(self) -> list[str]:
        try:
            return [model.id async for model in self._client.models.list()]
        except (AuthenticationError, PermissionDeniedError) as exc:
            raise LlmAuthError("Anthropic rejected the API key.") from exc
        except APIConnectionError as exc:
            raise LlmNetworkError(f"Could not reach Anthropic: {exc}") from exc
        except APIError as exc:
            raise LlmError(f"LLM provider error: {exc}") from exc

    async def close(self) -> None:
        await self._client.close()
