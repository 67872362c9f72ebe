"""OpenAI adapter — implements the LlmGateway port.

Also serves OpenRouter, which speaks the same chat-completions protocol
behind a different base URL.
"""

from __future__ import annotations

import logging

from openai import (
    APIConnectionError,
    APIError,
    AsyncOpenAI,
    AuthenticationError,
    PermissionDeniedError,
)

from repo_qa.domain.exceptions import LlmAuthError, LlmError, LlmNetworkError
from repo_qa.domain.ports.llm_gateway import TokenSink

logger = logging.getLogger(__name__)

TEMPERATURE = 0.1


class OpenAIAdapter:
    """Concrete ``LlmGateway`` backed by an OpenAI-compatible chat-completions API."""

    def __init__(
        self,
        api_key: str,
        model: str,
        *,
        base_url: str | None = None,
        provider_name: str = "OpenAI",
        timeout: float = 120.0,
    ) -> None:
        self._client = AsyncOpenAI(
            api_key=api_key, base_url=base_url, max_retries=0, timeout=timeout
        )
        self._model = model
        self._provider_name = provider_name

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        on_token: TokenSink | None = None,
    ) -> str:
        """Send a system + user prompt and return the completion text."""
        messages = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ]
        try:
            if on_token is None:
                response = await self._client.chat.completions.create(
                    model=self._model,
                    messages=messages,  # type: ignore[arg-type]
                    temperature=TEMPERATURE,
                )
                content = response.choices[0].message.content if response.choices else None
            else:
                stream = await self._client.chat.completions.create(
                    model=self._model,
                    messages=messages,  # type: ignore[arg-type]
                    temperature=TEMPERATURE,
                    stream=True,
                )
                parts: list[str] = []
                async for chunk in stream:
                    if not chunk.choices:
                        continue
                    delta = chunk.choices[0].delta.content
                    if delta:
                        parts.append(delta)
                        on_token(delta)
                content = "".join(parts)

        except (AuthenticationError, PermissionDeniedError) as exc:
            raise LlmAuthError(
                f"{self._provider_name} rejected the API key. "
                "Please check your AI provider configuration."
            ) from exc

        except APIConnectionError as exc:
            raise LlmNetworkError(f"Could not reach {self._provider_name}: {exc}") from exc

        except APIError as exc:
            logger.error("%s API error: %s", self._provider_name, exc)
            raise LlmError(f"LLM provider error: {exc}") from exc

        if not content:
            raise LlmError("LLM returned an empty response.")
        return content

    async def list_models(self) -> list[str]:
        """Return model ids visible to the key (GPT models only for OpenAI proper)."""
        try:
            ids = [model.id async for model in self._client.models.list()]
        except (AuthenticationError, PermissionDeniedError) as exc:
            raise LlmAuthError(f"{self._provider_name} rejected the API key.") from exc
        except APIConnectionError as exc:
            raise LlmNetworkError(f"Could not reach {self._provider_name}: {exc}") from exc
        except APIError as exc:
            raise LlmError(f"LLM provider error: {exc}") from exc

        if self._provider_name == "OpenAI":
            ids = [i for i in ids if "gpt" in i]
        return sorted(ids)

    async def close(self) -> None:
        """Release underlying HTTP resources."""
        await self._client.close()
