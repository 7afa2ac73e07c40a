"""Streaming model client abstraction with OpenAI-compatible and Anthropic backends."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, AsyncIterator

from turnstream.config import ModelConfig
from turnstream.errors import ConfigError
from turnstream.log import get_logger

logger = get_logger(__name__)


class AIClient(ABC):
    """Abstract base class for model backends."""

    def __init__(self, config: ModelConfig):
        self._config = config

    @property
    def model_name(self) -> str:
        return self._config.model

    @abstractmethod
    def stream(self, system: str, messages: list[dict[str, Any]]) -> AsyncIterator[str]:
        """Send a conversation and yield response text increments as they arrive.

        When the backend is configured with streaming disabled the whole
        response is yielded as a single increment.
        """
        ...

    async def complete(self, system: str, messages: list[dict[str, Any]]) -> str:
        """Collect a full response."""
        parts = [chunk async for chunk in self.stream(system, messages)]
        return "".join(parts)

    async def close(self) -> None:
        return None


class OpenAIClient(AIClient):
    """OpenAI chat completions backend; also covers OpenAI-compatible gateways via base_url."""

    def __init__(self, config: ModelConfig):
        super().__init__(config)
        from openai import AsyncOpenAI

        if not config.api_key:
            raise ConfigError("openai backend requires model.api_key or OPENAI_API_KEY")
        self._client = AsyncOpenAI(
            api_key=config.api_key,
            base_url=config.base_url,
            max_retries=config.max_retries,
            timeout=config.timeout,
        )

    async def stream(self, system: str, messages: list[dict[str, Any]]) -> AsyncIterator[str]:
        payload: dict[str, Any] = {
            "model": self._config.model,
            "messages": [{"role": "system", "content": system}, *messages],
            "temperature": self._config.temperature,
            "max_tokens": self._config.max_tokens,
        }
        logger.debug("api_request", model=self._config.model, message_count=len(messages))

        if not self._config.streaming:
            completion = await self._client.chat.completions.create(**payload)
            text = (completion.choices[0].message.content or "") if completion.choices else ""
            if text:
                yield text
            return

        response = await self._client.chat.completions.create(**payload, stream=True)
        async for chunk in response:
            if not chunk.choices:
                continue
            delta = chunk.choices[0].delta.content
            if delta:
                yield delta

    async def close(self) -> None:
        await self._client.close()


class AnthropicClient(AIClient):
    """Anthropic Messages API backend using the official SDK."""

    def __init__(self, config: ModelConfig):
        super().__init__(config)
        import anthropic

        if not config.api_key:
            raise ConfigError("anthropic backend requires model.api_key or ANTHROPIC_API_KEY")
        self._client = anthropic.AsyncAnthropic(
            api_key=config.api_key,
            base_url=config.base_url,
            max_retries=config.max_retries,
            timeout=config.timeout,
        )

    @staticmethod
    def _split_system(system: str, messages: list[dict[str, Any]]) -> tuple[str, list[dict[str, Any]]]:
        """Move system-role history entries into the system prompt; the Messages API rejects them."""
        extra = [m["content"] for m in messages if m["role"] == "system"]
        rest = [m for m in messages if m["role"] != "system"]
        if extra:
            system = "\n\n".join([system, *extra])
        return system, rest

    async def stream(self, system: str, messages: list[dict[str, Any]]) -> AsyncIterator[str]:
        system, messages = self._split_system(system, messages)
        kwargs: dict[str, Any] = {
            "model": self._config.model,
            "max_tokens": self._config.max_tokens,
            "system": system,
            "messages": messages,
            "temperature": self._config.temperature,
        }
        logger.debug("api_request", model=self._config.model, message_count=len(messages))

        if not self._config.streaming:
            response = await self._client.messages.create(**kwargs)
            logger.debug(
                "api_response",
                model=self._config.model,
                input_tokens=response.usage.input_tokens,
                output_tokens=response.usage.output_tokens,
                stop_reason=response.stop_reason,
            )
            text = "".join(b.text for b in response.content if b.type == "text")
            if text:
                yield text
            return

        async with self._client.messages.stream(**kwargs) as stream:
            async for text in stream.text_stream:
                yield text

    async def close(self) -> None:
        await self._client.close()


def create_ai_client(config: ModelConfig) -> AIClient:
    """Create a model client based on the configured backend."""
    match config.backend:
        case "openai":
            return OpenAIClient(config)
        case "anthropic":
            return AnthropicClient(config)
        case _:
            raise ConfigError(f"Unknown model backend: {config.backend}")
