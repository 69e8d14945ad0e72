"""LLM client abstraction with Anthropic and OpenAI backends."""

from __future__ import annotations

import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from city_assistant.config import AnthropicConfig, OpenAIConfig
from city_assistant.log import get_logger

logger = get_logger(__name__)


class AIConfigurationError(RuntimeError):
    """The selected backend cannot be used, usually because its API key is missing."""


def _resolve_api_key(configured: str, env_var: str) -> str:
    """Configured key, else the environment. An uninterpolated ${VAR} counts as unset."""
    if configured and not configured.startswith("${"):
        return configured
    return os.environ.get(env_var, "")


@dataclass
class AIResponse:
    """Unified response from any LLM backend."""

    text: str
    input_tokens: int = 0
    output_tokens: int = 0
    model: str = ""
    raw: Any = None  # Backend-specific raw response


class LLMClient(ABC):
    """Abstract base class for text-completion backends."""

    @property
    @abstractmethod
    def model_name(self) -> str:
        ...

    @abstractmethod
    async def chat(
        self,
        system: str,
        messages: list[dict[str, str]],
        model: str = "",
        max_tokens: int = 1000,
        temperature: float = 0.7,
    ) -> AIResponse:
        """Send a conversation and return the completion.

        *messages* holds the prior turns followed by the new user message;
        *system* is sent separately as the system prompt.
        """
        ...


class AnthropicClient(LLMClient):
    """Anthropic API backend using the official SDK."""

    def __init__(self, config: AnthropicConfig | None, model: str):
        self._config = config or AnthropicConfig()
        self._model = model
        self._client: Any = None

    @property
    def model_name(self) -> str:
        return self._model

    def _get_client(self) -> Any:
        if self._client is None:
            api_key = _resolve_api_key(self._config.api_key, "ANTHROPIC_API_KEY")
            if not api_key:
                raise AIConfigurationError("Anthropic API key is not configured")
            import anthropic

            self._client = anthropic.AsyncAnthropic(
                api_key=api_key,
                base_url=self._config.base_url,
                max_retries=self._config.max_retries,
                timeout=self._config.timeout,
            )
        return self._client

    async def chat(
        self,
        system: str,
        messages: list[dict[str, str]],
        model: str = "",
        max_tokens: int = 1000,
        temperature: float = 0.7,
    ) -> AIResponse:
        client = self._get_client()
        model = model or self._model

        logger.debug("api_request", backend="anthropic", model=model, message_count=len(messages))
        response = await client.messages.create(
            model=model,
            max_tokens=max_tokens,
            system=system,
            messages=messages,
            temperature=temperature,
        )
        text = "".join(block.text for block in response.content if block.type == "text")
        logger.debug(
            "api_response",
            backend="anthropic",
            model=model,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            stop_reason=response.stop_reason,
        )
        return AIResponse(
            text=text,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            model=model,
            raw=response,
        )


class OpenAIClient(LLMClient):
    """OpenAI chat-completions backend."""

    def __init__(self, config: OpenAIConfig | None, model: str):
        self._config = config or OpenAIConfig()
        self._model = model
        self._client: Any = None

    @property
    def model_name(self) -> str:
        return self._model

    def _get_client(self) -> Any:
        if self._client is None:
            api_key = _resolve_api_key(self._config.api_key, "OPENAI_API_KEY")
            if not api_key:
                raise AIConfigurationError("OpenAI API key is not configured")
            from openai import AsyncOpenAI

            self._client = AsyncOpenAI(
                api_key=api_key,
                base_url=self._config.base_url,
                max_retries=self._config.max_retries,
                timeout=self._config.timeout,
            )
        return self._client

    async def chat(
        self,
        system: str,
        messages: list[dict[str, str]],
        model: str = "",
        max_tokens: int = 1000,
        temperature: float = 0.7,
    ) -> AIResponse:
        client = self._get_client()
        model = model or self._model

        logger.debug("api_request", backend="openai", model=model, message_count=len(messages))
        completion = await client.chat.completions.create(
            model=model,
            messages=[{"role": "system", "content": system}, *messages],
            temperature=temperature,
            max_tokens=max_tokens,
        )
        text = ""
        if completion.choices:
            text = completion.choices[0].message.content or ""
        usage = completion.usage
        return AIResponse(
            text=text,
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
            model=model,
            raw=completion,
        )


class FallbackClient(LLMClient):
    """Tries the primary backend, then the secondary once if the primary fails."""

    def __init__(self, primary: LLMClient, secondary: LLMClient):
        self._primary = primary
        self._secondary = secondary

    @property
    def model_name(self) -> str:
        return self._primary.model_name

    async def chat(
        self,
        system: str,
        messages: list[dict[str, str]],
        model: str = "",
        max_tokens: int = 1000,
        temperature: float = 0.7,
    ) -> AIResponse:
        try:
            return await self._primary.chat(system, messages, model, max_tokens, temperature)
        except Exception as e:
            logger.warning(
                "llm_primary_failed",
                model=self._primary.model_name,
                fallback_model=self._secondary.model_name,
                error=str(e),
            )
            primary_error = e

        try:
            response = await self._secondary.chat(system, messages, "", max_tokens, temperature)
        except AIConfigurationError:
            # Nothing usable is configured; report the primary's failure
            raise primary_error
        logger.info("llm_fallback_used", model=self._secondary.model_name)
        return response


def create_llm_client(
    backend: str,
    model: str,
    anthropic_config: AnthropicConfig | None = None,
    openai_config: OpenAIConfig | None = None,
) -> LLMClient:
    match backend:
        case "anthropic":
            return AnthropicClient(anthropic_config, model)
        case "openai":
            return OpenAIClient(openai_config, model)
        case _:
            raise ValueError(f"Unknown LLM backend: {backend}")
