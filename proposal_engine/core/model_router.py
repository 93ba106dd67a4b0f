"""Multi-provider model router with cross-provider fallback.

Routes a task to Claude, Gemini or OpenAI based on task type, and falls back
across providers when the chosen one is unconfigured or fails:

- select_model(): static task-type table (deterministic tasks get low temperature)
- route(): call the chosen provider; on any failure walk the fallback order
- fallback: each remaining configured provider is tried once, first success wins

A provider with no credentials counts as unavailable, not as an error. The
only failure surfaced to callers is AllProvidersFailedError.
"""

import asyncio
import time
from abc import ABC, abstractmethod
from typing import Any, Mapping, Sequence

import httpx
from anthropic import APIError as AnthropicAPIError
from anthropic import AsyncAnthropic
from openai import AsyncOpenAI, OpenAIError

from proposal_engine.core.config import Settings, get_settings
from proposal_engine.core.logging import get_logger
from proposal_engine.core.schemas_models import (
    ModelConfig,
    ModelProvider,
    ModelResponse,
    ModelTask,
)

logger = get_logger(__name__)

DEFAULT_TEMPERATURE = 0.5

# task type -> (preferred provider, temperature)
TASK_ROUTING: dict[str, tuple[ModelProvider, float]] = {
    "math": (ModelProvider.GEMINI, 0.1),
    "extraction": (ModelProvider.GEMINI, 0.1),
    "compliance": (ModelProvider.CLAUDE, 0.3),
    "analysis": (ModelProvider.CLAUDE, 0.3),
    "writing": (ModelProvider.CLAUDE, 0.7),
}


# =============================================================================
# Errors
# =============================================================================


class ModelRouterError(Exception):
    """Base class for model routing failures."""


class ProviderNotConfiguredError(ModelRouterError):
    """Raised when a provider has no credentials."""

    def __init__(self, provider: ModelProvider):
        super().__init__(f"{provider.value} not configured")
        self.provider = provider


class ProviderCallError(ModelRouterError):
    """Raised when a configured provider call fails (network, status, or body)."""

    def __init__(self, provider: ModelProvider, message: str):
        super().__init__(f"{provider.value}: {message}")
        self.provider = provider


class AllProvidersFailedError(ModelRouterError):
    """Raised when the chosen provider and every fallback failed or were unconfigured."""

    def __init__(self, failures: list[str] | None = None):
        self.failures = failures or []
        detail = f" ({'; '.join(self.failures)})" if self.failures else ""
        super().__init__(f"All model providers failed{detail}")


# =============================================================================
# Provider adapters
# =============================================================================


class BaseProvider(ABC):
    """Adapter contract: turn a ModelTask into raw text from one provider."""

    provider: ModelProvider

    def __init__(self, default_model: str, max_tokens: int = 4096):
        self.default_model = default_model
        self.max_tokens = max_tokens

    @property
    @abstractmethod
    def is_configured(self) -> bool:
        """Whether credentials for this provider are present."""

    @abstractmethod
    async def call(self, task: ModelTask, config: ModelConfig) -> str:
        """Generate text for ``task``.

        Raises:
            ProviderNotConfiguredError: If credentials are missing
            ProviderCallError: On network errors, bad status, or malformed body
        """

    def _require_configured(self) -> None:
        if not self.is_configured:
            raise ProviderNotConfiguredError(self.provider)


class ClaudeProvider(BaseProvider):
    """Anthropic Messages API via AsyncAnthropic."""

    provider = ModelProvider.CLAUDE

    def __init__(
        self,
        api_key: str | None,
        default_model: str,
        max_tokens: int = 4096,
        client: Any | None = None,
    ):
        super().__init__(default_model, max_tokens)
        self._api_key = api_key
        self._client = client

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key) or self._client is not None

    def _get_client(self) -> Any:
        if self._client is None:
            self._client = AsyncAnthropic(api_key=self._api_key)
        return self._client

    async def call(self, task: ModelTask, config: ModelConfig) -> str:
        self._require_configured()

        kwargs: dict[str, Any] = {
            "model": config.model,
            "max_tokens": config.max_tokens or self.max_tokens,
            "temperature": config.temperature,
            "messages": [{"role": "user", "content": task.user_content()}],
        }
        if task.system_prompt:
            kwargs["system"] = task.system_prompt

        try:
            response = await self._get_client().messages.create(**kwargs)
        except AnthropicAPIError as e:
            raise ProviderCallError(self.provider, str(e)) from e

        for block in response.content or []:
            if getattr(block, "type", None) == "text":
                return block.text

        raise ProviderCallError(self.provider, "response contained no text block")


class GeminiProvider(BaseProvider):
    """Gemini generateContent REST endpoint via httpx."""

    provider = ModelProvider.GEMINI

    def __init__(
        self,
        api_key: str | None,
        default_model: str,
        base_url: str = "https://generativelanguage.googleapis.com",
        max_tokens: int = 4096,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(default_model, max_tokens)
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._transport = transport

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key)

    def _build_prompt(self, task: ModelTask) -> str:
        # generateContent has no separate system slot in this payload shape
        parts = [task.system_prompt, task.context, task.prompt]
        return "\n\n".join(p for p in parts if p)

    async def call(self, task: ModelTask, config: ModelConfig) -> str:
        self._require_configured()

        url = f"{self._base_url}/v1beta/models/{config.model}:generateContent"
        body = {
            "contents": [{"parts": [{"text": self._build_prompt(task)}]}],
            "generationConfig": {
                "temperature": config.temperature,
                "maxOutputTokens": config.max_tokens or self.max_tokens,
            },
        }

        try:
            async with httpx.AsyncClient(transport=self._transport) as client:
                response = await client.post(
                    url,
                    headers={"Content-Type": "application/json", "x-goog-api-key": self._api_key},
                    json=body,
                )
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as e:
            raise ProviderCallError(self.provider, f"HTTP {e.response.status_code}") from e
        except (httpx.HTTPError, ValueError) as e:
            raise ProviderCallError(self.provider, str(e)) from e

        try:
            text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError) as e:
            raise ProviderCallError(self.provider, "malformed response body") from e

        if not isinstance(text, str):
            raise ProviderCallError(self.provider, "malformed response body")
        return text


class OpenAIProvider(BaseProvider):
    """OpenAI Chat Completions via AsyncOpenAI."""

    provider = ModelProvider.OPENAI

    def __init__(
        self,
        api_key: str | None,
        default_model: str,
        base_url: str | None = None,
        max_tokens: int = 4096,
        client: Any | None = None,
    ):
        super().__init__(default_model, max_tokens)
        self._api_key = api_key
        self._base_url = base_url
        self._client = client

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key) or self._client is not None

    def _get_client(self) -> Any:
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self._api_key, base_url=self._base_url)
        return self._client

    async def call(self, task: ModelTask, config: ModelConfig) -> str:
        self._require_configured()

        messages: list[dict[str, str]] = []
        if task.system_prompt:
            messages.append({"role": "system", "content": task.system_prompt})
        messages.append({"role": "user", "content": task.user_content()})

        try:
            response = await self._get_client().chat.completions.create(
                model=config.model,
                messages=messages,
                temperature=config.temperature,
                max_tokens=config.max_tokens or self.max_tokens,
            )
        except OpenAIError as e:
            raise ProviderCallError(self.provider, str(e)) from e

        try:
            content = response.choices[0].message.content
        except (AttributeError, IndexError) as e:
            raise ProviderCallError(self.provider, "malformed response body") from e

        if content is None:
            raise ProviderCallError(self.provider, "response contained no content")
        return content


def build_default_providers(settings: Settings) -> dict[ModelProvider, BaseProvider]:
    """
    Build one adapter per provider from settings.

    Adapters are always built; missing keys just leave them unconfigured.
    """
    return {
        ModelProvider.CLAUDE: ClaudeProvider(
            api_key=settings.ANTHROPIC_API_KEY,
            default_model=settings.CLAUDE_MODEL,
            max_tokens=settings.MODEL_MAX_TOKENS,
        ),
        ModelProvider.GEMINI: GeminiProvider(
            api_key=settings.GEMINI_API_KEY,
            default_model=settings.GEMINI_MODEL,
            base_url=settings.GEMINI_BASE_URL,
            max_tokens=settings.MODEL_MAX_TOKENS,
        ),
        ModelProvider.OPENAI: OpenAIProvider(
            api_key=settings.OPENAI_API_KEY,
            default_model=settings.OPENAI_MODEL,
            base_url=settings.OPENAI_BASE_URL,
            max_tokens=settings.MODEL_MAX_TOKENS,
        ),
    }


def _normalize_order(order: Sequence[ModelProvider | str]) -> list[ModelProvider]:
    normalized: list[ModelProvider] = []
    for item in order:
        provider = ModelProvider(item)
        if provider not in normalized:
            normalized.append(provider)
    # Providers missing from the configured order go last, in enum order
    for provider in ModelProvider:
        if provider not in normalized:
            normalized.append(provider)
    return normalized


# =============================================================================
# Router
# =============================================================================


class ModelRouter:
    """Selects and invokes one of several providers, with fallback."""

    def __init__(
        self,
        providers: Mapping[ModelProvider, BaseProvider] | None = None,
        fallback_order: Sequence[ModelProvider | str] | None = None,
        call_timeout: float | None = None,
        settings: Settings | None = None,
    ):
        """
        Args:
            providers: Adapter per provider (defaults to adapters built from settings)
            fallback_order: Provider preference order (defaults to MODEL_FALLBACK_ORDER)
            call_timeout: Seconds per provider call (defaults to MODEL_CALL_TIMEOUT)
            settings: Settings override
        """
        settings = settings or get_settings()
        self._providers: dict[ModelProvider, BaseProvider] = dict(
            providers if providers is not None else build_default_providers(settings)
        )
        self._fallback_order = _normalize_order(
            fallback_order if fallback_order is not None else settings.MODEL_FALLBACK_ORDER
        )
        self._call_timeout = call_timeout if call_timeout is not None else settings.MODEL_CALL_TIMEOUT

    @property
    def fallback_order(self) -> list[ModelProvider]:
        return list(self._fallback_order)

    def _is_configured(self, provider: ModelProvider) -> bool:
        adapter = self._providers.get(provider)
        return adapter is not None and adapter.is_configured

    def _model_for(self, provider: ModelProvider) -> str:
        adapter = self._providers.get(provider)
        return adapter.default_model if adapter is not None else ""

    def get_available_providers(self) -> list[ModelProvider]:
        """Providers that currently have credentials, in preference order."""
        return [p for p in self._fallback_order if self._is_configured(p)]

    def select_model(self, task_type: str) -> ModelConfig:
        """
        Pick provider, model and temperature for a task type.

        Args:
            task_type: Semantic task type (math, extraction, analysis, ...)

        Returns:
            ModelConfig for the preferred provider
        """
        if task_type in TASK_ROUTING:
            provider, temperature = TASK_ROUTING[task_type]
        else:
            available = self.get_available_providers()
            provider = available[0] if available else self._fallback_order[0]
            temperature = DEFAULT_TEMPERATURE

        return ModelConfig(provider=provider, model=self._model_for(provider), temperature=temperature)

    async def _invoke(self, task: ModelTask, config: ModelConfig) -> str:
        if not self._is_configured(config.provider):
            raise ProviderNotConfiguredError(config.provider)
        adapter = self._providers[config.provider]
        return await asyncio.wait_for(adapter.call(task, config), timeout=self._call_timeout)

    async def route(
        self,
        task: ModelTask,
        preferred_provider: ModelProvider | str | None = None,
    ) -> ModelResponse:
        """
        Run a task on the best provider, falling back on failure.

        Args:
            task: Prompt, optional system prompt and context
            preferred_provider: Explicit provider; overrides the task-type table

        Returns:
            ModelResponse with content and the provider/model that served it

        Raises:
            AllProvidersFailedError: If every provider failed or is unconfigured
        """
        if preferred_provider is not None:
            provider = ModelProvider(preferred_provider)
            config = ModelConfig(
                provider=provider,
                model=self._model_for(provider),
                temperature=DEFAULT_TEMPERATURE,
            )
        else:
            config = self.select_model(task.type)

        start_time = time.perf_counter()

        try:
            content = await self._invoke(task, config)
        except Exception as e:
            failure = _describe_failure(config.provider, e)
            logger.warning(f"[ModelRouter] {failure}; trying fallback")
            return await self._try_fallback(task, config, start_time, [failure])

        return ModelResponse(
            content=content,
            model=config.model,
            provider=config.provider,
            latency_ms=_elapsed_ms(start_time),
        )

    async def _try_fallback(
        self,
        task: ModelTask,
        failed_config: ModelConfig,
        start_time: float,
        failures: list[str],
    ) -> ModelResponse:
        for provider in self._fallback_order:
            if provider == failed_config.provider:
                continue
            if not self._is_configured(provider):
                continue

            config = ModelConfig(
                provider=provider,
                model=self._model_for(provider),
                temperature=failed_config.temperature,
                max_tokens=failed_config.max_tokens,
            )
            try:
                content = await self._invoke(task, config)
            except Exception as e:
                failure = _describe_failure(provider, e)
                logger.warning(f"[ModelRouter] Fallback {failure}")
                failures.append(failure)
                continue

            logger.info(
                f"[ModelRouter] Served by fallback {provider.value} "
                f"after {failed_config.provider.value} failed"
            )
            return ModelResponse(
                content=content,
                model=config.model,
                provider=provider,
                latency_ms=_elapsed_ms(start_time),
                fallback_used=True,
            )

        logger.error(f"[ModelRouter] All providers failed: {failures}")
        raise AllProvidersFailedError(failures)


def _elapsed_ms(start_time: float) -> float:
    return round((time.perf_counter() - start_time) * 1000, 2)


def _describe_failure(provider: ModelProvider, error: Exception) -> str:
    if isinstance(error, asyncio.TimeoutError):
        return f"{provider.value}: timed out"
    if isinstance(error, ModelRouterError):
        return str(error)
    return f"{provider.value}: {error}"
