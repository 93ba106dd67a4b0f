"""In-memory model provider adapters for router and plugin tests."""

import asyncio

from proposal_engine.core.model_router import BaseProvider, ModelRouter, ProviderCallError
from proposal_engine.core.schemas_models import ModelConfig, ModelProvider, ModelTask


class FakeProvider(BaseProvider):
    """Adapter that returns canned text, raises, or hangs.

    Every call is recorded in ``calls`` as ``(task, config)``.
    """

    def __init__(
        self,
        provider: ModelProvider,
        response: str = "ok",
        configured: bool = True,
        fail_with: Exception | None = None,
        delay: float = 0.0,
        default_model: str | None = None,
    ):
        super().__init__(default_model or f"{provider.value}-test-model")
        self.provider = provider
        self.response = response
        self.configured = configured
        self.fail_with = fail_with
        self.delay = delay
        self.calls: list[tuple[ModelTask, ModelConfig]] = []

    @property
    def is_configured(self) -> bool:
        return self.configured

    async def call(self, task: ModelTask, config: ModelConfig) -> str:
        self._require_configured()
        self.calls.append((task, config))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_with is not None:
            raise self.fail_with
        return self.response


def failing(provider: ModelProvider, message: str = "boom") -> FakeProvider:
    return FakeProvider(provider, fail_with=ProviderCallError(provider, message))


def make_router(
    claude: FakeProvider | None = None,
    gemini: FakeProvider | None = None,
    openai: FakeProvider | None = None,
    fallback_order: list[str] | None = None,
    call_timeout: float = 5.0,
) -> ModelRouter:
    """Router over fake adapters; omitted providers are unconfigured."""
    providers = {
        ModelProvider.CLAUDE: claude or FakeProvider(ModelProvider.CLAUDE, configured=False),
        ModelProvider.GEMINI: gemini or FakeProvider(ModelProvider.GEMINI, configured=False),
        ModelProvider.OPENAI: openai or FakeProvider(ModelProvider.OPENAI, configured=False),
    }
    return ModelRouter(
        providers=providers,
        fallback_order=fallback_order or ["claude", "gemini", "openai"],
        call_timeout=call_timeout,
    )
