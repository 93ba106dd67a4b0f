"""Pydantic schemas for model routing."""

from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field

TaskTypeLiteral = Literal["analysis", "writing", "math", "compliance", "extraction", "general"]


class ModelProvider(str, Enum):
    """Closed set of supported LLM providers."""

    CLAUDE = "claude"
    GEMINI = "gemini"
    OPENAI = "openai"


class ModelTask(BaseModel):
    """A unit of work for the model router."""

    type: TaskTypeLiteral = Field("general", description="Semantic task type used for model selection")
    prompt: str = Field(..., description="User prompt")
    system_prompt: str | None = Field(None, description="Optional system prompt")
    context: str | None = Field(None, description="Optional free text prepended to the prompt")

    def user_content(self) -> str:
        """Prompt with any context prepended."""
        if self.context:
            return f"{self.context}\n\n{self.prompt}"
        return self.prompt


class ModelConfig(BaseModel):
    """Provider/model selection for one call."""

    provider: ModelProvider
    model: str
    temperature: float = Field(0.5, ge=0, le=2)
    max_tokens: int | None = Field(None, gt=0)


class ModelResponse(BaseModel):
    """Generated text plus which provider/model actually served it."""

    content: str
    model: str
    provider: ModelProvider
    tokens_used: int | None = None
    latency_ms: float
    fallback_used: bool = False
