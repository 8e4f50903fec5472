"""Pydantic AI Language Model - LanguageModel Capability over Any Provider.

Pydantic AI already normalizes every provider (OpenAI, Anthropic, Groq,
Ollama, ...) behind ``pydantic_ai.models.Model``. This adapter issues exactly
one ``Model.request`` per loop step and hands the raw ``ModelResponse`` back,
leaving tool execution and step control to the autonomous agent loop instead
of Pydantic AI's own agent graph.

Example:
    >>> model = PydanticAIModel("anthropic:claude-sonnet-4-5")
    >>> agent = Agent(name="billing", instructions="...", model=model, tools=(lookup,))
"""

from __future__ import annotations

from collections.abc import Sequence

from pydantic_ai.messages import ModelResponse
from pydantic_ai.models import Model, ModelRequestParameters, infer_model
from pydantic_ai.settings import ModelSettings
from pydantic_ai.tools import ToolDefinition

from ..domain.domain_value import ConversationState


class PydanticAIModel:
    """LanguageModel backed by a Pydantic AI ``Model``.

    Args:
        model: Model instance, or a "vendor:model" name resolved by Pydantic AI
        settings: Optional model settings (temperature, max_tokens, ...)
    """

    def __init__(self, model: Model | str, settings: ModelSettings | None = None):
        self.model = model if isinstance(model, Model) else infer_model(model)
        self.settings = settings

    @property
    def name(self) -> str:
        return self.model.model_name

    async def complete(self, state: ConversationState, tools: Sequence[ToolDefinition]) -> ModelResponse:
        parameters = ModelRequestParameters(function_tools=list(tools), allow_text_output=True)
        return await self.model.request(list(state.messages), self.settings, parameters)


__all__ = ["PydanticAIModel"]
