"""
Tests for the Pydantic AI LanguageModel adapter.

Uses Pydantic AI's FunctionModel so no provider is contacted.
"""

import pytest
from pydantic_ai.messages import ModelMessage, ModelRequest, ModelResponse, TextPart, ToolCallPart, ToolReturnPart
from pydantic_ai.models.function import AgentInfo, FunctionModel

from semantic_agents.domain.agent import Tool
from semantic_agents.domain.autonomous import AutonomousAgent, FinalAnswer
from semantic_agents.domain.domain_value import ConversationState
from semantic_agents.service.language_model import PydanticAIModel
from tests.fakes import make_agent


@pytest.mark.asyncio
async def test_complete_sends_conversation_and_tools(echo_tool: Tool):
    seen: dict = {}

    def respond(messages: list[ModelMessage], info: AgentInfo) -> ModelResponse:
        seen["messages"] = messages
        seen["tools"] = [tool.name for tool in info.function_tools]
        return ModelResponse(parts=[TextPart(content="hello")])

    model = PydanticAIModel(FunctionModel(respond))
    state = ConversationState.start(prompt="Hi", instructions="Be brief.")

    response = await model.complete(state, [echo_tool.definition])

    assert response.parts[0].content == "hello"
    assert seen["messages"][-1].parts[-1].content == "Hi"
    assert seen["tools"] == ["echo"]


def test_model_name_is_inferred():
    assert PydanticAIModel("test").name == "test"


@pytest.mark.asyncio
async def test_loop_runs_over_pydantic_ai_model(echo_tool: Tool):
    """One tool round-trip through a real Pydantic AI model implementation."""

    def respond(messages: list[ModelMessage], info: AgentInfo) -> ModelResponse:
        last = messages[-1]
        if isinstance(last, ModelRequest) and isinstance(last.parts[0], ToolReturnPart):
            return ModelResponse(parts=[TextPart(content=f"Tool said {last.parts[0].content}")])
        return ModelResponse(parts=[ToolCallPart(tool_name="echo", args={"value": "ping"}, tool_call_id="c1")])

    agent = make_agent(PydanticAIModel(FunctionModel(respond)), echo_tool)

    outcome = await AutonomousAgent(agent).run("Ping the echo tool")

    assert isinstance(outcome, FinalAnswer)
    assert outcome.answer == "Tool said echo:ping"
