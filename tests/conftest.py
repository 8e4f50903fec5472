"""
Shared test fixtures and configuration.

Environment strategy:
- Unit tests: Use .env.test (isolated, no real infra needed)
- Capabilities are replaced by the in-process fakes in tests/fakes.py
"""

from pathlib import Path

import logfire
import pytest
from dotenv import load_dotenv

ENV_FILE = Path(__file__).parent.parent / ".env.test"
load_dotenv(ENV_FILE, override=True)

from semantic_agents.domain.agent import Agent, Tool

from .fakes import EchoArgs, ScriptedModel, echo, make_agent, text

logfire.configure(send_to_logfire=False, console=False)


@pytest.fixture
def echo_tool() -> Tool:
    return Tool.from_function(echo, args_model=EchoArgs)


@pytest.fixture
def answering_agent() -> Agent:
    """Agent whose model answers immediately."""
    return make_agent(ScriptedModel(text("done")), name="answering")


@pytest.fixture
def billing_agent() -> Agent:
    return make_agent(ScriptedModel(text("billing answer")), name="billing")


@pytest.fixture
def support_agent() -> Agent:
    return make_agent(ScriptedModel(text("support answer")), name="support")
