"""Library Configuration

Type-safe configuration using Pydantic Settings for environment variable handling.
Every value has a development default so the library imports without a .env file;
deployments override through environment variables.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Settings from environment variables"""

    # =============================================================================
    # APPLICATION
    # =============================================================================

    app_name: str = Field(default="semantic-agents", alias="APP_NAME")
    environment: str = Field(default="development", alias="ENVIRONMENT")
    log_level: str = Field(default="info", alias="LOG_LEVEL")
    logfire_send: bool | Literal["if-token-present"] = Field(default="if-token-present", alias="LOGFIRE_SEND")

    # =============================================================================
    # ROUTER
    # =============================================================================

    router_threshold: float = Field(default=0.8, ge=0.0, le=1.0, alias="ROUTER_THRESHOLD")
    router_top_k: int = Field(default=1, ge=1, alias="ROUTER_TOP_K")
    router_candidate_floor: float = Field(default=0.0, ge=0.0, le=1.0, alias="ROUTER_CANDIDATE_FLOOR")

    # =============================================================================
    # AGENT LOOP
    # =============================================================================

    agent_max_steps: int = Field(default=10, ge=1, alias="AGENT_MAX_STEPS")
    agent_step_timeout: float | None = Field(default=None, gt=0, alias="AGENT_STEP_TIMEOUT")

    # =============================================================================
    # EMBEDDINGS
    # =============================================================================

    # Qdrant - Vector database (":memory:" runs qdrant-client's local mode)
    qdrant_url: str = Field(default=":memory:", alias="QDRANT_URL")
    qdrant_collection: str = Field(default="semantic_routes", alias="QDRANT_COLLECTION")

    # Ollama - Local embedding model
    ollama_base_url: str = Field(default="http://localhost:11434", alias="OLLAMA_BASE_URL")
    ollama_embedding_model: str = Field(default="nomic-embed-text", alias="OLLAMA_EMBEDDING_MODEL")

    model_config = {"env_file": ".env", "case_sensitive": False, "extra": "ignore"}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


__all__ = ["Settings", "get_settings"]
