"""
Configuration Settings.

This module defines the application configuration using Pydantic's BaseSettings.
It automatically loads all configuration from environment variables and .env file
without explicit dotenv loading.
"""

from typing import Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# =====================================================================
# Grouped Configuration Models
# =====================================================================


class AgentDefaultsConfig(BaseModel):
    """Default limits applied to every agent loop unless a step overrides them."""

    max_iterations: int = Field(
        default=10, alias="RATCHET_AGENT_MAX_ITERATIONS", description="Maximum loop iterations per task"
    )
    approval_timeout: str = Field(
        default="30m", alias="RATCHET_AGENT_APPROVAL_TIMEOUT", description="Wall-clock wait for an approval"
    )
    request_timeout: str = Field(
        default="60m", alias="RATCHET_AGENT_REQUEST_TIMEOUT", description="Wall-clock wait for a human request"
    )
    compaction_threshold: float = Field(
        default=0.80,
        alias="RATCHET_AGENT_COMPACTION_THRESHOLD",
        description="Fraction of the context window that triggers compaction",
    )

    model_config = {"populate_by_name": True}


class SubAgentConfig(BaseModel):
    """Fan-out limits for ephemeral sub-agents."""

    max_per_parent: int = Field(
        default=5, alias="RATCHET_SUB_AGENT_MAX_PER_PARENT", description="Maximum active children per parent"
    )
    max_depth: int = Field(
        default=1, alias="RATCHET_SUB_AGENT_MAX_DEPTH", description="Maximum spawn depth below a lead agent"
    )

    model_config = {"populate_by_name": True}


class SSEConfig(BaseModel):
    """Server-sent events hub configuration."""

    path: str = Field(default="/events", alias="RATCHET_SSE_PATH", description="HTTP path of the event stream")
    buffer_size: int = Field(
        default=64, alias="RATCHET_SSE_BUFFER_SIZE", description="Per-client event queue capacity"
    )

    model_config = {"populate_by_name": True}


# =====================================================================
# Main Settings Class
# =====================================================================


class Settings(BaseSettings):
    """
    Application settings model.

    All properties are automatically bound from environment variables and .env file.
    Pydantic's BaseSettings handles dotenv loading automatically via model_config.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=True,
        populate_by_name=True,
    )

    # =====================================================================
    # Server Configuration
    # =====================================================================
    server_host: str = Field(
        default="0.0.0.0",
        description="Ratchet server host address to bind to",
        alias="RATCHET_SERVER_HOST",
    )
    server_port: int = Field(
        default=8000,
        description="Ratchet server port number",
        alias="RATCHET_SERVER_PORT",
    )

    # =====================================================================
    # Logging Configuration
    # =====================================================================
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
        alias="RATCHET_LOG_LEVEL",
    )
    log_format: str = Field(
        default="detailed",
        description="Logging format (simple, detailed, json)",
        alias="RATCHET_LOG_FORMAT",
    )
    log_file_dir: str = Field(default="logs", description="Directory for log files", alias="RATCHET_LOG_FILE_DIR")
    enable_file_logging: bool = Field(
        default=False,
        description="Write logs to <log_file_dir>/ratchet_ai.log as well as the console",
        alias="RATCHET_ENABLE_FILE_LOGGING",
    )

    # =====================================================================
    # Database Configuration
    # =====================================================================
    database_url: str = Field(
        default="sqlite+aiosqlite:///ratchet.db",
        description="Async SQLAlchemy connection URL for the application database",
        alias="RATCHET_DATABASE_URL",
    )

    # =====================================================================
    # Tooling Configuration
    # =====================================================================
    tool_policy_default: str = Field(
        default="deny",
        description="Decision when no tool policy row matches (allow or deny)",
        alias="RATCHET_TOOL_POLICY_DEFAULT",
    )
    workspace_root: str = Field(
        default="workspaces",
        description="Base directory for project workspaces",
        alias="RATCHET_WORKSPACE_ROOT",
    )
    skills_dir: Optional[str] = Field(
        default=None,
        description="Directory of Markdown skill files loaded at startup",
        alias="RATCHET_SKILLS_DIR",
    )

    # =====================================================================
    # Grouped fields (flattened for env binding)
    # =====================================================================
    agent_max_iterations: int = Field(default=10, alias="RATCHET_AGENT_MAX_ITERATIONS")
    agent_approval_timeout: str = Field(default="30m", alias="RATCHET_AGENT_APPROVAL_TIMEOUT")
    agent_request_timeout: str = Field(default="60m", alias="RATCHET_AGENT_REQUEST_TIMEOUT")
    agent_compaction_threshold: float = Field(default=0.80, alias="RATCHET_AGENT_COMPACTION_THRESHOLD")
    sub_agent_max_per_parent: int = Field(default=5, alias="RATCHET_SUB_AGENT_MAX_PER_PARENT")
    sub_agent_max_depth: int = Field(default=1, alias="RATCHET_SUB_AGENT_MAX_DEPTH")
    sse_path: str = Field(default="/events", alias="RATCHET_SSE_PATH")
    sse_buffer_size: int = Field(default=64, alias="RATCHET_SSE_BUFFER_SIZE")

    # =====================================================================
    # Computed Properties (Grouped Configurations)
    # =====================================================================

    @property
    def agent(self) -> AgentDefaultsConfig:
        """Get agent loop defaults from environment variables."""
        return AgentDefaultsConfig.model_validate(self.model_dump(by_alias=True))

    @property
    def sub_agent(self) -> SubAgentConfig:
        """Get sub-agent limits from environment variables."""
        return SubAgentConfig.model_validate(self.model_dump(by_alias=True))

    @property
    def sse(self) -> SSEConfig:
        """Get SSE hub configuration from environment variables."""
        return SSEConfig.model_validate(self.model_dump(by_alias=True))


settings = Settings()
