"""gateway/settings.py

Runtime configuration loaded from environment variables / .env file.

Configure via environment variables:
  AI_GATEWAY_API_KEY      bearer token for the AI gateway (required to serve)
  AI_GATEWAY_BASE_URL     OpenAI-compatible gateway endpoint
  REQUEST_TIMEOUT_S       per-call deadline in seconds (empty disables it)
  SEARCH_MAX_RESULTS      hits returned by the in-process web search tool
  LOG_DIR                 directory for the daily JSONL tool-call log
  LOG_TOOL_CALLS          set to false to disable the tool-call log
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class GatewaySettings(BaseSettings):
    """Settings shared by the invocation client, the MCP server and the CLI.

    Attributes:
        ai_gateway_api_key: Bearer token sent to the gateway.
        ai_gateway_base_url: OpenAI-compatible base URL (``/chat/completions``
            is appended).
        request_timeout_s: Deadline applied to every provider invocation.
        search_max_results: Cap on hits returned by the web search tool.
        log_dir: Directory receiving ``<YYYY-MM-DD>.jsonl`` tool-call logs.
        log_tool_calls: Whether tool handlers write the JSONL log.
        server_name: Name advertised by the MCP server.
        server_version: Version advertised by the MCP server.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    ai_gateway_api_key: str = Field(
        "",
        description="Bearer token for the AI gateway.",
    )
    ai_gateway_base_url: str = Field(
        "https://ai-gateway.vercel.sh/v1",
        description="OpenAI-compatible AI gateway base URL.",
    )
    request_timeout_s: float | None = Field(
        120.0,
        description="Deadline for a single provider call.  None disables it.",
    )
    search_max_results: int = Field(
        8,
        ge=1,
        le=20,
        description="Maximum hits returned by the web search tool.",
    )
    log_dir: Path = Field(
        Path("logs"),
        description="Directory for the daily JSONL tool-call log.",
    )
    log_tool_calls: bool = Field(
        True,
        description="Write one JSONL entry per tool call.",
    )
    server_name: str = Field("ai-gateway-mcp-server")
    server_version: str = Field("0.1.0")

    @field_validator("request_timeout_s", mode="before")
    @classmethod
    def _empty_timeout_is_none(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value


@lru_cache(maxsize=1)
def get_settings() -> GatewaySettings:
    """Return the process-wide settings instance."""
    return GatewaySettings()
