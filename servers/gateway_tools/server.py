"""servers/gateway_tools/server.py

FastMCP server exposing the AI gateway tools over stdio:
  - ask          : ask one model a question (no web search)
  - search       : quick web search with a single model
  - research     : 2-4 models in parallel, optionally synthesized
  - list_models  : catalog with capabilities, pricing and search costs
"""

from __future__ import annotations

import logging
import sys
from functools import lru_cache

from fastmcp import FastMCP
from fastmcp.exceptions import ToolError
from pydantic import Field

from gateway.settings import get_settings
from gateway.tools import GatewayTools
from gateway.types import ToolResponse

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger("gateway-tools-server")

# ---------------------------------------------------------------------------
# FastMCP server
# ---------------------------------------------------------------------------
mcp: FastMCP = FastMCP(
    name=get_settings().server_name,
    instructions=(
        "Routes questions to hosted models from OpenAI, Anthropic, Google and "
        "Perplexity through one AI gateway. Use list_models to pick a model."
    ),
)


@lru_cache(maxsize=1)
def get_tools() -> GatewayTools:
    """Build the tool handlers on first use."""
    return GatewayTools.from_settings()


def _unwrap(response: ToolResponse) -> str:
    if response.is_error:
        raise ToolError(response.text)
    return response.text


# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------


@mcp.tool()
async def ask(
    question: str = Field(
        ...,
        min_length=1,
        description="The question to ask, e.g. 'Explain Rust lifetimes' or 'Compare REST vs GraphQL'.",
    ),
    model: str = Field(
        "openai/gpt-5.2",
        description="Model in provider/name format, e.g. 'openai/gpt-5.2-codex', 'anthropic/claude-sonnet-4.6'.",
    ),
    context: str | None = Field(
        None,
        description="Additional context, e.g. code snippets, error messages, or background info.",
    ),
    max_tokens: int = Field(
        2000,
        gt=0,
        description="Max output tokens. 500-1000 for concise answers, 4000+ for detailed explanations.",
    ),
) -> str:
    """Ask an AI model a question (no web search).

    Default: openai/gpt-5.2 (flagship, $1.75/$14, 400K ctx). For code:
    openai/gpt-5.2-codex. Cheaper: openai/gpt-5-mini ($0.25/$2) or
    google/gemini-3-flash ($0.50/$3). Cheapest: openai/gpt-5-nano ($0.05/$0.40).
    """
    return _unwrap(await get_tools().ask(question, model, context, max_tokens))


@mcp.tool()
async def search(
    query: str = Field(
        ...,
        min_length=1,
        description=(
            "Search query in natural language with detailed context. "
            "Use 'latest' or 'current' instead of specific years."
        ),
    ),
    model: str = Field(
        "google/gemini-3-flash",
        description="Search-capable model, e.g. 'perplexity/sonar-pro', 'google/gemini-3-flash'.",
    ),
    max_tokens: int | None = Field(
        None,
        gt=0,
        description=(
            "Max output tokens. Output is hard-truncated at this limit. "
            "Omit to let the model decide the length."
        ),
    ),
    include_sources: bool = Field(
        False,
        description="Append a Sources section with links at the end.",
    ),
    retries: int = Field(
        1,
        ge=0,
        le=3,
        description="Extra attempts when the answer is empty or reports no results.",
    ),
) -> str:
    """Quick web search with a single model.

    For multi-source research, use the research tool instead. Default:
    google/gemini-3-flash ($0.50/$3.00, no input inflation). Higher quality:
    perplexity/sonar-pro.
    """
    return _unwrap(
        await get_tools().search(query, model, max_tokens, include_sources, retries)
    )


@mcp.tool()
async def research(
    query: str = Field(
        ...,
        min_length=1,
        description="Research query, e.g. 'Compare React Server Components vs Astro Islands'.",
    ),
    mode: str = Field(
        "search",
        pattern="^(search|ask)$",
        description="search: web research with grounding. ask: multi-model Q&A without web search.",
    ),
    models: list[str] | None = Field(
        None,
        min_length=2,
        max_length=4,
        description="2-4 models to query in parallel. Defaults depend on mode.",
    ),
    synthesize: bool = Field(
        True,
        description="true: one synthesized answer. false: each model side by side with cost and latency.",
    ),
    synthesis_model: str | None = Field(
        None,
        description="Model for synthesis (only when synthesize is true). Default: openai/gpt-5.2.",
    ),
    max_tokens: int | None = Field(
        None,
        gt=0,
        description="Max output tokens per model in the query phase (default: search=2000, ask=4000).",
    ),
    synthesis_max_tokens: int | None = Field(
        None,
        gt=0,
        description="Max output tokens for synthesis. Defaults to max_tokens x 3 (search) or x 2 (ask).",
    ),
    include_sources: bool = Field(
        False,
        description="Append the merged Sources section.",
    ),
) -> str:
    """Multi-model parallel research.

    Queries 2-4 models simultaneously for diverse perspectives, then
    optionally synthesizes the results into one answer.
    """
    return _unwrap(
        await get_tools().research(
            query,
            mode,
            models,
            synthesize,
            synthesis_model,
            max_tokens,
            synthesis_max_tokens,
            include_sources,
        )
    )


@mcp.tool()
async def list_models(
    provider: str | None = Field(
        None,
        description="Filter by provider: openai, anthropic, google, perplexity.",
    ),
    capability: str | None = Field(
        None,
        description="Filter by capability: search, reasoning, fast, cheap, code.",
    ),
) -> str:
    """List available AI models with capabilities, pricing, and web search costs."""
    return _unwrap(await get_tools().list_models(provider, capability))


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def run() -> None:
    """Launch the server over stdio (called by the console-script entry point)."""
    settings = get_settings()
    if not settings.ai_gateway_api_key:
        logger.error(
            "AI_GATEWAY_API_KEY is not set. Set it in your environment or .env file."
        )
        sys.exit(1)
    logger.info("%s v%s running on stdio", settings.server_name, settings.server_version)
    mcp.run()


if __name__ == "__main__":
    run()
