"""gateway/tools.py

Tool handlers: argument validation in front of the orchestration engine.

Every handler returns a ``ToolResponse`` and never raises for bad input or a
failing provider.  Unknown models and unsupported capabilities are rejected
before any provider call.  Each call is appended to the JSONL tool-call log
when a log directory is configured.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Sequence
from pathlib import Path
from typing import Any, Final

from gateway.call_log import ToolCallEntry, log_tool_call
from gateway.catalog import (
    CAPABILITY_FILTERS,
    PROVIDERS,
    ModelCatalog,
    ModelDefinition,
    catalog as default_catalog,
)
from gateway.client import GatewayClient
from gateway.cost import format_price
from gateway.errors import UnknownModelError, UnsupportedCapabilityError
from gateway.generator import Generator
from gateway.quality import MAX_RETRIES, QualityGate, search_with_retry
from gateway.research import ResearchPipeline
from gateway.settings import GatewaySettings, get_settings
from gateway.sources import format_sources
from gateway.types import GenerationRequest, ToolResponse

logger = logging.getLogger(__name__)

DEFAULT_ASK_MODEL: Final[str] = "openai/gpt-5.2"
DEFAULT_SEARCH_MODEL: Final[str] = "google/gemini-3-flash"
DEFAULT_ASK_MAX_TOKENS: Final[int] = 2000

SEARCH_SYSTEM_PROMPT: Final[str] = (
    "You are a web search assistant. Provide accurate, up-to-date information with sources. "
    "Distinguish facts from speculation."
)


# ---------------------------------------------------------------------------
# list_models formatting
# ---------------------------------------------------------------------------


def format_model(m: ModelDefinition) -> str:
    """Render one catalog entry as a Markdown block."""
    caps = [
        label
        for flag, label in (
            (m.capabilities.search, "Search"),
            (m.capabilities.reasoning, "Reasoning"),
            (m.capabilities.coding, "Code"),
            (m.capabilities.fast, "Fast"),
            (m.capabilities.cheap, "Cheap"),
        )
        if flag
    ]
    prices = [f"Input: {format_price(m.pricing.input)}/1M"]
    if m.pricing.cached_input is not None:
        prices.append(f"Cached: {format_price(m.pricing.cached_input)}/1M")
    prices.append(f"Output: {format_price(m.pricing.output)}/1M")

    lines = [
        f"### {m.display_name}",
        f"- **ID**: `{m.id}`",
        f"- **Provider**: {m.provider}",
        f"- **Context**: {m.context_window / 1000:.0f}K tokens",
        f"- **Capabilities**: {', '.join(caps) if caps else 'None'}",
        f"- **Pricing**: {' | '.join(prices)}",
    ]
    if m.search_cost is not None:
        lines.append(f"- **Search cost**: {m.search_cost.description}")
    if m.max_output_tokens:
        lines.append(f"- **Max output**: {m.max_output_tokens:,} tokens")
    if m.note:
        lines.append(f"- **Note**: {m.note}")
    return "\n".join(lines)


def format_model_list(
    models: Sequence[ModelDefinition],
    provider: str | None = None,
    capability: str | None = None,
) -> str:
    filters: list[str] = []
    if provider:
        filters.append(f"provider: {provider}")
    if capability:
        filters.append(f"capability: {capability}")
    title = "# Available Models" + (f" ({', '.join(filters)})" if filters else "")

    groups: dict[str, list[ModelDefinition]] = {}
    for m in models:
        groups.setdefault(m.provider, []).append(m)
    sections = "\n\n---\n\n".join(
        f"## {name}\n\n" + "\n\n".join(format_model(m) for m in group)
        for name, group in groups.items()
    )
    return f"{title}\n\nTotal: {len(models)} models\n\n{sections}"


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


class GatewayTools:
    """The four public tools: ``ask``, ``search``, ``research``, ``list_models``.

    Args:
        generator: Generator shared by every handler.
        catalog: Model catalog used for validation and listing.
        pipeline: Research pipeline; built from ``generator`` when omitted.
        log_dir: Directory for the JSONL tool-call log; ``None`` disables it.
        gate: Poor-result heuristic for ``search``.
    """

    def __init__(
        self,
        generator: Generator,
        catalog: ModelCatalog | None = None,
        pipeline: ResearchPipeline | None = None,
        *,
        log_dir: Path | None = None,
        gate: QualityGate | None = None,
    ) -> None:
        self.generator = generator
        self.catalog = catalog or default_catalog
        self.pipeline = pipeline or ResearchPipeline(generator, self.catalog)
        self.log_dir = log_dir
        self.gate = gate or QualityGate()

    @classmethod
    def from_settings(cls, settings: GatewaySettings | None = None) -> GatewayTools:
        """Wire the handlers to a live ``GatewayClient``."""
        settings = settings or get_settings()
        generator = Generator(GatewayClient(settings), timeout_s=settings.request_timeout_s)
        return cls(generator, log_dir=settings.log_dir if settings.log_tool_calls else None)

    async def _record(
        self,
        tool: str,
        model_id: str,
        start: float,
        arguments: dict[str, Any],
        response: ToolResponse,
    ) -> ToolResponse:
        duration_ms = int((time.perf_counter() - start) * 1000)
        logger.info(
            "[%s] model=%s duration_ms=%d error=%s",
            tool,
            model_id,
            duration_ms,
            bool(response.is_error),
        )
        if self.log_dir is not None:
            await asyncio.to_thread(
                log_tool_call,
                ToolCallEntry(
                    tool=tool,
                    model_id=model_id,
                    duration_ms=duration_ms,
                    input=arguments,
                    error=response.text if response.is_error else None,
                ),
                self.log_dir,
            )
        return response

    async def ask(
        self,
        question: str,
        model: str = DEFAULT_ASK_MODEL,
        context: str | None = None,
        max_tokens: int | None = DEFAULT_ASK_MAX_TOKENS,
    ) -> ToolResponse:
        """Ask one model a question without web search."""
        start = time.perf_counter()
        arguments = {"question": question, "model": model, "context": context, "max_tokens": max_tokens}

        if not question.strip():
            error = ToolResponse.error("question must not be empty")
            return await self._record("ask", model, start, arguments, error)
        if not self.catalog.is_valid(model):
            error = ToolResponse.error(f"Unknown model: {model}")
            return await self._record("ask", model, start, arguments, error)

        prompt = f"{context}\n\n{question}" if context else question
        outcome = await self.generator.generate(
            GenerationRequest(model_id=model, prompt=prompt, max_tokens=max_tokens)
        )
        return await self._record("ask", model, start, arguments, outcome.to_response())

    async def search(
        self,
        query: str,
        model: str = DEFAULT_SEARCH_MODEL,
        max_tokens: int | None = None,
        include_sources: bool = False,
        retries: int = 1,
    ) -> ToolResponse:
        """Web search with one model, retrying poor answers."""
        start = time.perf_counter()
        arguments = {
            "query": query,
            "model": model,
            "max_tokens": max_tokens,
            "include_sources": include_sources,
            "retries": retries,
        }

        async def reject(text: str) -> ToolResponse:
            return await self._record("search", model, start, arguments, ToolResponse.error(text))

        if not query.strip():
            return await reject("query must not be empty")
        if not 0 <= retries <= MAX_RETRIES:
            return await reject(f"retries must be between 0 and {MAX_RETRIES}, got {retries}")
        try:
            self.catalog.require_capability([model], "search")
        except UnknownModelError as exc:
            return await reject(str(exc))
        except UnsupportedCapabilityError:
            available = ", ".join(m.id for m in self.catalog.search_capable())
            return await reject(f"Model {model} does not support search.\nAvailable search models: {available}")

        outcome = await search_with_retry(
            self.generator,
            GenerationRequest(
                model_id=model,
                prompt=query,
                system=SEARCH_SYSTEM_PROMPT,
                max_tokens=max_tokens,
                use_search=True,
            ),
            retries=retries,
            gate=self.gate,
        )
        response = outcome.to_response()
        if include_sources and outcome.sources and not outcome.is_error:
            response = ToolResponse.from_text(
                outcome.text + format_sources(outcome.sources),
                sources=outcome.sources,
                duration_ms=outcome.duration_ms,
            )
        return await self._record("search", model, start, arguments, response)

    async def research(
        self,
        query: str,
        mode: str = "search",
        models: list[str] | None = None,
        synthesize: bool = True,
        synthesis_model: str | None = None,
        max_tokens: int | None = None,
        synthesis_max_tokens: int | None = None,
        include_sources: bool = False,
    ) -> ToolResponse:
        """Multi-model research; see ``ResearchPipeline.run``."""
        start = time.perf_counter()
        arguments = {
            "query": query,
            "mode": mode,
            "models": models,
            "synthesize": synthesize,
            "synthesis_model": synthesis_model,
            "max_tokens": max_tokens,
            "synthesis_max_tokens": synthesis_max_tokens,
            "include_sources": include_sources,
        }
        label = ",".join(models) if models else f"default:{mode}"

        if not query.strip():
            error = ToolResponse.error("query must not be empty")
            return await self._record("research", label, start, arguments, error)

        response = await self.pipeline.run(
            query,
            mode,
            models,
            synthesize=synthesize,
            synthesis_model=synthesis_model,
            max_tokens=max_tokens,
            synthesis_max_tokens=synthesis_max_tokens,
            include_sources=include_sources,
        )
        return await self._record("research", label, start, arguments, response)

    async def list_models(
        self,
        provider: str | None = None,
        capability: str | None = None,
    ) -> ToolResponse:
        """List catalog models, optionally filtered by provider and capability."""
        if provider is not None and provider not in PROVIDERS:
            return ToolResponse.error(
                f"Unknown provider: {provider}\nAvailable: {', '.join(PROVIDERS)}"
            )
        if capability is not None and capability not in CAPABILITY_FILTERS:
            return ToolResponse.error(
                f"Unknown capability: {capability}\nAvailable: {', '.join(CAPABILITY_FILTERS)}"
            )

        if provider is not None:
            models = self.catalog.by_provider(provider)
        else:
            models = self.catalog.all_models()
        if capability is not None:
            capable = {m.id for m in self.catalog.by_capability(capability)}
            models = [m for m in models if m.id in capable]
        return ToolResponse.from_text(format_model_list(models, provider, capability))
