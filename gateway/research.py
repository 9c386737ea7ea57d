"""gateway/research.py

Multi-model research pipeline.

Pipeline:
  1. Resolution: explicit model list, or the mode's default set.
  2. Validation: unknown ids, non-search models in search mode, and an
     unknown synthesis model are rejected before any provider call.
  3. Query stage: one request per model, dispatched as a single batch.
  4a. synthesize=False: per-model sections side by side with latency and
      pricing, optional per-model Sources blocks.
  4b. synthesize=True: every answer is fed to one synthesis call; the
      batch's merged sources are optionally appended.
"""

from __future__ import annotations

import dataclasses
import logging
import time
from collections.abc import Sequence
from enum import StrEnum
from typing import Final

from gateway.catalog import ModelCatalog, catalog as default_catalog
from gateway.cost import estimate_cost, format_cost, pricing_hint
from gateway.dispatcher import generate_parallel
from gateway.errors import UnsupportedCapabilityError
from gateway.generator import Generator
from gateway.sources import format_sources, merge_sources
from gateway.types import DispatchResult, GenerationRequest, Source, ToolResponse

logger = logging.getLogger(__name__)

MIN_MODELS: Final[int] = 2
MAX_MODELS: Final[int] = 4

RESEARCH_SYSTEM_PROMPT: Final[str] = (
    "You are a research assistant. Provide accurate, up-to-date information with sources. "
    "Distinguish facts from speculation."
)
SYNTHESIS_SYSTEM_PROMPT: Final[str] = (
    "You are an expert at synthesizing information from multiple sources "
    "into accurate, comprehensive reports."
)


class ResearchMode(StrEnum):
    SEARCH = "search"
    ASK = "ask"


@dataclasses.dataclass(frozen=True, slots=True)
class ResearchDefaults:
    """Default model sets and token ceilings for the research pipeline.

    Attributes:
        search_models: Models queried in search mode when none are given.
        ask_models: Models queried in ask mode when none are given.
        synthesis_model: Model used for synthesis when none is given.
        search_max_tokens: Per-model ceiling in search mode.
        ask_max_tokens: Per-model ceiling in ask mode.
        search_synthesis_multiplier: Synthesis ceiling = per-model ceiling x this (search).
        ask_synthesis_multiplier: Synthesis ceiling = per-model ceiling x this (ask).
    """

    search_models: tuple[str, ...] = (
        "perplexity/sonar",
        "google/gemini-3-flash",
        "anthropic/claude-haiku-4.5",
        "openai/gpt-5-mini",
    )
    ask_models: tuple[str, ...] = (
        "openai/gpt-5.2",
        "anthropic/claude-opus-4.6",
        "google/gemini-3.1-pro-preview",
        "perplexity/sonar-reasoning-pro",
    )
    synthesis_model: str = "openai/gpt-5.2"
    search_max_tokens: int = 2000
    ask_max_tokens: int = 4000
    search_synthesis_multiplier: int = 3
    ask_synthesis_multiplier: int = 2

    def models_for(self, mode: ResearchMode) -> list[str]:
        return list(self.search_models if mode is ResearchMode.SEARCH else self.ask_models)

    def max_tokens_for(self, mode: ResearchMode) -> int:
        return self.search_max_tokens if mode is ResearchMode.SEARCH else self.ask_max_tokens

    def synthesis_multiplier(self, mode: ResearchMode) -> int:
        if mode is ResearchMode.SEARCH:
            return self.search_synthesis_multiplier
        return self.ask_synthesis_multiplier


def build_synthesis_prompt(query: str, results: Sequence[DispatchResult]) -> str:
    """Build the prompt that asks one model to fuse every answer."""
    answers = "\n\n---\n\n".join(f"## {r.model_id}\n{r.outcome.text}" for r in results)
    return (
        f'The following are responses about "{query}" from {len(results)} different AI models:\n\n'
        f"{answers}\n\n"
        "---\n\n"
        "Carefully review and synthesize all responses into one comprehensive answer:\n"
        "1. Cross-check facts across all sources and identify contradictions\n"
        "2. Prioritize reliable, well-sourced information\n"
        "3. Explicitly note any disagreements or contradictions between models\n"
        "4. Cite sources where available\n"
        "5. Provide a comprehensive and accurate final answer"
    )


class ResearchPipeline:
    """Two-stage research: parallel query stage, then side-by-side or synthesis.

    Args:
        generator: Generator shared by the query and synthesis stages.
        catalog: Catalog used for validation and pricing hints.
        defaults: Default model sets and token ceilings.
        deadline_s: Optional batch deadline for the query stage.
    """

    def __init__(
        self,
        generator: Generator,
        catalog: ModelCatalog | None = None,
        defaults: ResearchDefaults | None = None,
        *,
        deadline_s: float | None = None,
    ) -> None:
        self.generator = generator
        self.catalog = catalog or default_catalog
        self.defaults = defaults or ResearchDefaults()
        self.deadline_s = deadline_s

    # -----------------------------------------------------------------------
    # Validation
    # -----------------------------------------------------------------------

    def _validate(
        self,
        mode: ResearchMode,
        model_ids: list[str],
        synthesis_model: str | None,
    ) -> ToolResponse | None:
        if not MIN_MODELS <= len(model_ids) <= MAX_MODELS:
            return ToolResponse.error(
                f"Research needs {MIN_MODELS}-{MAX_MODELS} models, got {len(model_ids)}"
            )

        unknown = [m for m in model_ids if not self.catalog.is_valid(m)]
        if unknown:
            return ToolResponse.error(
                f"Unknown models: {', '.join(unknown)}\n"
                f"Available: {', '.join(self.catalog.all_ids())}"
            )

        if mode is ResearchMode.SEARCH:
            try:
                self.catalog.require_capability(model_ids, "search")
            except UnsupportedCapabilityError as exc:
                return ToolResponse.error(
                    f"Search mode: these models do not support search: {', '.join(exc.model_ids)}"
                )

        if synthesis_model is not None and not self.catalog.is_valid(synthesis_model):
            return ToolResponse.error(f"Unknown synthesis model: {synthesis_model}")
        return None

    # -----------------------------------------------------------------------
    # Rendering
    # -----------------------------------------------------------------------

    def _render_section(self, result: DispatchResult, include_sources: bool) -> str:
        outcome = result.outcome
        model = self.catalog.get(result.model_id)
        meta = (
            f"**Latency**: {outcome.duration_ms / 1000:.1f}s | "
            f"**Pricing**: {pricing_hint(model)}"
        )
        if outcome.usage is not None:
            meta += f" | **Est. cost**: {format_cost(estimate_cost(model, outcome.usage))}"

        section = f"## {result.model_id}\n{meta}\n\n{outcome.text}"
        if include_sources and outcome.sources:
            section += format_sources(outcome.sources)
        return section

    def _side_by_side(
        self,
        mode: ResearchMode,
        query: str,
        results: list[DispatchResult],
        include_sources: bool,
    ) -> str:
        title = "Search" if mode is ResearchMode.SEARCH else "Q&A"
        sections = "\n\n---\n\n".join(self._render_section(r, include_sources) for r in results)
        return f"# Multi-Model {title}\n\n**Query**: {query}\n\n{sections}"

    # -----------------------------------------------------------------------
    # Public entry point
    # -----------------------------------------------------------------------

    async def run(
        self,
        query: str,
        mode: ResearchMode | str = ResearchMode.SEARCH,
        models: Sequence[str] | None = None,
        *,
        synthesize: bool = True,
        synthesis_model: str | None = None,
        max_tokens: int | None = None,
        synthesis_max_tokens: int | None = None,
        include_sources: bool = False,
    ) -> ToolResponse:
        """Run the research pipeline.  Never raises; inspect ``is_error``.

        Args:
            query: Research question, shared by every model.
            mode: ``"search"`` (web-grounded) or ``"ask"`` (no search).
            models: 2-4 model ids; the mode's defaults when omitted.
            synthesize: Fuse answers into one (True) or show them side by side.
            synthesis_model: Synthesis model override.
            max_tokens: Per-model output ceiling.
            synthesis_max_tokens: Synthesis output ceiling.
            include_sources: Append a Sources block.

        Returns:
            The final ToolResponse with ``durationMs`` and merged ``sources``.
        """
        start = time.perf_counter()
        try:
            mode = ResearchMode(mode)
        except ValueError:
            return ToolResponse.error(f"Unknown research mode: {mode}")

        model_ids = list(models) if models is not None else self.defaults.models_for(mode)
        use_search = mode is ResearchMode.SEARCH
        ceiling = max_tokens if max_tokens is not None else self.defaults.max_tokens_for(mode)

        synthesis_id = (synthesis_model or self.defaults.synthesis_model) if synthesize else None
        invalid = self._validate(mode, model_ids, synthesis_id)
        if invalid is not None:
            logger.warning("[research] rejected: %s", invalid.text.splitlines()[0])
            return invalid

        logger.info(
            "[research] mode=%s models=%s synthesize=%s", mode, model_ids, synthesize
        )

        # Stage 1: query every model in parallel.
        system = RESEARCH_SYSTEM_PROMPT if use_search else None
        results = await generate_parallel(
            self.generator,
            [
                GenerationRequest(
                    model_id=model_id,
                    prompt=query,
                    system=system,
                    max_tokens=ceiling,
                    use_search=use_search,
                )
                for model_id in model_ids
            ],
            deadline_s=self.deadline_s,
        )
        failed = [r.model_id for r in results if r.outcome.is_error]
        if failed:
            logger.warning("[research] failed branches: %s", ", ".join(failed))

        all_sources: list[Source] = merge_sources(*(r.outcome.sources or [] for r in results))

        if not synthesize:
            text = self._side_by_side(mode, query, results, include_sources)
            return ToolResponse.from_text(
                text,
                sources=all_sources,
                duration_ms=int((time.perf_counter() - start) * 1000),
            )

        # Stage 2: synthesis.
        synthesis_ceiling = (
            synthesis_max_tokens
            if synthesis_max_tokens is not None
            else ceiling * self.defaults.synthesis_multiplier(mode)
        )
        logger.info("[research] synthesizing with %s", synthesis_id)
        synthesis = await self.generator.generate(
            GenerationRequest(
                model_id=synthesis_id,
                prompt=build_synthesis_prompt(query, results),
                system=SYNTHESIS_SYSTEM_PROMPT,
                max_tokens=synthesis_ceiling,
            )
        )
        if synthesis.is_error:
            return synthesis.to_response()

        text = synthesis.text
        if include_sources:
            text += format_sources(all_sources)
        return ToolResponse.from_text(
            text,
            sources=all_sources,
            duration_ms=int((time.perf_counter() - start) * 1000),
        )
