"""gateway/generator.py

Single-call generator: one request to one model, with search fallback.

Flow for one request:

  DIRECT               primary invocation (with the unified ``web_search``
                       tool attached when search is requested).
  AWAITING_FALLBACK    the model ran a search tool but returned no narrative
                       text.  The search hits are embedded in a second prompt
                       and the model is asked to answer from them.
  DONE                 text (or the empty-response placeholder) is final.

Provider failures never escape: they become error-flagged outcomes.  Only an
unknown model identifier raises, and callers validate before calling.
"""

from __future__ import annotations

import asyncio
import logging
import time
from enum import StrEnum
from typing import Final

from gateway.catalog import ModelCatalog, catalog as default_catalog
from gateway.sources import collect_sources, format_search_block
from gateway.types import (
    GenerationOutcome,
    GenerationRequest,
    InvocationResult,
    ModelInvoker,
)

logger = logging.getLogger(__name__)

SEARCH_TOOL_NAME: Final[str] = "web_search"
EMPTY_RESPONSE_PLACEHOLDER: Final[str] = "(response was empty)"

_FALLBACK_SYSTEM_PROMPT: Final[str] = (
    "You are a helpful assistant. Summarize the search results accurately and concisely."
)


class GenerationState(StrEnum):
    DIRECT = "direct"
    AWAITING_FALLBACK = "awaiting_fallback"
    DONE = "done"


def describe_error(exc: BaseException, timeout_s: float | None = None) -> str:
    """Return a human-readable message for a failed invocation."""
    if isinstance(exc, TimeoutError):
        if timeout_s is not None:
            return f"request timed out after {timeout_s:g}s"
        return "request timed out"
    return str(exc) or type(exc).__name__


def error_outcome(model_id: str, message: str, duration_ms: int = 0) -> GenerationOutcome:
    return GenerationOutcome(
        text=f"Error ({model_id}): {message}",
        duration_ms=duration_ms,
        is_error=True,
    )


def fallback_block(result: InvocationResult) -> str | None:
    """Return the search block that triggers a fallback re-prompt, if any.

    The fallback fires only when the primary call produced no narrative text
    and at least one step carries non-empty search results.
    """
    if result.text.strip() or not result.steps:
        return None
    for step in result.steps:
        for tool_result in step.tool_results:
            block = format_search_block(tool_result.results)
            if block:
                return block
    return None


def fallback_prompt(question: str, block: str) -> str:
    return (
        f'Based on the following search results, answer the user\'s question: "{question}"\n\n'
        f"Search results:\n{block}"
    )


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


class Generator:
    """Issues single generation calls through a ``ModelInvoker``.

    Args:
        invoker: The provider invocation primitive.
        catalog: Catalog used to resolve models and default output ceilings.
        timeout_s: Deadline applied to every invocation; ``None`` disables it.
    """

    def __init__(
        self,
        invoker: ModelInvoker,
        catalog: ModelCatalog | None = None,
        *,
        timeout_s: float | None = 120.0,
    ) -> None:
        self.invoker = invoker
        self.catalog = catalog or default_catalog
        self.timeout_s = timeout_s

    async def _invoke(
        self,
        model_id: str,
        prompt: str,
        *,
        system: str | None,
        max_tokens: int | None,
        tools: tuple[str, ...] | None,
    ) -> InvocationResult:
        call = self.invoker.invoke(
            model_id,
            prompt,
            system=system,
            max_tokens=max_tokens,
            tools=tools,
        )
        if self.timeout_s is None:
            return await call
        async with asyncio.timeout(self.timeout_s):
            return await call

    async def run_fallback(
        self,
        request: GenerationRequest,
        block: str,
        max_tokens: int | None,
    ) -> str:
        """Re-prompt the model with the search block.  Failures yield ``""``."""
        logger.info("[fallback] model=%s re-prompting with search results", request.model_id)
        try:
            follow_up = await self._invoke(
                request.model_id,
                fallback_prompt(request.prompt, block),
                system=request.system or _FALLBACK_SYSTEM_PROMPT,
                max_tokens=max_tokens,
                tools=None,
            )
        except Exception as exc:
            logger.warning(
                "[fallback] model=%s follow-up failed: %s",
                request.model_id,
                describe_error(exc, self.timeout_s),
            )
            return ""
        return follow_up.text.strip()

    async def generate(self, request: GenerationRequest) -> GenerationOutcome:
        """Run one request and return its outcome.

        Raises:
            UnknownModelError: If ``request.model_id`` is not in the catalog.
        """
        model = self.catalog.get(request.model_id)
        max_tokens = request.max_tokens if request.max_tokens is not None else model.max_output_tokens
        tools = (SEARCH_TOOL_NAME,) if request.use_search else None

        logger.info(
            "[generate] model=%s search=%s max_tokens=%s",
            request.model_id,
            request.use_search,
            max_tokens,
        )
        start = time.perf_counter()
        state = GenerationState.DIRECT
        try:
            result = await self._invoke(
                request.model_id,
                request.prompt,
                system=request.system,
                max_tokens=max_tokens,
                tools=tools,
            )
        except Exception as exc:
            message = describe_error(exc, self.timeout_s)
            logger.error(
                "[generate] model=%s state=%s error: %s",
                request.model_id,
                state,
                message,
                exc_info=True,
            )
            return error_outcome(request.model_id, message, _elapsed_ms(start))

        text = result.text.strip()
        block = fallback_block(result)
        state = GenerationState.DONE if block is None else GenerationState.AWAITING_FALLBACK
        logger.debug("[generate] model=%s state=%s", request.model_id, state)
        if state is GenerationState.AWAITING_FALLBACK:
            text = await self.run_fallback(request, block, max_tokens)
            state = GenerationState.DONE

        if not text:
            logger.warning("[generate] model=%s returned no text", request.model_id)
            text = EMPTY_RESPONSE_PLACEHOLDER

        sources = collect_sources(result.source_channels())
        duration_ms = _elapsed_ms(start)
        logger.info(
            "[generate] model=%s fallback=%s chars=%d sources=%d duration_ms=%d",
            request.model_id,
            block is not None,
            len(text),
            len(sources),
            duration_ms,
        )
        return GenerationOutcome(
            text=text,
            duration_ms=duration_ms,
            sources=sources or None,
            usage=result.usage,
        )
