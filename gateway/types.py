"""gateway/types.py

Value objects shared by the orchestration engine and its boundary.

Internal objects are plain frozen dataclasses.  The only pydantic model is
``ToolResponse``, the shape handed back to tool callers.
"""

from __future__ import annotations

import dataclasses
from typing import Literal, Protocol

from pydantic import BaseModel, ConfigDict, Field

# ---------------------------------------------------------------------------
# Sources
# ---------------------------------------------------------------------------


@dataclasses.dataclass(frozen=True, slots=True)
class Source:
    """A citation attributed to a search-augmented answer.

    Attributes:
        title: Page title, if known.
        url: Page URL, if known.
        snippet: Short excerpt, if known.
    """

    title: str | None = None
    url: str | None = None
    snippet: str | None = None

    @property
    def key(self) -> str | None:
        """Dedup key: the URL when present, otherwise the title."""
        return self.url or self.title or None


@dataclasses.dataclass(frozen=True, slots=True)
class NativeSources:
    """Sources the provider reported in its own structured field."""

    sources: tuple[Source, ...] = ()


@dataclasses.dataclass(frozen=True, slots=True)
class ToolResultSources:
    """Sources embedded in a search tool's result payload."""

    tool_name: str
    results: tuple[Source, ...] = ()


SourceChannel = NativeSources | ToolResultSources

# ---------------------------------------------------------------------------
# Invocation primitive
# ---------------------------------------------------------------------------


@dataclasses.dataclass(frozen=True, slots=True)
class Usage:
    """Token usage reported by the provider (passed through, never budgeted)."""

    input_tokens: int = 0
    output_tokens: int = 0


@dataclasses.dataclass(frozen=True, slots=True)
class SearchToolResult:
    """Result of one executed web-search tool call.

    Attributes:
        tool_name: Name of the tool that produced the results.
        results: Hits in rank order.
    """

    tool_name: str
    results: tuple[Source, ...] = ()


@dataclasses.dataclass(frozen=True, slots=True)
class Step:
    """One tool-invocation step of a provider call."""

    tool_results: tuple[SearchToolResult, ...] = ()


@dataclasses.dataclass(frozen=True, slots=True)
class InvocationResult:
    """What a single provider invocation returns.

    Attributes:
        text: Narrative text (may be empty when the model stopped after a tool).
        sources: Sources from the provider's native citation field.
        steps: Tool-invocation steps in execution order.
        usage: Token usage, when the provider reports it.
    """

    text: str = ""
    sources: tuple[Source, ...] = ()
    steps: tuple[Step, ...] = ()
    usage: Usage | None = None

    def source_channels(self) -> list[SourceChannel]:
        """Return every source channel: native first, then tool results in order."""
        channels: list[SourceChannel] = [NativeSources(self.sources)]
        for step in self.steps:
            for result in step.tool_results:
                channels.append(ToolResultSources(result.tool_name, result.results))
        return channels


class ModelInvoker(Protocol):
    """The provider invocation primitive consumed by the generator."""

    async def invoke(
        self,
        model_id: str,
        prompt: str,
        *,
        system: str | None = None,
        max_tokens: int | None = None,
        tools: tuple[str, ...] | None = None,
    ) -> InvocationResult:
        ...


# ---------------------------------------------------------------------------
# Requests and outcomes
# ---------------------------------------------------------------------------


@dataclasses.dataclass(frozen=True, slots=True)
class GenerationRequest:
    """A single generation call to one model.

    Attributes:
        model_id: Catalog identifier, e.g. ``"openai/gpt-5.2"``.
        prompt: User prompt text.
        system: Optional system instruction.
        max_tokens: Output-token ceiling; the model's own ceiling when ``None``.
        use_search: Attach the unified web search tool.
    """

    model_id: str
    prompt: str
    system: str | None = None
    max_tokens: int | None = None
    use_search: bool = False


@dataclasses.dataclass(frozen=True, slots=True)
class GenerationOutcome:
    """Result of one generation call.  ``text`` is never empty.

    Attributes:
        text: Answer text, or the error message when ``is_error`` is set.
        duration_ms: Wall-clock time around the call(s).
        is_error: Whether the call failed.
        sources: Deduplicated sources, ``None`` when there were none.
        usage: Pass-through token usage from the primary call.
    """

    text: str
    duration_ms: int
    is_error: bool = False
    sources: list[Source] | None = None
    usage: Usage | None = None

    def to_response(self) -> ToolResponse:
        """Wrap the outcome in the boundary response shape."""
        return ToolResponse.from_text(
            self.text,
            is_error=self.is_error,
            sources=self.sources,
            duration_ms=self.duration_ms,
        )


@dataclasses.dataclass(frozen=True, slots=True)
class DispatchResult:
    """One branch of a parallel batch, attributed to its model."""

    model_id: str
    outcome: GenerationOutcome


# ---------------------------------------------------------------------------
# Boundary response
# ---------------------------------------------------------------------------


class TextContent(BaseModel):
    type: Literal["text"] = "text"
    text: str


class SourcePayload(BaseModel):
    title: str | None = None
    url: str | None = None
    snippet: str | None = None

    @classmethod
    def from_source(cls, source: Source) -> SourcePayload:
        return cls(title=source.title, url=source.url, snippet=source.snippet)


class ToolResponse(BaseModel):
    """Response returned by every public tool handler.

    Serialises (``to_payload``) to
    ``{"content": [{"type": "text", "text": ...}], "isError"?, "sources"?, "durationMs"?}``.
    """

    model_config = ConfigDict(populate_by_name=True)

    content: list[TextContent]
    is_error: bool | None = Field(None, alias="isError")
    sources: list[SourcePayload] | None = None
    duration_ms: int | None = Field(None, alias="durationMs")

    @classmethod
    def from_text(
        cls,
        text: str,
        *,
        is_error: bool = False,
        sources: list[Source] | None = None,
        duration_ms: int | None = None,
    ) -> ToolResponse:
        return cls(
            content=[TextContent(text=text)],
            is_error=True if is_error else None,
            sources=[SourcePayload.from_source(s) for s in sources] if sources else None,
            duration_ms=duration_ms,
        )

    @classmethod
    def error(cls, text: str) -> ToolResponse:
        return cls.from_text(text, is_error=True)

    @property
    def text(self) -> str:
        return self.content[0].text if self.content else ""

    def to_payload(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)
