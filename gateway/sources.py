"""gateway/sources.py

Source extraction, deduplication and Markdown rendering.

Sources arrive through two channels: the provider's native citation field
(``NativeSources``) and search-tool results embedded in invocation steps
(``ToolResultSources``).  Each channel has its own extractor; anything else
is rejected.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from gateway.errors import UnrecognizedToolResult
from gateway.types import NativeSources, SearchToolResult, Source, SourceChannel, ToolResultSources


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------


def _extract_native(channel: NativeSources) -> list[Source]:
    return list(channel.sources)


def _extract_tool_results(channel: ToolResultSources) -> list[Source]:
    return [s for s in channel.results if s.url or s.title]


def extract_sources(channel: SourceChannel) -> list[Source]:
    """Return the sources carried by one channel.

    Raises:
        UnrecognizedToolResult: If ``channel`` is not a known variant.
    """
    if isinstance(channel, NativeSources):
        return _extract_native(channel)
    if isinstance(channel, ToolResultSources):
        return _extract_tool_results(channel)
    raise UnrecognizedToolResult(f"Unknown source channel: {type(channel).__name__}")


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def parse_tool_result(raw: Mapping[str, Any], tool_name: str = "web_search") -> SearchToolResult:
    """Parse a raw ``{"output": {"results": [{title?, url?, snippet?}]}}`` payload.

    Args:
        raw: Tool result as received over the wire.
        tool_name: Name recorded on the parsed result.

    Returns:
        The typed search result.

    Raises:
        UnrecognizedToolResult: If the payload is not search-shaped.
    """
    output = raw.get("output") if isinstance(raw, Mapping) else None
    results = output.get("results") if isinstance(output, Mapping) else None
    if not isinstance(results, list):
        raise UnrecognizedToolResult(f"Tool result from {tool_name!r} has no results list")

    hits: list[Source] = []
    for item in results:
        if not isinstance(item, Mapping):
            raise UnrecognizedToolResult(
                f"Search hit from {tool_name!r} is {type(item).__name__}, expected an object"
            )
        hits.append(
            Source(
                title=_optional_str(item.get("title")),
                url=_optional_str(item.get("url")),
                snippet=_optional_str(item.get("snippet")),
            )
        )
    return SearchToolResult(tool_name=tool_name, results=tuple(hits))


# ---------------------------------------------------------------------------
# Deduplication
# ---------------------------------------------------------------------------


def merge_sources(*groups: Iterable[Source]) -> list[Source]:
    """Merge source lists, dedupe by URL (title when URL is absent), keep first seen.

    Entries with neither a URL nor a title are dropped.
    """
    seen: set[str] = set()
    merged: list[Source] = []
    for group in groups:
        for source in group:
            key = source.key
            if key is None or key in seen:
                continue
            seen.add(key)
            merged.append(source)
    return merged


def collect_sources(channels: Iterable[SourceChannel]) -> list[Source]:
    """Extract every channel and merge the results."""
    return merge_sources(*(extract_sources(c) for c in channels))


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


def format_search_block(results: Iterable[Source]) -> str:
    """Render search hits as the text block embedded in a fallback prompt."""
    blocks: list[str] = []
    for hit in results:
        parts: list[str] = []
        if hit.title:
            parts.append(f"**{hit.title}**")
        if hit.url:
            parts.append(hit.url)
        if hit.snippet:
            parts.append(hit.snippet)
        if parts:
            blocks.append("\n".join(parts))
    return "\n\n---\n\n".join(blocks)


def format_sources(sources: Iterable[Source]) -> str:
    """Render a trailing Markdown "Sources" block, or ``""`` when empty."""
    unique = merge_sources(sources)
    if not unique:
        return ""

    lines: list[str] = []
    for s in unique:
        if s.title and s.url:
            lines.append(f"- [{s.title}]({s.url})")
        elif s.url:
            lines.append(f"- {s.url}")
        else:
            lines.append(f"- {s.title}")
    return "\n\n---\n\n**Sources**\n" + "\n".join(lines)
