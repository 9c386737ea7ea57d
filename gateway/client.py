"""gateway/client.py

Provider invocation client for an OpenAI-compatible AI gateway.

One ``invoke`` call is one ``POST {base_url}/chat/completions``.  When the
caller requests the unified ``web_search`` tool, the function is advertised
with ``tool_choice="required"``; the tool calls the model emits are executed
in-process with DuckDuckGo and recorded as steps.  The model's narrative
text for that turn is returned as-is (usually empty), which is what drives
the generator's fallback re-prompt.

Native citations are read from the response's ``citations`` / ``search_results``
fields (Perplexity style) and from ``message.annotations`` (``url_citation``).
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable
from typing import Any

import httpx
from ddgs import DDGS

from gateway.errors import ProviderFailure, UnrecognizedToolResult
from gateway.generator import SEARCH_TOOL_NAME
from gateway.settings import GatewaySettings, get_settings
from gateway.sources import parse_tool_result
from gateway.types import InvocationResult, SearchToolResult, Source, Step, Usage

logger = logging.getLogger(__name__)

WEB_SEARCH_FUNCTION: dict[str, Any] = {
    "type": "function",
    "function": {
        "name": SEARCH_TOOL_NAME,
        "description": (
            "Search the web for current, real-world information. "
            "Returns a list of results with title, url and snippet."
        ),
        "parameters": {
            "type": "object",
            "required": ["query"],
            "properties": {
                "query": {
                    "type": "string",
                    "description": "The search query string.",
                },
            },
        },
    },
}

SearchFn = Callable[[str, int], list[dict[str, Any]]]

# ---------------------------------------------------------------------------
# Web search tool
# ---------------------------------------------------------------------------


def search_web(query: str, max_results: int = 8) -> list[dict[str, Any]]:
    """Run a DuckDuckGo text search and return ``{title, url, snippet}`` hits.

    Raises:
        ProviderFailure: If DuckDuckGo fails.
    """
    logger.info("[web_search] query=%r max_results=%d", query, max_results)
    try:
        with DDGS() as ddgs:
            hits = [
                {"title": r.get("title", ""), "url": r.get("href", ""), "snippet": r.get("body", "")}
                for r in ddgs.text(query, max_results=max_results)
            ]
    except Exception as exc:
        logger.error("[web_search] DDG failure: %s", exc, exc_info=True)
        raise ProviderFailure(f"web search failed: {exc}") from exc
    logger.info("[web_search] returned %d results", len(hits))
    return hits


# ---------------------------------------------------------------------------
# Response parsing
# ---------------------------------------------------------------------------


def _str_content(val: None | str | list[dict[str, Any]]) -> str:
    """Normalise a chat message ``content`` value to a plain string."""
    if val is None:
        return ""
    if isinstance(val, str):
        return val
    if isinstance(val, list):
        parts: list[str] = []
        for item in val:
            if isinstance(item, dict):
                parts.append(str(item.get("text") or ""))
            else:
                parts.append(str(item))
        return "".join(parts)
    return str(val)


def _native_sources(body: dict[str, Any], message: dict[str, Any]) -> list[Source]:
    sources: list[Source] = []
    for item in body.get("search_results") or []:
        if isinstance(item, dict):
            sources.append(Source(title=item.get("title") or None, url=item.get("url") or None))
    for url in body.get("citations") or []:
        if isinstance(url, str) and url:
            sources.append(Source(url=url))
    for annotation in message.get("annotations") or []:
        if not isinstance(annotation, dict) or annotation.get("type") != "url_citation":
            continue
        citation = annotation.get("url_citation") or annotation
        sources.append(
            Source(title=citation.get("title") or None, url=citation.get("url") or None)
        )
    return sources


def _usage(body: dict[str, Any]) -> Usage | None:
    raw = body.get("usage")
    if not isinstance(raw, dict):
        return None
    return Usage(
        input_tokens=int(raw.get("prompt_tokens") or 0),
        output_tokens=int(raw.get("completion_tokens") or 0),
    )


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class GatewayClient:
    """``ModelInvoker`` implementation backed by ``httpx.AsyncClient``.

    Args:
        settings: Gateway settings; the process-wide settings when omitted.
        transport: Optional ``httpx`` transport (tests pass a MockTransport).
        search: Web search function; DuckDuckGo when omitted.
    """

    def __init__(
        self,
        settings: GatewaySettings | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        search: SearchFn | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._transport = transport
        self._search = search or search_web

    @property
    def completions_url(self) -> str:
        return self.settings.ai_gateway_base_url.rstrip("/") + "/chat/completions"

    def _build_payload(
        self,
        model_id: str,
        prompt: str,
        system: str | None,
        max_tokens: int | None,
        tools: tuple[str, ...] | None,
    ) -> dict[str, Any]:
        messages: list[dict[str, str]] = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        payload: dict[str, Any] = {"model": model_id, "messages": messages, "stream": False}
        if max_tokens is not None:
            payload["max_tokens"] = max_tokens
        if tools:
            unknown = [t for t in tools if t != SEARCH_TOOL_NAME]
            if unknown:
                raise ValueError(f"Unsupported tools: {', '.join(unknown)}")
            payload["tools"] = [WEB_SEARCH_FUNCTION]
            payload["tool_choice"] = "required"
        return payload

    async def _post(self, payload: dict[str, Any]) -> dict[str, Any]:
        if not self.settings.ai_gateway_api_key:
            raise ProviderFailure("AI_GATEWAY_API_KEY is not set")

        headers = {
            "Authorization": f"Bearer {self.settings.ai_gateway_api_key}",
            "Content-Type": "application/json",
        }
        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=None) as http:
                response = await http.post(self.completions_url, json=payload, headers=headers)
                response.raise_for_status()
                return response.json()
        except httpx.HTTPStatusError as exc:
            detail = exc.response.text[:300]
            raise ProviderFailure(f"HTTP {exc.response.status_code}: {detail}") from exc
        except httpx.HTTPError as exc:
            raise ProviderFailure(f"{type(exc).__name__}: {exc}") from exc

    async def _run_tool_calls(self, tool_calls: list[dict[str, Any]], prompt: str) -> list[Step]:
        steps: list[Step] = []
        for call in tool_calls:
            function = call.get("function") or {}
            name = function.get("name")
            if name != SEARCH_TOOL_NAME:
                raise UnrecognizedToolResult(f"Model called an unknown tool: {name!r}")
            try:
                arguments = json.loads(function.get("arguments") or "{}")
            except json.JSONDecodeError:
                logger.warning("[gateway] unparseable tool arguments, searching the prompt")
                arguments = {}
            query = str(arguments.get("query") or prompt)
            hits = await asyncio.to_thread(self._search, query, self.settings.search_max_results)
            result: SearchToolResult = parse_tool_result({"output": {"results": hits}}, name)
            steps.append(Step(tool_results=(result,)))
        return steps

    async def invoke(
        self,
        model_id: str,
        prompt: str,
        *,
        system: str | None = None,
        max_tokens: int | None = None,
        tools: tuple[str, ...] | None = None,
    ) -> InvocationResult:
        """Invoke one model once.

        Raises:
            ProviderFailure: On HTTP, network, auth or search failure.
            UnrecognizedToolResult: If the model calls a tool that was not offered.
        """
        payload = self._build_payload(model_id, prompt, system, max_tokens, tools)
        logger.info("[gateway] model=%s url=%s tools=%s", model_id, self.completions_url, tools)
        body = await self._post(payload)

        choices = body.get("choices") or [{}]
        message: dict[str, Any] = choices[0].get("message") or {}
        text = _str_content(message.get("content"))
        steps = await self._run_tool_calls(message.get("tool_calls") or [], prompt) if tools else []

        logger.info(
            "[gateway] model=%s chars=%d tool_steps=%d finish=%s",
            model_id,
            len(text),
            len(steps),
            choices[0].get("finish_reason"),
        )
        return InvocationResult(
            text=text,
            sources=tuple(_native_sources(body, message)),
            steps=tuple(steps),
            usage=_usage(body),
        )
