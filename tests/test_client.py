"""tests/test_client.py

Unit tests for the gateway invocation client (gateway/client.py).
HTTP is served by ``httpx.MockTransport`` and DuckDuckGo is patched out, so
these tests are fully offline and deterministic.
"""

from __future__ import annotations

# Standard Library
import json
from typing import Any
from unittest.mock import MagicMock, patch

# Third-Party Libraries
import httpx
import pytest

# Local Modules
from gateway.client import GatewayClient, search_web
from gateway.errors import ProviderFailure, UnrecognizedToolResult
from gateway.generator import Generator
from gateway.settings import GatewaySettings
from gateway.types import GenerationRequest, Source, Usage

MODEL = "google/gemini-3-flash"

_MOCK_DDG_HITS: list[dict[str, str]] = [
    {"title": "Result A", "href": "https://example.com/a", "body": "Snippet A"},
    {"title": "Result B", "href": "https://example.com/b", "body": "Snippet B"},
]


def _settings(**overrides: Any) -> GatewaySettings:
    values: dict[str, Any] = {
        "ai_gateway_api_key": "test-key",
        "ai_gateway_base_url": "https://gateway.test/v1/",
        "search_max_results": 2,
    }
    values.update(overrides)
    return GatewaySettings(**values)


def _completion(content: Any = "", **extra: Any) -> dict[str, Any]:
    message: dict[str, Any] = {"role": "assistant", "content": content}
    message.update(extra.pop("message", {}))
    body: dict[str, Any] = {"choices": [{"message": message, "finish_reason": "stop"}]}
    body.update(extra)
    return body


def _tool_call(name: str = "web_search", arguments: str = '{"query": "python news"}') -> dict:
    return {"id": "call_1", "type": "function", "function": {"name": name, "arguments": arguments}}


class Recorder:
    """MockTransport handler replaying canned bodies and recording requests."""

    def __init__(self, *bodies: Any, status_code: int = 200) -> None:
        self.bodies = list(bodies)
        self.status_code = status_code
        self.requests: list[httpx.Request] = []

    @property
    def payloads(self) -> list[dict[str, Any]]:
        return [json.loads(r.content) for r in self.requests]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        body = self.bodies.pop(0) if len(self.bodies) > 1 else self.bodies[0]
        if isinstance(body, str):
            return httpx.Response(self.status_code, text=body)
        return httpx.Response(self.status_code, json=body)


def _client(recorder: Recorder, search: Any = None, **overrides: Any) -> GatewayClient:
    return GatewayClient(
        _settings(**overrides),
        transport=httpx.MockTransport(recorder),
        search=search or (lambda query, max_results: []),
    )


class TestRequest:
    """Shape of the outgoing chat-completions request."""

    @pytest.mark.asyncio
    async def test_plain_request(self) -> None:
        recorder = Recorder(_completion("Hello there"))
        result = await _client(recorder).invoke(MODEL, "hi", system="Be brief.", max_tokens=50)

        (request,) = recorder.requests
        assert str(request.url) == "https://gateway.test/v1/chat/completions"
        assert request.headers["Authorization"] == "Bearer test-key"
        payload = recorder.payloads[0]
        assert payload["model"] == MODEL
        assert payload["messages"] == [
            {"role": "system", "content": "Be brief."},
            {"role": "user", "content": "hi"},
        ]
        assert payload["max_tokens"] == 50
        assert "tools" not in payload
        assert result.text == "Hello there"
        assert result.steps == ()

    @pytest.mark.asyncio
    async def test_search_request_requires_tool(self) -> None:
        recorder = Recorder(_completion("answer"))
        await _client(recorder).invoke(MODEL, "hi", tools=("web_search",))
        payload = recorder.payloads[0]
        assert payload["tools"][0]["function"]["name"] == "web_search"
        assert payload["tool_choice"] == "required"
        assert "max_tokens" not in payload

    @pytest.mark.asyncio
    async def test_unsupported_tool_rejected(self) -> None:
        recorder = Recorder(_completion("x"))
        with pytest.raises(ValueError):
            await _client(recorder).invoke(MODEL, "hi", tools=("code_interpreter",))
        assert recorder.requests == []


class TestResponseParsing:
    """Text, native sources and usage."""

    @pytest.mark.asyncio
    async def test_usage(self) -> None:
        recorder = Recorder(_completion("ok", usage={"prompt_tokens": 5, "completion_tokens": 7}))
        result = await _client(recorder).invoke(MODEL, "hi")
        assert result.usage == Usage(5, 7)

    @pytest.mark.asyncio
    async def test_content_parts_are_joined(self) -> None:
        recorder = Recorder(_completion([{"type": "text", "text": "Hello "}, {"type": "text", "text": "world"}]))
        result = await _client(recorder).invoke(MODEL, "hi")
        assert result.text == "Hello world"

    @pytest.mark.asyncio
    async def test_native_sources(self) -> None:
        body = _completion(
            "cited answer",
            citations=["https://c.example"],
            search_results=[{"title": "SR", "url": "https://sr.example"}],
            message={
                "annotations": [
                    {"type": "url_citation", "url_citation": {"title": "N", "url": "https://n.example"}},
                    {"type": "url_citation", "title": "F", "url": "https://f.example"},
                    {"type": "file_citation", "file_id": "ignored"},
                ]
            },
        )
        result = await _client(Recorder(body)).invoke(MODEL, "hi")
        assert result.sources == (
            Source(title="SR", url="https://sr.example"),
            Source(url="https://c.example"),
            Source(title="N", url="https://n.example"),
            Source(title="F", url="https://f.example"),
        )


class TestToolCalls:
    """In-process execution of web_search tool calls."""

    @pytest.mark.asyncio
    async def test_tool_call_becomes_step(self) -> None:
        seen: list[tuple[str, int]] = []

        def fake_search(query: str, max_results: int) -> list[dict[str, Any]]:
            seen.append((query, max_results))
            return [{"title": "Hit", "url": "https://hit.example", "snippet": "S"}]

        recorder = Recorder(_completion(None, message={"tool_calls": [_tool_call()]}))
        result = await _client(recorder, search=fake_search).invoke(
            MODEL, "what's new?", tools=("web_search",)
        )

        assert seen == [("python news", 2)]
        assert result.text == ""
        (step,) = result.steps
        assert step.tool_results[0].tool_name == "web_search"
        assert step.tool_results[0].results == (
            Source(title="Hit", url="https://hit.example", snippet="S"),
        )

    @pytest.mark.asyncio
    async def test_bad_arguments_fall_back_to_prompt(self) -> None:
        seen: list[str] = []

        def fake_search(query: str, max_results: int) -> list[dict[str, Any]]:
            seen.append(query)
            return []

        recorder = Recorder(
            _completion("", message={"tool_calls": [_tool_call(arguments="{not json")]})
        )
        await _client(recorder, search=fake_search).invoke(MODEL, "the prompt", tools=("web_search",))
        assert seen == ["the prompt"]

    @pytest.mark.asyncio
    async def test_unknown_tool_call(self) -> None:
        recorder = Recorder(_completion("", message={"tool_calls": [_tool_call(name="rm_rf")]}))
        with pytest.raises(UnrecognizedToolResult):
            await _client(recorder).invoke(MODEL, "hi", tools=("web_search",))

    @pytest.mark.asyncio
    async def test_generator_falls_back_after_tool_call(self) -> None:
        """End to end: tool-only first turn, then a summarizing follow-up."""
        recorder = Recorder(
            _completion(None, message={"tool_calls": [_tool_call()]}),
            _completion("Python 3.14 is out."),
        )
        client = _client(
            recorder,
            search=lambda q, n: [{"title": "Release", "url": "https://py.example", "snippet": "3.14"}],
        )
        outcome = await Generator(client).generate(
            GenerationRequest(model_id=MODEL, prompt="python news?", use_search=True)
        )

        assert outcome.text == "Python 3.14 is out."
        assert len(recorder.requests) == 2
        follow_up = recorder.payloads[1]
        assert "tools" not in follow_up
        assert "https://py.example" in follow_up["messages"][-1]["content"]
        assert [s.url for s in outcome.sources] == ["https://py.example"]


class TestFailures:
    """Provider failures surface as ProviderFailure."""

    @pytest.mark.asyncio
    async def test_http_error(self) -> None:
        recorder = Recorder('{"error": "invalid api key"}', status_code=401)
        with pytest.raises(ProviderFailure, match="HTTP 401"):
            await _client(recorder).invoke(MODEL, "hi")

    @pytest.mark.asyncio
    async def test_network_error(self) -> None:
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = GatewayClient(_settings(), transport=httpx.MockTransport(refuse))
        with pytest.raises(ProviderFailure, match="ConnectError"):
            await client.invoke(MODEL, "hi")

    @pytest.mark.asyncio
    async def test_missing_api_key(self) -> None:
        recorder = Recorder(_completion("never"))
        with pytest.raises(ProviderFailure, match="AI_GATEWAY_API_KEY"):
            await _client(recorder, ai_gateway_api_key="").invoke(MODEL, "hi")
        assert recorder.requests == []

    @pytest.mark.asyncio
    async def test_generator_converts_http_error(self) -> None:
        recorder = Recorder("upstream down", status_code=503)
        outcome = await Generator(_client(recorder)).generate(
            GenerationRequest(model_id=MODEL, prompt="hi")
        )
        assert outcome.is_error is True
        assert outcome.text.startswith(f"Error ({MODEL}): HTTP 503")


def _ddgs_patch(hits: list[dict[str, str]] | None = None, error: Exception | None = None) -> MagicMock:
    """Return a MagicMock that behaves as the DDGS context manager."""
    mock_cls = MagicMock()
    mock_ctx = MagicMock()
    if error is not None:
        mock_ctx.text.side_effect = error
    else:
        mock_ctx.text.return_value = hits if hits is not None else _MOCK_DDG_HITS
    mock_cls.return_value.__enter__.return_value = mock_ctx
    mock_cls.return_value.__exit__.return_value = False
    return mock_cls


class TestSearchWeb:
    """DuckDuckGo-backed search function."""

    def test_maps_ddg_fields(self) -> None:
        with patch("gateway.client.DDGS", _ddgs_patch()):
            hits = search_web("query", max_results=2)
        assert hits[0] == {"title": "Result A", "url": "https://example.com/a", "snippet": "Snippet A"}
        assert len(hits) == 2

    def test_passes_max_results(self) -> None:
        mock_cls = _ddgs_patch([])
        with patch("gateway.client.DDGS", mock_cls):
            search_web("query", max_results=3)
        mock_cls.return_value.__enter__.return_value.text.assert_called_once_with("query", max_results=3)

    def test_failure_is_provider_failure(self) -> None:
        with patch("gateway.client.DDGS", _ddgs_patch(error=RuntimeError("ratelimit"))):
            with pytest.raises(ProviderFailure, match="ratelimit"):
                search_web("query")
