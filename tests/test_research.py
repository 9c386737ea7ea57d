"""tests/test_research.py

Unit tests for the multi-model research pipeline (gateway/research.py).
"""

from __future__ import annotations

# Third-Party Libraries
import pytest

# Local Modules
from gateway.errors import ProviderFailure
from gateway.research import (
    RESEARCH_SYSTEM_PROMPT,
    SYNTHESIS_SYSTEM_PROMPT,
    ResearchDefaults,
    ResearchPipeline,
)
from gateway.types import InvocationResult, Source, Usage

SONAR = "perplexity/sonar"
FLASH = "google/gemini-3-flash"
NANO = "openai/gpt-5-nano"
SYNTH = "openai/gpt-5.2"

S1 = Source(title="One", url="https://one.example")
S2 = Source(title="Two", url="https://two.example")
S3 = Source(title="Three", url="https://three.example")


def _synthesis_calls(invoker):
    return [c for c in invoker.calls if c.system == SYNTHESIS_SYSTEM_PROMPT]


class TestValidation:
    """Rejections happen before any provider call."""

    @pytest.mark.asyncio
    async def test_non_search_model_in_search_mode(self, invoker, pipeline) -> None:
        response = await pipeline.run("q", mode="search", models=[NANO, SONAR])
        assert response.is_error is True
        assert NANO in response.text
        assert SONAR not in response.text
        assert invoker.calls == []

    @pytest.mark.asyncio
    async def test_non_search_model_allowed_in_ask_mode(self, invoker, pipeline) -> None:
        response = await pipeline.run("q", mode="ask", models=[NANO, SONAR], synthesize=False)
        assert response.is_error is None
        assert len(invoker.calls) == 2

    @pytest.mark.asyncio
    async def test_unknown_models_listed_with_catalog(self, invoker, pipeline) -> None:
        response = await pipeline.run("q", models=["acme/one", SONAR, "acme/two"])
        assert response.is_error is True
        assert response.text.startswith("Unknown models: acme/one, acme/two\nAvailable: ")
        assert SYNTH in response.text
        assert invoker.calls == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("models", [[SONAR], [SONAR, FLASH, SONAR, FLASH, SONAR]])
    async def test_model_count_bounds(self, invoker, pipeline, models) -> None:
        response = await pipeline.run("q", models=models)
        assert response.is_error is True
        assert invoker.calls == []

    @pytest.mark.asyncio
    async def test_unknown_synthesis_model(self, invoker, pipeline) -> None:
        """An invalid synthesis model is rejected before the query stage."""
        response = await pipeline.run("q", models=[SONAR, FLASH], synthesis_model="acme/x")
        assert response.is_error is True
        assert response.text == "Unknown synthesis model: acme/x"
        assert invoker.calls == []

    @pytest.mark.asyncio
    async def test_synthesis_model_ignored_without_synthesis(self, invoker, pipeline) -> None:
        response = await pipeline.run(
            "q", models=[SONAR, FLASH], synthesize=False, synthesis_model="acme/x"
        )
        assert response.is_error is None

    @pytest.mark.asyncio
    async def test_unknown_mode(self, invoker, pipeline) -> None:
        response = await pipeline.run("q", mode="debate", models=[SONAR, FLASH])
        assert response.is_error is True
        assert invoker.calls == []


class TestSideBySide:
    """synthesize=False rendering."""

    @pytest.mark.asyncio
    async def test_sections_per_model_and_no_synthesis(self, invoker, pipeline) -> None:
        invoker.script(SONAR, "Sonar says the sky is blue.")
        invoker.script(FLASH, "Flash says the sky is azure.")
        response = await pipeline.run("sky colour?", models=[SONAR, FLASH], synthesize=False)

        text = response.text
        assert text.startswith("# Multi-Model Search\n\n**Query**: sky colour?")
        assert f"## {SONAR}" in text
        assert f"## {FLASH}" in text
        assert "Sonar says the sky is blue." in text
        assert "Flash says the sky is azure." in text
        assert text.index(SONAR) < text.index(FLASH)
        assert len(invoker.calls) == 2
        assert _synthesis_calls(invoker) == []

    @pytest.mark.asyncio
    async def test_section_metadata(self, invoker, pipeline) -> None:
        invoker.script(SONAR, InvocationResult(text="answer", usage=Usage(1_000, 2_000)))
        response = await pipeline.run("q", models=[SONAR, FLASH], synthesize=False)
        assert "**Latency**: " in response.text
        assert "**Pricing**: $1/$1 per 1M tokens" in response.text
        assert "**Pricing**: $0.5/$3 per 1M tokens" in response.text
        assert "**Est. cost**: $0.0030" in response.text

    @pytest.mark.asyncio
    async def test_ask_mode_title(self, invoker, pipeline) -> None:
        response = await pipeline.run("q", mode="ask", models=[SONAR, FLASH], synthesize=False)
        assert response.text.startswith("# Multi-Model Q&A")

    @pytest.mark.asyncio
    async def test_failed_branch_is_rendered_not_fatal(self, invoker, pipeline) -> None:
        invoker.script(FLASH, ProviderFailure("503"))
        response = await pipeline.run("q", models=[SONAR, FLASH], synthesize=False)
        assert response.is_error is None
        assert f"Error ({FLASH}): 503" in response.text

    @pytest.mark.asyncio
    async def test_per_model_sources_blocks(self, invoker, pipeline) -> None:
        invoker.script(SONAR, InvocationResult(text="answer one", sources=(S1,)))
        invoker.script(FLASH, InvocationResult(text="answer two", sources=(S1, S2)))
        response = await pipeline.run(
            "q", models=[SONAR, FLASH], synthesize=False, include_sources=True
        )
        assert response.text.count("**Sources**") == 2
        assert [s.url for s in response.sources] == [S1.url, S2.url]


class TestSynthesis:
    """synthesize=True flow."""

    @pytest.mark.asyncio
    async def test_synthesis_prompt_contains_every_answer(self, invoker, pipeline) -> None:
        invoker.script(SONAR, "Sonar answer text.")
        invoker.script(FLASH, ProviderFailure("boom"))
        invoker.script(SYNTH, "Final synthesized report.")
        response = await pipeline.run("topic", models=[SONAR, FLASH])

        assert response.text == "Final synthesized report."
        (call,) = _synthesis_calls(invoker)
        assert call.model_id == SYNTH
        assert call.tools is None
        assert "from 2 different AI models" in call.prompt
        assert f"## {SONAR}\nSonar answer text." in call.prompt
        assert f"Error ({FLASH}): boom" in call.prompt

    @pytest.mark.asyncio
    async def test_merged_sources_once(self, invoker, pipeline) -> None:
        """Overlapping URLs appear exactly once in a single Sources section."""
        invoker.script(SONAR, InvocationResult(text="first answer", sources=(S1, S2)))
        invoker.script(FLASH, InvocationResult(text="second answer", sources=(S2, S3)))
        invoker.script(SYNTH, "Synthesized.")
        response = await pipeline.run("q", models=[SONAR, FLASH], include_sources=True)

        assert response.text.count("**Sources**") == 1
        for source in (S1, S2, S3):
            assert response.text.count(source.url) == 1
        payload = response.to_payload()
        assert [s["url"] for s in payload["sources"]] == [S1.url, S2.url, S3.url]
        assert "durationMs" in payload

    @pytest.mark.asyncio
    async def test_no_sources_block_by_default(self, invoker, pipeline) -> None:
        invoker.script(SONAR, InvocationResult(text="first answer", sources=(S1,)))
        invoker.script(SYNTH, "Synthesized.")
        response = await pipeline.run("q", models=[SONAR, FLASH])
        assert "**Sources**" not in response.text
        assert response.sources is not None

    @pytest.mark.asyncio
    async def test_synthesis_failure_is_error(self, invoker, pipeline) -> None:
        invoker.script(SYNTH, ProviderFailure("overloaded"))
        response = await pipeline.run("q", models=[SONAR, FLASH])
        assert response.is_error is True
        assert response.text == f"Error ({SYNTH}): overloaded"

    @pytest.mark.asyncio
    async def test_custom_synthesis_model_and_ceiling(self, invoker, pipeline) -> None:
        response = await pipeline.run(
            "q",
            models=[SONAR, FLASH],
            synthesis_model="anthropic/claude-opus-4.6",
            synthesis_max_tokens=777,
        )
        assert response.is_error is None
        (call,) = _synthesis_calls(invoker)
        assert call.model_id == "anthropic/claude-opus-4.6"
        assert call.max_tokens == 777


class TestDefaults:
    """Mode defaults for models and token ceilings."""

    @pytest.mark.asyncio
    async def test_search_defaults(self, invoker, pipeline) -> None:
        await pipeline.run("q")
        defaults = ResearchDefaults()
        query_calls = [c for c in invoker.calls if c.system == RESEARCH_SYSTEM_PROMPT]
        assert [c.model_id for c in query_calls] == list(defaults.search_models)
        assert all(c.tools == ("web_search",) for c in query_calls)
        assert all(c.max_tokens == 2000 for c in query_calls)
        (synthesis,) = _synthesis_calls(invoker)
        assert synthesis.model_id == SYNTH
        assert synthesis.max_tokens == 6000

    @pytest.mark.asyncio
    async def test_ask_defaults(self, invoker, pipeline) -> None:
        await pipeline.run("q", mode="ask")
        defaults = ResearchDefaults()
        query_calls = [c for c in invoker.calls if c.system != SYNTHESIS_SYSTEM_PROMPT]
        assert [c.model_id for c in query_calls] == list(defaults.ask_models)
        assert all(c.tools is None and c.system is None for c in query_calls)
        assert all(c.max_tokens == 4000 for c in query_calls)
        (synthesis,) = _synthesis_calls(invoker)
        assert synthesis.max_tokens == 8000

    @pytest.mark.asyncio
    async def test_explicit_max_tokens_scales_synthesis(self, invoker, pipeline) -> None:
        await pipeline.run("q", models=[SONAR, FLASH], max_tokens=500)
        (synthesis,) = _synthesis_calls(invoker)
        assert synthesis.max_tokens == 1500

    @pytest.mark.asyncio
    async def test_injected_defaults(self, invoker, generator) -> None:
        defaults = ResearchDefaults(search_models=(SONAR, FLASH), synthesis_model=FLASH)
        pipeline = ResearchPipeline(generator, defaults=defaults)
        await pipeline.run("q")
        assert [c.model_id for c in invoker.calls] == [SONAR, FLASH, FLASH]

    def test_default_models_exist_in_catalog(self, pipeline) -> None:
        defaults = ResearchDefaults()
        for model_id in (*defaults.search_models, *defaults.ask_models, defaults.synthesis_model):
            assert pipeline.catalog.is_valid(model_id), model_id
