"""tests/conftest.py

Pytest configuration and shared fixtures for the gateway test suite.

``FakeInvoker`` stands in for the provider: each model gets a script of
results (or exceptions) consumed in order, the last entry repeating.
"""

from __future__ import annotations

# Standard Library
import asyncio
import dataclasses
from typing import Any

# Third-Party Libraries
import pytest

# Local Modules
from gateway.generator import Generator
from gateway.quality import QualityGate
from gateway.research import ResearchPipeline
from gateway.tools import GatewayTools
from gateway.types import InvocationResult


@dataclasses.dataclass
class Call:
    model_id: str
    prompt: str
    system: str | None
    max_tokens: int | None
    tools: tuple[str, ...] | None


class FakeInvoker:
    """Scripted ``ModelInvoker``.

    Args:
        default: Result returned for models with no script.
    """

    def __init__(self, default: InvocationResult | None = None) -> None:
        self.default = default or InvocationResult(text="A sufficiently long default answer.")
        self.scripts: dict[str, list[Any]] = {}
        self.delays: dict[str, float] = {}
        self.calls: list[Call] = []

    def script(self, model_id: str, *items: Any) -> FakeInvoker:
        """Queue results (InvocationResult, str or Exception) for ``model_id``."""
        self.scripts[model_id] = [
            InvocationResult(text=i) if isinstance(i, str) else i for i in items
        ]
        return self

    def delay(self, model_id: str, seconds: float) -> FakeInvoker:
        self.delays[model_id] = seconds
        return self

    def calls_for(self, model_id: str) -> list[Call]:
        return [c for c in self.calls if c.model_id == model_id]

    async def invoke(
        self,
        model_id: str,
        prompt: str,
        *,
        system: str | None = None,
        max_tokens: int | None = None,
        tools: tuple[str, ...] | None = None,
    ) -> InvocationResult:
        self.calls.append(Call(model_id, prompt, system, max_tokens, tools))
        if model_id in self.delays:
            await asyncio.sleep(self.delays[model_id])

        queue = self.scripts.get(model_id)
        if not queue:
            item: Any = self.default
        elif len(queue) == 1:
            item = queue[0]
        else:
            item = queue.pop(0)

        if isinstance(item, BaseException):
            raise item
        return item


@pytest.fixture
def invoker() -> FakeInvoker:
    """Create a fresh scripted invoker.

    Returns:
        FakeInvoker with no scripts.
    """
    return FakeInvoker()


@pytest.fixture
def generator(invoker: FakeInvoker) -> Generator:
    """Create a Generator over the fake invoker with a short deadline."""
    return Generator(invoker, timeout_s=5.0)


@pytest.fixture
def pipeline(generator: Generator) -> ResearchPipeline:
    return ResearchPipeline(generator)


@pytest.fixture
def tools(generator: Generator, tmp_path) -> GatewayTools:
    """Create tool handlers that log into a temporary directory."""
    return GatewayTools(generator, log_dir=tmp_path / "logs", gate=QualityGate())
