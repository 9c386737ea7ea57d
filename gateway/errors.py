"""gateway/errors.py

Exception taxonomy for the generation orchestration engine.

Only ``UnknownModelError`` and ``UnrecognizedToolResult`` ever escape a public
engine call; everything raised by a provider invocation is converted into an
error-flagged outcome at the generator boundary.
"""

from __future__ import annotations


class GatewayError(Exception):
    """Base class for every error raised by the gateway package."""


class UnknownModelError(GatewayError):
    """The model identifier is not present in the catalog."""

    def __init__(self, model_id: str) -> None:
        super().__init__(model_id)
        self.model_id = model_id

    def __str__(self) -> str:
        return f"Unknown model: {self.model_id}"


class UnsupportedCapabilityError(GatewayError):
    """A model lacks the capability the requested mode needs."""

    def __init__(self, model_ids: list[str], capability: str) -> None:
        super().__init__(f"{capability} not supported by: {', '.join(model_ids)}")
        self.model_ids = model_ids
        self.capability = capability


class ProviderFailure(GatewayError):
    """Network, auth, quota or timeout failure from a provider invocation."""


class UnrecognizedToolResult(GatewayError, ValueError):
    """A tool result or source channel has a shape the engine does not know."""
