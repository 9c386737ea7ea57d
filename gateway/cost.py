"""gateway/cost.py

Cost hints derived from catalog pricing (USD per 1M tokens).
"""

from __future__ import annotations

from gateway.catalog import ModelDefinition
from gateway.types import Usage


def format_price(value: float) -> str:
    """Render a per-1M price without trailing zeros, e.g. ``1.75`` or ``14``."""
    return f"${value:g}"


def pricing_hint(model: ModelDefinition) -> str:
    """Return ``"$in/$out per 1M tokens"`` for a model."""
    return f"{format_price(model.pricing.input)}/{format_price(model.pricing.output)} per 1M tokens"


def estimate_cost(model: ModelDefinition, usage: Usage) -> float:
    """Estimate the USD cost of one call from its reported token usage."""
    input_cost = usage.input_tokens / 1_000_000 * model.pricing.input
    output_cost = usage.output_tokens / 1_000_000 * model.pricing.output
    return input_cost + output_cost


def format_cost(dollars: float) -> str:
    if dollars < 0.01:
        return f"${dollars:.4f}"
    return f"${dollars:.2f}"
