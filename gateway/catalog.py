"""gateway/catalog.py

Static model catalog and its read-only accessor.

Prices are USD per 1M tokens.  The table is built once at import time and
never mutated; every accessor returning a list returns a fresh list.
"""

from __future__ import annotations

import dataclasses
from typing import Final, Literal

from gateway.errors import UnknownModelError, UnsupportedCapabilityError

ProviderId = Literal["openai", "anthropic", "google", "perplexity"]
CapabilityFilter = Literal["search", "reasoning", "fast", "cheap", "code"]

PROVIDERS: Final[tuple[str, ...]] = ("openai", "anthropic", "google", "perplexity")
CAPABILITY_FILTERS: Final[tuple[str, ...]] = ("search", "reasoning", "fast", "cheap", "code")

# ---------------------------------------------------------------------------
# Model definition
# ---------------------------------------------------------------------------


@dataclasses.dataclass(frozen=True, slots=True)
class Capabilities:
    search: bool = False
    reasoning: bool = False
    coding: bool = False
    fast: bool = False
    cheap: bool = False


@dataclasses.dataclass(frozen=True, slots=True)
class Pricing:
    input: float
    output: float
    cached_input: float | None = None


@dataclasses.dataclass(frozen=True, slots=True)
class SearchCost:
    """How a provider bills web search.

    Attributes:
        type: ``"per_request"``, ``"token_based"`` or ``"included"``.
        description: Human-readable summary shown by ``list_models``.
        cost_per_request: USD per search request, for ``per_request`` billing.
    """

    type: Literal["per_request", "token_based", "included"]
    description: str
    cost_per_request: float | None = None


@dataclasses.dataclass(frozen=True, slots=True)
class ModelDefinition:
    """Catalog entry for one model.

    Attributes:
        id: ``provider/name`` identifier, globally unique.
        provider: Provider tag.
        display_name: Human-readable name.
        context_window: Context window in tokens.
        capabilities: Boolean capability flags.
        pricing: Per-1M-token prices.
        search_cost: Search billing, for search-capable models.
        max_output_tokens: Default output ceiling.
        released_at: ISO release date.
        note: Short positioning note.
    """

    id: str
    provider: ProviderId
    display_name: str
    context_window: int
    capabilities: Capabilities
    pricing: Pricing
    search_cost: SearchCost | None = None
    max_output_tokens: int | None = None
    released_at: str | None = None
    note: str | None = None


_OPENAI_SEARCH = SearchCost(
    type="token_based",
    description="Search results are billed as input tokens (large inflation)",
)
_ANTHROPIC_SEARCH = SearchCost(
    type="per_request",
    cost_per_request=0.01,
    description="$0.01/search + search results billed as input (dynamic filtering)",
)
_GOOGLE_SEARCH = SearchCost(
    type="per_request",
    cost_per_request=0.014,
    description="$0.014/query, no input-token inflation, 5,000 free queries/month",
)
_SONAR_SEARCH = SearchCost(
    type="per_request",
    cost_per_request=0.005,
    description="$0.005/search request, no input-token inflation",
)
_SONAR_PRO_SEARCH = SearchCost(
    type="per_request",
    cost_per_request=0.005,
    description="$0.005/search request (up to 5 internal searches), no input-token inflation",
)

MODELS: Final[tuple[ModelDefinition, ...]] = (
    # --- OpenAI ---
    ModelDefinition(
        id="openai/gpt-5.2",
        provider="openai",
        display_name="GPT-5.2",
        context_window=400_000,
        capabilities=Capabilities(search=True, reasoning=True, coding=True),
        pricing=Pricing(input=1.75, cached_input=0.4375, output=14.0),
        search_cost=_OPENAI_SEARCH,
        max_output_tokens=128_000,
        released_at="2025-12-11",
        note="Flagship, default for ask",
    ),
    ModelDefinition(
        id="openai/gpt-5.2-codex",
        provider="openai",
        display_name="GPT-5.2 Codex",
        context_window=400_000,
        capabilities=Capabilities(search=True, reasoning=True, coding=True),
        pricing=Pricing(input=1.75, cached_input=0.4375, output=14.0),
        search_cost=_OPENAI_SEARCH,
        max_output_tokens=128_000,
        released_at="2026-01-14",
        note="Code-specialised",
    ),
    ModelDefinition(
        id="openai/gpt-5-mini",
        provider="openai",
        display_name="GPT-5 Mini",
        context_window=400_000,
        capabilities=Capabilities(search=True, reasoning=True, coding=True, fast=True, cheap=True),
        pricing=Pricing(input=0.25, cached_input=0.0625, output=2.0),
        search_cost=_OPENAI_SEARCH,
        max_output_tokens=128_000,
        released_at="2025-08-07",
        note="Balanced",
    ),
    ModelDefinition(
        id="openai/gpt-5-nano",
        provider="openai",
        display_name="GPT-5 Nano",
        context_window=400_000,
        capabilities=Capabilities(fast=True, cheap=True),
        pricing=Pricing(input=0.05, cached_input=0.0125, output=0.4),
        max_output_tokens=128_000,
        released_at="2025-08-07",
        note="Cheapest",
    ),
    ModelDefinition(
        id="openai/gpt-oss-120b",
        provider="openai",
        display_name="GPT-OSS 120B",
        context_window=131_000,
        capabilities=Capabilities(reasoning=True, coding=True, fast=True, cheap=True),
        pricing=Pricing(input=0.1, cached_input=0.025, output=0.5),
        max_output_tokens=32_768,
        released_at="2025-08-05",
        note="Open weights, no search",
    ),
    # --- Anthropic ---
    ModelDefinition(
        id="anthropic/claude-opus-4.6",
        provider="anthropic",
        display_name="Claude Opus 4.6",
        context_window=1_000_000,
        capabilities=Capabilities(search=True, reasoning=True, coding=True),
        pricing=Pricing(input=5.0, cached_input=0.5, output=25.0),
        search_cost=_ANTHROPIC_SEARCH,
        max_output_tokens=128_000,
        released_at="2026-02-05",
        note="Most capable",
    ),
    ModelDefinition(
        id="anthropic/claude-sonnet-4.6",
        provider="anthropic",
        display_name="Claude Sonnet 4.6",
        context_window=1_000_000,
        capabilities=Capabilities(search=True, reasoning=True, coding=True),
        pricing=Pricing(input=3.0, cached_input=0.3, output=15.0),
        search_cost=_ANTHROPIC_SEARCH,
        max_output_tokens=128_000,
        released_at="2026-02-17",
        note="Balanced",
    ),
    ModelDefinition(
        id="anthropic/claude-haiku-4.5",
        provider="anthropic",
        display_name="Claude Haiku 4.5",
        context_window=200_000,
        capabilities=Capabilities(search=True, coding=True, fast=True, cheap=True),
        pricing=Pricing(input=1.0, cached_input=0.1, output=5.0),
        search_cost=_ANTHROPIC_SEARCH,
        max_output_tokens=64_000,
        released_at="2025-10-15",
        note="Fast",
    ),
    # --- Google ---
    ModelDefinition(
        id="google/gemini-3-flash",
        provider="google",
        display_name="Gemini 3 Flash",
        context_window=1_000_000,
        capabilities=Capabilities(search=True, coding=True, fast=True, cheap=True),
        pricing=Pricing(input=0.5, cached_input=0.125, output=3.0),
        search_cost=_GOOGLE_SEARCH,
        max_output_tokens=8_192,
        released_at="2025-12-17",
        note="Best value",
    ),
    ModelDefinition(
        id="google/gemini-3.1-pro-preview",
        provider="google",
        display_name="Gemini 3.1 Pro Preview",
        context_window=1_000_000,
        capabilities=Capabilities(search=True, reasoning=True, coding=True),
        pricing=Pricing(input=2.0, cached_input=0.5, output=12.0),
        search_cost=_GOOGLE_SEARCH,
        max_output_tokens=65_536,
        released_at="2026-02-19",
        note="High capability, successor to Gemini 3 Pro",
    ),
    # --- Perplexity ---
    ModelDefinition(
        id="perplexity/sonar",
        provider="perplexity",
        display_name="Perplexity Sonar",
        context_window=127_000,
        capabilities=Capabilities(search=True, fast=True, cheap=True),
        pricing=Pricing(input=1.0, output=1.0),
        search_cost=_SONAR_SEARCH,
        max_output_tokens=16_384,
        released_at="2025-01-21",
        note="Native search, default for research search mode",
    ),
    ModelDefinition(
        id="perplexity/sonar-pro",
        provider="perplexity",
        display_name="Perplexity Sonar Pro",
        context_window=200_000,
        capabilities=Capabilities(search=True),
        pricing=Pricing(input=3.0, output=15.0),
        search_cost=_SONAR_PRO_SEARCH,
        max_output_tokens=16_384,
        released_at="2025-01-21",
        note="High-precision search",
    ),
    ModelDefinition(
        id="perplexity/sonar-reasoning-pro",
        provider="perplexity",
        display_name="Perplexity Sonar Reasoning Pro",
        context_window=127_000,
        capabilities=Capabilities(search=True, reasoning=True),
        pricing=Pricing(input=2.0, output=8.0),
        search_cost=_SONAR_PRO_SEARCH,
        max_output_tokens=16_384,
        released_at="2025-03-07",
        note="Reasoning plus high-precision search",
    ),
)

# ---------------------------------------------------------------------------
# Accessor
# ---------------------------------------------------------------------------


def _has_capability(model: ModelDefinition, capability: str) -> bool:
    caps = model.capabilities
    if capability == "search":
        return caps.search
    if capability == "reasoning":
        return caps.reasoning
    if capability == "fast":
        return caps.fast
    if capability == "cheap":
        return caps.cheap
    if capability == "code":
        return caps.coding
    raise ValueError(f"Unknown capability filter: {capability!r}")


class ModelCatalog:
    """Read-only lookup over a fixed set of model definitions.

    Safe to share across concurrent requests: no method mutates state.
    """

    def __init__(self, models: tuple[ModelDefinition, ...] | list[ModelDefinition] = MODELS) -> None:
        self._models: tuple[ModelDefinition, ...] = tuple(models)
        self._by_id: dict[str, ModelDefinition] = {m.id: m for m in self._models}

    def get(self, model_id: str) -> ModelDefinition:
        """Return the definition for ``model_id``.

        Raises:
            UnknownModelError: If the identifier is not in the catalog.
        """
        try:
            return self._by_id[model_id]
        except KeyError:
            raise UnknownModelError(model_id) from None

    def all_models(self) -> list[ModelDefinition]:
        return list(self._models)

    def by_provider(self, provider: str) -> list[ModelDefinition]:
        return [m for m in self._models if m.provider == provider]

    def by_capability(self, capability: CapabilityFilter | str) -> list[ModelDefinition]:
        """Filter by capability; ``"code"`` selects the ``coding`` flag.

        Raises:
            ValueError: If ``capability`` is not one of CAPABILITY_FILTERS.
        """
        if capability not in CAPABILITY_FILTERS:
            raise ValueError(f"Unknown capability filter: {capability!r}")
        return [m for m in self._models if _has_capability(m, capability)]

    def search_capable(self) -> list[ModelDefinition]:
        return [m for m in self._models if m.capabilities.search]

    def all_ids(self) -> list[str]:
        return [m.id for m in self._models]

    def is_valid(self, model_id: object) -> bool:
        """Return True when ``model_id`` names a catalog model.  Never raises."""
        return isinstance(model_id, str) and model_id in self._by_id

    def require_capability(self, model_ids: list[str], capability: CapabilityFilter | str) -> None:
        """Check that every model exists and has ``capability``.

        Raises:
            UnknownModelError: For the first identifier not in the catalog.
            UnsupportedCapabilityError: Naming every model lacking the capability.
        """
        lacking = [m for m in model_ids if not _has_capability(self.get(m), capability)]
        if lacking:
            raise UnsupportedCapabilityError(lacking, capability)


catalog: ModelCatalog = ModelCatalog()
