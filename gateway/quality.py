"""gateway/quality.py

Quality-gated retry loop for single-model search.

A search answer is "poor" when it is an error, empty, too short, or reads
like a "nothing found" reply (English or Japanese).  Poor answers are
re-requested sequentially, up to a bounded number of retries, and the most
recent attempt is returned whatever its quality.
"""

from __future__ import annotations

import dataclasses
import logging
import re
from functools import lru_cache
from typing import Final

from gateway.generator import EMPTY_RESPONSE_PLACEHOLDER, Generator
from gateway.types import GenerationOutcome, GenerationRequest

logger = logging.getLogger(__name__)

MAX_RETRIES: Final[int] = 3

DEFAULT_POOR_PATTERNS: Final[tuple[str, ...]] = (
    r"no (?:relevant )?(?:search )?results? (?:were |was )?found",
    r"unable to find",
    r"could(?: not|n't) find any",
    r"search returned no results",
    r"no (?:relevant )?information (?:was )?(?:found|available)",
    r"結果が見つかりません",
    r"見つかりませんでした",
    r"検索結果がありません",
    r"情報が見つかりません",
    re.escape(EMPTY_RESPONSE_PLACEHOLDER),
)


@lru_cache(maxsize=8)
def _compile(patterns: tuple[str, ...]) -> re.Pattern[str]:
    return re.compile("|".join(f"(?:{p})" for p in patterns), re.IGNORECASE)


@dataclasses.dataclass(frozen=True, slots=True)
class QualityGate:
    """Poor-result heuristic.

    Attributes:
        min_length: Trimmed answers shorter than this are poor.
        patterns: Regexes (case-insensitive) marking a "nothing found" answer.
    """

    min_length: int = 10
    patterns: tuple[str, ...] = DEFAULT_POOR_PATTERNS

    def is_poor(self, text: str, is_error: bool = False) -> bool:
        if is_error:
            return True
        stripped = text.strip()
        if not stripped or len(stripped) < self.min_length:
            return True
        return bool(self.patterns) and _compile(self.patterns).search(stripped) is not None

    def judge(self, outcome: GenerationOutcome) -> bool:
        return self.is_poor(outcome.text, outcome.is_error)


async def search_with_retry(
    generator: Generator,
    request: GenerationRequest,
    *,
    retries: int = 1,
    gate: QualityGate | None = None,
) -> GenerationOutcome:
    """Run a search request, retrying poor answers sequentially.

    Args:
        generator: Generator used for every attempt.
        request: The search request; search is forced on.
        retries: Extra attempts allowed after the first (0 to MAX_RETRIES).
        gate: Poor-result heuristic; the default gate when omitted.

    Returns:
        The outcome of the last attempt made.

    Raises:
        ValueError: If ``retries`` is outside 0..MAX_RETRIES.
    """
    if not 0 <= retries <= MAX_RETRIES:
        raise ValueError(f"retries must be between 0 and {MAX_RETRIES}, got {retries}")

    gate = gate or QualityGate()
    request = dataclasses.replace(request, use_search=True)

    outcome = await generator.generate(request)
    attempts = 0
    while gate.judge(outcome) and attempts < retries:
        attempts += 1
        logger.warning(
            "[search_retry] model=%s poor result, retry %d/%d",
            request.model_id,
            attempts,
            retries,
        )
        outcome = await generator.generate(request)

    if gate.judge(outcome):
        logger.warning(
            "[search_retry] model=%s still poor after %d retries", request.model_id, attempts
        )
    return outcome
