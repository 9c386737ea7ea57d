"""gateway/dispatcher.py

Parallel fan-out: run N generation requests concurrently and settle all of them.

The result list is always the same length as the input and aligned with it
by position, never by completion order.  A failing branch becomes an
error-flagged outcome with zero duration; it never cancels its siblings.
Cancelling the dispatch itself cancels every in-flight branch.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence

from gateway.generator import Generator, describe_error, error_outcome
from gateway.types import DispatchResult, GenerationRequest

logger = logging.getLogger(__name__)


async def _run_branch(generator: Generator, request: GenerationRequest) -> DispatchResult:
    try:
        outcome = await generator.generate(request)
    except Exception as exc:
        logger.error(
            "[dispatch] branch model=%s raised: %s", request.model_id, exc, exc_info=True
        )
        outcome = error_outcome(request.model_id, describe_error(exc))
    return DispatchResult(model_id=request.model_id, outcome=outcome)


async def generate_parallel(
    generator: Generator,
    requests: Sequence[GenerationRequest],
    *,
    deadline_s: float | None = None,
) -> list[DispatchResult]:
    """Dispatch every request concurrently and return order-aligned results.

    Args:
        generator: Generator used for each branch.
        requests: Requests in the order results must be returned.
        deadline_s: Optional batch deadline.  Branches still running when it
            expires are cancelled and reported as timed-out errors.

    Returns:
        One ``DispatchResult`` per request, in input order.
    """
    if not requests:
        return []

    logger.info(
        "[dispatch] %d branches: %s",
        len(requests),
        ", ".join(r.model_id for r in requests),
    )
    tasks = [asyncio.create_task(_run_branch(generator, r)) for r in requests]
    try:
        if deadline_s is None:
            return list(await asyncio.gather(*tasks))

        done, pending = await asyncio.wait(tasks, timeout=deadline_s)
    except asyncio.CancelledError:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise

    for task in pending:
        task.cancel()
    if pending:
        await asyncio.gather(*pending, return_exceptions=True)
        logger.warning("[dispatch] %d branches exceeded the %gs deadline", len(pending), deadline_s)

    results: list[DispatchResult] = []
    for request, task in zip(requests, tasks):
        if task in done:
            results.append(task.result())
        else:
            results.append(
                DispatchResult(
                    model_id=request.model_id,
                    outcome=error_outcome(
                        request.model_id, f"batch deadline of {deadline_s:g}s exceeded"
                    ),
                )
            )
    return results
