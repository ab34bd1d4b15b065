"""
Optimistic concurrency for whole-document updates.

Every mutation of a debate or survey is a load -> mutate -> conditional
replace cycle. When the replace loses the race (etag mismatch) the whole
cycle runs again against a fresh copy, so concurrent votes and submissions
never overwrite each other's tallies.
"""

from typing import Awaitable, Callable, Optional, TypeVar

import structlog

from core.config import settings
from core.exceptions import ConcurrencyConflictError

logger = structlog.get_logger(__name__)

DocT = TypeVar("DocT")
ResultT = TypeVar("ResultT")


async def update_with_retry(
    load: Callable[[], Awaitable[DocT]],
    mutate: Callable[[DocT], ResultT],
    save: Callable[[DocT], Awaitable[DocT]],
    attempts: Optional[int] = None,
) -> tuple[DocT, ResultT]:
    """
    Run load/mutate/save until the save is not pre-empted.

    `mutate` must be free of side effects outside the document, since it may
    run more than once. Domain errors raised by `load` or `mutate` propagate
    immediately.

    Returns:
        (saved document, whatever mutate returned)

    Raises:
        ConcurrencyConflictError: If every attempt lost the race
    """
    attempts = attempts or settings.STORAGE_MAX_RETRIES
    for attempt in range(1, attempts + 1):
        document = await load()
        result = mutate(document)
        try:
            saved = await save(document)
        except ConcurrencyConflictError:
            logger.info("optimistic_update_conflict", attempt=attempt, max_attempts=attempts)
            continue
        return saved, result

    logger.warning("optimistic_update_exhausted", max_attempts=attempts)
    raise ConcurrencyConflictError("The record is busy, please try again")
