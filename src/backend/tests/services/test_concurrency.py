"""
Tests for the optimistic load/mutate/save retry loop.
"""

from unittest.mock import AsyncMock

import pytest

from core.exceptions import ConcurrencyConflictError, IneligibleError
from services.concurrency import update_with_retry


@pytest.mark.unit
class TestUpdateWithRetry:
    async def test_returns_saved_document_and_mutation_result(self):
        load = AsyncMock(return_value={"n": 1})
        save = AsyncMock(side_effect=lambda doc: {**doc, "saved": True})

        def mutate(doc):
            doc["n"] += 1
            return "ok"

        saved, result = await update_with_retry(load, mutate, save)

        assert saved == {"n": 2, "saved": True}
        assert result == "ok"
        load.assert_awaited_once()

    async def test_reloads_after_conflict(self):
        load = AsyncMock(side_effect=[{"n": 1}, {"n": 5}])
        save = AsyncMock(side_effect=[ConcurrencyConflictError("stale"), {"n": 6}])

        def mutate(doc):
            doc["n"] += 1

        saved, _ = await update_with_retry(load, mutate, save)

        assert saved == {"n": 6}
        assert load.await_count == 2
        assert save.await_count == 2

    async def test_gives_up_after_max_attempts(self):
        load = AsyncMock(return_value={})
        save = AsyncMock(side_effect=ConcurrencyConflictError("stale"))

        with pytest.raises(ConcurrencyConflictError):
            await update_with_retry(load, lambda doc: None, save, attempts=3)

        assert save.await_count == 3

    async def test_domain_errors_are_not_retried(self):
        load = AsyncMock(return_value={})
        save = AsyncMock()

        def mutate(doc):
            raise IneligibleError("closed")

        with pytest.raises(IneligibleError):
            await update_with_retry(load, mutate, save)

        load.assert_awaited_once()
        save.assert_not_awaited()
