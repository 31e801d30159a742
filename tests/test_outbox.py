"""Tests for the deferred write queue."""

import pytest
from regscan.scanner.outbox import Outbox


class TestOutbox:
    @pytest.mark.asyncio
    async def test_same_name_replaces_pending_task(self):
        written = []
        outbox = Outbox()
        outbox.enqueue("rule-usage:1", lambda: written.append(1))
        outbox.enqueue("rule-usage:1", lambda: written.append(2))

        assert outbox.pending == ["rule-usage:1"]
        report = await outbox.drain()

        assert written == [2]
        assert report.done == 1

    @pytest.mark.asyncio
    async def test_drain_empties_queue(self):
        outbox = Outbox()
        outbox.enqueue("a", lambda: None)
        await outbox.drain()

        assert outbox.pending == []
        assert (await outbox.drain()).done == 0
