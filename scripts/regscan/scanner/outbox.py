"""
Deferred side-effect writes.

Writes that must not hold up the scan (such as rule usage counters) are
queued here and drained once the main pipeline has finished, so they are
observable and awaitable instead of racing in the background.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List

logger = logging.getLogger(__name__)


@dataclass
class OutboxReport:
    done: int = 0
    failed: List[str] = field(default_factory=list)


class Outbox:
    """Queue of named, synchronous side-effect callables.

    Names are unique: enqueueing under a pending name replaces that task.
    """

    def __init__(self) -> None:
        self._tasks: Dict[str, Callable[[], object]] = {}

    def enqueue(self, name: str, task: Callable[[], object]) -> None:
        self._tasks[name] = task

    @property
    def pending(self) -> List[str]:
        return list(self._tasks)

    async def drain(self) -> OutboxReport:
        """Run every queued task concurrently; failures are logged and counted."""
        tasks, self._tasks = list(self._tasks.items()), {}
        report = OutboxReport()
        if not tasks:
            return report

        results = await asyncio.gather(
            *(asyncio.to_thread(task) for _, task in tasks),
            return_exceptions=True,
        )
        for (name, _), result in zip(tasks, results):
            if isinstance(result, Exception):
                logger.warning("Deferred write %s failed: %s", name, result)
                report.failed.append(name)
            else:
                report.done += 1
        return report
