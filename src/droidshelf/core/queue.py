"""Event emitter and deduplicated extraction queues.

Each queue owns at most one worker task, which drains the queue to empty
one package at a time. Enqueueing while the worker runs only extends the
queue.
"""

import asyncio
import logging
from collections import deque
from collections.abc import Awaitable, Callable, Iterable
from typing import Any

from droidshelf.models.package import EventName, ExtractionTask, TaskKind, TaskStatus

logger = logging.getLogger(__name__)

EventCallback = Callable[[EventName, Any], None]
Handler = Callable[[str], Awaitable[bool]]
Gate = Callable[[str], bool]


class EventEmitter:
    """Synchronous fan-out of extraction events to subscribers.

    Example:
        emitter = EventEmitter()
        emitter.subscribe(EventName.LABEL_UPDATED, lambda name, payload: ...)
        emitter.emit(EventName.LABEL_UPDATED, LabelUpdate(...))
    """

    def __init__(self) -> None:
        self._subscribers: dict[EventName, list[EventCallback]] = {}

    def subscribe(self, event: EventName, callback: EventCallback) -> None:
        callbacks = self._subscribers.setdefault(event, [])
        if callback not in callbacks:
            callbacks.append(callback)

    def subscribe_all(self, callback: EventCallback) -> None:
        """Subscribe one callback to every event."""
        for event in EventName:
            self.subscribe(event, callback)

    def unsubscribe(self, event: EventName, callback: EventCallback) -> None:
        callbacks = self._subscribers.get(event, [])
        if callback in callbacks:
            callbacks.remove(callback)

    def emit(self, event: EventName, payload: Any) -> None:
        """Deliver ``payload`` to every subscriber of ``event``.

        A failing subscriber is logged and does not stop delivery.
        """
        logger.debug("event %s: %s", event.value, payload)
        for callback in list(self._subscribers.get(event, [])):
            try:
                callback(event, payload)
            except Exception:
                logger.exception("Subscriber failed on %s", event.value)


class ExtractionQueue:
    """FIFO of packages with O(1) de-duplication and a single worker.

    Args:
        kind: Which extraction this queue performs.
        handler: Coroutine resolving one package; returns success.
        should_enqueue: Optional gate consulted for every candidate;
            packages it rejects are skipped.
    """

    def __init__(
        self,
        kind: TaskKind,
        handler: Handler,
        should_enqueue: Gate | None = None,
    ):
        self.kind = kind
        self.handler = handler
        self.should_enqueue = should_enqueue
        self.tasks: dict[str, ExtractionTask] = {}
        self._queue: deque[str] = deque()
        self._pending: set[str] = set()
        self._worker: asyncio.Task[None] | None = None

    def __len__(self) -> int:
        return len(self._queue)

    def __contains__(self, package: object) -> bool:
        return package in self._pending

    @property
    def busy(self) -> bool:
        return self._worker is not None and not self._worker.done()

    def enqueue(self, packages: Iterable[str], gate: Gate | None = None) -> list[str]:
        """Queue packages that are not already pending and pass the gates.

        Must be called from the running event loop.

        Returns:
            The packages actually queued, in order.
        """
        accepted = []
        for raw in packages:
            package = raw.strip()
            if not package or package in self._pending:
                continue
            if self.should_enqueue is not None and not self.should_enqueue(package):
                continue
            if gate is not None and not gate(package):
                continue

            self._pending.add(package)
            self._queue.append(package)
            self.tasks[package] = ExtractionTask(package=package, kind=self.kind)
            accepted.append(package)

        if accepted:
            logger.debug(
                "%s queue: +%d (%d queued)", self.kind, len(accepted), len(self)
            )
        if self._queue and not self.busy:
            self._worker = asyncio.create_task(self._drain())
        return accepted

    async def _drain(self) -> None:
        while self._queue:
            package = self._queue.popleft()
            self._pending.discard(package)

            task = self.tasks.setdefault(
                package, ExtractionTask(package=package, kind=self.kind)
            )
            task.status = TaskStatus.RUNNING
            try:
                success = await self.handler(package)
            except Exception:
                logger.exception("%s extraction crashed for %s", self.kind, package)
                success = False
            task.status = TaskStatus.COMPLETED if success else TaskStatus.FAILED

    async def wait_idle(self) -> None:
        """Wait until the worker has drained the queue."""
        while self._worker is not None and not self._worker.done():
            await asyncio.shield(self._worker)
