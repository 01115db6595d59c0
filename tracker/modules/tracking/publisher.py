"""Location publisher: push accepted positions to the shared store.

Publishing is fire-and-forget from the pipeline's point of view: ``submit``
never blocks and never raises. Writes for one agent go through a FIFO with a
single worker so they reach the store in submission order; different agents
get independent queues.
"""

from __future__ import annotations

import asyncio

import structlog

from modules.tracking.errors import PublishError
from modules.tracking.models import Coordinate
from modules.tracking.store import LocationStore, build_store
from shared.config import StoreConfig
from shared.schemas.tracking import PublishedLocation

logger = structlog.get_logger()


class LocationPublisher:
    """Publishes positions through a configured store strategy."""

    def __init__(self, store: LocationStore):
        self.store = store
        self.published_count = 0
        self.failed_count = 0
        # agent_id → queue of positions waiting to be written
        self._queues: dict[str, asyncio.Queue] = {}
        # agent_id → worker task
        self._workers: dict[str, asyncio.Task] = {}

    @property
    def semantics(self) -> str:
        return self.store.semantics

    async def publish(self, agent_id: str, position: Coordinate) -> PublishedLocation | None:
        """Write one position now. Failures are logged and dropped, not retried."""
        try:
            record = await self.store.write(agent_id, position)
        except PublishError as e:
            self.failed_count += 1
            logger.warning(
                "location_publish_failed",
                agent_id=agent_id,
                semantics=self.semantics,
                error=str(e),
            )
            return None

        if record is not None:
            self.published_count += 1
            logger.debug(
                "location_published",
                agent_id=agent_id,
                semantics=self.semantics,
                entry_id=record.entry_id,
            )
        return record

    def submit(self, agent_id: str, position: Coordinate) -> None:
        """Queue a position for publishing and return immediately."""
        self._ensure_worker(agent_id)
        self._queues[agent_id].put_nowait(position)

    async def drain(self) -> None:
        """Wait until every queued position has been handled."""
        await asyncio.gather(*(queue.join() for queue in self._queues.values()))

    async def close(self) -> None:
        """Cancel the worker tasks. Queued positions that were not written are lost."""
        for task in self._workers.values():
            task.cancel()
        results = await asyncio.gather(*self._workers.values(), return_exceptions=True)
        for result in results:
            if isinstance(result, Exception) and not isinstance(result, asyncio.CancelledError):
                logger.debug("publisher_worker_error", error=str(result))
        self._workers.clear()
        self._queues.clear()

    def _ensure_worker(self, agent_id: str) -> None:
        if agent_id not in self._queues:
            self._queues[agent_id] = asyncio.Queue()
            self._workers[agent_id] = asyncio.create_task(self._worker(agent_id))

    async def _worker(self, agent_id: str) -> None:
        queue = self._queues[agent_id]
        while True:
            position = await queue.get()
            try:
                await self.publish(agent_id, position)
            except Exception:
                logger.exception("location_publish_error", agent_id=agent_id)
            finally:
                queue.task_done()


def build_publisher(config: StoreConfig, redis_client) -> LocationPublisher:
    """Create a publisher for the configured store semantics."""
    return LocationPublisher(build_store(config.semantics, redis_client))
