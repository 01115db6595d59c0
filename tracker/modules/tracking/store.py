"""Redis-backed location store strategies.

``OverwriteStore`` keeps one record per agent; ``AppendStore`` keeps an
append-only stream per agent. Both wrap Redis failures in ``PublishError`` and
expose the same readers so observers do not care which one is deployed.
"""

from __future__ import annotations

from datetime import datetime, timezone

import structlog
from redis.exceptions import RedisError

from modules.tracking.errors import PublishError
from modules.tracking.models import Coordinate
from shared.config import StoreSemantics
from shared.schemas.tracking import PublishedLocation

logger = structlog.get_logger()


def _location_key(agent_id: str) -> str:
    return f"tracking:location:{agent_id}"


def _history_key(agent_id: str) -> str:
    return f"tracking:history:{agent_id}"


class LocationStore:
    """Interface shared by the store strategies."""

    semantics: StoreSemantics

    def __init__(self, redis_client):
        self._redis = redis_client

    async def write(self, agent_id: str, position: Coordinate) -> PublishedLocation | None:
        """Persist ``position``. Returns None if the write was skipped."""
        raise NotImplementedError

    async def latest(self, agent_id: str) -> PublishedLocation | None:
        raise NotImplementedError

    async def history(self, agent_id: str, count: int | None = None) -> list[PublishedLocation]:
        raise NotImplementedError


class OverwriteStore(LocationStore):
    """Latest position only; each write replaces the previous one."""

    semantics = "overwrite"

    async def write(self, agent_id: str, position: Coordinate) -> PublishedLocation | None:
        record = PublishedLocation(
            agent_id=agent_id,
            lat=position.lat,
            lon=position.lon,
            published_at=datetime.now(timezone.utc),
        )
        try:
            await self._redis.set(_location_key(agent_id), record.model_dump_json())
        except RedisError as e:
            raise PublishError(f"Failed to store location for {agent_id!r}: {e}") from e
        return record

    async def latest(self, agent_id: str) -> PublishedLocation | None:
        raw = await self._redis.get(_location_key(agent_id))
        if raw is None:
            return None
        return PublishedLocation.model_validate_json(raw)

    async def history(self, agent_id: str, count: int | None = None) -> list[PublishedLocation]:
        record = await self.latest(agent_id)
        return [record] if record is not None else []


class AppendStore(LocationStore):
    """Ordered, unbounded history in a Redis stream.

    A position equal to the newest entry in the agent's stream is skipped.
    The tail is read on every write, so entries from other publishers count too.
    """

    semantics = "append"

    async def write(self, agent_id: str, position: Coordinate) -> PublishedLocation | None:
        key = _history_key(agent_id)
        try:
            tail = await self._redis.xrevrange(key, count=1)
            if tail and self._coordinate(tail[0][1]) == position:
                logger.debug("location_publish_skipped_duplicate", agent_id=agent_id)
                return None

            published_at = datetime.now(timezone.utc)
            entry_id = await self._redis.xadd(
                key,
                {
                    "lat": repr(position.lat),
                    "lon": repr(position.lon),
                    "published_at": published_at.isoformat(),
                },
            )
        except RedisError as e:
            raise PublishError(f"Failed to append location for {agent_id!r}: {e}") from e

        return PublishedLocation(
            agent_id=agent_id,
            lat=position.lat,
            lon=position.lon,
            published_at=published_at,
            entry_id=str(entry_id),
        )

    async def latest(self, agent_id: str) -> PublishedLocation | None:
        entries = await self._redis.xrevrange(_history_key(agent_id), count=1)
        if not entries:
            return None
        entry_id, fields = entries[0]
        return self._record(agent_id, entry_id, fields)

    async def history(self, agent_id: str, count: int | None = None) -> list[PublishedLocation]:
        """Return entries oldest first; ``count`` limits to the newest N."""
        key = _history_key(agent_id)
        if count is None:
            entries = await self._redis.xrange(key)
        else:
            entries = list(reversed(await self._redis.xrevrange(key, count=count)))
        return [self._record(agent_id, entry_id, fields) for entry_id, fields in entries]

    @staticmethod
    def _coordinate(fields: dict) -> Coordinate:
        return Coordinate(float(fields["lat"]), float(fields["lon"]))

    @classmethod
    def _record(cls, agent_id: str, entry_id: str, fields: dict) -> PublishedLocation:
        coordinate = cls._coordinate(fields)
        published_at = fields.get("published_at")
        return PublishedLocation(
            agent_id=agent_id,
            lat=coordinate.lat,
            lon=coordinate.lon,
            published_at=published_at or datetime.now(timezone.utc),
            entry_id=str(entry_id),
        )


def build_store(semantics: StoreSemantics, redis_client) -> LocationStore:
    if semantics == "append":
        return AppendStore(redis_client)
    if semantics == "overwrite":
        return OverwriteStore(redis_client)
    raise ValueError(f"Unknown store semantics: {semantics!r}")
