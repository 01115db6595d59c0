"""Tests for the location stores and LocationPublisher."""

from __future__ import annotations

import pytest

from modules.tracking.errors import PublishError
from modules.tracking.models import Coordinate
from modules.tracking.publisher import LocationPublisher, build_publisher
from modules.tracking.store import AppendStore, OverwriteStore, build_store
from shared.config import StoreConfig

POSITIONS = [Coordinate(23.0 + i * 0.01, 72.5 + i * 0.01) for i in range(5)]


# ---------------------------------------------------------------------------
# Store strategies
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_overwrite_keeps_only_latest(fake_redis):
    store = OverwriteStore(fake_redis)
    for p in POSITIONS:
        await store.write("courier-7", p)

    assert list(fake_redis.values) == ["tracking:location:courier-7"]
    history = await store.history("courier-7")
    assert len(history) == 1
    assert (history[0].lat, history[0].lon) == (POSITIONS[-1].lat, POSITIONS[-1].lon)
    assert history[0].entry_id is None


@pytest.mark.asyncio
async def test_append_keeps_every_position_in_order(fake_redis):
    store = AppendStore(fake_redis)
    for p in POSITIONS:
        await store.write("courier-7", p)

    history = await store.history("courier-7")
    assert [(r.lat, r.lon) for r in history] == [(p.lat, p.lon) for p in POSITIONS]
    assert len({r.entry_id for r in history}) == len(POSITIONS)


@pytest.mark.asyncio
async def test_append_skips_repeat_of_last_published(fake_redis):
    store = AppendStore(fake_redis)
    p = POSITIONS[0]

    assert await store.write("courier-7", p) is not None
    assert await store.write("courier-7", p) is None
    assert await store.write("courier-7", POSITIONS[1]) is not None
    assert await store.write("courier-7", p) is not None

    assert len(fake_redis.streams["tracking:history:courier-7"]) == 3


@pytest.mark.asyncio
async def test_append_dedup_reads_stream_tail_on_cold_cache(fake_redis):
    await AppendStore(fake_redis).write("courier-7", POSITIONS[0])

    # A second publisher instance has no memory of the first write
    other = AppendStore(fake_redis)
    assert await other.write("courier-7", POSITIONS[0]) is None
    assert len(fake_redis.streams["tracking:history:courier-7"]) == 1


@pytest.mark.asyncio
async def test_append_dedup_sees_entries_from_other_publishers(fake_redis):
    mine = AppendStore(fake_redis)
    other = AppendStore(fake_redis)

    assert await mine.write("courier-7", POSITIONS[0]) is not None
    assert await other.write("courier-7", POSITIONS[1]) is not None
    # The newest entry is now POSITIONS[1], so this is not a repeat
    assert await mine.write("courier-7", POSITIONS[0]) is not None
    assert await other.write("courier-7", POSITIONS[0]) is None

    stream = fake_redis.streams["tracking:history:courier-7"]
    assert [float(fields["lat"]) for _, fields in stream] == [
        POSITIONS[0].lat,
        POSITIONS[1].lat,
        POSITIONS[0].lat,
    ]


@pytest.mark.asyncio
async def test_append_history_count_returns_newest_oldest_first(fake_redis):
    store = AppendStore(fake_redis)
    for p in POSITIONS:
        await store.write("courier-7", p)

    history = await store.history("courier-7", count=2)
    assert [(r.lat, r.lon) for r in history] == [
        (POSITIONS[3].lat, POSITIONS[3].lon),
        (POSITIONS[4].lat, POSITIONS[4].lon),
    ]


@pytest.mark.asyncio
async def test_agents_are_independent(fake_redis):
    store = AppendStore(fake_redis)
    await store.write("a", POSITIONS[0])
    await store.write("b", POSITIONS[0])

    assert len(await store.history("a")) == 1
    assert len(await store.history("b")) == 1


@pytest.mark.asyncio
async def test_latest_missing_agent(fake_redis):
    assert await OverwriteStore(fake_redis).latest("nobody") is None
    assert await AppendStore(fake_redis).latest("nobody") is None
    assert await OverwriteStore(fake_redis).history("nobody") == []


@pytest.mark.asyncio
async def test_store_wraps_redis_errors(fake_redis):
    fake_redis.down = True
    with pytest.raises(PublishError):
        await OverwriteStore(fake_redis).write("courier-7", POSITIONS[0])
    with pytest.raises(PublishError):
        await AppendStore(fake_redis).write("courier-7", POSITIONS[0])


@pytest.mark.asyncio
async def test_overwrite_writes_json_record(mock_redis):
    store = OverwriteStore(mock_redis)
    await store.write("courier-7", Coordinate(23.0, 72.5))

    key, value = mock_redis.set.call_args[0]
    assert key == "tracking:location:courier-7"
    assert '"lat":23.0' in value
    assert '"lon":72.5' in value


def test_build_store():
    assert isinstance(build_store("overwrite", None), OverwriteStore)
    assert isinstance(build_store("append", None), AppendStore)
    with pytest.raises(ValueError):
        build_store("upsert", None)


# ---------------------------------------------------------------------------
# LocationPublisher
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_overwrite_publisher_after_n_publishes(overwrite_publisher):
    for p in POSITIONS:
        await overwrite_publisher.publish("courier-7", p)

    history = await overwrite_publisher.store.history("courier-7")
    assert len(history) == 1
    assert history[0].lat == POSITIONS[-1].lat
    assert overwrite_publisher.published_count == len(POSITIONS)


@pytest.mark.asyncio
async def test_append_publisher_after_n_publishes(append_publisher):
    for p in POSITIONS:
        await append_publisher.publish("courier-7", p)

    history = await append_publisher.store.history("courier-7")
    assert len(history) == len(POSITIONS)


@pytest.mark.asyncio
async def test_publish_failure_is_logged_and_dropped(append_publisher, fake_redis):
    fake_redis.down = True

    result = await append_publisher.publish("courier-7", POSITIONS[0])

    assert result is None
    assert append_publisher.failed_count == 1

    # Not retried once the store comes back
    fake_redis.down = False
    await append_publisher.drain()
    assert await append_publisher.store.history("courier-7") == []


@pytest.mark.asyncio
async def test_submit_preserves_order(append_publisher):
    for p in POSITIONS:
        append_publisher.submit("courier-7", p)
    await append_publisher.drain()

    history = await append_publisher.store.history("courier-7")
    assert [(r.lat, r.lon) for r in history] == [(p.lat, p.lon) for p in POSITIONS]


@pytest.mark.asyncio
async def test_submit_survives_failures(append_publisher, fake_redis):
    fake_redis.down = True
    append_publisher.submit("courier-7", POSITIONS[0])
    await append_publisher.drain()

    fake_redis.down = False
    append_publisher.submit("courier-7", POSITIONS[1])
    await append_publisher.drain()

    history = await append_publisher.store.history("courier-7")
    assert [(r.lat, r.lon) for r in history] == [(POSITIONS[1].lat, POSITIONS[1].lon)]
    assert append_publisher.failed_count == 1


@pytest.mark.asyncio
async def test_build_publisher_uses_configured_semantics(fake_redis):
    publisher = build_publisher(
        StoreConfig(endpoint="redis://localhost:6379", semantics="append"), fake_redis
    )
    assert isinstance(publisher, LocationPublisher)
    assert publisher.semantics == "append"
    await publisher.close()
