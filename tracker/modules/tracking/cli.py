"""Command-line tools for the live route tracker."""

from __future__ import annotations

import asyncio
import csv
import json

import click
import structlog

from modules.tracking.geocoding import build_geocoder
from modules.tracking.models import Anchors, Coordinate
from modules.tracking.publisher import build_publisher
from modules.tracking.routing import build_routing_client
from modules.tracking.session import TrackingSession
from modules.tracking.source import PositionSource
from modules.tracking.store import build_store
from shared.config import get_settings
from shared.redis import close_redis, get_redis


def run_async(coro):
    """Run an async function in a new event loop."""
    return asyncio.run(coro)


def _parse_coordinate(ctx, param, value):
    if value is None:
        return None
    try:
        return Coordinate.parse(value)
    except ValueError:
        raise click.BadParameter("expected LAT,LON")


def read_samples(path: str) -> list[Coordinate]:
    """Read ``lat,lon`` rows from a CSV file. Blank lines and ``#`` comments are skipped."""
    samples: list[Coordinate] = []
    with open(path, newline="") as f:
        for row in csv.reader(f):
            if not row or row[0].strip().startswith("#"):
                continue
            try:
                samples.append(Coordinate(float(row[0]), float(row[1])))
            except (IndexError, ValueError):
                raise click.ClickException(f"Bad sample row in {path}: {row}")
    return samples


@click.group()
def cli():
    """Live route tracker CLI."""
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
    )


@cli.command()
@click.argument("samples", type=click.Path(exists=True, dir_okay=False))
@click.option("--agent-id", default=None, help="Agent identifier (defaults to AGENT_ID).")
@click.option("--start", callback=_parse_coordinate, help="Start anchor as LAT,LON.")
@click.option("--end", callback=_parse_coordinate, help="End anchor as LAT,LON.")
@click.option("--interval", default=0.0, show_default=True, help="Seconds between samples.")
def replay(samples, agent_id, start, end, interval):
    """Feed a CSV of position samples through a tracking session."""
    coordinates = read_samples(samples)
    state = run_async(_replay(coordinates, agent_id, start, end, interval))
    click.echo(json.dumps(state, indent=2))


async def _replay(
    coordinates: list[Coordinate],
    agent_id: str | None,
    start: Coordinate | None,
    end: Coordinate | None,
    interval: float,
) -> dict:
    settings = get_settings()
    store_config = settings.store_config()
    redis_client = await get_redis(store_config)
    publisher = build_publisher(store_config, redis_client)
    source = PositionSource()
    session = TrackingSession(
        agent_id=agent_id or settings.agent_id,
        anchors=Anchors(
            start=start or Coordinate(settings.start_lat, settings.start_lon),
            end=end or Coordinate(settings.end_lat, settings.end_lon),
        ),
        source=source,
        geocoder=build_geocoder(settings),
        routing=build_routing_client(settings),
        publisher=publisher,
        partial_route_updates=settings.route_partial_updates,
    )

    try:
        await session.start()
        for coordinate in coordinates:
            source.push(coordinate)
            await asyncio.sleep(interval)
        await session.settle()
        await session.stop()

        state = session.snapshot().model_dump(mode="json")
        state["accepted"] = session.dedup.accepted_count
        state["duplicates"] = session.dedup.dropped_count
        state["published"] = publisher.published_count
        state["notices"] = [n.content for n in session.drain_notices()]
        return state
    finally:
        await publisher.close()
        await close_redis()


@cli.command()
@click.argument("agent_id")
@click.option(
    "--count", default=None, type=click.IntRange(min=1), help="Show the newest N history entries."
)
def follow(agent_id, count):
    """Show what observers see for AGENT_ID in the shared store."""
    records = run_async(_follow(agent_id, count))
    if not records:
        click.echo(f"No published location for {agent_id}")
        return
    for record in records:
        click.echo(
            f"{record.published_at.isoformat()}  {record.lat},{record.lon}"
            + (f"  [{record.entry_id}]" if record.entry_id else "")
        )


async def _follow(agent_id: str, count: int | None):
    store_config = get_settings().store_config()
    try:
        redis_client = await get_redis(store_config)
        store = build_store(store_config.semantics, redis_client)
        return await store.history(agent_id, count)
    finally:
        await close_redis()


if __name__ == "__main__":
    cli()
