"""CLI entry point for podfeed."""
import json
import logging
from dataclasses import asdict
from datetime import datetime, timedelta, timezone

import click

from podfeed.builder import FeedBuilder
from podfeed.config import get_project_dir, get_sqlite_path, load_config
from podfeed.errors import PodfeedError
from podfeed.models import FeedConfig
from podfeed.storage import SQLiteStorage, Storage, feed_to_record

logger = logging.getLogger(__name__)


def get_storage(config: dict | None = None) -> Storage:
    """Get storage for the configured backend."""
    config = config or load_config()
    if config["storage"]["backend"] == "dynamo":
        from podfeed.dynamo import DynamoStorage

        dynamo = config["storage"]["dynamo"]
        return DynamoStorage(
            feeds_table=dynamo["feeds_table"],
            pledges_table=dynamo["pledges_table"],
            region=dynamo["region"],
            endpoint_url=dynamo["endpoint_url"],
        )
    return SQLiteStorage(get_sqlite_path(config))


def get_builder(config: dict | None = None) -> FeedBuilder:
    """Get a feed builder with a Vimeo client."""
    from podfeed.vimeo import VimeoClient

    config = config or load_config()
    vimeo = config["vimeo"]
    return FeedBuilder(VimeoClient(vimeo["token"], timeout=vimeo["timeout"]))


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Show debug output")
def cli(verbose: bool):
    """Turn Vimeo channels, groups and users into podcast feeds."""
    from podfeed.logging_config import setup_logging

    config = load_config()
    setup_logging(
        get_project_dir() / "logs",
        config["logging"]["retention_days"],
        verbose,
    )


@cli.command()
@click.argument("url")
@click.option("--quality", "-q", type=click.Choice(["low", "high"]), default=None, help="Feed quality")
@click.option("--page-size", "-n", type=click.IntRange(min=1), default=None, help="Episodes to collect")
@click.option("--user", "user_id", default=None, help="Owner of the feed")
@click.option("--id", "feed_id", default=None, help="Feed identifier (derived from URL if omitted)")
@click.option("--json", "output_json", is_flag=True, help="Print the feed as JSON")
def build(url: str, quality: str | None, page_size: int | None, user_id: str | None,
          feed_id: str | None, output_json: bool):
    """Build a feed from URL and save it."""
    config = load_config()
    feeds_config = config["feeds"]
    cfg = FeedConfig(
        url=url,
        quality=quality or feeds_config["quality"],
        page_size=page_size or feeds_config["page_size"],
        id=feed_id,
        user_id=user_id,
    )

    storage = get_storage(config)
    try:
        feed = get_builder(config).build(cfg)

        # Re-assembly replaces the feed but keeps its place in the user index
        existing = storage.get_feed(feed.id)
        if existing is not None:
            feed.created_at = existing.created_at
        feed.expires_at = datetime.now(timezone.utc) + timedelta(days=feeds_config["ttl_days"])

        storage.put_feed(feed)
        logger.info(f"Saved feed {feed.id} (expires {feed.expires_at:%Y-%m-%d})")
    except PodfeedError as e:
        logger.error(f"  ✗ Build failed for {url}: {e}")
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)
    finally:
        storage.close()

    if output_json:
        click.echo(json.dumps(feed_to_record(feed), indent=2))
    else:
        click.echo(f"Saved: {feed.id} {feed.title} ({len(feed.episodes)} episodes)")


# === Feed Commands ===


@cli.group()
def feeds():
    """Inspect stored feeds."""
    pass


@feeds.command("list")
@click.argument("user_id")
def feeds_list(user_id: str):
    """List a user's feeds, oldest first."""
    storage = get_storage()
    try:
        for feed_id in storage.list_feeds_for_user(user_id):
            click.echo(feed_id)
    finally:
        storage.close()


@feeds.command("show")
@click.argument("feed_id")
def feeds_show(feed_id: str):
    """Print a stored feed as JSON."""
    storage = get_storage()
    try:
        feed = storage.get_feed(feed_id)
    finally:
        storage.close()

    if feed is None:
        click.echo(f"Error: feed {feed_id} not found", err=True)
        raise SystemExit(1)
    click.echo(json.dumps(feed_to_record(feed), indent=2))


@feeds.command("delete")
@click.argument("feed_id")
def feeds_delete(feed_id: str):
    """Delete a stored feed."""
    storage = get_storage()
    try:
        storage.delete_feed(feed_id)
    finally:
        storage.close()
    click.echo(f"Deleted: {feed_id}")


# === Pledge and Maintenance Commands ===


@cli.group()
def pledges():
    """Inspect pledges."""
    pass


@pledges.command("show")
@click.argument("pledge_id", type=int)
def pledges_show(pledge_id: int):
    """Print a pledge."""
    storage = get_storage()
    try:
        pledge = storage.get_pledge(pledge_id)
    finally:
        storage.close()

    if pledge is None:
        click.echo(f"Error: pledge {pledge_id} not found", err=True)
        raise SystemExit(1)
    click.echo(json.dumps(asdict(pledge), indent=2, default=str))


@cli.command()
@click.argument("user_id")
@click.option("--pledge", "pledge_ids", type=int, multiple=True, help="Pledge backing the user's feeds (repeatable)")
def downgrade(user_id: str, pledge_ids: tuple[int, ...]):
    """Downgrade a user's feeds to low quality unless one of the pledges is active."""
    from podfeed.maintenance import downgrade_lapsed_feeds

    storage = get_storage()
    try:
        downgraded = downgrade_lapsed_feeds(storage, user_id, pledge_ids)
    finally:
        storage.close()
    click.echo(f"Downgraded: {len(downgraded)}")


@cli.command()
def purge():
    """Remove expired records (sqlite backend only)."""
    storage = get_storage()
    try:
        if not isinstance(storage, SQLiteStorage):
            click.echo("Expiry is handled by the store's TTL")
            return
        removed = storage.purge_expired()
    finally:
        storage.close()
    click.echo(f"Purged: {removed}")


@cli.command()
def bootstrap():
    """Create DynamoDB tables, index and TTL if missing."""
    storage = get_storage()
    if not hasattr(storage, "bootstrap"):
        click.echo("Nothing to do: sqlite schema is created on open")
        storage.close()
        return
    storage.bootstrap()
    click.echo("Tables ready")


if __name__ == "__main__":
    cli()
