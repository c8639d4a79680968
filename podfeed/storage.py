"""Feed and pledge storage.

Two engines implement `Storage`: `SQLiteStorage` here (local database)
and `DynamoStorage` in `podfeed.dynamo`. Both keep a user index ordered
by creation time and a TTL attribute on feeds.
"""
import json
import sqlite3
import threading
from abc import ABC, abstractmethod
from dataclasses import asdict
from datetime import datetime, timezone
from pathlib import Path

from podfeed.models import Feed, Item, Pledge, Quality, SourceType


def to_epoch(value: datetime | None) -> int | None:
    if value is None:
        return None
    return int(value.timestamp())


def from_epoch(value) -> datetime | None:
    if value is None:
        return None
    return datetime.fromtimestamp(int(value), timezone.utc)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _from_iso(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def feed_to_record(feed: Feed) -> dict:
    """Convert a Feed into a JSON-compatible dict."""
    record = asdict(feed)
    record["source_type"] = feed.source_type.value
    record["quality"] = feed.quality.value
    record["pub_date"] = _iso(feed.pub_date)
    record["updated_at"] = _iso(feed.updated_at)
    record["expires_at"] = to_epoch(feed.expires_at)
    for episode in record["episodes"]:
        episode["pub_date"] = _iso(episode["pub_date"])
    return record


def feed_from_record(record: dict) -> Feed:
    data = dict(record)
    data["source_type"] = SourceType(data["source_type"])
    data["quality"] = Quality(data["quality"])
    data["pub_date"] = _from_iso(data.get("pub_date"))
    data["updated_at"] = _from_iso(data.get("updated_at"))
    data["expires_at"] = from_epoch(data.get("expires_at"))
    data["episodes"] = [
        Item(**{**episode, "pub_date": _from_iso(episode.get("pub_date"))})
        for episode in data.get("episodes", [])
    ]
    return Feed(**data)


class Storage(ABC):
    """Point CRUD for feeds and pledges plus the user index lookup.

    Writes replace the whole record; concurrent writes to one key are
    resolved last-write-wins by the engine.
    """

    @abstractmethod
    def put_feed(self, feed: Feed) -> None: ...

    @abstractmethod
    def get_feed(self, feed_id: str) -> Feed | None: ...

    @abstractmethod
    def delete_feed(self, feed_id: str) -> None: ...

    @abstractmethod
    def put_pledge(self, pledge: Pledge) -> None: ...

    @abstractmethod
    def get_pledge(self, pledge_id: int) -> Pledge | None: ...

    @abstractmethod
    def delete_pledge(self, pledge_id: int) -> None: ...

    @abstractmethod
    def list_feeds_for_user(self, user_id: str) -> list[str]:
        """Feed ids of a user ordered by creation time, oldest first.

        May lag very recent writes.
        """

    def close(self) -> None:
        pass


class SQLiteStorage(Storage):
    """SQLite engine for local use."""

    SCHEMA = """
    -- Feeds, whole document kept as JSON
    CREATE TABLE IF NOT EXISTS feeds (
        feed_id TEXT PRIMARY KEY,
        user_id TEXT,
        created_at INTEGER NOT NULL DEFAULT 0,
        expires_at INTEGER,
        data TEXT NOT NULL
    );

    -- Pledges, written by the payment lifecycle
    CREATE TABLE IF NOT EXISTS pledges (
        pledge_id INTEGER PRIMARY KEY,
        user_id TEXT NOT NULL,
        expires_at INTEGER,
        tier INTEGER NOT NULL DEFAULT 0
    );

    -- User index: covers feed_id so lookups never touch the table.
    -- Partial, so feeds without an owner stay out of it.
    CREATE INDEX IF NOT EXISTS idx_feeds_user_created ON feeds(user_id, created_at, feed_id)
        WHERE user_id IS NOT NULL;
    CREATE INDEX IF NOT EXISTS idx_feeds_expires ON feeds(expires_at);
    """

    def __init__(self, db_path: Path):
        """Open database, creating tables if needed."""
        self.db_path = db_path
        db_path.parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(db_path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self._lock = threading.Lock()
        self._init_schema()

    def _init_schema(self) -> None:
        """Create tables if they don't exist."""
        self.conn.executescript(self.SCHEMA)
        self.conn.commit()

    def execute(self, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        """Execute SQL and return cursor."""
        return self.conn.execute(sql, params)

    def _write(self, sql: str, params: tuple = ()) -> int:
        with self._lock:
            cursor = self.conn.execute(sql, params)
            self.conn.commit()
            return cursor.rowcount

    def close(self) -> None:
        """Close database connection."""
        self.conn.close()

    def put_feed(self, feed: Feed) -> None:
        self._write(
            """INSERT OR REPLACE INTO feeds (feed_id, user_id, created_at, expires_at, data)
               VALUES (?, ?, ?, ?, ?)""",
            (
                feed.id,
                feed.user_id or None,
                feed.created_at,
                to_epoch(feed.expires_at),
                json.dumps(feed_to_record(feed)),
            ),
        )

    def get_feed(self, feed_id: str) -> Feed | None:
        row = self.execute("SELECT data FROM feeds WHERE feed_id = ?", (feed_id,)).fetchone()
        if row is None:
            return None
        return feed_from_record(json.loads(row["data"]))

    def delete_feed(self, feed_id: str) -> None:
        self._write("DELETE FROM feeds WHERE feed_id = ?", (feed_id,))

    def put_pledge(self, pledge: Pledge) -> None:
        self._write(
            """INSERT OR REPLACE INTO pledges (pledge_id, user_id, expires_at, tier)
               VALUES (?, ?, ?, ?)""",
            (pledge.id, pledge.user_id, to_epoch(pledge.expires_at), pledge.tier),
        )

    def get_pledge(self, pledge_id: int) -> Pledge | None:
        row = self.execute("SELECT * FROM pledges WHERE pledge_id = ?", (pledge_id,)).fetchone()
        if row is None:
            return None
        return Pledge(
            id=row["pledge_id"],
            user_id=row["user_id"],
            expires_at=from_epoch(row["expires_at"]),
            tier=row["tier"],
        )

    def delete_pledge(self, pledge_id: int) -> None:
        self._write("DELETE FROM pledges WHERE pledge_id = ?", (pledge_id,))

    def list_feeds_for_user(self, user_id: str) -> list[str]:
        if not user_id:
            return []
        cursor = self.execute(
            """SELECT feed_id FROM feeds INDEXED BY idx_feeds_user_created
               WHERE user_id = ?
               ORDER BY created_at ASC""",
            (user_id,),
        )
        return [row["feed_id"] for row in cursor.fetchall()]

    def purge_expired(self, now: datetime | None = None) -> int:
        """Remove feeds past their TTL and pledges past their expiry.

        This is the engine's expiry sweep. Until it runs, expired records
        stay readable. Returns the number of removed records.
        """
        cutoff = to_epoch(now or datetime.now(timezone.utc))
        with self._lock:
            feeds = self.conn.execute(
                "DELETE FROM feeds WHERE expires_at IS NOT NULL AND expires_at <= ?", (cutoff,)
            ).rowcount
            pledges = self.conn.execute(
                "DELETE FROM pledges WHERE expires_at IS NOT NULL AND expires_at <= ?", (cutoff,)
            ).rowcount
            self.conn.commit()
        return feeds + pledges
