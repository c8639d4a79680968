"""Tests for CLI commands."""
import json
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from click.testing import CliRunner

from podfeed.errors import NotFoundError
from podfeed.models import Feed, Pledge, Quality


@pytest.fixture
def env(monkeypatch):
    """Point the CLI at a temporary database and silence log setup."""
    from podfeed.storage import SQLiteStorage

    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = Path(tmpdir) / "test.db"
        monkeypatch.setattr("podfeed.main.get_storage", lambda config=None: SQLiteStorage(db_path))
        monkeypatch.setattr("podfeed.logging_config.setup_logging", lambda *a, **kw: None)
        yield db_path


def _open(db_path):
    from podfeed.storage import SQLiteStorage

    return SQLiteStorage(db_path)


def test_build_saves_feed(env, monkeypatch):
    from podfeed.main import cli

    builder = MagicMock()
    builder.build.return_value = Feed(id="feed-1", title="Staff Picks", user_id="u1", created_at=500)
    monkeypatch.setattr("podfeed.main.get_builder", lambda config=None: builder)

    result = CliRunner().invoke(cli, ["build", "https://vimeo.com/channels/staffpicks", "--user", "u1", "-n", "10"])

    assert result.exit_code == 0, result.output
    assert "Saved: feed-1 Staff Picks (0 episodes)" in result.output

    cfg = builder.build.call_args[0][0]
    assert cfg.page_size == 10
    assert cfg.user_id == "u1"

    feed = _open(env).get_feed("feed-1")
    assert feed is not None
    assert feed.expires_at is not None


def test_build_keeps_created_at_on_rebuild(env, monkeypatch):
    from podfeed.main import cli

    _open(env).put_feed(Feed(id="feed-1", user_id="u1", created_at=100))

    builder = MagicMock()
    builder.build.return_value = Feed(id="feed-1", user_id="u1", created_at=999)
    monkeypatch.setattr("podfeed.main.get_builder", lambda config=None: builder)

    result = CliRunner().invoke(cli, ["build", "https://vimeo.com/channels/staffpicks"])

    assert result.exit_code == 0, result.output
    assert _open(env).get_feed("feed-1").created_at == 100


def test_build_error_exits_nonzero(env, monkeypatch):
    from podfeed.main import cli

    builder = MagicMock()
    builder.build.side_effect = NotFoundError("channel with id 'gone' not found")
    monkeypatch.setattr("podfeed.main.get_builder", lambda config=None: builder)

    result = CliRunner().invoke(cli, ["build", "https://vimeo.com/channels/gone"])

    assert result.exit_code == 1
    assert "Error: channel with id 'gone' not found" in result.output


def test_feeds_list_and_show(env):
    from podfeed.main import cli

    db = _open(env)
    db.put_feed(Feed(id="second", user_id="u1", created_at=200))
    db.put_feed(Feed(id="first", user_id="u1", created_at=100))

    runner = CliRunner()
    result = runner.invoke(cli, ["feeds", "list", "u1"])
    assert result.exit_code == 0
    assert result.output.split() == ["first", "second"]

    result = runner.invoke(cli, ["feeds", "show", "first"])
    assert result.exit_code == 0
    assert json.loads(result.output)["id"] == "first"

    result = runner.invoke(cli, ["feeds", "show", "missing"])
    assert result.exit_code == 1


def test_feeds_delete(env):
    from podfeed.main import cli

    _open(env).put_feed(Feed(id="feed-1"))

    result = CliRunner().invoke(cli, ["feeds", "delete", "feed-1"])

    assert result.exit_code == 0
    assert _open(env).get_feed("feed-1") is None


def test_pledges_show(env):
    from podfeed.main import cli

    _open(env).put_pledge(Pledge(id=7, user_id="u1", expires_at=datetime(2030, 1, 1, tzinfo=timezone.utc), tier=500))

    result = CliRunner().invoke(cli, ["pledges", "show", "7"])

    assert result.exit_code == 0
    assert json.loads(result.output)["tier"] == 500


def test_downgrade_command(env):
    from podfeed.main import cli

    _open(env).put_feed(Feed(id="feed-1", user_id="u1", created_at=100, quality=Quality.HIGH))

    result = CliRunner().invoke(cli, ["downgrade", "u1"])

    assert result.exit_code == 0
    assert "Downgraded: 1" in result.output
    assert _open(env).get_feed("feed-1").quality == Quality.LOW


def test_downgrade_command_accepts_several_pledges(env):
    from podfeed.main import cli

    storage = _open(env)
    storage.put_feed(Feed(id="feed-1", user_id="u1", created_at=100, quality=Quality.HIGH))
    storage.put_pledge(Pledge(id=1, user_id="u1", expires_at=datetime(2000, 1, 1, tzinfo=timezone.utc), tier=100))
    storage.put_pledge(Pledge(id=2, user_id="u1", expires_at=datetime(2100, 1, 1, tzinfo=timezone.utc), tier=500))

    result = CliRunner().invoke(cli, ["downgrade", "u1", "--pledge", "1", "--pledge", "2"])

    assert result.exit_code == 0
    assert "Downgraded: 0" in result.output
    assert _open(env).get_feed("feed-1").quality == Quality.HIGH


def test_purge_command(env):
    from podfeed.main import cli

    _open(env).put_feed(Feed(id="old", expires_at=datetime(2000, 1, 1, tzinfo=timezone.utc)))

    result = CliRunner().invoke(cli, ["purge"])

    assert result.exit_code == 0
    assert "Purged: 1" in result.output
