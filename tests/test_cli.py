"""Tests for the quotesync CLI commands."""

import itertools
import json
import logging
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import httpx
import pytest

from quotesync import cli
from quotesync.client import RemoteQuoteClient
from quotesync.config import QuoteSyncConfig
from quotesync.storage import LocalDiskStorage
from quotesync.store import QuoteStore


@pytest.fixture
def data_dir(tmp_path, monkeypatch):
    """Point the CLI at a temporary data directory."""
    path = tmp_path / "data"
    monkeypatch.setenv("QUOTESYNC_DATA_DIR", str(path))
    monkeypatch.setenv("QUOTESYNC_REMOTE_URL", "https://remote.example.com/posts")
    return path


def reopen(data_dir):
    return QuoteStore(LocalDiskStorage(data_dir)).open()


def mock_remote(items, post_id=101):
    """Patch the CLI client factory with an in-process remote."""

    ids = itertools.count(post_id)

    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "POST":
            return httpx.Response(201, json={"id": next(ids)})
        return httpx.Response(200, json=items)

    def factory(config, store):
        return RemoteQuoteClient(
            base_url=config.remote_url,
            clock=store.clock,
            transport=httpx.MockTransport(handler),
        )

    return patch.object(cli, "_make_client", factory)


def test_config_from_env(data_dir, monkeypatch):
    monkeypatch.setenv("QUOTESYNC_FETCH_LIMIT", "0")
    monkeypatch.setenv("QUOTESYNC_SYNC_INTERVAL", "5")

    config = QuoteSyncConfig.from_env()

    assert config.data_dir == data_dir
    assert config.fetch_limit is None
    assert config.sync_interval == 5.0


def test_config_malformed_numbers_fall_back(data_dir, monkeypatch, caplog):
    monkeypatch.setenv("QUOTESYNC_FETCH_LIMIT", "lots")
    monkeypatch.setenv("QUOTESYNC_SYNC_INTERVAL", "soon")
    monkeypatch.setenv("QUOTESYNC_TIMEOUT", "")

    with caplog.at_level(logging.WARNING, logger="quotesync.config"):
        config = QuoteSyncConfig.from_env()

    assert config.fetch_limit == 5
    assert config.sync_interval == 30.0
    assert config.timeout == 10.0
    assert "QUOTESYNC_FETCH_LIMIT" in caplog.text
    assert "QUOTESYNC_SYNC_INTERVAL" in caplog.text


def test_show_prints_a_default_quote(data_dir, capsys):
    cli.show()

    out = capsys.readouterr().out
    assert any(
        word in out for word in ("Motivation", "Wisdom", "Resilience", "Success")
    )


def test_show_empty_category(data_dir, capsys):
    cli.show(category="Nothing")
    assert "No quotes in this category" in capsys.readouterr().out


def test_add_and_list(data_dir, capsys):
    cli.add("Stay curious", "Learning")
    cli.list_quotes(category="Learning")

    out = capsys.readouterr().out
    assert "Quote added" in out
    assert "Stay curious" in out
    assert [q.text for q in reopen(data_dir).filter("Learning")] == ["Stay curious"]


def test_add_rejects_empty_text(data_dir, capsys):
    cli.add("  ", "Learning")

    assert "Error" in capsys.readouterr().out
    assert reopen(data_dir).filter("Learning") == ()


def test_select_and_categories(data_dir, capsys):
    cli.select("Wisdom")
    cli.categories()

    out = capsys.readouterr().out
    assert "Selected Wisdom" in out
    assert "all" in out
    assert reopen(data_dir).preferences.selected_category == "Wisdom"


def test_remove(data_dir, capsys):
    quote_id = reopen(data_dir).records[0].id

    cli.remove(quote_id)
    cli.remove(quote_id)

    out = capsys.readouterr().out
    assert f"Removed {quote_id}" in out
    assert "No quote with id" in out


def test_export_reset_import(data_dir, tmp_path, capsys):
    cli.add("Keep me", "Mine")
    export_path = tmp_path / "quotes.json"

    cli.export(export_path)
    cli.reset()
    assert reopen(data_dir).filter("Mine") == ()

    cli.import_quotes(export_path)

    store = reopen(data_dir)
    assert [q.text for q in store.filter("Mine")] == ["Keep me"]
    assert "Imported" in capsys.readouterr().out


def test_export_to_stdout(data_dir, capsys):
    cli.export()
    data = json.loads(capsys.readouterr().out)
    assert len(data) == 4


def test_import_bad_file(data_dir, tmp_path, capsys):
    bad = tmp_path / "bad.json"
    bad.write_text('{"not": "a list"}')

    cli.import_quotes(bad)

    assert "Import failed" in capsys.readouterr().out
    assert len(reopen(data_dir)) == 4


def test_sync_adds_remote_quotes(data_dir, capsys):
    items = [{"id": 1, "title": "Remote one", "userId": 3}]

    with mock_remote(items):
        cli.sync()

    out = capsys.readouterr().out
    assert "Sync complete" in out
    store = reopen(data_dir)
    assert store.get("remote-1").category == "User 3"
    assert store.preferences.last_sync is not None


def test_sync_keep_local_reverts_conflicts(data_dir, capsys):
    with mock_remote([{"id": 1, "title": "Original", "userId": 3}]):
        cli.sync()
    with mock_remote([{"id": 1, "title": "Edited", "userId": 3}]):
        cli.sync(keep="local")

    out = capsys.readouterr().out
    assert "Conflict 1" in out
    assert "Kept local version" in out
    assert reopen(data_dir).find_by_key("1").text == "Original"


def test_sync_unavailable(data_dir, capsys):
    def factory(config, store):
        def handler(request):
            raise httpx.ConnectError("offline", request=request)

        return RemoteQuoteClient(
            base_url=config.remote_url, transport=httpx.MockTransport(handler)
        )

    with patch.object(cli, "_make_client", factory):
        cli.sync()

    assert "Remote unavailable" in capsys.readouterr().out
    assert reopen(data_dir).preferences.last_sync is None


def test_push_marks_quotes_remote(data_dir, capsys):
    with mock_remote([], post_id=101):
        cli.push()

    assert "Pushed 4" in capsys.readouterr().out
    store = reopen(data_dir)
    assert store.local_only() == []
    assert {q.remote_ref for q in store.records} == {"101", "102", "103", "104"}


def test_auto_sync_toggle_and_watch_guard(data_dir, capsys):
    cli.watch(duration=0)
    assert "Auto-sync is disabled" in capsys.readouterr().out

    cli.auto_sync(True)
    assert reopen(data_dir).preferences.auto_sync_enabled is True

    cli.auto_sync(False)
    assert reopen(data_dir).preferences.auto_sync_enabled is False


def test_watch_runs_for_duration(data_dir, monkeypatch, capsys):
    monkeypatch.setenv("QUOTESYNC_SYNC_INTERVAL", "0.01")
    cli.auto_sync(True)

    with mock_remote([{"id": 5, "title": "Watched", "userId": 1}]):
        cli.watch(duration=0.1)

    assert "Sync complete" in capsys.readouterr().out
    assert reopen(data_dir).get("remote-5") is not None


def test_status(data_dir, capsys):
    cli.status()

    out = capsys.readouterr().out
    assert "Never" in out
    assert "Quotes" in out


def test_status_reports_days_since_last_sync(data_dir, capsys):
    store = reopen(data_dir)
    store.mark_synced(datetime.now(timezone.utc) - timedelta(days=3, hours=1))
    store.close()

    cli.status()

    assert "3 days ago" in capsys.readouterr().out


def test_time_ago_units():
    assert cli._time_ago(timedelta(seconds=5)) == "5 seconds ago"
    assert cli._time_ago(timedelta(minutes=2)) == "2 minutes ago"
    assert cli._time_ago(timedelta(hours=5)) == "5 hours ago"
    assert cli._time_ago(timedelta(days=2, hours=3)) == "2 days ago"
