import json
import os
from datetime import datetime, timedelta, timezone

import pytest

from ynab_updater import token_cache
from ynab_updater.token_cache import CachedToken

PAYLOAD = {
    "access_token": "access",
    "expires_in": 1200,
    "refresh_token": "refresh",
    "refresh_token_expires_in": 3600,
}


def _write(path, payload=PAYLOAD, age=timedelta(0)):
    path.write_text(json.dumps(payload), encoding="utf-8")
    mtime = (datetime.now(timezone.utc) - age).timestamp()
    os.utime(path, (mtime, mtime))


def test_load_returns_none_for_missing_file(tmp_path):
    assert token_cache.load(tmp_path / "token.json") is None


def test_load_returns_fresh_token(tmp_path):
    path = tmp_path / "token.json"
    _write(path, age=timedelta(minutes=30))
    token = token_cache.load(path)
    assert token is not None
    assert token.refresh_token == "refresh"
    assert token.refresh_ttl == timedelta(seconds=3600)


def test_load_uses_file_mtime_as_issue_time(tmp_path):
    path = tmp_path / "token.json"
    _write(path, age=timedelta(minutes=10))
    token = token_cache.load(path)
    expected = datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)
    assert token.issued_at == expected


def test_load_discards_expired_token(tmp_path):
    path = tmp_path / "token.json"
    _write(path, age=timedelta(hours=2))
    assert token_cache.load(path) is None


def test_load_honours_explicit_now(tmp_path):
    path = tmp_path / "token.json"
    _write(path)
    later = datetime.now(timezone.utc) + timedelta(hours=2)
    assert token_cache.load(path, now=later) is None


def test_load_ignores_corrupt_file(tmp_path):
    path = tmp_path / "token.json"
    path.write_text('{"access_token": "trunc', encoding="utf-8")
    assert token_cache.load(path) is None


def test_load_ignores_incomplete_payload(tmp_path):
    path = tmp_path / "token.json"
    _write(path, payload={"access_token": "a", "refresh_token": "r"})
    assert token_cache.load(path) is None
    _write(path, payload=["not", "an", "object"])
    assert token_cache.load(path) is None


def test_save_and_load(tmp_path):
    path = tmp_path / "nested" / "token.json"
    token_cache.save(path, CachedToken.from_payload(PAYLOAD))

    assert json.loads(path.read_text(encoding="utf-8")) == PAYLOAD
    loaded = token_cache.load(path)
    assert loaded == CachedToken.from_payload(PAYLOAD)
    assert [p.name for p in path.parent.iterdir()] == ["token.json"]


def test_save_overwrites_existing_cache(tmp_path):
    path = tmp_path / "token.json"
    _write(path)
    token_cache.save(path, CachedToken.from_payload({**PAYLOAD, "refresh_token": "rotated"}))
    assert token_cache.load(path).refresh_token == "rotated"


def test_failed_save_keeps_previous_cache(tmp_path, monkeypatch):
    path = tmp_path / "token.json"
    _write(path)

    def exploding_dump(*args, **kwargs):
        raise OSError("disk full")

    monkeypatch.setattr(token_cache.json, "dump", exploding_dump)
    with pytest.raises(OSError, match="disk full"):
        token_cache.save(path, CachedToken.from_payload({**PAYLOAD, "refresh_token": "rotated"}))
    monkeypatch.undo()

    assert token_cache.load(path).refresh_token == "refresh"
    assert [p.name for p in tmp_path.iterdir()] == ["token.json"]
