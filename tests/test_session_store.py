"""Tests for the persisted, host-keyed session cache."""
import json
import os
import stat
import sys

import pytest

from synology_ds.models.session import SessionRecord
from synology_ds.storage.session_store import SessionStore

posix_only = pytest.mark.skipif(sys.platform == "win32", reason="POSIX permissions")


class TestSessionStore:
    """Test suite for SessionStore."""

    def test_save_then_load_round_trips_fields(self, session_file):
        """Non-secret fields survive a reload from disk."""
        store = SessionStore(session_file)
        store.save(
            "nas.local",
            SessionRecord(
                host_key="nas.local",
                session_token="abc",
                account_name="alice",
                default_destination="downloads",
            ),
        )

        loaded = SessionStore(session_file).load("nas.local")

        assert loaded.session_token == "abc"
        assert loaded.account_name == "alice"
        assert loaded.default_destination == "downloads"
        assert loaded.updated_at is not None

    def test_host_keys_ignore_case_scheme_and_slashes(self, session_file):
        store = SessionStore(session_file)
        store.update("HTTPS://NAS.Local:5001/", account_name="alice")

        assert store.load("nas.local:5001").account_name == "alice"
        assert store.load("http://nas.local:5001").account_name == "alice"
        assert store.hosts() == ["nas.local:5001"]

    def test_secrets_are_never_written(self, session_file):
        """Unknown fields such as a password are dropped before they hit the disk."""
        store = SessionStore(session_file)
        record = SessionRecord(host_key="nas.local", account_name="alice", password="hunter2")
        store.save("nas.local", record)
        store.update("nas.local", session_token="tok")

        raw = session_file.read_text(encoding="utf-8")
        assert "hunter2" not in raw
        assert set(json.loads(raw)["nas.local"]) == {
            "session_token",
            "account_name",
            "default_destination",
            "updated_at",
        }

    def test_secret_in_existing_file_is_not_written_back(self, session_file):
        session_file.parent.mkdir(parents=True)
        session_file.write_text(
            json.dumps({"nas.local": {"account_name": "alice", "password": "hunter2"}})
        )

        store = SessionStore(session_file)
        store.update("nas.local", session_token="tok")

        assert "hunter2" not in session_file.read_text(encoding="utf-8")

    def test_update_merges_into_existing_record(self, session_file):
        store = SessionStore(session_file)
        store.update("nas.local", account_name="alice", session_token="one")

        record = store.update("nas.local", session_token=None)

        assert record.account_name == "alice"
        assert record.session_token is None
        assert not record.has_token

    def test_load_returns_a_copy(self, session_file):
        store = SessionStore(session_file)
        store.update("nas.local", account_name="alice")

        copy = store.load("nas.local")
        copy.account_name = "mallory"

        assert store.load("nas.local").account_name == "alice"

    def test_missing_host_returns_none(self, session_file):
        assert SessionStore(session_file).load("nas.local") is None

    def test_corrupt_file_is_treated_as_empty(self, session_file):
        session_file.parent.mkdir(parents=True)
        session_file.write_text("{not json")

        store = SessionStore(session_file)

        assert store.hosts() == []
        store.update("nas.local", account_name="alice")
        assert json.loads(session_file.read_text())["nas.local"]["account_name"] == "alice"

    def test_delete_and_clear(self, session_file):
        store = SessionStore(session_file)
        store.update("a.local", account_name="a")
        store.update("b.local", account_name="b")
        store.update("c.local", account_name="c")

        assert store.delete("a.local") is True
        assert store.delete("a.local") is False
        assert store.clear() == 2
        assert SessionStore(session_file).hosts() == []

    def test_disabled_persistence_never_touches_disk(self, session_file):
        store = SessionStore(session_file, persist=False)
        store.update("nas.local", session_token="tok")

        assert store.load("nas.local").session_token == "tok"
        assert not session_file.exists()

    def test_no_temporary_files_are_left_behind(self, session_file):
        store = SessionStore(session_file)
        for i in range(3):
            store.update("nas.local", session_token=f"tok-{i}")

        assert sorted(p.name for p in session_file.parent.iterdir()) == ["sessions.json"]

    @posix_only
    def test_file_and_directory_are_private(self, session_file):
        SessionStore(session_file).update("nas.local", account_name="alice")

        assert stat.S_IMODE(os.stat(session_file).st_mode) == 0o600
        assert stat.S_IMODE(os.stat(session_file.parent).st_mode) == 0o700
