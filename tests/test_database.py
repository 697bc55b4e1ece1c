"""Tests for DatabaseManager: key/value blobs, connection reuse."""

import threading

from micromove.infrastructure.database import DatabaseManager


class TestConnectionReuse:
    def test_same_thread_returns_same_connection(self, tmp_db):
        assert tmp_db._get_conn() is tmp_db._get_conn()

    def test_wal_mode_enabled(self, tmp_db):
        mode = tmp_db._get_conn().execute("PRAGMA journal_mode").fetchone()[0]
        assert mode == "wal"


class TestClientStorage:
    def test_save_and_get_blob(self, tmp_db):
        tmp_db.save_state("micromove-session", {"task": "t", "steps": []})
        assert tmp_db.get_state("micromove-session") == {"task": "t", "steps": []}

    def test_get_missing_key_returns_default(self, tmp_db):
        assert tmp_db.get_state("missing", 42) == 42

    def test_overwrite_value(self, tmp_db):
        tmp_db.save_state("key", "old")
        tmp_db.save_state("key", "new")
        assert tmp_db.get_state("key") == "new"

    def test_delete(self, tmp_db):
        tmp_db.save_state("key", 1)
        tmp_db.delete_state("key")
        assert tmp_db.get_state("key") is None
        tmp_db.delete_state("key")  # No error

    def test_undecodable_row_is_default(self, tmp_db):
        with tmp_db._get_conn() as conn:
            conn.execute("INSERT INTO client_storage (key, value) VALUES (?, ?)", ("bad", "{oops"))
        assert tmp_db.get_state("bad", "fallback") == "fallback"

    def test_persists_across_managers(self, tmp_path):
        path = str(tmp_path / "shared.db")
        DatabaseManager(db_path=path).save_state("micromove-settings", {"model": "gpt-4o"})
        assert DatabaseManager(db_path=path).get_state("micromove-settings") == {"model": "gpt-4o"}


class TestConcurrentWrites:
    def test_concurrent_writes_dont_corrupt(self, tmp_db):
        errors = []

        def writer(thread_id):
            try:
                for i in range(20):
                    tmp_db.save_state(f"thread_{thread_id}_key_{i}", i)
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=writer, args=(t,)) for t in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert tmp_db.get_state("thread_0_key_19") == 19
        assert tmp_db.get_state("thread_3_key_0") == 0
