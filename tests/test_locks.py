"""Tests for the per-test recomputation guard."""

import threading
import time
from unittest.mock import MagicMock

from scanmark.core import locks
from scanmark.core.config import settings
from scanmark.core.locks import (
    ADVISORY,
    LAST_WRITER_WINS,
    hold_test_lock,
    local_lock,
    lock_key,
    lock_mode,
    with_test_lock,
)


def postgres_session():
    session = MagicMock()
    session.get_bind.return_value.dialect.name = "postgresql"
    return session


class TestLockKey:

    def test_deterministic(self):
        assert lock_key("9863") == lock_key("9863")

    def test_distinct_tests_get_distinct_keys(self):
        assert lock_key("9863") != lock_key("9864")

    def test_fits_signed_bigint(self):
        for test_id in ("", "9863", "a" * 500, "test-ünïcode"):
            assert -(2 ** 63) <= lock_key(test_id) < 2 ** 63


class TestLockMode:

    def test_sqlite_is_last_writer_wins(self, db):
        assert lock_mode(db) == LAST_WRITER_WINS

    def test_postgresql_uses_advisory_locks(self):
        assert lock_mode(postgres_session()) == ADVISORY

    def test_advisory_locks_can_be_disabled(self, monkeypatch):
        monkeypatch.setattr(settings, "ADVISORY_LOCKS", False)
        assert lock_mode(postgres_session()) == LAST_WRITER_WINS


class TestHoldTestLock:

    def test_advisory_lock_taken_with_test_key(self):
        session = postgres_session()
        with hold_test_lock(session, "9863") as mode:
            assert mode == ADVISORY

        session.execute.assert_called_once()
        statement, params = session.execute.call_args.args
        assert "pg_advisory_xact_lock" in str(statement)
        assert params == {"key": lock_key("9863")}

    def test_last_writer_wins_runs_nothing(self, db, monkeypatch):
        execute = MagicMock(wraps=db.execute)
        monkeypatch.setattr(db, "execute", execute)
        with hold_test_lock(db, "9863") as mode:
            assert mode == LAST_WRITER_WINS
        execute.assert_not_called()

    def test_mode_is_announced_once(self, monkeypatch, caplog):
        monkeypatch.setattr(locks, "_announced_modes", set())
        with caplog.at_level("INFO", logger="scanmark.core.locks"):
            for _ in range(3):
                with hold_test_lock(postgres_session(), "9863"):
                    pass
        announcements = [r for r in caplog.records if "advisory locks" in r.getMessage()]
        assert len(announcements) == 1

    def test_with_test_lock_returns_result(self):
        session = postgres_session()
        assert with_test_lock(session, "9863", lambda: 42) == 42
        session.execute.assert_called_once()

    def test_mode_is_announced_once_across_threads(self, monkeypatch, caplog):
        monkeypatch.setattr(locks, "_announced_modes", set())
        barrier = threading.Barrier(8)

        def lock_once():
            barrier.wait()
            with hold_test_lock(postgres_session(), "9863"):
                pass

        with caplog.at_level("INFO", logger="scanmark.core.locks"):
            threads = [threading.Thread(target=lock_once) for _ in range(8)]
            for thread in threads:
                thread.start()
            for thread in threads:
                thread.join()

        announcements = [r for r in caplog.records if "advisory locks" in r.getMessage()]
        assert len(announcements) == 1

    def test_last_writer_wins_holds_in_process_lock(self, db):
        lock = local_lock("9863")
        with hold_test_lock(db, "9863"):
            assert lock.locked()
        assert not lock.locked()

    def test_in_process_lock_serializes_threads(self, db):
        inside = []
        overlaps = []
        barrier = threading.Barrier(4)

        def recompute():
            barrier.wait()
            with hold_test_lock(db, "9863"):
                if inside:
                    overlaps.append(True)
                inside.append(True)
                time.sleep(0.01)
                inside.pop()

        threads = [threading.Thread(target=recompute) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert overlaps == []
