"""Per-test serialization of statistics recomputation.

On PostgreSQL a transaction-scoped advisory lock keyed by the test id makes
concurrent recomputations of the same test run one after another, so the
snapshot always reflects every committed merge ("advisory" mode).

Other backends have no such primitive. Threads of one process still take a
striped in-process lock per test, but separate processes are not coordinated:
the aggregate cache's replace-on-write semantics decide, the last writer wins
and readers may briefly see a stale snapshot ("last-writer-wins" mode).
"""

import hashlib
import logging
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import TypeVar

from sqlalchemy import text
from sqlalchemy.orm import Session

from scanmark.core.config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

ADVISORY = "advisory"
LAST_WRITER_WINS = "last-writer-wins"

LOCAL_LOCK_STRIPES = 64

_local_locks = [threading.Lock() for _ in range(LOCAL_LOCK_STRIPES)]
_announced_modes: set[str] = set()
_announce_lock = threading.Lock()


def lock_key(test_id: str) -> int:
    """Stable signed 64-bit key for ``test_id`` (the bigint advisory lock domain)."""
    digest = hashlib.sha256(test_id.encode("utf-8")).digest()
    return int.from_bytes(digest[:8], byteorder="big", signed=True)


def lock_mode(session: Session) -> str:
    if settings.ADVISORY_LOCKS and session.get_bind().dialect.name == "postgresql":
        return ADVISORY
    return LAST_WRITER_WINS


def local_lock(test_id: str) -> threading.Lock:
    return _local_locks[lock_key(test_id) % LOCAL_LOCK_STRIPES]


def _announce(mode: str) -> None:
    with _announce_lock:
        if mode in _announced_modes:
            return
        _announced_modes.add(mode)
    if mode == ADVISORY:
        logger.info("[LOCK] Per-test recomputation is serialized with advisory locks")
    else:
        logger.warning(
            "[LOCK] Advisory locks unavailable: recomputation is serialized within this "
            "process only, aggregate snapshots are last-writer-wins across processes"
        )


@contextmanager
def hold_test_lock(session: Session, test_id: str) -> Iterator[str]:
    """Hold the per-test lock while the block runs. Yields the active mode.

    The advisory lock lasts until the session's transaction ends; the
    in-process lock is released when the block exits.
    """
    mode = lock_mode(session)
    _announce(mode)

    if mode == ADVISORY:
        key = lock_key(test_id)
        logger.debug(f"[LOCK] Acquiring advisory lock {key} for test {test_id}")
        session.execute(text("SELECT pg_advisory_xact_lock(:key)"), {"key": key})
        yield mode
        return

    with local_lock(test_id):
        yield mode


def with_test_lock(session: Session, test_id: str, fn: Callable[[], T]) -> T:
    """Run ``fn`` while holding the lock for ``test_id``."""
    with hold_test_lock(session, test_id):
        return fn()
