"""
State access for ledger operations.

Every operation runs against a StateOverlay: reads fall through to the
database, writes are buffered, and the buffer is committed in a single
write batch only when the operation returns normally. An operation that
raises leaves the database untouched.
"""
import logging
import threading
import weakref
from contextlib import contextmanager, ExitStack
from typing import Optional

from amm_ledger.utils.encoding import pack, unpack

logger = logging.getLogger(__name__)

POOL_PREFIX = b"POOL:"
VAULT_PREFIX = b"VAULT:"
ACCOUNT_PREFIX = b"ACCOUNT:"

_DELETED = object()


class StateOverlay:
    """Buffered view of the database for one atomic unit of work."""

    def __init__(self, db):
        self.db = db
        self._writes: dict[bytes, object] = {}

    def get(self, key: bytes) -> Optional[bytes]:
        if key in self._writes:
            value = self._writes[key]
            return None if value is _DELETED else value
        return self.db.get(key)

    def put(self, key: bytes, value: bytes):
        self._writes[key] = value

    def delete(self, key: bytes):
        self._writes[key] = _DELETED

    def get_obj(self, key: bytes) -> Optional[dict]:
        raw = self.get(key)
        if raw is None:
            return None
        return unpack(raw)

    def put_obj(self, key: bytes, obj: dict):
        self.put(key, pack(obj))

    @property
    def pending(self) -> int:
        return len(self._writes)

    def commit(self):
        """Flush buffered writes in one batch."""
        if not self._writes:
            return
        with self.db.write_batch() as batch:
            for key, value in self._writes.items():
                if value is _DELETED:
                    batch.delete(key)
                else:
                    batch.put(key, value)
        logger.debug(f"Committed {len(self._writes)} state writes")
        self._writes.clear()

    def discard(self):
        self._writes.clear()

    @contextmanager
    def write_batch(self):
        """Lets a nested overlay commit into this one."""
        yield self


class StateStore:
    def __init__(self, db):
        self.db = db

    def get_obj(self, key: bytes) -> Optional[dict]:
        raw = self.db.get(key)
        if raw is None:
            return None
        return unpack(raw)

    def get_prefix(self, prefix: bytes) -> list[tuple[bytes, dict]]:
        return [(key, unpack(raw)) for key, raw in self.db.get_prefix(prefix)]

    @contextmanager
    def transaction(self):
        """
        Yield an overlay; commit it if the block succeeds, discard it otherwise.

        Example:
            with store.transaction() as overlay:
                overlay.put_obj(key, value)
        """
        overlay = StateOverlay(self.db)
        try:
            yield overlay
        except BaseException:
            if overlay.pending:
                logger.debug(f"Discarding {overlay.pending} uncommitted state writes")
            overlay.discard()
            raise
        overlay.commit()


class LockTable:
    """
    Exclusive locks keyed by address.

    A lock lives only while some caller holds a reference to it, so
    addresses touched once do not accumulate.

    `hold` acquires the locks for all given keys in sorted order, so two
    callers that need overlapping keys can never deadlock.
    """

    def __init__(self):
        self._locks = weakref.WeakValueDictionary()
        self._guard = threading.Lock()

    def _lock_for(self, key: bytes) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    @contextmanager
    def hold(self, *keys: bytes):
        with ExitStack() as stack:
            for key in sorted(set(keys)):
                stack.enter_context(self._lock_for(key))
            yield
