"""
LevelDB-backed key/value store for persisted pool, vault and account state.
"""
import plyvel
import logging
from typing import Optional
from contextlib import contextmanager

logger = logging.getLogger(__name__)


class DB:
    def __init__(self, db_path: str, create_if_missing: bool = True,
                 write_buffer_size: int = 64 * 1024 * 1024,  # 64MB
                 max_open_files: int = 1000,
                 compression: Optional[str] = 'snappy'):
        """Open the ledger store at db_path. compression is 'snappy' or None."""
        try:
            self._db = plyvel.DB(
                db_path,
                create_if_missing=create_if_missing,
                write_buffer_size=write_buffer_size,
                max_open_files=max_open_files,
                compression=compression,
            )
            self._closed = False
            logger.info(f"Database opened at {db_path}")
        except Exception as e:
            logger.error(f"Failed to open database at {db_path}: {e}")
            raise

    def _check_open(self):
        if self._closed:
            raise RuntimeError("Database is closed")

    def get(self, key: bytes) -> Optional[bytes]:
        self._check_open()
        return self._db.get(key)

    def put(self, key: bytes, value: bytes):
        self._check_open()
        self._db.put(key, value)

    def delete(self, key: bytes):
        self._check_open()
        self._db.delete(key)

    def exists(self, key: bytes) -> bool:
        return self.get(key) is not None

    @contextmanager
    def write_batch(self):
        """
        Context manager for atomic batch writes.

        Example:
            with db.write_batch() as batch:
                batch.put(POOL_PREFIX + pool_address, packed_pool)
                batch.delete(ACCOUNT_PREFIX + holder)

        Nothing is written if the block raises.
        """
        self._check_open()

        batch = self._db.write_batch(transaction=True)
        try:
            yield batch
        except Exception as e:
            batch.clear()
            logger.error(f"Batch write aborted: {e}")
            raise
        else:
            batch.write()

    def get_prefix(self, prefix: bytes) -> list[tuple[bytes, bytes]]:
        """All (key, value) pairs under prefix, in key order."""
        self._check_open()
        return list(self._db.iterator(prefix=prefix))

    def close(self):
        """Close the database."""
        if not self._closed:
            self._db.close()
            self._closed = True
            logger.info("Database closed")

    def is_closed(self) -> bool:
        return self._closed

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
