"""
In-memory nonce tracker for single-instance deployments
"""

import logging
import threading
import time

from x402_armory.nonce.base import NonceKey, NonceTracker

logger = logging.getLogger(__name__)

# Retention for records reserved without an explicit expiry
DEFAULT_RETENTION_SECONDS = 24 * 3600


class MemoryNonceTracker(NonceTracker):
    """Nonce tracker backed by a dict guarded by a lock"""

    def __init__(self, default_retention: int = DEFAULT_RETENTION_SECONDS) -> None:
        self._records: dict[NonceKey, int] = {}
        self._lock = threading.Lock()
        self._default_retention = default_retention

    async def reserve(self, key: NonceKey, expires_at: int | None = None) -> bool:
        now = int(time.time())
        with self._lock:
            current = self._records.get(key)
            if current is not None and current >= now:
                return False
            self._records[key] = expires_at if expires_at is not None else (
                now + self._default_retention
            )
        logger.debug("Reserved nonce %s on chain %s", key.nonce, key.chain_id)
        return True

    async def release(self, key: NonceKey) -> None:
        with self._lock:
            self._records.pop(key, None)
        logger.debug("Released nonce %s on chain %s", key.nonce, key.chain_id)

    async def is_used(self, key: NonceKey) -> bool:
        now = int(time.time())
        with self._lock:
            current = self._records.get(key)
            return current is not None and current >= now

    def prune(self, now: int | None = None) -> int:
        """Remove records whose expiry has passed.

        Returns:
            Number of records removed
        """
        cutoff = int(time.time()) if now is None else now
        with self._lock:
            expired = [k for k, exp in self._records.items() if exp < cutoff]
            for k in expired:
                del self._records[k]
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
