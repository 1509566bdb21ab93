"""
Facilitator capability cache

Remembers which extension keys a facilitator recognizes for a network, so
that challenges only advertise extensions the facilitator can handle.
Entries live for ``ttl`` seconds per (facilitator URL, network); a failed
discovery caches an empty set for the same period.
"""

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable

from x402_armory.types import SupportedResponse

logger = logging.getLogger(__name__)

DEFAULT_CAPABILITY_TTL = 300.0

SupportedFetcher = Callable[[str], Awaitable[SupportedResponse]]


class FacilitatorCapabilityCache:
    """TTL read-through cache of facilitator extension support"""

    def __init__(
        self,
        fetch_supported: SupportedFetcher,
        ttl: float = DEFAULT_CAPABILITY_TTL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Args:
            fetch_supported: Coroutine returning ``/supported`` for a URL
            ttl: Entry lifetime in seconds
            clock: Monotonic time source
        """
        self._fetch_supported = fetch_supported
        self._ttl = ttl
        self._clock = clock
        self._entries: dict[tuple[str, str], tuple[float, frozenset[str]]] = {}
        self._locks: dict[tuple[str, str], asyncio.Lock] = {}

    async def get_supported_extensions(self, url: str, network: str) -> frozenset[str]:
        """Extension keys *url* supports on *network*"""
        key = (url, network.lower())
        cached = self._lookup(key)
        if cached is not None:
            return cached

        # Concurrent misses for one key share a single discovery call
        lock = self._locks.setdefault(key, asyncio.Lock())
        async with lock:
            cached = self._lookup(key)
            if cached is not None:
                return cached
            keys = await self._discover(url, network)
            self._entries[key] = (self._clock() + self._ttl, keys)
            return keys

    async def filter(
        self,
        extensions: dict[str, Any] | None,
        url: str | None,
        network: str,
    ) -> dict[str, Any]:
        """Drop extension keys the facilitator at *url* does not support.

        With no URL (local facilitator) extensions pass through unchanged.
        """
        if not extensions:
            return {}
        if not url:
            return dict(extensions)
        supported = await self.get_supported_extensions(url, network)
        return {k: v for k, v in extensions.items() if k in supported}

    def invalidate(self, url: str | None = None) -> None:
        """Forget cached entries, for one URL or all"""
        if url is None:
            self._entries.clear()
            return
        for key in [k for k in self._entries if k[0] == url]:
            del self._entries[key]

    def _lookup(self, key: tuple[str, str]) -> frozenset[str] | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, keys = entry
        if expires_at <= self._clock():
            del self._entries[key]
            return None
        return keys

    async def _discover(self, url: str, network: str) -> frozenset[str]:
        try:
            supported = await self._fetch_supported(url)
        except Exception as e:
            logger.warning("Capability discovery at %s failed: %s", url, e)
            return frozenset()

        wanted = network.lower()
        keys: set[str] = set()
        for kind in supported.kinds:
            if kind.network.lower() != wanted:
                continue
            keys.update(supported.extensions)
            if kind.extra:
                keys.update(kind.extra.keys())
        logger.debug("Facilitator %s supports extensions %s on %s", url, sorted(keys), network)
        return frozenset(keys)
