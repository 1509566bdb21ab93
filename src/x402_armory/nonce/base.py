"""
Nonce tracker interface
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class NonceKey:
    """Replay-protection key: one EIP-3009 nonce on one token contract"""

    chain_id: int
    asset: str
    nonce: str

    @classmethod
    def create(cls, chain_id: int, asset: str, nonce: str) -> "NonceKey":
        """Build a key with addresses and nonce lower-cased"""
        return cls(chain_id=chain_id, asset=asset.lower(), nonce=nonce.lower())


class NonceTracker(ABC):
    """
    Abstract base class for replay-protection stores.

    ``reserve`` must be an atomic check-and-set: among concurrent callers
    with the same key exactly one receives True. Multi-instance deployments
    need an implementation backed by a shared store.
    """

    @abstractmethod
    async def reserve(self, key: NonceKey, expires_at: int | None = None) -> bool:
        """
        Reserve a nonce.

        Args:
            key: Nonce key
            expires_at: Unix time after which the record may be pruned
                (normally the authorization's validBefore)

        Returns:
            True if this call reserved the key, False if it was already taken
        """
        pass

    @abstractmethod
    async def release(self, key: NonceKey) -> None:
        """Drop a reservation after a failed downstream step"""
        pass

    @abstractmethod
    async def is_used(self, key: NonceKey) -> bool:
        """Return True if the key is reserved or consumed"""
        pass
