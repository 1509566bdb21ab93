"""
Replay protection
"""

from x402_armory.nonce.base import NonceKey, NonceTracker
from x402_armory.nonce.memory import MemoryNonceTracker

__all__ = ["NonceKey", "NonceTracker", "MemoryNonceTracker"]
