"""
Client signer base interface
"""

from abc import ABC, abstractmethod
from typing import Any


class ClientSigner(ABC):
    """
    Abstract base class for client signers.

    The wallet capability consumed by the payer side: it produces
    signatures and never exposes key material.
    """

    @abstractmethod
    def get_address(self) -> str:
        """Get the signer's account address"""
        pass

    @abstractmethod
    async def sign_message(self, message: str | bytes) -> str:
        """
        Sign a plaintext message (EIP-191 personal_sign).

        Args:
            message: Message text or raw bytes

        Returns:
            Signature string (0x-prefixed hex)
        """
        pass

    @abstractmethod
    async def sign_typed_data(
        self,
        domain: dict[str, Any],
        types: dict[str, Any],
        message: dict[str, Any],
    ) -> str:
        """
        Sign typed data (EIP-712).

        Args:
            domain: EIP-712 domain
            types: Type definitions (without EIP712Domain)
            message: Message to sign

        Returns:
            Signature string (0x-prefixed hex)
        """
        pass
