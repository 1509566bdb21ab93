"""
Client mechanism base interface
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

from x402_armory.types import AnyPaymentPayload, AnyPaymentRequirements

if TYPE_CHECKING:
    from x402_armory.signers.client.base import ClientSigner


class ClientMechanism(ABC):
    """
    Abstract base class for client payment mechanisms.

    Responsible for creating payment payloads for specific chains/schemes.
    """

    @abstractmethod
    def scheme(self) -> str:
        """Get the payment scheme name"""
        pass

    def get_signer(self) -> "ClientSigner | None":
        """Return the signer used by this mechanism, if any.

        Extension hooks that need a wallet signature (Sign-In-With-X) use it.
        """
        return None

    @abstractmethod
    async def create_payment_payload(
        self,
        requirements: AnyPaymentRequirements,
        resource: str,
        extensions: dict[str, Any] | None = None,
    ) -> AnyPaymentPayload:
        """
        Create a payment payload for the given requirements.

        Args:
            requirements: Payment requirements from server (V1 or V2)
            resource: Resource URL
            extensions: Optional extensions map for the payload (V2 only)

        Returns:
            Signed payload of the same protocol version as *requirements*
        """
        pass
