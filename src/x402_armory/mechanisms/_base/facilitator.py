"""
Facilitator mechanism base interface
"""

from abc import ABC, abstractmethod

from x402_armory.types import (
    AnyPaymentPayload,
    AnyPaymentRequirements,
    SettleResponse,
    VerifyResponse,
)


class FacilitatorMechanism(ABC):
    """
    Abstract base class for facilitator mechanisms.

    Verifies payment payloads and settles them on-chain. Payment outcomes
    are returned as results, never raised.
    """

    @abstractmethod
    def scheme(self) -> str:
        """Get the payment scheme name"""
        pass

    @abstractmethod
    async def verify(
        self,
        payload: AnyPaymentPayload,
        requirements: AnyPaymentRequirements,
    ) -> VerifyResponse:
        """Verify payment payload against requirements"""
        pass

    @abstractmethod
    async def settle(
        self,
        payload: AnyPaymentPayload,
        requirements: AnyPaymentRequirements,
    ) -> SettleResponse:
        """Execute payment settlement"""
        pass
