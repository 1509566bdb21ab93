"""
Server mechanism base interface
"""

from abc import ABC, abstractmethod
from typing import Any

from x402_armory.types import AnyPaymentRequirements


class ServerMechanism(ABC):
    """
    Abstract base class for server mechanisms.

    Turns resource prices into payment requirements.
    """

    @abstractmethod
    def scheme(self) -> str:
        """Get the payment scheme name"""
        pass

    @abstractmethod
    async def parse_price(self, price: str, network: str) -> dict[str, Any]:
        """Parse price string to asset amount (``amount``, ``asset``, ...)"""
        pass

    @abstractmethod
    async def enhance_payment_requirements(
        self,
        requirements: AnyPaymentRequirements,
    ) -> AnyPaymentRequirements:
        """Attach scheme metadata (e.g. EIP-712 token domain) to requirements"""
        pass

    @abstractmethod
    def validate_payment_requirements(self, requirements: AnyPaymentRequirements) -> bool:
        """Validate payment requirements"""
        pass
