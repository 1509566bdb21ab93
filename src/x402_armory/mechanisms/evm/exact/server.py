"""
ExactEvmServerMechanism - exact server mechanism for EVM.
"""

from typing import Any

from x402_armory.config import NetworkConfig
from x402_armory.exceptions import ConfigurationError
from x402_armory.mechanisms._base.server import ServerMechanism
from x402_armory.tokens import TokenRegistry
from x402_armory.types import (
    SCHEME_EXACT,
    AnyPaymentRequirements,
    PaymentRequirementsExtra,
)
from x402_armory.utils.eip712 import is_address

# "$0.01" is shorthand for a USDC amount
DOLLAR_TOKEN_SYMBOL = "USDC"


class ExactEvmServerMechanism(ServerMechanism):
    """TransferWithAuthorization server mechanism for EVM."""

    def __init__(self, token_registry: TokenRegistry) -> None:
        self._token_registry = token_registry

    def scheme(self) -> str:
        return SCHEME_EXACT

    async def parse_price(self, price: str, network: str) -> dict[str, Any]:
        price = price.strip()
        if price.startswith("$"):
            price = f"{price[1:]} {DOLLAR_TOKEN_SYMBOL}"
        return self._token_registry.parse_price(price, network)

    async def enhance_payment_requirements(
        self,
        requirements: AnyPaymentRequirements,
    ) -> AnyPaymentRequirements:
        if requirements.extra is None:
            requirements.extra = PaymentRequirementsExtra()

        token = self._token_registry.find_by_address(
            requirements.network, requirements.asset_address
        )
        if token:
            requirements.extra.name = requirements.extra.name or token.name
            requirements.extra.version = requirements.extra.version or token.version

        return requirements

    def validate_payment_requirements(self, requirements: AnyPaymentRequirements) -> bool:
        try:
            NetworkConfig.get_chain_id(requirements.network)
            asset = requirements.asset_address
        except ConfigurationError:
            return False
        if not is_address(asset):
            return False
        if not is_address(requirements.pay_to):
            return False
        try:
            if int(requirements.amount) <= 0:
                return False
        except ValueError:
            return False
        return True
