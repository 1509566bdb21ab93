"""
Shared helpers for the EVM exact (EIP-3009) scheme.
"""

from typing import Any

from x402_armory.tokens import TokenRegistry
from x402_armory.tokens.registry import USDC_NAME, USDC_VERSION
from x402_armory.types import AnyPaymentRequirements, EIP3009Authorization
from x402_armory.utils.eip712 import build_eip712_domain


def resolve_token_domain(
    requirements: AnyPaymentRequirements,
    registry: TokenRegistry | None,
) -> tuple[str, str]:
    """Return the (name, version) EIP-712 domain of the required token.

    Order: ``extra.name``/``extra.version`` advertised in the requirements,
    then the token registry, then the USDC defaults.
    """
    name = requirements.extra.name if requirements.extra else None
    version = requirements.extra.version if requirements.extra else None
    if (name is None or version is None) and registry is not None:
        token = registry.find_by_address(requirements.network, requirements.asset_address)
        if token is not None:
            name = name or token.name
            version = version or token.version
    return name or USDC_NAME, version or USDC_VERSION


def build_domain_for_requirements(
    requirements: AnyPaymentRequirements,
    registry: TokenRegistry | None,
) -> dict[str, Any]:
    """Build the EIP-712 domain a payment for *requirements* must be signed under"""
    name, version = resolve_token_domain(requirements, registry)
    return build_eip712_domain(name, version, requirements.chain_id, requirements.asset_address)


def authorization_args(
    authorization: EIP3009Authorization,
) -> tuple[int, int, int]:
    """Return (value, validAfter, validBefore) as integers"""
    return (
        int(authorization.value),
        int(authorization.valid_after),
        int(authorization.valid_before),
    )
