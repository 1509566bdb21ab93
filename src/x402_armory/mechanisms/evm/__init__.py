"""
EVM mechanism implementations.
"""

from x402_armory.mechanisms.evm.exact import (
    ExactEvmClientMechanism,
    ExactEvmFacilitatorMechanism,
    ExactEvmServerMechanism,
)

__all__ = [
    "ExactEvmClientMechanism",
    "ExactEvmFacilitatorMechanism",
    "ExactEvmServerMechanism",
]
