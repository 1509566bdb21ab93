"""
EVM "exact" payment scheme mechanisms (EIP-3009 TransferWithAuthorization).
"""

from x402_armory.mechanisms.evm.exact.client import ExactEvmClientMechanism
from x402_armory.mechanisms.evm.exact.facilitator import (
    ExactEvmFacilitatorMechanism,
)
from x402_armory.mechanisms.evm.exact.server import ExactEvmServerMechanism

__all__ = [
    "ExactEvmClientMechanism",
    "ExactEvmFacilitatorMechanism",
    "ExactEvmServerMechanism",
]
