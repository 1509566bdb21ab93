"""
x402 Mechanisms - Payment mechanisms per chain and scheme

Structure:
    _base/          - ABC interfaces (ClientMechanism, ...)
    evm/            - EVM chain implementations
        exact/      - exact scheme (client, facilitator, server)
"""

from x402_armory.mechanisms import evm
from x402_armory.mechanisms._base import ClientMechanism, FacilitatorMechanism, ServerMechanism
from x402_armory.mechanisms.evm import (
    ExactEvmClientMechanism,
    ExactEvmFacilitatorMechanism,
    ExactEvmServerMechanism,
)

__all__ = [
    # Base interfaces
    "ClientMechanism",
    "FacilitatorMechanism",
    "ServerMechanism",
    # EVM
    "ExactEvmClientMechanism",
    "ExactEvmFacilitatorMechanism",
    "ExactEvmServerMechanism",
    # Subpackages
    "evm",
]
