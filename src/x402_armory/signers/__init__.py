"""
Wallet and RPC capability adapters
"""

from x402_armory.signers.client import ClientSigner, EvmClientSigner
from x402_armory.signers.facilitator import EvmFacilitatorSigner, FacilitatorSigner

__all__ = ["ClientSigner", "EvmClientSigner", "FacilitatorSigner", "EvmFacilitatorSigner"]
