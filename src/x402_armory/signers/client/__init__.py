"""
Client Signers
"""

from x402_armory.signers.client.base import ClientSigner
from x402_armory.signers.client.evm_signer import EvmClientSigner

__all__ = ["ClientSigner", "EvmClientSigner"]
