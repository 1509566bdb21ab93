"""
Facilitator Signers
"""

from x402_armory.signers.facilitator.base import FacilitatorSigner
from x402_armory.signers.facilitator.evm_signer import EvmFacilitatorSigner

__all__ = ["FacilitatorSigner", "EvmFacilitatorSigner"]
