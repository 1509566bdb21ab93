"""
Mechanism base interfaces
"""

from x402_armory.mechanisms._base.client import ClientMechanism
from x402_armory.mechanisms._base.facilitator import FacilitatorMechanism
from x402_armory.mechanisms._base.server import ServerMechanism

__all__ = ["ClientMechanism", "FacilitatorMechanism", "ServerMechanism"]
