"""
Facilitator: local verification/settlement, remote client, routing and
capability discovery
"""

from x402_armory.facilitator.app import create_facilitator_app, parse_facilitator_request
from x402_armory.facilitator.capabilities import (
    DEFAULT_CAPABILITY_TTL,
    FacilitatorCapabilityCache,
)
from x402_armory.facilitator.facilitator_client import FacilitatorClient
from x402_armory.facilitator.retry import RetryPolicy, is_transient_error, retry_async
from x402_armory.facilitator.routing import FacilitatorRouting
from x402_armory.facilitator.x402_facilitator import X402Facilitator

__all__ = [
    "DEFAULT_CAPABILITY_TTL",
    "FacilitatorCapabilityCache",
    "FacilitatorClient",
    "FacilitatorRouting",
    "RetryPolicy",
    "X402Facilitator",
    "create_facilitator_app",
    "is_transient_error",
    "parse_facilitator_request",
    "retry_async",
]
