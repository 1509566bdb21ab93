"""
x402 Client SDK
"""

from x402_armory.clients.x402_client import (
    PaymentRequirementsFilter,
    PaymentRequirementsSelector,
    X402Client,
)
from x402_armory.clients.x402_http_client import X402HttpClient

__all__ = [
    "PaymentRequirementsFilter",
    "PaymentRequirementsSelector",
    "X402Client",
    "X402HttpClient",
]
