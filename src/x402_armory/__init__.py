"""
x402 - HTTP micropayment protocol engine for Python

Supports Client, Server, and Facilitator functionality for EVM payments
over both x402 protocol versions.
"""

__version__ = "0.1.0"

from x402_armory.config import NetworkConfig
from x402_armory.exceptions import (
    ConfigurationError,
    DecodeError,
    FacilitatorError,
    FacilitatorUnavailableError,
    SettlementFailure,
    SettlementQueueError,
    SignatureCreationError,
    SignatureError,
    SignatureVerificationError,
    UnknownTokenError,
    UnsupportedNetworkError,
    ValidationError,
    VerificationFailure,
    X402Error,
)
from x402_armory.nonce import MemoryNonceTracker, NonceKey, NonceTracker
from x402_armory.queue import MemorySettlementQueue, SettlementQueue, SettlementWorker
from x402_armory.tokens import TokenInfo, TokenRegistry
from x402_armory.types import (
    InvalidReason,
    PaymentPayload,
    PaymentPayloadV1,
    PaymentRequired,
    PaymentRequiredV1,
    PaymentRequirements,
    PaymentRequirementsV1,
    ProtocolVersion,
    SettleErrorReason,
    SettleResponse,
    SupportedResponse,
    VerifyResponse,
)

__all__ = [
    "__version__",
    # Types
    "ProtocolVersion",
    "PaymentRequirements",
    "PaymentRequirementsV1",
    "PaymentRequired",
    "PaymentRequiredV1",
    "PaymentPayload",
    "PaymentPayloadV1",
    "VerifyResponse",
    "SettleResponse",
    "SupportedResponse",
    "InvalidReason",
    "SettleErrorReason",
    # Exceptions
    "X402Error",
    "DecodeError",
    "ValidationError",
    "VerificationFailure",
    "SettlementFailure",
    "SettlementQueueError",
    "SignatureError",
    "SignatureVerificationError",
    "SignatureCreationError",
    "FacilitatorError",
    "FacilitatorUnavailableError",
    "ConfigurationError",
    "UnsupportedNetworkError",
    "UnknownTokenError",
    # Config
    "NetworkConfig",
    # Replay protection
    "NonceKey",
    "NonceTracker",
    "MemoryNonceTracker",
    # Deferred settlement
    "SettlementQueue",
    "MemorySettlementQueue",
    "SettlementWorker",
    # Token registry
    "TokenInfo",
    "TokenRegistry",
]
