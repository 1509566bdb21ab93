"""
Authorization engine and helpers
"""

from x402_armory.utils.eip712 import (
    TRANSFER_AUTH_EIP712_TYPES,
    TRANSFER_AUTH_PRIMARY_TYPE,
    build_eip712_domain,
    build_eip712_message,
    build_typed_data,
    create_nonce,
    create_validity_window,
    is_address,
    recover_signer,
    validate_transfer_with_authorization,
)
from x402_armory.utils.signature import (
    Signature,
    adjust_v,
    combine_signature,
    normalize_signature,
    parse_signature,
)

__all__ = [
    "TRANSFER_AUTH_EIP712_TYPES",
    "TRANSFER_AUTH_PRIMARY_TYPE",
    "build_eip712_domain",
    "build_eip712_message",
    "build_typed_data",
    "create_nonce",
    "create_validity_window",
    "is_address",
    "recover_signer",
    "validate_transfer_with_authorization",
    "Signature",
    "adjust_v",
    "combine_signature",
    "normalize_signature",
    "parse_signature",
]
