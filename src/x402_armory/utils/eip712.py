"""
EIP-712 / EIP-3009 authorization engine.

Builds the TransferWithAuthorization domain and message, validates
authorization structure and recovers signers. Never holds key material;
signing is delegated to a ClientSigner.
"""

import re
import secrets
import time
from typing import Any, Union

from eth_account import Account
from eth_account.messages import encode_typed_data

from x402_armory.exceptions import SignatureVerificationError, ValidationError
from x402_armory.types import EIP3009Authorization
from x402_armory.utils.signature import normalize_signature

# Default validity period (1 hour)
DEFAULT_VALIDITY_SECONDS = 3600

# Clock-skew allowance applied to validAfter
VALID_AFTER_SKEW_SECONDS = 30

ADDRESS_PATTERN = re.compile(r"0x[a-fA-F0-9]{40}")
BYTES32_PATTERN = re.compile(r"0x[a-fA-F0-9]{64}")
UINT_PATTERN = re.compile(r"[0-9]+")


# ---------------------------------------------------------------------------
# EIP-712 type definitions for TransferWithAuthorization
# ---------------------------------------------------------------------------

TRANSFER_AUTH_EIP712_DOMAIN_TYPE = [
    {"name": "name", "type": "string"},
    {"name": "version", "type": "string"},
    {"name": "chainId", "type": "uint256"},
    {"name": "verifyingContract", "type": "address"},
]

TRANSFER_AUTH_EIP712_TYPES = {
    "TransferWithAuthorization": [
        {"name": "from", "type": "address"},
        {"name": "to", "type": "address"},
        {"name": "value", "type": "uint256"},
        {"name": "validAfter", "type": "uint256"},
        {"name": "validBefore", "type": "uint256"},
        {"name": "nonce", "type": "bytes32"},
    ],
}

TRANSFER_AUTH_PRIMARY_TYPE = "TransferWithAuthorization"


# ---------------------------------------------------------------------------
# ABI fragments used for settlement and balance checks
# ---------------------------------------------------------------------------

TRANSFER_WITH_AUTHORIZATION_ABI: list[dict[str, Any]] = [
    {
        "inputs": [
            {"name": "from", "type": "address"},
            {"name": "to", "type": "address"},
            {"name": "value", "type": "uint256"},
            {"name": "validAfter", "type": "uint256"},
            {"name": "validBefore", "type": "uint256"},
            {"name": "nonce", "type": "bytes32"},
            {"name": "v", "type": "uint8"},
            {"name": "r", "type": "bytes32"},
            {"name": "s", "type": "bytes32"},
        ],
        "name": "transferWithAuthorization",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    },
]

BALANCE_OF_ABI: list[dict[str, Any]] = [
    {
        "inputs": [{"name": "account", "type": "address"}],
        "name": "balanceOf",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
]


def is_address(value: Any) -> bool:
    """Return True for a 0x-prefixed 20-byte hex address"""
    return isinstance(value, str) and bool(ADDRESS_PATTERN.fullmatch(value))


# ---------------------------------------------------------------------------
# Structural validation
# ---------------------------------------------------------------------------


def validate_transfer_with_authorization(
    authorization: Union[EIP3009Authorization, dict[str, Any]],
) -> EIP3009Authorization:
    """Check the structure of an EIP-3009 authorization.

    Does not check signatures.

    Returns:
        The authorization as a model

    Raises:
        ValidationError: Naming the first offending field
    """
    if isinstance(authorization, dict):
        for field in ("from", "to", "value", "validAfter", "validBefore", "nonce"):
            if authorization.get(field) in (None, ""):
                raise ValidationError(field, f"Missing '{field}'")
        authorization = EIP3009Authorization.model_validate(
            {k: str(v) for k, v in authorization.items()}
        )

    if not is_address(authorization.from_address):
        raise ValidationError("from", f"Invalid 'from' address: {authorization.from_address}")
    if not is_address(authorization.to):
        raise ValidationError("to", f"Invalid 'to' address: {authorization.to}")

    numbers: dict[str, int] = {}
    for field, raw in (
        ("value", authorization.value),
        ("validAfter", authorization.valid_after),
        ("validBefore", authorization.valid_before),
    ):
        if not UINT_PATTERN.fullmatch(raw):
            raise ValidationError(field, f"'{field}' must be a non-negative integer: {raw}")
        numbers[field] = int(raw)

    if numbers["validAfter"] >= numbers["validBefore"]:
        raise ValidationError("validBefore", "'validAfter' must be less than 'validBefore'")

    if not BYTES32_PATTERN.fullmatch(authorization.nonce):
        raise ValidationError("nonce", "'nonce' must be a 0x-prefixed bytes32 hex string")

    return authorization


# ---------------------------------------------------------------------------
# Domain / message construction
# ---------------------------------------------------------------------------


def build_eip712_domain(
    token_name: str,
    token_version: str,
    chain_id: int,
    verifying_contract: str,
) -> dict[str, Any]:
    """Build EIP-712 domain dict for TransferWithAuthorization."""
    return {
        "name": token_name,
        "version": token_version,
        "chainId": chain_id,
        "verifyingContract": verifying_contract.lower(),
    }


def build_eip712_message(auth: EIP3009Authorization) -> dict[str, Any]:
    """Build EIP-712 message dict from authorization."""
    nonce = auth.nonce[2:] if auth.nonce.startswith("0x") else auth.nonce
    return {
        "from": auth.from_address.lower(),
        "to": auth.to.lower(),
        "value": int(auth.value),
        "validAfter": int(auth.valid_after),
        "validBefore": int(auth.valid_before),
        "nonce": bytes.fromhex(nonce),
    }


def build_typed_data(domain: dict[str, Any], message: dict[str, Any]) -> dict[str, Any]:
    """Assemble the full EIP-712 document for TransferWithAuthorization."""
    return {
        "types": {"EIP712Domain": TRANSFER_AUTH_EIP712_DOMAIN_TYPE, **TRANSFER_AUTH_EIP712_TYPES},
        "domain": domain,
        "primaryType": TRANSFER_AUTH_PRIMARY_TYPE,
        "message": message,
    }


def recover_signer(
    domain: dict[str, Any],
    message: dict[str, Any],
    signature: str,
) -> str:
    """Recover the address that signed a TransferWithAuthorization.

    Raises:
        SignatureVerificationError: If no address can be recovered
    """
    chain_id = domain.get("chainId")
    try:
        normalized = normalize_signature(signature, chain_id)
        signable = encode_typed_data(full_message=build_typed_data(domain, message))
        return Account.recover_message(signable, signature=bytes.fromhex(normalized[2:]))
    except ValidationError as e:
        raise SignatureVerificationError(str(e)) from e
    except Exception as e:
        raise SignatureVerificationError(f"Signer recovery failed: {e}") from e


# ---------------------------------------------------------------------------
# Utility helpers
# ---------------------------------------------------------------------------


def create_nonce() -> str:
    """Generate a random 32-byte nonce (0x-prefixed hex)."""
    return "0x" + secrets.token_hex(32)


def create_validity_window(
    duration: int = DEFAULT_VALIDITY_SECONDS,
) -> tuple[int, int]:
    """Create (validAfter, validBefore) timestamps.

    validAfter sits 30 seconds before now to absorb clock skew.
    """
    now = int(time.time())
    return now - VALID_AFTER_SKEW_SECONDS, now + duration
