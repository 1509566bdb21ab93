"""
Signature utilities for 65-byte secp256k1 signatures (r || s || v)
"""

import re
from dataclasses import dataclass

from x402_armory.exceptions import ValidationError

_SIGNATURE_PATTERN = re.compile(r"^(0x)?[0-9a-fA-F]{130}$")


@dataclass(frozen=True)
class Signature:
    """Signature split into its components"""

    r: bytes
    s: bytes
    v: int


def parse_signature(signature: str) -> Signature:
    """Split a 65-byte hex signature into r (32B), s (32B) and v (1B).

    Raises:
        ValidationError: If the signature is not 130 hex characters
    """
    if not isinstance(signature, str) or not _SIGNATURE_PATTERN.match(signature):
        raise ValidationError("signature", "Signature must be 65 bytes of hex")
    raw = bytes.fromhex(signature[2:] if signature.startswith("0x") else signature)
    return Signature(r=raw[:32], s=raw[32:64], v=raw[64])


def combine_signature(signature: Signature) -> str:
    """Inverse of parse_signature: 0x-prefixed lowercase hex"""
    if len(signature.r) != 32 or len(signature.s) != 32:
        raise ValidationError("signature", "r and s must be 32 bytes each")
    if not 0 <= signature.v <= 255:
        raise ValidationError("v", f"v does not fit in one byte: {signature.v}")
    return "0x" + (signature.r + signature.s + bytes([signature.v])).hex()


def adjust_v(v: int, chain_id: int | None = None) -> int:
    """Normalize a recovery id to 27/28.

    Accepts 27/28 (returned unchanged), 0/1, and EIP-155 style values
    ``chainId * 2 + 35`` / ``+ 36``.

    Raises:
        ValidationError: If v cannot be normalized
    """
    if v in (27, 28):
        return v
    if v in (0, 1):
        return v + 27
    if chain_id is not None:
        base = chain_id * 2 + 35
        if v in (base, base + 1):
            return v - base + 27
        raise ValidationError("v", f"v={v} does not belong to chain {chain_id}")
    if v >= 35:
        return 27 + (v - 35) % 2
    raise ValidationError("v", f"Unsupported signature v value: {v}")


def normalize_signature(signature: str, chain_id: int | None = None) -> str:
    """Parse, normalize v and re-combine a signature"""
    parts = parse_signature(signature)
    return combine_signature(Signature(r=parts.r, s=parts.s, v=adjust_v(parts.v, chain_id)))
