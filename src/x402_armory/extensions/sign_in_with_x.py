"""
Sign-In-With-X (SIWX) extension

Wallet authentication for repeat access. The server declares what it wants
signed; the client builds a plaintext message from those fields, signs it
(EIP-191) and sends ``siwx-v1-<base64url(JSON)>``.
"""

import base64
import binascii
import json
import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable, Optional, Union

from eth_account import Account
from eth_account.messages import encode_defunct
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from x402_armory.exceptions import DecodeError
from x402_armory.extensions.base import (
    SIGN_IN_WITH_X,
    ExtensionValidation,
    create_extension,
    validate_extension,
)
from x402_armory.utils.eip712 import is_address

logger = logging.getLogger(__name__)

SIWX_HEADER_PREFIX = "siwx-v1-"
DEFAULT_DOMAIN = "localhost"

SIWX_INFO_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "domain": {"type": "string"},
        "resourceUri": {"type": "string"},
        "network": {"type": ["string", "array"], "items": {"type": "string"}},
        "statement": {"type": "string"},
        "version": {"type": "string"},
        "expirationSeconds": {"type": "number"},
    },
}


class SIWxExtensionInfo(BaseModel):
    """Server-declared SIWX parameters"""

    domain: Optional[str] = None
    resource_uri: Optional[str] = Field(None, alias="resourceUri")
    network: Optional[Union[str, list[str]]] = None
    statement: Optional[str] = None
    version: Optional[str] = None
    expiration_seconds: Optional[float] = Field(None, alias="expirationSeconds")

    class Config:
        populate_by_name = True


class SIWxPayload(BaseModel):
    """Client-built SIWX message fields plus signature"""

    domain: str
    address: str
    resource_uri: Optional[str] = Field(None, alias="resourceUri")
    statement: Optional[str] = None
    version: Optional[str] = None
    chain_id: Optional[Union[str, list[str]]] = Field(None, alias="chainId")
    expiration_time: Optional[str] = Field(None, alias="expirationTime")
    issued_at: Optional[str] = Field(None, alias="issuedAt")
    nonce: Optional[str] = None
    signature: Optional[str] = None

    class Config:
        populate_by_name = True


def declare_siwx_extension(
    domain: str | None = None,
    resource_uri: str | None = None,
    network: str | list[str] | None = None,
    statement: str | None = None,
    version: str | None = None,
    expiration_seconds: float | None = None,
) -> dict[str, Any]:
    """Server side: declare SIWX for a challenge"""
    info = SIWxExtensionInfo(
        domain=domain,
        resourceUri=resource_uri,
        network=network,
        statement=statement,
        version=version,
        expirationSeconds=expiration_seconds,
    )
    return create_extension(
        info.model_dump(by_alias=True, exclude_none=True), SIWX_INFO_SCHEMA
    )


def validate_siwx_extension(extension: Any) -> ExtensionValidation:
    return validate_extension(extension, SIWxExtensionInfo)


def format_siwx_time(timestamp: float) -> str:
    """ISO-8601 UTC timestamp with milliseconds and a trailing Z"""
    moment = datetime.fromtimestamp(timestamp, tz=timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _parse_time(value: str) -> float:
    return datetime.fromisoformat(value.replace("Z", "+00:00")).timestamp()


def create_siwx_payload(
    server_info: SIWxExtensionInfo | dict[str, Any],
    address: str,
    nonce: str | None = None,
    issued_at: str | None = None,
    expiration_time: str | None = None,
    now: float | None = None,
) -> SIWxPayload:
    """Client side: fill a SIWX payload from the server's declaration.

    ``expiration_time`` defaults to ``now + expirationSeconds`` when the
    server declares a lifetime.
    """
    if isinstance(server_info, dict):
        server_info = SIWxExtensionInfo.model_validate(server_info)

    if expiration_time is None and server_info.expiration_seconds:
        current = time.time() if now is None else now
        expiration_time = format_siwx_time(current + server_info.expiration_seconds)

    return SIWxPayload(
        domain=server_info.domain or DEFAULT_DOMAIN,
        address=address,
        resourceUri=server_info.resource_uri,
        statement=server_info.statement,
        version=server_info.version,
        chainId=server_info.network,
        nonce=nonce,
        issuedAt=issued_at,
        expirationTime=expiration_time,
    )


def create_siwx_message(payload: SIWxPayload) -> str:
    """Render the plaintext message that gets signed.

    A pure function of the payload fields; the signature is not part of it.
    """
    lines = [f"{payload.domain} wants you to sign in"]

    if payload.statement:
        lines.append("")
        lines.append(payload.statement)

    lines.append("")

    if payload.resource_uri:
        lines.append(f"URI: {payload.resource_uri}")
    if payload.version:
        lines.append(f"Version: {payload.version}")
    if payload.nonce:
        lines.append(f"Nonce: {payload.nonce}")
    if payload.issued_at:
        lines.append(f"Issued At: {payload.issued_at}")
    if payload.expiration_time:
        lines.append(f"Expiration Time: {payload.expiration_time}")
    if payload.chain_id:
        chains = payload.chain_id
        if isinstance(chains, list):
            chains = ", ".join(chains)
        lines.append(f"Chain ID(s): {chains}")

    lines.append("")
    lines.append(f"Address: {payload.address}")

    return "\n".join(lines)


def encode_siwx_header(payload: SIWxPayload) -> str:
    """Frame a signed payload as ``siwx-v1-<base64url(JSON)>`` (unpadded)"""
    body = json.dumps(payload.model_dump(by_alias=True, exclude_none=True), separators=(",", ":"))
    encoded = base64.urlsafe_b64encode(body.encode("utf-8")).decode("ascii").rstrip("=")
    return f"{SIWX_HEADER_PREFIX}{encoded}"


def parse_siwx_header(header: str) -> SIWxPayload:
    """Inverse of encode_siwx_header

    Raises:
        DecodeError: On a missing prefix or undecodable body
    """
    if not header or not header.startswith(SIWX_HEADER_PREFIX):
        raise DecodeError("Invalid SIWX header format")
    encoded = header[len(SIWX_HEADER_PREFIX) :]
    if not encoded:
        raise DecodeError("Invalid SIWX header format")
    encoded += "=" * (-len(encoded) % 4)
    try:
        data = json.loads(base64.urlsafe_b64decode(encoded).decode("utf-8"))
        return SIWxPayload.model_validate(data)
    except (binascii.Error, UnicodeDecodeError, ValueError, PydanticValidationError) as e:
        raise DecodeError(f"Failed to decode SIWX header: {e}") from e


def verify_siwx_signature(payload: SIWxPayload) -> ExtensionValidation:
    """Recover the EIP-191 signer of the reconstructed message"""
    if not payload.signature:
        return ExtensionValidation.fail("Missing signature")
    if not is_address(payload.address):
        return ExtensionValidation.fail("Invalid address")

    message = encode_defunct(text=create_siwx_message(payload))
    try:
        recovered = Account.recover_message(message, signature=payload.signature)
    except Exception as e:
        logger.info("SIWX signature recovery failed: %s", e)
        return ExtensionValidation.fail("Signature verification failed")
    if recovered.lower() != payload.address.lower():
        return ExtensionValidation.fail("Signature verification failed")
    return ExtensionValidation.ok()


def validate_siwx_message(
    payload: SIWxPayload,
    resource_uri: str,
    max_age: float | None = None,
    check_nonce: Callable[[str], bool] | None = None,
    verify_signature: bool = True,
    now: float | None = None,
) -> ExtensionValidation:
    """Server side: validate a parsed SIWX payload.

    Checks run in order and the first failure is reported: domain, address,
    resource URI, expiration, max age against ``issuedAt``, ``check_nonce``
    and finally the signature.
    """
    current = time.time() if now is None else now

    if not payload.domain:
        return ExtensionValidation.fail("Missing domain")
    if not is_address(payload.address):
        return ExtensionValidation.fail("Invalid or missing address")
    if payload.resource_uri and payload.resource_uri != resource_uri:
        return ExtensionValidation.fail("Resource URI mismatch")

    try:
        if payload.expiration_time and _parse_time(payload.expiration_time) < current:
            return ExtensionValidation.fail("Message has expired")
        if max_age is not None and payload.issued_at:
            if current - _parse_time(payload.issued_at) > max_age:
                return ExtensionValidation.fail("Message is too old")
    except ValueError:
        return ExtensionValidation.fail("Invalid timestamp")

    if check_nonce is not None and payload.nonce:
        if not check_nonce(payload.nonce):
            return ExtensionValidation.fail("Invalid nonce")

    if verify_signature:
        return verify_siwx_signature(payload)
    return ExtensionValidation.ok()
