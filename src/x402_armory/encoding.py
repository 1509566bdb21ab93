"""
Encoding utilities for x402 protocol

Wire codec for the three header artifacts (challenge, payment payload,
settlement result) in both protocol versions.

V1 bodies are always Base64(JSON). V2 bodies are emitted as Base64(JSON)
and decoded by trying plain JSON first, then Base64 (standard or URL-safe,
padding optional).
"""

import base64
import binascii
import json
from collections.abc import Mapping
from typing import Any, Optional

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from x402_armory.exceptions import DecodeError
from x402_armory.types import (
    AnyPaymentPayload,
    AnyPaymentRequired,
    PaymentPayload,
    PaymentPayloadV1,
    PaymentRequired,
    PaymentRequiredV1,
    ProtocolVersion,
    SettleResponse,
)

V1_PAYMENT_HEADER = "X-PAYMENT"
V1_PAYMENT_REQUIRED_HEADER = "X-PAYMENT-REQUIRED"
V1_PAYMENT_RESPONSE_HEADER = "X-PAYMENT-RESPONSE"

PAYMENT_SIGNATURE_HEADER = "PAYMENT-SIGNATURE"
PAYMENT_REQUIRED_HEADER = "PAYMENT-REQUIRED"
PAYMENT_RESPONSE_HEADER = "PAYMENT-RESPONSE"

_V1_HEADERS = {
    V1_PAYMENT_HEADER.lower(),
    V1_PAYMENT_REQUIRED_HEADER.lower(),
    V1_PAYMENT_RESPONSE_HEADER.lower(),
}
_V2_HEADERS = {
    PAYMENT_SIGNATURE_HEADER.lower(),
    PAYMENT_REQUIRED_HEADER.lower(),
    PAYMENT_RESPONSE_HEADER.lower(),
}


# ---------------------------------------------------------------------------
# Primitive helpers
# ---------------------------------------------------------------------------


def encode_base64(data: str | bytes) -> str:
    """Encode data to base64"""
    if isinstance(data, str):
        data = data.encode("utf-8")
    return base64.b64encode(data).decode("utf-8")


def decode_base64_bytes(data: str) -> bytes:
    """Decode standard or URL-safe base64, padding optional"""
    normalized = data.strip().replace("-", "+").replace("_", "/")
    normalized += "=" * (-len(normalized) % 4)
    return base64.b64decode(normalized, validate=True)


def decode_base64(data: str) -> str:
    """Decode base64 to string"""
    return decode_base64_bytes(data).decode("utf-8")


def bytes_to_hex(data: bytes, prefix: bool = True) -> str:
    """Convert bytes to hex string"""
    hex_str = data.hex()
    return f"0x{hex_str}" if prefix else hex_str


def hex_to_bytes(hex_str: str) -> bytes:
    """Convert hex string to bytes"""
    if hex_str.startswith(("0x", "0X")):
        hex_str = hex_str[2:]
    return bytes.fromhex(hex_str)


# ---------------------------------------------------------------------------
# Header names
# ---------------------------------------------------------------------------


def payment_header_name(version: ProtocolVersion) -> str:
    match version:
        case ProtocolVersion.V1:
            return V1_PAYMENT_HEADER
        case ProtocolVersion.V2:
            return PAYMENT_SIGNATURE_HEADER


def payment_required_header_name(version: ProtocolVersion) -> str:
    match version:
        case ProtocolVersion.V1:
            return V1_PAYMENT_REQUIRED_HEADER
        case ProtocolVersion.V2:
            return PAYMENT_REQUIRED_HEADER


def payment_response_header_name(version: ProtocolVersion) -> str:
    match version:
        case ProtocolVersion.V1:
            return V1_PAYMENT_RESPONSE_HEADER
        case ProtocolVersion.V2:
            return PAYMENT_RESPONSE_HEADER


def get_payment_header(headers: Mapping[str, str]) -> tuple[ProtocolVersion, str] | None:
    """Return (version, value) for the payment header present, V2 first"""
    lowered = {k.lower(): v for k, v in headers.items()}
    value = lowered.get(PAYMENT_SIGNATURE_HEADER.lower())
    if value:
        return ProtocolVersion.V2, value
    value = lowered.get(V1_PAYMENT_HEADER.lower())
    if value:
        return ProtocolVersion.V1, value
    return None


def detect_version(
    headers: Mapping[str, str] | None = None,
    value: str | None = None,
    default: ProtocolVersion = ProtocolVersion.V2,
) -> ProtocolVersion:
    """Detect the protocol version of an exchange.

    Order: a versioned header name is present, then the ``x402Version`` field
    of ``value``, then ``default``.
    """
    if headers:
        names = {k.lower() for k in headers.keys()}
        if names & _V2_HEADERS:
            return ProtocolVersion.V2
        if names & _V1_HEADERS:
            return ProtocolVersion.V1

    if value:
        try:
            data = _decode_body(value, ProtocolVersion.V2)
        except DecodeError:
            return default
        return _version_field(data) or default

    return default


# ---------------------------------------------------------------------------
# Body encoding
# ---------------------------------------------------------------------------


def _dump(model: BaseModel) -> dict[str, Any]:
    return model.model_dump(by_alias=True, exclude_none=True, mode="json")


def _encode_body(data: dict[str, Any], version: ProtocolVersion) -> str:
    # Both versions emit Base64(JSON); only decoding differs.
    return encode_base64(json.dumps(data, separators=(",", ":")))


def _decode_body(value: str, version: ProtocolVersion) -> dict[str, Any]:
    if not value or not value.strip():
        raise DecodeError("Empty header value")

    data: Any = None
    match version:
        case ProtocolVersion.V1:
            data = _loads_base64(value)
        case ProtocolVersion.V2:
            try:
                data = json.loads(value)
            except ValueError:
                data = _loads_base64(value)

    if not isinstance(data, dict):
        raise DecodeError("Decoded body is not a JSON object")
    return data


def _loads_base64(value: str) -> Any:
    try:
        return json.loads(decode_base64(value))
    except (binascii.Error, UnicodeDecodeError, ValueError) as e:
        raise DecodeError(f"Malformed Base64/JSON body: {e}") from e


def _version_field(data: dict[str, Any]) -> Optional[ProtocolVersion]:
    raw = data.get("x402Version")
    # bool is an int subclass; true must not read as version 1
    if type(raw) is int and raw in (1, 2):
        return ProtocolVersion(raw)
    return None


def encode_json_header(data: dict[str, Any], version: ProtocolVersion) -> str:
    """Encode an arbitrary JSON object with the version's header rules"""
    return _encode_body(data, version)


def decode_json_header(value: str, version: ProtocolVersion) -> dict[str, Any]:
    """Decode a header body to a JSON object with the version's rules"""
    return _decode_body(value, version)


# ---------------------------------------------------------------------------
# Challenge (PAYMENT-REQUIRED)
# ---------------------------------------------------------------------------


def encode_payment_required(payment_required: AnyPaymentRequired) -> str:
    """Encode a 402 challenge for its header"""
    return _encode_body(_dump(payment_required), payment_required.protocol_version)


def decode_payment_required(
    encoded: str,
    version: ProtocolVersion | None = None,
) -> AnyPaymentRequired:
    """Decode a 402 challenge.

    Args:
        encoded: Header value
        version: Version implied by the header name, if known

    Raises:
        DecodeError: On malformed input or missing required fields
    """
    data = _decode_body(encoded, version or ProtocolVersion.V2)
    model_version = _version_field(data) or version or ProtocolVersion.V2
    try:
        match model_version:
            case ProtocolVersion.V1:
                return PaymentRequiredV1.model_validate(data)
            case ProtocolVersion.V2:
                return PaymentRequired.model_validate(data)
    except PydanticValidationError as e:
        raise DecodeError(f"Invalid payment required body: {e}") from e


# ---------------------------------------------------------------------------
# Payment payload (X-PAYMENT / PAYMENT-SIGNATURE)
# ---------------------------------------------------------------------------


def encode_payment_payload(payload: AnyPaymentPayload) -> str:
    """Encode payment payload for HTTP header"""
    return _encode_body(_dump(payload), payload.protocol_version)


def decode_payment_payload(
    encoded: str,
    version: ProtocolVersion | None = None,
) -> AnyPaymentPayload:
    """Decode payment payload from HTTP header.

    The header name fixes the body encoding; the ``x402Version`` field picks
    the model so that a version mismatch reaches verification instead of
    failing here.

    Raises:
        DecodeError: On malformed input or missing required fields
    """
    data = _decode_body(encoded, version or ProtocolVersion.V2)
    model_version = _version_field(data) or version or ProtocolVersion.V2
    try:
        match model_version:
            case ProtocolVersion.V1:
                return PaymentPayloadV1.model_validate(data)
            case ProtocolVersion.V2:
                return PaymentPayload.model_validate(data)
    except PydanticValidationError as e:
        raise DecodeError(f"Invalid payment payload body: {e}") from e


# ---------------------------------------------------------------------------
# Settlement result (PAYMENT-RESPONSE)
# ---------------------------------------------------------------------------


def encode_settlement_response(
    response: SettleResponse,
    version: ProtocolVersion = ProtocolVersion.V2,
) -> str:
    """Encode a settlement result for its header"""
    return _encode_body(_dump(response), version)


def decode_settlement_response(
    encoded: str,
    version: ProtocolVersion = ProtocolVersion.V2,
) -> SettleResponse:
    """Decode a settlement result.

    Raises:
        DecodeError: On malformed input or missing required fields
    """
    data = _decode_body(encoded, version)
    try:
        return SettleResponse.model_validate(data)
    except PydanticValidationError as e:
        raise DecodeError(f"Invalid settlement body: {e}") from e
