"""
Payment Identifier extension

An idempotency token carried in the payload's extensions map as
``{"payment-identifier": {"info": {"paymentId": ...}}}``.
"""

import re
import secrets
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from x402_armory.extensions.base import (
    PAYMENT_IDENTIFIER,
    ExtensionValidation,
    create_extension,
    extract_extension,
    validate_extension,
)
from x402_armory.types import AnyPaymentPayload

PAYMENT_ID_ALPHABET = "abcdefghijklmnopqrstuvwxyz0123456789-_"
PAYMENT_ID_LENGTH = 32
PAYMENT_ID_MIN_LENGTH = 3
PAYMENT_ID_MAX_LENGTH = 128
PAYMENT_ID_PATTERN = re.compile(r"^[a-z0-9_-]+$")


def generate_payment_id() -> str:
    """Random 32-character id over ``[a-z0-9_-]``"""
    return "".join(secrets.choice(PAYMENT_ID_ALPHABET) for _ in range(PAYMENT_ID_LENGTH))


def is_valid_payment_id(payment_id: Any) -> bool:
    return (
        isinstance(payment_id, str)
        and PAYMENT_ID_MIN_LENGTH <= len(payment_id) <= PAYMENT_ID_MAX_LENGTH
        and bool(PAYMENT_ID_PATTERN.match(payment_id))
    )


class PaymentIdentifierInfo(BaseModel):
    """Payment identifier extension info"""

    payment_id: Optional[str] = Field(None, alias="paymentId")
    required: Optional[bool] = None

    class Config:
        populate_by_name = True

    @field_validator("payment_id")
    @classmethod
    def _check_payment_id(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        if len(value) < PAYMENT_ID_MIN_LENGTH:
            raise ValueError(f"must be at least {PAYMENT_ID_MIN_LENGTH} characters")
        if len(value) > PAYMENT_ID_MAX_LENGTH:
            raise ValueError(f"must be {PAYMENT_ID_MAX_LENGTH} characters or fewer")
        if not PAYMENT_ID_PATTERN.match(value):
            raise ValueError("lowercase alphanumeric, hyphens and underscores only")
        return value


def declare_payment_identifier_extension(
    payment_id: str | None = None,
    required: bool | None = None,
) -> dict[str, Any]:
    """Server side: declare the payment identifier extension"""
    info = PaymentIdentifierInfo(paymentId=payment_id, required=required)
    schema = {
        "type": "object",
        "properties": {
            "paymentId": {
                "type": "string",
                "minLength": PAYMENT_ID_MIN_LENGTH,
                "maxLength": PAYMENT_ID_MAX_LENGTH,
                "pattern": PAYMENT_ID_PATTERN.pattern,
                "description": "Unique payment identifier for idempotency",
            },
            "required": {
                "type": "boolean",
                "description": "Whether payment identifier is required for this payment",
            },
        },
        "required": ["paymentId"] if required else [],
    }
    return create_extension(info.model_dump(by_alias=True, exclude_none=True), schema)


def validate_payment_identifier_extension(extension: Any) -> ExtensionValidation:
    """Structural check plus id format (length 3-128, ``[a-z0-9_-]``)"""
    return validate_extension(extension, PaymentIdentifierInfo)


def append_payment_identifier(
    extensions: dict[str, Any] | None,
    payment_id: str,
) -> dict[str, Any]:
    """Return a copy of *extensions* carrying *payment_id*

    Raises:
        ValueError: If the id is malformed
    """
    if not is_valid_payment_id(payment_id):
        raise ValueError(f"Invalid payment id: {payment_id!r}")
    result = dict(extensions or {})
    result[PAYMENT_IDENTIFIER] = {"info": {"paymentId": payment_id}}
    return result


def extract_payment_identifier(payload: AnyPaymentPayload) -> str | None:
    """The payment id of a payload, or None if absent or malformed"""
    extension = extract_extension(getattr(payload, "extensions", None), PAYMENT_IDENTIFIER)
    if extension is None:
        return None
    info = extension.get("info")
    if not isinstance(info, dict):
        return None
    payment_id = info.get("paymentId")
    return payment_id if is_valid_payment_id(payment_id) else None


def payment_identifier_required(server_extensions: dict[str, Any] | None) -> bool:
    """True when the server declared the identifier as required"""
    extension = extract_extension(server_extensions, PAYMENT_IDENTIFIER)
    if extension is None:
        return False
    info = extension.get("info")
    return isinstance(info, dict) and info.get("required") is True
