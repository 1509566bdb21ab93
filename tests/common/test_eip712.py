"""Tests for structural validation of EIP-3009 authorizations"""

import pytest

from x402_armory.exceptions import ValidationError
from x402_armory.utils.eip712 import is_address, validate_transfer_with_authorization

PAYER = "0x19E7E376E7C213B7E7e7e46cc70A5dD086DAff2A"
MERCHANT = "0x209693Bc6afc0C5328bA36FaF03C514EF312287C"


def _authorization(**overrides):
    authorization = {
        "from": PAYER,
        "to": MERCHANT,
        "value": "10000",
        "validAfter": "0",
        "validBefore": "1900000000",
        "nonce": "0x" + "ab" * 32,
    }
    authorization.update(overrides)
    return authorization


def test_valid_authorization():
    result = validate_transfer_with_authorization(_authorization())
    assert result.from_address == PAYER
    assert result.value == "10000"


@pytest.mark.parametrize(
    "field, value",
    [
        ("value", "¹²"),
        ("value", "١٢٣"),
        ("value", "-1"),
        ("value", "1e3"),
        ("value", "12\n"),
        ("validAfter", "0x10"),
        ("validBefore", " 1900000000"),
    ],
)
def test_non_ascii_or_signed_integers_rejected(field, value):
    with pytest.raises(ValidationError) as exc:
        validate_transfer_with_authorization(_authorization(**{field: value}))
    assert exc.value.field == field


def test_missing_field_named():
    authorization = _authorization()
    del authorization["nonce"]
    with pytest.raises(ValidationError) as exc:
        validate_transfer_with_authorization(authorization)
    assert exc.value.field == "nonce"


def test_window_must_be_open():
    with pytest.raises(ValidationError) as exc:
        validate_transfer_with_authorization(
            _authorization(validAfter="1900000000", validBefore="1900000000")
        )
    assert exc.value.field == "validBefore"


@pytest.mark.parametrize("nonce", ["0x" + "ab" * 31, "ab" * 32, "0x" + "ab" * 32 + "\n"])
def test_nonce_must_be_bytes32(nonce):
    with pytest.raises(ValidationError) as exc:
        validate_transfer_with_authorization(_authorization(nonce=nonce))
    assert exc.value.field == "nonce"


def test_is_address_rejects_trailing_newline():
    assert is_address(MERCHANT)
    assert not is_address(MERCHANT + "\n")
