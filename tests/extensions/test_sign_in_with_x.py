"""Tests for the Sign-In-With-X extension"""

import pytest

from x402_armory.exceptions import DecodeError
from x402_armory.extensions import (
    SIWxPayload,
    create_siwx_message,
    create_siwx_payload,
    declare_siwx_extension,
    encode_siwx_header,
    parse_siwx_header,
    validate_siwx_extension,
    validate_siwx_message,
    verify_siwx_signature,
)
from x402_armory.extensions.sign_in_with_x import SIWX_HEADER_PREFIX, format_siwx_time

RESOURCE = "https://api.example.com/report"
NOW = 1_750_000_000.0


def _server_info(**overrides):
    info = {
        "domain": "example.com",
        "resourceUri": RESOURCE,
        "network": "eip155:8453",
        "statement": "Sign in to read reports",
        "version": "1",
        "expirationSeconds": 300,
    }
    info.update(overrides)
    return info


async def _signed_payload(signer, nonce="abc123", now=NOW, **overrides):
    payload = create_siwx_payload(
        _server_info(**overrides),
        signer.get_address(),
        nonce=nonce,
        issued_at=format_siwx_time(now),
        now=now,
    )
    payload.signature = await signer.sign_message(create_siwx_message(payload))
    return payload


def test_declare_extension():
    extension = declare_siwx_extension(domain="example.com", expiration_seconds=60)
    assert extension["info"] == {"domain": "example.com", "expirationSeconds": 60}
    assert extension["schema"]["type"] == "object"
    assert validate_siwx_extension(extension).valid


def test_validate_extension_shape():
    assert not validate_siwx_extension({"schema": {}}).valid
    assert not validate_siwx_extension({"info": {"expirationSeconds": "soon"}}).valid


def test_format_time():
    assert format_siwx_time(0) == "1970-01-01T00:00:00.000Z"


def test_message_layout():
    payload = create_siwx_payload(
        _server_info(),
        "0x19E7E376E7C213B7E7e7e46cc70A5dD086DAff2A",
        nonce="abc123",
        issued_at="2025-06-15T15:06:40.000Z",
        now=NOW,
    )
    message = create_siwx_message(payload)

    assert message.startswith("example.com wants you to sign in")
    assert message.splitlines() == [
        "example.com wants you to sign in",
        "",
        "Sign in to read reports",
        "",
        f"URI: {RESOURCE}",
        "Version: 1",
        "Nonce: abc123",
        "Issued At: 2025-06-15T15:06:40.000Z",
        f"Expiration Time: {format_siwx_time(NOW + 300)}",
        "Chain ID(s): eip155:8453",
        "",
        "Address: 0x19E7E376E7C213B7E7e7e46cc70A5dD086DAff2A",
    ]


def test_message_minimal_fields():
    payload = SIWxPayload(domain="example.com", address="0xabc")
    assert create_siwx_message(payload) == (
        "example.com wants you to sign in\n\n\nAddress: 0xabc"
    )


def test_message_lists_multiple_chains():
    payload = SIWxPayload(domain="d", address="0xabc", chainId=["eip155:1", "eip155:8453"])
    assert "Chain ID(s): eip155:1, eip155:8453" in create_siwx_message(payload)


def test_default_domain():
    payload = create_siwx_payload({}, "0xabc")
    assert payload.domain == "localhost"
    assert payload.expiration_time is None


@pytest.mark.anyio
async def test_header_round_trip(buyer_signer):
    payload = await _signed_payload(buyer_signer)
    header = encode_siwx_header(payload)
    assert header.startswith(SIWX_HEADER_PREFIX)
    assert "=" not in header
    assert parse_siwx_header(header) == payload


@pytest.mark.parametrize("header", ["", "siwx-v1-", "siwx-v2-abc", "siwx-v1-!!!!", "siwx-v1-WzFd"])
def test_parse_rejects_malformed_header(header):
    with pytest.raises(DecodeError):
        parse_siwx_header(header)


@pytest.mark.anyio
async def test_signature_verifies(buyer_signer):
    payload = await _signed_payload(buyer_signer)
    assert verify_siwx_signature(payload).valid


@pytest.mark.anyio
async def test_signature_from_other_wallet_fails(buyer_signer, other_signer):
    payload = await _signed_payload(other_signer)
    payload.address = buyer_signer.get_address()
    result = verify_siwx_signature(payload)
    assert not result.valid
    assert result.errors == ["Signature verification failed"]


class TestValidateMessage:
    @pytest.mark.anyio
    async def test_valid(self, buyer_signer):
        payload = await _signed_payload(buyer_signer)
        assert validate_siwx_message(payload, RESOURCE, max_age=600, now=NOW + 10).valid

    @pytest.mark.anyio
    async def test_resource_mismatch(self, buyer_signer):
        payload = await _signed_payload(buyer_signer)
        result = validate_siwx_message(payload, "https://other.example/", now=NOW)
        assert result.errors == ["Resource URI mismatch"]

    @pytest.mark.anyio
    async def test_expired(self, buyer_signer):
        payload = await _signed_payload(buyer_signer)
        result = validate_siwx_message(payload, RESOURCE, now=NOW + 301)
        assert result.errors == ["Message has expired"]

    @pytest.mark.anyio
    async def test_too_old(self, buyer_signer):
        payload = await _signed_payload(buyer_signer, expirationSeconds=None)
        result = validate_siwx_message(payload, RESOURCE, max_age=60, now=NOW + 120)
        assert result.errors == ["Message is too old"]

    @pytest.mark.anyio
    async def test_nonce_rejected(self, buyer_signer):
        payload = await _signed_payload(buyer_signer)
        result = validate_siwx_message(
            payload, RESOURCE, check_nonce=lambda nonce: nonce != "abc123", now=NOW
        )
        assert result.errors == ["Invalid nonce"]

    @pytest.mark.anyio
    async def test_tampered_statement(self, buyer_signer):
        payload = await _signed_payload(buyer_signer)
        payload.statement = "Something else"
        assert not validate_siwx_message(payload, RESOURCE, now=NOW).valid

    def test_invalid_address(self):
        payload = SIWxPayload(domain="example.com", address="nobody")
        result = validate_siwx_message(payload, RESOURCE, verify_signature=False)
        assert result.errors == ["Invalid or missing address"]
