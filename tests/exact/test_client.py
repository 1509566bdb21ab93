"""
Tests for ExactEvmClientMechanism.
"""

import time

import pytest

from x402_armory.mechanisms.evm.exact.types import build_domain_for_requirements
from x402_armory.types import (
    SCHEME_EXACT,
    PaymentPayload,
    PaymentPayloadV1,
    PaymentRequirementsV1,
)
from x402_armory.utils.eip712 import build_eip712_message, recover_signer

RESOURCE = "https://api.example.com/report"


def test_scheme(client_mechanism):
    assert client_mechanism.scheme() == SCHEME_EXACT


def test_exposes_signer(client_mechanism, buyer_signer):
    assert client_mechanism.get_signer() is buyer_signer


@pytest.mark.anyio
async def test_v2_payload_shape(client_mechanism, base_requirements, buyer_signer):
    payload = await client_mechanism.create_payment_payload(base_requirements, RESOURCE)

    assert isinstance(payload, PaymentPayload)
    assert payload.accepted == base_requirements
    assert payload.resource.url == RESOURCE
    auth = payload.payload.authorization
    assert auth.from_address == buyer_signer.get_address()
    assert auth.to == base_requirements.pay_to
    assert auth.value == "10000"
    assert auth.nonce.startswith("0x") and len(auth.nonce) == 66


@pytest.mark.anyio
async def test_validity_window_capped_by_timeout(client_mechanism, base_requirements):
    now = int(time.time())
    payload = await client_mechanism.create_payment_payload(base_requirements, RESOURCE)
    auth = payload.payload.authorization
    assert int(auth.valid_after) <= now
    assert now < int(auth.valid_before) <= now + 300 + 1


@pytest.mark.anyio
async def test_nonces_are_unique(client_mechanism, base_requirements):
    first = await client_mechanism.create_payment_payload(base_requirements, RESOURCE)
    second = await client_mechanism.create_payment_payload(base_requirements, RESOURCE)
    assert first.payload.authorization.nonce != second.payload.authorization.nonce


@pytest.mark.anyio
async def test_signature_recovers_to_payer(
    client_mechanism, base_requirements, buyer_signer, token_registry
):
    payload = await client_mechanism.create_payment_payload(base_requirements, RESOURCE)
    domain = build_domain_for_requirements(base_requirements, token_registry)
    recovered = recover_signer(
        domain, build_eip712_message(payload.payload.authorization), payload.payload.signature
    )
    assert recovered == buyer_signer.get_address()


@pytest.mark.anyio
async def test_v1_payload(client_mechanism):
    requirements = PaymentRequirementsV1(
        scheme="exact",
        network="base",
        maxAmountRequired="2500",
        asset="0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913",
        payTo="0x209693Bc6afc0C5328bA36FaF03C514EF312287C",
        resource=RESOURCE,
    )
    payload = await client_mechanism.create_payment_payload(requirements, RESOURCE)
    assert isinstance(payload, PaymentPayloadV1)
    assert payload.network == "base"
    assert payload.payload.authorization.value == "2500"
