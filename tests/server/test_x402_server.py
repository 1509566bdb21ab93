"""Tests for X402Server"""

import httpx
import pytest

from x402_armory.exceptions import ConfigurationError
from x402_armory.facilitator import (
    FacilitatorCapabilityCache,
    FacilitatorClient,
    FacilitatorRouting,
    RetryPolicy,
)
from x402_armory.server import ResourceConfig, X402Server
from x402_armory.types import (
    PaymentRequired,
    PaymentRequiredV1,
    PaymentRequirementsV1,
    ProtocolVersion,
    SupportedKind,
    SupportedResponse,
)

MERCHANT = "0x209693Bc6afc0C5328bA36FaF03C514EF312287C"
USDC = "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913"
FACILITATOR_URL = "https://facilitator.example"
RESOURCE = "https://api.example.com/report"


class TestBuildRequirements:
    @pytest.mark.anyio
    async def test_v2(self, server):
        [requirements] = await server.build_payment_requirements(
            [ResourceConfig(price="$0.01", pay_to=MERCHANT)]
        )
        assert requirements.network == "eip155:8453"
        assert requirements.asset == f"eip155:8453/erc20:{USDC}"
        assert requirements.amount == "10000"
        assert requirements.pay_to == MERCHANT
        assert requirements.max_timeout_seconds == 300
        assert requirements.extra.name == "USD Coin"

    @pytest.mark.anyio
    async def test_v1(self, server):
        [requirements] = await server.build_payment_requirements(
            [ResourceConfig(price="0.5 USDC", pay_to=MERCHANT, network="eip155:8453")],
            resource_url=RESOURCE,
            version=ProtocolVersion.V1,
            description="Report",
        )
        assert isinstance(requirements, PaymentRequirementsV1)
        assert requirements.network == "base"
        assert requirements.asset == USDC
        assert requirements.max_amount_required == "500000"
        assert requirements.resource == RESOURCE
        assert requirements.description == "Report"

    @pytest.mark.anyio
    @pytest.mark.parametrize(
        "config",
        [
            ResourceConfig(price="1 DOGE", pay_to=MERCHANT),
            ResourceConfig(price="free", pay_to=MERCHANT),
            ResourceConfig(price="$0", pay_to=MERCHANT),
            ResourceConfig(price="$1", pay_to="nobody"),
            ResourceConfig(price="$1", pay_to=MERCHANT, network="eip155:10"),
            ResourceConfig(price="$1", pay_to=MERCHANT, scheme="upto"),
        ],
    )
    async def test_invalid_config(self, server, config):
        with pytest.raises(ConfigurationError):
            await server.build_payment_requirements([config])


class TestChallenge:
    @pytest.mark.anyio
    async def test_v2_challenge_filters_extensions(self, server):
        accepts = await server.build_payment_requirements(
            [ResourceConfig(price="$0.01", pay_to=MERCHANT)]
        )
        challenge = await server.create_payment_required_response(
            accepts,
            resource_url=RESOURCE,
            description="Report",
            extensions={"payment-identifier": {"info": {}}, "bazaar": {"info": {}}},
        )
        assert isinstance(challenge, PaymentRequired)
        assert challenge.resource.url == RESOURCE
        assert challenge.error == "Payment required"
        assert challenge.extensions == {"payment-identifier": {"info": {}}}

    @pytest.mark.anyio
    async def test_v1_challenge(self, server):
        accepts = await server.build_payment_requirements(
            [ResourceConfig(price="$0.01", pay_to=MERCHANT)], version=ProtocolVersion.V1
        )
        challenge = await server.create_payment_required_response(accepts, error="expired")
        assert isinstance(challenge, PaymentRequiredV1)
        assert challenge.error == "expired"

    @pytest.mark.anyio
    async def test_empty_challenge(self, server):
        with pytest.raises(ConfigurationError):
            await server.create_payment_required_response([])

    @pytest.mark.anyio
    async def test_remote_capabilities(self, token_registry):
        async def fetch(url):
            return SupportedResponse(
                kinds=[SupportedKind(x402Version=2, scheme="exact", network="eip155:8453")],
                extensions=["bazaar"],
            )

        server = X402Server(
            token_registry=token_registry,
            routing=FacilitatorRouting(default_url=FACILITATOR_URL),
            capability_cache=FacilitatorCapabilityCache(fetch),
        )
        accepts = await server.build_payment_requirements(
            [ResourceConfig(price="$0.01", pay_to=MERCHANT)]
        )
        challenge = await server.create_payment_required_response(
            accepts, extensions={"bazaar": {"info": {}}, "sign-in-with-x": {"info": {}}}
        )
        assert challenge.extensions == {"bazaar": {"info": {}}}


class TestPaymentHandling:
    @pytest.fixture
    async def accepts(self, server):
        return await server.build_payment_requirements(
            [
                ResourceConfig(price="$0.01", pay_to=MERCHANT),
                ResourceConfig(price="$0.02", pay_to=MERCHANT, network="eip155:84532"),
            ]
        )

    @pytest.mark.anyio
    async def test_find_matching_requirements(self, server, client_mechanism, accepts):
        payload = await client_mechanism.create_payment_payload(accepts[1], RESOURCE)
        assert server.find_matching_requirements(payload, accepts) is accepts[1]

    @pytest.mark.anyio
    async def test_tampered_amount_does_not_match(self, server, client_mechanism, accepts):
        cheaper = accepts[0].model_copy(update={"amount": "1"})
        payload = await client_mechanism.create_payment_payload(cheaper, RESOURCE)
        assert server.find_matching_requirements(payload, accepts) is None

    @pytest.mark.anyio
    async def test_local_verify_and_settle(self, server, client_mechanism, accepts):
        payload = await client_mechanism.create_payment_payload(accepts[0], RESOURCE)
        assert (await server.verify_payment(payload, accepts[0])).is_valid
        assert (await server.settle_payment(payload, accepts[0])).success

    @pytest.mark.anyio
    async def test_remote_verify_fills_payer(
        self, token_registry, client_mechanism, buyer_signer
    ):
        server = X402Server(
            token_registry=token_registry,
            routing=FacilitatorRouting(by_chain={"base": FACILITATOR_URL}),
        )
        server._clients[FACILITATOR_URL] = FacilitatorClient(
            FACILITATOR_URL,
            retry=RetryPolicy(max_attempts=1),
            transport=httpx.MockTransport(lambda r: httpx.Response(200, json={"isValid": True})),
        )
        [requirements] = await server.build_payment_requirements(
            [ResourceConfig(price="$0.01", pay_to=MERCHANT)]
        )
        payload = await client_mechanism.create_payment_payload(requirements, RESOURCE)

        result = await server.verify_payment(payload, requirements)
        await server.close()
        assert result.is_valid
        assert result.payer == buyer_signer.get_address()

    @pytest.mark.anyio
    async def test_remote_without_route(self, token_registry, client_mechanism):
        server = X402Server(token_registry=token_registry)
        [requirements] = await server.build_payment_requirements(
            [ResourceConfig(price="$0.01", pay_to=MERCHANT)]
        )
        payload = await client_mechanism.create_payment_payload(requirements, RESOURCE)
        with pytest.raises(ConfigurationError):
            await server.verify_payment(payload, requirements)
