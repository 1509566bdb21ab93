"""Tests for the framework-independent payment state machine"""

from unittest.mock import AsyncMock

import pytest

from x402_armory.encoding import (
    decode_payment_required,
    decode_settlement_response,
    encode_payment_payload,
)
from x402_armory.exceptions import FacilitatorError
from x402_armory.server import (
    PaymentProcessor,
    ProcessState,
    ResourceConfig,
    RouteConfig,
    SettleState,
)
from x402_armory.types import ProtocolVersion

URL = "http://test/api/protected"
MERCHANT = "0x209693Bc6afc0C5328bA36FaF03C514EF312287C"


@pytest.fixture
def processor(server, routes):
    return PaymentProcessor(server, routes)


async def _challenge(processor, path="/api/protected"):
    result = await processor.process_request(path, "GET", {}, URL)
    return decode_payment_required(result.body and result.headers[next(iter(result.headers))])


async def _paid_headers(processor, client_mechanism, path="/api/protected", header=None):
    challenge = await _challenge(processor, path)
    payload = await client_mechanism.create_payment_payload(challenge.accepts[0], URL)
    name = header or ("PAYMENT-SIGNATURE" if payload.protocol_version == 2 else "X-PAYMENT")
    return payload, {name: encode_payment_payload(payload)}


class TestProcessRequest:
    @pytest.mark.anyio
    async def test_unprotected_path_passes_through(self, processor):
        result = await processor.process_request("/public", "GET", {}, "http://test/public")
        assert result.state == ProcessState.PASS_THROUGH
        assert result.should_invoke_handler

    @pytest.mark.anyio
    async def test_missing_header_is_challenged(self, processor):
        result = await processor.process_request("/api/protected", "GET", {}, URL)

        assert result.state == ProcessState.CHALLENGED
        assert result.status == 402
        assert not result.should_invoke_handler
        challenge = decode_payment_required(result.headers["PAYMENT-REQUIRED"])
        option = challenge.accepts[0]
        assert option.pay_to == MERCHANT
        assert option.amount == "10000"
        assert option.network == "eip155:8453"
        assert option.asset == "eip155:8453/erc20:0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913"
        assert challenge.resource.url == URL
        assert challenge.resource.description == "Protected report"
        assert result.body["accepts"][0]["payTo"] == MERCHANT

    @pytest.mark.anyio
    async def test_v1_route_challenges_with_v1_header(self, processor):
        result = await processor.process_request("/legacy/data", "GET", {}, URL)
        assert result.version == ProtocolVersion.V1
        challenge = decode_payment_required(result.headers["X-PAYMENT-REQUIRED"], 1)
        assert challenge.accepts[0].network == "base"

    @pytest.mark.anyio
    async def test_undecodable_header(self, processor):
        result = await processor.process_request(
            "/api/protected", "GET", {"PAYMENT-SIGNATURE": "%%%"}, URL
        )
        assert result.state == ProcessState.DECODE_FAILED
        assert result.status == 400

    @pytest.mark.anyio
    async def test_verified(self, processor, client_mechanism, buyer_signer):
        payload, headers = await _paid_headers(processor, client_mechanism)
        result = await processor.process_request("/api/protected", "GET", headers, URL)
        assert result.state == ProcessState.VERIFIED
        assert result.payload == payload
        assert result.verify_response.payer == buyer_signer.get_address()
        assert result.requires_settlement

    @pytest.mark.anyio
    async def test_requirement_mismatch(self, processor, client_mechanism):
        challenge = await _challenge(processor)
        elsewhere = challenge.accepts[0].model_copy(
            update={"pay_to": "0x1111111111111111111111111111111111111111"}
        )
        payload = await client_mechanism.create_payment_payload(elsewhere, URL)
        result = await processor.process_request(
            "/api/protected", "GET", {"PAYMENT-SIGNATURE": encode_payment_payload(payload)}, URL
        )
        assert result.state == ProcessState.REQUIREMENT_MISMATCH
        assert result.status == 400

    @pytest.mark.anyio
    async def test_verify_failure_rechallenges(self, processor, client_mechanism):
        payload, _ = await _paid_headers(processor, client_mechanism)
        payload.payload.authorization.value = "99999"
        result = await processor.process_request(
            "/api/protected", "GET", {"PAYMENT-SIGNATURE": encode_payment_payload(payload)}, URL
        )
        assert result.state == ProcessState.VERIFY_FAILED
        assert result.status == 402
        assert result.body["error"] == "signature-invalid"
        assert "PAYMENT-REQUIRED" in result.headers

    @pytest.mark.anyio
    async def test_bad_configuration(self, server):
        processor = PaymentProcessor(
            server, [RouteConfig("/x", [ResourceConfig(price="1 DOGE", pay_to=MERCHANT)])]
        )
        result = await processor.process_request("/x", "GET", {}, "http://test/x")
        assert result.state == ProcessState.CONFIGURATION_ERROR
        assert result.status == 500

    @pytest.mark.anyio
    async def test_facilitator_error_rechallenges(self, server, processor, client_mechanism):
        _, headers = await _paid_headers(processor, client_mechanism)
        server.verify_payment = AsyncMock(side_effect=FacilitatorError("unusable reply"))
        result = await processor.process_request("/api/protected", "GET", headers, URL)

        assert result.state == ProcessState.VERIFY_FAILED
        assert result.status == 402
        assert result.body["error"] == "facilitator-unavailable"


class TestSettle:
    @pytest.mark.anyio
    async def test_settled(self, processor, client_mechanism):
        _, headers = await _paid_headers(processor, client_mechanism)
        result = await processor.process_request("/api/protected", "GET", headers, URL)
        outcome = await processor.settle(result, 200)

        assert outcome.state == SettleState.SETTLED
        assert outcome.success
        settlement = decode_settlement_response(outcome.headers["PAYMENT-RESPONSE"])
        assert settlement.transaction == "0x" + "ab" * 32

    @pytest.mark.anyio
    async def test_v1_settlement_header(self, processor, client_mechanism):
        _, headers = await _paid_headers(processor, client_mechanism, path="/legacy/data")
        result = await processor.process_request("/legacy/data", "GET", headers, URL)
        assert result.state == ProcessState.VERIFIED
        outcome = await processor.settle(result)
        assert "X-PAYMENT-RESPONSE" in outcome.headers

    @pytest.mark.anyio
    async def test_handler_error_skips_settlement(
        self, processor, client_mechanism, facilitator_signer
    ):
        _, headers = await _paid_headers(processor, client_mechanism)
        result = await processor.process_request("/api/protected", "GET", headers, URL)
        outcome = await processor.settle(result, 404)
        assert outcome.state == SettleState.SKIPPED
        facilitator_signer.write_contract.assert_not_awaited()

    @pytest.mark.anyio
    async def test_settlement_failure(self, processor, client_mechanism, facilitator_signer):
        facilitator_signer.write_contract.return_value = None
        _, headers = await _paid_headers(processor, client_mechanism)
        result = await processor.process_request("/api/protected", "GET", headers, URL)
        outcome = await processor.settle(result)
        assert outcome.state == SettleState.SETTLE_FAILED
        assert outcome.status == 502
        assert outcome.body["reason"] == "rpc-unavailable"

    @pytest.mark.anyio
    async def test_facilitator_error_during_settlement_is_502(
        self, server, processor, client_mechanism
    ):
        _, headers = await _paid_headers(processor, client_mechanism)
        result = await processor.process_request("/api/protected", "GET", headers, URL)
        server.settle_payment = AsyncMock(side_effect=FacilitatorError("unusable reply"))
        outcome = await processor.settle(result)

        assert outcome.state == SettleState.SETTLE_FAILED
        assert outcome.status == 502
        assert outcome.body["reason"] == "rpc-unavailable"

    @pytest.mark.anyio
    async def test_settle_requires_verified_result(self, processor):
        result = await processor.process_request("/public", "GET", {}, "http://test/public")
        with pytest.raises(ValueError):
            await processor.settle(result)
