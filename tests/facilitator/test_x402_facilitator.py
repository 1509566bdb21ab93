"""Tests for X402Facilitator and its HTTP service"""

import asyncio

import httpx
import pytest

from x402_armory.exceptions import DecodeError
from x402_armory.facilitator import (
    X402Facilitator,
    create_facilitator_app,
    parse_facilitator_request,
)
from x402_armory.mechanisms.evm.exact import ExactEvmFacilitatorMechanism
from x402_armory.queue import JobState, MemorySettlementQueue, SettlementWorker
from x402_armory.types import PaymentPayloadV1, PaymentRequirements, PaymentRequirementsV1

RESOURCE = "https://api.example.com/report"


@pytest.fixture
def facilitator(facilitator_signer, token_registry):
    return X402Facilitator(extensions=["payment-identifier"]).register(
        ["eip155:8453", "base-sepolia"],
        ExactEvmFacilitatorMechanism(facilitator_signer, token_registry=token_registry),
    )


@pytest.fixture
async def payload(client_mechanism, base_requirements):
    return await client_mechanism.create_payment_payload(base_requirements, RESOURCE)


def _body(payload, requirements):
    return {
        "x402Version": int(payload.protocol_version),
        "paymentPayload": payload.model_dump(by_alias=True, exclude_none=True, mode="json"),
        "paymentRequirements": requirements.model_dump(
            by_alias=True, exclude_none=True, mode="json"
        ),
    }


class TestX402Facilitator:
    def test_supported_lists_both_versions(self, facilitator):
        supported = facilitator.supported()
        kinds = {(k.x402_version, k.network) for k in supported.kinds}
        assert kinds == {
            (2, "eip155:8453"),
            (1, "base"),
            (2, "eip155:84532"),
            (1, "base-sepolia"),
        }
        assert supported.extensions == ["payment-identifier"]

    @pytest.mark.anyio
    async def test_verify_routes_to_mechanism(self, facilitator, payload, base_requirements):
        result = await facilitator.verify(payload, base_requirements)
        assert result.is_valid is True

    @pytest.mark.anyio
    async def test_unregistered_network(self, facilitator, payload, base_requirements):
        requirements = base_requirements.model_copy(update={"network": "eip155:1"})
        result = await facilitator.verify(payload, requirements)
        assert result.invalid_reason == "network-mismatch"
        settled = await facilitator.settle(payload, requirements)
        assert settled.error_reason == "network-mismatch"


class TestParseRequest:
    def test_v2(self, anyio_backend, payload, base_requirements):
        parsed_payload, parsed_requirements = parse_facilitator_request(
            _body(payload, base_requirements)
        )
        assert parsed_payload == payload
        assert isinstance(parsed_requirements, PaymentRequirements)

    def test_mixed_versions_parse(self, base_requirements):
        body = {
            "x402Version": 1,
            "paymentPayload": {
                "x402Version": 1,
                "scheme": "exact",
                "network": "base",
                "payload": {
                    "signature": "0x" + "ab" * 65,
                    "authorization": {
                        "from": "0x" + "11" * 20,
                        "to": "0x" + "22" * 20,
                        "value": "1",
                        "validAfter": "0",
                        "validBefore": "9999999999",
                        "nonce": "0x" + "33" * 32,
                    },
                },
            },
            "paymentRequirements": {
                "scheme": "exact",
                "network": "base",
                "maxAmountRequired": "1",
                "asset": "0x" + "44" * 20,
                "payTo": "0x" + "22" * 20,
            },
        }
        parsed_payload, parsed_requirements = parse_facilitator_request(body)
        assert isinstance(parsed_payload, PaymentPayloadV1)
        assert isinstance(parsed_requirements, PaymentRequirementsV1)

    @pytest.mark.parametrize(
        "body",
        [
            [],
            {},
            {"paymentPayload": {}, "paymentRequirements": "x"},
            {"x402Version": 7, "paymentPayload": {}, "paymentRequirements": {}},
            {"x402Version": True, "paymentPayload": {}, "paymentRequirements": {}},
            {"x402Version": 1.0, "paymentPayload": {}, "paymentRequirements": {}},
            {"paymentPayload": {"x402Version": "1"}, "paymentRequirements": {}},
            {"x402Version": 2, "paymentPayload": {"x402Version": 2}, "paymentRequirements": {}},
        ],
    )
    def test_malformed(self, body):
        with pytest.raises(DecodeError):
            parse_facilitator_request(body)


class TestFacilitatorApp:
    @pytest.fixture
    def http(self, facilitator):
        app = create_facilitator_app(facilitator)
        return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test")

    @pytest.mark.anyio
    async def test_health(self, http):
        response = await http.get("/health")
        assert response.json() == {"status": "ok"}

    @pytest.mark.anyio
    async def test_supported(self, http):
        data = (await http.get("/supported")).json()
        assert {"x402Version": 2, "scheme": "exact", "network": "eip155:8453"} in data["kinds"]
        assert data["extensions"] == ["payment-identifier"]

    @pytest.mark.anyio
    async def test_verify_and_settle(self, http, payload, base_requirements):
        body = _body(payload, base_requirements)

        verified = await http.post("/verify", json=body)
        assert verified.status_code == 200
        assert verified.json()["isValid"] is True

        settled = await http.post("/settle", json=body)
        assert settled.json()["success"] is True

        replay = await http.post("/settle", json=body)
        assert replay.json()["errorReason"] == "duplicate-nonce"

    @pytest.mark.anyio
    async def test_bad_body(self, http):
        response = await http.post("/verify", json={"paymentPayload": "nope"})
        assert response.status_code == 400


class TestQueuedFacilitatorApp:
    @pytest.fixture
    def mechanism(self, facilitator_signer, token_registry):
        return ExactEvmFacilitatorMechanism(
            facilitator_signer,
            token_registry=token_registry,
            settlement_queue=MemorySettlementQueue(),
        )

    @pytest.fixture
    def app(self, mechanism):
        facilitator = X402Facilitator().register(["eip155:8453"], mechanism)
        worker = SettlementWorker(mechanism.process_next, poll_interval=0.01)
        return create_facilitator_app(facilitator, workers=[worker])

    @pytest.mark.anyio
    async def test_settle_is_accepted_then_submitted(
        self, app, mechanism, facilitator_signer, payload, base_requirements
    ):
        transport = httpx.ASGITransport(app=app)
        async with app.router.lifespan_context(app):
            async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
                response = await http.post("/settle", json=_body(payload, base_requirements))
                assert response.status_code == 202
                job_id = response.json()["jobId"]
                assert "transaction" not in response.json()

                for _ in range(100):
                    if facilitator_signer.write_contract.await_count:
                        break
                    await asyncio.sleep(0.01)

        job = await mechanism.settlement_queue.get_job(job_id)
        assert job.state == JobState.COMPLETED
        facilitator_signer.write_contract.assert_awaited_once()
