"""Fixtures for resource-server tests"""

import pytest

from x402_armory.facilitator import X402Facilitator
from x402_armory.mechanisms.evm.exact import ExactEvmFacilitatorMechanism
from x402_armory.server import ResourceConfig, RouteConfig, X402Server
from x402_armory.types import ProtocolVersion

MERCHANT = "0x209693Bc6afc0C5328bA36FaF03C514EF312287C"


@pytest.fixture
def local_facilitator(facilitator_signer, token_registry):
    return X402Facilitator(extensions=["payment-identifier"]).register(
        ["eip155:8453"],
        ExactEvmFacilitatorMechanism(facilitator_signer, token_registry=token_registry),
    )


@pytest.fixture
def server(local_facilitator, token_registry):
    return X402Server(token_registry=token_registry, facilitator=local_facilitator)


@pytest.fixture
def routes():
    return [
        RouteConfig(
            "/api/protected",
            [ResourceConfig(price="$0.01", pay_to=MERCHANT, network="eip155:8453")],
            description="Protected report",
            mime_type="application/json",
        ),
        RouteConfig(
            "/legacy/*",
            [ResourceConfig(price="0.01 USDC", pay_to=MERCHANT, network="base")],
            version=ProtocolVersion.V1,
        ),
    ]
