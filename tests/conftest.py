"""
Pytest configuration and shared fixtures
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from x402_armory.mechanisms.evm.exact import ExactEvmClientMechanism
from x402_armory.signers.client import EvmClientSigner
from x402_armory.tokens import TokenRegistry
from x402_armory.types import PaymentRequirements, PaymentRequirementsExtra

BASE_USDC = "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913"
MERCHANT = "0x209693Bc6afc0C5328bA36FaF03C514EF312287C"

BUYER_KEY = "0x" + "11" * 32
OTHER_KEY = "0x" + "22" * 32


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def token_registry():
    return TokenRegistry().freeze()


@pytest.fixture
def buyer_signer():
    return EvmClientSigner.from_private_key(BUYER_KEY)


@pytest.fixture
def other_signer():
    return EvmClientSigner.from_private_key(OTHER_KEY)


@pytest.fixture
def client_mechanism(buyer_signer, token_registry):
    return ExactEvmClientMechanism(buyer_signer, token_registry)


@pytest.fixture
def base_requirements():
    """One cent of USDC on Base, V2 form"""
    return PaymentRequirements(
        scheme="exact",
        network="eip155:8453",
        amount="10000",
        asset=f"eip155:8453/erc20:{BASE_USDC}",
        payTo=MERCHANT,
        maxTimeoutSeconds=300,
        extra=PaymentRequirementsExtra(name="USD Coin", version="2"),
    )


@pytest.fixture
def facilitator_signer():
    signer = MagicMock()
    signer.get_address.return_value = "0xFacilitator0000000000000000000000000001"
    signer.get_balance = AsyncMock(return_value=10**12)
    signer.write_contract = AsyncMock(return_value="0x" + "ab" * 32)
    signer.wait_for_transaction_receipt = AsyncMock(
        return_value={"hash": "0x" + "ab" * 32, "status": "confirmed"}
    )
    return signer
