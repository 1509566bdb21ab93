"""Tests for type definitions, tokens and network configuration"""

import pytest

from x402_armory.config import NetworkConfig
from x402_armory.exceptions import (
    ConfigurationError,
    SettlementFailure,
    UnknownTokenError,
    UnsupportedNetworkError,
    VerificationFailure,
)
from x402_armory.tokens import TokenInfo, TokenRegistry
from x402_armory.types import (
    InvalidReason,
    PaymentRequirements,
    PaymentRequirementsV1,
    ProtocolVersion,
    SettleErrorReason,
    SettleResponse,
    VerifyResponse,
)

USDC = "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913"


class TestNetworkConfig:
    def test_chain_ids(self):
        assert NetworkConfig.get_chain_id("eip155:8453") == 8453
        assert NetworkConfig.get_chain_id("base-sepolia") == 84532
        assert NetworkConfig.get_chain_id("Base") == 8453

    def test_unknown_network(self):
        with pytest.raises(UnsupportedNetworkError):
            NetworkConfig.get_chain_id("solana")
        with pytest.raises(UnsupportedNetworkError):
            NetworkConfig.get_chain_id("eip155:abc")

    def test_slug_conversion(self):
        assert NetworkConfig.to_caip2("base") == "eip155:8453"
        assert NetworkConfig.to_v1_network("eip155:84532") == "base-sepolia"
        with pytest.raises(UnsupportedNetworkError):
            NetworkConfig.to_v1_network("eip155:999999")

    def test_asset_ids(self):
        asset_id = NetworkConfig.to_asset_id(8453, USDC)
        assert asset_id == f"eip155:8453/erc20:{USDC}"
        assert NetworkConfig.parse_asset_id(asset_id) == (8453, USDC)
        with pytest.raises(UnsupportedNetworkError):
            NetworkConfig.parse_asset_id("eip155:8453/slip44:60")


class TestRequirements:
    def test_v2_properties(self):
        req = PaymentRequirements(
            scheme="exact",
            network="eip155:8453",
            amount="1",
            asset=f"eip155:8453/erc20:{USDC}",
            payTo=USDC,
        )
        assert req.protocol_version == ProtocolVersion.V2
        assert req.asset_address == USDC
        assert req.chain_id == 8453

    def test_v1_properties(self):
        req = PaymentRequirementsV1(
            scheme="exact", network="base", maxAmountRequired="5", asset=USDC, payTo=USDC
        )
        assert req.protocol_version == ProtocolVersion.V1
        assert req.amount == "5"
        assert req.asset_address == USDC
        assert req.chain_id == 8453

    def test_aliases_serialize(self):
        req = PaymentRequirements(
            scheme="exact", network="eip155:8453", amount="1", asset=USDC, pay_to=USDC
        )
        data = req.model_dump(by_alias=True, exclude_none=True)
        assert data["payTo"] == USDC
        assert "pay_to" not in data


class TestResults:
    def test_verify_raise_for_invalid(self):
        VerifyResponse(isValid=True).raise_for_invalid()
        with pytest.raises(VerificationFailure) as exc:
            VerifyResponse(
                isValid=False, invalidReason=InvalidReason.WINDOW_EXPIRED
            ).raise_for_invalid()
        assert exc.value.reason == "window-expired"

    def test_settle_raise_for_failure(self):
        with pytest.raises(SettlementFailure) as exc:
            SettleResponse(
                success=False, errorReason=SettleErrorReason.DUPLICATE_NONCE
            ).raise_for_failure()
        assert exc.value.reason == "duplicate-nonce"

    def test_reason_sets_are_disjoint(self):
        assert not InvalidReason.ALL & SettleErrorReason.ALL


class TestTokenRegistry:
    def test_defaults(self):
        registry = TokenRegistry()
        token = registry.get_token("base", "usdc")
        assert token.address == USDC
        assert token.decimals == 6

    def test_parse_price(self):
        parsed = TokenRegistry().parse_price("0.01 USDC", "eip155:8453")
        assert parsed["amount"] == 10000
        assert parsed["asset"] == USDC
        assert parsed["version"] == "2"

    @pytest.mark.parametrize("price", ["0.01", "abc USDC", "-1 USDC"])
    def test_parse_price_rejects_malformed(self, price):
        with pytest.raises(ValueError):
            TokenRegistry().parse_price(price, "eip155:8453")

    def test_unknown_token(self):
        with pytest.raises(UnknownTokenError):
            TokenRegistry().parse_price("1 DOGE", "eip155:8453")

    def test_find_by_address_is_case_insensitive(self):
        assert TokenRegistry().find_by_address("eip155:8453", USDC.lower()).symbol == "USDC"

    def test_frozen_registry_rejects_registration(self):
        registry = TokenRegistry(include_defaults=False).freeze()
        with pytest.raises(ConfigurationError):
            registry.register_token(
                "eip155:8453", TokenInfo(address=USDC, decimals=6, name="X", symbol="X")
            )

    def test_instances_are_independent(self):
        custom = TokenRegistry()
        custom.register_token(
            "base", TokenInfo(address=USDC, decimals=18, name="Test", symbol="TST")
        )
        assert "TST" in custom.get_network_tokens("eip155:8453")
        assert "TST" not in TokenRegistry().get_network_tokens("eip155:8453")
