"""Tests for the Bazaar discovery extension and the generic extension helpers"""

from x402_armory.extensions import (
    create_extension,
    declare_discovery_extension,
    extract_discovery_info,
    extract_extension,
    filter_extensions,
    validate_discovery_extension,
    validate_extension,
)
from x402_armory.types import PaymentPayload, PaymentRequirements

USDC_ID = "eip155:8453/erc20:0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913"
PAY_TO = "0x209693Bc6afc0C5328bA36FaF03C514EF312287C"


class TestExtensionHelpers:
    def test_create_extension_default_schema(self):
        assert create_extension({"a": 1}) == {"info": {"a": 1}, "schema": {"type": "object"}}

    def test_validate_shape(self):
        assert validate_extension({"info": {}}).valid
        assert not validate_extension("nope").valid
        assert not validate_extension({"info": []}).valid
        assert not validate_extension({"info": {}, "schema": "x"}).valid

    def test_extract(self):
        assert extract_extension({"k": {"info": {}}}, "k") == {"info": {}}
        assert extract_extension({"k": "str"}, "k") is None
        assert extract_extension(None, "k") is None

    def test_filter(self):
        extensions = {"a": {}, "b": {}, "c": {}}
        assert filter_extensions(extensions, ["a", "c", "z"]) == {"a": {}, "c": {}}
        assert filter_extensions(None, ["a"]) == {}


class TestBazaar:
    def test_declare(self):
        extension = declare_discovery_extension(
            input={"q": "btc"},
            input_schema={"type": "object", "properties": {"q": {"type": "string"}}},
            output_example={"price": 1},
            output_schema={"type": "object"},
        )
        assert extension["info"]["input"] == {"q": "btc"}
        assert extension["info"]["inputSchema"]["properties"]["q"]["type"] == "string"
        assert extension["info"]["output"] == {"example": {"price": 1}, "schema": {"type": "object"}}
        assert validate_discovery_extension(extension).valid

    def test_declare_without_output(self):
        extension = declare_discovery_extension(input={"q": "x"})
        assert "output" not in extension["info"]

    def test_invalid_output(self):
        assert not validate_discovery_extension({"info": {"output": "text"}}).valid

    def test_extract_discovery_info(self):
        requirements = PaymentRequirements(
            scheme="exact", network="eip155:8453", amount="500", asset=USDC_ID, payTo=PAY_TO
        )
        payload = PaymentPayload(
            accepted=requirements,
            payload={
                "signature": "0x" + "ab" * 65,
                "authorization": {
                    "from": "0x" + "11" * 20,
                    "to": PAY_TO,
                    "value": "500",
                    "validAfter": "0",
                    "validBefore": "1",
                    "nonce": "0x" + "33" * 32,
                },
            },
            extensions={"bazaar": declare_discovery_extension(input={"q": "eth"})},
        )
        discovered = extract_discovery_info(payload, requirements)
        assert discovered.input == {"q": "eth"}
        assert discovered.amount == "500"
        assert discovered.asset == USDC_ID
        assert discovered.pay_to == PAY_TO

    def test_extract_without_extension(self):
        requirements = PaymentRequirements(
            scheme="exact", network="eip155:8453", amount="1", asset=USDC_ID, payTo=PAY_TO
        )
        payload = PaymentPayload.model_construct(accepted=requirements, extensions=None)
        assert extract_discovery_info(payload, requirements) is None
