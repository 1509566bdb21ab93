"""
Bazaar discovery extension

Pure metadata (input/output schema and example) for cataloguing paid
resources. It takes no part in verification or settlement.
"""

from typing import Any, Optional

from pydantic import BaseModel, Field

from x402_armory.extensions.base import (
    BAZAAR,
    ExtensionValidation,
    create_extension,
    extract_extension,
    validate_extension,
)
from x402_armory.types import AnyPaymentPayload, AnyPaymentRequirements

BAZAAR_INFO_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "input": {},
        "inputSchema": {"type": "object"},
        "output": {
            "type": "object",
            "properties": {"example": {}, "schema": {"type": "object"}},
        },
    },
}


class BazaarOutput(BaseModel):
    example: Any = None
    schema_: Optional[dict[str, Any]] = Field(None, alias="schema")

    class Config:
        populate_by_name = True


class BazaarExtensionInfo(BaseModel):
    """Discovery metadata for one resource"""

    input: Any = None
    input_schema: Optional[dict[str, Any]] = Field(None, alias="inputSchema")
    output: Optional[BazaarOutput] = None

    class Config:
        populate_by_name = True


class DiscoveredResource(BazaarExtensionInfo):
    """Discovery metadata joined with the payment terms it was sold under"""

    network: str
    asset: str
    amount: str
    pay_to: str = Field(alias="payTo")


def declare_discovery_extension(
    input: Any = None,
    input_schema: dict[str, Any] | None = None,
    output_example: Any = None,
    output_schema: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Server side: declare discovery metadata for a resource"""
    output = None
    if output_example is not None or output_schema is not None:
        output = BazaarOutput(example=output_example, schema=output_schema)
    info = BazaarExtensionInfo(input=input, inputSchema=input_schema, output=output)
    return create_extension(info.model_dump(by_alias=True, exclude_none=True), BAZAAR_INFO_SCHEMA)


def validate_discovery_extension(extension: Any) -> ExtensionValidation:
    return validate_extension(extension, BazaarExtensionInfo)


def extract_discovery_info(
    payload: AnyPaymentPayload,
    requirements: AnyPaymentRequirements,
) -> DiscoveredResource | None:
    """Combine a payload's bazaar metadata with the requirement it paid"""
    extension = extract_extension(getattr(payload, "extensions", None), BAZAAR)
    if extension is None or not validate_discovery_extension(extension).valid:
        return None
    info = BazaarExtensionInfo.model_validate(extension["info"])
    return DiscoveredResource(
        input=info.input,
        inputSchema=info.input_schema,
        output=info.output,
        network=requirements.network,
        asset=requirements.asset,
        amount=requirements.amount,
        payTo=requirements.pay_to,
    )
