"""
Type definitions for x402 protocol

Both protocol versions are modelled explicitly. Every model that exists in
two wire shapes carries a ``protocol_version`` class attribute so callers can
dispatch with ``match`` instead of probing fields.
"""

from enum import IntEnum
from typing import Any, ClassVar, Literal, Optional, Union

from pydantic import BaseModel, Field

from x402_armory.config import NetworkConfig
from x402_armory.exceptions import SettlementFailure, VerificationFailure

SCHEME_EXACT = "exact"


class ProtocolVersion(IntEnum):
    """x402 protocol version tag"""

    V1 = 1
    V2 = 2


class InvalidReason:
    """Closed set of verification failure reasons"""

    VERSION_MISMATCH = "version-mismatch"
    SIGNATURE_INVALID = "signature-invalid"
    NONCE_REUSED = "nonce-reused"
    WINDOW_EXPIRED = "window-expired"
    AMOUNT_INSUFFICIENT = "amount-insufficient"
    NETWORK_MISMATCH = "network-mismatch"
    INVALID_PAYLOAD = "invalid-payload"
    RECIPIENT_MISMATCH = "recipient-mismatch"
    INSUFFICIENT_FUNDS = "insufficient-funds"
    FACILITATOR_UNAVAILABLE = "facilitator-unavailable"

    ALL = frozenset(
        {
            VERSION_MISMATCH,
            SIGNATURE_INVALID,
            NONCE_REUSED,
            WINDOW_EXPIRED,
            AMOUNT_INSUFFICIENT,
            NETWORK_MISMATCH,
            INVALID_PAYLOAD,
            RECIPIENT_MISMATCH,
            INSUFFICIENT_FUNDS,
            FACILITATOR_UNAVAILABLE,
        }
    )


class SettleErrorReason:
    """Closed set of settlement failure reasons"""

    DUPLICATE_NONCE = "duplicate-nonce"
    ON_CHAIN_REVERT = "on-chain-revert"
    RPC_UNAVAILABLE = "rpc-unavailable"

    ALL = frozenset({DUPLICATE_NONCE, ON_CHAIN_REVERT, RPC_UNAVAILABLE})


class ResourceInfo(BaseModel):
    """Resource information"""

    url: Optional[str] = None
    description: Optional[str] = None
    mime_type: Optional[str] = Field(None, alias="mimeType")

    class Config:
        populate_by_name = True


class PaymentRequirementsExtra(BaseModel):
    """Extra information in payment requirements (EIP-712 token domain)"""

    name: Optional[str] = None
    version: Optional[str] = None

    class Config:
        populate_by_name = True
        extra = "allow"


class PaymentRequirementsV1(BaseModel):
    """Payment requirements (x402 V1: network slug, contract address)"""

    protocol_version: ClassVar[ProtocolVersion] = ProtocolVersion.V1

    scheme: str
    network: str
    max_amount_required: str = Field(alias="maxAmountRequired")
    asset: str
    pay_to: str = Field(alias="payTo")
    resource: str = ""
    description: str = ""
    mime_type: Optional[str] = Field(None, alias="mimeType")
    output_schema: Optional[dict[str, Any]] = Field(None, alias="outputSchema")
    max_timeout_seconds: int = Field(300, alias="maxTimeoutSeconds")
    nonce: Optional[str] = None
    extra: Optional[PaymentRequirementsExtra] = None

    class Config:
        populate_by_name = True

    @property
    def amount(self) -> str:
        return self.max_amount_required

    @property
    def asset_address(self) -> str:
        return self.asset

    @property
    def chain_id(self) -> int:
        return NetworkConfig.get_chain_id(self.network)


class PaymentRequirements(BaseModel):
    """Payment requirements (x402 V2: CAIP-2 network, CAIP-19 asset)"""

    protocol_version: ClassVar[ProtocolVersion] = ProtocolVersion.V2

    scheme: str
    network: str
    amount: str
    asset: str
    pay_to: str = Field(alias="payTo")
    max_timeout_seconds: Optional[int] = Field(None, alias="maxTimeoutSeconds")
    extra: Optional[PaymentRequirementsExtra] = None

    class Config:
        populate_by_name = True

    @property
    def asset_address(self) -> str:
        """Token contract address, whether ``asset`` is CAIP-19 or a bare address"""
        if self.asset.startswith("eip155:"):
            return NetworkConfig.parse_asset_id(self.asset)[1]
        return self.asset

    @property
    def chain_id(self) -> int:
        return NetworkConfig.get_chain_id(self.network)


class PaymentRequiredV1(BaseModel):
    """Payment required response (402, x402 V1)"""

    protocol_version: ClassVar[ProtocolVersion] = ProtocolVersion.V1

    x402_version: Literal[1] = Field(1, alias="x402Version")
    error: Optional[str] = None
    accepts: list[PaymentRequirementsV1]

    class Config:
        populate_by_name = True


class PaymentRequired(BaseModel):
    """Payment required response (402, x402 V2)"""

    protocol_version: ClassVar[ProtocolVersion] = ProtocolVersion.V2

    x402_version: Literal[2] = Field(2, alias="x402Version")
    error: Optional[str] = None
    resource: Optional[ResourceInfo] = None
    accepts: list[PaymentRequirements]
    extensions: Optional[dict[str, Any]] = None

    class Config:
        populate_by_name = True


class EIP3009Authorization(BaseModel):
    """TransferWithAuthorization parameters"""

    from_address: str = Field(alias="from")
    to: str
    value: str
    valid_after: str = Field(alias="validAfter")
    valid_before: str = Field(alias="validBefore")
    nonce: str  # 32-byte hex string (0x...)

    class Config:
        populate_by_name = True


class PaymentPayloadData(BaseModel):
    """Scheme payload: signature over the authorization"""

    signature: str
    authorization: EIP3009Authorization


class PaymentPayloadV1(BaseModel):
    """Payment payload sent by client (x402 V1)"""

    protocol_version: ClassVar[ProtocolVersion] = ProtocolVersion.V1

    x402_version: Literal[1] = Field(1, alias="x402Version")
    scheme: str
    network: str
    payload: PaymentPayloadData

    class Config:
        populate_by_name = True


class PaymentPayload(BaseModel):
    """Payment payload sent by client (x402 V2)"""

    protocol_version: ClassVar[ProtocolVersion] = ProtocolVersion.V2

    x402_version: Literal[2] = Field(2, alias="x402Version")
    resource: Optional[ResourceInfo] = None
    accepted: PaymentRequirements
    payload: PaymentPayloadData
    extensions: Optional[dict[str, Any]] = None

    class Config:
        populate_by_name = True

    @property
    def scheme(self) -> str:
        return self.accepted.scheme

    @property
    def network(self) -> str:
        return self.accepted.network


class VerifyResponse(BaseModel):
    """Verification response from facilitator"""

    is_valid: bool = Field(alias="isValid")
    payer: Optional[str] = None
    invalid_reason: Optional[str] = Field(None, alias="invalidReason")

    class Config:
        populate_by_name = True

    def raise_for_invalid(self) -> None:
        """Raise VerificationFailure if the payment was rejected"""
        if not self.is_valid:
            raise VerificationFailure(self.invalid_reason or InvalidReason.INVALID_PAYLOAD)


class SettleResponse(BaseModel):
    """Settlement response from facilitator"""

    success: bool
    transaction: Optional[str] = None
    network: Optional[str] = None
    payer: Optional[str] = None
    error_reason: Optional[str] = Field(None, alias="errorReason")
    job_id: Optional[str] = Field(None, alias="jobId")

    class Config:
        populate_by_name = True

    @property
    def pending(self) -> bool:
        """True when the payment was accepted for deferred settlement"""
        return self.success and self.transaction is None and self.job_id is not None

    def raise_for_failure(self) -> None:
        """Raise SettlementFailure if the settlement did not succeed"""
        if not self.success:
            raise SettlementFailure(self.error_reason or SettleErrorReason.RPC_UNAVAILABLE)


class SupportedKind(BaseModel):
    """Supported payment kind"""

    x402_version: int = Field(alias="x402Version")
    scheme: str
    network: str
    extra: Optional[dict[str, Any]] = None

    class Config:
        populate_by_name = True


class SupportedResponse(BaseModel):
    """Supported response from facilitator"""

    kinds: list[SupportedKind]
    extensions: list[str] = Field(default_factory=list)

    class Config:
        populate_by_name = True


AnyPaymentRequirements = Union[PaymentRequirementsV1, PaymentRequirements]
AnyPaymentRequired = Union[PaymentRequiredV1, PaymentRequired]
AnyPaymentPayload = Union[PaymentPayloadV1, PaymentPayload]
