"""
ExactEvmClientMechanism - exact client mechanism for EVM.
"""

import logging
from typing import TYPE_CHECKING, Any

from x402_armory.mechanisms._base.client import ClientMechanism
from x402_armory.mechanisms.evm.exact.types import build_domain_for_requirements
from x402_armory.tokens import TokenRegistry
from x402_armory.types import (
    SCHEME_EXACT,
    AnyPaymentPayload,
    AnyPaymentRequirements,
    EIP3009Authorization,
    PaymentPayload,
    PaymentPayloadData,
    PaymentPayloadV1,
    ProtocolVersion,
    ResourceInfo,
)
from x402_armory.utils.eip712 import (
    DEFAULT_VALIDITY_SECONDS,
    TRANSFER_AUTH_EIP712_TYPES,
    build_eip712_message,
    create_nonce,
    create_validity_window,
)

if TYPE_CHECKING:
    from x402_armory.signers.client import ClientSigner

logger = logging.getLogger(__name__)


class ExactEvmClientMechanism(ClientMechanism):
    """TransferWithAuthorization client mechanism for EVM."""

    def __init__(
        self,
        signer: "ClientSigner",
        token_registry: TokenRegistry | None = None,
        validity_seconds: int = DEFAULT_VALIDITY_SECONDS,
    ) -> None:
        self._signer = signer
        self._token_registry = token_registry
        self._validity_seconds = validity_seconds

    def scheme(self) -> str:
        return SCHEME_EXACT

    def get_signer(self) -> "ClientSigner":
        return self._signer

    async def create_payment_payload(
        self,
        requirements: AnyPaymentRequirements,
        resource: str,
        extensions: dict[str, Any] | None = None,
    ) -> AnyPaymentPayload:
        """Create exact payment payload."""
        duration = self._validity_seconds
        if requirements.max_timeout_seconds:
            duration = min(duration, requirements.max_timeout_seconds)
        valid_after, valid_before = create_validity_window(duration)

        authorization = EIP3009Authorization(
            **{
                "from": self._signer.get_address(),
                "to": requirements.pay_to,
                "value": requirements.amount,
                "validAfter": str(valid_after),
                "validBefore": str(valid_before),
                "nonce": create_nonce(),
            }
        )

        domain = build_domain_for_requirements(requirements, self._token_registry)
        message = build_eip712_message(authorization)

        logger.info(
            "[EXACT] Signing TransferWithAuthorization: from=%s, to=%s, value=%s, token=%s",
            authorization.from_address,
            authorization.to,
            authorization.value,
            requirements.asset_address,
        )

        signature = await self._signer.sign_typed_data(
            domain=domain,
            types=TRANSFER_AUTH_EIP712_TYPES,
            message=message,
        )
        data = PaymentPayloadData(signature=signature, authorization=authorization)

        match requirements.protocol_version:
            case ProtocolVersion.V1:
                return PaymentPayloadV1(
                    scheme=requirements.scheme,
                    network=requirements.network,
                    payload=data,
                )
            case ProtocolVersion.V2:
                return PaymentPayload(
                    resource=ResourceInfo(url=resource),
                    accepted=requirements,
                    payload=data,
                    extensions=extensions or None,
                )
