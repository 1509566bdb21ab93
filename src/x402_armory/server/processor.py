"""
PaymentProcessor - the x402 request state machine, independent of any
web framework

    no payment header            -> CHALLENGED (402, fresh challenge)
    undecodable header           -> DECODE_FAILED (400)
    no advertised option matches -> REQUIREMENT_MISMATCH (400)
    verification rejected        -> VERIFY_FAILED (402, fresh challenge)
    verified                     -> VERIFIED (run the handler, then settle)
    handler status >= 400        -> settlement SKIPPED
    settlement failed            -> SETTLE_FAILED (502, or 400 for an invalid payment)
    settled                      -> SETTLED (settlement header attached)

Unprotected paths are PASS_THROUGH; configuration problems are
CONFIGURATION_ERROR (500).
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping

from x402_armory.encoding import (
    decode_payment_payload,
    detect_version,
    encode_payment_required,
    encode_settlement_response,
    get_payment_header,
    payment_required_header_name,
    payment_response_header_name,
)
from x402_armory.exceptions import ConfigurationError, DecodeError, FacilitatorError
from x402_armory.server.routes import RouteConfig, match_route
from x402_armory.server.x402_server import X402Server, rejection_reason
from x402_armory.types import (
    AnyPaymentPayload,
    AnyPaymentRequirements,
    InvalidReason,
    ProtocolVersion,
    SettleErrorReason,
    SettleResponse,
    VerifyResponse,
)

logger = logging.getLogger(__name__)


class ProcessState(str, Enum):
    PASS_THROUGH = "pass_through"
    CHALLENGED = "challenged"
    DECODE_FAILED = "decode_failed"
    REQUIREMENT_MISMATCH = "requirement_mismatch"
    VERIFY_FAILED = "verify_failed"
    VERIFIED = "verified"
    CONFIGURATION_ERROR = "configuration_error"


class SettleState(str, Enum):
    SKIPPED = "skipped"
    SETTLE_FAILED = "settle_failed"
    SETTLED = "settled"


@dataclass
class ProcessResult:
    """Outcome of the pre-handler half of the state machine.

    When ``state`` is neither VERIFIED nor PASS_THROUGH, ``status``,
    ``headers`` and ``body`` form the complete response.
    """

    state: ProcessState
    status: int | None = None
    headers: dict[str, str] = field(default_factory=dict)
    body: dict[str, Any] | None = None
    version: ProtocolVersion = ProtocolVersion.V2
    route: RouteConfig | None = None
    payload: AnyPaymentPayload | None = None
    requirements: AnyPaymentRequirements | None = None
    verify_response: VerifyResponse | None = None

    @property
    def should_invoke_handler(self) -> bool:
        return self.state in (ProcessState.VERIFIED, ProcessState.PASS_THROUGH)

    @property
    def requires_settlement(self) -> bool:
        return self.state == ProcessState.VERIFIED


@dataclass
class SettleOutcome:
    """Outcome of the post-handler half of the state machine"""

    state: SettleState
    status: int | None = None
    headers: dict[str, str] = field(default_factory=dict)
    body: dict[str, Any] | None = None
    settle_response: SettleResponse | None = None

    @property
    def success(self) -> bool:
        return self.state == SettleState.SETTLED


class PaymentProcessor:
    """Drives one request through the x402 handshake for a route table"""

    def __init__(self, server: X402Server, routes: list[RouteConfig]) -> None:
        self._server = server
        self._routes = list(routes)

    @property
    def server(self) -> X402Server:
        return self._server

    async def process_request(
        self,
        path: str,
        method: str,
        headers: Mapping[str, str],
        url: str,
    ) -> ProcessResult:
        """Run the checks that happen before the handler"""
        matched = match_route(self._routes, path, method)
        if matched is None:
            return ProcessResult(state=ProcessState.PASS_THROUGH)
        route, _ = matched

        version = detect_version(headers, default=route.version)
        try:
            accepts = await self._server.build_payment_requirements(
                route.resources,
                resource_url=url,
                version=version,
                description=route.description,
                mime_type=route.mime_type,
            )
        except ConfigurationError as e:
            logger.error("Payment configuration for %s is invalid: %s", route.pattern, e)
            return _error(ProcessState.CONFIGURATION_ERROR, 500, str(e), version, route)

        header = get_payment_header(headers)
        if header is None:
            return await self._challenge(route, accepts, url, version)
        header_version, value = header
        logger.debug("Payment header (%s): %s...", header_version.name, value[:64])

        try:
            payload = decode_payment_payload(value, header_version)
        except DecodeError as e:
            logger.info("Rejecting undecodable payment header: %s", e)
            return _error(
                ProcessState.DECODE_FAILED, 400, f"Invalid payment payload: {e}", version, route
            )

        requirements = self._server.find_matching_requirements(payload, accepts)
        if requirements is None:
            return _error(
                ProcessState.REQUIREMENT_MISMATCH,
                400,
                "Payment does not match any accepted option",
                version,
                route,
            )

        try:
            verify_response = await self._server.verify_payment(payload, requirements)
        except ConfigurationError as e:
            logger.error("Facilitator configuration error: %s", e)
            return _error(ProcessState.CONFIGURATION_ERROR, 500, str(e), version, route)
        except FacilitatorError as e:
            logger.warning("Facilitator could not verify payment: %s", e)
            verify_response = VerifyResponse(
                isValid=False, invalidReason=InvalidReason.FACILITATOR_UNAVAILABLE
            )

        if not verify_response.is_valid:
            reason = rejection_reason(verify_response)
            logger.info("Payment rejected for %s: %s", path, reason)
            result = await self._challenge(route, accepts, url, version, error=reason)
            if result.state != ProcessState.CHALLENGED:
                return result
            result.state = ProcessState.VERIFY_FAILED
            result.payload = payload
            result.requirements = requirements
            result.verify_response = verify_response
            return result

        logger.info("Payment verified for %s (payer=%s)", path, verify_response.payer)
        return ProcessResult(
            state=ProcessState.VERIFIED,
            version=version,
            route=route,
            payload=payload,
            requirements=requirements,
            verify_response=verify_response,
        )

    async def settle(self, result: ProcessResult, handler_status: int = 200) -> SettleOutcome:
        """Run the post-handler half: settle unless the handler failed"""
        if not result.requires_settlement:
            raise ValueError(f"Cannot settle a request in state {result.state.value}")
        if handler_status >= 400:
            logger.info("Handler returned %d, skipping settlement", handler_status)
            return SettleOutcome(state=SettleState.SKIPPED)

        try:
            settle_response = await self._server.settle_payment(result.payload, result.requirements)
        except ConfigurationError as e:
            logger.error("Facilitator configuration error during settlement: %s", e)
            return SettleOutcome(
                state=SettleState.SETTLE_FAILED, status=500, body={"error": str(e)}
            )
        except FacilitatorError as e:
            logger.error("Facilitator could not settle payment: %s", e)
            settle_response = SettleResponse(
                success=False,
                errorReason=SettleErrorReason.RPC_UNAVAILABLE,
                network=result.requirements.network,
            )

        if not settle_response.success:
            reason = settle_response.error_reason
            logger.error("Payment settlement failed: %s", reason)
            status = 400 if reason in InvalidReason.ALL else 502
            body: dict[str, Any] = {"error": f"Settlement failed: {reason}", "reason": reason}
            if settle_response.transaction:
                body["transaction"] = settle_response.transaction
            return SettleOutcome(
                state=SettleState.SETTLE_FAILED,
                status=status,
                body=body,
                settle_response=settle_response,
            )

        header_name = payment_response_header_name(result.version)
        return SettleOutcome(
            state=SettleState.SETTLED,
            headers={header_name: encode_settlement_response(settle_response, result.version)},
            settle_response=settle_response,
        )

    async def _challenge(
        self,
        route: RouteConfig,
        accepts: list[AnyPaymentRequirements],
        url: str,
        version: ProtocolVersion,
        error: str | None = None,
    ) -> ProcessResult:
        try:
            payment_required = await self._server.create_payment_required_response(
                accepts,
                resource_url=url,
                description=route.description,
                mime_type=route.mime_type,
                extensions=route.extensions,
                error=error,
            )
        except ConfigurationError as e:
            logger.error("Cannot build challenge for %s: %s", route.pattern, e)
            return _error(ProcessState.CONFIGURATION_ERROR, 500, str(e), version, route)
        return ProcessResult(
            state=ProcessState.CHALLENGED,
            status=402,
            headers={payment_required_header_name(version): encode_payment_required(payment_required)},
            body=payment_required.model_dump(by_alias=True, exclude_none=True, mode="json"),
            version=version,
            route=route,
        )


def _error(
    state: ProcessState,
    status: int,
    message: str,
    version: ProtocolVersion,
    route: RouteConfig | None,
) -> ProcessResult:
    return ProcessResult(
        state=state, status=status, body={"error": message}, version=version, route=route
    )
