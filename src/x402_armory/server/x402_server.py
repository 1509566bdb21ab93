"""
X402Server - Core payment server for x402 protocol
"""

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from x402_armory.config import NetworkConfig
from x402_armory.exceptions import ConfigurationError
from x402_armory.facilitator.capabilities import FacilitatorCapabilityCache
from x402_armory.facilitator.facilitator_client import FacilitatorClient
from x402_armory.facilitator.retry import RetryPolicy
from x402_armory.facilitator.routing import FacilitatorRouting
from x402_armory.facilitator.x402_facilitator import X402Facilitator
from x402_armory.mechanisms._base.server import ServerMechanism
from x402_armory.mechanisms.evm.exact.server import ExactEvmServerMechanism
from x402_armory.tokens import TokenRegistry
from x402_armory.types import (
    SCHEME_EXACT,
    AnyPaymentPayload,
    AnyPaymentRequired,
    AnyPaymentRequirements,
    InvalidReason,
    PaymentRequired,
    PaymentRequiredV1,
    PaymentRequirements,
    PaymentRequirementsV1,
    ProtocolVersion,
    ResourceInfo,
    SettleResponse,
    SupportedResponse,
    VerifyResponse,
)

logger = logging.getLogger(__name__)

DEFAULT_VALID_FOR = 300


@dataclass
class ResourceConfig:
    """Resource payment configuration (one accepted payment option)"""

    price: str
    pay_to: str
    network: str = NetworkConfig.BASE_MAINNET
    scheme: str = SCHEME_EXACT
    valid_for: int = DEFAULT_VALID_FOR


class X402Server:
    """
    Core payment server for x402 protocol.

    Turns resource prices into payment requirements and challenges, and
    forwards verification and settlement to a facilitator: an in-process
    ``X402Facilitator`` when one is given, otherwise a remote facilitator
    chosen per (network, asset) by ``routing``.
    """

    def __init__(
        self,
        token_registry: TokenRegistry | None = None,
        routing: FacilitatorRouting | None = None,
        facilitator: X402Facilitator | None = None,
        facilitator_timeout: float = 30.0,
        retry: RetryPolicy | None = None,
        facilitator_headers: dict[str, str] | None = None,
        capability_cache: FacilitatorCapabilityCache | None = None,
        auto_register_evm: bool = True,
        facilitator_transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize X402Server.

        Args:
            token_registry: Token registry (built-in USDC table if omitted)
            routing: Remote facilitator URL selection
            facilitator: Local facilitator; takes precedence over ``routing``
            facilitator_timeout: Per-call bound for remote verify/settle
            retry: Backoff policy for remote calls
            facilitator_headers: Extra headers for remote calls (e.g. auth)
            capability_cache: Extension capability cache for remote facilitators
            auto_register_evm: Register the exact EVM mechanism for ``eip155:*``
            facilitator_transport: Optional httpx transport for remote calls (used in tests)
        """
        self._token_registry = token_registry or TokenRegistry()
        self._routing = routing or FacilitatorRouting()
        self._facilitator = facilitator
        self._facilitator_timeout = facilitator_timeout
        self._retry = retry
        self._facilitator_headers = facilitator_headers
        self._facilitator_transport = facilitator_transport
        self._clients: dict[str, FacilitatorClient] = {}
        self._capabilities = capability_cache or FacilitatorCapabilityCache(self._fetch_supported)
        self._mechanisms: list[tuple[str, ServerMechanism]] = []

        if auto_register_evm:
            self.register("eip155:*", ExactEvmServerMechanism(self._token_registry))

    @property
    def token_registry(self) -> TokenRegistry:
        return self._token_registry

    def register(self, network_pattern: str, mechanism: ServerMechanism) -> "X402Server":
        """
        Register a payment mechanism for a network pattern.

        Args:
            network_pattern: CAIP-2 network or prefix pattern (``eip155:*``)
            mechanism: Server mechanism instance

        Returns:
            self for method chaining
        """
        self._mechanisms.insert(0, (network_pattern, mechanism))
        return self

    # ------------------------------------------------------------------
    # Challenge construction
    # ------------------------------------------------------------------

    async def build_payment_requirements(
        self,
        configs: list[ResourceConfig],
        resource_url: str = "",
        version: ProtocolVersion = ProtocolVersion.V2,
        description: str | None = None,
        mime_type: str | None = None,
    ) -> list[AnyPaymentRequirements]:
        """Build payment requirements from resource configurations.

        Raises:
            ConfigurationError: On an unknown network/token or an invalid
                configuration
        """
        requirements_list: list[AnyPaymentRequirements] = []
        for config in configs:
            caip2 = NetworkConfig.to_caip2(config.network)
            mechanism = self._find_mechanism(caip2, config.scheme)
            if mechanism is None:
                raise ConfigurationError(
                    f"No mechanism registered for {config.scheme} on {config.network}"
                )
            try:
                asset_info = await mechanism.parse_price(config.price, caip2)
            except ValueError as e:
                raise ConfigurationError(f"Invalid price {config.price!r}: {e}") from e

            requirements: AnyPaymentRequirements
            match version:
                case ProtocolVersion.V1:
                    requirements = PaymentRequirementsV1(
                        scheme=config.scheme,
                        network=NetworkConfig.to_v1_network(caip2),
                        maxAmountRequired=str(asset_info["amount"]),
                        asset=asset_info["asset"],
                        payTo=config.pay_to,
                        resource=resource_url,
                        description=description or "",
                        mimeType=mime_type,
                        maxTimeoutSeconds=config.valid_for,
                    )
                case ProtocolVersion.V2:
                    requirements = PaymentRequirements(
                        scheme=config.scheme,
                        network=caip2,
                        amount=str(asset_info["amount"]),
                        asset=NetworkConfig.to_asset_id(
                            NetworkConfig.get_chain_id(caip2), asset_info["asset"]
                        ),
                        payTo=config.pay_to,
                        maxTimeoutSeconds=config.valid_for,
                    )

            requirements = await mechanism.enhance_payment_requirements(requirements)
            if not mechanism.validate_payment_requirements(requirements):
                raise ConfigurationError(f"Invalid payment configuration: {config}")
            requirements_list.append(requirements)
        return requirements_list

    async def create_payment_required_response(
        self,
        requirements: list[AnyPaymentRequirements],
        resource_url: str | None = None,
        description: str | None = None,
        mime_type: str | None = None,
        extensions: dict[str, Any] | None = None,
        error: str | None = None,
    ) -> AnyPaymentRequired:
        """Create a 402 challenge for *requirements*.

        V2 challenges advertise only the extensions every target facilitator
        supports for its network.
        """
        if not requirements:
            raise ConfigurationError("No payment requirements to advertise")

        match requirements[0].protocol_version:
            case ProtocolVersion.V1:
                return PaymentRequiredV1(
                    error=error or "Payment required",
                    accepts=list(requirements),
                )
            case ProtocolVersion.V2:
                filtered = await self.filter_extensions(extensions, requirements)
                return PaymentRequired(
                    error=error or "Payment required",
                    resource=ResourceInfo(
                        url=resource_url, description=description, mimeType=mime_type
                    ),
                    accepts=list(requirements),
                    extensions=filtered or None,
                )

    async def filter_extensions(
        self,
        extensions: dict[str, Any] | None,
        requirements_list: list[AnyPaymentRequirements],
    ) -> dict[str, Any]:
        """Keep the extensions supported by the facilitator of every requirement"""
        if not extensions:
            return {}
        if self._facilitator is not None:
            supported = set(self._facilitator.supported().extensions)
            return {k: v for k, v in extensions.items() if k in supported}

        filtered = dict(extensions)
        for requirements in requirements_list:
            url = self._routing.resolve(requirements.network, requirements.asset_address)
            filtered = await self._capabilities.filter(filtered, url, requirements.network)
            if not filtered:
                break
        return filtered

    # ------------------------------------------------------------------
    # Payment handling
    # ------------------------------------------------------------------

    def find_matching_requirements(
        self,
        payload: AnyPaymentPayload,
        requirements_list: list[AnyPaymentRequirements],
    ) -> AnyPaymentRequirements | None:
        """Pick the advertised requirement a payload claims to satisfy.

        Matches on scheme and network; a V2 payload must also echo the
        advertised asset, recipient and amount (anti-tampering).
        """
        try:
            payload_network = NetworkConfig.to_caip2(payload.network)
        except ConfigurationError:
            return None

        for requirements in requirements_list:
            if requirements.scheme != payload.scheme:
                continue
            if NetworkConfig.to_caip2(requirements.network) != payload_network:
                continue
            accepted = getattr(payload, "accepted", None)
            if accepted is not None:
                try:
                    if accepted.asset_address.lower() != requirements.asset_address.lower():
                        continue
                except ConfigurationError:
                    continue
                if accepted.pay_to.lower() != requirements.pay_to.lower():
                    continue
                if accepted.amount != requirements.amount:
                    continue
            return requirements
        return None

    async def verify_payment(
        self,
        payload: AnyPaymentPayload,
        requirements: AnyPaymentRequirements,
    ) -> VerifyResponse:
        """
        Verify payment signature and validity.

        Raises:
            ConfigurationError: If no facilitator is configured for the network
        """
        if self._facilitator is not None:
            return await self._facilitator.verify(payload, requirements)
        client = self._client_for(requirements)
        result = await client.verify(payload, requirements)
        if result.is_valid and result.payer is None:
            result.payer = payload.payload.authorization.from_address
        return result

    async def settle_payment(
        self,
        payload: AnyPaymentPayload,
        requirements: AnyPaymentRequirements,
    ) -> SettleResponse:
        """
        Execute payment settlement.

        Raises:
            ConfigurationError: If no facilitator is configured for the network
        """
        if self._facilitator is not None:
            return await self._facilitator.settle(payload, requirements)
        return await self._client_for(requirements).settle(payload, requirements)

    async def close(self) -> None:
        """Close remote facilitator clients"""
        for client in self._clients.values():
            await client.close()
        self._clients.clear()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _find_mechanism(self, network: str, scheme: str) -> ServerMechanism | None:
        for pattern, mechanism in self._mechanisms:
            if mechanism.scheme() != scheme:
                continue
            if pattern == network:
                return mechanism
            if pattern.endswith(":*") and network.startswith(pattern[:-1]):
                return mechanism
        return None

    def _client_for(self, requirements: AnyPaymentRequirements) -> FacilitatorClient:
        url = self._routing.resolve(requirements.network, requirements.asset_address)
        return self._get_client(url)

    def _get_client(self, url: str) -> FacilitatorClient:
        client = self._clients.get(url)
        if client is None:
            client = FacilitatorClient(
                url,
                headers=self._facilitator_headers,
                timeout=self._facilitator_timeout,
                retry=self._retry,
                transport=self._facilitator_transport,
            )
            self._clients[url] = client
        return client

    async def _fetch_supported(self, url: str) -> SupportedResponse:
        return await self._get_client(url).supported()


def rejection_reason(result: VerifyResponse) -> str:
    """Reason code of a rejected verification, defaulting to invalid-payload"""
    return result.invalid_reason or InvalidReason.INVALID_PAYLOAD
