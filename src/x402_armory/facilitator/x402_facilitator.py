"""
X402Facilitator - Core payment processor for x402 protocol
"""

import logging

from x402_armory.config import NetworkConfig
from x402_armory.exceptions import ConfigurationError
from x402_armory.mechanisms._base.facilitator import FacilitatorMechanism
from x402_armory.types import (
    AnyPaymentPayload,
    AnyPaymentRequirements,
    InvalidReason,
    ProtocolVersion,
    SettleResponse,
    SupportedKind,
    SupportedResponse,
    VerifyResponse,
)

logger = logging.getLogger(__name__)


class X402Facilitator:
    """
    Core payment processor for x402 protocol.

    Manages payment mechanisms and coordinates verification/settlement.
    Networks are stored in CAIP-2 form; V1 requirements with slug networks
    resolve to the same mechanism.
    """

    def __init__(self, extensions: list[str] | None = None) -> None:
        """
        Args:
            extensions: Extension keys this facilitator understands,
                advertised through ``supported()``
        """
        self._mechanisms: dict[str, dict[str, FacilitatorMechanism]] = {}
        self._extensions = list(extensions or [])

    def register(
        self,
        networks: list[str],
        mechanism: FacilitatorMechanism,
    ) -> "X402Facilitator":
        """
        Register a payment mechanism for multiple networks.

        Args:
            networks: List of network identifiers (V1 slug or CAIP-2)
            mechanism: Facilitator mechanism instance

        Returns:
            self for method chaining
        """
        scheme = mechanism.scheme()
        for network in networks:
            key = NetworkConfig.to_caip2(network)
            self._mechanisms.setdefault(key, {})[scheme] = mechanism
            logger.info("Registered %s mechanism for %s", scheme, key)
        return self

    def supported(self) -> SupportedResponse:
        """
        Return supported network/scheme combinations.

        Every registered network is listed once for V2 (CAIP-2) and, where it
        has a slug, once for V1.
        """
        kinds: list[SupportedKind] = []
        for network, schemes in self._mechanisms.items():
            try:
                v1_network = NetworkConfig.to_v1_network(network)
            except ConfigurationError:
                v1_network = None
            for scheme in schemes:
                kinds.append(
                    SupportedKind(
                        x402Version=ProtocolVersion.V2,
                        scheme=scheme,
                        network=network,
                    )
                )
                if v1_network is not None:
                    kinds.append(
                        SupportedKind(
                            x402Version=ProtocolVersion.V1,
                            scheme=scheme,
                            network=v1_network,
                        )
                    )

        return SupportedResponse(kinds=kinds, extensions=list(self._extensions))

    async def verify(
        self,
        payload: AnyPaymentPayload,
        requirements: AnyPaymentRequirements,
    ) -> VerifyResponse:
        """Verify payment signature and validity"""
        mechanism = self._find_mechanism(requirements.network, requirements.scheme)
        if mechanism is None:
            logger.info(
                "No mechanism for %s/%s", requirements.network, requirements.scheme
            )
            return VerifyResponse(isValid=False, invalidReason=InvalidReason.NETWORK_MISMATCH)
        return await mechanism.verify(payload, requirements)

    async def settle(
        self,
        payload: AnyPaymentPayload,
        requirements: AnyPaymentRequirements,
    ) -> SettleResponse:
        """Execute payment settlement"""
        mechanism = self._find_mechanism(requirements.network, requirements.scheme)
        if mechanism is None:
            return SettleResponse(
                success=False,
                errorReason=InvalidReason.NETWORK_MISMATCH,
                network=requirements.network,
            )
        return await mechanism.settle(payload, requirements)

    def _find_mechanism(self, network: str, scheme: str) -> FacilitatorMechanism | None:
        """Find mechanism for network and scheme"""
        try:
            key = NetworkConfig.to_caip2(network)
        except ConfigurationError:
            return None
        network_mechanisms = self._mechanisms.get(key)
        if network_mechanisms is None:
            return None
        return network_mechanisms.get(scheme)
