"""
X402Client - Core payment client for x402 protocol
"""

import logging
from typing import Any, Callable

from x402_armory.config import NetworkConfig
from x402_armory.exceptions import ConfigurationError, UnsupportedNetworkError
from x402_armory.extensions.hooks import ExtensionHook, HookContext, run_hooks
from x402_armory.mechanisms._base.client import ClientMechanism
from x402_armory.types import (
    AnyPaymentPayload,
    AnyPaymentRequired,
    AnyPaymentRequirements,
    ProtocolVersion,
)

logger = logging.getLogger(__name__)

PaymentRequirementsSelector = Callable[[list[AnyPaymentRequirements]], AnyPaymentRequirements]


class PaymentRequirementsFilter:
    """Filter options for selecting payment requirements"""

    def __init__(
        self,
        scheme: str | None = None,
        network: str | None = None,
    ):
        self.scheme = scheme
        self.network = network


class MechanismEntry:
    """Registered mechanism entry"""

    def __init__(self, pattern: str, mechanism: ClientMechanism, priority: int):
        self.pattern = pattern
        self.mechanism = mechanism
        self.priority = priority


class X402Client:
    """
    Core payment client for x402 protocol.

    Manages the payment mechanism registry and extension hooks, and
    coordinates payload creation.
    """

    def __init__(self) -> None:
        self._mechanisms: list[MechanismEntry] = []
        self._hooks: list[ExtensionHook] = []

    def register(self, network_pattern: str, mechanism: ClientMechanism) -> "X402Client":
        """
        Register a payment mechanism for a network pattern.

        Args:
            network_pattern: Network pattern (e.g., "eip155:*", "eip155:8453")
            mechanism: Payment mechanism instance

        Returns:
            self for method chaining
        """
        priority = self._calculate_priority(network_pattern)
        logger.info(
            "Registering mechanism for pattern '%s' with priority %d", network_pattern, priority
        )
        self._mechanisms.append(MechanismEntry(network_pattern, mechanism, priority))
        self._mechanisms.sort(key=lambda e: e.priority, reverse=True)
        return self

    def register_hook(self, hook: ExtensionHook) -> "X402Client":
        """
        Register an extension hook run on every outgoing V2 payload.

        Returns:
            self for method chaining
        """
        self._hooks.append(hook)
        return self

    def select_payment_requirements(
        self,
        accepts: list[AnyPaymentRequirements],
        filters: PaymentRequirementsFilter | None = None,
    ) -> AnyPaymentRequirements:
        """
        Select the first payable option.

        Raises:
            UnsupportedNetworkError: No supported payment requirements found
        """
        logger.info("Selecting payment requirements from %d options", len(accepts))

        candidates = list(accepts)
        if filters:
            if filters.scheme:
                candidates = [r for r in candidates if r.scheme == filters.scheme]
            if filters.network:
                candidates = [r for r in candidates if r.network == filters.network]

        candidates = [
            r for r in candidates if self._find_mechanism(r.scheme, r.network) is not None
        ]
        if not candidates:
            logger.error("No supported payment requirements found")
            raise UnsupportedNetworkError("No supported payment requirements found")

        selected = candidates[0]
        logger.info(
            "Selected payment requirement: network=%s, scheme=%s, amount=%s",
            selected.network,
            selected.scheme,
            selected.amount,
        )
        return selected

    async def create_payment_payload(
        self,
        requirements: AnyPaymentRequirements,
        resource: str,
        server_extensions: dict[str, Any] | None = None,
    ) -> AnyPaymentPayload:
        """
        Create payment payload for given requirements.

        Extension hooks run on V2 payloads after signing; V1 payloads carry
        no extensions.

        Raises:
            UnsupportedNetworkError: No mechanism registered for the requirement
        """
        mechanism = self._find_mechanism(requirements.scheme, requirements.network)
        if mechanism is None:
            raise UnsupportedNetworkError(
                f"No mechanism registered for scheme={requirements.scheme}, "
                f"network={requirements.network}"
            )

        logger.debug("Using mechanism: %s", mechanism.__class__.__name__)
        payload = await mechanism.create_payment_payload(requirements, resource)

        if self._hooks and payload.protocol_version == ProtocolVersion.V2:
            context = HookContext(
                server_extensions=server_extensions or {},
                requirements=requirements,
                payload=payload,
                extensions=dict(payload.extensions or {}),
                signer=mechanism.get_signer(),
            )
            extensions = await run_hooks(self._hooks, context)
            payload.extensions = extensions or None

        logger.info("Payment payload created successfully")
        return payload

    async def handle_payment(
        self,
        payment_required: AnyPaymentRequired,
        resource: str,
        selector: PaymentRequirementsSelector | None = None,
    ) -> AnyPaymentPayload:
        """
        Answer a 402 challenge with a signed payload.

        Args:
            payment_required: Decoded challenge (V1 or V2)
            resource: Resource URL
            selector: Optional custom selector
        """
        if selector:
            requirements = selector(payment_required.accepts)
        else:
            requirements = self.select_payment_requirements(payment_required.accepts)

        return await self.create_payment_payload(
            requirements, resource, getattr(payment_required, "extensions", None)
        )

    def _find_mechanism(self, scheme: str, network: str) -> ClientMechanism | None:
        """Find mechanism for scheme and network"""
        for entry in self._mechanisms:
            if entry.mechanism.scheme() == scheme and self._match_pattern(entry.pattern, network):
                return entry.mechanism
        return None

    def _match_pattern(self, pattern: str, network: str) -> bool:
        """Match network (V1 slug or CAIP-2) against pattern"""
        try:
            network = NetworkConfig.to_caip2(network)
        except ConfigurationError:
            pass
        if pattern == network:
            return True
        if pattern.endswith(":*"):
            return network.startswith(pattern[:-1])
        return False

    def _calculate_priority(self, pattern: str) -> int:
        """Calculate priority for pattern (more specific = higher priority)"""
        if pattern.endswith(":*"):
            return 1
        return 10
