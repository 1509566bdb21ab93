"""
ExactEvmFacilitatorMechanism - exact facilitator mechanism for EVM.

Local verification and settlement of EIP-3009 TransferWithAuthorization
payments. Verification runs its checks in a fixed order and reports the
first failure:

1. structural validation of the authorization and signature
2. protocol version of payload vs requirements
3. signer recovery against ``authorization.from``
4. nonce not yet reserved
5. ``validAfter <= now < validBefore``
6. network, asset, recipient and amount against the requirements
7. optional on-chain balance check
"""

import logging
import time
from typing import TYPE_CHECKING, Callable

from eth_utils import to_checksum_address

from x402_armory.exceptions import (
    ConfigurationError,
    SettlementQueueError,
    SignatureVerificationError,
    ValidationError,
)
from x402_armory.mechanisms._base.facilitator import FacilitatorMechanism
from x402_armory.mechanisms.evm.exact.types import (
    authorization_args,
    build_domain_for_requirements,
)
from x402_armory.nonce import MemoryNonceTracker, NonceKey, NonceTracker
from x402_armory.queue import JobState, SettleJob, SettlementQueue
from x402_armory.tokens import TokenRegistry
from x402_armory.types import (
    SCHEME_EXACT,
    AnyPaymentPayload,
    AnyPaymentRequirements,
    EIP3009Authorization,
    InvalidReason,
    SettleErrorReason,
    SettleResponse,
    VerifyResponse,
)
from x402_armory.config import NetworkConfig
from x402_armory.utils.eip712 import (
    TRANSFER_WITH_AUTHORIZATION_ABI,
    build_eip712_message,
    recover_signer,
    validate_transfer_with_authorization,
)
from x402_armory.utils.signature import adjust_v, parse_signature

if TYPE_CHECKING:
    from x402_armory.signers.facilitator import FacilitatorSigner

logger = logging.getLogger(__name__)


class ExactEvmFacilitatorMechanism(FacilitatorMechanism):
    """TransferWithAuthorization facilitator mechanism for EVM."""

    def __init__(
        self,
        signer: "FacilitatorSigner",
        nonce_tracker: NonceTracker | None = None,
        token_registry: TokenRegistry | None = None,
        check_balance: bool = False,
        wait_for_receipt: bool = True,
        receipt_timeout: int = 120,
        clock: Callable[[], float] = time.time,
        settlement_queue: SettlementQueue | None = None,
    ) -> None:
        """
        Args:
            signer: RPC signer submitting transferWithAuthorization
            nonce_tracker: Replay-protection store
            token_registry: EIP-712 domain source for known tokens
            check_balance: Run the on-chain balance check during verify
            wait_for_receipt: Wait for the receipt before reporting success
            receipt_timeout: Seconds to wait for the receipt
            clock: Time source for the validity window
            settlement_queue: When set, settle reserves the nonce, queues the
                transfer and answers with a pending result; ``process_next``
                submits queued transfers
        """
        self._signer = signer
        self._nonce_tracker = nonce_tracker or MemoryNonceTracker()
        self._token_registry = token_registry
        self._check_balance = check_balance
        self._wait_for_receipt = wait_for_receipt
        self._receipt_timeout = receipt_timeout
        self._clock = clock
        self._settlement_queue = settlement_queue

    def scheme(self) -> str:
        return SCHEME_EXACT

    @property
    def nonce_tracker(self) -> NonceTracker:
        return self._nonce_tracker

    @property
    def settlement_queue(self) -> SettlementQueue | None:
        return self._settlement_queue

    # ------------------------------------------------------------------
    # verify
    # ------------------------------------------------------------------

    async def verify(
        self,
        payload: AnyPaymentPayload,
        requirements: AnyPaymentRequirements,
    ) -> VerifyResponse:
        # 1. structure
        try:
            auth = validate_transfer_with_authorization(payload.payload.authorization)
            parse_signature(payload.payload.signature)
        except ValidationError as e:
            logger.info("[EXACT] Rejecting payload: invalid field %s (%s)", e.field, e)
            return _invalid(InvalidReason.INVALID_PAYLOAD)
        payer = auth.from_address

        # 2. protocol version
        if payload.protocol_version != requirements.protocol_version:
            return _invalid(InvalidReason.VERSION_MISMATCH, payer)

        try:
            chain_id = requirements.chain_id
            asset = requirements.asset_address
        except ConfigurationError:
            return _invalid(InvalidReason.NETWORK_MISMATCH, payer)

        # 3. signer recovery
        domain = build_domain_for_requirements(requirements, self._token_registry)
        try:
            recovered = recover_signer(
                domain, build_eip712_message(auth), payload.payload.signature
            )
        except SignatureVerificationError as e:
            logger.info("[EXACT] Signature recovery failed: %s", e)
            return _invalid(InvalidReason.SIGNATURE_INVALID, payer)
        if recovered.lower() != payer.lower():
            logger.info("[EXACT] Signer mismatch: recovered=%s, from=%s", recovered, payer)
            return _invalid(InvalidReason.SIGNATURE_INVALID, payer)

        # 4. replay
        if await self._nonce_tracker.is_used(NonceKey.create(chain_id, asset, auth.nonce)):
            return _invalid(InvalidReason.NONCE_REUSED, payer)

        # 5. validity window
        value, valid_after, valid_before = authorization_args(auth)
        now = int(self._clock())
        if not valid_after <= now < valid_before:
            return _invalid(InvalidReason.WINDOW_EXPIRED, payer)

        # 6. requirement match
        reason = self._match_requirements(payload, requirements, auth, value)
        if reason is not None:
            return _invalid(reason, payer)

        # 7. balance
        if self._check_balance:
            try:
                balance = await self._signer.get_balance(asset, payer, requirements.network)
            except Exception as e:
                logger.warning("[EXACT] Balance check failed: %s", e)
                return _invalid(InvalidReason.FACILITATOR_UNAVAILABLE, payer)
            if balance < value:
                return _invalid(InvalidReason.INSUFFICIENT_FUNDS, payer)

        return VerifyResponse(isValid=True, payer=payer)

    # ------------------------------------------------------------------
    # settle
    # ------------------------------------------------------------------

    async def settle(
        self,
        payload: AnyPaymentPayload,
        requirements: AnyPaymentRequirements,
    ) -> SettleResponse:
        network = requirements.network
        verify_result = await self.verify(payload, requirements)
        if not verify_result.is_valid:
            reason = verify_result.invalid_reason
            if reason == InvalidReason.NONCE_REUSED:
                reason = SettleErrorReason.DUPLICATE_NONCE
            return SettleResponse(
                success=False,
                errorReason=reason,
                network=network,
                payer=verify_result.payer,
            )

        auth = payload.payload.authorization
        payer = auth.from_address
        key = NonceKey.create(requirements.chain_id, requirements.asset_address, auth.nonce)

        if not await self._nonce_tracker.reserve(key, expires_at=int(auth.valid_before)):
            logger.info("[SETTLE] Duplicate settlement attempt for nonce %s", auth.nonce)
            return SettleResponse(
                success=False,
                errorReason=SettleErrorReason.DUPLICATE_NONCE,
                network=network,
                payer=payer,
            )

        if self._settlement_queue is not None:
            try:
                job = await self._settlement_queue.enqueue(payload, requirements, key)
            except SettlementQueueError as e:
                logger.error("[SETTLE] Cannot queue settlement: %s", e)
                await self._nonce_tracker.release(key)
                return SettleResponse(
                    success=False,
                    errorReason=SettleErrorReason.RPC_UNAVAILABLE,
                    network=network,
                    payer=payer,
                )
            return SettleResponse(success=True, network=network, payer=payer, jobId=job.id)

        result = await self._execute(auth, payload.payload.signature, requirements)
        if _releases_nonce(result):
            await self._nonce_tracker.release(key)
        return result

    async def process_next(self) -> SettleJob | None:
        """Submit the next ready queued settlement.

        Returns:
            The job after this attempt, or None when nothing was ready
        """
        if self._settlement_queue is None:
            return None
        job = await self._settlement_queue.dequeue()
        if job is None:
            return None

        auth = job.payload.payload.authorization
        if int(auth.valid_before) <= int(self._clock()):
            await self._nonce_tracker.release(job.nonce_key)
            return await self._settlement_queue.fail(
                job.id, InvalidReason.WINDOW_EXPIRED, retryable=False
            )

        result = await self._execute(auth, job.payload.payload.signature, job.requirements)
        if result.success:
            return await self._settlement_queue.complete(job.id, result)

        retryable = result.error_reason == SettleErrorReason.RPC_UNAVAILABLE and (
            result.transaction is None
        )
        job = await self._settlement_queue.fail(
            job.id, result.error_reason or SettleErrorReason.RPC_UNAVAILABLE, retryable=retryable
        )
        if job.state == JobState.FAILED and _releases_nonce(result):
            await self._nonce_tracker.release(job.nonce_key)
        return job

    async def _execute(
        self,
        auth: EIP3009Authorization,
        signature: str,
        requirements: AnyPaymentRequirements,
    ) -> SettleResponse:
        network = requirements.network
        payer = auth.from_address
        try:
            tx_hash = await self._submit(auth, signature, requirements)
        except Exception:
            logger.exception("[SETTLE] transferWithAuthorization submission failed")
            tx_hash = None

        if tx_hash is None:
            return SettleResponse(
                success=False,
                errorReason=SettleErrorReason.RPC_UNAVAILABLE,
                network=network,
                payer=payer,
            )

        if not self._wait_for_receipt:
            logger.info("[SETTLE] Submitted %s, not waiting for receipt", tx_hash)
            return SettleResponse(success=True, transaction=tx_hash, network=network, payer=payer)

        try:
            receipt = await self._signer.wait_for_transaction_receipt(
                tx_hash, timeout=self._receipt_timeout, network=network
            )
        except Exception as e:
            # The transaction is broadcast; the reservation stays in place.
            logger.error("[SETTLE] Receipt for %s unavailable: %s", tx_hash, e)
            return SettleResponse(
                success=False,
                errorReason=SettleErrorReason.RPC_UNAVAILABLE,
                transaction=tx_hash,
                network=network,
                payer=payer,
            )

        raw_status = receipt.get("status")
        tx_status = raw_status.lower() if isinstance(raw_status, str) else raw_status
        if tx_status in ("failed", "0", 0):
            logger.warning("[SETTLE] Transaction %s reverted", tx_hash)
            return SettleResponse(
                success=False,
                errorReason=SettleErrorReason.ON_CHAIN_REVERT,
                transaction=tx_hash,
                network=network,
                payer=payer,
            )

        logger.info("[SETTLE] Settled %s on %s", tx_hash, network)
        return SettleResponse(success=True, transaction=tx_hash, network=network, payer=payer)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _match_requirements(
        payload: AnyPaymentPayload,
        requirements: AnyPaymentRequirements,
        auth: EIP3009Authorization,
        value: int,
    ) -> str | None:
        if payload.scheme != requirements.scheme:
            return InvalidReason.NETWORK_MISMATCH
        try:
            same_network = NetworkConfig.to_caip2(payload.network) == NetworkConfig.to_caip2(
                requirements.network
            )
        except ConfigurationError:
            return InvalidReason.NETWORK_MISMATCH
        if not same_network:
            return InvalidReason.NETWORK_MISMATCH

        accepted = getattr(payload, "accepted", None)
        if accepted is not None:
            if accepted.asset_address.lower() != requirements.asset_address.lower():
                return InvalidReason.NETWORK_MISMATCH
            if accepted.pay_to.lower() != requirements.pay_to.lower():
                return InvalidReason.RECIPIENT_MISMATCH

        if auth.to.lower() != requirements.pay_to.lower():
            return InvalidReason.RECIPIENT_MISMATCH
        if value < int(requirements.amount):
            return InvalidReason.AMOUNT_INSUFFICIENT
        return None

    async def _submit(
        self,
        auth: EIP3009Authorization,
        signature: str,
        requirements: AnyPaymentRequirements,
    ) -> str | None:
        parts = parse_signature(signature)
        value, valid_after, valid_before = authorization_args(auth)
        args = [
            to_checksum_address(auth.from_address),
            to_checksum_address(auth.to),
            value,
            valid_after,
            valid_before,
            bytes.fromhex(auth.nonce[2:]),
            adjust_v(parts.v, requirements.chain_id),
            parts.r,
            parts.s,
        ]

        logger.info(
            "[EXACT] Calling transferWithAuthorization on token=%s",
            requirements.asset_address,
        )
        return await self._signer.write_contract(
            contract_address=requirements.asset_address,
            abi=TRANSFER_WITH_AUTHORIZATION_ABI,
            method="transferWithAuthorization",
            args=args,
            network=requirements.network,
        )


def _invalid(reason: str, payer: str | None = None) -> VerifyResponse:
    return VerifyResponse(isValid=False, invalidReason=reason, payer=payer)


def _releases_nonce(result: SettleResponse) -> bool:
    """A failure frees the nonce unless a transaction may still land"""
    if result.success:
        return False
    return result.transaction is None or result.error_reason == SettleErrorReason.ON_CHAIN_REVERT
