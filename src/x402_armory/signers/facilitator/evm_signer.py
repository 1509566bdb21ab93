"""
EvmFacilitatorSigner - EVM facilitator signer implementation
"""

import logging
from typing import Any

from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import AsyncHTTPProvider, AsyncWeb3
from web3.middleware import ExtraDataToPOAMiddleware

from x402_armory.exceptions import ConfigurationError
from x402_armory.signers.facilitator.base import FacilitatorSigner
from x402_armory.signers.utils import resolve_provider_uri, to_0x_hex
from x402_armory.utils.eip712 import BALANCE_OF_ABI

logger = logging.getLogger(__name__)


class EvmFacilitatorSigner(FacilitatorSigner):
    """EVM facilitator signer implementation using web3.py"""

    def __init__(self, account: LocalAccount, rpc_urls: dict[str, str] | None = None) -> None:
        self._account = account
        self._rpc_urls = rpc_urls or {}
        self._async_web3_clients: dict[str, AsyncWeb3] = {}
        logger.debug("EvmFacilitatorSigner initialized", extra={"address": account.address})

    @classmethod
    def from_private_key(
        cls,
        private_key: str,
        rpc_urls: dict[str, str] | None = None,
    ) -> "EvmFacilitatorSigner":
        """Create signer from private key"""
        if not private_key.startswith("0x"):
            private_key = "0x" + private_key
        return cls(Account.from_key(private_key), rpc_urls)

    def get_address(self) -> str:
        return self._account.address

    def _ensure_async_web3_client(self, network: str) -> AsyncWeb3:
        """Lazy initialize async web3 client for the given network."""
        if network not in self._async_web3_clients:
            provider_uri = resolve_provider_uri(network, self._rpc_urls)
            if provider_uri is None:
                raise ConfigurationError(f"No RPC URL configured for {network}")
            w3 = AsyncWeb3(AsyncHTTPProvider(provider_uri))
            w3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)
            self._async_web3_clients[network] = w3

        return self._async_web3_clients[network]

    async def get_balance(self, token: str, owner: str, network: str) -> int:
        w3 = self._ensure_async_web3_client(network)
        contract = w3.eth.contract(address=AsyncWeb3.to_checksum_address(token), abi=BALANCE_OF_ABI)
        return await contract.functions.balanceOf(AsyncWeb3.to_checksum_address(owner)).call()

    async def write_contract(
        self,
        contract_address: str,
        abi: list[dict[str, Any]],
        method: str,
        args: list[Any],
        network: str,
    ) -> str | None:
        """Execute contract transaction on EVM (async)."""
        w3 = self._ensure_async_web3_client(network)

        try:
            contract = w3.eth.contract(
                address=AsyncWeb3.to_checksum_address(contract_address), abi=abi
            )
            func = getattr(contract.functions, method)

            tx = await func(*args).build_transaction(
                {
                    "from": self._account.address,
                    "nonce": await w3.eth.get_transaction_count(self._account.address),
                    "chainId": await w3.eth.chain_id,
                }
            )

            signed_tx = self._account.sign_transaction(tx)
            tx_hash = await w3.eth.send_raw_transaction(signed_tx.raw_transaction)
            return to_0x_hex(tx_hash)
        except Exception as e:
            logger.error(
                "Contract write failed: %s",
                e,
                exc_info=True,
                extra={"method": method, "contract": contract_address},
            )
            return None

    async def wait_for_transaction_receipt(
        self,
        tx_hash: str,
        timeout: int = 120,
        network: str = "",
    ) -> dict[str, Any]:
        """Wait for EVM transaction confirmation"""
        w3 = self._ensure_async_web3_client(network)
        receipt = await w3.eth.wait_for_transaction_receipt(tx_hash, timeout=timeout)
        return {
            "hash": tx_hash,
            "blockNumber": str(receipt["blockNumber"]),
            "status": "confirmed" if receipt["status"] == 1 else "failed",
        }
