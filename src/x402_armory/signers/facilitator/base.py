"""
Facilitator signer base interface
"""

from abc import ABC, abstractmethod
from typing import Any


class FacilitatorSigner(ABC):
    """
    Abstract base class for facilitator signers.

    The RPC capability consumed by local settlement: balance reads,
    transaction broadcast and receipt polling.
    """

    @abstractmethod
    def get_address(self) -> str:
        """Get the facilitator's account address"""
        pass

    @abstractmethod
    async def get_balance(self, token: str, owner: str, network: str) -> int:
        """
        Read an ERC-20 balance.

        Args:
            token: Token contract address
            owner: Account whose balance is read
            network: Network identifier

        Returns:
            Balance in atomic units
        """
        pass

    @abstractmethod
    async def write_contract(
        self,
        contract_address: str,
        abi: list[dict[str, Any]],
        method: str,
        args: list[Any],
        network: str,
    ) -> str | None:
        """
        Execute a contract write transaction.

        Args:
            contract_address: Contract address
            abi: Contract ABI
            method: Method name
            args: Method arguments
            network: Network identifier (e.g. "eip155:8453")

        Returns:
            Transaction hash, or None on failure
        """
        pass

    @abstractmethod
    async def wait_for_transaction_receipt(
        self,
        tx_hash: str,
        timeout: int = 120,
        network: str = "",
    ) -> dict[str, Any]:
        """
        Wait for transaction confirmation.

        Args:
            tx_hash: Transaction hash
            timeout: Timeout in seconds
            network: Network identifier

        Returns:
            Receipt dict with at least ``hash`` and ``status``
            ("confirmed" or "failed")
        """
        pass
