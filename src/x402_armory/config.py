"""
X402 Network Configuration
Centralized chain id, network naming and RPC settings
"""

import re
from typing import Dict

from x402_armory.exceptions import UnsupportedNetworkError

_CAIP2_PATTERN = re.compile(r"^eip155:(\d+)$")
_CAIP19_PATTERN = re.compile(r"^eip155:(\d+)/erc20:(0x[a-fA-F0-9]{40})$")


class NetworkConfig:
    """Network configuration for chain IDs, V1 slugs and RPC endpoints"""

    BASE_MAINNET = "eip155:8453"
    BASE_SEPOLIA = "eip155:84532"
    EVM_MAINNET = "eip155:1"
    EVM_SEPOLIA = "eip155:11155111"

    # x402 V1 network slugs
    CHAIN_IDS: Dict[str, int] = {
        "base": 8453,
        "base-sepolia": 84532,
        "ethereum": 1,
        "ethereum-sepolia": 11155111,
        "polygon": 137,
        "polygon-amoy": 80002,
        "arbitrum": 42161,
        "arbitrum-sepolia": 421614,
        "optimism": 10,
        "optimism-sepolia": 11155420,
    }

    RPC_URLS: Dict[str, str] = {
        "eip155:8453": "https://mainnet.base.org",
        "eip155:84532": "https://sepolia.base.org",
        "eip155:1": "https://eth.llamarpc.com",
        "eip155:11155111": "https://rpc.sepolia.org",
    }

    @classmethod
    def get_rpc_url(cls, network: str) -> str | None:
        """Get RPC URL for a network.

        Args:
            network: V1 slug or CAIP-2 identifier

        Returns:
            RPC URL string, or None if not configured
        """
        try:
            return cls.RPC_URLS.get(cls.to_caip2(network))
        except UnsupportedNetworkError:
            return None

    @classmethod
    def get_chain_id(cls, network: str) -> int:
        """Get chain ID for network

        Args:
            network: Network identifier (e.g., "base-sepolia", "eip155:8453")

        Returns:
            Chain ID as integer

        Raises:
            UnsupportedNetworkError: If network is not supported
        """
        match = _CAIP2_PATTERN.match(network)
        if match:
            return int(match.group(1))
        if network.startswith("eip155:"):
            raise UnsupportedNetworkError(f"Invalid EVM network: {network}")

        chain_id = cls.CHAIN_IDS.get(network.lower())
        if chain_id is None:
            raise UnsupportedNetworkError(f"Unsupported network: {network}")
        return chain_id

    @classmethod
    def to_caip2(cls, network: str) -> str:
        """Normalize a V1 slug or CAIP-2 identifier to CAIP-2"""
        return f"eip155:{cls.get_chain_id(network)}"

    @classmethod
    def to_v1_network(cls, network: str) -> str:
        """Convert a CAIP-2 identifier to its V1 slug.

        Raises:
            UnsupportedNetworkError: If the chain has no V1 slug
        """
        chain_id = cls.get_chain_id(network)
        for slug, known in cls.CHAIN_IDS.items():
            if known == chain_id:
                return slug
        raise UnsupportedNetworkError(f"No V1 network name for chain {chain_id}")

    @staticmethod
    def to_asset_id(chain_id: int, address: str) -> str:
        """Build a CAIP-19 asset identifier"""
        return f"eip155:{chain_id}/erc20:{address}"

    @staticmethod
    def parse_asset_id(asset_id: str) -> tuple[int, str]:
        """Split a CAIP-19 asset identifier into (chain_id, address)

        Raises:
            UnsupportedNetworkError: If the identifier is malformed
        """
        match = _CAIP19_PATTERN.match(asset_id)
        if not match:
            raise UnsupportedNetworkError(f"Invalid CAIP-19 asset id: {asset_id}")
        return int(match.group(1)), match.group(2)
