"""
Token registry - token configurations per network

A registry is constructed once at service start, optionally extended with
``register_token`` and then frozen. Components receive it explicitly.
"""

from dataclasses import dataclass, replace
from decimal import Decimal, InvalidOperation
from typing import Any

from x402_armory.config import NetworkConfig
from x402_armory.exceptions import ConfigurationError, UnknownTokenError


@dataclass(frozen=True)
class TokenInfo:
    """Token information"""

    address: str
    decimals: int
    name: str
    symbol: str
    version: str = "1"


USDC_NAME = "USD Coin"
USDC_VERSION = "2"

DEFAULT_TOKENS: dict[str, dict[str, TokenInfo]] = {
    "eip155:8453": {
        "USDC": TokenInfo(
            address="0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913",
            decimals=6,
            name=USDC_NAME,
            symbol="USDC",
            version=USDC_VERSION,
        ),
    },
    "eip155:84532": {
        "USDC": TokenInfo(
            address="0x036CbD53842c5426634e7929541eC2318f3dCF7e",
            decimals=6,
            name=USDC_NAME,
            symbol="USDC",
            version=USDC_VERSION,
        ),
    },
    "eip155:1": {
        "USDC": TokenInfo(
            address="0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48",
            decimals=6,
            name=USDC_NAME,
            symbol="USDC",
            version=USDC_VERSION,
        ),
    },
}


class TokenRegistry:
    """Token registry"""

    def __init__(self, include_defaults: bool = True) -> None:
        self._tokens: dict[str, dict[str, TokenInfo]] = {}
        self._frozen = False
        if include_defaults:
            for network, tokens in DEFAULT_TOKENS.items():
                for token in tokens.values():
                    self.register_token(network, token)

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> "TokenRegistry":
        """Make the registry read-only.

        Returns:
            self for method chaining
        """
        self._frozen = True
        return self

    def register_token(self, network: str, token: TokenInfo) -> "TokenRegistry":
        """Register a custom token for specified network

        Args:
            network: V1 slug or CAIP-2 identifier (stored as CAIP-2)
            token: TokenInfo to register

        Raises:
            ConfigurationError: If the registry is frozen
        """
        if self._frozen:
            raise ConfigurationError("Token registry is frozen")
        key = NetworkConfig.to_caip2(network)
        self._tokens.setdefault(key, {})[token.symbol.upper()] = replace(token)
        return self

    def get_token(self, network: str, symbol: str) -> TokenInfo:
        """Get token information for specified network and symbol

        Raises:
            UnknownTokenError: If token does not exist
        """
        tokens = self._tokens.get(self._key(network), {})
        token = tokens.get(symbol.upper())
        if token is None:
            raise UnknownTokenError(f"Unknown token {symbol} on network {network}")
        return token

    def find_by_address(self, network: str, address: str) -> TokenInfo | None:
        """Find token information by address (case-insensitive)"""
        lower = address.lower()
        for info in self._tokens.get(self._key(network), {}).values():
            if info.address.lower() == lower:
                return info
        return None

    def get_network_tokens(self, network: str) -> dict[str, TokenInfo]:
        """Get all tokens for specified network"""
        return dict(self._tokens.get(self._key(network), {}))

    def parse_price(self, price: str, network: str) -> dict[str, Any]:
        """Parse price string into asset amount

        Args:
            price: Price string (e.g. "0.01 USDC")
            network: Network identifier

        Returns:
            Dictionary containing amount, asset, decimals, etc.

        Raises:
            ValueError: If the price string is malformed
            UnknownTokenError: If the symbol is not registered for network
        """
        parts = price.strip().split()
        if len(parts) != 2:
            raise ValueError(f"Invalid price format: {price}")

        amount_str, symbol = parts
        try:
            amount = Decimal(amount_str)
        except InvalidOperation:
            raise ValueError(f"Invalid price amount: {amount_str}")
        if amount < 0:
            raise ValueError(f"Negative price: {price}")

        token = self.get_token(network, symbol)
        amount_smallest = int(amount * (Decimal(10) ** token.decimals))

        return {
            "amount": amount_smallest,
            "asset": token.address,
            "decimals": token.decimals,
            "symbol": token.symbol,
            "name": token.name,
            "version": token.version,
        }

    @staticmethod
    def _key(network: str) -> str:
        try:
            return NetworkConfig.to_caip2(network)
        except ConfigurationError:
            return network
