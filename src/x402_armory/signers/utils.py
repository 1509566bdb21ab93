"""
Signer utility functions
"""

from typing import Any

from x402_armory.config import NetworkConfig
from x402_armory.exceptions import ConfigurationError

# Canonical EIP-712 domain field order and types
_EIP712_DOMAIN_FIELDS: list[tuple[str, str]] = [
    ("name", "string"),
    ("version", "string"),
    ("chainId", "uint256"),
    ("verifyingContract", "address"),
    ("salt", "bytes32"),
]


def eip712_domain_type_from_keys(domain: dict[str, Any]) -> list[dict[str, str]]:
    """Build an EIP712Domain type array from the keys present in *domain*.

    Preserves the canonical field order defined in EIP-712.
    """
    return [{"name": name, "type": typ} for name, typ in _EIP712_DOMAIN_FIELDS if name in domain]


def resolve_provider_uri(network: str, rpc_urls: dict[str, str] | None = None) -> str | None:
    """Resolve a network identifier to an RPC provider URI.

    Checks in order:
    1. If network is already an HTTP/WS URL, return as-is
    2. Look up in the explicit *rpc_urls* mapping
    3. Look up in NetworkConfig.RPC_URLS
    4. Return None (no provider available)
    """
    if network.startswith(("http://", "https://", "ws://", "wss://")):
        return network
    if rpc_urls:
        explicit = rpc_urls.get(network)
        if explicit is None:
            try:
                explicit = rpc_urls.get(NetworkConfig.to_caip2(network))
            except ConfigurationError:
                explicit = None
        if explicit:
            return explicit
    return NetworkConfig.get_rpc_url(network)


def to_0x_hex(raw: Any) -> str:
    """Render bytes as 0x-prefixed hex regardless of HexBytes version"""
    rendered = raw.hex() if hasattr(raw, "hex") else str(raw)
    return rendered if rendered.startswith("0x") else "0x" + rendered
