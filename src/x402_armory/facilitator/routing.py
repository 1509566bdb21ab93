"""
Facilitator routing - pick a facilitator URL per (network, asset)
"""

from dataclasses import dataclass, field

from x402_armory.config import NetworkConfig
from x402_armory.exceptions import ConfigurationError


@dataclass
class FacilitatorRouting:
    """Facilitator URL selection.

    Resolution order: ``by_token[chain][asset]``, then ``by_chain[chain]``,
    then ``default_url``. Chain keys may be V1 slugs or CAIP-2 identifiers;
    asset keys are token contract addresses (case-insensitive).
    """

    default_url: str | None = None
    by_chain: dict[str, str] = field(default_factory=dict)
    by_token: dict[str, dict[str, str]] = field(default_factory=dict)

    def resolve(self, network: str, asset: str | None = None) -> str:
        """Resolve the facilitator URL for a requirement

        Raises:
            ConfigurationError: If no URL applies
        """
        chain_id = NetworkConfig.get_chain_id(network)

        if asset:
            for chain_key, token_map in self.by_token.items():
                if NetworkConfig.get_chain_id(chain_key) != chain_id:
                    continue
                for token_key, url in token_map.items():
                    if token_key.lower() == asset.lower():
                        return url

        for chain_key, url in self.by_chain.items():
            if NetworkConfig.get_chain_id(chain_key) == chain_id:
                return url

        if self.default_url:
            return self.default_url

        raise ConfigurationError(f"No facilitator URL configured for {network}")

    def urls(self) -> set[str]:
        """All URLs this routing table can resolve to"""
        found = set(self.by_chain.values())
        for token_map in self.by_token.values():
            found.update(token_map.values())
        if self.default_url:
            found.add(self.default_url)
        return found
