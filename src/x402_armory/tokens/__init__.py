"""
Token registry
"""

from x402_armory.tokens.registry import DEFAULT_TOKENS, TokenInfo, TokenRegistry

__all__ = ["TokenInfo", "TokenRegistry", "DEFAULT_TOKENS"]
