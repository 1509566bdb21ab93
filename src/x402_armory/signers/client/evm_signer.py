"""
EvmClientSigner - EVM client signer implementation
"""

import logging
from typing import Any

from eth_account import Account
from eth_account.messages import encode_defunct, encode_typed_data
from eth_account.signers.local import LocalAccount

from x402_armory.exceptions import SignatureCreationError
from x402_armory.signers.client.base import ClientSigner
from x402_armory.signers.utils import eip712_domain_type_from_keys, to_0x_hex

logger = logging.getLogger(__name__)


class EvmClientSigner(ClientSigner):
    """EVM client signer backed by an eth-account LocalAccount"""

    def __init__(self, account: LocalAccount) -> None:
        self._account = account
        logger.debug("EvmClientSigner initialized", extra={"address": account.address})

    @classmethod
    def from_private_key(cls, private_key: str) -> "EvmClientSigner":
        """Create signer from private key."""
        if not private_key.startswith("0x"):
            private_key = "0x" + private_key
        return cls(Account.from_key(private_key))

    def get_address(self) -> str:
        return self._account.address

    async def sign_message(self, message: str | bytes) -> str:
        """Sign message using EIP-191"""
        try:
            if isinstance(message, bytes):
                signable = encode_defunct(primitive=message)
            else:
                signable = encode_defunct(text=message)
            signed = self._account.sign_message(signable)
            return to_0x_hex(signed.signature)
        except Exception as e:
            raise SignatureCreationError(f"Failed to sign message: {e}") from e

    async def sign_typed_data(
        self,
        domain: dict[str, Any],
        types: dict[str, Any],
        message: dict[str, Any],
    ) -> str:
        """Sign EIP-712 typed data."""
        try:
            # The primary type is the last declared struct
            primary_type = list(types.keys())[-1]
            full_data = {
                "types": {"EIP712Domain": eip712_domain_type_from_keys(domain), **types},
                "domain": domain,
                "primaryType": primary_type,
                "message": message,
            }
            signed = self._account.sign_message(encode_typed_data(full_message=full_data))
            return to_0x_hex(signed.signature)
        except Exception as e:
            raise SignatureCreationError(f"Failed to sign typed data: {e}") from e
