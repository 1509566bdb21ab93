"""
x402 extensions: Sign-In-With-X, Payment Identifier, Bazaar and client hooks
"""

from x402_armory.extensions.base import (
    BAZAAR,
    PAYMENT_IDENTIFIER,
    SIGN_IN_WITH_X,
    ExtensionValidation,
    create_extension,
    extract_extension,
    filter_extensions,
    validate_extension,
)
from x402_armory.extensions.bazaar import (
    BazaarExtensionInfo,
    DiscoveredResource,
    declare_discovery_extension,
    extract_discovery_info,
    validate_discovery_extension,
)
from x402_armory.extensions.hooks import (
    ExtensionHook,
    HookContext,
    create_custom_hook,
    create_payment_id_hook,
    create_siwx_hook,
    run_hooks,
)
from x402_armory.extensions.payment_identifier import (
    PaymentIdentifierInfo,
    append_payment_identifier,
    declare_payment_identifier_extension,
    extract_payment_identifier,
    generate_payment_id,
    is_valid_payment_id,
    validate_payment_identifier_extension,
)
from x402_armory.extensions.sign_in_with_x import (
    SIWxExtensionInfo,
    SIWxPayload,
    create_siwx_message,
    create_siwx_payload,
    declare_siwx_extension,
    encode_siwx_header,
    parse_siwx_header,
    validate_siwx_extension,
    validate_siwx_message,
    verify_siwx_signature,
)

__all__ = [
    # Framework
    "BAZAAR",
    "PAYMENT_IDENTIFIER",
    "SIGN_IN_WITH_X",
    "ExtensionValidation",
    "create_extension",
    "extract_extension",
    "filter_extensions",
    "validate_extension",
    # Sign-In-With-X
    "SIWxExtensionInfo",
    "SIWxPayload",
    "create_siwx_message",
    "create_siwx_payload",
    "declare_siwx_extension",
    "encode_siwx_header",
    "parse_siwx_header",
    "validate_siwx_extension",
    "validate_siwx_message",
    "verify_siwx_signature",
    # Payment identifier
    "PaymentIdentifierInfo",
    "append_payment_identifier",
    "declare_payment_identifier_extension",
    "extract_payment_identifier",
    "generate_payment_id",
    "is_valid_payment_id",
    "validate_payment_identifier_extension",
    # Bazaar
    "BazaarExtensionInfo",
    "DiscoveredResource",
    "declare_discovery_extension",
    "extract_discovery_info",
    "validate_discovery_extension",
    # Hooks
    "ExtensionHook",
    "HookContext",
    "create_custom_hook",
    "create_payment_id_hook",
    "create_siwx_hook",
    "run_hooks",
]
