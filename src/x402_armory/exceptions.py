"""
x402 custom exception hierarchy
"""


class X402Error(Exception):
    """x402 base exception"""

    pass


class DecodeError(X402Error):
    """Malformed header or body (bad Base64/JSON, missing required field)"""

    pass


class ValidationError(X402Error):
    """Structurally invalid payload or authorization"""

    def __init__(self, field: str, message: str | None = None):
        self.field = field
        super().__init__(message or f"Invalid field: {field}")


class VerificationFailure(X402Error):
    """Payment verification failed with a specific reason code"""

    def __init__(self, reason: str, message: str | None = None):
        self.reason = reason
        super().__init__(message or reason)


class SettlementFailure(X402Error):
    """Payment settlement failed with a specific reason code"""

    def __init__(self, reason: str, message: str | None = None):
        self.reason = reason
        super().__init__(message or reason)


class SignatureError(X402Error):
    """Signature-related error"""

    pass


class SignatureVerificationError(SignatureError):
    """Signature verification failed"""

    pass


class SignatureCreationError(SignatureError):
    """Signature creation failed"""

    pass


class FacilitatorError(X402Error):
    """Remote facilitator returned an unusable response"""

    pass


class FacilitatorUnavailableError(FacilitatorError):
    """Transient facilitator or transport failure, safe to retry"""

    pass


class ConfigurationError(X402Error):
    """Configuration-related error"""

    pass


class UnsupportedNetworkError(ConfigurationError):
    """Unsupported network"""

    pass


class UnknownTokenError(ConfigurationError):
    """Unknown token"""

    pass


class SettlementQueueError(X402Error):
    """Settlement queue misuse (closed queue, unknown job)"""

    pass
