"""
FastAPI integration for x402
"""

from x402_armory.fastapi.middleware import (
    SettlementMode,
    X402Middleware,
    X402RouteMiddleware,
    x402_protected,
)

__all__ = ["SettlementMode", "X402Middleware", "X402RouteMiddleware", "x402_protected"]
