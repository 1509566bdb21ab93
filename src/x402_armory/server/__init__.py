"""
x402 resource server: requirement building, route table and the request
state machine
"""

from x402_armory.server.processor import (
    PaymentProcessor,
    ProcessResult,
    ProcessState,
    SettleOutcome,
    SettleState,
)
from x402_armory.server.routes import RouteConfig, compile_route_pattern, match_route
from x402_armory.server.x402_server import ResourceConfig, X402Server

__all__ = [
    "PaymentProcessor",
    "ProcessResult",
    "ProcessState",
    "ResourceConfig",
    "RouteConfig",
    "SettleOutcome",
    "SettleState",
    "X402Server",
    "compile_route_pattern",
    "match_route",
]
