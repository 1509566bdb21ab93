"""
Protected resource server.

``/api/*`` is sold through the route middleware (settled before the response
is sent); ``/report`` uses the per-endpoint decorator with a V1 challenge.
"""

import logging
import os
from pathlib import Path

import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI, Request

from x402_armory.config import NetworkConfig
from x402_armory.extensions import (
    PAYMENT_IDENTIFIER,
    declare_payment_identifier_extension,
)
from x402_armory.facilitator import FacilitatorRouting
from x402_armory.fastapi import SettlementMode, X402RouteMiddleware, x402_protected
from x402_armory.logging_config import setup_logging
from x402_armory.server import ResourceConfig, RouteConfig, X402Server
from x402_armory.tokens import TokenRegistry
from x402_armory.types import ProtocolVersion

load_dotenv(Path(__file__).parent.parent.parent.parent / ".env")

setup_logging()
logging.getLogger("x402_armory").setLevel(logging.DEBUG)

PAY_TO_ADDRESS = os.getenv("PAY_TO_ADDRESS") or "0x209693Bc6afc0C5328bA36FaF03C514EF312287C"
FACILITATOR_URL = os.getenv("FACILITATOR_URL", "http://localhost:8001")
SERVER_HOST = "0.0.0.0"
SERVER_PORT = 8000

server = X402Server(
    token_registry=TokenRegistry().freeze(),
    routing=FacilitatorRouting(default_url=FACILITATOR_URL),
)

routes = [
    RouteConfig(
        "/api/*",
        [ResourceConfig(price="$0.01", pay_to=PAY_TO_ADDRESS, network=NetworkConfig.BASE_SEPOLIA)],
        description="Market data",
        mime_type="application/json",
        extensions={PAYMENT_IDENTIFIER: declare_payment_identifier_extension(required=True)},
    ),
]

app = FastAPI(title="X402 Server", description="Protected resource server")
app.add_middleware(X402RouteMiddleware, server=server, routes=routes, mode=SettlementMode.INTERCEPT)


@app.get("/")
async def root():
    """Service info"""
    return {
        "service": "X402 Protected Resource Server",
        "status": "running",
        "pay_to": PAY_TO_ADDRESS,
        "facilitator": FACILITATOR_URL,
    }


@app.get("/api/quote/{symbol}")
async def quote(symbol: str):
    return {"symbol": symbol.upper(), "price": "42.00"}


@app.get("/report")
@x402_protected(
    server,
    prices=["0.05 USDC"],
    network="base-sepolia",
    pay_to=PAY_TO_ADDRESS,
    version=ProtocolVersion.V1,
)
async def report(request: Request):
    return {"report": "quarterly numbers"}


@app.on_event("shutdown")
async def shutdown():
    await server.close()


if __name__ == "__main__":
    print("\n" + "=" * 80)
    print("Starting X402 Protected Resource Server")
    print("=" * 80)
    print(f"Pay To: {PAY_TO_ADDRESS}")
    print(f"Facilitator URL: {FACILITATOR_URL}")
    print("Endpoints:")
    print("  /api/*   - $0.01 USDC, x402 V2, settled before the response")
    print("  /report  - 0.05 USDC, x402 V1")
    print("=" * 80 + "\n")

    uvicorn.run(app, host=SERVER_HOST, port=SERVER_PORT, log_level="info", access_log=True)
