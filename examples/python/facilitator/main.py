"""
Facilitator Main Entry Point
Starts a FastAPI server that verifies and settles EIP-3009 payments on Base.
"""

import os
from pathlib import Path

import uvicorn
from dotenv import load_dotenv

from x402_armory.config import NetworkConfig
from x402_armory.extensions import PAYMENT_IDENTIFIER, SIGN_IN_WITH_X
from x402_armory.facilitator import X402Facilitator, create_facilitator_app
from x402_armory.logging_config import setup_logging
from x402_armory.mechanisms.evm import ExactEvmFacilitatorMechanism
from x402_armory.nonce import MemoryNonceTracker
from x402_armory.queue import MemorySettlementQueue, SettlementWorker
from x402_armory.signers.facilitator import EvmFacilitatorSigner
from x402_armory.tokens import TokenRegistry

setup_logging()

load_dotenv(Path(__file__).parent / ".env")
load_dotenv(Path(__file__).parent.parent.parent.parent / ".env")

FACILITATOR_PRIVATE_KEY = os.getenv("FACILITATOR_PRIVATE_KEY", "")
BASE_SEPOLIA_RPC_URL = os.getenv("BASE_SEPOLIA_RPC_URL", "https://sepolia.base.org")
ASYNC_SETTLEMENT = os.getenv("ASYNC_SETTLEMENT", "").lower() in ("1", "true", "yes")
FACILITATOR_HOST = "0.0.0.0"
FACILITATOR_PORT = 8001

if not FACILITATOR_PRIVATE_KEY:
    raise ValueError("FACILITATOR_PRIVATE_KEY environment variable is required")

signer = EvmFacilitatorSigner.from_private_key(
    FACILITATOR_PRIVATE_KEY,
    rpc_urls={NetworkConfig.BASE_SEPOLIA: BASE_SEPOLIA_RPC_URL},
)
mechanism = ExactEvmFacilitatorMechanism(
    signer,
    nonce_tracker=MemoryNonceTracker(),
    token_registry=TokenRegistry().freeze(),
    check_balance=True,
    settlement_queue=MemorySettlementQueue(retry_delay=5.0) if ASYNC_SETTLEMENT else None,
)
workers = [SettlementWorker(mechanism.process_next)] if ASYNC_SETTLEMENT else []
facilitator = X402Facilitator(extensions=[PAYMENT_IDENTIFIER, SIGN_IN_WITH_X]).register(
    [NetworkConfig.BASE_SEPOLIA], mechanism
)
app = create_facilitator_app(facilitator, title="X402 Facilitator", workers=workers)


def main():
    """Start the facilitator server"""
    print("\n" + "=" * 80)
    print("Starting X402 Facilitator Server")
    print("=" * 80)
    print(f"Facilitator Address: {signer.get_address()}")
    print(f"Network: {NetworkConfig.BASE_SEPOLIA}")
    print(f"Settlement: {'queued' if ASYNC_SETTLEMENT else 'synchronous'}")
    print("\nEndpoints:")
    print(f"  GET  http://{FACILITATOR_HOST}:{FACILITATOR_PORT}/health")
    print(f"  GET  http://{FACILITATOR_HOST}:{FACILITATOR_PORT}/supported")
    print(f"  POST http://{FACILITATOR_HOST}:{FACILITATOR_PORT}/verify")
    print(f"  POST http://{FACILITATOR_HOST}:{FACILITATOR_PORT}/settle")
    print("=" * 80 + "\n")

    uvicorn.run(app, host=FACILITATOR_HOST, port=FACILITATOR_PORT, log_level="info")


if __name__ == "__main__":
    main()
