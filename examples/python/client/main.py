import asyncio
import logging
import os
from pathlib import Path

import httpx
from dotenv import load_dotenv

from x402_armory.clients import X402Client, X402HttpClient
from x402_armory.extensions import create_payment_id_hook, create_siwx_hook
from x402_armory.logging_config import setup_logging
from x402_armory.mechanisms.evm import ExactEvmClientMechanism
from x402_armory.signers.client import EvmClientSigner
from x402_armory.tokens import TokenRegistry

setup_logging(logging.DEBUG)

load_dotenv(Path(__file__).parent.parent.parent.parent / ".env")

CLIENT_PRIVATE_KEY = os.getenv("CLIENT_PRIVATE_KEY", "")
RESOURCE_SERVER_URL = os.getenv("RESOURCE_SERVER_URL", "http://localhost:8000")
RESOURCE_URL = RESOURCE_SERVER_URL + "/api/quote/eth"

if not CLIENT_PRIVATE_KEY:
    print("\nError: CLIENT_PRIVATE_KEY not set in .env file\n")
    raise SystemExit(1)


async def main():
    signer = EvmClientSigner.from_private_key(CLIENT_PRIVATE_KEY)
    print("Initializing X402 client...")
    print(f"  Resource: {RESOURCE_URL}")
    print(f"  Client Address: {signer.get_address()}")

    x402_client = (
        X402Client()
        .register("eip155:*", ExactEvmClientMechanism(signer, TokenRegistry().freeze()))
        .register_hook(create_siwx_hook())
        .register_hook(create_payment_id_hook())
    )

    async with httpx.AsyncClient(timeout=60.0) as http_client:
        client = X402HttpClient(http_client, x402_client)
        response = await client.get(RESOURCE_URL)
        print(f"\nStatus: {response.status_code}")

        settlement = X402HttpClient.get_settlement(response)
        if settlement:
            print("\nPayment Response:")
            print(f"  Success: {settlement.success}")
            print(f"  Network: {settlement.network}")
            print(f"  Transaction: {settlement.transaction}")
            if settlement.error_reason:
                print(f"  Error: {settlement.error_reason}")

        if "application/json" in response.headers.get("content-type", ""):
            print(f"\nResponse: {response.json()}")
        else:
            print(f"\nResponse (first 200 chars): {response.text[:200]}")


if __name__ == "__main__":
    asyncio.run(main())
