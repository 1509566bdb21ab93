"""
Facilitator HTTP service

Exposes an X402Facilitator over HTTP:
``GET /health``, ``GET /supported``, ``POST /verify``, ``POST /settle``.
Request bodies are ``{"x402Version", "paymentPayload", "paymentRequirements"}``
in either protocol version.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import Body, FastAPI, HTTPException
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError

from x402_armory.exceptions import DecodeError
from x402_armory.facilitator.x402_facilitator import X402Facilitator
from x402_armory.queue import SettlementWorker
from x402_armory.types import (
    AnyPaymentPayload,
    AnyPaymentRequirements,
    PaymentPayload,
    PaymentPayloadV1,
    PaymentRequirements,
    PaymentRequirementsV1,
    ProtocolVersion,
)

logger = logging.getLogger(__name__)


def parse_facilitator_request(
    body: Any,
) -> tuple[AnyPaymentPayload, AnyPaymentRequirements]:
    """Parse a /verify or /settle body into (payload, requirements).

    The payload's own ``x402Version`` picks its model; the requirements
    follow the top-level ``x402Version`` (defaulting to the payload's), so a
    mixed-version request reaches verification as a version mismatch.

    Raises:
        DecodeError: On a malformed body
    """
    if not isinstance(body, dict):
        raise DecodeError("Request body must be a JSON object")
    raw_payload = body.get("paymentPayload")
    raw_requirements = body.get("paymentRequirements")
    if not isinstance(raw_payload, dict) or not isinstance(raw_requirements, dict):
        raise DecodeError("paymentPayload and paymentRequirements are required")

    payload_version = _protocol_version(raw_payload.get("x402Version", body.get("x402Version", 2)))
    requirements_version = (
        _protocol_version(body["x402Version"]) if "x402Version" in body else payload_version
    )

    try:
        payload: AnyPaymentPayload
        match payload_version:
            case ProtocolVersion.V1:
                payload = PaymentPayloadV1.model_validate(raw_payload)
            case ProtocolVersion.V2:
                payload = PaymentPayload.model_validate(raw_payload)

        requirements: AnyPaymentRequirements
        match requirements_version:
            case ProtocolVersion.V1:
                requirements = PaymentRequirementsV1.model_validate(raw_requirements)
            case ProtocolVersion.V2:
                requirements = PaymentRequirements.model_validate(raw_requirements)
    except PydanticValidationError as e:
        raise DecodeError(f"Invalid request body: {e}") from e

    return payload, requirements


def _protocol_version(raw: Any) -> ProtocolVersion:
    if type(raw) is not int:
        raise DecodeError(f"Unsupported x402Version: {raw!r}")
    try:
        return ProtocolVersion(raw)
    except ValueError as e:
        raise DecodeError(f"Unsupported x402Version: {raw!r}") from e


def create_facilitator_app(
    facilitator: X402Facilitator,
    title: str = "x402 facilitator",
    workers: list[SettlementWorker] | None = None,
) -> FastAPI:
    """Build the FastAPI application serving *facilitator*

    *workers* drain settlement queues for the lifetime of the app. A queued
    settlement is answered with 202 and its ``jobId``.
    """
    workers = list(workers or [])

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        for worker in workers:
            worker.start()
        try:
            yield
        finally:
            for worker in workers:
                await worker.stop()

    app = FastAPI(title=title, lifespan=lifespan)

    @app.get("/health")
    async def health():
        """Liveness check"""
        return {"status": "ok"}

    @app.get("/supported")
    async def supported():
        """Get supported capabilities"""
        return facilitator.supported().model_dump(by_alias=True, exclude_none=True)

    @app.post("/verify")
    async def verify(body: Any = Body(...)):
        """Verify payment payload"""
        try:
            payload, requirements = parse_facilitator_request(body)
        except DecodeError as e:
            raise HTTPException(status_code=400, detail=str(e))
        try:
            result = await facilitator.verify(payload, requirements)
        except Exception:
            logger.exception("Verify failed")
            raise HTTPException(status_code=500, detail="Internal server error")
        return result.model_dump(by_alias=True, exclude_none=True)

    @app.post("/settle")
    async def settle(body: Any = Body(...)):
        """Settle payment on-chain"""
        try:
            payload, requirements = parse_facilitator_request(body)
        except DecodeError as e:
            raise HTTPException(status_code=400, detail=str(e))
        try:
            result = await facilitator.settle(payload, requirements)
        except Exception:
            logger.exception("Settle failed")
            raise HTTPException(status_code=500, detail="Internal server error")
        content = result.model_dump(by_alias=True, exclude_none=True)
        if result.pending:
            logger.info("Queued settlement %s on %s", result.job_id, result.network)
            return JSONResponse(content=content, status_code=202)
        if result.success:
            logger.info("Settled %s on %s", result.transaction, result.network)
        return content

    return app
