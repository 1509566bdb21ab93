"""
FastAPI middleware for x402 payment processing
"""

import asyncio
import logging
from enum import Enum
from functools import wraps
from typing import Any, Callable

from fastapi import Request, Response
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from starlette.datastructures import Headers, MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from x402_armory.server import (
    PaymentProcessor,
    ProcessResult,
    ProcessState,
    ResourceConfig,
    RouteConfig,
    X402Server,
)
from x402_armory.types import ProtocolVersion

logger = logging.getLogger(__name__)


class SettlementMode(str, Enum):
    """When settlement runs relative to the protected handler"""

    # Run the handler, buffer its response, settle, then respond
    SYNC = "sync"
    # Respond as soon as the handler finishes; settle in a background task
    FIRE_AND_FORGET = "fire_and_forget"
    # Settle when the handler starts its response, before anything is sent
    INTERCEPT = "intercept"


def _result_response(result: ProcessResult) -> JSONResponse:
    return JSONResponse(content=result.body, status_code=result.status, headers=result.headers)


class X402Middleware:
    """
    Per-endpoint payment protection with synchronous settlement.

    Usage:
        app = FastAPI()
        server = X402Server(routing=FacilitatorRouting(default_url="https://..."))
        middleware = X402Middleware(server)

        @app.get("/protected")
        @middleware.protect(prices=["$0.01"], network="eip155:8453", pay_to="0x...")
        async def protected_endpoint(request: Request):
            return {"data": "secret"}
    """

    def __init__(self, server: X402Server) -> None:
        self._server = server

    def protect(
        self,
        prices: list[str],
        network: str,
        pay_to: str,
        scheme: str = "exact",
        valid_for: int = 300,
        version: ProtocolVersion = ProtocolVersion.V2,
        description: str | None = None,
        mime_type: str | None = None,
        extensions: dict[str, Any] | None = None,
    ) -> Callable:
        """
        Decorator to protect an endpoint with payment requirements.

        The decorated endpoint must accept ``request: Request`` as its first
        argument.

        Args:
            prices: Accepted prices (e.g. ["$0.01"], ["0.01 USDC"])
            network: Network identifier shared by all prices
            pay_to: Payment recipient address
            scheme: Payment scheme
            valid_for: Payment validity period (seconds)
            version: Protocol version of the challenge when the client does
                not indicate one
            description: Resource description for the challenge
            mime_type: Resource MIME type for the challenge
            extensions: Extensions to declare in the challenge

        Returns:
            Decorated function
        """
        if not prices or not network or not pay_to:
            raise ValueError("prices, network, and pay_to are required")

        # Surface unknown tokens at startup
        for price in prices:
            if not price.strip().startswith("$"):
                self._server.token_registry.parse_price(price, network)

        route = RouteConfig(
            pattern="*",
            resources=[
                ResourceConfig(
                    price=p, pay_to=pay_to, network=network, scheme=scheme, valid_for=valid_for
                )
                for p in prices
            ],
            version=version,
            description=description,
            mime_type=mime_type,
            extensions=extensions,
        )
        processor = PaymentProcessor(self._server, [route])

        def decorator(func: Callable) -> Callable:
            @wraps(func)
            async def wrapper(request: Request, *args: Any, **kwargs: Any) -> Response:
                result = await processor.process_request(
                    request.url.path, request.method, request.headers, str(request.url)
                )
                if not result.should_invoke_handler:
                    return _result_response(result)

                response = await func(request, *args, **kwargs)
                if not isinstance(response, Response):
                    response = JSONResponse(content=jsonable_encoder(response))

                outcome = await processor.settle(result, response.status_code)
                if outcome.status is not None:
                    return JSONResponse(content=outcome.body, status_code=outcome.status)
                response.headers.update(outcome.headers)
                return response

            return wrapper

        return decorator


def x402_protected(
    server: X402Server,
    prices: list[str],
    network: str,
    pay_to: str,
    **kwargs: Any,
) -> Callable:
    """
    Convenience decorator to protect endpoints.

        @app.get("/report")
        @x402_protected(server, prices=["0.05 USDC"], network="eip155:8453", pay_to="0x...")
        async def report(request: Request):
            ...
    """
    middleware = X402Middleware(server)
    return middleware.protect(prices=prices, network=network, pay_to=pay_to, **kwargs)


class X402RouteMiddleware:
    """
    Route-aware ASGI middleware.

    Paths matching an entry of ``routes`` (first match wins) require payment;
    all other paths pass through untouched.

    Usage:
        app.add_middleware(
            X402RouteMiddleware,
            server=server,
            routes=[RouteConfig("/api/*", [ResourceConfig("$0.01", "0x...")])],
            mode=SettlementMode.INTERCEPT,
        )
    """

    def __init__(
        self,
        app: ASGIApp,
        server: X402Server,
        routes: list[RouteConfig],
        mode: SettlementMode = SettlementMode.SYNC,
    ) -> None:
        self.app = app
        self.mode = SettlementMode(mode)
        self._processor = PaymentProcessor(server, routes)
        self._background: set[asyncio.Task] = set()

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request = Request(scope)
        result = await self._processor.process_request(
            request.url.path, request.method, Headers(scope=scope), str(request.url)
        )
        if result.state == ProcessState.PASS_THROUGH:
            await self.app(scope, receive, send)
            return
        if not result.should_invoke_handler:
            await _result_response(result)(scope, receive, send)
            return

        match self.mode:
            case SettlementMode.SYNC:
                await self._run_sync(result, scope, receive, send)
            case SettlementMode.FIRE_AND_FORGET:
                await self._run_fire_and_forget(result, scope, receive, send)
            case SettlementMode.INTERCEPT:
                await self._run_intercept(result, scope, receive, send)

    async def _run_sync(
        self, result: ProcessResult, scope: Scope, receive: Receive, send: Send
    ) -> None:
        messages: list[Message] = []

        async def buffer(message: Message) -> None:
            messages.append(message)

        await self.app(scope, receive, buffer)

        start = next((m for m in messages if m["type"] == "http.response.start"), None)
        status = start["status"] if start else 500
        outcome = await self._processor.settle(result, status)
        if outcome.status is not None:
            await JSONResponse(content=outcome.body, status_code=outcome.status)(
                scope, receive, send
            )
            return

        if start is not None:
            headers = MutableHeaders(scope=start)
            for name, value in outcome.headers.items():
                headers[name] = value
        for message in messages:
            await send(message)

    async def _run_fire_and_forget(
        self, result: ProcessResult, scope: Scope, receive: Receive, send: Send
    ) -> None:
        status_holder: dict[str, int] = {}

        async def track(message: Message) -> None:
            if message["type"] == "http.response.start":
                status_holder["status"] = message["status"]
            await send(message)

        await self.app(scope, receive, track)

        status = status_holder.get("status", 500)
        if status >= 400:
            logger.info("Handler returned %d, skipping settlement", status)
            return
        task = asyncio.create_task(self._settle_in_background(result))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _settle_in_background(self, result: ProcessResult) -> None:
        try:
            outcome = await self._processor.settle(result)
        except Exception:
            logger.exception("Background settlement crashed")
            return
        if outcome.success and outcome.settle_response is not None:
            logger.info(
                "Background settlement succeeded: tx=%s network=%s",
                outcome.settle_response.transaction,
                outcome.settle_response.network,
            )
        else:
            logger.error("Background settlement failed: %s", outcome.body)

    async def _run_intercept(
        self, result: ProcessResult, scope: Scope, receive: Receive, send: Send
    ) -> None:
        state = {"replaced": False}

        async def intercept(message: Message) -> None:
            if state["replaced"]:
                return
            if message["type"] == "http.response.start":
                outcome = await self._processor.settle(result, message["status"])
                if outcome.status is not None:
                    state["replaced"] = True
                    await JSONResponse(content=outcome.body, status_code=outcome.status)(
                        scope, receive, send
                    )
                    return
                headers = MutableHeaders(scope=message)
                for name, value in outcome.headers.items():
                    headers[name] = value
            await send(message)

        await self.app(scope, receive, intercept)
