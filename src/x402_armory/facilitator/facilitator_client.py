"""
FacilitatorClient - Client for communicating with facilitator service
"""

import asyncio
import logging
from typing import Any, TypeVar

import httpx
from pydantic import BaseModel

from x402_armory.exceptions import FacilitatorError
from x402_armory.facilitator.retry import RetryPolicy, retry_async
from x402_armory.types import (
    AnyPaymentPayload,
    AnyPaymentRequirements,
    InvalidReason,
    SettleErrorReason,
    SettleResponse,
    SupportedResponse,
    VerifyResponse,
)

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=BaseModel)


class FacilitatorClient:
    """
    Client for communicating with facilitator service.

    Handles verify, settle and supported queries. Transient failures are
    retried under ``retry``; each verify/settle call (retries included) is
    bounded by ``timeout``. Verify and settle never raise: a rejection
    sent with an error status is returned as the result, and an unreachable
    facilitator or an unusable reply becomes a failure result.
    """

    def __init__(
        self,
        base_url: str,
        headers: dict[str, str] | None = None,
        timeout: float = 30.0,
        retry: RetryPolicy | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize facilitator client.

        Args:
            base_url: Facilitator service base URL
            headers: Custom HTTP headers (e.g., Authorization)
            timeout: Upper bound in seconds for one verify/settle call
            retry: Backoff policy for transient failures
            transport: Optional httpx transport (used in tests)
        """
        self._base_url = base_url.rstrip("/")
        self._headers = headers or {}
        self._timeout = timeout
        self._retry = retry or RetryPolicy()
        self._transport = transport
        self._http_client: httpx.AsyncClient | None = None

    @property
    def base_url(self) -> str:
        return self._base_url

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client"""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                base_url=self._base_url,
                headers=self._headers,
                timeout=self._timeout,
                transport=self._transport,
            )
        return self._http_client

    async def close(self) -> None:
        """Close HTTP client"""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    async def supported(self) -> SupportedResponse:
        """
        Query facilitator supported capabilities.

        Returns:
            SupportedResponse with supported networks/schemes/extensions
        """

        async def call() -> dict[str, Any]:
            client = await self._get_client()
            response = await client.get("/supported")
            response.raise_for_status()
            return response.json()

        data = await asyncio.wait_for(
            retry_async(call, self._retry, f"GET {self._base_url}/supported"),
            timeout=self._timeout,
        )
        return SupportedResponse.model_validate(data)

    async def verify(
        self,
        payload: AnyPaymentPayload,
        requirements: AnyPaymentRequirements,
    ) -> VerifyResponse:
        """
        Verify payment signature (without executing on-chain transaction).

        Returns:
            VerifyResponse; an error reply carrying ``isValid`` is returned
            as-is, anything else unusable is ``facilitator-unavailable``
        """
        try:
            data = await self._post("/verify", payload, requirements)
            return VerifyResponse.model_validate(data)
        except httpx.HTTPStatusError as e:
            result = _result_from_error(e.response, VerifyResponse, "isValid")
            if result is not None and not result.is_valid:
                logger.warning(
                    "Facilitator verify at %s answered %d: %s",
                    self._base_url,
                    e.response.status_code,
                    result.invalid_reason,
                )
                return result
            error: BaseException = e
        except (asyncio.TimeoutError, httpx.HTTPError, FacilitatorError, ValueError) as e:
            error = e
        logger.warning("Facilitator verify at %s unavailable: %s", self._base_url, error)
        return VerifyResponse(
            isValid=False,
            invalidReason=InvalidReason.FACILITATOR_UNAVAILABLE,
        )

    async def settle(
        self,
        payload: AnyPaymentPayload,
        requirements: AnyPaymentRequirements,
    ) -> SettleResponse:
        """
        Execute payment settlement (on-chain transaction).

        Returns:
            SettleResponse with the transaction hash; an error reply carrying
            ``success`` is returned as-is, anything else unusable is
            ``rpc-unavailable``
        """
        try:
            data = await self._post("/settle", payload, requirements)
            return SettleResponse.model_validate(data)
        except httpx.HTTPStatusError as e:
            result = _result_from_error(e.response, SettleResponse, "success")
            if result is not None and not result.success:
                logger.warning(
                    "Facilitator settle at %s answered %d: %s",
                    self._base_url,
                    e.response.status_code,
                    result.error_reason,
                )
                return result
            error: BaseException = e
        except (asyncio.TimeoutError, httpx.HTTPError, FacilitatorError, ValueError) as e:
            error = e
        logger.warning("Facilitator settle at %s unavailable: %s", self._base_url, error)
        return SettleResponse(
            success=False,
            errorReason=SettleErrorReason.RPC_UNAVAILABLE,
            network=requirements.network,
        )

    async def _post(
        self,
        path: str,
        payload: AnyPaymentPayload,
        requirements: AnyPaymentRequirements,
    ) -> dict[str, Any]:
        request_body = {
            "x402Version": int(payload.protocol_version),
            "paymentPayload": payload.model_dump(by_alias=True, exclude_none=True, mode="json"),
            "paymentRequirements": requirements.model_dump(
                by_alias=True, exclude_none=True, mode="json"
            ),
        }

        async def call() -> dict[str, Any]:
            client = await self._get_client()
            response = await client.post(path, json=request_body)
            response.raise_for_status()
            data = response.json()
            if not isinstance(data, dict):
                raise FacilitatorError(f"Unexpected {path} response: {data!r}")
            return data

        return await asyncio.wait_for(
            retry_async(call, self._retry, f"POST {self._base_url}{path}"),
            timeout=self._timeout,
        )


def _result_from_error(response: httpx.Response, model: type[R], field: str) -> R | None:
    """Parse an error reply that still carries a verify/settle result"""
    try:
        data = response.json()
    except ValueError:
        return None
    if not isinstance(data, dict) or field not in data:
        return None
    try:
        return model.model_validate(data)
    except ValueError:
        return None
