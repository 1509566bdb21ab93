"""
X402HttpClient - HTTP client adapter with automatic 402 payment handling
"""

import logging
from typing import Any

import httpx

from x402_armory.clients.x402_client import PaymentRequirementsSelector, X402Client
from x402_armory.encoding import (
    PAYMENT_REQUIRED_HEADER,
    PAYMENT_RESPONSE_HEADER,
    V1_PAYMENT_REQUIRED_HEADER,
    V1_PAYMENT_RESPONSE_HEADER,
    decode_payment_required,
    decode_settlement_response,
    encode_payment_payload,
    payment_header_name,
)
from x402_armory.exceptions import DecodeError
from x402_armory.types import AnyPaymentRequired, ProtocolVersion, SettleResponse

logger = logging.getLogger(__name__)


class X402HttpClient:
    """
    HTTP client adapter with automatic 402 payment handling.

    Wraps httpx.AsyncClient: a 402 response is answered once with a signed
    payload in the header matching the challenge's protocol version.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        x402_client: X402Client,
        selector: PaymentRequirementsSelector | None = None,
    ) -> None:
        self._http_client = http_client
        self._x402_client = x402_client
        self._selector = selector

    async def request_with_payment(
        self,
        method: str,
        url: str,
        **kwargs: Any,
    ) -> httpx.Response:
        """
        Make HTTP request with automatic 402 payment handling.

        Flow:
            1. Send original request
            2. If 402, decode the challenge (header first, then body)
            3. Create payment payload (extension hooks included)
            4. Retry once with the version's payment header
        """
        logger.info("Making %s request to %s", method, url)
        response = await self._http_client.request(method, url, **kwargs)
        if response.status_code != 402:
            return response

        logger.info("Received 402 Payment Required, processing payment...")
        payment_required = self._parse_payment_required(response)
        if payment_required is None:
            logger.error("Failed to parse PaymentRequired from 402 response")
            return response

        payload = await self._x402_client.handle_payment(payment_required, url, self._selector)

        headers = dict(kwargs.pop("headers", None) or {})
        headers[payment_header_name(payload.protocol_version)] = encode_payment_payload(payload)
        response = await self._http_client.request(method, url, headers=headers, **kwargs)
        logger.info("Payment retry response: status=%d", response.status_code)
        return response

    async def get(self, url: str, **kwargs: Any) -> httpx.Response:
        """GET request with payment handling"""
        return await self.request_with_payment("GET", url, **kwargs)

    async def post(self, url: str, **kwargs: Any) -> httpx.Response:
        """POST request with payment handling"""
        return await self.request_with_payment("POST", url, **kwargs)

    async def put(self, url: str, **kwargs: Any) -> httpx.Response:
        """PUT request with payment handling"""
        return await self.request_with_payment("PUT", url, **kwargs)

    async def delete(self, url: str, **kwargs: Any) -> httpx.Response:
        """DELETE request with payment handling"""
        return await self.request_with_payment("DELETE", url, **kwargs)

    @staticmethod
    def get_settlement(response: httpx.Response) -> SettleResponse | None:
        """Decode the settlement header of a paid response, if present"""
        for name, version in (
            (PAYMENT_RESPONSE_HEADER, ProtocolVersion.V2),
            (V1_PAYMENT_RESPONSE_HEADER, ProtocolVersion.V1),
        ):
            value = response.headers.get(name)
            if value:
                return decode_settlement_response(value, version)
        return None

    def _parse_payment_required(self, response: httpx.Response) -> AnyPaymentRequired | None:
        """Parse the challenge from the 402 response"""
        for name, version in (
            (PAYMENT_REQUIRED_HEADER, ProtocolVersion.V2),
            (V1_PAYMENT_REQUIRED_HEADER, ProtocolVersion.V1),
        ):
            value = response.headers.get(name)
            if value:
                try:
                    return decode_payment_required(value, version)
                except DecodeError as e:
                    logger.warning("Failed to decode %s header: %s", name, e)

        # V1 servers often send the challenge only in the JSON body
        try:
            return decode_payment_required(response.text)
        except DecodeError as e:
            logger.warning("Failed to parse PaymentRequired from body: %s", e)
        return None
