"""
Stripe REST client for payment intents and refunds.
Handles form encoding, rate limiting and retries.
"""
import asyncio
from typing import Any, Optional

import httpx

from storefront.core.config import settings
from storefront.core.logging import get_logger

logger = get_logger(__name__)


class StripeAPIError(Exception):
    """Stripe API error with the vendor error code when available."""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.status_code = status_code


def encode_form(params: dict[str, Any], prefix: str = "") -> list[tuple[str, str]]:
    """
    Flatten nested params into Stripe's bracket notation.

    ``{"metadata": {"a": 1}}`` becomes ``[("metadata[a]", "1")]``.
    """
    pairs: list[tuple[str, str]] = []
    for key, value in params.items():
        if value is None:
            continue
        name = f"{prefix}[{key}]" if prefix else str(key)
        if isinstance(value, dict):
            pairs.extend(encode_form(value, name))
        elif isinstance(value, (list, tuple)):
            for index, entry in enumerate(value):
                if isinstance(entry, dict):
                    pairs.extend(encode_form(entry, f"{name}[{index}]"))
                else:
                    pairs.append((f"{name}[{index}]", str(entry)))
        elif isinstance(value, bool):
            pairs.append((name, "true" if value else "false"))
        else:
            pairs.append((name, str(value)))
    return pairs


class StripeClient:
    """
    Async Stripe API client.

    Features:
    - Form encoding of nested parameters
    - Retry on 429 and transport errors
    - Stripe error codes surfaced on StripeAPIError
    """

    API_BASE = "https://api.stripe.com/v1"
    MAX_RETRIES = 3

    def __init__(self, api_key: Optional[str] = None) -> None:
        self.api_key = api_key or settings.stripe_secret_key

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[dict[str, Any]] = None,
        idempotency_key: Optional[str] = None,
    ) -> dict[str, Any]:
        if not self.api_key:
            raise StripeAPIError("Stripe secret key not configured")

        headers = {"Authorization": f"Bearer {self.api_key}"}
        if idempotency_key:
            headers["Idempotency-Key"] = idempotency_key

        url = f"{self.API_BASE}{path}"
        form = encode_form(params or {})

        async with httpx.AsyncClient(timeout=30.0) as client:
            for attempt in range(self.MAX_RETRIES):
                try:
                    if method == "GET":
                        response = await client.get(url, params=form, headers=headers)
                    else:
                        response = await client.post(url, data=dict(form), headers=headers)

                    if response.status_code == 429:
                        await asyncio.sleep(2 ** attempt)
                        continue

                    data = response.json()
                    if response.status_code >= 400:
                        error = data.get("error", {})
                        logger.error(
                            "Stripe API error",
                            path=path,
                            status=response.status_code,
                            code=error.get("code"),
                        )
                        raise StripeAPIError(
                            error.get("message", f"HTTP error: {response.status_code}"),
                            code=error.get("code"),
                            status_code=response.status_code,
                        )
                    return data

                except httpx.RequestError as e:
                    if attempt < self.MAX_RETRIES - 1:
                        continue
                    raise StripeAPIError(f"Request failed: {str(e)}")

        raise StripeAPIError("Max retries exceeded")

    async def create_payment_intent(self, params: dict[str, Any]) -> dict[str, Any]:
        return await self._request("POST", "/payment_intents", params)

    async def retrieve_payment_intent(self, payment_intent_id: str) -> dict[str, Any]:
        return await self._request("GET", f"/payment_intents/{payment_intent_id}")

    async def update_payment_intent(
        self,
        payment_intent_id: str,
        params: dict[str, Any],
    ) -> dict[str, Any]:
        return await self._request("POST", f"/payment_intents/{payment_intent_id}", params)

    async def create_refund(
        self,
        payment_intent: str,
        amount: Optional[int] = None,
        reason: Optional[str] = None,
    ) -> dict[str, Any]:
        return await self._request(
            "POST",
            "/refunds",
            {"payment_intent": payment_intent, "amount": amount, "reason": reason},
        )


stripe_client = StripeClient()
