"""
Shippo REST client for shipping rates and label purchase.
"""
import asyncio
from typing import Any, Optional

import httpx

from storefront.core.config import settings
from storefront.core.logging import get_logger

logger = get_logger(__name__)


class ShippoAPIError(Exception):
    """Shippo API error."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ShippoClient:
    """
    Async Shippo API client.

    Addresses, parcels and customs declarations are passed as plain dicts
    using Shippo's snake_case field names.
    """

    API_BASE = "https://api.goshippo.com"
    MAX_RETRIES = 3

    def __init__(self, api_key: Optional[str] = None) -> None:
        self.api_key = api_key or settings.shippo_api_key

    async def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        if not self.api_key:
            raise ShippoAPIError("SHIPPO_API_KEY is not defined")

        headers = {
            "Authorization": f"ShippoToken {self.api_key}",
            "Content-Type": "application/json",
        }

        async with httpx.AsyncClient(timeout=45.0) as client:
            for attempt in range(self.MAX_RETRIES):
                try:
                    response = await client.post(
                        f"{self.API_BASE}{path}",
                        json=payload,
                        headers=headers,
                    )
                    response.raise_for_status()
                    return response.json()

                except httpx.HTTPStatusError as e:
                    if e.response.status_code == 429:
                        await asyncio.sleep(2 ** attempt)
                        continue
                    logger.error(
                        "Shippo API error",
                        path=path,
                        status=e.response.status_code,
                        body=e.response.text[:500],
                    )
                    raise ShippoAPIError(
                        f"HTTP error: {e.response.status_code}",
                        status_code=e.response.status_code,
                    )

                except httpx.RequestError as e:
                    if attempt < self.MAX_RETRIES - 1:
                        continue
                    raise ShippoAPIError(f"Request failed: {str(e)}")

        raise ShippoAPIError("Max retries exceeded")

    async def create_shipment(
        self,
        address_from: dict[str, Any],
        address_to: dict[str, Any],
        parcels: list[dict[str, Any]],
        customs_declaration: Optional[dict[str, Any]] = None,
        carrier_accounts: Optional[list[str]] = None,
        is_return: bool = False,
    ) -> dict[str, Any]:
        """Create a shipment synchronously and return it with its rates."""
        payload: dict[str, Any] = {
            "address_from": address_from,
            "address_to": address_to,
            "parcels": parcels,
            "async": False,
        }
        if customs_declaration:
            payload["customs_declaration"] = customs_declaration
        if carrier_accounts:
            payload["carrier_accounts"] = carrier_accounts
        if is_return:
            payload["extra"] = {"is_return": True}
        return await self._post("/shipments/", payload)

    async def get_rates(
        self,
        address_from: dict[str, Any],
        address_to: dict[str, Any],
        parcels: list[dict[str, Any]],
        customs_declaration: Optional[dict[str, Any]] = None,
    ) -> list[dict[str, Any]]:
        shipment = await self.create_shipment(
            address_from,
            address_to,
            parcels,
            customs_declaration,
            carrier_accounts=settings.shippo_carrier_accounts or None,
        )
        return shipment.get("rates", [])

    async def get_return_rates(
        self,
        customer_address: dict[str, Any],
        warehouse_address: dict[str, Any],
        parcels: list[dict[str, Any]],
        customs_declaration: Optional[dict[str, Any]] = None,
    ) -> list[dict[str, Any]]:
        """
        Rates for a customer-to-warehouse return.

        Scan-based return billing only applies to domestic returns.
        """
        is_domestic = customer_address.get("country") == warehouse_address.get("country")
        carrier_accounts = (
            settings.shippo_carrier_accounts
            if customer_address.get("country") == settings.store_origin_country
            else None
        )
        shipment = await self.create_shipment(
            customer_address,
            warehouse_address,
            parcels,
            customs_declaration,
            carrier_accounts=carrier_accounts or None,
            is_return=is_domestic,
        )
        return shipment.get("rates", [])

    async def create_transaction(self, rate_id: str) -> dict[str, Any]:
        """Purchase the label for a rate."""
        return await self._post(
            "/transactions/",
            {"rate": rate_id, "label_file_type": "PDF_4x6", "async": False},
        )


shippo_client = ShippoClient()
