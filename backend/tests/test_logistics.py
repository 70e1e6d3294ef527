"""
Tests for admin management of shipping origin locations.
"""
import pytest
from sqlalchemy import select

from storefront.models import Product
from tests.conftest import auth_headers, make_product

LOCATION = {
    "name": "Lyon Dropshipper",
    "type": "DROPSHIPPER",
    "incoterm": "DDP",
    "address": {
        "street1": "12 Rue de la République",
        "city": "Lyon",
        "zip": "69002",
        "country": "fr",
        "email": "ops@dropship.example.com",
    },
}


@pytest.mark.asyncio
async def test_create_and_list_locations(async_client, admin, supplier):
    headers = auth_headers(admin.clerk_id)

    response = await async_client.post("/api/admin/logistics/locations", json=LOCATION, headers=headers)

    assert response.status_code == 201
    created = response.json()
    assert created["type"] == "DROPSHIPPER"
    assert created["address"]["country"] == "FR"
    assert created["isActive"] is True
    assert created["defaultCurrency"] == "CAD"

    response = await async_client.get("/api/admin/logistics/locations", headers=headers)
    assert {loc["name"] for loc in response.json()} == {"Lyon Dropshipper", "Montreal Warehouse"}


@pytest.mark.asyncio
async def test_invalid_address_rejected(async_client, admin):
    payload = {**LOCATION, "address": {**LOCATION["address"], "country": "FRA"}}

    response = await async_client.post(
        "/api/admin/logistics/locations",
        json=payload,
        headers=auth_headers(admin.clerk_id),
    )

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_update_location(async_client, admin, supplier):
    response = await async_client.patch(
        f"/api/admin/logistics/locations/{supplier.id}",
        json={"incoterm": "DDP", "name": "Montreal Main"},
        headers=auth_headers(admin.clerk_id),
    )

    assert response.status_code == 200
    data = response.json()
    assert data["incoterm"] == "DDP"
    assert data["name"] == "Montreal Main"
    assert data["address"]["city"] == "Montreal"


@pytest.mark.asyncio
async def test_unknown_location(async_client, admin):
    response = await async_client.get(
        "/api/admin/logistics/locations/missing",
        headers=auth_headers(admin.clerk_id),
    )

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_deactivate_drafts_products(async_client, session_factory, db_session, admin, supplier, product):
    await make_product(db_session, slug="old-kettle", sku="KET-OLD", supplier=supplier, status="DRAFT")
    headers = auth_headers(admin.clerk_id)

    response = await async_client.delete(f"/api/admin/logistics/locations/{supplier.id}", headers=headers)

    assert response.status_code == 200
    assert response.json() == {"success": True, "affectedProductsCount": 1}

    async with session_factory() as session:
        status = await session.scalar(select(Product.status).where(Product.id == product.id))
    assert status == "DRAFT"

    response = await async_client.get("/api/admin/logistics/locations", headers=headers)
    assert response.json() == []


@pytest.mark.asyncio
async def test_locations_require_admin(async_client, customer):
    response = await async_client.get(
        "/api/admin/logistics/locations",
        headers=auth_headers(customer.clerk_id),
    )

    assert response.status_code == 403
