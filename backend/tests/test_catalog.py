"""
Tests for the public catalog and admin product management.
"""
import pytest
from sqlalchemy import insert

from storefront.models import Category, CategoryTranslation, product_categories
from tests.conftest import auth_headers, make_product


@pytest.mark.asyncio
async def test_list_products_only_active(async_client, db_session, product, supplier):
    await make_product(db_session, slug="draft-kettle", sku="KET-001", supplier=supplier, status="DRAFT")

    response = await async_client.get("/api/products")

    assert response.status_code == 200
    data = response.json()
    slugs = [p["slug"] for p in data["products"]]
    assert slugs == ["cast-iron-teapot"]
    assert data["pagination"]["total"] == 1
    assert data["pagination"]["totalPages"] == 1


@pytest.mark.asyncio
async def test_list_products_search_by_translation(async_client, db_session, product, supplier):
    await make_product(
        db_session,
        slug="bamboo-whisk",
        sku="WSK-001",
        supplier=supplier,
        name_fr="Fouet en bambou",
        name_en="Bamboo whisk",
    )

    response = await async_client.get("/api/products", params={"search": "bambou", "locale": "fr"})

    assert response.status_code == 200
    assert [p["slug"] for p in response.json()["products"]] == ["bamboo-whisk"]


@pytest.mark.asyncio
async def test_list_products_featured_filter(async_client, db_session, product, supplier):
    await make_product(db_session, slug="tea-cups", sku="CUP-001", supplier=supplier, is_featured=True)

    response = await async_client.get("/api/products", params={"featured": "true"})

    assert [p["slug"] for p in response.json()["products"]] == ["tea-cups"]


@pytest.mark.asyncio
async def test_list_products_rejects_large_limit(async_client):
    response = await async_client.get("/api/products", params={"limit": 500})

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_get_product_by_slug(async_client, product):
    response = await async_client.get("/api/products/cast-iron-teapot")

    assert response.status_code == 200
    data = response.json()
    assert data["slug"] == "cast-iron-teapot"
    assert len(data["variants"]) == 1
    assert data["variants"][0]["sku"] == "TEA-001"
    assert {t["language"] for t in data["translations"]} == {"FR", "EN"}


@pytest.mark.asyncio
async def test_get_product_not_found(async_client):
    response = await async_client.get("/api/products/does-not-exist")

    assert response.status_code == 404
    body = response.json()
    assert body["success"] is False
    assert body["error"]["code"] == "NOT_FOUND"
    assert body["requestId"]


@pytest.mark.asyncio
async def test_draft_product_hidden_from_storefront(async_client, db_session, supplier):
    await make_product(db_session, slug="hidden", sku="HID-001", supplier=supplier, status="DRAFT")

    response = await async_client.get("/api/products/hidden")

    assert response.status_code == 404


class TestAdminProducts:
    """Admin product and variant management."""

    @pytest.mark.asyncio
    async def test_requires_admin(self, async_client, customer):
        response = await async_client.get("/api/admin/products", headers=auth_headers(customer.clerk_id))

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "FORBIDDEN"

    @pytest.mark.asyncio
    async def test_requires_authentication(self, async_client):
        response = await async_client.get("/api/admin/products")

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_invalid_token(self, async_client):
        response = await async_client.get(
            "/api/admin/products",
            headers={"Authorization": "Bearer not-a-jwt"},
        )

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "INVALID_TOKEN"

    @pytest.mark.asyncio
    async def test_create_product_and_variant(self, async_client, admin, supplier):
        headers = auth_headers(admin.clerk_id)
        payload = {
            "slug": "matcha-bowl",
            "status": "ACTIVE",
            "originCountry": "jp",
            "shippingOriginId": supplier.id,
            "translations": [
                {"language": "FR", "name": "Bol à matcha"},
                {"language": "EN", "name": "Matcha bowl"},
            ],
        }
        response = await async_client.post("/api/admin/products", json=payload, headers=headers)

        assert response.status_code == 201
        created = response.json()
        assert created["slug"] == "matcha-bowl"
        assert created["originCountry"] == "JP"

        variant = {
            "sku": "BOWL-001",
            "prices": [{"price": "29.50", "currency": "cad"}],
            "stock": 4,
        }
        response = await async_client.post(
            f"/api/admin/products/{created['id']}/variants",
            json=variant,
            headers=headers,
        )

        assert response.status_code == 201
        data = response.json()
        assert data["sku"] == "BOWL-001"
        assert data["pricing"][0]["currency"] == "CAD"
        assert data["inventory"]["stock"] == 4

    @pytest.mark.asyncio
    async def test_duplicate_slug_conflicts(self, async_client, admin, product):
        payload = {
            "slug": "cast-iron-teapot",
            "translations": [{"language": "EN", "name": "Another teapot"}],
        }
        response = await async_client.post(
            "/api/admin/products",
            json=payload,
            headers=auth_headers(admin.clerk_id),
        )

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "ALREADY_EXISTS"

    @pytest.mark.asyncio
    async def test_duplicate_sku_conflicts(self, async_client, admin, product):
        response = await async_client.post(
            f"/api/admin/products/{product.id}/variants",
            json={"sku": "TEA-001", "prices": [{"price": "10", "currency": "CAD"}]},
            headers=auth_headers(admin.clerk_id),
        )

        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_update_product_status(self, async_client, admin, product):
        response = await async_client.patch(
            f"/api/admin/products/{product.id}",
            json={"status": "INACTIVE", "isFeatured": True},
            headers=auth_headers(admin.clerk_id),
        )

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "INACTIVE"
        assert data["isFeatured"] is True

    @pytest.mark.asyncio
    async def test_update_variant_price_keeps_history(self, async_client, admin, product, variant_id):
        response = await async_client.patch(
            f"/api/admin/products/{product.id}/variants/{variant_id}",
            json={"prices": [{"price": "54.99", "currency": "CAD"}], "stock": 3},
            headers=auth_headers(admin.clerk_id),
        )

        assert response.status_code == 200
        data = response.json()
        cad = [p for p in data["pricing"] if p["currency"] == "CAD"]
        assert len(cad) == 2
        assert [p["price"] for p in cad if p["isActive"]] == ["54.99"]
        assert data["inventory"]["stock"] == 3

    @pytest.mark.asyncio
    async def test_delete_variant_hides_it(self, async_client, admin, product, variant_id):
        headers = auth_headers(admin.clerk_id)
        response = await async_client.delete(
            f"/api/admin/products/{product.id}/variants/{variant_id}",
            headers=headers,
        )
        assert response.status_code == 204

        response = await async_client.get(f"/api/admin/products/{product.id}/variants", headers=headers)
        assert response.json() == []

    @pytest.mark.asyncio
    async def test_reorder_products(self, async_client, admin, db_session, product, supplier):
        other = await make_product(db_session, slug="tea-tray", sku="TRAY-001", supplier=supplier)
        headers = auth_headers(admin.clerk_id)

        response = await async_client.post(
            "/api/admin/products/reorder",
            json={"items": [{"id": other.id, "sortOrder": 0}, {"id": product.id, "sortOrder": 1}]},
            headers=headers,
        )
        assert response.status_code == 204

        response = await async_client.get("/api/admin/products", headers=headers)
        assert [p["slug"] for p in response.json()["products"]] == ["tea-tray", "cast-iron-teapot"]


async def make_category(session, slug: str, *, is_active: bool = True, sort_order: int = 0) -> Category:
    category = Category(
        slug=slug,
        is_active=is_active,
        sort_order=sort_order,
        translations=[
            CategoryTranslation(language="FR", name="Théières", description="Fonte et céramique"),
            CategoryTranslation(language="EN", name="Teapots", description="Cast iron and ceramic"),
        ],
    )
    session.add(category)
    await session.commit()
    return category


class TestCategories:
    """Public category listing."""

    @pytest.mark.asyncio
    async def test_list_active_categories(self, async_client, db_session):
        await make_category(db_session, "teapots")
        await make_category(db_session, "archived", is_active=False)

        response = await async_client.get("/api/categories", params={"locale": "en"})

        assert response.status_code == 200
        data = response.json()
        assert [c["slug"] for c in data] == ["teapots"]
        assert data[0]["name"] == "Teapots"

    @pytest.mark.asyncio
    async def test_category_with_products(self, async_client, db_session, product):
        category = await make_category(db_session, "teapots")
        await db_session.execute(
            insert(product_categories).values(product_id=product.id, category_id=category.id)
        )
        await db_session.commit()

        response = await async_client.get("/api/categories/teapots", params={"locale": "fr"})

        assert response.status_code == 200
        data = response.json()
        assert data["name"] == "Théières"
        assert [p["slug"] for p in data["products"]] == ["cast-iron-teapot"]

    @pytest.mark.asyncio
    async def test_inactive_category_not_found(self, async_client, db_session):
        await make_category(db_session, "archived", is_active=False)

        response = await async_client.get("/api/categories/archived")

        assert response.status_code == 404
