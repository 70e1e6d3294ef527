"""
Tests for the current user profile and admin user management.
"""
import pytest

from storefront.services.user_service import resolve_role
from tests.conftest import auth_headers


@pytest.mark.parametrize(
    "email,metadata,expected",
    [
        ("jane@example.com", None, "CLIENT"),
        ("admin@example.com", None, "ADMIN"),
        ("ops.admin@example.com", {"role": "client"}, "CLIENT"),
        ("jane@example.com", {"role": "ADMIN"}, "ADMIN"),
        ("jane@example.com", {"role": "superuser"}, "CLIENT"),
    ],
)
def test_resolve_role(email, metadata, expected):
    assert resolve_role(email, metadata) == expected


@pytest.mark.asyncio
async def test_me(async_client, customer):
    response = await async_client.get("/api/users/me", headers=auth_headers(customer.clerk_id))

    assert response.status_code == 200
    data = response.json()
    assert data["clerkId"] == "user_customer"
    assert data["email"] == "jane@example.com"
    assert data["role"] == "CLIENT"


@pytest.mark.asyncio
async def test_me_unknown_user(async_client, session_factory):
    response = await async_client.get("/api/users/me", headers=auth_headers("user_ghost"))

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_admin_lists_users_with_stats(async_client, admin, customer, paid_order):
    response = await async_client.get(
        "/api/admin/users",
        params={"role": "CLIENT"},
        headers=auth_headers(admin.clerk_id),
    )

    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 1
    assert data["users"][0]["email"] == "jane@example.com"
    assert data["stats"] == {"total_customers": 1, "new_customers": 1, "customers_with_orders": 1}


@pytest.mark.asyncio
async def test_admin_searches_users(async_client, admin, customer):
    response = await async_client.get(
        "/api/admin/users",
        params={"search": "JANE"},
        headers=auth_headers(admin.clerk_id),
    )

    assert [u["clerkId"] for u in response.json()["users"]] == ["user_customer"]


@pytest.mark.asyncio
async def test_user_detail_includes_spend(async_client, admin, customer, paid_order):
    response = await async_client.get(
        f"/api/admin/users/{customer.id}",
        headers=auth_headers(admin.clerk_id),
    )

    assert response.status_code == 200
    data = response.json()
    assert data["orderCount"] == 1
    assert data["totalSpent"] == pytest.approx(114.98)


@pytest.mark.asyncio
async def test_update_role(async_client, admin, customer):
    response = await async_client.patch(
        f"/api/admin/users/{customer.id}/role",
        json={"role": "ADMIN"},
        headers=auth_headers(admin.clerk_id),
    )

    assert response.status_code == 200
    assert response.json()["role"] == "ADMIN"


@pytest.mark.asyncio
async def test_update_role_rejects_unknown(async_client, admin, customer):
    response = await async_client.patch(
        f"/api/admin/users/{customer.id}/role",
        json={"role": "OWNER"},
        headers=auth_headers(admin.clerk_id),
    )

    assert response.status_code == 422
