"""
Tests for the shared repository operations.
"""
import pytest
from sqlalchemy import select

from storefront.models.supplier import Supplier
from storefront.repositories.supplier import SupplierRepository


@pytest.mark.asyncio
async def test_create_and_get_by_id(db_session):
    repo = SupplierRepository(db_session)

    location = await repo.create({"name": "Montreal Warehouse", "address": {"city": "Montreal"}})

    assert location.id
    assert location.is_active is True
    fetched = await repo.get_by_id(location.id)
    assert fetched is location


@pytest.mark.asyncio
async def test_delete(db_session):
    repo = SupplierRepository(db_session)
    location = await repo.create({"name": "Old depot"})

    await repo.delete(location)

    assert await repo.get_by_id(location.id) is None


@pytest.mark.asyncio
async def test_paginate_returns_page_and_total(db_session):
    repo = SupplierRepository(db_session)
    for name in ("A depot", "B depot", "C depot"):
        await repo.create({"name": name})

    items, total = await repo.paginate(select(Supplier), skip=1, limit=1, order_by=Supplier.name)

    assert total == 3
    assert [s.name for s in items] == ["B depot"]


def test_only_shared_operations_are_exposed():
    assert not hasattr(SupplierRepository, "get_all")
    assert not hasattr(SupplierRepository, "update")
    assert not hasattr(SupplierRepository, "count")
