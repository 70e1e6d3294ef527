"""
User service - accounts mirrored from the auth provider and admin management.
"""
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.errors import not_found, validation_error
from storefront.core.logging import get_logger
from storefront.models.user import User, UserRole
from storefront.repositories.user import UserRepository

logger = get_logger(__name__)

NEW_CUSTOMER_WINDOW_DAYS = 30


def resolve_role(email: str, public_metadata: Optional[dict[str, Any]] = None) -> str:
    """
    Role for a provider account.

    An explicit ``role`` in the provider's public metadata wins; otherwise
    addresses containing "admin" are administrators.
    """
    metadata_role = (public_metadata or {}).get("role")
    if isinstance(metadata_role, str) and metadata_role.upper() in UserRole.__members__:
        return UserRole[metadata_role.upper()].value
    if "admin" in email.lower():
        return UserRole.ADMIN.value
    return UserRole.CLIENT.value


class UserService:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.users = UserRepository(session)

    async def get_by_clerk_id(self, clerk_id: str) -> Optional[User]:
        return await self.users.get_by_clerk_id(clerk_id)

    async def create_user_from_provider(self, clerk_id: str, data: dict[str, Any]) -> User:
        existing = await self.users.get_by_clerk_id(clerk_id)
        if existing is not None:
            logger.warning("User already exists, updating instead", clerk_id=clerk_id)
            user, _ = await self.users.upsert_by_clerk_id(clerk_id, data)
            return user

        user = await self.users.create({"clerk_id": clerk_id, **data})
        logger.info("User created", user_id=user.id, role=user.role)
        return user

    async def upsert_user_from_provider(self, clerk_id: str, data: dict[str, Any]) -> User:
        user, created = await self.users.upsert_by_clerk_id(clerk_id, data)
        logger.info("User upserted", user_id=user.id, created=created)
        return user

    async def delete_user_by_provider_id(self, clerk_id: str) -> int:
        deleted = await self.users.delete_by_clerk_id(clerk_id)
        if deleted == 0:
            logger.warning("No user to delete", clerk_id=clerk_id)
        else:
            logger.info("User deleted", clerk_id=clerk_id)
        return deleted

    # ------------------------------------------------------------------
    # Admin
    # ------------------------------------------------------------------

    async def list_users(
        self,
        *,
        role: Optional[str] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[User], int]:
        page = max(page, 1)
        return await self.users.list_users(
            role=role,
            search=search,
            skip=(page - 1) * limit,
            limit=limit,
        )

    async def get_user(self, user_id: str) -> dict[str, Any]:
        user = await self.users.get_by_id(user_id)
        if user is None:
            raise not_found("User not found")
        order_count, total_spent = await self.users.get_order_stats(user.id)
        return {"user": user, "order_count": order_count, "total_spent": total_spent}

    async def update_user_role(self, user_id: str, role: str) -> User:
        if role not in UserRole.__members__:
            raise validation_error(f"Invalid role: {role}")
        user = await self.users.get_by_id(user_id)
        if user is None:
            raise not_found("User not found")

        user.role = UserRole[role].value
        await self.session.flush()
        await self.session.refresh(user)
        logger.info("User role updated", user_id=user_id, role=user.role)
        return user

    async def customer_stats(self) -> dict[str, int]:
        since = datetime.now(timezone.utc) - timedelta(days=NEW_CUSTOMER_WINDOW_DAYS)
        return {
            "total_customers": await self.users.count_customers(),
            "new_customers": await self.users.count_customers(since),
            "customers_with_orders": await self.users.count_customers_with_orders(),
        }
