"""
User routes: the current profile and admin user management.
"""
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.auth import AdminUser, CurrentUser
from storefront.core.database import get_db_session
from storefront.models.user import UserRole
from storefront.schemas.common import (
    UserDetailResponse,
    UserListResponse,
    UserResponse,
    UserRoleUpdate,
)
from storefront.services.user_service import UserService

router = APIRouter(tags=["users"])


async def get_user_service(
    session: Annotated[AsyncSession, Depends(get_db_session)],
) -> UserService:
    return UserService(session)


Users = Annotated[UserService, Depends(get_user_service)]


@router.get("/users/me", response_model=UserResponse)
async def get_me(user: CurrentUser) -> UserResponse:
    return UserResponse.model_validate(user)


@router.get("/admin/users", response_model=UserListResponse)
async def list_users(
    users: Users,
    admin: AdminUser,
    role: Optional[UserRole] = None,
    search: Optional[str] = Query(None, max_length=200),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
) -> UserListResponse:
    results, total = await users.list_users(
        role=role.value if role else None,
        search=search,
        page=page,
        limit=limit,
    )
    return UserListResponse(
        users=[UserResponse.model_validate(u) for u in results],
        total=total,
        page=page,
        limit=limit,
        stats=await users.customer_stats(),
    )


@router.get("/admin/users/{user_id}", response_model=UserDetailResponse)
async def get_user(user_id: str, users: Users, admin: AdminUser) -> UserDetailResponse:
    """User profile with order count and lifetime spend."""
    data = await users.get_user(user_id)
    detail = UserDetailResponse.model_validate(data["user"])
    return detail.model_copy(update={"order_count": data["order_count"], "total_spent": data["total_spent"]})


@router.patch("/admin/users/{user_id}/role", response_model=UserResponse)
async def update_role(
    user_id: str,
    body: UserRoleUpdate,
    users: Users,
    admin: AdminUser,
) -> UserResponse:
    return UserResponse.model_validate(await users.update_user_role(user_id, body.role.value))
