"""
Analytics routes: public event ingestion, admin summary and the
retention cleanup called by the scheduler.
"""
import hmac
from typing import Annotated, Any, Optional

from fastapi import APIRouter, Depends, Header, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.auth import AdminUser, OptionalUser
from storefront.core.config import settings
from storefront.core.database import get_db_session
from storefront.core.errors import AppError, ErrorCode
from storefront.core.logging import get_logger
from storefront.schemas.common import AnalyticsEventRequest
from storefront.services.analytics_service import AnalyticsService

logger = get_logger(__name__)

router = APIRouter(tags=["analytics"])


async def get_analytics_service(
    session: Annotated[AsyncSession, Depends(get_db_session)],
) -> AnalyticsService:
    return AnalyticsService(session)


Analytics = Annotated[AnalyticsService, Depends(get_analytics_service)]


@router.post("/analytics/events", status_code=status.HTTP_201_CREATED)
async def track_event(
    body: AnalyticsEventRequest,
    request: Request,
    analytics: Analytics,
    user: OptionalUser,
) -> dict[str, Any]:
    """
    Record a storefront event.

    Bot traffic is acknowledged but not stored.
    """
    event = await analytics.track_event(
        body.model_dump(by_alias=False),
        clerk_id=user.clerk_id if user else None,
        user_agent=request.headers.get("user-agent"),
    )
    if event is None:
        return {"success": True, "tracked": False}
    return {"success": True, "tracked": True, "id": event.id}


@router.get("/admin/analytics")
async def analytics_summary(
    analytics: Analytics,
    admin: AdminUser,
    days: int = Query(30, ge=1, le=365),
) -> dict[str, Any]:
    return await analytics.get_summary(days)


@router.get("/internal/cleanup-analytics")
async def cleanup_analytics(
    analytics: Analytics,
    authorization: Optional[str] = Header(None),
) -> dict[str, Any]:
    if settings.cron_secret:
        expected = f"Bearer {settings.cron_secret}"
        if not authorization or not hmac.compare_digest(authorization, expected):
            raise AppError(ErrorCode.UNAUTHORIZED, "Unauthorized", 401)

    deleted = await analytics.cleanup_events(settings.analytics_retention_days)
    return {
        "success": True,
        "deletedCount": deleted,
        "message": f"Cleaned up {deleted} analytics events older than {settings.analytics_retention_days} days.",
    }
