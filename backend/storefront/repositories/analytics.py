"""
Analytics and webhook event repositories.
"""
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import delete, func, select

from storefront.models.analytics import AnalyticsEvent, WebhookEvent
from storefront.repositories.base import BaseRepository


class AnalyticsRepository(BaseRepository[AnalyticsEvent]):
    """Repository for AnalyticsEvent model operations."""

    model = AnalyticsEvent

    async def count_by_type_since(self, since: datetime) -> dict[str, int]:
        stmt = (
            select(AnalyticsEvent.event_type, func.count(AnalyticsEvent.id))
            .where(AnalyticsEvent.created_at >= since)
            .group_by(AnalyticsEvent.event_type)
        )
        result = await self.session.execute(stmt)
        return {event_type: int(count) for event_type, count in result.all()}

    async def visitors_by_source(self, since: datetime) -> list[dict[str, Any]]:
        stmt = (
            select(AnalyticsEvent.utm_source, func.count(AnalyticsEvent.id))
            .where(
                AnalyticsEvent.event_type == "page_view",
                AnalyticsEvent.created_at >= since,
            )
            .group_by(AnalyticsEvent.utm_source)
        )
        result = await self.session.execute(stmt)
        return [
            {"source": source or "direct", "visitors": int(count)}
            for source, count in result.all()
        ]

    async def delete_older_than(self, cutoff: datetime) -> int:
        result = await self.session.execute(
            delete(AnalyticsEvent).where(AnalyticsEvent.created_at < cutoff)
        )
        await self.session.flush()
        return result.rowcount or 0


class WebhookEventRepository(BaseRepository[WebhookEvent]):
    """Repository for WebhookEvent model operations."""

    model = WebhookEvent

    async def get_by_source_event(self, source: str, event_id: str) -> Optional[WebhookEvent]:
        stmt = select(WebhookEvent).where(
            WebhookEvent.source == source,
            WebhookEvent.event_id == event_id,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()
