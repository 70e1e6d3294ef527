"""
Analytics service - storefront event tracking, funnel summary and retention.
"""
import re
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
from urllib.parse import urlparse

from sqlalchemy.ext.asyncio import AsyncSession
from user_agents import parse as parse_ua

from storefront.core.config import settings
from storefront.core.errors import validation_error
from storefront.core.logging import get_logger
from storefront.models.analytics import AnalyticsEvent
from storefront.repositories.analytics import AnalyticsRepository
from storefront.repositories.order import OrderRepository
from storefront.repositories.user import UserRepository

logger = get_logger(__name__)

BOT_PATTERNS = [
    r"bot", r"crawler", r"spider", r"scraper", r"curl", r"wget",
    r"python-requests", r"axios", r"go-http-client",
    r"facebookexternalhit", r"headlesschrome", r"lighthouse",
]


def parse_user_agent(user_agent: str) -> Dict[str, Any]:
    """
    Parse User-Agent string to extract device, browser, and OS information.

    Returns:
        Dictionary with device_type, browser, os and is_bot
    """
    try:
        ua = parse_ua(user_agent)

        if ua.is_mobile:
            device_type = "mobile"
        elif ua.is_tablet:
            device_type = "tablet"
        elif ua.is_pc:
            device_type = "desktop"
        else:
            device_type = "unknown"

        return {
            "device_type": device_type,
            "browser": ua.browser.family,
            "os": ua.os.family,
            "is_bot": ua.is_bot,
        }
    except Exception as e:
        logger.error("User agent parse failed", error=str(e), user_agent=user_agent)
        return {
            "device_type": "unknown",
            "browser": "Unknown",
            "os": "Unknown",
            "is_bot": False,
        }


def detect_bot(user_agent: Optional[str], ua_data: Dict[str, Any]) -> bool:
    """Parsed UA flag or a known bot signature. A missing UA is not a bot."""
    if ua_data.get("is_bot"):
        return True

    if not user_agent:
        return False

    user_agent_lower = user_agent.lower()
    return any(re.search(pattern, user_agent_lower) for pattern in BOT_PATTERNS)


def extract_referrer_domain(referrer: Optional[str]) -> Optional[str]:
    if not referrer:
        return None
    domain = urlparse(referrer).netloc
    if domain.startswith("www."):
        domain = domain[4:]
    return domain or None


class AnalyticsService:
    """First-party analytics for the storefront funnel."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.events = AnalyticsRepository(session)
        self.orders = OrderRepository(session)
        self.users = UserRepository(session)

    async def track_event(
        self,
        data: Dict[str, Any],
        clerk_id: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Optional[AnalyticsEvent]:
        """
        Store one storefront event.

        Returns None when the request comes from a bot.
        """
        event_type = (data.get("event_type") or "").strip()
        if not event_type:
            raise validation_error("eventType is required")

        ua_data = parse_user_agent(user_agent or "")
        if detect_bot(user_agent, ua_data):
            logger.debug("Bot event dropped", event_type=event_type)
            return None

        user_id = None
        if clerk_id:
            user = await self.users.get_by_clerk_id(clerk_id)
            user_id = user.id if user else None

        metadata = dict(data.get("metadata") or {})
        metadata.update(
            {
                "device_type": ua_data["device_type"],
                "browser": ua_data["browser"],
                "os": ua_data["os"],
            }
        )
        referrer_domain = extract_referrer_domain(data.get("referrer"))
        if referrer_domain:
            metadata["referrer_domain"] = referrer_domain

        event = await self.events.create(
            {
                "event_type": event_type,
                "event_name": data.get("event_name"),
                "path": data.get("path"),
                "anonymous_id": data.get("anonymous_id"),
                "user_id": user_id,
                "event_metadata": metadata,
                "utm_source": data.get("utm_source"),
                "utm_medium": data.get("utm_medium"),
                "utm_campaign": data.get("utm_campaign"),
            }
        )
        logger.debug("Analytics event tracked", event_type=event_type, event_id=event.id)
        return event

    async def get_summary(self, days: int = 30) -> Dict[str, Any]:
        since = datetime.now(timezone.utc) - timedelta(days=days)

        counts = await self.events.count_by_type_since(since)
        funnel = {
            "sessions": counts.get("page_view", 0),
            "pageViews": counts.get("page_view", 0),
            "viewItem": counts.get("view_item", 0),
            "addToCart": counts.get("add_to_cart", 0),
            "beginCheckout": counts.get("begin_checkout", 0),
            "purchases": await self.orders.count_purchases_since(since),
        }

        return {
            "days": days,
            "since": since.isoformat(),
            "funnel": funnel,
            "sourceStats": await self.orders.stats_by_source(since),
            "sourceVisitors": await self.events.visitors_by_source(since),
        }

    async def cleanup_events(self, days: Optional[int] = None) -> int:
        days = days if days is not None else settings.analytics_retention_days
        cutoff = datetime.now(timezone.utc) - timedelta(days=days)
        deleted = await self.events.delete_older_than(cutoff)
        logger.info("Analytics events cleaned up", deleted=deleted, retention_days=days)
        return deleted
