"""
Tests for event ingestion, bot filtering, the funnel summary and retention.
"""
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import patch

import pytest
from sqlalchemy import func, select

from storefront.core.config import settings
from storefront.models import AnalyticsEvent, Order
from storefront.services.analytics_service import (
    AnalyticsService,
    detect_bot,
    extract_referrer_domain,
    parse_user_agent,
)
from tests.conftest import auth_headers

CHROME_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)
IPHONE_UA = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_4 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.4 Mobile/15E148 Safari/604.1"
)


class TestUserAgent:
    def test_desktop_browser(self):
        data = parse_user_agent(CHROME_UA)

        assert data["device_type"] == "desktop"
        assert data["browser"] == "Chrome"
        assert not detect_bot(CHROME_UA, data)

    def test_mobile_browser(self):
        assert parse_user_agent(IPHONE_UA)["device_type"] == "mobile"

    @pytest.mark.parametrize(
        "user_agent",
        [
            "curl/8.4.0",
            "python-requests/2.31.0",
            "Mozilla/5.0 (compatible; Googlebot/2.1; +http://www.google.com/bot.html)",
        ],
    )
    def test_bots(self, user_agent):
        assert detect_bot(user_agent, parse_user_agent(user_agent))

    @pytest.mark.parametrize("user_agent", [None, "", "short"])
    def test_missing_or_short_agent_is_not_a_bot(self, user_agent):
        assert not detect_bot(user_agent, parse_user_agent(user_agent or ""))

    def test_referrer_domain(self):
        assert extract_referrer_domain("https://www.instagram.com/p/abc") == "instagram.com"
        assert extract_referrer_domain(None) is None


class TestEventIngestion:
    @pytest.mark.asyncio
    async def test_browser_event_is_stored(self, async_client, session_factory, customer):
        response = await async_client.post(
            "/api/analytics/events",
            json={
                "eventType": "page_view",
                "path": "/fr/products/cast-iron-teapot",
                "anonymousId": "anon-1",
                "referrer": "https://www.google.com/search?q=teapot",
                "utmSource": "google",
            },
            headers={"User-Agent": CHROME_UA, **auth_headers(customer.clerk_id)},
        )

        assert response.status_code == 201
        data = response.json()
        assert data["tracked"] is True

        async with session_factory() as session:
            event = (await session.execute(select(AnalyticsEvent))).scalar_one()
        assert event.id == data["id"]
        assert event.user_id == customer.id
        assert event.utm_source == "google"
        assert event.event_metadata["referrer_domain"] == "google.com"
        assert event.event_metadata["device_type"] == "desktop"

    @pytest.mark.asyncio
    async def test_bot_event_is_acknowledged_not_stored(self, async_client, session_factory):
        response = await async_client.post(
            "/api/analytics/events",
            json={"eventType": "page_view"},
            headers={"User-Agent": "curl/8.4.0"},
        )

        assert response.status_code == 201
        assert response.json() == {"success": True, "tracked": False}
        async with session_factory() as session:
            assert await session.scalar(select(func.count()).select_from(AnalyticsEvent)) == 0

    @pytest.mark.asyncio
    async def test_event_without_user_agent_is_stored(self, db_session):
        event = await AnalyticsService(db_session).track_event({"event_type": "page_view"}, user_agent=None)

        assert event is not None
        assert event.event_type == "page_view"
        assert await db_session.scalar(select(func.count()).select_from(AnalyticsEvent)) == 1

    @pytest.mark.asyncio
    async def test_event_type_required(self, async_client, session_factory):
        response = await async_client.post(
            "/api/analytics/events",
            json={"eventType": "  "},
            headers={"User-Agent": CHROME_UA},
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"


class TestSummary:
    @pytest.mark.asyncio
    async def test_funnel(self, async_client, db_session, admin, paid_order):
        for anonymous_id, event_type in [
            ("a", "page_view"),
            ("a", "page_view"),
            (None, "page_view"),
            ("a", "view_item"),
            ("a", "add_to_cart"),
            ("a", "begin_checkout"),
        ]:
            db_session.add(AnalyticsEvent(event_type=event_type, anonymous_id=anonymous_id))
        await db_session.commit()

        response = await async_client.get("/api/admin/analytics", headers=auth_headers(admin.clerk_id))

        assert response.status_code == 200
        data = response.json()
        assert data["funnel"] == {
            "sessions": 3,
            "pageViews": 3,
            "viewItem": 1,
            "addToCart": 1,
            "beginCheckout": 1,
            "purchases": 1,
        }
        assert data["sourceStats"] == [{"source": "direct", "orders": 1, "revenue": 114.98}]
        assert data["sourceVisitors"] == [{"source": "direct", "visitors": 3}]

    @pytest.mark.asyncio
    async def test_source_stats_include_cancelled_orders(self, async_client, db_session, admin, paid_order):
        db_session.add(
            Order(
                order_number="ORD-2026-000002",
                status="CANCELLED",
                currency="CAD",
                subtotal_amount=Decimal("40.00"),
                total_amount=Decimal("40.00"),
                utm_source="instagram",
            )
        )
        await db_session.commit()

        response = await async_client.get("/api/admin/analytics", headers=auth_headers(admin.clerk_id))

        data = response.json()
        stats = sorted(data["sourceStats"], key=lambda s: s["source"])
        assert stats == [
            {"source": "direct", "orders": 1, "revenue": 114.98},
            {"source": "instagram", "orders": 1, "revenue": 40.0},
        ]
        assert data["funnel"]["purchases"] == 1

    @pytest.mark.asyncio
    async def test_summary_requires_admin(self, async_client, customer):
        response = await async_client.get("/api/admin/analytics", headers=auth_headers(customer.clerk_id))

        assert response.status_code == 403


class TestCleanup:
    @pytest.mark.asyncio
    async def test_old_events_removed(self, async_client, session_factory, db_session):
        old = datetime.now(timezone.utc) - timedelta(days=settings.analytics_retention_days + 1)
        db_session.add(AnalyticsEvent(event_type="page_view", created_at=old))
        db_session.add(AnalyticsEvent(event_type="page_view"))
        await db_session.commit()

        with patch.object(settings, "cron_secret", None):
            response = await async_client.get("/api/internal/cleanup-analytics")

        assert response.status_code == 200
        assert response.json()["deletedCount"] == 1
        async with session_factory() as session:
            assert await session.scalar(select(func.count()).select_from(AnalyticsEvent)) == 1

    @pytest.mark.asyncio
    async def test_cron_secret_enforced(self, async_client, session_factory):
        with patch.object(settings, "cron_secret", "cron-token"):
            rejected = await async_client.get(
                "/api/internal/cleanup-analytics",
                headers={"Authorization": "Bearer nope"},
            )
            accepted = await async_client.get(
                "/api/internal/cleanup-analytics",
                headers={"Authorization": "Bearer cron-token"},
            )

        assert rejected.status_code == 401
        assert accepted.status_code == 200
