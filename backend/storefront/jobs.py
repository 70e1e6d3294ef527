"""
ARQ worker - scheduled housekeeping jobs.

Run with ``arq storefront.jobs.WorkerSettings``.
"""
from datetime import datetime, timezone
from typing import Any

from arq import cron
from arq.connections import RedisSettings

from storefront.core.config import settings
from storefront.core.database import get_db_context
from storefront.core.logging import get_logger
from storefront.services.analytics_service import AnalyticsService
from storefront.services.cart_service import CartService

logger = get_logger(__name__)


def get_redis_settings() -> RedisSettings:
    """Get Redis connection settings from config."""
    redis_url = str(settings.redis_url) if settings.redis_url else "redis://localhost:6379"
    return RedisSettings.from_dsn(redis_url)


# ============================================
# JOB FUNCTIONS
# ============================================

async def cleanup_analytics_job(ctx: dict) -> dict[str, Any]:
    """Delete analytics events past the retention window."""
    async with get_db_context() as session:
        deleted = await AnalyticsService(session).cleanup_events(settings.analytics_retention_days)
    logger.info("Analytics cleanup job finished", deleted=deleted)
    return {"deleted": deleted}


async def expire_carts_job(ctx: dict) -> dict[str, Any]:
    """Delete anonymous carts whose expiry date has passed."""
    async with get_db_context() as session:
        deleted = await CartService(session).delete_expired_carts(datetime.now(timezone.utc))
    logger.info("Cart expiry job finished", deleted=deleted)
    return {"deleted": deleted}


# ============================================
# WORKER SETTINGS
# ============================================

class WorkerSettings:
    """ARQ worker configuration."""

    functions = [
        cleanup_analytics_job,
        expire_carts_job,
    ]

    cron_jobs = [
        cron(cleanup_analytics_job, hour={3}, minute={0}),
        cron(expire_carts_job, hour={4}, minute={0}),
    ]

    redis_settings = get_redis_settings()

    max_jobs = 10
    job_timeout = 600
    keep_result = 3600
    retry_jobs = True
    max_tries = 3
