"""
Clerk webhook service - keeps the users table in sync with the auth provider.
"""
import json
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.config import settings
from storefront.core.errors import validation_error
from storefront.core.logging import get_logger
from storefront.core.security import verify_svix_signature
from storefront.services.notification_service import NotificationService, notification_service
from storefront.services.user_service import UserService, resolve_role

logger = get_logger(__name__)


def primary_email(data: dict[str, Any]) -> str:
    primary_id = data.get("primary_email_address_id")
    for entry in data.get("email_addresses") or []:
        if entry.get("id") == primary_id and entry.get("email_address"):
            return entry["email_address"]
    raise validation_error("Primary email not found")


def user_fields(data: dict[str, Any]) -> dict[str, Any]:
    email = primary_email(data)
    return {
        "email": email,
        "first_name": data.get("first_name"),
        "last_name": data.get("last_name"),
        "image_url": data.get("image_url"),
        "role": resolve_role(email, data.get("public_metadata")),
    }


class ClerkWebhookService:
    def __init__(
        self,
        session: AsyncSession,
        notifications: Optional[NotificationService] = None,
    ) -> None:
        self.users = UserService(session)
        self.notifications = notifications or notification_service

    async def process_webhook(
        self,
        body: bytes,
        headers: dict[str, Optional[str]],
    ) -> tuple[int, dict[str, Any]]:
        svix_id = headers.get("svix-id")
        svix_timestamp = headers.get("svix-timestamp")
        svix_signature = headers.get("svix-signature")

        if not settings.clerk_webhook_secret:
            logger.error("CLERK_WEBHOOK_SECRET not configured")
            return 500, {"error": "Webhook not configured"}

        if not svix_id or not svix_timestamp or not svix_signature:
            return 400, {"error": "Missing svix headers"}

        if not verify_svix_signature(body, svix_id, svix_timestamp, svix_signature, settings.clerk_webhook_secret):
            await self.notifications.alert_invalid_signature("clerk", svix_signature, "Signature verification failed")
            return 400, {"error": "Invalid signature"}

        event = self._parse(body)
        await self.handle_event(event.get("type"), event.get("data") or {})
        return 200, {"received": True}

    @staticmethod
    def _parse(body: bytes) -> dict[str, Any]:
        try:
            return json.loads(body)
        except ValueError:
            raise validation_error("Invalid payload")

    async def handle_event(self, event_type: Optional[str], data: dict[str, Any]) -> None:
        clerk_id = data.get("id")
        if not clerk_id:
            raise validation_error("User ID is required")

        logger.info("Processing Clerk webhook", event_type=event_type, clerk_id=clerk_id)

        if event_type == "user.created":
            await self.users.create_user_from_provider(clerk_id, user_fields(data))
        elif event_type == "user.updated":
            await self.users.upsert_user_from_provider(clerk_id, user_fields(data))
        elif event_type == "user.deleted":
            await self.users.delete_user_by_provider_id(clerk_id)
        else:
            logger.info("Unhandled Clerk event type", event_type=event_type)
