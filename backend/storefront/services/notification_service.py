"""
Notification Service - transactional emails and operational alerts.

Supports:
- Email via Resend API
- Slack incoming-webhook alerts for webhook failures

Sending never raises: failures are logged and reported as False.
"""
from datetime import datetime, timezone
from typing import Any, Optional

import httpx

from storefront.core.config import settings
from storefront.core.logging import get_logger
from storefront.models.order import Order, OrderStatus
from storefront.services import email_templates

logger = get_logger(__name__)


def resolve_recipient(order: Order) -> Optional[str]:
    """Customer email: account email, then order email, then payment receipt email."""
    if order.user is not None and order.user.email:
        return order.user.email
    if order.order_email:
        return order.order_email
    for payment in order.payments:
        data = payment.transaction_data or {}
        email = data.get("receipt_email") or data.get("email")
        if email:
            return email
    return None


class NotificationService:
    """
    Multi-channel notification service.

    Channels:
    - Email: Resend API for transactional emails
    - Slack: incoming webhook for ops alerts
    """

    RESEND_API_URL = "https://api.resend.com/emails"

    async def send_email(
        self,
        to: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None,
    ) -> bool:
        """
        Send email via Resend API.

        Returns:
            True if sent successfully
        """
        if not settings.resend_api_key:
            logger.warning("Resend API key not configured, skipping email", subject=subject)
            return False

        try:
            async with httpx.AsyncClient() as client:
                response = await client.post(
                    self.RESEND_API_URL,
                    headers={
                        "Authorization": f"Bearer {settings.resend_api_key}",
                        "Content-Type": "application/json",
                    },
                    json={
                        "from": settings.from_email,
                        "to": [to],
                        "subject": subject,
                        "html": html_content,
                        "text": text_content or subject,
                    },
                    timeout=10.0,
                )

                if response.status_code == 200:
                    logger.info("Email sent", to=to, subject=subject)
                    return True

                logger.error(
                    "Email send failed",
                    status=response.status_code,
                    response=response.text,
                )
                return False

        except httpx.HTTPError as e:
            logger.error("Email send error", error=str(e))
            return False

    async def send_slack_alert(self, message: str) -> bool:
        if not settings.slack_webhook_url:
            logger.warning("SLACK_WEBHOOK_URL not configured, skipping Slack alert")
            return False

        try:
            async with httpx.AsyncClient() as client:
                response = await client.post(
                    settings.slack_webhook_url,
                    json={"text": message},
                    timeout=10.0,
                )
            if response.status_code >= 300:
                logger.error("Failed to send Slack alert", status=response.status_code)
                return False
            return True
        except httpx.HTTPError as e:
            logger.error("Error sending Slack alert", error=str(e))
            return False

    # ------------------------------------------------------------------
    # Order emails
    # ------------------------------------------------------------------

    async def send_order_confirmation(self, order: Order, recipient: Optional[str] = None) -> bool:
        to = recipient or resolve_recipient(order)
        if not to:
            logger.warning("No recipient for order confirmation", order_id=order.id)
            return False
        subject, html, text = email_templates.order_confirmation(order)
        return await self.send_email(to, subject, html, text)

    async def send_admin_new_order(self, order: Order) -> bool:
        if not settings.admin_email:
            return False
        subject, html, text = email_templates.admin_new_order(order)
        return await self.send_email(settings.admin_email, subject, html, text)

    async def send_status_change_email(self, order: Order, new_status: str) -> bool:
        """Email the customer for statuses they care about."""
        to = resolve_recipient(order)

        if new_status == OrderStatus.SHIPPED.value:
            shipment = next((s for s in order.shipments if s.tracking_code), None)
            if not to or shipment is None:
                logger.warning(
                    "Skipping shipped email: Missing email or shipment info",
                    order_id=order.id,
                    has_email=bool(to),
                    has_shipment=shipment is not None,
                )
                return False
            subject, html, text = email_templates.order_shipped(
                order,
                shipment.tracking_code,
                shipment.carrier,
            )
        elif new_status == OrderStatus.DELIVERED.value:
            if not to:
                return False
            subject, html, text = email_templates.order_delivered(order)
        elif new_status in (OrderStatus.REFUNDED.value, OrderStatus.CANCELLED.value):
            if not to:
                return False
            subject, html, text = email_templates.order_refunded(
                order,
                cancelled=new_status == OrderStatus.CANCELLED.value,
            )
        else:
            return False

        return await self.send_email(to, subject, html, text)

    async def send_return_label(
        self,
        order: Order,
        label_url: str,
        tracking_code: Optional[str],
    ) -> bool:
        to = resolve_recipient(order)
        if not to:
            return False
        subject, html, text = email_templates.return_label(order, label_url, tracking_code)
        return await self.send_email(to, subject, html, text)

    async def send_refund_request_alert(self, order: Order, reason: str, request_type: str) -> bool:
        if not settings.admin_email:
            logger.warning("ADMIN_EMAIL not configured, skipping refund request alert")
            return False
        subject, html, text = email_templates.admin_refund_request(order, reason, request_type)
        return await self.send_email(settings.admin_email, subject, html, text)

    async def send_contact_message(
        self,
        name: str,
        email: str,
        subject: Optional[str],
        message: str,
    ) -> bool:
        if not settings.admin_email:
            logger.warning("ADMIN_EMAIL not configured, contact message dropped", sender=email)
            return False
        title, html, text = email_templates.admin_contact_message(name, email, subject, message)
        return await self.send_email(settings.admin_email, title, html, text)

    # ------------------------------------------------------------------
    # Webhook alerts
    # ------------------------------------------------------------------

    async def alert_webhook_failure(self, alert: dict[str, Any]) -> None:
        logger.error("Webhook failed after max retries", **alert)
        message = (
            f"WEBHOOK ALERT: {str(alert.get('source', '')).upper()} Event Failed\n\n"
            f"Event ID: {alert.get('event_id')}\n"
            f"Event Type: {alert.get('event_type')}\n"
            f"Retry Count: {alert.get('retry_count')}/{alert.get('max_retries')}\n"
            f"Error: {alert.get('error')}\n"
            f"Time: {datetime.now(timezone.utc).isoformat()}\n\n"
            f"Action Required: Check webhook_events table for event {alert.get('webhook_id')}"
        )
        await self.send_slack_alert(message)

    async def alert_invalid_signature(self, source: str, signature: str, error: str) -> None:
        logger.error("Invalid webhook signature detected", source=source, error=error)
        message = (
            "SECURITY ALERT: Invalid Webhook Signature\n\n"
            f"Source: {source.upper()}\n"
            f"Signature: {signature[:20]}...\n"
            f"Error: {error}\n"
            f"Time: {datetime.now(timezone.utc).isoformat()}\n\n"
            "Action: This could be a malicious attempt. Review logs."
        )
        await self.send_slack_alert(message)


# Singleton instance
notification_service = NotificationService()
