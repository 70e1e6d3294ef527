"""
Inbound webhooks: Stripe payments, Clerk users and Shippo tracking.

Handlers return their status code instead of raising so the retry
bookkeeping written for a failed Stripe event is still committed.
"""
import hmac
from typing import Annotated, Any, Optional

from fastapi import APIRouter, Depends, Header, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.config import settings
from storefront.core.database import get_db_session
from storefront.core.errors import AppError, ErrorCode, validation_error
from storefront.core.logging import get_logger
from storefront.services.clerk_webhook_service import ClerkWebhookService
from storefront.services.fulfillment_service import FulfillmentService
from storefront.services.stripe_webhook_service import StripeWebhookService

logger = get_logger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])

Session = Annotated[AsyncSession, Depends(get_db_session)]


@router.post("/stripe")
async def stripe_webhook(
    request: Request,
    session: Session,
    stripe_signature: Optional[str] = Header(None, alias="stripe-signature"),
) -> JSONResponse:
    body = await request.body()
    status_code, content = await StripeWebhookService(session).process_webhook(body, stripe_signature)
    return JSONResponse(status_code=status_code, content=content)


@router.post("/clerk")
async def clerk_webhook(request: Request, session: Session) -> JSONResponse:
    body = await request.body()
    headers = {
        name: request.headers.get(name)
        for name in ("svix-id", "svix-timestamp", "svix-signature")
    }
    status_code, content = await ClerkWebhookService(session).process_webhook(body, headers)
    return JSONResponse(status_code=status_code, content=content)


@router.post("/shippo")
async def shippo_webhook(
    request: Request,
    session: Session,
    token: Optional[str] = None,
) -> dict[str, Any]:
    """Carrier tracking updates; ``?token=`` must match the configured secret."""
    if settings.shippo_webhook_secret:
        if not token or not hmac.compare_digest(token, settings.shippo_webhook_secret):
            logger.warning("Shippo webhook rejected, bad token")
            raise AppError(ErrorCode.UNAUTHORIZED, "Unauthorized", 401)

    try:
        payload = await request.json()
    except ValueError:
        raise validation_error("Invalid payload")

    return await FulfillmentService(session).handle_tracking_update(payload)
