"""
Contact form.
"""
from fastapi import APIRouter

from storefront.core.errors import AppError, ErrorCode
from storefront.core.logging import get_logger
from storefront.schemas.common import ContactRequest
from storefront.services.notification_service import notification_service

logger = get_logger(__name__)

router = APIRouter(tags=["contact"])


@router.post("/contact")
async def send_contact_message(body: ContactRequest) -> dict:
    sent = await notification_service.send_contact_message(
        body.name,
        body.email,
        body.subject,
        body.message,
    )
    if not sent:
        raise AppError(ErrorCode.EXTERNAL_SERVICE_ERROR, "Message could not be delivered", 502)
    logger.info("Contact message forwarded", sender=body.email)
    return {"success": True}
