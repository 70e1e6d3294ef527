"""
Security utilities: JWT tokens and webhook signature verification.
"""
import base64
import hashlib
import hmac
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from jose import JWTError, jwt

from storefront.core.config import settings
from storefront.core.logging import get_logger

logger = get_logger(__name__)


def create_access_token(
    data: dict[str, Any],
    expires_delta: timedelta | None = None,
) -> str:
    """Create a JWT access token."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(hours=settings.jwt_expiration_hours)
    )
    to_encode.update({"exp": expire, "iat": datetime.now(timezone.utc)})
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> dict[str, Any] | None:
    """Decode and validate a JWT access token."""
    try:
        payload = jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.jwt_algorithm],
        )
        return payload
    except JWTError as e:
        logger.warning("Invalid JWT token", error=str(e))
        return None


def sha256_hex(body: bytes) -> str:
    return hashlib.sha256(body).hexdigest()


def verify_stripe_signature(
    payload: bytes,
    signature_header: str,
    secret: str,
    tolerance: Optional[int] = None,
    now: Optional[float] = None,
) -> bool:
    """
    Verify a Stripe-Signature header (``t=<ts>,v1=<hex>``).

    The signed payload is ``"{timestamp}.{body}"`` hashed with HMAC-SHA256.
    Timestamps older than ``tolerance`` seconds are rejected.
    """
    tolerance = settings.stripe_webhook_tolerance_seconds if tolerance is None else tolerance
    timestamp: Optional[str] = None
    signatures: list[str] = []
    for part in signature_header.split(","):
        key, _, value = part.strip().partition("=")
        if key == "t":
            timestamp = value
        elif key == "v1":
            signatures.append(value)

    if not timestamp or not signatures:
        return False

    try:
        ts = int(timestamp)
    except ValueError:
        return False

    current = time.time() if now is None else now
    if tolerance and abs(current - ts) > tolerance:
        logger.warning("Stripe signature timestamp outside tolerance", timestamp=ts)
        return False

    signed_payload = f"{timestamp}.".encode() + payload
    expected = hmac.new(secret.encode(), signed_payload, hashlib.sha256).hexdigest()
    return any(hmac.compare_digest(expected, sig) for sig in signatures)


def sign_stripe_payload(payload: bytes, secret: str, timestamp: Optional[int] = None) -> str:
    """Build a Stripe-Signature header value for a payload."""
    ts = int(time.time()) if timestamp is None else timestamp
    digest = hmac.new(secret.encode(), f"{ts}.".encode() + payload, hashlib.sha256).hexdigest()
    return f"t={ts},v1={digest}"


def _svix_key(secret: str) -> bytes:
    if secret.startswith("whsec_"):
        secret = secret[len("whsec_"):]
    return base64.b64decode(secret)


SVIX_TOLERANCE_SECONDS = 300


def verify_svix_signature(
    payload: bytes,
    msg_id: str,
    timestamp: str,
    signature_header: str,
    secret: str,
    tolerance: int = SVIX_TOLERANCE_SECONDS,
    now: Optional[float] = None,
) -> bool:
    """
    Verify a Svix webhook signature as sent by Clerk.

    The header holds space separated ``v1,<base64>`` entries, each an
    HMAC-SHA256 of ``"{id}.{timestamp}.{body}"``. Timestamps more than
    ``tolerance`` seconds away from now are rejected.
    """
    try:
        ts = int(timestamp)
    except (TypeError, ValueError):
        return False

    current = time.time() if now is None else now
    if abs(current - ts) > tolerance:
        logger.warning("Svix signature timestamp outside tolerance", timestamp=ts)
        return False

    try:
        key = _svix_key(secret)
    except (ValueError, TypeError):
        logger.error("Invalid Clerk webhook secret format")
        return False

    signed = f"{msg_id}.{timestamp}.".encode() + payload
    expected = base64.b64encode(hmac.new(key, signed, hashlib.sha256).digest()).decode()

    for entry in signature_header.split(" "):
        version, _, sig = entry.partition(",")
        if version == "v1" and hmac.compare_digest(expected, sig):
            return True
    return False


def sign_svix_payload(payload: bytes, msg_id: str, timestamp: str, secret: str) -> str:
    """Build a svix-signature header value for a payload."""
    signed = f"{msg_id}.{timestamp}.".encode() + payload
    digest = base64.b64encode(hmac.new(_svix_key(secret), signed, hashlib.sha256).digest()).decode()
    return f"v1,{digest}"
