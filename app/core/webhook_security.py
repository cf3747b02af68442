"""
Webhook signature verification for The Blue Alliance.

TBA signs each delivery with the webhook secret shown on the account page.
The X-TBA-HMAC header carries the hex HMAC-SHA256 of the raw request body
keyed with that secret. The secret is stored in event_config as
`tba_webhook_secret`.

When no secret is configured, deliveries are accepted with a warning unless
WEBHOOK_ENFORCE_SIGNATURE is set or the service runs in production.
"""
import hashlib
import hmac
import logging
from typing import Optional

from fastapi import HTTPException, Request

from app.core.config import settings

logger = logging.getLogger(__name__)

TBA_SIGNATURE_HEADER = "X-TBA-HMAC"


# =============================================================================
# SIGNATURE VERIFICATION
# =============================================================================

def compute_signature(payload: bytes, secret: str) -> str:
    """Hex HMAC-SHA256 of the payload."""
    return hmac.new(secret.encode(), payload, hashlib.sha256).hexdigest()


def verify_tba_signature(payload: bytes, signature: Optional[str], secret: Optional[str]) -> bool:
    """
    Verify a TBA webhook signature.

    Args:
        payload: Raw request body bytes
        signature: X-TBA-HMAC header value
        secret: Configured webhook secret (empty when unset)

    Returns:
        True if the delivery may be processed

    Raises:
        HTTPException: 500 if no secret is configured but enforcement is
            on, 401 if the signature is missing or wrong
    """
    if not secret:
        if settings.WEBHOOK_ENFORCE_SIGNATURE or settings.is_production():
            logger.error("TBA webhook secret not configured and enforcement is enabled")
            raise HTTPException(
                status_code=500,
                detail="Webhook secret not configured"
            )
        logger.warning("TBA webhook secret not configured - accepting unsigned delivery")
        return True

    if not signature:
        logger.warning("TBA webhook missing signature header")
        raise HTTPException(
            status_code=401,
            detail="Missing signature header"
        )

    # Constant-time comparison to prevent timing attacks
    expected = compute_signature(payload, secret).encode()
    if not hmac.compare_digest(expected, signature.strip().lower().encode("utf-8")):
        logger.warning("TBA webhook signature verification failed")
        raise HTTPException(
            status_code=401,
            detail="Invalid signature"
        )

    return True


# =============================================================================
# HELPERS
# =============================================================================

def get_client_ip(request: Request) -> str:
    """Get client IP address from request, handling proxies."""
    # Check for forwarded header (reverse proxy)
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()

    # Check for real IP header
    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip

    # Fall back to direct address
    if request.client:
        return request.client.host

    return "unknown"
