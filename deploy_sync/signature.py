"""Netlify webhook signature verification.

Netlify signs outgoing webhooks with a JWS (HS256, issuer ``netlify``) whose
``sha256`` claim is the hex digest of the request body.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
from typing import Optional

import jwt

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Webhook-Signature"
NETLIFY_ISSUER = "netlify"


def verify_signature(token: Optional[str], secret: Optional[str], raw_body: bytes) -> bool:
    if not token or not secret:
        return False

    try:
        claims = jwt.decode(token, secret, algorithms=["HS256"], issuer=NETLIFY_ISSUER)
    except jwt.PyJWTError as exc:
        logger.debug(f"Rejected webhook signature: {exc}")
        return False

    expected = hashlib.sha256(raw_body).hexdigest()
    received = claims.get("sha256")
    if not isinstance(received, str):
        return False
    return hmac.compare_digest(received, expected)
