"""
Webhook signature check.

The sender signs the raw request body with HMAC-SHA256 and sends
`X-Giannicorp-Signature: sha256=<base64 digest>`. Without a configured
secret, verification is switched off and every request passes.
"""

import base64
import hashlib
import hmac
from typing import Optional

SIGNATURE_PREFIX = "sha256="


def sign(body: bytes, secret: str) -> str:
    """Header value for a body, as the sender computes it."""
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).digest()
    return SIGNATURE_PREFIX + base64.b64encode(digest).decode("ascii")


def verify_signature(body: bytes, header: Optional[str], secret: str) -> bool:
    if not secret:
        return True
    if not header or not header.startswith(SIGNATURE_PREFIX):
        return False
    return hmac.compare_digest(
        header.encode("utf-8"),
        sign(body, secret).encode("utf-8"),
    )
