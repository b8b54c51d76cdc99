"""
verification.py — Webhook Signature Verification

The storefront signs every webhook with HMAC-SHA256 over the raw request
body and sends the base64 digest in the X-Shopify-Hmac-Sha256 header.
The digest must be computed over the bytes exactly as received; a
re-serialized body would not match.
"""

import base64
import hashlib
import hmac
import logging
from typing import Optional

log = logging.getLogger(__name__)

SIGNATURE_HEADER = "x-shopify-hmac-sha256"
SHOP_DOMAIN_HEADER = "x-shopify-shop-domain"


def compute_signature(raw_body: bytes, secret: str) -> str:
    """Returns the base64-encoded HMAC-SHA256 digest of `raw_body` under `secret`."""
    digest = hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def verify_signature(raw_body: bytes, claimed_signature: Optional[str], secret: str) -> bool:
    """
    Checks a webhook signature in constant time.

    Args:
        raw_body (bytes): Request body exactly as received.
        claimed_signature (Optional[str]): Value of the signature header.
        secret (str): The client's webhook signing key.

    Returns:
        bool: True only if the claimed signature matches. A missing or
        malformed signature is simply not verified.
    """
    if not claimed_signature or not secret:
        return False
    expected = compute_signature(raw_body, secret)
    try:
        return hmac.compare_digest(expected.encode("ascii"), claimed_signature.encode("ascii"))
    except UnicodeEncodeError:
        log.debug("Signature header contains non-ASCII characters")
        return False
