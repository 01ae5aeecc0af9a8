import base64
import binascii
import hashlib
import hmac
from dataclasses import dataclass
from typing import Mapping, Optional

from flask import abort, request

from ..config import ConfigurationError, normalize_domain
from .logger import warn

HMAC_HEADER = "X-Shopify-Hmac-Sha256"
TOPIC_HEADER = "X-Shopify-Topic"
SHOP_HEADER = "X-Shopify-Shop-Domain"
WEBHOOK_ID_HEADER = "X-Shopify-Webhook-Id"


@dataclass(frozen=True)
class WebhookMeta:
    topic: str
    shop_domain: str
    webhook_id: str


def verify_hmac(raw: bytes, their_hmac: Optional[str], secret: str) -> bool:
    """Constant-time check of a base64 HMAC-SHA256 signature over the raw body.

    Never raises: a missing, non-base64 or wrong-length signature is simply not authentic.
    """
    if not their_hmac or not secret:
        return False
    try:
        claimed = base64.b64decode(their_hmac.strip(), validate=True)
    except (binascii.Error, ValueError):
        return False
    digest = hmac.new(secret.encode(), raw or b"", hashlib.sha256).digest()
    return hmac.compare_digest(digest, claimed)


def webhook_meta(headers: Mapping[str, str]) -> WebhookMeta:
    return WebhookMeta(
        topic=(headers.get(TOPIC_HEADER) or "").strip(),
        shop_domain=normalize_domain(headers.get(SHOP_HEADER) or "") or "",
        webhook_id=headers.get(WEBHOOK_ID_HEADER) or "",
    )


def is_authentic(raw: bytes, headers: Mapping[str, str], secret: str, expected_domain: Optional[str]) -> bool:
    """Signature must verify AND the declared shop must be the store this flow expects."""
    meta = webhook_meta(headers)
    if not expected_domain or meta.shop_domain != normalize_domain(expected_domain):
        warn("[webhook] shop mismatch", received=meta.shop_domain or "-", expected=expected_domain)
        return False
    if not verify_hmac(raw, headers.get(HMAC_HEADER), secret):
        warn("[webhook] HMAC mismatch", shop=meta.shop_domain, topic=meta.topic or "-")
        return False
    return True


def verify_webhook(secret: Optional[str], expected_domain: Optional[str]) -> tuple[bytes, WebhookMeta]:
    """Flask helper: read the raw body, abort(401) unless authentic."""
    if not secret:
        raise ConfigurationError("webhook secret not configured")
    raw = request.get_data(cache=True)
    if not is_authentic(raw, request.headers, secret, expected_domain):
        abort(401)
    return raw, webhook_meta(request.headers)
