# storemirror/routes/admin.py
import hmac

from flask import Blueprint, abort, request

from ..clients.shopify import ShopifyError
from ..models import to_decimal
from ..services.container import current
from ..services.metafields import sync_definitions
from ..services.reconcile import reconcile
from ..utils.logger import error, info, warn

bp = Blueprint("admin", __name__)

ADMIN_HEADER = "X-Admin-Token"
FALSY = {"0", "false", "no", "off"}


@bp.before_request
def require_admin_token():
    settings = current().settings
    settings.require("admin_token")
    supplied = request.headers.get(ADMIN_HEADER, "")
    if not hmac.compare_digest(supplied.encode("utf-8"), settings.admin_token.encode("utf-8")):
        warn("[admin] rejected request with bad token", path=request.path)
        abort(401)


def _flag(name: str, default: bool) -> bool:
    raw = request.args.get(name)
    if raw is None:
        return default
    return raw.strip().lower() not in FALSY


@bp.get("/reconcile")
def reconcile_report():
    svc = current()
    svc.settings.require("source", "destination")
    return reconcile(svc, apply=False), 200


@bp.post("/reconcile")
def reconcile_apply():
    svc = current()
    svc.settings.require("source", "destination")
    inventory = _flag("inventory", True)
    info(f"[admin] reconcile apply requested (inventory={inventory})")
    return reconcile(svc, apply=True, inventory=inventory), 200


@bp.post("/mirror-orders/<draft_id>/complete")
def complete_mirror_draft(draft_id):
    svc = current()
    svc.settings.require("source")
    result = svc.orders.complete_draft(draft_id)
    code = {"draft-not-found": 404, "draft-order-incomplete": 502}.get(result.status, 200)
    return result.to_dict(), code


@bp.post("/variants/annotations")
def set_annotations():
    """Body: {"variantId": ..., "enabled": bool, "price": "25.00" | null}."""
    svc = current()
    svc.settings.require("source")
    body = request.get_json(silent=True) or {}
    variant_id = body.get("variantId")
    enabled = body.get("enabled")
    price = body.get("price")
    if not variant_id or not isinstance(enabled, bool):
        return {"status": "bad-request", "error": "variantId and boolean enabled are required"}, 400
    if price is not None and to_decimal(price) is None:
        return {"status": "bad-request", "error": f"price {price!r} is not a decimal"}, 400

    try:
        svc.source.set_variant_annotations(str(variant_id), enabled, None if price is None else str(price))
    except ShopifyError as e:
        error("[admin] setting annotations failed", variant=variant_id, err=e)
        return {"status": "failed", "error": str(e)}, 502
    info(f"[admin] annotations set for variant {variant_id}", enabled=enabled, price=price)
    return {"status": "annotations-set", "variantId": variant_id, "enabled": enabled, "price": price}, 200


@bp.post("/metafield-definitions/sync")
def sync_metafield_definitions():
    """Copy the source's product and variant metafield definitions to the destination."""
    svc = current()
    settings = svc.settings
    settings.require("source", "destination")
    try:
        report = sync_definitions(
            svc.source, svc.destination, settings.annotation_namespace,
            skip_keys=(settings.annotation_enabled_key, settings.annotation_price_key),
        )
    except ShopifyError as e:
        error("[admin] reading source metafield definitions failed", err=e)
        return {"status": "failed", "error": str(e)}, 502
    return report.to_dict(), 200
