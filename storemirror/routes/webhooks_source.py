# storemirror/routes/webhooks_source.py
from flask import Blueprint

from ..services.container import current
from ..utils.logger import info
from ..utils.security import verify_webhook
from .dispatch import ignored, parse_payload, run

bp = Blueprint("webhooks_source", __name__)

PRODUCT_TOPICS = {"products/create", "products/update"}
INVENTORY_TOPICS = {"inventory_levels/update", "inventory_levels/connect"}


def _verify():
    store = current().settings.source
    return verify_webhook(store.secret, store.domain)


@bp.post("/products")
def products():
    raw, meta = _verify()
    if meta.topic not in PRODUCT_TOPICS:
        return ignored(meta)
    payload = parse_payload(raw)
    pid = payload.get("id")
    info(f"[source] {meta.topic} received", product=pid, webhook=meta.webhook_id)
    if not pid:
        return {"status": "product-not-found"}, 200
    return run("products", current().products.sync_product, pid)


@bp.post("/inventory")
def inventory():
    raw, meta = _verify()
    if meta.topic not in INVENTORY_TOPICS:
        return ignored(meta)
    payload = parse_payload(raw)
    item_id = payload.get("inventory_item_id")
    info(f"[source] {meta.topic} received", item=item_id, webhook=meta.webhook_id)
    if not item_id:
        return {"status": "no-sku"}, 200
    return run("inventory", current().inventory.sync_inventory_item, item_id)
