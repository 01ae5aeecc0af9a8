# storemirror/routes/webhooks_destination.py
from flask import Blueprint

from ..services.container import current
from ..utils.logger import info
from ..utils.security import verify_webhook
from .dispatch import ignored, parse_payload, run

bp = Blueprint("webhooks_destination", __name__)

ORDER_TOPIC = "orders/create"


@bp.post("/orders")
def orders():
    store = current().settings.destination
    raw, meta = verify_webhook(store.secret, store.domain)
    if meta.topic != ORDER_TOPIC:
        return ignored(meta)
    order = parse_payload(raw)
    info(f"[destination] {meta.topic} received", order=order.get("name") or order.get("id"),
         webhook=meta.webhook_id)
    return run("orders", current().orders.mirror, order)
