# storemirror/routes/register.py
from flask import Blueprint

from ..clients.shopify import ShopifyError
from ..clients.stores import StoreGateway
from ..services.container import current
from ..utils.logger import error, info

bp = Blueprint("register", __name__)


def subscriptions_for(base_url: str) -> dict[str, list[tuple[str, str]]]:
    return {
        "source": [
            ("products/create", f"{base_url}/source/webhooks/products"),
            ("products/update", f"{base_url}/source/webhooks/products"),
            ("inventory_levels/update", f"{base_url}/source/webhooks/inventory"),
            ("inventory_levels/connect", f"{base_url}/source/webhooks/inventory"),
        ],
        "destination": [
            ("orders/create", f"{base_url}/destination/webhooks/orders"),
        ],
    }


def ensure_webhooks(store: StoreGateway, subs: list[tuple[str, str]]) -> list[str]:
    """Create missing subscriptions; repoint an existing one whose address changed."""
    existing = store.list_webhooks()
    out = []
    for topic, address in subs:
        found = [w for w in existing if w.get("topic") == topic]
        if any(w.get("address") == address for w in found):
            out.append(f"OK {topic}")
            continue
        try:
            if found:
                # repoint instead of adding a second subscription for the topic
                store.update_webhook(found[0].get("id"), address)
                out.append(f"UPDATED {topic}")
            else:
                store.create_webhook(topic, address)
                out.append(f"CREATED {topic}")
        except ShopifyError as e:
            error(f"[register] {store.name} {topic} failed", err=e)
            out.append(f"FAIL {topic} {e}")
    info(f"[register] {store.name}: {'; '.join(out)}")
    return out


def _register(which: str):
    svc = current()
    svc.settings.require(which, "base_url")
    store = svc.source if which == "source" else svc.destination
    try:
        results = ensure_webhooks(store, subscriptions_for(svc.settings.base_url)[which])
    except ShopifyError as e:
        error(f"[register] reading {which} webhooks failed", err=e)
        return {"store": which, "error": f"Failed to read existing webhooks: {e}"}, 502
    return {"store": which, "results": results}, 200


@bp.get("/source")
def reg_source():
    return _register("source")


@bp.get("/destination")
def reg_destination():
    return _register("destination")
