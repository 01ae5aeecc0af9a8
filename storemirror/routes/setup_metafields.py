# storemirror/routes/setup_metafields.py
from flask import Blueprint

from ..clients.shopify import ShopifyError, UserErrors
from ..clients.stores import SourceStore
from ..services.container import current
from ..services.metafields import is_duplicate_definition

bp = Blueprint("setup_metafields", __name__)


def definitions(source: SourceStore) -> list[dict]:
    # (name, key, type, description)
    rows = [
        ("Mirror: Enabled", source.enabled_key, "boolean", "List this variant on the destination store"),
        ("Mirror: Price", source.price_key, "number_decimal", "Destination price override"),
    ]
    return [{
        "name": name,
        "namespace": source.namespace,
        "key": key,
        "type": type_,
        "description": desc,
        "ownerType": "PRODUCTVARIANT",
    } for name, key, type_, desc in rows]


def create_definitions(source: SourceStore) -> list[str]:
    out = []
    for definition in definitions(source):
        label = f"{definition['namespace']}.{definition['key']}"
        try:
            created = source.create_metafield_definition(definition)
        except UserErrors as e:
            # duplicates count as success
            if is_duplicate_definition(e):
                out.append(f"{label}: EXISTS")
            else:
                out.append(f"{label}: ERR {e}")
            continue
        except ShopifyError as e:
            out.append(f"{label}: EXC {e}")
            continue
        out.append(f"{label}: OK {created.get('id')}")
    return out


@bp.get("/create")
def create_defs():
    svc = current()
    svc.settings.require("source")
    return {"store": "source", "results": create_definitions(svc.source)}, 200
