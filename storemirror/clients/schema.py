"""
Decoders from raw Admin API payloads to the value types in ``storemirror.models``.

Every decoder checks the fields it relies on and raises ``SchemaError`` naming the
missing piece, so a changed API shape fails loudly instead of syncing garbage.
"""

from typing import Any, Optional

from ..models import (
    CatalogEntry,
    DestinationProduct,
    DestinationVariant,
    DraftOrderRef,
    Location,
    Metafield,
    SourceVariant,
    VariantEntry,
    to_decimal,
)
from ..utils.logger import warn
from .shopify import SchemaError

__all__ = [
    "SchemaError",
    "numeric_id",
    "to_gid",
    "annotations",
    "decode_metafields",
    "decode_metafield_values",
    "decode_catalog_entry",
    "decode_feed_page",
    "decode_source_variant",
    "decode_destination_variant",
    "decode_rest_product",
    "decode_location",
    "decode_draft_order",
]


def numeric_id(gid: Any) -> int:
    """gid://shopify/Product/123 -> 123 (plain ints and digit strings pass through)."""
    if isinstance(gid, int) and not isinstance(gid, bool):
        return gid
    if isinstance(gid, str):
        last = gid.rsplit("/", 1)[-1]
        if last.isdigit():
            return int(last)
    raise SchemaError(f"cannot extract numeric id from {gid!r}")


def to_gid(kind: str, value: Any) -> str:
    if isinstance(value, str) and value.startswith("gid://"):
        return value
    return f"gid://shopify/{kind}/{numeric_id(value)}"


def _require(node: Any, key: str, what: str) -> Any:
    if not isinstance(node, dict) or key not in node:
        raise SchemaError(f"{what}: missing '{key}'")
    return node[key]


def _nodes(conn: Any, what: str) -> list[dict]:
    if conn is None:
        return []
    edges = _require(conn, "edges", what)
    if not isinstance(edges, list):
        raise SchemaError(f"{what}: 'edges' is not a list")
    return [_require(e, "node", what) for e in edges]


def _price(value: Any, what: str) -> str:
    if to_decimal(value) is None:
        raise SchemaError(f"{what}: invalid price {value!r}")
    return str(value)


def _quantity(value: Any) -> int:
    try:
        return max(int(value or 0), 0)
    except (TypeError, ValueError):
        return 0


def annotations(node: dict) -> dict[str, str]:
    """Per-variant metafields as {key: value}; an absent connection is an empty set."""
    out = {}
    for mf in _nodes(node.get("metafields"), "metafields"):
        key = mf.get("key")
        if key:
            out[key] = mf.get("value")
    return out


def decode_metafields(node: dict) -> tuple:
    """Typed metafields of a product or variant node, in API order."""
    out = []
    for mf in _nodes(node.get("metafields"), "metafields"):
        key = mf.get("key")
        if not key or mf.get("value") is None:
            continue
        out.append(Metafield(
            namespace=mf.get("namespace") or "custom",
            key=key,
            type=mf.get("type") or "single_line_text_field",
            value=str(mf["value"]),
        ))
    return tuple(out)


def _enablement(node: dict, price: str, enabled_key: str, price_key: str, sku: Optional[str]) -> tuple[bool, str]:
    notes = annotations(node)
    enabled = str(notes.get(enabled_key) or "").strip().lower() == "true"
    override = notes.get(price_key)
    if override in (None, ""):
        return enabled, price
    if to_decimal(override) is None:
        warn("[feed] ignoring variant with malformed destination price", sku=sku, value=override)
        return False, price
    return enabled, str(override)


# =========================================================
# Source store
# =========================================================

def decode_catalog_entry(node: dict, enabled_key: str, price_key: str) -> CatalogEntry:
    what = "product"
    gid = _require(node, "id", what)
    handle = _require(node, "handle", what)
    variants = []
    for v in _nodes(node.get("variants"), f"product {handle} variants"):
        vwhat = f"variant of {handle}"
        vgid = _require(v, "id", vwhat)
        price = _price(_require(v, "price", vwhat), vwhat)
        sku = (v.get("sku") or "").strip() or None
        enabled, dest_price = _enablement(v, price, enabled_key, price_key, sku)
        own = tuple(m for m in decode_metafields(v) if m.key not in (enabled_key, price_key))
        variants.append(VariantEntry(
            id=numeric_id(vgid),
            gid=vgid,
            title=v.get("title") or "Default",
            sku=sku,
            price=price,
            quantity=_quantity(v.get("inventoryQuantity")),
            enabled=enabled,
            destination_price=dest_price,
            metafields=own,
        ))
    images = tuple(
        img["url"] for img in _nodes(node.get("images"), f"product {handle} images") if img.get("url")
    )
    return CatalogEntry(
        id=numeric_id(gid),
        gid=gid,
        title=_require(node, "title", what),
        handle=handle,
        description_html=node.get("descriptionHtml") or "",
        status=str(_require(node, "status", what)).lower(),
        image_urls=images,
        variants=tuple(variants),
        metafields=decode_metafields(node),
    )


def decode_feed_page(data: dict) -> tuple[list[dict], bool, Optional[str]]:
    conn = _require(data, "products", "feed page")
    page = _require(conn, "pageInfo", "feed page")
    return _nodes(conn, "feed page"), bool(page.get("hasNextPage")), page.get("endCursor")


def decode_source_variant(node: dict, enabled_key: str, price_key: str) -> SourceVariant:
    what = "source variant"
    price = _price(_require(node, "price", what), what)
    sku = (node.get("sku") or "").strip() or None
    enabled, _ = _enablement(node, price, enabled_key, price_key, sku)
    return SourceVariant(
        gid=_require(node, "id", what),
        sku=sku,
        price=price,
        quantity=_quantity(node.get("inventoryQuantity")),
        enabled=enabled,
        product_title=(node.get("product") or {}).get("title") or "",
    )


def decode_draft_order(node: dict) -> DraftOrderRef:
    what = "draft order"
    order = node.get("order") or {}
    return DraftOrderRef(
        gid=_require(node, "id", what),
        name=node.get("name") or "",
        order_gid=order.get("id"),
        order_name=order.get("name"),
        status=node.get("status") or "OPEN",
    )


# =========================================================
# Destination store
# =========================================================

def decode_destination_variant(node: dict) -> DestinationVariant:
    """GraphQL productVariants node."""
    what = "destination variant"
    item = node.get("inventoryItem") or {}
    product = node.get("product") or {}
    return DestinationVariant(
        id=numeric_id(_require(node, "id", what)),
        sku=(node.get("sku") or "").strip() or None,
        price=str(node.get("price") or ""),
        inventory_item_id=numeric_id(item["id"]) if item.get("id") else None,
        product_id=numeric_id(product["id"]) if product.get("id") else None,
        title=node.get("title") or "",
    )


def decode_rest_product(product: dict) -> DestinationProduct:
    """REST products.json entry."""
    what = "destination product"
    pid = numeric_id(_require(product, "id", what))
    variants = []
    for v in product.get("variants") or []:
        variants.append(DestinationVariant(
            id=numeric_id(_require(v, "id", f"variant of product {pid}")),
            sku=(v.get("sku") or "").strip() or None,
            price=str(v.get("price") or ""),
            inventory_item_id=v.get("inventory_item_id"),
            product_id=pid,
            title=v.get("title") or "",
        ))
    return DestinationProduct(
        id=pid,
        handle=_require(product, "handle", what),
        title=product.get("title") or "",
        variants=tuple(variants),
    )


def decode_location(loc: dict) -> Location:
    return Location(id=numeric_id(_require(loc, "id", "location")), name=loc.get("name") or "")


def decode_metafield_values(product: dict) -> dict[tuple, str]:
    """Destination product and variant metafields as {(owner gid, namespace, key): value}."""
    what = "destination product metafields"
    owner = _require(product, "id", what)
    out = {(owner, m.namespace, m.key): m.value for m in decode_metafields(product)}
    for v in _nodes(product.get("variants"), what):
        vgid = _require(v, "id", what)
        out.update({(vgid, m.namespace, m.key): m.value for m in decode_metafields(v)})
    return out
