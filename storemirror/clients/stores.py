# storemirror/clients/stores.py
from typing import Optional

from ..models import (
    CatalogEntry,
    DestinationProduct,
    DestinationVariant,
    DraftOrderRef,
    Location,
    PriceChange,
    SourceVariant,
)
from . import queries
from .schema import (
    decode_catalog_entry,
    decode_destination_variant,
    decode_draft_order,
    decode_feed_page,
    decode_location,
    decode_metafield_values,
    decode_rest_product,
    decode_source_variant,
    to_gid,
)
from .shopify import SchemaError, StoreClient, UserErrors

INVENTORY_ITEMS_PER_CALL = 100
METAFIELDS_PER_CALL = 25


def sku_query(sku: str) -> str:
    escaped = sku.replace("\\", "\\\\").replace('"', '\\"')
    return f'sku:"{escaped}"'


class StoreGateway:
    """Operations both stores support (webhook subscriptions)."""

    def __init__(self, client: StoreClient):
        self.client = client

    @property
    def name(self) -> str:
        return self.client.name

    @property
    def domain(self) -> str:
        return self.client.domain

    def list_webhooks(self) -> list[dict]:
        return self.client.get("webhooks.json").get("webhooks", [])

    def create_webhook(self, topic: str, address: str) -> dict:
        body = {"webhook": {"topic": topic, "address": address, "format": "json"}}
        return self.client.post("webhooks.json", body).get("webhook") or {}

    def update_webhook(self, webhook_id: int, address: str) -> dict:
        body = {"webhook": {"id": webhook_id, "address": address, "format": "json"}}
        return self.client.put(f"webhooks/{webhook_id}.json", body).get("webhook") or {}

    # ---- metafield definitions ----

    def metafield_definitions(self, owner_type: str, namespace: str) -> list[dict]:
        data = self.client.query(queries.METAFIELD_DEFINITIONS, {"ownerType": owner_type, "ns": namespace})
        conn = data.get("metafieldDefinitions")
        if not isinstance(conn, dict):
            raise SchemaError("metafieldDefinitions: missing connection")
        return [e.get("node") or {} for e in conn.get("edges") or []]

    def create_metafield_definition(self, definition: dict) -> dict:
        block = self.client.mutate(
            queries.METAFIELD_DEFINITION_CREATE, {"definition": definition}, "metafieldDefinitionCreate"
        )
        return block.get("createdDefinition") or {}


# =========================================================
# Source store (catalog of record)
# =========================================================

class SourceStore(StoreGateway):
    def __init__(self, client: StoreClient, namespace: str = "custom",
                 enabled_key: str = "mirror_enabled", price_key: str = "mirror_price"):
        super().__init__(client)
        self.namespace = namespace
        self.enabled_key = enabled_key
        self.price_key = price_key

    def products_page(self, first: int, after: Optional[str] = None) -> tuple[list[CatalogEntry], bool, Optional[str]]:
        data = self.client.query(queries.FEED_PRODUCTS, {"first": first, "after": after, "ns": self.namespace})
        nodes, has_next, cursor = decode_feed_page(data)
        entries = [decode_catalog_entry(n, self.enabled_key, self.price_key) for n in nodes]
        return entries, has_next, cursor

    def product(self, product_id) -> Optional[CatalogEntry]:
        data = self.client.query(queries.PRODUCT_BY_ID, {"id": to_gid("Product", product_id), "ns": self.namespace})
        node = data.get("product")
        if not node:
            return None
        return decode_catalog_entry(node, self.enabled_key, self.price_key)

    def variants_by_sku(self, sku: str) -> list[SourceVariant]:
        data = self.client.query(queries.SOURCE_VARIANTS_BY_SKU, {"q": sku_query(sku), "ns": self.namespace})
        conn = data.get("productVariants")
        if not isinstance(conn, dict):
            raise SchemaError("productVariants: missing connection")
        return [
            decode_source_variant(e.get("node") or {}, self.enabled_key, self.price_key)
            for e in conn.get("edges") or []
        ]

    def variant_for_inventory_item(self, inventory_item_id) -> tuple[Optional[str], Optional[SourceVariant]]:
        """Return (item sku, variant) for an inventory item; (None, None) if it is gone."""
        data = self.client.query(
            queries.SOURCE_VARIANT_BY_INVENTORY_ITEM,
            {"id": to_gid("InventoryItem", inventory_item_id), "ns": self.namespace},
        )
        item = data.get("inventoryItem")
        if not item:
            return None, None
        variant = item.get("variant")
        decoded = decode_source_variant(variant, self.enabled_key, self.price_key) if variant else None
        sku = (decoded.sku if decoded else None) or (item.get("sku") or "").strip() or None
        return sku, decoded

    # ---- draft orders ----

    def draft_orders(self, search: str) -> list[DraftOrderRef]:
        data = self.client.query(queries.DRAFT_ORDERS_BY_QUERY, {"q": search})
        conn = data.get("draftOrders")
        if not isinstance(conn, dict):
            raise SchemaError("draftOrders: missing connection")
        return [decode_draft_order(e.get("node") or {}) for e in conn.get("edges") or []]

    def draft_order(self, draft_gid: str) -> Optional[DraftOrderRef]:
        data = self.client.query(queries.DRAFT_ORDER_BY_ID, {"id": to_gid("DraftOrder", draft_gid)})
        node = data.get("draftOrder")
        return decode_draft_order(node) if node else None

    def create_draft_order(self, draft_input: dict) -> DraftOrderRef:
        block = self.client.mutate(queries.DRAFT_ORDER_CREATE, {"input": draft_input}, "draftOrderCreate")
        node = block.get("draftOrder")
        if not node:
            raise SchemaError("draftOrderCreate returned no draft order")
        return decode_draft_order(node)

    def complete_draft_order(self, draft_gid: str, payment_pending: bool = True) -> DraftOrderRef:
        block = self.client.mutate(
            queries.DRAFT_ORDER_COMPLETE,
            {"id": to_gid("DraftOrder", draft_gid), "paymentPending": payment_pending},
            "draftOrderComplete",
        )
        node = block.get("draftOrder")
        if not node:
            raise SchemaError("draftOrderComplete returned no draft order")
        return decode_draft_order(node)

    def delete_draft_order(self, draft_gid: str) -> None:
        self.client.mutate(
            queries.DRAFT_ORDER_DELETE, {"input": {"id": to_gid("DraftOrder", draft_gid)}}, "draftOrderDelete"
        )

    # ---- annotations ----

    def set_variant_annotations(self, variant_gid: str, enabled: bool, price: Optional[str]) -> None:
        owner = to_gid("ProductVariant", variant_gid)
        metafields = [{
            "ownerId": owner, "namespace": self.namespace, "key": self.enabled_key,
            "type": "boolean", "value": "true" if enabled else "false",
        }]
        if price is not None:
            metafields.append({
                "ownerId": owner, "namespace": self.namespace, "key": self.price_key,
                "type": "number_decimal", "value": str(price),
            })
        self.client.mutate(queries.METAFIELDS_SET, {"metafields": metafields}, "metafieldsSet")


# =========================================================
# Destination store (downstream storefront)
# =========================================================

class DestinationStore(StoreGateway):
    PRODUCT_FIELDS = "id,handle,title,variants"

    def products(self, page_size: int = 250) -> list[DestinationProduct]:
        items = self.client.get_pages(
            "products.json", "products", params={"fields": self.PRODUCT_FIELDS}, limit=page_size
        )
        return [decode_rest_product(p) for p in items]

    def product_by_handle(self, handle: str) -> Optional[DestinationProduct]:
        data = self.client.get("products.json", {"handle": handle, "fields": self.PRODUCT_FIELDS})
        for p in data.get("products") or []:
            if p.get("handle") == handle:
                return decode_rest_product(p)
        return None

    def create_product(self, product: dict) -> DestinationProduct:
        created = self.client.post("products.json", {"product": product}).get("product")
        if not created:
            raise SchemaError("POST products.json returned no product")
        return decode_rest_product(created)

    def update_variant_prices(self, product_id: int, changes: list[PriceChange]) -> None:
        body = {"product": {
            "id": product_id,
            "variants": [{"id": c.variant_id, "price": c.new_price} for c in changes],
        }}
        self.client.put(f"products/{product_id}.json", body)

    def track_inventory_item(self, inventory_item_id: int) -> None:
        self.client.mutate(
            queries.INVENTORY_ITEM_TRACK,
            {"id": to_gid("InventoryItem", inventory_item_id), "input": {"tracked": True}},
            "inventoryItemUpdate",
        )

    def untracked_items(self, inventory_item_ids) -> set[int]:
        """The subset of inventory items the destination does not track (REST, 100 ids per call)."""
        ids = sorted({int(i) for i in inventory_item_ids if i})
        out = set()
        for start in range(0, len(ids), INVENTORY_ITEMS_PER_CALL):
            chunk = ids[start:start + INVENTORY_ITEMS_PER_CALL]
            data = self.client.get("inventory_items.json", {"ids": ",".join(map(str, chunk)), "limit": len(chunk)})
            for item in data.get("inventory_items") or []:
                if not item.get("tracked"):
                    out.add(int(item["id"]))
        return out

    # ---- mirrored metafields ----

    def product_metafields(self, product_id: int, namespace: str) -> dict[tuple, str]:
        data = self.client.query(
            queries.DESTINATION_PRODUCT_METAFIELDS, {"id": to_gid("Product", product_id), "ns": namespace}
        )
        node = data.get("product")
        return decode_metafield_values(node) if node else {}

    def set_metafields(self, metafields: list[dict]) -> None:
        for start in range(0, len(metafields), METAFIELDS_PER_CALL):
            chunk = metafields[start:start + METAFIELDS_PER_CALL]
            self.client.mutate(queries.METAFIELDS_SET, {"metafields": chunk}, "metafieldsSet")

    # ---- inventory ----

    def variants_by_sku(self, sku: str) -> list[DestinationVariant]:
        data = self.client.query(queries.DESTINATION_VARIANTS_BY_SKU, {"q": sku_query(sku)})
        conn = data.get("productVariants")
        if not isinstance(conn, dict):
            raise SchemaError("productVariants: missing connection")
        return [decode_destination_variant(e.get("node") or {}) for e in conn.get("edges") or []]

    def locations(self) -> list[Location]:
        return [decode_location(loc) for loc in self.client.get("locations.json").get("locations") or []]

    def set_inventory(self, location_id: int, inventory_item_id: int, available: int) -> None:
        payload = {
            "location_id": int(location_id),
            "inventory_item_id": int(inventory_item_id),
            "available": int(available),
        }
        try:
            self.client.post("inventory_levels/set.json", payload)
        except UserErrors as e:
            if "stocked" not in str(e).lower():
                raise
            # item not stocked at this location yet
            self.client.post("inventory_levels/connect.json", {
                "location_id": int(location_id), "inventory_item_id": int(inventory_item_id),
            })
            self.client.post("inventory_levels/set.json", payload)
