"""
Shared fixtures: in-memory stand-ins for the two store gateways and a Flask app wired to them.
"""

import base64
import hashlib
import hmac
import json
from dataclasses import replace
from itertools import count
from unittest.mock import MagicMock

import pytest

from storemirror import create_app
from storemirror.clients.schema import to_gid
from storemirror.clients.shopify import ShopifyError, UserErrors
from storemirror.config import Settings, StoreConfig
from storemirror.models import (
    CatalogEntry,
    DestinationProduct,
    DestinationVariant,
    DraftOrderRef,
    Location,
    SourceVariant,
    VariantEntry,
)
from storemirror.services.container import Services
from storemirror.services.feed import FeedLoader
from storemirror.services.inventory import InventorySyncEngine
from storemirror.services.orders import OrderMirrorEngine
from storemirror.services.products import ProductSyncEngine

SOURCE_DOMAIN = "source-shop.myshopify.com"
DESTINATION_DOMAIN = "destination-shop.myshopify.com"
SOURCE_SECRET = "source-secret"
DESTINATION_SECRET = "destination-secret"
ADMIN_TOKEN = "admin-token"
MIRROR_CUSTOMER = "gid://shopify/Customer/42"


# =========================================================
# Builders
# =========================================================

_ids = count(1000)


def make_variant(sku, price="25.00", quantity=10, enabled=True, destination_price=None, title="Default"):
    vid = next(_ids)
    return VariantEntry(
        id=vid,
        gid=f"gid://shopify/ProductVariant/{vid}",
        title=title,
        sku=sku,
        price=price,
        quantity=quantity,
        enabled=enabled,
        destination_price=destination_price,
    )


def make_entry(handle, variants, status="active", title=None):
    pid = next(_ids)
    return CatalogEntry(
        id=pid,
        gid=f"gid://shopify/Product/{pid}",
        title=title or handle.replace("-", " ").title(),
        handle=handle,
        description_html=f"<p>{handle}</p>",
        status=status,
        image_urls=(f"https://cdn.example.com/{handle}.jpg",),
        variants=tuple(variants),
    )


def response(status=200, body=None, links=None, headers=None):
    """A requests.Response stand-in for a mocked session."""
    r = MagicMock()
    r.status_code = status
    r.content = b"{}" if body is not None else b""
    r.json.return_value = body
    r.text = str(body)
    r.links = links or {}
    r.headers = headers or {}
    r.url = "https://shop.myshopify.com/admin/api/2025-04/x.json"
    return r


def sign(body: bytes, secret: str) -> str:
    return base64.b64encode(hmac.new(secret.encode(), body, hashlib.sha256).digest()).decode()


def webhook_headers(body: bytes, topic: str, shop: str, secret: str) -> dict:
    return {
        "Content-Type": "application/json",
        "X-Shopify-Topic": topic,
        "X-Shopify-Shop-Domain": shop,
        "X-Shopify-Hmac-Sha256": sign(body, secret),
        "X-Shopify-Webhook-Id": f"wh-{next(_ids)}",
    }


# =========================================================
# Fake gateways
# =========================================================

class FakeSourceStore:
    name = "source"
    domain = SOURCE_DOMAIN

    def __init__(self, entries=None):
        self.namespace = "custom"
        self.enabled_key = "mirror_enabled"
        self.price_key = "mirror_price"
        self.entries = list(entries or [])
        self.variants = []  # SourceVariant, searched by SKU
        self.inventory_items = {}  # inventory item id -> (sku, SourceVariant | None)
        self.drafts = {}  # gid -> (DraftOrderRef, input)
        self.annotations = []
        self.definitions = []  # created through setup
        self.definition_nodes = []  # (owner type, node) listed by metafield_definitions
        self.webhooks = []
        self.fail_create_draft = False
        self.fail_complete = False
        self.page_calls = 0
        self._draft_numbers = count(1)

    # ---- catalog ----

    def products_page(self, first, after=None):
        self.page_calls += 1
        start = int(after or 0)
        page = self.entries[start:start + first]
        end = start + len(page)
        has_next = end < len(self.entries)
        return page, has_next, str(end) if has_next else None

    def product(self, product_id):
        for e in self.entries:
            if e.id == product_id or e.gid == product_id:
                return e
        return None

    def variants_by_sku(self, sku):
        # token search: also returns near matches, exact filtering is the caller's job
        return [v for v in self.variants if v.sku and sku in v.sku]

    def variant_for_inventory_item(self, inventory_item_id):
        return self.inventory_items.get(inventory_item_id, (None, None))

    # ---- draft orders ----

    def draft_orders(self, search):
        tag = search.split(":", 1)[1]
        return [ref for ref, draft_input in self.drafts.values() if tag in draft_input["tags"]]

    def draft_order(self, draft_gid):
        hit = self.drafts.get(to_gid("DraftOrder", draft_gid))
        return hit[0] if hit else None

    def create_draft_order(self, draft_input):
        if self.fail_create_draft:
            raise ShopifyError("draftOrderCreate failed 500", 500)
        n = next(self._draft_numbers)
        ref = DraftOrderRef(gid=f"gid://shopify/DraftOrder/{n}", name=f"#D{n}")
        self.drafts[ref.gid] = (ref, draft_input)
        return ref

    def complete_draft_order(self, draft_gid, payment_pending=True):
        if self.fail_complete:
            raise ShopifyError("draftOrderComplete timed out")
        ref, draft_input = self.drafts[draft_gid]
        n = ref.gid.rsplit("/", 1)[-1]
        done = replace(ref, status="COMPLETED", order_gid=f"gid://shopify/Order/{n}", order_name=f"#S{n}")
        self.drafts[draft_gid] = (done, dict(draft_input, paymentPending=payment_pending))
        return done

    def delete_draft_order(self, draft_gid):
        del self.drafts[to_gid("DraftOrder", draft_gid)]

    # ---- admin ----

    def set_variant_annotations(self, variant_gid, enabled, price):
        self.annotations.append((variant_gid, enabled, price))

    def metafield_definitions(self, owner_type, namespace):
        return [node for owner, node in self.definition_nodes
                if owner == owner_type and node["namespace"] == namespace]

    def create_metafield_definition(self, definition):
        if any(d["key"] == definition["key"] for d in self.definitions):
            raise UserErrors("metafieldDefinitionCreate: Key is already been taken", errors=[])
        self.definitions.append(definition)
        return {"id": f"gid://shopify/MetafieldDefinition/{len(self.definitions)}"}

    def list_webhooks(self):
        return list(self.webhooks)

    def create_webhook(self, topic, address):
        hook = {"id": next(_ids), "topic": topic, "address": address}
        self.webhooks.append(hook)
        return hook

    def update_webhook(self, webhook_id, address):
        for hook in self.webhooks:
            if hook["id"] == webhook_id:
                hook["address"] = address
                return hook
        raise ShopifyError("not found", 404)


class FakeDestinationStore:
    name = "destination"
    domain = DESTINATION_DOMAIN

    def __init__(self, locations=None):
        self.catalog = {}  # product id -> DestinationProduct
        self.location_list = locations if locations is not None else [Location(77, "Online Warehouse")]
        self.levels = {}  # (location id, inventory item id) -> available
        self.tracked = []
        self.untracked = set()  # inventory item ids
        self.metafields = {}  # (owner gid, namespace, key) -> value
        self.metafield_calls = []
        self.definitions = []
        self.created_payloads = []
        self.price_updates = []
        self.fail_create = set()  # handles
        self.fail_update = set()  # product ids
        self.fail_track = set()  # inventory item ids
        self.fail_set = set()  # inventory item ids
        self.fail_metafields = False
        self.webhooks = []

    def add_product(self, handle, variants, tracked=True):
        """variants: [(sku, price)]"""
        pid = next(_ids)
        dvs = tuple(
            DestinationVariant(id=next(_ids), sku=sku, price=price, inventory_item_id=next(_ids), product_id=pid)
            for sku, price in variants
        )
        product = DestinationProduct(id=pid, handle=handle, title=handle, variants=dvs)
        self.catalog[pid] = product
        if not tracked:
            self.untracked.update(v.inventory_item_id for v in dvs)
        return product

    def products(self, page_size=250):
        return list(self.catalog.values())

    def product_by_handle(self, handle):
        for p in self.catalog.values():
            if p.handle == handle:
                return p
        return None

    def create_product(self, product):
        self.created_payloads.append(product)
        if product["handle"] in self.fail_create:
            raise UserErrors("POST products.json failed 422: handle has already been taken", status=422)
        # created variants start out untracked
        return self.add_product(
            product["handle"], [(v["sku"], v["price"]) for v in product["variants"]], tracked=False
        )

    def update_variant_prices(self, product_id, changes):
        if product_id in self.fail_update:
            raise ShopifyError(f"PUT products/{product_id}.json failed 500", 500)
        self.price_updates.append((product_id, list(changes)))
        product = self.catalog[product_id]
        new_prices = {c.variant_id: c.new_price for c in changes}
        variants = tuple(replace(v, price=new_prices.get(v.id, v.price)) for v in product.variants)
        self.catalog[product_id] = replace(product, variants=variants)

    def track_inventory_item(self, inventory_item_id):
        if inventory_item_id in self.fail_track:
            raise ShopifyError("inventoryItemUpdate failed")
        self.tracked.append(inventory_item_id)
        self.untracked.discard(inventory_item_id)

    def untracked_items(self, inventory_item_ids):
        return {i for i in inventory_item_ids if i in self.untracked}

    def product_metafields(self, product_id, namespace):
        product = self.catalog[product_id]
        owners = {to_gid("Product", product_id)} | {to_gid("ProductVariant", v.id) for v in product.variants}
        return {k: v for k, v in self.metafields.items() if k[0] in owners and k[1] == namespace}

    def set_metafields(self, metafields):
        self.metafield_calls.append(list(metafields))
        if self.fail_metafields:
            raise UserErrors("metafieldsSet on destination: Value is invalid (field=value)")
        for m in metafields:
            self.metafields[(m["ownerId"], m["namespace"], m["key"])] = m["value"]

    def create_metafield_definition(self, definition):
        if any(d["key"] == definition["key"] and d["ownerType"] == definition["ownerType"]
               for d in self.definitions):
            raise UserErrors("metafieldDefinitionCreate on destination: Key is in use for this owner type")
        self.definitions.append(definition)
        return {"id": f"gid://shopify/MetafieldDefinition/{len(self.definitions)}"}

    def variants_by_sku(self, sku):
        return [v for p in self.catalog.values() for v in p.variants if v.sku and sku in v.sku]

    def locations(self):
        return list(self.location_list)

    def set_inventory(self, location_id, inventory_item_id, available):
        if inventory_item_id in self.fail_set:
            raise ShopifyError("inventory_levels/set.json failed 500", 500)
        self.levels[(location_id, inventory_item_id)] = available

    def level_for(self, sku, location_id=77):
        (variant,) = [v for p in self.catalog.values() for v in p.variants if v.sku == sku]
        return self.levels.get((location_id, variant.inventory_item_id))

    def list_webhooks(self):
        return list(self.webhooks)

    def create_webhook(self, topic, address):
        hook = {"id": next(_ids), "topic": topic, "address": address}
        self.webhooks.append(hook)
        return hook

    def update_webhook(self, webhook_id, address):
        raise ShopifyError("not expected", 500)


def add_source_variant(source, sku, price="25.00", quantity=10, enabled=True, inventory_item_id=None):
    vid = next(_ids)
    variant = SourceVariant(
        gid=f"gid://shopify/ProductVariant/{vid}", sku=sku, price=price, quantity=quantity, enabled=enabled,
    )
    source.variants.append(variant)
    if inventory_item_id is not None:
        source.inventory_items[inventory_item_id] = (sku, variant)
    return variant


# =========================================================
# Fixtures
# =========================================================

@pytest.fixture
def source():
    return FakeSourceStore()


@pytest.fixture
def destination():
    return FakeDestinationStore()


@pytest.fixture
def settings():
    return Settings(
        source=StoreConfig("source", SOURCE_DOMAIN, "src-token", SOURCE_SECRET, "SOURCE"),
        destination=StoreConfig("destination", DESTINATION_DOMAIN, "dst-token", DESTINATION_SECRET, "DESTINATION"),
        base_url="https://mirror.example.com",
        mirror_customer_id=MIRROR_CUSTOMER,
        admin_token=ADMIN_TOKEN,
        webhook_deadline=2.0,
        webhook_workers=2,
    )


@pytest.fixture
def services(settings, source, destination):
    feed = FeedLoader(source, settings.feed_page_size)
    return Services(
        settings=settings,
        source=source,
        destination=destination,
        feed=feed,
        products=ProductSyncEngine(feed, destination),
        inventory=InventorySyncEngine(feed, source, destination, settings.location_name),
        orders=OrderMirrorEngine(source, settings.mirror_customer_id, settings.mirror_order_tag),
    )


@pytest.fixture
def app(services):
    app = create_app(services=services)
    app.config.update(TESTING=True)
    yield app
    services.shutdown()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def post_webhook(client):
    def _post(path, payload, topic, shop, secret, **overrides):
        body = json.dumps(payload).encode()
        headers = webhook_headers(body, topic, shop, secret)
        headers.update(overrides)
        return client.post(path, data=body, headers=headers)
    return _post
