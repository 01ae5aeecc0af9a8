"""
Tests for decoding Admin API payloads into catalog values.
"""

import pytest

from storemirror.clients.schema import (
    SchemaError,
    decode_catalog_entry,
    decode_destination_variant,
    decode_draft_order,
    decode_feed_page,
    decode_metafield_values,
    decode_rest_product,
    numeric_id,
    to_gid,
)

KEYS = ("mirror_enabled", "mirror_price")


def metafields(**values):
    return {"edges": [{"node": {"key": k, "value": v}} for k, v in values.items()]}


def product_node(variants, status="ACTIVE"):
    return {
        "id": "gid://shopify/Product/1",
        "title": "Gold Hoop",
        "handle": "gold-hoop",
        "descriptionHtml": "<p>hoop</p>",
        "status": status,
        "images": {"edges": [{"node": {"url": "https://cdn.example.com/a.jpg"}}]},
        "variants": {"edges": [{"node": v} for v in variants]},
    }


def variant_node(vid=11, sku="GH-01", price="25.00", qty=10, **annotations):
    node = {
        "id": f"gid://shopify/ProductVariant/{vid}",
        "title": "Default Title",
        "sku": sku,
        "price": price,
        "inventoryQuantity": qty,
    }
    if annotations:
        node["metafields"] = metafields(**annotations)
    return node


class TestIds:
    def test_numeric_id_from_gid(self):
        assert numeric_id("gid://shopify/Product/123") == 123

    def test_numeric_id_passes_ints(self):
        assert numeric_id(7) == 7

    def test_numeric_id_rejects_garbage(self):
        with pytest.raises(SchemaError):
            numeric_id("gid://shopify/Product/abc")

    def test_to_gid_keeps_existing_gid(self):
        assert to_gid("Product", "gid://shopify/Product/9") == "gid://shopify/Product/9"
        assert to_gid("InventoryItem", 55) == "gid://shopify/InventoryItem/55"


class TestDecodeCatalogEntry:
    """Tests for decode_catalog_entry."""

    def test_enabled_variant_with_defaults(self):
        entry = decode_catalog_entry(product_node([variant_node(mirror_enabled="true")]), *KEYS)

        assert entry.handle == "gold-hoop"
        assert entry.status == "active"
        assert entry.image_urls == ("https://cdn.example.com/a.jpg",)
        (v,) = entry.variants
        assert v.enabled is True
        assert v.sku == "GH-01"
        assert v.quantity == 10
        assert v.destination_price == "25.00"

    def test_enablement_is_case_insensitive_literal_true(self):
        entry = decode_catalog_entry(product_node([
            variant_node(1, "A", mirror_enabled="TRUE"),
            variant_node(2, "B", mirror_enabled="yes"),
            variant_node(3, "C"),
        ]), *KEYS)
        assert [v.enabled for v in entry.variants] == [True, False, False]

    def test_price_override_becomes_destination_price(self):
        entry = decode_catalog_entry(
            product_node([variant_node(mirror_enabled="true", mirror_price="29.50")]), *KEYS
        )
        assert entry.variants[0].price == "25.00"
        assert entry.variants[0].destination_price == "29.50"

    def test_malformed_override_disables_variant(self):
        entry = decode_catalog_entry(
            product_node([variant_node(mirror_enabled="true", mirror_price="twenty")]), *KEYS
        )
        assert entry.variants[0].enabled is False

    def test_blank_sku_is_none_and_not_syncable(self):
        entry = decode_catalog_entry(product_node([variant_node(sku="  ", mirror_enabled="true")]), *KEYS)
        assert entry.variants[0].sku is None
        assert entry.syncable_variants() == []

    def test_negative_quantity_clamped(self):
        entry = decode_catalog_entry(product_node([variant_node(qty=-3)]), *KEYS)
        assert entry.variants[0].quantity == 0

    def test_missing_handle_raises(self):
        node = product_node([])
        del node["handle"]
        with pytest.raises(SchemaError, match="handle"):
            decode_catalog_entry(node, *KEYS)

    def test_invalid_variant_price_raises(self):
        with pytest.raises(SchemaError, match="invalid price"):
            decode_catalog_entry(product_node([variant_node(price="n/a")]), *KEYS)

    def test_variant_metafields_exclude_annotations(self):
        node = variant_node(mirror_enabled="true")
        node["metafields"]["edges"].append(
            {"node": {"namespace": "custom", "key": "metal", "type": "single_line_text_field", "value": "14k"}}
        )
        entry = decode_catalog_entry(product_node([node]), *KEYS)

        (v,) = entry.variants
        assert [(m.label, m.type, m.value) for m in v.metafields] == [
            ("custom.metal", "single_line_text_field", "14k"),
        ]

    def test_product_metafields_decoded(self):
        node = product_node([])
        node["metafields"] = {"edges": [
            {"node": {"namespace": "custom", "key": "care", "type": "multi_line_text_field", "value": "Dry"}},
            {"node": {"namespace": "custom", "key": "empty", "type": "single_line_text_field", "value": None}},
        ]}
        entry = decode_catalog_entry(node, *KEYS)
        assert [m.key for m in entry.metafields] == ["care"]


def test_decode_feed_page():
    data = {"products": {
        "edges": [{"cursor": "c1", "node": {"id": "gid://shopify/Product/1"}}],
        "pageInfo": {"hasNextPage": True, "endCursor": "c1"},
    }}
    nodes, has_next, cursor = decode_feed_page(data)
    assert nodes == [{"id": "gid://shopify/Product/1"}]
    assert has_next is True
    assert cursor == "c1"


def test_decode_feed_page_without_page_info_raises():
    with pytest.raises(SchemaError):
        decode_feed_page({"products": {"edges": []}})


def test_decode_rest_product():
    product = decode_rest_product({
        "id": 501, "handle": "gold-hoop", "title": "Gold Hoop",
        "variants": [{"id": 601, "sku": "GH-01", "price": "20.00", "inventory_item_id": 701}],
    })
    assert product.id == 501
    assert product.variants[0].inventory_item_id == 701
    assert product.variants[0].product_id == 501


def test_decode_destination_variant():
    v = decode_destination_variant({
        "id": "gid://shopify/ProductVariant/601",
        "sku": "GH-01",
        "price": "20.00",
        "inventoryItem": {"id": "gid://shopify/InventoryItem/701"},
        "product": {"id": "gid://shopify/Product/501"},
    })
    assert (v.id, v.inventory_item_id, v.product_id) == (601, 701, 501)


def test_decode_draft_order_completed():
    ref = decode_draft_order({
        "id": "gid://shopify/DraftOrder/3", "name": "#D3", "status": "COMPLETED",
        "order": {"id": "gid://shopify/Order/9", "name": "#1009"},
    })
    assert ref.completed is True
    assert ref.order_name == "#1009"


def test_decode_draft_order_open():
    ref = decode_draft_order({"id": "gid://shopify/DraftOrder/4", "name": "#D4", "status": "OPEN", "order": None})
    assert ref.completed is False


def test_decode_metafield_values_keys_by_owner():
    values = decode_metafield_values({
        "id": "gid://shopify/Product/501",
        "metafields": {"edges": [{"node": {"namespace": "custom", "key": "care", "value": "Dry"}}]},
        "variants": {"edges": [{"node": {
            "id": "gid://shopify/ProductVariant/601",
            "metafields": {"edges": [{"node": {"namespace": "custom", "key": "metal", "value": "14k"}}]},
        }}]},
    })
    assert values == {
        ("gid://shopify/Product/501", "custom", "care"): "Dry",
        ("gid://shopify/ProductVariant/601", "custom", "metal"): "14k",
    }
