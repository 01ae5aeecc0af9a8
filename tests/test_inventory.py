"""
Tests for pushing source on-hand quantities to the destination location.
"""

import pytest

from storemirror.config import ConfigurationError
from storemirror.models import Location
from storemirror.services.feed import FeedLoader
from storemirror.services.inventory import InventorySyncEngine

from conftest import FakeDestinationStore, FakeSourceStore, add_source_variant, make_entry, make_variant


def engine_for(entries=(), destination=None, location_name="Online Warehouse"):
    source = FakeSourceStore(entries)
    destination = destination or FakeDestinationStore()
    return InventorySyncEngine(FeedLoader(source), source, destination, location_name), source, destination


class TestResolveLocation:
    def test_exact_name_case_insensitive(self):
        destination = FakeDestinationStore([Location(1, "Shop Floor"), Location(2, "ONLINE WAREHOUSE")])
        engine, _, _ = engine_for(destination=destination)
        assert engine.resolve_location().id == 2

    def test_partial_name_does_not_match(self):
        destination = FakeDestinationStore([Location(1, "Online Warehouse East")])
        engine, _, _ = engine_for(destination=destination)
        with pytest.raises(ConfigurationError):
            engine.resolve_location()

    def test_missing_location_aborts_full_pass(self):
        destination = FakeDestinationStore([])
        destination.add_product("gold-hoop", [("GH-01", "25.00")])
        engine, _, _ = engine_for([make_entry("gold-hoop", [make_variant("GH-01")])], destination)

        with pytest.raises(ConfigurationError, match="Online Warehouse"):
            engine.sync_all()
        assert destination.levels == {}


class TestSyncAll:
    """Tests for the full inventory pass."""

    def test_sets_absolute_quantity(self):
        destination = FakeDestinationStore()
        destination.add_product("gold-hoop", [("GH-01", "25.00")])
        destination.levels[(77, destination.product_by_handle("gold-hoop").variants[0].inventory_item_id)] = 10
        engine, _, _ = engine_for([make_entry("gold-hoop", [make_variant("GH-01", quantity=7)])], destination)

        report = engine.sync_all()

        assert destination.level_for("GH-01") == 7
        assert report.updated == 1
        assert report.location_id == 77

    def test_running_twice_converges(self):
        destination = FakeDestinationStore()
        destination.add_product("gold-hoop", [("GH-01", "25.00")])
        engine, _, _ = engine_for([make_entry("gold-hoop", [make_variant("GH-01", quantity=7)])], destination)

        engine.sync_all()
        engine.sync_all()

        assert destination.level_for("GH-01") == 7

    def test_missing_and_colliding_skus_skipped(self):
        destination = FakeDestinationStore()
        destination.add_product("one", [("DUP-1", "1.00")])
        destination.add_product("two", [("DUP-1", "1.00")])
        entries = [
            make_entry("dup", [make_variant("DUP-1")]),
            make_entry("absent", [make_variant("NOPE-1")]),
        ]
        engine, _, _ = engine_for(entries, destination)

        report = engine.sync_all()

        assert sorted(o.status for o in report.outcomes) == ["no-destination-variant", "sku-collision"]
        assert destination.levels == {}

    def test_failure_does_not_abort_batch(self):
        destination = FakeDestinationStore()
        broken = destination.add_product("a", [("A-1", "1.00")])
        destination.add_product("b", [("B-1", "1.00")])
        destination.fail_set.add(broken.variants[0].inventory_item_id)
        entries = [
            make_entry("a", [make_variant("A-1", quantity=3)]),
            make_entry("b", [make_variant("B-1", quantity=4)]),
        ]
        engine, _, _ = engine_for(entries, destination)

        report = engine.sync_all()

        assert report.failed == 1
        assert report.updated == 1
        assert destination.level_for("B-1") == 4
        assert report.to_dict()["failures"][0]["sku"] == "A-1"

    def test_near_match_sku_not_used(self):
        destination = FakeDestinationStore()
        destination.add_product("gold-hoop", [("GH-01-XL", "25.00")])
        engine, _, _ = engine_for([make_entry("gold-hoop", [make_variant("GH-01")])], destination)

        (outcome,) = engine.sync_all().outcomes

        assert outcome.status == "no-destination-variant"


class TestSyncInventoryItem:
    """The inventory_levels/update webhook path."""

    def test_uses_current_source_quantity(self):
        destination = FakeDestinationStore()
        destination.add_product("gold-hoop", [("GH-01", "25.00")])
        engine, source, _ = engine_for(destination=destination)
        add_source_variant(source, "GH-01", quantity=5, inventory_item_id=900)

        outcome = engine.sync_inventory_item(900)

        assert outcome.status == "inventory-updated"
        assert outcome.available == 5
        assert destination.level_for("GH-01") == 5

    def test_unknown_item_has_no_sku(self):
        engine, _, _ = engine_for()
        assert engine.sync_inventory_item(12345).status == "no-sku"

    def test_disabled_variant_not_pushed(self):
        destination = FakeDestinationStore()
        destination.add_product("gold-hoop", [("GH-01", "25.00")])
        engine, source, _ = engine_for(destination=destination)
        add_source_variant(source, "GH-01", enabled=False, inventory_item_id=901)

        assert engine.sync_inventory_item(901).status == "not-enabled"
        assert destination.levels == {}

    def test_missing_destination_variant(self):
        engine, source, _ = engine_for()
        add_source_variant(source, "ONLY-SOURCE", inventory_item_id=902)
        assert engine.sync_inventory_item(902).status == "no-destination-variant"
