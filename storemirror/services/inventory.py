# storemirror/services/inventory.py
import threading
from typing import Optional

from ..clients.shopify import ShopifyError
from ..clients.stores import DestinationStore, SourceStore
from ..config import ConfigurationError
from ..models import CatalogEntry, InventoryOutcome, InventoryReport, Location
from ..utils.logger import error, info, warn
from .deadline import checkpoint
from .feed import FeedLoader, enabled_subset
from .resolve import COLLISION, MISSING, resolve_destination_variant


class InventorySyncEngine:
    """Absolute on-hand push from source variants to one destination location, keyed by SKU."""

    def __init__(self, feed: FeedLoader, source: SourceStore, destination: DestinationStore, location_name: str):
        self.feed = feed
        self.source = source
        self.destination = destination
        self.location_name = location_name

    def resolve_location(self) -> Location:
        wanted = (self.location_name or "").strip().lower()
        for loc in self.destination.locations():
            if loc.name.strip().lower() == wanted:
                return loc
        raise ConfigurationError(f"destination location {self.location_name!r} not found on {self.destination.name}")

    def push(self, sku: str, available: int, location: Location,
             cancel: Optional[threading.Event] = None) -> InventoryOutcome:
        try:
            res = resolve_destination_variant(self.destination, sku)
        except ShopifyError as e:
            error("[inventory] SKU lookup failed", sku=sku, err=e)
            return InventoryOutcome("failed", sku, available, error=str(e))
        if res.status == MISSING:
            return InventoryOutcome("no-destination-variant", sku)
        if res.status == COLLISION:
            return InventoryOutcome("sku-collision", sku)

        item_id = res.variant.inventory_item_id
        if not item_id:
            warn("[inventory] destination variant has no inventory item", sku=sku)
            return InventoryOutcome("failed", sku, available, error="missing inventory item")
        checkpoint(cancel, f"setting inventory of {sku}")
        try:
            self.destination.set_inventory(location.id, item_id, available)
        except ShopifyError as e:
            error("[inventory] set failed", sku=sku, item=item_id, location=location.id, err=e)
            return InventoryOutcome("failed", sku, available, item_id, str(e))
        info(f"[inventory] {sku}: available={available} at {location.name}")
        return InventoryOutcome("inventory-updated", sku, available, item_id)

    def sync_all(self, entries: Optional[list[CatalogEntry]] = None) -> InventoryReport:
        location = self.resolve_location()
        if entries is None:
            entries = self.feed.load()
        report = InventoryReport(location_id=location.id)
        for _, variants in enabled_subset(entries):
            for v in variants:
                report.outcomes.append(self.push(v.sku, v.quantity, location))
        info(f"[inventory] full pass: {report.updated} updated, {report.failed} failed, "
             f"{len(report.outcomes) - report.updated - report.failed} skipped")
        return report

    def sync_inventory_item(self, inventory_item_id, cancel: Optional[threading.Event] = None) -> InventoryOutcome:
        """Push the current quantity of the source variant behind an inventory item.

        The quantity is re-read from the source rather than taken from the webhook,
        so stale or replayed deliveries still leave the latest value behind.
        """
        sku, variant = self.source.variant_for_inventory_item(inventory_item_id)
        if not sku:
            warn("[inventory] no SKU for source inventory item", item=inventory_item_id)
            return InventoryOutcome("no-sku")
        if variant is None or not variant.enabled:
            return InventoryOutcome("not-enabled", sku)
        return self.push(sku, variant.quantity, self.resolve_location(), cancel)
