# storemirror/services/products.py
import threading
from typing import Optional

from ..clients.shopify import ShopifyError, UserErrors
from ..clients.stores import DestinationStore
from ..models import (
    ApplyResult,
    CatalogEntry,
    DestinationProduct,
    ItemFailure,
    PriceChange,
    ProductSyncOutcome,
    ProductToCreate,
    ProductToUpdate,
    SyncPlan,
    TrackingFix,
    VariantEntry,
    same_price,
)
from ..utils.logger import debug, error, info, warn
from .deadline import checkpoint
from .feed import FeedLoader, enabled_subset
from .metafields import has_mirrorable, metafield_writes
from .resolve import index_by_sku

# =========================================================
# Planning (pure)
# =========================================================


def index_by_handle(products: list[DestinationProduct]) -> dict[str, DestinationProduct]:
    out: dict[str, DestinationProduct] = {}
    for p in products:
        if p.handle in out:
            warn("[plan] duplicate handle on destination, keeping first", handle=p.handle, product=p.id)
            continue
        out[p.handle] = p
    return out


def price_changes(existing: DestinationProduct, variants: list[VariantEntry]) -> list[PriceChange]:
    by_sku = index_by_sku("destination", existing.variants)
    changes = []
    for v in variants:
        dv = by_sku.get(v.sku)
        if dv is None:
            debug("[plan] enabled variant not on destination product", handle=existing.handle, sku=v.sku)
            continue
        if not same_price(dv.price, v.destination_price):
            changes.append(PriceChange(dv.id, v.sku, dv.price, v.destination_price))
    return changes


def tracking_fixes(existing: DestinationProduct, variants: list[VariantEntry], untracked) -> list[TrackingFix]:
    by_sku = index_by_sku("destination", existing.variants)
    fixes = []
    for v in variants:
        dv = by_sku.get(v.sku)
        if dv is not None and dv.inventory_item_id in untracked:
            fixes.append(TrackingFix(v.sku, dv.inventory_item_id))
    return fixes


def matched_inventory_items(candidates, existing_by_handle: dict[str, DestinationProduct]) -> list[int]:
    """Inventory items of destination variants that an enabled source variant maps onto."""
    ids = []
    for entry, variants in candidates:
        existing = existing_by_handle.get(entry.handle)
        if existing is None:
            continue
        skus = {v.sku for v in variants}
        ids.extend(dv.inventory_item_id for dv in existing.variants if dv.sku in skus and dv.inventory_item_id)
    return ids


def build_plan(candidates: list[tuple[CatalogEntry, list]], existing_by_handle: dict[str, DestinationProduct],
               untracked=frozenset(), current_metafields: Optional[dict] = None) -> SyncPlan:
    """Classify each (entry, enabled variants) pair against the destination snapshot.

    Products are matched by handle only. A destination product that merely shares a
    handle with a source product is treated as the same product. An existing product
    is updated when a price differs, a matched variant's inventory item is in
    ``untracked``, or (when ``current_metafields`` is given) a mirrored metafield
    value is missing or different.
    """
    plan = SyncPlan()
    for entry, variants in candidates:
        existing = existing_by_handle.get(entry.handle)
        if existing is None:
            plan.to_create.append(ProductToCreate(entry, tuple(variants)))
            continue
        changes = price_changes(existing, variants)
        fixes = tracking_fixes(existing, variants, untracked)
        writes = [] if current_metafields is None else metafield_writes(entry, variants, existing, current_metafields)
        if changes or fixes or writes:
            plan.to_update.append(ProductToUpdate(
                handle=entry.handle,
                title=entry.title,
                product_id=existing.id,
                price_changes=tuple(changes),
                existing_variant_count=len(existing.variants),
                new_variant_count=len(variants),
                metafields=tuple(writes),
                untracked=tuple(fixes),
            ))
    return plan


def product_payload(item: ProductToCreate) -> dict:
    entry = item.entry
    return {
        "title": entry.title,
        "handle": entry.handle,
        "status": "active",
        "body_html": entry.description_html,
        "images": [{"src": url} for url in entry.image_urls],
        "variants": [{
            "sku": v.sku,
            "price": v.destination_price,
            "inventory_policy": "deny",
            "inventory_management": "shopify",
            "inventory_quantity": v.quantity,
            "title": v.title or "Default",
            "option1": v.title or "Default",
        } for v in item.variants],
    }


# =========================================================
# Engine
# =========================================================

class ProductSyncEngine:
    def __init__(self, feed: FeedLoader, destination: DestinationStore, page_size: int = 250,
                 metafield_namespace: str = "custom"):
        self.feed = feed
        self.destination = destination
        self.page_size = page_size
        self.metafield_namespace = metafield_namespace

    def _plan_against(self, candidates, existing_by_handle: dict[str, DestinationProduct]) -> SyncPlan:
        untracked = self.destination.untracked_items(matched_inventory_items(candidates, existing_by_handle))
        current = {}
        for entry, variants in candidates:
            existing = existing_by_handle.get(entry.handle)
            if existing is not None and has_mirrorable(entry, variants):
                current.update(self.destination.product_metafields(existing.id, self.metafield_namespace))
        return build_plan(candidates, existing_by_handle, untracked, current)

    def plan(self) -> SyncPlan:
        entries = self.feed.load()
        candidates = enabled_subset(entries)
        existing = self.destination.products(self.page_size)
        plan = self._plan_against(candidates, index_by_handle(existing))
        plan.source_products = len(entries)
        plan.source_products_enabled = len(candidates)
        plan.destination_products = len(existing)
        info(f"[plan] {len(plan.to_create)} to create, {len(plan.to_update)} to update "
             f"({len(candidates)} enabled of {len(entries)} source, {len(existing)} on destination)")
        return plan

    def apply(self, plan: SyncPlan, cancel: Optional[threading.Event] = None) -> ApplyResult:
        result = ApplyResult()

        for item in plan.to_create:
            checkpoint(cancel, f"creating {item.handle}")
            created = self._create(item, result)
            if created is None:
                continue
            result.created_products.append(created)
            # post-creation steps: new destination variants start out untracked
            failures = self.ensure_tracking(created, cancel)
            result.tracking_failures.extend(failures)
            result.tracked += len(created.variants) - len(failures)
            writes = metafield_writes(item.entry, item.variants, created)
            if writes:
                self._set_metafields(item.handle, writes, result, cancel)

        for item in plan.to_update:
            self._update(item, result, cancel)

        info(f"[apply] created={result.created} updated={result.updated} tracked={result.tracked} "
             f"metafields={result.metafields_set} failed={len(result.failures)} "
             f"tracking_failed={len(result.tracking_failures)}")
        return result

    def _create(self, item: ProductToCreate, result: ApplyResult) -> Optional[DestinationProduct]:
        try:
            created = self.destination.create_product(product_payload(item))
        except UserErrors as e:
            if "handle" in str(e).lower():
                error("[apply] handle already taken on destination, not retrying", handle=item.handle, err=e)
            else:
                error("[apply] create rejected", handle=item.handle, err=e)
            result.failures.append(ItemFailure(item.handle, "create", str(e)))
            return None
        except ShopifyError as e:
            error("[apply] create failed", handle=item.handle, err=e)
            result.failures.append(ItemFailure(item.handle, "create", str(e)))
            return None
        result.created += 1
        info(f"[apply] created {item.handle} -> destination product {created.id}",
             variants=len(created.variants))
        return created

    def _update(self, item: ProductToUpdate, result: ApplyResult, cancel: Optional[threading.Event]) -> None:
        if item.price_changes:
            checkpoint(cancel, f"updating prices of {item.handle}")
            try:
                self.destination.update_variant_prices(item.product_id, list(item.price_changes))
            except ShopifyError as e:
                error("[apply] price update failed", handle=item.handle, product=item.product_id, err=e)
                result.failures.append(ItemFailure(item.handle, "update", str(e)))
            else:
                result.updated += 1
                for c in item.price_changes:
                    debug(f"[apply] {item.handle} {c.sku}: {c.old_price} -> {c.new_price}")

        if item.metafields:
            self._set_metafields(item.handle, item.metafields, result, cancel)

        for fix in item.untracked:
            failure = self._track(item.handle, fix.sku, fix.inventory_item_id, cancel)
            if failure is None:
                result.tracked += 1
                info(f"[apply] {item.handle} {fix.sku}: inventory tracking enabled")
            else:
                result.tracking_failures.append(failure)

    def _set_metafields(self, handle: str, writes, result: ApplyResult, cancel: Optional[threading.Event]) -> None:
        checkpoint(cancel, f"setting metafields of {handle}")
        try:
            self.destination.set_metafields([w.to_input() for w in writes])
        except ShopifyError as e:
            error("[apply] metafield sync failed", handle=handle, count=len(writes), err=e)
            result.failures.append(ItemFailure(handle, "metafields", str(e)))
            return
        result.metafields_set += len(writes)
        debug(f"[apply] {handle}: set {', '.join(sorted({w.metafield.label for w in writes}))}")

    def _track(self, handle: str, sku: Optional[str], inventory_item_id: int,
               cancel: Optional[threading.Event]) -> Optional[ItemFailure]:
        checkpoint(cancel, f"tracking inventory of {handle}")
        try:
            self.destination.track_inventory_item(inventory_item_id)
        except ShopifyError as e:
            error("[apply] enabling tracking failed", handle=handle, sku=sku, err=e)
            return ItemFailure(sku or str(inventory_item_id), "track-inventory", str(e))
        return None

    def ensure_tracking(self, product: DestinationProduct,
                        cancel: Optional[threading.Event] = None) -> list[ItemFailure]:
        """Turn on inventory tracking for every variant of a freshly created product.

        The destination accepts inventory_management on create but leaves the
        inventory item untracked, which would allow unlimited sales. Variants left
        untracked here are picked up again by the next plan.
        """
        failures = []
        for v in product.variants:
            if not v.inventory_item_id:
                warn("[apply] created variant has no inventory item", handle=product.handle, sku=v.sku)
                failures.append(ItemFailure(v.sku or str(v.id), "track-inventory", "missing inventory_item_id"))
                continue
            failure = self._track(product.handle, v.sku, v.inventory_item_id, cancel)
            if failure is not None:
                failures.append(failure)
        return failures

    # =========================================================
    # Single product (webhook path)
    # =========================================================

    def sync_product(self, product_id, cancel: Optional[threading.Event] = None) -> ProductSyncOutcome:
        entry = self.feed.load_product(product_id)
        if entry is None:
            warn("[product] not found on source", product=product_id)
            return ProductSyncOutcome("product-not-found")
        if not entry.is_active:
            info(f"[product] {entry.handle} is {entry.status}, skipping")
            return ProductSyncOutcome("product-not-active", entry.handle)

        candidates = enabled_subset([entry])
        if not candidates:
            info(f"[product] {entry.handle} has no enabled variants")
            return ProductSyncOutcome("no-enabled-variants", entry.handle)

        existing = self.destination.product_by_handle(entry.handle)
        plan = self._plan_against(candidates, {existing.handle: existing} if existing else {})
        if plan.is_empty:
            debug(f"[product] {entry.handle} already up to date")
            return ProductSyncOutcome("product-unchanged", entry.handle, existing.id if existing else None)

        result = self.apply(plan, cancel)
        failed = result.failures or result.tracking_failures
        if failed:
            return ProductSyncOutcome("product-failed", entry.handle, error=f"{failed[0].action}: {failed[0].error}")
        if plan.to_create:
            return ProductSyncOutcome("product-created", entry.handle, result.created_products[0].id)
        (update,) = plan.to_update
        return ProductSyncOutcome(
            "product-updated", entry.handle, existing.id,
            prices_updated=len(update.price_changes),
            metafields_set=len(update.metafields),
            tracking_enabled=len(update.untracked),
        )
