"""
Value types shared by the feed loader, the sync engines and the order mirror.

Nothing here is persisted: every value is rebuilt from the two stores on each run.
"""

from dataclasses import asdict, dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Optional


def to_decimal(value) -> Optional[Decimal]:
    if value is None or value == "":
        return None
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None


def same_price(a, b) -> bool:
    """Compare decimal strings by value ("25.0" == "25.00")."""
    da, db = to_decimal(a), to_decimal(b)
    if da is None or db is None:
        return a == b
    return da == db


# =========================================================
# Source catalog
# =========================================================

@dataclass(frozen=True)
class Metafield:
    namespace: str
    key: str
    type: str
    value: str

    @property
    def label(self) -> str:
        return f"{self.namespace}.{self.key}"


@dataclass(frozen=True)
class VariantEntry:
    id: int
    gid: str
    title: str
    sku: Optional[str]
    price: str
    quantity: int
    enabled: bool = False
    destination_price: Optional[str] = None
    metafields: tuple = ()

    def __post_init__(self):
        if self.destination_price is None:
            object.__setattr__(self, "destination_price", self.price)


@dataclass(frozen=True)
class CatalogEntry:
    id: int
    gid: str
    title: str
    handle: str
    description_html: str
    status: str
    image_urls: tuple = ()
    variants: tuple = ()
    metafields: tuple = ()

    @property
    def is_active(self) -> bool:
        return self.status == "active"

    def syncable_variants(self) -> list[VariantEntry]:
        """Enabled variants that can be matched across stores (they have a SKU)."""
        return [v for v in self.variants if v.enabled and v.sku]


# =========================================================
# Store-side references
# =========================================================

@dataclass(frozen=True)
class DestinationVariant:
    id: int
    sku: Optional[str]
    price: str
    inventory_item_id: Optional[int] = None
    product_id: Optional[int] = None
    title: str = ""


@dataclass(frozen=True)
class DestinationProduct:
    id: int
    handle: str
    title: str
    variants: tuple = ()


@dataclass(frozen=True)
class SourceVariant:
    gid: str
    sku: Optional[str]
    price: str
    quantity: int = 0
    enabled: bool = False
    product_title: str = ""


@dataclass(frozen=True)
class Location:
    id: int
    name: str


@dataclass(frozen=True)
class DraftOrderRef:
    gid: str
    name: str
    order_gid: Optional[str] = None
    order_name: Optional[str] = None
    status: str = "OPEN"

    @property
    def completed(self) -> bool:
        return self.status == "COMPLETED" or bool(self.order_gid)


# =========================================================
# Reconciliation plan / result
# =========================================================

@dataclass(frozen=True)
class PriceChange:
    variant_id: int
    sku: str
    old_price: str
    new_price: str


@dataclass(frozen=True)
class ProductToCreate:
    entry: CatalogEntry
    variants: tuple

    @property
    def handle(self) -> str:
        return self.entry.handle

    def to_dict(self) -> dict:
        return {"handle": self.entry.handle, "title": self.entry.title, "variantCount": len(self.variants)}


@dataclass(frozen=True)
class MetafieldWrite:
    owner_gid: str
    metafield: Metafield

    def to_input(self) -> dict:
        return {
            "ownerId": self.owner_gid,
            "namespace": self.metafield.namespace,
            "key": self.metafield.key,
            "type": self.metafield.type,
            "value": self.metafield.value,
        }


@dataclass(frozen=True)
class TrackingFix:
    sku: str
    inventory_item_id: int


@dataclass(frozen=True)
class ProductToUpdate:
    handle: str
    title: str
    product_id: int
    price_changes: tuple
    existing_variant_count: int
    new_variant_count: int
    metafields: tuple = ()
    untracked: tuple = ()

    def to_dict(self) -> dict:
        return {
            "handle": self.handle,
            "title": self.title,
            "productId": self.product_id,
            "existingVariantCount": self.existing_variant_count,
            "newVariantCount": self.new_variant_count,
            "priceChanges": [
                {"variantId": c.variant_id, "sku": c.sku, "from": c.old_price, "to": c.new_price}
                for c in self.price_changes
            ],
            "metafields": [{"ownerId": w.owner_gid, "key": w.metafield.label} for w in self.metafields],
            "untracked": [f.sku for f in self.untracked],
        }


@dataclass
class SyncPlan:
    to_create: list = field(default_factory=list)
    to_update: list = field(default_factory=list)
    source_products: int = 0
    source_products_enabled: int = 0
    destination_products: int = 0

    @property
    def is_empty(self) -> bool:
        return not self.to_create and not self.to_update

    def to_dict(self) -> dict:
        return {
            "sourceProducts": self.source_products,
            "sourceProductsForDestination": self.source_products_enabled,
            "destinationProductsExisting": self.destination_products,
            "toCreate": [p.to_dict() for p in self.to_create],
            "toUpdate": [p.to_dict() for p in self.to_update],
        }


@dataclass(frozen=True)
class ItemFailure:
    key: str
    action: str
    error: str


@dataclass
class ApplyResult:
    created: int = 0
    updated: int = 0
    tracked: int = 0
    metafields_set: int = 0
    failures: list = field(default_factory=list)
    tracking_failures: list = field(default_factory=list)
    created_products: list = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "created": self.created,
            "updated": self.updated,
            "trackingEnabled": self.tracked,
            "metafieldsSet": self.metafields_set,
            "failures": [asdict(f) for f in self.failures],
            "trackingFailures": [asdict(f) for f in self.tracking_failures],
        }


@dataclass(frozen=True)
class ProductSyncOutcome:
    status: str
    handle: Optional[str] = None
    product_id: Optional[int] = None
    prices_updated: int = 0
    metafields_set: int = 0
    tracking_enabled: int = 0
    error: Optional[str] = None

    def to_dict(self) -> dict:
        out = {"status": self.status, "handle": self.handle}
        if self.product_id is not None:
            out["destinationProductId"] = self.product_id
        if self.status == "product-updated":
            out["pricesUpdated"] = self.prices_updated
            out["metafieldsSet"] = self.metafields_set
            out["trackingEnabled"] = self.tracking_enabled
        if self.error:
            out["error"] = self.error
        return out


# =========================================================
# Inventory
# =========================================================

@dataclass(frozen=True)
class InventoryOutcome:
    status: str
    sku: Optional[str] = None
    available: Optional[int] = None
    inventory_item_id: Optional[int] = None
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {k: v for k, v in asdict(self).items() if v is not None}


@dataclass
class InventoryReport:
    location_id: Optional[int] = None
    outcomes: list = field(default_factory=list)

    def count(self, status: str) -> int:
        return sum(1 for o in self.outcomes if o.status == status)

    @property
    def updated(self) -> int:
        return self.count("inventory-updated")

    @property
    def failed(self) -> int:
        return self.count("failed")

    def to_dict(self) -> dict:
        return {
            "locationId": self.location_id,
            "inventoryUpdated": self.updated,
            "inventoryFailed": self.failed,
            "skipped": [o.to_dict() for o in self.outcomes if o.status not in ("inventory-updated", "failed")],
            "failures": [o.to_dict() for o in self.outcomes if o.status == "failed"],
        }


# =========================================================
# Order mirroring
# =========================================================

@dataclass(frozen=True)
class MirrorLine:
    variant_gid: str
    sku: str
    quantity: int
    discount_percent: Decimal = Decimal("0")


@dataclass(frozen=True)
class MirrorOrderRequest:
    order_id: str
    order_name: str
    lines: tuple = ()
    dropped: tuple = ()

    @property
    def origin_tag(self) -> str:
        return f"mirror-origin-{self.order_id}"


@dataclass(frozen=True)
class MirrorResult:
    status: str
    request: Optional[MirrorOrderRequest] = None
    draft_order: Optional[DraftOrderRef] = None
    error: Optional[str] = None

    def to_dict(self) -> dict:
        out: dict = {"status": self.status}
        if self.request is not None:
            out["originOrder"] = self.request.order_name or self.request.order_id
            out["lines"] = [
                {"sku": li.sku, "quantity": li.quantity, "discountPercent": str(li.discount_percent)}
                for li in self.request.lines
            ]
            if self.request.dropped:
                out["dropped"] = list(self.request.dropped)
        if self.draft_order is not None:
            out["draftOrder"] = {"id": self.draft_order.gid, "name": self.draft_order.name}
            if self.draft_order.order_gid:
                out["order"] = {"id": self.draft_order.order_gid, "name": self.draft_order.order_name}
        if self.error:
            out["error"] = self.error
        return out


# =========================================================
# Metafield definitions
# =========================================================

@dataclass
class DefinitionSyncReport:
    created: list = field(default_factory=list)
    existing: list = field(default_factory=list)
    skipped: list = field(default_factory=list)
    failures: list = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "created": self.created,
            "existing": self.existing,
            "skipped": self.skipped,
            "failures": [asdict(f) for f in self.failures],
        }
