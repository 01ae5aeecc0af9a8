"""
SKU joins between the two stores.

The product webhook, the reconciliation pass, the inventory push and the order
mirror all match variants by SKU through these two functions, so they cannot
drift apart.
"""

from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

from ..clients.stores import DestinationStore, SourceStore
from ..models import DestinationVariant, SourceVariant
from ..utils.logger import error, warn

T = TypeVar("T")

FOUND = "found"
MISSING = "missing"
COLLISION = "collision"


@dataclass(frozen=True)
class Resolution(Generic[T]):
    status: str
    sku: str
    variant: Optional[T] = None
    matches: int = 0

    @property
    def found(self) -> bool:
        return self.status == FOUND


def _exact(sku: str, candidates: list) -> list:
    # the search API is token based; only byte-equal SKUs count
    return [c for c in candidates if c.sku == sku]


def _resolve(store_label: str, sku: str, candidates: list) -> Resolution:
    matches = _exact(sku, candidates)
    if not matches:
        warn(f"[resolve] no {store_label} variant for SKU", sku=sku)
        return Resolution(MISSING, sku)
    if len(matches) > 1:
        error(f"[resolve] SKU collision on {store_label}, not choosing one", sku=sku, matches=len(matches))
        return Resolution(COLLISION, sku, matches=len(matches))
    return Resolution(FOUND, sku, matches[0], 1)


def resolve_destination_variant(destination: DestinationStore, sku: str) -> Resolution[DestinationVariant]:
    return _resolve("destination", sku, destination.variants_by_sku(sku))


def resolve_source_variant(source: SourceStore, sku: str) -> Resolution[SourceVariant]:
    return _resolve("source", sku, source.variants_by_sku(sku))


def index_by_sku(store_label: str, variants) -> dict:
    """SKU -> variant for an already-fetched snapshot. Colliding SKUs are logged and left out."""
    seen: dict = {}
    collided = set()
    for v in variants:
        if not v.sku:
            continue
        if v.sku in seen:
            collided.add(v.sku)
            continue
        seen[v.sku] = v
    for sku in collided:
        error(f"[resolve] SKU collision on {store_label}, not choosing one", sku=sku)
        seen.pop(sku, None)
    return seen
