# storemirror/services/feed.py
from typing import Optional

from ..clients.stores import SourceStore
from ..models import CatalogEntry
from ..utils.logger import debug, info

MAX_PAGE_SIZE = 250


class FeedLoader:
    """Read-only view of the source catalog: active products with their sync annotations."""

    def __init__(self, source: SourceStore, page_size: int = 50):
        self.source = source
        self.page_size = min(max(int(page_size), 1), MAX_PAGE_SIZE)

    def load(self) -> list[CatalogEntry]:
        entries: list[CatalogEntry] = []
        cursor: Optional[str] = None
        pages = 0
        while True:
            page, has_next, cursor = self.source.products_page(self.page_size, cursor)
            pages += 1
            entries.extend(e for e in page if e.is_active)
            debug(f"[feed] page {pages}: {len(page)} products")
            if not has_next or not cursor:
                break
        info(f"[feed] loaded {len(entries)} active products from {self.source.name} in {pages} page(s)")
        return entries

    def load_product(self, product_id) -> Optional[CatalogEntry]:
        return self.source.product(product_id)


def enabled_subset(entries: list[CatalogEntry]) -> list[tuple[CatalogEntry, list]]:
    """(entry, syncable variants) for every product with at least one enabled, SKU-bearing variant."""
    out = []
    for entry in entries:
        variants = entry.syncable_variants()
        for v in entry.variants:
            if v.enabled and not v.sku:
                debug("[feed] enabled variant without SKU skipped", handle=entry.handle, variant=v.id)
        if variants:
            out.append((entry, variants))
    return out
