# storemirror/services/container.py
import atexit
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Optional

from flask import current_app

from ..clients.shopify import StoreClient
from ..clients.stores import DestinationStore, SourceStore
from ..config import Settings, StoreConfig
from .feed import FeedLoader
from .inventory import InventorySyncEngine
from .orders import OrderMirrorEngine
from .products import ProductSyncEngine

EXTENSION_KEY = "storemirror"


@dataclass
class Services:
    """Everything a request handler needs, built once per app from Settings."""

    settings: Settings
    source: SourceStore
    destination: DestinationStore
    feed: FeedLoader
    products: ProductSyncEngine
    inventory: InventorySyncEngine
    orders: OrderMirrorEngine
    executor: Optional[ThreadPoolExecutor] = None

    def pool(self) -> ThreadPoolExecutor:
        if self.executor is None:
            self.executor = ThreadPoolExecutor(
                max_workers=self.settings.webhook_workers, thread_name_prefix="webhook"
            )
            atexit.register(self.shutdown)
        return self.executor

    def shutdown(self, wait: bool = True) -> None:
        executor, self.executor = self.executor, None
        if executor is not None:
            executor.shutdown(wait=wait)


def _client(store: StoreConfig, settings: Settings) -> StoreClient:
    return StoreClient(
        store.name,
        store.domain or "",
        store.token or "",
        api_version=settings.api_version,
        timeout=settings.http_timeout,
    )


def build_services(settings: Settings) -> Services:
    source = SourceStore(
        _client(settings.source, settings),
        namespace=settings.annotation_namespace,
        enabled_key=settings.annotation_enabled_key,
        price_key=settings.annotation_price_key,
    )
    destination = DestinationStore(_client(settings.destination, settings))
    feed = FeedLoader(source, settings.feed_page_size)
    return Services(
        settings=settings,
        source=source,
        destination=destination,
        feed=feed,
        products=ProductSyncEngine(
            feed, destination, settings.destination_page_size, settings.annotation_namespace
        ),
        inventory=InventorySyncEngine(feed, source, destination, settings.location_name),
        orders=OrderMirrorEngine(source, settings.mirror_customer_id or "", settings.mirror_order_tag),
    )


def current() -> Services:
    return current_app.extensions[EXTENSION_KEY]
