# storemirror/services/metafields.py
from typing import Optional

from ..clients.schema import to_gid
from ..clients.shopify import ShopifyError, UserErrors
from ..clients.stores import StoreGateway
from ..models import CatalogEntry, DefinitionSyncReport, DestinationProduct, ItemFailure, MetafieldWrite
from ..utils.logger import error, info, warn
from .resolve import index_by_sku

# metafieldsSet rejects list values without their definition's validations
SKIPPED_TYPE_PREFIX = "list."

DEFINITION_OWNER_TYPES = ("PRODUCT", "PRODUCTVARIANT")


def mirrorable(metafields) -> list:
    return [m for m in metafields if not m.type.startswith(SKIPPED_TYPE_PREFIX)]


def metafield_writes(entry: CatalogEntry, variants, product: DestinationProduct,
                     current: Optional[dict] = None) -> list[MetafieldWrite]:
    """Source product/variant metafields the destination product is missing or holds a different value for.

    ``current`` maps (owner gid, namespace, key) to the destination value; None means
    nothing is known and every mirrorable value is written.
    """
    current = current or {}
    product_gid = to_gid("Product", product.id)
    owners = [(product_gid, entry.metafields)]
    by_sku = index_by_sku("destination", product.variants)
    for v in variants:
        dv = by_sku.get(v.sku)
        if dv is not None:
            owners.append((to_gid("ProductVariant", dv.id), v.metafields))

    writes = []
    for owner, metafields in owners:
        for m in mirrorable(metafields):
            if current.get((owner, m.namespace, m.key)) != m.value:
                writes.append(MetafieldWrite(owner, m))
    return writes


def has_mirrorable(entry: CatalogEntry, variants) -> bool:
    return bool(mirrorable(entry.metafields)) or any(mirrorable(v.metafields) for v in variants)


# =========================================================
# Definitions
# =========================================================

def is_duplicate_definition(e: UserErrors) -> bool:
    msg = str(e).lower()
    return "already been taken" in msg or "already exists" in msg or "in use" in msg


def definition_input(node: dict, owner_type: str) -> dict:
    out = {
        "name": node.get("name") or node.get("key"),
        "namespace": node.get("namespace"),
        "key": node.get("key"),
        "description": node.get("description") or "",
        "type": (node.get("type") or {}).get("name"),
        "ownerType": owner_type,
    }
    validations = [
        {"name": v.get("name"), "value": v.get("value")}
        for v in node.get("validations") or [] if v.get("name")
    ]
    if validations:
        out["validations"] = validations
    return out


def sync_definitions(source: StoreGateway, destination: StoreGateway, namespace: str,
                     skip_keys=()) -> DefinitionSyncReport:
    """Create the source's product and variant metafield definitions on the destination.

    Definitions already present on the destination are reported as existing. Keys in
    ``skip_keys`` (the source-only annotations) are never copied.
    """
    report = DefinitionSyncReport()
    for owner_type in DEFINITION_OWNER_TYPES:
        for node in source.metafield_definitions(owner_type, namespace):
            label = f"{owner_type}:{node.get('namespace')}.{node.get('key')}"
            if node.get("key") in skip_keys:
                report.skipped.append(label)
                continue
            try:
                destination.create_metafield_definition(definition_input(node, owner_type))
            except UserErrors as e:
                if is_duplicate_definition(e):
                    report.existing.append(label)
                    continue
                warn("[definitions] rejected by destination", definition=label, err=e)
                report.failures.append(ItemFailure(label, "create-definition", str(e)))
                continue
            except ShopifyError as e:
                error("[definitions] create failed", definition=label, err=e)
                report.failures.append(ItemFailure(label, "create-definition", str(e)))
                continue
            report.created.append(label)

    info(f"[definitions] created={len(report.created)} existing={len(report.existing)} "
         f"skipped={len(report.skipped)} failed={len(report.failures)}")
    return report
