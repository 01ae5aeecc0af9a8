# storemirror/services/orders.py
import threading
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from ..clients.schema import numeric_id
from ..clients.shopify import ShopifyError
from ..clients.stores import SourceStore
from ..config import ConfigurationError
from ..models import DraftOrderRef, MirrorLine, MirrorOrderRequest, MirrorResult, to_decimal
from ..utils.logger import error, info, warn
from .deadline import checkpoint
from .resolve import resolve_source_variant

ZERO = Decimal("0")
HUNDRED = Decimal("100")
CENT = Decimal("0.01")


# =========================================================
# Pricing helpers (pure)
# =========================================================

def discount_percent(base, paid) -> Decimal:
    """Percentage off ``base`` that lands on ``paid``, clamped to [0, 100], two decimals half-up."""
    base_d = to_decimal(base) or ZERO
    paid_d = to_decimal(paid)
    if base_d <= ZERO or paid_d is None:
        return ZERO.quantize(CENT)
    pct = (base_d - paid_d) / base_d * HUNDRED
    pct = max(ZERO, min(HUNDRED, pct))
    return pct.quantize(CENT, rounding=ROUND_HALF_UP)


def _quantity(line: dict) -> int:
    try:
        return int(line.get("quantity") or 0)
    except (TypeError, ValueError):
        return 0


def paid_unit_price(line: dict) -> Decimal:
    price = to_decimal(line.get("price")) or ZERO
    qty = _quantity(line)
    if qty <= 0:
        return price
    discounted = ZERO
    for alloc in line.get("discount_allocations") or []:
        discounted += to_decimal(alloc.get("amount")) or ZERO
    return max(ZERO, price - discounted / qty)


def preferred_draft(drafts: list) -> Optional[DraftOrderRef]:
    """A completed draft if there is one, else the oldest."""
    if not drafts:
        return None
    return min(drafts, key=lambda d: (not d.completed, numeric_id(d.gid)))


# =========================================================
# Engine
# =========================================================

class OrderMirrorEngine:
    """Turns a destination order into a completed, payment-pending draft order on the source."""

    def __init__(self, source: SourceStore, customer_id: str, tag: str = "MIRROR ORDER"):
        self.source = source
        self.customer_id = customer_id
        self.tag = tag

    def build_request(self, order: dict) -> MirrorOrderRequest:
        order_id = str(order.get("id") or "")
        order_name = order.get("name") or ""
        lines, dropped = [], []

        for li in order.get("line_items") or []:
            sku = (li.get("sku") or "").strip()
            qty = _quantity(li)
            if not sku:
                warn("[orders] line item without SKU dropped", order=order_name, title=li.get("title"))
                dropped.append(li.get("title") or "")
                continue
            if qty <= 0:
                warn("[orders] line item with no quantity dropped", order=order_name, sku=sku)
                dropped.append(sku)
                continue
            res = resolve_source_variant(self.source, sku)
            if not res.found:
                warn(f"[orders] {sku} not resolvable on source ({res.status}), dropped", order=order_name)
                dropped.append(sku)
                continue
            pct = discount_percent(res.variant.price, paid_unit_price(li))
            lines.append(MirrorLine(res.variant.gid, sku, qty, pct))

        return MirrorOrderRequest(order_id, order_name, tuple(lines), tuple(dropped))

    def draft_input(self, req: MirrorOrderRequest) -> dict:
        items = []
        for line in req.lines:
            item = {"variantId": line.variant_gid, "quantity": line.quantity}
            if line.discount_percent > ZERO:
                item["appliedDiscount"] = {
                    "valueType": "PERCENTAGE",
                    "value": float(line.discount_percent),
                    "title": "Mirror pricing",
                }
            items.append(item)
        return {
            "customerId": self.customer_id,
            "useCustomerDefaultAddress": True,
            "tags": [self.tag, req.origin_tag],
            "note": f"Mirror of {req.order_name} ({req.order_id})",
            "lineItems": items,
        }

    def existing_draft(self, req: MirrorOrderRequest) -> Optional[DraftOrderRef]:
        return preferred_draft(self.source.draft_orders(f"tag:{req.origin_tag}"))

    def _settle(self, req: MirrorOrderRequest, mine: DraftOrderRef) -> DraftOrderRef:
        """Converge on one draft per origin order after creating ``mine``.

        Two deliveries of the same order can both miss each other's draft and create
        one. Both then agree on the preferred draft; the other is deleted.
        """
        try:
            drafts = self.source.draft_orders(f"tag:{req.origin_tag}")
        except ShopifyError as e:
            warn(f"[orders] {req.order_name}: duplicate check failed, keeping {mine.name}", err=e)
            return mine
        if not any(d.gid == mine.gid for d in drafts):
            drafts.append(mine)
        winner = preferred_draft(drafts)
        if winner.gid == mine.gid:
            return mine
        warn(f"[orders] {req.order_name}: {winner.name} already mirrors this order, deleting {mine.name}")
        try:
            self.source.delete_draft_order(mine.gid)
        except ShopifyError as e:
            error(f"[orders] deleting duplicate draft {mine.name} failed", err=e)
        return winner

    def mirror(self, order: dict, cancel: Optional[threading.Event] = None) -> MirrorResult:
        if not self.customer_id:
            raise ConfigurationError("MIRROR_CUSTOMER_ID is not set")
        if not order.get("line_items"):
            info("[orders] order has no line items", order=order.get("name"))
            return MirrorResult("no-line-items")

        req = self.build_request(order)
        if not req.lines:
            warn(f"[orders] {req.order_name}: no line item matched a source SKU")
            return MirrorResult("no-matching-items", req)

        draft = self.existing_draft(req)
        if draft is not None and draft.completed:
            info(f"[orders] {req.order_name} already mirrored as {draft.name}")
            return MirrorResult("already-mirrored", req, draft)

        if draft is None:
            checkpoint(cancel, f"creating the draft for {req.order_name}")
            try:
                draft = self.source.create_draft_order(self.draft_input(req))
            except ShopifyError as e:
                error(f"[orders] draft order create failed for {req.order_name}", err=e)
                return MirrorResult("draft-order-failed", req, error=str(e))
            info(f"[orders] {req.order_name}: created draft {draft.name}", lines=len(req.lines))
            draft = self._settle(req, draft)
            if draft.completed:
                return MirrorResult("already-mirrored", req, draft)
        else:
            info(f"[orders] {req.order_name}: resuming open draft {draft.name}")

        checkpoint(cancel, f"completing draft {draft.name}")
        try:
            completed = self.source.complete_draft_order(draft.gid, payment_pending=True)
        except ShopifyError as e:
            error(f"[orders] completing draft {draft.name} failed, left open for follow-up", err=e)
            return MirrorResult("draft-order-incomplete", req, draft, str(e))

        info(f"[orders] {req.order_name} mirrored as {completed.order_name or completed.name}")
        return MirrorResult("order-mirrored", req, completed)

    def complete_draft(self, draft_gid: str) -> MirrorResult:
        draft = self.source.draft_order(draft_gid)
        if draft is None:
            return MirrorResult("draft-not-found", error=f"draft order {draft_gid} not found")
        if draft.completed:
            return MirrorResult("already-mirrored", draft_order=draft)
        try:
            completed = self.source.complete_draft_order(draft.gid, payment_pending=True)
        except ShopifyError as e:
            error(f"[orders] manual completion of {draft.name} failed", err=e)
            return MirrorResult("draft-order-incomplete", draft_order=draft, error=str(e))
        info(f"[orders] {draft.name} completed manually -> {completed.order_name}")
        return MirrorResult("order-mirrored", draft_order=completed)
