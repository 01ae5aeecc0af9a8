# storemirror/services/reconcile.py
from ..utils.logger import info
from .container import Services


def reconcile(svc: Services, apply: bool = False, inventory: bool = True) -> dict:
    """Full catalog pass. Report-only unless `apply`; inventory is pushed only when applying."""
    plan = svc.products.plan()
    report = {"dryRun": not apply, "plan": plan.to_dict()}
    if not apply:
        info(f"[reconcile] dry run: {len(plan.to_create)} to create, {len(plan.to_update)} to update")
        return report

    report["applied"] = svc.products.apply(plan).to_dict()
    if inventory:
        report["inventory"] = svc.inventory.sync_all().to_dict()
    return report
