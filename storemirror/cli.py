# storemirror/cli.py
import json

import click
from flask.cli import with_appcontext

from .services.container import current
from .services.reconcile import reconcile


@click.command("reconcile")
@click.option("--apply", "apply_", is_flag=True, help="Create/update destination products instead of only reporting.")
@click.option("--skip-inventory", is_flag=True, help="With --apply, do not push inventory levels.")
@with_appcontext
def reconcile_command(apply_: bool, skip_inventory: bool):
    """Compare the source feed with the destination catalog and print the JSON report."""
    svc = current()
    svc.settings.require("source", "destination")
    report = reconcile(svc, apply=apply_, inventory=not skip_inventory)
    click.echo(json.dumps(report, indent=2, default=str))
