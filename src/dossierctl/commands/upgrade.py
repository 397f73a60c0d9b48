"""``dossierctl upgrade``: migrate an existing store to the current schema."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from dossierctl.commands._base import DossierCommand
from dossierctl.services.upgrade import UpgradeService

if TYPE_CHECKING:
    from dossierctl.commands._context import AppContext

_UPGRADE_EXAMPLES = """\
  dossierctl upgrade --check
  dossierctl upgrade
  dossierctl --json upgrade --check"""


@click.command(cls=DossierCommand, examples=_UPGRADE_EXAMPLES)
@click.option(
    "--check",
    "dry_run",
    is_flag=True,
    help="List pending revisions and exit without touching the database.",
)
@click.pass_obj
def upgrade(app: AppContext, dry_run: bool) -> None:
    """Back up the store, apply pending schema revisions, replay the ledger."""
    service = UpgradeService(app.store)
    if dry_run:
        app.emit(service.check_pending())
    else:
        app.emit(service.apply())
