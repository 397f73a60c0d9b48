"""Click subcommands for dossierctl.

Each entry in ``_COMMANDS`` names a module and the Click object it
exports; :func:`register_commands` attaches them to the root group.
"""

from __future__ import annotations

from importlib import import_module
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import click

_COMMANDS: tuple[tuple[str, str], ...] = (
    ("dossierctl.commands.label", "label"),
    ("dossierctl.commands.fc", "fc"),
    ("dossierctl.commands.graph", "graph"),
    ("dossierctl.commands.upgrade", "upgrade"),
)


def register_commands(cli: click.Group) -> None:
    for module_name, attr in _COMMANDS:
        cli.add_command(getattr(import_module(module_name), attr))
