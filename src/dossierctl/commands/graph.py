"""Command group: constraint graph inspection and maintenance."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from dossierctl.commands._base import NODE, DossierGroup
from dossierctl.services.graph import GraphService

if TYPE_CHECKING:
    from dossierctl.commands._context import AppContext
    from dossierctl.domain.nodes import Node

_GRAPH_EXAMPLES = """\
  dossierctl graph contradictions
  dossierctl graph path doc1 doc7#s2
  dossierctl graph check
  dossierctl graph rebuild"""


@click.group(cls=DossierGroup, examples=_GRAPH_EXAMPLES)
@click.pass_obj
def graph(app: AppContext) -> None:
    """Inspect the coreference constraint graph."""


@graph.command(
    examples="""\
  dossierctl graph contradictions
  dossierctl --json graph contradictions"""
)
@click.pass_obj
def contradictions(app: AppContext) -> None:
    """List labels rejected as contradictions."""
    app.emit(GraphService(app.store).contradictions())


@graph.command(
    examples="""\
  dossierctl graph path doc1 doc3
  dossierctl -v graph path doc1#s1 doc9"""
)
@click.argument("source", type=NODE)
@click.argument("target", type=NODE)
@click.pass_obj
def path(app: AppContext, source: Node, target: Node) -> None:
    """Find the shortest chain of positive labels between two nodes."""
    app.emit(GraphService(app.store).path(source, target))


@graph.command(
    examples="""\
  dossierctl graph check
  dossierctl --json graph check"""
)
@click.pass_obj
def check(app: AppContext) -> None:
    """Verify class invariants and print graph statistics."""
    app.emit(GraphService(app.store).check())


@graph.command(
    examples="""\
  dossierctl graph rebuild"""
)
@click.pass_obj
def rebuild(app: AppContext) -> None:
    """Replay the label ledger into a fresh graph."""
    app.emit(GraphService(app.store).rebuild())
