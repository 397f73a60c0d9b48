"""Command group: append, list and query coreference labels."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

import click

from dossierctl.commands._base import NODE, DossierGroup
from dossierctl.domain.labels import Label
from dossierctl.domain.types import CorefValue, Predicate
from dossierctl.services.label import LabelService
from dossierctl.services.query import LabelFetcher
from dossierctl.services.result import ErrorCode, ServiceResult

if TYPE_CHECKING:
    from dossierctl.commands._context import AppContext
    from dossierctl.domain.nodes import Node

_LABEL_EXAMPLES = """\
  dossierctl label add doc1 doc2 --annotator alice
  dossierctl label add doc1#s1 doc3 --annotator bob --coref negative
  dossierctl label import labels.json
  dossierctl label list doc1
  dossierctl label query doc1 --which negative-inference
  dossierctl --json label query doc1 --perpage 50 --cursor <token>"""


@click.group(cls=DossierGroup, examples=_LABEL_EXAMPLES)
@click.pass_obj
def label(app: AppContext) -> None:
    """Append and query coreference labels."""


@label.command(
    examples="""\
  dossierctl label add doc1 doc2 --annotator alice
  dossierctl label add doc1#s1 doc2#s4 --annotator alice
  dossierctl label add doc1 doc3 --annotator bob --coref negative"""
)
@click.argument("node1", type=NODE)
@click.argument("node2", type=NODE)
@click.option("-a", "--annotator", required=True, help="Who made the judgment.")
@click.option(
    "--coref",
    type=click.Choice([v.value for v in CorefValue]),
    default=CorefValue.POSITIVE.value,
    show_default=True,
    help="Whether the two nodes corefer.",
)
@click.pass_obj
def add(app: AppContext, node1: Node, node2: Node, annotator: str, coref: str) -> None:
    """Record a label between NODE1 and NODE2 (``cid`` or ``cid#subtopic``)."""
    try:
        new = Label(
            node_a=node1, node_b=node2, annotator_id=annotator, coref_value=CorefValue(coref)
        )
    except ValueError as exc:
        app.emit(_invalid("append_label", str(exc)))
        return
    app.emit(LabelService(app.store).append(new))


@label.command(
    name="import",
    examples="""\
  dossierctl label import labels.json
  cat labels.json | dossierctl label import -""",
)
@click.argument("source", type=click.File("r"))
@click.pass_obj
def import_labels(app: AppContext, source: Any) -> None:
    """Append a JSON array of labels in one transaction.

    Each entry carries content_id1, content_id2, annotator_id, coref_value
    and optionally subtopic_id1, subtopic_id2.
    """
    op = "append_labels"
    try:
        entries = json.load(source)
    except json.JSONDecodeError as exc:
        app.emit(_invalid(op, f"Invalid JSON: {exc}"))
        return
    if not isinstance(entries, list):
        app.emit(_invalid(op, "Expected a JSON array of labels"))
        return

    labels: list[Label] = []
    for index, entry in enumerate(entries):
        try:
            labels.append(
                Label.of(
                    entry["content_id1"],
                    entry["content_id2"],
                    entry["annotator_id"],
                    entry.get("coref_value", CorefValue.POSITIVE.value),
                    subtopic_id1=entry.get("subtopic_id1"),
                    subtopic_id2=entry.get("subtopic_id2"),
                )
            )
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            app.emit(_invalid(op, f"Entry {index}: {exc!r}"))
            return
    app.emit(LabelService(app.store).append_many(labels))


@label.command(
    name="list",
    examples="""\
  dossierctl label list doc1
  dossierctl label list doc1#s1
  dossierctl -q label list doc1""",
)
@click.argument("node", type=NODE)
@click.pass_obj
def list_labels(app: AppContext, node: Node) -> None:
    """Show every stored label with NODE as an endpoint."""
    app.emit(LabelService(app.store).touching(node.content_id, node.subtopic_id))


@label.command(
    examples="""\
  dossierctl label query doc1
  dossierctl label query doc1 --subtopic s1 --which expanded
  dossierctl label query doc1 --perpage 10 --next
  dossierctl --json label query doc1 --perpage 10 --cursor <token>"""
)
@click.argument("content_id")
@click.option("--subtopic", "subtopic_id", default=None, help="Anchor on one sub-topic.")
@click.option(
    "--which",
    type=click.Choice([p.value for p in Predicate]),
    default=Predicate.CONNECTED.value,
    show_default=True,
    help="Traversal predicate.",
)
@click.option("--perpage", type=int, default=None, help="Page size.")
@click.option("--cursor", default=None, help="Resume after a previous page.")
@click.option("--next", "skip", count=True, help="Skip one page (repeatable).")
@click.pass_obj
def query(
    app: AppContext,
    content_id: str,
    subtopic_id: str | None,
    which: str,
    perpage: int | None,
    cursor: str | None,
    skip: int,
) -> None:
    """Find labels connecting CONTENT_ID to other nodes."""
    fetcher = LabelFetcher(app.store).cid(content_id).which(which)
    if subtopic_id is not None:
        fetcher = fetcher.subtopic(subtopic_id)
    if perpage is not None:
        fetcher = fetcher.perpage(perpage)
    if cursor is not None:
        fetcher = fetcher.next(cursor)
    for _ in range(skip):
        fetcher = fetcher.next()
    app.emit(fetcher.get())


def _invalid(op: str, message: str) -> ServiceResult:
    return ServiceResult.failure(op, ErrorCode.INVALID_LABEL, message)
