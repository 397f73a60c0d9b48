"""Command group: feature collections per content item."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

import click

from dossierctl.commands._base import DossierGroup
from dossierctl.services.feature import FeatureService
from dossierctl.services.result import ErrorCode, ServiceResult

if TYPE_CHECKING:
    from dossierctl.commands._context import AppContext

_FC_EXAMPLES = """\
  dossierctl fc put doc1 '{"title": "Paris", "NAME": {"Paris": 3, "paris": 1}}'
  dossierctl fc get doc1
  dossierctl fc value doc1 NAME
  dossierctl fc random"""


@click.group(cls=DossierGroup, examples=_FC_EXAMPLES)
@click.pass_obj
def fc(app: AppContext) -> None:
    """Store and resolve feature collections."""


@fc.command(
    examples="""\
  dossierctl fc put doc1 '{"title": "Paris"}'
  dossierctl fc put doc1 --file features.json"""
)
@click.argument("content_id")
@click.argument("features", required=False)
@click.option("--file", "source", type=click.File("r"), default=None, help="Read JSON from file.")
@click.pass_obj
def put(app: AppContext, content_id: str, features: str | None, source: Any) -> None:
    """Create or replace the feature collection of CONTENT_ID."""
    op = "put_features"
    if (features is None) == (source is None):
        app.emit(_invalid(op, "Pass the features as a JSON argument or with --file"))
        return
    try:
        payload = json.loads(features) if features is not None else json.load(source)
    except json.JSONDecodeError as exc:
        app.emit(_invalid(op, f"Invalid JSON: {exc}"))
        return
    if not isinstance(payload, dict):
        app.emit(_invalid(op, "Expected a JSON object of feature name to value"))
        return
    app.emit(FeatureService(app.store).put(content_id, payload))


@fc.command(
    examples="""\
  dossierctl fc get doc1
  dossierctl --json fc get doc1"""
)
@click.argument("content_id")
@click.pass_obj
def get(app: AppContext, content_id: str) -> None:
    """Show the feature collection of CONTENT_ID."""
    app.emit(FeatureService(app.store).get(content_id))


@fc.command(
    examples="""\
  dossierctl fc value doc1 title
  dossierctl fc value doc1 NAME --raw"""
)
@click.argument("content_id")
@click.argument("name")
@click.option("--raw", is_flag=True, help="Show the stored value instead of resolving it.")
@click.pass_obj
def value(app: AppContext, content_id: str, name: str, raw: bool) -> None:
    """Resolve feature NAME of CONTENT_ID to a single value."""
    app.emit(FeatureService(app.store).resolve(content_id, name, raw=raw))


@fc.command(
    examples="""\
  dossierctl fc random
  dossierctl --json fc random"""
)
@click.pass_obj
def random(app: AppContext) -> None:
    """Show one stored feature collection picked at random."""
    app.emit(FeatureService(app.store).random())


def _invalid(op: str, message: str) -> ServiceResult:
    return ServiceResult.failure(op, ErrorCode.INVALID_FEATURES, message)
