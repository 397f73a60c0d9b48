"""Shared pytest fixtures and test helpers for dossierctl tests."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

import pytest
from click.testing import CliRunner
from sqlalchemy.engine import Engine

from dossierctl.config.settings import DossierSettings
from dossierctl.domain.labels import Label
from dossierctl.domain.types import CorefValue
from dossierctl.infrastructure.database.engine import init_database
from dossierctl.infrastructure.store import Store

BASE_TIME = datetime(2024, 1, 1, 12, 0, tzinfo=UTC)


@pytest.fixture
def cli_runner() -> CliRunner:
    """Provide a Click CLI test runner."""
    return CliRunner()


@pytest.fixture
def db_engine(tmp_path: Path) -> Engine:
    """Initialized SQLite engine with all tables created."""
    engine = init_database(tmp_path / "dossier.db")
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def store(tmp_path: Path) -> Store:
    """Fully initialized store on a temp directory."""
    settings = DossierSettings.from_cli(data_root=tmp_path)
    s = Store(settings)
    try:
        yield s
    finally:
        s.close()


@pytest.fixture
def _isolated_store(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Change CWD to a temp directory so the CLI creates an isolated store.

    Use via ``@pytest.mark.usefixtures("_isolated_store")`` on command test
    classes. Also clears ``DOSSIER_*`` env vars that would leak in.
    """
    monkeypatch.delenv("DOSSIER_CONFIG", raising=False)
    monkeypatch.chdir(tmp_path)


# ---------------------------------------------------------------------------
# Shared test helpers (used across test modules)
# ---------------------------------------------------------------------------


def make_label(
    cid1: str,
    cid2: str,
    coref: str = "positive",
    *,
    sub1: str | None = None,
    sub2: str | None = None,
    annotator: str = "alice",
    minute: int = 0,
) -> Label:
    """Build a label with a deterministic ``created_at`` (BASE_TIME + minutes)."""
    return Label.of(
        cid1,
        cid2,
        annotator,
        CorefValue(coref),
        subtopic_id1=sub1,
        subtopic_id2=sub2,
        created_at=BASE_TIME + timedelta(minutes=minute),
    )


def append(store: Store, *labels: Label) -> dict[str, Any]:
    """Append labels via LabelService, asserting success."""
    from dossierctl.services.label import LabelService

    result = LabelService(store).append_many(labels)
    assert result.ok, result.error
    return result.data


def destinations(result: Any) -> list[str]:
    """``cid`` / ``cid#sub`` of every row's far endpoint, in page order."""
    out: list[str] = []
    for item in result.data["items"]:
        sub = item["subtopic_id2"]
        out.append(f"{item['content_id2']}#{sub}" if sub else item["content_id2"])
    return out
