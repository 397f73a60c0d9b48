"""Tests for UpgradeService: database migration with Alembic."""

from __future__ import annotations

from alembic import command
from sqlalchemy import inspect

from dossierctl.infrastructure.database.migrations import build_config
from dossierctl.infrastructure.store import Store
from dossierctl.services.upgrade import BACKUP_MAX_COUNT, UpgradeService
from tests.conftest import append, make_label

HEAD = "002_feature_collections"


def _downgrade_to_baseline(store: Store) -> None:
    command.downgrade(build_config(store.db_path), "001_baseline")


# ---------------------------------------------------------------------------
# check_pending()
# ---------------------------------------------------------------------------


class TestCheckPending:
    def test_fresh_store_is_current(self, store: Store) -> None:
        result = UpgradeService(store).check_pending()
        assert result.ok
        assert result.data["pending_count"] == 0
        assert result.data["current"] == result.data["head"] == HEAD

    def test_lists_pending_revisions(self, store: Store) -> None:
        _downgrade_to_baseline(store)
        result = UpgradeService(store).check_pending()
        assert result.ok
        assert result.data["current"] == "001_baseline"
        assert [p["revision"] for p in result.data["pending"]] == [HEAD]


# ---------------------------------------------------------------------------
# apply()
# ---------------------------------------------------------------------------


class TestApply:
    def test_already_current(self, store: Store) -> None:
        result = UpgradeService(store).apply()
        assert result.ok
        assert result.data["applied_count"] == 0
        assert "already up to date" in result.data["message"].lower()

    def test_migrates_with_backup(self, store: Store) -> None:
        append(store, make_label("a", "b"))
        _downgrade_to_baseline(store)

        result = UpgradeService(store).apply()
        assert result.ok
        assert result.data["applied_count"] == 1
        assert result.data["current"] == HEAD
        assert result.warnings == []

        backups = list((store.db_path.parent / "backups").glob("*.db"))
        assert len(backups) == 1
        assert "feature_collections" in inspect(store.engine).get_table_names()
        assert store.labels.count() == 1

    def test_backups_pruned(self, store: Store) -> None:
        backup_dir = store.db_path.parent / "backups"
        for i in range(BACKUP_MAX_COUNT + 3):
            (backup_dir / f"dossier-2020010{i:02d}.db").write_bytes(b"")

        UpgradeService(store)._backup_db()
        assert len(list(backup_dir.glob("dossier-*.db"))) == BACKUP_MAX_COUNT
