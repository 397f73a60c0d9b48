"""UpgradeService: bring an existing store's schema up to the package head.

``apply`` snapshots the database file into ``backups/``, runs the pending
Alembic revisions on the store's own engine, then replays the ledger so a
migration that broke the label table surfaces as a warning immediately.
"""

from __future__ import annotations

import logging
import shutil
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from alembic import command
from alembic.script import ScriptDirectory

from dossierctl.infrastructure.database.migrations import (
    MIGRATIONS_DIR,
    build_config,
    current_revision,
    head_revision,
)
from dossierctl.services.base import BaseService
from dossierctl.services.result import ErrorCode, ServiceResult
from dossierctl.services.telemetry import trace_span, traced

logger = logging.getLogger(__name__)

BACKUP_MAX_COUNT = 10


def _pending_between(current: str | None, head: str | None) -> list[dict[str, Any]]:
    """Revisions after *current* up to *head*, oldest first."""
    if head is None or current == head:
        return []
    script = ScriptDirectory(str(MIGRATIONS_DIR))
    lower = current if current is not None else "base"
    return [
        {"revision": rev.revision, "description": rev.doc or ""}
        for rev in reversed(list(script.walk_revisions(base=lower, head=head)))
        if rev.revision != current
    ]


class UpgradeService(BaseService):
    """Inspect and apply schema migrations for one store."""

    @traced
    def check_pending(self) -> ServiceResult:
        op = "upgrade"
        try:
            head = head_revision()
            with self._store.engine.connect() as conn:
                current = current_revision(conn)
            pending = _pending_between(current, head)
        except Exception as exc:
            return ServiceResult.failure(
                op, ErrorCode.CHECK_FAILED, f"Failed to check migrations: {exc}"
            )

        return ServiceResult(
            ok=True,
            op=op,
            data={
                "pending_count": len(pending),
                "pending": pending,
                "current": current,
                "head": head,
            },
        )

    @traced
    def apply(self) -> ServiceResult:
        """Back up, migrate to head and replay the ledger."""
        op = "upgrade"
        status = self.check_pending()
        if not status.ok:
            return status

        head = status.data["head"]
        pending_count = status.data["pending_count"]
        if pending_count == 0:
            return ServiceResult(
                ok=True,
                op=op,
                data={
                    "applied_count": 0,
                    "current": head,
                    "message": "Database is already up to date",
                },
            )

        try:
            backup_path = self._backup_db()
        except OSError as exc:
            return ServiceResult.failure(op, ErrorCode.MIGRATION_FAILED, f"Backup failed: {exc}")

        try:
            with trace_span("migrate"):
                with self._store.engine.begin() as conn:
                    command.upgrade(build_config(self._store.db_path, connection=conn), "head")
        except Exception as exc:
            return ServiceResult.failure(
                op,
                ErrorCode.MIGRATION_FAILED,
                f"Migration failed: {exc}. Backup at: {backup_path}",
                backup_path=str(backup_path),
            )
        logger.info("Migrated %s to %s", self._store.db_path, head)

        from dossierctl.services.graph import GraphService

        warnings: list[str] = []
        replayed = GraphService(self._store).rebuild()
        if replayed.error is not None:
            warnings.append(f"Post-migration replay failed: {replayed.error.message}")

        return ServiceResult(
            ok=True,
            op=op,
            data={
                "applied_count": pending_count,
                "current": head,
                "backup_path": str(backup_path),
            },
            warnings=warnings,
        )

    def _backup_db(self) -> Path:
        """Copy the database into ``backups/``, keeping the newest BACKUP_MAX_COUNT."""
        db_path = self._store.db_path
        backup_dir = db_path.parent / "backups"
        backup_dir.mkdir(parents=True, exist_ok=True)

        stamp = datetime.now(UTC).strftime("%Y%m%dT%H%M%S%f")
        backup_path = backup_dir / f"{db_path.stem}-{stamp}.db"
        shutil.copy2(db_path, backup_path)

        existing = sorted(backup_dir.glob(f"{db_path.stem}-*.db"))
        for stale in existing[: max(0, len(existing) - BACKUP_MAX_COUNT)]:
            stale.unlink(missing_ok=True)
        return backup_path
