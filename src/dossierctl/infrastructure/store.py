"""Store: repository pattern with transaction coordination.

The Store is the single dependency injected into every service. It owns
the database engine, the constraint graph engine and the repositories.
The :meth:`transaction` context manager makes a label append atomic with
respect to the derived graph:

- **Writer lock**: held for the whole transaction, so two appends never
  interleave their union/merge steps.
- **DB**: native SQLAlchemy ``engine.begin()`` with auto-commit/rollback.
- **Graph**: labels appended through the transaction are incorporated only
  after the DB commit succeeds. If incorporation itself fails the graph is
  invalidated and rebuilt from the committed ledger on next access.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING

from dossierctl.infrastructure.database.engine import init_database
from dossierctl.infrastructure.graph.engine import GraphEngine
from dossierctl.infrastructure.repositories.features import FeatureRepository
from dossierctl.infrastructure.repositories.labels import LabelRepository

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path

    from sqlalchemy import Connection
    from sqlalchemy.engine import Engine

    from dossierctl.config.settings import DossierSettings
    from dossierctl.domain.features import FeatureCollection
    from dossierctl.domain.labels import Contradiction, Label

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# StoreTransaction: yielded to callers within transaction()
# ---------------------------------------------------------------------------


@dataclass
class StoreTransaction:
    """Active transaction with a DB connection and pending graph updates.

    All label writes must go through :meth:`append_label` so the Store can
    incorporate them after commit. Direct inserts bypass the graph.
    """

    conn: Connection
    _pending: list[Label] = field(default_factory=list, repr=False)
    contradictions: list[Contradiction] = field(default_factory=list)

    def append_label(self, label: Label) -> int:
        """Insert *label* into the ledger; returns its sequence id."""
        seq = LabelRepository.append(self.conn, label)
        self._pending.append(replace(label, seq=seq))
        return seq

    def put_features(self, collection: FeatureCollection) -> None:
        FeatureRepository.put(self.conn, collection)


# ---------------------------------------------------------------------------
# Store: the repository
# ---------------------------------------------------------------------------


class Store:
    """Repository encapsulating database, ledger and constraint graph access.

    Constructed from :class:`DossierSettings`; services receive the Store
    via their :class:`BaseService` constructor.
    """

    def __init__(self, settings: DossierSettings) -> None:
        self._settings = settings
        fresh = not settings.db_path.exists()
        self._engine: Engine = init_database(settings.db_path)
        if fresh:
            from dossierctl.infrastructure.database.migrations import stamp_head

            stamp_head(settings.db_path)
        self._graph = GraphEngine(self._engine, check_invariants=settings.graph.check_invariants)
        self.labels = LabelRepository(self._engine)
        self.features = FeatureRepository(self._engine)

    @property
    def db_path(self) -> Path:
        return self._settings.db_path

    @property
    def engine(self) -> Engine:
        """The underlying SQLAlchemy engine (for direct access when needed)."""
        return self._engine

    @property
    def graph(self) -> GraphEngine:
        """The constraint graph engine (lazy-built from the ledger)."""
        return self._graph

    @property
    def settings(self) -> DossierSettings:
        return self._settings

    def close(self) -> None:
        self._engine.dispose()

    @contextmanager
    def transaction(self) -> Iterator[StoreTransaction]:
        """Serialized write transaction across the ledger and the graph.

        Either every label appended in the block is recorded and
        incorporated, or none is observable.

        Usage::

            with store.transaction() as txn:
                txn.append_label(label)
            txn.contradictions  # filled in after commit
        """
        with self._graph.write_lock:
            # Build before writing so the replay cannot include pending labels.
            _ = self._graph.graph
            with self._engine.begin() as conn:
                txn = StoreTransaction(conn=conn)
                yield txn

            try:
                for label in txn._pending:
                    contradiction = self._graph.incorporate(label)
                    if contradiction is not None:
                        txn.contradictions.append(contradiction)
            except Exception:
                logger.exception("Graph incorporation failed; rebuilding from ledger")
                self._graph.invalidate()
                raise
