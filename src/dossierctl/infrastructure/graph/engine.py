"""GraphEngine: lazily built ConstraintGraph over the label ledger.

The graph is built on first access by replaying every stored label in
append order, then kept current incrementally: each committed append is
incorporated while the writer lock is held. Readers take the lock only to
fetch the cached immutable snapshot. The snapshot is rebuilt in full when
the version has moved, so the first read after each write costs time
proportional to the whole graph; later reads reuse it until the next write.
A failed write invalidates the graph so the next access rebuilds from
committed ledger state.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

from dossierctl.infrastructure.graph.constraints import ConstraintGraph, GraphSnapshot
from dossierctl.infrastructure.repositories.labels import LabelRepository

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

    from dossierctl.domain.labels import Contradiction, Label

logger = logging.getLogger(__name__)


class GraphEngine:
    """Lazy-loading constraint graph backed by the SQLite label ledger."""

    def __init__(self, db: Engine, *, check_invariants: bool = False) -> None:
        self._labels = LabelRepository(db)
        self._check = check_invariants
        self._graph: ConstraintGraph | None = None
        self._snapshot: GraphSnapshot | None = None
        self.write_lock = threading.RLock()

    @property
    def graph(self) -> ConstraintGraph:
        """Return the live graph, building from the ledger on first access.

        Callers mutating or path-compressing the graph must hold
        :attr:`write_lock`.
        """
        with self.write_lock:
            if self._graph is None:
                self._graph = self._build_from_db()
            return self._graph

    def snapshot(self) -> GraphSnapshot:
        """Immutable view of the current graph, cached per version."""
        with self.write_lock:
            graph = self.graph
            if self._snapshot is None or self._snapshot.version != graph.version:
                self._snapshot = graph.snapshot()
            return self._snapshot

    def incorporate(self, label: Label) -> Contradiction | None:
        """Fold one committed label into the graph."""
        with self.write_lock:
            graph = self.graph
            contradiction = graph.incorporate(label)
            if self._check:
                graph.check_invariants()
            return contradiction

    def invalidate(self) -> None:
        """Drop the cached graph, forcing a replay on next access."""
        with self.write_lock:
            self._graph = None
            self._snapshot = None

    def _build_from_db(self) -> ConstraintGraph:
        """Replay the whole ledger through ``incorporate``."""
        g = ConstraintGraph()
        count = 0
        for label in self._labels.iter_labels():
            g.incorporate(label)
            count += 1
        if self._check:
            g.check_invariants()
        logger.debug(
            "Constraint graph built from %d labels: %d nodes in %d classes",
            count,
            g.node_count,
            g.class_count,
        )
        return g
