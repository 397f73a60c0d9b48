"""GraphService: inspection and maintenance of the constraint graph.

Read operations work on an immutable :class:`GraphSnapshot`; ``check``
and ``rebuild`` take the writer lock because they touch the live graph.
"""

from __future__ import annotations

from typing import Any

import networkx as nx
from sqlalchemy.exc import SQLAlchemyError

from dossierctl.domain.nodes import Node
from dossierctl.infrastructure.graph.constraints import GraphInvariantError
from dossierctl.services.base import BaseService
from dossierctl.services.result import ErrorCode, ServiceResult
from dossierctl.services.telemetry import trace_span, traced


class GraphService(BaseService):
    """Contradiction listing, label paths and invariant checks."""

    # ------------------------------------------------------------------
    # contradictions
    # ------------------------------------------------------------------

    @traced
    def contradictions(self) -> ServiceResult:
        """Every label rejected by the graph, in ledger order."""
        op = "contradictions"
        try:
            snap = self._store.graph.snapshot()
        except SQLAlchemyError as exc:
            return self._store_error(op, exc)

        items = [c.to_dict() for c in snap.contradictions]
        return ServiceResult(
            ok=True,
            op=op,
            data={"count": len(items), "items": items},
            meta={"graph_version": snap.version},
        )

    # ------------------------------------------------------------------
    # path: shortest chain of accepted positive labels
    # ------------------------------------------------------------------

    @traced
    def path(self, source: Node, target: Node) -> ServiceResult:
        """Find the shortest chain of positive labels linking two nodes.

        Each step carries the earliest label supporting that edge.
        """
        op = "path"
        try:
            snap = self._store.graph.snapshot()
        except SQLAlchemyError as exc:
            return self._store_error(op, exc)

        g = snap.positive
        for node, role in [(source, "source"), (target, "target")]:
            if node not in g:
                return ServiceResult.failure(
                    op, ErrorCode.NOT_FOUND, f"Node '{node}' ({role}) has no positive labels"
                )

        try:
            node_path = nx.shortest_path(g, source, target)
        except nx.NetworkXNoPath:
            return ServiceResult.failure(
                op, ErrorCode.NOT_FOUND, f"No positive path between '{source}' and '{target}'"
            )

        steps: list[dict[str, Any]] = []
        for u, v in zip(node_path, node_path[1:]):
            supporting = g.edges[u, v]["labels"]
            steps.append(
                {
                    "from": str(u),
                    "to": str(v),
                    "label": supporting[0].oriented(u).to_dict(),
                    "support": len(supporting),
                }
            )

        return ServiceResult(
            ok=True,
            op=op,
            data={
                "source": str(source),
                "target": str(target),
                "length": len(node_path) - 1,
                "nodes": [str(n) for n in node_path],
                "steps": steps,
            },
        )

    # ------------------------------------------------------------------
    # check: invariants + statistics
    # ------------------------------------------------------------------

    @traced
    def check(self) -> ServiceResult:
        """Verify the class structure and report its size."""
        op = "check"
        engine = self._store.graph
        try:
            with engine.write_lock:
                graph = engine.graph
                graph.check_invariants()
                stats = {
                    "version": graph.version,
                    "nodes": graph.node_count,
                    "classes": graph.class_count,
                    "positive_edges": engine.snapshot().positive.number_of_edges(),
                    "contradictions": len(graph.contradictions),
                }
        except GraphInvariantError as exc:
            engine.invalidate()
            return ServiceResult.failure(op, ErrorCode.INVARIANT_VIOLATION, str(exc))
        except SQLAlchemyError as exc:
            return self._store_error(op, exc)

        try:
            stats["labels"] = self._store.labels.count()
        except SQLAlchemyError as exc:
            return self._store_error(op, exc)

        return ServiceResult(ok=True, op=op, data=stats)

    # ------------------------------------------------------------------
    # rebuild: replay the ledger
    # ------------------------------------------------------------------

    @traced
    def rebuild(self) -> ServiceResult:
        """Drop the cached graph and replay every stored label."""
        op = "rebuild"
        engine = self._store.graph
        try:
            with trace_span("replay"):
                with engine.write_lock:
                    engine.invalidate()
                    graph = engine.graph
                    data = {
                        "version": graph.version,
                        "nodes": graph.node_count,
                        "classes": graph.class_count,
                        "contradictions": len(graph.contradictions),
                    }
        except GraphInvariantError as exc:
            engine.invalidate()
            return ServiceResult.failure(op, ErrorCode.INVARIANT_VIOLATION, str(exc))
        except SQLAlchemyError as exc:
            return self._store_error(op, exc)

        return ServiceResult(ok=True, op=op, data=data)
