"""LabelService: append labels and list the facts touching a node.

Appends are atomic: the ledger insert and the constraint graph update
either both happen or neither is observable. A label that contradicts
the current structure is still recorded; the contradiction is returned
in the result data and as a warning, never as an error.
"""

from __future__ import annotations

from collections.abc import Sequence

from sqlalchemy.exc import SQLAlchemyError

from dossierctl.domain.labels import Label
from dossierctl.domain.nodes import make_node
from dossierctl.services.base import BaseService
from dossierctl.services.contracts import AppendLabelsData, LabelListData, dump_validated
from dossierctl.services.result import ErrorCode, ServiceResult
from dossierctl.services.telemetry import trace_span, traced


class LabelService(BaseService):
    """Writes to the label ledger and reads it back by endpoint."""

    @traced
    def append(self, label: Label) -> ServiceResult:
        """Record one label (``AppendLabel``)."""
        return self._append_batch([label], op="append_label")

    @traced
    def append_many(self, labels: Sequence[Label]) -> ServiceResult:
        """Record a batch of labels in a single transaction."""
        return self._append_batch(list(labels), op="append_labels")

    def _append_batch(self, labels: list[Label], *, op: str) -> ServiceResult:
        if not labels:
            return ServiceResult.failure(op, ErrorCode.INVALID_LABEL, "No labels to append")

        try:
            with trace_span("ledger_append") as span:
                with self._store.transaction() as txn:
                    for label in labels:
                        txn.append_label(label)
                if span:
                    span.annotate("labels", len(labels))
        except SQLAlchemyError as exc:
            return self._store_error(op, exc)

        contradictions = [c.to_dict() for c in txn.contradictions]
        warnings = [
            f"Contradiction: {c.label.coref_value} label {c.label.node_a} - "
            f"{c.label.node_b} by {c.label.annotator_id} ({c.reason})"
            for c in txn.contradictions
        ]
        return ServiceResult(
            ok=True,
            op=op,
            data=dump_validated(
                AppendLabelsData,
                {"count": len(labels), "contradictions": contradictions},
            ),
            warnings=warnings,
        )

    @traced
    def touching(self, content_id: str, subtopic_id: str | None = None) -> ServiceResult:
        """Every stored label with ``(content_id, subtopic_id)`` as an endpoint.

        Explicit facts only, positive and negative alike; rows are oriented
        so the queried node is endpoint 1.
        """
        op = "labels_touching"
        try:
            node = make_node(content_id, subtopic_id)
        except ValueError as exc:
            return ServiceResult.failure(op, ErrorCode.INVALID_LABEL, str(exc))

        try:
            found = self._store.labels.labels_touching(node)
        except SQLAlchemyError as exc:
            return self._store_error(op, exc)

        items = [label.to_dict() for label in found]
        return ServiceResult(
            ok=True,
            op=op,
            data=dump_validated(
                LabelListData,
                {
                    "content_id": content_id,
                    "subtopic_id": subtopic_id,
                    "count": len(items),
                    "items": items,
                },
            ),
        )
