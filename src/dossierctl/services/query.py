"""Query engine: fluent label fetcher over the constraint graph.

``LabelFetcher`` builds an immutable :class:`QuerySpec` through chained
calls; every call returns a new fetcher. ``get()`` hands the QuerySpec to
:class:`QueryService`, which evaluates it against one immutable graph
snapshot and returns a single page plus a continuation cursor::

    page = LabelFetcher(store).cid("a").which("connected").perpage(10).get()
    more = LabelFetcher(store).cid("a").perpage(10).next(page.data["cursor"]).get()

Predicates:
- connected: every node in the anchor's equivalence class
- negative-inference: every node in a class the anchor's class cannot
  link with, minus pairs carrying an explicit negative label
- expanded: connected, plus one hop through whole-item nodes of the class
  to the sibling sub-topic nodes of the same content item

Rows sort by destination node, ``created_at``, ``annotator_id``, anchor node
and finally ledger sequence id, so repeated facts keep distinct keys. A
cursor is the sort key of the last row returned, so pages resume strictly
after it however much the graph has grown since.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, Self

import networkx as nx
from pydantic import BaseModel, Field, ValidationError, field_validator
from sqlalchemy.exc import SQLAlchemyError

from dossierctl.domain.cursor import SortKey, decode_cursor, encode_cursor
from dossierctl.domain.labels import Label
from dossierctl.domain.nodes import Node, Subtopic, make_node
from dossierctl.domain.types import CorefValue, Predicate
from dossierctl.services.base import BaseService
from dossierctl.services.contracts import QueryPageData, dump_validated
from dossierctl.services.result import ErrorCode, ServiceResult
from dossierctl.services.telemetry import trace_span, traced

if TYPE_CHECKING:
    from dossierctl.infrastructure.graph.constraints import GraphSnapshot
    from dossierctl.infrastructure.store import Store


# ---------------------------------------------------------------------------
# QuerySpec and fluent builder
# ---------------------------------------------------------------------------


class QuerySpec(BaseModel):
    """Immutable description of one label query.

    Builders use ``model_copy`` (no validation) so a malformed spec is
    only reported when executed.
    """

    model_config = {"frozen": True}

    content_id: str | None = None
    subtopic_id: str | None = None
    which: str = Predicate.CONNECTED.value
    perpage: int | None = Field(default=None, ge=1)
    cursor: str | None = None
    skip_pages: int = Field(default=0, ge=0)

    @field_validator("which", mode="before")
    @classmethod
    def _known_predicate(cls, value: Any) -> str:
        try:
            return Predicate(value).value
        except ValueError:
            known = ", ".join(p.value for p in Predicate)
            msg = f"Unknown predicate {value!r}; expected one of: {known}"
            raise ValueError(msg) from None


class LabelFetcher:
    """Chainable, immutable builder for label queries."""

    def __init__(self, store: Store, spec: QuerySpec | None = None) -> None:
        self._store = store
        self._spec = spec or QuerySpec()

    @property
    def spec(self) -> QuerySpec:
        return self._spec

    def _with(self, **changes: Any) -> Self:
        return type(self)(self._store, self._spec.model_copy(update=changes))

    def cid(self, content_id: str) -> Self:
        """Anchor on *content_id* (whole item plus every seen sub-topic)."""
        return self._with(content_id=content_id)

    def subtopic(self, subtopic_id: str) -> Self:
        """Narrow the anchor to the single node ``(cid, subtopic_id)``."""
        return self._with(subtopic_id=subtopic_id)

    def which(self, predicate: Predicate | str) -> Self:
        return self._with(which=str(predicate))

    def perpage(self, n: int) -> Self:
        return self._with(perpage=n)

    def next(self, cursor: str | None = None) -> Self:
        """Resume after *cursor*, or skip one page when no cursor is given."""
        if cursor is not None:
            return self._with(cursor=cursor, skip_pages=0)
        return self._with(skip_pages=self._spec.skip_pages + 1)

    def get(self) -> ServiceResult:
        return QueryService(self._store).run(self._spec)


# ---------------------------------------------------------------------------
# Result rows
# ---------------------------------------------------------------------------


def _ts(value: datetime) -> str:
    return value.astimezone(UTC).isoformat(timespec="microseconds")


@dataclass(frozen=True)
class _Row:
    source: Node
    dest: Node
    coref_value: CorefValue
    annotator_id: str | None
    created_at: datetime | None
    inferred: bool
    seq: int = 0

    @classmethod
    def explicit(cls, label: Label, source: Node) -> _Row:
        oriented = label.oriented(source)
        return cls(
            source=source,
            dest=oriented.node_b,
            coref_value=label.coref_value,
            annotator_id=label.annotator_id,
            created_at=label.created_at,
            inferred=False,
            seq=label.seq or 0,
        )

    @classmethod
    def inferred_from(
        cls, source: Node, dest: Node, coref_value: CorefValue, witness: Label | None
    ) -> _Row:
        return cls(
            source=source,
            dest=dest,
            coref_value=coref_value,
            annotator_id=witness.annotator_id if witness else None,
            created_at=witness.created_at if witness else None,
            inferred=True,
            seq=(witness.seq or 0) if witness else 0,
        )

    def sort_key(self) -> SortKey:
        return (
            self.dest.sort_key(),
            _ts(self.created_at) if self.created_at else "",
            self.annotator_id or "",
            self.source.sort_key(),
            self.seq,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "content_id1": self.source.content_id,
            "subtopic_id1": self.source.subtopic_id,
            "content_id2": self.dest.content_id,
            "subtopic_id2": self.dest.subtopic_id,
            "annotator_id": self.annotator_id,
            "coref_value": str(self.coref_value),
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "inferred": self.inferred,
        }


def _valid_sort_key(key: SortKey) -> bool:
    def node_key(k: Any) -> bool:
        return (
            isinstance(k, tuple)
            and len(k) == 3
            and isinstance(k[0], str)
            and k[1] in (0, 1)
            and isinstance(k[2], str)
        )

    return (
        len(key) == 5
        and node_key(key[0])
        and isinstance(key[1], str)
        and isinstance(key[2], str)
        and node_key(key[3])
        and isinstance(key[4], int)
        and not isinstance(key[4], bool)
    )


def _first_label(labels: tuple[Label, ...]) -> Label:
    return min(labels, key=lambda lb: (lb.created_at, lb.annotator_id))


def _path_witness(graph: nx.Graph, path: list[Node] | None) -> Label | None:
    """Most recent label along *path*; each edge counts from its first label.

    This is the fact that completed the chain. Bridge edges carry no label.
    """
    if not path:
        return None
    witness: Label | None = None
    for u, v in zip(path, path[1:], strict=False):
        labels = graph.edges[u, v].get("labels")
        if not labels:
            continue
        first = _first_label(labels)
        if witness is None or (first.created_at, first.annotator_id) > (
            witness.created_at,
            witness.annotator_id,
        ):
            witness = first
    return witness


# ---------------------------------------------------------------------------
# QueryService
# ---------------------------------------------------------------------------


class QueryService(BaseService):
    """Evaluates :class:`QuerySpec` values against the constraint graph."""

    @traced
    def run(self, spec: QuerySpec) -> ServiceResult:
        """Execute *spec* and return one page (``Query``)."""
        op = "query_labels"

        try:
            spec = QuerySpec.model_validate(spec.model_dump())
        except ValidationError as exc:
            errors = exc.errors(include_url=False, include_context=False, include_input=False)
            return self._invalid(op, "; ".join(e["msg"] for e in errors), errors)

        if not spec.content_id:
            return self._invalid(op, "A content id (cid) is required")

        query_cfg = self._store.settings.query
        perpage = spec.perpage if spec.perpage is not None else query_cfg.default_perpage
        if perpage is not None and perpage > query_cfg.max_perpage:
            return self._invalid(op, f"perpage must be at most {query_cfg.max_perpage}")

        after: SortKey | None = None
        if spec.cursor is not None:
            try:
                after = decode_cursor(spec.cursor)
            except ValueError as exc:
                return self._invalid_cursor(op, str(exc))
            if not _valid_sort_key(after):
                return self._invalid_cursor(op, f"Malformed cursor: {spec.cursor!r}")

        try:
            anchor = make_node(spec.content_id, spec.subtopic_id)
        except ValueError as exc:
            return self._invalid(op, str(exc))

        try:
            snap = self._store.graph.snapshot()
        except SQLAlchemyError as exc:
            return self._store_error(op, exc)
        anchors = self._anchors(snap, anchor)

        with trace_span("evaluate") as span:
            rows = self._evaluate(snap, anchors, Predicate(spec.which))
            rows.sort(key=_Row.sort_key)
            if span:
                span.annotate("graph_version", snap.version)
                span.annotate("matches", len(rows))

        if after is not None:
            rows = [r for r in rows if r.sort_key() > after]
        if perpage is not None:
            rows = rows[spec.skip_pages * perpage :]
            page, has_more = rows[:perpage], len(rows) > perpage
        elif spec.skip_pages:
            page, has_more = [], False
        else:
            page, has_more = rows, False

        cursor = encode_cursor(page[-1].sort_key()) if page else spec.cursor
        data = dump_validated(
            QueryPageData,
            {
                "which": str(spec.which),
                "content_id": spec.content_id,
                "subtopic_id": spec.subtopic_id,
                "count": len(page),
                "items": [r.to_dict() for r in page],
                "cursor": cursor,
                "has_more": has_more,
            },
        )

        meta: dict[str, Any] = {"graph_version": snap.version}
        contradictions = snap.contradictions_touching(anchors)
        if contradictions:
            meta["contradictions"] = [c.to_dict() for c in contradictions]
        return ServiceResult(ok=True, op=op, data=data, meta=meta)

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------

    @staticmethod
    def _anchors(snap: GraphSnapshot, anchor: Node) -> list[Node]:
        if isinstance(anchor, Subtopic):
            return [anchor]
        nodes = {anchor} | set(snap.nodes_of(anchor.content_id))
        return sorted(nodes, key=lambda n: n.sort_key())

    def _evaluate(self, snap: GraphSnapshot, anchors: list[Node], which: Predicate) -> list[_Row]:
        rows: list[_Row] = []
        for anchor in anchors:
            if which is Predicate.NEGATIVE_INFERENCE:
                rows.extend(self._negative_rows(snap, anchor))
            else:
                rows.extend(self._connected_rows(snap, anchor, expand=which is Predicate.EXPANDED))
        return rows

    @staticmethod
    def _connected_rows(snap: GraphSnapshot, anchor: Node, *, expand: bool) -> list[_Row]:
        reach = set(snap.members(anchor))
        bridges = snap.bridge_edges(snap.class_of(anchor)) if expand else []
        for _whole, sibling in bridges:
            reach |= snap.members(sibling)

        graph: nx.Graph = snap.positive.subgraph(reach)
        if bridges:
            graph = nx.Graph(graph)
            graph.add_edges_from(bridges)

        reach.discard(anchor)
        if not reach:
            return []

        paths = nx.single_source_shortest_path(graph, anchor) if anchor in graph else {}
        rows: list[_Row] = []
        for dest in reach:
            if snap.positive.has_edge(anchor, dest):
                rows.extend(
                    _Row.explicit(label, anchor)
                    for label in snap.positive.edges[anchor, dest]["labels"]
                )
                continue
            witness = _path_witness(graph, paths.get(dest))
            rows.append(_Row.inferred_from(anchor, dest, CorefValue.POSITIVE, witness))
        return rows

    @staticmethod
    def _negative_rows(snap: GraphSnapshot, anchor: Node) -> list[_Row]:
        rows: list[_Row] = []
        for dest in snap.inferred_negatives(anchor):
            if snap.has_explicit_negative(anchor, dest):
                continue
            witness = snap.negative_witness(anchor, dest)
            rows.append(_Row.inferred_from(anchor, dest, CorefValue.NEGATIVE, witness))
        return rows

    # ------------------------------------------------------------------
    # Errors
    # ------------------------------------------------------------------

    @staticmethod
    def _invalid(op: str, message: str, errors: Any = None) -> ServiceResult:
        if errors:
            return ServiceResult.failure(op, ErrorCode.INVALID_QUERY, message, errors=errors)
        return ServiceResult.failure(op, ErrorCode.INVALID_QUERY, message)

    @staticmethod
    def _invalid_cursor(op: str, message: str) -> ServiceResult:
        return ServiceResult.failure(op, ErrorCode.INVALID_CURSOR, message)

