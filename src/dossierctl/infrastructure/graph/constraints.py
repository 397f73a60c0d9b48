"""ConstraintGraph: must-link / cannot-link structure over labelled nodes.

Positive labels merge equivalence classes (path-compressed union-find,
union by size). Negative labels put two classes in each other's
cannot-link set. A label that would contradict the established structure
is recorded as a :class:`Contradiction` and leaves the classes untouched:

- positive label between mutually cannot-linked classes -> merge rejected
- negative label inside one class -> cannot-link rejected

INVARIANTS (checked by :meth:`ConstraintGraph.check_invariants`):
- every seen node belongs to exactly one class
- cannot-link is symmetric and only references live representatives
- no class cannot-links itself
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

import networkx as nx

from dossierctl.domain.labels import Contradiction, Label
from dossierctl.domain.nodes import Node, WholeItem

logger = logging.getLogger(__name__)

REASON_CANNOT_LINK = "positive label joins classes that cannot link"
REASON_SAME_CLASS = "negative label inside one equivalence class"


class GraphInvariantError(RuntimeError):
    """The derived class structure is internally inconsistent (a defect)."""


def _pair(x: Node, y: Node) -> frozenset[Node]:
    return frozenset((x, y))


class ConstraintGraph:
    """Incrementally maintained equivalence classes with cannot-link sets.

    Not thread-safe on its own: :class:`GraphEngine` serializes writers and
    hands readers immutable :class:`GraphSnapshot` copies.
    """

    def __init__(self) -> None:
        self._parent: dict[Node, Node] = {}
        self._members: dict[Node, set[Node]] = {}
        self._cannot: dict[Node, set[Node]] = {}
        self._by_content: dict[str, set[Node]] = {}
        # Accepted positive edges; edge attr "labels" holds every supporting fact.
        self._positive: nx.Graph = nx.Graph()
        self._negatives: list[Label] = []
        self._explicit_negatives: set[frozenset[Node]] = set()
        self._contradictions: list[Contradiction] = []
        self.version = 0

    # ------------------------------------------------------------------
    # Union-find primitives
    # ------------------------------------------------------------------

    def _see(self, node: Node) -> None:
        if node not in self._parent:
            self._parent[node] = node
            self._members[node] = {node}
            self._cannot[node] = set()
            self._by_content.setdefault(node.content_id, set()).add(node)

    def _find(self, node: Node) -> Node:
        root = node
        while self._parent[root] != root:
            root = self._parent[root]
        # Path compression
        while self._parent[node] != root:
            self._parent[node], node = root, self._parent[node]
        return root

    def _union(self, ra: Node, rb: Node) -> Node:
        if len(self._members[ra]) < len(self._members[rb]):
            ra, rb = rb, ra
        self._parent[rb] = ra
        self._members[ra] |= self._members.pop(rb)

        absorbed = self._cannot.pop(rb)
        for other in absorbed:
            peer = self._cannot[other]
            peer.discard(rb)
            peer.add(ra)
        self._cannot[ra] |= absorbed
        return ra

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def incorporate(self, label: Label) -> Contradiction | None:
        """Fold *label* into the class structure.

        Returns the recorded contradiction when the label conflicts with
        the current structure, otherwise None.
        """
        a, b = label.node_a, label.node_b
        self._see(a)
        self._see(b)
        ra, rb = self._find(a), self._find(b)
        self.version += 1

        if label.is_positive:
            if ra != rb and rb in self._cannot[ra]:
                return self._contradict(label, REASON_CANNOT_LINK)
            if ra != rb:
                self._union(ra, rb)
            if a != b:
                if self._positive.has_edge(a, b):
                    self._positive.edges[a, b]["labels"].append(label)
                else:
                    self._positive.add_edge(a, b, labels=[label])
            return None

        self._explicit_negatives.add(_pair(a, b))
        if ra == rb:
            return self._contradict(label, REASON_SAME_CLASS)
        self._cannot[ra].add(rb)
        self._cannot[rb].add(ra)
        self._negatives.append(label)
        return None

    def _contradict(self, label: Label, reason: str) -> Contradiction:
        contradiction = Contradiction(label=label, reason=reason)
        self._contradictions.append(contradiction)
        logger.info(
            "Contradiction recorded: %s %s-%s by %s (%s)",
            label.coref_value,
            label.node_a,
            label.node_b,
            label.annotator_id,
            reason,
        )
        return contradiction

    def class_of(self, node: Node) -> Node:
        """Representative of *node*'s class (materializes unseen nodes)."""
        self._see(node)
        return self._find(node)

    def is_connected(self, x: Node, y: Node) -> bool:
        return self.class_of(x) == self.class_of(y)

    def cannot_link(self, node: Node) -> frozenset[Node]:
        """Representatives of the classes *node*'s class cannot link with."""
        return frozenset(self._cannot[self.class_of(node)])

    def inferred_negatives(self, node: Node) -> set[Node]:
        """All seen nodes whose class cannot link with *node*'s class."""
        result: set[Node] = set()
        for rep in self._cannot[self.class_of(node)]:
            result |= self._members[rep]
        return result

    def members(self, node: Node) -> frozenset[Node]:
        return frozenset(self._members[self.class_of(node)])

    @property
    def contradictions(self) -> tuple[Contradiction, ...]:
        return tuple(self._contradictions)

    @property
    def node_count(self) -> int:
        return len(self._parent)

    @property
    def class_count(self) -> int:
        return len(self._members)

    def check_invariants(self) -> None:
        """Verify the derived structure.

        Raises:
            GraphInvariantError: On the first violation found.
        """
        seen: set[Node] = set()
        for rep, members in self._members.items():
            if self._parent[rep] != rep:
                raise GraphInvariantError(f"{rep} keys a class but is not a representative")
            for node in members:
                if node in seen:
                    raise GraphInvariantError(f"{node} belongs to more than one class")
                if self._find(node) != rep:
                    raise GraphInvariantError(f"{node} listed under {rep} but resolves elsewhere")
                seen.add(node)
        if seen != set(self._parent):
            raise GraphInvariantError("Some nodes are not members of any class")

        if set(self._cannot) != set(self._members):
            raise GraphInvariantError("Cannot-link sets are not keyed by representatives")
        for rep, others in self._cannot.items():
            if rep in others:
                raise GraphInvariantError(f"Class {rep} cannot-links itself")
            for other in others:
                if other not in self._members:
                    raise GraphInvariantError(f"{rep} cannot-links dead representative {other}")
                if rep not in self._cannot[other]:
                    raise GraphInvariantError(f"Cannot-link between {rep} and {other} is one-sided")

    def snapshot(self) -> GraphSnapshot:
        """Freeze the current state for lock-free readers."""
        class_of = {node: self._find(node) for node in self._parent}

        witnesses: dict[frozenset[Node], Label] = {}
        for label in self._negatives:
            key = _pair(class_of[label.node_a], class_of[label.node_b])
            best = witnesses.get(key)
            if best is None or _fact_key(label) < _fact_key(best):
                witnesses[key] = label

        # Edge label lists keep growing on the live graph; copy them out.
        positive = nx.Graph()
        positive.add_edges_from(
            (u, v, {"labels": tuple(data["labels"])})
            for u, v, data in self._positive.edges(data=True)
        )

        return GraphSnapshot(
            version=self.version,
            classes=class_of,
            class_members={rep: frozenset(m) for rep, m in self._members.items()},
            cannot={rep: frozenset(c) for rep, c in self._cannot.items()},
            by_content={cid: frozenset(n) for cid, n in self._by_content.items()},
            positive=nx.freeze(positive),
            negative_witnesses=witnesses,
            explicit_negatives=frozenset(self._explicit_negatives),
            contradictions=tuple(self._contradictions),
        )


def _fact_key(label: Label) -> tuple[str, str]:
    return (label.created_at.isoformat(), label.annotator_id)


@dataclass(frozen=True)
class GraphSnapshot:
    """Immutable view of a :class:`ConstraintGraph` at one version.

    Nodes never seen by the graph behave as singleton classes.
    """

    version: int = 0
    classes: Mapping[Node, Node] = field(default_factory=dict)
    class_members: Mapping[Node, frozenset[Node]] = field(default_factory=dict)
    cannot: Mapping[Node, frozenset[Node]] = field(default_factory=dict)
    by_content: Mapping[str, frozenset[Node]] = field(default_factory=dict)
    positive: nx.Graph = field(default_factory=nx.Graph)
    negative_witnesses: Mapping[frozenset[Node], Label] = field(default_factory=dict)
    explicit_negatives: frozenset[frozenset[Node]] = frozenset()
    contradictions: tuple[Contradiction, ...] = ()

    def class_of(self, node: Node) -> Node:
        return self.classes.get(node, node)

    def is_connected(self, x: Node, y: Node) -> bool:
        return self.class_of(x) == self.class_of(y)

    def members(self, node: Node) -> frozenset[Node]:
        return self.class_members.get(self.class_of(node), frozenset((node,)))

    def cannot_link(self, node: Node) -> frozenset[Node]:
        return self.cannot.get(self.class_of(node), frozenset())

    def inferred_negatives(self, node: Node) -> set[Node]:
        result: set[Node] = set()
        for rep in self.cannot_link(node):
            result |= self.class_members[rep]
        return result

    def nodes_of(self, content_id: str) -> frozenset[Node]:
        """Every seen node (whole item and sub-topics) of *content_id*."""
        return self.by_content.get(content_id, frozenset())

    def has_explicit_negative(self, x: Node, y: Node) -> bool:
        return _pair(x, y) in self.explicit_negatives

    def negative_witness(self, x: Node, y: Node) -> Label | None:
        """Earliest negative label joining the classes of *x* and *y*."""
        return self.negative_witnesses.get(_pair(self.class_of(x), self.class_of(y)))

    def has_positive_support(self, node: Node) -> bool:
        return node in self.positive and self.positive.degree(node) > 0

    def contradictions_touching(self, nodes: Iterable[Node]) -> list[Contradiction]:
        """Contradictions with an endpoint in the classes of *nodes*."""
        reps = {self.class_of(n) for n in nodes}
        return [
            c
            for c in self.contradictions
            if self.class_of(c.label.node_a) in reps or self.class_of(c.label.node_b) in reps
        ]

    def bridge_edges(self, rep: Node) -> list[tuple[Node, Node]]:
        """Whole-item to sibling sub-topic edges usable from class *rep*.

        Only whole-item nodes inside the class that carry an accepted
        positive label bridge, and only to sub-topic nodes whose class is
        not cannot-linked with *rep*. Single hop: bridges are not chained
        through the classes they reach.
        """
        forbidden = self.cannot.get(rep, frozenset())
        edges: list[tuple[Node, Node]] = []
        for node in self.class_members.get(rep, frozenset((rep,))):
            if not isinstance(node, WholeItem) or not self.has_positive_support(node):
                continue
            for sibling in self.nodes_of(node.content_id):
                if sibling == node or isinstance(sibling, WholeItem):
                    continue
                if self.class_of(sibling) in forbidden:
                    continue
                edges.append((node, sibling))
        return edges
