"""Tests for ConstraintGraph: must-link classes and cannot-link sets."""

from __future__ import annotations

import itertools
import random

import pytest

from dossierctl.domain.nodes import Subtopic, WholeItem
from dossierctl.infrastructure.graph.constraints import (
    REASON_CANNOT_LINK,
    REASON_SAME_CLASS,
    ConstraintGraph,
    GraphInvariantError,
    GraphSnapshot,
)
from tests.conftest import make_label

A, B, C, D, E = (WholeItem(c) for c in "abcde")


def _graph(*labels: object) -> ConstraintGraph:
    g = ConstraintGraph()
    for label in labels:
        g.incorporate(label)  # type: ignore[arg-type]
    return g


def _classes(g: ConstraintGraph | GraphSnapshot, nodes: list) -> set[frozenset]:
    return {g.members(n) for n in nodes}


# ---------------------------------------------------------------------------
# Equivalence classes
# ---------------------------------------------------------------------------


class TestMustLink:
    def test_positive_merges(self) -> None:
        g = _graph(make_label("a", "b"))
        assert g.is_connected(A, B)
        assert g.members(A) == frozenset({A, B})

    def test_reflexive(self) -> None:
        g = _graph()
        assert g.is_connected(A, A)
        assert g.members(A) == frozenset({A})

    def test_symmetric(self) -> None:
        g = _graph(make_label("a", "b"))
        assert g.is_connected(B, A)

    def test_transitive(self) -> None:
        g = _graph(make_label("a", "b"), make_label("c", "b"))
        assert g.is_connected(A, C)
        assert g.class_count == 1

    def test_subtopic_distinct_from_whole_item(self) -> None:
        g = _graph(make_label("a", "b", sub2="b2"))
        assert g.is_connected(A, Subtopic("b", "b2"))
        assert not g.is_connected(A, B)

    def test_idempotent_reapplication(self) -> None:
        labels = [make_label("a", "b"), make_label("b", "c", "negative"), make_label("d", "c")]
        once = _graph(*labels)
        twice = _graph(*labels, *labels)
        nodes = [A, B, C, D]
        assert _classes(once, nodes) == _classes(twice, nodes)
        assert once.cannot_link(A) == frozenset({once.class_of(C)})
        assert once.inferred_negatives(A) == twice.inferred_negatives(A)
        assert twice.contradictions == ()


# ---------------------------------------------------------------------------
# Cannot-link
# ---------------------------------------------------------------------------


class TestCannotLink:
    def test_negative_is_symmetric(self) -> None:
        g = _graph(make_label("a", "b", "negative"))
        assert g.class_of(B) in g.cannot_link(A)
        assert g.class_of(A) in g.cannot_link(B)

    def test_inferred_through_class(self) -> None:
        g = _graph(make_label("a", "b"), make_label("b", "c", "negative"))
        assert g.inferred_negatives(A) == {C}
        assert g.inferred_negatives(C) == {A, B}

    def test_follows_later_merge(self) -> None:
        g = _graph(make_label("a", "b", "negative"), make_label("c", "a"), make_label("d", "b"))
        assert g.inferred_negatives(C) == {B, D}
        g.check_invariants()

    def test_merge_of_two_constrained_classes(self) -> None:
        g = _graph(
            make_label("a", "e", "negative"),
            make_label("b", "e", "negative"),
            make_label("a", "b"),
        )
        assert g.cannot_link(A) == frozenset({g.class_of(E)})
        assert g.cannot_link(E) == frozenset({g.class_of(A)})
        g.check_invariants()


# ---------------------------------------------------------------------------
# Contradictions
# ---------------------------------------------------------------------------


class TestContradictions:
    def test_positive_across_cannot_link_rejected(self) -> None:
        g = _graph(make_label("a", "b", "negative"))
        label = make_label("a", "b", minute=1)
        contradiction = g.incorporate(label)
        assert contradiction is not None
        assert contradiction.reason == REASON_CANNOT_LINK
        assert contradiction.label is label
        assert not g.is_connected(A, B)
        assert g.contradictions == (contradiction,)

    def test_indirect_contradiction_rejected(self) -> None:
        g = _graph(make_label("a", "b"), make_label("c", "d"), make_label("b", "d", "negative"))
        assert g.incorporate(make_label("a", "c")) is not None
        assert not g.is_connected(A, C)

    def test_negative_inside_class_rejected(self) -> None:
        g = _graph(make_label("a", "b"), make_label("b", "c"))
        contradiction = g.incorporate(make_label("a", "c", "negative"))
        assert contradiction is not None
        assert contradiction.reason == REASON_SAME_CLASS
        assert g.cannot_link(A) == frozenset()
        assert g.is_connected(A, C)

    def test_version_moves_on_every_label(self) -> None:
        g = _graph(make_label("a", "b", "negative"))
        g.incorporate(make_label("a", "b"))
        assert g.version == 2


# ---------------------------------------------------------------------------
# Invariants
# ---------------------------------------------------------------------------


class TestInvariants:
    def test_random_sequences_keep_invariants(self) -> None:
        rng = random.Random(7)
        cids = [f"n{i}" for i in range(12)]
        g = ConstraintGraph()
        for minute in range(200):
            x, y = rng.sample(cids, 2)
            coref = "positive" if rng.random() < 0.6 else "negative"
            g.incorporate(make_label(x, y, coref, minute=minute))
            g.check_invariants()

        # No accepted negative ever sits inside a class.
        for x, y in itertools.combinations([WholeItem(c) for c in cids], 2):
            if g.class_of(y) in g.cannot_link(x):
                assert not g.is_connected(x, y)

    def test_corruption_detected(self) -> None:
        g = _graph(make_label("a", "b", "negative"))
        g._cannot[g.class_of(A)].discard(g.class_of(B))
        with pytest.raises(GraphInvariantError, match="one-sided"):
            g.check_invariants()


# ---------------------------------------------------------------------------
# Snapshot
# ---------------------------------------------------------------------------


class TestSnapshot:
    def test_matches_live_graph(self) -> None:
        g = _graph(make_label("a", "b"), make_label("b", "c", "negative"))
        snap = g.snapshot()
        assert snap.version == g.version
        assert snap.members(A) == g.members(A)
        assert snap.inferred_negatives(A) == g.inferred_negatives(A)

    def test_isolated_from_later_writes(self) -> None:
        g = _graph(make_label("a", "b"))
        snap = g.snapshot()
        g.incorporate(make_label("b", "c"))
        g.incorporate(make_label("a", "b", annotator="bob"))
        assert not snap.is_connected(A, C)
        assert len(snap.positive.edges[A, B]["labels"]) == 1

    def test_unseen_node_is_singleton(self) -> None:
        snap = _graph().snapshot()
        assert snap.class_of(A) == A
        assert snap.members(A) == frozenset({A})
        assert snap.cannot_link(A) == frozenset()

    def test_nodes_of(self) -> None:
        snap = _graph(make_label("a", "x", sub1="s1"), make_label("a", "y")).snapshot()
        assert snap.nodes_of("a") == frozenset({A, Subtopic("a", "s1")})

    def test_negative_witness_is_earliest(self) -> None:
        snap = _graph(
            make_label("a", "b"),
            make_label("b", "c", "negative", minute=5),
            make_label("a", "c", "negative", annotator="bob", minute=2),
        ).snapshot()
        witness = snap.negative_witness(A, C)
        assert witness is not None
        assert witness.annotator_id == "bob"
        assert snap.has_explicit_negative(C, A)
        assert not snap.has_explicit_negative(B, A)

    def test_contradictions_touching(self) -> None:
        g = _graph(make_label("a", "b", "negative"), make_label("a", "b"), make_label("d", "e"))
        snap = g.snapshot()
        assert len(snap.contradictions_touching([A])) == 1
        assert snap.contradictions_touching([D]) == []

    def test_bridge_edges(self) -> None:
        # Whole item C is in A's class; its sub-topics are reachable in one hop.
        snap = _graph(
            make_label("a", "c"),
            make_label("c", "x", sub1="c3"),
            make_label("c", "y", sub1="c5"),
            make_label("a", "c", "negative", sub2="c5"),
        ).snapshot()
        bridges = snap.bridge_edges(snap.class_of(A))
        assert (C, Subtopic("c", "c3")) in bridges
        assert (C, Subtopic("c", "c5")) not in bridges
