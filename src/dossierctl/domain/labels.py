"""Labels: immutable judgments about whether two nodes corefer.

INVARIANT: Labels are append-only facts. ``(a, b)`` and ``(b, a)`` denote
the same fact; a correction is a new label, never a mutation.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import UTC, datetime

from dossierctl.domain.nodes import Node, make_node
from dossierctl.domain.types import CorefValue


def utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class Label:
    """A judgment between two nodes by one annotator."""

    node_a: Node
    node_b: Node
    annotator_id: str
    coref_value: CorefValue
    created_at: datetime = field(default_factory=utc_now)
    # Ledger sequence id; None until the label has been appended.
    seq: int | None = field(default=None, compare=False)

    def __post_init__(self) -> None:
        if not self.annotator_id:
            raise ValueError("Annotator id must be a non-empty string")
        # Accept plain strings ("positive") from callers and normalize.
        object.__setattr__(self, "coref_value", CorefValue(self.coref_value))
        if self.created_at.tzinfo is None:
            object.__setattr__(self, "created_at", self.created_at.replace(tzinfo=UTC))

    @classmethod
    def of(
        cls,
        content_id1: str,
        content_id2: str,
        annotator_id: str,
        coref_value: CorefValue | str,
        subtopic_id1: str | None = None,
        subtopic_id2: str | None = None,
        *,
        created_at: datetime | None = None,
    ) -> Label:
        """Build a label from flat identifiers (the wire shape)."""
        return cls(
            node_a=make_node(content_id1, subtopic_id1),
            node_b=make_node(content_id2, subtopic_id2),
            annotator_id=annotator_id,
            coref_value=CorefValue(coref_value),
            created_at=created_at or utc_now(),
        )

    @property
    def is_positive(self) -> bool:
        return self.coref_value is CorefValue.POSITIVE

    @property
    def endpoints(self) -> frozenset[Node]:
        return frozenset((self.node_a, self.node_b))

    def touches(self, node: Node) -> bool:
        return node == self.node_a or node == self.node_b

    def other(self, node: Node) -> Node:
        """Return the endpoint opposite *node*."""
        if node == self.node_a:
            return self.node_b
        if node == self.node_b:
            return self.node_a
        msg = f"{node} is not an endpoint of this label"
        raise ValueError(msg)

    def canonical(self) -> Label:
        """Return the same fact with endpoints in sort order."""
        if self.node_b.sort_key() < self.node_a.sort_key():
            return replace(self, node_a=self.node_b, node_b=self.node_a)
        return self

    def oriented(self, source: Node) -> Label:
        """Return the same fact with *source* as ``node_a``."""
        if self.node_a == source:
            return self
        return replace(self, node_a=self.node_b, node_b=self.node_a)

    def same_fact(self, other: Label) -> bool:
        """Whether *other* states the same judgment, ignoring endpoint order."""
        return (
            self.endpoints == other.endpoints
            and self.annotator_id == other.annotator_id
            and self.coref_value == other.coref_value
            and self.created_at == other.created_at
        )

    def to_dict(self) -> dict[str, str | None]:
        """Flat, label-shaped dict (content/sub-topic ids per endpoint)."""
        return {
            "content_id1": self.node_a.content_id,
            "subtopic_id1": self.node_a.subtopic_id,
            "content_id2": self.node_b.content_id,
            "subtopic_id2": self.node_b.subtopic_id,
            "annotator_id": self.annotator_id,
            "coref_value": str(self.coref_value),
            "created_at": self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class Contradiction:
    """A label whose effect on the class structure was rejected."""

    label: Label
    reason: str

    def to_dict(self) -> dict[str, str | None]:
        return {**self.label.to_dict(), "reason": self.reason}
