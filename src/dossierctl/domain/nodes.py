"""Node identity: a whole content item or one of its sub-topics.

A node is a two-variant key. ``WholeItem("B")`` and ``Subtopic("B", "B2")``
are distinct nodes: sharing a content id never links them.

INVARIANT: Node sort order puts a whole-item node before every sub-topic
node of the same content id.
"""

from __future__ import annotations

from dataclasses import dataclass

type NodeKey = tuple[str, int, str]


@dataclass(frozen=True)
class WholeItem:
    """A content item as a whole."""

    content_id: str

    @property
    def subtopic_id(self) -> None:
        return None

    def sort_key(self) -> NodeKey:
        return (self.content_id, 0, "")

    def __str__(self) -> str:
        return self.content_id


@dataclass(frozen=True)
class Subtopic:
    """One sub-topic of a content item."""

    content_id: str
    subtopic_id: str

    def __post_init__(self) -> None:
        if not self.subtopic_id:
            msg = f"Sub-topic id for {self.content_id!r} must be a non-empty string"
            raise ValueError(msg)

    def sort_key(self) -> NodeKey:
        return (self.content_id, 1, self.subtopic_id)

    def __str__(self) -> str:
        return f"{self.content_id}#{self.subtopic_id}"


type Node = WholeItem | Subtopic


def make_node(content_id: str, subtopic_id: str | None = None) -> Node:
    """Build the node for *content_id*, scoped to *subtopic_id* when given."""
    if not content_id:
        raise ValueError("Content id must be a non-empty string")
    if subtopic_id is None:
        return WholeItem(content_id)
    return Subtopic(content_id, subtopic_id)


def parse_node(raw: str) -> Node:
    """Parse the ``content_id[#subtopic_id]`` notation used on the CLI."""
    content_id, sep, subtopic_id = raw.partition("#")
    if sep and not subtopic_id:
        msg = f"Missing sub-topic id after '#' in {raw!r}"
        raise ValueError(msg)
    return make_node(content_id, subtopic_id if sep else None)
