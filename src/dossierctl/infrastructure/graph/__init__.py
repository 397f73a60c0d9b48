"""Constraint graph over labelled nodes and its lazy, lock-guarded engine."""

from dossierctl.infrastructure.graph.constraints import (
    ConstraintGraph,
    GraphInvariantError,
    GraphSnapshot,
)
from dossierctl.infrastructure.graph.engine import GraphEngine

__all__ = ["ConstraintGraph", "GraphEngine", "GraphInvariantError", "GraphSnapshot"]
