"""Typed payload contracts for service and adapter boundaries.

These models validate operation payload shapes before they leave the
service layer so shape regressions (for example ``items`` vs ``labels``)
fail fast in tests and during development.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict


def dump_validated[T: BaseModel](model_cls: type[T], data: dict[str, Any]) -> dict[str, Any]:
    """Validate *data* against *model_cls* and return a normalized payload dict."""
    model = model_cls.model_validate(data)
    return model.model_dump(mode="python")


class LabelItem(BaseModel):
    """One label-shaped row: ``*1`` is the anchor side, ``*2`` the other node."""

    model_config = ConfigDict(extra="forbid")

    content_id1: str
    subtopic_id1: str | None = None
    content_id2: str
    subtopic_id2: str | None = None
    annotator_id: str | None = None
    coref_value: Literal["positive", "negative"]
    created_at: str | None = None
    inferred: bool = False


class ContradictionItem(BaseModel):
    """A recorded contradiction: the rejected label plus the reason."""

    content_id1: str
    subtopic_id1: str | None = None
    content_id2: str
    subtopic_id2: str | None = None
    annotator_id: str
    coref_value: Literal["positive", "negative"]
    created_at: str
    reason: str


class AppendLabelsData(BaseModel):
    """Payload contract for ``LabelService.append`` / ``append_many``."""

    count: int
    contradictions: list[ContradictionItem]


class LabelListData(BaseModel):
    """Payload contract for ``LabelService.touching``."""

    content_id: str
    subtopic_id: str | None = None
    count: int
    items: list[LabelItem]


class QueryPageData(BaseModel):
    """Payload contract for ``QueryService.run``."""

    which: Literal["connected", "negative-inference", "expanded"]
    content_id: str
    subtopic_id: str | None = None
    count: int
    items: list[LabelItem]
    cursor: str | None = None
    has_more: bool = False


class FeatureCollectionData(BaseModel):
    """Payload contract for ``FeatureService.get`` / ``put`` / ``random``."""

    content_id: str
    features: dict[str, str | dict[str, float]]
