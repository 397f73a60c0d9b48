"""Label values and query predicates."""

from __future__ import annotations

from enum import StrEnum


class CorefValue(StrEnum):
    """Whether two nodes refer to the same real-world entity."""

    POSITIVE = "positive"
    NEGATIVE = "negative"


class Predicate(StrEnum):
    """Result semantics selectable via ``LabelFetcher.which``."""

    CONNECTED = "connected"
    NEGATIVE_INFERENCE = "negative-inference"
    EXPANDED = "expanded"
