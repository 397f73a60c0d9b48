"""Feature collections: per content item attribute bags.

A feature value is either a raw string or a StringCounter (a weighted bag
of candidate strings). Reading a scalar out of a StringCounter picks the
heaviest key; ties go to the lexicographically smallest key so the result
is reproducible.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

StringCounter = dict[str, float]
FeatureValue = str | StringCounter


class FeatureCollection(BaseModel):
    """All features stored for one content item.

    Replaced wholesale on every put; features are never merged.
    """

    model_config = {"frozen": True}

    content_id: str = ""
    features: dict[str, FeatureValue] = Field(default_factory=dict)

    @field_validator("features")
    @classmethod
    def _non_negative_weights(cls, value: dict[str, FeatureValue]) -> dict[str, FeatureValue]:
        for name, feature in value.items():
            if isinstance(feature, dict):
                negative = sorted(k for k, w in feature.items() if w < 0)
                if negative:
                    msg = f"Feature {name!r} has negative weights for {negative}"
                    raise ValueError(msg)
        return value

    def feature(self, name: str) -> FeatureValue | None:
        return resolve_feature(self, name)

    def value(self, name: str) -> str | None:
        return resolve_value(self, name)


def resolve_feature(collection: FeatureCollection, name: str) -> FeatureValue | None:
    """Return the stored value for *name* unchanged, or None if absent."""
    return collection.features.get(name)


def resolve_value(collection: FeatureCollection, name: str) -> str | None:
    """Resolve feature *name* to a scalar string.

    Raw strings come back unchanged. A StringCounter resolves to its
    highest-weight key (ties by ascending key); an empty counter to None.
    """
    feature = collection.features.get(name)
    if feature is None or isinstance(feature, str):
        return feature
    if not feature:
        return None
    key, _weight = min(feature.items(), key=lambda item: (-item[1], item[0]))
    return key
