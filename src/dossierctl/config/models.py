"""Pydantic configuration models with code-baked defaults.

Sparse TOML contract: defaults baked here, dossier.toml only contains
overrides. An empty (or missing) dossier.toml is a valid configuration.
"""

from __future__ import annotations

from pydantic import BaseModel, model_validator


class StoreConfig(BaseModel):
    """[store] section."""

    model_config = {"frozen": True}

    dirname: str = ".dossier"
    filename: str = "dossier.db"


class QueryConfig(BaseModel):
    """[query] section."""

    model_config = {"frozen": True}

    default_perpage: int | None = None
    max_perpage: int = 1000

    @model_validator(mode="after")
    def _default_within_max(self) -> QueryConfig:
        if self.default_perpage is not None and not 1 <= self.default_perpage <= self.max_perpage:
            msg = f"default_perpage must be between 1 and max_perpage ({self.max_perpage})"
            raise ValueError(msg)
        return self


class GraphConfig(BaseModel):
    """[graph] section."""

    model_config = {"frozen": True}

    check_invariants: bool = False

