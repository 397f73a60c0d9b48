"""Repositories encapsulating SQL for the label ledger and feature store."""

from dossierctl.infrastructure.repositories.features import FeatureRepository
from dossierctl.infrastructure.repositories.labels import LabelRepository

__all__ = ["FeatureRepository", "LabelRepository"]
