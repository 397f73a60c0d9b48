"""FeatureService: store and resolve per content item feature collections.

Collections are replaced wholesale on put. Reads resolve a feature either
to its raw stored value (``feature``) or to a scalar (``value``), where a
StringCounter yields its heaviest key.
"""

from __future__ import annotations

from typing import Any

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from dossierctl.domain.features import FeatureCollection, FeatureValue
from dossierctl.services.base import BaseService
from dossierctl.services.contracts import FeatureCollectionData, dump_validated
from dossierctl.services.result import ErrorCode, ServiceResult
from dossierctl.services.telemetry import traced


class FeatureService(BaseService):
    """Reads and writes feature collections."""

    @traced
    def put(self, content_id: str, features: dict[str, Any]) -> ServiceResult:
        """Create or replace the collection for *content_id*."""
        op = "put_features"
        try:
            collection = FeatureCollection(content_id=content_id, features=features)
        except ValidationError as exc:
            return ServiceResult.failure(
                op,
                ErrorCode.INVALID_FEATURES,
                f"Invalid feature collection for {content_id!r}",
                errors=exc.errors(include_url=False, include_context=False, include_input=False),
            )

        try:
            with self._store.transaction() as txn:
                txn.put_features(collection)
        except SQLAlchemyError as exc:
            return self._store_error(op, exc)

        return ServiceResult(ok=True, op=op, data=self._payload(collection))

    @traced
    def get(self, content_id: str) -> ServiceResult:
        op = "get_features"
        try:
            collection = self._store.features.get(content_id)
        except SQLAlchemyError as exc:
            return self._store_error(op, exc)
        if collection is None:
            return self._not_found(op, content_id)
        return ServiceResult(ok=True, op=op, data=self._payload(collection))

    @traced
    def random(self) -> ServiceResult:
        """Return one stored collection picked at random."""
        op = "random_features"
        try:
            collection = self._store.features.random()
        except SQLAlchemyError as exc:
            return self._store_error(op, exc)
        if collection is None:
            return ServiceResult.failure(op, ErrorCode.NOT_FOUND, "No feature collections stored")
        return ServiceResult(ok=True, op=op, data=self._payload(collection))

    @traced
    def resolve(self, content_id: str, name: str, *, raw: bool = False) -> ServiceResult:
        """Look up feature *name* of *content_id*, resolved or as stored."""
        op = "get_feature" if raw else "get_feature_value"
        try:
            found = self.feature(content_id, name) if raw else self.value(content_id, name)
        except SQLAlchemyError as exc:
            return self._store_error(op, exc)
        return ServiceResult(
            ok=True, op=op, data={"content_id": content_id, "name": name, "value": found}
        )

    def value(self, content_id: str, name: str) -> str | None:
        """Scalar value of feature *name* (``GetFeatureValue``); None if absent.

        Raises:
            SQLAlchemyError: On storage faults. Use :meth:`resolve` for a result.
        """
        collection = self._store.features.get(content_id)
        return collection.value(name) if collection is not None else None

    def feature(self, content_id: str, name: str) -> FeatureValue | None:
        """Raw stored value of feature *name* (``GetFeature``); None if absent.

        Raises:
            SQLAlchemyError: On storage faults.
        """
        collection = self._store.features.get(content_id)
        return collection.feature(name) if collection is not None else None

    @staticmethod
    def _payload(collection: FeatureCollection) -> dict[str, Any]:
        return dump_validated(
            FeatureCollectionData,
            {"content_id": collection.content_id, "features": collection.features},
        )

    @staticmethod
    def _not_found(op: str, content_id: str) -> ServiceResult:
        return ServiceResult.failure(
            op, ErrorCode.NOT_FOUND, f"No feature collection stored for {content_id!r}"
        )
