"""BaseService: abstract foundation for all dossierctl services.

Every service receives a :class:`Store` at construction time. The Store
provides transactional access to the ledger, feature store and graph.
Services own their transaction boundaries via ``self._store.transaction()``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy.exc import SQLAlchemyError

from dossierctl.services.result import ErrorCode, ServiceResult

if TYPE_CHECKING:
    from dossierctl.infrastructure.store import Store

logger = logging.getLogger(__name__)


class BaseService:
    """Abstract base for all service-layer classes.

    Usage::

        class LabelService(BaseService):
            def append(self, label: Label) -> ServiceResult:
                with self._store.transaction() as txn:
                    ...
    """

    def __init__(self, store: Store) -> None:
        self._store = store

    @staticmethod
    def _store_error(op: str, exc: SQLAlchemyError) -> ServiceResult:
        """Map a persistence failure to a ``STORE_ERROR`` result."""
        logger.warning("%s failed: %s", op, exc)
        return ServiceResult.failure(
            op,
            ErrorCode.STORE_ERROR,
            f"Storage failure during {op}",
            reason=str(exc.__cause__ or exc),
        )
