"""
Unit of work for the POS transaction core.

Runs one request's writes inside a single database transaction and turns
the outcome into an ``OperationResult``.
"""

import logging
from typing import Callable, Optional
from django.db import DatabaseError, IntegrityError, transaction

from ..exceptions import BusinessException, PersistenceException
from ..results import OperationResult

logger = logging.getLogger(__name__)


class UnitOfWork:
    """
    All-or-nothing execution boundary.

    Whatever ``fn`` writes is committed together, or rolled back together
    when it raises. Exceptions do not escape ``execute``.
    """

    def __init__(self, using: Optional[str] = None, name: str = "unit_of_work"):
        self.using = using
        self.name = name

    def execute(self, fn: Callable, *args, **kwargs) -> OperationResult:
        try:
            with transaction.atomic(using=self.using):
                value = fn(*args, **kwargs)
        except BusinessException as exc:
            logger.info(f"{self.name} rolled back: {exc.code} {exc.message}")
            return OperationResult.failure(exc)
        except IntegrityError as exc:
            logger.warning(f"{self.name} rolled back on integrity error: {exc}")
            return OperationResult.failure(PersistenceException(
                "Conflicting write detected while committing",
                "INTEGRITY_ERROR",
                integrity_violation=True,
            ))
        except DatabaseError as exc:
            logger.exception(f"{self.name} rolled back on database error")
            return OperationResult.failure(PersistenceException(
                f"Storage failure during commit: {exc}",
            ))
        return OperationResult.success(value)
