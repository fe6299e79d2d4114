"""
Idempotency Ledger for the POS transaction core.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Union

from django.apps import apps

from ..models import IdempotencyRecord

logger = logging.getLogger(__name__)

RESERVED = 'RESERVED'


@dataclass(frozen=True)
class LedgerHit:
    """A committed result for an (operation type, key) pair."""
    operation_type: str
    idempotency_key: str
    result_type: str
    result_reference: str


class IdempotencyLedger:
    """
    Durable map of ``(operation_type, idempotency_key)`` to results.

    The ledger never writes ahead of the work. ``RESERVED`` only says that
    no committed result exists yet; the caller's write of the record (in the
    same transaction as the entity) is what actually claims the key.
    """

    @staticmethod
    def lookup(operation_type: str, idempotency_key: str) -> Optional[LedgerHit]:
        record = IdempotencyRecord.objects.filter(
            operation_type=operation_type,
            idempotency_key=idempotency_key,
        ).first()
        if record is None:
            return None
        return LedgerHit(
            operation_type=record.operation_type,
            idempotency_key=record.idempotency_key,
            result_type=record.result_type,
            result_reference=record.result_reference,
        )

    @classmethod
    def check_or_reserve(cls, operation_type: str, idempotency_key: str) -> Union[LedgerHit, str]:
        """
        Return the committed result, or ``RESERVED`` when there is none.
        """
        hit = cls.lookup(operation_type, idempotency_key)
        return hit if hit is not None else RESERVED

    @staticmethod
    def record(operation_type: str, idempotency_key: str, entity) -> IdempotencyRecord:
        """
        Write the ledger record for ``entity``.

        Must run inside the transaction that created ``entity``. Raises
        IntegrityError when another request already committed the key.
        """
        return IdempotencyRecord.objects.create(
            operation_type=operation_type,
            idempotency_key=idempotency_key,
            result_type=entity._meta.label,
            result_reference=str(entity.pk),
        )

    @staticmethod
    def resolve(hit: LedgerHit):
        """Load the entity a ledger hit points to."""
        model = apps.get_model(hit.result_type)
        return model.objects.get(pk=hit.result_reference)
