"""
Idempotency ledger model for the POS transaction core.
"""

import uuid
from django.db import models
from django.utils import timezone


class OperationType(models.TextChoices):
    """Mutating operations guarded by an idempotency key."""
    CREATE_SHIPMENT = 'create_shipment', 'Create shipment'
    PROCESS_PAYMENT = 'process_payment', 'Process payment'
    REFUND_PAYMENT = 'refund_payment', 'Refund payment'


class IdempotencyRecord(models.Model):
    """
    Maps ``(operation_type, idempotency_key)`` to the entity it produced.

    Written in the same transaction as the guarded entity and never updated.
    The unique constraint is what makes concurrent duplicates lose.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    operation_type = models.CharField(max_length=30, choices=OperationType.choices)
    idempotency_key = models.CharField(max_length=64)
    result_type = models.CharField(
        max_length=50,
        help_text="Model name of the entity produced"
    )
    result_reference = models.CharField(
        max_length=64,
        help_text="Primary key of the entity produced"
    )
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ['-created_at']
        constraints = [
            models.UniqueConstraint(
                fields=['operation_type', 'idempotency_key'],
                name='uniq_idempotency_operation_key'
            ),
        ]

    def __str__(self):
        return f"{self.operation_type}:{self.idempotency_key} -> {self.result_type} {self.result_reference}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValueError("Idempotency records are write-once")
        super().save(*args, **kwargs)
