"""
Audit log model for the POS transaction core.
"""

import uuid
from decimal import Decimal
from django.db import models
from django.conf import settings
from django.utils import timezone


def convert_decimals(obj):
    """Convert Decimal values (recursively) to strings for JSON storage."""
    if isinstance(obj, dict):
        return {k: convert_decimals(v) for k, v in obj.items()}
    elif isinstance(obj, (list, tuple)):
        return [convert_decimals(item) for item in obj]
    elif isinstance(obj, Decimal):
        return str(obj)
    elif isinstance(obj, uuid.UUID):
        return str(obj)
    else:
        return obj


class AuditAction:
    """Audit event types emitted by the POS core."""
    SHIPMENT_CREATED = 'shipment_created'
    SHIPMENT_CANCELLED = 'shipment_cancelled'
    PAYMENT_RECEIVED = 'payment_received'
    PAYMENT_REFUNDED = 'payment_refunded'
    POSTING_FAILED = 'posting_failed'
    LABEL_PRINTED = 'label_printed'
    LABEL_REPRINTED = 'label_reprinted'
    OVERRIDE_REQUESTED = 'override_requested'
    OVERRIDE_APPROVED = 'override_approved'
    OVERRIDE_REJECTED = 'override_rejected'
    OVERRIDE_EXPIRED = 'override_expired'
    OVERRIDE_CONSUMED = 'override_consumed'


class AuditLog(models.Model):
    """
    Append-only audit trail for shipments, payments and overrides.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    # Entity being audited
    entity_type = models.CharField(
        max_length=50,
        help_text="Type of entity (Shipment, PaymentTransaction, SupervisorOverride)"
    )
    entity_id = models.UUIDField(
        help_text="UUID of the entity being audited"
    )

    action = models.CharField(
        max_length=50,
        help_text="Event type (shipment_created, payment_received, ...)"
    )

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        related_name='pos_audit_logs',
        help_text="User who performed the action"
    )

    old_values = models.JSONField(default=dict, blank=True)
    new_values = models.JSONField(default=dict, blank=True)

    timestamp = models.DateTimeField(default=timezone.now)
    notes = models.TextField(blank=True)
    metadata = models.JSONField(default=dict, blank=True)

    class Meta:
        ordering = ['-timestamp']
        indexes = [
            models.Index(fields=['entity_type', 'entity_id', '-timestamp']),
            models.Index(fields=['action', '-timestamp']),
            models.Index(fields=['user', '-timestamp']),
        ]

    def __str__(self):
        return f"{self.entity_type} {self.entity_id} - {self.action} by {self.user_id} at {self.timestamp}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValueError("Audit log entries are append-only")
        super().save(*args, **kwargs)

    @classmethod
    def log_change(cls, entity, action: str, user_id=None, old_values=None,
                   new_values=None, notes="", metadata=None):
        """
        Create an audit log entry for an entity change.

        Args:
            entity: The model instance being audited
            action: The event type
            user_id: Id of the user who performed the action
            old_values: Previous state
            new_values: New state
            notes: Additional notes
            metadata: Additional metadata
        """
        return cls.objects.create(
            entity_type=entity.__class__.__name__,
            entity_id=entity.id,
            action=action,
            user_id=user_id,
            old_values=convert_decimals(old_values or {}),
            new_values=convert_decimals(new_values or {}),
            notes=notes,
            metadata=convert_decimals(metadata or {})
        )

