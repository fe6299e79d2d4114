"""
Supervisor override model for the POS transaction core.
"""

import uuid
from django.conf import settings
from django.db import models
from django.utils import timezone


class OverrideStatus(models.TextChoices):
    """Override lifecycle. Only PENDING may transition; the rest are terminal."""
    PENDING = 'PENDING', 'Pending'
    APPROVED = 'APPROVED', 'Approved'
    REJECTED = 'REJECTED', 'Rejected'
    EXPIRED = 'EXPIRED', 'Expired'


class OverrideActionType(models.TextChoices):
    """Privileged actions that need a supervisor's approval."""
    DISCOUNT = 'discount', 'Discount'
    CANCEL = 'cancel', 'Cancel shipment'
    BACKDATE = 'backdate', 'Backdate'
    REPRINT = 'reprint', 'Reprint label'
    PRICE_OVERRIDE = 'price_override', 'Price override'
    REFUND = 'refund', 'Refund'


class SupervisorOverride(models.Model):
    """
    Time-boxed approval request for a privileged action.

    ``status`` only ever changes through compare-and-swap updates in
    ``OverrideService``. ``consumed_at`` marks an approved override that a
    gated action has already used.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    action_type = models.CharField(max_length=20, choices=OverrideActionType.choices)
    shipment = models.ForeignKey(
        'Shipment',
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='overrides',
        help_text="Shipment the action targets, if any"
    )

    requested_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='requested_overrides'
    )
    reason = models.TextField()
    request_data = models.JSONField(default=dict, blank=True)

    status = models.CharField(
        max_length=10,
        choices=OverrideStatus.choices,
        default=OverrideStatus.PENDING
    )
    expires_at = models.DateTimeField()

    approved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='approved_overrides'
    )
    approved_at = models.DateTimeField(null=True, blank=True)
    approved_data = models.JSONField(default=dict, blank=True)
    decided_at = models.DateTimeField(null=True, blank=True)
    rejection_reason = models.TextField(blank=True)

    consumed_at = models.DateTimeField(null=True, blank=True)
    consumed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='consumed_overrides'
    )

    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['shipment', 'action_type', 'status']),
            models.Index(fields=['requested_by', 'status']),
            models.Index(fields=['status', 'expires_at']),
        ]

    def __str__(self):
        return f"Override {self.action_type} ({self.status}) requested by {self.requested_by_id}"

    def is_expired(self, now=None):
        return (now or timezone.now()) > self.expires_at
