"""
Payment transaction model for the POS transaction core.
"""

import uuid
from django.conf import settings
from django.db import models
from django.utils import timezone

from .shipment import PayerType


class TransactionType(models.TextChoices):
    PAYMENT = 'PAYMENT', 'Payment'
    REFUND = 'REFUND', 'Refund'


class PaymentMethod(models.TextChoices):
    CASH = 'cash', 'Cash'
    CARD = 'card', 'Card'
    MOBILE_MONEY = 'mobile_money', 'Mobile money'
    BANK_TRANSFER = 'bank_transfer', 'Bank transfer'
    ON_ACCOUNT = 'on_account', 'On account'
    CHEQUE = 'cheque', 'Cheque'


class PostingStatus(models.TextChoices):
    """Outcome of handing the transaction to the posting service."""
    POSTED = 'POSTED', 'Posted'
    PENDING_RECONCILIATION = 'PENDING_RECONCILIATION', 'Pending reconciliation'


class PaymentTransaction(models.Model):
    """
    Money taken (or returned) at the counter for a shipment.

    Created exactly once per idempotency key.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    shipment = models.ForeignKey(
        'Shipment',
        on_delete=models.PROTECT,
        related_name='payments'
    )
    idempotency_key = models.CharField(
        max_length=64,
        help_text="Client-supplied key; unique per transaction type"
    )
    transaction_type = models.CharField(
        max_length=10,
        choices=TransactionType.choices,
        default=TransactionType.PAYMENT
    )
    refund_of = models.ForeignKey(
        'self',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='refunds'
    )

    amount = models.DecimalField(max_digits=14, decimal_places=2)
    currency = models.CharField(max_length=3)
    method = models.CharField(max_length=20, choices=PaymentMethod.choices)
    payer_type = models.CharField(max_length=20, choices=PayerType.choices, default=PayerType.SENDER)
    external_reference = models.CharField(max_length=100, blank=True)

    posting_status = models.CharField(
        max_length=30,
        choices=PostingStatus.choices,
        default=PostingStatus.PENDING_RECONCILIATION
    )
    posting_reference = models.CharField(max_length=100, blank=True)

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        related_name='pos_payments'
    )
    completed_at = models.DateTimeField(default=timezone.now)
    created_at = models.DateTimeField(default=timezone.now)
    metadata = models.JSONField(default=dict, blank=True)

    class Meta:
        ordering = ['-created_at']
        constraints = [
            models.UniqueConstraint(
                fields=['transaction_type', 'idempotency_key'],
                name='unique_payment_transaction_key'
            ),
        ]
        indexes = [
            models.Index(fields=['shipment', 'transaction_type']),
            models.Index(fields=['posting_status']),
            models.Index(fields=['method']),
        ]

    def __str__(self):
        return f"{self.transaction_type} {self.amount} {self.currency} for {self.shipment_id}"

    @property
    def is_refund(self):
        return self.transaction_type == TransactionType.REFUND
