"""
Shipment model for the POS transaction core.
"""

import uuid
from decimal import Decimal
from django.conf import settings
from django.db import models
from django.utils import timezone


class ShipmentStatus(models.TextChoices):
    """Counter-side shipment status."""
    CREATED = 'CREATED', 'Created'
    CANCELLED = 'CANCELLED', 'Cancelled'


class PaymentStatus(models.TextChoices):
    """Payment state of a shipment."""
    UNPAID = 'UNPAID', 'Unpaid'
    PARTIAL = 'PARTIAL', 'Partially paid'
    PAID = 'PAID', 'Paid'
    REFUNDED = 'REFUNDED', 'Refunded'


class InsuranceType(models.TextChoices):
    NONE = 'none', 'None'
    BASIC = 'basic', 'Basic'
    FULL = 'full', 'Full'
    PREMIUM = 'premium', 'Premium'


class PayerType(models.TextChoices):
    SENDER = 'sender', 'Sender'
    RECEIVER = 'receiver', 'Receiver'
    THIRD_PARTY = 'third_party', 'Third party'
    ACCOUNT = 'account', 'Account'


def generate_tracking_number():
    prefix = getattr(settings, 'POS_TRACKING_PREFIX', 'POS')
    return f"{prefix}{timezone.now():%y%m%d}{uuid.uuid4().hex[:8].upper()}"


class Shipment(models.Model):
    """
    Shipment booked at a POS counter.

    Created exactly once per idempotency key. Owns the quote it was priced
    with (``metadata['quote']``) so the price basis stays auditable.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    tracking_number = models.CharField(
        max_length=50,
        unique=True,
        default=generate_tracking_number,
        help_text="Unique tracking number printed on the label"
    )
    idempotency_key = models.CharField(
        max_length=64,
        unique=True,
        help_text="Client-supplied key the shipment was created with"
    )

    # Route and service
    origin_branch = models.ForeignKey(
        'Branch',
        on_delete=models.PROTECT,
        related_name='outbound_shipments'
    )
    destination_branch = models.ForeignKey(
        'Branch',
        on_delete=models.PROTECT,
        related_name='inbound_shipments'
    )
    service_level = models.CharField(max_length=20)

    # Parcel information (aggregated over parcels)
    parcel_count = models.PositiveIntegerField(default=1)
    weight = models.DecimalField(
        max_digits=10,
        decimal_places=3,
        help_text="Total actual weight in kg"
    )
    billable_weight = models.DecimalField(max_digits=10, decimal_places=3)
    declared_value = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'))
    cod_amount = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'))
    insurance_type = models.CharField(
        max_length=10,
        choices=InsuranceType.choices,
        default=InsuranceType.NONE
    )
    payer_type = models.CharField(
        max_length=20,
        choices=PayerType.choices,
        default=PayerType.SENDER
    )

    # Receiver
    receiver_name = models.CharField(max_length=255, blank=True)
    receiver_phone = models.CharField(max_length=50, blank=True)
    delivery_address = models.CharField(max_length=500, blank=True)
    description = models.CharField(max_length=500, blank=True)

    # Price breakdown (copied from the quote)
    base_freight = models.DecimalField(max_digits=14, decimal_places=2)
    weight_charge = models.DecimalField(max_digits=14, decimal_places=2)
    fuel_surcharge = models.DecimalField(max_digits=14, decimal_places=2)
    surcharges_total = models.DecimalField(max_digits=14, decimal_places=2)
    insurance_fee = models.DecimalField(max_digits=14, decimal_places=2)
    cod_fee = models.DecimalField(max_digits=14, decimal_places=2)
    discount_amount = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'))
    tax_amount = models.DecimalField(max_digits=14, decimal_places=2)
    price_amount = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        help_text="Amount due for the shipment"
    )
    currency = models.CharField(max_length=3)
    rate_table_version = models.CharField(max_length=50)

    # Status
    status = models.CharField(
        max_length=20,
        choices=ShipmentStatus.choices,
        default=ShipmentStatus.CREATED
    )
    payment_status = models.CharField(
        max_length=20,
        choices=PaymentStatus.choices,
        default=PaymentStatus.UNPAID
    )
    amount_paid = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'))

    # Labels
    label_print_count = models.PositiveIntegerField(default=0)
    last_label_printed_at = models.DateTimeField(null=True, blank=True)

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        related_name='pos_shipments'
    )
    cancelled_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    metadata = models.JSONField(
        default=dict,
        blank=True,
        help_text="Quote snapshot, idempotency key and override references"
    )

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status', 'payment_status']),
            models.Index(fields=['origin_branch', '-created_at']),
            models.Index(fields=['rate_table_version']),
        ]

    def __str__(self):
        return f"Shipment {self.tracking_number} ({self.status})"

    @property
    def outstanding_amount(self):
        return max(self.price_amount - self.amount_paid, Decimal('0.00'))

    @property
    def is_cancelled(self):
        return self.status == ShipmentStatus.CANCELLED

    @property
    def quote(self):
        return self.metadata.get('quote', {})

    def recalculate_payment_status(self):
        """Derive payment status from the amount paid so far."""
        if self.amount_paid <= 0:
            self.payment_status = (
                PaymentStatus.REFUNDED if self.payment_status != PaymentStatus.UNPAID
                else PaymentStatus.UNPAID
            )
        elif self.amount_paid >= self.price_amount:
            self.payment_status = PaymentStatus.PAID
        else:
            self.payment_status = PaymentStatus.PARTIAL
        return self.payment_status
