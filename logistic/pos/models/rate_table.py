"""
Rate table models for the POS transaction core.

A rate table version is prepared as a DRAFT by an administrative process and
becomes immutable once published. Quotes always reference the version label
they were priced with.
"""

import uuid
from decimal import Decimal
from django.conf import settings
from django.db import models
from django.utils import timezone

from ..exceptions import ImmutableRateTableError


class RateTableStatus(models.TextChoices):
    """Publication lifecycle of a rate table version."""
    DRAFT = 'DRAFT', 'Draft'
    PUBLISHED = 'PUBLISHED', 'Published'


class ServiceLevel(models.TextChoices):
    """Service levels offered at the counter."""
    ECONOMY = 'economy', 'Economy'
    STANDARD = 'standard', 'Standard'
    EXPRESS = 'express', 'Express'
    PRIORITY = 'priority', 'Priority'


class RateType(models.TextChoices):
    PERCENT = 'percent', 'Percent'
    FLAT = 'flat', 'Flat'


def default_currency():
    return getattr(settings, 'POS_DEFAULT_CURRENCY', 'UGX')


def default_dim_factor():
    return getattr(settings, 'POS_DEFAULT_DIM_FACTOR', 5000)


def default_insurance_rates():
    return {'none': '0', 'basic': '1', 'full': '2', 'premium': '3'}


class RateTableVersion(models.Model):
    """
    Immutable snapshot of pricing rules.

    Holds the table-wide parameters (currency, dim factor, fuel index, tax,
    insurance tiers and COD rule). Zone rates and surcharge rules hang off it.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    version = models.CharField(
        max_length=50,
        unique=True,
        help_text="Version label quoted back to clients (e.g. 2025.12-1)"
    )
    currency = models.CharField(max_length=3, default=default_currency)
    dim_factor = models.PositiveIntegerField(
        default=default_dim_factor,
        help_text="Volumetric divisor (cm3 per kg)"
    )
    fuel_surcharge_percent = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        default=Decimal('0.00'),
        help_text="Fuel index applied to base freight + weight charge"
    )
    tax_rate = models.DecimalField(
        max_digits=6,
        decimal_places=4,
        default=Decimal('0.0000'),
        help_text="Tax rate as a fraction (0.18 = 18%)"
    )
    insurance_rates = models.JSONField(
        default=default_insurance_rates,
        help_text="Insurance tier -> percent of declared value"
    )

    # COD rule
    cod_fee_type = models.CharField(
        max_length=10,
        choices=RateType.choices,
        default=RateType.PERCENT
    )
    cod_fee_value = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal('0.00'),
        help_text="Percent of COD amount, or flat fee"
    )
    cod_min_fee = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal('0.00'),
        help_text="Minimum fee for percent-based COD rules"
    )

    status = models.CharField(
        max_length=10,
        choices=RateTableStatus.choices,
        default=RateTableStatus.DRAFT
    )
    effective_from = models.DateTimeField(default=timezone.now)
    published_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(default=timezone.now)
    notes = models.TextField(blank=True)

    class Meta:
        ordering = ['-effective_from']
        indexes = [
            models.Index(fields=['status', '-effective_from']),
        ]

    def __str__(self):
        return f"Rate table {self.version} ({self.status})"

    @property
    def is_published(self):
        return self.status == RateTableStatus.PUBLISHED

    def _persisted_status(self):
        if self._state.adding:
            return None
        return type(self).objects.filter(pk=self.pk).values_list('status', flat=True).first()

    def save(self, *args, **kwargs):
        if self._persisted_status() == RateTableStatus.PUBLISHED:
            raise ImmutableRateTableError(self.version)
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        if self._persisted_status() == RateTableStatus.PUBLISHED:
            raise ImmutableRateTableError(self.version)
        return super().delete(*args, **kwargs)

    def publish(self):
        """Publish the version. Only a DRAFT can be published, exactly once."""
        now = timezone.now()
        updated = type(self).objects.filter(
            pk=self.pk, status=RateTableStatus.DRAFT
        ).update(status=RateTableStatus.PUBLISHED, published_at=now)
        if not updated:
            raise ImmutableRateTableError(self.version)
        self.status = RateTableStatus.PUBLISHED
        self.published_at = now
        return self


class RateTableChild(models.Model):
    """Rows owned by a rate table version; frozen with their parent."""

    class Meta:
        abstract = True

    def _guard(self):
        parent = RateTableVersion.objects.filter(pk=self.rate_table_id).first()
        if parent and parent.is_published:
            raise ImmutableRateTableError(parent.version)

    def save(self, *args, **kwargs):
        self._guard()
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        self._guard()
        return super().delete(*args, **kwargs)


class ServiceRate(RateTableChild):
    """
    Zone/service-level rate line.

    ``zone`` is a route key ("ORIGIN-DEST") or ``*`` for any route.
    """

    WILDCARD_ZONE = '*'

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    rate_table = models.ForeignKey(
        RateTableVersion,
        on_delete=models.CASCADE,
        related_name='service_rates'
    )
    zone = models.CharField(max_length=50, default=WILDCARD_ZONE)
    service_level = models.CharField(max_length=20, choices=ServiceLevel.choices)
    base_freight = models.DecimalField(max_digits=12, decimal_places=2)
    per_kg_rate = models.DecimalField(max_digits=12, decimal_places=2)

    class Meta:
        ordering = ['service_level', 'zone']
        constraints = [
            models.UniqueConstraint(
                fields=['rate_table', 'zone', 'service_level'],
                name='uniq_rate_table_zone_service'
            ),
        ]

    def __str__(self):
        return f"{self.rate_table.version} {self.zone}/{self.service_level}"


class SurchargeRule(RateTableChild):
    """
    Surcharge applied when its filters match.

    Rules are cumulative: every matching rule contributes, in
    ``(sequence, code)`` order.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    rate_table = models.ForeignKey(
        RateTableVersion,
        on_delete=models.CASCADE,
        related_name='surcharge_rules'
    )
    code = models.CharField(max_length=30)
    name = models.CharField(max_length=100, blank=True)
    rate_type = models.CharField(max_length=10, choices=RateType.choices, default=RateType.FLAT)
    amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        help_text="Flat amount or percent of base freight + weight charge"
    )
    service_level = models.CharField(
        max_length=20,
        choices=ServiceLevel.choices,
        blank=True,
        help_text="Only applies to this service level (blank = all)"
    )
    zone = models.CharField(max_length=50, blank=True, help_text="Only applies to this route (blank = all)")
    min_billable_weight = models.DecimalField(
        max_digits=10,
        decimal_places=3,
        null=True,
        blank=True,
        help_text="Only applies from this billable weight upwards"
    )
    sequence = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ['sequence', 'code']
        constraints = [
            models.UniqueConstraint(fields=['rate_table', 'code'], name='uniq_rate_table_surcharge_code'),
        ]

    def __str__(self):
        return f"{self.rate_table.version} surcharge {self.code}"
