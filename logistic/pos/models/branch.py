"""
Branch model for the POS transaction core.
"""

import uuid
from django.db import models
from django.utils import timezone


class Branch(models.Model):
    """
    Courier branch acting as a shipment origin or destination.

    Branch codes form the route key used to look up zone rates
    (e.g. ``KLA-EBB``).
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    code = models.CharField(
        max_length=10,
        unique=True,
        help_text="Short branch code used in route keys"
    )
    name = models.CharField(max_length=100)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ['code']
        verbose_name_plural = 'branches'

    def __str__(self):
        return f"{self.code} - {self.name}"
