"""
Shared test data for the POS transaction core.
"""

from datetime import timedelta
from decimal import Decimal
from django.contrib.auth import get_user_model
from django.utils import timezone

from ..models import Branch, RateTableVersion, ServiceRate, SurchargeRule

PASSWORD = 'counter-pass-123'


def make_user(username, role='cashier', **extra):
    return get_user_model().objects.create_user(
        username=username,
        email=f'{username}@example.com',
        password=PASSWORD,
        role=role,
        **extra
    )


def make_branches():
    origin = Branch.objects.create(code='KLA', name='Kampala')
    destination = Branch.objects.create(code='EBB', name='Entebbe')
    return origin, destination


def make_rate_table(version='2025.1', base_freight='10', per_kg_rate='2', tax_rate='0.1',
                    zone='*', publish=True, effective_from=None, surcharges=(), **fields):
    """
    Rate table with a single ``standard`` rate line.

    ``surcharges`` is an iterable of SurchargeRule field dicts.
    """
    table = RateTableVersion.objects.create(
        version=version,
        tax_rate=Decimal(tax_rate),
        effective_from=effective_from or timezone.now() - timedelta(days=1),
        **fields
    )
    ServiceRate.objects.create(
        rate_table=table,
        zone=zone,
        service_level='standard',
        base_freight=Decimal(base_freight),
        per_kg_rate=Decimal(per_kg_rate),
    )
    for surcharge in surcharges:
        SurchargeRule.objects.create(rate_table=table, **surcharge)
    if publish:
        table.publish()
    return table


def shipment_request(origin, destination, key='key-1', **overrides):
    data = {
        'origin_branch_id': origin.id,
        'destination_branch_id': destination.id,
        'service_level': 'standard',
        'weight': Decimal('5'),
        'declared_value': Decimal('0'),
        'cod_amount': Decimal('0'),
        'insurance_type': 'none',
        'payer_type': 'sender',
        'receiver_name': 'Jane Receiver',
        'receiver_phone': '+256700000000',
        'idempotency_key': key,
    }
    data.update(overrides)
    return data
