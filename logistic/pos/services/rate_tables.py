"""
Rate Table Provider for the POS transaction core.

Resolves routes from branches and hands out immutable snapshots of
published rate table versions.
"""

import logging
from decimal import Decimal
from typing import Optional, Tuple
from django.db.models import Q
from django.utils import timezone

from ..exceptions import NotFoundException, QuoteException
from ..models import Branch, RateTableVersion, RateTableStatus
from .quote_calculator import (
    RateTableSnapshot, ServiceRateEntry, SurchargeRuleEntry, route_key, WILDCARD_ZONE,
)

logger = logging.getLogger(__name__)


def build_snapshot(version: RateTableVersion) -> RateTableSnapshot:
    """Copy a rate table version and its rows into an immutable snapshot."""
    service_rates = tuple(
        ServiceRateEntry(
            zone=rate.zone,
            service_level=rate.service_level,
            base_freight=rate.base_freight,
            per_kg_rate=rate.per_kg_rate,
        )
        for rate in version.service_rates.order_by('service_level', 'zone')
    )
    surcharge_rules = tuple(
        SurchargeRuleEntry(
            code=rule.code,
            name=rule.name,
            rate_type=rule.rate_type,
            amount=rule.amount,
            service_level=rule.service_level,
            zone=rule.zone,
            min_billable_weight=rule.min_billable_weight,
            sequence=rule.sequence,
        )
        for rule in version.surcharge_rules.order_by('sequence', 'code')
    )
    return RateTableSnapshot(
        version=version.version,
        currency=version.currency,
        service_rates=service_rates,
        surcharge_rules=surcharge_rules,
        dim_factor=version.dim_factor,
        fuel_surcharge_percent=version.fuel_surcharge_percent,
        tax_rate=version.tax_rate,
        insurance_rates={k: Decimal(str(v)) for k, v in (version.insurance_rates or {}).items()},
        cod_fee_type=version.cod_fee_type,
        cod_fee_value=version.cod_fee_value,
        cod_min_fee=version.cod_min_fee,
    )


class RateTableProvider:
    """Read-only access to published rate tables."""

    @staticmethod
    def resolve_route(origin_branch_id, destination_branch_id) -> Tuple[Branch, Branch, str]:
        """
        Resolve branch ids into branches and a route key.

        Raises:
            QuoteException: If either branch is unknown or inactive
        """
        branches = {
            str(b.id): b for b in Branch.objects.filter(
                id__in=[origin_branch_id, destination_branch_id], is_active=True
            )
        }
        origin = branches.get(str(origin_branch_id))
        destination = branches.get(str(destination_branch_id))
        if origin is None or destination is None:
            raise QuoteException(
                QuoteException.INVALID_ROUTE,
                "Origin or destination branch is unknown or inactive",
                {
                    'origin_branch_id': str(origin_branch_id),
                    'destination_branch_id': str(destination_branch_id),
                }
            )
        return origin, destination, route_key(origin.code, destination.code)

    @staticmethod
    def get_active_version(route: str, service_level: str, at=None) -> RateTableSnapshot:
        """
        Return the latest effective published version that prices the route.

        Falls back to the latest effective version when none has a matching
        rate line, so the calculator reports the precise quote error.

        Raises:
            QuoteException: If no published rate table is in effect
        """
        at = at or timezone.now()
        published = RateTableVersion.objects.filter(
            status=RateTableStatus.PUBLISHED,
            effective_from__lte=at,
        ).order_by('-effective_from', '-published_at')

        version = published.filter(
            Q(service_rates__zone=route) | Q(service_rates__zone=WILDCARD_ZONE),
            service_rates__service_level=service_level,
        ).distinct().first() or published.first()

        if version is None:
            raise QuoteException(
                QuoteException.INVALID_ROUTE,
                "No published rate table is in effect",
                {'route': route, 'service_level': service_level}
            )

        logger.debug(f"Rate table {version.version} selected for {route}/{service_level}")
        return build_snapshot(version)

    @staticmethod
    def get_version(label: str) -> RateTableSnapshot:
        """
        Return a pinned published version by label.

        Raises:
            NotFoundException: If no published version has this label
        """
        version = RateTableVersion.objects.filter(
            version=label, status=RateTableStatus.PUBLISHED
        ).first()
        if version is None:
            raise NotFoundException("RateTableVersion", label)
        return build_snapshot(version)

    @classmethod
    def snapshot_for(cls, route: str, service_level: str, pinned_version: Optional[str] = None) -> RateTableSnapshot:
        if pinned_version:
            return cls.get_version(pinned_version)
        return cls.get_active_version(route, service_level)
