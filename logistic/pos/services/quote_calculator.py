"""
Quote Calculator for the POS transaction core.

Pure pricing: maps a shipment specification and a rate table snapshot to a
fully itemised quote. Nothing here touches the database, the clock or
settings, so the same inputs always produce the same quote.
"""

from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Any, List, Mapping, Optional, Tuple

from ..exceptions import QuoteException, ValidationException

ZERO = Decimal('0.00')
HUNDRED = Decimal('100')
TWO_PLACES = Decimal('0.01')
THREE_PLACES = Decimal('0.001')

DEFAULT_DIM_FACTOR = 5000
WILDCARD_ZONE = '*'
DEFAULT_INSURANCE_RATES = {
    'none': Decimal('0'),
    'basic': Decimal('1'),
    'full': Decimal('2'),
    'premium': Decimal('3'),
}


def money(value) -> Decimal:
    """Round a monetary amount half-up to 2 decimal places."""
    return Decimal(value).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def kilograms(value) -> Decimal:
    """Round a weight half-up to 3 decimal places."""
    return Decimal(value).quantize(THREE_PLACES, rounding=ROUND_HALF_UP)


def route_key(origin_code: str, destination_code: str) -> str:
    return f"{origin_code}-{destination_code}"


@dataclass(frozen=True)
class Parcel:
    """One physical parcel of a shipment. Dimensions are in cm, weight in kg."""
    weight: Decimal
    length: Optional[Decimal] = None
    width: Optional[Decimal] = None
    height: Optional[Decimal] = None
    declared_value: Decimal = ZERO
    cod_amount: Decimal = ZERO

    @property
    def dimensions(self) -> Tuple[Optional[Decimal], ...]:
        return (self.length, self.width, self.height)

    @property
    def has_dimensions(self) -> bool:
        return all(d is not None for d in self.dimensions)


@dataclass(frozen=True)
class ShipmentSpec:
    """What is being shipped, where and how."""
    zone: str
    service_level: str
    parcels: Tuple[Parcel, ...]
    insurance_type: str = 'none'


@dataclass(frozen=True)
class ServiceRateEntry:
    zone: str
    service_level: str
    base_freight: Decimal
    per_kg_rate: Decimal


@dataclass(frozen=True)
class SurchargeRuleEntry:
    code: str
    rate_type: str
    amount: Decimal
    name: str = ''
    service_level: str = ''
    zone: str = ''
    min_billable_weight: Optional[Decimal] = None
    sequence: int = 0

    def matches(self, zone: str, service_level: str, billable_weight: Decimal) -> bool:
        if self.service_level and self.service_level != service_level:
            return False
        if self.zone and self.zone != zone:
            return False
        if self.min_billable_weight is not None and billable_weight < self.min_billable_weight:
            return False
        return True


@dataclass(frozen=True)
class RateTableSnapshot:
    """
    Immutable in-memory copy of a published rate table version.
    """
    version: str
    currency: str
    service_rates: Tuple[ServiceRateEntry, ...]
    surcharge_rules: Tuple[SurchargeRuleEntry, ...] = ()
    dim_factor: int = DEFAULT_DIM_FACTOR
    fuel_surcharge_percent: Decimal = ZERO
    tax_rate: Decimal = ZERO
    insurance_rates: Mapping[str, Decimal] = field(default_factory=lambda: dict(DEFAULT_INSURANCE_RATES))
    cod_fee_type: str = 'percent'
    cod_fee_value: Decimal = ZERO
    cod_min_fee: Decimal = ZERO

    def find_rate(self, zone: str, service_level: str) -> ServiceRateEntry:
        """Exact route first, then the wildcard route."""
        candidates = [r for r in self.service_rates if r.service_level == service_level]
        if not candidates:
            raise QuoteException(
                QuoteException.INVALID_SERVICE_LEVEL,
                f"Service level '{service_level}' is not offered in rate table {self.version}",
                {'service_level': service_level, 'rate_table_version': self.version}
            )
        for wanted in (zone, WILDCARD_ZONE):
            for rate in candidates:
                if rate.zone == wanted:
                    return rate
        raise QuoteException(
            QuoteException.INVALID_ROUTE,
            f"No '{service_level}' rate for route {zone} in rate table {self.version}",
            {'zone': zone, 'service_level': service_level, 'rate_table_version': self.version}
        )

    def insurance_rate(self, insurance_type: str) -> Decimal:
        if insurance_type not in self.insurance_rates:
            raise ValidationException(
                f"Unknown insurance type '{insurance_type}'",
                {'insurance_type': insurance_type}
            )
        return Decimal(self.insurance_rates[insurance_type])


@dataclass(frozen=True)
class AppliedSurcharge:
    code: str
    amount: Decimal


@dataclass(frozen=True)
class ParcelQuote:
    actual_weight: Decimal
    volumetric_weight: Decimal
    billable_weight: Decimal
    base_freight: Decimal
    weight_charge: Decimal
    fuel_surcharge: Decimal
    surcharges_total: Decimal
    applied_surcharges: Tuple[AppliedSurcharge, ...]
    insurance_fee: Decimal
    cod_fee: Decimal
    subtotal: Decimal
    tax: Decimal
    total: Decimal

    def to_dict(self) -> Dict[str, Any]:
        return {
            'actual_weight': str(self.actual_weight),
            'volumetric_weight': str(self.volumetric_weight),
            'billable_weight': str(self.billable_weight),
            'base_freight': str(self.base_freight),
            'weight_charge': str(self.weight_charge),
            'fuel_surcharge': str(self.fuel_surcharge),
            'surcharges_total': str(self.surcharges_total),
            'applied_surcharges': [{'code': s.code, 'amount': str(s.amount)} for s in self.applied_surcharges],
            'insurance_fee': str(self.insurance_fee),
            'cod_fee': str(self.cod_fee),
            'subtotal': str(self.subtotal),
            'tax': str(self.tax),
            'total': str(self.total),
        }


@dataclass(frozen=True)
class Quote:
    """Fully itemised price quote; aggregate of its parcel quotes."""
    base_freight: Decimal
    weight_charge: Decimal
    fuel_surcharge: Decimal
    surcharges_total: Decimal
    applied_surcharges: Tuple[AppliedSurcharge, ...]
    insurance_fee: Decimal
    cod_fee: Decimal
    subtotal: Decimal
    tax: Decimal
    total: Decimal
    currency: str
    rate_table_version: str
    zone: str
    service_level: str
    tax_rate: Decimal
    actual_weight: Decimal
    volumetric_weight: Decimal
    billable_weight: Decimal
    parcel_details: Tuple[ParcelQuote, ...]

    def to_dict(self) -> Dict[str, Any]:
        """JSON-friendly representation; Decimals become strings."""
        return {
            'base_freight': str(self.base_freight),
            'weight_charge': str(self.weight_charge),
            'fuel_surcharge': str(self.fuel_surcharge),
            'surcharges_total': str(self.surcharges_total),
            'applied_surcharges': [{'code': s.code, 'amount': str(s.amount)} for s in self.applied_surcharges],
            'insurance_fee': str(self.insurance_fee),
            'cod_fee': str(self.cod_fee),
            'subtotal': str(self.subtotal),
            'tax': str(self.tax),
            'tax_rate': str(self.tax_rate),
            'total': str(self.total),
            'currency': self.currency,
            'rate_table_version': self.rate_table_version,
            'zone': self.zone,
            'service_level': self.service_level,
            'actual_weight': str(self.actual_weight),
            'volumetric_weight': str(self.volumetric_weight),
            'billable_weight': str(self.billable_weight),
            'parcel_details': [p.to_dict() for p in self.parcel_details],
        }


def volumetric_weight(parcel: Parcel, dim_factor: int = DEFAULT_DIM_FACTOR) -> Decimal:
    """L x W x H / dim_factor, or 0 when any dimension is missing."""
    if not parcel.has_dimensions:
        return kilograms(0)
    volume = parcel.length * parcel.width * parcel.height
    return kilograms(volume / Decimal(max(1, dim_factor)))


def billable_weight(parcel: Parcel, dim_factor: int = DEFAULT_DIM_FACTOR) -> Decimal:
    return max(kilograms(parcel.weight), volumetric_weight(parcel, dim_factor))


def _validate_parcel(parcel: Parcel, index: int) -> None:
    if parcel.weight is None or parcel.weight <= 0:
        raise QuoteException(
            QuoteException.NEGATIVE_OR_ZERO_WEIGHT,
            f"Parcel {index + 1}: weight must be greater than 0",
            {'parcel': index + 1, 'weight': str(parcel.weight)}
        )
    for name, value in zip(('length', 'width', 'height'), parcel.dimensions):
        if value is not None and value <= 0:
            raise ValidationException(
                f"Parcel {index + 1}: {name} must be greater than 0",
                {name: str(value), 'parcel': index + 1}
            )
    if parcel.declared_value < 0 or parcel.cod_amount < 0:
        raise ValidationException(
            f"Parcel {index + 1}: declared value and COD amount cannot be negative",
            {'parcel': index + 1}
        )


def _cod_fee(cod_amount: Decimal, table: RateTableSnapshot) -> Decimal:
    if cod_amount <= 0:
        return ZERO
    if table.cod_fee_type == 'flat':
        return money(table.cod_fee_value)
    fee = money(cod_amount * table.cod_fee_value / HUNDRED)
    return max(fee, money(table.cod_min_fee))


def _quote_parcel(parcel: Parcel, spec: ShipmentSpec, rate: ServiceRateEntry,
                  table: RateTableSnapshot) -> ParcelQuote:
    volumetric = volumetric_weight(parcel, table.dim_factor)
    billable = max(kilograms(parcel.weight), volumetric)

    base_freight = money(rate.base_freight)
    weight_charge = money(billable * rate.per_kg_rate)
    freight = base_freight + weight_charge

    fuel_surcharge = money(freight * table.fuel_surcharge_percent / HUNDRED)

    applied: List[AppliedSurcharge] = []
    for rule in sorted(table.surcharge_rules, key=lambda r: (r.sequence, r.code)):
        if not rule.matches(spec.zone, spec.service_level, billable):
            continue
        if rule.rate_type == 'percent':
            amount = money(freight * rule.amount / HUNDRED)
        else:
            amount = money(rule.amount)
        applied.append(AppliedSurcharge(code=rule.code, amount=amount))
    surcharges_total = sum((s.amount for s in applied), ZERO)

    insurance_fee = ZERO
    insurance_rate = table.insurance_rate(spec.insurance_type)
    if parcel.declared_value > 0:
        insurance_fee = money(parcel.declared_value * insurance_rate / HUNDRED)

    cod_fee = _cod_fee(parcel.cod_amount, table)

    subtotal = base_freight + weight_charge + surcharges_total + fuel_surcharge + insurance_fee + cod_fee
    tax = money(subtotal * table.tax_rate)

    return ParcelQuote(
        actual_weight=kilograms(parcel.weight),
        volumetric_weight=volumetric,
        billable_weight=billable,
        base_freight=base_freight,
        weight_charge=weight_charge,
        fuel_surcharge=fuel_surcharge,
        surcharges_total=surcharges_total,
        applied_surcharges=tuple(applied),
        insurance_fee=insurance_fee,
        cod_fee=cod_fee,
        subtotal=subtotal,
        tax=tax,
        total=subtotal + tax,
    )


def _merge_surcharges(parcels: Tuple[ParcelQuote, ...]) -> Tuple[AppliedSurcharge, ...]:
    totals: Dict[str, Decimal] = {}
    for parcel in parcels:
        for surcharge in parcel.applied_surcharges:
            totals[surcharge.code] = totals.get(surcharge.code, ZERO) + surcharge.amount
    return tuple(AppliedSurcharge(code=code, amount=amount) for code, amount in totals.items())


def calculate_quote(spec: ShipmentSpec, table: RateTableSnapshot) -> Quote:
    """
    Price a shipment against a rate table snapshot.

    Args:
        spec: Shipment specification (route key, service level, parcels)
        table: Rate table snapshot to price with

    Returns:
        Quote with per-parcel breakdown in ``parcel_details``

    Raises:
        QuoteException: Route/service level not priced, or weight <= 0
        ValidationException: Malformed parcel data or unknown insurance type
    """
    if not spec.parcels:
        raise ValidationException("A shipment needs at least one parcel", {'parcels': 'required'})

    for index, parcel in enumerate(spec.parcels):
        _validate_parcel(parcel, index)

    rate = table.find_rate(spec.zone, spec.service_level)
    parcels = tuple(_quote_parcel(p, spec, rate, table) for p in spec.parcels)

    def total_of(attr):
        return sum((getattr(p, attr) for p in parcels), ZERO)

    return Quote(
        base_freight=total_of('base_freight'),
        weight_charge=total_of('weight_charge'),
        fuel_surcharge=total_of('fuel_surcharge'),
        surcharges_total=total_of('surcharges_total'),
        applied_surcharges=_merge_surcharges(parcels),
        insurance_fee=total_of('insurance_fee'),
        cod_fee=total_of('cod_fee'),
        subtotal=total_of('subtotal'),
        tax=total_of('tax'),
        total=total_of('total'),
        currency=table.currency,
        rate_table_version=table.version,
        zone=spec.zone,
        service_level=spec.service_level,
        tax_rate=Decimal(table.tax_rate),
        actual_weight=kilograms(total_of('actual_weight')),
        volumetric_weight=kilograms(total_of('volumetric_weight')),
        billable_weight=kilograms(total_of('billable_weight')),
        parcel_details=parcels,
    )
