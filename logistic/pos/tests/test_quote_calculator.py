"""
Tests for the pure quote calculator.
"""

from decimal import Decimal
from django.test import SimpleTestCase

from ..exceptions import QuoteException, ValidationException
from ..services.quote_calculator import (
    Parcel, RateTableSnapshot, ServiceRateEntry, ShipmentSpec, SurchargeRuleEntry,
    billable_weight, calculate_quote, volumetric_weight,
)


def snapshot(**overrides):
    fields = {
        'version': '2025.1',
        'currency': 'UGX',
        'service_rates': (
            ServiceRateEntry(zone='*', service_level='standard',
                             base_freight=Decimal('10'), per_kg_rate=Decimal('2')),
        ),
        'tax_rate': Decimal('0.1'),
    }
    fields.update(overrides)
    return RateTableSnapshot(**fields)


def spec(*parcels, service_level='standard', insurance_type='none', zone='KLA-EBB'):
    return ShipmentSpec(
        zone=zone,
        service_level=service_level,
        parcels=parcels or (Parcel(weight=Decimal('5')),),
        insurance_type=insurance_type,
    )


class WeightRulesTest(SimpleTestCase):

    def test_volumetric_weight(self):
        parcel = Parcel(weight=Decimal('1'), length=Decimal('30'), width=Decimal('20'), height=Decimal('10'))

        self.assertEqual(volumetric_weight(parcel), Decimal('1.2'))
        self.assertEqual(billable_weight(parcel), Decimal('1.2'))

    def test_actual_weight_wins_when_heavier(self):
        parcel = Parcel(weight=Decimal('2'), length=Decimal('30'), width=Decimal('20'), height=Decimal('10'))
        self.assertEqual(billable_weight(parcel), Decimal('2'))

    def test_missing_dimension_means_no_volumetric_weight(self):
        parcel = Parcel(weight=Decimal('1'), length=Decimal('30'), width=Decimal('20'))
        self.assertEqual(volumetric_weight(parcel), Decimal('0'))

    def test_dim_factor_comes_from_rate_table(self):
        parcel = Parcel(weight=Decimal('1'), length=Decimal('30'), width=Decimal('20'), height=Decimal('10'))
        quote = calculate_quote(spec(parcel), snapshot(dim_factor=4000))
        self.assertEqual(quote.billable_weight, Decimal('1.5'))


class CalculateQuoteTest(SimpleTestCase):

    def test_end_to_end_standard_quote(self):
        quote = calculate_quote(spec(), snapshot())

        self.assertEqual(quote.base_freight, Decimal('10.00'))
        self.assertEqual(quote.weight_charge, Decimal('10.00'))
        self.assertEqual(quote.subtotal, Decimal('20.00'))
        self.assertEqual(quote.tax, Decimal('2.00'))
        self.assertEqual(quote.total, Decimal('22.00'))
        self.assertEqual(quote.rate_table_version, '2025.1')
        self.assertEqual(quote.currency, 'UGX')

    def test_quote_is_deterministic(self):
        table = snapshot(fuel_surcharge_percent=Decimal('7.5'))
        shipment = spec(Parcel(weight=Decimal('3.3'), length=Decimal('41'), width=Decimal('33'),
                               height=Decimal('17'), declared_value=Decimal('333.33')),
                        insurance_type='premium')

        first = calculate_quote(shipment, table)
        second = calculate_quote(shipment, table)

        self.assertEqual(first, second)
        self.assertEqual(first.to_dict(), second.to_dict())

    def test_insurance_fee_scales_with_declared_value(self):
        parcel = Parcel(weight=Decimal('5'), declared_value=Decimal('1000'))
        quote = calculate_quote(spec(parcel, insurance_type='full'), snapshot())

        self.assertEqual(quote.insurance_fee, Decimal('20.00'))
        self.assertEqual(quote.subtotal, Decimal('40.00'))

    def test_fuel_surcharge_applies_to_freight(self):
        quote = calculate_quote(spec(), snapshot(fuel_surcharge_percent=Decimal('10')))

        self.assertEqual(quote.fuel_surcharge, Decimal('2.00'))
        self.assertEqual(quote.subtotal, Decimal('22.00'))

    def test_surcharges_are_cumulative_and_filtered(self):
        rules = (
            SurchargeRuleEntry(code='REMOTE', rate_type='flat', amount=Decimal('5'), sequence=2),
            SurchargeRuleEntry(code='HANDLING', rate_type='percent', amount=Decimal('10'), sequence=1),
            SurchargeRuleEntry(code='HEAVY', rate_type='flat', amount=Decimal('50'),
                               min_billable_weight=Decimal('30')),
            SurchargeRuleEntry(code='EXPRESS_ONLY', rate_type='flat', amount=Decimal('9'),
                               service_level='express'),
            SurchargeRuleEntry(code='OTHER_ROUTE', rate_type='flat', amount=Decimal('9'), zone='KLA-GUL'),
        )
        quote = calculate_quote(spec(), snapshot(surcharge_rules=rules))

        self.assertEqual([s.code for s in quote.applied_surcharges], ['HANDLING', 'REMOTE'])
        self.assertEqual(quote.surcharges_total, Decimal('7.00'))
        self.assertEqual(quote.subtotal, Decimal('27.00'))

    def test_cod_fee_percent_with_minimum(self):
        table = snapshot(cod_fee_type='percent', cod_fee_value=Decimal('2'), cod_min_fee=Decimal('25'))

        small = calculate_quote(spec(Parcel(weight=Decimal('5'), cod_amount=Decimal('1000'))), table)
        large = calculate_quote(spec(Parcel(weight=Decimal('5'), cod_amount=Decimal('5000'))), table)
        none = calculate_quote(spec(), table)

        self.assertEqual(small.cod_fee, Decimal('25.00'))
        self.assertEqual(large.cod_fee, Decimal('100.00'))
        self.assertEqual(none.cod_fee, Decimal('0.00'))

    def test_cod_fee_flat(self):
        table = snapshot(cod_fee_type='flat', cod_fee_value=Decimal('3.50'))
        quote = calculate_quote(spec(Parcel(weight=Decimal('5'), cod_amount=Decimal('10'))), table)
        self.assertEqual(quote.cod_fee, Decimal('3.50'))

    def test_multi_parcel_quote_sums_parcels(self):
        rules = (SurchargeRuleEntry(code='REMOTE', rate_type='flat', amount=Decimal('5')),)
        quote = calculate_quote(
            spec(Parcel(weight=Decimal('5')), Parcel(weight=Decimal('3'))),
            snapshot(surcharge_rules=rules)
        )

        self.assertEqual(len(quote.parcel_details), 2)
        self.assertEqual(quote.base_freight, Decimal('20.00'))
        self.assertEqual(quote.weight_charge, Decimal('16.00'))
        self.assertEqual(quote.surcharges_total, Decimal('10.00'))
        self.assertEqual([(s.code, s.amount) for s in quote.applied_surcharges], [('REMOTE', Decimal('10.00'))])
        self.assertEqual(quote.subtotal, Decimal('46.00'))
        self.assertEqual(quote.total, Decimal('50.60'))
        self.assertEqual(quote.actual_weight, Decimal('8'))

    def test_exact_zone_rate_beats_wildcard(self):
        rates = (
            ServiceRateEntry(zone='*', service_level='standard',
                             base_freight=Decimal('10'), per_kg_rate=Decimal('2')),
            ServiceRateEntry(zone='KLA-EBB', service_level='standard',
                             base_freight=Decimal('4'), per_kg_rate=Decimal('1')),
        )
        quote = calculate_quote(spec(), snapshot(service_rates=rates))
        self.assertEqual(quote.base_freight, Decimal('4.00'))
        self.assertEqual(quote.weight_charge, Decimal('5.00'))


class QuoteErrorsTest(SimpleTestCase):

    def test_zero_weight_is_rejected(self):
        with self.assertRaises(QuoteException) as ctx:
            calculate_quote(spec(Parcel(weight=Decimal('0'))), snapshot())
        self.assertEqual(ctx.exception.reason, QuoteException.NEGATIVE_OR_ZERO_WEIGHT)

    def test_negative_weight_is_rejected(self):
        with self.assertRaises(QuoteException) as ctx:
            calculate_quote(spec(Parcel(weight=Decimal('-1'))), snapshot())
        self.assertEqual(ctx.exception.reason, QuoteException.NEGATIVE_OR_ZERO_WEIGHT)

    def test_unknown_service_level(self):
        with self.assertRaises(QuoteException) as ctx:
            calculate_quote(spec(service_level='express'), snapshot())
        self.assertEqual(ctx.exception.reason, QuoteException.INVALID_SERVICE_LEVEL)

    def test_unpriced_route(self):
        rates = (
            ServiceRateEntry(zone='KLA-GUL', service_level='standard',
                             base_freight=Decimal('10'), per_kg_rate=Decimal('2')),
        )
        with self.assertRaises(QuoteException) as ctx:
            calculate_quote(spec(), snapshot(service_rates=rates))
        self.assertEqual(ctx.exception.reason, QuoteException.INVALID_ROUTE)

    def test_non_positive_dimension_is_a_validation_error(self):
        parcel = Parcel(weight=Decimal('1'), length=Decimal('0'), width=Decimal('20'), height=Decimal('10'))
        with self.assertRaises(ValidationException):
            calculate_quote(spec(parcel), snapshot())

    def test_unknown_insurance_type(self):
        parcel = Parcel(weight=Decimal('5'), declared_value=Decimal('100'))
        with self.assertRaises(ValidationException):
            calculate_quote(spec(parcel, insurance_type='platinum'), snapshot())
