"""
API tests for the POS endpoints.
"""

from rest_framework import status
from rest_framework.test import APITestCase

from ..adapters.audit_sink import switch_to_database_sink
from ..adapters.posting_adapter import switch_to_mock_adapter
from ..models import OverrideStatus, PaymentTransaction, Shipment
from .fixtures import PASSWORD, make_branches, make_rate_table, make_user


class PosApiTestCase(APITestCase):

    def setUp(self):
        switch_to_database_sink()
        switch_to_mock_adapter()
        self.origin, self.destination = make_branches()
        make_rate_table()
        self.cashier = make_user('cashier')
        self.supervisor = make_user('supervisor', role='supervisor')
        self.client.force_authenticate(user=self.cashier)

    def shipment_body(self, **overrides):
        body = {
            'origin_branch_id': str(self.origin.id),
            'destination_branch_id': str(self.destination.id),
            'service_level': 'standard',
            'weight': '5',
            'receiver_name': 'Jane Receiver',
        }
        body.update(overrides)
        return body

    def create_shipment(self, key='key-1', **overrides):
        return self.client.post(
            '/api/pos/shipments/', self.shipment_body(**overrides),
            format='json', HTTP_IDEMPOTENCY_KEY=key
        )


class QuoteApiTest(PosApiTestCase):

    def test_quote(self):
        response = self.client.post('/api/pos/quote/', self.shipment_body(), format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['success'])
        self.assertEqual(response.data['data']['total'], '22.00')
        self.assertEqual(response.data['data']['rate_table_version'], '2025.1')

    def test_zero_weight_is_unprocessable(self):
        response = self.client.post('/api/pos/quote/', self.shipment_body(weight='0'), format='json')

        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)
        self.assertEqual(response.data['error']['kind'], 'COMPUTATION')
        self.assertEqual(response.data['error']['code'], 'NEGATIVE_OR_ZERO_WEIGHT')

    def test_authentication_required(self):
        self.client.force_authenticate(user=None)

        response = self.client.post('/api/pos/quote/', self.shipment_body(), format='json')

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_service_level_comparison(self):
        body = self.shipment_body()
        del body['service_level']

        response = self.client.post('/api/pos/quote/service_levels/', body, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([c['service_level'] for c in response.data['data']], ['standard'])
        standard = response.data['data'][0]
        self.assertEqual(standard['total'], '22.00')
        self.assertEqual(standard['rate_table_version'], '2025.1')

    def test_service_level_comparison_with_zero_weight(self):
        response = self.client.post(
            '/api/pos/quote/service_levels/', self.shipment_body(weight='0'), format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)


class ApiRootTest(APITestCase):

    def test_lists_pos_endpoints(self):
        response = self.client.get('/api/')

        endpoints = response.json()['endpoints']
        self.assertEqual(endpoints['pos']['service_levels'], '/api/pos/quote/service_levels/')
        self.assertEqual(endpoints['browsable_api_login'], '/api/docs/login/')
        self.assertNotIn('documentation', endpoints)


class ShipmentApiTest(PosApiTestCase):

    def test_create_then_replay(self):
        first = self.create_shipment()
        second = self.create_shipment()

        self.assertEqual(first.status_code, status.HTTP_201_CREATED)
        self.assertFalse(first.data['replayed'])
        self.assertEqual(first.data['data']['price_amount'], '22.00')
        self.assertEqual(second.status_code, status.HTTP_200_OK)
        self.assertTrue(second.data['replayed'])
        self.assertEqual(first.data['data']['id'], second.data['data']['id'])
        self.assertEqual(Shipment.objects.count(), 1)

    def test_key_in_body(self):
        response = self.client.post(
            '/api/pos/shipments/', self.shipment_body(idempotency_key='body-key'), format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['data']['idempotency_key'], 'body-key')

    def test_key_is_required(self):
        response = self.client.post('/api/pos/shipments/', self.shipment_body(), format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(Shipment.objects.count(), 0)

    def test_quote_mismatch_conflicts(self):
        response = self.create_shipment(quoted_total='20.00')

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['error']['code'], 'QUOTE_MISMATCH')

    def test_list_and_retrieve(self):
        shipment_id = self.create_shipment().data['data']['id']

        listing = self.client.get('/api/pos/shipments/')
        detail = self.client.get(f'/api/pos/shipments/{shipment_id}/')

        self.assertEqual(listing.status_code, status.HTTP_200_OK)
        self.assertEqual(len(listing.data['results']), 1)
        self.assertEqual(listing.data['results'][0]['origin'], 'KLA')
        self.assertEqual(detail.data['quote']['total'], '22.00')

    def test_other_cashier_cannot_see_shipment(self):
        shipment_id = self.create_shipment().data['data']['id']
        self.client.force_authenticate(user=make_user('stranger'))

        listing = self.client.get('/api/pos/shipments/')
        detail = self.client.get(f'/api/pos/shipments/{shipment_id}/')

        self.assertEqual(len(listing.data['results']), 0)
        self.assertEqual(detail.status_code, status.HTTP_404_NOT_FOUND)

    def test_reprint_requires_approval(self):
        shipment_id = self.create_shipment().data['data']['id']
        url = f'/api/pos/shipments/{shipment_id}/print_label/'

        first = self.client.post(url, {}, format='json')
        second = self.client.post(url, {}, format='json')

        self.assertEqual(first.status_code, status.HTTP_200_OK)
        self.assertFalse(first.data['data']['reprint'])
        self.assertEqual(second.status_code, status.HTTP_403_FORBIDDEN)
        self.assertTrue(second.data['error']['details']['requires_approval'])

    def test_audit_history(self):
        shipment_id = self.create_shipment().data['data']['id']

        response = self.client.get(f'/api/pos/shipments/{shipment_id}/audit_history/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([entry['action'] for entry in response.data['data']], ['shipment_created'])


class PaymentApiTest(PosApiTestCase):

    def setUp(self):
        super().setUp()
        self.shipment_id = self.create_shipment().data['data']['id']

    def pay(self, amount, key='pay-1'):
        return self.client.post('/api/pos/payments/', {
            'shipment_id': self.shipment_id,
            'amount': amount,
            'method': 'cash',
        }, format='json', HTTP_IDEMPOTENCY_KEY=key)

    def test_payment(self):
        response = self.pay('22.00')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['data']['posting_status'], 'POSTED')
        shipment = self.client.get(f'/api/pos/shipments/{self.shipment_id}/')
        self.assertEqual(shipment.data['payment_status'], 'PAID')

    def test_overpayment_is_rejected(self):
        response = self.pay('50.00')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error']['kind'], 'VALIDATION')

    def test_cannot_pay_for_shipment_outside_branch(self):
        self.client.force_authenticate(user=make_user('stranger'))

        response = self.pay('22.00')

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['error']['kind'], 'NOT_FOUND')
        self.assertFalse(PaymentTransaction.objects.exists())

    def test_cashier_refund_needs_approval(self):
        payment_id = self.pay('22.00').data['data']['id']

        response = self.client.post(
            f'/api/pos/payments/{payment_id}/refund/', {'reason': 'Changed mind'},
            format='json', HTTP_IDEMPOTENCY_KEY='refund-1'
        )

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data['error']['code'], 'REQUIRES_APPROVAL')


class OverrideApiTest(PosApiTestCase):

    def request_override(self):
        return self.client.post('/api/pos/overrides/', {
            'action_type': 'discount',
            'reason': 'Loyal customer',
            'request_data': {'discount_percent': '10'},
        }, format='json')

    def test_request_and_approve(self):
        requested = self.request_override()
        override_id = requested.data['data']['id']
        url = f'/api/pos/overrides/{override_id}/approve/'

        as_cashier = self.client.post(url, {'password': PASSWORD}, format='json')
        self.client.force_authenticate(user=self.supervisor)
        approved = self.client.post(url, {'password': PASSWORD}, format='json')
        again = self.client.post(url, {'password': PASSWORD}, format='json')

        self.assertEqual(requested.status_code, status.HTTP_201_CREATED)
        self.assertEqual(requested.data['data']['status'], OverrideStatus.PENDING)
        self.assertEqual(as_cashier.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(approved.status_code, status.HTTP_200_OK)
        self.assertEqual(approved.data['data']['status'], OverrideStatus.APPROVED)
        self.assertEqual(again.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(again.data['error']['code'], 'ALREADY_PROCESSED')

    def test_wrong_password(self):
        override_id = self.request_override().data['data']['id']
        self.client.force_authenticate(user=self.supervisor)

        response = self.client.post(
            f'/api/pos/overrides/{override_id}/approve/', {'password': 'guess'}, format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data['error']['code'], 'INVALID_CREDENTIALS')

    def test_discounted_shipment(self):
        override_id = self.request_override().data['data']['id']
        self.client.force_authenticate(user=self.supervisor)
        self.client.post(f'/api/pos/overrides/{override_id}/approve/', {'password': PASSWORD}, format='json')
        self.client.force_authenticate(user=self.cashier)

        response = self.create_shipment(override_id=override_id)

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['data']['price_amount'], '19.80')
        self.assertEqual(response.data['data']['discount_amount'], '2.20')

    def test_cashier_sees_only_own_requests(self):
        self.request_override()
        self.client.force_authenticate(user=make_user('other-cashier'))

        response = self.client.get('/api/pos/overrides/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['results']), 0)
