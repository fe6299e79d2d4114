"""
Payment views for the POS transaction core.
"""

from rest_framework import filters, mixins, viewsets
from rest_framework.decorators import action
from django_filters.rest_framework import DjangoFilterBackend

from ..context import RequestContext
from ..exceptions import NotFoundException
from ..models import PaymentTransaction, Shipment
from ..permissions import IsBranchMember, branch_scope
from ..serializers import PaymentCreateSerializer, PaymentTransactionSerializer, RefundSerializer
from ..services import TransactionOrchestrator
from .responses import error_response, idempotent_payload, result_response


def render_payment(payment):
    return PaymentTransactionSerializer(payment).data


class PaymentViewSet(mixins.ListModelMixin,
                     mixins.RetrieveModelMixin,
                     viewsets.GenericViewSet):
    """ViewSet for payments and refunds taken at the counter."""

    queryset = PaymentTransaction.objects.select_related('shipment').all()
    permission_classes = [IsBranchMember]
    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    filterset_fields = ['shipment', 'transaction_type', 'method', 'posting_status']
    search_fields = ['shipment__tracking_number', 'external_reference']
    ordering_fields = ['created_at', 'amount']
    ordering = ['-created_at']

    def get_serializer_class(self):
        if self.action == 'create':
            return PaymentCreateSerializer
        elif self.action == 'refund':
            return RefundSerializer
        return PaymentTransactionSerializer

    def get_queryset(self):
        return super().get_queryset().filter(branch_scope(self.request.user, prefix='shipment__'))

    def create(self, request):
        """Take a payment; repeating the idempotency key replays the first result."""
        serializer = self.get_serializer(data=idempotent_payload(request))
        serializer.is_valid(raise_exception=True)

        shipment_id = serializer.validated_data['shipment_id']
        visible = Shipment.objects.filter(branch_scope(request.user)).filter(pk=shipment_id)
        if not visible.exists():
            return error_response(NotFoundException("Shipment", shipment_id))

        result = TransactionOrchestrator.process_payment(
            serializer.validated_data, RequestContext.from_request(request)
        )
        return result_response(result, render_payment, created=True)

    @action(detail=True, methods=['post'])
    def refund(self, request, pk=None):
        """Refund a payment (non-admins need an approved refund override)."""
        payment = self.get_object()
        serializer = self.get_serializer(data=idempotent_payload(request))
        serializer.is_valid(raise_exception=True)

        result = TransactionOrchestrator.refund_payment(
            payment.id, serializer.validated_data, RequestContext.from_request(request)
        )
        return result_response(result, render_payment, created=True)
