"""
Shipment views for the POS transaction core.
"""

from rest_framework import filters, mixins, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response
from django_filters.rest_framework import DjangoFilterBackend

from ..context import RequestContext
from ..exceptions import BusinessException
from ..models import Shipment
from ..permissions import IsBranchMember, branch_scope
from ..serializers import (
    AuditLogSerializer, CancelShipmentSerializer, PrintLabelSerializer,
    ShipmentCreateSerializer, ShipmentDetailSerializer, ShipmentListSerializer,
)
from ..services import ShippingService, TransactionOrchestrator
from .responses import error_response, idempotent_payload, result_response


class ShipmentViewSet(mixins.ListModelMixin,
                      mixins.RetrieveModelMixin,
                      viewsets.GenericViewSet):
    """
    ViewSet for POS shipments.

    Shipments are created through the orchestrator (idempotent) and changed
    only through workflow actions.
    """

    queryset = Shipment.objects.select_related('origin_branch', 'destination_branch').all()
    permission_classes = [IsBranchMember]
    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    filterset_fields = ['status', 'payment_status', 'service_level', 'origin_branch', 'destination_branch']
    search_fields = ['tracking_number', 'receiver_name', 'receiver_phone']
    ordering_fields = ['created_at', 'price_amount', 'tracking_number']
    ordering = ['-created_at']

    def get_serializer_class(self):
        """Return appropriate serializer based on action."""
        if self.action == 'create':
            return ShipmentCreateSerializer
        elif self.action == 'list':
            return ShipmentListSerializer
        elif self.action == 'print_label':
            return PrintLabelSerializer
        elif self.action == 'cancel':
            return CancelShipmentSerializer
        else:
            return ShipmentDetailSerializer

    def get_queryset(self):
        return super().get_queryset().filter(branch_scope(self.request.user))

    def create(self, request):
        """Create a shipment; repeating the idempotency key replays the first result."""
        serializer = self.get_serializer(data=idempotent_payload(request))
        serializer.is_valid(raise_exception=True)

        result = TransactionOrchestrator.create_shipment(
            serializer.validated_data, RequestContext.from_request(request)
        )
        return result_response(result, lambda shipment: ShipmentDetailSerializer(shipment).data, created=True)

    @action(detail=True, methods=['post'])
    def print_label(self, request, pk=None):
        """Print a label; reprints may need an approved override."""
        shipment = self.get_object()
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = ShippingService.print_label(
            shipment.id, RequestContext.from_request(request),
            override_id=serializer.validated_data.get('override_id')
        )
        return result_response(result, lambda printed: {
            'label': printed['label'],
            'reprint': printed['reprint'],
            'shipment': ShipmentDetailSerializer(printed['shipment']).data,
        })

    @action(detail=True, methods=['post'])
    def cancel(self, request, pk=None):
        """Cancel a shipment."""
        shipment = self.get_object()
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = ShippingService.cancel_shipment(
            shipment.id, RequestContext.from_request(request),
            reason=serializer.validated_data['reason'],
            override_id=serializer.validated_data.get('override_id')
        )
        return result_response(result, lambda cancelled: ShipmentDetailSerializer(cancelled).data)

    @action(detail=True, methods=['get'])
    def audit_history(self, request, pk=None):
        """Audit trail of the shipment, its payments and overrides."""
        shipment = self.get_object()

        try:
            history = ShippingService.get_audit_history(shipment.id)
        except BusinessException as e:
            return error_response(e)

        return Response({
            'success': True,
            'data': AuditLogSerializer(history, many=True).data
        })
