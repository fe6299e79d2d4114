"""
Quote views for the POS transaction core.
"""

from rest_framework import viewsets
from rest_framework.decorators import action
from users.permissions import IsCashierOrAbove

from ..context import RequestContext
from ..serializers import QuoteRequestSerializer, ServiceLevelComparisonSerializer
from ..services import TransactionOrchestrator
from .responses import result_response


class QuoteViewSet(viewsets.GenericViewSet):
    """
    Price a shipment without booking it.

    ``POST /api/pos/quote/`` prices one service level,
    ``POST /api/pos/quote/service_levels/`` compares all of them.
    """

    permission_classes = [IsCashierOrAbove]

    def get_serializer_class(self):
        if self.action == 'service_levels':
            return ServiceLevelComparisonSerializer
        return QuoteRequestSerializer

    def create(self, request):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = TransactionOrchestrator.quote(serializer.validated_data, RequestContext.from_request(request))
        return result_response(result, lambda quote: quote.to_dict())

    @action(detail=False, methods=['post'])
    def service_levels(self, request):
        """Quote the route at every service level the rate table offers."""
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = TransactionOrchestrator.compare_service_levels(
            serializer.validated_data, RequestContext.from_request(request)
        )
        return result_response(result, lambda comparisons: comparisons)
