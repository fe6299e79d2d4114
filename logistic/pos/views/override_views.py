"""
Supervisor override views for the POS transaction core.
"""

from rest_framework import filters, mixins, viewsets
from rest_framework.decorators import action
from django_filters.rest_framework import DjangoFilterBackend
from users.permissions import IsCashierOrAbove, IsSupervisorOrAbove

from ..context import RequestContext
from ..models import SupervisorOverride
from ..serializers import (
    OverrideApproveSerializer, OverrideRejectSerializer, OverrideRequestSerializer,
    SupervisorOverrideSerializer,
)
from ..services import OverrideService
from .responses import result_response


def render_override(override):
    return SupervisorOverrideSerializer(override).data


class OverrideViewSet(mixins.ListModelMixin,
                      mixins.RetrieveModelMixin,
                      viewsets.GenericViewSet):
    """
    ViewSet for supervisor overrides.

    Cashiers request; supervisors and above approve or reject with a
    password re-check.
    """

    queryset = SupervisorOverride.objects.select_related('requested_by', 'approved_by').all()
    lookup_value_regex = '[0-9a-f-]{36}'
    filter_backends = [DjangoFilterBackend, filters.OrderingFilter]
    filterset_fields = ['status', 'action_type', 'shipment', 'requested_by']
    ordering_fields = ['created_at', 'expires_at']
    ordering = ['-created_at']

    def get_permissions(self):
        if self.action in ['approve', 'reject']:
            return [IsSupervisorOrAbove()]
        return [IsCashierOrAbove()]

    def get_serializer_class(self):
        if self.action == 'create':
            return OverrideRequestSerializer
        elif self.action == 'approve':
            return OverrideApproveSerializer
        elif self.action == 'reject':
            return OverrideRejectSerializer
        return SupervisorOverrideSerializer

    def get_queryset(self):
        queryset = super().get_queryset()
        if self.request.user.has_elevated_role:
            return queryset
        return queryset.filter(requested_by=self.request.user)

    def create(self, request):
        """Request an override."""
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        result = OverrideService.request_override(
            data['action_type'], RequestContext.from_request(request), data['reason'],
            shipment_id=data.get('shipment_id'), request_data=data.get('request_data')
        )
        return result_response(result, render_override, created=True)

    @action(detail=True, methods=['post'])
    def approve(self, request, pk=None):
        """Approve a pending override."""
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = OverrideService.approve_override(
            pk, RequestContext.from_request(request),
            serializer.validated_data['password'],
            approved_data=serializer.validated_data.get('approved_data')
        )
        return result_response(result, render_override)

    @action(detail=True, methods=['post'])
    def reject(self, request, pk=None):
        """Reject a pending override."""
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = OverrideService.reject_override(
            pk, RequestContext.from_request(request),
            reason=serializer.validated_data['reason']
        )
        return result_response(result, render_override)
