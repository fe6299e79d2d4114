"""
Custom permissions for the POS transaction core.

Role checks (see ``users.permissions``) only decide who may reach an
endpoint. Gated actions are still checked by the services (override
approval, password re-check).
"""

from django.db.models import Q
from rest_framework.permissions import BasePermission


class IsBranchMember(BasePermission):
    """
    Object permission for shipments and payments.

    Admins see everything; other staff see records of their own branch
    (origin or destination) or records they created.
    """

    def has_permission(self, request, view):
        user = request.user
        return bool(user and user.is_authenticated)

    def has_object_permission(self, request, view, obj):
        user = request.user
        if user.is_admin:
            return True

        shipment = getattr(obj, 'shipment', None) or obj
        if user.branch_id and user.branch_id in (shipment.origin_branch_id, shipment.destination_branch_id):
            return True
        return getattr(obj, 'created_by_id', None) == user.id


def branch_scope(user, prefix=''):
    """
    Q filter limiting shipment-related querysets to what ``user`` may see.

    ``prefix`` is the lookup path to the shipment (e.g. ``'shipment__'``).
    """
    if user.is_admin:
        return Q()
    scope = Q(created_by=user)
    if user.branch_id:
        scope |= Q(**{f'{prefix}origin_branch': user.branch_id}) | Q(**{f'{prefix}destination_branch': user.branch_id})
    return scope
