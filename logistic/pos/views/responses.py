"""
Response helpers for the POS API.

Every endpoint answers with ``{"success": true, "data": ..., "replayed": ...}``
or ``{"success": false, "error": {...}}``.
"""

from rest_framework import status
from rest_framework.response import Response

from ..exceptions import BusinessException, ErrorKind

ERROR_STATUS = {
    ErrorKind.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.PERMISSION: status.HTTP_403_FORBIDDEN,
    ErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.COMPUTATION: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorKind.PERSISTENCE: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def error_response(error: BusinessException) -> Response:
    return Response({
        'success': False,
        'error': error.to_dict()
    }, status=ERROR_STATUS.get(error.kind, status.HTTP_400_BAD_REQUEST))


def result_response(result, render, created=False) -> Response:
    """
    Turn an ``OperationResult`` into a response.

    Args:
        result: OperationResult from a service
        render: Callable producing the response data from the result value
        created: Answer 201 for a fresh (non-replayed) creation
    """
    if not result.ok:
        return error_response(result.error)

    status_code = status.HTTP_201_CREATED if created and not result.replayed else status.HTTP_200_OK
    return Response({
        'success': True,
        'data': render(result.value),
        'replayed': result.replayed
    }, status=status_code)


def idempotent_payload(request):
    """Request data, taking the idempotency key from the header when the body has none."""
    payload = request.data.copy()
    header_key = request.headers.get('Idempotency-Key')
    if header_key and not payload.get('idempotency_key'):
        payload['idempotency_key'] = header_key
    return payload
