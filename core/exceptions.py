"""
Domain error hierarchy and the DRF exception handler that maps it to responses.

Every error leaving the API has the same shape:
    {"error": "<kind>", "detail": "<message>"}
"""
import logging

from django.db import DatabaseError
from django.db.models import ProtectedError
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class DomainError(Exception):
    """Base class for errors raised by the service layer."""
    status_code = status.HTTP_400_BAD_REQUEST
    error = 'Domain Error'

    def as_detail(self):
        return str(self)


class ValidationFailed(DomainError):
    """Request content violates a workflow precondition."""
    status_code = status.HTTP_400_BAD_REQUEST
    error = 'Validation Error'


class NotFoundError(DomainError):
    """A referenced entity does not exist."""
    status_code = status.HTTP_404_NOT_FOUND
    error = 'Not Found'


class BusinessRuleViolation(DomainError):
    """The request is well formed but current state does not allow it."""
    status_code = status.HTTP_409_CONFLICT
    error = 'Business Rule Violation'


_DRF_ERROR_NAMES = {
    status.HTTP_400_BAD_REQUEST: 'Validation Error',
    status.HTTP_404_NOT_FOUND: 'Not Found',
    status.HTTP_405_METHOD_NOT_ALLOWED: 'Method Not Allowed',
    status.HTTP_415_UNSUPPORTED_MEDIA_TYPE: 'Unsupported Media Type',
    status.HTTP_429_TOO_MANY_REQUESTS: 'Rate limit exceeded',
}


def api_exception_handler(exc, context):
    """
    Map exceptions raised inside API views to error responses.

    DRF's own exceptions (serializer validation, Http404, throttling) keep
    their status codes; domain errors use the status declared on their class;
    database and unexpected failures become a generic 500 without internals.
    """
    response = exception_handler(exc, context)
    if response is not None:
        detail = response.data
        if isinstance(detail, dict) and set(detail) == {'detail'}:
            detail = detail['detail']
        response.data = {
            'error': _DRF_ERROR_NAMES.get(response.status_code, 'Error'),
            'detail': detail,
        }
        return response

    view = context.get('view')
    view_name = view.__class__.__name__ if view is not None else 'unknown view'

    if isinstance(exc, DomainError):
        if exc.status_code >= 409:
            logger.warning(f"{view_name}: {exc.error}: {exc}")
        return Response(
            {'error': exc.error, 'detail': exc.as_detail()},
            status=exc.status_code
        )

    if isinstance(exc, ProtectedError):
        return Response(
            {'error': BusinessRuleViolation.error, 'detail': 'Object is referenced by existing orders'},
            status=status.HTTP_409_CONFLICT
        )

    if isinstance(exc, DatabaseError):
        logger.exception(f"{view_name}: persistence failure: {exc}")
    else:
        logger.exception(f"{view_name}: unexpected error: {exc}")
    return Response(
        {'error': 'Server Error', 'detail': 'An unexpected error occurred'},
        status=status.HTTP_500_INTERNAL_SERVER_ERROR
    )
