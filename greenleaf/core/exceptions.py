"""
Exception types shared across apps, and the DRF exception handler that keeps
every error response in the ``{"error": ...}`` shape.
"""
import logging

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class DomainError(Exception):
    """Base class for business-rule failures that map to a 4xx response"""
    status_code = 400

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def __str__(self):
        return self.message


def _flatten_detail(detail):
    """Pick a single human-readable message out of a DRF error payload"""
    if isinstance(detail, dict):
        for key, value in detail.items():
            message = _flatten_detail(value)
            if key in ('detail', 'non_field_errors'):
                return message
            return f"{key}: {message}"
        return 'Invalid request'
    if isinstance(detail, (list, tuple)):
        return _flatten_detail(detail[0]) if detail else 'Invalid request'
    return str(detail)


def api_exception_handler(exc, context):
    """
    Wrap DRF's default handler so authentication, permission, throttling and
    validation failures use the same ``{"error": message}`` body that views return.
    The original payload is kept under ``details``.
    """
    response = exception_handler(exc, context)
    if response is None:
        return None

    data = response.data
    if isinstance(data, dict) and 'error' in data:
        return response

    request = context.get('request')
    path = request.path if request is not None else 'unknown'
    logger.warning(f"API error on {path}: {response.status_code} {data}")
    response.data = {
        'error': _flatten_detail(data),
        'details': data,
    }
    return response


def validation_error_response(errors):
    """400 response for serializer errors in the common error shape"""
    return Response({'error': _flatten_detail(errors), 'details': errors}, status=status.HTTP_400_BAD_REQUEST)
