"""
Soltip API Responses

Every endpoint answers with the same JSON envelope:

    {"success": true,  "message": ..., "data": ..., "meta": ...}
    {"success": false, "message": ..., "code": ..., "error": ...}

Views build successful responses with ``api_success`` and signal failures
by raising ``ApiError`` (or any DRF exception); ``exception_handler`` is
registered as DRF's EXCEPTION_HANDLER and renders all of them.
"""

import logging

from django.conf import settings
from django.http import JsonResponse
from rest_framework import exceptions, status
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler
from rest_framework_simplejwt.exceptions import InvalidToken

logger = logging.getLogger(__name__)


class ApiError(exceptions.APIException):
    """An error with an HTTP status, a client-facing message and an optional code."""

    def __init__(self, message, status_code=status.HTTP_400_BAD_REQUEST, code=None, error=None):
        super().__init__(detail=message)
        self.status_code = status_code
        self.message = message
        self.error_code = code
        self.error = error


def api_success(message, data=None, status_code=status.HTTP_200_OK, meta=None):
    body = {'success': True, 'message': message}
    if data is not None:
        body['data'] = data
    if meta is not None:
        body['meta'] = meta
    return Response(body, status=status_code)


def error_body(message, code=None, error=None):
    body = {'success': False, 'message': message}
    if code:
        body['code'] = code
    if error is not None:
        body['error'] = error
    return body


def flatten_validation_errors(detail, path=''):
    """
    Turn DRF's nested ValidationError detail into a flat list.

    Returns:
        list: ``{"path": "field.sub", "message": "..."}`` entries
    """
    errors = []
    if isinstance(detail, dict):
        for key, value in detail.items():
            child = key if not path else f"{path}.{key}"
            if key == 'non_field_errors':
                child = path
            errors.extend(flatten_validation_errors(value, child))
    elif isinstance(detail, list):
        for index, value in enumerate(detail):
            if isinstance(value, (dict, list)):
                errors.extend(flatten_validation_errors(value, f"{path}.{index}" if path else str(index)))
            else:
                errors.extend(flatten_validation_errors(value, path))
    else:
        errors.append({'path': path, 'message': str(detail)})
    return errors


def exception_handler(exc, context):
    """DRF exception handler rendering errors in the API envelope."""
    request = context.get('request')

    if isinstance(exc, ApiError):
        return Response(error_body(exc.message, exc.error_code, exc.error), status=exc.status_code)

    if isinstance(exc, exceptions.ValidationError):
        return Response(
            error_body('Invalid request data', error=flatten_validation_errors(exc.detail)),
            status=status.HTTP_400_BAD_REQUEST,
        )

    if isinstance(exc, (exceptions.NotAuthenticated, InvalidToken)):
        has_refresh = request is not None and request.COOKIES.get(settings.REFRESH_TOKEN_COOKIE)
        if has_refresh:
            return Response(
                error_body('Access token expired. Refresh required.', code='TOKEN_EXPIRED'),
                status=status.HTTP_401_UNAUTHORIZED,
            )
        if isinstance(exc, exceptions.NotAuthenticated):
            return Response(error_body('Authentication required. Please log in.'),
                            status=status.HTTP_401_UNAUTHORIZED)
        return Response(error_body('Invalid or expired token. Please log in again.', code='INVALID_TOKEN'),
                        status=status.HTTP_401_UNAUTHORIZED)

    if isinstance(exc, exceptions.Throttled):
        response = Response(error_body('Too many requests, please try again later.', code='RATE_LIMITED'),
                            status=status.HTTP_429_TOO_MANY_REQUESTS)
        if exc.wait is not None:
            response['Retry-After'] = str(int(exc.wait))
        return response

    response = drf_exception_handler(exc, context)
    if response is not None:
        detail = response.data.get('detail', response.data) if isinstance(response.data, dict) else response.data
        response.data = error_body(str(detail))
        return response

    logger.exception("Unhandled error processing %s", request.path if request is not None else 'request')
    error = None if settings.IS_PRODUCTION else str(exc)
    return Response(error_body('An unexpected error occurred', error=error),
                    status=status.HTTP_500_INTERNAL_SERVER_ERROR)


def not_found(request, exception=None):
    """handler404: JSON body for unknown routes."""
    return JsonResponse({'success': False, 'message': 'Resource not found', 'path': request.path}, status=404)


def server_error(request):
    """handler500: JSON body for errors raised outside DRF views."""
    return JsonResponse({'success': False, 'message': 'An unexpected error occurred'}, status=500)
