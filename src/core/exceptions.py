"""Error taxonomy and the exception handler enforcing the API error envelope."""

from typing import Any

import redis
from django.conf import settings
from django.db import DatabaseError, OperationalError
from rest_framework import status
from rest_framework.exceptions import APIException, AuthenticationFailed, NotAuthenticated
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

# Postgres SQLSTATE raised when statement_timeout cancels a query.
QUERY_CANCELED = "57014"


class ServiceUnavailable(APIException):
    """Backing store unreachable; transient, the caller may retry with backoff."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = "Service temporarily unavailable."
    default_code = "service_unavailable"


class StorageError(ServiceUnavailable):
    """Article store or media backend unavailable."""

    default_detail = "Storage service unavailable."
    default_code = "storage_unavailable"


class RegistryError(ServiceUnavailable):
    """Admin registry could not be read or written."""

    default_detail = "Admin registry unavailable."
    default_code = "registry_unavailable"


class Timeout(APIException):
    """Operation exceeded the caller-supplied deadline."""

    status_code = status.HTTP_504_GATEWAY_TIMEOUT
    default_detail = "Operation timed out."
    default_code = "timeout"


class Conflict(APIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Resource already exists."
    default_code = "conflict"


def is_statement_timeout(exc: BaseException) -> bool:
    """Return True if ``exc`` is a Postgres query cancelled by statement_timeout."""

    cause = getattr(exc, "__cause__", None)
    return getattr(cause, "pgcode", None) == QUERY_CANCELED or getattr(cause, "sqlstate", None) == QUERY_CANCELED


def _normalize_errors(payload: Any) -> list[Any]:
    """Convert DRF's response.data into a list for the envelope."""

    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict) and "detail" in payload:
        # Common DRF pattern: {"detail": "..."}
        return [payload["detail"]]
    return [payload]


def _envelope_error(message: str, status_code: int) -> Response:
    return Response({"data": None, "errors": [message]}, status=status_code)


def custom_exception_handler(exc: Exception, context: dict[str, Any]) -> Response | None:
    """Wrap DRF errors in `{ "data": null, "errors": [...] }` shape.

    - Maps store timeouts to 504 and store outages to 503.
    - Uses DRF's default handler to produce the base response.
    - Normalizes auth/permission messages so a 403 never hints at whether
      the target resource exists.
    """

    if isinstance(exc, OperationalError) and is_statement_timeout(exc):
        return _envelope_error(Timeout.default_detail, status.HTTP_504_GATEWAY_TIMEOUT)

    if isinstance(exc, redis.TimeoutError):
        return _envelope_error(Timeout.default_detail, status.HTTP_504_GATEWAY_TIMEOUT)

    # Treat database and broker errors as a temporary service outage and still
    # respect the global envelope format instead of Django's HTML 500 page.
    if isinstance(exc, (DatabaseError, redis.ConnectionError)):
        return _envelope_error(ServiceUnavailable.default_detail, status.HTTP_503_SERVICE_UNAVAILABLE)

    response = drf_exception_handler(exc, context)

    if response is None:
        return response

    # DRF maps NotAuthenticated to 403 when no authenticator advertises a
    # WWW-Authenticate header; the API contract is 401.
    if isinstance(exc, (AuthenticationFailed, NotAuthenticated)):
        response.status_code = status.HTTP_401_UNAUTHORIZED

    if response.status_code >= 400:
        base_errors = response.data

        if response.status_code == status.HTTP_401_UNAUTHORIZED:
            if getattr(settings, "DEBUG_AUTH_ERRORS", False):
                errors = _normalize_errors(base_errors)
            else:
                errors = ["Authentication credentials were not provided or are invalid."]
        elif response.status_code == status.HTTP_403_FORBIDDEN:
            errors = ["You do not have permission to perform this action."]
        else:
            errors = _normalize_errors(base_errors)

        response.data = {"data": None, "errors": errors}

    return response
