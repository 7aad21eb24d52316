"""Middleware resolving the caller identity and per-request deadline."""

import logging

from django.conf import settings
from django.contrib.auth.models import AnonymousUser
from django.http import JsonResponse
from django.utils.deprecation import MiddlewareMixin
from rest_framework import status
from rest_framework.exceptions import AuthenticationFailed

from authentication.services import TokenService
from core.deadlines import DEADLINE_HEADER, parse_deadline

logger = logging.getLogger(__name__)


class JWTAuthMiddleware(MiddlewareMixin):
    """Decode the bearer token and attach ``request.user``.

    Requests without a bearer token are anonymous; a token that is present
    but invalid is rejected outright rather than downgraded to anonymous.
    """

    def process_request(self, request):  # type: ignore[override]
        """Authenticate request using Bearer access token if present."""
        auth_header = request.META.get("HTTP_AUTHORIZATION", "")
        if not auth_header or not auth_header.startswith("Bearer "):
            request.user = AnonymousUser()
            return None

        token = auth_header.split(" ", 1)[1]

        try:
            request.user = TokenService.identity_from_token(token)
        except AuthenticationFailed as exc:
            logger.info("Rejected bearer token: %s", exc.detail)
            return _unauthorized(str(exc.detail))
        return None


class RequestDeadlineMiddleware(MiddlewareMixin):
    """Expose the caller's ``X-Request-Timeout`` as ``request.deadline_seconds``."""

    def process_request(self, request):  # type: ignore[override]
        request.deadline_seconds = parse_deadline(request.META.get(DEADLINE_HEADER))
        return None


def _unauthorized(reason: str) -> JsonResponse:
    if getattr(settings, "DEBUG_AUTH_ERRORS", False):
        errors = [reason]
    else:
        errors = ["Authentication credentials were not provided or are invalid."]
    return JsonResponse(
        {"data": None, "errors": errors},
        status=status.HTTP_401_UNAUTHORIZED,
    )


__all__ = ["JWTAuthMiddleware", "RequestDeadlineMiddleware"]
