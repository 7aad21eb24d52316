"""DRF permission class routing every request through the AuthorizationGateway."""

from rest_framework import permissions

from .gateway import CREATE, DELETE, READ, UPDATE, AuthorizationGateway
from .registry import AdminRegistry


def get_gateway(request) -> AuthorizationGateway:
    """Return the request's gateway, building it on first use.

    One gateway per request keeps the admin lookup memoized for the
    request's lifetime and no longer.
    """

    django_request = getattr(request, "_request", request)
    gateway = getattr(django_request, "_cms_gateway", None)
    if gateway is None:
        timeout = getattr(django_request, "deadline_seconds", None)
        gateway = AuthorizationGateway(AdminRegistry(timeout=timeout))
        django_request._cms_gateway = gateway
    return gateway


class GatewayPermission(permissions.BasePermission):
    """Map the HTTP method onto a gateway operation for the view's business_element.

    The gateway raises ``NotAuthenticated``/``PermissionDenied`` itself, so
    anonymous callers get 401 and non-admin identities get 403.
    """

    def has_permission(self, request, view) -> bool:
        element_key = getattr(view, "business_element", None)
        if not element_key:
            return False

        operation = self._operation_for(request.method)
        if operation is None:
            return False

        get_gateway(request).authorize(request.user, element_key, operation)
        return True

    @staticmethod
    def _operation_for(method: str) -> str | None:
        if method in permissions.SAFE_METHODS:
            return READ
        if method == "POST":
            return CREATE
        if method in ("PUT", "PATCH"):
            return UPDATE
        if method == "DELETE":
            return DELETE
        return None


__all__ = ["GatewayPermission", "get_gateway"]
