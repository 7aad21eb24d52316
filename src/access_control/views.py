"""ViewSet for administering the admin registry."""

from rest_framework import status
from rest_framework.exceptions import NotFound

from core.response import BaseViewSet, api_response
from .gateway import ADMIN_REGISTRY
from .permissions import GatewayPermission, get_gateway
from .serializers import AdminUserSerializer


class AdminUserViewSet(BaseViewSet):
    """List, grant and revoke admin privilege. Admin only."""

    permission_classes = [GatewayPermission]
    business_element = ADMIN_REGISTRY
    lookup_field = "email"
    lookup_value_regex = r"[^/]+"
    serializer_class = AdminUserSerializer

    def list(self, request):
        registry = get_gateway(request).registry
        return api_response(AdminUserSerializer(registry.entries(), many=True).data)

    def create(self, request):
        """Grant admin privilege; granting an existing email is a no-op."""
        serializer = AdminUserSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        entry = get_gateway(request).registry.upsert(
            serializer.validated_data["user_id"], serializer.validated_data["email"]
        )
        return api_response(AdminUserSerializer(entry).data, status=status.HTTP_201_CREATED)

    def destroy(self, request, email=None):
        if not get_gateway(request).registry.remove(email):
            raise NotFound()
        return api_response({"ok": True})


__all__ = ["AdminUserViewSet"]
