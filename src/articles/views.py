"""Article ViewSet: every read and write passes the authorization gateway."""

from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status

from access_control.gateway import ARTICLE
from access_control.permissions import GatewayPermission, get_gateway
from core.response import BaseViewSet, api_response, page_response
from realtime.bus import get_change_bus
from .repository import ArticleRepository
from .serializers import ArticleQuerySerializer, ArticleSerializer, ArticleWriteSerializer


class ArticleViewSet(BaseViewSet):
    """List/detail for everyone (row-filtered), writes for admins only.

    Anonymous and non-admin callers only ever see published rows; a hidden
    row answers 404 on detail, never 403.
    """

    permission_classes = [GatewayPermission]
    business_element = ARTICLE
    serializer_class = ArticleSerializer

    def get_repository(self) -> ArticleRepository:
        timeout = getattr(self.request._request, "deadline_seconds", None)
        return ArticleRepository(bus=get_change_bus(), timeout=timeout)

    @extend_schema(
        parameters=[
            OpenApiParameter("q", str, description="Case-insensitive title search"),
            OpenApiParameter("status", str, enum=["draft", "published", "archived"]),
            OpenApiParameter("page", int, description="1-based page number"),
            OpenApiParameter("limit", int, description="Page size"),
        ]
    )
    def list(self, request):
        params = ArticleQuerySerializer(data=request.query_params)
        params.is_valid(raise_exception=True)
        scope = get_gateway(request).article_scope(request.user)
        page = self.get_repository().query(params.to_filter(), scope=scope)
        return page_response(ArticleSerializer(page.items, many=True).data, page.total, page.page, page.limit)

    def retrieve(self, request, pk=None):
        scope = get_gateway(request).article_scope(request.user)
        article = self.get_repository().get(pk, scope=scope)
        return api_response(ArticleSerializer(article).data)

    @extend_schema(request=ArticleWriteSerializer, responses={201: ArticleSerializer})
    def create(self, request):
        """Create an article; the author is always the acting identity."""
        payload = ArticleWriteSerializer(data=request.data)
        payload.is_valid(raise_exception=True)
        article = self.get_repository().create(dict(payload.validated_data), author_id=request.user.id)
        return api_response(ArticleSerializer(article).data, status=status.HTTP_201_CREATED)

    @extend_schema(request=ArticleWriteSerializer, responses={200: ArticleSerializer})
    def partial_update(self, request, pk=None):
        payload = ArticleWriteSerializer(data=request.data, partial=True)
        payload.is_valid(raise_exception=True)
        article = self.get_repository().update(pk, dict(payload.validated_data))
        return api_response(ArticleSerializer(article).data)

    def destroy(self, request, pk=None):
        self.get_repository().delete(pk)
        return api_response({"ok": True})


__all__ = ["ArticleViewSet"]
