"""Response helpers and base classes for the `{data, errors}` envelope."""

from typing import Any, Sequence

from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework.viewsets import ViewSet


def api_response(data: Any, status: int = 200) -> Response:
    """Return data wrapped in the standard envelope.

    All successful JSON responses should use this helper to ensure the
    `{ "data": ..., "errors": [] }` shape.
    """

    return Response({"data": data, "errors": []}, status=status)


def page_response(items: Sequence[Any], total: int, page: int, limit: int) -> Response:
    """Envelope one page of a list query.

    ``total`` counts every matching row, so clients derive the page count as
    ``ceil(total / limit)``.
    """

    return api_response({"items": list(items), "total": total, "page": page, "limit": limit})


class EnvelopeMixin:
    """Wrap successful non-streaming responses that bypassed the helpers."""

    def finalize_response(self, request, response, *args, **kwargs):  # type: ignore[override]
        data = getattr(response, "data", None)
        if data is not None and 200 <= response.status_code < 300 and response.status_code != 204:
            if not (isinstance(data, dict) and data.keys() >= {"data", "errors"}):
                response.data = {"data": data, "errors": []}
        return super().finalize_response(request, response, *args, **kwargs)  # type: ignore[attr-defined]


class BaseAPIView(EnvelopeMixin, APIView):
    """APIView whose successful responses use the standard envelope."""


class BaseViewSet(EnvelopeMixin, ViewSet):
    """Explicit-action ViewSet; repositories, not querysets, back the actions."""


__all__ = ["api_response", "page_response", "BaseAPIView", "BaseViewSet"]
