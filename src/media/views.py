"""Media upload and listing endpoints, plus public serving for the local backend."""

import mimetypes

from django.conf import settings
from django.http import FileResponse, Http404
from rest_framework import serializers, status
from rest_framework.parsers import FormParser, MultiPartParser

from access_control.gateway import MEDIA
from access_control.permissions import GatewayPermission
from core.response import BaseAPIView, api_response
from .storage import POLICY_FILE, LocalMediaStore, StoredObject, build_object_path, get_media_store


class UploadSerializer(serializers.Serializer):
    file = serializers.FileField()
    category = serializers.RegexField(r"^[A-Za-z0-9_-]{1,64}$", required=False, default="featured")


def _object_data(obj: StoredObject) -> dict:
    return {
        "path": obj.path,
        "url": obj.url,
        "size": obj.size_bytes,
        "content_type": obj.content_type,
        "last_modified": obj.last_modified.isoformat() if obj.last_modified else None,
    }


class MediaObjectView(BaseAPIView):
    """``POST`` uploads a file and returns its public URL; ``GET`` lists the bucket.

    Admin only.
    """

    permission_classes = [GatewayPermission]
    business_element = MEDIA
    parser_classes = [MultiPartParser, FormParser]

    # noinspection PyMethodMayBeStatic
    def get(self, request):
        prefix = request.query_params.get("prefix", "")
        store = get_media_store()
        return api_response([_object_data(obj) for obj in store.list(prefix)])

    # noinspection PyMethodMayBeStatic
    def post(self, request):
        serializer = UploadSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        upload = serializer.validated_data["file"]
        path = build_object_path(serializer.validated_data["category"], upload.name)
        mime_type = upload.content_type or mimetypes.guess_type(upload.name)[0]

        store = get_media_store()
        # Refuse before reading the body into memory.
        store.policy.check(upload.size, mime_type)
        stored = store.upload(path, upload.read(), mime_type)
        return api_response(_object_data(stored), status=status.HTTP_201_CREATED)


def serve_public_media(request, bucket: str, path: str):
    """Serve an object from the local backend at its public URL."""
    store = get_media_store()
    if not isinstance(store, LocalMediaStore) or bucket != settings.MEDIA_BUCKET:
        raise Http404()
    try:
        target = store.resolve(path)
    except serializers.ValidationError:
        raise Http404() from None
    if not target.is_file() or target.name == POLICY_FILE:
        raise Http404()
    content_type = mimetypes.guess_type(target.name)[0] or "application/octet-stream"
    return FileResponse(open(target, "rb"), content_type=content_type)


__all__ = ["MediaObjectView", "serve_public_media"]
