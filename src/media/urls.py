"""Routing for media endpoints."""

from django.urls import path

from .views import MediaObjectView, serve_public_media

urlpatterns = [
    path("media/", MediaObjectView.as_view(), name="media-objects"),
    path("media/public/<str:bucket>/<path:path>", serve_public_media, name="media-public"),
]
