"""App configuration for the media asset store."""

from django.apps import AppConfig


class MediaConfig(AppConfig):
    """Media app stores uploaded files and derives their public URLs."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "media"
