"""App configuration for realtime change notifications."""

from django.apps import AppConfig


class RealtimeConfig(AppConfig):
    """Realtime app fans article mutations out to open admin sessions."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "realtime"
