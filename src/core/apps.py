"""App configuration for the core project utilities."""

from django.apps import AppConfig


class CoreConfig(AppConfig):
    """Settings, middleware, deadlines and the error envelope shared by all apps."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "core"
