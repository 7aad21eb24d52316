"""App configuration for authentication components."""

from django.apps import AppConfig


class AuthenticationConfig(AppConfig):
    """Authentication app resolves bearer tokens into caller identities."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "authentication"
