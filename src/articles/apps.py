"""App configuration for articles."""

from django.apps import AppConfig


class ArticlesConfig(AppConfig):
    """Articles app holds the content model, lifecycle and repository."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "articles"
