"""Article model: the unit of publishable content."""

import uuid

from django.db import models
from django.utils import timezone

from .lifecycle import DEFAULT_STATUS, STATUS_CHOICES


class Article(models.Model):
    """An editor-authored article moving through draft/published/archived.

    ``content`` is opaque rich markup stored verbatim. ``published_at`` is
    owned by the lifecycle and ``view_count`` by the reader-side counter;
    neither is writable through the API.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    title = models.TextField()
    content = models.TextField()
    excerpt = models.TextField(null=True, blank=True)
    featured_image_url = models.TextField(null=True, blank=True)
    meta_title = models.TextField(null=True, blank=True)
    meta_description = models.TextField(null=True, blank=True)
    tags = models.JSONField(null=True, blank=True)
    categories = models.JSONField(null=True, blank=True)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=DEFAULT_STATUS, db_index=True)
    author_id = models.CharField(max_length=255, editable=False)
    published_at = models.DateTimeField(null=True, blank=True)
    view_count = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(db_index=True, default=timezone.now)
    updated_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = "articles"
        ordering = ["-created_at", "-id"]
        constraints = [
            models.CheckConstraint(
                condition=~models.Q(title="") & ~models.Q(content=""),
                name="articles_title_content_not_empty",
            ),
        ]

    def __str__(self) -> str:  # pragma: no cover - trivial
        return self.title


__all__ = ["Article"]
