"""Article repository: persistence, query composition, change notification.

The repository performs no privilege checks; callers pass the visibility
predicate obtained from the authorization gateway as ``scope`` and the
repository applies it verbatim. Each mutation commits in its own
transaction and, once committed, publishes exactly one change event.
Concurrent updates to the same row are last-write-wins.
"""

from __future__ import annotations

import logging
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterator

from django.db import DatabaseError, transaction
from django.db.models import Q
from django.utils import timezone
from rest_framework.exceptions import NotFound, ValidationError

from core.deadlines import statement_deadline
from core.exceptions import StorageError
from realtime.bus import ChangeBus
from realtime.events import DELETE, INSERT, UPDATE, ChangeEvent
from .lifecycle import DEFAULT_STATUS, apply_status
from .models import Article

logger = logging.getLogger(__name__)

TABLE = "articles"

# Fields a caller may set; everything else on the row is repository-owned.
WRITABLE_FIELDS = frozenset(
    {
        "title",
        "content",
        "excerpt",
        "featured_image_url",
        "meta_title",
        "meta_description",
        "tags",
        "categories",
        "status",
    }
)
REQUIRED_TEXT_FIELDS = ("title", "content")


def _parse_id(article_id) -> uuid.UUID:
    """Ids that cannot name a row are simply not found."""
    try:
        return uuid.UUID(str(article_id))
    except ValueError:
        raise NotFound() from None


@dataclass(frozen=True)
class ArticleFilter:
    """List query: optional status/title filters and a 1-based page window."""

    status: str | None = None
    title_contains: str | None = None
    page: int = 1
    limit: int = 10

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


@dataclass(frozen=True)
class ArticlePage:
    items: list[Article]
    total: int
    page: int
    limit: int


def _check_fields(fields: dict[str, Any], partial: bool) -> None:
    unknown = set(fields) - WRITABLE_FIELDS
    if unknown:
        raise ValidationError({name: ["This field cannot be set."] for name in sorted(unknown)})
    errors = {}
    for name in REQUIRED_TEXT_FIELDS:
        if name not in fields and partial:
            continue
        value = fields.get(name)
        if not isinstance(value, str) or not value.strip():
            errors[name] = ["This field may not be blank."]
    if errors:
        raise ValidationError(errors)


class ArticleRepository:
    """CRUD and list queries over the ``articles`` table."""

    def __init__(self, bus: ChangeBus, timeout: float | None = None):
        self.bus = bus
        self.timeout = timeout

    def create(self, fields: dict[str, Any], author_id: str) -> Article:
        """Insert a new article authored by ``author_id``."""
        _check_fields(fields, partial=False)
        now = timezone.now()
        values = dict(fields)
        status = values.pop("status", None) or DEFAULT_STATUS
        article = Article(author_id=str(author_id), created_at=now, updated_at=now, **values)
        apply_status(article, status, now)

        with self._store():
            article.save(force_insert=True)
            self._notify_on_commit(INSERT)

        logger.info("Created article %s (status=%s) by %s", article.pk, article.status, author_id)
        return article

    def get(self, article_id, scope: Q | None = None) -> Article:
        """Fetch one article visible under ``scope``; NotFound otherwise."""
        with self._store():
            article = Article.objects.filter(scope or Q(), pk=_parse_id(article_id)).first()
        if article is None:
            raise NotFound()
        return article

    def update(self, article_id, fields: dict[str, Any]) -> Article:
        """Merge ``fields`` into the stored article.

        A ``status`` in ``fields`` goes through the publication lifecycle.
        ``updated_at`` advances even when nothing else changed.
        """
        _check_fields(fields, partial=True)
        values = dict(fields)
        status = values.pop("status", None)

        with self._store():
            article = Article.objects.filter(pk=_parse_id(article_id)).first()
            if article is None:
                raise NotFound()
            now = timezone.now()
            for name, value in values.items():
                setattr(article, name, value)
            touched = [*values, "updated_at"]
            if status is not None:
                apply_status(article, status, now)
                touched += ["status", "published_at"]
            article.updated_at = now
            # Columns this call did not set (view_count above all) keep their stored value.
            article.save(update_fields=touched)
            self._notify_on_commit(UPDATE)

        logger.info("Updated article %s (%s)", article.pk, ", ".join(sorted(fields)) or "touch")
        return article

    def delete(self, article_id) -> None:
        with self._store():
            deleted, _ = Article.objects.filter(pk=_parse_id(article_id)).delete()
            if not deleted:
                raise NotFound()
            self._notify_on_commit(DELETE)
        logger.info("Deleted article %s", article_id)

    def query(self, article_filter: ArticleFilter, scope: Q | None = None) -> ArticlePage:
        """Filter, search and paginate, newest first.

        ``total`` counts every row matching scope, status and title search,
        independent of the page window; a page past the end is empty.
        """
        queryset = Article.objects.filter(scope or Q())
        if article_filter.status:
            queryset = queryset.filter(status=article_filter.status)
        if article_filter.title_contains:
            queryset = queryset.filter(title__icontains=article_filter.title_contains)
        queryset = queryset.order_by("-created_at", "-id")

        start = article_filter.offset
        with self._store():
            total = queryset.count()
            items = list(queryset[start:start + article_filter.limit]) if start < total else []
        return ArticlePage(items=items, total=total, page=article_filter.page, limit=article_filter.limit)

    @contextmanager
    def _store(self) -> Iterator[None]:
        """Deadline-bounded store call; database failures become StorageError."""
        try:
            with statement_deadline(self.timeout):
                yield
        except DatabaseError as exc:
            raise StorageError() from exc

    def _notify_on_commit(self, operation: str) -> None:
        transaction.on_commit(lambda: self._publish(ChangeEvent(table=TABLE, operation=operation)))

    def _publish(self, event: ChangeEvent) -> None:
        # The row is already committed; a lost notification only delays a refresh.
        try:
            self.bus.publish(event)
        except Exception:
            logger.exception("Failed to publish %s change on %s", event.operation, event.table)


__all__ = ["ArticleRepository", "ArticleFilter", "ArticlePage", "WRITABLE_FIELDS"]
