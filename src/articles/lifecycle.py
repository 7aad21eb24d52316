"""Publication lifecycle for articles.

States are ``draft``, ``published`` and ``archived``. Every state may move to
every other state; editors can unpublish, archive a draft, or re-publish an
archived article. The only conditional behaviour is the one-time stamping of
``published_at`` on the first entry into ``published``.
"""

import logging
from datetime import datetime

from rest_framework.exceptions import ValidationError

logger = logging.getLogger(__name__)

DRAFT = "draft"
PUBLISHED = "published"
ARCHIVED = "archived"

STATUSES = (DRAFT, PUBLISHED, ARCHIVED)
STATUS_CHOICES = [(DRAFT, "Draft"), (PUBLISHED, "Published"), (ARCHIVED, "Archived")]
DEFAULT_STATUS = DRAFT


def apply_status(article, status: str, now: datetime) -> None:
    """Move ``article`` to ``status`` as of ``now``.

    ``published_at`` is set only if it is still empty and the target is
    ``published``; later transitions never clear or move it. ``updated_at``
    is the repository's job and advances on every save regardless.
    """
    if status not in STATUSES:
        raise ValidationError({"status": [f"Unknown article status: {status!r}."]})

    previous = article.status
    article.status = status
    if status == PUBLISHED and article.published_at is None:
        article.published_at = now

    if previous != status:
        logger.info("Article %s status %s -> %s", article.pk, previous, status)


__all__ = [
    "DRAFT",
    "PUBLISHED",
    "ARCHIVED",
    "STATUSES",
    "STATUS_CHOICES",
    "DEFAULT_STATUS",
    "apply_status",
]
