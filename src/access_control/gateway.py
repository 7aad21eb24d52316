"""Authorization gateway: the single enforcement point for content access.

Every access path (list query, single fetch, mutation, media, realtime
subscription, registry administration) asks this module. Row visibility for
articles is expressed once, as the ``Q`` predicate returned by
:meth:`AuthorizationGateway.article_scope`, and applied identically to list
and detail lookups so the two can never disagree.
"""

from __future__ import annotations

from django.db.models import Q
from rest_framework.exceptions import NotAuthenticated, PermissionDenied

from articles.lifecycle import PUBLISHED

from .registry import AdminRegistry

ARTICLE = "article"
MEDIA = "media"
ADMIN_REGISTRY = "admin_registry"
REALTIME = "realtime"
BUSINESS_ELEMENTS = (ARTICLE, MEDIA, ADMIN_REGISTRY, REALTIME)

READ = "read"
CREATE = "create"
UPDATE = "update"
DELETE = "delete"
OPERATIONS = (READ, CREATE, UPDATE, DELETE)


def _is_identified(identity) -> bool:
    return identity is not None and getattr(identity, "is_authenticated", False)


class AuthorizationGateway:
    """Decide allow/deny for ``(identity, element, operation)``.

    Owns no state beyond a per-instance memo of the registry lookup, so one
    gateway is built per request.
    """

    # (element, operation) pairs open to anonymous callers. Article reads are
    # further narrowed row by row through ``article_scope``.
    PUBLIC_OPERATIONS = frozenset({(ARTICLE, READ)})

    def __init__(self, registry: AdminRegistry):
        self.registry = registry
        self._admin_cache: dict[str, bool] = {}

    def is_admin(self, identity) -> bool:
        if not _is_identified(identity):
            return False
        email = identity.email
        if email not in self._admin_cache:
            self._admin_cache[email] = self.registry.is_admin(email)
        return self._admin_cache[email]

    def authorize(self, identity, element: str, operation: str) -> None:
        """Raise unless ``identity`` may perform ``operation`` on ``element``.

        ``NotAuthenticated`` when there is no identity, ``PermissionDenied``
        when the identity is known but not an admin.
        """
        if element not in BUSINESS_ELEMENTS or operation not in OPERATIONS:
            raise PermissionDenied()
        if (element, operation) in self.PUBLIC_OPERATIONS:
            return
        if not _is_identified(identity):
            raise NotAuthenticated()
        if not self.is_admin(identity):
            raise PermissionDenied()

    def article_scope(self, identity) -> Q:
        """Rows of ``articles`` this caller may read."""
        if self.is_admin(identity):
            return Q()
        return Q(status=PUBLISHED)


__all__ = [
    "AuthorizationGateway",
    "ARTICLE",
    "MEDIA",
    "ADMIN_REGISTRY",
    "REALTIME",
    "BUSINESS_ELEMENTS",
    "READ",
    "CREATE",
    "UPDATE",
    "DELETE",
]
