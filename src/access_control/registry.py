"""Admin registry: the authoritative mapping of privileged identities."""

import logging

from django.db import DatabaseError

from authentication.identity import normalize_email
from core.deadlines import statement_deadline
from core.exceptions import RegistryError
from .models import AdminUser

logger = logging.getLogger(__name__)


class AdminRegistry:
    """Read and write admin grants in the ``admin_users`` table.

    Privilege never expires; it lasts until :meth:`remove`. Every store
    failure surfaces as :class:`RegistryError`.
    """

    def __init__(self, timeout: float | None = None):
        self.timeout = timeout

    def is_admin(self, email: str | None) -> bool:
        """True iff a grant exists for ``email``."""
        email = normalize_email(email or "")
        if not email:
            return False
        try:
            with statement_deadline(self.timeout):
                return AdminUser.objects.filter(email=email).exists()
        except DatabaseError as exc:
            raise RegistryError() from exc

    def upsert(self, identity_id: str, email: str) -> AdminUser:
        """Grant admin to ``email``; re-granting updates the identity id in place."""
        email = normalize_email(email)
        try:
            with statement_deadline(self.timeout):
                entry, created = AdminUser.objects.update_or_create(
                    email=email, defaults={"user_id": str(identity_id)}
                )
        except DatabaseError as exc:
            raise RegistryError() from exc
        if created:
            logger.info("Granted admin privilege to %s", email)
        return entry

    def remove(self, email: str) -> bool:
        """Revoke admin from ``email``. Returns False if there was no grant."""
        email = normalize_email(email)
        try:
            with statement_deadline(self.timeout):
                deleted, _ = AdminUser.objects.filter(email=email).delete()
        except DatabaseError as exc:
            raise RegistryError() from exc
        if deleted:
            logger.info("Revoked admin privilege from %s", email)
        return bool(deleted)

    def entries(self) -> list[AdminUser]:
        try:
            with statement_deadline(self.timeout):
                return list(AdminUser.objects.all())
        except DatabaseError as exc:
            raise RegistryError() from exc


__all__ = ["AdminRegistry"]
