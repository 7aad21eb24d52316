"""Admin registry model: which identities hold admin privilege."""

from django.db import models


class AdminUser(models.Model):
    """Grants admin privilege to the identity with this email.

    A row exists for an email if and only if that identity is an admin.
    """

    user_id = models.CharField(max_length=255)
    email = models.EmailField(unique=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "admin_users"
        ordering = ["email"]

    def __str__(self) -> str:  # pragma: no cover - trivial
        return self.email


__all__ = ["AdminUser"]
