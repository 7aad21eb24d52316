"""Serializers for admin registry resources."""

from rest_framework import serializers

from authentication.identity import normalize_email
from .models import AdminUser


class AdminUserSerializer(serializers.ModelSerializer):
    """Serialize admin grants; the email is the natural key."""

    class Meta:
        """Expose the grant with timestamps read-only."""

        model = AdminUser
        fields = ["user_id", "email", "created_at", "updated_at"]
        read_only_fields = ["created_at", "updated_at"]
        # Uniqueness is handled by the idempotent upsert, not rejected.
        extra_kwargs = {"email": {"validators": []}}

    def validate_email(self, value: str) -> str:
        return normalize_email(value)


__all__ = ["AdminUserSerializer"]
