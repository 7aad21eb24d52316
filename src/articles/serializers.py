"""Serializers for article reads, validated writes, and list queries."""

from django.conf import settings
from rest_framework import serializers

from .lifecycle import STATUSES
from .models import Article
from .repository import ArticleFilter

OPTIONAL_TEXT_FIELDS = ("excerpt", "featured_image_url", "meta_title", "meta_description")


class ArticleSerializer(serializers.ModelSerializer):
    class Meta:
        """Every field is server-owned on the way out."""

        model = Article
        fields = [
            "id",
            "title",
            "content",
            "excerpt",
            "featured_image_url",
            "meta_title",
            "meta_description",
            "tags",
            "categories",
            "status",
            "author_id",
            "published_at",
            "view_count",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class ArticleWriteSerializer(serializers.Serializer):
    """Typed create/update payload.

    Unknown keys are rejected rather than ignored, which also covers the
    server-owned fields (``id``, ``author_id``, ``published_at``, ...).
    Blank optional text is stored as null.
    """

    title = serializers.CharField(allow_blank=False, trim_whitespace=True)
    content = serializers.CharField(allow_blank=False, trim_whitespace=False)
    excerpt = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    featured_image_url = serializers.URLField(required=False, allow_null=True, allow_blank=True)
    meta_title = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    meta_description = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    tags = serializers.ListField(
        child=serializers.CharField(allow_blank=False), required=False, allow_null=True
    )
    categories = serializers.ListField(
        child=serializers.CharField(allow_blank=False), required=False, allow_null=True
    )
    status = serializers.ChoiceField(choices=STATUSES, required=False)

    def to_internal_value(self, data):
        if not isinstance(data, dict):
            raise serializers.ValidationError({"non_field_errors": ["Expected a JSON object."]})
        unknown = sorted(set(data) - set(self.fields))
        if unknown:
            raise serializers.ValidationError({name: ["Unknown or read-only field."] for name in unknown})
        return super().to_internal_value(data)

    def validate_content(self, value: str) -> str:
        if not value.strip():
            raise serializers.ValidationError("This field may not be blank.")
        return value

    def validate(self, attrs):
        for name in OPTIONAL_TEXT_FIELDS:
            if attrs.get(name) == "":
                attrs[name] = None
        return attrs


class ArticleQuerySerializer(serializers.Serializer):
    """``?q=&status=&page=&limit=`` for the article list."""

    q = serializers.CharField(required=False, allow_blank=True, trim_whitespace=True)
    status = serializers.ChoiceField(choices=STATUSES, required=False, allow_blank=True)
    page = serializers.IntegerField(required=False, min_value=1, default=1)
    limit = serializers.IntegerField(required=False, min_value=1)

    def validate_limit(self, value: int) -> int:
        return min(value, settings.ARTICLES_MAX_PAGE_SIZE)

    def to_filter(self) -> ArticleFilter:
        data = self.validated_data
        return ArticleFilter(
            status=data.get("status") or None,
            title_contains=data.get("q") or None,
            page=data.get("page", 1),
            limit=data.get("limit") or settings.ARTICLES_DEFAULT_PAGE_SIZE,
        )


__all__ = ["ArticleSerializer", "ArticleWriteSerializer", "ArticleQuerySerializer"]
