"""Provision the media bucket with its public/MIME/size policy."""

from django.conf import settings
from django.core.management.base import BaseCommand

from media.storage import BucketPolicy, get_media_store


class Command(BaseCommand):
    """Idempotently create the configured media bucket. Run once per deployment."""

    help = "Create the media bucket if missing and apply its access policy."

    def add_arguments(self, parser):
        parser.add_argument("--name", default=None, help="Bucket name (defaults to MEDIA_BUCKET).")
        parser.add_argument(
            "--private",
            action="store_true",
            help="Do not grant public read access.",
        )

    def handle(self, *args, **options):
        name = options.get("name") or settings.MEDIA_BUCKET
        policy = BucketPolicy(
            public=not options.get("private"),
            allowed_mime_types=tuple(settings.MEDIA_ALLOWED_MIME_PREFIXES),
            max_size_bytes=settings.MEDIA_MAX_UPLOAD_BYTES,
        )
        created = get_media_store().ensure_bucket_exists(name, policy)
        if created:
            self.stdout.write(self.style.SUCCESS(f"Media bucket '{name}' created."))
        else:
            self.stdout.write(f"Media bucket '{name}' already exists; policy refreshed.")
