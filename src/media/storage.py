"""Media asset store: path-addressed objects with derived public URLs.

Objects live in a named bucket under caller-chosen paths. Writing to a path
that already holds an object is rejected, so an upload never silently
replaces media an article may already link to. Public URLs are a pure
function of the bucket and path; the object is not looked up.
"""

from __future__ import annotations

import json
import logging
import re
import time
import uuid
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from typing import Iterator
from urllib.parse import quote

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from django.conf import settings
from rest_framework.exceptions import ValidationError

from core.exceptions import Conflict, StorageError

logger = logging.getLogger(__name__)

POLICY_FILE = ".bucket.json"
_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


@dataclass(frozen=True)
class BucketPolicy:
    """Provisioning options for a bucket."""

    public: bool = True
    allowed_mime_types: tuple[str, ...] = ("image/", "video/")
    max_size_bytes: int = 10 * 1024 * 1024

    def check(self, size: int, mime_type: str | None) -> None:
        """Reject content the bucket would not accept."""
        if size > self.max_size_bytes:
            raise ValidationError({"file": [f"File exceeds the {self.max_size_bytes} byte limit."]})
        if not mime_type or not any(self._mime_allowed(mime_type, p) for p in self.allowed_mime_types):
            raise ValidationError({"file": [f"Content type {mime_type!r} is not allowed."]})

    @staticmethod
    def _mime_allowed(mime_type: str, pattern: str) -> bool:
        # "image/*" and "image/" both mean the whole image family.
        prefix = pattern[:-1] if pattern.endswith("*") else pattern
        if prefix.endswith("/"):
            return mime_type.startswith(prefix)
        return mime_type == prefix


@dataclass
class StoredObject:
    path: str
    size_bytes: int
    content_type: str | None
    url: str
    last_modified: datetime | None = None
    metadata: dict = field(default_factory=dict)


def build_object_path(category: str, filename: str) -> str:
    """Namespace an upload as ``<category>/<millis>_<token>_<name>``."""
    category = _UNSAFE_CHARS.sub("-", category or "uploads").strip("-.") or "uploads"
    name = _UNSAFE_CHARS.sub("_", PurePosixPath(filename or "file").name).strip("._") or "file"
    return f"{category}/{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}_{name}"


def _clean_path(path: str) -> str:
    key = (path or "").lstrip("/")
    parts = PurePosixPath(key).parts
    if not key or any(part in ("..", ".") for part in parts) or key.endswith("/"):
        raise ValidationError({"path": ["Invalid object path."]})
    return key


class MediaStore(ABC):
    """Abstract base class for media backends."""

    def __init__(self, bucket: str, public_base_url: str, policy: BucketPolicy):
        self.bucket = bucket
        self.public_base_url = public_base_url.rstrip("/")
        self.policy = policy

    def public_url(self, path: str) -> str:
        """Public URL of ``path``; never fails, never checks existence."""
        return f"{self.public_base_url}/{quote(self.bucket)}/{quote(path.lstrip('/'))}"

    def upload(self, path: str, content: bytes, mime_type: str | None) -> StoredObject:
        """Store ``content`` at ``path``.

        Raises ``ValidationError`` if the bucket policy refuses the content,
        ``Conflict`` if the path is taken, ``StorageError`` if the backend is
        unavailable.
        """
        key = _clean_path(path)
        self.policy.check(len(content), mime_type)
        stored = self._write(key, content, mime_type)
        logger.info("Uploaded %s/%s (%d bytes, %s)", self.bucket, key, len(content), mime_type)
        return stored

    @abstractmethod
    def _write(self, key: str, content: bytes, mime_type: str | None) -> StoredObject:
        ...

    @abstractmethod
    def list(self, prefix: str = "") -> Iterator[StoredObject]:
        """Objects whose path starts with ``prefix``."""
        ...

    @abstractmethod
    def ensure_bucket_exists(self, name: str, policy: BucketPolicy) -> bool:
        """Provision bucket ``name``; returns True if it had to be created."""
        ...


class LocalMediaStore(MediaStore):
    """Filesystem backend: ``<root>/<bucket>/<path>``."""

    def __init__(self, root: str | Path, bucket: str, public_base_url: str, policy: BucketPolicy):
        super().__init__(bucket, public_base_url, policy)
        self.root = Path(root).resolve()

    @property
    def bucket_dir(self) -> Path:
        return self.root / self.bucket

    def resolve(self, path: str) -> Path:
        """Filesystem location of ``path``, confined to the bucket directory."""
        target = (self.bucket_dir / _clean_path(path)).resolve()
        if not target.is_relative_to(self.bucket_dir.resolve()):
            raise ValidationError({"path": ["Invalid object path."]})
        return target

    def _write(self, key: str, content: bytes, mime_type: str | None) -> StoredObject:
        target = self.resolve(key)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            # "xb" fails if the file exists, making the reject-overwrite check atomic.
            with open(target, "xb") as fh:
                fh.write(content)
        except FileExistsError as exc:
            raise Conflict(f"An object already exists at {key}.") from exc
        except OSError as exc:
            raise StorageError() from exc
        return StoredObject(
            path=key,
            size_bytes=len(content),
            content_type=mime_type,
            url=self.public_url(key),
            last_modified=datetime.now(timezone.utc),
        )

    def list(self, prefix: str = "") -> Iterator[StoredObject]:
        base = self.bucket_dir
        if not base.exists():
            return
        for file_path in sorted(base.rglob("*")):
            if not file_path.is_file() or file_path.name == POLICY_FILE:
                continue
            key = file_path.relative_to(base).as_posix()
            if not key.startswith(prefix.lstrip("/")):
                continue
            stat = file_path.stat()
            yield StoredObject(
                path=key,
                size_bytes=stat.st_size,
                content_type=None,
                url=self.public_url(key),
                last_modified=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
            )

    def ensure_bucket_exists(self, name: str, policy: BucketPolicy) -> bool:
        bucket_dir = self.root / name
        created = not bucket_dir.exists()
        try:
            bucket_dir.mkdir(parents=True, exist_ok=True)
            (bucket_dir / POLICY_FILE).write_text(json.dumps(asdict(policy)))
        except OSError as exc:
            raise StorageError() from exc
        logger.info("Provisioned bucket %s (created=%s, public=%s)", name, created, policy.public)
        return created


class S3MediaStore(MediaStore):
    """S3-compatible backend (AWS S3, MinIO, Supabase storage S3 endpoint)."""

    def __init__(
        self,
        bucket: str,
        public_base_url: str,
        policy: BucketPolicy,
        endpoint_url: str | None = None,
        region: str = "us-east-1",
        access_key: str | None = None,
        secret_key: str | None = None,
        client=None,
    ):
        super().__init__(bucket, public_base_url, policy)
        self.client = client or boto3.client(
            "s3",
            endpoint_url=endpoint_url,
            region_name=region,
            aws_access_key_id=access_key,
            aws_secret_access_key=secret_key,
        )

    def _exists(self, key: str) -> bool:
        try:
            self.client.head_object(Bucket=self.bucket, Key=key)
            return True
        except ClientError as e:
            if e.response["Error"]["Code"] in ("404", "NoSuchKey", "NotFound"):
                return False
            raise

    def _write(self, key: str, content: bytes, mime_type: str | None) -> StoredObject:
        try:
            if self._exists(key):
                raise Conflict(f"An object already exists at {key}.")
            self.client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=content,
                ContentType=mime_type or "application/octet-stream",
            )
        except (ClientError, BotoCoreError) as exc:
            raise StorageError() from exc
        return StoredObject(path=key, size_bytes=len(content), content_type=mime_type, url=self.public_url(key))

    def list(self, prefix: str = "") -> Iterator[StoredObject]:
        paginator = self.client.get_paginator("list_objects_v2")
        try:
            for page in paginator.paginate(Bucket=self.bucket, Prefix=prefix.lstrip("/")):
                for obj in page.get("Contents", []):
                    yield StoredObject(
                        path=obj["Key"],
                        size_bytes=obj["Size"],
                        content_type=None,
                        url=self.public_url(obj["Key"]),
                        last_modified=obj["LastModified"],
                    )
        except (ClientError, BotoCoreError) as exc:
            raise StorageError() from exc

    def ensure_bucket_exists(self, name: str, policy: BucketPolicy) -> bool:
        try:
            try:
                self.client.head_bucket(Bucket=name)
                created = False
            except ClientError as e:
                if e.response["Error"]["Code"] not in ("404", "NoSuchBucket", "NotFound"):
                    raise
                self.client.create_bucket(Bucket=name)
                created = True
            if policy.public:
                self.client.put_bucket_policy(Bucket=name, Policy=json.dumps(_public_read_policy(name)))
        except (ClientError, BotoCoreError) as exc:
            raise StorageError() from exc
        logger.info("Provisioned bucket %s (created=%s, public=%s)", name, created, policy.public)
        return created


def _public_read_policy(bucket: str) -> dict:
    return {
        "Version": "2012-10-17",
        "Statement": [
            {
                "Effect": "Allow",
                "Principal": "*",
                "Action": ["s3:GetObject"],
                "Resource": [f"arn:aws:s3:::{bucket}/*"],
            }
        ],
    }


def default_policy() -> BucketPolicy:
    return BucketPolicy(
        public=True,
        allowed_mime_types=tuple(settings.MEDIA_ALLOWED_MIME_PREFIXES),
        max_size_bytes=settings.MEDIA_MAX_UPLOAD_BYTES,
    )


def get_media_store() -> MediaStore:
    """Build the store for the configured backend."""
    policy = default_policy()
    if settings.MEDIA_STORAGE_BACKEND == "s3":
        return S3MediaStore(
            bucket=settings.MEDIA_BUCKET,
            public_base_url=settings.MEDIA_PUBLIC_BASE_URL,
            policy=policy,
            endpoint_url=settings.MEDIA_S3_ENDPOINT_URL,
            region=settings.MEDIA_S3_REGION,
            access_key=settings.MEDIA_S3_ACCESS_KEY,
            secret_key=settings.MEDIA_S3_SECRET_KEY,
        )
    return LocalMediaStore(
        root=settings.MEDIA_LOCAL_ROOT,
        bucket=settings.MEDIA_BUCKET,
        public_base_url=settings.MEDIA_PUBLIC_BASE_URL,
        policy=policy,
    )


__all__ = [
    "BucketPolicy",
    "StoredObject",
    "MediaStore",
    "LocalMediaStore",
    "S3MediaStore",
    "build_object_path",
    "default_policy",
    "get_media_store",
]
