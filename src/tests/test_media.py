"""Media store tests: bucket policy, path handling, backends and the upload API."""

from __future__ import annotations

import re
import shutil
import tempfile
from io import StringIO
from unittest import mock

from botocore.exceptions import ClientError
from django.core.files.uploadedfile import SimpleUploadedFile
from django.core.management import call_command
from django.test import SimpleTestCase, TestCase, override_settings
from rest_framework.exceptions import ValidationError
from rest_framework.test import APIClient

from core.exceptions import Conflict, StorageError
from media.storage import BucketPolicy, LocalMediaStore, S3MediaStore, build_object_path
from tests.utils import auth_client, make_identity, seed_admin

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


def _client_error(code: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, "HeadObject")


class BucketPolicyTests(SimpleTestCase):
    def test_mime_prefixes(self):
        policy = BucketPolicy(allowed_mime_types=("image/", "video/*", "application/pdf"))

        policy.check(10, "image/png")
        policy.check(10, "video/mp4")
        policy.check(10, "application/pdf")
        for mime_type in ("text/html", "application/pdfx", None):
            with self.assertRaises(ValidationError):
                policy.check(10, mime_type)

    def test_size_limit(self):
        policy = BucketPolicy(max_size_bytes=100)

        policy.check(100, "image/png")
        with self.assertRaises(ValidationError):
            policy.check(101, "image/png")


class ObjectPathTests(SimpleTestCase):
    def test_build_object_path_is_namespaced_and_sanitized(self):
        path = build_object_path("featured", "../My Photo (1).PNG")

        self.assertRegex(path, r"^featured/\d+_[0-9a-f]{8}_My_Photo_1_.PNG$")

    def test_two_uploads_of_the_same_name_get_distinct_paths(self):
        self.assertNotEqual(build_object_path("featured", "a.png"), build_object_path("featured", "a.png"))


class LocalMediaStoreTests(SimpleTestCase):
    """Filesystem backend in a throwaway directory."""

    def setUp(self):
        self.root = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, self.root, ignore_errors=True)
        self.store = LocalMediaStore(
            root=self.root,
            bucket="media",
            public_base_url="https://cdn.test/public/",
            policy=BucketPolicy(max_size_bytes=1024),
        )

    def test_public_url_is_pure(self):
        self.assertEqual(
            self.store.public_url("featured/never uploaded.png"),
            "https://cdn.test/public/media/featured/never%20uploaded.png",
        )

    def test_upload_then_list(self):
        stored = self.store.upload("featured/a.png", PNG_BYTES, "image/png")

        self.assertEqual(stored.url, "https://cdn.test/public/media/featured/a.png")
        self.assertEqual(stored.size_bytes, len(PNG_BYTES))
        self.assertEqual((self.store.bucket_dir / "featured" / "a.png").read_bytes(), PNG_BYTES)
        self.assertEqual([obj.path for obj in self.store.list("featured/")], ["featured/a.png"])
        self.assertEqual(list(self.store.list("other/")), [])

    def test_overwrite_is_rejected(self):
        self.store.upload("featured/a.png", PNG_BYTES, "image/png")

        with self.assertRaises(Conflict):
            self.store.upload("featured/a.png", b"other", "image/png")
        self.assertEqual((self.store.bucket_dir / "featured" / "a.png").read_bytes(), PNG_BYTES)

    def test_policy_is_enforced_on_upload(self):
        with self.assertRaises(ValidationError):
            self.store.upload("featured/a.html", b"<html>", "text/html")
        with self.assertRaises(ValidationError):
            self.store.upload("featured/big.png", b"x" * 2048, "image/png")

    def test_traversal_is_rejected(self):
        for path in ("../escape.png", "featured/../../escape.png", "", "featured/"):
            with self.assertRaises(ValidationError):
                self.store.upload(path, PNG_BYTES, "image/png")

    def test_ensure_bucket_exists(self):
        self.assertTrue(self.store.ensure_bucket_exists("media", BucketPolicy()))
        self.assertFalse(self.store.ensure_bucket_exists("media", BucketPolicy()))
        self.assertTrue((self.store.bucket_dir / ".bucket.json").exists())


class S3MediaStoreTests(SimpleTestCase):
    """S3 backend against a mocked boto3 client."""

    def setUp(self):
        self.client = mock.MagicMock()
        self.store = S3MediaStore(
            bucket="media",
            public_base_url="https://cdn.test/public",
            policy=BucketPolicy(),
            client=self.client,
        )

    def test_upload_to_free_path(self):
        self.client.head_object.side_effect = _client_error("404")

        stored = self.store.upload("featured/a.png", PNG_BYTES, "image/png")

        self.client.put_object.assert_called_once_with(
            Bucket="media", Key="featured/a.png", Body=PNG_BYTES, ContentType="image/png"
        )
        self.assertEqual(stored.url, "https://cdn.test/public/media/featured/a.png")

    def test_upload_to_taken_path_conflicts(self):
        self.client.head_object.return_value = {"ContentLength": 3}

        with self.assertRaises(Conflict):
            self.store.upload("featured/a.png", PNG_BYTES, "image/png")
        self.client.put_object.assert_not_called()

    def test_backend_failure_is_storage_error(self):
        self.client.head_object.side_effect = _client_error("403")

        with self.assertRaises(StorageError):
            self.store.upload("featured/a.png", PNG_BYTES, "image/png")

    def test_ensure_bucket_creates_and_applies_public_policy(self):
        self.client.head_bucket.side_effect = _client_error("NoSuchBucket")

        self.assertTrue(self.store.ensure_bucket_exists("media", BucketPolicy(public=True)))

        self.client.create_bucket.assert_called_once_with(Bucket="media")
        self.assertIn("s3:GetObject", self.client.put_bucket_policy.call_args.kwargs["Policy"])

    def test_ensure_private_bucket_skips_policy(self):
        self.assertFalse(self.store.ensure_bucket_exists("media", BucketPolicy(public=False)))

        self.client.create_bucket.assert_not_called()
        self.client.put_bucket_policy.assert_not_called()


class MediaApiTests(TestCase):
    """Upload/list endpoints and public serving with the local backend."""

    @classmethod
    def setUpTestData(cls):
        cls.admin = seed_admin()

    def setUp(self):
        root = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, root, ignore_errors=True)
        settings_override = override_settings(
            MEDIA_STORAGE_BACKEND="local",
            MEDIA_LOCAL_ROOT=root,
            MEDIA_BUCKET="media",
            MEDIA_PUBLIC_BASE_URL="http://testserver/media/public",
        )
        settings_override.enable()
        self.addCleanup(settings_override.disable)

    @staticmethod
    def _png(name: str = "cover.png") -> SimpleUploadedFile:
        return SimpleUploadedFile(name, PNG_BYTES, content_type="image/png")

    def test_admin_uploads_and_gets_public_url(self):
        client = auth_client(self.admin)

        response = client.post("/media/", {"file": self._png(), "category": "featured"}, format="multipart")

        self.assertEqual(response.status_code, 201)
        data = response.json()["data"]
        self.assertTrue(re.match(r"^featured/\d+_[0-9a-f]{8}_cover.png$", data["path"]))
        self.assertEqual(data["url"], f"http://testserver/media/public/media/{data['path']}")
        self.assertEqual(data["size"], len(PNG_BYTES))

        served = APIClient().get(f"/media/public/media/{data['path']}")
        self.assertEqual(served.status_code, 200)
        self.assertEqual(b"".join(served.streaming_content), PNG_BYTES)
        served.close()

        listing = client.get("/media/", {"prefix": "featured/"}).json()["data"]
        self.assertEqual([item["path"] for item in listing], [data["path"]])

    def test_disallowed_type_is_rejected(self):
        html = SimpleUploadedFile("page.html", b"<html></html>", content_type="text/html")

        response = auth_client(self.admin).post("/media/", {"file": html}, format="multipart")

        self.assertEqual(response.status_code, 400)

    @override_settings(MEDIA_MAX_UPLOAD_BYTES=8)
    def test_oversized_upload_is_rejected(self):
        response = auth_client(self.admin).post("/media/", {"file": self._png()}, format="multipart")

        self.assertEqual(response.status_code, 400)

    def test_bad_category_is_rejected(self):
        response = auth_client(self.admin).post(
            "/media/", {"file": self._png(), "category": "../etc"}, format="multipart"
        )

        self.assertEqual(response.status_code, 400)

    def test_upload_requires_admin(self):
        self.assertEqual(APIClient().post("/media/", {"file": self._png()}, format="multipart").status_code, 401)
        self.assertEqual(
            auth_client(make_identity("user@test.com"))
            .post("/media/", {"file": self._png()}, format="multipart")
            .status_code,
            403,
        )

    def test_missing_public_object_is_404(self):
        self.assertEqual(APIClient().get("/media/public/media/featured/nope.png").status_code, 404)
        self.assertEqual(APIClient().get("/media/public/other/featured/nope.png").status_code, 404)

    def test_bucket_policy_file_is_not_served(self):
        call_command("ensure_media_bucket", stdout=StringIO())

        self.assertEqual(APIClient().get("/media/public/media/.bucket.json").status_code, 404)

    def test_pdf_upload_is_accepted_by_default(self):
        pdf = SimpleUploadedFile("brochure.pdf", b"%PDF-1.4\n%%EOF\n", content_type="application/pdf")

        response = auth_client(self.admin).post("/media/", {"file": pdf, "category": "docs"}, format="multipart")

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["data"]["content_type"], "application/pdf")

    def test_ensure_media_bucket_command(self):
        out = StringIO()

        call_command("ensure_media_bucket", stdout=out)
        call_command("ensure_media_bucket", stdout=out)

        output = out.getvalue()
        self.assertIn("Media bucket 'media' created.", output)
        self.assertIn("already exists", output)
