import os
import shutil
import tempfile
import unittest
from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import patch

from flask import Flask

from app.config import Config
from app.errors import StorageFailure
from app.extensions.blob_store import build_blob_store
from app.storage.base import BlobNotFound
from app.storage.local import LocalBlobStore
from app.storage.minio_store import MinioBlobStore


class FakeMinioObject:
    def __init__(self, data):
        self.data = data
        self.closed = False
        self.released = False

    def read(self):
        return self.data

    def close(self):
        self.closed = True

    def release_conn(self):
        self.released = True


class FakeMinio:
    def __init__(self, bucket_exists=True):
        self.objects = {}
        self.buckets = {"media"} if bucket_exists else set()
        self.made_buckets = []
        self.last_response = None

    def bucket_exists(self, bucket_name):
        return bucket_name in self.buckets

    def make_bucket(self, bucket_name):
        self.buckets.add(bucket_name)
        self.made_buckets.append(bucket_name)

    def put_object(self, bucket_name, object_name, data, length, content_type):
        payload = data.read()
        assert len(payload) == length
        self.objects[(bucket_name, object_name)] = (payload, content_type)

    def stat_object(self, bucket_name, object_name):
        _, content_type = self.objects[(bucket_name, object_name)]
        return SimpleNamespace(
            content_type=content_type,
            etag="etag-123",
            last_modified=datetime(2026, 2, 25, 18, 0, 0, tzinfo=timezone.utc),
        )

    def get_object(self, bucket_name, object_name):
        payload, _ = self.objects[(bucket_name, object_name)]
        self.last_response = FakeMinioObject(payload)
        return self.last_response

    def remove_object(self, bucket_name, object_name):
        self.objects.pop((bucket_name, object_name), None)


class FailingMinio:
    def bucket_exists(self, *args, **kwargs):
        raise ConnectionRefusedError("storage down")

    def remove_object(self, *args, **kwargs):
        raise ConnectionRefusedError("storage down")


class TestLocalBlobStore(unittest.TestCase):
    def setUp(self):
        self.root = tempfile.mkdtemp()
        self.store = LocalBlobStore(self.root)

    def tearDown(self):
        shutil.rmtree(self.root, ignore_errors=True)

    def test_save_open_and_delete(self):
        self.store.save("posts/a.png", b"png-bytes", "image/png")

        blob = self.store.open("posts/a.png")
        self.assertEqual(blob.data, b"png-bytes")
        self.assertEqual(blob.content_type, "image/png")
        self.assertTrue(blob.etag)
        self.assertIsNotNone(blob.last_modified)
        self.assertTrue(os.path.isfile(os.path.join(self.root, "posts", "a.png")))

        self.store.delete("posts/a.png")
        self.assertFalse(self.store.exists("posts/a.png"))

    def test_delete_missing_blob_is_noop(self):
        self.store.delete("posts/missing.jpg")

    def test_open_missing_blob_raises(self):
        with self.assertRaises(BlobNotFound):
            self.store.open("posts/missing.jpg")

    def test_names_cannot_escape_root(self):
        with self.assertRaises(BlobNotFound):
            self.store.open("../outside.txt")
        with self.assertRaises(BlobNotFound):
            self.store.open("posts")

    def test_write_error_becomes_storage_failure(self):
        # A file where the namespace directory should be.
        with open(os.path.join(self.root, "posts"), "wb") as f:
            f.write(b"x")

        with self.assertRaises(StorageFailure):
            self.store.save("posts/a.jpg", b"data", "image/jpeg")


class TestMinioBlobStore(unittest.TestCase):
    def test_save_creates_bucket_once_and_round_trips(self):
        minio = FakeMinio(bucket_exists=False)
        store = MinioBlobStore(minio, "media")

        store.save("posts/a.jpg", b"jpeg-bytes", "image/jpeg")
        store.save("posts/b.jpg", b"other", "image/jpeg")

        self.assertEqual(minio.made_buckets, ["media"])
        blob = store.open("posts/a.jpg")
        self.assertEqual(blob.data, b"jpeg-bytes")
        self.assertEqual(blob.content_type, "image/jpeg")
        self.assertEqual(blob.etag, "etag-123")
        self.assertEqual(blob.last_modified.year, 2026)
        self.assertTrue(minio.last_response.closed)
        self.assertTrue(minio.last_response.released)

    def test_delete_removes_object(self):
        minio = FakeMinio()
        store = MinioBlobStore(minio, "media")
        store.save("posts/a.jpg", b"jpeg-bytes", "image/jpeg")

        store.delete("posts/a.jpg")
        store.delete("posts/a.jpg")

        self.assertNotIn(("media", "posts/a.jpg"), minio.objects)

    def test_backend_errors_become_storage_failure(self):
        store = MinioBlobStore(FailingMinio(), "media")

        with self.assertRaises(StorageFailure):
            store.save("posts/a.jpg", b"jpeg-bytes", "image/jpeg")
        with self.assertRaises(StorageFailure):
            store.delete("posts/a.jpg")


class TestBuildBlobStore(unittest.TestCase):
    def _app(self, **config):
        app = Flask(__name__)
        app.config.from_object(Config)
        app.config.update(config)
        return app

    def test_local_backend_defaults_under_instance_path(self):
        app = self._app(MEDIA_STORAGE="local", MEDIA_LOCAL_ROOT="")
        store = build_blob_store(app)
        self.assertIsInstance(store, LocalBlobStore)
        self.assertEqual(store.root, os.path.join(app.instance_path, "storage"))

    def test_minio_backend_builds_client_from_config(self):
        app = self._app(
            MEDIA_STORAGE="minio",
            MINIO_BUCKET="posts-media",
            MINIO_ENDPOINT="minio.internal:9000",
            MINIO_ACCESS_KEY="key",
            MINIO_SECRET_KEY="secret",
            MINIO_SECURE=True,
        )

        with patch("app.storage.minio_store.Minio") as minio_cls:
            store = build_blob_store(app)
            store.save("posts/a.jpg", b"jpeg-bytes", "image/jpeg")

        self.assertIsInstance(store, MinioBlobStore)
        self.assertEqual(store.bucket, "posts-media")
        args, kwargs = minio_cls.call_args
        self.assertEqual(args, ("minio.internal:9000",))
        self.assertEqual(kwargs["access_key"], "key")
        self.assertEqual(kwargs["secret_key"], "secret")
        self.assertTrue(kwargs["secure"])
        self.assertIsNotNone(kwargs["http_client"])

        client = minio_cls.return_value
        client.bucket_exists.assert_called_once_with("posts-media")
        put_kwargs = client.put_object.call_args.kwargs
        self.assertEqual(put_kwargs["bucket_name"], "posts-media")
        self.assertEqual(put_kwargs["object_name"], "posts/a.jpg")
        self.assertEqual(put_kwargs["length"], len(b"jpeg-bytes"))
        self.assertEqual(put_kwargs["content_type"], "image/jpeg")

    def test_unknown_backend_is_rejected(self):
        with self.assertRaises(ValueError):
            build_blob_store(self._app(MEDIA_STORAGE="ftp"))


if __name__ == "__main__":
    unittest.main()
