import io

import structlog
import urllib3
from minio import Minio
from minio.error import MinioException, S3Error
from urllib3.exceptions import HTTPError

from app.errors import StorageFailure
from app.storage.base import BlobNotFound, BlobStore, StoredBlob


logger = structlog.get_logger(__name__)

_BACKEND_ERRORS = (MinioException, HTTPError, OSError)


def _is_not_found(error: S3Error) -> bool:
    return error.code in {"NoSuchKey", "NoSuchBucket", "NoSuchObject"}


class MinioBlobStore(BlobStore):
    def __init__(self, client, bucket: str):
        self.client = client
        self.bucket = bucket
        self._bucket_checked = False

    @classmethod
    def from_config(cls, config):
        """Builds a store whose client fails fast instead of retrying."""
        http_client = urllib3.PoolManager(
            timeout=urllib3.Timeout(
                connect=config["MINIO_CONNECT_TIMEOUT"],
                read=config["MINIO_READ_TIMEOUT"],
            ),
            retries=False,
            maxsize=config.get("MINIO_HTTP_POOL_MAXSIZE", 32),
        )
        client = Minio(
            config["MINIO_ENDPOINT"],
            access_key=config["MINIO_ACCESS_KEY"],
            secret_key=config["MINIO_SECRET_KEY"],
            secure=config["MINIO_SECURE"],
            http_client=http_client,
        )
        return cls(client, config["MINIO_BUCKET"])

    def _ensure_bucket(self):
        if self._bucket_checked:
            return
        if not self.client.bucket_exists(self.bucket):
            self.client.make_bucket(self.bucket)
        self._bucket_checked = True

    def save(self, name: str, data: bytes, content_type: str) -> None:
        try:
            self._ensure_bucket()
            self.client.put_object(
                bucket_name=self.bucket,
                object_name=name,
                data=io.BytesIO(data),
                length=len(data),
                content_type=content_type,
            )
        except _BACKEND_ERRORS as e:
            raise StorageFailure("Media storage is unavailable") from e
        logger.debug("blob.saved", name=name, size=len(data), bucket=self.bucket)

    def delete(self, name: str) -> None:
        try:
            self.client.remove_object(bucket_name=self.bucket, object_name=name)
        except S3Error as e:
            if not _is_not_found(e):
                raise StorageFailure("Media storage is unavailable") from e
            logger.warning("blob.delete_missing", name=name, bucket=self.bucket)
            return
        except _BACKEND_ERRORS as e:
            raise StorageFailure("Media storage is unavailable") from e
        logger.debug("blob.deleted", name=name, bucket=self.bucket)

    def open(self, name: str) -> StoredBlob:
        response = None
        try:
            stat = self.client.stat_object(bucket_name=self.bucket, object_name=name)
            response = self.client.get_object(bucket_name=self.bucket, object_name=name)
            data = response.read()
        except S3Error as e:
            if _is_not_found(e):
                raise BlobNotFound(name) from e
            raise StorageFailure("Media storage is unavailable") from e
        except _BACKEND_ERRORS as e:
            raise StorageFailure("Media storage is unavailable") from e
        finally:
            if response is not None:
                response.close()
                response.release_conn()

        return StoredBlob(
            data=data,
            content_type=getattr(stat, "content_type", None) or "application/octet-stream",
            etag=getattr(stat, "etag", None),
            last_modified=getattr(stat, "last_modified", None),
        )
