import logging

from minio import Minio
from minio.error import S3Error

from fileshare.core.config import settings
from fileshare.storage.base import (
    BlobNotFound,
    BlobObject,
    BlobStore,
    BlobStoreError,
    Container,
    DownloadResult,
    Location,
    validate_location,
    validate_object,
)

logger = logging.getLogger(__name__)

_MISSING_CODES = {"NoSuchKey", "NoSuchObject", "NoSuchBucket"}


def build_minio_client() -> Minio:
    return Minio(
        settings.MINIO_ENDPOINT,
        access_key=settings.MINIO_ACCESS_KEY,
        secret_key=settings.MINIO_SECRET_KEY,
        secure=settings.MINIO_SECURE,
    )


class MinioBlobStore(BlobStore):
    """One bucket per container; the location path is the object name."""

    def __init__(self, client: Minio, public_bucket: str, private_bucket: str):
        self.client = client
        self.buckets = {
            Container.PUBLIC: public_bucket,
            Container.PRIVATE: private_bucket,
        }

    def initialize_buckets(self):
        for bucket in self.buckets.values():
            try:
                if not self.client.bucket_exists(bucket):
                    self.client.make_bucket(bucket)
                    logger.info(f"Bucket '{bucket}' created successfully")
                else:
                    logger.info(f"Bucket '{bucket}' already exists")
            except S3Error as e:
                logger.error(f"MinIO error: {e}")
                raise RuntimeError(f"Failed to initialize MinIO bucket: {e}")

    def upload(self, obj: BlobObject) -> Location:
        name = validate_object(obj)
        bucket = self.buckets[obj.container]
        try:
            self.client.put_object(
                bucket_name=bucket,
                object_name=name,
                data=obj.stream,
                length=obj.size,
                content_type=obj.content_type or "application/octet-stream",
            )
        except S3Error as e:
            # a failed multipart upload may leave a partial object
            self._remove_quietly(bucket, name)
            raise BlobStoreError(f"minio: upload failed: {e}") from e
        return Location(container=obj.container, path=name)

    def download(self, loc: Location) -> DownloadResult:
        validate_location(loc)
        bucket = self.buckets[loc.container]
        try:
            stat = self.client.stat_object(bucket, loc.path)
            response = self.client.get_object(bucket, loc.path)
        except S3Error as e:
            if e.code in _MISSING_CODES:
                raise BlobNotFound(loc.path)
            raise BlobStoreError(f"minio: download failed: {e}") from e
        return DownloadResult(stream=response, content_type=stat.content_type, size=stat.size)

    def delete(self, loc: Location) -> None:
        validate_location(loc)
        bucket = self.buckets[loc.container]
        try:
            self.client.remove_object(bucket, loc.path)
        except S3Error as e:
            if e.code in _MISSING_CODES:
                logger.debug("minio: %s/%s already absent", bucket, loc.path)
                return
            raise BlobStoreError(f"minio: delete failed: {e}") from e

    def healthcheck(self) -> None:
        self.client.list_buckets()

    def _remove_quietly(self, bucket: str, name: str):
        try:
            self.client.remove_object(bucket, name)
        except S3Error:
            logger.exception("MinIO remove_object failed for %s/%s", bucket, name)
