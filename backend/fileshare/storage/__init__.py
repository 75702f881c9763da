from fileshare.core.config import settings

from .base import (
    BlobNotFound,
    BlobObject,
    BlobStore,
    BlobStoreError,
    Container,
    DownloadResult,
    Location,
)
from .local import LocalBlobStore


def create_blob_store() -> BlobStore:
    backend = settings.STORAGE_BACKEND.lower()
    if backend == "local":
        return LocalBlobStore(settings.LOCAL_STORAGE_PATH)
    if backend == "minio":
        from .minio_store import MinioBlobStore, build_minio_client

        store = MinioBlobStore(
            build_minio_client(),
            public_bucket=settings.MINIO_PUBLIC_BUCKET,
            private_bucket=settings.MINIO_PRIVATE_BUCKET,
        )
        store.initialize_buckets()
        return store
    raise RuntimeError(f"Unknown STORAGE_BACKEND: {settings.STORAGE_BACKEND}")
