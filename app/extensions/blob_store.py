import os

from flask import current_app

from app.storage.base import BlobStore
from app.storage.local import LocalBlobStore
from app.storage.minio_store import MinioBlobStore


def build_blob_store(app) -> BlobStore:
    storage_type = app.config["MEDIA_STORAGE"]
    if storage_type == "local":
        root = app.config.get("MEDIA_LOCAL_ROOT") or os.path.join(
            app.instance_path, "storage"
        )
        return LocalBlobStore(root)
    elif storage_type == "minio":
        return MinioBlobStore.from_config(app.config)
    else:
        raise ValueError(f"Unknown storage type: {storage_type}")


def init_blob_store(app):
    app.extensions["blob_store"] = build_blob_store(app)


def get_blob_store() -> BlobStore:
    return current_app.extensions["blob_store"]
