from flask import Blueprint, Response, current_app, redirect, request, url_for

from app.extensions.blob_store import get_blob_store
from app.storage.base import BlobNotFound

main_bp = Blueprint("main", __name__)


@main_bp.route("/", methods=["GET"])
def main():
    return redirect(url_for("posts.index"))


def _cache_control() -> str:
    cache_max_age = max(
        int(current_app.config.get("MEDIA_CACHE_MAX_AGE_SECONDS", 7 * 24 * 60 * 60)),
        0,
    )
    # Blob names are never reused, so the content behind a URL never changes.
    return f"public, max-age={cache_max_age}, immutable"


@main_bp.route("/media/<path:object_name>", methods=["GET", "HEAD"])
def get_media(object_name: str):
    try:
        blob = get_blob_store().open(object_name)
    except BlobNotFound:
        return Response("Media not found", status=404, mimetype="text/plain")

    response = Response(
        blob.data,
        status=200,
        headers={"Cache-Control": _cache_control()},
        mimetype=blob.content_type,
    )
    if blob.etag:
        response.set_etag(blob.etag.strip('"'))
    if blob.last_modified:
        response.last_modified = blob.last_modified

    # Answers If-None-Match / If-Modified-Since with 304.
    return response.make_conditional(request)
