from flask import (
    Blueprint,
    abort,
    current_app,
    flash,
    redirect,
    render_template,
    request,
    url_for,
)

from werkzeug.exceptions import RequestEntityTooLarge

from app.db import db
from app.errors import ValidationError
from app.extensions.blob_store import get_blob_store
from app.repositories.post_repository import PostRepository
from app.services.post_service import ImageUpload, PostService, blob_key

post_bp = Blueprint("posts", __name__)


def get_post_service() -> PostService:
    return PostService(
        posts=PostRepository(db.session),
        blobs=get_blob_store(),
        per_page=current_app.config["POSTS_PER_PAGE"],
        max_image_kb=current_app.config["MAX_IMAGE_KB"],
    )


def _read_form():
    image = ImageUpload.from_file_storage(request.files.get("image"))
    return image, request.form.get("title"), request.form.get("content")


@post_bp.app_template_global()
def post_image_url(post):
    return url_for("main.get_media", object_name=blob_key(post.image))


@post_bp.route("/posts", methods=["GET"])
def index():
    page = request.args.get("page", default=1, type=int)

    posts = get_post_service().list_posts(page)
    return render_template("posts/index.html", posts=posts)


@post_bp.route("/posts/create", methods=["GET"])
def create():
    return render_template("posts/create.html", form={}, errors={})


@post_bp.route("/posts", methods=["POST"])
def store():
    image, title, content = _read_form()

    try:
        get_post_service().create_post(image, title, content)
    except ValidationError as e:
        return render_template(
            "posts/create.html", form=request.form, errors=e.errors
        ), 422

    flash("Post saved successfully!", "success")
    return redirect(url_for("posts.index"))


@post_bp.route("/posts/<int:post_id>", methods=["GET"])
def show(post_id):
    post = get_post_service().get_post(post_id)
    return render_template("posts/show.html", post=post)


@post_bp.route("/posts/<int:post_id>/edit", methods=["GET"])
def edit(post_id):
    post = get_post_service().get_post(post_id)
    return render_template("posts/edit.html", post=post, form={}, errors={})


@post_bp.route("/posts/<int:post_id>", methods=["PUT", "PATCH"])
def update(post_id):
    service = get_post_service()
    image, title, content = _read_form()

    try:
        service.update_post(post_id, image, title, content)
    except ValidationError as e:
        post = service.get_post(post_id)
        return render_template(
            "posts/edit.html", post=post, form=request.form, errors=e.errors
        ), 422

    flash("Post updated successfully!", "success")
    return redirect(url_for("posts.index"))


@post_bp.route("/posts/<int:post_id>", methods=["DELETE"])
def destroy(post_id):
    get_post_service().delete_post(post_id)

    flash("Post deleted successfully!", "success")
    return redirect(url_for("posts.index"))


@post_bp.route("/posts/<int:post_id>", methods=["POST"])
def method_override(post_id):
    # HTML forms only send GET/POST; "_method" carries the real verb.
    method = (request.form.get("_method") or "").upper()
    if method in ("PUT", "PATCH"):
        return update(post_id)
    if method == "DELETE":
        return destroy(post_id)
    abort(405)


@post_bp.errorhandler(RequestEntityTooLarge)
def upload_too_large(error):
    # The body was refused unread, so there is no submitted form to echo back.
    errors = {
        "image": [
            "The image may not be greater than "
            f"{current_app.config['MAX_IMAGE_KB']} kilobytes."
        ]
    }
    post_id = (request.view_args or {}).get("post_id")
    if post_id is None:
        return render_template("posts/create.html", form={}, errors=errors), 422

    # Exceptions raised here would skip the app error handlers.
    post = get_post_service().posts.get_by_id(post_id)
    if post is None:
        return render_template(
            "errors/error.html",
            title="Not found",
            message="The page or post you are looking for does not exist.",
        ), 404
    return render_template("posts/edit.html", post=post, form={}, errors=errors), 422
