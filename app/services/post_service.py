import uuid
from dataclasses import dataclass

import structlog
from marshmallow import ValidationError as SchemaValidationError

from app.errors import NotFound, ValidationError
from app.repositories.post_repository import PostPage, PostRepository
from app.schemas.post_schema import (
    ALLOWED_IMAGE_FORMATS,
    PostFormSchema,
    PostUpdateSchema,
    detect_image_format,
)
from app.storage.base import BlobStore


logger = structlog.get_logger(__name__)

POSTS_PREFIX = "posts/"
DEFAULT_PER_PAGE = 5


@dataclass
class ImageUpload:
    filename: str
    content_type: str
    data: bytes

    @classmethod
    def from_file_storage(cls, file_storage):
        """Builds an upload from a werkzeug FileStorage, None for an empty field."""
        if file_storage is None or not getattr(file_storage, "filename", ""):
            return None
        return cls(
            filename=file_storage.filename,
            content_type=file_storage.mimetype or "",
            data=file_storage.read(),
        )


def blob_key(image_name: str) -> str:
    return f"{POSTS_PREFIX}{image_name}"


def _new_image_name(image: ImageUpload) -> str:
    extension = ALLOWED_IMAGE_FORMATS[detect_image_format(image.data)]
    return f"{uuid.uuid4().hex}.{extension}"


class PostService:
    def __init__(
        self,
        posts: PostRepository,
        blobs: BlobStore,
        per_page: int = DEFAULT_PER_PAGE,
        max_image_kb: int = 2048,
    ):
        self.posts = posts
        self.blobs = blobs
        self.per_page = per_page
        self.max_image_kb = max_image_kb

    def _validate(self, schema_cls, image, title, content):
        schema = schema_cls(max_image_kb=self.max_image_kb)
        try:
            return schema.load({"image": image, "title": title, "content": content})
        except SchemaValidationError as e:
            raise ValidationError(e.messages) from e

    def _store_image(self, image: ImageUpload) -> str:
        name = _new_image_name(image)
        self.blobs.save(blob_key(name), image.data, image.content_type)
        return name

    def list_posts(self, page: int = 1) -> PostPage:
        if page < 1:
            page = 1
        return self.posts.paginate_latest(page, self.per_page)

    def get_post(self, post_id):
        post = self.posts.get_by_id(post_id)
        if post is None:
            raise NotFound(post_id)
        return post

    def create_post(self, image, title, content):
        data = self._validate(PostFormSchema, image, title, content)

        # Blob first: a failed insert leaves an orphan image behind.
        image_name = self._store_image(data["image"])
        post = self.posts.create(
            image=image_name,
            title=data["title"],
            content=data["content"],
        )

        logger.info("post.created", post_id=post.id, image=image_name)
        return post

    def update_post(self, post_id, image, title, content):
        data = self._validate(PostUpdateSchema, image, title, content)
        post = self.get_post(post_id)

        new_image = data.get("image")
        if new_image is None:
            self.posts.update(post, title=data["title"], content=data["content"])
            logger.info("post.updated", post_id=post.id, image=post.image)
            return post

        old_image = post.image
        image_name = self._store_image(new_image)
        self.posts.update(
            post,
            image=image_name,
            title=data["title"],
            content=data["content"],
        )
        # Old image goes last; a crash before this line orphans it.
        self.blobs.delete(blob_key(old_image))

        logger.info(
            "post.updated", post_id=post.id, image=image_name, replaced=old_image
        )
        return post

    def delete_post(self, post_id):
        post = self.get_post(post_id)
        image_name = post.image

        self.blobs.delete(blob_key(image_name))
        self.posts.delete(post)

        logger.info("post.deleted", post_id=post_id, image=image_name)
