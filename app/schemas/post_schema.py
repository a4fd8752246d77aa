import io

from marshmallow import EXCLUDE, ValidationError, pre_load, validate, validates
from PIL import Image, UnidentifiedImageError

from app.extensions.extensions import ma


ALLOWED_IMAGE_MIME_TYPES = {
    "image/jpeg",
    "image/jpg",
    "image/png",
}

ALLOWED_IMAGE_FORMATS = {
    "JPEG": "jpg",
    "PNG": "png",
}


def _required(field: str) -> dict:
    return {"required": f"The {field} field is required."}


def detect_image_format(data: bytes) -> str | None:
    """Returns Pillow's format name for ``data``, or None when it is not an image."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.verify()
            return img.format
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, SyntaxError, ValueError):
        return None


class PostFormSchema(ma.Schema):
    class Meta:
        unknown = EXCLUDE

    image = ma.Raw(required=True, error_messages=_required("image"))
    title = ma.Str(
        required=True,
        error_messages=_required("title"),
        validate=validate.Length(
            min=5, error="The title must be at least {min} characters."
        ),
    )
    content = ma.Str(
        required=True,
        error_messages=_required("content"),
        validate=validate.Length(
            min=10, error="The content must be at least {min} characters."
        ),
    )

    def __init__(self, *args, max_image_kb: int = 2048, **kwargs):
        super().__init__(*args, **kwargs)
        self.max_image_kb = max_image_kb

    @pre_load
    def drop_blank_values(self, data, **kwargs):
        cleaned = {}
        for key, value in data.items():
            if isinstance(value, str):
                value = value.strip()
            if value is None or value == "":
                continue
            cleaned[key] = value
        return cleaned

    @validates("image")
    def validate_image(self, value, **kwargs):
        errors = []
        content_type = (getattr(value, "content_type", None) or "").lower()
        data = getattr(value, "data", None) or b""

        image_format = detect_image_format(data)
        if image_format is None:
            errors.append("The image must be an image.")
        if (
            content_type not in ALLOWED_IMAGE_MIME_TYPES
            or (image_format is not None and image_format not in ALLOWED_IMAGE_FORMATS)
        ):
            errors.append("The image must be a file of type: jpeg, jpg, png.")
        if len(data) > self.max_image_kb * 1024:
            errors.append(
                f"The image may not be greater than {self.max_image_kb} kilobytes."
            )

        if errors:
            raise ValidationError(errors)


class PostUpdateSchema(PostFormSchema):
    image = ma.Raw(required=False)

