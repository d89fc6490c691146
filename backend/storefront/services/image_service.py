# Overview: Stores uploaded images on disk and hands back the generated filename.

from __future__ import annotations

import os
from uuid import uuid4

from flask import current_app
from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename

from ..config import Settings
from ..errors import DependencyError, ValidationError

IMAGE_CATEGORIES = ("product", "logo", "banner", "hero")
ALLOWED_EXTENSIONS = frozenset({"png", "jpg", "jpeg", "gif", "webp"})


def allowed_image_extension(filename: str) -> bool:
    extension = os.path.splitext(filename)[1].lower().lstrip(".")
    if not extension:
        return False
    return extension in ALLOWED_EXTENSIONS


def category_directory(settings: Settings, category: str) -> str:
    return os.path.join(settings.upload_root, f"{category}s")


def _stream_size(image_file: FileStorage) -> int:
    stream = image_file.stream
    stream.seek(0, os.SEEK_END)
    size = stream.tell()
    stream.seek(0)
    return size


def save_image(image_file: FileStorage | None, category: str, base_id, settings: Settings) -> str:
    """
    Validate and write one uploaded image under UPLOAD_ROOT/<category>s/.

    Returns the generated filename, which is all the caller stores.
    """
    if category not in IMAGE_CATEGORIES:
        raise ValidationError(
            f"Unknown image category: {category}",
            details={"allowed": list(IMAGE_CATEGORIES)},
        )

    if not image_file or not getattr(image_file, "filename", ""):
        raise ValidationError("An image file is required.")

    if not (image_file.mimetype or "").startswith("image/"):
        raise ValidationError("Not an image! Please upload only images.")

    original_filename = secure_filename(image_file.filename)
    if not original_filename:
        raise ValidationError("Please choose a valid file name.")

    if not allowed_image_extension(original_filename):
        raise ValidationError("Unsupported image format. Upload PNG, JPG, JPEG, GIF, or WEBP files.")

    if _stream_size(image_file) > settings.max_image_bytes:
        raise ValidationError(
            "Image is too large",
            details={"max_bytes": settings.max_image_bytes},
        )

    extension = os.path.splitext(original_filename)[1].lower()
    unique_filename = f"{category}-{base_id}-{uuid4().hex}{extension}"
    directory = category_directory(settings, category)
    destination = os.path.join(directory, unique_filename)

    try:
        os.makedirs(directory, exist_ok=True)
        image_file.save(destination)
    except OSError as exc:
        current_app.logger.warning("Could not store upload %s: %s", destination, exc)
        raise DependencyError("We could not store the uploaded image. Please try again.") from exc

    return unique_filename


def save_images(image_files: list[FileStorage], category: str, base_id, settings: Settings) -> list[str]:
    """Save several images; on failure the ones already written are removed."""
    saved: list[str] = []
    for image_file in image_files:
        try:
            saved.append(save_image(image_file, category, base_id, settings))
        except (ValidationError, DependencyError):
            for filename in saved:
                remove_image(filename, category, settings)
            raise
    return saved


def remove_image(filename: str | None, category: str, settings: Settings) -> None:
    if not filename:
        return
    target = os.path.join(category_directory(settings, category), secure_filename(filename))
    try:
        os.remove(target)
    except FileNotFoundError:
        return
    except OSError as exc:
        current_app.logger.warning("Could not remove image %s: %s", target, exc)
